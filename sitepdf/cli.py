"""Command-line interface: crawl a site into a merged PDF and summary."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

from .config import (
    DEFAULT_MAX_PAGES,
    MAX_PAGES_LIMIT,
    ConfigError,
    build_crawl_config,
    load_config,
    load_settings,
)
from .document import CRAWL_MODES
from .pipeline import PipelineError, PipelineOptions, PipelineResult, run_pipeline_async
from .summary import DETAIL_LEVELS, SummaryClient


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _output_stem(url: str) -> str:
    """Convert the root URL to a safe file stem."""
    host = (urlsplit(url).hostname or "site").removeprefix("www.")
    return host.replace(":", "_").replace(".", "_")[:100]


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sitepdf",
        description="Crawl a website into a single indexed PDF with an optional AI summary.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Screenshot archive of up to 10 pages into ./out
  sitepdf https://example.com -o out/

  # Fast text-only crawl, two levels deep
  sitepdf https://example.com --mode fast --max-depth 2

  # Add a detailed AI summary (needs OPENAI_API_KEY)
  sitepdf https://example.com --summary --detail-level detailed

  # Print the JSON envelope instead of writing files
  sitepdf https://example.com --mode fast --json
""",
    )

    parser.add_argument("url", help="Root URL to crawl")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=".",
        help="Output directory (default: current directory)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=DEFAULT_MAX_PAGES,
        help=f"Maximum pages to capture, 1-{MAX_PAGES_LIMIT} (default: {DEFAULT_MAX_PAGES})",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum link depth from the root (default: unlimited)",
    )
    parser.add_argument(
        "--mode",
        choices=CRAWL_MODES,
        default="archive",
        help="fast/standard render page text; archive embeds full-page screenshots (default: archive)",
    )
    parser.add_argument(
        "--all-domains",
        action="store_true",
        help="Follow links to other domains too",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="REGEX",
        help="Skip URLs matching this regex (repeatable)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-page navigation timeout in seconds (default: SITEPDF_NAV_TIMEOUT or 15)",
    )

    pdf_group = parser.add_argument_group("PDF output")
    pdf_group.add_argument("--no-pdf", action="store_true", help="Skip PDF generation")
    pdf_group.add_argument("--no-toc", action="store_true", help="Omit the table of contents")
    pdf_group.add_argument(
        "--no-archive",
        action="store_true",
        help="Do not write the ZIP of per-page PDFs",
    )
    pdf_group.add_argument(
        "--font",
        type=str,
        default=None,
        help="TrueType font for non-Latin text (default: SITEPDF_FONT_PATH)",
    )

    summary_group = parser.add_argument_group("AI summary")
    summary_group.add_argument(
        "--summary",
        action="store_true",
        help="Generate an AI business summary (needs OPENAI_API_KEY)",
    )
    summary_group.add_argument(
        "--detail-level",
        choices=DETAIL_LEVELS,
        default="basic",
        help="Summary depth (default: basic)",
    )
    summary_group.add_argument(
        "--language",
        type=str,
        default=None,
        help="Language for the summary text (default: model's choice)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print the result envelope as JSON instead of writing files",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _write_outputs(result: PipelineResult, url: str, output: str) -> None:
    out_dir = Path(output)
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = _output_stem(url)

    if result.pdf is not None:
        pdf_path = out_dir / f"{stem}.pdf"
        pdf_path.write_bytes(result.pdf.merged_pdf)
        logging.info("Wrote %s (%d pages)", pdf_path, result.pdf.page_count)
        if result.pdf.archive is not None:
            zip_path = out_dir / f"{stem}_pages.zip"
            zip_path.write_bytes(result.pdf.archive)
            logging.info("Wrote %s", zip_path)

    if result.summary is not None:
        summary_path = out_dir / f"{stem}_summary.json"
        payload = result.summary.summary.to_dict()
        payload["status"] = "ok" if result.summary.ok else "degraded"
        summary_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False))
        logging.info("Wrote %s", summary_path)


async def _run_async(args: argparse.Namespace) -> int:
    settings = load_settings()
    config = build_crawl_config(
        args.url,
        max_pages=args.max_pages,
        max_depth=args.max_depth,
        same_domain_only=not args.all_domains,
        mode=args.mode,
        navigation_timeout=args.timeout or settings.navigation_timeout,
        exclude_patterns=args.exclude,
    )
    options = PipelineOptions(
        include_pdf=not args.no_pdf,
        include_toc=not args.no_toc,
        include_archive=not args.no_archive,
        include_summary=args.summary,
        detail_level=args.detail_level,
    )
    summarizer = (
        SummaryClient.from_settings(settings, language=args.language)
        if args.summary
        else None
    )

    exit_code = 0
    try:
        result = await run_pipeline_async(
            config,
            options,
            summarizer=summarizer,
            font_path=args.font or settings.font_path,
        )
    except PipelineError as exc:
        logging.error("%s", exc)
        if exc.result is None:
            return 1
        result = exc.result
        exit_code = 1

    for warning in result.warnings:
        logging.warning("%s", warning)

    if args.json_output:
        envelope = {"success": exit_code == 0, "data": result.to_dict()}
        print(json.dumps(envelope, indent=2, ensure_ascii=False))
    else:
        _write_outputs(result, config.root_url, args.output)

    if not result.crawl.pages:
        return 1
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the sitepdf command."""
    load_config(cwd=Path.cwd(), load_env=load_dotenv)
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    try:
        return asyncio.run(_run_async(args))
    except ConfigError as exc:
        logging.error("Invalid input: %s", exc)
        return 2
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

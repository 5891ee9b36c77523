"""MCP server exposing the site-to-PDF pipeline as a tool.

Supports both STDIO and HTTP transports.

Usage:
    # STDIO (for desktop MCP clients)
    python -m sitepdf.mcp_server

    # HTTP (for remote access)
    python -m sitepdf.mcp_server --transport http --port 8000

    # Or via FastMCP CLI
    fastmcp run sitepdf/mcp_server.py:mcp --transport http --port 8000

Environment Variables:
    OPENAI_API_KEY: API key for the summary stage
    SITEPDF_LLM_BASE_URL: OpenAI-compatible endpoint (default: https://api.openai.com/v1)
    SITEPDF_LLM_MODEL: Summary model (default: gpt-4o-mini)
    SITEPDF_FONT_PATH: TrueType font used for non-Latin text
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .config import DEFAULT_MAX_PAGES, ConfigError, build_crawl_config, load_config, load_settings
from .pipeline import PipelineError, PipelineOptions, run_pipeline_async
from .summary import SummaryClient

LOGGER = logging.getLogger(__name__)

mcp = FastMCP(
    name="Site to PDF",
    instructions="""
    Crawls a website depth-first and turns it into a single indexed PDF.

    Tool:
       - site_to_pdf: Crawl a site, merge every captured page into one PDF
         with a table of contents and per-page headers, and optionally
         generate an AI business summary.

    Crawl modes:
    - fast / standard: pages rendered as wrapped text
    - archive: pages rendered as full-page screenshots (default)

    The merged PDF is returned base64 encoded under data.pdf.mergedPdf.
    """,
)


def _envelope(success: bool, payload: Any) -> str:
    key = "data" if success else "error"
    return json.dumps({"success": success, key: payload}, indent=2, ensure_ascii=False)


@mcp.tool
async def site_to_pdf(
    url: str,
    max_pages: int = DEFAULT_MAX_PAGES,
    max_depth: Optional[int] = None,
    mode: str = "archive",
    include_pdf: bool = True,
    include_toc: bool = True,
    include_summary: bool = False,
    detail_level: str = "basic",
) -> str:
    """
    Crawl a website and return it as one merged, indexed PDF.

    Args:
        url: Root URL to start crawling from
        max_pages: Maximum number of pages to capture (1-200, default: 10)
        max_depth: Maximum link depth from the root (default: unlimited)
        mode: "fast", "standard" or "archive" (screenshots, default)
        include_pdf: Generate the merged PDF (default: True)
        include_toc: Prepend a table of contents (default: True)
        include_summary: Generate an AI business summary (default: False)
        detail_level: Summary depth: "basic", "detailed" or "comprehensive"

    Returns:
        JSON envelope: {"success": true, "data": {...}} with crawl stats,
        the base64 PDF and the summary, or {"success": false, "error": "..."}
    """
    try:
        config = build_crawl_config(
            url,
            max_pages=max_pages,
            max_depth=max_depth,
            mode=mode,
        )
    except ConfigError as exc:
        return _envelope(False, str(exc))

    settings = load_settings()
    options = PipelineOptions(
        include_pdf=include_pdf,
        include_toc=include_toc,
        include_archive=False,
        include_summary=include_summary,
        detail_level=detail_level,
    )
    summarizer = SummaryClient.from_settings(settings) if include_summary else None

    LOGGER.info("site_to_pdf: %s (max_pages=%d, mode=%s)", config.root_url, max_pages, mode)
    try:
        result = await run_pipeline_async(
            config,
            options,
            summarizer=summarizer,
            font_path=settings.font_path,
        )
    except ConfigError as exc:
        return _envelope(False, str(exc))
    except PipelineError as exc:
        LOGGER.error("site_to_pdf failed: %s", exc)
        error: Dict[str, Any] = {"message": str(exc)}
        if exc.result is not None:
            error["partial"] = exc.result.to_dict(include_documents=False)
        return _envelope(False, error)
    except Exception as exc:
        LOGGER.error("site_to_pdf failed: %s", exc)
        return _envelope(False, f"Unexpected error: {exc}")

    if not result.crawl.pages:
        return _envelope(False, f"No pages could be captured from {config.root_url}")
    return _envelope(True, result.to_dict())


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the site-to-PDF MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
    OPENAI_API_KEY        API key for the summary stage
    SITEPDF_LLM_BASE_URL  OpenAI-compatible endpoint
    SITEPDF_LLM_MODEL     Summary model (default: gpt-4o-mini)
    SITEPDF_FONT_PATH     TrueType font for non-Latin text

Examples:
    # STDIO transport (default)
    python -m sitepdf.mcp_server

    # HTTP transport (for remote access)
    python -m sitepdf.mcp_server --transport http --port 8000

    # Custom host/port
    python -m sitepdf.mcp_server --transport http --host 0.0.0.0 --port 9000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    load_config(cwd=Path.cwd(), load_env=load_dotenv)
    settings = load_settings()
    LOGGER.info("Summary model: %s", settings.llm_model)
    LOGGER.info("Summary API key: %s", "Configured" if settings.openai_api_key else "Missing")

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

"""Crawl -> PDF -> summary orchestration.

Each stage after the crawl can be switched off independently; disabled or
skipped stages leave their slot in :class:`PipelineResult` as None.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .capture import PageCapture
from .config import ConfigError
from .document import CrawlConfig, CrawlResult, PdfResult
from .pdf import generate_pdf_async
from .site import crawl_site_async
from .summary import DETAIL_LEVELS, DetailLevel, Summarizer, SummaryError, SummaryOutcome

LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineOptions:
    """Which optional stages to run after the crawl."""

    include_pdf: bool = True
    include_toc: bool = True
    include_archive: bool = True
    include_summary: bool = True
    detail_level: DetailLevel = "basic"


@dataclass
class PipelineResult:
    crawl: CrawlResult
    pdf: Optional[PdfResult] = None
    summary: Optional[SummaryOutcome] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self, *, include_documents: bool = True) -> Dict[str, Any]:
        """Response envelope payload; PDF bytes are base64 encoded."""
        pdf: Optional[Dict[str, Any]] = None
        if self.pdf is not None:
            pdf = {
                "totalSize": self.pdf.total_size,
                "totalSizeMB": f"{self.pdf.total_size / 1024 / 1024:.2f}",
                "pageCount": len(self.pdf.table_of_contents),
                "physicalPageCount": self.pdf.page_count,
                "warnings": list(self.pdf.warnings),
            }
            if include_documents:
                pdf["mergedPdf"] = base64.b64encode(self.pdf.merged_pdf).decode("ascii")

        summary: Optional[Dict[str, Any]] = None
        if self.summary is not None:
            summary = self.summary.summary.to_dict()
            summary["status"] = "ok" if self.summary.ok else "degraded"

        return {
            "crawl": {
                "totalPages": self.crawl.total_pages,
                "failedUrls": list(self.crawl.failed_urls),
                "duration": f"{self.crawl.duration:.2f}s",
            },
            "pdf": pdf,
            "summary": summary,
            "warnings": list(self.warnings),
        }


class PipelineError(Exception):
    """An optional stage failed; ``result`` holds everything produced so far."""

    def __init__(self, message: str, result: Optional[PipelineResult] = None):
        self.result = result
        super().__init__(message)


def _validate_options(options: PipelineOptions, summarizer: Optional[Summarizer]) -> None:
    if options.detail_level not in DETAIL_LEVELS:
        raise ConfigError(
            f"detail_level must be one of {', '.join(DETAIL_LEVELS)}, "
            f"got {options.detail_level!r}"
        )
    if options.include_summary and summarizer is None:
        raise ConfigError("Summary requested but no summarizer is configured")


async def run_pipeline_async(
    config: CrawlConfig,
    options: Optional[PipelineOptions] = None,
    *,
    capture: Optional[PageCapture] = None,
    summarizer: Optional[Summarizer] = None,
    font_path: Optional[Union[str, Path]] = None,
) -> PipelineResult:
    """Crawl the site, then build the PDF and summary as requested.

    Raises:
        ConfigError: If the options are invalid (checked before crawling).
        PipelineError: If the summarizer cannot be reached; the partially
            filled result is attached as ``exc.result``.
    """
    options = options or PipelineOptions()
    _validate_options(options, summarizer)

    crawl = await crawl_site_async(config, capture=capture)
    result = PipelineResult(crawl=crawl)

    if not crawl.pages:
        LOGGER.warning("No pages captured from %s; skipping PDF and summary", config.root_url)
        result.warnings.append(f"No pages could be captured from {config.root_url}")
        return result

    if options.include_pdf:
        result.pdf = await generate_pdf_async(
            crawl.pages,
            include_toc=options.include_toc,
            include_archive=options.include_archive,
            font_path=font_path,
        )
        result.warnings.extend(result.pdf.warnings)

    if options.include_summary and summarizer is not None:
        try:
            result.summary = await summarizer.summarize(crawl.pages, options.detail_level)
        except SummaryError as exc:
            LOGGER.error("AI summary failed: %s", exc)
            raise PipelineError(f"AI summary generation failed: {exc}", result=result) from exc
        if not result.summary.ok:
            result.warnings.append("AI summary could not be parsed; returning raw text")

    return result


def run_pipeline(
    config: CrawlConfig,
    options: Optional[PipelineOptions] = None,
    *,
    capture: Optional[PageCapture] = None,
    summarizer: Optional[Summarizer] = None,
    font_path: Optional[Union[str, Path]] = None,
) -> PipelineResult:
    """Synchronous wrapper for run_pipeline_async."""
    return asyncio.run(
        run_pipeline_async(
            config,
            options,
            capture=capture,
            summarizer=summarizer,
            font_path=font_path,
        )
    )

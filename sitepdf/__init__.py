"""Crawl a website into a single indexed PDF with an optional AI summary.

The package provides:

- Depth-first site crawling with page and depth limits
- Text or full-page screenshot rendering per captured page
- A merged PDF with table of contents, page headers and bookmarks
- A structured business summary from an OpenAI-compatible chat API

Example usage:

    from sitepdf import build_crawl_config, run_pipeline_async, PipelineOptions

    config = build_crawl_config("https://example.com", max_pages=5, mode="fast")
    result = await run_pipeline_async(
        config, PipelineOptions(include_summary=False)
    )
    Path("example.pdf").write_bytes(result.pdf.merged_pdf)

    # Crawl only
    from sitepdf import crawl_site_async
    crawl = await crawl_site_async(config)
    for page in crawl.pages:
        print(page.depth, page.url, page.title)

    # Summary with explicit credentials
    from sitepdf import SummaryClient
    client = SummaryClient(api_key="sk-...", model="gpt-4o-mini")
    outcome = await client.summarize(crawl.pages, "detailed")
"""

from __future__ import annotations

from .capture import CaptureError, PageCapture, PlaywrightPageCapture
from .config import ConfigError, Settings, build_crawl_config, load_settings
from .document import (
    CapturedPage,
    CrawlConfig,
    CrawlResult,
    PageSnapshot,
    PdfResult,
    TableOfContentsEntry,
)
from .fonts import FontResolution, resolve_font
from .pdf import generate_pdf, generate_pdf_async
from .pipeline import (
    PipelineError,
    PipelineOptions,
    PipelineResult,
    run_pipeline,
    run_pipeline_async,
)
from .site import crawl_site, crawl_site_async
from .summary import (
    BusinessSummary,
    SummaryClient,
    SummaryDegraded,
    SummaryError,
    SummaryOk,
    SwotAnalysis,
    parse_summary,
)
from .urls import is_same_domain, normalize_url

__all__ = [
    # Data types
    "CrawlConfig",
    "PageSnapshot",
    "CapturedPage",
    "CrawlResult",
    "TableOfContentsEntry",
    "PdfResult",
    # Configuration
    "ConfigError",
    "Settings",
    "build_crawl_config",
    "load_settings",
    # URLs
    "normalize_url",
    "is_same_domain",
    # Capture and crawl
    "CaptureError",
    "PageCapture",
    "PlaywrightPageCapture",
    "crawl_site",
    "crawl_site_async",
    # PDF
    "FontResolution",
    "resolve_font",
    "generate_pdf",
    "generate_pdf_async",
    # Summary
    "BusinessSummary",
    "SwotAnalysis",
    "SummaryOk",
    "SummaryDegraded",
    "SummaryError",
    "SummaryClient",
    "parse_summary",
    # Pipeline
    "PipelineOptions",
    "PipelineResult",
    "PipelineError",
    "run_pipeline",
    "run_pipeline_async",
    # MCP server (lazy)
    "mcp",
]


def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

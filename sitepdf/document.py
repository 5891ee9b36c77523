"""Data structures shared by the crawler, PDF engine and pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

CrawlMode = Literal["fast", "standard", "archive"]

CRAWL_MODES: Tuple[str, ...] = ("fast", "standard", "archive")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CrawlConfig:
    """Immutable settings for one crawl run.

    Build instances through :func:`sitepdf.config.build_crawl_config` so
    the values are validated before a browser is launched.
    """

    root_url: str
    max_pages: int = 10
    max_depth: Optional[int] = None
    same_domain_only: bool = True
    mode: CrawlMode = "archive"
    navigation_timeout: float = 15.0
    settle_delay: float = 1.0
    exclude_patterns: Tuple[str, ...] = ()

    @property
    def wants_screenshots(self) -> bool:
        return self.mode == "archive"


@dataclass(slots=True)
class PageSnapshot:
    """Raw output of the page-capture boundary for a single URL."""

    title: str
    text: str
    links: List[str] = field(default_factory=list)
    screenshot: Optional[bytes] = None


@dataclass(frozen=True, slots=True)
class CapturedPage:
    """A successfully loaded page, in crawl order."""

    url: str
    title: str
    text: str
    depth: int
    screenshot: Optional[bytes] = None
    captured_at: datetime = field(default_factory=utcnow)

    @property
    def display_title(self) -> str:
        return self.title.strip() or self.url


@dataclass(slots=True)
class CrawlResult:
    """Ordered pages produced by one crawl run plus bookkeeping."""

    pages: List[CapturedPage] = field(default_factory=list)
    failed_urls: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def duration(self) -> float:
        """Elapsed crawl time in seconds (0 while the crawl is running)."""
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPages": self.total_pages,
            "failedUrls": list(self.failed_urls),
            "duration": f"{self.duration:.2f}s",
            "pages": [
                {
                    "url": page.url,
                    "title": page.title,
                    "depth": page.depth,
                    "capturedAt": page.captured_at.isoformat(),
                    "hasScreenshot": page.screenshot is not None,
                }
                for page in self.pages
            ],
        }


@dataclass(slots=True)
class TableOfContentsEntry:
    """One TOC line; ``page_number`` is 1-based and follows crawl order."""

    title: str
    url: str
    page_number: int


@dataclass(slots=True)
class PdfResult:
    """Merged document plus per-page documents and non-fatal warnings."""

    merged_pdf: bytes
    individual_pdfs: List[bytes] = field(default_factory=list)
    table_of_contents: List[TableOfContentsEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    archive: Optional[bytes] = None
    page_count: int = 0

    @property
    def total_size(self) -> int:
        return len(self.merged_pdf)

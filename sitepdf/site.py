"""Bounded, domain-scoped depth-first site crawler.

The traversal mirrors a recursive visitor (visit a page, then fully explore
each of its links in markup order before moving to the next sibling) but
keeps its frontier on an explicit stack so deep sites cannot exhaust the
interpreter's call stack.

Example usage:

    from sitepdf.config import build_crawl_config
    from sitepdf.site import crawl_site_async

    config = build_crawl_config("https://example.com", max_pages=10, mode="fast")
    result = await crawl_site_async(config)
    for page in result.pages:
        print(page.depth, page.url, page.title)
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional, Pattern, Set, Tuple

from .capture import CaptureError, PageCapture, PlaywrightPageCapture
from .document import CapturedPage, CrawlConfig, CrawlResult, utcnow
from .urls import is_http_url, is_same_domain, normalize_url

LOGGER = logging.getLogger(__name__)

# (url, depth) pairs waiting to be visited; the last item is visited next
Frontier = List[Tuple[str, int]]


class SiteCrawler:
    """State for a single crawl run: visited set, frontier and results."""

    def __init__(self, config: CrawlConfig, capture: PageCapture) -> None:
        self.config = config
        self.capture = capture
        self.visited: Set[str] = set()
        self.result = CrawlResult()
        self._excluded: List[Pattern[str]] = [
            re.compile(pattern) for pattern in config.exclude_patterns
        ]

    @property
    def budget_reached(self) -> bool:
        return len(self.result.pages) >= self.config.max_pages

    def should_visit(self, url: str, depth: int) -> bool:
        """Visit guard, evaluated before any network fetch."""
        if not is_http_url(url):
            return False
        if normalize_url(url) in self.visited:
            return False
        if self.budget_reached:
            return False
        if self.config.max_depth is not None and depth > self.config.max_depth:
            return False
        if self.config.same_domain_only and not is_same_domain(
            self.config.root_url, url
        ):
            return False
        if any(pattern.search(url) for pattern in self._excluded):
            LOGGER.debug("Skipping excluded URL %s", url)
            return False
        return True

    def filter_links(self, links: List[str]) -> List[str]:
        """Deduplicate links in markup order, keeping crawlable targets only."""
        seen: Set[str] = set()
        kept: List[str] = []
        for link in links:
            if link in seen:
                continue
            seen.add(link)
            if not is_http_url(link):
                continue
            if self.config.same_domain_only and not is_same_domain(
                self.config.root_url, link
            ):
                continue
            kept.append(link)
        return kept

    async def visit(self, url: str, depth: int) -> List[str]:
        """Capture *url* and return the links to descend into.

        A failed capture is a dead end: it is logged, recorded in
        ``failed_urls`` and yields no links.
        """
        self.visited.add(normalize_url(url))
        LOGGER.info(
            "Crawling (%d/%d): %s",
            len(self.result.pages) + 1,
            self.config.max_pages,
            url,
        )

        try:
            snapshot = await self.capture.capture(
                url, screenshot=self.config.wants_screenshots
            )
        except CaptureError as exc:
            LOGGER.warning("Failed to crawl %s: %s", url, exc.reason)
            self.result.failed_urls.append(url)
            return []
        except Exception as exc:
            LOGGER.warning("Failed to crawl %s: %s", url, exc)
            self.result.failed_urls.append(url)
            return []

        self.result.pages.append(
            CapturedPage(
                url=url,
                title=snapshot.title,
                text=snapshot.text,
                depth=depth,
                screenshot=snapshot.screenshot if self.config.wants_screenshots else None,
            )
        )

        links = self.filter_links(snapshot.links)
        LOGGER.debug(
            "Found %d links on %s (%d to follow)",
            len(snapshot.links),
            url,
            len(links),
        )
        return links

    async def crawl(self) -> CrawlResult:
        """Run the depth-first traversal until the frontier or budget is exhausted."""
        frontier: Frontier = [(self.config.root_url, 0)]

        while frontier:
            if self.budget_reached:
                LOGGER.info("Reached page limit of %d", self.config.max_pages)
                break

            url, depth = frontier.pop()
            if not self.should_visit(url, depth):
                continue

            links = await self.visit(url, depth)
            # Reverse so the first link in markup order is popped next
            frontier.extend((link, depth + 1) for link in reversed(links))

        self.result.finished_at = utcnow()
        return self.result


async def crawl_site_async(
    config: CrawlConfig,
    *,
    capture: Optional[PageCapture] = None,
) -> CrawlResult:
    """Crawl a site starting from ``config.root_url``.

    Args:
        config: Validated crawl settings.
        capture: Optional page-capture backend; defaults to a headless
            Chromium session configured from *config*.

    Returns:
        CrawlResult with pages in depth-first visitation order.

    Raises:
        RuntimeError: If the browser session cannot be started.
    """
    if capture is None:
        capture = PlaywrightPageCapture(
            navigation_timeout=config.navigation_timeout,
            settle_delay=config.settle_delay,
        )

    LOGGER.info(
        "Starting site crawl: %s (max_pages=%d, max_depth=%s, mode=%s)",
        config.root_url,
        config.max_pages,
        config.max_depth,
        config.mode,
    )

    async with capture:
        result = await SiteCrawler(config, capture).crawl()

    LOGGER.info(
        "Site crawl complete: %d pages, %d failed in %.1fs",
        result.total_pages,
        len(result.failed_urls),
        result.duration,
    )
    return result


def crawl_site(
    config: CrawlConfig,
    *,
    capture: Optional[PageCapture] = None,
) -> CrawlResult:
    """Synchronous wrapper for crawl_site_async."""
    return asyncio.run(crawl_site_async(config, capture=capture))

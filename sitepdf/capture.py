"""Headless-browser boundary: load a URL and snapshot title, text and links.

The crawler talks to the browser only through the :class:`PageCapture`
protocol so tests (and alternative backends) can substitute an in-memory
implementation. The default backend drives Chromium through Playwright:

    async with PlaywrightPageCapture(navigation_timeout=15) as capture:
        snapshot = await capture.capture("https://example.com", screenshot=True)
        print(snapshot.title, len(snapshot.links))
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from .document import PageSnapshot

LOGGER = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1280, "height": 900}
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

_COLLECT_LINKS_JS = "anchors => anchors.map(a => a.href)"


class CaptureError(RuntimeError):
    """Raised when a single URL cannot be loaded or extracted."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to capture {url}: {reason}")


@runtime_checkable
class PageCapture(Protocol):
    """Async context manager that owns one browser session."""

    async def __aenter__(self) -> "PageCapture": ...

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]: ...

    async def capture(self, url: str, *, screenshot: bool = False) -> PageSnapshot: ...


class PlaywrightPageCapture:
    """Chromium-backed :class:`PageCapture`.

    The browser is launched once in ``__aenter__`` and closed exactly once
    in ``__aexit__``. Each :meth:`capture` call opens a single page and
    closes it before returning, whether or not the capture succeeded.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        navigation_timeout: float = 15.0,
        settle_delay: float = 1.0,
        viewport: Optional[dict] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay
        self.viewport = dict(viewport or DEFAULT_VIEWPORT)
        self.user_agent = user_agent
        self._playwright_cm: Any = None
        self._playwright: Any = None
        self._browser: Any = None

    async def __aenter__(self) -> "PlaywrightPageCapture":
        try:
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise RuntimeError(
                "Playwright is required for page capture. "
                "Install it with: pip install playwright && playwright install chromium"
            ) from exc

        self._playwright_cm = async_playwright()
        self._playwright = await self._playwright_cm.__aenter__()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless
            )
        except BaseException:
            await self.close()
            raise
        LOGGER.debug("Browser launched (headless=%s)", self.headless)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the browser and the Playwright driver; safe to call twice."""
        browser, self._browser = self._browser, None
        playwright_cm, self._playwright_cm = self._playwright_cm, None
        self._playwright = None
        try:
            if browser is not None:
                await browser.close()
                LOGGER.debug("Browser closed")
        finally:
            if playwright_cm is not None:
                await playwright_cm.__aexit__(None, None, None)

    async def capture(self, url: str, *, screenshot: bool = False) -> PageSnapshot:
        if self._browser is None:
            raise RuntimeError("PlaywrightPageCapture used outside 'async with'")

        page = await self._browser.new_page(
            viewport=self.viewport,
            user_agent=self.user_agent,
        )
        try:
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout * 1000,
            )
            if self.settle_delay > 0:
                # Give client-side rendering a moment to fill the DOM
                await page.wait_for_timeout(self.settle_delay * 1000)

            title = await page.title()
            text = await page.text_content("body")
            links = await page.eval_on_selector_all("a[href]", _COLLECT_LINKS_JS)

            image: Optional[bytes] = None
            if screenshot:
                image = await page.screenshot(full_page=True, type="png")
                LOGGER.debug("Screenshot captured for %s", url)
        except Exception as exc:
            raise CaptureError(url, str(exc) or exc.__class__.__name__) from exc
        finally:
            try:
                await page.close()
            except Exception as exc:
                LOGGER.debug("Ignoring error while closing page for %s: %s", url, exc)

        return PageSnapshot(
            title=title or "",
            text=text or "",
            links=[str(link) for link in (links or []) if link],
            screenshot=image,
        )

"""Tests for sitepdf.capture module."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sitepdf.capture import CaptureError, PageCapture, PlaywrightPageCapture


def _build_playwright_mocks(
    title="Example Domain",
    text="Hello world",
    links=None,
    goto_error=None,
    launch_error=None,
):
    """Build a full set of Playwright mocks."""
    mock_page = MagicMock()
    mock_page.goto = AsyncMock(side_effect=goto_error)
    mock_page.wait_for_timeout = AsyncMock()
    mock_page.title = AsyncMock(return_value=title)
    mock_page.text_content = AsyncMock(return_value=text)
    mock_page.eval_on_selector_all = AsyncMock(
        return_value=links if links is not None else ["https://example.com/a"]
    )
    mock_page.screenshot = AsyncMock(return_value=b"\x89PNG fake")
    mock_page.close = AsyncMock()

    mock_browser = AsyncMock()
    mock_browser.new_page = AsyncMock(return_value=mock_page)
    mock_browser.close = AsyncMock()

    mock_pw = MagicMock()
    mock_pw.chromium = MagicMock()
    mock_pw.chromium.launch = AsyncMock(
        return_value=mock_browser, side_effect=launch_error
    )

    mock_pw_cm = AsyncMock()
    mock_pw_cm.__aenter__ = AsyncMock(return_value=mock_pw)
    mock_pw_cm.__aexit__ = AsyncMock(return_value=None)

    return mock_pw_cm, mock_pw, mock_browser, mock_page


class TestCaptureError:
    def test_message(self):
        err = CaptureError("https://example.com", "timeout")
        assert err.url == "https://example.com"
        assert err.reason == "timeout"
        assert "Failed to capture https://example.com: timeout" in str(err)


class TestPlaywrightPageCapture:
    def test_satisfies_protocol(self):
        assert isinstance(PlaywrightPageCapture(), PageCapture)

    @pytest.mark.asyncio
    async def test_capture_snapshot(self):
        pw_cm, pw, browser, page = _build_playwright_mocks(
            links=["https://example.com/a", "", "https://example.com/b"]
        )

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            async with PlaywrightPageCapture(navigation_timeout=5, settle_delay=0.5) as capture:
                snapshot = await capture.capture("https://example.com")

        assert snapshot.title == "Example Domain"
        assert snapshot.text == "Hello world"
        assert snapshot.links == ["https://example.com/a", "https://example.com/b"]
        assert snapshot.screenshot is None
        page.goto.assert_awaited_once_with(
            "https://example.com", wait_until="domcontentloaded", timeout=5000
        )
        page.wait_for_timeout.assert_awaited_once_with(500.0)
        page.screenshot.assert_not_awaited()
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_capture_with_screenshot(self):
        pw_cm, _, _, page = _build_playwright_mocks()

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            async with PlaywrightPageCapture(settle_delay=0) as capture:
                snapshot = await capture.capture("https://example.com", screenshot=True)

        assert snapshot.screenshot == b"\x89PNG fake"
        page.screenshot.assert_awaited_once_with(full_page=True, type="png")
        page.wait_for_timeout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_none_text_becomes_empty(self):
        pw_cm, _, _, _ = _build_playwright_mocks(title=None, text=None, links=[])

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            async with PlaywrightPageCapture(settle_delay=0) as capture:
                snapshot = await capture.capture("https://example.com")

        assert snapshot.title == ""
        assert snapshot.text == ""
        assert snapshot.links == []

    @pytest.mark.asyncio
    async def test_navigation_failure_raises_capture_error_and_closes_page(self):
        pw_cm, _, _, page = _build_playwright_mocks(
            goto_error=TimeoutError("Timeout 15000ms exceeded")
        )

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            async with PlaywrightPageCapture() as capture:
                with pytest.raises(CaptureError) as exc_info:
                    await capture.capture("https://example.com/slow")

        assert exc_info.value.url == "https://example.com/slow"
        assert "Timeout" in exc_info.value.reason
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_close_error_is_ignored(self):
        pw_cm, _, _, page = _build_playwright_mocks()
        page.close = AsyncMock(side_effect=Exception("already closed"))

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            async with PlaywrightPageCapture(settle_delay=0) as capture:
                snapshot = await capture.capture("https://example.com")

        assert snapshot.title == "Example Domain"

    @pytest.mark.asyncio
    async def test_browser_closed_once_on_exit(self):
        pw_cm, pw, browser, _ = _build_playwright_mocks()

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            capture = PlaywrightPageCapture(headless=True)
            async with capture:
                pass
            await capture.close()

        pw.chromium.launch.assert_awaited_once_with(headless=True)
        browser.close.assert_awaited_once()
        pw_cm.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_browser_closed_when_body_raises(self):
        pw_cm, _, browser, _ = _build_playwright_mocks()

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            with pytest.raises(RuntimeError, match="boom"):
                async with PlaywrightPageCapture():
                    raise RuntimeError("boom")

        browser.close.assert_awaited_once()
        pw_cm.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_launch_failure_stops_driver(self):
        pw_cm, _, browser, _ = _build_playwright_mocks(
            launch_error=RuntimeError("Executable doesn't exist")
        )

        with patch("playwright.async_api.async_playwright", return_value=pw_cm):
            with pytest.raises(RuntimeError, match="Executable"):
                async with PlaywrightPageCapture():
                    pass

        browser.close.assert_not_awaited()
        pw_cm.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_capture_outside_context_raises(self):
        with pytest.raises(RuntimeError, match="async with"):
            await PlaywrightPageCapture().capture("https://example.com")

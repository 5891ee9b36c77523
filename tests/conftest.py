"""Shared fixtures plus strict test-accounting guardrails."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import pytest
from PIL import Image

from sitepdf.capture import CaptureError
from sitepdf.document import CapturedPage, PageSnapshot


# ---------------------------------------------------------------------------
# In-memory capture backend
# ---------------------------------------------------------------------------


class FakePageCapture:
    """PageCapture over a ``url -> (title, text, links)`` site graph.

    Records every requested URL and tracks session and page lifetimes so
    tests can assert the browser is released exactly once.
    """

    def __init__(
        self,
        site: Dict[str, tuple],
        *,
        failing: Iterable[str] = (),
        screenshot: Optional[bytes] = None,
        raise_on: Optional[str] = None,
    ) -> None:
        self.site = site
        self.failing = set(failing)
        self.screenshot_bytes = screenshot
        self.raise_on = raise_on
        self.requested: List[str] = []
        self.screenshot_flags: List[bool] = []
        self.enter_count = 0
        self.exit_count = 0
        self.open_pages = 0

    async def __aenter__(self) -> "FakePageCapture":
        self.enter_count += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.exit_count += 1

    async def capture(self, url: str, *, screenshot: bool = False) -> PageSnapshot:
        self.requested.append(url)
        self.screenshot_flags.append(screenshot)
        self.open_pages += 1
        try:
            if url == self.raise_on:
                raise KeyboardInterrupt
            if url in self.failing or url not in self.site:
                raise CaptureError(url, "net::ERR_NAME_NOT_RESOLVED")
            title, text, links = self.site[url]
            return PageSnapshot(
                title=title,
                text=text,
                links=list(links),
                screenshot=self.screenshot_bytes if screenshot else None,
            )
        finally:
            self.open_pages -= 1


@pytest.fixture
def fake_capture():
    """Factory fixture: ``fake_capture(site, failing=..., screenshot=...)``."""
    return FakePageCapture


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (320, 480), (200, 220, 240)).save(buffer, format="PNG")
    return buffer.getvalue()


@dataclass
class PageFactory:
    def __call__(
        self,
        url: str = "https://example.com/",
        title: str = "Example Domain",
        text: str = "This domain is for use in illustrative examples.",
        depth: int = 0,
        screenshot: Optional[bytes] = None,
    ) -> CapturedPage:
        return CapturedPage(
            url=url, title=title, text=text, depth=depth, screenshot=screenshot
        )


@pytest.fixture
def make_page() -> PageFactory:
    return PageFactory()


@pytest.fixture
def three_pages(make_page) -> List[CapturedPage]:
    return [
        make_page("https://example.com/", "Home", "Welcome to Example.", 0),
        make_page("https://example.com/about", "About us", "We build things.", 1),
        make_page("https://example.com/contact", "Contact", "Write to us.", 1),
    ]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SITEPDF_FONT_PATH",
        "SITEPDF_NAV_TIMEOUT",
        "SITEPDF_LLM_BASE_URL",
        "SITEPDF_LLM_MODEL",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Accounting guard: fail the session on skipped/deselected/xfail tests
# ---------------------------------------------------------------------------


@dataclass
class _TestAccounting:
    deselected: int = 0
    skipped: int = 0
    xfailed: int = 0
    xpassed: int = 0


_ACCOUNTING = _TestAccounting()


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _ACCOUNTING.deselected += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return
    if getattr(report, "wasxfail", False):
        if report.outcome == "skipped":
            _ACCOUNTING.xfailed += 1
        elif report.outcome == "passed":
            _ACCOUNTING.xpassed += 1
    elif report.outcome == "skipped":
        _ACCOUNTING.skipped += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    violations = [
        f"{name}={count}"
        for name, count in vars(_ACCOUNTING).items()
        if count
    ]
    if not violations:
        return

    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep(
            "=",
            f"Test accounting violations detected ({', '.join(violations)})",
        )
    session.exitstatus = 1

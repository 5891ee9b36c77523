"""Input validation and environment-backed settings.

Environment variables are read at call time (inside :func:`load_settings`)
so late ``.env`` loading and test monkeypatching both work.

    SITEPDF_FONT_PATH      TrueType/OpenType font embedded for non-Latin text
    SITEPDF_NAV_TIMEOUT    Per-navigation timeout in seconds (default: 15)
    OPENAI_API_KEY         API key for the summarizer
    SITEPDF_LLM_BASE_URL   OpenAI-compatible API base URL
    SITEPDF_LLM_MODEL      Chat model used for summaries (default: gpt-4o-mini)
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from .document import CRAWL_MODES, CrawlConfig
from .urls import is_http_url

LOGGER = logging.getLogger(__name__)

MAX_PAGES_LIMIT = 200
DEFAULT_MAX_PAGES = 10
DEFAULT_NAV_TIMEOUT = 15.0
DEFAULT_SETTLE_DELAY = 1.0
DEFAULT_FONT_PATH = Path("fonts") / "NotoSansKR.ttf"
DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4o-mini"

CONFIG_DIR = Path.home() / ".config" / "sitepdf"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


class ConfigError(ValueError):
    """Raised when crawl input is rejected before any crawl begins."""


def build_crawl_config(
    url: str,
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    max_depth: Optional[int] = None,
    same_domain_only: bool = True,
    mode: str = "archive",
    navigation_timeout: float = DEFAULT_NAV_TIMEOUT,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    exclude_patterns: Iterable[str] = (),
) -> CrawlConfig:
    """Validate crawl input and return an immutable :class:`CrawlConfig`.

    Raises:
        ConfigError: If the URL, page budget, depth, mode, timeout or an
            exclude pattern is invalid.
    """
    url = (url or "").strip()
    if not is_http_url(url):
        raise ConfigError(f"Invalid URL (expected absolute http/https URL): {url!r}")

    if isinstance(max_pages, bool) or not isinstance(max_pages, int):
        raise ConfigError(f"max_pages must be an integer, got {max_pages!r}")
    if not 1 <= max_pages <= MAX_PAGES_LIMIT:
        raise ConfigError(
            f"max_pages must be between 1 and {MAX_PAGES_LIMIT}, got {max_pages}"
        )

    if max_depth is not None and (
        isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 0
    ):
        raise ConfigError(f"max_depth must be a non-negative integer, got {max_depth!r}")

    if mode not in CRAWL_MODES:
        raise ConfigError(
            f"mode must be one of {', '.join(CRAWL_MODES)}, got {mode!r}"
        )

    if navigation_timeout <= 0:
        raise ConfigError("navigation_timeout must be positive")
    if settle_delay < 0:
        raise ConfigError("settle_delay must not be negative")

    patterns = tuple(exclude_patterns)
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ConfigError(f"Invalid exclude pattern {pattern!r}: {exc}") from exc

    return CrawlConfig(
        root_url=url,
        max_pages=max_pages,
        max_depth=max_depth,
        same_domain_only=same_domain_only,
        mode=mode,  # type: ignore[arg-type]
        navigation_timeout=float(navigation_timeout),
        settle_delay=float(settle_delay),
        exclude_patterns=patterns,
    )


@dataclass(frozen=True)
class Settings:
    """Process settings resolved from the environment."""

    font_path: Path = DEFAULT_FONT_PATH
    navigation_timeout: float = DEFAULT_NAV_TIMEOUT
    openai_api_key: Optional[str] = None
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


def load_settings() -> Settings:
    """Read :class:`Settings` from the current environment."""
    return Settings(
        font_path=Path(os.getenv("SITEPDF_FONT_PATH") or DEFAULT_FONT_PATH).expanduser(),
        navigation_timeout=_float_env("SITEPDF_NAV_TIMEOUT", DEFAULT_NAV_TIMEOUT),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        llm_base_url=os.getenv("SITEPDF_LLM_BASE_URL") or DEFAULT_LLM_BASE_URL,
        llm_model=os.getenv("SITEPDF_LLM_MODEL") or DEFAULT_LLM_MODEL,
    )


def load_config(
    *,
    cwd: Path,
    load_env: Callable[[Path], bool],
    config_env_file: Path = CONFIG_ENV_FILE,
) -> Optional[Path]:
    """Load ``.env`` from *cwd*, falling back to the user config directory.

    Returns the file that was loaded, or None when neither exists.
    """
    for candidate in (cwd / ".env", config_env_file):
        if candidate.is_file():
            load_env(candidate)
            LOGGER.debug("Loaded environment from %s", candidate)
            return candidate
    return None

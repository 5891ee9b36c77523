"""Business summary of a crawled site via an OpenAI-compatible chat API.

The client is constructed explicitly with its credentials and model, so
callers (and tests) decide which backend is used:

    from sitepdf.summary import SummaryClient

    client = SummaryClient(api_key="sk-...", model="gpt-4o-mini")
    outcome = await client.summarize(crawl_result.pages, "detailed")
    if outcome.ok:
        print(outcome.summary.main_services)
    else:
        print("degraded:", outcome.reason)

Parsing the model reply never raises: a reply without a usable JSON object
becomes :class:`SummaryDegraded` carrying the raw text as the overview.
Transport problems (auth, quota, network) raise :class:`SummaryError`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence, Tuple, Union

import httpx

from .config import DEFAULT_LLM_BASE_URL, DEFAULT_LLM_MODEL, Settings
from .document import CapturedPage

LOGGER = logging.getLogger(__name__)

DetailLevel = Literal["basic", "detailed", "comprehensive"]
DETAIL_LEVELS: Tuple[str, ...] = ("basic", "detailed", "comprehensive")

MAX_INPUT_CHARS = 30000
PAGE_SEPARATOR = "\n\n---\n\n"
NO_OVERVIEW = "Summary could not be generated."

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = (
    "You are an analyst who reviews websites and reports business insights. "
    "Reply with a single JSON object and nothing else."
)

_BASIC_SHAPE = """{
  "companyName": "company name or null",
  "overview": "%s",
  "mainServices": ["main service", ...],
  "targetCustomers": ["target customer", ...],
  "uniqueFeatures": ["differentiator", ...]%s
}"""

_SWOT_SHAPE = """,
  "swotAnalysis": {
    "strengths": ["strength", ...],
    "weaknesses": ["weakness", ...],
    "opportunities": ["opportunity", ...],
    "threats": ["threat", ...]
  }"""

_COMPETITOR_SHAPE = (
    ',\n  "competitorAnalysis": "competitors and market positioning (3-5 sentences)"'
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class SwotAnalysis:
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    opportunities: List[str] = field(default_factory=list)
    threats: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "opportunities": list(self.opportunities),
            "threats": list(self.threats),
        }


@dataclass(slots=True)
class BusinessSummary:
    """Structured summary; optional sections depend on the detail level."""

    overview: str
    company_name: Optional[str] = None
    main_services: List[str] = field(default_factory=list)
    target_customers: List[str] = field(default_factory=list)
    unique_features: List[str] = field(default_factory=list)
    swot_analysis: Optional[SwotAnalysis] = None
    competitor_analysis: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable dict in the same shape the model is asked for."""
        return {
            "companyName": self.company_name,
            "overview": self.overview,
            "mainServices": list(self.main_services),
            "targetCustomers": list(self.target_customers),
            "uniqueFeatures": list(self.unique_features),
            "swotAnalysis": self.swot_analysis.to_dict() if self.swot_analysis else None,
            "competitorAnalysis": self.competitor_analysis,
        }


@dataclass(frozen=True, slots=True)
class SummaryOk:
    summary: BusinessSummary
    raw: str
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True, slots=True)
class SummaryDegraded:
    summary: BusinessSummary
    raw: str
    reason: str
    ok: bool = field(default=False, init=False)


SummaryOutcome = Union[SummaryOk, SummaryDegraded]


class SummaryError(Exception):
    """Raised when the summarizer cannot be reached or rejects the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class Summarizer(Protocol):
    async def summarize(
        self, pages: Sequence[CapturedPage], detail_level: DetailLevel = "basic"
    ) -> SummaryOutcome: ...


# ---------------------------------------------------------------------------
# Prompt construction and parsing
# ---------------------------------------------------------------------------


def build_summary_input(
    pages: Sequence[CapturedPage], limit: int = MAX_INPUT_CHARS
) -> str:
    """Concatenate page URL, title and text, truncated to *limit* characters."""
    combined = PAGE_SEPARATOR.join(
        f"URL: {page.url}\nTitle: {page.title}\n\n{page.text}" for page in pages
    )
    if len(combined) > limit:
        return combined[:limit] + "..."
    return combined


def build_prompt(detail_level: DetailLevel, content: str) -> str:
    """Ask for the JSON shape matching *detail_level*."""
    if detail_level == "basic":
        shape = _BASIC_SHAPE % ("short description of the site/company (2-3 sentences)", "")
    elif detail_level == "detailed":
        shape = _BASIC_SHAPE % (
            "detailed description of the site/company (5-7 sentences)",
            _SWOT_SHAPE,
        )
    elif detail_level == "comprehensive":
        shape = _BASIC_SHAPE % (
            "in-depth description of the site/company (10+ sentences, "
            "list items with explanations)",
            _SWOT_SHAPE + _COMPETITOR_SHAPE,
        )
    else:
        raise ValueError(f"Unknown detail level: {detail_level!r}")

    return (
        "Below is the full content of a website. Analyse it and answer in JSON.\n\n"
        f"Website content:\n{content}\n\n---\n\n"
        f"Use exactly this JSON format:\n{shape}"
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _optional_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def degraded_summary(raw: str, reason: str) -> SummaryDegraded:
    return SummaryDegraded(summary=BusinessSummary(overview=raw), raw=raw, reason=reason)


def parse_summary(raw: str, detail_level: DetailLevel = "basic") -> SummaryOutcome:
    """Extract the structured summary from free-form model output."""
    match = _JSON_BLOCK.search(raw or "")
    if not match:
        return degraded_summary(raw or "", "no JSON object found in model output")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return degraded_summary(raw, f"malformed JSON: {exc}")

    if not isinstance(parsed, dict):
        return degraded_summary(raw, "model output is not a JSON object")

    swot = None
    if detail_level != "basic" and isinstance(parsed.get("swotAnalysis"), dict):
        raw_swot = parsed["swotAnalysis"]
        swot = SwotAnalysis(
            strengths=_string_list(raw_swot.get("strengths")),
            weaknesses=_string_list(raw_swot.get("weaknesses")),
            opportunities=_string_list(raw_swot.get("opportunities")),
            threats=_string_list(raw_swot.get("threats")),
        )

    competitor = None
    if detail_level == "comprehensive":
        competitor = _optional_string(parsed.get("competitorAnalysis"))

    summary = BusinessSummary(
        overview=_optional_string(parsed.get("overview")) or NO_OVERVIEW,
        company_name=_optional_string(parsed.get("companyName")),
        main_services=_string_list(parsed.get("mainServices")),
        target_customers=_string_list(parsed.get("targetCustomers")),
        unique_features=_string_list(parsed.get("uniqueFeatures")),
        swot_analysis=swot,
        competitor_analysis=competitor,
    )
    return SummaryOk(summary=summary, raw=raw)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class SummaryClient:
    """Chat-completions client for an OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = DEFAULT_LLM_MODEL,
        base_url: str = DEFAULT_LLM_BASE_URL,
        timeout: float = 120.0,
        temperature: float = 0.7,
        language: Optional[str] = None,
        max_input_chars: int = MAX_INPUT_CHARS,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.language = language
        self.max_input_chars = max_input_chars

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "SummaryClient":
        return cls(
            settings.openai_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            **kwargs,
        )

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )

    def _system_prompt(self) -> str:
        if self.language:
            return f"{SYSTEM_PROMPT} Write all text values in {self.language}."
        return SYSTEM_PROMPT

    async def complete(self, prompt: str, *, max_tokens: int) -> str:
        """Send one chat completion request and return the reply text.

        Raises:
            SummaryError: On missing credentials, HTTP errors, network errors
                or an unexpected response envelope.
        """
        if not self.api_key:
            raise SummaryError("Summarizer API key is not configured (set OPENAI_API_KEY).")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self._system_prompt()},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }

        try:
            async with self._get_client() as client:
                response = await client.post("/chat/completions", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 401:
                message = "Authentication failed. Check OPENAI_API_KEY."
            elif status == 429:
                message = "Summarizer rate limit or quota exceeded. Try again later."
            else:
                message = f"Summarizer API error: {status} - {exc.response.text}"
            raise SummaryError(message, status_code=status) from exc
        except httpx.RequestError as exc:
            raise SummaryError(f"Summarizer request failed: {exc}") from exc
        except ValueError as exc:
            raise SummaryError("Summarizer returned a non-JSON response") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise SummaryError("Summarizer response has no message content") from exc
        return content or ""

    async def summarize(
        self,
        pages: Sequence[CapturedPage],
        detail_level: DetailLevel = "basic",
    ) -> SummaryOutcome:
        content = build_summary_input(pages, self.max_input_chars)
        prompt = build_prompt(detail_level, content)
        max_tokens = 2000 if detail_level == "comprehensive" else 1000

        LOGGER.info(
            "Requesting %s summary for %d pages (%d chars) from %s",
            detail_level,
            len(pages),
            len(content),
            self.model,
        )
        raw = await self.complete(prompt, max_tokens=max_tokens)
        outcome = parse_summary(raw, detail_level)
        if not outcome.ok:
            LOGGER.warning("Summary degraded: %s", outcome.reason)
        return outcome

"""Tests for sitepdf.summary module."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sitepdf.config import Settings
from sitepdf.summary import (
    NO_OVERVIEW,
    BusinessSummary,
    SummaryClient,
    SummaryError,
    SwotAnalysis,
    build_prompt,
    build_summary_input,
    parse_summary,
)

_FULL_REPLY = {
    "companyName": "Example Corp",
    "overview": "Example Corp sells widgets.",
    "mainServices": ["Widgets", "Support"],
    "targetCustomers": ["SMBs"],
    "uniqueFeatures": ["Fast delivery"],
    "swotAnalysis": {
        "strengths": ["Brand"],
        "weaknesses": ["Price"],
        "opportunities": ["Export"],
        "threats": ["Competition"],
    },
    "competitorAnalysis": "Competes with Acme on price.",
}


def _mock_client(content="", status_code=200, response_data=None):
    """Build an AsyncMock httpx client returning a chat completion."""
    if response_data is None:
        response_data = {"choices": [{"message": {"role": "assistant", "content": content}}]}

    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = response_data
    mock_response.raise_for_status = MagicMock()

    mock_client = AsyncMock()
    mock_client.post = AsyncMock(return_value=mock_response)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def _status_error_client(status_code, text="error"):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text

    mc = AsyncMock()
    mc.__aenter__ = AsyncMock(return_value=mc)
    mc.__aexit__ = AsyncMock(return_value=False)
    mc.post = AsyncMock(
        side_effect=httpx.HTTPStatusError(
            str(status_code), request=MagicMock(), response=mock_response
        )
    )
    return mc


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------


class TestBuildSummaryInput:
    def test_joins_pages(self, three_pages):
        content = build_summary_input(three_pages)

        assert content.count("\n\n---\n\n") == 2
        assert "URL: https://example.com/about\nTitle: About us" in content
        assert "We build things." in content

    def test_truncates(self, make_page):
        content = build_summary_input([make_page(text="x" * 500)], limit=100)
        assert len(content) == 103
        assert content.endswith("...")


class TestBuildPrompt:
    def test_basic_has_no_swot(self):
        prompt = build_prompt("basic", "CONTENT")
        assert "CONTENT" in prompt
        assert "mainServices" in prompt
        assert "swotAnalysis" not in prompt
        assert "competitorAnalysis" not in prompt

    def test_detailed_adds_swot(self):
        prompt = build_prompt("detailed", "CONTENT")
        assert "swotAnalysis" in prompt
        assert "competitorAnalysis" not in prompt

    def test_comprehensive_adds_competitors(self):
        prompt = build_prompt("comprehensive", "CONTENT")
        assert "swotAnalysis" in prompt
        assert "competitorAnalysis" in prompt

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown detail level"):
            build_prompt("exhaustive", "CONTENT")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseSummary:
    def test_json_wrapped_in_prose(self):
        raw = "Sure! Here you go:\n```json\n" + json.dumps(_FULL_REPLY) + "\n```\nThanks."
        outcome = parse_summary(raw, "comprehensive")

        assert outcome.ok
        summary = outcome.summary
        assert summary.company_name == "Example Corp"
        assert summary.main_services == ["Widgets", "Support"]
        assert summary.swot_analysis.threats == ["Competition"]
        assert summary.competitor_analysis == "Competes with Acme on price."
        assert outcome.raw == raw

    def test_level_gates_optional_sections(self):
        raw = json.dumps(_FULL_REPLY)

        basic = parse_summary(raw, "basic").summary
        assert basic.swot_analysis is None
        assert basic.competitor_analysis is None

        detailed = parse_summary(raw, "detailed").summary
        assert detailed.swot_analysis is not None
        assert detailed.competitor_analysis is None

    def test_no_json_degrades_to_raw_text(self):
        outcome = parse_summary("I cannot analyse this website.")

        assert not outcome.ok
        assert outcome.summary.overview == "I cannot analyse this website."
        assert outcome.summary.main_services == []
        assert outcome.summary.company_name is None
        assert "no JSON" in outcome.reason

    def test_malformed_json_degrades(self):
        outcome = parse_summary('{"overview": "unterminated', "basic")
        assert not outcome.ok
        # No closing brace, so there is no JSON block at all
        assert outcome.summary.overview == '{"overview": "unterminated'

    def test_invalid_json_between_braces_degrades(self):
        outcome = parse_summary("{not: valid}")
        assert not outcome.ok
        assert "malformed JSON" in outcome.reason

    def test_missing_fields_get_defaults(self):
        outcome = parse_summary('{"mainServices": "not a list", "companyName": ""}')

        assert outcome.ok
        assert outcome.summary.overview == NO_OVERVIEW
        assert outcome.summary.main_services == []
        assert outcome.summary.company_name is None

    def test_empty_output(self):
        outcome = parse_summary("")
        assert not outcome.ok
        assert outcome.summary.overview == ""

    def test_serialized_summary_parses_back_unchanged(self):
        summary = BusinessSummary(
            overview="Overview text.",
            company_name="Example Corp",
            main_services=["A", "B"],
            target_customers=["C"],
            unique_features=["D"],
            swot_analysis=SwotAnalysis(["s"], ["w"], ["o"], ["t"]),
            competitor_analysis="Rivals.",
        )
        outcome = parse_summary(json.dumps(summary.to_dict()), "comprehensive")

        assert outcome.ok
        assert outcome.summary == summary

    def test_to_dict_uses_camel_case(self):
        data = BusinessSummary(overview="x").to_dict()
        assert set(data) == {
            "companyName",
            "overview",
            "mainServices",
            "targetCustomers",
            "uniqueFeatures",
            "swotAnalysis",
            "competitorAnalysis",
        }
        assert data["swotAnalysis"] is None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TestSummaryClient:
    def test_from_settings(self):
        settings = Settings(
            openai_api_key="sk-x",
            llm_base_url="http://localhost:8000/v1/",
            llm_model="local-model",
        )
        client = SummaryClient.from_settings(settings, language="German")

        assert client.api_key == "sk-x"
        assert client.model == "local-model"
        assert client.base_url == "http://localhost:8000/v1"
        assert client.language == "German"

    @pytest.mark.asyncio
    async def test_summarize_success(self, three_pages):
        mc = _mock_client(json.dumps(_FULL_REPLY))
        client = SummaryClient("sk-test", model="gpt-4o-mini")

        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc) as factory:
            outcome = await client.summarize(three_pages, "detailed")

        assert outcome.ok
        assert outcome.summary.company_name == "Example Corp"
        assert outcome.summary.competitor_analysis is None

        headers = factory.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer sk-test"
        path = mc.post.call_args.args[0]
        payload = mc.post.call_args.kwargs["json"]
        assert path == "/chat/completions"
        assert payload["model"] == "gpt-4o-mini"
        assert payload["max_tokens"] == 1000
        assert payload["messages"][0]["role"] == "system"
        assert "About us" in payload["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_comprehensive_uses_larger_budget(self, three_pages):
        mc = _mock_client(json.dumps(_FULL_REPLY))
        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc):
            await SummaryClient("sk").summarize(three_pages, "comprehensive")

        assert mc.post.call_args.kwargs["json"]["max_tokens"] == 2000

    @pytest.mark.asyncio
    async def test_language_added_to_system_prompt(self, three_pages):
        mc = _mock_client("{}")
        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc):
            await SummaryClient("sk", language="Korean").summarize(three_pages)

        system = mc.post.call_args.kwargs["json"]["messages"][0]["content"]
        assert "Korean" in system

    @pytest.mark.asyncio
    async def test_unparseable_reply_is_degraded_not_error(self, three_pages, caplog):
        mc = _mock_client("Sorry, I can't help with that.")
        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc):
            outcome = await SummaryClient("sk").summarize(three_pages)

        assert not outcome.ok
        assert outcome.summary.overview == "Sorry, I can't help with that."
        assert "Summary degraded" in caplog.text

    @pytest.mark.asyncio
    async def test_missing_api_key(self, three_pages):
        with patch("sitepdf.summary.httpx.AsyncClient") as factory:
            with pytest.raises(SummaryError, match="OPENAI_API_KEY"):
                await SummaryClient(None).summarize(three_pages)
        factory.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, message",
        [(401, "Authentication failed"), (429, "rate limit"), (500, "API error: 500")],
    )
    async def test_http_errors(self, three_pages, status, message):
        mc = _status_error_client(status)
        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc):
            with pytest.raises(SummaryError, match=message) as exc_info:
                await SummaryClient("sk").summarize(three_pages)
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_network_error(self, three_pages):
        mc = AsyncMock()
        mc.__aenter__ = AsyncMock(return_value=mc)
        mc.__aexit__ = AsyncMock(return_value=False)
        mc.post = AsyncMock(
            side_effect=httpx.ConnectError("Connection refused", request=MagicMock())
        )

        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc):
            with pytest.raises(SummaryError, match="request failed"):
                await SummaryClient("sk").summarize(three_pages)

    @pytest.mark.asyncio
    async def test_non_json_body(self, three_pages):
        mc = _mock_client()
        mc.post.return_value.json.side_effect = json.JSONDecodeError("x", "doc", 0)

        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc):
            with pytest.raises(SummaryError, match="non-JSON"):
                await SummaryClient("sk").summarize(three_pages)

    @pytest.mark.asyncio
    async def test_unexpected_envelope(self, three_pages):
        mc = _mock_client(response_data={"error": "nope"})
        with patch("sitepdf.summary.httpx.AsyncClient", return_value=mc):
            with pytest.raises(SummaryError, match="no message content"):
                await SummaryClient("sk").summarize(three_pages)

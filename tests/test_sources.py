"""Tests for the LLM source adapters."""

from __future__ import annotations

import pytest

from conftest import StubEndpoint
from geo_tracker.config import TrackerConfig
from geo_tracker.exceptions import MissingCredentialsError, ProviderError, ProviderTimeoutError
from geo_tracker.sources import (
    ChatGPTSource,
    ClaudeSource,
    DataSourceKind,
    GeminiSource,
    PerplexitySource,
    SearchResult,
    TokenUsage,
    build_sources,
)
from geo_tracker.sources import chatgpt, claude, gemini, perplexity


PERPLEXITY_PAYLOAD = {
    "choices": [{"message": {"content": "Development Seed maintains titiler."}}],
    "citations": [
        "https://developmentseed.org/titiler",
        "https://github.com/developmentseed/titiler",
        "https://developmentseed.org/titiler",
    ],
    "search_results": [
        {"title": "TiTiler", "url": "https://developmentseed.org/titiler", "snippet": "Dynamic tiles"},
    ],
    "usage": {"prompt_tokens": 12, "completion_tokens": 30, "total_tokens": 42},
}

GEMINI_PAYLOAD = {
    "candidates": [{
        "content": {"parts": [{"text": "STAC is a spec. "}, {"text": "See stac-utils."}]},
        "groundingMetadata": {
            "groundingChunks": [
                {"web": {"uri": "https://stacspec.org", "title": "STAC"}},
                {"retrievedContext": {"uri": "ignored"}},
                {"web": {"uri": "https://stacspec.org", "title": "STAC again"}},
            ],
        },
    }],
    "usageMetadata": {"promptTokenCount": 5, "candidatesTokenCount": 15, "totalTokenCount": 20},
}

CHATGPT_PAYLOAD = {
    "output": [
        {"type": "web_search_call", "status": "completed"},
        {
            "type": "message",
            "content": [{
                "type": "output_text",
                "text": "Try lonboard.",
                "annotations": [
                    {"type": "url_citation", "url": "https://developmentseed.org/lonboard", "title": "lonboard"},
                    {"type": "url_citation", "url": "https://developmentseed.org/lonboard", "title": "lonboard"},
                    {"type": "file_citation", "file_id": "f1"},
                ],
            }],
        },
    ],
    "usage": {"input_tokens": 100, "output_tokens": 50},
}

CLAUDE_PAYLOAD = {
    "id": "msg_01",
    "type": "message",
    "role": "assistant",
    "model": claude.MODEL,
    "content": [
        {"type": "text", "text": "Development Seed builds "},
        {"type": "tool_use", "id": "t1", "name": "x", "input": {}},
        {"type": "text", "text": "open source tools."},
    ],
    "stop_reason": "end_turn",
    "stop_sequence": None,
    "usage": {"input_tokens": 8, "output_tokens": 16},
}


class TestPerplexityNormalize:
    def test_full_payload(self):
        result = perplexity.normalize_response(PERPLEXITY_PAYLOAD)

        assert result.content == "Development Seed maintains titiler."
        assert result.citations == (
            "https://developmentseed.org/titiler",
            "https://github.com/developmentseed/titiler",
        )
        assert result.search_results == (
            SearchResult(title="TiTiler", url="https://developmentseed.org/titiler", snippet="Dynamic tiles"),
        )
        assert result.usage == TokenUsage(prompt_tokens=12, completion_tokens=30, total_tokens=42)

    def test_empty_payload(self):
        result = perplexity.normalize_response({})
        assert result.content == ""
        assert result.citations == ()
        assert result.search_results == ()
        assert result.usage.total_tokens == 0

    def test_total_is_summed_when_missing(self):
        result = perplexity.normalize_response({"usage": {"prompt_tokens": 3, "completion_tokens": 4}})
        assert result.usage.total_tokens == 7


class TestGeminiNormalize:
    def test_full_payload(self):
        result = gemini.normalize_response(GEMINI_PAYLOAD)

        assert result.content == "STAC is a spec. See stac-utils."
        assert result.citations == ("https://stacspec.org",)
        assert [item.title for item in result.search_results] == ["STAC", "STAC again"]
        assert all(item.snippet == "" for item in result.search_results)
        assert result.usage.total_tokens == 20

    def test_no_grounding(self):
        result = gemini.normalize_response({"candidates": [{"content": {"parts": [{"text": "hi"}]}}]})
        assert result.content == "hi"
        assert result.citations == ()

    def test_empty_payload(self):
        result = gemini.normalize_response({})
        assert result.content == ""
        assert result.usage == TokenUsage()


class TestChatGPTNormalize:
    def test_full_payload(self):
        result = chatgpt.normalize_response(CHATGPT_PAYLOAD)

        assert result.content == "Try lonboard."
        assert result.citations == ("https://developmentseed.org/lonboard",)
        # One search result per annotation
        assert len(result.search_results) == 2
        assert result.usage == TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150)

    def test_empty_payload(self):
        result = chatgpt.normalize_response({})
        assert result.content == ""
        assert result.search_results == ()


class TestClaudeNormalize:
    def test_text_blocks_only(self):
        result = claude.normalize_response(CLAUDE_PAYLOAD)

        assert result.content == "Development Seed builds open source tools."
        assert result.citations == ()
        assert result.search_results == ()
        assert result.usage.total_tokens == 24

    def test_empty_payload(self):
        result = claude.normalize_response({})
        assert result.content == ""
        assert result.usage.total_tokens == 0


@pytest.mark.parametrize("normalize", [
    perplexity.normalize_response,
    gemini.normalize_response,
    chatgpt.normalize_response,
    claude.normalize_response,
])
@pytest.mark.parametrize("payload", [None, [], "oops", {"choices": "x", "output": 3, "content": {}}])
def test_malformed_payloads_never_raise(normalize, payload):
    result = normalize(payload)
    assert result.content == ""
    assert result.citations == ()


class TestSourceIdentity:
    def test_metadata(self):
        sources = build_sources(TrackerConfig(plausible_domain="geo.test.org"))

        assert [s.name for s in sources] == ["Perplexity", "Gemini", "ChatGPT", "Claude"]
        assert [s.data_source for s in sources] == [
            DataSourceKind.WEB,
            DataSourceKind.WEB,
            DataSourceKind.WEB,
            DataSourceKind.TRAINING,
        ]
        assert [s.referrer for s in sources] == [
            "https://perplexity.ai",
            "https://gemini.google.com",
            "https://chatgpt.com",
            "https://claude.ai",
        ]
        assert all(s.rate_limit_ms == 1000 for s in sources)

    def test_enabled_follows_config(self):
        config = TrackerConfig(
            perplexity_api_key="",
            google_ai_api_key="",
            openai_api_key="",
            anthropic_api_key="",
        )
        sources = build_sources(config)
        assert not any(s.enabled() for s in sources)

        config.openai_api_key = "sk-test"
        assert [s.name for s in sources if s.enabled()] == ["ChatGPT"]

        config.openai_api_key = ""
        assert not sources[2].enabled()

    @pytest.mark.asyncio
    async def test_missing_key_raises(self):
        source = PerplexitySource(api_key=lambda: "")
        with pytest.raises(MissingCredentialsError) as exc_info:
            await source.query("anything")
        assert "PERPLEXITY_API_KEY" in str(exc_info.value)


class TestPerplexityQuery:
    @pytest.mark.asyncio
    async def test_success(self, stub_server):
        endpoint = StubEndpoint((200, PERPLEXITY_PAYLOAD))
        server = await stub_server("/chat/completions", endpoint)
        source = PerplexitySource(api_key=lambda: "pplx-key", endpoint=str(server.make_url("/chat/completions")))

        result = await source.query("What is titiler?")

        assert result.content == "Development Seed maintains titiler."
        request = endpoint.requests[0]
        assert request["headers"]["Authorization"] == "Bearer pplx-key"
        assert request["json"] == {
            "model": perplexity.MODEL,
            "messages": [{"role": "user", "content": "What is titiler?"}],
        }

    @pytest.mark.asyncio
    async def test_http_error(self, stub_server):
        server = await stub_server("/chat/completions", StubEndpoint((500, {"error": "boom"})))
        source = PerplexitySource(api_key=lambda: "k", endpoint=str(server.make_url("/chat/completions")))

        with pytest.raises(ProviderError) as exc_info:
            await source.query("q")

        assert exc_info.value.status_code == 500
        assert exc_info.value.provider == "Perplexity"

    @pytest.mark.asyncio
    async def test_timeout(self, stub_server):
        server = await stub_server("/chat/completions", StubEndpoint((200, {}), delay=1.0))
        source = PerplexitySource(
            api_key=lambda: "k",
            endpoint=str(server.make_url("/chat/completions")),
            timeout=0.1,
        )

        with pytest.raises(ProviderTimeoutError):
            await source.query("q")


class TestGeminiQuery:
    @pytest.mark.asyncio
    async def test_key_sent_as_query_param(self, stub_server):
        endpoint = StubEndpoint((200, GEMINI_PAYLOAD))
        server = await stub_server("/generate", endpoint)
        source = GeminiSource(api_key=lambda: "g-key", endpoint=str(server.make_url("/generate")))

        result = await source.query("What is STAC?")

        assert result.citations == ("https://stacspec.org",)
        request = endpoint.requests[0]
        assert request["query"] == {"key": "g-key"}
        assert request["json"]["tools"] == [{"google_search": {}}]
        assert request["json"]["contents"][0]["parts"][0]["text"] == "What is STAC?"


class TestChatGPTQuery:
    @pytest.mark.asyncio
    async def test_success(self, stub_server):
        endpoint = StubEndpoint((200, CHATGPT_PAYLOAD))
        server = await stub_server("/v1/responses", endpoint)
        source = ChatGPTSource(api_key=lambda: "sk-key", endpoint=str(server.make_url("/v1/responses")))

        result = await source.query("lonboard?")

        assert result.content == "Try lonboard."
        request = endpoint.requests[0]
        assert request["headers"]["Authorization"] == "Bearer sk-key"
        assert request["json"] == {
            "model": chatgpt.MODEL,
            "tools": [{"type": "web_search"}],
            "input": "lonboard?",
        }

    def test_longer_timeout(self):
        assert ChatGPTSource(api_key=lambda: "k").timeout == 60.0


class TestClaudeQuery:
    @pytest.mark.asyncio
    async def test_success(self, stub_server):
        endpoint = StubEndpoint((200, CLAUDE_PAYLOAD))
        server = await stub_server("/v1/messages", endpoint)
        source = ClaudeSource(api_key=lambda: "ant-key", endpoint=str(server.make_url("/")))

        result = await source.query("Who is Development Seed?")

        assert result.content == "Development Seed builds open source tools."
        assert result.citations == ()
        request = endpoint.requests[0]
        assert request["headers"]["x-api-key"] == "ant-key"
        assert request["json"]["model"] == claude.MODEL
        assert request["json"]["max_tokens"] == claude.MAX_TOKENS
        assert request["json"]["messages"] == [{"role": "user", "content": "Who is Development Seed?"}]

    @pytest.mark.asyncio
    async def test_http_error(self, stub_server):
        server = await stub_server(
            "/v1/messages",
            StubEndpoint((500, {"type": "error", "error": {"type": "api_error", "message": "boom"}})),
        )
        source = ClaudeSource(api_key=lambda: "k", endpoint=str(server.make_url("/")))

        with pytest.raises(ProviderError) as exc_info:
            await source.query("q")

        assert exc_info.value.status_code == 500
        assert exc_info.value.provider == "Claude"

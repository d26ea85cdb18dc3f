"""
Gemini Source
=============

Queries Google's Gemini model with the google_search grounding tool.
Citations come from the grounding metadata attached to the candidate.

Required environment variables:
- GOOGLE_AI_API_KEY

Documentation: https://ai.google.dev/gemini-api/docs/grounding
"""

from typing import Any

from .base import (
    DataSourceKind,
    LLMSource,
    NormalizedResult,
    SearchResult,
    as_dict,
    as_list,
    as_text,
    build_usage,
    first,
    unique_urls,
)

MODEL = "gemini-2.0-flash"


def normalize_response(data: Any) -> NormalizedResult:
    """Normalize a Gemini generateContent response into the shared result format"""
    data = as_dict(data)
    candidate = first(data.get("candidates"))

    parts = as_list(as_dict(candidate.get("content")).get("parts"))
    content = "".join(as_text(as_dict(part).get("text")) for part in parts)

    # Each grounding chunk with a "web" entry is one page the model used
    grounding = as_dict(candidate.get("groundingMetadata"))
    web_chunks = [
        as_dict(chunk.get("web"))
        for chunk in map(as_dict, as_list(grounding.get("groundingChunks")))
        if isinstance(chunk.get("web"), dict)
    ]

    search_results = tuple(
        SearchResult(
            title=as_text(web.get("title")),
            url=as_text(web.get("uri")),
            snippet="",  # grounding chunks carry no snippet
        )
        for web in web_chunks
    )

    usage = as_dict(data.get("usageMetadata"))

    return NormalizedResult(
        content=content,
        citations=unique_urls(web.get("uri") for web in web_chunks),
        search_results=search_results,
        usage=build_usage(
            usage.get("promptTokenCount"),
            usage.get("candidatesTokenCount"),
            usage.get("totalTokenCount"),
        ),
    )


class GeminiSource(LLMSource):
    """Google Gemini with search grounding (web-grounded)"""

    name = "Gemini"
    referrer = "https://gemini.google.com"
    rate_limit_ms = 1000
    data_source = DataSourceKind.WEB
    api_endpoint = f"https://generativelanguage.googleapis.com/v1beta/models/{MODEL}:generateContent"
    timeout_seconds = 30.0
    credential_name = "GOOGLE_AI_API_KEY"

    async def _request(self, search_term: str, api_key: str) -> Any:
        return await self._post_json(
            self.endpoint,
            params={"key": api_key},
            payload={
                "contents": [
                    {"parts": [{"text": search_term}]},
                ],
                "tools": [{"google_search": {}}],
            },
        )

    def normalize(self, data: Any) -> NormalizedResult:
        return normalize_response(data)

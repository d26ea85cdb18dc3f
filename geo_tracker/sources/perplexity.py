"""
Perplexity Sonar Source
=======================

Queries Perplexity's Sonar model, which answers from a live web search
and returns the pages it cited.

Required environment variables:
- PERPLEXITY_API_KEY

Documentation: https://docs.perplexity.ai/api-reference/chat-completions
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

MODEL = "sonar"


def normalize_response(data: Any) -> NormalizedResult:
    """Normalize a Perplexity chat completion into the shared result format"""
    data = as_dict(data)

    message = as_dict(first(data.get("choices")).get("message"))
    content = as_text(message.get("content"))

    search_results = tuple(
        SearchResult(
            title=as_text(item.get("title")),
            url=as_text(item.get("url")),
            snippet=as_text(item.get("snippet")),
        )
        for item in map(as_dict, as_list(data.get("search_results")))
    )

    usage = as_dict(data.get("usage"))

    return NormalizedResult(
        content=content,
        citations=unique_urls(as_list(data.get("citations"))),
        search_results=search_results,
        usage=build_usage(
            usage.get("prompt_tokens"),
            usage.get("completion_tokens"),
            usage.get("total_tokens"),
        ),
    )


class PerplexitySource(LLMSource):
    """Perplexity Sonar (web-grounded)"""

    name = "Perplexity"
    referrer = "https://perplexity.ai"
    rate_limit_ms = 1000
    data_source = DataSourceKind.WEB
    api_endpoint = "https://api.perplexity.ai/chat/completions"
    timeout_seconds = 30.0
    credential_name = "PERPLEXITY_API_KEY"

    async def _request(self, search_term: str, api_key: str) -> Any:
        return await self._post_json(
            self.endpoint,
            headers={"Authorization": f"Bearer {api_key}"},
            payload={
                "model": MODEL,
                "messages": [
                    {"role": "user", "content": search_term},
                ],
            },
        )

    def normalize(self, data: Any) -> NormalizedResult:
        return normalize_response(data)

"""
ChatGPT Source
==============

Queries OpenAI's Responses API with the web_search tool for grounded,
citation-bearing answers.

The Responses API returns an `output` array of items:
- `message` items hold the answer text, with `url_citation` annotations
- `web_search_call` items record the search itself and carry no text

Required environment variables:
- OPENAI_API_KEY

Documentation: https://platform.openai.com/docs/api-reference/responses
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
    unique_urls,
)

MODEL = "gpt-4o"


def normalize_response(data: Any) -> NormalizedResult:
    """Normalize an OpenAI Responses API payload into the shared result format"""
    data = as_dict(data)

    text_parts = []
    cited_urls = []
    search_results = []

    for item in map(as_dict, as_list(data.get("output"))):
        if item.get("type") != "message":
            continue

        for part in map(as_dict, as_list(item.get("content"))):
            if part.get("type") != "output_text":
                continue

            text_parts.append(as_text(part.get("text")))

            for annotation in map(as_dict, as_list(part.get("annotations"))):
                url = as_text(annotation.get("url"))
                if annotation.get("type") != "url_citation" or not url:
                    continue
                cited_urls.append(url)
                # One entry per annotation, even when the URL repeats
                search_results.append(SearchResult(
                    title=as_text(annotation.get("title")),
                    url=url,
                    snippet="",
                ))

    usage = as_dict(data.get("usage"))

    return NormalizedResult(
        content="".join(text_parts),
        citations=unique_urls(cited_urls),
        search_results=tuple(search_results),
        usage=build_usage(usage.get("input_tokens"), usage.get("output_tokens")),
    )


class ChatGPTSource(LLMSource):
    """OpenAI GPT with the web_search tool (web-grounded)"""

    name = "ChatGPT"
    referrer = "https://chatgpt.com"
    rate_limit_ms = 1000
    data_source = DataSourceKind.WEB
    api_endpoint = "https://api.openai.com/v1/responses"
    timeout_seconds = 60.0  # web search can be slow
    credential_name = "OPENAI_API_KEY"

    async def _request(self, search_term: str, api_key: str) -> Any:
        return await self._post_json(
            self.endpoint,
            headers={"Authorization": f"Bearer {api_key}"},
            payload={
                "model": MODEL,
                "tools": [{"type": "web_search"}],
                "input": search_term,
            },
        )

    def normalize(self, data: Any) -> NormalizedResult:
        return normalize_response(data)

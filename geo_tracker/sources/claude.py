"""
Claude Source
=============

Queries Anthropic's Claude through the Messages API. No web search:
this measures how well the brand is represented in training data, so
results are tagged with data_source="training" and never carry citations.

Required environment variables:
- ANTHROPIC_API_KEY

Documentation: https://docs.anthropic.com/en/api/messages
"""

from typing import Any

import anthropic

from ..exceptions import ProviderError, ProviderTimeoutError
from .base import (
    DataSourceKind,
    LLMSource,
    NormalizedResult,
    as_dict,
    as_list,
    as_text,
    build_usage,
)

MODEL = "claude-sonnet-4-5-20250929"
MAX_TOKENS = 1024


def normalize_response(data: Any) -> NormalizedResult:
    """Normalize an Anthropic Messages API response into the shared result format.

    Only text blocks contribute to the content. Citations and search
    results are always empty because Claude is queried without web search.
    """
    data = as_dict(data)

    content = "".join(
        as_text(block.get("text"))
        for block in map(as_dict, as_list(data.get("content")))
        if block.get("type") == "text"
    )

    usage = as_dict(data.get("usage"))

    return NormalizedResult(
        content=content,
        citations=(),
        search_results=(),
        usage=build_usage(usage.get("input_tokens"), usage.get("output_tokens")),
    )


class ClaudeSource(LLMSource):
    """Anthropic Claude (training data only)"""

    name = "Claude"
    referrer = "https://claude.ai"
    rate_limit_ms = 1000
    data_source = DataSourceKind.TRAINING
    api_endpoint = "https://api.anthropic.com"
    timeout_seconds = 30.0
    credential_name = "ANTHROPIC_API_KEY"

    async def _request(self, search_term: str, api_key: str) -> Any:
        # Retries are left to the orchestrator's per-call isolation
        client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=self.endpoint,
            timeout=self.timeout,
            max_retries=0,
        )

        try:
            async with client:
                message = await client.messages.create(
                    model=MODEL,
                    max_tokens=MAX_TOKENS,
                    messages=[
                        {"role": "user", "content": search_term},
                    ],
                )
        except anthropic.APITimeoutError as e:
            raise ProviderTimeoutError(self.name, f"API timeout after {self.timeout}s") from e
        except anthropic.APIStatusError as e:
            raise ProviderError(
                self.name,
                f"API error: HTTP {e.status_code} {e.message}",
                status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        return message.model_dump()

    def normalize(self, data: Any) -> NormalizedResult:
        return normalize_response(data)

"""
LLM Sources
===========

One adapter per AI service, each converting its provider's payload into
the shared NormalizedResult:
- Perplexity (web)
- Gemini (web)
- ChatGPT (web)
- Claude (training data)
"""

from ..config import TrackerConfig
from .base import DataSourceKind, LLMSource, NormalizedResult, SearchResult, TokenUsage
from .chatgpt import ChatGPTSource
from .claude import ClaudeSource
from .gemini import GeminiSource
from .perplexity import PerplexitySource


def build_sources(config: TrackerConfig) -> list[LLMSource]:
    """Build every source in preferred execution order.

    Keys are read from the config object on each call, so changing the
    config after the registry is built enables or disables a source.
    """
    return [
        PerplexitySource(api_key=lambda: config.perplexity_api_key),
        GeminiSource(api_key=lambda: config.google_ai_api_key),
        ChatGPTSource(api_key=lambda: config.openai_api_key),
        ClaudeSource(api_key=lambda: config.anthropic_api_key),
    ]


__all__ = [
    "build_sources",
    "ChatGPTSource",
    "ClaudeSource",
    "DataSourceKind",
    "GeminiSource",
    "LLMSource",
    "NormalizedResult",
    "PerplexitySource",
    "SearchResult",
    "TokenUsage",
]

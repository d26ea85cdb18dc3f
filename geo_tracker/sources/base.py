"""
Base class and canonical result types for all LLM sources
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional
import aiohttp
import structlog

from ..exceptions import MissingCredentialsError, ProviderError, ProviderTimeoutError

logger = structlog.get_logger(__name__)


class DataSourceKind(str, Enum):
    """Where a provider's answer comes from"""
    WEB = "web"            # grounded in a live web search
    TRAINING = "training"  # training data only, never cites


@dataclass(frozen=True)
class SearchResult:
    """A web page the provider looked at while answering"""
    title: str = ""
    url: str = ""
    snippet: str = ""


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting for a single call"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class NormalizedResult:
    """Provider-agnostic response consumed by the analyzer"""
    content: str = ""
    citations: tuple[str, ...] = ()
    search_results: tuple[SearchResult, ...] = ()
    usage: TokenUsage = field(default_factory=TokenUsage)


# Raw payloads are untrusted JSON: every accessor below tolerates missing
# keys and wrong types so normalizers never raise.

def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def as_count(value: Any) -> int:
    """Coerce a token count to a non-negative int"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)


def first(value: Any) -> dict:
    """First element of a JSON array, as a dict"""
    items = as_list(value)
    return as_dict(items[0]) if items else {}


def unique_urls(urls: Iterable[Any]) -> tuple[str, ...]:
    """Drop empty/non-string URLs and duplicates, keeping first-seen order"""
    return tuple(dict.fromkeys(url for url in urls if isinstance(url, str) and url))


def build_usage(prompt: Any, completion: Any, total: Any = None) -> TokenUsage:
    """Build TokenUsage, summing prompt and completion when no total is reported"""
    prompt_tokens = as_count(prompt)
    completion_tokens = as_count(completion)
    if total is None or isinstance(total, bool) or not isinstance(total, (int, float)):
        total_tokens = prompt_tokens + completion_tokens
    else:
        total_tokens = as_count(total)
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


class LLMSource(ABC):
    """Base class for all LLM sources.

    Identity fields are class attributes. The API key is read through an
    injected accessor on every enabled()/query() call, so a source can be
    switched on or off between calls without rebuilding it.
    """

    name: str = ""
    referrer: str = ""
    rate_limit_ms: int = 1000
    data_source: DataSourceKind = DataSourceKind.WEB
    api_endpoint: str = ""
    timeout_seconds: float = 30.0
    credential_name: str = ""

    def __init__(
        self,
        api_key: Callable[[], Optional[str]],
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the source.

        Args:
            api_key: Zero-argument accessor returning the current API key
            endpoint: Override the provider API endpoint (tests, proxies)
            timeout: Override the per-call timeout in seconds
        """
        self._api_key = api_key
        self.endpoint = endpoint or self.api_endpoint
        self.timeout = timeout if timeout is not None else self.timeout_seconds
        self.logger = logger.bind(source=self.name)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name!r}, data_source={self.data_source.value})>"

    def enabled(self) -> bool:
        """Check if this source has an API key configured"""
        return bool(self._api_key())

    def _require_api_key(self) -> str:
        api_key = self._api_key()
        if not api_key:
            raise MissingCredentialsError(self.name, f"{self.credential_name} not configured")
        return api_key

    async def query(self, search_term: str) -> NormalizedResult:
        """Send one search term to the provider and normalize the answer.

        Raises:
            ProviderError: On missing credentials, non-2xx status, network
                failure, or timeout
        """
        api_key = self._require_api_key()
        data = await self._request(search_term, api_key)
        return self.normalize(data)

    @abstractmethod
    async def _request(self, search_term: str, api_key: str) -> Any:
        """Call the provider and return its raw JSON payload"""
        pass

    @abstractmethod
    def normalize(self, data: Any) -> NormalizedResult:
        """Convert a raw provider payload into a NormalizedResult"""
        pass

    async def _post_json(
        self,
        url: str,
        payload: dict,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """POST a JSON body and return the decoded JSON response"""
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    url,
                    json=payload,
                    headers=request_headers,
                    params=params,
                ) as response:
                    if response.status < 200 or response.status >= 300:
                        body = await response.text()
                        raise ProviderError(
                            self.name,
                            f"API error: HTTP {response.status} {body[:500]}".rstrip(),
                            status_code=response.status,
                        )
                    return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(self.name, f"API timeout after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(self.name, f"invalid JSON in response: {e}") from e

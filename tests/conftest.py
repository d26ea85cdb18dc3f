"""Shared fixtures: stub HTTP endpoints and fake LLM sources."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from geo_tracker.sources.base import (
    DataSourceKind,
    LLMSource,
    NormalizedResult,
    SearchResult,
    TokenUsage,
)


def make_result(
    content: str = "",
    citations: tuple[str, ...] = (),
    search_results: tuple[SearchResult, ...] = (),
    total_tokens: int = 0,
) -> NormalizedResult:
    return NormalizedResult(
        content=content,
        citations=tuple(citations),
        search_results=tuple(search_results),
        usage=TokenUsage(total_tokens=total_tokens),
    )


class StubEndpoint:
    """aiohttp handler that replays canned responses and records requests.

    Each response is ``(status, json_body_or_None)``; the last one repeats
    once the list is exhausted.
    """

    def __init__(self, *responses: tuple[int, Any], delay: float = 0.0):
        self.responses = list(responses) or [(200, {})]
        self.delay = delay
        self.requests: list[dict] = []

    async def __call__(self, request: web.Request) -> web.Response:
        body = await request.json() if request.can_read_body else None
        self.requests.append({
            "path": request.path,
            "headers": request.headers.copy(),
            "query": dict(request.query),
            "json": body,
        })
        if self.delay:
            await asyncio.sleep(self.delay)

        status, payload = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if payload is None:
            return web.Response(status=status)
        return web.json_response(payload, status=status)


@pytest_asyncio.fixture
async def stub_server():
    """Start in-process HTTP servers: ``server = await stub_server(path, handler)``."""
    servers: list[TestServer] = []

    async def start(path: str, handler: StubEndpoint) -> TestServer:
        app = web.Application()
        app.router.add_post(path, handler)
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield start

    for server in servers:
        await server.close()


class FakeSource(LLMSource):
    """LLM source that replays NormalizedResults or raises exceptions."""

    credential_name = "FAKE_API_KEY"

    def __init__(
        self,
        name: str = "MockLLM",
        responses: Optional[list[Any]] = None,
        rate_limit_ms: int = 0,
        data_source: DataSourceKind = DataSourceKind.WEB,
        referrer: str = "https://mock.ai",
        enabled: bool = True,
    ):
        self.name = name
        self.rate_limit_ms = rate_limit_ms
        self.data_source = data_source
        self.referrer = referrer
        self.key = "test-key" if enabled else ""
        self.responses = list(responses) if responses is not None else [
            make_result(
                content="Development Seed offers titiler for dynamic tile serving.",
                citations=("https://developmentseed.org/blog/titiler-v2",),
                total_tokens=250,
            )
        ]
        self.calls: list[str] = []
        super().__init__(api_key=lambda: self.key)

    async def _request(self, search_term: str, api_key: str) -> Any:
        self.calls.append(search_term)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def normalize(self, data: Any) -> NormalizedResult:
        return data


class FakeEvents:
    """Stand-in for PlausibleClient that records events."""

    def __init__(self, domain: str = "geo.test.org", accept: bool = True):
        self.domain = domain
        self.accept = accept
        self.events: list[dict] = []

    def default_url(self) -> str:
        return f"https://{self.domain}/"

    async def send_event(self, event_name, props=None, referrer=None, url=None) -> bool:
        self.events.append({
            "name": event_name,
            "props": dict(props or {}),
            "referrer": referrer,
            "url": url,
        })
        return self.accept


@pytest.fixture
def no_sleep():
    """Awaitable sleep that records requested delays instead of waiting."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep

"""
GEO Tracker Orchestrator
========================

Runs every configured query against every enabled LLM source, scores
each answer, forwards it to Plausible, and collects the output rows.

The orchestrator never reads the environment and never writes to disk;
the caller supplies queries, sources and the event client, and persists
the returned rows.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Iterator, Mapping, Optional, Sequence
from urllib.parse import urlparse
import structlog

from .analysis import AnalysisResult, ProminenceAnalyzer, analyze_response
from .plausible import PlausibleClient
from .queries import Query
from .sources.base import LLMSource

logger = structlog.get_logger(__name__)

EVENT_NAME = "LLM_Prominence"

# Approximate USD per 1M tokens, input and output blended
COST_PER_MILLION_TOKENS: dict[str, float] = {
    "Perplexity": 1.0,
    "Gemini": 0.5,    # flash model
    "ChatGPT": 7.5,   # ~$2.50 in + $10 out
    "Claude": 6.0,    # ~$3 in + $15 out
}
DEFAULT_COST_PER_MILLION_TOKENS = 1.0


@dataclass(frozen=True)
class OutputRow:
    """One scored (query, source) measurement, persisted as a CSV row"""
    date: str
    source: str
    query_name: str
    query_id: str
    category: str
    prominence_score: int
    mentioned: bool
    recommended: bool
    position: int
    citation_count: int
    data_source: str
    ds_pages: str  # pipe-joined URLs
    tokens: int

    def as_record(self) -> dict[str, str]:
        """Render every field as the string stored in the CSV"""
        return {
            "date": self.date,
            "source": self.source,
            "query_name": self.query_name,
            "query_id": self.query_id,
            "category": self.category,
            "prominence_score": str(self.prominence_score),
            "mentioned": str(self.mentioned).lower(),
            "recommended": str(self.recommended).lower(),
            "position": str(self.position),
            "citation_count": str(self.citation_count),
            "data_source": self.data_source,
            "ds_pages": self.ds_pages,
            "tokens": str(self.tokens),
        }


@dataclass(frozen=True)
class ProviderRunStats:
    """Outcome of one source's calls within a run"""
    success: int = 0
    fail: int = 0
    tokens: int = 0
    cost: float = 0.0
    events_sent: int = 0
    events_failed: int = 0

    @property
    def total(self) -> int:
        return self.success + self.fail


@dataclass(frozen=True)
class RunResult:
    """Aggregate of one full orchestration pass"""
    total_events: int
    total_success: int
    total_fail: int
    total_tokens: int
    total_cost: float
    per_source: Mapping[str, ProviderRunStats]
    rows: tuple[OutputRow, ...]
    duration: float  # seconds
    skipped: tuple[str, ...] = field(default=())


def estimate_cost(source_name: str, total_tokens: int) -> float:
    """Estimate USD cost of a source's token usage"""
    rate = COST_PER_MILLION_TOKENS.get(source_name, DEFAULT_COST_PER_MILLION_TOKENS)
    return (total_tokens / 1_000_000) * rate


def build_plausible_url(page_url: str, domain: str) -> str:
    """
    Map a cited brand page onto the tracker domain.

    "https://developmentseed.org/blog/titiler-v2" with domain
    "geo.developmentseed.org" becomes "https://geo.developmentseed.org/blog/titiler-v2",
    so the cited path shows up in Plausible's Top Pages.
    """
    try:
        parsed = urlparse(page_url)
    except ValueError:
        return f"https://{domain}/"
    if not parsed.scheme or not parsed.netloc:
        return f"https://{domain}/"
    return f"https://{domain}{parsed.path or '/'}"


def iter_search_terms(query: Query, per_term_expansion: bool) -> Iterator[str]:
    """First term only, or every term in order when expanding"""
    if per_term_expansion:
        yield from query.search_terms
    else:
        yield query.search_terms[0]


def build_row(
    run_date: str,
    source: LLMSource,
    query: Query,
    analysis: AnalysisResult,
    tokens: int,
) -> OutputRow:
    return OutputRow(
        date=run_date,
        source=source.name,
        query_name=query.name,
        query_id=query.id,
        category=query.category.value,
        prominence_score=analysis.prominence_score,
        mentioned=analysis.mentioned,
        recommended=analysis.recommended,
        position=analysis.position,
        citation_count=analysis.citation_count,
        data_source=source.data_source.value,
        ds_pages="|".join(analysis.ds_pages),
        tokens=tokens,
    )


def build_event_props(
    source: LLMSource,
    query: Query,
    search_term: str,
    analysis: AnalysisResult,
) -> dict[str, str]:
    return {
        "query_name": query.name,
        "query_id": query.id,
        "category": query.category.value,
        "search_term": search_term,
        "prominence_score": str(analysis.prominence_score),
        "mentioned": str(analysis.mentioned).lower(),
        "recommended": str(analysis.recommended).lower(),
        "position": str(analysis.position),
        "citation_count": str(analysis.citation_count),
        "data_source": source.data_source.value,
        "original_url": analysis.ds_pages[0] if analysis.ds_pages else "",
    }


async def track_source(
    source: LLMSource,
    queries: Sequence[Query],
    events: Optional[PlausibleClient] = None,
    *,
    run_date: str,
    per_term_expansion: bool = False,
    analyzer: Optional[ProminenceAnalyzer] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[ProviderRunStats, list[OutputRow]]:
    """
    Query one source for every configured query, one call at a time.

    A failed call is counted and logged, then the next call proceeds.
    The source's rate limit is awaited between calls but not after the last.
    """
    log = logger.bind(source=source.name, data_source=source.data_source.value)

    calls = [
        (query, term)
        for query in queries
        for term in iter_search_terms(query, per_term_expansion)
    ]

    success = fail = total_tokens = events_sent = events_failed = 0
    rows: list[OutputRow] = []

    for index, (query, search_term) in enumerate(calls):
        log.info(
            "query_started",
            call=f"{index + 1}/{len(calls)}",
            query_id=query.id,
            search_term=search_term,
        )

        try:
            result = await source.query(search_term)
        except Exception as e:
            fail += 1
            log.error("query_failed", query_id=query.id, error=str(e))
        else:
            tokens = result.usage.total_tokens
            analysis = analyze_response(result, analyzer)

            success += 1
            total_tokens += tokens
            rows.append(build_row(run_date, source, query, analysis, tokens))

            log.info(
                "query_scored",
                query_id=query.id,
                score=analysis.prominence_score,
                mentioned=analysis.mentioned,
                citations=analysis.citation_count,
                ds_pages=list(analysis.ds_pages),
            )

            # Delivery is independent of the measurement: a failed event
            # still leaves the row for persistence
            if events is not None:
                url = (
                    build_plausible_url(analysis.ds_pages[0], events.domain)
                    if analysis.ds_pages
                    else events.default_url()
                )
                delivered = await events.send_event(
                    EVENT_NAME,
                    build_event_props(source, query, search_term, analysis),
                    referrer=source.referrer,
                    url=url,
                )
                if delivered:
                    events_sent += 1
                else:
                    events_failed += 1
                    log.warning("event_delivery_failed", query_id=query.id)

        if index < len(calls) - 1 and source.rate_limit_ms > 0:
            await sleep(source.rate_limit_ms / 1000)

    stats = ProviderRunStats(
        success=success,
        fail=fail,
        tokens=total_tokens,
        cost=estimate_cost(source.name, total_tokens),
        events_sent=events_sent,
        events_failed=events_failed,
    )
    return stats, rows


async def run_tracker(
    queries: Sequence[Query],
    sources: Sequence[LLMSource],
    events: Optional[PlausibleClient] = None,
    *,
    per_term_expansion: bool = False,
    run_date: Optional[date] = None,
    analyzer: Optional[ProminenceAnalyzer] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RunResult:
    """
    Run the tracker across all queries and sources.

    Sources are processed one after another in the given order. Sources
    that are not enabled when the run starts are skipped and reported in
    RunResult.skipped.

    Args:
        queries: Queries to track, in order
        sources: Source registry, in preferred execution order
        events: Plausible client; None disables event delivery
        per_term_expansion: Query every search term instead of the first
        run_date: Date stamped on every row (defaults to today, UTC)
        analyzer: Brand profile to score with (defaults to Development Seed)
        sleep: Awaitable used for rate limiting

    Returns:
        RunResult with counters, per-source stats and all output rows
    """
    started = time.monotonic()
    run_day = (run_date or datetime.now(timezone.utc).date()).isoformat()

    per_source: dict[str, ProviderRunStats] = {}
    rows: list[OutputRow] = []
    skipped: list[str] = []

    for source in sources:
        if not source.enabled():
            skipped.append(source.name)
            logger.warning("source_skipped", source=source.name, reason="not configured")
            continue

        logger.info("source_started", source=source.name, data_source=source.data_source.value)

        stats, source_rows = await track_source(
            source,
            queries,
            events,
            run_date=run_day,
            per_term_expansion=per_term_expansion,
            analyzer=analyzer,
            sleep=sleep,
        )
        per_source[source.name] = stats
        rows.extend(source_rows)

        logger.info(
            "source_finished",
            source=source.name,
            succeeded=f"{stats.success}/{stats.total}",
            tokens=stats.tokens,
            cost=round(stats.cost, 4),
        )

    total_success = sum(s.success for s in per_source.values())
    total_fail = sum(s.fail for s in per_source.values())

    return RunResult(
        total_events=total_success + total_fail,
        total_success=total_success,
        total_fail=total_fail,
        total_tokens=sum(s.tokens for s in per_source.values()),
        total_cost=sum(s.cost for s in per_source.values()),
        per_source=per_source,
        rows=tuple(rows),
        duration=time.monotonic() - started,
        skipped=tuple(skipped),
    )

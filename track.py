#!/usr/bin/env python3
"""GEO Tracker - Main Entry Point

Loads configuration, discovers enabled LLM sources, runs the
orchestrator, appends results to the CSV log, and logs a summary.

Designed to run as a scheduled job (e.g. a GitHub Actions cron).
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog

from geo_tracker import __version__
from geo_tracker.analysis import DS_KEYWORDS, RECOMMENDATION_WORDS, ProminenceAnalyzer
from geo_tracker.config import TrackerConfig, get_config
from geo_tracker.csv_store import append_results, init_csv
from geo_tracker.orchestrator import RunResult, run_tracker
from geo_tracker.plausible import PlausibleClient
from geo_tracker.queries import DEFAULT_QUERIES, Query
from geo_tracker.sources import build_sources

logger = structlog.get_logger(__name__)


def setup_logging(log_level: str = "INFO"):
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track brand prominence in LLM answers")
    parser.add_argument(
        "--csv",
        dest="csv_path",
        help="CSV file to append results to (default: GEO_CSV_PATH)",
    )
    parser.add_argument(
        "--per-term",
        action="store_true",
        default=None,
        help="Query every search term instead of only the first one",
    )
    parser.add_argument(
        "--no-events",
        action="store_true",
        help="Do not send events to Plausible",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


def log_summary(result: RunResult, total_sources: int):
    logger.info(
        "run_summary",
        sources=f"{len(result.per_source)}/{total_sources} enabled",
        total_events=result.total_events,
        successful=result.total_success,
        failed=result.total_fail,
        total_tokens=result.total_tokens,
        est_cost=f"~${result.total_cost:.4f}",
        duration=f"{result.duration:.1f}s",
        skipped=list(result.skipped),
    )
    for name, stats in result.per_source.items():
        logger.info(
            "source_summary",
            source=name,
            succeeded=f"{stats.success}/{stats.total}",
            tokens=stats.tokens,
            est_cost=f"~${stats.cost:.4f}",
            events_sent=stats.events_sent,
            events_failed=stats.events_failed,
        )


def run(
    config: TrackerConfig,
    queries: Sequence[Query] = DEFAULT_QUERIES,
    send_events: bool = True,
) -> int:
    """Run one tracking pass and return the process exit code."""
    logger.info(
        "geo_tracker_started",
        version=__version__,
        started_at=datetime.now(timezone.utc).isoformat(),
        queries=len(queries),
    )
    config.log_configuration()

    if not config.validate():
        return 1

    if not queries:
        logger.error("no_queries_configured")
        return 1

    sources = build_sources(config)
    enabled = [s for s in sources if s.enabled()]
    if not enabled:
        # Not a failure: nothing is configured yet
        logger.warning(
            "no_sources_enabled",
            hint="Set one or more API key environment variables",
            sources=[s.credential_name for s in sources],
        )
        return 0

    logger.info("sources_enabled", sources=[s.name for s in enabled])

    events = (
        PlausibleClient(config.plausible_domain, endpoint=config.plausible_endpoint)
        if send_events
        else None
    )
    analyzer = ProminenceAnalyzer(
        keywords=DS_KEYWORDS,
        tracked_domain=config.tracked_domain,
        recommendation_words=RECOMMENDATION_WORDS,
    )

    result = asyncio.run(run_tracker(
        queries,
        sources,
        events,
        per_term_expansion=config.per_term_expansion,
        analyzer=analyzer,
    ))

    init_csv(config.csv_path)
    written = append_results(config.csv_path, result.rows)
    logger.info("results_saved", path=config.csv_path, rows=written)

    log_summary(result, total_sources=len(sources))

    if result.total_fail > result.total_success:
        logger.error("run_failed", reason="More than 50% of calls failed")
        return 1

    logger.info("run_completed")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the GEO tracker."""
    args = parse_args(argv)
    config = get_config()

    if args.csv_path:
        config.csv_path = args.csv_path
    if args.per_term:
        config.per_term_expansion = True
    if args.log_level:
        config.log_level = args.log_level

    setup_logging(config.log_level)

    try:
        return run(config, queries=DEFAULT_QUERIES, send_events=not args.no_events)
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt_received")
        return 130


if __name__ == "__main__":
    sys.exit(main())

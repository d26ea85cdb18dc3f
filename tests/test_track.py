"""Tests for the command line entry point."""

from __future__ import annotations

import csv

import pytest

import track
from conftest import FakeSource
from geo_tracker.config import TrackerConfig
from geo_tracker.exceptions import ProviderError
from geo_tracker.queries import Query


QUERIES = (
    Query(id="titiler", name="titiler", search_terms=("What is titiler?", "Tile servers?"), category="product"),
    Query(id="stac", name="STAC", search_terms=("How do I implement STAC?",), category="technology"),
)


@pytest.fixture
def config(tmp_path):
    return TrackerConfig(
        perplexity_api_key="",
        google_ai_api_key="",
        openai_api_key="",
        anthropic_api_key="",
        plausible_domain="geo.test.org",
        csv_path=str(tmp_path / "data" / "geo-tracking.csv"),
        per_term_expansion=False,
    )


def read_rows(path):
    with open(path, encoding="utf-8", newline="") as handle:
        return list(csv.DictReader(handle))


class TestRun:
    def test_successful_run_writes_csv(self, config, monkeypatch):
        sources = [FakeSource("Perplexity"), FakeSource("Claude", enabled=False)]
        monkeypatch.setattr(track, "build_sources", lambda cfg: sources)

        exit_code = track.run(config, queries=QUERIES, send_events=False)

        assert exit_code == 0
        rows = read_rows(config.csv_path)
        assert [row["query_id"] for row in rows] == ["titiler", "stac"]
        assert all(row["source"] == "Perplexity" for row in rows)
        assert sources[1].calls == []

    def test_mostly_failed_run_exits_nonzero(self, config, monkeypatch):
        failing = FakeSource("Gemini", responses=[ProviderError("Gemini", "HTTP 503", status_code=503)])
        monkeypatch.setattr(track, "build_sources", lambda cfg: [failing])

        assert track.run(config, queries=QUERIES, send_events=False) == 1
        # Header is still written so the file exists for the next run
        assert read_rows(config.csv_path) == []

    def test_half_failed_run_succeeds(self, config, monkeypatch):
        ok = FakeSource("Perplexity")
        failing = FakeSource("Gemini", responses=[ProviderError("Gemini", "down")])
        monkeypatch.setattr(track, "build_sources", lambda cfg: [ok, failing])

        assert track.run(config, queries=QUERIES, send_events=False) == 0

    def test_no_enabled_sources_is_not_an_error(self, config, monkeypatch):
        monkeypatch.setattr(track, "build_sources", lambda cfg: [FakeSource("Claude", enabled=False)])

        assert track.run(config, queries=QUERIES, send_events=False) == 0

    def test_invalid_config_exits_nonzero(self, config, monkeypatch):
        config.plausible_domain = ""
        monkeypatch.setattr(track, "build_sources", lambda cfg: [FakeSource("Perplexity")])

        assert track.run(config, queries=QUERIES, send_events=False) == 1

    def test_no_queries_exits_nonzero(self, config, monkeypatch):
        monkeypatch.setattr(track, "build_sources", lambda cfg: [FakeSource("Perplexity")])

        assert track.run(config, queries=(), send_events=False) == 1


class TestMain:
    def test_cli_overrides(self, config, tmp_path, monkeypatch):
        source = FakeSource("Perplexity")
        csv_path = tmp_path / "override.csv"
        monkeypatch.setattr(track, "get_config", lambda: config)
        monkeypatch.setattr(track, "build_sources", lambda cfg: [source])
        monkeypatch.setattr(track, "DEFAULT_QUERIES", QUERIES)

        exit_code = track.main(["--no-events", "--per-term", "--csv", str(csv_path), "--log-level", "WARNING"])

        assert exit_code == 0
        assert config.csv_path == str(csv_path)
        assert config.per_term_expansion is True
        assert source.calls == ["What is titiler?", "Tile servers?", "How do I implement STAC?"]
        assert len(read_rows(csv_path)) == 3

    def test_parse_args_defaults(self):
        args = track.parse_args([])
        assert args.csv_path is None
        assert args.per_term is None
        assert args.no_events is False
        assert args.log_level is None

"""Tests for the MCP server tool functions."""

import json
import os

import pytest

from agent_exhaust.classifier import HeuristicClassifier
from agent_exhaust.hourly import HourlySynthesizer
from agent_exhaust.models import DailySynthesis, DayTheme, Source, Theme
from agent_exhaust.store import HOUR_MS, EventStore, now_ms

from helpers import make_event


@pytest.fixture
def mcp_db(tmp_path):
    """Seeded event store exposed through EXHAUST_DB_PATH."""
    db_path = tmp_path / "agent_events.db"
    store = EventStore(db_path)
    store.initialize()

    now = now_ms()
    start = now - now % HOUR_MS - 2 * HOUR_MS
    store.insert_events([
        make_event("sess-m", start + i * 1000, f"write code {i}", source=Source.SUBAGENT)
        for i in range(5)
    ])
    HeuristicClassifier(store).run()
    HourlySynthesizer(store, min_events=1).run()
    store.upsert_daily(DailySynthesis(
        date="2026-06-10", synthesis_count=6,
        top_themes=[DayTheme(Theme.RESEARCH, 6, 60)],
        productivity_summary="6h active, 60 events. Primary: research.",
        recommendations="Maintain current pace", created_at=0,
    ))
    store.close()

    old_env = os.environ.get("EXHAUST_DB_PATH")
    os.environ["EXHAUST_DB_PATH"] = str(db_path)
    yield db_path
    if old_env is None:
        del os.environ["EXHAUST_DB_PATH"]
    else:
        os.environ["EXHAUST_DB_PATH"] = old_env


class TestMCPTools:

    def test_stats(self, mcp_db):
        from agent_exhaust.mcp_server import stats
        data = json.loads(stats())
        assert data["total_events"] == 5
        assert data["recent_events_24h"] == 5
        assert data["total_syntheses"] == 1

    def test_events_compact(self, mcp_db):
        from agent_exhaust.mcp_server import events
        result = events(limit=2)
        assert "[subagent]" in result
        assert "write code 4" in result
        assert "write code 0" not in result

    def test_events_json(self, mcp_db):
        from agent_exhaust.mcp_server import events
        data = json.loads(events(since="24h", format="json"))
        assert len(data) == 5
        assert data[0]["source"] == "subagent"

    def test_events_bad_since(self, mcp_db):
        from agent_exhaust.mcp_server import events
        with pytest.raises(ValueError):
            events(since="whenever")

    def test_syntheses(self, mcp_db):
        from agent_exhaust.mcp_server import syntheses
        result = syntheses()
        assert "CODING / shipping_sprint (5 events)" in result

    def test_syntheses_json(self, mcp_db):
        from agent_exhaust.mcp_server import syntheses
        data = json.loads(syntheses(since="2d", format="json"))
        assert data[0]["theme_breakdown"] == [{"theme": "CODING", "count": 5}]

    def test_syntheses_empty(self, mcp_db):
        from agent_exhaust.mcp_server import syntheses
        assert syntheses(since="30m") == "(no syntheses)"

    def test_daily_compact(self, mcp_db):
        from agent_exhaust.mcp_server import daily
        result = daily()
        assert "2026-06-10:" in result
        assert "Primary: research" in result

    def test_daily_json(self, mcp_db):
        from agent_exhaust.mcp_server import daily
        data = json.loads(daily(format="json"))
        assert data[0]["top_themes"][0]["theme"] == "RESEARCH"

    def test_missing_store(self, tmp_path, monkeypatch):
        from agent_exhaust.mcp_server import stats
        monkeypatch.setenv("EXHAUST_DB_PATH", str(tmp_path / "missing.db"))
        with pytest.raises(FileNotFoundError):
            stats()

"""Shared fixtures for Agent Exhaust tests."""

import pytest

from agent_exhaust.config import Settings
from agent_exhaust.models import Interpretation, Source, Theme
from agent_exhaust.store import HOUR_MS, EventStore

from helpers import CURRENT_HOUR, make_event


@pytest.fixture
def store(tmp_path):
    """Empty initialized event store."""
    db_path = tmp_path / "agent_events.db"
    s = EventStore(db_path)
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def sessions_dir(tmp_path):
    d = tmp_path / "sessions"
    d.mkdir()
    return d


@pytest.fixture
def settings(tmp_path, sessions_dir):
    return Settings(
        sessions_dir=sessions_dir,
        db_path=tmp_path / "agent_events.db",
        operator_id="7969283458",
    )


@pytest.fixture
def seeded_store(store):
    """Classified events: 6 in one finished hour, 2 in the next, 1 in the current hour."""
    hour_a = CURRENT_HOUR - 3 * HOUR_MS
    hour_b = CURRENT_HOUR - 2 * HOUR_MS
    rows = [
        (hour_a + 60_000, "implement the parser function", Theme.CODING),
        (hour_a + 120_000, "refactor the session loader", Theme.CODING),
        (hour_a + 180_000, "write unit test file", Theme.CODING),
        (hour_a + 240_000, "build the release notes page", Theme.CODING),
        (hour_a + 300_000, "fix the crash in the parser", Theme.DEBUGGING),
        (hour_a + 360_000, "error in gateway", Theme.DEBUGGING),
        (hour_b + 60_000, "search docs", Theme.RESEARCH),
        (hour_b + 120_000, "lookup api", Theme.RESEARCH),
        (CURRENT_HOUR + 60_000, "deploy", Theme.SHIPPING),
    ]
    events = [
        make_event("sess-a", ts, snippet, source=Source.CRON)
        for ts, snippet, _ in rows
    ]
    store.insert_events(events)
    store.insert_interpretations([
        Interpretation(id=e.id, session_key=e.session_key, timestamp=e.timestamp,
                       summary=e.content_snippet, theme=theme)
        for e, (_, _, theme) in zip(events, rows)
    ])
    return store

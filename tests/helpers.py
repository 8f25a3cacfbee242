"""Test helpers shared across modules."""

import json
from datetime import datetime, timedelta, timezone

from agent_exhaust.models import Event
from agent_exhaust.store import HOUR_MS

# 2026-06-12 09:20:00 UTC
NOW = 1781256000000
CURRENT_HOUR = NOW - NOW % HOUR_MS


def make_event(session_key="sess-a", timestamp=NOW, snippet="", **kwargs) -> Event:
    return Event(session_key=session_key, timestamp=timestamp,
                 content_snippet=snippet, **kwargs)


def log_line(ts: datetime | None = None, **fields) -> str:
    record = dict(fields)
    if ts is not None:
        record["timestamp"] = ts.isoformat().replace("+00:00", "Z")
    return json.dumps(record)


def minutes_ago(n: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=n)


def local_ms(year, month, day, hour=0, minute=0) -> int:
    """Epoch ms of a wall-clock time in the local timezone."""
    return int(datetime(year, month, day, hour, minute).timestamp() * 1000)

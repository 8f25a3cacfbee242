"""Read-side query engine with relative time parsing."""

import re
from datetime import datetime, timezone

from agent_exhaust.models import DailySynthesis, Event, HourlySynthesis
from agent_exhaust.store import EventStore, now_ms

RELATIVE_TIME_PATTERN = re.compile(r"^(\d+)(m|h|d|w)$")

TIME_MULTIPLIERS_MS = {
    "m": 60 * 1000,
    "h": 3600 * 1000,
    "d": 24 * 3600 * 1000,
    "w": 7 * 24 * 3600 * 1000,
}


def parse_since(since: str, now: int | None = None) -> int:
    """Convert a relative or absolute time string to epoch milliseconds.

    Accepts:
        "30m", "24h", "7d", "2w" — relative to now
        "2026-02-20" — date (start of day UTC)
        "2026-02-20T14:00:00" — ISO timestamp
        "1771581600000" — epoch milliseconds (passed through)
    """
    text = since.strip()
    match = RELATIVE_TIME_PATTERN.match(text)
    if match:
        amount = int(match.group(1))
        now = now_ms() if now is None else now
        return now - TIME_MULTIPLIERS_MS[match.group(2)] * amount

    if text.isdigit():
        return int(text)

    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            dt = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)

    raise ValueError(f"Unrecognized time filter: {since!r}")


class QueryEngine:
    """Normalizes read parameters and delegates to EventStore."""

    def __init__(self, store: EventStore):
        self.store = store

    def events(self, since: str | None = None, limit: int = 1000) -> list[Event]:
        normalized = parse_since(since) if since else None
        return self.store.recent_events(since=normalized, limit=limit)

    def syntheses(self, since: str = "7d") -> list[HourlySynthesis]:
        return self.store.syntheses_since(parse_since(since))

    def daily(self, limit: int = 7) -> list[DailySynthesis]:
        return self.store.recent_daily(limit)

    def stats(self) -> dict:
        return self.store.stats()

"""Output formatters for events, syntheses and stats."""

import json
from dataclasses import asdict
from datetime import datetime, timezone
from enum import Enum

from agent_exhaust.models import DailySynthesis, Event, HourlySynthesis


def _plain(value):
    """Flatten enums so asdict() output is JSON-compatible."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def to_dict(record) -> dict:
    return _plain(asdict(record))


def iso(ms: int | None) -> str:
    if ms is None:
        return "none"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


def _short_timestamp(ms: int) -> str:
    """Compact UTC form: '2026-02-23 14:30'."""
    return iso(ms)[:16].replace("T", " ")


def format_event_compact(event: Event) -> str:
    """Single-line compact format for one event."""
    ts = _short_timestamp(event.timestamp)
    snippet = event.content_snippet.replace("\n", " ")
    if len(snippet) > 120:
        snippet = snippet[:117] + "..."
    return f"[{ts}] [{event.source.value}] [{event.session_key}] {event.type} ({event.model}) — {snippet}"


def format_events_compact(events: list[Event]) -> str:
    if not events:
        return "(no events)"
    return "\n".join(format_event_compact(e) for e in events)


def format_hourly_compact(synthesis: HourlySynthesis) -> str:
    ts = _short_timestamp(synthesis.hour_bucket)
    return (f"[{ts}] {synthesis.dominant_theme.value} / {synthesis.work_mode.value} "
            f"({synthesis.event_count} events) — {synthesis.summary}")


def format_syntheses_compact(syntheses: list[HourlySynthesis]) -> str:
    if not syntheses:
        return "(no syntheses)"
    return "\n".join(format_hourly_compact(s) for s in syntheses)


def format_daily_compact(daily: DailySynthesis) -> str:
    return f"{daily.date}:\n  {daily.productivity_summary}\n  → {daily.recommendations}"


def format_days_compact(days: list[DailySynthesis]) -> str:
    if not days:
        return "(no daily syntheses)"
    return "\n\n".join(format_daily_compact(d) for d in days)


def format_json(records: list) -> str:
    """JSON array output."""
    return json.dumps([to_dict(r) for r in records], indent=2)


def format_stats_compact(stats: dict) -> str:
    return "\n".join([
        f"Events:        {stats['total_events']}",
        f"Last 24h:      {stats['recent_events_24h']}",
        f"Syntheses:     {stats['total_syntheses']}",
        f"Generated at:  {iso(stats['timestamp'])}",
    ])

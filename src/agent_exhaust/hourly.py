"""Hourly synthesis — roll classified events up into one-hour buckets."""

from typing import Callable

from agent_exhaust.models import HourlySynthesis, SynthesisReport, Theme, ThemeCount, WorkMode
from agent_exhaust.store import DAY_MS, HOUR_MS, EventStore, now_ms

WORK_MODES = {
    Theme.SHIPPING: WorkMode.SHIPPING_SPRINT,
    Theme.CODING: WorkMode.SHIPPING_SPRINT,
    Theme.RESEARCH: WorkMode.RESEARCH_DIVE,
    Theme.DEBUGGING: WorkMode.DEBUGGING_SESSION,
    Theme.PLANNING: WorkMode.PLANNING,
    Theme.INFRASTRUCTURE: WorkMode.MAINTENANCE,
}

_THEME_ORDER = {theme: i for i, theme in enumerate(Theme)}


def hour_bucket(timestamp: int) -> int:
    return timestamp - timestamp % HOUR_MS


def order_breakdown(themes: list[ThemeCount]) -> list[ThemeCount]:
    """Most frequent first; ties keep taxonomy order."""
    return sorted(themes, key=lambda t: (-t.count, _THEME_ORDER[Theme(t.theme)]))


def work_mode_for(themes: list[ThemeCount]) -> WorkMode:
    if not themes:
        return WorkMode.MIXED
    return WORK_MODES.get(Theme(themes[0].theme), WorkMode.MIXED)


def summarize_hour(themes: list[ThemeCount], event_count: int) -> str:
    top = ", ".join(Theme(t.theme).value.lower() for t in themes[:3])
    return f"Processed {event_count} events. Primary focus: {top}."


def build_hourly(bucket: int, event_count: int, themes: list[ThemeCount],
                 created_at: int) -> HourlySynthesis:
    ordered = order_breakdown(themes)
    return HourlySynthesis(
        hour_bucket=bucket,
        event_count=event_count,
        summary=summarize_hour(ordered, event_count),
        dominant_theme=ordered[0].theme if ordered else Theme.OPERATIONS,
        theme_breakdown=ordered,
        work_mode=work_mode_for(ordered),
        created_at=created_at,
    )


class HourlySynthesizer:
    """Writes one immutable synthesis per eligible finished hour."""

    def __init__(self, store: EventStore, min_events: int = 5, window_days: int = 7,
                 clock: Callable[[], int] = now_ms):
        self.store = store
        self.min_events = min_events
        self.window_days = window_days
        self.clock = clock

    def run(self, on_progress: Callable[[int, int], None] | None = None) -> SynthesisReport:
        now = self.clock()
        since = hour_bucket(now - self.window_days * DAY_MS)
        # The hour in progress is left for a later run.
        until = hour_bucket(now)
        hours = self.store.unsynthesized_hours(since, until, self.min_events)

        processed = 0
        written = []
        for bucket, event_count in hours:
            themes = self.store.theme_counts(bucket, bucket + HOUR_MS)
            synthesis = build_hourly(bucket, event_count, themes, created_at=now)
            if self.store.insert_hourly(synthesis):
                written.append(bucket)
            processed += 1
            if on_progress and processed % 10 == 0:
                on_progress(processed, len(hours))

        return SynthesisReport(
            candidates=len(hours),
            processed=processed,
            total=self.store.count_syntheses(),
            keys=written,
        )

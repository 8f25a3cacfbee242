"""Daily synthesis — productivity narrative and recommendations per local day.

Days are rolled up from hourly syntheses. A day is only synthesized once it
is over (strictly before today in local time) and has enough active hours.
Unlike hourly rows, a daily row is rewritten when the hourly data behind it
changes or when a recompute is requested.
"""

from typing import Callable

from agent_exhaust.models import DailySynthesis, DayTheme, SynthesisReport, Theme, WorkMode
from agent_exhaust.store import DAY_MS, EventStore, now_ms

TOP_THEMES = 5
MAINTAIN_PACE = "Maintain current pace"

REC_DEBUGGING = "Reduce debugging overhead - consider better error handling or testing"
REC_SHIPPING = "Increase shipping focus - more time building, less researching"
REC_CONTEXT = "Reduce context switching - batch similar tasks together"
REC_COMPLETION = "Code is being written but not shipped - prioritize completion"


def _theme_hours(themes: list[DayTheme], theme: Theme) -> int:
    return next((t.hours for t in themes if Theme(t.theme) == theme), 0)


def _mode_hours(modes: list[tuple[WorkMode, int]], mode: WorkMode) -> int:
    return next((h for m, h in modes if WorkMode(m) == mode), 0)


def ratio_percent(part: int, hours: int) -> int:
    # Halves round up.
    return int(part * 100 / hours + 0.5) if hours > 0 else 0


def summarize_day(hours: int, events: int, themes: list[DayTheme],
                  modes: list[tuple[WorkMode, int]]) -> str:
    top = Theme(themes[0].theme).value if themes else Theme.OPERATIONS.value
    debug_ratio = ratio_percent(_theme_hours(themes, Theme.DEBUGGING), hours)
    shipping_ratio = ratio_percent(_mode_hours(modes, WorkMode.SHIPPING_SPRINT), hours)

    parts = [f"{hours}h active, {events} events. Primary: {top.lower()}."]
    if debug_ratio > 30:
        parts.append(f"High debugging load ({debug_ratio}%).")
    if shipping_ratio < 10 and hours > 8:
        parts.append(f"Low shipping velocity ({shipping_ratio}%).")
    if events > 10000:
        parts.append("High activity day.")
    return " ".join(parts)


def recommend(themes: list[DayTheme], modes: list[tuple[WorkMode, int]], hours: int) -> str:
    if hours <= 0:
        return MAINTAIN_PACE
    debug_hours = _theme_hours(themes, Theme.DEBUGGING)
    coding_hours = _theme_hours(themes, Theme.CODING)
    shipping_hours = _mode_hours(modes, WorkMode.SHIPPING_SPRINT)
    mixed_hours = _mode_hours(modes, WorkMode.MIXED)

    recs = []
    if debug_hours / hours > 0.25:
        recs.append(REC_DEBUGGING)
    if shipping_hours / hours < 0.1 and hours > 8:
        recs.append(REC_SHIPPING)
    if mixed_hours / hours > 0.5:
        recs.append(REC_CONTEXT)
    if coding_hours > 10 and shipping_hours < 2:
        recs.append(REC_COMPLETION)
    return "; ".join(recs) if recs else MAINTAIN_PACE


def build_daily(day: str, hours: int, events: int, themes: list[DayTheme],
                modes: list[tuple[WorkMode, int]], created_at: int) -> DailySynthesis:
    return DailySynthesis(
        date=day,
        synthesis_count=hours,
        top_themes=themes[:TOP_THEMES],
        productivity_summary=summarize_day(hours, events, themes, modes),
        recommendations=recommend(themes, modes, hours),
        created_at=created_at,
    )


class DailySynthesizer:
    """Writes or rewrites one daily synthesis per finished local day."""

    def __init__(self, store: EventStore, min_hours: int = 4, window_days: int = 7,
                 clock: Callable[[], int] = now_ms):
        self.store = store
        self.min_hours = min_hours
        self.window_days = window_days
        self.clock = clock

    def run(self, recompute: bool = False,
            on_day: Callable[[DailySynthesis], None] | None = None) -> SynthesisReport:
        now = self.clock()
        days = self.store.days_to_synthesize(
            since=now - self.window_days * DAY_MS, now=now,
            min_hours=self.min_hours, recompute=recompute,
        )
        written = []
        for day, hours, events in days:
            themes = self.store.day_themes(day)
            modes = self.store.day_modes(day)
            daily = build_daily(day, hours, events, themes, modes, created_at=now)
            self.store.upsert_daily(daily)
            written.append(day)
            if on_day:
                on_day(daily)

        return SynthesisReport(
            candidates=len(days),
            processed=len(written),
            total=self.store.count_daily(),
            keys=written,
        )

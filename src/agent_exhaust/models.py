"""Data models for ingested events, interpretations and syntheses."""

from dataclasses import dataclass, field
from enum import Enum


class Source(str, Enum):
    HEARTBEAT = "heartbeat"
    CRON = "cron"
    SUBAGENT = "subagent"
    USER_INITIATED = "user_initiated"
    UNKNOWN = "unknown"


class Theme(str, Enum):
    # Declaration order is the classification priority order.
    DEBUGGING = "DEBUGGING"
    SHIPPING = "SHIPPING"
    CODING = "CODING"
    RESEARCH = "RESEARCH"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    ANALYSIS = "ANALYSIS"
    COMMUNICATION = "COMMUNICATION"
    MEMORY = "MEMORY"
    PLANNING = "PLANNING"
    OPERATIONS = "OPERATIONS"


class WorkMode(str, Enum):
    SHIPPING_SPRINT = "shipping_sprint"
    RESEARCH_DIVE = "research_dive"
    DEBUGGING_SESSION = "debugging_session"
    PLANNING = "planning"
    MAINTENANCE = "maintenance"
    MIXED = "mixed"


class LineOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    STALE = "stale"
    BLANK = "blank"
    MALFORMED = "malformed"


@dataclass
class Event:
    session_key: str
    timestamp: int
    content_snippet: str
    model: str = "unknown"
    type: str = "unknown"
    status: str = "ok"
    source: Source = Source.UNKNOWN
    id: int | None = None


@dataclass
class Interpretation:
    id: int
    session_key: str
    timestamp: int
    summary: str
    theme: Theme
    model: str = "heuristic-v1"


@dataclass
class ThemeCount:
    theme: Theme
    count: int


@dataclass
class HourlySynthesis:
    hour_bucket: int
    event_count: int
    summary: str
    dominant_theme: Theme
    theme_breakdown: list[ThemeCount]
    work_mode: WorkMode
    created_at: int


@dataclass
class DayTheme:
    theme: Theme
    hours: int
    events: int


@dataclass
class DailySynthesis:
    date: str
    synthesis_count: int
    top_themes: list[DayTheme]
    productivity_summary: str
    recommendations: str
    created_at: int


@dataclass
class IngestReport:
    """Per-line outcomes of one ingestion batch, aggregated into counts."""
    files: int = 0
    errors: int = 0
    counts: dict[LineOutcome, int] = field(default_factory=dict)
    discarded: list[tuple[str, str]] = field(default_factory=list)

    def record(self, outcome: LineOutcome, reason: str | None = None,
               where: str = "") -> None:
        self.counts[outcome] = self.counts.get(outcome, 0) + 1
        if reason:
            self.discarded.append((where, reason))

    @property
    def inserted(self) -> int:
        return self.counts.get(LineOutcome.INSERTED, 0)

    @property
    def skipped(self) -> int:
        return sum(n for o, n in self.counts.items() if o != LineOutcome.INSERTED)

    def merge(self, other: "IngestReport") -> None:
        self.files += other.files
        self.errors += other.errors
        for outcome, n in other.counts.items():
            self.counts[outcome] = self.counts.get(outcome, 0) + n
        self.discarded.extend(other.discarded)


@dataclass
class ClassificationReport:
    total: int
    processed: int
    remaining: int


@dataclass
class SynthesisReport:
    candidates: int
    processed: int
    total: int
    keys: list[int | str] = field(default_factory=list)

"""Heuristic classifier — keyword themes for events, no model calls."""

import re
from typing import Callable

from agent_exhaust.models import ClassificationReport, Event, Interpretation, Theme
from agent_exhaust.store import EventStore

CLASSIFIER_MODEL = "heuristic-v1"
SUMMARY_MAX_CHARS = 200

# One pattern per theme, in taxonomy order. First match wins.
THEME_RULES: list[tuple[Theme, re.Pattern]] = [
    (Theme.DEBUGGING, re.compile(
        r"debug|error|fix|troubleshoot|issue|fail|broken|stack|trace|exception|crash", re.I)),
    (Theme.SHIPPING, re.compile(
        r"ship|deploy|commit|push|release|publish|done|finish|complete|merge|pr\b", re.I)),
    (Theme.CODING, re.compile(
        r"code|script|function|implement|refactor|write|create|build|develop|edit|file", re.I)),
    (Theme.RESEARCH, re.compile(
        r"search|fetch|find|discover|lookup|query|explore|investigate|browse|read", re.I)),
    (Theme.INFRASTRUCTURE, re.compile(
        r"config|gateway|restart|setup|env|plugin|cache|install|server|port|process", re.I)),
    (Theme.ANALYSIS, re.compile(
        r"analy|probab|market|eval|summar|aggregat|calculat|roi|metric|stat|report", re.I)),
    (Theme.COMMUNICATION, re.compile(
        r"msg|notif|telegram|user|comm|reply|tweet|post|email|chat|send|message", re.I)),
    (Theme.MEMORY, re.compile(
        r"memory|remember|recall|context|history|session|persist|store|save", re.I)),
    (Theme.PLANNING, re.compile(
        r"plan|schedule|task|todo|priority|roadmap|next|will|should|goal", re.I)),
    (Theme.OPERATIONS, re.compile(
        r"ops|monitor|health|status|check|run|exec|process|manage", re.I)),
]

DEFAULT_THEME = Theme.OPERATIONS


def classify_snippet(content: str | None) -> Theme:
    if not content:
        return DEFAULT_THEME
    for theme, pattern in THEME_RULES:
        if pattern.search(content):
            return theme
    return DEFAULT_THEME


def summarize(content: str | None, event_type: str | None = None) -> str:
    clean = (content or "")[:SUMMARY_MAX_CHARS].replace("\r", " ").replace("\n", " ").strip()
    if clean:
        return clean
    if event_type and event_type != "unknown":
        return f"{event_type.capitalize()} recorded"
    return "Event recorded"


def interpret(event: Event) -> Interpretation:
    return Interpretation(
        id=event.id,
        session_key=event.session_key,
        timestamp=event.timestamp,
        summary=summarize(event.content_snippet, event.type),
        theme=classify_snippet(event.content_snippet),
        model=CLASSIFIER_MODEL,
    )


class HeuristicClassifier:
    """Interprets every event that has no interpretation yet."""

    def __init__(self, store: EventStore, batch_size: int = 1000):
        self.store = store
        self.batch_size = max(1, batch_size)

    def run(self, on_batch: Callable[[int, int], None] | None = None) -> ClassificationReport:
        """Classify in batches, one transaction each.

        `on_batch(processed, total)` is called after every committed batch.
        Store errors propagate; a rerun resumes from what is still missing.
        """
        events = self.store.unclassified_events()
        total = len(events)
        processed = 0

        for start in range(0, total, self.batch_size):
            batch = [interpret(e) for e in events[start:start + self.batch_size]]
            self.store.insert_interpretations(batch)
            processed += len(batch)
            if on_batch:
                on_batch(processed, total)

        return ClassificationReport(
            total=total,
            processed=processed,
            remaining=self.store.count_unclassified(),
        )

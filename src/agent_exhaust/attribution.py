"""Source attribution: which trigger produced a session log line."""

from dataclasses import dataclass
from typing import Callable

from agent_exhaust.models import Source

HEARTBEAT_MARKERS = ("read heartbeat.md if it exists", "heartbeat_ok")
CRON_TAG = "[cron:"
SUBAGENT_TAG = "[subagent:"
CRON_MARKER = ":cron:"
SUBAGENT_MARKER = ":subagent:"


@dataclass(frozen=True)
class AttributionContext:
    session_key: str
    record: dict
    text: str
    qualified_id: str | None = None
    operator_id: str | None = None
    main_session: str = "agent:main:main"


def _is_heartbeat(ctx: AttributionContext) -> bool:
    lower = ctx.text.lower()
    return any(marker in lower for marker in HEARTBEAT_MARKERS)


def _is_user_message(ctx: AttributionContext) -> bool:
    message = ctx.record.get("message")
    return (ctx.record.get("type") == "message"
            and isinstance(message, dict)
            and message.get("role") == "user")


# Evaluated top to bottom; the first matching rule decides the source.
SOURCE_RULES: list[tuple[str, Callable[[AttributionContext], bool], Source]] = [
    ("heartbeat", _is_heartbeat, Source.HEARTBEAT),
    ("cron_tag", lambda ctx: CRON_TAG in ctx.text, Source.CRON),
    ("subagent_tag", lambda ctx: SUBAGENT_TAG in ctx.text, Source.SUBAGENT),
    ("operator", lambda ctx: bool(ctx.operator_id) and ctx.operator_id in ctx.text,
     Source.USER_INITIATED),
    ("index_main", lambda ctx: ctx.qualified_id is not None
     and ctx.qualified_id == ctx.main_session, Source.USER_INITIATED),
    ("index_cron", lambda ctx: ctx.qualified_id is not None
     and CRON_MARKER in ctx.qualified_id, Source.CRON),
    ("index_subagent", lambda ctx: ctx.qualified_id is not None
     and SUBAGENT_MARKER in ctx.qualified_id, Source.SUBAGENT),
    ("user_message", _is_user_message, Source.USER_INITIATED),
]


def match_rule(ctx: AttributionContext) -> tuple[str, Source]:
    """Return (rule name, source) of the first matching rule."""
    for name, predicate, source in SOURCE_RULES:
        if predicate(ctx):
            return name, source
    return "default", Source.UNKNOWN


def attribute(ctx: AttributionContext) -> Source:
    return match_rule(ctx)[1]

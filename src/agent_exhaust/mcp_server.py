"""Agent Exhaust MCP server — read-only access to events and syntheses."""

import json

from mcp.server.fastmcp import FastMCP

from agent_exhaust.config import Settings
from agent_exhaust.formatting import (
    format_days_compact, format_events_compact, format_json,
    format_syntheses_compact,
)
from agent_exhaust.query import QueryEngine
from agent_exhaust.store import EventStore

mcp = FastMCP("agent-exhaust", instructions=(
    "Agent Exhaust records what agent sessions did. Use 'stats' for totals, "
    "'syntheses' for hour-by-hour themes and work modes, and 'daily' for "
    "productivity summaries and recommendations. All tools are read-only."
))


def _get_store() -> EventStore:
    """Get EventStore from EXHAUST_DB_PATH (or the default location)."""
    db_path = Settings.from_env().db_path
    if not db_path.exists():
        raise FileNotFoundError(
            f"No event store at {db_path}. Run 'agent-exhaust init' first."
        )
    return EventStore(db_path)


@mcp.tool()
def stats() -> str:
    """Totals: events, hourly syntheses, and events in the last 24 hours."""
    store = _get_store()
    try:
        return json.dumps(QueryEngine(store).stats(), indent=2)
    finally:
        store.close()


@mcp.tool()
def events(since: str | None = None, limit: int = 100, format: str = "compact") -> str:
    """Recent ingested events, newest first.

    Args:
        since: Time filter: "24h", "7d", ISO date, or epoch milliseconds
        limit: Maximum results (default 100)
        format: Output format: "compact" or "json"
    """
    store = _get_store()
    try:
        results = QueryEngine(store).events(since=since, limit=limit)
        if format == "json":
            return format_json(results)
        return format_events_compact(results)
    finally:
        store.close()


@mcp.tool()
def syntheses(since: str = "7d", format: str = "compact") -> str:
    """Hourly syntheses (dominant theme, work mode, breakdown), oldest first.

    Args:
        since: Time filter: "24h", "7d", ISO date, or epoch milliseconds
        format: Output format: "compact" or "json"
    """
    store = _get_store()
    try:
        results = QueryEngine(store).syntheses(since=since)
        if format == "json":
            return format_json(results)
        return format_syntheses_compact(results)
    finally:
        store.close()


@mcp.tool()
def daily(limit: int = 7, format: str = "compact") -> str:
    """Daily productivity summaries and recommendations, most recent first."""
    store = _get_store()
    try:
        results = QueryEngine(store).daily(limit=limit)
        if format == "json":
            return format_json(results)
        return format_days_compact(results)
    finally:
        store.close()


def main():
    """Entry point for agent-exhaust-mcp console script."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

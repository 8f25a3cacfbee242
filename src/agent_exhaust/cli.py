"""Agent Exhaust CLI — see what your agent swarm actually did."""

import json
import logging
import sqlite3
import sys
from datetime import datetime, timezone
from pathlib import Path

import click

from agent_exhaust.classifier import HeuristicClassifier
from agent_exhaust.config import Settings
from agent_exhaust.daily import DailySynthesizer
from agent_exhaust.formatting import (
    format_days_compact, format_events_compact, format_json,
    format_stats_compact, format_syntheses_compact, iso,
)
from agent_exhaust.hourly import HourlySynthesizer
from agent_exhaust.query import QueryEngine
from agent_exhaust.store import EventStore
from agent_exhaust.watcher import SessionWatcher


def _open_store(settings: Settings) -> EventStore:
    """Get the EventStore, refusing to create one implicitly."""
    db_path = settings.db_path
    if not db_path.exists():
        click.echo(f"Error: no event store at {db_path}", err=True)
        click.echo("Run 'agent-exhaust init' first.", err=True)
        sys.exit(1)
    return EventStore(db_path)


def _create_store(settings: Settings) -> EventStore:
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    store = EventStore(settings.db_path)
    store.initialize()
    return store


def _fail(e: Exception):
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


@click.group()
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None,
              help="Event store path (env: EXHAUST_DB_PATH)")
@click.option("--sessions-dir", type=click.Path(path_type=Path), default=None,
              help="Session log directory (env: EXHAUST_SESSIONS_DIR)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, db_path, sessions_dir, verbose):
    """Agent Exhaust — cognitive telemetry for agent sessions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["settings"] = Settings.from_env().with_overrides(
        db_path=db_path, sessions_dir=sessions_dir,
    )


@cli.command()
@click.pass_context
def init(ctx):
    """Create the event store."""
    settings = ctx.obj["settings"]
    if settings.db_path.exists():
        click.echo(f"Event store already exists at {settings.db_path}")
        return
    store = _create_store(settings)
    store.set_meta("initialized_at", datetime.now(timezone.utc).isoformat())
    store.close()
    click.echo(f"Initialized event store at {settings.db_path}")


@cli.command()
@click.pass_context
def watch(ctx):
    """Watch session files and ingest events until interrupted."""
    settings = ctx.obj["settings"]
    if not settings.sessions_dir.is_dir():
        _fail(ValueError(f"sessions directory not found: {settings.sessions_dir}"))

    store = _create_store(settings)
    watcher = SessionWatcher(store, settings)
    click.echo(f"Watching {settings.sessions_dir} for agent exhaust...")
    try:
        watcher.run()
    except KeyboardInterrupt:
        click.echo("Stopped.")
    finally:
        store.close()


@cli.command()
@click.option("--batch-size", type=int, default=None, help="Events per transaction")
@click.pass_context
def classify(ctx, batch_size):
    """Fast-classify events that have no interpretation (heuristic)."""
    settings = ctx.obj["settings"]
    store = _open_store(settings)

    def progress(processed, total):
        click.echo(f"[Classify] Processed {processed}/{total} ({processed / total * 100:.1f}%)")

    try:
        classifier = HeuristicClassifier(store, batch_size=batch_size or settings.batch_size)
        click.echo("[Classify] Starting heuristic classification...")
        report = classifier.run(on_batch=progress)
        click.echo(f"[Classify] Complete! Classified {report.processed} of {report.total} events")
        click.echo(f"[Classify] Remaining uninterpreted: {report.remaining}")
    except sqlite3.Error as e:
        _fail(e)
    finally:
        store.close()


@cli.command()
@click.pass_context
def synthesize(ctx):
    """Generate missing hourly syntheses."""
    settings = ctx.obj["settings"]
    store = _open_store(settings)

    try:
        synth = HourlySynthesizer(
            store, min_events=settings.min_hourly_events,
            window_days=settings.synthesis_window_days,
        )
        report = synth.run(
            on_progress=lambda done, total: click.echo(f"[Synthesize] Processed {done}/{total}")
        )
        click.echo(f"[Synthesize] Complete! Generated {len(report.keys)} of {report.candidates} hours")
        click.echo(f"[Synthesize] Total syntheses now: {report.total}")
    except sqlite3.Error as e:
        _fail(e)
    finally:
        store.close()


@cli.command()
@click.option("--recompute", is_flag=True, help="Rewrite every eligible day")
@click.pass_context
def daily(ctx, recompute):
    """Generate daily pattern analysis from hourly syntheses."""
    settings = ctx.obj["settings"]
    store = _open_store(settings)

    def show(day):
        click.echo(f"[Daily] {day.date}: {day.synthesis_count}h — {day.recommendations}")

    try:
        synth = DailySynthesizer(
            store, min_hours=settings.min_daily_hours,
            window_days=settings.synthesis_window_days,
        )
        report = synth.run(recompute=recompute, on_day=show)
        click.echo(f"[Daily] Complete! Wrote {report.processed} days")
        recent = store.recent_daily(7)
        if recent:
            click.echo("\n=== DAILY SYNTHESES ===\n")
            click.echo(format_days_compact(recent))
    except sqlite3.Error as e:
        _fail(e)
    finally:
        store.close()


@cli.command()
@click.pass_context
def run(ctx):
    """Classify, then synthesize hours and days."""
    ctx.invoke(classify)
    ctx.invoke(synthesize)
    ctx.invoke(daily)


# Legacy command names.
cli.add_command(watch, name="ingest")
cli.add_command(classify, name="backfill")
cli.add_command(classify, name="interpret")
cli.add_command(synthesize, name="sync")
cli.add_command(daily, name="longterm")


# --- Read commands ---

@cli.command()
@click.option("--format", "-f", "fmt", default="compact",
              type=click.Choice(["compact", "json"]))
@click.pass_context
def status(ctx, fmt):
    """Show event, synthesis and 24h totals."""
    store = _open_store(ctx.obj["settings"])
    try:
        stats = QueryEngine(store).stats()
        stats["unclassified"] = store.count_unclassified()
        stats["daily_syntheses"] = store.count_daily()
        stats["last_activity"] = store.last_activity()
    finally:
        store.close()

    if fmt == "json":
        click.echo(json.dumps(stats, indent=2))
    else:
        click.echo(format_stats_compact(stats))
        click.echo(f"Unclassified:  {stats['unclassified']}")
        click.echo(f"Daily:         {stats['daily_syntheses']}")
        click.echo(f"Last activity: {iso(stats['last_activity'])}")


@cli.command()
@click.option("--since", default=None, help="Time filter: 24h, 7d, ISO date or epoch ms")
@click.option("--limit", "-n", default=50, help="Max results")
@click.option("--format", "-f", "fmt", default="compact",
              type=click.Choice(["compact", "json"]))
@click.pass_context
def events(ctx, since, limit, fmt):
    """List recent events, newest first."""
    store = _open_store(ctx.obj["settings"])
    try:
        results = QueryEngine(store).events(since=since, limit=limit)
    except ValueError as e:
        _fail(e)
    finally:
        store.close()

    click.echo(format_json(results) if fmt == "json" else format_events_compact(results))


@cli.command()
@click.option("--since", default="7d", help="Time filter: 24h, 7d, ISO date or epoch ms")
@click.option("--format", "-f", "fmt", default="compact",
              type=click.Choice(["compact", "json"]))
@click.pass_context
def syntheses(ctx, since, fmt):
    """List hourly syntheses, oldest first."""
    store = _open_store(ctx.obj["settings"])
    try:
        results = QueryEngine(store).syntheses(since=since)
    except ValueError as e:
        _fail(e)
    finally:
        store.close()

    click.echo(format_json(results) if fmt == "json" else format_syntheses_compact(results))


@cli.command()
@click.option("--limit", "-n", default=7, help="Max days")
@click.option("--format", "-f", "fmt", default="compact",
              type=click.Choice(["compact", "json"]))
@click.pass_context
def days(ctx, limit, fmt):
    """List daily syntheses, most recent first."""
    store = _open_store(ctx.obj["settings"])
    try:
        results = QueryEngine(store).daily(limit=limit)
    finally:
        store.close()

    click.echo(format_json(results) if fmt == "json" else format_days_compact(results))

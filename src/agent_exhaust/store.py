"""EventStore — SQLite persistence for events, interpretations and syntheses."""

import json
import logging
import sqlite3
import time
from pathlib import Path

from agent_exhaust.models import (
    DailySynthesis, DayTheme, Event, HourlySynthesis, Interpretation,
    Source, Theme, ThemeCount, WorkMode,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

HOUR_MS = 3600 * 1000
DAY_MS = 24 * HOUR_MS

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS events (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    session_key     TEXT NOT NULL,
    timestamp       INTEGER NOT NULL,
    model           TEXT NOT NULL DEFAULT 'unknown',
    type            TEXT NOT NULL DEFAULT 'unknown',
    content_snippet TEXT NOT NULL DEFAULT ''
                    CHECK(length(content_snippet) <= 1000),
    status          TEXT NOT NULL DEFAULT 'ok',
    source          TEXT NOT NULL DEFAULT 'unknown'
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_events_session_ts ON events(session_key, timestamp);
CREATE INDEX IF NOT EXISTS idx_events_timestamp        ON events(timestamp);

CREATE TABLE IF NOT EXISTS interpretations (
    id          INTEGER PRIMARY KEY REFERENCES events(id),
    session_key TEXT NOT NULL,
    timestamp   INTEGER NOT NULL,
    summary     TEXT NOT NULL,
    theme       TEXT NOT NULL,
    model       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS syntheses (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    hour_bucket     INTEGER NOT NULL UNIQUE,
    event_count     INTEGER NOT NULL,
    summary         TEXT NOT NULL,
    dominant_theme  TEXT NOT NULL,
    theme_breakdown TEXT NOT NULL,
    work_mode       TEXT NOT NULL,
    created_at      INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS daily_syntheses (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    date                 TEXT UNIQUE,
    synthesis_count      INTEGER,
    top_themes           TEXT,
    productivity_summary TEXT,
    recommendations      TEXT,
    created_at           INTEGER
);

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);
"""

_LOCAL_DAY = "date(hour_bucket / 1000, 'unixepoch', 'localtime')"


def now_ms() -> int:
    return int(time.time() * 1000)


class EventStore:
    """SQLite-backed store shared by every pipeline stage."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._migrated = False

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.row_factory = sqlite3.Row
        if not self._migrated:
            self._migrate()
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def initialize(self) -> None:
        """Create tables and uniqueness indexes."""
        self.conn.executescript(SCHEMA_SQL)
        if self.get_meta("schema_version") is None:
            self.set_meta("schema_version", str(SCHEMA_VERSION))

    def _migrate(self) -> None:
        """Bring a v1 database (no source column, no dedup index) up to date."""
        self._migrated = True
        tables = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='meta'"
        ).fetchone()
        if not tables:
            return  # DB not yet initialized, nothing to migrate

        current = self.get_meta("schema_version")
        version = int(current) if current else 1

        if version < 2:
            columns = {
                row[1] for row in
                self._conn.execute("PRAGMA table_info(events)").fetchall()
            }
            with self._conn:
                if "source" not in columns:
                    self._conn.execute(
                        "ALTER TABLE events ADD COLUMN source TEXT NOT NULL DEFAULT 'unknown'"
                    )
                # Keep the earliest row of each (session_key, timestamp) pair.
                self._conn.execute(
                    "DELETE FROM interpretations WHERE id NOT IN ("
                    "SELECT MIN(id) FROM events GROUP BY session_key, timestamp)"
                )
                removed = self._conn.execute(
                    "DELETE FROM events WHERE id NOT IN ("
                    "SELECT MIN(id) FROM events GROUP BY session_key, timestamp)"
                ).rowcount
                self._conn.execute(
                    "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_session_ts "
                    "ON events(session_key, timestamp)"
                )
            if removed:
                logger.warning("Schema migration dropped %d duplicate events", removed)
            self.set_meta("schema_version", str(SCHEMA_VERSION))

    # --- row conversion ---

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> Event:
        return Event(
            id=row["id"],
            session_key=row["session_key"],
            timestamp=row["timestamp"],
            model=row["model"],
            type=row["type"],
            content_snippet=row["content_snippet"],
            status=row["status"],
            source=Source(row["source"]),
        )

    @staticmethod
    def _row_to_hourly(row: sqlite3.Row) -> HourlySynthesis:
        breakdown = json.loads(row["theme_breakdown"] or "[]")
        return HourlySynthesis(
            hour_bucket=row["hour_bucket"],
            event_count=row["event_count"],
            summary=row["summary"],
            dominant_theme=Theme(row["dominant_theme"]),
            theme_breakdown=[ThemeCount(Theme(t["theme"]), t["count"]) for t in breakdown],
            work_mode=WorkMode(row["work_mode"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_daily(row: sqlite3.Row) -> DailySynthesis:
        top = json.loads(row["top_themes"] or "[]")
        return DailySynthesis(
            date=row["date"],
            synthesis_count=row["synthesis_count"],
            top_themes=[DayTheme(Theme(t["theme"]), t["hours"], t["events"]) for t in top],
            productivity_summary=row["productivity_summary"],
            recommendations=row["recommendations"],
            created_at=row["created_at"],
        )

    # --- events ---

    def has_event(self, session_key: str, timestamp: int) -> bool:
        row = self.conn.execute(
            "SELECT id FROM events WHERE session_key = ? AND timestamp = ?",
            (session_key, timestamp),
        ).fetchone()
        return row is not None

    def insert_events(self, events: list[Event]) -> list[Event]:
        """Insert a batch in one transaction. Returns the events actually stored.

        Rows colliding on (session_key, timestamp) are ignored.
        """
        inserted = []
        with self.conn:
            for e in events:
                cur = self.conn.execute(
                    "INSERT OR IGNORE INTO events "
                    "(session_key, timestamp, model, type, content_snippet, status, source) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (e.session_key, e.timestamp, e.model, e.type,
                     e.content_snippet, e.status, Source(e.source).value),
                )
                if cur.rowcount:
                    e.id = cur.lastrowid
                    inserted.append(e)
        return inserted

    def recent_events(self, since: int | None = None, limit: int = 1000) -> list[Event]:
        """Events newer than `since`, newest first."""
        sql = "SELECT * FROM events"
        params: list = []
        if since is not None:
            sql += " WHERE timestamp > ?"
            params.append(since)
        sql += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)
        rows = self.conn.execute(sql, params).fetchall()
        return [self._row_to_event(r) for r in rows]

    def count(self) -> int:
        """Total event count."""
        row = self.conn.execute("SELECT COUNT(*) as cnt FROM events").fetchone()
        return row["cnt"]

    def count_since(self, since: int) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) as cnt FROM events WHERE timestamp > ?", (since,)
        ).fetchone()
        return row["cnt"]

    def last_activity(self) -> int | None:
        """Timestamp of most recent event."""
        row = self.conn.execute("SELECT MAX(timestamp) as ts FROM events").fetchone()
        return row["ts"]

    # --- interpretations ---

    def unclassified_events(self) -> list[Event]:
        """Events with no interpretation, oldest first."""
        rows = self.conn.execute(
            "SELECT e.* FROM events e "
            "LEFT JOIN interpretations i ON i.id = e.id "
            "WHERE i.id IS NULL "
            "ORDER BY e.timestamp ASC"
        ).fetchall()
        return [self._row_to_event(r) for r in rows]

    def count_unclassified(self) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) as cnt FROM events e "
            "LEFT JOIN interpretations i ON i.id = e.id "
            "WHERE i.id IS NULL"
        ).fetchone()
        return row["cnt"]

    def insert_interpretations(self, batch: list[Interpretation]) -> int:
        """Insert-if-absent in one transaction. Returns rows written."""
        written = 0
        with self.conn:
            for interp in batch:
                cur = self.conn.execute(
                    "INSERT OR IGNORE INTO interpretations "
                    "(id, session_key, timestamp, summary, theme, model) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (interp.id, interp.session_key, interp.timestamp,
                     interp.summary, Theme(interp.theme).value, interp.model),
                )
                written += cur.rowcount
        return written

    def get_interpretation(self, event_id: int) -> Interpretation | None:
        row = self.conn.execute(
            "SELECT * FROM interpretations WHERE id = ?", (event_id,)
        ).fetchone()
        if not row:
            return None
        return Interpretation(
            id=row["id"], session_key=row["session_key"],
            timestamp=row["timestamp"], summary=row["summary"],
            theme=Theme(row["theme"]), model=row["model"],
        )

    def count_interpretations(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) as cnt FROM interpretations").fetchone()
        return row["cnt"]

    # --- hourly syntheses ---

    def unsynthesized_hours(self, since: int, until: int,
                            min_events: int) -> list[tuple[int, int]]:
        """(hour_bucket, event_count) for classified hours in [since, until)."""
        rows = self.conn.execute(
            f"SELECT (e.timestamp / {HOUR_MS}) * {HOUR_MS} AS hour_bucket, "
            "COUNT(*) AS event_count "
            "FROM events e JOIN interpretations i ON e.id = i.id "
            "WHERE e.timestamp >= ? AND e.timestamp < ? "
            f"AND (e.timestamp / {HOUR_MS}) * {HOUR_MS} NOT IN (SELECT hour_bucket FROM syntheses) "
            "GROUP BY hour_bucket "
            "HAVING COUNT(*) >= ? "
            "ORDER BY hour_bucket ASC",
            (since, until, min_events),
        ).fetchall()
        return [(r["hour_bucket"], r["event_count"]) for r in rows]

    def theme_counts(self, start: int, end: int) -> list[ThemeCount]:
        """Classified events per theme in [start, end), most frequent first."""
        rows = self.conn.execute(
            "SELECT i.theme, COUNT(*) AS count "
            "FROM events e JOIN interpretations i ON e.id = i.id "
            "WHERE e.timestamp >= ? AND e.timestamp < ? "
            "GROUP BY i.theme "
            "ORDER BY count DESC",
            (start, end),
        ).fetchall()
        return [ThemeCount(Theme(r["theme"]), r["count"]) for r in rows]

    def insert_hourly(self, synthesis: HourlySynthesis) -> bool:
        """Insert-if-absent. Returns True when the row was written."""
        breakdown = json.dumps([
            {"theme": Theme(t.theme).value, "count": t.count}
            for t in synthesis.theme_breakdown
        ])
        with self.conn:
            cur = self.conn.execute(
                "INSERT OR IGNORE INTO syntheses "
                "(hour_bucket, event_count, summary, dominant_theme, theme_breakdown, work_mode, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (synthesis.hour_bucket, synthesis.event_count, synthesis.summary,
                 Theme(synthesis.dominant_theme).value, breakdown,
                 WorkMode(synthesis.work_mode).value, synthesis.created_at),
            )
        return cur.rowcount > 0

    def get_hourly(self, hour_bucket: int) -> HourlySynthesis | None:
        row = self.conn.execute(
            "SELECT * FROM syntheses WHERE hour_bucket = ?", (hour_bucket,)
        ).fetchone()
        return self._row_to_hourly(row) if row else None

    def syntheses_since(self, since: int) -> list[HourlySynthesis]:
        """Hourly syntheses after `since`, oldest bucket first."""
        rows = self.conn.execute(
            "SELECT * FROM syntheses WHERE hour_bucket > ? ORDER BY hour_bucket ASC",
            (since,),
        ).fetchall()
        return [self._row_to_hourly(r) for r in rows]

    def count_syntheses(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) as cnt FROM syntheses").fetchone()
        return row["cnt"]

    # --- daily syntheses ---

    def days_to_synthesize(self, since: int, now: int, min_hours: int,
                           recompute: bool = False) -> list[tuple[str, int, int]]:
        """(day, hours, events) for finished local days needing a daily row.

        A day needs one when it has none yet, when its hourly row count
        changed since it was written, or when `recompute` is set.
        """
        rows = self.conn.execute(
            "SELECT h.day, h.hours, h.events FROM ("
            f"  SELECT {_LOCAL_DAY} AS day, COUNT(*) AS hours, SUM(event_count) AS events"
            "   FROM syntheses GROUP BY day"
            ") h "
            "LEFT JOIN daily_syntheses d ON d.date = h.day "
            "WHERE h.hours >= ? "
            "AND h.day >= date(? / 1000, 'unixepoch', 'localtime') "
            "AND h.day < date(? / 1000, 'unixepoch', 'localtime') "
            "AND (? OR d.date IS NULL OR d.synthesis_count != h.hours) "
            "ORDER BY h.day ASC",
            (min_hours, since, now, 1 if recompute else 0),
        ).fetchall()
        return [(r["day"], r["hours"], r["events"]) for r in rows]

    def day_themes(self, day: str) -> list[DayTheme]:
        """Hours and events per dominant theme for a local day, by events desc."""
        rows = self.conn.execute(
            "SELECT dominant_theme, COUNT(*) AS hours, SUM(event_count) AS events "
            f"FROM syntheses WHERE {_LOCAL_DAY} = ? "
            "GROUP BY dominant_theme "
            "ORDER BY events DESC, hours DESC",
            (day,),
        ).fetchall()
        return [DayTheme(Theme(r["dominant_theme"]), r["hours"], r["events"]) for r in rows]

    def day_modes(self, day: str) -> list[tuple[WorkMode, int]]:
        """Hours per work mode for a local day, by hours desc."""
        rows = self.conn.execute(
            "SELECT work_mode, COUNT(*) AS hours "
            f"FROM syntheses WHERE {_LOCAL_DAY} = ? "
            "GROUP BY work_mode "
            "ORDER BY hours DESC",
            (day,),
        ).fetchall()
        return [(WorkMode(r["work_mode"]), r["hours"]) for r in rows]

    def upsert_daily(self, daily: DailySynthesis) -> None:
        top = json.dumps([
            {"theme": Theme(t.theme).value, "hours": t.hours, "events": t.events}
            for t in daily.top_themes
        ])
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO daily_syntheses "
                "(date, synthesis_count, top_themes, productivity_summary, recommendations, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (daily.date, daily.synthesis_count, top, daily.productivity_summary,
                 daily.recommendations, daily.created_at),
            )

    def get_daily(self, day: str) -> DailySynthesis | None:
        row = self.conn.execute(
            "SELECT * FROM daily_syntheses WHERE date = ?", (day,)
        ).fetchone()
        return self._row_to_daily(row) if row else None

    def recent_daily(self, limit: int = 7) -> list[DailySynthesis]:
        rows = self.conn.execute(
            "SELECT * FROM daily_syntheses ORDER BY date DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_daily(r) for r in rows]

    def count_daily(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) as cnt FROM daily_syntheses").fetchone()
        return row["cnt"]

    # --- aggregate counts ---

    def stats(self, now: int | None = None) -> dict:
        """Totals served to dashboards: events, syntheses, trailing-24h events."""
        now = now_ms() if now is None else now
        return {
            "total_events": self.count(),
            "total_syntheses": self.count_syntheses(),
            "recent_events_24h": self.count_since(now - DAY_MS),
            "timestamp": now,
        }

    # --- meta ---

    def get_meta(self, key: str) -> str | None:
        """Read from meta table."""
        row = self.conn.execute(
            "SELECT value FROM meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        """Write to meta table (upsert)."""
        with self.conn:
            self.conn.execute(
                "INSERT INTO meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

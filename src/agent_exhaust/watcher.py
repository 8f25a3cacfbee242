"""Session directory watcher — tails per-session JSONL logs into the EventStore."""

import json
import logging
import math
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from watchfiles import Change, watch

from agent_exhaust.attribution import AttributionContext, attribute
from agent_exhaust.config import Settings
from agent_exhaust.models import Event, IngestReport, LineOutcome
from agent_exhaust.sessions import SessionIndex
from agent_exhaust.store import HOUR_MS, EventStore, now_ms

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".jsonl"
SNIPPET_MAX_CHARS = 1000
TAIL_CHUNK_BYTES = 8192
# SQLite INTEGER is a signed 64-bit value.
MAX_TIMESTAMP_MS = 2 ** 63 - 1


class MalformedLine(ValueError):
    """A log line that cannot become an Event."""


def parse_timestamp(value) -> int | None:
    """Epoch ms from an ISO-8601 string or epoch seconds/milliseconds."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        # Values this large are already milliseconds.
        ms = int(value) if value > 2e10 else int(round(value * 1000))
        return ms if abs(ms) <= MAX_TIMESTAMP_MS else None
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(round(dt.timestamp() * 1000))
    return None


def read_last_line(path: Path, chunk_size: int = TAIL_CHUNK_BYTES) -> str:
    """Last non-empty line of a file, read backwards from the end."""
    with path.open("rb") as f:
        f.seek(0, os.SEEK_END)
        pos = f.tell()
        buf = b""
        while pos > 0:
            step = min(chunk_size, pos)
            pos -= step
            f.seek(pos)
            buf = f.read(step) + buf
            stripped = buf.rstrip()
            if b"\n" in stripped:
                return stripped.rsplit(b"\n", 1)[1].decode("utf-8", errors="replace").strip()
        return buf.strip().decode("utf-8", errors="replace")


def _record_model(record: dict) -> str:
    message = record.get("message")
    nested = message.get("model") if isinstance(message, dict) else None
    return str(record.get("model") or nested or "unknown")


class SessionWatcher:
    """Keeps the EventStore in step with a directory of session logs."""

    def __init__(self, store: EventStore, settings: Settings,
                 index: SessionIndex | None = None,
                 clock: Callable[[], int] = now_ms):
        self.store = store
        self.settings = settings
        self.index = index or SessionIndex(settings.session_index_path)
        self.clock = clock

    @property
    def sessions_dir(self) -> Path:
        return self.settings.sessions_dir

    def _cutoff(self) -> int:
        return self.clock() - self.settings.catchup_hours * HOUR_MS

    def build_event(self, line: str, session_key: str, mtime_ms: int,
                    cutoff: int | None = None) -> Event | None:
        """Turn one log line into an Event.

        Returns None for lines older than `cutoff`. Raises MalformedLine for
        anything that is not a JSON object with a usable timestamp.
        """
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedLine(f"invalid JSON: {e.msg}") from e
        if not isinstance(record, dict):
            raise MalformedLine("record is not an object")

        raw_ts = record.get("timestamp")
        if raw_ts is None:
            timestamp = mtime_ms
        else:
            timestamp = parse_timestamp(raw_ts)
            if timestamp is None:
                raise MalformedLine(f"unparseable timestamp {raw_ts!r}")

        if cutoff is not None and timestamp < cutoff:
            return None

        snippet = line[:SNIPPET_MAX_CHARS]
        ctx = AttributionContext(
            session_key=session_key,
            record=record,
            text=snippet,
            qualified_id=self.index.lookup(session_key),
            operator_id=self.settings.operator_id,
            main_session=self.settings.main_session,
        )
        return Event(
            session_key=session_key,
            timestamp=timestamp,
            model=_record_model(record),
            type=str(record.get("type") or "unknown"),
            content_snippet=snippet,
            status=str(record.get("status") or "ok"),
            source=attribute(ctx),
        )

    def process_file(self, path: Path, initial: bool = False) -> IngestReport:
        """Ingest a session log.

        With `initial` every line inside the catch-up window is considered;
        otherwise only the last line, since logs are append-only.
        """
        report = IngestReport()
        if path.suffix != LOG_SUFFIX:
            return report

        try:
            mtime_ms = int(path.stat().st_mtime * 1000)
            if initial:
                lines = path.read_text(encoding="utf-8", errors="replace").strip().split("\n")
            else:
                lines = [read_last_line(path)]
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            return report

        report.files = 1
        session_key = path.stem
        cutoff = self._cutoff() if initial else None
        candidates: list[Event] = []

        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line:
                report.record(LineOutcome.BLANK)
                continue
            try:
                event = self.build_event(line, session_key, mtime_ms, cutoff)
            except MalformedLine as e:
                where = f"{path.name}:{lineno}"
                logger.debug("Discarding %s: %s", where, e)
                report.record(LineOutcome.MALFORMED, str(e), where=where)
                continue
            if event is None:
                report.record(LineOutcome.STALE)
                continue
            candidates.append(event)

        try:
            fresh = [e for e in candidates
                     if not self.store.has_event(session_key, e.timestamp)]
            inserted = self.store.insert_events(fresh) if fresh else []
        except sqlite3.Error as e:
            # The batch rolled back; the next change to this file retries it.
            logger.warning("Store error while ingesting %s: %s", path, e)
            report.errors += 1
            return report

        for _ in range(len(candidates) - len(fresh)):
            report.record(LineOutcome.DUPLICATE)
        for _ in inserted:
            report.record(LineOutcome.INSERTED)
        # Same timestamp twice within the batch
        for _ in range(len(fresh) - len(inserted)):
            report.record(LineOutcome.DUPLICATE)
        return report

    def scan_existing(self) -> IngestReport:
        """Catch up on every log already in the sessions directory."""
        report = IngestReport()
        try:
            paths = sorted(self.sessions_dir.glob(f"*{LOG_SUFFIX}"))
        except OSError as e:
            logger.warning("Could not list %s: %s", self.sessions_dir, e)
            return report
        for path in paths:
            report.merge(self.process_file(path, initial=True))
        return report

    def handle_changes(self, changes: Iterable[tuple[Change, str]]) -> IngestReport:
        """Apply one batch of file-system notifications."""
        report = IngestReport()
        pending: dict[Path, Change] = {}
        for change, raw_path in changes:
            path = Path(raw_path)
            if path.name == self.settings.session_index_name:
                if change != Change.deleted:
                    self.index.reload()
                continue
            if path.suffix != LOG_SUFFIX or change == Change.deleted:
                continue
            if pending.get(path) != Change.added:
                pending[path] = change

        for path in sorted(pending):
            report.merge(self.process_file(path, initial=pending[path] == Change.added))
        return report

    def run(self, stop_event=None) -> IngestReport:
        """Catch up, then follow the directory until stopped or interrupted."""
        self.index.reload()
        report = self.scan_existing()
        logger.info(
            "Watching %s: %d files scanned, %d events ingested, %d lines skipped",
            self.sessions_dir, report.files, report.inserted, report.skipped,
        )
        for changes in watch(self.sessions_dir, recursive=False, stop_event=stop_event):
            report.merge(self.handle_changes(changes))
        return report

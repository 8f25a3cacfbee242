"""Reloadable index of short session keys to fully-qualified session ids."""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class SessionIndex:
    """Lookup backed by the side index document (sessions.json).

    The document maps qualified keys to session records::

        {"agent:main:main": {"sessionId": "3f2a...", ...}, ...}

    `reload()` builds a complete mapping before swapping it in, so readers
    only ever observe the previous map or the new one.
    """

    def __init__(self, path: Path):
        self.path = path
        self._by_session: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._by_session)

    def lookup(self, session_key: str) -> str | None:
        return self._by_session.get(session_key)

    def reload(self) -> bool:
        """Re-read the index. On failure the previous mapping is kept."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.debug("Session index %s not found", self.path)
            return False
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load session index %s: %s", self.path, e)
            return False

        if not isinstance(data, dict):
            logger.warning("Session index %s is not an object; keeping previous map", self.path)
            return False

        mapping = {}
        for qualified, record in data.items():
            if isinstance(record, dict) and record.get("sessionId"):
                mapping[str(record["sessionId"])] = qualified
        self._by_session = mapping
        return True

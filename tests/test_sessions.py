"""Tests for the reloadable session index."""

import json

from agent_exhaust.sessions import SessionIndex


def write_index(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


class TestSessionIndex:

    def test_lookup_by_session_id(self, tmp_path):
        path = tmp_path / "sessions.json"
        write_index(path, {
            "agent:main:main": {"sessionId": "abc", "updatedAt": 1},
            "agent:main:cron:nightly": {"sessionId": "def"},
        })
        index = SessionIndex(path)
        assert index.reload() is True
        assert index.lookup("abc") == "agent:main:main"
        assert index.lookup("def") == "agent:main:cron:nightly"
        assert index.lookup("zzz") is None
        assert len(index) == 2

    def test_entries_without_session_id_skipped(self, tmp_path):
        path = tmp_path / "sessions.json"
        write_index(path, {"agent:main:main": {}, "odd": "not-a-record"})
        index = SessionIndex(path)
        assert index.reload() is True
        assert len(index) == 0

    def test_missing_file_keeps_empty_map(self, tmp_path):
        index = SessionIndex(tmp_path / "sessions.json")
        assert index.reload() is False
        assert index.lookup("abc") is None

    def test_bad_json_keeps_previous_map(self, tmp_path):
        path = tmp_path / "sessions.json"
        write_index(path, {"agent:main:main": {"sessionId": "abc"}})
        index = SessionIndex(path)
        index.reload()

        path.write_text("{not json", encoding="utf-8")
        assert index.reload() is False
        assert index.lookup("abc") == "agent:main:main"

    def test_non_object_keeps_previous_map(self, tmp_path):
        path = tmp_path / "sessions.json"
        write_index(path, {"agent:main:main": {"sessionId": "abc"}})
        index = SessionIndex(path)
        index.reload()

        write_index(path, ["abc"])
        assert index.reload() is False
        assert index.lookup("abc") == "agent:main:main"

    def test_reload_replaces_whole_map(self, tmp_path):
        path = tmp_path / "sessions.json"
        write_index(path, {"agent:main:main": {"sessionId": "abc"}})
        index = SessionIndex(path)
        index.reload()

        write_index(path, {"agent:main:subagent:x": {"sessionId": "new"}})
        index.reload()
        assert index.lookup("abc") is None
        assert index.lookup("new") == "agent:main:subagent:x"

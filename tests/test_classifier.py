"""Tests for the heuristic classifier."""

import pytest

from agent_exhaust.classifier import (
    CLASSIFIER_MODEL, THEME_RULES, HeuristicClassifier, classify_snippet, summarize,
)
from agent_exhaust.models import Theme

from helpers import NOW, make_event


class TestClassifySnippet:

    def test_rules_follow_taxonomy_order(self):
        assert [theme for theme, _ in THEME_RULES] == list(Theme)

    def test_shipping_matches_before_coding(self):
        assert classify_snippet("deploy and merge the release PR") == Theme.SHIPPING

    def test_debugging(self):
        assert classify_snippet("fix the crash in the parser") == Theme.DEBUGGING

    def test_empty_is_operations(self):
        assert classify_snippet("") == Theme.OPERATIONS
        assert classify_snippet(None) == Theme.OPERATIONS

    def test_unmatched_is_operations(self):
        assert classify_snippet("zzz qqq") == Theme.OPERATIONS

    def test_case_insensitive(self):
        assert classify_snippet("EXCEPTION raised") == Theme.DEBUGGING

    @pytest.mark.parametrize("snippet, theme", [
        ("implement the parser function", Theme.CODING),
        ("search the docs", Theme.RESEARCH),
        ("restart the gateway", Theme.INFRASTRUCTURE),
        ("calculate the roi", Theme.ANALYSIS),
        ("telegram reply", Theme.COMMUNICATION),
        ("remember this", Theme.MEMORY),
        ("plan the roadmap", Theme.PLANNING),
        ("monitor health", Theme.OPERATIONS),
    ])
    def test_each_theme_reachable(self, snippet, theme):
        assert classify_snippet(snippet) == theme

    def test_deterministic(self):
        snippet = '{"type":"message","text":"write the file"}'
        assert classify_snippet(snippet) == classify_snippet(snippet)


class TestSummarize:

    def test_collapses_newlines_and_trims(self):
        assert summarize("  line one\nline two  \n") == "line one line two"

    def test_truncates_to_200(self):
        assert len(summarize("a" * 500)) == 200

    def test_empty_placeholder(self):
        assert summarize("") == "Event recorded"
        assert summarize("", "unknown") == "Event recorded"

    def test_empty_placeholder_names_type(self):
        assert summarize("   \n", "message") == "Message recorded"


class TestHeuristicClassifier:

    def test_classifies_all_unclassified(self, store):
        store.insert_events([
            make_event("s", NOW + 1, "deploy and merge the release PR"),
            make_event("s", NOW + 2, "fix the crash in the parser"),
            make_event("s", NOW + 3, ""),
        ])
        report = HeuristicClassifier(store).run()
        assert report.total == 3
        assert report.processed == 3
        assert report.remaining == 0

        themes = {}
        for event in store.recent_events():
            interp = store.get_interpretation(event.id)
            assert interp.model == CLASSIFIER_MODEL
            assert interp.timestamp == event.timestamp
            themes[event.content_snippet] = (interp.theme, interp.summary)
        assert themes["deploy and merge the release PR"][0] == Theme.SHIPPING
        assert themes["fix the crash in the parser"][0] == Theme.DEBUGGING
        assert themes[""] == (Theme.OPERATIONS, "Event recorded")

    def test_second_run_is_noop(self, store):
        store.insert_events([make_event("s", NOW, "write code")])
        classifier = HeuristicClassifier(store)
        classifier.run()
        (event,) = store.recent_events()
        first = store.get_interpretation(event.id)

        report = classifier.run()
        assert report.total == 0
        assert store.count_interpretations() == 1
        assert store.get_interpretation(event.id) == first

    def test_batches_report_progress(self, store):
        store.insert_events([make_event("s", NOW + i, f"event {i}") for i in range(25)])
        seen = []
        report = HeuristicClassifier(store, batch_size=10).run(
            on_batch=lambda done, total: seen.append((done, total))
        )
        assert seen == [(10, 25), (20, 25), (25, 25)]
        assert report.remaining == 0

    def test_resumes_after_new_ingestion(self, store):
        store.insert_events([make_event("s", NOW, "a")])
        classifier = HeuristicClassifier(store)
        classifier.run()
        store.insert_events([make_event("s", NOW + 1, "b")])
        report = classifier.run()
        assert report.processed == 1
        assert store.count_interpretations() == 2

"""Tests for raw event filtering."""

import pytest

from annowatch.watchers import EventFilter, RawEvent, RawEventKind, WatchConfig, WatchTarget


@pytest.fixture
def event_filter(config):
    return EventFilter(WatchTarget.resolve(config.path), config)


def created(name: str) -> RawEvent:
    return RawEvent(RawEventKind.CREATED, name)


class TestEventFilter:
    """Tests for EventFilter.accept."""

    def test_accepts_new_input_file(self, event_filter, watch_dir):
        (watch_dir / "a.txt").write_text("Hello world.")

        candidate = event_filter.accept(created("a.txt"))

        assert candidate is not None
        assert candidate.path == watch_dir.resolve() / "a.txt"
        assert candidate.filename == "a.txt"

    def test_modified_events_are_candidates(self, event_filter, watch_dir):
        (watch_dir / "a.txt").write_text("Hello world.")

        assert event_filter.accept(RawEvent(RawEventKind.MODIFIED, "a.txt")) is not None

    def test_extension_match_is_case_insensitive(self, event_filter, watch_dir):
        (watch_dir / "NOTES.TXT").write_text("Hello.")

        assert event_filter.accept(created("NOTES.TXT")) is not None

    def test_rejects_other_extensions(self, event_filter, watch_dir):
        (watch_dir / "a.md").write_text("# Hello")
        (watch_dir / "a.txt.xml").write_text("<root/>")

        assert event_filter.accept(created("a.md")) is None
        assert event_filter.accept(created("a.txt.xml")) is None

    def test_overflow_is_never_a_candidate(self, event_filter):
        assert event_filter.accept(RawEvent.overflow()) is None

    def test_rejects_missing_file(self, event_filter):
        assert event_filter.accept(created("gone.txt")) is None

    def test_rejects_directories(self, event_filter, watch_dir):
        (watch_dir / "folder.txt").mkdir()

        assert event_filter.accept(created("folder.txt")) is None

    def test_rejects_hidden_files(self, event_filter, watch_dir):
        (watch_dir / ".draft.txt").write_text("secret")

        assert event_filter.accept(created(".draft.txt")) is None

    def test_rejects_own_artifacts(self, watch_dir):
        """An artifact that happens to share the input extension is never re-processed."""
        config = WatchConfig(path=watch_dir, output_suffix=".out.txt")
        event_filter = EventFilter(WatchTarget.resolve(watch_dir), config)
        (watch_dir / "a.txt").write_text("Hello.")
        (watch_dir / "a.txt.out.txt").write_text("annotated")

        assert event_filter.accept(created("a.txt")) is not None
        assert event_filter.accept(created("a.txt.out.txt")) is None

    def test_custom_ignore_patterns(self, watch_dir):
        config = WatchConfig(path=watch_dir, ignore_patterns=["draft-*"])
        event_filter = EventFilter(WatchTarget.resolve(watch_dir), config)
        (watch_dir / "draft-1.txt").write_text("wip")
        (watch_dir / ".hidden.txt").write_text("now allowed")

        assert event_filter.accept(created("draft-1.txt")) is None
        assert event_filter.accept(created(".hidden.txt")) is not None

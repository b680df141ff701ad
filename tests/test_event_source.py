"""Tests for event sources."""

import asyncio

import pytest
from watchfiles import Change

from annowatch.errors import DirectoryUnwatchable, SourceClosed
from annowatch.watchers import (
    EventSource,
    FileSystemEventSource,
    RawEvent,
    RawEventKind,
    WatchTarget,
)


@pytest.fixture
def target(watch_dir):
    return WatchTarget.resolve(watch_dir)


class TestEventSource:
    """Tests for the queue-backed base source."""

    @pytest.mark.asyncio
    async def test_events_come_out_in_order(self, target):
        source = EventSource(target)
        source.inject(RawEvent(RawEventKind.CREATED, "a.txt"))
        source.inject(RawEvent(RawEventKind.MODIFIED, "a.txt"))

        assert await source.next() == RawEvent(RawEventKind.CREATED, "a.txt")
        assert await source.next() == RawEvent(RawEventKind.MODIFIED, "a.txt")

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_consumer(self, target):
        source = EventSource(target)
        waiter = asyncio.create_task(source.next())
        await asyncio.sleep(0)

        source.close()

        with pytest.raises(SourceClosed):
            await asyncio.wait_for(waiter, timeout=1)

    @pytest.mark.asyncio
    async def test_closed_source_discards_events(self, target):
        source = EventSource(target)
        source.inject(RawEvent(RawEventKind.CREATED, "queued.txt"))

        source.close()
        source.inject(RawEvent(RawEventKind.CREATED, "late.txt"))

        assert source.closed
        with pytest.raises(SourceClosed):
            await source.next()
        with pytest.raises(SourceClosed):
            await source.next()

    @pytest.mark.asyncio
    async def test_async_iteration_stops_on_close(self, target):
        source = EventSource(target)
        source.inject(RawEvent(RawEventKind.CREATED, "a.txt"))

        seen = []
        async for event in source:
            seen.append(event.name)
            source.close()

        assert seen == ["a.txt"]


class TestTranslation:
    """Tests for mapping watchfiles changes to raw events."""

    def test_direct_children(self, target):
        source = FileSystemEventSource(target)
        root = target.path

        events = source._translate({
            (Change.added, str(root / "a.txt")),
            (Change.modified, str(root / "b.txt")),
        })

        assert events == [
            RawEvent(RawEventKind.CREATED, "a.txt"),
            RawEvent(RawEventKind.MODIFIED, "b.txt"),
        ]

    def test_drops_deletions_and_nested_paths(self, target):
        source = FileSystemEventSource(target)
        root = target.path

        events = source._translate({
            (Change.deleted, str(root / "c.txt")),
            (Change.added, str(root / "sub" / "x.txt")),
        })

        assert events == []

    def test_change_on_root_is_ignored(self, target):
        """The directory itself changes whenever a child is added."""
        source = FileSystemEventSource(target)
        root = target.path

        events = source._translate({
            (Change.modified, str(root)),
            (Change.added, str(root / "a.txt")),
        })

        assert events == [RawEvent(RawEventKind.CREATED, "a.txt")]

    def test_root_removal_is_fatal(self, target):
        source = FileSystemEventSource(target)

        with pytest.raises(DirectoryUnwatchable):
            source._translate({(Change.deleted, str(target.path))})


class TestFileSystemEventSource:
    """Tests against real filesystem notifications."""

    @pytest.mark.asyncio
    async def test_missing_directory_is_unwatchable(self, tmp_path):
        with pytest.raises(DirectoryUnwatchable):
            await FileSystemEventSource.open(tmp_path / "missing")

    @pytest.mark.asyncio
    async def test_reports_new_file(self, watch_dir):
        source = await FileSystemEventSource.open(watch_dir, debounce_ms=50, step_ms=10)

        async def first_event_for(name):
            while True:
                event = await source.next()
                if event.name == name:
                    return event

        try:
            # Give the native watcher time to register
            await asyncio.sleep(0.5)
            (watch_dir / "a.txt").write_text("Hello world.")

            event = await asyncio.wait_for(first_event_for("a.txt"), timeout=10)
            assert event.kind in (RawEventKind.CREATED, RawEventKind.MODIFIED)
        finally:
            source.close()
            await asyncio.wait_for(source.wait_closed(), timeout=5)

        assert source.closed
        assert source.failure is None

    @pytest.mark.asyncio
    async def test_polling_reports_files_without_overflow(self, watch_dir):
        source = await FileSystemEventSource.open(
            watch_dir, debounce_ms=50, step_ms=10, force_polling=True
        )
        seen = []

        async def until_both_reported():
            while {"f0.txt", "f1.txt"} - {event.name for event in seen}:
                seen.append(await source.next())

        try:
            await asyncio.sleep(0.5)
            (watch_dir / "f0.txt").write_text("one")
            await asyncio.sleep(0.4)
            (watch_dir / "f1.txt").write_text("two")

            await asyncio.wait_for(until_both_reported(), timeout=10)
        finally:
            source.close()
            await asyncio.wait_for(source.wait_closed(), timeout=5)

        assert all(event.kind != RawEventKind.OVERFLOW for event in seen)

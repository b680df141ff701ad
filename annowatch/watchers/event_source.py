"""Event sources producing raw change notifications for one directory."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Iterable, List

from watchfiles import awatch, Change

from ..errors import DirectoryUnwatchable, SourceClosed
from .watch_config import WatchTarget, RawEvent, RawEventKind

logger = logging.getLogger(__name__)

_CLOSED = object()


class EventSource:
    """An unbounded, non-restartable queue of raw events.

    ``next()`` suspends until an event is available or the source is
    closed, then raises ``SourceClosed``. Events still queued when the
    source closes are discarded.

    The base class is fed through ``inject()``; ``FileSystemEventSource``
    feeds it from native notifications.
    """

    def __init__(self, target: WatchTarget):
        self.target = target
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._failure: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def failure(self) -> Optional[BaseException]:
        """The error that terminated the source, if any."""
        return self._failure

    def inject(self, event: RawEvent) -> None:
        """Queue an event. Ignored once the source is closed."""
        if self._closed:
            return
        self._queue.put_nowait(event)

    async def next(self) -> RawEvent:
        """Wait for the next event.

        Raises:
            SourceClosed: If the source is (or becomes) closed.
        """
        if not self._closed:
            item = await self._queue.get()
            if item is not _CLOSED and not self._closed:
                return item
        raise SourceClosed(f"Event source for {self.target} is closed") from self._failure

    def close(self) -> None:
        """Close the source, waking any pending ``next()`` call."""
        self._shutdown()

    async def wait_closed(self) -> None:
        """Wait for underlying resources to be released."""
        pass

    def _shutdown(self, failure: Optional[BaseException] = None) -> None:
        if self._closed:
            return
        self._closed = True
        if failure is not None:
            self._failure = failure
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> RawEvent:
        try:
            return await self.next()
        except SourceClosed:
            raise StopAsyncIteration


class FileSystemEventSource(EventSource):
    """Native notifications for the direct children of one directory.

    A pump task drains ``watchfiles.awatch`` into the queue so the OS
    notification buffer keeps emptying while consumers are busy.

    Usage:
        source = await FileSystemEventSource.open(target)
        event = await source.next()
        ...
        source.close()
    """

    def __init__(
        self,
        target: WatchTarget,
        debounce_ms: int = 200,
        step_ms: int = 50,
        force_polling: Optional[bool] = None,
    ):
        super().__init__(target)
        self.debounce_ms = debounce_ms
        self.step_ms = step_ms
        self.force_polling = force_polling
        self._stop_event = asyncio.Event()
        self._pump_task: Optional[asyncio.Task] = None

    @classmethod
    async def open(
        cls,
        directory: WatchTarget | Path | str,
        debounce_ms: int = 200,
        step_ms: int = 50,
        force_polling: Optional[bool] = None,
    ) -> "FileSystemEventSource":
        """Start watching ``directory``.

        Raises:
            DirectoryUnwatchable: If the directory cannot be watched.
        """
        target = directory if isinstance(directory, WatchTarget) else WatchTarget.resolve(directory)
        source = cls(target, debounce_ms=debounce_ms, step_ms=step_ms, force_polling=force_polling)
        source._pump_task = asyncio.create_task(source._pump(), name=f"event-source:{target}")
        # Let the pump register the native watch before handing the source out
        await asyncio.sleep(0)
        logger.info(f"Watching directory {target}")
        return source

    def close(self) -> None:
        self._stop_event.set()
        super().close()

    async def wait_closed(self) -> None:
        """Wait for the native watcher to be released."""
        if self._pump_task:
            await asyncio.gather(self._pump_task, return_exceptions=True)

    async def _pump(self) -> None:
        failure: Optional[BaseException] = None
        try:
            async for changes in awatch(
                self.target.path,
                watch_filter=None,
                recursive=False,
                debounce=self.debounce_ms,
                step=self.step_ms,
                stop_event=self._stop_event,
                force_polling=self.force_polling,
            ):
                for event in self._translate(changes):
                    self.inject(event)
        except asyncio.CancelledError:
            logger.debug(f"Event pump cancelled: {self.target}")
            raise
        except DirectoryUnwatchable as e:
            failure = e
        except Exception as e:
            failure = DirectoryUnwatchable(self.target.path, str(e))
            failure.__cause__ = e
        finally:
            self._stop_event.set()
            if failure is not None:
                logger.error(f"Event source for {self.target} failed: {failure}")
            self._shutdown(failure)

    def _translate(self, changes: Iterable[tuple[Change, str]]) -> List[RawEvent]:
        """Map a batch of watchfiles changes to raw events."""
        events: List[RawEvent] = []
        root = self.target.path

        for change, path_str in sorted(changes, key=lambda c: (c[1], c[0].value)):
            path = Path(path_str)

            if path == root:
                if change == Change.deleted:
                    raise DirectoryUnwatchable(root, "watch directory was removed")
                # The directory mtime changes with every child; polling reports it
                logger.debug(f"Ignoring {change.name} change on {root}")
                continue

            if path.parent != root:
                continue

            if change == Change.added:
                events.append(RawEvent(RawEventKind.CREATED, path.name))
            elif change == Change.modified:
                events.append(RawEvent(RawEventKind.MODIFIED, path.name))

        return events

"""Watcher service - owns the watch loop and its lifecycle."""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Callable, Awaitable

from ..errors import SourceClosed, WatchLoopError
from ..models import ServiceState
from ..plugins import Annotator, AnnotatorRegistry, PluginLoader
from ..watchers import (
    WatchConfig,
    WatchTarget,
    RawEvent,
    RawEventKind,
    EventSource,
    FileSystemEventSource,
    EventFilter,
)
from .dispatcher import ProcessingDispatcher

logger = logging.getLogger(__name__)

SourceFactory = Callable[[WatchTarget, WatchConfig], Awaitable[EventSource]]


async def open_filesystem_source(target: WatchTarget, config: WatchConfig) -> EventSource:
    """Default source factory: native notifications via watchfiles."""
    return await FileSystemEventSource.open(
        target,
        debounce_ms=config.debounce_ms,
        step_ms=config.step_ms,
        force_polling=config.force_polling,
    )


class WatcherService:
    """
    Watches one directory and annotates each new input file.

    Lifecycle: initializing -> watching -> shutting_down -> stopped.

    Startup order is target, event source, annotator (which may be slow
    to load), then the watch loop. The loop only ends when
    ``request_shutdown()`` is called; per-file failures are logged by the
    dispatcher and never reach it.

    Usage:
        service = WatcherService(WatchConfig(path=Path("/data/incoming")))
        loop.add_signal_handler(signal.SIGTERM, service.request_shutdown)
        await service.run()
    """

    def __init__(
        self,
        config: WatchConfig,
        registry: Optional[AnnotatorRegistry] = None,
        annotator: Optional[Annotator] = None,
        source_factory: SourceFactory = open_filesystem_source,
    ):
        self.config = config
        self.registry = registry or AnnotatorRegistry.with_builtins()
        self._annotator_override = annotator
        self._source_factory = source_factory

        self.state = ServiceState.INITIALIZING
        self.target: Optional[WatchTarget] = None
        self.source: Optional[EventSource] = None
        self.annotator: Optional[Annotator] = None
        self.event_filter: Optional[EventFilter] = None
        self.dispatcher: Optional[ProcessingDispatcher] = None

        self._shutdown_requested = False
        self._watching = asyncio.Event()
        self._started_at: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """
        Start the service and watch until shutdown is requested.

        Raises:
            DirectoryUnwatchable: If the directory cannot be watched
            AnnotatorLoadError: If the annotator cannot be constructed
            WatchLoopError: If the event source closed on its own
        """
        await self.start()
        try:
            await self._watch()
        finally:
            await self._stop()

    async def start(self) -> None:
        """Construct the target, event source and annotator."""
        logger.info(f"Starting watcher for {self.config.path}")

        self.target = WatchTarget.resolve(self.config.path)
        self.source = await self._source_factory(self.target, self.config)

        try:
            self.annotator = await self._build_annotator()
        except BaseException:
            self.source.close()
            await self.source.wait_closed()
            raise

        self.event_filter = EventFilter(self.target, self.config)
        self.dispatcher = ProcessingDispatcher(self.annotator, self.config)

        self.state = ServiceState.WATCHING
        self._started_at = datetime.now()
        self._watching.set()
        logger.info(
            f"Watching {self.target} for *{self.config.input_extension} files "
            f"(annotator: {self.annotator.name})"
        )

        if self.config.scan_existing:
            await self.rescan("startup")

        if self._shutdown_requested:
            self.source.close()

    def request_shutdown(self) -> None:
        """Stop accepting events; safe to call from a signal handler."""
        if self._shutdown_requested:
            return

        self._shutdown_requested = True
        logger.info("Shutdown requested")

        if self.state == ServiceState.WATCHING:
            self.state = ServiceState.SHUTTING_DOWN
        if self.source:
            self.source.close()

    async def wait_until_watching(self) -> None:
        await self._watching.wait()

    @property
    def is_watching(self) -> bool:
        return self.state == ServiceState.WATCHING

    async def _build_annotator(self) -> Annotator:
        if self._annotator_override is not None:
            return self._annotator_override

        if self.config.plugins_dir:
            PluginLoader(self.config.plugins_dir, self.registry).load_all()

        logger.info(f"Creating annotator '{self.config.annotator}'...")
        return await self.registry.create(self.config.annotator, self.config.annotator_config)

    async def _stop(self) -> None:
        self.state = ServiceState.SHUTTING_DOWN
        self.source.close()

        abandoned = await self.dispatcher.drain(self.config.drain_timeout)
        if abandoned:
            logger.warning(f"Abandoned {len(abandoned)} file(s) at shutdown: {abandoned}")

        await self.source.wait_closed()

        try:
            await self.annotator.on_unload()
        except Exception as e:
            logger.error(f"Error unloading annotator {self.annotator.name}: {e}")

        self.state = ServiceState.STOPPED
        logger.info(f"Watcher for {self.target} stopped")

    # -------------------------------------------------------------------------
    # Watch loop
    # -------------------------------------------------------------------------

    async def _watch(self) -> None:
        while True:
            try:
                event = await self.source.next()
            except SourceClosed as e:
                if self._shutdown_requested:
                    logger.info(f"Event source for {self.target} closed")
                    return
                cause = self.source.failure or e
                raise WatchLoopError(
                    f"Event source for {self.target} closed unexpectedly: {cause}"
                ) from e

            try:
                await self.handle_event(event)
            except Exception as e:
                logger.error(f"Error handling {event}: {e}", exc_info=True)

    async def handle_event(self, event: RawEvent) -> None:
        """Filter one raw event and dispatch it if it is a new input."""
        if event.kind == RawEventKind.OVERFLOW:
            logger.warning(f"OVERFLOW event detected on {self.target}; notifications may have been lost")
            if self.config.rescan_on_overflow:
                await self.rescan("overflow")
            return

        logger.debug(f"{event.kind.value} event detected: {event.name}")

        candidate = self.event_filter.accept(event)
        if candidate is not None:
            await self.dispatcher.submit(candidate)

    async def rescan(self, reason: str) -> int:
        """
        Submit every matching file currently in the directory.

        Paths that already have a record are skipped, so this is safe to
        call at any time and never retries a failed file.

        Returns:
            Number of files newly scheduled
        """
        try:
            names = sorted(entry.name for entry in self.target.path.iterdir())
        except OSError as e:
            logger.error(f"Rescan ({reason}) of {self.target} failed: {e}")
            return 0

        submitted = 0
        for name in names:
            candidate = self.event_filter.accept(RawEvent(RawEventKind.CREATED, name))
            if candidate is not None and await self.dispatcher.submit(candidate, retry_failed=False):
                submitted += 1

        logger.info(f"Rescan ({reason}) of {self.target}: scheduled {submitted} file(s)")
        return submitted

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Get service statistics."""
        stats = {
            "state": ServiceState(self.state).value,
            "directory": str(self.target) if self.target else str(self.config.path),
            "annotator": self.annotator.info() if self.annotator else None,
            "uptime_seconds": (
                (datetime.now() - self._started_at).total_seconds() if self._started_at else None
            ),
        }
        if self.dispatcher:
            stats.update(self.dispatcher.stats())
        else:
            stats.update({
                "records": 0,
                "in_flight": 0,
                "max_concurrent": self.config.max_concurrent,
                "by_state": {},
            })
        return stats

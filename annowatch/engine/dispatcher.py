"""Processing dispatcher - runs the annotator once per input path."""

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Optional, AsyncIterator

import aiofiles
import aiofiles.os

from ..errors import ProcessingError, ReadError, AnnotationError, WriteError
from ..models import Artifact, ProcessingRecord, RecordState
from ..plugins import Annotator
from ..watchers import CandidateFile, WatchConfig

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".part"


class ProcessingDispatcher:
    """
    Schedules annotation of candidate files.

    Guarantees:
    - one ProcessingRecord per input path, created on first submission
      and kept for the lifetime of the dispatcher
    - at most one processing routine in flight per path; submissions for
      a path that is in flight or done are ignored
    - a failure while reading, annotating or writing one file marks only
      that file's record failed and is never raised to the caller

    Each routine runs as its own asyncio task, bounded by a worker pool
    of ``max_concurrent`` slots, so a slow annotation never delays
    dispatch of other files.

    Usage:
        dispatcher = ProcessingDispatcher(annotator, config)
        await dispatcher.submit(candidate)
        ...
        abandoned = await dispatcher.drain(timeout=30)
    """

    def __init__(self, annotator: Annotator, config: WatchConfig):
        self.annotator = annotator
        self.output_suffix = config.output_suffix
        self.encoding = config.encoding
        self.max_concurrent = config.max_concurrent
        self.settle_seconds = config.settle_seconds
        self.settle_timeout = config.settle_timeout
        self._output_path_for = config.output_path_for

        self._records: dict[str, ProcessingRecord] = {}
        self._tasks: dict[asyncio.Task, str] = {}
        # Guards record lookup/creation and the claim transition
        self._lock = asyncio.Lock()
        self._slots: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(config.max_concurrent) if config.max_concurrent > 0 else None
        )
        self._accepting = True

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit(self, candidate: CandidateFile, retry_failed: bool = True) -> bool:
        """
        Submit a candidate file for processing.

        Args:
            candidate: The file to process
            retry_failed: Start a new attempt for a failed path. Rescans pass
                False so they only pick up paths never seen before.

        Returns:
            True if a processing routine was started, False if the path is
            already in flight or done (or the dispatcher is draining)
        """
        key = self._key(candidate.path)

        async with self._lock:
            if not self._accepting:
                logger.debug(f"Dispatcher draining, ignoring {key}")
                return False

            record = self._records.get(key)
            if record is None:
                record = ProcessingRecord(path=key)
                self._records[key] = record
            elif record.is_active:
                logger.debug(f"Ignoring duplicate event for {key} (state={record.state})")
                return False
            elif not retry_failed:
                logger.debug(f"Not retrying failed {key} without a new event")
                return False

            record.start()
            task = asyncio.create_task(self._run(record, candidate), name=f"annotate:{key}")
            self._tasks[task] = key
            task.add_done_callback(self._task_done)

        if record.attempts > 1:
            logger.info(f"Retrying {key} (attempt {record.attempts})")
        else:
            logger.info(f"Scheduled {key} for annotation")
        return True

    async def resubmit(self, path: Path | str) -> bool:
        """
        Administratively re-submit a failed path.

        Returns:
            True if processing was started again

        Raises:
            KeyError: If the path has never been seen
        """
        key = self._key(Path(path))
        record = self._records.get(key)
        if record is None:
            raise KeyError(key)
        if record.state != RecordState.FAILED:
            logger.info(f"Not re-submitting {key}: state is {record.state}")
            return False
        return await self.submit(CandidateFile(path=Path(key)))

    # -------------------------------------------------------------------------
    # Processing routine
    # -------------------------------------------------------------------------

    async def _run(self, record: ProcessingRecord, candidate: CandidateFile) -> None:
        """Read, annotate and write one file; record the outcome."""
        path = candidate.path
        output_path = self._output_path_for(path)

        try:
            async with self._slot():
                if self.settle_seconds > 0:
                    await self._wait_until_settled(path)

                text = await self._read(path)
                logger.info(f" * Read {len(text)} characters from {path}")

                artifact = await self._annotate(path, text)
                logger.info(f" * Annotated {path} {_describe(artifact)}")

                await self._write(output_path, artifact)
        except asyncio.CancelledError:
            record.fail("abandoned during shutdown")
            logger.warning(f"Abandoned {path} during shutdown")
            raise
        except ProcessingError as e:
            record.fail(str(e))
            logger.error(f"Failed to process {path}: {e}")
        except Exception as e:
            record.fail(f"unexpected error: {e}")
            logger.error(f"Unexpected error processing {path}: {e}", exc_info=True)
        else:
            record.complete(str(output_path))
            logger.info(
                f"Wrote {output_path} ({artifact.size} characters) "
                f"in {record.duration_seconds:.2f}s"
            )

    @contextlib.asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._slots is None:
            yield
            return
        async with self._slots:
            yield

    async def _wait_until_settled(self, path: Path) -> None:
        """Wait until the file's size and mtime stop changing.

        Gives up waiting after ``settle_timeout`` and proceeds anyway.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settle_timeout
        poll = min(self.settle_seconds, 0.25)
        last = None
        quiet_since = loop.time()

        while True:
            try:
                stat = await aiofiles.os.stat(path)
            except OSError as e:
                raise ReadError(path, str(e), e) from e

            signature = (stat.st_size, stat.st_mtime_ns)
            now = loop.time()
            if signature != last:
                last = signature
                quiet_since = now
            elif now - quiet_since >= self.settle_seconds:
                return

            if now >= deadline:
                logger.warning(f"{path} still changing after {self.settle_timeout}s, reading anyway")
                return
            await asyncio.sleep(poll)

    async def _read(self, path: Path) -> str:
        try:
            async with aiofiles.open(path, "r", encoding=self.encoding) as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ReadError(path, str(e), e) from e

    async def _annotate(self, path: Path, text: str) -> Artifact:
        try:
            artifact = await self.annotator.process(text)
        except AnnotationError as e:
            raise AnnotationError(e.message, path, e.cause or e) from e
        except Exception as e:
            raise AnnotationError(f"{type(e).__name__}: {e}", path, e) from e

        if not isinstance(artifact, Artifact):
            raise AnnotationError(f"annotator returned {type(artifact).__name__}, not Artifact", path)
        return artifact

    async def _write(self, output_path: Path, artifact: Artifact) -> None:
        """Write the artifact via a partial file, then move it into place."""
        partial = output_path.with_name(output_path.name + PARTIAL_SUFFIX)
        try:
            async with aiofiles.open(partial, "w", encoding=self.encoding) as f:
                await f.write(artifact.content)
            await aiofiles.os.replace(partial, output_path)
        except OSError as e:
            with contextlib.suppress(OSError):
                await aiofiles.os.remove(partial)
            raise WriteError(output_path, str(e), e) from e

    # -------------------------------------------------------------------------
    # Completion and shutdown
    # -------------------------------------------------------------------------

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.pop(task, None)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until no processing routine is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def drain(self, timeout: Optional[float]) -> list[str]:
        """
        Stop accepting submissions and wait for in-flight routines.

        Routines still running after ``timeout`` seconds are cancelled and
        their records marked failed.

        Returns:
            Paths whose processing was abandoned
        """
        async with self._lock:
            self._accepting = False

        pending = dict(self._tasks)
        if not pending:
            return []

        logger.info(f"Waiting up to {timeout}s for {len(pending)} file(s) in flight")
        _, not_done = await asyncio.wait(list(pending), timeout=timeout)

        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)

        abandoned = [pending[task] for task in not_done]
        for key in abandoned:
            record = self._records[key]
            # Cancelled before the routine ever ran
            if record.state == RecordState.IN_FLIGHT:
                record.fail("abandoned during shutdown")
                logger.warning(f"Abandoned {key} during shutdown")

        return abandoned

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def records(self) -> list[ProcessingRecord]:
        return list(self._records.values())

    def get_record(self, path: Path | str) -> Optional[ProcessingRecord]:
        return self._records.get(self._key(Path(path)))

    def stats(self) -> dict:
        """Count records by state."""
        counts = {state.value: 0 for state in RecordState}
        for record in self._records.values():
            counts[record.state] += 1
        return {
            "records": len(self._records),
            "in_flight": self.in_flight,
            "max_concurrent": self.max_concurrent,
            "by_state": counts,
        }

    @staticmethod
    def _key(path: Path) -> str:
        # Same normalisation as the resolved watch target
        return str(path.absolute().parent.resolve() / path.name)


def _describe(artifact: Artifact) -> str:
    if not artifact.metadata:
        return ""
    details = ", ".join(f"{v} {k}" for k, v in artifact.metadata.items())
    return f"({details})"

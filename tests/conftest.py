"""Shared fixtures for annowatch tests."""

import asyncio
import dataclasses
from typing import Callable, Optional

import pytest

from annowatch.engine import WatcherService
from annowatch.errors import AnnotationError
from annowatch.models import Artifact
from annowatch.plugins import Annotator
from annowatch.watchers import EventSource, WatchConfig


class RecordingAnnotator(Annotator):
    """Records every call; can hold or fail specific texts."""

    name = "recording"
    display_name = "Recording"

    def __init__(self, config: Optional[dict] = None):
        super().__init__(config)
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.fail_on: set[str] = set()
        self.active = 0
        self.max_active = 0
        self.unloaded = False

    def hold(self, text: str) -> asyncio.Event:
        """Block annotation of ``text`` until the returned event is set."""
        gate = self.gates.setdefault(text, asyncio.Event())
        return gate

    async def process(self, text: str) -> Artifact:
        self.calls.append(text)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if text in self.gates:
                await self.gates[text].wait()
            if text in self.fail_on:
                raise AnnotationError(f"cannot annotate {text!r}")
            return Artifact(content=f"<doc>{text}</doc>", metadata={"chars": len(text)})
        finally:
            self.active -= 1

    async def on_unload(self) -> None:
        self.unloaded = True


@pytest.fixture
def watch_dir(tmp_path):
    directory = tmp_path / "incoming"
    directory.mkdir()
    return directory.resolve()


@pytest.fixture
def config(watch_dir):
    return WatchConfig(path=watch_dir, drain_timeout=1.0)


@pytest.fixture
def annotator():
    return RecordingAnnotator()


@pytest.fixture
def make_service(config, annotator) -> Callable[..., WatcherService]:
    """Build a service fed by a manual EventSource instead of the OS."""

    def build(use_annotator: bool = True, **overrides) -> WatcherService:
        async def manual_source(target, cfg):
            return EventSource(target)

        cfg = dataclasses.replace(config, **overrides)
        return WatcherService(
            cfg,
            annotator=annotator if use_annotator else None,
            source_factory=manual_source,
        )

    return build


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""

    async def _wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return _wait_for

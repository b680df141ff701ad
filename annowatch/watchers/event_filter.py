"""Decides which raw events denote a new input file."""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Optional

from .watch_config import WatchConfig, WatchTarget, RawEvent, RawEventKind, CandidateFile

logger = logging.getLogger(__name__)


class EventFilter:
    """Turns raw events into candidate files.

    Rules, in order:
    1. overflow events are never candidates (the service handles them)
    2. the lowercase extension must equal the configured input extension
    3. artifacts, partial writes and ignored names are rejected
    4. the path must be a readable regular file right now

    The existence check in rule 4 is advisory; the file may still vanish
    before it is read.
    """

    def __init__(self, target: WatchTarget, config: WatchConfig):
        self.target = target
        self.input_extension = config.input_extension
        self.output_suffix = config.output_suffix.lower()
        self.ignore_patterns = list(config.ignore_patterns)

    def accept(self, event: RawEvent) -> Optional[CandidateFile]:
        if event.kind == RawEventKind.OVERFLOW:
            return None

        name = event.name
        if not name or Path(name).suffix.lower() != self.input_extension:
            return None

        if self.is_ignored(name):
            logger.debug(f"Ignoring {name}")
            return None

        path = self.target.child(name)
        if not path.is_file() or not os.access(path, os.R_OK):
            logger.debug(f"Skipping {path}: not a readable regular file")
            return None

        return CandidateFile(path=path)

    def is_ignored(self, name: str) -> bool:
        """Check whether a name is an artifact or matches an ignore pattern."""
        if name.lower().endswith(self.output_suffix):
            return True
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignore_patterns)

"""Configuration and events for directory watching."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, List, Any

from ..errors import DirectoryUnwatchable


class RawEventKind(Enum):
    """Kinds of change notification produced by an event source."""
    CREATED = "created"
    MODIFIED = "modified"
    OVERFLOW = "overflow"


@dataclass(frozen=True)
class RawEvent:
    """A change notification for one direct child of the watch directory.

    ``name`` is relative to the watch directory and empty for overflow.
    """
    kind: RawEventKind
    name: str = ""

    @classmethod
    def overflow(cls) -> "RawEvent":
        return cls(RawEventKind.OVERFLOW)


@dataclass(frozen=True)
class WatchTarget:
    """The single directory a service watches for its whole lifetime."""
    path: Path

    @classmethod
    def resolve(cls, path: Path | str) -> "WatchTarget":
        """Validate ``path`` and return an absolute, resolved target.

        Raises:
            DirectoryUnwatchable: If the path is missing, not a directory,
                or not readable and searchable by this process.
        """
        try:
            resolved = Path(path).expanduser().resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise DirectoryUnwatchable(path, f"does not exist ({e})") from e

        if not resolved.is_dir():
            raise DirectoryUnwatchable(resolved, "not a directory")
        if not os.access(resolved, os.R_OK | os.X_OK):
            raise DirectoryUnwatchable(resolved, "permission denied")

        return cls(resolved)

    def child(self, name: str) -> Path:
        return self.path / name

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class CandidateFile:
    """A new input file that passed the event filter."""
    path: Path
    discovered_at: datetime = field(default_factory=datetime.now)

    @property
    def filename(self) -> str:
        return self.path.name


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


@dataclass
class WatchConfig:
    """Configuration for one watched directory and its annotation pipeline.

    Attributes:
        path: Directory to watch (non-recursively)
        input_extension: Case-insensitive extension of input files
        output_suffix: Appended to the input path to name the artifact
        encoding: Text encoding for reading inputs and writing artifacts
        ignore_patterns: File name patterns that are never inputs
        annotator: Name of the annotator to construct
        annotator_config: Overrides for the annotator's default config
        plugins_dir: Optional directory of annotator plugins
        max_concurrent: Worker pool size (0 = unbounded)
        drain_timeout: Seconds to wait for in-flight files at shutdown
        settle_seconds: Quiet period required before reading a file (0 = off)
        settle_timeout: Upper bound on waiting for a file to settle
        rescan_on_overflow: Rescan the directory when notifications overflow
        scan_existing: Process matching files already present at startup
        debounce_ms: Batching window for native notifications
        step_ms: Polling step of the native watcher
        force_polling: Force the polling backend (None = auto)
        api_host: Bind address of the admin API
        api_port: Port of the admin API (None = disabled)
    """
    path: Path
    input_extension: str = ".txt"
    output_suffix: str = ".xml"
    encoding: str = "utf-8"
    ignore_patterns: List[str] = field(default_factory=lambda: [
        ".*",
        "*.tmp",
        "*.temp",
        "*.swp",
        "*.swo",
        "*~",
        "*.part",
    ])
    annotator: str = "sentences"
    annotator_config: dict = field(default_factory=dict)
    plugins_dir: Optional[Path] = None
    max_concurrent: int = 4
    drain_timeout: float = 30.0
    settle_seconds: float = 0.0
    settle_timeout: float = 60.0
    rescan_on_overflow: bool = True
    scan_existing: bool = False
    debounce_ms: int = 200
    step_ms: int = 50
    force_polling: Optional[bool] = None
    api_host: str = "127.0.0.1"
    api_port: Optional[int] = None

    def __post_init__(self):
        self.path = Path(self.path)
        if self.plugins_dir is not None:
            self.plugins_dir = Path(self.plugins_dir)
        self.input_extension = _normalize_extension(self.input_extension)
        if not self.input_extension:
            raise ValueError("input_extension must not be empty")
        if not self.output_suffix:
            raise ValueError("output_suffix must not be empty")
        if self.max_concurrent < 0:
            raise ValueError("max_concurrent must be >= 0")
        if self.drain_timeout < 0 or self.settle_seconds < 0:
            raise ValueError("drain_timeout and settle_seconds must be >= 0")

    def output_path_for(self, input_path: Path) -> Path:
        """Derive the artifact path for an input file."""
        return input_path.with_name(input_path.name + self.output_suffix)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "path": str(self.path),
            "input_extension": self.input_extension,
            "output_suffix": self.output_suffix,
            "encoding": self.encoding,
            "ignore_patterns": self.ignore_patterns,
            "annotator": self.annotator,
            "annotator_config": self.annotator_config,
            "plugins_dir": str(self.plugins_dir) if self.plugins_dir else None,
            "max_concurrent": self.max_concurrent,
            "drain_timeout": self.drain_timeout,
            "settle_seconds": self.settle_seconds,
            "settle_timeout": self.settle_timeout,
            "rescan_on_overflow": self.rescan_on_overflow,
            "scan_existing": self.scan_existing,
            "debounce_ms": self.debounce_ms,
            "step_ms": self.step_ms,
            "force_polling": self.force_polling,
            "api_host": self.api_host,
            "api_port": self.api_port,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WatchConfig":
        """Create from dictionary. Unknown keys are rejected."""
        known = cls.__dataclass_fields__
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown watcher settings: {sorted(unknown)}")
        if "path" not in data:
            raise ValueError("Watcher settings missing required 'path'")
        return cls(**data)

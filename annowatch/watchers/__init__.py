"""Directory watching: event sources, filtering and configuration."""

from .watch_config import WatchConfig, WatchTarget, RawEvent, RawEventKind, CandidateFile
from .event_source import EventSource, FileSystemEventSource
from .event_filter import EventFilter
from .config_loader import load_config_from_yaml, save_config_to_yaml, write_example_config

__all__ = [
    "WatchConfig",
    "WatchTarget",
    "RawEvent",
    "RawEventKind",
    "CandidateFile",
    "EventSource",
    "FileSystemEventSource",
    "EventFilter",
    # Config loading
    "load_config_from_yaml",
    "save_config_to_yaml",
    "write_example_config",
]

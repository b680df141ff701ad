"""Enumerations for annowatch."""

from enum import Enum


class RecordState(str, Enum):
    """Processing state of one input path."""
    
    PENDING = "pending"
    """First qualifying event seen, processing not yet claimed."""
    
    IN_FLIGHT = "in_flight"
    """Claimed by the dispatcher; reading, annotating or writing."""
    
    DONE = "done"
    """Artifact written successfully."""
    
    FAILED = "failed"
    """Read, annotation or write failed (or the run was abandoned)."""


class ServiceState(str, Enum):
    """Lifecycle state of a WatcherService."""
    
    INITIALIZING = "initializing"
    WATCHING = "watching"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"

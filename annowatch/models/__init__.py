"""Core data models for annowatch."""

from .enums import RecordState, ServiceState
from .artifact import Artifact
from .record import ProcessingRecord

__all__ = [
    "RecordState",
    "ServiceState",
    "Artifact",
    "ProcessingRecord",
]

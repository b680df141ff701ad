"""ProcessingRecord - per-path bookkeeping owned by the dispatcher."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidTransition
from .enums import RecordState


class ProcessingRecord(BaseModel):
    """
    Tracks what has happened to one input path during this daemon run.
    
    States only move forward: pending -> in_flight -> done | failed.
    A failed record may be claimed again (explicit retry), which starts
    a new attempt; a done record never is.
    """
    
    model_config = ConfigDict(
        use_enum_values=True,
        validate_default=True,
        validate_assignment=True,
    )
    
    path: str
    """Absolute path of the input file."""
    
    state: RecordState = RecordState.PENDING
    
    attempts: int = 0
    """Number of times processing has been started for this path."""
    
    output_path: Optional[str] = None
    """Where the artifact was written (set when done)."""
    
    error_message: Optional[str] = None
    """Reason for the last failure."""
    
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.now)
    
    # State transitions
    
    def start(self) -> None:
        """Claim the record for a new processing attempt."""
        if self.state not in (RecordState.PENDING, RecordState.FAILED):
            raise InvalidTransition(f"Cannot start {self.path} from state {self.state}")
        self.state = RecordState.IN_FLIGHT
        self.attempts += 1
        self.error_message = None
        self.started_at = datetime.now()
        self.completed_at = None
        self.updated_at = datetime.now()
    
    def complete(self, output_path: str) -> None:
        """Mark the artifact as written."""
        if self.state != RecordState.IN_FLIGHT:
            raise InvalidTransition(f"Cannot complete {self.path} from state {self.state}")
        self.state = RecordState.DONE
        self.output_path = output_path
        self.completed_at = datetime.now()
        self.updated_at = datetime.now()
    
    def fail(self, error: str) -> None:
        """Mark the current attempt as failed."""
        if self.state != RecordState.IN_FLIGHT:
            raise InvalidTransition(f"Cannot fail {self.path} from state {self.state}")
        self.state = RecordState.FAILED
        self.error_message = error
        self.completed_at = datetime.now()
        self.updated_at = datetime.now()
    
    # Computed properties
    
    @property
    def is_active(self) -> bool:
        """Whether new events for this path must be ignored."""
        return self.state in (RecordState.IN_FLIGHT, RecordState.DONE)
    
    @property
    def is_terminal(self) -> bool:
        return self.state in (RecordState.DONE, RecordState.FAILED)
    
    @property
    def duration_seconds(self) -> Optional[float]:
        """Time spent on the latest attempt."""
        if self.started_at:
            end = self.completed_at or datetime.now()
            return (end - self.started_at).total_seconds()
        return None

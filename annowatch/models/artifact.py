"""Artifact model - the output an annotator produces for one input."""

from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field


class Artifact(BaseModel):
    """
    Output produced by an annotator for a single input text.
    
    The dispatcher writes ``content`` once to the derived output path
    and drops the object afterwards.
    """
    
    content: str
    """Serialized output (XML for the built-in annotators)."""
    
    media_type: str = "application/xml"
    """MIME type of ``content``."""
    
    metadata: dict[str, Any] = Field(default_factory=dict)
    """Annotator-specific counters (tokens, sentences, ...) used for logging."""
    
    created_at: datetime = Field(default_factory=datetime.now)
    
    @property
    def size(self) -> int:
        return len(self.content)

"""Exception taxonomy for annowatch.

Fatal errors stop the daemon (or prevent it from starting). Processing
errors are scoped to a single input file and never leave the dispatcher.
"""

from pathlib import Path
from typing import Optional


class AnnowatchError(Exception):
    """Base class for all annowatch errors."""


# -------------------------------------------------------------------------
# Fatal
# -------------------------------------------------------------------------

class DirectoryUnwatchable(AnnowatchError):
    """The watch directory is missing, not a directory, or cannot be watched."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Cannot watch {self.path}: {reason}")


class SourceClosed(AnnowatchError):
    """Raised by ``EventSource.next()`` once the source has been closed."""


class WatchLoopError(AnnowatchError):
    """The event source went away without a shutdown being requested."""


class AnnotatorLoadError(AnnowatchError):
    """The configured annotator could not be found or constructed."""


# -------------------------------------------------------------------------
# Per-file
# -------------------------------------------------------------------------

class ProcessingError(AnnowatchError):
    """A failure while processing one input file."""

    stage = "process"

    def __init__(self, path: Path | str, message: str, cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"{self.stage} failed for {self.path}: {message}")


class ReadError(ProcessingError):
    stage = "read"


class AnnotationError(ProcessingError):
    """Raised by annotators when they cannot process the given text.

    Annotators may raise it without a path; the dispatcher fills it in.
    """

    stage = "annotate"

    def __init__(self, message: str, path: Path | str = "", cause: Optional[BaseException] = None):
        self.message = message
        super().__init__(path, message, cause)


class WriteError(ProcessingError):
    stage = "write"


class InvalidTransition(ValueError):
    """A processing record was asked to move backwards or sideways."""

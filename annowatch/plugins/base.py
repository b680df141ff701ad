"""Base Annotator class - the plugin interface."""

from abc import ABC, abstractmethod
from typing import Optional, Any
import logging

from ..models import Artifact

logger = logging.getLogger(__name__)


class Annotator(ABC):
    """
    Base class for all annotators.

    An annotator turns the full text of one input file into an artifact
    (for example an XML document of tokens and sentences). The watcher
    treats it as an opaque, possibly slow capability: it is constructed
    once at startup and then called concurrently for independent files.

    Each annotator must implement:
    - process(): Annotate a text and return the artifact

    Optionally, annotators can:
    - Load expensive resources (models, lexicons) in on_load()
    - Release them in on_unload()
    - Define configuration defaults

    CPU-bound work should run in a worker thread (``asyncio.to_thread``)
    so the event loop keeps dispatching other files.

    Example:
        class UppercaseAnnotator(Annotator):
            name = "upper"
            display_name = "Uppercase"

            async def process(self, text: str) -> Artifact:
                return Artifact(content=text.upper(), media_type="text/plain")
    """

    # -------------------------------------------------------------------------
    # Metadata (override in subclasses)
    # -------------------------------------------------------------------------

    name: str = ""
    """Unique identifier used to select this annotator."""

    display_name: str = ""
    """Human-readable name for logs and the admin API."""

    description: str = ""
    """Description of what this annotator produces."""

    version: str = "1.0.0"
    """Version of this annotator."""

    default_config: dict[str, Any] = {}
    """Default values for configuration options."""

    _config: dict[str, Any]

    def __init__(self, config: Optional[dict[str, Any]] = None):
        """
        Initialize the annotator with optional configuration.

        Args:
            config: Configuration overrides
        """
        self._config = {**self.default_config, **(config or {})}

    @property
    def config(self) -> dict[str, Any]:
        """Get the runtime configuration."""
        return self._config

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self._config.get(key, default)

    # -------------------------------------------------------------------------
    # Abstract methods
    # -------------------------------------------------------------------------

    @abstractmethod
    async def process(self, text: str) -> Artifact:
        """
        Annotate a text.

        Args:
            text: Full contents of the input file

        Returns:
            The artifact to write next to the input

        Raises:
            AnnotationError: If the text cannot be annotated
        """
        pass

    # -------------------------------------------------------------------------
    # Lifecycle hooks
    # -------------------------------------------------------------------------

    async def on_load(self) -> None:
        """Called once after construction. Load models here."""
        pass

    async def on_unload(self) -> None:
        """Called when the service stops."""
        pass

    def info(self) -> dict[str, Any]:
        """Describe this annotator for the admin API."""
        return {
            "name": self.name,
            "display_name": self.display_name or self.name,
            "description": self.description,
            "version": self.version,
            "config": self.config,
        }

    def __repr__(self) -> str:
        return f"<Annotator {self.name}>"

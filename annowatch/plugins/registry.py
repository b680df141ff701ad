"""Annotator registry - maps annotator names to their classes."""

from typing import Optional, Any
import logging

from ..errors import AnnotatorLoadError
from .base import Annotator

logger = logging.getLogger(__name__)

_MANIFEST_ATTRS = ("display_name", "description", "version")


class AnnotatorRegistry:
    """
    Central registry of available annotators.

    Annotators are registered as classes and only instantiated on demand,
    since construction may load large models.
    """

    def __init__(self):
        self._classes: dict[str, type[Annotator]] = {}
        self._manifests: dict[str, dict[str, Any]] = {}

    @classmethod
    def with_builtins(cls) -> "AnnotatorRegistry":
        """Create a registry holding the built-in annotators."""
        from .builtin import BUILTIN_ANNOTATORS

        registry = cls()
        for annotator_class in BUILTIN_ANNOTATORS:
            registry.register(annotator_class)
        return registry

    def register(
        self,
        annotator_class: type[Annotator],
        manifest: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Register an annotator class.

        Args:
            annotator_class: The Annotator subclass
            manifest: Optional plugin manifest overriding name, metadata
                and configuration defaults

        Returns:
            The registered name

        Raises:
            ValueError: If the class has no name or the name is taken
        """
        manifest = manifest or {}
        name = manifest.get("name") or annotator_class.name
        if not name:
            raise ValueError(f"Annotator {annotator_class.__name__} has no name")

        if name in self._classes:
            raise ValueError(f"Annotator '{name}' is already registered")

        self._classes[name] = annotator_class
        self._manifests[name] = manifest

        logger.info(f"Registered annotator: {name}")
        return name

    def unregister(self, name: str) -> Optional[type[Annotator]]:
        """Remove an annotator; returns its class, or None if not found."""
        annotator_class = self._classes.pop(name, None)
        self._manifests.pop(name, None)

        if annotator_class:
            logger.info(f"Unregistered annotator: {name}")

        return annotator_class

    def get(self, name: str) -> Optional[type[Annotator]]:
        return self._classes.get(name)

    def get_names(self) -> list[str]:
        return list(self._classes.keys())

    def has(self, name: str) -> bool:
        return name in self._classes

    async def create(self, name: str, config: Optional[dict[str, Any]] = None) -> Annotator:
        """
        Construct and load an annotator.

        Configuration layers, lowest first: class defaults, manifest
        defaults, ``config``.

        Raises:
            AnnotatorLoadError: If the name is unknown or construction
                or ``on_load()`` fails
        """
        annotator_class = self._classes.get(name)
        if annotator_class is None:
            available = ", ".join(sorted(self._classes)) or "none"
            raise AnnotatorLoadError(f"Unknown annotator '{name}' (available: {available})")

        manifest = self._manifests.get(name, {})
        merged = {**_manifest_defaults(manifest), **(config or {})}

        try:
            annotator = annotator_class(config=merged)
            annotator.name = name
            for attr in _MANIFEST_ATTRS:
                if attr in manifest:
                    setattr(annotator, attr, manifest[attr])
            await annotator.on_load()
        except Exception as e:
            raise AnnotatorLoadError(f"Could not construct annotator '{name}': {e}") from e

        logger.info(f"Constructed annotator {name} v{annotator.version}")
        return annotator

    def __len__(self) -> int:
        return len(self._classes)

    def __contains__(self, name: str) -> bool:
        return name in self._classes

    def __iter__(self):
        return iter(self._classes.items())


def _manifest_defaults(manifest: dict[str, Any]) -> dict[str, Any]:
    """Extract defaults from a manifest's ``config`` schema."""
    defaults = {}
    for key, schema in (manifest.get("config") or {}).items():
        if isinstance(schema, dict) and "default" in schema:
            defaults[key] = schema["default"]
    return defaults

"""Plugin loader - discovers annotator plugins in a directory."""

from pathlib import Path
from typing import Optional
import importlib.util
import sys
import yaml
import logging

from .base import Annotator
from .registry import AnnotatorRegistry

logger = logging.getLogger(__name__)


class PluginLoader:
    """
    Discovers and registers annotator plugins from a directory.

    Plugin structure:
        plugins/
        ├── my_annotator/
        │   ├── manifest.yaml     # Optional metadata and configuration
        │   └── annotator.py      # Annotator implementation

    The manifest.yaml may contain:
        name: my_annotator
        display_name: My Annotator
        description: What this annotator produces
        version: 1.0.0
        annotator_class: MyAnnotator
        config:
          option_name:
            type: string
            default: value
    """

    def __init__(self, plugins_dir: Path | str, registry: AnnotatorRegistry):
        self.plugins_dir = Path(plugins_dir)
        self.registry = registry

    def load_all(self) -> list[str]:
        """
        Register all plugins found in the plugins directory.

        Plugins that fail to import are logged and skipped.

        Returns:
            List of registered annotator names
        """
        if not self.plugins_dir.is_dir():
            logger.warning(f"Plugins directory does not exist: {self.plugins_dir}")
            return []

        loaded = []

        for plugin_path in sorted(self.plugins_dir.iterdir()):
            if not plugin_path.is_dir():
                continue

            if plugin_path.name.startswith("_") or plugin_path.name.startswith("."):
                continue

            try:
                name = self.load_plugin(plugin_path)
                if name:
                    loaded.append(name)
            except Exception as e:
                logger.error(f"Failed to load plugin from {plugin_path}: {e}")

        logger.info(f"Loaded {len(loaded)} plugins: {loaded}")
        return loaded

    def load_plugin(self, plugin_path: Path) -> Optional[str]:
        """
        Import a single plugin and register its annotator class.

        Args:
            plugin_path: Path to the plugin directory

        Returns:
            The registered name, or None if the plugin has no annotator
        """
        annotator_path = plugin_path / "annotator.py"
        if not annotator_path.exists():
            logger.warning(f"No annotator.py found in {plugin_path}")
            return None

        manifest = self._load_manifest(plugin_path / "manifest.yaml") or {}

        annotator_class = self._load_annotator_class(annotator_path, manifest)
        if annotator_class is None:
            return None

        return self.registry.register(annotator_class, manifest)

    def _load_manifest(self, manifest_path: Path) -> Optional[dict]:
        """Load and parse the manifest.yaml file."""
        if not manifest_path.exists():
            return None

        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                manifest = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error loading manifest from {manifest_path}: {e}")
            return None

        return manifest if isinstance(manifest, dict) else None

    def _load_annotator_class(
        self,
        annotator_path: Path,
        manifest: dict,
    ) -> Optional[type[Annotator]]:
        """Load the annotator class from annotator.py."""
        module_name = f"annowatch_plugin_{annotator_path.parent.name}"

        spec = importlib.util.spec_from_file_location(module_name, annotator_path)
        if spec is None or spec.loader is None:
            logger.error(f"Could not load spec for {annotator_path}")
            return None

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            del sys.modules[module_name]
            raise

        # Look for a class specified in the manifest
        class_name = manifest.get("annotator_class")
        if class_name:
            annotator_class = getattr(module, class_name, None)
            if isinstance(annotator_class, type) and issubclass(annotator_class, Annotator):
                return annotator_class
            logger.error(f"{annotator_path} has no Annotator subclass named {class_name}")
            return None

        # Otherwise, take the first Annotator subclass defined in the module
        for obj in vars(module).values():
            if (
                isinstance(obj, type)
                and issubclass(obj, Annotator)
                and obj is not Annotator
                and obj.__module__ == module_name
            ):
                return obj

        logger.error(f"No Annotator subclass found in {annotator_path}")
        return None

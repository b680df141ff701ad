"""Load watcher settings from YAML files."""

import logging
import os
from pathlib import Path
from typing import Any
import yaml

from .watch_config import WatchConfig

logger = logging.getLogger(__name__)

_PATH_KEYS = ("path", "plugins_dir")


def load_config_from_yaml(config_path: Path) -> dict[str, Any]:
    """
    Load watcher settings from a YAML file.

    Expected format:

    ```yaml
    watcher:
      path: ~/corpus/incoming
      input_extension: .txt
      output_suffix: .xml
      annotator: sentences
      annotator_config:
        include_offsets: true
      max_concurrent: 4
      drain_timeout: 30
    ```

    The settings are returned unvalidated so callers can layer command
    line overrides on top before building a ``WatchConfig``.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Settings dict (empty if the file does not exist)

    Raises:
        ValueError: If the file is not valid YAML or has the wrong shape
    """
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if not data:
        return {}

    if not isinstance(data, dict) or not isinstance(data.get("watcher", {}), dict):
        raise ValueError(f"{config_path}: expected a 'watcher' mapping")

    settings = dict(data.get("watcher") or {})
    for key in _PATH_KEYS:
        if settings.get(key) is not None:
            settings[key] = _expand_path(settings[key])

    logger.info(f"Loaded watcher settings from {config_path}")
    return settings


def _expand_path(value: Any) -> Path:
    """Expand user home and environment variables in a path setting."""
    return Path(os.path.expandvars(str(Path(str(value)).expanduser())))


def save_config_to_yaml(config: WatchConfig, config_path: Path) -> None:
    """
    Save watcher settings to a YAML file.

    Args:
        config: The configuration to write
        config_path: Path to write the YAML file
    """
    data = {"watcher": config.to_dict()}

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    logger.info(f"Saved watcher settings to {config_path}")


# Example configuration template
EXAMPLE_CONFIG = """# annowatch configuration
#
# The directory given on the command line overrides 'path'.

watcher:
  path: ~/corpus/incoming

  # Files with this extension (case-insensitive) are annotated
  input_extension: .txt
  # The artifact is written next to the input: a.txt -> a.txt.xml
  output_suffix: .xml
  encoding: utf-8

  # Annotator to construct, and overrides for its defaults
  annotator: sentences
  annotator_config:
    include_offsets: true
  # Extra annotator plugins (one sub-directory per plugin)
  # plugins_dir: ~/annowatch/plugins

  # Concurrent annotation runs (0 = unbounded)
  max_concurrent: 4
  # Seconds to wait for in-flight files when shutting down
  drain_timeout: 30
  # Wait until a file has been quiet this long before reading (0 = off)
  settle_seconds: 0

  rescan_on_overflow: true
  scan_existing: false

  ignore_patterns:
    - ".*"
    - "*.tmp"
    - "*.swp"
    - "*~"
    - "*.part"

  # Admin API (disabled unless a port is set)
  # api_host: 127.0.0.1
  # api_port: 8765
"""


def write_example_config(config_path: Path) -> None:
    """Write an example configuration file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(EXAMPLE_CONFIG)
    logger.info(f"Wrote example configuration to {config_path}")

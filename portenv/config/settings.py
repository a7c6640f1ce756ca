"""
User settings loaded from an optional YAML file.

Recognized keys (all optional)::

    target_base: D:/portable        # where tools are installed
    cache_dir: D:/portenv-cache     # download cache root
    manifest: ./tools.json          # local manifest override
    manifest_url: https://.../tools.json
    create_shortcuts: true
    host_triple: x86_64-pc-windows-gnu

Unknown keys are ignored.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from portenv.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "portenv.yaml"
DEFAULT_HOST_TRIPLE = "x86_64-pc-windows-gnu"


@dataclass(frozen=True)
class Settings:
    """Settings that shape one portenv run."""

    target_base: Optional[Path] = None
    cache_dir: Optional[Path] = None
    manifest: Optional[Path] = None
    manifest_url: Optional[str] = None
    create_shortcuts: bool = True
    host_triple: str = DEFAULT_HOST_TRIPLE

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "Settings":
        """
        Build settings from a parsed mapping.

        Relative paths are resolved against base_dir (the settings file's
        directory).

        Raises:
            ConfigurationError: If a known key has the wrong type
        """
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.debug(f"Ignoring unknown settings key: {key}")

        values: Dict[str, Any] = {}
        for key in ("target_base", "cache_dir", "manifest"):
            raw = data.get(key)
            if raw is None:
                continue
            if not isinstance(raw, str):
                raise ConfigurationError(f"Setting '{key}' must be a path string")
            path = Path(raw).expanduser()
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            values[key] = path

        for key in ("manifest_url", "host_triple"):
            raw = data.get(key)
            if raw is None:
                continue
            if not isinstance(raw, str) or not raw:
                raise ConfigurationError(f"Setting '{key}' must be a non-empty string")
            values[key] = raw

        if "create_shortcuts" in data:
            raw = data["create_shortcuts"]
            if not isinstance(raw, bool):
                raise ConfigurationError("Setting 'create_shortcuts' must be true or false")
            values["create_shortcuts"] = raw

        return cls(**values)


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigurationError: If the file is required but missing, or not valid YAML
    """
    if not config_file.exists():
        if required:
            raise ConfigurationError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {config_file}")
    return config


def load_settings(config_file: Optional[Path] = None, cwd: Optional[Path] = None) -> Settings:
    """
    Load settings from ``config_file`` or ``<cwd>/portenv.yaml``.

    An explicitly named file must exist; the default file is optional.
    """
    if config_file is not None:
        config_file = Path(config_file)
        data = load_yaml_config(config_file, required=True)
    else:
        config_file = (cwd or Path.cwd()) / DEFAULT_SETTINGS_FILE
        data = load_yaml_config(config_file, required=False)

    return Settings.from_dict(data, base_dir=config_file.parent.resolve())

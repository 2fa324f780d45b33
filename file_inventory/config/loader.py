"""Load and validate scan configuration files."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from file_inventory.config.models import ScanConfig

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a scan configuration file is missing or invalid."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, raising ConfigError for anything else."""
    if not path.exists():
        raise ConfigError(path, "file not found")
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(path, f"invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(path, "top level must be a mapping")
    return data


def load_config(path: str | Path, **overrides: Any) -> ScanConfig:
    """Load a scan config, applying non-None keyword overrides.

    Args:
        path: YAML file path
        **overrides: Top-level fields (e.g. concurrency=1) taking precedence
            over the file. ``None`` values are ignored.

    Raises:
        ConfigError: File missing, unparsable, or failing validation.
    """
    path = Path(path).expanduser()
    data = _load_yaml(path)
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        config = ScanConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(path, str(e)) from e
    logger.debug(
        "Loaded %s: %d roots, %d static targets, ldap=%s",
        path,
        len(config.paths),
        len(config.targets),
        config.ldap is not None,
    )
    return config

"""Scan run configuration: YAML files validated into pydantic models."""

from file_inventory.config.loader import ConfigError, load_config
from file_inventory.config.models import LdapSelector, MailConfig, PathSpec, ScanConfig

__all__ = [
    "ConfigError",
    "LdapSelector",
    "MailConfig",
    "PathSpec",
    "ScanConfig",
    "load_config",
]

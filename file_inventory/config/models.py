"""
Pydantic models for the scan run configuration.

A run is described by one YAML file:

    targets: [srv01, srv02]          # static list, or ...
    ldap:                            # ... directory lookup
      uri: ldaps://dc01.example.org
      base_dn: OU=Servers,DC=example,DC=org
    paths:
      - root: /data
        extensions: [.txt, .csv]
    concurrency: 8
    timeout: 600
    mail:
      sender: inventory@example.org
      recipients: [ops@example.org]
      admin_recipients: [admin@example.org]

Defaults for anything omitted come from settings.py.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from file_inventory.models import PathFilter, PathFilterSet
from file_inventory.settings import (
    get_default_concurrency,
    get_default_timeout,
    get_output_dir,
    get_python_command,
    get_report_prefix,
    get_smtp_host,
    get_smtp_port,
    get_smtp_starttls,
)


class PathSpec(BaseModel):
    """One root directory and the extensions searched under it."""

    root: str = Field(description="Absolute directory searched recursively")
    extensions: list[str] = Field(
        min_length=1,
        description="Suffixes including the dot, matched case-insensitively",
    )

    @field_validator("root")
    @classmethod
    def _root_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("root must not be empty")
        return value

    @field_validator("extensions")
    @classmethod
    def _extensions_dotted(cls, value: list[str]) -> list[str]:
        cleaned = [ext.strip() for ext in value]
        bad = [ext for ext in cleaned if not ext.startswith(".") or len(ext) < 2]
        if bad:
            raise ValueError(f"extensions must start with '.': {bad}")
        return cleaned


class LdapSelector(BaseModel):
    """Directory lookup for the servers in an organizational unit."""

    uri: str
    base_dn: str
    filter: str = "(objectClass=computer)"
    attribute: str = "dNSHostName"
    bind_dn: str | None = None


class MailConfig(BaseModel):
    """Summary and escalation mail settings."""

    smtp_host: str = Field(default_factory=get_smtp_host)
    smtp_port: int = Field(default_factory=get_smtp_port)
    starttls: bool = Field(default_factory=get_smtp_starttls)
    username: str | None = None
    sender: str
    recipients: list[str] = Field(min_length=1)
    admin_recipients: list[str] = Field(min_length=1)
    subject_prefix: str = "File inventory"


class ScanConfig(BaseModel):
    """Validated configuration for one scan run."""

    targets: list[str] = Field(default_factory=list)
    ldap: LdapSelector | None = None
    paths: list[PathSpec] = Field(min_length=1)
    concurrency: int = Field(default_factory=get_default_concurrency, ge=1)
    timeout: float | None = Field(default_factory=get_default_timeout)
    output_dir: Path = Field(default_factory=get_output_dir)
    report_prefix: str = Field(default_factory=get_report_prefix)
    python_command: str = Field(default_factory=get_python_command)
    mail: MailConfig | None = None

    @field_validator("timeout")
    @classmethod
    def _zero_means_unbounded(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            return None
        return value

    @model_validator(mode="after")
    def _check_sources_and_roots(self) -> ScanConfig:
        if not self.targets and self.ldap is None:
            raise ValueError("either 'targets' or 'ldap' must be configured")
        roots = [spec.root for spec in self.paths]
        duplicates = sorted({root for root in roots if roots.count(root) > 1})
        if duplicates:
            raise ValueError(f"duplicate root paths: {duplicates}")
        return self

    def filter_set(self) -> PathFilterSet:
        """The read-only search instructions sent to every target."""
        return PathFilterSet(
            tuple(PathFilter(spec.root, tuple(spec.extensions)) for spec in self.paths)
        )

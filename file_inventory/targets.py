"""Resolve the list of servers to scan.

Two sources:
- StaticTargets: names supplied in the config file
- LdapTargets: computer objects under a directory OU, queried with the
  OpenLDAP ``ldapsearch`` client on the machine running the scan

Both return an ordered, duplicate-free list. An empty list is a valid
answer; failing to query the directory at all raises TargetResolutionError,
which the pipeline treats as an orchestration failure.
"""

from __future__ import annotations

import base64
import binascii
import logging
import shlex
import subprocess
import tempfile
from collections.abc import Iterable
from typing import Protocol

from file_inventory.config.models import LdapSelector, ScanConfig
from file_inventory.remote.executor import run_command
from file_inventory.settings import get_ldap_bind_password

logger = logging.getLogger(__name__)


class TargetResolutionError(Exception):
    """The target list could not be resolved."""


class TargetSource(Protocol):
    def enumerate(self) -> list[str]: ...


def _unique(names: Iterable[str]) -> list[str]:
    """Strip blanks and drop case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    ordered: list[str] = []
    for name in names:
        name = name.strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            ordered.append(name)
    return ordered


class StaticTargets:
    """Targets listed explicitly."""

    def __init__(self, names: Iterable[str]) -> None:
        self._names = list(names)

    def enumerate(self) -> list[str]:
        return _unique(self._names)


def parse_ldif_attribute(output: str, attribute: str) -> list[str]:
    """Extract attribute values from ``ldapsearch -LLL`` LDIF output.

    Handles base64 values (``attr:: ...``) and folded continuation lines.
    """
    # Unfold: a line starting with a single space continues the previous one
    lines: list[str] = []
    for line in output.splitlines():
        if line.startswith(" ") and lines:
            lines[-1] += line[1:]
        else:
            lines.append(line)

    values = []
    prefix = attribute.lower()
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep or key.lower() != prefix:
            continue
        if value.startswith(":"):
            try:
                values.append(base64.b64decode(value[1:].strip()).decode())
            except (binascii.Error, UnicodeDecodeError):
                logger.warning("Skipping undecodable %s value: %s", attribute, value)
        else:
            values.append(value.strip())
    return values


class LdapTargets:
    """Computer objects under an organizational unit."""

    def __init__(
        self,
        selector: LdapSelector,
        password: str | None = None,
        timeout: int = 120,
    ) -> None:
        self.selector = selector
        self.password = password
        self.timeout = timeout

    def _command(self, password_file: str | None) -> str:
        args = ["ldapsearch", "-LLL", "-x", "-H", self.selector.uri]
        args += ["-b", self.selector.base_dn]
        if self.selector.bind_dn:
            args += ["-D", self.selector.bind_dn]
        if password_file:
            args += ["-y", password_file]
        args += [self.selector.filter, self.selector.attribute]
        return " ".join(shlex.quote(arg) for arg in args)

    def enumerate(self) -> list[str]:
        try:
            if self.password:
                # -y keeps the password out of the process list
                with tempfile.NamedTemporaryFile("w", suffix=".pw") as pw:
                    pw.write(self.password)
                    pw.flush()
                    output = run_command(
                        self._command(pw.name), timeout=self.timeout, check=True
                    )
            else:
                output = run_command(self._command(None), timeout=self.timeout, check=True)
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise TargetResolutionError(
                f"ldapsearch against {self.selector.base_dn} failed: {detail}"
            ) from e
        except (subprocess.TimeoutExpired, OSError) as e:
            raise TargetResolutionError(
                f"ldapsearch against {self.selector.base_dn} failed: {e}"
            ) from e

        names = _unique(parse_ldif_attribute(output, self.selector.attribute))
        logger.info("Resolved %d servers under %s", len(names), self.selector.base_dn)
        return names


def target_source(config: ScanConfig) -> TargetSource:
    """Pick the target source for a config; a static list wins over LDAP."""
    if config.targets:
        return StaticTargets(config.targets)
    if config.ldap is None:
        raise TargetResolutionError("no target source configured")
    return LdapTargets(config.ldap, password=get_ldap_bind_password())

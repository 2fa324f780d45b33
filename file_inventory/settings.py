"""Project settings loaded from pyproject.toml [tool.file-inventory] section.

Configuration is organized into subsections:
  [tool.file-inventory]          - general settings (concurrency, timeout)
  [tool.file-inventory.remote]   - remote interpreter and SSH connect timeout
  [tool.file-inventory.report]   - output directory and report file prefix
  [tool.file-inventory.mail]     - SMTP host/port defaults

All settings support environment variable overrides (FILE_INVENTORY_* prefix).
Per-run values in the scan YAML take precedence over everything here.
"""

import importlib.resources
import os
import tomllib
from functools import cache
from pathlib import Path


@cache
def _load_pyproject_settings() -> dict:
    """Load settings from pyproject.toml [tool.file-inventory] section.

    Returns:
        Dictionary of settings from pyproject.toml, empty dict if not found.
    """
    try:
        # Try package resources first (installed package)
        files = importlib.resources.files("file_inventory")
        pyproject_path = files.joinpath("..", "pyproject.toml")

        # Walk up to find pyproject.toml (for development)
        if not pyproject_path.is_file():  # type: ignore[union-attr]
            current = Path(__file__).resolve().parent
            while current != current.parent:
                candidate = current / "pyproject.toml"
                if candidate.exists():
                    pyproject_path = candidate
                    break
                current = current.parent
            else:
                return {}

        content = pyproject_path.read_text()  # type: ignore[union-attr]
        data = tomllib.loads(content)
        return data.get("tool", {}).get("file-inventory", {})
    except Exception:
        return {}


def _get_section(section: str) -> dict:
    """Get a subsection from [tool.file-inventory.{section}]."""
    return _load_pyproject_settings().get(section, {})


def _parse_bool(value: str | bool) -> bool:
    """Parse a boolean value from string or bool."""
    if isinstance(value, bool):
        return value
    return value.lower() in ("true", "1", "yes")


# ─── Fan-out settings ──────────────────────────────────────────────────────


def get_default_concurrency() -> int:
    """Get the default number of targets scanned in parallel.

    Priority: FILE_INVENTORY_CONCURRENCY env → [tool.file-inventory].concurrency → 8.
    """
    if env := os.getenv("FILE_INVENTORY_CONCURRENCY"):
        return int(env)
    val = _load_pyproject_settings().get("concurrency")
    return int(val) if val is not None else 8


def get_default_timeout() -> float | None:
    """Get the per-target remote execution timeout in seconds.

    A value of 0 disables the timeout and leaves hung calls to the transport.

    Priority: FILE_INVENTORY_TIMEOUT env → [tool.file-inventory].timeout → 600.
    """
    if env := os.getenv("FILE_INVENTORY_TIMEOUT"):
        value = float(env)
    else:
        value = float(_load_pyproject_settings().get("timeout", 600))
    return value if value > 0 else None


# ─── Remote execution settings ─────────────────────────────────────────────


def get_python_command() -> str:
    """Get the interpreter used to run scan scripts on targets.

    Priority: FILE_INVENTORY_PYTHON env → [remote].python → 'python3'.
    """
    if env := os.getenv("FILE_INVENTORY_PYTHON"):
        return env
    return _get_section("remote").get("python", "python3")


def get_ssh_connect_timeout() -> int:
    """Get the SSH connect timeout used by connectivity checks."""
    if env := os.getenv("FILE_INVENTORY_SSH_CONNECT_TIMEOUT"):
        return int(env)
    return int(_get_section("remote").get("connect-timeout", 10))


# ─── Report settings ───────────────────────────────────────────────────────


def get_output_dir() -> Path:
    """Get the directory where report workbooks are written.

    Priority: FILE_INVENTORY_OUTPUT_DIR env → [report].output-dir
              → ~/.local/share/file-inventory/reports.
    """
    if env := os.getenv("FILE_INVENTORY_OUTPUT_DIR"):
        return Path(env).expanduser()
    if configured := _get_section("report").get("output-dir"):
        return Path(configured).expanduser()
    return Path.home() / ".local" / "share" / "file-inventory" / "reports"


def get_report_prefix() -> str:
    """Get the report file name prefix."""
    return _get_section("report").get("prefix", "file-inventory")


# ─── Mail settings ─────────────────────────────────────────────────────────


def get_smtp_host() -> str:
    """Priority: FILE_INVENTORY_SMTP_HOST env → [mail].smtp-host → 'localhost'."""
    if env := os.getenv("FILE_INVENTORY_SMTP_HOST"):
        return env
    return _get_section("mail").get("smtp-host", "localhost")


def get_smtp_port() -> int:
    if env := os.getenv("FILE_INVENTORY_SMTP_PORT"):
        return int(env)
    return int(_get_section("mail").get("smtp-port", 25))


def get_smtp_starttls() -> bool:
    if env := os.getenv("FILE_INVENTORY_SMTP_STARTTLS"):
        return _parse_bool(env)
    return _parse_bool(_get_section("mail").get("starttls", False))


def get_smtp_password() -> str | None:
    """SMTP password is only ever read from the environment (or .env)."""
    return os.getenv("FILE_INVENTORY_SMTP_PASSWORD") or None


def get_ldap_bind_password() -> str | None:
    """LDAP bind password is only ever read from the environment (or .env)."""
    return os.getenv("FILE_INVENTORY_LDAP_PASSWORD") or None

"""
Low-level command execution for local and remote targets.

This module provides the SSH/local execution primitives used to ship the
scan script to each target. It has no knowledge of filter sets or results;
remote/scan.py layers decoding and failure classification on top.

Functions:
- run_command(): Execute a shell command locally or via SSH
- run_python_script(): Execute a packaged script with JSON on stdin
- async_run_python_script(): Cancellable asyncio variant of the above
- is_local_host(): Check if a target refers to the local machine
- check_ssh_connection(): Quick connectivity probe with actionable errors
"""

import asyncio
import base64
import importlib.resources
import json
import logging
import re
import socket
import subprocess
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

SCRIPTS_PACKAGE = "file_inventory.remote.scripts"

# Scheduled runs must never block on a password or host-key prompt.
# Host names always follow "--": names from the directory are untrusted.
SSH_OPTIONS = ["-T", "-o", "BatchMode=yes"]


# ============================================================================
# SSH Connection Errors
# ============================================================================


class SSHConnectionError(Exception):
    """Raised when an SSH connection to a target fails.

    This indicates network-level issues like:
    - Host unreachable
    - Connection refused
    - DNS resolution failure
    - Authentication rejected
    """

    def __init__(self, ssh_host: str, message: str, suggestion: str | None = None):
        self.ssh_host = ssh_host
        self.suggestion = suggestion
        super().__init__(message)


# Ordered (stderr fragment, error template, suggestion) triples
_SSH_ERROR_PATTERNS = [
    (
        ("connection timed out", "operation timed out"),
        "Connection to {host} timed out",
        "Check VPN connection or network access",
    ),
    (
        ("connection refused",),
        "Connection to {host} refused",
        "SSH service may not be running on remote host",
    ),
    (
        ("no route to host", "network is unreachable"),
        "Cannot reach {host} - network unreachable",
        "Check VPN connection",
    ),
    (
        ("could not resolve hostname",),
        "Cannot resolve hostname for {host}",
        "Check DNS or the directory entry for this server",
    ),
    (
        ("permission denied",),
        "Permission denied for {host}",
        "Check SSH key or credentials",
    ),
]


def classify_ssh_error(ssh_host: str, stderr: str) -> tuple[str, str | None]:
    """Turn raw ssh stderr into an (error, suggestion) pair."""
    lowered = stderr.lower()
    for fragments, template, suggestion in _SSH_ERROR_PATTERNS:
        if any(fragment in lowered for fragment in fragments):
            return template.format(host=ssh_host), suggestion
    return f"SSH connection failed: {stderr.strip()}", None


def check_ssh_connection(ssh_host: str, timeout: int = 10) -> dict:
    """Test SSH connectivity to a host without running anything.

    Args:
        ssh_host: SSH host alias or hostname
        timeout: Connection timeout in seconds

    Returns:
        Dict with 'connected' (bool), 'error' (str or None), 'suggestion' (str or None)
    """
    if is_local_host(ssh_host):
        return {"connected": True, "error": None, "suggestion": None}

    try:
        result = subprocess.run(
            [
                "ssh",
                *SSH_OPTIONS,
                "-o",
                f"ConnectTimeout={timeout}",
                "--",
                ssh_host,
                "true",
            ],
            capture_output=True,
            text=True,
            timeout=timeout + 5,  # Allow a bit more than ConnectTimeout
        )
    except subprocess.TimeoutExpired:
        return {
            "connected": False,
            "error": f"Connection to {ssh_host} timed out (>{timeout}s)",
            "suggestion": "Check VPN connection or network access",
        }
    except OSError as e:
        return {"connected": False, "error": f"SSH error: {e}", "suggestion": None}

    if result.returncode == 0:
        return {"connected": True, "error": None, "suggestion": None}

    error, suggestion = classify_ssh_error(ssh_host, result.stderr)
    return {"connected": False, "error": error, "suggestion": suggestion}


def require_ssh_connection(ssh_host: str, timeout: int = 10) -> None:
    """Verify SSH connection is possible, raising SSHConnectionError if not."""
    if is_local_host(ssh_host):
        return

    result = check_ssh_connection(ssh_host, timeout=timeout)
    if not result["connected"]:
        raise SSHConnectionError(
            ssh_host=ssh_host,
            message=result["error"],
            suggestion=result["suggestion"],
        )


# ============================================================================
# Hostname Resolution
# ============================================================================


@lru_cache(maxsize=1)
def _get_local_hostnames() -> frozenset[str]:
    """Get all hostnames that refer to this machine."""
    hostnames = {"localhost", "127.0.0.1", "::1"}

    hostname = socket.gethostname()
    hostnames.add(hostname.lower())

    try:
        fqdn = socket.getfqdn().lower()
        hostnames.add(fqdn)
        hostnames.add(fqdn.split(".")[0])
    except OSError:
        pass

    return frozenset(hostnames)


@lru_cache(maxsize=64)
def _parse_ssh_config_host(ssh_host: str) -> tuple[str | None, bool]:
    """Parse ~/.ssh/config to get HostName and proxy status for an alias.

    Returns:
        Tuple of (resolved HostName or None, has_proxy)
    """
    ssh_config_path = Path.home() / ".ssh" / "config"
    if not ssh_config_path.exists():
        return None, False

    try:
        content = ssh_config_path.read_text()
    except OSError:
        return None, False

    in_block = False
    hostname = None
    has_proxy = False

    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        host_match = re.match(r"^Host\s+(.+)$", line, re.IGNORECASE)
        if host_match:
            if in_block and hostname is not None:
                return hostname, has_proxy
            in_block = ssh_host in host_match.group(1).split()
            hostname = None
            has_proxy = False
            continue

        if in_block:
            hostname_match = re.match(r"^HostName\s+(.+)$", line, re.IGNORECASE)
            if hostname_match:
                hostname = hostname_match.group(1).strip()
            elif re.match(r"^Proxy(Jump|Command)\s+", line, re.IGNORECASE):
                has_proxy = True

    if in_block and hostname is not None:
        return hostname, has_proxy

    return None, False


def is_local_host(ssh_host: str | None) -> bool:
    """Determine if a target refers to the local machine.

    Resolution order:

    1. ``None`` / ``"local"`` → always local
    2. Hostname / FQDN / short-name match
    3. SSH config resolution (``HostName`` via ``~/.ssh/config``),
       never local when a ProxyJump/ProxyCommand is configured
    """
    if ssh_host is None:
        return True

    host_lower = ssh_host.lower()
    if host_lower == "local":
        return True

    local_hostnames = _get_local_hostnames()
    if host_lower in local_hostnames:
        return True

    resolved, has_proxy = _parse_ssh_config_host(ssh_host)
    if has_proxy:
        return False

    return bool(resolved and resolved.lower() in local_hostnames)


# ============================================================================
# Execution
# ============================================================================


def run_command(
    cmd: str,
    ssh_host: str | None = None,
    timeout: int = 60,
    check: bool = False,
) -> str:
    """Execute a shell command locally or via SSH.

    Args:
        cmd: Shell command to execute
        ssh_host: SSH host to connect to (None = local)
        timeout: Command timeout in seconds
        check: Raise exception on non-zero exit

    Returns:
        Command stdout (stderr is logged at DEBUG)
    """
    if is_local_host(ssh_host):
        result = subprocess.run(
            cmd,
            shell=True,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    else:
        result = subprocess.run(
            ["ssh", *SSH_OPTIONS, "--", ssh_host, cmd],
            capture_output=True,
            text=True,
            timeout=timeout,
        )

    if result.stderr:
        logger.debug("run_command(%s) stderr: %s", ssh_host or "local", result.stderr[:500])

    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, cmd, result.stdout, result.stderr
        )

    return result.stdout.strip()


def _build_command(
    script_name: str, ssh_host: str | None, python_command: str
) -> list[str]:
    """Build the argv that runs a packaged script with JSON on stdin.

    The script is base64-encoded into a one-line runner so it survives any
    remote shell quoting; only the JSON input travels over stdin.
    """
    script_path = importlib.resources.files(SCRIPTS_PACKAGE).joinpath(script_name)
    script_content = script_path.read_text()
    script_b64 = base64.b64encode(script_content.encode()).decode()
    runner = (
        f"import base64;"
        f's=base64.b64decode("{script_b64}");'
        f'exec(compile(s,"{script_name}","exec"))'
    )

    if is_local_host(ssh_host):
        return [python_command, "-c", runner]
    return ["ssh", *SSH_OPTIONS, "--", ssh_host, f"{python_command} -c '{runner}'"]


def run_python_script(
    script_name: str,
    input_data: dict | list | None = None,
    ssh_host: str | None = None,
    timeout: float | None = 60,
    python_command: str = "python3",
) -> str:
    """Execute a Python script from the remote/scripts package.

    Args:
        script_name: Script filename (e.g., "scan_paths.py")
        input_data: Dict/list to pass as JSON on stdin (None = empty object)
        ssh_host: SSH host to connect to (None = local)
        timeout: Command timeout in seconds (None = no limit)
        python_command: Interpreter on the target

    Returns:
        Script stdout

    Raises:
        subprocess.CalledProcessError: On non-zero exit
        subprocess.TimeoutExpired: If the command exceeds timeout
    """
    cmd = _build_command(script_name, ssh_host, python_command)
    json_input = json.dumps(input_data) if input_data is not None else "{}"

    result = subprocess.run(
        cmd,
        input=json_input,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    # stderr must not contaminate structured JSON output
    if result.stderr:
        logger.debug(
            "run_python_script(%s) stderr: %s", script_name, result.stderr[:500]
        )

    if result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, script_name, result.stdout, result.stderr
        )

    return result.stdout.strip()


async def async_run_python_script(
    script_name: str,
    input_data: dict | list | None = None,
    ssh_host: str | None = None,
    timeout: float | None = 60,
    python_command: str = "python3",
) -> str:
    """Async version of run_python_script using asyncio subprocesses.

    Uses asyncio.create_subprocess_exec() so the call is fully cancellable
    and many targets can be in flight from a single event loop.

    Raises:
        subprocess.CalledProcessError: On non-zero exit
        subprocess.TimeoutExpired: If command exceeds timeout
        asyncio.CancelledError: If task is cancelled
    """
    cmd = _build_command(script_name, ssh_host, python_command)
    json_input = json.dumps(input_data) if input_data is not None else "{}"

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            proc.communicate(json_input.encode()),
            timeout=timeout,
        )
    except TimeoutError:
        proc.kill()
        await proc.wait()
        raise subprocess.TimeoutExpired(cmd, timeout) from None
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    stdout = stdout_bytes.decode(errors="replace")
    stderr = stderr_bytes.decode(errors="replace")

    if stderr:
        logger.debug("async_run_python_script(%s) stderr: %s", script_name, stderr[:500])

    if proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, script_name, stdout, stderr)

    return stdout.strip()

"""Run the scan task on one target and decode its result.

Wraps the scan_paths.py remote script: sends the filter set as JSON,
parses the JSON reply into a RemoteScanTaskResult, and converts every
way the call can go wrong at the transport level (SSH failure, non-zero
exit, timeout, unparsable or inconsistent output) into a single
TransportFailureError. In-task path errors are never raised; they travel
inside the result.
"""

from __future__ import annotations

import json
import logging
import subprocess
from datetime import datetime
from typing import Any

from file_inventory.models import (
    FileRecord,
    PathError,
    PathFilterSet,
    RemoteScanTaskResult,
)
from file_inventory.remote.executor import (
    async_run_python_script,
    classify_ssh_error,
    run_python_script,
)

logger = logging.getLogger(__name__)

SCAN_SCRIPT = "scan_paths.py"

# ssh exits 255 when the connection itself failed
SSH_CONNECT_FAILURE = 255


class TransportFailureError(Exception):
    """The scan task could not be executed on, or read back from, a target."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"{target}: {reason}")


def decode_scan_output(
    target: str, output: str, filters: PathFilterSet
) -> RemoteScanTaskResult:
    """Parse scan_paths.py JSON output into a RemoteScanTaskResult.

    Raises:
        TransportFailureError: Output is not valid JSON, or its path-existence
            entries do not match the filter-set roots exactly.
    """
    try:
        payload: dict[str, Any] = json.loads(output)
        existence = {
            item["root"]: bool(item["exists"]) for item in payload["path_existence"]
        }
        files = [
            FileRecord(
                computer_name=item["computer_name"],
                path=item["path"],
                creation_time=datetime.fromisoformat(item["creation_time"]),
                last_write_time=datetime.fromisoformat(item["last_write_time"]),
                size_bytes=int(item["size_bytes"]),
            )
            for item in payload.get("files", [])
        ]
        errors = [
            PathError(path=item["path"], error=item["error"])
            for item in payload.get("errors", [])
        ]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise TransportFailureError(target, f"unreadable scan output: {e}") from e

    if list(existence) != filters.roots:
        raise TransportFailureError(
            target,
            f"scan output covers roots {sorted(existence)}, "
            f"expected {sorted(filters.roots)}",
        )

    return RemoteScanTaskResult(
        target=target,
        path_existence=existence,
        matched_files=files,
        errors=errors,
    )


def _failure_from_exception(target: str, exc: Exception) -> TransportFailureError:
    if isinstance(exc, subprocess.TimeoutExpired):
        return TransportFailureError(target, f"timed out after {exc.timeout}s")
    if isinstance(exc, subprocess.CalledProcessError):
        stderr = (exc.stderr or "").strip()
        if exc.returncode == SSH_CONNECT_FAILURE:
            reason, _ = classify_ssh_error(target, stderr)
            return TransportFailureError(target, reason)
        detail = stderr.splitlines()[-1] if stderr else "no stderr"
        return TransportFailureError(
            target, f"scan exited with status {exc.returncode}: {detail}"
        )
    return TransportFailureError(target, f"{type(exc).__name__}: {exc}")


def execute_remote(
    target: str,
    filters: PathFilterSet,
    timeout: float | None = None,
    python_command: str = "python3",
) -> RemoteScanTaskResult:
    """Run the scan task on target (blocking).

    Raises:
        TransportFailureError: If the target could not run the task.
    """
    try:
        output = run_python_script(
            SCAN_SCRIPT,
            input_data=filters.to_payload(),
            ssh_host=target,
            timeout=timeout,
            python_command=python_command,
        )
    except (subprocess.SubprocessError, OSError) as e:
        raise _failure_from_exception(target, e) from e
    return decode_scan_output(target, output, filters)


async def async_execute_remote(
    target: str,
    filters: PathFilterSet,
    timeout: float | None = None,
    python_command: str = "python3",
) -> RemoteScanTaskResult:
    """Run the scan task on target from an event loop.

    Raises:
        TransportFailureError: If the target could not run the task.
    """
    try:
        output = await async_run_python_script(
            SCAN_SCRIPT,
            input_data=filters.to_payload(),
            ssh_host=target,
            timeout=timeout,
            python_command=python_command,
        )
    except (subprocess.SubprocessError, OSError) as e:
        raise _failure_from_exception(target, e) from e
    return decode_scan_output(target, output, filters)

"""
Remote execution for scan targets.

Low-level execution (no knowledge of filter sets or results):
- run_command(cmd, ssh_host): Execute command locally or via SSH
- run_python_script(name, input_data, ssh_host): Run a packaged script
- is_local_host(ssh_host): Check if host is local

Scan task execution:
- execute_remote(target, filters): Run scan_paths.py and decode the result
- async_execute_remote(target, filters): Event-loop variant used by fan-out
"""

from file_inventory.remote.executor import (
    SSHConnectionError,
    async_run_python_script,
    check_ssh_connection,
    is_local_host,
    require_ssh_connection,
    run_command,
    run_python_script,
)
from file_inventory.remote.scan import (
    TransportFailureError,
    async_execute_remote,
    decode_scan_output,
    execute_remote,
)

__all__ = [
    # Low-level executor
    "SSHConnectionError",
    "async_run_python_script",
    "check_ssh_connection",
    "is_local_host",
    "require_ssh_connection",
    "run_command",
    "run_python_script",
    # Scan task
    "TransportFailureError",
    "async_execute_remote",
    "decode_scan_output",
    "execute_remote",
]

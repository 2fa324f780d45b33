#!/usr/bin/env python3
"""Remote path scanner script.

This script is executed on each target via SSH (or locally). For every root
in the filter set it records whether the root exists, then recursively
enumerates files whose name ends with one of the root's extensions.

Enumeration faults (permission denied, path too long, I/O errors) are
reported per root + extension attempt and never abort the scan.

Requirements:
- Python 3.8+ (stdlib only, no external dependencies)

Usage:
    echo '{"filters": [{"root": "/data", "extensions": [".txt"]}]}' | python3 scan_paths.py

Input (JSON on stdin):
    {
        "filters": [
            {"root": "/data", "extensions": [".txt", ".csv"]},
            ...
        ]
    }

Output (JSON on stdout):
    {
        "computer_name": "srv01",
        "path_existence": [{"root": "/data", "exists": true}, ...],
        "files": [
            {
                "computer_name": "srv01",
                "path": "/data/a.txt",
                "creation_time": "2024-01-01T00:00:00+00:00",
                "last_write_time": "2024-01-01T00:00:00+00:00",
                "size_bytes": 12
            },
            ...
        ],
        "errors": [{"path": "/data", "error": "PermissionError: ..."}]
    }
"""

import json
import os
import socket
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List

# Windows long-path prefixes that must not leak into reported paths
_UNC_LONG_PREFIX = "\\\\?\\UNC\\"
_LONG_PREFIX = "\\\\?\\"

MAX_ERROR_LENGTH = 500


def sanitize_str(s: str) -> str:
    """Remove surrogate characters that cannot be encoded as JSON."""
    return s.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


def normalize_path(path: str) -> str:
    """Strip long-path prefixes so reported paths look like the roots given."""
    if path.startswith(_UNC_LONG_PREFIX):
        return "\\\\" + path[len(_UNC_LONG_PREFIX) :]
    if path.startswith(_LONG_PREFIX):
        return path[len(_LONG_PREFIX) :]
    return path


def _timestamp(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def root_exists(root: str) -> bool:
    """True when root exists and is a directory."""
    try:
        return os.path.isdir(root)
    except (OSError, ValueError):
        return False


def iter_files(root: str) -> Iterator["os.DirEntry[str]"]:
    """Yield every file under root, depth-first, hidden entries included.

    Symlinked directories are not followed. Any OSError propagates to the
    caller, ending the enumeration attempt.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        with os.scandir(current) as it:
            entries = sorted(it, key=lambda e: e.name)
        subdirs = []
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(entry.path)
            elif entry.is_file():
                yield entry
        # Reversed so subdirectories are visited in name order
        stack.extend(reversed(subdirs))


def file_record(entry: "os.DirEntry[str]", computer_name: str) -> Dict[str, Any]:
    st = entry.stat()
    created = getattr(st, "st_birthtime", None)
    if created is None:
        created = st.st_ctime
    return {
        "computer_name": computer_name,
        "path": sanitize_str(normalize_path(entry.path)),
        "creation_time": _timestamp(created),
        "last_write_time": _timestamp(st.st_mtime),
        "size_bytes": st.st_size,
    }


def match_extension(
    root: str, extension: str, computer_name: str
) -> List[Dict[str, Any]]:
    """All files under root whose name ends with extension (case-insensitive)."""
    suffix = extension.lower()
    return [
        file_record(entry, computer_name)
        for entry in iter_files(root)
        if entry.name.lower().endswith(suffix)
    ]


def scan(filters: List[Dict[str, Any]], computer_name: str = "") -> Dict[str, Any]:
    """Run the scan task for a list of {"root", "extensions"} filters."""
    computer_name = computer_name or socket.gethostname()
    existence = []
    files = []
    errors = []

    for spec in filters:
        root = spec["root"]
        exists = root_exists(root)
        existence.append({"root": root, "exists": exists})
        if not exists:
            continue

        for extension in spec.get("extensions", []):
            try:
                matched = match_extension(root, extension, computer_name)
            except (OSError, ValueError) as e:
                message = sanitize_str(f"{type(e).__name__}: {e}")
                errors.append({"path": root, "error": message[:MAX_ERROR_LENGTH]})
                continue
            files.extend(matched)

    return {
        "computer_name": computer_name,
        "path_existence": existence,
        "files": files,
        "errors": errors,
    }


def main():
    input_data = json.loads(sys.stdin.read() or "{}")
    result = scan(input_data.get("filters", []))
    json.dump(result, sys.stdout)


if __name__ == "__main__":
    main()

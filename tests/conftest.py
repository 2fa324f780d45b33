"""Shared fixtures for file-inventory tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from file_inventory.models import (
    FileRecord,
    PathError,
    PathFilterSet,
    RemoteScanTaskResult,
)
from file_inventory.remote.scan import decode_scan_output
from file_inventory.remote.scripts import scan_paths

STAMP = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_result(
    target: str,
    existence: dict[str, bool] | None = None,
    files: list[str] = (),
    errors: list[tuple[str, str]] = (),
) -> RemoteScanTaskResult:
    """Build a RemoteScanTaskResult without touching the filesystem."""
    return RemoteScanTaskResult(
        target=target,
        path_existence=dict(existence or {"/data": True}),
        matched_files=[
            FileRecord(
                computer_name=target,
                path=path,
                creation_time=STAMP,
                last_write_time=STAMP,
                size_bytes=100,
            )
            for path in files
        ],
        errors=[PathError(path=p, error=e) for p, e in errors],
    )


def simulated_dispatch(hosts: dict[str, Path]):
    """Dispatch that runs the real scan script against per-target directories.

    Each target gets its own directory standing in for the target's
    filesystem: filter root ``/data`` on target ``PC1`` is scanned at
    ``hosts["PC1"] / "data"``. The JSON reply goes through the same
    decoder the SSH transport uses.
    """

    async def dispatch(target: str, filters: PathFilterSet) -> RemoteScanTaskResult:
        base = hosts[target]
        physical = {str(base / f.root.lstrip("/")): f.root for f in filters}
        payload = scan_paths.scan(
            [
                {"root": root, "extensions": list(filters.extensions_for(virtual))}
                for root, virtual in physical.items()
            ],
            computer_name=target,
        )
        for item in payload["path_existence"]:
            item["root"] = physical[item["root"]]
        for item in payload["errors"]:
            item["path"] = physical[item["path"]]
        return decode_scan_output(target, json.dumps(payload), filters)

    return dispatch


@pytest.fixture
def data_filters() -> PathFilterSet:
    return PathFilterSet.from_mapping({"/data": [".txt"]})


@pytest.fixture
def pc_hosts(tmp_path: Path) -> dict[str, Path]:
    """PC1 has three .txt files and a .zip under /data; PC2 has an empty /data."""
    pc1 = tmp_path / "PC1" / "data"
    (pc1 / "nested").mkdir(parents=True)
    (pc1 / "a.txt").write_text("a")
    (pc1 / "B.TXT").write_text("b")
    (pc1 / "nested" / "c.txt").write_text("c")
    (pc1 / "archive.zip").write_bytes(b"PK")
    (tmp_path / "PC2" / "data").mkdir(parents=True)
    return {"PC1": tmp_path / "PC1", "PC2": tmp_path / "PC2"}

"""
Data models for the fan-out / collect / aggregate scan pipeline.

These are transient runtime structures: the filter set sent to every target,
the per-target result decoded from the remote scan script, and the
run-wide aggregate that feeds the report publisher and notifier.

The run configuration (YAML → pydantic) lives in config.py and is
converted to a PathFilterSet before fan-out.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

__all__ = [
    "PathFilter",
    "PathFilterSet",
    "FileRecord",
    "PathError",
    "RemoteScanTaskResult",
    "TransportFailure",
    "FanOutResult",
    "MatchingFileRow",
    "PathExistenceRow",
    "SearchErrorRow",
    "AggregateReport",
]


# ============================================================================
# Search instructions
# ============================================================================


@dataclass(frozen=True)
class PathFilter:
    """Extensions to match under one root directory."""

    root: str
    extensions: tuple[str, ...]


@dataclass(frozen=True)
class PathFilterSet:
    """Ordered root → extensions search instructions for one run.

    Iteration order is declaration order, which fixes the order of
    path-existence rows and of discovered files in every result.
    Roots are unique; extension validation happens at config load time.
    """

    entries: tuple[PathFilter, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for entry in self.entries:
            if entry.root in seen:
                raise ValueError(f"Duplicate root path in filter set: {entry.root}")
            seen.add(entry.root)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Sequence[str]]) -> PathFilterSet:
        """Build from a ``{root: [".ext", ...]}`` mapping (insertion order kept)."""
        return cls(
            tuple(PathFilter(root, tuple(exts)) for root, exts in mapping.items())
        )

    @property
    def roots(self) -> list[str]:
        return [entry.root for entry in self.entries]

    def extensions_for(self, root: str) -> tuple[str, ...]:
        for entry in self.entries:
            if entry.root == root:
                return entry.extensions
        raise KeyError(root)

    def to_payload(self) -> dict[str, Any]:
        """JSON payload for the remote scan script."""
        return {
            "filters": [
                {"root": entry.root, "extensions": list(entry.extensions)}
                for entry in self.entries
            ]
        }

    def __iter__(self) -> Iterator[PathFilter]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


# ============================================================================
# Per-target results
# ============================================================================


@dataclass(frozen=True)
class FileRecord:
    """A file matched on a target."""

    computer_name: str
    path: str
    creation_time: datetime
    last_write_time: datetime
    size_bytes: int


@dataclass(frozen=True)
class PathError:
    """An enumeration failure for one root + extension attempt."""

    path: str
    error: str


@dataclass
class RemoteScanTaskResult:
    """Outcome of the scan task on one target.

    ``path_existence`` always has exactly one entry per filter-set root,
    even when enumeration under some roots failed.
    """

    target: str
    path_existence: dict[str, bool] = field(default_factory=dict)
    matched_files: list[FileRecord] = field(default_factory=list)
    errors: list[PathError] = field(default_factory=list)


@dataclass(frozen=True)
class TransportFailure:
    """A target that never produced a result (unreachable, rejected, timed out)."""

    target: str
    reason: str


@dataclass
class FanOutResult:
    """Everything the executor collected for one batch, in dispatch order."""

    targets: list[str] = field(default_factory=list)
    results: list[RemoteScanTaskResult] = field(default_factory=list)
    failures: list[TransportFailure] = field(default_factory=list)

    @property
    def transport_failure_count(self) -> int:
        return len(self.failures)


# ============================================================================
# Aggregate report
# ============================================================================


@dataclass(frozen=True)
class MatchingFileRow:
    target: str
    computer_name: str
    path: str
    creation_time: datetime
    last_write_time: datetime
    size_bytes: int


@dataclass(frozen=True)
class PathExistenceRow:
    target: str
    path: str
    exists: bool


@dataclass(frozen=True)
class SearchErrorRow:
    target: str
    path: str
    error: str


@dataclass(frozen=True)
class AggregateReport:
    """Run-wide merge of all per-target results, ready for publishing."""

    matching_files: tuple[MatchingFileRow, ...] = ()
    path_existence: tuple[PathExistenceRow, ...] = ()
    errors: tuple[SearchErrorRow, ...] = ()
    targets_scanned: int = 0
    unreachable_targets: tuple[str, ...] = ()

    @property
    def matching_file_count(self) -> int:
        return len(self.matching_files)

    @property
    def search_error_count(self) -> int:
        return len(self.errors)

    @property
    def targets_dispatched(self) -> int:
        return self.targets_scanned + len(self.unreachable_targets)

    @property
    def has_rows(self) -> bool:
        """True when there is something worth attaching to the summary."""
        return bool(self.matching_files or self.errors)

"""Merge per-target scan results into the run-wide AggregateReport.

Pure functions: no I/O, no hidden state. Row order is target order in the
input, then per-target discovery order. Nothing is sorted or deduplicated.
"""

from __future__ import annotations

from collections.abc import Sequence

from file_inventory.models import (
    AggregateReport,
    MatchingFileRow,
    PathExistenceRow,
    RemoteScanTaskResult,
    SearchErrorRow,
)


def aggregate(
    results: Sequence[RemoteScanTaskResult],
    dispatched: Sequence[str] | None = None,
) -> AggregateReport:
    """Flatten results into matching-file, path-existence and error tables.

    Args:
        results: Per-target results, in the order they should appear.
        dispatched: Targets the executor sent the task to. Any of them
            without a result is listed in ``unreachable_targets``.
    """
    matching: list[MatchingFileRow] = []
    existence: list[PathExistenceRow] = []
    errors: list[SearchErrorRow] = []

    for result in results:
        matching.extend(
            MatchingFileRow(
                target=result.target,
                computer_name=record.computer_name,
                path=record.path,
                creation_time=record.creation_time,
                last_write_time=record.last_write_time,
                size_bytes=record.size_bytes,
            )
            for record in result.matched_files
        )
        existence.extend(
            PathExistenceRow(target=result.target, path=root, exists=exists)
            for root, exists in result.path_existence.items()
        )
        errors.extend(
            SearchErrorRow(target=result.target, path=err.path, error=err.error)
            for err in result.errors
        )

    unreachable: tuple[str, ...] = ()
    if dispatched is not None:
        answered = {result.target for result in results}
        unreachable = tuple(t for t in dispatched if t not in answered)

    return AggregateReport(
        matching_files=tuple(matching),
        path_existence=tuple(existence),
        errors=tuple(errors),
        targets_scanned=len(results),
        unreachable_targets=unreachable,
    )


def merge_reports(first: AggregateReport, second: AggregateReport) -> AggregateReport:
    """Combine reports built from disjoint target sets.

    ``aggregate(a + b) == merge_reports(aggregate(a), aggregate(b))``.
    """
    return AggregateReport(
        matching_files=first.matching_files + second.matching_files,
        path_existence=first.path_existence + second.path_existence,
        errors=first.errors + second.errors,
        targets_scanned=first.targets_scanned + second.targets_scanned,
        unreachable_targets=first.unreachable_targets + second.unreachable_targets,
    )

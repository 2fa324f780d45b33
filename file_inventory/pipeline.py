"""
Scan orchestration: resolve targets, fan out, aggregate, publish, notify.

Entry points:
- run_scan(): the core pipeline. Resolves targets, fans the scan out and
  returns the AggregateReport. No files, no mail.
- run_scheduled_scan(): what the CLI and scheduled jobs call. Prepares the
  report location, runs run_scan(), publishes the workbook, sends the
  summary, and escalates orchestration failures to administrators.

Failure policy:
- Path errors and transport failures are data: they end up in the report
  and the summary, never as exceptions.
- Anything that stops the run from producing a report (no target list, no
  output location, workbook not written) is an OrchestrationError. It is
  escalated at high priority to the admin recipients and re-raised. Any
  other exception escaping the run is wrapped as an OrchestrationError for
  the "scan" stage and handled the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from file_inventory.aggregate import aggregate
from file_inventory.fanout import Dispatch, FanOutExecutor, ssh_dispatch
from file_inventory.models import AggregateReport, PathFilterSet
from file_inventory.notify import Priority, failure_message, summary_message
from file_inventory.targets import StaticTargets, TargetSource

logger = logging.getLogger(__name__)

# Operational event log; one line per run milestone
events = logging.getLogger("file_inventory.events")

STAGE_OUTPUT = "output initialisation"
STAGE_TARGETS = "target resolution"
STAGE_PUBLISH = "report publishing"
STAGE_SCAN = "scan"


class OrchestrationError(Exception):
    """The run failed outside the per-target scan and produced no report."""

    def __init__(self, stage: str, cause: BaseException | str):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")


class ReportPublisher(Protocol):
    def prepare(self) -> Path: ...

    def publish(
        self, report: AggregateReport, filters: PathFilterSet | None = None
    ) -> Path: ...


class Notifier(Protocol):
    def notify(
        self,
        recipients: Sequence[str],
        subject: str,
        body_html: str,
        priority: Priority = Priority.NORMAL,
        attachment: Path | None = None,
    ) -> None: ...


def log_event(level: int, message: str, *args: object) -> None:
    """Record an operational event (start, finish, escalation)."""
    events.log(level, message, *args)


def resolve_targets(selector: TargetSource | Sequence[str]) -> list[str]:
    """Enumerate targets, wrapping any failure as an OrchestrationError."""
    source = StaticTargets(selector) if isinstance(selector, list | tuple) else selector
    try:
        return source.enumerate()
    except Exception as e:
        raise OrchestrationError(STAGE_TARGETS, e) from e


def run_scan(
    filter_set: PathFilterSet,
    target_selector: TargetSource | Sequence[str],
    concurrency: int,
    *,
    dispatch: Dispatch | None = None,
    timeout: float | None = None,
) -> AggregateReport:
    """Resolve targets, scan them all, and aggregate the results.

    Args:
        filter_set: Roots and extensions searched on every target
        target_selector: A TargetSource, or a plain list of target names
        concurrency: Max targets scanned at once
        dispatch: Per-target task runner (default: scan_paths.py over SSH)
        timeout: Per-target timeout in seconds (None = no limit)

    Raises:
        OrchestrationError: Targets could not be resolved.
    """
    targets = resolve_targets(target_selector)
    log_event(
        logging.INFO,
        "Scanning %d servers for %d root paths",
        len(targets),
        len(filter_set),
    )

    executor = FanOutExecutor(
        dispatch=dispatch or ssh_dispatch(),
        max_concurrency=concurrency,
        timeout=timeout,
    )
    outcome = executor.run_sync(targets, filter_set)
    report = aggregate(outcome.results, dispatched=outcome.targets)

    log_event(
        logging.INFO,
        "Scan finished: %d scanned, %d unreachable, %d files, %d search errors",
        report.targets_scanned,
        len(report.unreachable_targets),
        report.matching_file_count,
        report.search_error_count,
    )
    return report


@dataclass
class ScanOutcome:
    """What a scheduled run produced."""

    report: AggregateReport
    report_path: Path | None = None


def _escalate(
    error: OrchestrationError,
    notifier: Notifier | None,
    admin_recipients: Sequence[str],
    subject_prefix: str,
) -> None:
    log_event(logging.ERROR, "Scan aborted during %s: %s", error.stage, error.cause)
    if notifier is None or not admin_recipients:
        logger.error("No administrator channel configured; alert not sent")
        return
    subject, body = failure_message(error.stage, error.cause, subject_prefix)
    try:
        notifier.notify(admin_recipients, subject, body, priority=Priority.HIGH)
    except Exception as e:
        logger.error("Failed to send administrator alert: %s", e)


def run_scheduled_scan(
    filter_set: PathFilterSet,
    target_selector: TargetSource | Sequence[str],
    *,
    publisher: ReportPublisher,
    concurrency: int = 1,
    timeout: float | None = None,
    dispatch: Dispatch | None = None,
    notifier: Notifier | None = None,
    recipients: Sequence[str] = (),
    admin_recipients: Sequence[str] = (),
    subject_prefix: str = "File inventory",
) -> ScanOutcome:
    """Full scheduled run with publishing, summary and escalation.

    Raises:
        OrchestrationError: After the administrator alert has been sent.
        NotificationError: The summary mail could not be delivered.
    """
    try:
        try:
            publisher.prepare()
        except Exception as e:
            raise OrchestrationError(STAGE_OUTPUT, e) from e

        report = run_scan(
            filter_set,
            target_selector,
            concurrency,
            dispatch=dispatch,
            timeout=timeout,
        )

        report_path = None
        if report.has_rows:
            try:
                report_path = publisher.publish(report, filter_set)
            except Exception as e:
                raise OrchestrationError(STAGE_PUBLISH, e) from e

        subject, body = summary_message(report, filter_set, subject_prefix)
    except OrchestrationError as error:
        _escalate(error, notifier, admin_recipients, subject_prefix)
        raise
    except Exception as e:
        error = OrchestrationError(STAGE_SCAN, e)
        _escalate(error, notifier, admin_recipients, subject_prefix)
        raise error from e

    if notifier is not None and recipients:
        notifier.notify(
            recipients,
            subject,
            body,
            priority=Priority.NORMAL,
            attachment=report_path,
        )
    else:
        logger.info("Summary mail skipped (no notifier or recipients)")

    return ScanOutcome(report=report, report_path=report_path)

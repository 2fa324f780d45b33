"""Excel report writer for the aggregate scan report.

One workbook per run with a sheet per table:

- Summary:        counters, filters applied, unreachable servers
- Matching Files: Target, ComputerName, Path, CreationTime, LastWriteTime, SizeBytes
- Path Existence: Target, Path, Exists
- Errors:         Target, Path, Error

Timestamps are written as naive UTC datetimes (Excel has no timezone type).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from file_inventory.models import AggregateReport, PathFilterSet

logger = logging.getLogger(__name__)

MATCHING_FILES_SHEET = "Matching Files"
PATH_EXISTENCE_SHEET = "Path Existence"
ERRORS_SHEET = "Errors"
SUMMARY_SHEET = "Summary"

MATCHING_FILES_COLUMNS = (
    "Target",
    "ComputerName",
    "Path",
    "CreationTime",
    "LastWriteTime",
    "SizeBytes",
)
PATH_EXISTENCE_COLUMNS = ("Target", "Path", "Exists")
ERRORS_COLUMNS = ("Target", "Path", "Error")

# Column widths are capped so a single long path doesn't produce a huge column
MAX_COLUMN_WIDTH = 80


class ReportError(Exception):
    """The report output location could not be prepared or written."""


def _excel_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _cell_value(value: object) -> object:
    """Show control characters in file names and errors as \\xNN escapes."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub(lambda m: f"\\x{ord(m.group()):02x}", value)
    return value


def _write_table(ws: Worksheet, columns: Sequence[str], rows: Iterable[Sequence]) -> None:
    """Write a header + rows, bold header, frozen header row, autofilter."""
    ws.append(list(columns))
    for cell in ws[1]:
        cell.font = Font(bold=True)

    widths = [len(name) for name in columns]
    for row in rows:
        row = [_cell_value(value) for value in row]
        ws.append(row)
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(str(value)))

    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = min(width + 2, MAX_COLUMN_WIDTH)
    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions


class ExcelReportPublisher:
    """Write AggregateReports as timestamped .xlsx files into a directory."""

    def __init__(self, output_dir: Path, prefix: str = "file-inventory") -> None:
        self.output_dir = Path(output_dir).expanduser()
        self.prefix = prefix

    def prepare(self) -> Path:
        """Create the output directory and check it is writable.

        Raises:
            ReportError: The directory cannot be created or written to.
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            probe = self.output_dir / ".write-test"
            probe.touch()
            probe.unlink()
        except OSError as e:
            raise ReportError(f"cannot use output directory {self.output_dir}: {e}") from e
        return self.output_dir

    def report_path(self, now: datetime | None = None) -> Path:
        """Timestamped path in the output directory; never an existing file."""
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        path = self.output_dir / f"{self.prefix}_{stamp}.xlsx"
        counter = 1
        while path.exists():
            path = self.output_dir / f"{self.prefix}_{stamp}_{counter}.xlsx"
            counter += 1
        return path

    def publish(
        self,
        report: AggregateReport,
        filters: PathFilterSet | None = None,
        now: datetime | None = None,
    ) -> Path:
        """Render report into a new workbook and return its path.

        Raises:
            ReportError: The workbook could not be saved.
        """
        wb = Workbook()
        summary = wb.active
        summary.title = SUMMARY_SHEET
        _write_table(summary, ("Item", "Value"), summary_rows(report, filters))

        _write_table(
            wb.create_sheet(MATCHING_FILES_SHEET),
            MATCHING_FILES_COLUMNS,
            (
                (
                    row.target,
                    row.computer_name,
                    row.path,
                    _excel_datetime(row.creation_time),
                    _excel_datetime(row.last_write_time),
                    row.size_bytes,
                )
                for row in report.matching_files
            ),
        )
        _write_table(
            wb.create_sheet(PATH_EXISTENCE_SHEET),
            PATH_EXISTENCE_COLUMNS,
            ((row.target, row.path, row.exists) for row in report.path_existence),
        )
        _write_table(
            wb.create_sheet(ERRORS_SHEET),
            ERRORS_COLUMNS,
            ((row.target, row.path, row.error) for row in report.errors),
        )

        path = self.report_path(now)
        try:
            wb.save(path)
        except OSError as e:
            raise ReportError(f"cannot write report {path}: {e}") from e

        logger.info(
            "Wrote report %s (%d files, %d existence rows, %d errors)",
            path,
            report.matching_file_count,
            len(report.path_existence),
            report.search_error_count,
        )
        return path


def summary_rows(
    report: AggregateReport, filters: PathFilterSet | None = None
) -> list[tuple[str, object]]:
    """Key/value rows shared by the Summary sheet and the summary mail."""
    rows: list[tuple[str, object]] = [
        ("Servers dispatched", report.targets_dispatched),
        ("Servers scanned", report.targets_scanned),
        ("Servers unreachable", len(report.unreachable_targets)),
        ("Matching files", report.matching_file_count),
        ("Search errors", report.search_error_count),
    ]
    if filters is not None:
        for entry in filters:
            rows.append((f"Filter {entry.root}", ", ".join(entry.extensions)))
    for target in report.unreachable_targets:
        rows.append(("Unreachable", target))
    return rows

"""Summary and escalation mail.

Operators get exactly one of two messages per run:

- a summary (normal priority) with counters and, when there is at least
  one matching file or error row, the report workbook attached;
- an administrator alert (high priority, admin recipients) when the run
  failed before or outside fan-out.
"""

from __future__ import annotations

import html
import logging
import mimetypes
import smtplib
from collections.abc import Sequence
from email.message import EmailMessage
from enum import Enum
from pathlib import Path

from file_inventory.models import AggregateReport, PathFilterSet
from file_inventory.report import summary_rows

logger = logging.getLogger(__name__)


class Priority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


# X-Priority / Importance header values per priority
_PRIORITY_HEADERS = {
    Priority.NORMAL: ("3", "Normal"),
    Priority.HIGH: ("1", "High"),
}


class NotificationError(Exception):
    """The notification could not be delivered."""


def build_message(
    sender: str,
    recipients: Sequence[str],
    subject: str,
    body_html: str,
    priority: Priority = Priority.NORMAL,
    attachment: Path | None = None,
) -> EmailMessage:
    """Assemble an HTML mail with optional file attachment."""
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject
    x_priority, importance = _PRIORITY_HEADERS[priority]
    msg["X-Priority"] = x_priority
    msg["Importance"] = importance
    msg.set_content("This message requires an HTML-capable mail client.")
    msg.add_alternative(body_html, subtype="html")

    if attachment is not None:
        ctype, _ = mimetypes.guess_type(attachment.name)
        maintype, subtype = (ctype or "application/octet-stream").split("/", 1)
        msg.add_attachment(
            attachment.read_bytes(),
            maintype=maintype,
            subtype=subtype,
            filename=attachment.name,
        )
    return msg


class SmtpNotifier:
    """Send notifications through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        *,
        starttls: bool = False,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 60,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.starttls = starttls
        self.username = username
        self.password = password
        self.timeout = timeout

    def notify(
        self,
        recipients: Sequence[str],
        subject: str,
        body_html: str,
        priority: Priority = Priority.NORMAL,
        attachment: Path | None = None,
    ) -> None:
        """Deliver one message.

        Raises:
            NotificationError: SMTP or network failure.
        """
        msg = build_message(
            self.sender, recipients, subject, body_html, priority, attachment
        )
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(
                f"cannot send '{subject}' via {self.host}:{self.port}: {e}"
            ) from e
        logger.info("Sent '%s' to %s (%s priority)", subject, ", ".join(recipients), priority.value)


# ============================================================================
# Message bodies
# ============================================================================


def _html_table(rows: Sequence[tuple[str, object]]) -> str:
    cells = "".join(
        f"<tr><td>{html.escape(str(key))}</td><td>{html.escape(str(value))}</td></tr>"
        for key, value in rows
    )
    return f'<table border="1" cellpadding="4" cellspacing="0">{cells}</table>'


def summary_message(
    report: AggregateReport,
    filters: PathFilterSet | None = None,
    subject_prefix: str = "File inventory",
) -> tuple[str, str]:
    """Subject and HTML body for the end-of-run summary.

    Path errors and unreachable servers are flagged in the subject but do
    not raise the priority; only orchestration failures do that.
    """
    subject = (
        f"{subject_prefix}: {report.matching_file_count} files found "
        f"on {report.targets_scanned} servers"
    )
    problems = report.search_error_count + len(report.unreachable_targets)
    if problems:
        subject += f" ({problems} errors)"

    attached = (
        "<p>The full report is attached.</p>"
        if report.has_rows
        else "<p>No matching files or errors; no report attached.</p>"
    )
    body = (
        "<html><body>"
        f"<h3>{html.escape(subject_prefix)} scan summary</h3>"
        f"{_html_table(summary_rows(report, filters))}"
        f"{attached}"
        "</body></html>"
    )
    return subject, body


def failure_message(
    stage: str, cause: BaseException | str, subject_prefix: str = "File inventory"
) -> tuple[str, str]:
    """Subject and HTML body for an administrator alert."""
    subject = f"{subject_prefix}: scan FAILED during {stage}"
    body = (
        "<html><body>"
        f"<h3>{html.escape(subject_prefix)} scan failed</h3>"
        f"<p><b>Stage:</b> {html.escape(stage)}</p>"
        f"<p><b>Cause:</b> {html.escape(str(cause))}</p>"
        "<p>No scan results were published for this run.</p>"
        "</body></html>"
    )
    return subject, body

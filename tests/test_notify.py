"""Tests for summary and escalation mail."""

from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from file_inventory.aggregate import aggregate
from file_inventory.notify import (
    NotificationError,
    Priority,
    SmtpNotifier,
    build_message,
    failure_message,
    summary_message,
)
from tests.conftest import make_result


class TestBuildMessage:
    def test_headers_by_priority(self):
        normal = build_message("a@x", ["b@x", "c@x"], "subj", "<p>hi</p>")
        assert normal["To"] == "b@x, c@x"
        assert normal["X-Priority"] == "3"
        high = build_message("a@x", ["b@x"], "subj", "<p>hi</p>", Priority.HIGH)
        assert high["X-Priority"] == "1"
        assert high["Importance"] == "High"

    def test_html_body_and_attachment(self, tmp_path):
        workbook = tmp_path / "inv.xlsx"
        workbook.write_bytes(b"PK\x03\x04")
        msg = build_message("a@x", ["b@x"], "subj", "<p>hi</p>", attachment=workbook)

        assert "<p>hi</p>" in msg.get_body(preferencelist=("html",)).get_content()
        (part,) = list(msg.iter_attachments())
        assert part.get_filename() == "inv.xlsx"
        assert part.get_content() == b"PK\x03\x04"

    def test_no_attachment(self):
        msg = build_message("a@x", ["b@x"], "subj", "<p>hi</p>")
        assert list(msg.iter_attachments()) == []


class TestSmtpNotifier:
    @patch("smtplib.SMTP")
    def test_sends_with_starttls_and_login(self, mock_smtp):
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server

        notifier = SmtpNotifier(
            "smtp.example.org", 587, "inv@x", starttls=True, username="u", password="p"
        )
        notifier.notify(["ops@x"], "subj", "<p>body</p>", priority=Priority.HIGH)

        mock_smtp.assert_called_once_with("smtp.example.org", 587, timeout=60)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        sent = server.send_message.call_args[0][0]
        assert sent["Subject"] == "subj"
        assert sent["X-Priority"] == "1"

    @patch("smtplib.SMTP")
    def test_plain_relay_skips_tls_and_login(self, mock_smtp):
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server
        SmtpNotifier("relay", 25, "inv@x").notify(["ops@x"], "s", "<p/>")
        server.starttls.assert_not_called()
        server.login.assert_not_called()

    @patch("smtplib.SMTP", side_effect=ConnectionRefusedError("refused"))
    def test_connection_failure(self, _smtp):
        with pytest.raises(NotificationError, match="relay:25"):
            SmtpNotifier("relay", 25, "inv@x").notify(["ops@x"], "s", "<p/>")

    @patch("smtplib.SMTP")
    def test_rejected_recipient(self, mock_smtp):
        server = MagicMock()
        server.send_message.side_effect = smtplib.SMTPRecipientsRefused({"ops@x": (550, b"no")})
        mock_smtp.return_value.__enter__.return_value = server
        with pytest.raises(NotificationError):
            SmtpNotifier("relay", 25, "inv@x").notify(["ops@x"], "s", "<p/>")


class TestMessageBodies:
    def test_summary_subject_counts(self):
        report = aggregate(
            [make_result("srv01", files=["/data/a.txt"]), make_result("srv02")]
        )
        subject, body = summary_message(report, subject_prefix="Nightly")
        assert subject == "Nightly: 1 files found on 2 servers"
        assert "report is attached" in body

    def test_summary_flags_errors_and_unreachable(self):
        report = aggregate(
            [make_result("srv01", errors=[("/data", "OSError: x")])],
            dispatched=["srv01", "down"],
        )
        subject, body = summary_message(report)
        assert subject.endswith("(2 errors)")
        assert "down" in body

    def test_summary_without_rows(self):
        _, body = summary_message(aggregate([make_result("srv01")]))
        assert "no report attached" in body

    def test_failure_message_escapes_cause(self):
        subject, body = failure_message(
            "target resolution", RuntimeError("<bad> & worse"), "Nightly"
        )
        assert subject == "Nightly: scan FAILED during target resolution"
        assert "&lt;bad&gt; &amp; worse" in body

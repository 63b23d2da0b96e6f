"""Tests for the report mailer against the in-process mock SMTP server."""
import json
import time

import pytest

from storefront_qa import report_mailer
from storefront_qa.config import MailSettings
from storefront_qa.report_mailer import (
    ReportSummary,
    build_report_message,
    load_summary,
    render_body,
    send_report,
)


def _wait_for_captured_emails(mock_smtp_server, expected_count: int, timeout_seconds: float = 2.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    while len(mock_smtp_server.captured_emails) < expected_count:
        if time.monotonic() >= deadline:
            break
        time.sleep(0.01)

    assert len(mock_smtp_server.captured_emails) >= expected_count, (
        f"Expected at least {expected_count} captured email(s), got {len(mock_smtp_server.captured_emails)}"
    )


def _settings(server, **overrides) -> MailSettings:
    values = dict(
        host=server.host,
        port=server.port,
        username="bot@example.com",
        password="",
        recipients=("qa@example.com", "lead@example.com"),
    )
    values.update(overrides)
    return MailSettings(**values)


@pytest.fixture()
def report_dir(tmp_path):
    widgets = tmp_path / "allure-report" / "widgets"
    widgets.mkdir(parents=True)
    (widgets / "summary.json").write_text(
        json.dumps({"statistic": {"total": 8, "passed": 6, "failed": 1, "skipped": 1, "broken": 0}}),
        encoding="utf-8",
    )
    (tmp_path / "allure-report" / "index.html").write_text("<html><body>Allure</body></html>", encoding="utf-8")
    return tmp_path / "allure-report"


def test_pass_rate():
    assert ReportSummary(total=8, passed=6).pass_rate == 75.0
    assert ReportSummary().pass_rate == 0.0


def test_load_summary(report_dir):
    summary = load_summary(report_dir / "widgets" / "summary.json")

    assert summary == ReportSummary(total=8, passed=6, failed=1, skipped=1)


def test_missing_summary_is_all_zero(tmp_path, caplog):
    summary = load_summary(tmp_path / "nope.json")

    assert summary == ReportSummary()
    assert "not found" in caplog.text


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"], ids=["invalid-json", "not-an-object"])
def test_malformed_summary_raises_value_error(tmp_path, content):
    path = tmp_path / "summary.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_summary(path)


def test_render_body():
    body = render_body(ReportSummary(total=3, passed=2, failed=1, skipped=0))

    assert body.startswith("Test Execution Summary:")
    assert "Total Tests: 3" in body
    assert "Failed: 1" in body
    assert "Pass Rate: 66.67%" in body


def test_message_without_report_file(tmp_path):
    settings = MailSettings("smtp.example.com", 587, "bot@example.com", "", ("qa@example.com",))

    message = build_report_message(settings, ReportSummary(total=1, passed=1), tmp_path / "missing.html")

    assert message["Subject"] == "Playwright Automation Test Report"
    assert message["From"] == '"Automation Bot" <bot@example.com>'
    assert len(message.get_payload()) == 1


def test_send_report_delivers_summary_and_attachment(mock_smtp_server, report_dir):
    summary = load_summary(report_dir / "widgets" / "summary.json")

    send_report(_settings(mock_smtp_server), summary, report_dir / "index.html")

    _wait_for_captured_emails(mock_smtp_server, expected_count=1)
    email = mock_smtp_server.captured_emails[0]
    assert email.subject == "Playwright Automation Test Report"
    assert email.sender == "bot@example.com"
    assert set(email.recipients) == {"qa@example.com", "lead@example.com"}
    assert "Pass Rate: 75.00%" in email.body_text
    assert "Allure" in email.attachments["index.html"]


def test_send_report_requires_host_and_recipients(mock_smtp_server):
    with pytest.raises(ValueError):
        send_report(_settings(mock_smtp_server, recipients=()), ReportSummary())
    with pytest.raises(ValueError):
        send_report(_settings(mock_smtp_server, host=""), ReportSummary())

    assert mock_smtp_server.captured_emails == []


def test_main_sends_report(mock_smtp_server, report_dir, monkeypatch):
    monkeypatch.setattr(report_mailer, "configure_logging", lambda *args, **kwargs: [])
    monkeypatch.setenv("EMAIL_HOST", mock_smtp_server.host)
    monkeypatch.setenv("EMAIL_PORT", str(mock_smtp_server.port))
    monkeypatch.setenv("EMAIL_USER", "bot@example.com")
    monkeypatch.setenv("EMAIL_PASS", "")
    monkeypatch.setenv("EMAIL_TO", "qa@example.com")

    assert report_mailer.main(["--report-dir", str(report_dir)]) == 0

    _wait_for_captured_emails(mock_smtp_server, expected_count=1)
    assert mock_smtp_server.captured_emails[0].recipients == ["qa@example.com"]


def test_main_reports_failure(report_dir, monkeypatch):
    monkeypatch.setattr(report_mailer, "configure_logging", lambda *args, **kwargs: [])
    monkeypatch.setenv("EMAIL_HOST", "")
    monkeypatch.setenv("EMAIL_TO", "")

    assert report_mailer.main(["--report-dir", str(report_dir)]) == 1


def test_main_reports_malformed_summary(report_dir, monkeypatch):
    monkeypatch.setattr(report_mailer, "configure_logging", lambda *args, **kwargs: [])
    sent = []
    monkeypatch.setattr(report_mailer, "send_report", lambda *args, **kwargs: sent.append(args))
    (report_dir / "widgets" / "summary.json").write_text("{truncated", encoding="utf-8")

    assert report_mailer.main(["--report-dir", str(report_dir)]) == 1
    assert sent == []

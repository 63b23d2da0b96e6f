"""
Email the Allure run summary with the HTML report attached.

Reads `<allure-report>/widgets/summary.json`, writes a short plain-text
summary and sends it over SMTP (implicit TLS on port 465, STARTTLS otherwise
when credentials are configured).

Usage:
    storefront-qa-send-report [--report-dir allure-report]
"""
from __future__ import annotations

import argparse
import json
import logging
import smtplib
import sys
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import List, Optional

from storefront_qa.config import MailSettings, load_config
from storefront_qa.log import configure_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportSummary:
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def pass_rate(self) -> float:
        """Passed tests as a percentage of all tests (0 when nothing ran)."""
        return (self.passed * 100.0) / self.total if self.total > 0 else 0.0


def load_summary(path: Path | str) -> ReportSummary:
    """Read the `statistic` block of an Allure summary.json.

    A missing file yields an all-zero summary and a warning; malformed
    content raises ValueError.
    """
    summary_path = Path(path)
    if not summary_path.exists():
        logger.warning("Allure summary file not found: %s", summary_path)
        return ReportSummary()

    data = json.loads(summary_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{summary_path} does not hold an Allure summary object")
    statistic = data.get("statistic") or {}
    return ReportSummary(
        total=int(statistic.get("total") or 0),
        passed=int(statistic.get("passed") or 0),
        failed=int(statistic.get("failed") or 0),
        skipped=int(statistic.get("skipped") or 0),
    )


def render_body(summary: ReportSummary) -> str:
    return "\n".join(
        [
            "Test Execution Summary:",
            "",
            f"Total Tests: {summary.total}",
            f"Passed: {summary.passed}",
            f"Failed: {summary.failed}",
            f"Skipped: {summary.skipped}",
            "",
            f"Pass Rate: {summary.pass_rate:.2f}%",
            "",
            "Please find the detailed report attached.",
            "",
            "Thanks,",
            "Automation Team",
        ]
    )


def build_report_message(
    settings: MailSettings,
    summary: ReportSummary,
    report_html: Optional[Path] = None,
) -> MIMEMultipart:
    """Assemble the message; the HTML report is attached when it exists."""
    msg = MIMEMultipart()
    msg["Subject"] = settings.subject
    msg["From"] = settings.sender
    msg["To"] = ", ".join(settings.recipients)
    msg.attach(MIMEText(render_body(summary), "plain"))

    if report_html is not None:
        if report_html.exists():
            attachment = MIMEText(report_html.read_text(encoding="utf-8"), "html", "utf-8")
            attachment.add_header("Content-Disposition", "attachment", filename="index.html")
            msg.attach(attachment)
        else:
            logger.warning("Report HTML not found, sending summary only: %s", report_html)
    return msg


def send_report(
    settings: MailSettings,
    summary: ReportSummary,
    report_html: Optional[Path] = None,
    timeout: float = 30,
) -> None:
    """Send the report; SMTP errors propagate to the caller."""
    if not settings.host or not settings.recipients:
        raise ValueError("EMAIL_HOST and EMAIL_TO must be set to send the report")

    msg = build_report_message(settings, summary, report_html)
    has_credentials = bool(settings.username and settings.password)

    if settings.use_ssl:
        with smtplib.SMTP_SSL(settings.host, settings.port, timeout=timeout) as server:
            if has_credentials:
                server.login(settings.username, settings.password)
            server.send_message(msg)
    else:
        with smtplib.SMTP(settings.host, settings.port, timeout=timeout) as server:
            # STARTTLS and login only when credentials are configured
            if has_credentials:
                server.starttls()
                server.login(settings.username, settings.password)
            server.send_message(msg)

    logger.info(
        "Report email sent to %s (%d/%d passed)",
        ", ".join(settings.recipients),
        summary.passed,
        summary.total,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Email the Allure test report summary")
    parser.add_argument("--report-dir", type=Path, help="Allure report directory (default: ALLURE_REPORT_DIR)")
    args = parser.parse_args(argv)

    config = load_config()
    configure_logging(config.log_dir, config.log_level)
    report_dir = args.report_dir or config.allure_report_dir

    summary_path = report_dir / "widgets" / "summary.json"
    try:
        summary = load_summary(summary_path)
    except ValueError as exc:
        logger.error("Could not read report summary %s: %s", summary_path, exc)
        return 1
    try:
        send_report(config.mail, summary, report_dir / "index.html")
    except (smtplib.SMTPException, OSError, ValueError) as exc:
        logger.error("Failed to send report email: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Email delivery for sprint reports."""

import ssl
import socket
import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional, Sequence

from utils.config_loader import ReportConfig
from mcp_tools.tools.jira_client import Issue
from .formatter import Report, format_issues, format_plain_text

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 60
GREETING_TIMEOUT = 30
SOCKET_TIMEOUT = 60


class NoRecipients(RuntimeError):
    """Raised when no non-blank recipient address is configured."""


def permissive_tls_context() -> ssl.SSLContext:
    """TLS context that accepts self-signed certificates (internal relays)."""
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class _TimedSMTP(smtplib.SMTP):
    """SMTP with separate connect and greeting timeouts."""

    def _get_socket(self, host, port, timeout):
        sock = socket.create_connection((host, port), CONNECT_TIMEOUT, self.source_address)
        sock.settimeout(GREETING_TIMEOUT)
        return sock


class _TimedSMTPSSL(smtplib.SMTP_SSL):
    def _get_socket(self, host, port, timeout):
        sock = socket.create_connection((host, port), CONNECT_TIMEOUT, self.source_address)
        sock = self.context.wrap_socket(sock, server_hostname=self._host)
        sock.settimeout(GREETING_TIMEOUT)
        return sock


def open_smtp(config: ReportConfig) -> smtplib.SMTP:
    """Connect, secure and authenticate against the configured mail server."""
    mail = config.mail
    context = permissive_tls_context()
    if mail.use_ssl:
        smtp = _TimedSMTPSSL(mail.host, mail.port, timeout=SOCKET_TIMEOUT, context=context)
    else:
        smtp = _TimedSMTP(mail.host, mail.port, timeout=SOCKET_TIMEOUT)

    try:
        if smtp.sock is not None:
            smtp.sock.settimeout(SOCKET_TIMEOUT)
        if not mail.use_ssl:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls(context=context)
                smtp.ehlo()
        if mail.username and mail.password:
            smtp.login(mail.username, mail.password)
    except (smtplib.SMTPException, OSError):
        smtp.close()
        raise
    return smtp


def build_message(report: Report, config: ReportConfig, recipients: Sequence[str]) -> MIMEMultipart:
    subject = config.report.subject
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((config.mail.sender_name or "", config.mail.sender_email or ""))
    msg["To"] = ",".join(recipients)
    msg.attach(MIMEText(format_plain_text(report, subject), "plain", "utf-8"))
    msg.attach(MIMEText(report.html, "html", "utf-8"))
    return msg


def log_undelivered(report: Report, recipients: Sequence[str], subject: str) -> None:
    """Write the would-be email to the log so the run leaves an audit trail."""
    logger.info("📧 EMAIL CONTENT THAT WOULD HAVE BEEN SENT:")
    logger.info("=" * 60)
    logger.info(f"To: {', '.join(recipients) or '(none configured)'}")
    logger.info(f"Subject: {subject}")
    logger.info(f"SUMMARY:\n{report.summary_text}")
    logger.info(f"ISSUES TABLE:\n{report.table}")
    logger.info("=" * 60)


def send_report(issues: Sequence[Issue], config: ReportConfig, report: Optional[Report] = None) -> bool:
    """
    Format the issues and email the report to every configured recipient.

    One attempt only. Delivery failures are logged together with the
    would-be content and never raised.

    Returns:
        True if the server accepted the message

    Raises:
        NoRecipients: if no recipient is configured
    """
    report = report or format_issues(issues, config.jira.browse_url, config.report.subject)
    recipients: List[str] = config.recipients
    if not recipients:
        raise NoRecipients("No valid email recipients found in environment variables")

    logger.info(f"📬 Sending email to {len(recipients)} recipient(s): {', '.join(recipients)}")
    msg = build_message(report, config, recipients)

    try:
        with open_smtp(config) as smtp:
            refused = smtp.sendmail(config.mail.sender_email, recipients, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"❌ Error sending email: {e}")
        log_undelivered(report, recipients, config.report.subject)
        logger.warning("⚠️ Email sending failed, but issue extraction was successful!")
        return False

    accepted = [r for r in recipients if r not in refused]
    logger.info(f"✅ Email sent successfully! Accepted: {', '.join(accepted)}")
    if refused:
        logger.warning(f"❌ Email rejected by server for: {', '.join(refused)}")
    return True

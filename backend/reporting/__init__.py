"""Sprint reporting: formatting, email delivery and the scheduled job."""

from .formatter import Report, format_issues
from .notifier import NoRecipients, send_report
from .sprint_report import run_sprint_report, schedule_sprint_report

__all__ = [
    "Report",
    "format_issues",
    "NoRecipients",
    "send_report",
    "run_sprint_report",
    "schedule_sprint_report",
]

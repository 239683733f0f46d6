"""Sprint report job: fetch the board's issues, format them and email the report."""

import logging
from typing import Optional

import pytz
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from utils.config_loader import ReportConfig
from mcp_tools.tools.jira_client import (
    IssueSource,
    JiraClient,
    TrackerRequestError,
    collect_sprint_issues,
)
from .formatter import format_issues
from .notifier import NoRecipients, log_undelivered, send_report

logger = logging.getLogger(__name__)


def run_sprint_report(config: ReportConfig, source: Optional[IssueSource] = None) -> int:
    """
    Run one report: extraction failures propagate, delivery problems do not.

    Returns:
        Number of issues reported
    """
    board_id = config.report.board_id
    logger.info(f"🚀 Starting Jira issue extraction for board {board_id}...")

    if source is None:
        client = JiraClient(config.jira)
        try:
            client.get_board_info(board_id)
        except TrackerRequestError as e:
            logger.warning(f"⚠️ Could not fetch board info: {e}")
        source = client

    issues = collect_sprint_issues(source, board_id)
    if not issues:
        logger.info("❌ No issues found for this board, skipping email")
        return 0

    logger.info(f"✅ Found {len(issues)} issues")
    report = format_issues(issues, config.jira.browse_url, config.report.subject)
    try:
        send_report(issues, config, report=report)
    except NoRecipients as e:
        logger.error(f"❌ {e}")
        log_undelivered(report, [], config.report.subject)
    return len(issues)


def schedule_sprint_report(config: ReportConfig, source: Optional[IssueSource] = None) -> BlockingScheduler:
    """Build a scheduler that runs the report on REPORT_CRON in REPORT_TIMEZONE."""
    tz = pytz.timezone(config.report.timezone)
    scheduler = BlockingScheduler(timezone=tz)

    def job():
        try:
            run_sprint_report(config, source)
        except Exception as e:
            logger.error(f"Run failed: {e}", exc_info=True)

    scheduler.add_job(
        job,
        trigger=CronTrigger.from_crontab(config.report.cron, timezone=tz),
        id="sprint-report",
        name="Sprint report",
    )
    return scheduler

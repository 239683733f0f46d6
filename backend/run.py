"""
Sprint report runner.

Usage:
    python run.py                     # one report now
    python run.py --schedule          # once now, then on REPORT_CRON
    python run.py --source scrape     # read the rendered board instead of the REST API
    python run.py --source scrape --board-html board.html   # board page saved from a signed-in browser
"""

import os
import sys
import argparse
import logging

from utils.config_loader import ConfigError, load_environment, load_report_config
from mcp_tools.tools.jira_client import TrackerRequestError
from mcp_tools.tools.board_scraper import BoardScraper, ScrapeError
from reporting.sprint_report import run_sprint_report, schedule_sprint_report

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Email a status table of a Jira board's active sprint.")
    parser.add_argument("--env-file", help="Path to a .env file overriding the process environment")
    parser.add_argument("--source", choices=["api", "scrape"], default="api",
                        help="Where issues come from (default: REST API)")
    parser.add_argument("--schedule", action="store_true",
                        help="Keep running and send the report on REPORT_CRON")
    parser.add_argument("--board-html", help="Saved board page to read with --source scrape")
    args = parser.parse_args(argv)

    load_environment(args.env_file)
    try:
        config = load_report_config()
    except ConfigError as e:
        logger.error(f"❌ {e}")
        return 1
    logger.info(f"✅ Configuration loaded: {config.to_dict()}")

    source = BoardScraper(config.jira, html_file=args.board_html) if args.source == "scrape" else None

    if args.schedule:
        scheduler = schedule_sprint_report(config, source)
        logger.info(f"⏰ Scheduler started with cron '{config.report.cron}' ({config.report.timezone})")
        try:
            run_sprint_report(config, source)
        except (TrackerRequestError, ScrapeError) as e:
            logger.error(f"Run failed: {e}")
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("👋 Scheduler stopped")
        return 0

    try:
        run_sprint_report(config, source)
    except (TrackerRequestError, ScrapeError) as e:
        logger.error(f"❌ Error in sprint report: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

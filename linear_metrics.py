#!/usr/bin/env python3
"""
Linear Kanban Metrics

Fetches issues from Linear, calculates kanban flow metrics, and prints a
report as tables, JSON, or CSV.
"""
# /// script
# requires-python = ">=3.8"
# dependencies = [
#     "requests",
#     "pandas",
#     "python-dotenv",
#     "rich",
# ]
# ///

import argparse
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from config import (
    DEFAULT_FORMAT,
    MAX_PAGE_SIZE,
    MIN_PAGE_SIZE,
    VALID_FORMATS,
    ConfigurationError,
    MetricsConfig,
    cache_dir_from_env,
    load_config,
)
from kanban_metrics import KanbanMetricsCalculator
from linear_cache import IssueCache
from linear_client import LinearAPIError, LinearClient
from report_generator import KanbanReportGenerator, ReportData, TimelineDisplay
from status_display import StatusDisplay
from timeline import TicketTimeseries


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Calculate kanban flow metrics from Linear issues',
        epilog='''
Environment:
  LINEAR_API_TOKEN      Linear personal API key (required)
  LINEAR_TEAM_ID        Default for --team-id
  METRICS_START_DATE    Default for --start-date
  METRICS_END_DATE      Default for --end-date
  DEBUG / QUIET         Verbose or silent status output

Cache Management:
  Fetched issues are cached until the end of the day.
  Use --no-cache to bypass the cache or --clear-cache to empty it.
        ''',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--team-id', help='Filter by team key (e.g. ROI) or team UUID')
    parser.add_argument('--start-date', help='Start date (YYYY-MM-DD)')
    parser.add_argument('--end-date', help='End date (YYYY-MM-DD)')
    parser.add_argument('--format', default=DEFAULT_FORMAT,
                        help='Output format: table, json, csv (default: table)')
    parser.add_argument('--page-size', type=int, default=MAX_PAGE_SIZE,
                        help=f'Number of issues per page (max: {MAX_PAGE_SIZE}, default: {MAX_PAGE_SIZE})')
    parser.add_argument('--no-cache', action='store_true', help='Disable API response caching')
    parser.add_argument('--team-metrics', action='store_true', help='Include team-based metrics breakdown')
    parser.add_argument('--timeseries', action='store_true', help='Include timeseries analysis')
    parser.add_argument('--timeline', metavar='ISSUE_ID', help='Show detailed timeline for a specific issue')
    parser.add_argument('--ticket-details', action='store_true', help='Include individual ticket details')
    parser.add_argument('--include-archived', action='store_true', help='Include archived tickets in the analysis')
    parser.add_argument('--clear-cache', action='store_true', help='Clear cached API responses and exit')
    return parser


def validate_options(args: argparse.Namespace, status: StatusDisplay) -> argparse.Namespace:
    """Correct out-of-range page sizes and unknown formats, warning about each"""
    if args.page_size > MAX_PAGE_SIZE:
        status.warning(f"Linear API maximum page size is {MAX_PAGE_SIZE}. "
                       f"Using {MAX_PAGE_SIZE} instead of {args.page_size}.")
        args.page_size = MAX_PAGE_SIZE
    elif args.page_size < MIN_PAGE_SIZE:
        status.warning(f"Page size must be at least {MIN_PAGE_SIZE}. "
                       f"Using {MIN_PAGE_SIZE} instead of {args.page_size}.")
        args.page_size = MIN_PAGE_SIZE

    if args.format not in VALID_FORMATS:
        status.warning(f"Invalid format '{args.format}'. Using '{DEFAULT_FORMAT}' instead.")
        args.format = DEFAULT_FORMAT

    return args


class KanbanMetricsApp:
    """Fetches issues and shows either metrics or a single issue timeline"""

    def __init__(self, config: MetricsConfig, status: StatusDisplay,
                 client: Optional[LinearClient] = None):
        self.config = config
        self.status = status
        self.client = client or LinearClient.from_config(config, status=status)

    def build_options(self, args: argparse.Namespace) -> Dict[str, Any]:
        """Query options from the CLI, with environment defaults for team and dates"""
        return {
            'team_id': args.team_id or self.config.team_id,
            'start_date': args.start_date or self.config.start_date,
            'end_date': args.end_date or self.config.end_date,
            'page_size': args.page_size,
            'no_cache': args.no_cache,
            'include_archived': args.include_archived,
            'format': args.format,
        }

    def run(self, args: argparse.Namespace) -> int:
        """Returns the process exit code"""
        options = self.build_options(args)

        try:
            issues = self.client.fetch_issues(options)
        except LinearAPIError as e:
            self.status.error(f"Linear API error: {e}")
            return 1

        if not issues:
            self.status.error("No issues found with the given criteria")
            return 1

        if args.timeline:
            return 0 if TimelineDisplay(issues).show_timeline(args.timeline) else 1

        self.show_metrics(issues, args)
        return 0

    def show_metrics(self, issues: List[Dict[str, Any]], args: argparse.Namespace):
        self.status.info(f"📊 Found {len(issues)} issues, calculating metrics...")

        calculator = KanbanMetricsCalculator(issues)
        report_data = ReportData(
            metrics=calculator.overall_metrics(),
            team_metrics=calculator.team_metrics() if args.team_metrics else None,
            timeseries=TicketTimeseries(issues) if args.timeseries else None,
            issues=issues if args.ticket_details else None,
        )
        KanbanReportGenerator(report_data).display(args.format)


def print_token_help(status: StatusDisplay):
    status.error("LINEAR_API_TOKEN environment variable not set")
    status.print("   Please create a .env file with your Linear API token")
    status.print("   Get your token from: https://linear.app/settings/api")


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function"""
    args = build_parser().parse_args(argv)

    # Load environment variables from .env file
    load_dotenv()

    if args.clear_cache:
        status = StatusDisplay()
        removed = IssueCache(cache_dir_from_env(), status=status).clear()
        status.print(f"🗑️  Cleared {removed} cached responses")
        return 0

    try:
        config = load_config()
    except ConfigurationError:
        print_token_help(StatusDisplay())
        return 1

    status = StatusDisplay.from_config(config)
    validate_options(args, status)

    app = KanbanMetricsApp(config, status)
    try:
        return app.run(args)
    except KeyboardInterrupt:
        status.stop()
        status.warning("Process interrupted by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())

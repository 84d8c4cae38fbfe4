"""
Command-line access to the dashboard reports.
Prints any report as JSON with the same field names the dashboard consumes.
"""

from datetime import datetime, timezone
import argparse
import logging

from src.config.settings import Settings
from src.data_access.sql_client import SQLClient
from src.analytics.aggregator import MetricsAggregator, REPORT_NAMES
from src.models.reports import ReportFilter, TrendPeriod


logger = logging.getLogger(__name__)


def build_filter(args: argparse.Namespace) -> ReportFilter:
    start_date = None
    end_date = None
    if args.start_date:
        start_date = datetime.strptime(args.start_date, '%Y-%m-%d').replace(tzinfo=timezone.utc)
    if args.end_date:
        # Set to end of day
        end_date = datetime.strptime(args.end_date, '%Y-%m-%d').replace(
            hour=23, minute=59, second=59, tzinfo=timezone.utc
        )

    options = {
        "start_date": start_date,
        "end_date": end_date,
        "days": args.days,
        "period": args.period,
        "service_type": args.service_type,
        "branch": args.branch,
        "urgency": args.urgency,
        "category": args.category,
        "min_count": args.min_count,
        "limit": args.limit,
    }
    return ReportFilter(**{key: value for key, value in options.items() if value is not None})


def run(config: Settings, report: str, filters: ReportFilter) -> str:
    """Compute one report and return it as JSON."""
    sql_client = SQLClient(config)
    try:
        sql_client.connect()
        aggregator = MetricsAggregator(sql_client, default_days=config.report_default_days)
        result = aggregator.run_report(report, filters)
        return result.model_dump_json(by_alias=True, indent=2)
    finally:
        sql_client.close()


def main():
    """Main entry point for printing a dashboard report."""
    parser = argparse.ArgumentParser(description='Print a customer feedback dashboard report as JSON.')
    parser.add_argument('report', choices=sorted(REPORT_NAMES.keys()), help='Report to compute')
    parser.add_argument('--start-date', type=str, help='Start date in YYYY-MM-DD format')
    parser.add_argument('--end-date', type=str, help='End date in YYYY-MM-DD format')
    parser.add_argument('--days', type=int, help='Trailing window in days')
    parser.add_argument('--period', choices=[p.value for p in TrendPeriod], help='Trend bucket size')
    parser.add_argument('--service-type', type=str, help='Filter by service type (e.g. "Mobile App")')
    parser.add_argument('--branch', type=str, help='Filter by branch')
    parser.add_argument('--urgency', type=str, help='Filter by urgency level')
    parser.add_argument('--category', type=str, help='Filter by category')
    parser.add_argument('--min-count', type=int, help='Minimum mentions for category insights')
    parser.add_argument('--limit', type=int, help='Maximum number of actionable insights')
    args = parser.parse_args()

    if args.days and (args.start_date or args.end_date):
        parser.error("Cannot specify both --days and --start-date/--end-date")

    try:
        filters = build_filter(args)
    except ValueError as e:
        parser.error(str(e))

    config = Settings()
    logging.basicConfig(
        level=config.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print(run(config, args.report, filters))


if __name__ == "__main__":
    main()

"""
Command-line interface for GameNews.
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Dict

from dotenv import load_dotenv

from gamenews.config import load_config
from gamenews.core.scheduler import IngestionScheduler
from gamenews.handlers import NewsHandlers

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO", log_file: bool = True):
    """
    Send log records to stderr and, optionally, a dated log file.
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(f"gamenews_{datetime.now().strftime('%Y%m%d')}.log"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def parse_args(argv=None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="GameNews - Gaming News Aggregator")
    parser.add_argument("--config", help="Path to a YAML or JSON config file")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--no-log-file", action="store_true", help="Log to stderr only")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("fetch", help="Run one ingestion pass")

    schedule = sub.add_parser("schedule", help="Run ingestion on a fixed interval")
    schedule.add_argument("--interval", type=float, help="Seconds between runs")

    latest = sub.add_parser("latest", help="List stored news")
    latest.add_argument("--page", type=int, default=1)
    latest.add_argument("--limit", type=int)
    latest.add_argument("--category")
    latest.add_argument("--date", help="Single day, YYYY-MM-DD")
    latest.add_argument("--from", dest="date_from", help="ISO start of range")
    latest.add_argument("--to", dest="date_to", help="ISO end of range")
    latest.add_argument("--country", help="ISO country code of the requester")

    search = sub.add_parser("search", help="Search titles and descriptions")
    search.add_argument("q")

    by_date = sub.add_parser("by-date", help="News published on one day")
    by_date.add_argument("date")

    extract = sub.add_parser("extract", help="Extract the body of an article")
    extract.add_argument("url")

    return parser.parse_args(argv)


def emit(response: Dict) -> int:
    print(json.dumps(response, ensure_ascii=False, indent=2))
    return 0 if response.get("success", True) else 1


async def run_scheduler(handlers: NewsHandlers, interval: float, run_on_start: bool):
    scheduler = IngestionScheduler(handlers.coordinator, interval=interval, run_on_start=run_on_start)
    logger.info(f"Scheduling ingestion every {interval}s")
    try:
        await scheduler.start()
    finally:
        await scheduler.stop()


def main(argv=None):
    """
    Entry point for the command-line script.
    """
    load_dotenv(override=True)
    args = parse_args(argv)
    configure_logging(args.log_level, log_file=not args.no_log_file)

    config = load_config(args.config)
    handlers = NewsHandlers.from_config(config)

    try:
        if args.command == "fetch":
            return emit(handlers.run_sync())
        if args.command == "schedule":
            interval = args.interval or config.get("scheduler.interval_seconds")
            asyncio.run(run_scheduler(handlers, interval, config.get("scheduler.run_on_start")))
            return 0
        if args.command == "latest":
            return emit(handlers.latest(
                page=args.page,
                limit=args.limit or config.get("query.default_limit"),
                category=args.category,
                date=args.date,
                date_from=args.date_from,
                date_to=args.date_to,
                region=handlers.region(args.country),
            ))
        if args.command == "search":
            return emit(handlers.search(args.q))
        if args.command == "by-date":
            return emit(handlers.by_date(args.date))
        if args.command == "extract":
            return emit(handlers.extract_sync(args.url))
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 1
    except Exception as e:
        logger.exception(f"An error occurred: {e}")
        return 1
    return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Scrape Scheduler - Cron and On-Demand Execution

Runs the scrape pipeline once, or re-runs it on a cron schedule using
APScheduler. Every run resumes from the progress ledger, so a scheduled
re-run is how failed tasks get retried.

Features:
- Run once (default) or cron-based scheduling (--schedule / RUN_ONCE=false)
- Ledger status inspection (--status) and reset (--reset)
- Graceful shutdown on SIGINT/SIGTERM

Usage:
    # Run once and exit
    python -m apps.scraper --workers 5 --delay 1.0

    # Only a few locations and years
    python -m apps.scraper --locations "Berkeley,San Diego" --years 2022,2023

    # Show progress
    python -m apps.scraper --status

    # Re-run every Sunday at 03:00
    python -m apps.scraper --schedule --cron "0 3 * * 0"
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.scraper.client import WageClient
from apps.scraper.ledger import ProgressLedger
from apps.scraper.models import RunSummary, ScrapeConfig
from apps.scraper.pipeline import ScrapePipeline
from apps.scraper.publisher import SnapshotPublisher
from utils.config import settings
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


class ScrapeScheduler:
    """
    Scheduler for one-off or periodic scrape runs.

    Handles:
    - Building the client, pipeline and optional publisher per run
    - APScheduler setup and management
    - Signal handling for graceful shutdown
    """

    def __init__(
        self,
        config: ScrapeConfig,
        run_once: bool = True,
        cron: Optional[str] = None,
        publish_events: bool = False,
    ) -> None:
        """
        Initialize scheduler.

        Args:
            config: Pipeline configuration
            run_once: If True, run the pipeline once and exit
            cron: Crontab expression for scheduled mode
            publish_events: Announce written snapshots on Redis
        """
        self.config = config
        self.run_once = run_once
        self.cron = cron or settings.SCRAPE_SCHEDULE_CRON
        self.publish_events = publish_events
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()

        logger.info(
            "ScrapeScheduler initialized",
            extra={"run_once": run_once, "cron_schedule": self.cron},
        )

    async def execute_scrape(self) -> RunSummary:
        """Run the pipeline once with fresh client and publisher."""
        logger.info("Starting scrape execution")

        publisher = SnapshotPublisher() if self.publish_events else None

        try:
            async with WageClient(delay=self.config.delay) as client:
                pipeline = ScrapePipeline(self.config, client, publisher=publisher)
                summary = await pipeline.run()

            logger.info(
                "Scrape execution finished",
                extra={"successful": summary.successful, "failed": summary.failed},
            )
            return summary

        except Exception as e:
            logger.error("Scrape execution failed", extra={"error": str(e)}, exc_info=True)
            raise

        finally:
            if publisher is not None:
                await publisher.close()
            if self.run_once:
                self.shutdown_event.set()

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def start(self) -> Optional[RunSummary]:
        """
        Execute once, or start the scheduler and wait for a shutdown signal.

        Returns:
            The run summary in run-once mode, None in scheduled mode
        """
        if self.run_once:
            logger.info("Running in RUN_ONCE mode")
            return await self.execute_scrape()

        self.setup_signal_handlers()
        logger.info("Running in scheduled mode")

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.execute_scrape,
            trigger=CronTrigger.from_crontab(self.cron),
            id="scrape_job",
            name="Periodic Wage Scrape",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

        job = self.scheduler.get_job("scrape_job")
        next_run = getattr(job, "next_run_time", None)
        logger.info(
            "Scheduled scrape job",
            extra={"schedule": self.cron, "next_run": str(next_run) if next_run else None},
        )

        await self.shutdown_event.wait()

        logger.info("Shutting down scheduler")
        self.scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")
        return None


def parse_locations(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_years(value: str, min_year: int, max_year: int) -> list[int]:
    """Parse a comma-separated year list, dropping anything out of range."""
    years: list[int] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            year = int(part)
        except ValueError:
            logger.warning("Ignoring invalid year: %r", part)
            continue
        if not min_year <= year <= max_year:
            logger.warning("Ignoring year outside %d-%d: %d", min_year, max_year, year)
            continue
        years.append(year)
    return years


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m apps.scraper",
        description="Scrape UC annual wage data into per-location snapshot files.",
    )
    parser.add_argument("--workers", type=int, default=settings.SCRAPE_WORKERS, help="concurrent workers")
    parser.add_argument(
        "--delay", type=float, default=settings.SCRAPE_DELAY, help="delay between requests (seconds)"
    )
    parser.add_argument("--data", default=settings.DATA_DIR, help="data directory")
    parser.add_argument("--locations", default="", help="locations (comma-separated)")
    parser.add_argument("--years", default="", help="years (comma-separated)")
    parser.add_argument(
        "--progress-file",
        default=settings.PROGRESS_FILE,
        help="progress ledger path, relative to the data directory",
    )
    parser.add_argument("--reset", action="store_true", help="discard recorded progress before running")
    parser.add_argument("--status", action="store_true", help="show progress and exit")
    parser.add_argument(
        "--schedule",
        action="store_true",
        default=not settings.RUN_ONCE,
        help="keep running and re-scrape on the cron schedule",
    )
    parser.add_argument("--cron", default=settings.SCRAPE_SCHEDULE_CRON, help="crontab expression")
    parser.add_argument(
        "--publish",
        action="store_true",
        default=settings.PUBLISH_EVENTS,
        help="publish snapshot events to Redis",
    )
    return parser


def build_config(args: argparse.Namespace) -> ScrapeConfig:
    locations = parse_locations(args.locations) if args.locations else list(settings.SCRAPE_LOCATIONS)
    years = (
        parse_years(args.years, settings.MIN_YEAR, settings.MAX_YEAR)
        if args.years
        else list(settings.SCRAPE_YEARS)
    )
    return ScrapeConfig(
        locations=locations,
        years=years,
        data_dir=Path(args.data),
        workers=args.workers,
        delay=args.delay,
        progress_file=args.progress_file,
    )


async def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the scraper."""
    setup_logging(level=settings.LOG_LEVEL, format_type=settings.LOG_FORMAT)
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(2)

    ledger = ProgressLedger(config.progress_path)

    if args.status:
        ledger.load()
        print(ledger.status().render())
        return

    if args.reset:
        ledger.reset()

    if not config.locations or not config.years:
        logger.error("Nothing to scrape: no locations or no years selected")
        sys.exit(2)

    scheduler = ScrapeScheduler(
        config,
        run_once=not args.schedule,
        cron=args.cron,
        publish_events=args.publish,
    )

    try:
        await scheduler.start()
    except Exception as e:
        logger.error("Scraper failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

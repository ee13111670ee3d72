"""
Scrape Pipeline - Resumable Concurrent Fetching

Walks every (location, year) task, skips the ones already done, and
fetches the rest with a fixed-size pool of workers sharing one queue.

Flow per run:
1. Expand locations x years; record the task count in the ledger once
2. Split tasks into pending and skipped using the ledger and the
   snapshot files on disk
3. Mark tasks that have a valid snapshot but no ledger entry as complete
4. Start the workers; each pulls the next task as soon as it is free
5. Per task: fetch all pages, write the snapshot, mark the ledger,
   optionally publish an event, then sleep the configured delay

A failed task is logged, counted and left incomplete. It is not retried
within the run; the next run selects it again.
"""

import asyncio
import logging
import time
from typing import Any, Optional, Protocol

from apps.scraper.errors import EmptyResultError, ScrapeError
from apps.scraper.ledger import ProgressLedger
from apps.scraper.models import RunSummary, ScrapeConfig, Task, expand_tasks
from apps.scraper.publisher import SnapshotPublisher
from apps.scraper.snapshots import SnapshotWriter, snapshot_exists

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch_all(self, location: str, year: int) -> list[dict[str, Any]]: ...


class ScrapePipeline:
    """
    Bounded worker pool over the location x year task space.

    Handles:
    - Task expansion and filtering against ledger and snapshots
    - Ledger reconciliation with on-disk snapshots
    - Fan-out to workers and aggregation of outcomes
    """

    def __init__(
        self,
        config: ScrapeConfig,
        fetcher: Fetcher,
        ledger: Optional[ProgressLedger] = None,
        writer: Optional[SnapshotWriter] = None,
        publisher: Optional[SnapshotPublisher] = None,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            config: Locations, years, paths and pool sizing
            fetcher: Anything with an async fetch_all(location, year)
            ledger: Progress ledger, defaults to config.progress_path
            writer: Snapshot writer, defaults to config.data_dir
            publisher: Optional snapshot event publisher
        """
        self.config = config
        self.fetcher = fetcher
        self.ledger = ledger or ProgressLedger(config.progress_path)
        self.writer = writer or SnapshotWriter(config.data_dir)
        self.publisher = publisher
        self.summary = RunSummary()

    def is_done(self, task: Task) -> bool:
        return self.ledger.is_complete(task) or snapshot_exists(
            self.config.data_dir, task.location, task.year
        )

    def plan(self, tasks: list[Task]) -> tuple[list[Task], list[Task]]:
        """
        Split tasks into pending and skipped, repairing ledger drift.

        A task with a valid snapshot that the ledger does not list (e.g.
        after a crash between snapshot write and ledger flush) is marked
        complete here without being fetched again.

        Returns:
            (pending, skipped)
        """
        pending: list[Task] = []
        skipped: list[Task] = []

        for task in tasks:
            in_ledger = self.ledger.is_complete(task)
            on_disk = snapshot_exists(self.config.data_dir, task.location, task.year)

            if on_disk and not in_ledger:
                self.ledger.mark_complete(task)
                self.summary.reconciled += 1
                logger.info("Reconciled: %s %d (snapshot exists)", task.location, task.year)

            if in_ledger or on_disk:
                skipped.append(task)
            else:
                pending.append(task)

        return pending, skipped

    async def run(self, tasks: Optional[list[Task]] = None) -> RunSummary:
        """
        Run the pipeline until every pending task has been attempted.

        Args:
            tasks: Explicit task list, defaults to locations x years

        Returns:
            Aggregate counts and elapsed time

        Raises:
            OSError: If the data directory cannot be created
            PersistenceError: If the ledger cannot be written during planning
        """
        start = time.monotonic()
        self.summary = RunSummary()
        self.config.data_dir.mkdir(parents=True, exist_ok=True)

        self.ledger.load()
        if tasks is None:
            tasks = expand_tasks(self.config.locations, self.config.years)
        self.summary.total = len(tasks)
        self.ledger.set_total_tasks(len(tasks))

        pending, skipped = await asyncio.to_thread(self.plan, tasks)
        self.summary.skipped = len(skipped)

        logger.info(
            "Starting: %d workers, %.1fs delay, %d locations, %d years (%d pending, %d skipped)",
            self.config.workers,
            self.config.delay,
            len(self.config.locations),
            len(self.config.years),
            len(pending),
            len(skipped),
        )

        if not pending:
            self.summary.elapsed = time.monotonic() - start
            logger.info("All %d tasks already complete, nothing to fetch", len(tasks))
            return self.summary

        queue: asyncio.Queue[Task] = asyncio.Queue()
        for task in pending:
            queue.put_nowait(task)

        workers = [
            asyncio.create_task(self._worker(queue, worker_id), name=f"scrape-worker-{worker_id}")
            for worker_id in range(min(self.config.workers, len(pending)))
        ]
        await asyncio.gather(*workers)

        self.summary.elapsed = time.monotonic() - start
        logger.info(
            "Complete: %d total, %d skipped, %d success, %d failed in %.1fs",
            self.summary.total,
            self.summary.skipped,
            self.summary.successful,
            self.summary.failed,
            self.summary.elapsed,
            extra={
                "total": self.summary.total,
                "skipped": self.summary.skipped,
                "reconciled": self.summary.reconciled,
                "successful": self.summary.successful,
                "failed": self.summary.failed,
            },
        )
        return self.summary

    async def _worker(self, queue: "asyncio.Queue[Task]", worker_id: int) -> None:
        # Workers all run on the event loop thread, so counters need no lock.
        while True:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                if await self.process(task):
                    self.summary.successful += 1
                else:
                    self.summary.skipped += 1
            except ScrapeError as e:
                self.summary.failed += 1
                logger.error(
                    "Error: %s %d - %s",
                    task.location,
                    task.year,
                    e,
                    extra={"worker": worker_id, "error_type": type(e).__name__},
                )
            except Exception as e:
                self.summary.failed += 1
                logger.error(
                    "Unexpected error: %s %d - %s",
                    task.location,
                    task.year,
                    e,
                    extra={"worker": worker_id, "error_type": type(e).__name__},
                    exc_info=True,
                )
            finally:
                queue.task_done()

            await asyncio.sleep(self.config.delay)

    async def process(self, task: Task) -> bool:
        """
        Fetch, persist and record one task.

        Returns:
            True if the task was fetched and saved, False if it turned out
            to be done already

        Raises:
            ScrapeError: Any fetch, empty-result or persistence failure
        """
        # The task may have been completed since planning.
        if await asyncio.to_thread(self.is_done, task):
            logger.info("Skip: %s %d (exists)", task.location, task.year)
            return False

        logger.info("Fetch: %s %d", task.location, task.year)
        records = await self.fetcher.fetch_all(task.location, task.year)

        if not records:
            raise EmptyResultError(f"No data for {task.location} {task.year}")

        path = await asyncio.to_thread(self.writer.save, task.location, task.year, records)
        await asyncio.to_thread(self.ledger.mark_complete, task)

        if self.publisher is not None:
            await self.publisher.publish_snapshot(path, task.location, task.year, len(records))

        logger.info("Done: %s %d (%d records)", task.location, task.year, len(records))
        return True

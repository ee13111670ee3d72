"""
Progress Ledger - Durable Task Completion State

Records which (location, year) tasks have finished so an interrupted
scrape resumes where it left off.

The whole ledger is rewritten and atomically swapped in after every
completed task, so a crash loses at most the tasks still in flight.
A missing or corrupt ledger file is never fatal: the scrape starts from
an empty ledger and startup reconciliation against the snapshot files
rebuilds it.

File format:
    {
        "completed_tasks": {"Berkeley-2023": true, ...},
        "start_time": "2025-01-15T03:15:02Z",
        "last_updated": "2025-01-15T04:01:44Z",
        "total_tasks": 195,
        "completed_count": 42
    }
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import orjson
from pydantic import ValidationError

from apps.scraper.errors import PersistenceError
from apps.scraper.models import Task
from apps.scraper.snapshots import atomic_write_bytes
from utils.schemas import LedgerFile, utc_timestamp

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


@dataclass
class LedgerState:
    """In-memory ledger contents."""

    completed: set[str] = field(default_factory=set)
    total_tasks: int = 0
    started_at: str = field(default_factory=utc_timestamp)
    last_updated: str = field(default_factory=utc_timestamp)

    @property
    def completed_count(self) -> int:
        return len(self.completed)

    def to_file(self) -> LedgerFile:
        return LedgerFile(
            completed_tasks={key: True for key in sorted(self.completed)},
            start_time=self.started_at,
            last_updated=self.last_updated,
            total_tasks=self.total_tasks,
            completed_count=self.completed_count,
        )

    @classmethod
    def from_file(cls, data: LedgerFile) -> "LedgerState":
        return cls(
            completed={key for key, done in data.completed_tasks.items() if done},
            total_tasks=data.total_tasks,
            started_at=data.start_time,
            last_updated=data.last_updated,
        )


@dataclass(frozen=True)
class LedgerStatus:
    """Read-only view of the ledger for humans."""

    total_tasks: int
    completed_count: int
    percent_complete: float
    started_at: str
    last_updated: str
    recent: list[str]

    def render(self) -> str:
        lines = [
            f"Progress: {self.completed_count}/{self.total_tasks} tasks "
            f"({self.percent_complete:.1f}%)",
            f"Started: {self.started_at}",
            f"Last updated: {self.last_updated}",
        ]
        if self.recent:
            lines.append("Recently completed:")
            lines.extend(f"  - {key}" for key in self.recent)
        return "\n".join(lines)


class ProgressLedger:
    """
    Thread-safe, file-backed set of completed task keys.

    Every mutating method holds one lock across both the in-memory change
    and the flush, so concurrent mark_complete() calls never lose an update.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self.state = LedgerState()

    def load(self) -> LedgerState:
        """
        Load persisted state, falling back to an empty ledger.

        Returns:
            The loaded (or fresh) state, which also becomes self.state
        """
        with self._lock:
            self.state = self._read()
            return self.state

    def _read(self) -> LedgerState:
        if not self.path.exists():
            logger.info("No progress ledger found, starting fresh: path=%s", self.path)
            return LedgerState()

        try:
            data = LedgerFile.model_validate(orjson.loads(self.path.read_bytes()))
        except (OSError, orjson.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "Progress ledger unreadable, starting fresh",
                extra={"path": str(self.path), "error": str(e)},
            )
            return LedgerState()

        state = LedgerState.from_file(data)
        if data.completed_count != state.completed_count:
            logger.warning(
                "Ledger completed_count out of sync, recomputed: stored=%d, actual=%d",
                data.completed_count,
                state.completed_count,
            )

        logger.info(
            "Loaded progress ledger: %d/%d tasks complete",
            state.completed_count,
            state.total_tasks,
        )
        return state

    def is_complete(self, task: Task) -> bool:
        with self._lock:
            return task.key in self.state.completed

    def set_total_tasks(self, total: int) -> bool:
        """
        Record the size of the task space, once per ledger lifetime.

        Returns:
            True if the total was recorded, False if one was already set
        """
        with self._lock:
            if self.state.total_tasks:
                return False
            self.state.total_tasks = total
            self._flush()
            return True

    def mark_complete(self, task: Task) -> bool:
        """
        Add a task to the completed set and flush immediately.

        Returns:
            True if the task was newly marked, False if it already was

        Raises:
            PersistenceError: If the flush fails (the in-memory mark stays)
        """
        with self._lock:
            if task.key in self.state.completed:
                return False
            self.state.completed.add(task.key)
            self._flush()
            return True

    def flush(self) -> None:
        """Persist the full ledger, replacing the previous file atomically."""
        with self._lock:
            self._flush()

    def _flush(self) -> None:
        self.state.last_updated = utc_timestamp()
        data = orjson.dumps(self.state.to_file().model_dump(), option=orjson.OPT_INDENT_2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(self.path, data)
        except OSError as e:
            raise PersistenceError(f"Failed to write progress ledger {self.path}: {e}") from e

    def reset(self) -> None:
        """Forget all progress, in memory and on disk."""
        with self._lock:
            self.state = LedgerState()
            self.path.unlink(missing_ok=True)
        logger.info("Progress ledger reset: path=%s", self.path)

    def status(self, recent: Optional[int] = RECENT_LIMIT) -> LedgerStatus:
        with self._lock:
            state = self.state
            total = state.total_tasks
            done = state.completed_count
            keys = sorted(state.completed)
            return LedgerStatus(
                total_tasks=total,
                completed_count=done,
                percent_complete=(done / total * 100) if total else 0.0,
                started_at=state.started_at,
                last_updated=state.last_updated,
                recent=keys[-recent:] if recent else keys,
            )

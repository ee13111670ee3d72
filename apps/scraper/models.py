"""
Scraper domain models.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


@dataclass(frozen=True)
class Task:
    """One unit of work: every wage record for a location in a year."""

    location: str
    year: int

    @property
    def key(self) -> str:
        """Ledger key, e.g. 'San Diego-2023'."""
        return f"{self.location}-{self.year}"


def expand_tasks(locations: Iterable[str], years: Iterable[int]) -> list[Task]:
    """Cartesian product of locations x years, location-major."""
    years = list(years)
    return [Task(location, year) for location in locations for year in years]


@dataclass
class ScrapeConfig:
    """Everything the pipeline needs, passed in explicitly at construction."""

    locations: list[str]
    years: list[int]
    data_dir: Path
    workers: int = 5
    delay: float = 1.0
    progress_file: str = "scrape_progress.json"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")

    @property
    def progress_path(self) -> Path:
        path = Path(self.progress_file)
        return path if path.is_absolute() else self.data_dir / path


@dataclass
class RunSummary:
    """Aggregate outcome of one pipeline run."""

    total: int = 0
    skipped: int = 0
    reconciled: int = 0
    successful: int = 0
    failed: int = 0
    elapsed: float = 0.0

    @property
    def attempted(self) -> int:
        return self.successful + self.failed

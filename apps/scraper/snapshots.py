"""
Snapshot Files - Writer and Existence Check

One JSON file per (location, year):

    <data_dir>/<Location_Name>/wages_<year>.json

The writer replaces files atomically; snapshot_exists() is the on-disk
source of truth for whether a task is done, independent of the ledger.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Union

import orjson
from pydantic import ValidationError

from apps.scraper.errors import PersistenceError
from utils.schemas import SnapshotFile, utc_timestamp

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def sanitize(location: str) -> str:
    """Directory-safe form of a location name."""
    return location.replace(" ", "_").replace("/", "_")


def snapshot_path(data_dir: PathLike, location: str, year: int) -> Path:
    return Path(data_dir) / sanitize(location) / f"wages_{year}.json"


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write data to path so readers see either the old or the new file.

    Raises:
        OSError: If the temporary file cannot be written or moved into place
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def snapshot_exists(data_dir: PathLike, location: str, year: int) -> bool:
    """
    Check whether a valid snapshot exists for a location/year.

    A file that is missing, unreadable, fails to decode, or holds zero
    records counts as absent so that the task is fetched again.
    """
    path = snapshot_path(data_dir, location, year)
    if not path.is_file():
        return False

    try:
        snapshot = SnapshotFile.model_validate(orjson.loads(path.read_bytes()))
    except (OSError, orjson.JSONDecodeError, ValidationError) as e:
        logger.warning("Ignoring invalid snapshot: path=%s, error=%s", path, e)
        return False

    return snapshot.total_records > 0


class SnapshotWriter:
    """Persists fetched records, one physical write at a time."""

    def __init__(self, data_dir: PathLike) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.Lock()

    def save(self, location: str, year: int, records: list[dict[str, Any]]) -> Path:
        """
        Write the snapshot for a location/year, replacing any previous one.

        Args:
            location: Location name
            year: Calendar year
            records: Records returned by the wage API

        Returns:
            Path of the written snapshot

        Raises:
            PersistenceError: If the directory or file cannot be written
        """
        snapshot = SnapshotFile(
            location=location,
            year=year,
            scraped_at=utc_timestamp(),
            total_records=len(records),
            records=records,
        )
        data = orjson.dumps(snapshot.model_dump(), option=orjson.OPT_INDENT_2)
        path = snapshot_path(self.data_dir, location, year)

        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                atomic_write_bytes(path, data)
            except OSError as e:
                raise PersistenceError(f"Failed to write snapshot {path}: {e}") from e

        logger.debug("Snapshot written: path=%s, records=%d", path, len(records))
        return path

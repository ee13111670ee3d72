# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from typing import Callable

import orjson
import pytest

from apps.scraper.models import ScrapeConfig
from apps.scraper.snapshots import snapshot_path


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture()
def make_config(data_dir: Path) -> Callable[..., ScrapeConfig]:
    """Build a ScrapeConfig rooted at the per-test data dir, delay 0 by default."""

    def _make(**overrides) -> ScrapeConfig:
        values = dict(
            locations=["A", "B"],
            years=[2020, 2021],
            data_dir=data_dir,
            workers=2,
            delay=0.0,
        )
        values.update(overrides)
        return ScrapeConfig(**values)

    return _make


@pytest.fixture()
def write_snapshot(data_dir: Path) -> Callable[..., Path]:
    """Place a snapshot file on disk directly, bypassing SnapshotWriter."""

    def _write(location: str, year: int, total_records: int = 1, raw: bytes | None = None) -> Path:
        path = snapshot_path(data_dir, location, year)
        path.parent.mkdir(parents=True, exist_ok=True)
        if raw is None:
            raw = orjson.dumps(
                {
                    "location": location,
                    "year": year,
                    "scraped_at": "2024-01-01T00:00:00Z",
                    "total_records": total_records,
                    "records": [{"id": i} for i in range(total_records)],
                }
            )
        path.write_bytes(raw)
        return path

    return _write

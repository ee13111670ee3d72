# tests/test_ledger.py

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import orjson
import pytest

from apps.scraper.errors import PersistenceError
from apps.scraper.ledger import ProgressLedger
from apps.scraper.models import Task, expand_tasks


@pytest.fixture()
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "scrape_progress.json"


def test_task_key_format() -> None:
    assert Task("San Diego", 2023).key == "San Diego-2023"


def test_load_missing_file_gives_fresh_ledger(ledger_path: Path) -> None:
    state = ProgressLedger(ledger_path).load()

    assert state.completed == set()
    assert state.total_tasks == 0
    assert state.completed_count == 0


@pytest.mark.parametrize("raw", [b"", b"{oops", b'{"completed_tasks": []}', b"[1, 2, 3]"])
def test_load_corrupt_file_gives_fresh_ledger(ledger_path: Path, raw: bytes) -> None:
    ledger_path.write_bytes(raw)

    state = ProgressLedger(ledger_path).load()

    assert state.completed == set()
    assert state.total_tasks == 0


def test_mark_complete_flushes_immediately(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()

    assert ledger.mark_complete(Task("Davis", 2020)) is True

    data = orjson.loads(ledger_path.read_bytes())
    assert data["completed_tasks"] == {"Davis-2020": True}
    assert data["completed_count"] == 1
    assert set(data) == {"completed_tasks", "start_time", "last_updated", "total_tasks", "completed_count"}


def test_mark_complete_is_idempotent(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()
    task = Task("Davis", 2020)

    assert ledger.mark_complete(task) is True
    assert ledger.mark_complete(task) is False

    assert ledger.state.completed_count == 1
    assert orjson.loads(ledger_path.read_bytes())["completed_count"] == 1
    assert ledger.is_complete(task)
    assert not ledger.is_complete(Task("Davis", 2021))


def test_total_tasks_set_only_once(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()

    assert ledger.set_total_tasks(195) is True
    assert ledger.set_total_tasks(4) is False
    assert ledger.state.total_tasks == 195

    reloaded = ProgressLedger(ledger_path)
    reloaded.load()
    assert reloaded.set_total_tasks(4) is False
    assert reloaded.state.total_tasks == 195


def test_resume_sees_exactly_the_flushed_tasks(ledger_path: Path) -> None:
    tasks = expand_tasks(["A", "B"], [2020, 2021, 2022])
    ledger = ProgressLedger(ledger_path)
    ledger.load()
    for task in tasks[:4]:
        ledger.mark_complete(task)
    # Simulate a crash: task 5 fetched but never marked; start a new process.
    del ledger

    resumed = ProgressLedger(ledger_path)
    state = resumed.load()

    assert state.completed == {t.key for t in tasks[:4]}
    assert state.completed_count == 4
    assert not resumed.is_complete(tasks[4])


def test_load_recomputes_stale_completed_count(ledger_path: Path) -> None:
    ledger_path.write_bytes(
        orjson.dumps(
            {
                "completed_tasks": {"A-2020": True, "A-2021": True, "B-2020": False},
                "start_time": "2024-01-01T00:00:00Z",
                "last_updated": "2024-01-01T01:00:00Z",
                "total_tasks": 4,
                "completed_count": 7,
            }
        )
    )

    state = ProgressLedger(ledger_path).load()

    assert state.completed == {"A-2020", "A-2021"}
    assert state.completed_count == 2
    assert state.started_at == "2024-01-01T00:00:00Z"


def test_flush_updates_last_updated(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()
    ledger.state.last_updated = "2000-01-01T00:00:00Z"

    ledger.flush()

    assert orjson.loads(ledger_path.read_bytes())["last_updated"] != "2000-01-01T00:00:00Z"


def test_flush_failure_raises_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    ledger = ProgressLedger(blocker / "scrape_progress.json")

    with pytest.raises(PersistenceError):
        ledger.mark_complete(Task("A", 2020))


def test_reset_clears_memory_and_disk(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()
    ledger.set_total_tasks(10)
    ledger.mark_complete(Task("A", 2020))

    ledger.reset()

    assert not ledger_path.exists()
    assert ledger.state.completed_count == 0
    assert ledger.state.total_tasks == 0
    assert ProgressLedger(ledger_path).load().completed == set()


def test_reset_without_file_is_harmless(ledger_path: Path) -> None:
    ProgressLedger(ledger_path).reset()
    assert not ledger_path.exists()


def test_status_projection(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()
    ledger.set_total_tasks(20)
    for task in expand_tasks(["B", "A"], range(2010, 2016)):
        ledger.mark_complete(task)

    status = ledger.status()

    assert status.total_tasks == 20
    assert status.completed_count == 12
    assert status.percent_complete == pytest.approx(60.0)
    assert len(status.recent) == 10
    assert status.recent == sorted(status.recent)
    assert status.recent[-1] == "B-2015"
    assert "12/20 tasks (60.0%)" in status.render()


def test_status_of_empty_ledger(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()

    status = ledger.status()

    assert status.percent_complete == 0.0
    assert status.recent == []


def test_concurrent_mark_complete_loses_nothing(ledger_path: Path) -> None:
    ledger = ProgressLedger(ledger_path)
    ledger.load()
    tasks = expand_tasks([f"L{i}" for i in range(10)], range(2010, 2020))
    # Every task submitted twice to exercise idempotence under contention.
    submissions = tasks + tasks

    with ThreadPoolExecutor(max_workers=8) as pool:
        newly_marked = list(pool.map(ledger.mark_complete, submissions))

    assert sum(newly_marked) == len(tasks)
    assert ledger.state.completed_count == len(tasks)

    on_disk = orjson.loads(ledger_path.read_bytes())
    assert on_disk["completed_count"] == len(on_disk["completed_tasks"]) == len(tasks)

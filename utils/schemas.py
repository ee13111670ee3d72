"""
Pydantic Schemas - Wire and File Formats

Defines the pydantic models used at every serialization boundary:
- Remote wage search request and response envelope
- Per-location/year snapshot files
- The progress ledger file
- Redis Pub/Sub snapshot events

Individual wage records are kept as opaque mappings; only the envelopes
around them are validated.

Usage:
    from utils.schemas import SearchResponse

    page = SearchResponse.model_validate(orjson.loads(body))
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


def utc_timestamp() -> str:
    """Current UTC time as an RFC3339 string with a trailing 'Z'."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


class SearchRequest(BaseModel):
    """Body of one paginated POST to the wage search endpoint."""

    op: str = "search"
    page: int = Field(..., ge=1)
    rows: int = 100
    sidx: str = "lastname"
    sord: str = "asc"
    count: int = 0
    year: str
    location: str
    firstname: str = ""
    lastname: str = ""
    title: str = ""
    startSal: str = ""
    endSal: str = ""


class SearchResponse(BaseModel):
    """One page of search results.

    `records` is the total number of rows available for the query, not the
    number of rows in this page.
    """

    records: int = 0
    page: int = 0
    total: int = 0
    rows: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("rows", mode="before")
    @classmethod
    def null_rows_as_empty(cls, v: Any) -> Any:
        """The endpoint sends `rows: null` past the last page."""
        return [] if v is None else v


class SnapshotFile(BaseModel):
    """Persisted output of one completed (location, year) task."""

    location: str
    year: int
    scraped_at: str
    total_records: int = Field(..., ge=0)
    records: list[dict[str, Any]] = Field(default_factory=list)


class LedgerFile(BaseModel):
    """On-disk representation of the progress ledger."""

    completed_tasks: dict[str, bool] = Field(default_factory=dict)
    start_time: str
    last_updated: str
    total_tasks: int = Field(default=0, ge=0)
    completed_count: int = Field(default=0, ge=0)


class SnapshotEvent(BaseModel):
    """Redis Pub/Sub payload announcing a freshly written snapshot.

    Standard format:
    {
        "type": "snapshot_created",
        "path": "/data/Berkeley/wages_2023.json",
        "location": "Berkeley",
        "year": 2023,
        "total_records": 48211,
        "ts": "2025-01-15T03:15:02Z"
    }
    """

    type: str = Field(default="snapshot_created", description="Event type")
    path: str = Field(..., description="Snapshot file path")
    location: str
    year: int
    total_records: int
    ts: str = Field(default_factory=utc_timestamp, description="Timestamp")

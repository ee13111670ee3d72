"""
Scraper error taxonomy.

Every per-task failure is a ScrapeError; the worker pool catches these at
its boundary, counts the task as failed and leaves it for the next run.
"""


class ScrapeError(Exception):
    """Base class for failures that abort a single task."""


class TransportError(ScrapeError):
    """Connection, DNS or timeout failure talking to the wage API."""


class ProtocolError(ScrapeError):
    """Non-success status code or an undecodable response body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyResultError(ScrapeError):
    """The API returned no records for a location/year."""


class PersistenceError(ScrapeError):
    """A snapshot or ledger file could not be written."""

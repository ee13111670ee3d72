"""
Event Publisher for Scraper Service

Announces each freshly written snapshot on Redis Pub/Sub so downstream
analysis and upload stages can pick it up without polling the data
directory.

Publishing is best-effort: the snapshot and ledger entry are already
durable by the time an event goes out, so a publish failure is logged and
the task still counts as successful.

Usage:
    from apps.scraper.publisher import SnapshotPublisher

    publisher = SnapshotPublisher()
    await publisher.publish_snapshot(path, "Berkeley", 2023, 48211)
    await publisher.close()
"""

import logging
from pathlib import Path
from typing import Optional, Union

from utils.config import settings
from utils.mq import EventChannel
from utils.schemas import SnapshotEvent

logger = logging.getLogger(__name__)


class SnapshotPublisher:
    """Publishes snapshot_created events to a single channel."""

    def __init__(self, channel: Optional[EventChannel] = None) -> None:
        self.channel = channel or EventChannel(settings.REDIS_CHANNEL_SNAPSHOTS)

    async def publish_snapshot(
        self,
        path: Union[str, Path],
        location: str,
        year: int,
        total_records: int,
    ) -> bool:
        """
        Publish a snapshot_created event.

        Returns:
            True if the event was published, False if publishing failed
        """
        event = SnapshotEvent(
            path=str(Path(path).resolve()),
            location=location,
            year=year,
            total_records=total_records,
        )

        try:
            await self.channel.publish(event)
        except Exception as e:
            logger.warning(
                "Failed to publish snapshot event",
                extra={"channel": self.channel.name, "file_path": event.path, "error": str(e)},
            )
            return False

        logger.debug(
            "Published snapshot event",
            extra={"channel": self.channel.name, "file_path": event.path, "message_type": event.type},
        )
        return True

    async def close(self) -> None:
        await self.channel.close()

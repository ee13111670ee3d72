"""
Redis Pub/Sub event channel.

Each EventChannel is bound to one Redis channel and publishes pydantic
event models serialized with orjson. Transient Redis failures are retried
with exponential backoff before the error reaches the caller.

Usage:
    from utils.mq import EventChannel
    from utils.schemas import SnapshotEvent

    channel = EventChannel("files.wage_snapshots")
    await channel.publish(SnapshotEvent(path=..., location="Davis", year=2023, total_records=1))
    await channel.close()
"""

import logging
from typing import Optional

import orjson
import redis.asyncio as redis
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.config import settings

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (redis.ConnectionError, redis.TimeoutError)


class EventChannel:
    """Publishes events to a single Redis Pub/Sub channel over a pooled connection."""

    def __init__(
        self,
        name: str,
        redis_url: Optional[str] = None,
        max_connections: Optional[int] = None,
    ) -> None:
        """
        Args:
            name: Redis channel name
            redis_url: Redis connection URL, defaults to settings.REDIS_URL
            max_connections: Pool size, defaults to settings.REDIS_MAX_CONNECTIONS
        """
        self.name = name
        self.redis_url = redis_url or settings.REDIS_URL
        self.max_connections = max_connections or settings.REDIS_MAX_CONNECTIONS
        self.client: Optional[redis.Redis] = None

    def _ensure_client(self) -> redis.Redis:
        if self.client is None:
            self.client = redis.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                decode_responses=False,
            )
        return self.client

    @staticmethod
    def encode(event: BaseModel) -> bytes:
        return orjson.dumps(event.model_dump(mode="json"))

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def publish(self, event: BaseModel) -> int:
        """Publish one event.

        Returns:
            Number of subscribers that received it

        Raises:
            redis.RedisError: If publishing still fails after retries
        """
        receivers = await self._ensure_client().publish(self.name, self.encode(event))
        logger.debug("Published %s to %s (%d receivers)", type(event).__name__, self.name, receivers)
        return receivers

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

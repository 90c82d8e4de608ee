"""
Post-commit event publishing over Redis pub/sub.

Calendar sync and notification/e-mail dispatch live outside this service;
they subscribe to ``<prefix>:<topic>`` channels.  Publishing is
fire-and-forget: nothing here is ever awaited inside a unit of work.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis

from shuttle.config import settings
from shuttle.infrastructure.redis_client import get_redis

logger = logging.getLogger(__name__)


class RedisEventPublisher:
    def __init__(
        self,
        client_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        prefix: Optional[str] = None,
    ):
        self._client_factory = client_factory
        self.prefix = prefix or settings.event_channel_prefix

    def channel(self, topic: str) -> str:
        return f"{self.prefix}:{topic}"

    async def publish(self, topic: str, payload: dict[str, Any]) -> int:
        """Publish *payload* as JSON; returns the number of receivers."""
        message = json.dumps(
            {
                "topic": topic,
                "published_at": datetime.now(timezone.utc).isoformat(),
                "data": payload,
            },
            default=str,
        )
        client = await self._client_factory()
        receivers = await client.publish(self.channel(topic), message)
        logger.debug("Published %s to %d receiver(s)", topic, receivers)
        return receivers

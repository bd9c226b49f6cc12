"""
Redis Presence Store
====================
Tracks viewer presence using one Redis sorted set.

Key pattern: {prefix}:presence    member = identity key, score = sighting time (ns)
             {prefix}:first_seen  hash identity key -> session start (ns)

A sorted set holds at most one entry per member, so repeated sightings
deduplicate for free: ZADD just moves the score to "now".
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..core.errors import BackendUnavailable
from ..core.types import Clock, Identity, Presence
from ..utils.logger import get_logger
from .base import PresenceStore

logger = get_logger(__name__)

NS_PER_SECOND = 1_000_000_000

_UNAVAILABLE = (RedisConnectionError, RedisTimeoutError, OSError)


def _ns(value: timedelta) -> int:
    return int(value.total_seconds() * NS_PER_SECOND)


def _from_ns(value: int) -> datetime:
    return datetime.fromtimestamp(value / NS_PER_SECOND, tz=timezone.utc)


class RedisPresenceStore(PresenceStore):
    """Presence over a Redis sorted set scored by nanosecond timestamps."""

    backend = "redis"

    def __init__(
        self,
        redis_client: Redis,
        inactive_limit: timedelta,
        clock: Clock = time.time,
        key_prefix: str = "televise",
    ):
        super().__init__(inactive_limit, clock)
        self._redis = redis_client
        self.presence_key = f"{key_prefix}:presence"
        self.first_seen_key = f"{key_prefix}:first_seen"

    def _now_ns(self) -> int:
        return int(self._clock() * NS_PER_SECOND)

    def _unavailable(self, error: Exception) -> BackendUnavailable:
        logger.warning("presence_backend_unavailable", backend=self.backend, error=str(error))
        return BackendUnavailable(self.backend, str(error))

    async def _upsert(self, identity: Identity) -> Presence:
        now_ns = self._now_ns()
        try:
            previous = await self._redis.zscore(self.presence_key, identity.key)
            first_ns: Optional[int] = None
            if previous is not None and now_ns - int(previous) < _ns(self.inactive_limit):
                stored = await self._redis.hget(self.first_seen_key, identity.key)
                if stored is not None:
                    first_ns = int(stored)

            pipe = self._redis.pipeline(transaction=True)
            pipe.zadd(self.presence_key, {identity.key: now_ns})
            if first_ns is None:
                first_ns = now_ns
                pipe.hset(self.first_seen_key, identity.key, str(now_ns))
            await pipe.execute()
        except _UNAVAILABLE as e:
            raise self._unavailable(e) from e

        return Presence(
            identity_key=identity.key,
            first_seen=_from_ns(min(first_ns, now_ns)),
            last_seen=_from_ns(now_ns),
        )

    async def count(self, window: timedelta) -> int:
        """Members scored in [now - window, +inf)."""
        cutoff = self._now_ns() - _ns(window)
        try:
            return int(await self._redis.zcount(self.presence_key, cutoff, "+inf"))
        except _UNAVAILABLE as e:
            raise self._unavailable(e) from e

    async def prune(self, retention: timedelta) -> int:
        cutoff = self._now_ns() - _ns(retention)
        try:
            stale = await self._redis.zrangebyscore(self.presence_key, "-inf", f"({cutoff}")
            if not stale:
                return 0
            # ZREMRANGEBYSCORE re-checks the score, so a member refreshed since
            # the read above keeps its entry (its first_seen resets on next sighting)
            pipe = self._redis.pipeline(transaction=True)
            pipe.zremrangebyscore(self.presence_key, "-inf", f"({cutoff}")
            pipe.hdel(self.first_seen_key, *stale)
            removed, _ = await pipe.execute()
            return int(removed)
        except _UNAVAILABLE as e:
            raise self._unavailable(e) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except _UNAVAILABLE as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

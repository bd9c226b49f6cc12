"""
Redis Client Management
========================
Async Redis connection pool with:
  - 3-attempt retry on initial connect (1s exponential backoff)
  - fail-fast socket timeouts so presence calls surface BackendUnavailable
"""

import asyncio
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from ..core.config import TeleviseConfig
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global Redis client
_redis_client: Optional[Redis] = None
_redis_pool: Optional[ConnectionPool] = None

_CONNECT_MAX_RETRIES = 3
_CONNECT_BACKOFF_BASE_S = 1.0  # 1s -> 2s


async def get_redis(config: TeleviseConfig) -> Redis:
    """
    Get or create the global Redis client.
    Uses connection pooling with retry logic on initial connect.
    """
    global _redis_client, _redis_pool

    if _redis_client is not None:
        return _redis_client

    last_error: Optional[Exception] = None

    for attempt in range(1, _CONNECT_MAX_RETRIES + 1):
        try:
            _redis_pool = ConnectionPool.from_url(
                config.redis_url,
                max_connections=config.redis_max_connections,
                decode_responses=True,  # Auto-decode bytes to strings
                socket_connect_timeout=3,
                socket_timeout=3,
            )
            _redis_client = Redis(connection_pool=_redis_pool)

            await _redis_client.ping()
            logger.info("redis_connected", url=config.redis_url, attempt=attempt)
            return _redis_client

        except Exception as e:
            last_error = e
            logger.warning(
                "redis_connect_retry",
                attempt=attempt,
                max_retries=_CONNECT_MAX_RETRIES,
                error=str(e),
            )
            await close_redis()

            if attempt < _CONNECT_MAX_RETRIES:
                await asyncio.sleep(_CONNECT_BACKOFF_BASE_S * (2 ** (attempt - 1)))

    logger.error(
        "redis_connection_failed_all_retries",
        retries=_CONNECT_MAX_RETRIES,
        error=str(last_error),
        url=config.redis_url,
    )
    raise last_error


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_client, _redis_pool

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_connection_closed")

    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None

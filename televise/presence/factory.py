"""
Presence Store Factory
======================
Selects the PresenceStore implementation from configuration at startup.
Request handlers only ever see the PresenceStore interface.
"""

import time
from typing import Any, Optional

from ..core.config import PresenceBackend, TeleviseConfig
from ..core.database import Database
from ..core.types import Clock
from ..snowflake import SnowflakeGenerator
from ..utils.logger import get_logger
from .base import PresenceStore

logger = get_logger(__name__)


async def build_presence_store(
    config: TeleviseConfig,
    database: Database,
    generator: SnowflakeGenerator,
    clock: Clock = time.time,
    redis_client: Optional[Any] = None,
    firestore_client: Optional[Any] = None,
) -> PresenceStore:
    """
    Build the configured presence store.

    Pre-connected clients may be passed in; otherwise they are created from
    the configuration.
    """
    backend = config.presence_backend

    if backend == PresenceBackend.REDIS:
        from .redis_store import RedisPresenceStore

        if redis_client is None:
            from ..bootstrap.redis_client import get_redis
            redis_client = await get_redis(config)
        store: PresenceStore = RedisPresenceStore(
            redis_client,
            inactive_limit=config.inactive_limit,
            clock=clock,
            key_prefix=config.redis_key_prefix,
        )

    elif backend == PresenceBackend.FIRESTORE:
        from .firestore_store import FirestorePresenceStore

        if firestore_client is None:
            from ..bootstrap.firestore_client import get_firestore
            firestore_client = get_firestore(config)
        store = FirestorePresenceStore(
            firestore_client,
            generator,
            inactive_limit=config.inactive_limit,
            clock=clock,
            collection=config.firestore_collection,
        )

    else:
        from .sql_store import SqlPresenceStore

        store = SqlPresenceStore(database, generator, inactive_limit=config.inactive_limit, clock=clock)

    logger.info("presence_store_ready", backend=store.backend)
    return store

"""
Service Wiring
==============
Builds every long-lived object once per process and owns their lifecycle.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

from ..core.config import PresenceBackend, TeleviseConfig
from ..core.database import Database
from ..core.types import Clock
from ..metadata.store import MetadataStore
from ..polls.store import PollStore
from ..presence.base import PresenceStore
from ..presence.factory import build_presence_store
from ..presence.poller import PresencePoller, Pruner, ViewerCache
from ..snowflake import SnowflakeGenerator
from ..utils.logger import get_logger
from .redis_client import close_redis

logger = get_logger(__name__)


@dataclass
class Services:
    config: TeleviseConfig
    database: Database
    generator: SnowflakeGenerator
    store: PresenceStore
    metadata: MetadataStore
    polls: PollStore
    cache: ViewerCache
    poller: PresencePoller
    pruner: Optional[Pruner] = None

    async def start(self) -> None:
        """Prime the cache, then launch the background loops."""
        await self.poller.run_once()
        await self.poller.start()
        if self.pruner is not None:
            await self.pruner.start()

    async def stop(self) -> None:
        await self.poller.stop()
        if self.pruner is not None:
            await self.pruner.stop()
        await self.store.close()
        if self.config.presence_backend == PresenceBackend.REDIS:
            await close_redis()
        self.database.dispose()
        logger.info("services_stopped")


async def build_services(
    config: TeleviseConfig,
    clock: Clock = time.time,
    redis_client: Optional[Any] = None,
    firestore_client: Optional[Any] = None,
) -> Services:
    """Wire database, generator, presence store, stores and background loops."""
    database = Database(config.database_url)
    database.create_all()

    generator = SnowflakeGenerator(process_id=config.resolved_process_id(), clock=clock)
    store = await build_presence_store(
        config,
        database,
        generator,
        clock=clock,
        redis_client=redis_client,
        firestore_client=firestore_client,
    )
    metadata = MetadataStore(database, clock=clock)
    polls = PollStore(database, generator, clock=clock)
    cache = ViewerCache()

    poller = PresencePoller(
        store,
        cache,
        window=config.viewer_window,
        interval=config.poll_interval_sec,
        metadata=metadata,
        prune_retention=config.retention if config.prune_in_poller else None,
    )
    pruner = None
    if not config.prune_in_poller:
        pruner = Pruner(store, retention=config.retention, interval=config.prune_interval_sec)

    logger.info(
        "services_built",
        backend=config.presence_backend.value,
        process_id=generator.process_id,
        window_sec=config.viewer_window_sec,
        retention_sec=config.retention_sec,
        prune_in_poller=config.prune_in_poller,
    )
    return Services(
        config=config,
        database=database,
        generator=generator,
        store=store,
        metadata=metadata,
        polls=polls,
        cache=cache,
        poller=poller,
        pruner=pruner,
    )

"""
Presence Poller and Pruner
==========================
Background tasks that keep the hot request path off the storage backend.

PresencePoller: every interval, count active viewers (and read the display
title) into a single-slot ViewerCache. A failed refresh keeps the previous
value, so readers see at most one interval of staleness.

Pruner: every interval, delete presence records older than the retention
horizon. Failures are logged and retried on the next cycle.

Both loops own a stop Event that is checked at the top of every iteration
and wakes the timed sleep, so shutdown is deterministic.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from ..core.types import ViewerSnapshot
from ..utils.logger import get_logger
from .base import PresenceStore

if TYPE_CHECKING:
    from ..metadata.store import MetadataStore

logger = get_logger(__name__)

TITLE_KEY = "movie"
STOP_GRACE_SECONDS = 5.0


class ViewerCache:
    """Single-slot cache; snapshots are immutable and swapped whole."""

    def __init__(self):
        self._snapshot = ViewerSnapshot()

    def snapshot(self) -> ViewerSnapshot:
        return self._snapshot

    @property
    def viewers(self) -> int:
        return self._snapshot.viewers

    @property
    def title(self) -> Optional[str]:
        return self._snapshot.title

    def publish(self, snapshot: ViewerSnapshot) -> None:
        self._snapshot = snapshot


class PeriodicTask(ABC):
    """asyncio task running `run_once` every `interval` seconds until stopped."""

    name = "periodic_task"

    def __init__(self, interval: float):
        self.interval = interval
        self._stop: Optional[asyncio.Event] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    async def start(self) -> None:
        if self.running:
            return
        # the event binds to the running loop
        self._stop = asyncio.Event()
        self.task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(f"{self.name}_started", interval=self.interval)

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self.task:
            try:
                await asyncio.wait_for(self.task, timeout=STOP_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name}_stop_timeout")
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info(f"{self.name}_stopped")

    async def _loop(self) -> None:
        stop = self._stop
        while not stop.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    @abstractmethod
    async def run_once(self) -> None:
        ...


class PresencePoller(PeriodicTask):
    """Refreshes the cached viewer count (and display title) on a fixed cadence."""

    name = "presence_poller"

    def __init__(
        self,
        store: PresenceStore,
        cache: ViewerCache,
        window: timedelta,
        interval: float = 10.0,
        metadata: Optional["MetadataStore"] = None,
        prune_retention: Optional[timedelta] = None,
    ):
        super().__init__(interval)
        self.store = store
        self.cache = cache
        self.window = window
        self.metadata = metadata
        self.prune_retention = prune_retention
        self.refresh_count = 0
        self.failed_refreshes = 0

    async def run_once(self) -> None:
        current = self.cache.snapshot()
        viewers = current.viewers
        title = current.title
        refreshed = False

        try:
            viewers = await self.store.count(self.window)
            refreshed = True
        except Exception as e:
            self.failed_refreshes += 1
            logger.warning("viewer_count_refresh_failed", backend=self.store.backend, error=str(e))

        if self.metadata is not None:
            try:
                display = await self.metadata.display_list()
                if TITLE_KEY in display:
                    # a cleared title publishes as None, never ""
                    title = display[TITLE_KEY].value or None
                refreshed = True
            except Exception as e:
                logger.warning("title_refresh_failed", error=str(e))

        if refreshed:
            self.cache.publish(ViewerSnapshot(
                viewers=viewers,
                title=title,
                refreshed_at=datetime.now(timezone.utc),
            ))
            self.refresh_count += 1

        if self.prune_retention is not None:
            await prune_once(self.store, self.prune_retention)


class Pruner(PeriodicTask):
    """Evicts presence records older than the retention horizon."""

    name = "presence_pruner"

    def __init__(self, store: PresenceStore, retention: timedelta, interval: float = 60.0):
        super().__init__(interval)
        self.store = store
        self.retention = retention
        self.total_pruned = 0

    async def run_once(self) -> None:
        self.total_pruned += await prune_once(self.store, self.retention)


async def prune_once(store: PresenceStore, retention: timedelta) -> int:
    """Prune and log; never raises."""
    try:
        removed = await store.prune(retention)
    except Exception as e:
        logger.error("presence_prune_failed", backend=store.backend, error=str(e))
        return 0
    if removed:
        logger.info("presence_pruned", backend=store.backend, removed=removed)
    return removed

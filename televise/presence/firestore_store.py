"""
Firestore Presence Store
========================
Presence as an append-only sighting log, one subcollection per identity.

Layout: {collection}/{identity_key}/televise_sightings/{snowflake hex}
        { key, addr, user_agent, seen_at, session_start }

Every sighting appends; nothing is updated in place. Counting scans the
sightings collection group for entries newer than now - window and counts
distinct keys, so duplicate sightings never inflate the result. The log grows
with traffic and is bounded only by prune().

The firebase-admin client is synchronous; calls hop onto the default executor.
"""

import asyncio
import contextvars
import time
from datetime import timedelta
from typing import Any, Callable, List, TypeVar

from google.api_core import exceptions as gexc
from google.cloud.firestore_v1 import Query

from ..core.errors import BackendUnavailable
from ..core.types import Clock, Identity, Presence, as_utc
from ..snowflake import SnowflakeGenerator
from ..utils.logger import get_logger
from .base import PresenceStore

logger = get_logger(__name__)

T = TypeVar("T")

SIGHTINGS = "televise_sightings"
BATCH_LIMIT = 500  # Firestore write batch ceiling

_UNAVAILABLE = (gexc.ServiceUnavailable, gexc.DeadlineExceeded, gexc.RetryError, ConnectionError)


class FirestorePresenceStore(PresenceStore):
    """Presence over an append-only Firestore sighting log."""

    backend = "firestore"

    def __init__(
        self,
        client: Any,
        generator: SnowflakeGenerator,
        inactive_limit: timedelta,
        clock: Clock = time.time,
        collection: str = "presence",
    ):
        super().__init__(inactive_limit, clock)
        self._db = client
        self.generator = generator
        self.collection = collection

    async def _run(self, fn: Callable[..., T], *args) -> T:
        loop = asyncio.get_event_loop()
        ctx = contextvars.copy_context()
        try:
            return await loop.run_in_executor(None, ctx.run, fn, *args)
        except _UNAVAILABLE as e:
            logger.warning("presence_backend_unavailable", backend=self.backend, error=str(e))
            raise BackendUnavailable(self.backend, str(e)) from e

    def _sightings(self, key: str):
        return self._db.collection(self.collection).document(key).collection(SIGHTINGS)

    # -- upsert ------------------------------------------------------------

    async def _upsert(self, identity: Identity) -> Presence:
        return await self._run(self._upsert_sync, identity)

    def _upsert_sync(self, identity: Identity) -> Presence:
        now = self.now()
        log = self._sightings(identity.key)

        latest = list(log.order_by("seen_at", direction=Query.DESCENDING).limit(1).stream())
        session_start = now
        if latest:
            previous = latest[0].to_dict()
            if now - as_utc(previous["seen_at"]) < self.inactive_limit:
                session_start = min(as_utc(previous.get("session_start", previous["seen_at"])), now)

        log.document(self.generator.next().hex()).set({
            "key": identity.key,
            "addr": identity.address,
            "user_agent": identity.user_agent,
            "seen_at": now,
            "session_start": session_start,
        })
        return Presence(identity_key=identity.key, first_seen=session_start, last_seen=now)

    # -- count -------------------------------------------------------------

    async def count(self, window: timedelta) -> int:
        return await self._run(self._count_sync, window)

    def _count_sync(self, window: timedelta) -> int:
        cutoff = self.now() - window
        query = self._db.collection_group(SIGHTINGS).where("seen_at", ">", cutoff).select(["key"])
        return len({doc.to_dict().get("key") for doc in query.stream()})

    # -- prune -------------------------------------------------------------

    async def prune(self, retention: timedelta) -> int:
        return await self._run(self._prune_sync, retention)

    def _prune_sync(self, retention: timedelta) -> int:
        cutoff = self.now() - retention
        query = self._db.collection_group(SIGHTINGS).where("seen_at", "<", cutoff)
        docs: List[Any] = list(query.stream())

        for start in range(0, len(docs), BATCH_LIMIT):
            batch = self._db.batch()
            for doc in docs[start:start + BATCH_LIMIT]:
                batch.delete(doc.reference)
            batch.commit()

        if docs:
            logger.debug("sightings_pruned", count=len(docs), cutoff=cutoff.isoformat())
        return len(docs)

    def _ping_sync(self) -> bool:
        list(self._db.collection(self.collection).limit(1).stream())
        return True

    async def ping(self) -> bool:
        try:
            return await self._run(self._ping_sync)
        except BackendUnavailable:
            return False

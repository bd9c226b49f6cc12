"""
Relational Presence Store
=========================
Session table keyed by identity; one row per continuous viewing session.

upsert: if the identity has a row seen within the inactivity limit, bump its
last_seen; otherwise open a new session row with a fresh Snowflake id.
count: COUNT(DISTINCT key) over rows whose last_seen is inside the window.
Windows and limits are applied in whole seconds.
"""

import threading
import time
from datetime import datetime, timedelta
from typing import Callable, TypeVar

from sqlalchemy import distinct, func

from ..core.database import Database
from ..core.errors import BackendUnavailable
from ..core.types import Clock, Identity, Presence, as_utc
from ..models import SessionRecord
from ..snowflake import SnowflakeGenerator
from ..utils.logger import get_logger
from .base import PresenceStore

logger = get_logger(__name__)

T = TypeVar("T")

# Upserts for one key are serialized within a process. Instances sharing a
# database can still open duplicate rows for a new key; COUNT(DISTINCT key)
# keeps the count exact.
UPSERT_LOCK_STRIPES = 64


def _naive(value: datetime) -> datetime:
    """Columns hold naive UTC."""
    return value.replace(tzinfo=None)


def _whole_seconds(value: timedelta) -> timedelta:
    return timedelta(seconds=int(value.total_seconds()))


class SqlPresenceStore(PresenceStore):
    """Presence over a relational session table (SQLAlchemy)."""

    backend = "sql"

    def __init__(
        self,
        database: Database,
        generator: SnowflakeGenerator,
        inactive_limit: timedelta,
        clock: Clock = time.time,
    ):
        super().__init__(_whole_seconds(inactive_limit), clock)
        self.database = database
        self.generator = generator
        self._upsert_locks = [threading.Lock() for _ in range(UPSERT_LOCK_STRIPES)]

    async def _call(self, fn: Callable[..., T], *args) -> T:
        try:
            return await self.database.run(fn, *args)
        except BackendUnavailable as e:
            logger.warning("presence_backend_unavailable", backend=self.backend, error=str(e))
            raise

    # -- upsert ------------------------------------------------------------

    async def _upsert(self, identity: Identity) -> Presence:
        return await self._call(self._upsert_sync, identity)

    def _upsert_sync(self, identity: Identity) -> Presence:
        lock = self._upsert_locks[hash(identity.key) % UPSERT_LOCK_STRIPES]
        with lock:
            return self._upsert_locked(identity)

    def _upsert_locked(self, identity: Identity) -> Presence:
        now = _naive(self.now())
        threshold = now - self.inactive_limit

        with self.database.session() as db:
            row = (
                db.query(SessionRecord)
                .filter(SessionRecord.key == identity.key, SessionRecord.last_seen > threshold)
                .order_by(SessionRecord.last_seen.desc())
                .first()
            )
            if row is None:
                row = SessionRecord(
                    id=int(self.generator.next()),
                    key=identity.key,
                    addr=identity.address,
                    user_agent=identity.user_agent,
                    start=now,
                    last_seen=now,
                )
                db.add(row)
                logger.debug("session_opened", key=identity.key[:8], session_id=format(row.id, "x"))
            else:
                row.last_seen = max(now, row.start)
            return Presence(
                identity_key=identity.key,
                first_seen=as_utc(row.start),
                last_seen=as_utc(row.last_seen),
            )

    # -- count -------------------------------------------------------------

    async def count(self, window: timedelta) -> int:
        return await self._call(self._count_sync, _whole_seconds(window))

    def _count_sync(self, window: timedelta) -> int:
        cutoff = _naive(self.now()) - window
        with self.database.session() as db:
            n = (
                db.query(func.count(distinct(SessionRecord.key)))
                .filter(SessionRecord.last_seen > cutoff)
                .scalar()
            )
        return int(n or 0)

    # -- prune -------------------------------------------------------------

    async def prune(self, retention: timedelta) -> int:
        return await self._call(self._prune_sync, _whole_seconds(retention))

    def _prune_sync(self, retention: timedelta) -> int:
        cutoff = _naive(self.now()) - retention
        with self.database.session() as db:
            removed = (
                db.query(SessionRecord)
                .filter(SessionRecord.last_seen < cutoff)
                .delete(synchronize_session=False)
            )
        return int(removed or 0)

    async def ping(self) -> bool:
        try:
            return await self._call(self.database.ping)
        except BackendUnavailable:
            return False

"""
Broadcast Metadata Store
========================
Key/value settings pushed by the operator (current title, manifest, poll ids).
Keys in DISPLAY_KEYS are flagged for display and read by the presence poller.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from ..core.database import Database
from ..core.errors import NotFound
from ..core.types import Clock, as_utc, utc_from_timestamp
from ..models import MetadataEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)

DISPLAY_KEYS = frozenset({"movie", "movie_id"})

MAX_KEY_LENGTH = 255
MAX_VALUE_LENGTH = 4096


@dataclass(frozen=True)
class MetadataValue:
    value: Optional[str]
    updated: datetime


class MetadataStore:
    """SQL-backed metadata; values may be null."""

    def __init__(self, database: Database, clock: Clock = time.time):
        self.database = database
        self._clock = clock

    def _now(self) -> datetime:
        return utc_from_timestamp(self._clock()).replace(tzinfo=None)

    async def get(self, key: str) -> Optional[str]:
        """Value for `key`; raises NotFound when the key was never set."""
        return await self.database.run(self._get_sync, key)

    def _get_sync(self, key: str) -> Optional[str]:
        with self.database.session() as db:
            entry = db.get(MetadataEntry, key)
            if entry is None:
                raise NotFound(f"metadata key {key!r} not set")
            return entry.value

    @staticmethod
    def validate(key: str, value: Optional[str]) -> None:
        """Raise ValueError when `key` or `value` would not fit the table."""
        if not key or len(key) > MAX_KEY_LENGTH:
            raise ValueError(f"metadata key must be 1-{MAX_KEY_LENGTH} characters")
        if value is not None and len(value) > MAX_VALUE_LENGTH:
            raise ValueError(f"metadata value exceeds {MAX_VALUE_LENGTH} characters")

    async def set(self, key: str, value: Optional[str]) -> None:
        """Insert or update `key`. A None value clears it without deleting."""
        self.validate(key, value)
        await self.database.run(self._set_sync, key, value)
        logger.info("metadata_set", key=key, cleared=value is None)

    def _set_sync(self, key: str, value: Optional[str]) -> None:
        now = self._now()
        with self.database.session() as db:
            entry = db.get(MetadataEntry, key)
            if entry is None:
                db.add(MetadataEntry(
                    key=key,
                    value=value,
                    created=now,
                    updated=now,
                    display=key in DISPLAY_KEYS,
                ))
            else:
                entry.value = value
                entry.updated = now

    async def display_list(self) -> Dict[str, MetadataValue]:
        """All display-flagged entries."""
        return await self.database.run(self._display_list_sync)

    def _display_list_sync(self) -> Dict[str, MetadataValue]:
        with self.database.session() as db:
            rows = db.query(MetadataEntry).filter(MetadataEntry.display.is_(True)).all()
            return {
                row.key: MetadataValue(value=row.value, updated=as_utc(row.updated))
                for row in rows
            }

"""
Presence Store Interface
========================
One capability, three interchangeable backends.

Semantics every backend honours:
  - upsert(identity) records a sighting "now"; repeated sightings of one
    identity never inflate count()
  - count(window) is the number of DISTINCT identities whose last sighting
    is within `window` of the current clock, re-evaluated on every call
  - prune(retention) drops records older than `retention`; idempotent and
    safe to race with upsert/count

Storage errors surface as BackendUnavailable and are never retried here.
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from ..core.errors import InvalidIdentity
from ..core.types import Clock, Identity, Presence, utc_from_timestamp

MAX_KEY_LENGTH = 128


def validate_identity(identity: Identity) -> None:
    """Reject empty or oversized keys before any I/O."""
    if identity is None:
        raise InvalidIdentity("identity is missing")
    key = identity.key
    if not isinstance(key, str) or not key:
        raise InvalidIdentity("identity key is empty")
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidIdentity(f"identity key exceeds {MAX_KEY_LENGTH} characters")


class PresenceStore(ABC):
    """Records last-seen time per identity and answers sliding-window counts."""

    backend = "abstract"

    def __init__(self, inactive_limit: timedelta, clock: Clock = time.time):
        self.inactive_limit = inactive_limit
        self._clock = clock

    def now(self) -> datetime:
        return utc_from_timestamp(self._clock())

    async def upsert(self, identity: Identity) -> Presence:
        """Record or refresh presence for an identity."""
        validate_identity(identity)
        return await self._upsert(identity)

    @abstractmethod
    async def _upsert(self, identity: Identity) -> Presence:
        ...

    @abstractmethod
    async def count(self, window: timedelta) -> int:
        """Distinct identities seen within `window` of now."""

    @abstractmethod
    async def prune(self, retention: timedelta) -> int:
        """Delete records older than `retention`. Returns the number removed."""

    @abstractmethod
    async def ping(self) -> bool:
        """Health check: True when the backend answers."""

    async def close(self) -> None:
        """Release backend resources owned by the store."""

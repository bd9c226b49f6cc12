"""
Televise Type Definitions
==========================
Data models for identities, presence records and cached viewer snapshots.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

# Epoch seconds; time.time in production, a fake clock in tests.
Clock = Callable[[], float]


def utc_from_timestamp(ts: float) -> datetime:
    """Aware UTC datetime for an epoch timestamp."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from storage."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Identity:
    """Best-effort pseudo identity of an anonymous viewer."""
    key: str         # hex digest, shared fingerprints collide by design
    address: str
    user_agent: str


@dataclass(frozen=True)
class Presence:
    """Recency of one identity. Active iff now - last_seen < window."""
    identity_key: str
    first_seen: datetime
    last_seen: datetime


@dataclass(frozen=True)
class ViewerSnapshot:
    """Single-slot cache value published by the presence poller."""
    viewers: int = 0
    title: Optional[str] = None
    refreshed_at: Optional[datetime] = None

"""
Snowflake Identifiers
=====================
64-bit, time-ordered identifiers for session records, sightings and poll options.

Bit layout (most to least significant)::

    | 41 bits                 | 5 bits | 5 bits  | 12 bits  |
    | ms since EPOCH_MS       | worker | process | sequence |

The worker id is unused (always zero). Uniqueness holds within one process for
up to 4096 ids per millisecond; across processes it relies on distinct process
ids handed out by whoever deploys them.

Known gap: the sequence wraps to 0 after 4095 without waiting for the next
millisecond, so a burst above 4096 ids/ms can repeat an id.
"""

import json
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Union

from pydantic import BeforeValidator, PlainSerializer

from .core.types import Clock

EPOCH_MS = 1420070400000  # 2015-01-01T00:00:00Z
EPOCH = datetime(2015, 1, 1, tzinfo=timezone.utc)

TIMESTAMP_SHIFT = 22
WORKER_SHIFT = 17
PROCESS_SHIFT = 12

WORKER_MASK = 0x1F
PROCESS_MASK = 0x1F
SEQUENCE_MASK = 0xFFF

MIN_VALUE = -(1 << 63)
MAX_VALUE = (1 << 63) - 1


class Snowflake(int):
    """Signed 64-bit identifier. Text form is lowercase hex."""

    def __new__(cls, value: Union[int, "Snowflake"] = 0) -> "Snowflake":
        value = int(value)
        if not MIN_VALUE <= value <= MAX_VALUE:
            raise ValueError(f"snowflake out of 64-bit range: {value}")
        return super().__new__(cls, value)

    # -- field extraction --------------------------------------------------

    def time(self) -> datetime:
        """When the snowflake was created (UTC)."""
        return EPOCH + timedelta(milliseconds=int(self) >> TIMESTAMP_SHIFT)

    def worker_id(self) -> int:
        """Always zero in this deployment."""
        return (int(self) >> WORKER_SHIFT) & WORKER_MASK

    def process_id(self) -> int:
        """Process id (5 bits) of the generator that minted it."""
        return (int(self) >> PROCESS_SHIFT) & PROCESS_MASK

    def increment(self) -> int:
        """Per-generator sequence counter value."""
        return int(self) & SEQUENCE_MASK

    # -- serialization -----------------------------------------------------

    def hex(self) -> str:
        return format(int(self), "x")

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"Snowflake({self.hex()})"

    @classmethod
    def parse(cls, text: str) -> "Snowflake":
        """Decode the hex text form. Raises ValueError on malformed input."""
        text = text.strip()
        if not text:
            raise ValueError("empty snowflake")
        return cls(int(text, 16))

    def to_bytes_be(self) -> bytes:
        """8-byte big-endian two's complement form used for storage."""
        return int(self).to_bytes(8, "big", signed=True)

    @classmethod
    def from_bytes_be(cls, data: bytes) -> "Snowflake":
        if len(data) != 8:
            raise ValueError(f"snowflake needs 8 bytes, got {len(data)}")
        return cls(int.from_bytes(data, "big", signed=True))

    def to_json(self) -> str:
        """The hex text form, quoted."""
        return json.dumps(self.hex())

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "Snowflake":
        value = json.loads(data)
        if not isinstance(value, str):
            raise ValueError("snowflake JSON must be a quoted hex string")
        return cls.parse(value)


NIL_SNOWFLAKE = Snowflake(0)


def _coerce_snowflake(value: Any) -> Snowflake:
    if isinstance(value, str):
        return Snowflake.parse(value)
    return Snowflake(value)


# Pydantic field type: accepts hex text or ints, serializes as hex text.
SnowflakeHex = Annotated[
    int,
    BeforeValidator(_coerce_snowflake),
    PlainSerializer(lambda value: Snowflake(value).hex(), return_type=str),
]


class SnowflakeGenerator:
    """
    Mints Snowflakes for one process.

    Construct once at startup and pass it to whatever needs ids. The sequence
    counter is the only mutable state and is guarded by a thread lock, since
    ids are also minted from executor threads.
    """

    def __init__(
        self,
        process_id: int,
        worker_id: int = 0,
        clock: Clock = time.time,
        epoch_ms: int = EPOCH_MS,
    ):
        self.process_id = process_id & PROCESS_MASK
        self.worker_id = worker_id & WORKER_MASK
        self._clock = clock
        self._epoch_ms = epoch_ms
        self._sequence = 0
        self._lock = threading.Lock()

    def next(self) -> Snowflake:
        """Generate the next snowflake."""
        with self._lock:
            delta_ms = int(self._clock() * 1000) - self._epoch_ms
            self._sequence += 1
            if self._sequence > SEQUENCE_MASK:
                self._sequence = 0
            value = (
                (delta_ms << TIMESTAMP_SHIFT)
                | (self.worker_id << WORKER_SHIFT)
                | (self.process_id << PROCESS_SHIFT)
                | self._sequence
            )
        return Snowflake(value)

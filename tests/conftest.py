"""
Shared Test Fixtures
====================
Fake clock plus in-memory stand-ins for the Redis and Firestore client calls
the presence stores make. SQL tests run against in-memory SQLite.
"""

from typing import Any, Dict, List, Optional

import pytest
from google.cloud.firestore_v1 import Query

from televise.core.config import TeleviseConfig
from televise.core.database import Database
from televise.snowflake import SnowflakeGenerator

T0 = 1_700_000_000.0


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set(self, seconds_after_start: float) -> None:
        self.now = T0 + seconds_after_start


# ── Redis ────────────────────────────────────────────────────────────────


def _score_bound(value: Any):
    """Parse a redis score bound into (value, exclusive)."""
    if isinstance(value, str):
        if value == "-inf":
            return float("-inf"), False
        if value == "+inf":
            return float("inf"), False
        if value.startswith("("):
            return int(value[1:]), True
        return int(value), False
    return value, False


class FakeRedis:
    """Sorted sets and hashes with redis-py asyncio call shapes."""

    def __init__(self):
        self.zsets: Dict[str, Dict[str, int]] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.fail_with: Optional[Exception] = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _zrange(self, key, lo, hi) -> List[str]:
        low, low_open = _score_bound(lo)
        high, high_open = _score_bound(hi)
        members = self.zsets.get(key, {})
        return [
            m for m, s in sorted(members.items(), key=lambda kv: kv[1])
            if (s > low if low_open else s >= low) and (s < high if high_open else s <= high)
        ]

    # sync primitives shared by commands and pipelines
    def _zadd(self, key, mapping):
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for m in mapping if m not in zset)
        zset.update({m: int(s) for m, s in mapping.items()})
        return added

    def _zremrangebyscore(self, key, lo, hi):
        doomed = self._zrange(key, lo, hi)
        for member in doomed:
            del self.zsets[key][member]
        return len(doomed)

    def _hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = str(value)
        return 1

    def _hdel(self, key, *fields):
        table = self.hashes.get(key, {})
        return sum(1 for f in fields if table.pop(f, None) is not None)

    async def zadd(self, key, mapping):
        self._check()
        return self._zadd(key, mapping)

    async def zscore(self, key, member):
        self._check()
        return self.zsets.get(key, {}).get(member)

    async def zcount(self, key, lo, hi):
        self._check()
        return len(self._zrange(key, lo, hi))

    async def zrangebyscore(self, key, lo, hi):
        self._check()
        return self._zrange(key, lo, hi)

    async def zremrangebyscore(self, key, lo, hi):
        self._check()
        return self._zremrangebyscore(key, lo, hi)

    async def hset(self, key, field, value):
        self._check()
        return self._hset(key, field, value)

    async def hget(self, key, field):
        self._check()
        return self.hashes.get(key, {}).get(field)

    async def hdel(self, key, *fields):
        self._check()
        return self._hdel(key, *fields)

    async def ping(self):
        self._check()
        return True

    def pipeline(self, transaction: bool = True):
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, redis: FakeRedis):
        self._redis = redis
        self._ops = []

    def zadd(self, key, mapping):
        self._ops.append((self._redis._zadd, (key, mapping)))
        return self

    def hset(self, key, field, value):
        self._ops.append((self._redis._hset, (key, field, value)))
        return self

    def zremrangebyscore(self, key, lo, hi):
        self._ops.append((self._redis._zremrangebyscore, (key, lo, hi)))
        return self

    def hdel(self, key, *fields):
        self._ops.append((self._redis._hdel, (key, *fields)))
        return self

    async def execute(self):
        self._redis._check()
        results = [fn(*args) for fn, args in self._ops]
        self._ops = []
        return results


# ── Firestore ────────────────────────────────────────────────────────────


_OPS = {
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
    "==": lambda a, b: a == b,
}


class FakeSnapshot:
    def __init__(self, reference: "FakeDocument", data: Dict[str, Any]):
        self.reference = reference
        self.id = reference.id
        self._data = data

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class FakeDocument:
    def __init__(self, client: "FakeFirestore", path: str, doc_id: str):
        self._client = client
        self.path = path
        self.id = doc_id

    def set(self, data: Dict[str, Any]) -> None:
        self._client._check()
        self._client.docs[self.path] = dict(data)

    def delete(self) -> None:
        self._client.docs.pop(self.path, None)

    def collection(self, name: str) -> "FakeCollection":
        return FakeCollection(self._client, f"{self.path}/{name}", name)


class FakeQuery:
    def __init__(self, client: "FakeFirestore", matcher):
        self._client = client
        self._matcher = matcher
        self._filters = []
        self._order = None
        self._limit = None
        self._fields = None

    def _copy(self) -> "FakeQuery":
        q = FakeQuery(self._client, self._matcher)
        q._filters = list(self._filters)
        q._order = self._order
        q._limit = self._limit
        q._fields = self._fields
        return q

    def where(self, field: str, op: str, value: Any) -> "FakeQuery":
        q = self._copy()
        q._filters.append((field, _OPS[op], value))
        return q

    def select(self, fields: List[str]) -> "FakeQuery":
        q = self._copy()
        q._fields = list(fields)
        return q

    def order_by(self, field: str, direction: str = Query.ASCENDING) -> "FakeQuery":
        q = self._copy()
        q._order = (field, direction == Query.DESCENDING)
        return q

    def limit(self, count: int) -> "FakeQuery":
        q = self._copy()
        q._limit = count
        return q

    def stream(self):
        self._client._check()
        rows = [
            (path, data)
            for path, data in self._client.docs.items()
            if self._matcher(path)
            and all(field in data and op(data[field], value) for field, op, value in self._filters)
        ]
        if self._order is not None:
            field, descending = self._order
            rows.sort(key=lambda row: row[1][field], reverse=descending)
        if self._limit is not None:
            rows = rows[: self._limit]
        for path, data in rows:
            if self._fields is not None:
                data = {k: v for k, v in data.items() if k in self._fields}
            yield FakeSnapshot(FakeDocument(self._client, path, path.rsplit("/", 1)[-1]), data)


class FakeCollection(FakeQuery):
    def __init__(self, client: "FakeFirestore", path: str, name: str):
        super().__init__(client, lambda p: p.rsplit("/", 1)[0] == path)
        self.path = path
        self.name = name

    def document(self, doc_id: str) -> FakeDocument:
        return FakeDocument(self._client, f"{self.path}/{doc_id}", doc_id)


class FakeBatch:
    def __init__(self, client: "FakeFirestore"):
        self._client = client
        self._refs = []

    def delete(self, reference: FakeDocument) -> None:
        self._refs.append(reference)

    def commit(self) -> None:
        self._client._check()
        self._client.batch_commits += 1
        for ref in self._refs:
            ref.delete()


class FakeFirestore:
    """Document paths mapped to dicts; queries evaluated in memory."""

    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.fail_with: Optional[Exception] = None
        self.batch_commits = 0

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name, name)

    def collection_group(self, name: str) -> FakeQuery:
        return FakeQuery(self, lambda p: p.split("/")[-2] == name)

    def batch(self) -> FakeBatch:
        return FakeBatch(self)


# ── Fixtures ─────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def generator(clock) -> SnowflakeGenerator:
    return SnowflakeGenerator(process_id=3, clock=clock)


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_firestore() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def config() -> TeleviseConfig:
    return TeleviseConfig(
        presence_backend="SQL",
        database_url="sqlite://",
        viewer_window_sec=25,
        inactive_limit_sec=25,
        retention_sec=600,
        process_id=3,
    )


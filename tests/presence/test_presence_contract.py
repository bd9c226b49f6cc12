"""
Presence Store Contract Tests
==============================
Every backend (SQL, Redis, Firestore) must agree on upsert/count/prune
semantics. Each test runs once per backend against the shared fake clock.

Covers:
  1. Empty store counts zero
  2. Repeated sightings never inflate the count
  3. Window expiry drops a viewer from the count
  4. Prune removes old records and keeps recent ones
  5. Invalid identities are rejected before any I/O
  6. Session start carries over within the inactivity limit
"""

from datetime import timedelta

import pytest

from televise.core.errors import InvalidIdentity
from televise.core.types import Identity
from televise.identity import fingerprint
from televise.presence.firestore_store import FirestorePresenceStore
from televise.presence.redis_store import RedisPresenceStore
from televise.presence.sql_store import SqlPresenceStore

INACTIVE_LIMIT = timedelta(seconds=25)

VIEWER_A = fingerprint("203.0.113.10", "Mozilla/5.0 (A)")
VIEWER_B = fingerprint("203.0.113.11", "Mozilla/5.0 (B)")


@pytest.fixture(params=["sql", "redis", "firestore"])
def store(request, clock, generator, database, fake_redis, fake_firestore):
    if request.param == "sql":
        return SqlPresenceStore(database, generator, inactive_limit=INACTIVE_LIMIT, clock=clock)
    if request.param == "redis":
        return RedisPresenceStore(fake_redis, inactive_limit=INACTIVE_LIMIT, clock=clock)
    return FirestorePresenceStore(fake_firestore, generator, inactive_limit=INACTIVE_LIMIT, clock=clock)


# ── Test 1: Empty store ────────────────────────────────────────────────────
async def test_empty_store_counts_zero(store):
    assert await store.count(timedelta(seconds=30)) == 0
    assert await store.count(timedelta(days=1)) == 0


# ── Test 2: A, B, A within 10s → 2 ─────────────────────────────────────────
async def test_repeated_sightings_count_once(store, clock):
    await store.upsert(VIEWER_A)
    clock.advance(4)
    await store.upsert(VIEWER_B)
    clock.advance(5)
    await store.upsert(VIEWER_A)

    assert await store.count(timedelta(seconds=60)) == 2


async def test_many_heartbeats_single_viewer(store, clock):
    for _ in range(20):
        await store.upsert(VIEWER_A)
        clock.advance(1)

    assert await store.count(timedelta(seconds=30)) == 1


# ── Test 3: Window expiry ──────────────────────────────────────────────────
async def test_viewer_leaves_window(store, clock):
    await store.upsert(VIEWER_A)
    clock.advance(5)
    await store.upsert(VIEWER_B)

    clock.advance(20)
    # A last seen 25s ago, B 20s ago
    assert await store.count(timedelta(seconds=22)) == 1
    assert await store.count(timedelta(seconds=30)) == 2


# ── Test 4: Upsert at 0, count at 5, prune at 40, count at 41 ──────────────
async def test_upsert_count_prune_scenario(store, clock):
    await store.upsert(VIEWER_A)

    clock.set(5)
    assert await store.count(timedelta(seconds=30)) == 1

    clock.set(40)
    removed = await store.prune(timedelta(seconds=30))
    assert removed >= 1

    clock.set(41)
    assert await store.count(timedelta(seconds=30)) == 0


async def test_prune_keeps_recent_records(store, clock):
    await store.upsert(VIEWER_A)
    clock.set(100)
    await store.upsert(VIEWER_B)

    clock.set(110)
    await store.prune(timedelta(seconds=60))

    assert await store.count(timedelta(seconds=30)) == 1
    assert await store.count(timedelta(seconds=600)) == 1


async def test_prune_is_idempotent(store, clock):
    await store.upsert(VIEWER_A)
    clock.set(100)

    assert await store.prune(timedelta(seconds=30)) >= 1
    assert await store.prune(timedelta(seconds=30)) == 0


# ── Test 5: Invalid identities ─────────────────────────────────────────────
@pytest.mark.parametrize("key", ["", "k" * 129])
async def test_invalid_identity_rejected(store, key):
    with pytest.raises(InvalidIdentity):
        await store.upsert(Identity(key=key, address="203.0.113.1", user_agent="ua"))

    assert await store.count(timedelta(seconds=30)) == 0


async def test_missing_identity_rejected(store):
    with pytest.raises(InvalidIdentity):
        await store.upsert(None)


# ── Test 6: Session start ──────────────────────────────────────────────────
async def test_session_start_carries_over(store, clock):
    first = await store.upsert(VIEWER_A)
    clock.advance(10)
    second = await store.upsert(VIEWER_A)

    assert second.first_seen == first.first_seen
    assert second.last_seen > first.last_seen
    assert second.identity_key == VIEWER_A.key


async def test_session_restarts_after_inactivity(store, clock):
    first = await store.upsert(VIEWER_A)
    clock.advance(60)
    second = await store.upsert(VIEWER_A)

    assert second.first_seen > first.first_seen
    assert second.first_seen == second.last_seen
    assert await store.count(timedelta(seconds=30)) == 1


async def test_ping_healthy_backend(store):
    assert await store.ping() is True

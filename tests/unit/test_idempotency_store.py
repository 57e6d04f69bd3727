import asyncio

import pytest
from fakeredis.aioredis import FakeRedis

from giving.payments.idempotency import (
    MemoryIdempotencyStore,
    RedisIdempotencyStore,
    StoredCharge,
    fingerprint,
)


def _stored(status=200):
    return StoredCharge(fingerprint=fingerprint("tok", 2500), status_code=status, body={"ok": True})


def test_fingerprint_depends_on_token_and_amount():
    assert fingerprint("tok", 2500) == fingerprint("tok", 2500)
    assert fingerprint("tok", 2500) != fingerprint("tok", 2501)
    assert fingerprint("tok", 2500) != fingerprint("tok2", 2500)


def test_stored_charge_serialization():
    stored = _stored(402)
    assert StoredCharge.loads(stored.dumps()) == stored


@pytest.fixture(params=["memory", "redis"])
def store(request):
    if request.param == "memory":
        return MemoryIdempotencyStore(ttl_seconds=60)
    return RedisIdempotencyStore(FakeRedis(decode_responses=True), ttl_seconds=60)


@pytest.mark.asyncio
async def test_get_put(store):
    assert await store.get("k1") is None
    await store.put("k1", _stored())
    assert await store.get("k1") == _stored()
    assert await store.get("k2") is None


@pytest.mark.asyncio
async def test_lock_serializes_same_key(store):
    order = []

    async def worker(name):
        async with store.lock("k1"):
            order.append(f"{name}:in")
            await asyncio.sleep(0.02)
            order.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (
        ["a:in", "a:out", "b:in", "b:out"],
        ["b:in", "b:out", "a:in", "a:out"],
    )


@pytest.mark.asyncio
async def test_memory_lock_does_not_block_other_keys():
    store = MemoryIdempotencyStore()
    async with store.lock("k1"):
        await asyncio.wait_for(_enter(store, "k2"), timeout=0.5)


async def _enter(store, key):
    async with store.lock(key):
        return True


@pytest.mark.asyncio
async def test_memory_entries_expire():
    store = MemoryIdempotencyStore(ttl_seconds=0)
    await store.put("k1", _stored())
    assert await store.get("k1") is None


@pytest.mark.asyncio
async def test_memory_lock_released_for_third_waiter():
    store = MemoryIdempotencyStore()
    inside = []

    async def worker(name):
        async with store.lock("k"):
            inside.append(name)
            assert len(inside) == 1
            await asyncio.sleep(0.01)
            inside.remove(name)

    await asyncio.gather(worker("a"), worker("b"), worker("c"))
    assert store._locks == {}

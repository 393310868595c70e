"""Unit tests for the per-key lock table."""

import asyncio

import pytest

from message_reactions.services.keyed_lock import KeyedLock, LockTimeoutError


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLock()
    active = 0
    peak = 0

    async def worker():
        nonlocal active, peak
        async with locks.hold(("m1", "u1")):
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*[worker() for _ in range(5)])

    assert peak == 1


@pytest.mark.asyncio
async def test_different_keys_do_not_block_each_other():
    locks = KeyedLock()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with locks.hold("a"):
            entered.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await entered.wait()

    # "b" is free while "a" is held
    async with locks.hold("b", timeout=0.1):
        assert locks.locked("a")
        assert locks.locked("b")

    release.set()
    await task


@pytest.mark.asyncio
async def test_timeout_raises_and_leaves_lock_usable():
    locks = KeyedLock()

    async with locks.hold("k"):
        with pytest.raises(LockTimeoutError) as exc_info:
            async with locks.hold("k", timeout=0.01):
                pass
        assert exc_info.value.key == "k"

    async with locks.hold("k", timeout=0.1):
        assert locks.locked("k")


@pytest.mark.asyncio
async def test_entries_are_dropped_when_unused():
    locks = KeyedLock()

    async with locks.hold(1):
        assert len(locks) == 1
    await asyncio.gather(*[_hold_briefly(locks, key) for key in range(10)])

    assert len(locks) == 0
    assert not locks.locked(1)


@pytest.mark.asyncio
async def test_exception_inside_releases_lock():
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")

    assert not locks.locked("k")
    assert len(locks) == 0


async def _hold_briefly(locks, key):
    async with locks.hold(key):
        await asyncio.sleep(0)

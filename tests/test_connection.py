import asyncio

import pytest

from stockwatch.core.connection import LazyConnection


@pytest.mark.asyncio
async def test_concurrent_first_callers_share_one_attempt():
    calls = []

    async def factory():
        calls.append(1)
        await asyncio.sleep(0.01)
        return object()

    conn = LazyConnection(factory)

    handles = await asyncio.gather(*(conn.get() for _ in range(5)))

    assert len(calls) == 1
    assert all(h is handles[0] for h in handles)
    assert conn.connected
    assert await conn.get() is handles[0]


@pytest.mark.asyncio
async def test_failed_attempt_is_retried_by_next_caller():
    attempts = []

    async def factory():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConnectionError("database down")
        return "handle"

    conn = LazyConnection(factory)

    with pytest.raises(ConnectionError):
        await conn.get()
    assert not conn.connected

    assert await conn.get() == "handle"
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_close_runs_closer_and_resets():
    closed = []

    async def factory():
        return object()

    async def closer(handle):
        closed.append(handle)

    conn = LazyConnection(factory, closer)
    first = await conn.get()

    await conn.close()

    assert closed == [first]
    assert not conn.connected
    assert await conn.get() is not first


@pytest.mark.asyncio
async def test_close_before_connect_is_a_no_op():
    closer_calls = []

    async def closer(handle):
        closer_calls.append(handle)

    async def factory():
        return "handle"

    conn = LazyConnection(factory, closer)
    await conn.close()

    assert closer_calls == []


@pytest.mark.asyncio
async def test_close_during_first_connect_closes_late_handle():
    release = asyncio.Event()
    closed = []

    async def factory():
        await release.wait()
        return "handle"

    async def closer(handle):
        closed.append(handle)

    conn = LazyConnection(factory, closer)
    waiters = [asyncio.create_task(conn.get()) for _ in range(2)]
    await asyncio.sleep(0)

    await conn.close()
    release.set()
    outcomes = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(o, ConnectionError) for o in outcomes)
    assert closed == ["handle"]
    assert not conn.connected


@pytest.mark.asyncio
async def test_connect_after_close_starts_fresh_attempt():
    release = asyncio.Event()
    made = []

    async def factory():
        made.append(1)
        if len(made) == 1:
            await release.wait()
        return f"handle-{len(made)}"

    conn = LazyConnection(factory)
    stale = asyncio.create_task(conn.get())
    await asyncio.sleep(0)

    await conn.close()
    fresh = await conn.get()
    release.set()

    with pytest.raises(ConnectionError):
        await stale
    assert fresh == "handle-2"
    assert conn.connected
    assert await conn.get() == "handle-2"

from __future__ import annotations

import asyncio

import pytest

from pysleek.exceptions import TransportError
from pysleek.util.events import AsyncEventEmitter


@pytest.mark.asyncio
async def test_emit_calls_sync_and_async_listeners() -> None:
    em = AsyncEventEmitter()
    seen: list[tuple[str, int]] = []

    def sync_listener(v: int) -> None:
        seen.append(("sync", v))

    async def async_listener(v: int) -> None:
        seen.append(("async", v))

    em.on("x", sync_listener)
    em.on("x", async_listener)

    assert await em.emit("x", 1)
    em.off("x", sync_listener)
    assert await em.emit("x", 2)
    assert not await em.emit("nobody", 3)

    assert seen == [("sync", 1), ("async", 1), ("async", 2)]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others(caplog) -> None:
    em = AsyncEventEmitter()
    called: list[int] = []

    def boom(_v: int) -> None:
        raise RuntimeError("boom")

    em.on("x", boom)
    em.on("x", called.append)

    await em.emit("x", 7)

    assert called == [7]
    assert "listener for 'x' failed" in caplog.text


@pytest.mark.asyncio
async def test_wait_for_resolves_and_times_out() -> None:
    em = AsyncEventEmitter()

    waiter = asyncio.create_task(em.wait_for("ready", timeout_s=5))
    await asyncio.sleep(0)
    await em.emit("ready", "yes")
    assert await waiter == "yes"

    with pytest.raises(asyncio.TimeoutError):
        await em.wait_for("never", timeout_s=0.01)


@pytest.mark.asyncio
async def test_fail_all_fails_pending_waiters() -> None:
    em = AsyncEventEmitter()
    fut = em.wait_for_future("ok:abc")

    em.fail_all(TransportError("closed"))

    with pytest.raises(TransportError):
        await fut

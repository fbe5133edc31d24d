from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


async def cancel_suppress(task: asyncio.Task[Any] | None) -> None:
    """Cancel `task` and wait for it to finish. A no-op for `None` or the running task."""

    if task is None or task is asyncio.current_task():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


def ensure_task(coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
    return asyncio.get_running_loop().create_task(coro, name=name)

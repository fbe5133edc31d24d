from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

Listener = Callable[..., Awaitable[None]] | Callable[..., None]

log = logging.getLogger(__name__)


class AsyncEventEmitter:
    """
    Small async-friendly event emitter.

    - `on(event, fn)` registers a listener (sync or async).
    - `emit(event, value)` calls listeners and resolves one-shot waiters.
    - `wait_for_future(event)` registers a one-shot waiter synchronously, so an
      emission between "send request" and "await reply" is never missed.

    A failing listener is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._waiters: dict[str, list[asyncio.Future[Any]]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        with contextlib.suppress(ValueError):
            listeners.remove(listener)
        if not listeners:
            self._listeners.pop(event, None)

    def wait_for_future(self, event: str) -> asyncio.Future[Any]:
        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters[event].append(fut)
        return fut

    def discard_future(self, event: str, fut: asyncio.Future[Any]) -> None:
        waiters = self._waiters.get(event)
        if not waiters:
            return
        remaining = [f for f in waiters if f is not fut and not f.done()]
        if remaining:
            self._waiters[event] = remaining
        else:
            self._waiters.pop(event, None)

    async def wait_for(self, event: str, *, timeout_s: float | None = None) -> Any:
        fut = self.wait_for_future(event)
        try:
            return await asyncio.wait_for(fut, timeout=timeout_s)
        finally:
            self.discard_future(event, fut)

    def fail_all(self, exc: BaseException) -> None:
        """Fail every pending waiter (e.g. when the connection drops)."""

        for waiters in self._waiters.values():
            for fut in waiters:
                if not fut.done():
                    fut.set_exception(exc)
        self._waiters.clear()

    async def emit(self, event: str, *args: Any) -> bool:
        triggered = False

        for fut in self._waiters.pop(event, []):
            if not fut.done():
                fut.set_result(args[0] if len(args) == 1 else args)
                triggered = True

        for listener in list(self._listeners.get(event, [])):
            triggered = True
            try:
                res = listener(*args)
                if asyncio.iscoroutine(res):
                    await res
            except Exception:
                log.exception("listener for %r failed", event)

        return triggered

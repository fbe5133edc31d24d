"""
NIP-01 relay client.

One websocket per relay with a background receive loop. Relay messages are
dispatched through an `AsyncEventEmitter` keyed by subscription id or event id:

- `["EVENT", <sub>, <event>]` -> `event:<sub>`
- `["EOSE", <sub>]` / `["CLOSED", <sub>, <msg>]` -> `eose:<sub>`
- `["OK", <event id>, <accepted>, <msg>]` -> `ok:<event id>`
- `["NOTICE", <msg>]` is logged
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from typing import Any

from ..events.filter import Filter, matches_any
from ..events.types import SignedEvent
from ..exceptions import RelayError, TransportError
from ..util import json as nostrjson
from ..util.asyncio import cancel_suppress, ensure_task
from ..util.events import AsyncEventEmitter
from .websocket import WebSocketConfig, WebSocketTransport

log = logging.getLogger(__name__)

_SUB_IDS = itertools.count(1)


class Relay:
    def __init__(self, url: str, *, connect_timeout_s: float = 5.0) -> None:
        self.url = url
        self.events = AsyncEventEmitter()
        self._transport = WebSocketTransport(
            WebSocketConfig(url=url, connect_timeout_s=connect_timeout_s)
        )
        self._recv_task: asyncio.Task[None] | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._transport.is_open

    async def connect(self) -> None:
        async with self._connect_lock:
            if self._transport.is_open and self._recv_task and not self._recv_task.done():
                return
            # Drop any half-dead previous connection.
            await cancel_suppress(self._recv_task)
            await self._transport.close()

            await self._transport.connect()
            self._recv_task = ensure_task(self._recv_loop(), name=f"pysleek.relay.{self.url}")

    async def close(self) -> None:
        await cancel_suppress(self._recv_task)
        self._recv_task = None
        await self._transport.close()
        self.events.fail_all(TransportError(f"relay {self.url} closed"))

    async def _recv_loop(self) -> None:
        while True:
            try:
                text = await self._transport.recv_text()
            except TransportError as e:
                log.info("relay %s disconnected: %s", self.url, e)
                self.events.fail_all(e)
                await self._transport.close()
                return
            await self._dispatch(text)

    async def _dispatch(self, text: str) -> None:
        try:
            msg = nostrjson.loads(text)
        except ValueError:
            log.debug("relay %s sent invalid JSON", self.url)
            return
        if not isinstance(msg, list) or not msg or not isinstance(msg[0], str):
            return

        typ = msg[0]
        if typ == "EVENT" and len(msg) >= 3:
            await self.events.emit(f"event:{msg[1]}", msg[2])
        elif typ == "EOSE" and len(msg) >= 2:
            await self.events.emit(f"eose:{msg[1]}", True)
        elif typ == "CLOSED" and len(msg) >= 2:
            log.debug("relay %s closed subscription %s: %s", self.url, msg[1], msg[2:])
            await self.events.emit(f"eose:{msg[1]}", False)
        elif typ == "OK" and len(msg) >= 3:
            reason = msg[3] if len(msg) >= 4 and isinstance(msg[3], str) else ""
            await self.events.emit(f"ok:{msg[1]}", (bool(msg[2]), reason))
        elif typ == "NOTICE":
            log.info("relay %s notice: %s", self.url, msg[1:] or "")
        else:
            log.debug("relay %s sent unhandled message %r", self.url, typ)

    async def query(self, filters: list[Filter], *, timeout_s: float) -> list[SignedEvent]:
        """
        Run one REQ until EOSE or until `timeout_s` has elapsed (connect included).

        Events received before the deadline are returned; signatures are not
        checked here.
        """

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        await asyncio.wait_for(self.connect(), timeout=timeout_s)

        sub_id = f"pysleek-{next(_SUB_IDS)}"
        collected: dict[str, SignedEvent] = {}

        def _on_event(raw: Any) -> None:
            try:
                ev = SignedEvent.from_dict(raw)
            except ValueError as e:
                log.debug("relay %s sent invalid event: %s", self.url, e)
                return
            if not matches_any(filters, ev):
                log.debug("relay %s sent event %s outside the filter", self.url, ev.id)
                return
            collected.setdefault(ev.id, ev)

        self.events.on(f"event:{sub_id}", _on_event)
        eose = self.events.wait_for_future(f"eose:{sub_id}")
        try:
            await self._transport.send_json(["REQ", sub_id, *[f.to_dict() for f in filters]])
            try:
                await asyncio.wait_for(eose, timeout=max(deadline - loop.time(), 0))
            except asyncio.TimeoutError:
                log.debug("relay %s: no EOSE for %s before deadline", self.url, sub_id)
            except TransportError as e:
                log.debug("relay %s dropped during %s: %s", self.url, sub_id, e)
        finally:
            self.events.off(f"event:{sub_id}", _on_event)
            self.events.discard_future(f"eose:{sub_id}", eose)
            if self.is_open:
                with contextlib.suppress(TransportError):
                    await self._transport.send_json(["CLOSE", sub_id])
        return list(collected.values())

    async def publish(self, event: SignedEvent, *, timeout_s: float) -> None:
        """Send an EVENT and wait for the relay's OK. Raises on rejection or timeout."""

        await asyncio.wait_for(self.connect(), timeout=timeout_s)
        ok = self.events.wait_for_future(f"ok:{event.id}")
        try:
            await self._transport.send_json(["EVENT", event.to_dict()])
            accepted, reason = await asyncio.wait_for(ok, timeout=timeout_s)
        finally:
            self.events.discard_future(f"ok:{event.id}", ok)
        if not accepted:
            raise RelayError(relay=self.url, reason=reason or "rejected")

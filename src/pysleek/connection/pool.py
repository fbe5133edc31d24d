from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from ..events.filter import Filter
from ..events.serialize import verify_event
from ..events.types import SignedEvent
from .relay import Relay

log = logging.getLogger(__name__)


def _verified(events: list[SignedEvent]) -> list[SignedEvent]:
    out: list[SignedEvent] = []
    for e in events:
        if verify_event(e):
            out.append(e)
        else:
            log.warning("dropping event %s with invalid id or signature", e.id)
    return out


class RelayPool:
    """
    `EventStore` backed by a set of relays.

    Queries fan out to every relay under one deadline and merge by event id.
    Publishing is fire-and-forget per relay: rejections and timeouts are
    logged, never raised.
    """

    def __init__(
        self,
        urls: Iterable[str],
        *,
        connect_timeout_s: float = 5.0,
        publish_timeout_s: float = 5.0,
        verify_signatures: bool = True,
    ) -> None:
        self.urls = list(dict.fromkeys(urls))
        self.connect_timeout_s = connect_timeout_s
        self.publish_timeout_s = publish_timeout_s
        self.verify_signatures = verify_signatures
        self._relays: dict[str, Relay] = {}

    def relay(self, url: str) -> Relay:
        r = self._relays.get(url)
        if r is None:
            r = Relay(url, connect_timeout_s=self.connect_timeout_s)
            self._relays[url] = r
        return r

    async def close(self) -> None:
        relays = list(self._relays.values())
        self._relays.clear()
        await asyncio.gather(*(r.close() for r in relays), return_exceptions=True)

    async def _query_one(
        self, url: str, filters: list[Filter], timeout_s: float
    ) -> list[SignedEvent]:
        try:
            return await self.relay(url).query(filters, timeout_s=timeout_s)
        except asyncio.TimeoutError:
            log.debug("query to %s timed out", url)
        except Exception as e:
            log.debug("query to %s failed: %s", url, e)
        return []

    async def query(self, filters: list[Filter], *, timeout_s: float) -> list[SignedEvent]:
        if not filters or not self.urls:
            return []
        results = await asyncio.gather(
            *(self._query_one(url, filters, timeout_s) for url in self.urls)
        )

        merged: dict[str, SignedEvent] = {}
        for events in results:
            for e in events:
                merged.setdefault(e.id, e)

        events = list(merged.values())
        if self.verify_signatures and events:
            # Pure-Python Schnorr; keep the event loop responsive.
            events = await asyncio.to_thread(_verified, events)
        return events

    async def _publish_one(self, url: str, event: SignedEvent) -> None:
        try:
            await self.relay(url).publish(event, timeout_s=self.publish_timeout_s)
        except asyncio.TimeoutError:
            log.warning("publish of %s to %s timed out", event.id, url)
        except Exception as e:
            log.warning("failed to publish %s to %s: %s", event.id, url, e)

    async def publish(self, event: SignedEvent, *, relays: list[str] | None = None) -> None:
        targets = list(dict.fromkeys(relays or self.urls))
        if not targets:
            log.warning("no relays to publish %s to", event.id)
            return
        await asyncio.gather(*(self._publish_one(url, event) for url in targets))

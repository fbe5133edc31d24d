from __future__ import annotations

import logging
from typing import Protocol

from .events.filter import Filter
from .events.kinds import is_addressable, is_replaceable
from .events.types import SignedEvent

log = logging.getLogger(__name__)


class EventStore(Protocol):
    """
    Where events come from and go to (a relay pool, a cache, a test double).

    - `query` is best-effort: it returns whatever arrived before `timeout_s`
      expired, possibly nothing.
    - `publish` is fire-and-forget per destination; failures are logged by the
      implementation and never raised.
    """

    async def query(self, filters: list[Filter], *, timeout_s: float) -> list[SignedEvent]: ...

    async def publish(self, event: SignedEvent, *, relays: list[str] | None = None) -> None: ...


def _replace_key(event: SignedEvent) -> tuple[str, int, str] | None:
    if is_addressable(event.kind):
        return (event.pubkey, event.kind, event.tag("d") or "")
    if is_replaceable(event.kind):
        return (event.pubkey, event.kind, "")
    return None


def _newer(a: SignedEvent, b: SignedEvent) -> bool:
    # NIP-01: on equal timestamps the lowest id wins.
    if a.created_at != b.created_at:
        return a.created_at > b.created_at
    return a.id < b.id


class InMemoryEventStore:
    """
    Minimal in-memory `EventStore` behaving like a single well-behaved relay.

    Replaceable and addressable events supersede older instances with the same
    key, so only the current read-state document is ever returned.
    """

    def __init__(self) -> None:
        self._events: dict[str, SignedEvent] = {}
        self._replaceable: dict[tuple[str, int, str], str] = {}
        self.published: list[SignedEvent] = []

    def add(self, event: SignedEvent) -> bool:
        """Store `event`. Returns False for duplicates and superseded versions."""

        if event.id in self._events:
            return False

        key = _replace_key(event)
        if key is not None:
            current_id = self._replaceable.get(key)
            current = self._events.get(current_id) if current_id else None
            if current is not None:
                if not _newer(event, current):
                    return False
                del self._events[current.id]
            self._replaceable[key] = event.id

        self._events[event.id] = event
        return True

    def __len__(self) -> int:
        return len(self._events)

    def get(self, event_id: str) -> SignedEvent | None:
        return self._events.get(event_id)

    async def query(self, filters: list[Filter], *, timeout_s: float = 3.0) -> list[SignedEvent]:
        out: dict[str, SignedEvent] = {}
        newest_first = sorted(self._events.values(), key=lambda e: (-e.created_at, e.id))
        for f in filters:
            matched = [e for e in newest_first if f.matches(e)]
            if f.limit is not None:
                matched = matched[: max(f.limit, 0)]
            for e in matched:
                out[e.id] = e
        return list(out.values())

    async def publish(self, event: SignedEvent, *, relays: list[str] | None = None) -> None:
        self.published.append(event)
        if not self.add(event):
            log.debug("event %s not stored (duplicate or superseded)", event.id)

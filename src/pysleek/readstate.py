"""
Per-user read state stored as a single NIP-78 addressable event.

The document (kind 30078, `d` = `sleek-messenger:seen`) maps contact pubkeys
to the unix timestamp of the last message the user has seen. Every write
replaces the whole document, so two devices marking different chats at the
same moment can lose one update (last write wins). Writes always re-read the
newest document first to keep that window small.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping

from .constants import SEEN_DOCUMENT_ALT, SEEN_DOCUMENT_ID
from .events.filter import Filter
from .events.kinds import EventKind
from .events.types import SignedEvent, UnsignedEvent
from .exceptions import AuthenticationMissingError
from .identity.signer import IdentitySigner
from .store import EventStore
from .util import json as nostrjson

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 3.0


def parse_seen_document(content: str) -> dict[str, int]:
    """Parse document content, dropping anything that is not `{str: number}`."""

    try:
        data = nostrjson.loads(content)
    except ValueError:
        log.warning("read-state document is not valid JSON; treating as empty")
        return {}
    if not isinstance(data, dict):
        log.warning("read-state document is not a JSON object; treating as empty")
        return {}

    out: dict[str, int] = {}
    for k, v in data.items():
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            log.debug("dropping read-state entry %r: %r", k, v)
            continue
        out[str(k)] = int(v)
    return out


class ReadStateStore:
    def __init__(
        self,
        store: EventStore,
        signer: IdentitySigner | None,
        *,
        identifier: str = SEEN_DOCUMENT_ID,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._signer = signer
        self.identifier = identifier
        self.timeout_s = timeout_s
        self._clock = clock or (lambda: int(time.time()))
        self._seen: dict[str, int] = {}
        self._last_created_at = 0
        self.loaded = False

    @property
    def seen(self) -> dict[str, int]:
        return dict(self._seen)

    def _require_signer(self) -> IdentitySigner:
        if self._signer is None:
            raise AuthenticationMissingError("user not authenticated")
        return self._signer

    def _filters(self, pubkey: str) -> list[Filter]:
        return [
            Filter(
                kinds=(int(EventKind.APP_DATA),),
                authors=(pubkey,),
                tags={"d": (self.identifier,)},
                limit=1,
            )
        ]

    async def _fetch_document(self) -> SignedEvent | None:
        if self._signer is None:
            return None
        pubkey = self._signer.pubkey
        events = await self._store.query(self._filters(pubkey), timeout_s=self.timeout_s)
        # Relays may return stale copies alongside the current one.
        candidates = [
            e
            for e in events
            if e.pubkey == pubkey and e.kind == EventKind.APP_DATA and e.tag("d") == self.identifier
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda e: (e.created_at, e.id))

    async def refresh(self) -> dict[str, int]:
        """Load the newest document from the store into the local view."""

        doc = await self._fetch_document()
        if doc is not None:
            self._seen = parse_seen_document(doc.content)
            self._last_created_at = max(self._last_created_at, doc.created_at)
        self.loaded = True
        return self.seen

    def get_last_seen(self, contact: str) -> int | None:
        return self._seen.get(contact)

    def has_unread(self, contact: str, latest_message_ts: int) -> bool:
        last_seen = self.get_last_seen(contact)
        if last_seen is None:
            return True
        return latest_message_ts > last_seen

    def unread_count(self, contact: str, events: Iterable[SignedEvent]) -> int:
        last_seen = self.get_last_seen(contact)
        evs = list(events)
        if last_seen is None:
            return len(evs)
        return sum(1 for e in evs if e.created_at > last_seen)

    async def mark_read(self, contact: str, timestamp: int | None = None) -> dict[str, int]:
        ts = timestamp if timestamp is not None else self._clock()
        return await self._merge_and_publish({contact: ts})

    async def mark_all_read(self, contacts: Iterable[str]) -> dict[str, int]:
        ts = self._clock()
        return await self._merge_and_publish({c: ts for c in contacts})

    async def _merge_and_publish(self, updates: Mapping[str, int]) -> dict[str, int]:
        signer = self._require_signer()

        # Read before write. A timed-out fetch falls back to the local view
        # rather than publishing a document that forgets everything.
        doc = await self._fetch_document()
        current = dict(self._seen)
        if doc is not None:
            current.update(parse_seen_document(doc.content))
            self._last_created_at = max(self._last_created_at, doc.created_at)
        current.update(updates)

        # Replaceable events with equal created_at are resolved by id, so keep
        # our own writes strictly increasing.
        created_at = max(self._clock(), self._last_created_at + 1)
        event = await signer.sign_event(
            UnsignedEvent(
                kind=EventKind.APP_DATA,
                content=nostrjson.dumps(current),
                created_at=created_at,
                tags=(("d", self.identifier), ("alt", SEEN_DOCUMENT_ALT)),
            )
        )
        await self._store.publish(event)

        self._last_created_at = created_at
        self._seen = current
        return dict(current)

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..events.filter import Filter
from ..events.kinds import EventKind
from ..events.types import SignedEvent
from .types import ChatMessage, ContactSummary, Direction, EncryptionScheme

CONVERSATION_KINDS = (EventKind.LEGACY_DM, EventKind.GIFT_WRAP, EventKind.REPOST)

DEFAULT_MESSAGE_LIMIT = 100
DEFAULT_INBOX_LIMIT = 50
DEFAULT_CONTACT_LIMIT = 20


def _dedupe(events: Iterable[SignedEvent]) -> list[SignedEvent]:
    seen: dict[str, SignedEvent] = {}
    for e in events:
        seen.setdefault(e.id, e)
    return list(seen.values())


class ConversationAggregator:
    """
    Turns raw relay results into chat timelines and a recent-contacts list.

    Pure and synchronous: fetching and decryption happen elsewhere, results are
    merged back by event id via `apply_decrypted`.
    """

    def conversation_filters(
        self, viewer: str, contact: str, *, limit: int = DEFAULT_MESSAGE_LIMIT
    ) -> list[Filter]:
        kinds = tuple(int(k) for k in CONVERSATION_KINDS)
        return [
            Filter(kinds=kinds, authors=(viewer,), tags={"p": (contact,)}, limit=limit),
            Filter(kinds=kinds, authors=(contact,), tags={"p": (viewer,)}, limit=limit),
        ]

    def inbox_filters(self, viewer: str, *, limit: int = DEFAULT_INBOX_LIMIT) -> list[Filter]:
        legacy = (int(EventKind.LEGACY_DM),)
        return [
            Filter(kinds=legacy, authors=(viewer,), limit=limit),
            Filter(kinds=legacy, tags={"p": (viewer,)}, limit=limit),
            Filter(kinds=(int(EventKind.GIFT_WRAP),), tags={"p": (viewer,)}, limit=limit),
        ]

    def timeline(self, events: Iterable[SignedEvent], viewer: str) -> list[ChatMessage]:
        """Deduplicated messages, oldest first. Equal timestamps are ordered by id."""

        ordered = sorted(_dedupe(events), key=lambda e: (e.created_at, e.id))
        return [
            ChatMessage(
                id=e.id,
                timestamp=e.created_at,
                direction=Direction.FROM_ME if e.pubkey == viewer else Direction.FROM_CONTACT,
                scheme=EncryptionScheme.for_kind(e.kind),
                raw_content=e.content,
                event=e,
            )
            for e in ordered
        ]

    def counterparty(self, event: SignedEvent, viewer: str) -> str | None:
        if event.kind == EventKind.LEGACY_DM:
            return event.tag("p") if event.pubkey == viewer else event.pubkey
        if event.kind == EventKind.GIFT_WRAP:
            # Placeholder until decryption: the wrap pubkey is a one-time key,
            # not the real sender.
            return event.pubkey if event.pubkey != viewer else None
        return None

    def contacts(
        self, events: Iterable[SignedEvent], viewer: str, *, limit: int = DEFAULT_CONTACT_LIMIT
    ) -> list[ContactSummary]:
        """Most recent event per counterparty, newest first, capped at `limit`."""

        latest: dict[str, ContactSummary] = {}
        for e in _dedupe(events):
            pubkey = self.counterparty(e, viewer)
            if not pubkey or pubkey == viewer:
                continue
            existing = latest.get(pubkey)
            if existing is None or e.created_at > existing.timestamp:
                latest[pubkey] = ContactSummary(pubkey=pubkey, timestamp=e.created_at, last_event=e)

        ranked = sorted(latest.values(), key=lambda c: (-c.timestamp, c.pubkey))
        return ranked[: max(limit, 0)]

    def apply_decrypted(self, messages: Iterable[ChatMessage], results: Mapping[str, str]) -> int:
        """
        Fill `decrypted_content` from `{event id: text}` results.

        Idempotent and order-independent. Returns how many messages changed.
        """

        changed = 0
        for m in messages:
            text = results.get(m.id)
            if text is not None and m.decrypted_content != text:
                m.decrypted_content = text
                changed += 1
        return changed

    def display_content(self, message: ChatMessage) -> str:
        # Reposts carry the reposted event as JSON; show it untouched.
        if message.event.kind == EventKind.REPOST:
            return message.raw_content
        return message.decrypted_content or message.raw_content

    def unread_count(self, messages: Iterable[ChatMessage], last_seen: int | None) -> int:
        incoming = [m for m in messages if not m.is_from_me]
        if last_seen is None:
            return len(incoming)
        return sum(1 for m in incoming if m.timestamp > last_seen)

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..events.kinds import EventKind
from ..events.types import SignedEvent, Tags


class Direction(str, Enum):
    FROM_ME = "from_me"
    FROM_CONTACT = "from_contact"


class EncryptionScheme(str, Enum):
    NONE = "none"
    LEGACY = "nip04"
    GIFTWRAP = "nip17"

    @classmethod
    def for_kind(cls, kind: int) -> EncryptionScheme:
        if kind == EventKind.LEGACY_DM:
            return cls.LEGACY
        if kind == EventKind.GIFT_WRAP:
            return cls.GIFTWRAP
        return cls.NONE


@dataclass(slots=True)
class ChatMessage:
    """
    A timeline entry projected from a `SignedEvent`.

    `decrypted_content` stays `None` until the codec result for this event id
    has been applied.
    """

    id: str
    timestamp: int
    direction: Direction
    scheme: EncryptionScheme
    raw_content: str
    event: SignedEvent
    decrypted_content: str | None = None

    @property
    def is_from_me(self) -> bool:
        return self.direction is Direction.FROM_ME

    @property
    def is_encrypted(self) -> bool:
        return self.scheme is not EncryptionScheme.NONE


@dataclass(frozen=True, slots=True)
class ContactSummary:
    pubkey: str
    timestamp: int
    last_event: SignedEvent


@dataclass(frozen=True, slots=True)
class Rumor:
    """The unsigned kind 14 message recovered from inside a gift wrap."""

    sender: str
    content: str
    created_at: int | None
    tags: Tags
    seal_id: str | None = None

    @property
    def recipients(self) -> list[str]:
        return [t[1] for t in self.tags if len(t) >= 2 and t[0] == "p"]

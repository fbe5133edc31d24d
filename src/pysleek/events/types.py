from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeAlias

Tag: TypeAlias = tuple[str, ...]
Tags: TypeAlias = tuple[Tag, ...]


def freeze_tags(tags: Any) -> Tags:
    if not isinstance(tags, (list, tuple)):
        raise TypeError("tags must be a list of lists")
    out: list[Tag] = []
    for t in tags:
        if not isinstance(t, (list, tuple)) or not all(isinstance(v, str) for v in t):
            raise TypeError(f"invalid tag: {t!r}")
        out.append(tuple(t))
    return tuple(out)


def tag_values(tags: Tags, name: str) -> list[str]:
    """All first values of tags named `name` (e.g. every `p` pubkey)."""

    return [t[1] for t in tags if len(t) >= 2 and t[0] == name]


def first_tag_value(tags: Tags, name: str) -> str | None:
    for t in tags:
        if len(t) >= 2 and t[0] == name:
            return t[1]
    return None


@dataclass(frozen=True, slots=True)
class UnsignedEvent:
    """
    An event template before signing.

    When `pubkey` is set and an id is computed but no signature is attached the
    event is a NIP-59 "rumor" (the inner kind 14 message of a gift wrap).
    """

    kind: int
    content: str
    created_at: int
    tags: Tags = field(default_factory=tuple)
    pubkey: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", freeze_tags(self.tags))


@dataclass(frozen=True, slots=True)
class SignedEvent:
    """
    Immutable signed network event (NIP-01).

    Instances are produced by signers or parsed from relays and never mutated.
    """

    id: str
    pubkey: str
    kind: int
    created_at: int
    tags: Tags
    content: str
    sig: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    def tag(self, name: str) -> str | None:
        return first_tag_value(self.tags, name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, d: Any) -> SignedEvent:
        """Parse a relay/JSON event object. Raises `ValueError` on a bad shape."""

        if not isinstance(d, dict):
            raise ValueError("event must be a JSON object")
        try:
            ev = cls(
                id=d["id"],
                pubkey=d["pubkey"],
                kind=d["kind"],
                created_at=d["created_at"],
                tags=d.get("tags", []),
                content=d["content"],
                sig=d["sig"],
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"invalid event: {e}") from e

        if not all(isinstance(v, str) for v in (ev.id, ev.pubkey, ev.content, ev.sig)):
            raise ValueError("invalid event: id/pubkey/content/sig must be strings")
        if not isinstance(ev.kind, int) or isinstance(ev.kind, bool):
            raise ValueError("invalid event: kind must be an integer")
        if not isinstance(ev.created_at, int) or isinstance(ev.created_at, bool):
            raise ValueError("invalid event: created_at must be an integer")
        return ev

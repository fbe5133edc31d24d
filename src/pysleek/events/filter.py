from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .types import SignedEvent, tag_values


@dataclass(frozen=True, slots=True)
class Filter:
    """
    NIP-01 subscription filter.

    `tags` maps a single-letter tag name to accepted values, e.g.
    `{"p": ("<pubkey>",)}` which is sent as `"#p": [...]`.
    """

    ids: tuple[str, ...] | None = None
    kinds: tuple[int, ...] | None = None
    authors: tuple[str, ...] | None = None
    tags: dict[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.ids is not None:
            out["ids"] = list(self.ids)
        if self.kinds is not None:
            out["kinds"] = list(self.kinds)
        if self.authors is not None:
            out["authors"] = list(self.authors)
        for name, values in self.tags.items():
            out[f"#{name}"] = list(values)
        if self.since is not None:
            out["since"] = self.since
        if self.until is not None:
            out["until"] = self.until
        if self.limit is not None:
            out["limit"] = self.limit
        return out

    def matches(self, event: SignedEvent) -> bool:
        # `limit` only applies to the initial query, never to matching.
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, values in self.tags.items():
            if not set(values).intersection(tag_values(event.tags, name)):
                return False
        return True


def matches_any(filters: list[Filter], event: SignedEvent) -> bool:
    return any(f.matches(event) for f in filters)

from __future__ import annotations

from enum import IntEnum


class EventKind(IntEnum):
    TEXT_NOTE = 1
    LEGACY_DM = 4  # NIP-04
    REPOST = 6
    SEAL = 13  # NIP-59
    PRIVATE_MESSAGE = 14  # NIP-17 rumor
    GIFT_WRAP = 1059  # NIP-59
    APP_DATA = 30078  # NIP-78


def kind_of(kind: int) -> EventKind | None:
    """Map a wire kind to `EventKind`, or `None` for kinds this library does not model."""

    try:
        return EventKind(kind)
    except ValueError:
        return None


def is_replaceable(kind: int) -> bool:
    return kind in (0, 3) or 10000 <= kind < 20000


def is_addressable(kind: int) -> bool:
    return 30000 <= kind < 40000

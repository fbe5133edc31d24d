from __future__ import annotations

from .filter import Filter, matches_any
from .kinds import EventKind, is_addressable, is_replaceable, kind_of
from .serialize import compute_event_id, finalize_event, serialize_event, verify_event
from .types import (
    SignedEvent,
    Tag,
    Tags,
    UnsignedEvent,
    first_tag_value,
    freeze_tags,
    tag_values,
)

__all__ = [
    "EventKind",
    "Filter",
    "SignedEvent",
    "Tag",
    "Tags",
    "UnsignedEvent",
    "compute_event_id",
    "finalize_event",
    "first_tag_value",
    "freeze_tags",
    "is_addressable",
    "is_replaceable",
    "kind_of",
    "matches_any",
    "serialize_event",
    "tag_values",
    "verify_event",
]

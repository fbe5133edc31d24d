from __future__ import annotations

from .aggregator import ConversationAggregator
from .codec import CryptoCodec, DecryptCache
from .giftwrap import GiftWrapBuilder, GiftWraps, build_legacy_dm, build_text_note
from .types import ChatMessage, ContactSummary, Direction, EncryptionScheme, Rumor

__all__ = [
    "ChatMessage",
    "ContactSummary",
    "ConversationAggregator",
    "CryptoCodec",
    "DecryptCache",
    "Direction",
    "EncryptionScheme",
    "GiftWrapBuilder",
    "GiftWraps",
    "Rumor",
    "build_legacy_dm",
    "build_text_note",
]

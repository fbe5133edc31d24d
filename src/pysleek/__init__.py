"""
pysleek: an asyncio-first Nostr direct-messaging client core.

Encrypts, wraps, aggregates and tracks read state of private conversations
(NIP-04 legacy DMs and NIP-17 gift-wrapped messages) on top of a relay pool.
"""

from __future__ import annotations

from .client import DirectMessageClient
from .config import ClientConfig
from .exceptions import PysleekError

__all__ = [
    "ClientConfig",
    "DirectMessageClient",
    "PysleekError",
]

__version__ = "0.1.0"

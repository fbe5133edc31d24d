from __future__ import annotations

DEFAULT_RELAYS = (
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
    "wss://relay.primal.net",
)

# Read-state document (NIP-78 application data). Must match other clients of
# the same app for the document to be shared.
SEEN_DOCUMENT_ID = "sleek-messenger:seen"
SEEN_DOCUMENT_ALT = "Sleek Messenger: Last seen message timestamps"

# Seals and gift wraps are backdated by up to two days (NIP-59).
TIMESTAMP_JITTER_S = 2 * 24 * 60 * 60

# Display sentinels returned by the codec instead of raising.
ENCRYPTED_SENTINEL = "[Encrypted message]"
INVALID_STRUCTURE_SENTINEL = "[Invalid structure]"
EMPTY_MESSAGE_SENTINEL = "[Empty message]"

NIP44_VERSION = 2
NIP44_SALT = b"nip44-v2"

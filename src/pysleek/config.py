from __future__ import annotations

from dataclasses import dataclass, field

from .constants import DEFAULT_RELAYS, SEEN_DOCUMENT_ID


@dataclass(slots=True)
class ClientConfig:
    relays: list[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))

    connect_timeout_s: float = 5.0
    publish_timeout_s: float = 5.0
    # Deadlines for reads; on expiry whatever has arrived is used.
    query_timeout_s: float = 3.0
    inbox_timeout_s: float = 1.5
    decrypt_timeout_s: float | None = 10.0

    conversation_poll_interval_s: float = 5.0
    contacts_poll_interval_s: float = 15.0

    message_limit: int = 100
    inbox_limit: int = 50
    contact_limit: int = 20

    decrypt_cache_size: int = 4096
    verify_signatures: bool = True
    read_state_identifier: str = SEEN_DOCUMENT_ID

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Literal

from .config import ClientConfig
from .connection.pool import RelayPool
from .events.types import SignedEvent
from .exceptions import AuthenticationMissingError
from .identity.signer import IdentitySigner
from .identity.store import KeyFileStore
from .messages.aggregator import ConversationAggregator
from .messages.codec import CryptoCodec
from .messages.giftwrap import GiftWrapBuilder, build_legacy_dm, build_text_note
from .messages.types import ChatMessage, ContactSummary
from .readstate import ReadStateStore
from .store import EventStore
from .util.asyncio import cancel_suppress, ensure_task
from .util.events import AsyncEventEmitter, Listener

log = logging.getLogger(__name__)

SendScheme = Literal["nip17", "nip04", "plain"]


class DirectMessageClient:
    """
    High-level async facade over the DM subsystem.

    Wires an `EventStore` (relays by default) to the codec, the aggregator and
    the read-state document for one signed-in identity. Without a signer the
    client is read-only and everything that needs keys is disabled.

    Events emitted by the pollers:
    - `conversation.update` `(contact, list[ChatMessage])`
    - `contacts.update` `(list[ContactSummary])`
    """

    def __init__(
        self,
        *,
        signer: IdentitySigner | None,
        store: EventStore | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.signer = signer
        self.store: EventStore = store if store is not None else RelayPool(
            self.config.relays,
            connect_timeout_s=self.config.connect_timeout_s,
            publish_timeout_s=self.config.publish_timeout_s,
            verify_signatures=self.config.verify_signatures,
        )
        self.codec = CryptoCodec(cache_size=self.config.decrypt_cache_size)
        self.aggregator = ConversationAggregator()
        self.giftwraps = GiftWrapBuilder()
        self.read_state = ReadStateStore(
            self.store,
            signer,
            identifier=self.config.read_state_identifier,
            timeout_s=self.config.query_timeout_s,
        )
        self.events = AsyncEventEmitter()
        self._pollers: dict[str, asyncio.Task[None]] = {}

    @classmethod
    async def from_key_folder(
        cls, folder: str | Path, *, config: ClientConfig | None = None
    ) -> tuple[DirectMessageClient, KeyFileStore]:
        """Load (or create) a local identity and build a relay-backed client for it."""

        keys = await KeyFileStore.load(folder)
        return cls(signer=keys.signer(), config=config), keys

    @property
    def pubkey(self) -> str | None:
        return self.signer.pubkey if self.signer else None

    @property
    def is_authenticated(self) -> bool:
        return self.signer is not None

    def on(self, event: str, listener: Listener) -> None:
        self.events.on(event, listener)

    def _require_signer(self) -> IdentitySigner:
        if self.signer is None:
            raise AuthenticationMissingError("user not authenticated")
        return self.signer

    async def close(self) -> None:
        await self.stop_polling()
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()

    async def conversation(self, contact: str) -> list[ChatMessage]:
        """Messages between the signed-in user and `contact`, oldest first, not yet decrypted."""

        if self.signer is None:
            return []
        viewer = self.signer.pubkey
        filters = self.aggregator.conversation_filters(
            viewer, contact, limit=self.config.message_limit
        )
        events = await self.store.query(filters, timeout_s=self.config.query_timeout_s)
        return self.aggregator.timeline(events, viewer)

    async def decrypt_messages(self, messages: list[ChatMessage], contact: str) -> int:
        """Decrypt encrypted messages in place. Returns how many changed."""

        pending = [m.event for m in messages if m.is_encrypted]
        if not pending:
            return 0
        results = await self.codec.decrypt_many(
            pending,
            self.signer,
            counterparty_override=contact,
            timeout_s=self.config.decrypt_timeout_s,
        )
        return self.aggregator.apply_decrypted(messages, results)

    async def recent_contacts(self) -> list[ContactSummary]:
        if self.signer is None:
            return []
        viewer = self.signer.pubkey
        filters = self.aggregator.inbox_filters(viewer, limit=self.config.inbox_limit)
        events = await self.store.query(filters, timeout_s=self.config.inbox_timeout_s)
        return self.aggregator.contacts(events, viewer, limit=self.config.contact_limit)

    def unread_contacts(self, contacts: list[ContactSummary]) -> list[str]:
        return [c.pubkey for c in contacts if self.read_state.has_unread(c.pubkey, c.timestamp)]

    async def send_message(
        self, contact: str, content: str, *, scheme: SendScheme = "nip17"
    ) -> SignedEvent:
        """
        Encrypt (unless `scheme="plain"`), sign and publish a message.

        For NIP-17 both gift wraps are published and the recipient's copy is
        returned. Compose-path errors propagate to the caller.
        """

        signer = self._require_signer()
        text = content.strip()
        if not text:
            raise ValueError("message is empty")

        if scheme == "nip17":
            wraps = await self.giftwraps.wrap(text, signer, contact)
            await asyncio.gather(
                self.store.publish(wraps.recipient), self.store.publish(wraps.sender)
            )
            return wraps.recipient
        if scheme == "nip04":
            event = await build_legacy_dm(text, signer, contact)
        elif scheme == "plain":
            event = await build_text_note(text, signer, contact)
        else:
            raise ValueError(f"unknown send scheme: {scheme!r}")
        await self.store.publish(event)
        return event

    async def mark_read(self, contact: str, timestamp: int | None = None) -> dict[str, int]:
        return await self.read_state.mark_read(contact, timestamp)

    async def mark_all_read(self, contacts: list[str]) -> dict[str, int]:
        return await self.read_state.mark_all_read(contacts)

    async def _poll_conversation(self, contact: str) -> None:
        while True:
            try:
                messages = await self.conversation(contact)
                await self.decrypt_messages(messages, contact)
                await self.events.emit("conversation.update", contact, messages)
            except Exception:
                log.warning("polling conversation with %s failed", contact, exc_info=True)
            await asyncio.sleep(self.config.conversation_poll_interval_s)

    async def _poll_contacts(self) -> None:
        while True:
            try:
                if not self.read_state.loaded:
                    await self.read_state.refresh()
                contacts = await self.recent_contacts()
                await self.events.emit("contacts.update", contacts)
            except Exception:
                log.warning("polling contacts failed", exc_info=True)
            await asyncio.sleep(self.config.contacts_poll_interval_s)

    def poll_conversation(self, contact: str) -> asyncio.Task[None]:
        key = f"conversation:{contact}"
        task = self._pollers.get(key)
        if task is None or task.done():
            task = ensure_task(self._poll_conversation(contact), name=f"pysleek.poll.{key}")
            self._pollers[key] = task
        return task

    def poll_contacts(self) -> asyncio.Task[None]:
        task = self._pollers.get("contacts")
        if task is None or task.done():
            task = ensure_task(self._poll_contacts(), name="pysleek.poll.contacts")
            self._pollers["contacts"] = task
        return task

    async def stop_polling(self) -> None:
        tasks = list(self._pollers.values())
        self._pollers.clear()
        for t in tasks:
            await cancel_suppress(t)

"""
Inbound message decryption for both DM standards.

- kind 4 (NIP-04 legacy DM): NIP-44 is tried first because some clients put
  NIP-44 payloads in kind 4 events, then NIP-04.
- kind 1059 (NIP-17 gift wrap): wrap -> seal -> rumor, NIP-44 only.
- every other kind is returned as-is.

`CryptoCodec.decrypt` never raises for bad input: failures are logged and
mapped to display sentinels so a single broken event cannot break a timeline.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from ..constants import EMPTY_MESSAGE_SENTINEL, ENCRYPTED_SENTINEL, INVALID_STRUCTURE_SENTINEL
from ..events.kinds import EventKind, kind_of
from ..events.serialize import verify_event
from ..events.types import SignedEvent, freeze_tags
from ..exceptions import DecryptionError, MalformedEnvelopeError, UnsupportedCipherError
from ..identity.signer import IdentitySigner
from ..util import json as nostrjson
from ..util.asyncio import ensure_task
from .types import Rumor

log = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 4096

_CacheKey = tuple[str, str]  # (event id, viewer pubkey)
_Handler = Callable[[SignedEvent, IdentitySigner, str | None], Awaitable[str]]


class DecryptCache:
    """LRU map of `(event id, viewer pubkey) -> plaintext or sentinel`."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self.max_size = max_size
        self._data: OrderedDict[_CacheKey, str] = OrderedDict()

    def get(self, key: _CacheKey) -> str | None:
        value = self._data.get(key)
        if value is not None:
            self._data.move_to_end(key)
        return value

    def put(self, key: _CacheKey, value: str) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def _legacy_counterparty(event: SignedEvent, viewer: str) -> str | None:
    if event.pubkey == viewer:
        return event.tag("p")
    return event.pubkey


def _parse_object(data: str, what: str) -> dict[str, Any]:
    try:
        obj = nostrjson.loads(data)
    except ValueError as e:
        raise MalformedEnvelopeError(f"{what} is not valid JSON") from e
    if not isinstance(obj, dict):
        raise MalformedEnvelopeError(f"{what} is not a JSON object")
    return obj


class CryptoCodec:
    """
    Decrypts DM events for a viewer, memoizing results per `(event id, viewer)`.

    Concurrent calls for the same key share one in-flight task. Decryption is
    deterministic, so results (including sentinels) are cached for as long as
    the LRU keeps them.
    """

    def __init__(self, *, cache_size: int = DEFAULT_CACHE_SIZE, verify_seals: bool = True) -> None:
        self.cache = DecryptCache(cache_size)
        self.verify_seals = verify_seals
        self._inflight: dict[_CacheKey, asyncio.Task[str]] = {}
        # Kinds that need a signer. Anything not listed is plain content.
        self._handlers: dict[EventKind, _Handler] = {
            EventKind.LEGACY_DM: self._decrypt_legacy,
            EventKind.GIFT_WRAP: self._decrypt_gift_wrap,
        }

    def is_encrypted(self, event: SignedEvent) -> bool:
        kind = kind_of(event.kind)
        return kind is not None and kind in self._handlers

    async def decrypt(
        self,
        event: SignedEvent,
        viewer: IdentitySigner | None,
        counterparty_override: str | None = None,
    ) -> str:
        kind = kind_of(event.kind)
        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            return event.content

        if viewer is None:
            # Not logged in: decryption is disabled rather than attempted.
            return ENCRYPTED_SENTINEL

        key = (event.id, viewer.pubkey)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = ensure_task(
                self._run(key, handler, event, viewer, counterparty_override),
                name=f"pysleek.decrypt.{event.id[:8]}",
            )
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        # Shield so one cancelled waiter does not abort a decrypt others share.
        return await asyncio.shield(task)

    async def decrypt_many(
        self,
        events: Iterable[SignedEvent],
        viewer: IdentitySigner | None,
        counterparty_override: str | None = None,
        *,
        timeout_s: float | None = None,
    ) -> dict[str, str]:
        """
        Decrypt several events concurrently.

        Results are keyed by event id. When `timeout_s` expires, the decrypts
        that finished are returned; unfinished ones keep running in the
        background and land in the cache.
        """

        tasks: dict[str, asyncio.Task[str]] = {}
        for event in events:
            if event.id not in tasks:
                tasks[event.id] = ensure_task(self.decrypt(event, viewer, counterparty_override))
        if not tasks:
            return {}

        done, pending = await asyncio.wait(tasks.values(), timeout=timeout_s)
        for t in pending:
            t.cancel()
        if pending:
            log.debug("%d of %d decrypts missed the deadline", len(pending), len(tasks))
        return {
            event_id: t.result()
            for event_id, t in tasks.items()
            if t in done and not t.cancelled() and t.exception() is None
        }

    async def unwrap(self, event: SignedEvent, viewer: IdentitySigner) -> Rumor:
        """
        Open a gift wrap and return the inner rumor with its real sender.

        Raises `UnsupportedCipherError`, `DecryptionError` or
        `MalformedEnvelopeError`.
        """

        if event.kind != EventKind.GIFT_WRAP:
            raise MalformedEnvelopeError(f"expected a gift wrap, got kind {event.kind}")
        nip44 = viewer.nip44
        if nip44 is None:
            raise UnsupportedCipherError("nip44", "NIP-44 is required to open gift wraps")

        # The wrap pubkey is the ephemeral key that encrypted the seal to us.
        try:
            seal_json = await nip44.decrypt(event.pubkey, event.content)
        except Exception as e:
            raise DecryptionError(f"failed to open gift wrap {event.id}: {e}") from e

        seal = _parse_object(seal_json, "seal")
        seal_pubkey = seal.get("pubkey")
        seal_content = seal.get("content")
        if seal.get("kind") != EventKind.SEAL or not isinstance(seal_pubkey, str):
            raise MalformedEnvelopeError("gift wrap does not contain a seal")
        if not isinstance(seal_content, str) or not seal_content:
            raise MalformedEnvelopeError("seal has no content")
        if self.verify_seals:
            await asyncio.to_thread(self._verify_seal, seal)

        try:
            rumor_json = await nip44.decrypt(seal_pubkey, seal_content)
        except Exception as e:
            raise DecryptionError(f"failed to open seal in {event.id}: {e}") from e

        rumor = _parse_object(rumor_json, "rumor")
        rumor_pubkey = rumor.get("pubkey")
        if rumor_pubkey is not None and rumor_pubkey != seal_pubkey:
            raise MalformedEnvelopeError("rumor author does not match seal signer")

        content = rumor.get("content")
        created_at = rumor.get("created_at")
        try:
            tags = freeze_tags(rumor.get("tags", []))
        except TypeError as e:
            raise MalformedEnvelopeError(f"rumor has invalid tags: {e}") from e

        return Rumor(
            sender=seal_pubkey,
            content=content if isinstance(content, str) else "",
            created_at=created_at if isinstance(created_at, int) else None,
            tags=tags,
            seal_id=seal.get("id") if isinstance(seal.get("id"), str) else None,
        )

    def _verify_seal(self, seal: dict[str, Any]) -> None:
        try:
            ev = SignedEvent.from_dict(seal)
        except ValueError as e:
            raise MalformedEnvelopeError(f"seal is not a signed event: {e}") from e
        if not verify_event(ev):
            raise MalformedEnvelopeError("seal signature is invalid")

    async def _run(
        self,
        key: _CacheKey,
        handler: _Handler,
        event: SignedEvent,
        viewer: IdentitySigner,
        counterparty_override: str | None,
    ) -> str:
        try:
            result = await handler(event, viewer, counterparty_override)
        except Exception:
            log.warning("unexpected failure decrypting event %s", event.id, exc_info=True)
            result = ENCRYPTED_SENTINEL
        self.cache.put(key, result)
        return result

    async def _decrypt_legacy(
        self, event: SignedEvent, viewer: IdentitySigner, counterparty_override: str | None
    ) -> str:
        counterparty = counterparty_override or _legacy_counterparty(event, viewer.pubkey)
        if not counterparty:
            log.debug("legacy DM %s has no recipient tag", event.id)
            return ENCRYPTED_SENTINEL

        ciphers = (("nip44", viewer.nip44), ("nip04", viewer.nip04))
        for profile, cipher in ciphers:
            if cipher is None:
                continue
            try:
                return await cipher.decrypt(counterparty, event.content)
            except Exception as e:
                log.debug("%s decrypt of legacy DM %s failed: %s", profile, event.id, e)

        log.warning("unable to decrypt legacy DM %s with any supported cipher", event.id)
        return ENCRYPTED_SENTINEL

    async def _decrypt_gift_wrap(
        self, event: SignedEvent, viewer: IdentitySigner, counterparty_override: str | None
    ) -> str:
        # The real sender is inside the seal; an override has no meaning here.
        try:
            rumor = await self.unwrap(event, viewer)
        except MalformedEnvelopeError as e:
            log.debug("gift wrap %s is malformed: %s", event.id, e)
            return INVALID_STRUCTURE_SENTINEL
        except UnsupportedCipherError as e:
            log.warning("cannot open gift wrap %s: %s", event.id, e)
            return ENCRYPTED_SENTINEL
        except DecryptionError as e:
            log.debug("%s", e)
            return ENCRYPTED_SENTINEL
        return rumor.content or EMPTY_MESSAGE_SENTINEL

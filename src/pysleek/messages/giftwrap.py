"""
Outgoing message construction.

NIP-17 private messages are layered as rumor (kind 14, unsigned) inside a seal
(kind 13, signed by the real sender) inside a gift wrap (kind 1059, signed by a
one-time key). Every addressee gets its own seal and its own one-time key, so
the recipient copy and the sender's self copy cannot be linked by key.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from typing import NamedTuple

from ..constants import TIMESTAMP_JITTER_S
from ..crypto.curve import DefaultSecp256k1Provider, Secp256k1Provider
from ..crypto.keys import normalize_pubkey
from ..crypto.nip44 import get_conversation_key, nip44_encrypt
from ..events.kinds import EventKind
from ..events.serialize import compute_event_id, finalize_event
from ..events.types import SignedEvent, UnsignedEvent
from ..exceptions import (
    AuthenticationMissingError,
    PysleekError,
    SigningError,
    UnsupportedCipherError,
)
from ..identity.signer import IdentitySigner
from ..util import json as nostrjson


class GiftWraps(NamedTuple):
    recipient: SignedEvent
    sender: SignedEvent


def _now_s() -> int:
    return int(time.time())


def _require_signer(sender: IdentitySigner | None) -> IdentitySigner:
    if sender is None:
        raise AuthenticationMissingError("user not authenticated")
    return sender


class GiftWrapBuilder:
    def __init__(
        self,
        *,
        curve: Secp256k1Provider | None = None,
        clock: Callable[[], int] | None = None,
        max_jitter_s: int = TIMESTAMP_JITTER_S,
    ) -> None:
        self._curve = curve or DefaultSecp256k1Provider()
        self._clock = clock or _now_s
        self.max_jitter_s = max_jitter_s

    def jittered(self) -> int:
        """A timestamp up to `max_jitter_s` in the past."""

        if self.max_jitter_s <= 0:
            return self._clock()
        return self._clock() - secrets.randbelow(self.max_jitter_s)

    def build_rumor(self, plaintext: str, *, sender: str, recipient: str) -> dict[str, object]:
        rumor = UnsignedEvent(
            kind=EventKind.PRIVATE_MESSAGE,
            content=plaintext,
            created_at=self._clock(),
            tags=(("p", recipient),),
            pubkey=sender,
        )
        return {
            "id": compute_event_id(rumor),
            "pubkey": sender,
            "created_at": rumor.created_at,
            "kind": int(EventKind.PRIVATE_MESSAGE),
            "tags": [list(t) for t in rumor.tags],
            "content": plaintext,
        }

    async def seal(
        self, rumor: dict[str, object], sender: IdentitySigner, to_pubkey: str
    ) -> SignedEvent:
        nip44 = sender.nip44
        if nip44 is None:
            raise UnsupportedCipherError("nip44", "NIP-17 needs a signer with NIP-44 support")
        content = await nip44.encrypt(to_pubkey, nostrjson.dumps(rumor))
        return await sender.sign_event(
            UnsignedEvent(kind=EventKind.SEAL, content=content, created_at=self.jittered(), tags=())
        )

    def wrap_seal(self, seal: SignedEvent, to_pubkey: str) -> SignedEvent:
        """Encrypt `seal` to `to_pubkey` under a fresh one-time key and sign with it."""

        ephemeral = self._curve.generate_keypair()
        conversation_key = get_conversation_key(
            ephemeral.private, bytes.fromhex(to_pubkey), curve=self._curve
        )
        content = nip44_encrypt(nostrjson.dumps(seal.to_dict()), conversation_key)
        return finalize_event(
            UnsignedEvent(
                kind=EventKind.GIFT_WRAP,
                content=content,
                created_at=self.jittered(),
                tags=(("p", to_pubkey),),
            ),
            ephemeral.private,
            curve=self._curve,
        )

    async def wrap(
        self, plaintext: str, sender: IdentitySigner | None, recipient_pubkey: str
    ) -> GiftWraps:
        """
        Build the recipient's gift wrap and the sender's self-addressed copy.

        Both must be published: the self copy is how the sender's other
        sessions recover sent messages from relays.
        """

        sender = _require_signer(sender)
        recipient = normalize_pubkey(recipient_pubkey)
        if sender.nip44 is None:
            raise UnsupportedCipherError("nip44", "NIP-17 needs a signer with NIP-44 support")

        try:
            rumor = self.build_rumor(plaintext, sender=sender.pubkey, recipient=recipient)
            to_recipient = self.wrap_seal(await self.seal(rumor, sender, recipient), recipient)
            to_self = self.wrap_seal(await self.seal(rumor, sender, sender.pubkey), sender.pubkey)
        except PysleekError:
            raise
        except Exception as e:
            raise SigningError(f"failed to build gift wrap: {e}") from e
        return GiftWraps(recipient=to_recipient, sender=to_self)


async def build_legacy_dm(
    plaintext: str,
    sender: IdentitySigner | None,
    recipient_pubkey: str,
    *,
    created_at: int | None = None,
) -> SignedEvent:
    """Kind 4 NIP-04 direct message. Deprecated by NIP-17 but still widely read."""

    sender = _require_signer(sender)
    recipient = normalize_pubkey(recipient_pubkey)
    nip04 = sender.nip04
    if nip04 is None:
        raise UnsupportedCipherError("nip04")
    try:
        content = await nip04.encrypt(recipient, plaintext)
        return await sender.sign_event(
            UnsignedEvent(
                kind=EventKind.LEGACY_DM,
                content=content,
                created_at=created_at if created_at is not None else _now_s(),
                tags=(("p", recipient),),
            )
        )
    except PysleekError:
        raise
    except Exception as e:
        raise SigningError(f"failed to build legacy DM: {e}") from e


async def build_text_note(
    plaintext: str,
    sender: IdentitySigner | None,
    recipient_pubkey: str,
    *,
    created_at: int | None = None,
) -> SignedEvent:
    """Public kind 1 note mentioning the recipient. Not encrypted."""

    sender = _require_signer(sender)
    recipient = normalize_pubkey(recipient_pubkey)
    try:
        return await sender.sign_event(
            UnsignedEvent(
                kind=EventKind.TEXT_NOTE,
                content=plaintext,
                created_at=created_at if created_at is not None else _now_s(),
                tags=(("p", recipient),),
            )
        )
    except PysleekError:
        raise
    except Exception as e:
        raise SigningError(f"failed to sign note: {e}") from e

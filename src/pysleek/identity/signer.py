from __future__ import annotations

from typing import Literal, Protocol

from ..crypto.curve import DefaultSecp256k1Provider, Secp256k1Provider
from ..crypto.keys import KeyPair, normalize_pubkey
from ..crypto.nip04 import nip04_decrypt, nip04_encrypt
from ..crypto.nip44 import get_conversation_key, nip44_decrypt, nip44_encrypt
from ..events.serialize import finalize_event
from ..events.types import SignedEvent, UnsignedEvent
from ..exceptions import DecryptionError, SigningError

CipherProfile = Literal["nip04", "nip44"]


class PairwiseCipher(Protocol):
    async def encrypt(self, pubkey: str, plaintext: str) -> str: ...

    async def decrypt(self, pubkey: str, ciphertext: str) -> str: ...


class IdentitySigner(Protocol):
    """
    Signing identity (NIP-07 style).

    `nip04` / `nip44` are `None` when the signer cannot do that cipher profile.
    Remote or extension signers may raise any exception from their coroutines.
    """

    @property
    def pubkey(self) -> str: ...

    @property
    def nip04(self) -> PairwiseCipher | None: ...

    @property
    def nip44(self) -> PairwiseCipher | None: ...

    async def sign_event(self, event: UnsignedEvent) -> SignedEvent: ...


class LocalPairwiseCipher:
    """Pairwise cipher backed by a secret key held in process memory."""

    def __init__(
        self, private_key: bytes, *, profile: CipherProfile, curve: Secp256k1Provider
    ) -> None:
        self._private_key = private_key
        self._curve = curve
        self.profile = profile
        # NIP-44 conversation keys are symmetric and stable per counterparty.
        self._conversation_keys: dict[str, bytes] = {}

    def _conversation_key(self, pubkey: str) -> bytes:
        key = self._conversation_keys.get(pubkey)
        if key is None:
            key = get_conversation_key(self._private_key, bytes.fromhex(pubkey), curve=self._curve)
            self._conversation_keys[pubkey] = key
        return key

    async def encrypt(self, pubkey: str, plaintext: str) -> str:
        pubkey = normalize_pubkey(pubkey)
        if self.profile == "nip44":
            return nip44_encrypt(plaintext, self._conversation_key(pubkey))
        return nip04_encrypt(
            plaintext,
            private_key=self._private_key,
            public_key=bytes.fromhex(pubkey),
            curve=self._curve,
        )

    async def decrypt(self, pubkey: str, ciphertext: str) -> str:
        try:
            pubkey = normalize_pubkey(pubkey)
            if self.profile == "nip44":
                return nip44_decrypt(ciphertext, self._conversation_key(pubkey))
            return nip04_decrypt(
                ciphertext,
                private_key=self._private_key,
                public_key=bytes.fromhex(pubkey),
                curve=self._curve,
            )
        except (TypeError, ValueError) as e:
            # UnicodeDecodeError is a ValueError.
            raise DecryptionError(f"{self.profile} decrypt failed: {e}") from e


class LocalSigner:
    """
    `IdentitySigner` holding the secret key locally (nsec login).

    Either cipher profile can be switched off to mimic signers that lack it.
    """

    def __init__(
        self,
        private_key: bytes,
        *,
        nip04: bool = True,
        nip44: bool = True,
        curve: Secp256k1Provider | None = None,
    ) -> None:
        self._curve = curve or DefaultSecp256k1Provider()
        self._keys = self._curve.keypair_from_secret(private_key)
        self._nip04 = (
            LocalPairwiseCipher(private_key, profile="nip04", curve=self._curve) if nip04 else None
        )
        self._nip44 = (
            LocalPairwiseCipher(private_key, profile="nip44", curve=self._curve) if nip44 else None
        )

    @classmethod
    def generate(cls, **kwargs: bool) -> LocalSigner:
        keys = DefaultSecp256k1Provider().generate_keypair()
        return cls(keys.private, **kwargs)

    @classmethod
    def from_hex(cls, secret_hex: str, **kwargs: bool) -> LocalSigner:
        return cls(bytes.fromhex(secret_hex), **kwargs)

    @property
    def key_pair(self) -> KeyPair:
        return self._keys

    @property
    def pubkey(self) -> str:
        return self._keys.pubkey

    @property
    def nip04(self) -> LocalPairwiseCipher | None:
        return self._nip04

    @property
    def nip44(self) -> LocalPairwiseCipher | None:
        return self._nip44

    async def sign_event(self, event: UnsignedEvent) -> SignedEvent:
        try:
            return finalize_event(event, self._keys.private, curve=self._curve)
        except (TypeError, ValueError) as e:
            raise SigningError(f"failed to sign event: {e}") from e

    def __repr__(self) -> str:
        return f"LocalSigner(pubkey={self.pubkey!r})"

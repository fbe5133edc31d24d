from __future__ import annotations

from dataclasses import dataclass

from .secp256k1 import is_valid_xonly_pubkey


@dataclass(frozen=True, slots=True)
class KeyPair:
    """secp256k1 key pair. `public` is the 32-byte x-only key."""

    public: bytes
    private: bytes

    @property
    def pubkey(self) -> str:
        return self.public.hex()

    def __repr__(self) -> str:
        return f"KeyPair(pubkey={self.pubkey!r})"


def normalize_pubkey(pubkey: str) -> str:
    """Validate a hex x-only public key (length, hex, on the curve) and return it lower-cased."""

    if not isinstance(pubkey, str) or len(pubkey) != 64:
        raise ValueError(f"invalid pubkey: {pubkey!r}")
    try:
        raw = bytes.fromhex(pubkey)
    except ValueError as e:
        raise ValueError(f"invalid pubkey: {pubkey!r}") from e
    if not is_valid_xonly_pubkey(raw):
        raise ValueError(f"pubkey is not a point on secp256k1: {pubkey!r}")
    return pubkey.lower()

from __future__ import annotations

from .curve import DefaultSecp256k1Provider, Secp256k1Provider
from .hkdf import hkdf_expand, hkdf_extract, hmac_sha256, sha256
from .keys import KeyPair, normalize_pubkey
from .nip04 import nip04_decrypt, nip04_encrypt
from .nip44 import get_conversation_key, nip44_decrypt, nip44_encrypt
from .secp256k1 import schnorr_sign, schnorr_verify, xonly_pubkey

__all__ = [
    "DefaultSecp256k1Provider",
    "KeyPair",
    "Secp256k1Provider",
    "get_conversation_key",
    "hkdf_expand",
    "hkdf_extract",
    "hmac_sha256",
    "nip04_decrypt",
    "nip04_encrypt",
    "nip44_decrypt",
    "nip44_encrypt",
    "normalize_pubkey",
    "schnorr_sign",
    "schnorr_verify",
    "sha256",
    "xonly_pubkey",
]

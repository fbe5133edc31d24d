"""
NIP-44 (version 2) pairwise cipher.

- conversation key: HKDF-extract(salt="nip44-v2", ikm=ECDH x)
- message keys: HKDF-expand(conversation key, info=nonce, 76) split into
  ChaCha20 key (32) / ChaCha20 nonce (12) / HMAC key (32)
- plaintext is length-prefixed (u16 big endian) and zero-padded to a
  power-of-two-ish bucket before encryption
- payload: base64(version || nonce || ciphertext || HMAC-SHA256(nonce || ciphertext))
"""

from __future__ import annotations

import hmac
import secrets

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

from ..constants import NIP44_SALT, NIP44_VERSION
from ..util.bytes import b64decode, b64encode
from .curve import DefaultSecp256k1Provider, Secp256k1Provider
from .hkdf import hkdf_expand, hkdf_extract, hmac_sha256

MIN_PLAINTEXT_SIZE = 1
MAX_PLAINTEXT_SIZE = 65535

_NONCE_LEN = 32
_MAC_LEN = 32


def get_conversation_key(
    private_key: bytes, public_key: bytes, *, curve: Secp256k1Provider | None = None
) -> bytes:
    curve = curve or DefaultSecp256k1Provider()
    return hkdf_extract(ikm=curve.shared_x(private_key, public_key), salt=NIP44_SALT)


def _message_keys(conversation_key: bytes, nonce: bytes) -> tuple[bytes, bytes, bytes]:
    if len(conversation_key) != 32:
        raise ValueError("invalid conversation key length")
    if len(nonce) != _NONCE_LEN:
        raise ValueError("invalid nonce length")
    keys = hkdf_expand(prk=conversation_key, info=nonce, length=76)
    return keys[0:32], keys[32:44], keys[44:76]


def calc_padded_len(unpadded_len: int) -> int:
    if unpadded_len <= 0:
        raise ValueError("expected positive length")
    if unpadded_len <= 32:
        return 32
    next_power = 1 << (unpadded_len - 1).bit_length()
    chunk = 32 if next_power <= 256 else next_power // 8
    return chunk * (((unpadded_len - 1) // chunk) + 1)


def _pad(plaintext: str) -> bytes:
    raw = plaintext.encode("utf-8")
    n = len(raw)
    if n < MIN_PLAINTEXT_SIZE or n > MAX_PLAINTEXT_SIZE:
        raise ValueError("invalid plaintext length")
    return n.to_bytes(2, "big") + raw + b"\x00" * (calc_padded_len(n) - n)


def _unpad(padded: bytes) -> str:
    n = int.from_bytes(padded[:2], "big")
    raw = padded[2 : 2 + n]
    if (
        n < MIN_PLAINTEXT_SIZE
        or n > MAX_PLAINTEXT_SIZE
        or len(raw) != n
        or len(padded) != 2 + calc_padded_len(n)
    ):
        raise ValueError("invalid padding")
    return raw.decode("utf-8")


def _chacha20(key: bytes, nonce: bytes, data: bytes) -> bytes:
    # `cryptography` takes a 16-byte nonce: 4-byte little-endian counter || 12-byte nonce.
    cipher = Cipher(algorithms.ChaCha20(key, b"\x00\x00\x00\x00" + nonce), mode=None)
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def nip44_encrypt(plaintext: str, conversation_key: bytes, *, nonce: bytes | None = None) -> str:
    nonce = nonce or secrets.token_bytes(_NONCE_LEN)
    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    ciphertext = _chacha20(chacha_key, chacha_nonce, _pad(plaintext))
    mac = hmac_sha256(hmac_key, nonce + ciphertext)
    return b64encode(bytes([NIP44_VERSION]) + nonce + ciphertext + mac)


def _decode_payload(payload: str) -> tuple[bytes, bytes, bytes]:
    plen = len(payload)
    if plen == 0 or payload[0] == "#":
        raise ValueError("unknown NIP-44 encryption version")
    if plen < 132 or plen > 87472:
        raise ValueError(f"invalid NIP-44 payload length: {plen}")

    data = b64decode(payload)
    dlen = len(data)
    if dlen < 99 or dlen > 65603:
        raise ValueError(f"invalid NIP-44 data length: {dlen}")
    if data[0] != NIP44_VERSION:
        raise ValueError(f"unknown NIP-44 encryption version: {data[0]}")

    nonce = data[1 : 1 + _NONCE_LEN]
    ciphertext = data[1 + _NONCE_LEN : dlen - _MAC_LEN]
    mac = data[dlen - _MAC_LEN :]
    return nonce, ciphertext, mac


def nip44_decrypt(payload: str, conversation_key: bytes) -> str:
    nonce, ciphertext, mac = _decode_payload(payload)
    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    expected = hmac_sha256(hmac_key, nonce + ciphertext)
    if not hmac.compare_digest(expected, mac):
        raise ValueError("invalid NIP-44 MAC")
    return _unpad(_chacha20(chacha_key, chacha_nonce, ciphertext))

from __future__ import annotations

import hashlib
import hmac


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hmac_sha256(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha256).digest()


def hkdf_extract(*, ikm: bytes, salt: bytes) -> bytes:
    """HKDF-SHA256 extract step (RFC 5869)."""

    return hmac_sha256(salt, ikm)


def hkdf_expand(*, prk: bytes, info: bytes, length: int) -> bytes:
    """
    HKDF-SHA256 expand step (RFC 5869).

    NIP-44 calls extract and expand separately: the conversation key is the
    PRK and the per-message nonce is the info.
    """

    if length <= 0:
        raise ValueError("length must be > 0")
    if length > 255 * 32:
        raise ValueError("length too large for HKDF-SHA256")

    t = b""
    okm = b""
    counter = 1
    while len(okm) < length:
        t = hmac_sha256(prk, t + info + bytes([counter]))
        okm += t
        counter += 1
    return okm[:length]

"""
NIP-04 legacy pairwise cipher.

The AES key is the raw ECDH x coordinate (no KDF). Payloads are
`base64(ciphertext) + "?iv=" + base64(iv)`. There is no authentication tag, so
a wrong key usually surfaces as a padding or UTF-8 error.
"""

from __future__ import annotations

import secrets

from ..util.bytes import b64decode, b64encode
from .aes import aes_decrypt_cbc_pkcs7, aes_encrypt_cbc_pkcs7
from .curve import DefaultSecp256k1Provider, Secp256k1Provider

_IV_SEPARATOR = "?iv="


def nip04_encrypt(
    plaintext: str,
    *,
    private_key: bytes,
    public_key: bytes,
    iv: bytes | None = None,
    curve: Secp256k1Provider | None = None,
) -> str:
    curve = curve or DefaultSecp256k1Provider()
    key = curve.shared_x(private_key, public_key)
    iv = iv or secrets.token_bytes(16)
    ct = aes_encrypt_cbc_pkcs7(plaintext.encode("utf-8"), key=key, iv=iv)
    return f"{b64encode(ct)}{_IV_SEPARATOR}{b64encode(iv)}"


def nip04_decrypt(
    payload: str,
    *,
    private_key: bytes,
    public_key: bytes,
    curve: Secp256k1Provider | None = None,
) -> str:
    ct_b64, sep, iv_b64 = payload.partition(_IV_SEPARATOR)
    if not sep or not ct_b64 or not iv_b64:
        raise ValueError("invalid NIP-04 payload")

    curve = curve or DefaultSecp256k1Provider()
    key = curve.shared_x(private_key, public_key)
    pt = aes_decrypt_cbc_pkcs7(b64decode(ct_b64), key=key, iv=b64decode(iv_b64))
    return pt.decode("utf-8")

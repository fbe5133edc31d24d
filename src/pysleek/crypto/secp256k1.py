"""
BIP-340 Schnorr signatures over secp256k1, as used for Nostr event signatures.

Public keys are 32-byte x-only encodings (the point with the even y coordinate).
Signing follows the BIP-340 reference algorithm, including the auxiliary
randomness mix-in, so signatures match other Nostr implementations bit for bit
when the same `aux_rand` is supplied.

This module is a pure-Python implementation on top of the stdlib. ECDH is
handled separately in `curve.py` via `cryptography`.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

# Field prime.
_P = 2**256 - 2**32 - 977

# Group order.
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_G_X = 0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798
_G_Y = 0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8


@dataclass(frozen=True, slots=True)
class _JacPoint:
    # Jacobian coordinates (X:Y:Z) with x=X/Z^2, y=Y/Z^3. Z == 0 is infinity.
    X: int
    Y: int
    Z: int


_INFINITY = _JacPoint(X=0, Y=1, Z=0)
_G = _JacPoint(X=_G_X, Y=_G_Y, Z=1)


def _modp(x: int) -> int:
    return x % _P


def _point_double(p: _JacPoint) -> _JacPoint:
    if p.Z == 0 or p.Y == 0:
        return _INFINITY

    a = _modp(p.X * p.X)
    b = _modp(p.Y * p.Y)
    c = _modp(b * b)
    d = _modp(2 * ((p.X + b) * (p.X + b) - a - c))
    e = _modp(3 * a)
    f = _modp(e * e)

    x3 = _modp(f - 2 * d)
    y3 = _modp(e * (d - x3) - 8 * c)
    z3 = _modp(2 * p.Y * p.Z)
    return _JacPoint(X=x3, Y=y3, Z=z3)


def _point_add(p: _JacPoint, q: _JacPoint) -> _JacPoint:
    if p.Z == 0:
        return q
    if q.Z == 0:
        return p

    z1z1 = _modp(p.Z * p.Z)
    z2z2 = _modp(q.Z * q.Z)
    u1 = _modp(p.X * z2z2)
    u2 = _modp(q.X * z1z1)
    s1 = _modp(p.Y * q.Z * z2z2)
    s2 = _modp(q.Y * p.Z * z1z1)

    if u1 == u2:
        if s1 != s2:
            return _INFINITY
        return _point_double(p)

    h = _modp(u2 - u1)
    r = _modp(s2 - s1)
    h2 = _modp(h * h)
    h3 = _modp(h * h2)
    u1h2 = _modp(u1 * h2)

    x3 = _modp(r * r - h3 - 2 * u1h2)
    y3 = _modp(r * (u1h2 - x3) - s1 * h3)
    z3 = _modp(h * p.Z * q.Z)
    return _JacPoint(X=x3, Y=y3, Z=z3)


def _scalar_mult(p: _JacPoint, s: int) -> _JacPoint:
    # Double-and-add. Not constant-time.
    s = int(s) % _N
    r = _INFINITY
    a = p
    while s:
        if s & 1:
            r = _point_add(r, a)
        a = _point_double(a)
        s >>= 1
    return r


def _to_affine(p: _JacPoint) -> tuple[int, int]:
    if p.Z == 0:
        raise ValueError("point at infinity has no affine form")
    zinv = pow(p.Z, _P - 2, _P)
    zinv2 = _modp(zinv * zinv)
    return _modp(p.X * zinv2), _modp(p.Y * zinv2 * zinv)


def _lift_x(x: int) -> _JacPoint:
    """Return the point with x coordinate `x` and an even y (BIP-340 `lift_x`)."""

    if x >= _P:
        raise ValueError("x coordinate out of range")
    y_sq = _modp(pow(x, 3, _P) + 7)
    y = pow(y_sq, (_P + 1) // 4, _P)
    if pow(y, 2, _P) != y_sq:
        raise ValueError("x coordinate is not on the curve")
    return _JacPoint(X=x, Y=y if y % 2 == 0 else _P - y, Z=1)


def _bytes_to_int(b: bytes) -> int:
    return int.from_bytes(b, "big", signed=False)


def _int_to_bytes(x: int) -> bytes:
    return int(x).to_bytes(32, "big", signed=False)


def tagged_hash(tag: str, msg: bytes) -> bytes:
    tag_hash = hashlib.sha256(tag.encode("utf-8")).digest()
    return hashlib.sha256(tag_hash + tag_hash + msg).digest()


def _secret_scalar(secret_key: bytes) -> int:
    if len(secret_key) != 32:
        raise ValueError("expected 32-byte secret key")
    d = _bytes_to_int(secret_key)
    if not 0 < d < _N:
        raise ValueError("secret key out of range")
    return d


def xonly_pubkey(secret_key: bytes) -> bytes:
    """Derive the 32-byte x-only public key for `secret_key`."""

    x, _ = _to_affine(_scalar_mult(_G, _secret_scalar(secret_key)))
    return _int_to_bytes(x)


def is_valid_xonly_pubkey(pubkey: bytes) -> bool:
    if len(pubkey) != 32:
        return False
    try:
        _lift_x(_bytes_to_int(pubkey))
    except ValueError:
        return False
    return True


def schnorr_sign(secret_key: bytes, message: bytes, *, aux_rand: bytes | None = None) -> bytes:
    """
    Sign a 32-byte message digest. Returns a 64-byte BIP-340 signature.

    `aux_rand` defaults to 32 fresh random bytes.
    """

    if len(message) != 32:
        raise ValueError("message must be a 32-byte digest")
    if aux_rand is None:
        aux_rand = secrets.token_bytes(32)
    if len(aux_rand) != 32:
        raise ValueError("aux_rand must be 32 bytes")

    d0 = _secret_scalar(secret_key)
    px, py = _to_affine(_scalar_mult(_G, d0))
    d = d0 if py % 2 == 0 else _N - d0
    p_bytes = _int_to_bytes(px)

    t = bytes(a ^ b for a, b in zip(_int_to_bytes(d), tagged_hash("BIP0340/aux", aux_rand)))
    k0 = _bytes_to_int(tagged_hash("BIP0340/nonce", t + p_bytes + message)) % _N
    if k0 == 0:
        raise ValueError("nonce derivation produced zero")

    rx, ry = _to_affine(_scalar_mult(_G, k0))
    k = k0 if ry % 2 == 0 else _N - k0
    r_bytes = _int_to_bytes(rx)

    e = _bytes_to_int(tagged_hash("BIP0340/challenge", r_bytes + p_bytes + message)) % _N
    sig = r_bytes + _int_to_bytes((k + e * d) % _N)

    if not schnorr_verify(p_bytes, message, sig):
        raise ValueError("produced signature does not verify")
    return sig


def schnorr_verify(pubkey: bytes, message: bytes, signature: bytes) -> bool:
    """Verify a BIP-340 signature. Never raises."""

    try:
        if len(pubkey) != 32 or len(message) != 32 or len(signature) != 64:
            return False

        pk = _lift_x(_bytes_to_int(pubkey))
        r = _bytes_to_int(signature[:32])
        s = _bytes_to_int(signature[32:])
        if r >= _P or s >= _N:
            return False

        e = _bytes_to_int(tagged_hash("BIP0340/challenge", signature[:32] + pubkey + message)) % _N

        # R = s*G - e*P
        neg_e_p = _scalar_mult(pk, _N - e) if e else _INFINITY
        big_r = _point_add(_scalar_mult(_G, s), neg_e_p)
        if big_r.Z == 0:
            return False
        rx, ry = _to_affine(big_r)
        return ry % 2 == 0 and rx == r
    except (TypeError, ValueError):
        return False

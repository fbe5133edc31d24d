from __future__ import annotations

from typing import Protocol

from cryptography.hazmat.primitives.asymmetric import ec

from .keys import KeyPair
from .secp256k1 import schnorr_sign, schnorr_verify, xonly_pubkey


class Secp256k1Provider(Protocol):
    def generate_keypair(self) -> KeyPair: ...

    def keypair_from_secret(self, private_key: bytes) -> KeyPair: ...

    def shared_x(self, private_key: bytes, public_key: bytes) -> bytes: ...

    def sign(self, private_key: bytes, message: bytes) -> bytes: ...

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool: ...


class DefaultSecp256k1Provider:
    """
    secp256k1 provider via `cryptography` (key generation and ECDH).

    Schnorr signatures are implemented in `secp256k1.py` since `cryptography`
    only exposes ECDSA for this curve.
    """

    def generate_keypair(self) -> KeyPair:
        priv = ec.generate_private_key(ec.SECP256K1())
        private = priv.private_numbers().private_value.to_bytes(32, "big")
        return KeyPair(
            public=priv.public_key().public_numbers().x.to_bytes(32, "big"),
            private=private,
        )

    def keypair_from_secret(self, private_key: bytes) -> KeyPair:
        return KeyPair(public=xonly_pubkey(private_key), private=bytes(private_key))

    def shared_x(self, private_key: bytes, public_key: bytes) -> bytes:
        """
        Unhashed x coordinate of the ECDH point.

        Both NIP-04 and NIP-44 derive their keys from this value. The x-only
        public key is lifted to the even-y point (compressed prefix 0x02).
        """

        if len(public_key) != 32:
            raise ValueError("expected 32-byte x-only public key")
        priv = ec.derive_private_key(int.from_bytes(private_key, "big"), ec.SECP256K1())
        pub = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), b"\x02" + public_key)
        return priv.exchange(ec.ECDH(), pub)

    def sign(self, private_key: bytes, message: bytes) -> bytes:
        return schnorr_sign(private_key, message)

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        return schnorr_verify(public_key, message, signature)

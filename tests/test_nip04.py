from __future__ import annotations

import pytest

from pysleek.crypto import DefaultSecp256k1Provider, nip04_decrypt, nip04_encrypt


def test_nip04_roundtrip_both_directions() -> None:
    curve = DefaultSecp256k1Provider()
    alice = curve.generate_keypair()
    bob = curve.generate_keypair()

    payload = nip04_encrypt("hello bob", private_key=alice.private, public_key=bob.public)
    ct, sep, iv = payload.partition("?iv=")

    assert sep == "?iv="
    assert ct and iv
    assert nip04_decrypt(payload, private_key=bob.private, public_key=alice.public) == "hello bob"
    assert nip04_decrypt(payload, private_key=alice.private, public_key=bob.public) == "hello bob"


def test_nip04_fixed_iv_is_deterministic() -> None:
    curve = DefaultSecp256k1Provider()
    alice = curve.generate_keypair()
    bob = curve.generate_keypair()
    iv = bytes(range(16))

    p1 = nip04_encrypt("x", private_key=alice.private, public_key=bob.public, iv=iv)
    p2 = nip04_encrypt("x", private_key=alice.private, public_key=bob.public, iv=iv)

    assert p1 == p2
    assert p1.endswith("?iv=AAECAwQFBgcICQoLDA0ODw==")


@pytest.mark.parametrize("payload", ["", "no-separator", "?iv=AAAA", "abc?iv=", "!!!?iv=!!!"])
def test_nip04_rejects_malformed_payloads(payload: str) -> None:
    curve = DefaultSecp256k1Provider()
    a = curve.generate_keypair()
    b = curve.generate_keypair()
    with pytest.raises(ValueError):
        nip04_decrypt(payload, private_key=a.private, public_key=b.public)

from __future__ import annotations

from ..crypto.curve import DefaultSecp256k1Provider, Secp256k1Provider
from ..crypto.hkdf import sha256
from ..util import json as nostrjson
from .types import SignedEvent, Tags, UnsignedEvent


def serialize_event(*, pubkey: str, created_at: int, kind: int, tags: Tags, content: str) -> str:
    """NIP-01 canonical serialization: `[0, pubkey, created_at, kind, tags, content]`."""

    payload = [0, pubkey, int(created_at), int(kind), [list(t) for t in tags], content]
    return nostrjson.dumps(payload)


def compute_event_id(event: UnsignedEvent | SignedEvent, *, pubkey: str | None = None) -> str:
    pk = pubkey or event.pubkey
    if not pk:
        raise ValueError("event id requires a pubkey")
    data = serialize_event(
        pubkey=pk,
        created_at=event.created_at,
        kind=event.kind,
        tags=event.tags,
        content=event.content,
    )
    return sha256(data.encode("utf-8")).hex()


def finalize_event(
    event: UnsignedEvent, private_key: bytes, *, curve: Secp256k1Provider | None = None
) -> SignedEvent:
    """Set the pubkey, compute the id and Schnorr-sign `event` with `private_key`."""

    curve = curve or DefaultSecp256k1Provider()
    pubkey = curve.keypair_from_secret(private_key).pubkey
    event_id = compute_event_id(event, pubkey=pubkey)
    sig = curve.sign(private_key, bytes.fromhex(event_id))
    return SignedEvent(
        id=event_id,
        pubkey=pubkey,
        kind=int(event.kind),
        created_at=event.created_at,
        tags=event.tags,
        content=event.content,
        sig=sig.hex(),
    )


def verify_event(event: SignedEvent, *, curve: Secp256k1Provider | None = None) -> bool:
    """Check the id hash and the signature. Never raises."""

    try:
        if compute_event_id(event) != event.id:
            return False
        curve = curve or DefaultSecp256k1Provider()
        return curve.verify(
            bytes.fromhex(event.pubkey), bytes.fromhex(event.id), bytes.fromhex(event.sig)
        )
    except (TypeError, ValueError):
        return False

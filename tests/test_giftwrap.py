from __future__ import annotations

import threading

import pytest

from pysleek.constants import ENCRYPTED_SENTINEL, TIMESTAMP_JITTER_S
from pysleek.events import EventKind, SignedEvent, UnsignedEvent, verify_event
from pysleek.exceptions import AuthenticationMissingError, SigningError, UnsupportedCipherError
from pysleek.identity import LocalSigner
from pysleek.messages import CryptoCodec, GiftWrapBuilder, build_legacy_dm, build_text_note
from pysleek.messages import codec as codec_module

_NOW = 1_700_000_000


class BrokenSigner:
    def __init__(self, inner: LocalSigner) -> None:
        self.inner = inner

    @property
    def pubkey(self) -> str:
        return self.inner.pubkey

    @property
    def nip04(self):
        return self.inner.nip04

    @property
    def nip44(self):
        return self.inner.nip44

    async def sign_event(self, event: UnsignedEvent) -> SignedEvent:
        raise RuntimeError("signer went away")


@pytest.mark.asyncio
async def test_wrap_round_trips_for_recipient_and_sender() -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()
    wraps = await GiftWrapBuilder().wrap("hello bob", alice, bob.pubkey)
    codec = CryptoCodec()

    assert await codec.decrypt(wraps.recipient, bob) == "hello bob"
    assert await codec.decrypt(wraps.sender, alice) == "hello bob"

    rumor = await codec.unwrap(wraps.recipient, bob)
    assert rumor.sender == alice.pubkey
    assert rumor.recipients == [bob.pubkey]
    assert rumor.seal_id is not None

    self_rumor = await codec.unwrap(wraps.sender, alice)
    assert self_rumor.sender == alice.pubkey
    assert self_rumor.content == "hello bob"


@pytest.mark.asyncio
async def test_envelopes_are_unlinkable_and_signed() -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()
    wraps = await GiftWrapBuilder().wrap("hi", alice, bob.pubkey)
    r, s = wraps.recipient, wraps.sender

    assert r.kind == s.kind == EventKind.GIFT_WRAP
    assert r.tag("p") == bob.pubkey
    assert s.tag("p") == alice.pubkey
    assert r.id != s.id
    assert r.pubkey != s.pubkey
    assert alice.pubkey not in (r.pubkey, s.pubkey)
    assert verify_event(r)
    assert verify_event(s)


@pytest.mark.asyncio
async def test_third_party_cannot_open_wrap() -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()
    carol = LocalSigner.generate()
    wraps = await GiftWrapBuilder().wrap("private", alice, bob.pubkey)

    assert await CryptoCodec().decrypt(wraps.recipient, carol) == ENCRYPTED_SENTINEL
    assert await CryptoCodec().decrypt(wraps.sender, bob) == ENCRYPTED_SENTINEL


@pytest.mark.asyncio
async def test_timestamps_are_jittered_into_the_past() -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()
    builder = GiftWrapBuilder(clock=lambda: _NOW)

    rumor = builder.build_rumor("x", sender=alice.pubkey, recipient=bob.pubkey)
    assert rumor["created_at"] == _NOW
    assert rumor["kind"] == 14

    for _ in range(3):
        wraps = await builder.wrap("x", alice, bob.pubkey)
        for ev in wraps:
            assert _NOW - TIMESTAMP_JITTER_S < ev.created_at <= _NOW

    seal = await builder.seal(rumor, alice, bob.pubkey)
    assert seal.kind == EventKind.SEAL
    assert seal.pubkey == alice.pubkey
    assert seal.tags == ()
    assert _NOW - TIMESTAMP_JITTER_S < seal.created_at <= _NOW

    assert GiftWrapBuilder(clock=lambda: _NOW, max_jitter_s=0).jittered() == _NOW


@pytest.mark.asyncio
async def test_rumor_carries_real_timestamp() -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()
    wraps = await GiftWrapBuilder(clock=lambda: _NOW).wrap("x", alice, bob.pubkey)

    rumor = await CryptoCodec().unwrap(wraps.recipient, bob)
    assert rumor.created_at == _NOW


@pytest.mark.asyncio
async def test_wrap_errors() -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()
    builder = GiftWrapBuilder()

    with pytest.raises(AuthenticationMissingError):
        await builder.wrap("x", None, bob.pubkey)
    with pytest.raises(UnsupportedCipherError):
        await builder.wrap("x", LocalSigner(alice.key_pair.private, nip44=False), bob.pubkey)
    with pytest.raises(SigningError):
        await builder.wrap("x", BrokenSigner(alice), bob.pubkey)
    with pytest.raises(ValueError):
        await builder.wrap("x", alice, "not-a-pubkey")


@pytest.mark.asyncio
async def test_build_legacy_dm_and_text_note() -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()

    dm = await build_legacy_dm("legacy", alice, bob.pubkey.upper(), created_at=42)
    assert dm.kind == EventKind.LEGACY_DM
    assert dm.created_at == 42
    assert dm.tag("p") == bob.pubkey
    assert dm.content != "legacy"
    assert "?iv=" in dm.content
    assert verify_event(dm)

    note = await build_text_note("public", alice, bob.pubkey)
    assert note.kind == EventKind.TEXT_NOTE
    assert note.content == "public"
    assert note.tag("p") == bob.pubkey

    with pytest.raises(AuthenticationMissingError):
        await build_legacy_dm("x", None, bob.pubkey)
    with pytest.raises(UnsupportedCipherError):
        await build_legacy_dm("x", LocalSigner(alice.key_pair.private, nip04=False), bob.pubkey)
    with pytest.raises(SigningError):
        await build_text_note("x", BrokenSigner(alice), bob.pubkey)


@pytest.mark.asyncio
async def test_seal_signature_is_checked_off_the_event_loop(monkeypatch) -> None:
    alice = LocalSigner.generate()
    bob = LocalSigner.generate()
    wraps = await GiftWrapBuilder().wrap("threaded", alice, bob.pubkey)
    loop_thread = threading.get_ident()
    threads: list[int] = []

    def recording_verify(event: SignedEvent) -> bool:
        threads.append(threading.get_ident())
        return verify_event(event)

    monkeypatch.setattr(codec_module, "verify_event", recording_verify)
    rumor = await CryptoCodec().unwrap(wraps.recipient, bob)

    assert rumor.content == "threaded"
    assert threads and loop_thread not in threads

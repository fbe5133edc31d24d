from __future__ import annotations

import asyncio

import pytest

from pysleek import ClientConfig, DirectMessageClient
from pysleek.constants import ENCRYPTED_SENTINEL
from pysleek.events import EventKind
from pysleek.exceptions import AuthenticationMissingError
from pysleek.identity import LocalSigner
from pysleek.messages import CryptoCodec
from pysleek.store import InMemoryEventStore


def _pair() -> tuple[InMemoryEventStore, DirectMessageClient, DirectMessageClient]:
    store = InMemoryEventStore()
    alice = DirectMessageClient(signer=LocalSigner.generate(), store=store)
    bob = DirectMessageClient(signer=LocalSigner.generate(), store=store)
    return store, alice, bob


@pytest.mark.asyncio
async def test_legacy_conversation_roundtrip() -> None:
    _store, alice, bob = _pair()
    assert alice.pubkey and bob.pubkey

    await alice.send_message(bob.pubkey, "  hi bob  ", scheme="nip04")
    await bob.send_message(alice.pubkey, "hi alice", scheme="nip04")

    messages = await bob.conversation(alice.pubkey)
    assert len(messages) == 2
    assert all(m.decrypted_content is None for m in messages)

    changed = await bob.decrypt_messages(messages, alice.pubkey)
    assert changed == 2
    assert sorted(m.decrypted_content for m in messages) == ["hi alice", "hi bob"]
    assert {m.is_from_me for m in messages} == {True, False}
    assert await bob.decrypt_messages(messages, alice.pubkey) == 0


@pytest.mark.asyncio
async def test_gift_wrapped_send_publishes_both_copies() -> None:
    store, alice, bob = _pair()
    assert alice.pubkey and bob.pubkey

    event = await alice.send_message(bob.pubkey, "sealed")

    assert len(store.published) == 2
    assert event is store.published[0] or event is store.published[1]
    assert {e.kind for e in store.published} == {EventKind.GIFT_WRAP}
    assert {e.tag("p") for e in store.published} == {alice.pubkey, bob.pubkey}
    assert event.tag("p") == bob.pubkey

    # The inbox sees the wrap under its one-time key until decrypted.
    [contact] = await bob.recent_contacts()
    assert contact.pubkey == event.pubkey
    assert await bob.codec.decrypt(contact.last_event, bob.signer) == "sealed"
    assert await CryptoCodec().decrypt(event, alice.signer) == ENCRYPTED_SENTINEL


@pytest.mark.asyncio
async def test_plain_send_and_validation() -> None:
    store, alice, bob = _pair()
    assert bob.pubkey

    note = await alice.send_message(bob.pubkey, "public", scheme="plain")
    assert note.kind == EventKind.TEXT_NOTE
    assert store.published == [note]

    with pytest.raises(ValueError):
        await alice.send_message(bob.pubkey, "   ")
    with pytest.raises(ValueError):
        await alice.send_message(bob.pubkey, "x", scheme="carrier-pigeon")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_logged_out_client_is_read_only() -> None:
    store = InMemoryEventStore()
    client = DirectMessageClient(signer=None, store=store)

    assert not client.is_authenticated
    assert client.pubkey is None
    assert await client.conversation("22" * 32) == []
    assert await client.recent_contacts() == []
    with pytest.raises(AuthenticationMissingError):
        await client.send_message("22" * 32, "x")
    with pytest.raises(AuthenticationMissingError):
        await client.mark_read("22" * 32)


@pytest.mark.asyncio
async def test_recent_contacts_and_unread() -> None:
    _store, alice, bob = _pair()
    assert alice.pubkey and bob.pubkey

    await alice.send_message(bob.pubkey, "one", scheme="nip04")
    contacts = await bob.recent_contacts()
    assert [c.pubkey for c in contacts] == [alice.pubkey]
    assert bob.unread_contacts(contacts) == [alice.pubkey]

    await bob.mark_read(alice.pubkey, contacts[0].timestamp)
    assert bob.unread_contacts(contacts) == []

    await bob.mark_all_read([alice.pubkey])
    assert bob.read_state.get_last_seen(alice.pubkey) is not None


@pytest.mark.asyncio
async def test_pollers_emit_updates() -> None:
    store = InMemoryEventStore()
    cfg = ClientConfig(conversation_poll_interval_s=0.01, contacts_poll_interval_s=0.01)
    alice = DirectMessageClient(signer=LocalSigner.generate(), store=store, config=cfg)
    bob = DirectMessageClient(signer=LocalSigner.generate(), store=store, config=cfg)
    assert alice.pubkey and bob.pubkey
    await alice.send_message(bob.pubkey, "poll me", scheme="nip04")

    conv: asyncio.Future[object] = asyncio.get_running_loop().create_future()
    contacts: asyncio.Future[object] = asyncio.get_running_loop().create_future()

    def on_conv(contact: str, messages: list) -> None:
        if not conv.done():
            conv.set_result((contact, messages))

    def on_contacts(items: list) -> None:
        if not contacts.done():
            contacts.set_result(items)

    bob.on("conversation.update", on_conv)
    bob.on("contacts.update", on_contacts)
    t1 = bob.poll_conversation(alice.pubkey)
    t2 = bob.poll_contacts()
    assert bob.poll_contacts() is t2

    contact, messages = await asyncio.wait_for(conv, timeout=10)
    assert contact == alice.pubkey
    assert [m.decrypted_content for m in messages] == ["poll me"]
    items = await asyncio.wait_for(contacts, timeout=10)
    assert [c.pubkey for c in items] == [alice.pubkey]
    assert bob.read_state.loaded

    await bob.close()
    assert t1.done() and t2.done()


@pytest.mark.asyncio
async def test_from_key_folder(tmp_path) -> None:
    client, keys = await DirectMessageClient.from_key_folder(tmp_path, config=ClientConfig(relays=[]))
    try:
        assert client.pubkey == keys.keys.pubkey
        assert client.is_authenticated
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_empty_injected_store_is_kept() -> None:
    store = InMemoryEventStore()
    assert len(store) == 0
    client = DirectMessageClient(signer=LocalSigner.generate(), store=store)
    assert client.pubkey

    assert client.store is store
    await client.send_message(client.pubkey, "note to self", scheme="nip04")
    assert len(store.published) == 1
    await client.mark_read(client.pubkey)
    assert len(store.published) == 2
    await client.close()

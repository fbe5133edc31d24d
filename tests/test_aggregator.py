from __future__ import annotations

from pysleek.events import SignedEvent
from pysleek.messages import ChatMessage, ConversationAggregator, Direction, EncryptionScheme

ME = "11" * 32
X = "22" * 32
Y = "33" * 32

_ids = iter(range(1, 10_000))


def _ev(pubkey: str, kind: int, created_at: int, *, to: str | None = None, content: str = "c") -> SignedEvent:
    return SignedEvent(
        id=f"{next(_ids):064x}",
        pubkey=pubkey,
        kind=kind,
        created_at=created_at,
        tags=(("p", to),) if to else (),
        content=content,
        sig="00" * 64,
    )


def test_conversation_filters_cover_both_directions() -> None:
    filters = ConversationAggregator().conversation_filters(ME, X, limit=10)

    assert [f.to_dict() for f in filters] == [
        {"kinds": [4, 1059, 6], "authors": [ME], "#p": [X], "limit": 10},
        {"kinds": [4, 1059, 6], "authors": [X], "#p": [ME], "limit": 10},
    ]


def test_inbox_filters() -> None:
    filters = ConversationAggregator().inbox_filters(ME)

    assert [f.to_dict() for f in filters] == [
        {"kinds": [4], "authors": [ME], "limit": 50},
        {"kinds": [4], "#p": [ME], "limit": 50},
        {"kinds": [1059], "#p": [ME], "limit": 50},
    ]


def test_timeline_is_sorted_deduplicated_and_classified() -> None:
    e1 = _ev(X, 4, 300, to=ME)
    e2 = _ev(ME, 4, 100, to=X)
    e3 = _ev("44" * 32, 1059, 200, to=ME)
    e4 = _ev(X, 6, 250, to=ME, content='{"kind":1}')

    timeline = ConversationAggregator().timeline([e1, e2, e3, e4, e1, e3], ME)

    assert [m.id for m in timeline] == [e2.id, e3.id, e4.id, e1.id]
    assert [m.timestamp for m in timeline] == [100, 200, 250, 300]
    assert timeline[0].direction is Direction.FROM_ME
    assert timeline[-1].direction is Direction.FROM_CONTACT
    assert [m.scheme for m in timeline] == [
        EncryptionScheme.LEGACY,
        EncryptionScheme.GIFTWRAP,
        EncryptionScheme.NONE,
        EncryptionScheme.LEGACY,
    ]
    assert all(m.decrypted_content is None for m in timeline)


def test_timeline_orders_equal_timestamps_by_id() -> None:
    a = _ev(X, 4, 100, to=ME)
    b = _ev(X, 4, 100, to=ME)

    timeline = ConversationAggregator().timeline([b, a], ME)
    assert [m.id for m in timeline] == sorted([a.id, b.id])


def test_contacts_latest_per_counterparty_newest_first() -> None:
    events = [
        _ev(X, 4, 100, to=ME),
        _ev(ME, 4, 200, to=X),
        _ev(Y, 4, 150, to=ME),
    ]

    contacts = ConversationAggregator().contacts(events, ME)

    assert [(c.pubkey, c.timestamp) for c in contacts] == [(X, 200), (Y, 150)]
    assert contacts[0].last_event is events[1]


def test_contacts_are_capped_and_skip_self() -> None:
    events = [_ev(f"{i + 100:064x}", 4, 1000 + i, to=ME) for i in range(25)]
    events.append(_ev(ME, 4, 5000, to=ME))
    events.append(_ev(ME, 4, 5001))

    contacts = ConversationAggregator().contacts(events, ME)

    assert len(contacts) == 20
    assert contacts[0].timestamp == 1024
    assert ME not in [c.pubkey for c in contacts]
    assert ConversationAggregator().contacts(events, ME, limit=3)[-1].timestamp == 1022


def test_gift_wrap_contact_uses_wrap_pubkey_until_decrypted() -> None:
    ephemeral = "55" * 32
    agg = ConversationAggregator()

    assert agg.counterparty(_ev(ephemeral, 1059, 1, to=ME), ME) == ephemeral
    assert agg.counterparty(_ev(ME, 1059, 1, to=X), ME) is None
    assert agg.counterparty(_ev(X, 1, 1, to=ME), ME) is None
    assert [c.pubkey for c in agg.contacts([_ev(ephemeral, 1059, 1, to=ME)], ME)] == [ephemeral]


def test_apply_decrypted_is_idempotent_and_order_independent() -> None:
    agg = ConversationAggregator()
    events = [_ev(X, 4, 1, to=ME), _ev(X, 4, 2, to=ME), _ev(X, 4, 3, to=ME)]
    m1 = agg.timeline(events, ME)
    m2 = agg.timeline(events, ME)
    first = {events[0].id: "a", events[2].id: "c"}
    second = {events[1].id: "b", "unknown": "z"}

    assert agg.apply_decrypted(m1, first) == 2
    assert agg.apply_decrypted(m1, second) == 1
    assert agg.apply_decrypted(m1, {**first, **second}) == 0

    agg.apply_decrypted(m2, second)
    agg.apply_decrypted(m2, first)
    assert [m.decrypted_content for m in m1] == [m.decrypted_content for m in m2] == ["a", "b", "c"]


def test_display_content_and_unread_count() -> None:
    agg = ConversationAggregator()
    repost = _ev(X, 6, 10, to=ME, content='{"id":"x"}')
    dm_in = _ev(X, 4, 20, to=ME, content="cipher")
    dm_out = _ev(ME, 4, 30, to=X, content="cipher2")
    messages = agg.timeline([repost, dm_in, dm_out], ME)
    agg.apply_decrypted(messages, {repost.id: "ignored", dm_in.id: "hello"})

    by_id: dict[str, ChatMessage] = {m.id: m for m in messages}
    assert agg.display_content(by_id[repost.id]) == '{"id":"x"}'
    assert agg.display_content(by_id[dm_in.id]) == "hello"
    assert agg.display_content(by_id[dm_out.id]) == "cipher2"

    assert agg.unread_count(messages, None) == 2
    assert agg.unread_count(messages, 15) == 1
    assert agg.unread_count(messages, 30) == 0

from __future__ import annotations

import pytest

from pysleek.events import Filter, SignedEvent
from pysleek.store import InMemoryEventStore

_PK = "aa" * 32


def _doc(event_id: str, created_at: int, *, d: str = "seen", content: str = "{}") -> SignedEvent:
    return SignedEvent(
        id=event_id,
        pubkey=_PK,
        kind=30078,
        created_at=created_at,
        tags=(("d", d),),
        content=content,
        sig="00" * 64,
    )


def test_addressable_events_supersede_older_versions() -> None:
    store = InMemoryEventStore()

    assert store.add(_doc("01" * 32, 100))
    assert store.add(_doc("02" * 32, 200))
    assert not store.add(_doc("03" * 32, 150))
    assert store.add(_doc("04" * 32, 120, d="other"))

    assert store.get("01" * 32) is None
    assert store.get("02" * 32) is not None
    assert len(store) == 2


def test_equal_timestamps_keep_lowest_id() -> None:
    store = InMemoryEventStore()

    assert store.add(_doc("bb" * 32, 100))
    assert store.add(_doc("aa" * 32, 100))
    assert not store.add(_doc("cc" * 32, 100))
    assert store.get("aa" * 32) is not None
    assert store.get("bb" * 32) is None


@pytest.mark.asyncio
async def test_query_applies_limit_per_filter_newest_first() -> None:
    store = InMemoryEventStore()
    for i in range(5):
        store.add(
            SignedEvent(
                id=f"{i:064x}",
                pubkey=_PK,
                kind=1,
                created_at=100 + i,
                tags=(),
                content=str(i),
                sig="00" * 64,
            )
        )

    got = await store.query([Filter(kinds=(1,), limit=2)], timeout_s=0.1)
    assert sorted(e.content for e in got) == ["3", "4"]

    got = await store.query([Filter(kinds=(1,), limit=1), Filter(kinds=(1,), until=100)])
    assert sorted(e.content for e in got) == ["0", "4"]

    assert await store.query([Filter(kinds=(4,))]) == []


@pytest.mark.asyncio
async def test_publish_records_and_stores() -> None:
    store = InMemoryEventStore()
    ev = _doc("01" * 32, 100)

    await store.publish(ev)
    await store.publish(ev)

    assert store.published == [ev, ev]
    assert len(store) == 1

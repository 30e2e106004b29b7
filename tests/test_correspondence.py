"""Tests for document lookups and correspondence statistics."""

from datetime import date

import pytest

from corrdesk.core.correspondence import (
    correspondence_stats,
    get_document,
    keyword_tokens,
    list_documents,
    load_correspondence_stats,
    similar_documents,
)
from corrdesk.core.errors import DocumentNotFound, StoreUnavailable
from corrdesk.core.vocabulary import default_vocabulary
from tests.fakes.fake_store import FakeStore
from tests.fixtures_documents import SAMPLE_DOCUMENTS


def buckets(items):
    return {b.key: b.count for b in items}


def test_correspondence_stats_counts():
    stats = correspondence_stats(
        SAMPLE_DOCUMENTS,
        today=date(2024, 3, 25),
        overdue_days=10,
        vocabulary=default_vocabulary(),
    )

    assert stats.total == 5
    assert buckets(stats.by_month) == {"2024-01": 1, "2024-03": 3, "unknown": 1}
    assert buckets(stats.by_type) == {"Letter": 4, "Transmittal": 1}
    assert buckets(stats.by_project) == {"SP-1": 2, "SP-2": 3}
    assert buckets(stats.by_direction) == {"inbound": 2, "outbound": 2, "unknown": 1}
    # A-001, A-003 and B-011 have no reply
    assert stats.pending_decisions == 3
    # A-001 is 24 days old; A-003 is 5 days old; B-011 is undated
    assert stats.overdue_decisions == 1


def test_correspondence_stats_empty():
    stats = correspondence_stats([], today=date(2024, 3, 25), vocabulary=default_vocabulary())
    assert stats.total == 0
    assert stats.by_month == []


def test_keyword_tokens():
    assert keyword_tokens("cam, cephe; cam ,, ") == ["cam", "cephe"]
    assert keyword_tokens("") == []


@pytest.mark.asyncio
async def test_get_document_resolves_letter_no_then_internal_no_then_id():
    store = FakeStore(SAMPLE_DOCUMENTS)

    with store.patched():
        assert (await get_document("A-002")).letter_no == "A-002"
        assert (await get_document("INT-200")).letter_no == "B-010"
        assert (await get_document("5")).letter_no == "B-011"


@pytest.mark.asyncio
async def test_get_document_not_found():
    store = FakeStore(SAMPLE_DOCUMENTS)

    with store.patched():
        with pytest.raises(DocumentNotFound):
            await get_document("nope")


@pytest.mark.asyncio
async def test_get_document_store_failure():
    store = FakeStore(SAMPLE_DOCUMENTS)
    store.fail = {"find_document"}

    with store.patched():
        with pytest.raises(StoreUnavailable):
            await get_document("A-001")


@pytest.mark.asyncio
async def test_list_documents_page():
    store = FakeStore(SAMPLE_DOCUMENTS)

    with store.patched():
        page = await list_documents(limit=2, offset=0)

    assert [d.letter_no for d in page.documents] == ["A-003", "A-002"]
    assert page.total == 5
    assert page.has_more is True


@pytest.mark.asyncio
async def test_similar_documents_share_a_keyword_and_exclude_self():
    store = FakeStore(SAMPLE_DOCUMENTS)

    with store.patched():
        similar = await similar_documents("A-001")

    # A-001 keywords: cam, cephe; A-003 shares "cephe"
    assert [d.letter_no for d in similar] == ["A-003"]


@pytest.mark.asyncio
async def test_similar_documents_without_keywords():
    store = FakeStore([{"id": 9, "letter_no": "K-1", "keywords": ""}])

    with store.patched():
        assert await similar_documents("K-1") == []

    assert "find_documents_by_keywords" not in store.calls


@pytest.mark.asyncio
async def test_load_correspondence_stats_uses_store_projection():
    store = FakeStore(SAMPLE_DOCUMENTS)

    with store.patched():
        stats = await load_correspondence_stats(today=date(2024, 3, 25))

    assert stats.total == 5
    assert stats.overdue_decisions == 1
    assert store.calls == ["list_documents_for_stats"]

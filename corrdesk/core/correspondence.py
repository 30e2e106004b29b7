"""Document lookups and correspondence statistics."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, Field

from corrdesk.core.direction import classify_direction
from corrdesk.core.errors import DocumentNotFound, StoreUnavailable
from corrdesk.core.logging import get_logger
from corrdesk.core.schemas_documents import Document
from corrdesk.core.vocabulary import Vocabulary, get_vocabulary

logger = get_logger(__name__)

SIMILAR_LIMIT = 5


class CountBucket(BaseModel):
    key: str
    count: int


class CorrespondenceStats(BaseModel):
    """Aggregate counts over the whole corpus."""

    total: int = 0
    by_month: list[CountBucket] = Field(default_factory=list)
    by_type: list[CountBucket] = Field(default_factory=list)
    by_project: list[CountBucket] = Field(default_factory=list)
    by_direction: list[CountBucket] = Field(default_factory=list)
    pending_decisions: int = 0
    overdue_decisions: int = 0


class DocumentPage(BaseModel):
    documents: list[Document]
    total: int
    limit: int
    offset: int
    has_more: bool


def keyword_tokens(keywords: str) -> list[str]:
    """Split a document's keywords column into distinct non-empty tokens."""
    tokens = [k.strip() for k in keywords.replace(";", ",").split(",")]
    return list(dict.fromkeys(t for t in tokens if t))


def _buckets(counter: Counter) -> list[CountBucket]:
    return [CountBucket(key=key, count=count) for key, count in sorted(counter.items())]


def correspondence_stats(
    rows: Iterable[dict],
    today: date,
    overdue_days: int = 10,
    vocabulary: Vocabulary | None = None,
) -> CorrespondenceStats:
    """
    Aggregate correspondence counts.

    A letter is pending when its reply_letter is empty, and overdue when it
    is pending and dated more than `overdue_days` before `today`. Undated
    letters count under month "unknown" and are never overdue.

    Args:
        rows: Store rows (at least letter_date, type_of_corr, sp_id, reply_letter, inc_out)
        today: Reference date
        overdue_days: Days after which a pending letter is overdue
        vocabulary: Direction token tables

    Returns:
        CorrespondenceStats
    """
    vocab = vocabulary or get_vocabulary()
    months: Counter = Counter()
    types: Counter = Counter()
    projects: Counter = Counter()
    directions: Counter = Counter()
    stats = CorrespondenceStats()

    for row in rows:
        document = Document.model_validate(row)
        stats.total += 1

        month = document.letter_date.strftime("%Y-%m") if document.letter_date else "unknown"
        months[month] += 1
        types[document.type_of_corr or "unknown"] += 1
        projects[document.sp_id or "unknown"] += 1
        directions[classify_direction(document, vocab).value] += 1

        if not document.reply_letter.strip():
            stats.pending_decisions += 1
            if document.letter_date and (today - document.letter_date).days > overdue_days:
                stats.overdue_decisions += 1

    stats.by_month = _buckets(months)
    stats.by_type = _buckets(types)
    stats.by_project = _buckets(projects)
    stats.by_direction = _buckets(directions)
    return stats


# =============================================================================
# Store-backed operations
# =============================================================================


async def get_document(identifier: str) -> Document:
    """
    Resolve a document by letter_no, internal_no, then id.

    Raises:
        DocumentNotFound: If nothing matches
        StoreUnavailable: If the store query fails
    """
    from corrdesk.db.documents import find_document

    try:
        row = await asyncio.to_thread(find_document, identifier)
    except Exception as e:
        logger.error(f"Failed to look up document {identifier!r}: {e}")
        raise StoreUnavailable(f"Failed to look up document: {e}") from e

    if row is None:
        raise DocumentNotFound(identifier)
    return Document.model_validate(row)


async def list_documents(limit: int = 50, offset: int = 0) -> DocumentPage:
    """Date-descending page of documents."""
    from corrdesk.db import documents as store

    try:
        rows, total = await asyncio.to_thread(store.list_documents, limit, offset)
    except Exception as e:
        logger.error(f"Failed to list documents: {e}")
        raise StoreUnavailable(f"Failed to list documents: {e}") from e

    return DocumentPage(
        documents=[Document.model_validate(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
        has_more=total > offset + limit,
    )


async def similar_documents(identifier: str) -> list[Document]:
    """
    Documents sharing any keyword with the given one, newest first.

    Raises:
        DocumentNotFound: If the identifier does not resolve
        StoreUnavailable: If the store query fails
    """
    from corrdesk.db.documents import find_documents_by_keywords

    document = await get_document(identifier)
    keywords = keyword_tokens(document.keywords)
    if not keywords:
        return []

    try:
        rows = await asyncio.to_thread(
            find_documents_by_keywords, keywords, document.id, SIMILAR_LIMIT
        )
    except Exception as e:
        logger.error(f"Failed to find similar documents: {e}")
        raise StoreUnavailable(f"Failed to find similar documents: {e}") from e

    similar = [Document.model_validate(row) for row in rows]
    # id may be NULL, so also drop the document by letter number
    return [
        d for d in similar
        if d.id != document.id or (d.id is None and d.letter_no != document.letter_no)
    ][:SIMILAR_LIMIT]


async def load_correspondence_stats(today: date | None = None) -> CorrespondenceStats:
    """Fetch the stats projection and aggregate it."""
    from corrdesk.core.config import get_settings
    from corrdesk.db.documents import list_documents_for_stats

    try:
        rows = await asyncio.to_thread(list_documents_for_stats)
    except Exception as e:
        logger.error(f"Failed to fetch stats rows: {e}")
        raise StoreUnavailable(f"Failed to fetch stats rows: {e}") from e

    return correspondence_stats(
        rows,
        today=today or date.today(),
        overdue_days=get_settings().TIMELINE_GAP_DAYS,
    )

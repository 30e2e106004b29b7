"""Correspondence document store queries.

All functions are synchronous (supabase-py is sync); async callers wrap them
with asyncio.to_thread. Errors propagate to the caller, which decides whether
to fall back or report.
"""

from collections.abc import Iterator
from typing import Any

from corrdesk.core.config import get_settings
from corrdesk.core.direction import classify_literal, literals_for
from corrdesk.core.logging import get_logger
from corrdesk.core.schemas_documents import Direction, SearchFilters
from corrdesk.core.vocabulary import Vocabulary
from corrdesk.db.supabase_client import get_supabase

logger = get_logger(__name__)

RELATION_COLUMNS = "letter_no, ref_letters, letter_date, content, short_desc"
STATS_COLUMNS = "letter_date, type_of_corr, sp_id, reply_letter, inc_out"

# PostgREST treats these as syntax inside or=(...) filters
_RESERVED_CHARS = str.maketrans({",": " ", "(": " ", ")": " ", '"': " ", "\\": " "})

_IN_LIST_CHUNK = 100


def _table():
    settings = get_settings()
    return get_supabase().table(settings.DOCUMENTS_TABLE)


def clean_term(term: str) -> str:
    """Strip characters that would break a PostgREST logical filter."""
    return " ".join(term.translate(_RESERVED_CHARS).split())


def ilike_condition(column: str, term: str) -> str | None:
    """Build one `column.ilike.%term%` condition for an or_() filter."""
    cleaned = clean_term(term)
    if not cleaned:
        return None
    pattern = f"%{cleaned}%"
    if " " in pattern:
        pattern = f'"{pattern}"'
    return f"{column}.ilike.{pattern}"


def build_or_filter(columns: tuple[str, ...] | list[str], terms: list[str]) -> list[str]:
    """Cross every term with every column into ILIKE conditions (deduplicated)."""
    conditions: list[str] = []
    for term in terms:
        for column in columns:
            condition = ilike_condition(column, term)
            if condition and condition not in conditions:
                conditions.append(condition)
    return conditions


def apply_filters(query: Any, filters: SearchFilters, vocabulary: Vocabulary | None = None) -> Any:
    """
    Apply structured filters to a PostgREST query builder.

    Direction filters are expanded to every known literal of the requested
    direction, since stored values are inconsistent.
    """
    if filters.date_from:
        query = query.gte("letter_date", filters.date_from.isoformat())
    if filters.date_to:
        query = query.lte("letter_date", filters.date_to.isoformat())
    if filters.type_of_corr:
        query = query.eq("type_of_corr", filters.type_of_corr)
    if filters.severity_rate:
        query = query.eq("severity_rate", filters.severity_rate)
    if filters.inc_out:
        direction = classify_literal(filters.inc_out, vocabulary)
        if direction is Direction.UNKNOWN:
            query = query.eq("inc_out", filters.inc_out)
        else:
            query = query.in_("inc_out", literals_for(direction, vocabulary))
    if filters.letter_no:
        query = query.ilike("letter_no", f"%{filters.letter_no}%")
    if filters.internal_no:
        query = query.ilike("internal_no", f"%{filters.internal_no}%")
    if filters.short_desc:
        query = query.ilike("short_desc", f"%{filters.short_desc}%")
    if filters.sp_id:
        query = query.ilike("sp_id", f"%{filters.sp_id}%")
    if filters.keywords:
        keyword_conditions = build_or_filter(("keywords",), filters.keywords)
        if keyword_conditions:
            query = query.or_(",".join(keyword_conditions))
    return query


def has_any_embedding() -> bool:
    """Probe whether any document has a stored embedding."""
    response = _table().select("id").not_.is_("embedding", "null").limit(1).execute()
    return bool(response.data)


def match_documents(embedding: list[float], threshold: float, count: int) -> list[dict]:
    """
    Server-side similarity search via the pgvector RPC.

    Returns:
        Rows with a `similarity` column, best first

    Raises:
        Exception: If the RPC is missing or fails
    """
    settings = get_settings()
    response = (
        get_supabase()
        .rpc(
            settings.MATCH_DOCUMENTS_RPC,
            {
                "query_embedding": embedding,
                "match_threshold": threshold,
                "match_count": count,
            },
        )
        .execute()
    )
    return response.data or []


def _paginate(build_query, page_size: int | None = None) -> Iterator[list[dict]]:
    """Yield pages from a query builder factory until a short page is returned."""
    size = page_size or get_settings().STORE_PAGE_SIZE
    start = 0
    while True:
        response = build_query().range(start, start + size - 1).execute()
        rows = response.data or []
        if rows:
            yield rows
        if len(rows) < size:
            return
        start += size


def iter_embedded_documents(page_size: int | None = None) -> Iterator[list[dict]]:
    """Yield pages of documents that have a stored embedding."""
    return _paginate(
        lambda: _table().select("*").not_.is_("embedding", "null").order("id"),
        page_size,
    )


def search_documents(
    conditions: list[str] | None,
    filters: SearchFilters,
    limit: int,
    offset: int = 0,
    vocabulary: Vocabulary | None = None,
) -> tuple[list[dict], int]:
    """
    Filtered fetch with an OR-predicate of ILIKE conditions, newest first.

    Args:
        conditions: `column.ilike.%term%` strings joined with OR; None for no text predicate
        filters: Structured filters (ANDed with the text predicate)
        limit: Page size
        offset: Page start

    Returns:
        Tuple of (rows, exact total count)
    """
    query = _table().select("*", count="exact")
    if conditions:
        query = query.or_(",".join(conditions))
    query = apply_filters(query, filters, vocabulary)
    response = query.order("letter_date", desc=True).range(offset, offset + limit - 1).execute()

    rows = response.data or []
    total = response.count if response.count is not None else len(rows)
    return rows, total


def list_documents(limit: int = 50, offset: int = 0) -> tuple[list[dict], int]:
    """Date-descending page of all documents with the total count."""
    response = (
        _table()
        .select("*", count="exact")
        .order("letter_date", desc=True)
        .range(offset, offset + limit - 1)
        .execute()
    )
    rows = response.data or []
    return rows, response.count if response.count is not None else len(rows)


def get_documents_by_letter_nos(letter_nos: list[str]) -> list[dict]:
    """Fetch full rows for a set of letter numbers (in-list, chunked)."""
    rows: list[dict] = []
    unique = list(dict.fromkeys(n for n in letter_nos if n))
    for i in range(0, len(unique), _IN_LIST_CHUNK):
        chunk = unique[i : i + _IN_LIST_CHUNK]
        response = _table().select("*").in_("letter_no", chunk).execute()
        rows.extend(response.data or [])
    return rows


def find_document(identifier: str) -> dict | None:
    """
    Resolve a document by letter_no, then internal_no, then id.

    The first matching row wins.
    """
    identifier = identifier.strip()
    if not identifier:
        return None

    for column in ("letter_no", "internal_no"):
        response = _table().select("*").eq(column, identifier).limit(1).execute()
        if response.data:
            return response.data[0]

    try:
        response = _table().select("*").eq("id", identifier).limit(1).execute()
    except Exception as e:
        # id column type may reject non-numeric identifiers
        logger.debug(f"id lookup failed for {identifier!r}: {e}")
        return None
    return response.data[0] if response.data else None


def find_documents_by_keywords(
    keywords: list[str],
    exclude_id: Any = None,
    limit: int = 5,
) -> list[dict]:
    """Documents whose keywords column contains any of the given keywords, newest first."""
    conditions = build_or_filter(("keywords",), keywords)
    if not conditions:
        return []

    query = _table().select("*").or_(",".join(conditions))
    if exclude_id is not None:
        query = query.neq("id", exclude_id)
    response = query.order("letter_date", desc=True).limit(limit).execute()
    return response.data or []


def list_document_relations(page_size: int | None = None) -> list[dict]:
    """Fetch the relation projection of every document (for graph building)."""
    rows: list[dict] = []
    for page in _paginate(
        lambda: _table().select(RELATION_COLUMNS).order("id"),
        page_size,
    ):
        rows.extend(page)
    logger.debug(f"Fetched {len(rows)} document relations")
    return rows


def list_documents_for_stats(page_size: int | None = None) -> list[dict]:
    """Fetch the columns needed for correspondence statistics."""
    rows: list[dict] = []
    for page in _paginate(
        lambda: _table().select(STATS_COLUMNS).order("id"),
        page_size,
    ):
        rows.extend(page)
    return rows

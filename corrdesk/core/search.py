"""Hybrid document retrieval with a fallback chain.

Stages, tried in order until one yields results:

    hybrid (vector + lexical) → advanced_text (expanded keywords) → plain_text

Each stage is a SearchStrategy with the same `attempt(ctx)` signature,
returning a StageOutcome or None ("nothing usable, try the next one"). A
transport failure inside a stage is logged and treated like an empty result.
Callers can pick a single strategy through SearchRequest.mode.

Usage:
    from corrdesk.core.search import search

    response = await search(SearchRequest(query="cam duvar", limit=20))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np

from corrdesk.core.config import get_settings
from corrdesk.core.direction import classify_direction, classify_literal
from corrdesk.core.errors import InvalidSearchFilter
from corrdesk.core.lexical import LexicalScorer, expand_query
from corrdesk.core.logging import get_logger, log_with_context
from corrdesk.core.schemas_documents import (
    Direction,
    Document,
    Provenance,
    ScoredResult,
    SearchFilters,
    SearchMode,
    SearchRequest,
    SearchResponse,
)
from corrdesk.core.vocabulary import Vocabulary, get_vocabulary

logger = get_logger(__name__)

FULL_TEXT_COLUMNS = ("content", "short_desc", "keywords", "letter_no", "internal_no")
KEYWORD_COLUMNS = ("content", "short_desc", "keywords")
PLAIN_SINGLE_TERM_COLUMNS = ("short_desc", "content", "letter_no", "keywords")


# =============================================================================
# Context and outcomes
# =============================================================================


@dataclass
class SearchContext:
    """Per-request state shared by the strategies."""

    request: SearchRequest
    query: str
    limit: int
    offset: int
    vector_weight: float
    text_weight: float
    vector_threshold: float
    vocabulary: Vocabulary
    scorer: LexicalScorer
    keywords: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def filters(self) -> SearchFilters:
        return self.request.filters


@dataclass
class StageOutcome:
    """Results of one successful stage."""

    results: list[ScoredResult]
    total: int
    has_more: bool = False


def combine_scores(
    similarity: float,
    lexical_score: float,
    vector_weight: float,
    text_weight: float,
) -> float:
    """Weighted hybrid score. Weights are independent and need not sum to 1."""
    return vector_weight * similarity + text_weight * lexical_score


def cosine_similarity(a: list[float] | np.ndarray, b: list[float] | np.ndarray) -> float:
    """Cosine similarity; 0.0 for mismatched shapes or zero vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def document_matches_filters(
    document: Document,
    filters: SearchFilters,
    vocabulary: Vocabulary | None = None,
) -> bool:
    """Local equivalent of db.documents.apply_filters, for rows ranked in memory."""
    if filters.date_from or filters.date_to:
        if document.letter_date is None:
            return False
        if filters.date_from and document.letter_date < filters.date_from:
            return False
        if filters.date_to and document.letter_date > filters.date_to:
            return False
    if filters.type_of_corr and document.type_of_corr != filters.type_of_corr:
        return False
    if filters.severity_rate and document.severity_rate != filters.severity_rate:
        return False
    if filters.inc_out:
        wanted = classify_literal(filters.inc_out, vocabulary)
        if wanted is Direction.UNKNOWN:
            if document.inc_out != filters.inc_out:
                return False
        elif classify_direction(document, vocabulary) is not wanted:
            return False

    for name in ("letter_no", "internal_no", "short_desc", "sp_id"):
        needle = getattr(filters, name)
        if needle and needle.lower() not in getattr(document, name).lower():
            return False

    if filters.keywords:
        haystack = document.keywords.lower()
        if not any(k.lower() in haystack for k in filters.keywords):
            return False
    return True


# =============================================================================
# Strategies
# =============================================================================


class SearchStrategy:
    """One stage of the retrieval chain."""

    name = "base"

    async def attempt(self, ctx: SearchContext) -> StageOutcome | None:
        raise NotImplementedError


class VectorStrategy(SearchStrategy):
    """Embedding similarity, optionally blended with the lexical score.

    With `hybrid=True` results are ranked by
    `vector_weight * cosine + text_weight * lexical` (provenance "hybrid");
    otherwise by cosine alone (provenance "vector").
    """

    def __init__(self, hybrid: bool = True):
        self.hybrid = hybrid
        self.name = "hybrid" if hybrid else "vector"

    async def _candidates(
        self, ctx: SearchContext, embedding: list[float]
    ) -> list[tuple[Document, float]]:
        from corrdesk.db import documents as store

        match_count = max((ctx.offset + ctx.limit) * 2, ctx.limit)

        # Strategy A: pgvector RPC
        try:
            rows = await asyncio.to_thread(
                store.match_documents, embedding, ctx.vector_threshold, match_count
            )
        except Exception as e:
            logger.debug(f"match_documents RPC unavailable, scoring locally: {e}")
        else:
            # A full batch under filters may have cut off the matching rows
            if ctx.filters.is_empty() or len(rows) < match_count:
                return [
                    (Document.model_validate(row), float(row.get("similarity") or 0.0))
                    for row in rows
                ]
            logger.debug(
                f"match_documents returned a full batch of {match_count} with filters set, "
                "scoring locally"
            )

        # Strategy B: page through embedded rows and score in memory
        def _scan() -> list[tuple[Document, float]]:
            query_vector = np.asarray(embedding, dtype=np.float64)
            found = []
            for page in store.iter_embedded_documents():
                for row in page:
                    document = Document.model_validate(row)
                    if not document.embedding:
                        continue
                    similarity = cosine_similarity(query_vector, document.embedding)
                    if similarity > ctx.vector_threshold:
                        found.append((document, similarity))
            return found

        return await asyncio.to_thread(_scan)

    async def attempt(self, ctx: SearchContext) -> StageOutcome | None:
        from corrdesk.core.embeddings import embed_text
        from corrdesk.db import documents as store

        try:
            if not await asyncio.to_thread(store.has_any_embedding):
                logger.info("No stored embeddings, skipping vector stage")
                return None

            embedding = await embed_text(ctx.query)
            candidates = await self._candidates(ctx, embedding)
        except Exception as e:
            logger.warning(f"{self.name} stage failed: {e}")
            ctx.errors.append(f"{self.name}: {e}")
            return None

        scored: list[ScoredResult] = []
        for document, similarity in candidates:
            if not document_matches_filters(document, ctx.filters, ctx.vocabulary):
                continue
            if self.hybrid:
                lexical = ctx.scorer.score(document, ctx.query, ctx.keywords)
                score = combine_scores(similarity, lexical, ctx.vector_weight, ctx.text_weight)
                scored.append(ScoredResult(
                    document=document,
                    score=score,
                    provenance=Provenance.HYBRID,
                    similarity=similarity,
                    lexical_score=lexical,
                ))
            else:
                scored.append(ScoredResult(
                    document=document,
                    score=similarity,
                    provenance=Provenance.VECTOR,
                    similarity=similarity,
                ))

        if not scored:
            return None

        scored.sort(key=lambda r: r.score, reverse=True)
        page = scored[ctx.offset : ctx.offset + ctx.limit]
        if not page:
            return None
        return StageOutcome(
            results=page,
            total=len(scored),
            has_more=len(scored) > ctx.offset + ctx.limit,
        )


class AdvancedTextStrategy(SearchStrategy):
    """Store-side ILIKE search over expanded keywords, re-ranked lexically."""

    name = "advanced_text"

    def conditions(self, ctx: SearchContext) -> list[str]:
        from corrdesk.db.documents import build_or_filter

        lowered = ctx.query.lower()
        conditions = build_or_filter(FULL_TEXT_COLUMNS, [ctx.query])
        extra = [k for k in ctx.keywords if k != lowered]
        for condition in build_or_filter(KEYWORD_COLUMNS, extra):
            if condition not in conditions:
                conditions.append(condition)
        return conditions

    async def attempt(self, ctx: SearchContext) -> StageOutcome | None:
        from corrdesk.db import documents as store

        conditions = self.conditions(ctx)
        if not conditions:
            return None

        try:
            rows, total = await asyncio.to_thread(
                store.search_documents,
                conditions,
                ctx.filters,
                ctx.limit,
                ctx.offset,
                ctx.vocabulary,
            )
        except Exception as e:
            logger.warning(f"Advanced text search failed: {e}")
            ctx.errors.append(f"{self.name}: {e}")
            return None

        if not rows:
            return None

        results = []
        for row in rows:
            document = Document.model_validate(row)
            lexical = ctx.scorer.score(document, ctx.query, ctx.keywords)
            results.append(ScoredResult(
                document=document,
                score=lexical,
                provenance=Provenance.TEXT,
                lexical_score=lexical,
            ))
        results.sort(key=lambda r: r.score, reverse=True)

        return StageOutcome(
            results=results[: ctx.limit],
            total=total,
            has_more=total > ctx.offset + ctx.limit,
        )


class PlainTextStrategy(SearchStrategy):
    """Last resort: raw whitespace terms, no expansion, store ordering (newest first).

    A single term is searched in short_desc, content, letter_no and keywords;
    several terms are searched in short_desc only.
    """

    name = "plain_text"

    def conditions(self, ctx: SearchContext) -> list[str]:
        from corrdesk.db.documents import build_or_filter

        terms = ctx.query.split()
        if len(terms) == 1:
            return build_or_filter(PLAIN_SINGLE_TERM_COLUMNS, terms)
        return build_or_filter(("short_desc",), terms)

    async def attempt(self, ctx: SearchContext) -> StageOutcome | None:
        from corrdesk.db import documents as store

        conditions = self.conditions(ctx)
        if not conditions:
            return None

        try:
            rows, total = await asyncio.to_thread(
                store.search_documents,
                conditions,
                ctx.filters,
                ctx.limit,
                ctx.offset,
                ctx.vocabulary,
            )
        except Exception as e:
            logger.warning(f"Plain text search failed: {e}")
            ctx.errors.append(f"{self.name}: {e}")
            return None

        if not rows:
            return None

        # Scores are informational; order stays as returned by the store
        results = []
        for row in rows:
            document = Document.model_validate(row)
            lexical = ctx.scorer.score(document, ctx.query, [])
            results.append(ScoredResult(
                document=document,
                score=lexical,
                provenance=Provenance.TEXT,
                lexical_score=lexical,
            ))

        return StageOutcome(
            results=results,
            total=total,
            has_more=total > ctx.offset + ctx.limit,
        )


class FiltersOnlyStrategy(SearchStrategy):
    """No text predicate: structured filters only, newest first."""

    name = "filters_only"

    async def attempt(self, ctx: SearchContext) -> StageOutcome | None:
        from corrdesk.db import documents as store

        try:
            rows, total = await asyncio.to_thread(
                store.search_documents,
                None,
                ctx.filters,
                ctx.limit,
                ctx.offset,
                ctx.vocabulary,
            )
        except Exception as e:
            logger.warning(f"Filter-only listing failed: {e}")
            ctx.errors.append(f"{self.name}: {e}")
            return None

        results = [
            ScoredResult(document=Document.model_validate(row), score=0.0, provenance=Provenance.TEXT)
            for row in rows
        ]
        return StageOutcome(
            results=results,
            total=total,
            has_more=total > ctx.offset + ctx.limit,
        )


def strategies_for_mode(mode: SearchMode) -> list[SearchStrategy]:
    """Ordered strategy chain for a search mode."""
    if mode is SearchMode.HYBRID:
        return [VectorStrategy(hybrid=True)]
    if mode is SearchMode.VECTOR:
        return [VectorStrategy(hybrid=False)]
    if mode is SearchMode.TEXT:
        return [AdvancedTextStrategy()]
    if mode is SearchMode.PLAIN:
        return [PlainTextStrategy()]
    return [VectorStrategy(hybrid=True), AdvancedTextStrategy(), PlainTextStrategy()]


# =============================================================================
# Entry points
# =============================================================================


def validate_request(request: SearchRequest) -> None:
    """
    Reject malformed filters before any fetch.

    Raises:
        InvalidSearchFilter: If the date range is inverted or weights are all zero
    """
    filters = request.filters
    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        raise InvalidSearchFilter(
            f"date_from ({filters.date_from}) is after date_to ({filters.date_to})"
        )
    if request.vector_weight == 0 and request.text_weight == 0:
        raise InvalidSearchFilter("vector_weight and text_weight cannot both be zero")


def build_context(
    request: SearchRequest,
    vocabulary: Vocabulary | None = None,
    now: datetime | None = None,
) -> SearchContext:
    """Resolve configured defaults into a per-request context."""
    settings = get_settings()
    vocab = vocabulary or get_vocabulary()
    limit = min(request.limit or settings.SEARCH_DEFAULT_LIMIT, settings.SEARCH_MAX_LIMIT)

    return SearchContext(
        request=request,
        query=request.query.strip(),
        limit=limit,
        offset=request.offset,
        vector_weight=(
            request.vector_weight
            if request.vector_weight is not None
            else settings.SEARCH_VECTOR_WEIGHT
        ),
        text_weight=(
            request.text_weight
            if request.text_weight is not None
            else settings.SEARCH_TEXT_WEIGHT
        ),
        vector_threshold=(
            request.vector_threshold
            if request.vector_threshold is not None
            else settings.SEARCH_VECTOR_THRESHOLD
        ),
        vocabulary=vocab,
        scorer=LexicalScorer(vocabulary=vocab, now=now or datetime.now(timezone.utc)),
    )


async def run_chain(
    strategies: list[SearchStrategy],
    ctx: SearchContext,
) -> SearchResponse:
    """Try strategies in order; the first with results answers."""
    attempted: list[str] = []

    for strategy in strategies:
        attempted.append(strategy.name)
        outcome = await strategy.attempt(ctx)

        if outcome is not None and outcome.results:
            log_with_context(
                logger,
                logging.INFO,
                f"Search answered by {strategy.name}",
                request_id=ctx.request.request_id,
                stage=strategy.name,
                results=len(outcome.results),
            )
            return SearchResponse(
                results=outcome.results,
                total=outcome.total,
                has_more=outcome.has_more,
                stage=strategy.name,
                attempted=attempted,
                keywords=ctx.keywords,
                errors=ctx.errors,
                request_id=ctx.request.request_id,
            )

        logger.debug(f"Stage {strategy.name} produced no results")

    return SearchResponse(
        stage="none",
        attempted=attempted,
        keywords=ctx.keywords,
        errors=ctx.errors,
        request_id=ctx.request.request_id,
    )


async def search(
    request: SearchRequest,
    *,
    strategies: list[SearchStrategy] | None = None,
    vocabulary: Vocabulary | None = None,
    now: datetime | None = None,
) -> SearchResponse:
    """
    Rank the corpus for a query.

    Blank query text never matches everything: with structured filters (and
    the default `empty_query="filters_only"`) the filtered documents are
    listed newest first without keyword expansion; otherwise the response is
    empty with stage "empty".

    Args:
        request: Search request
        strategies: Override the chain (defaults to the request's mode)
        vocabulary: Override the configured vocabulary
        now: Reference time for recency scoring

    Returns:
        SearchResponse

    Raises:
        InvalidSearchFilter: If the request's filters are malformed
    """
    validate_request(request)
    ctx = build_context(request, vocabulary=vocabulary, now=now)

    if not ctx.query:
        if request.empty_query == "filters_only" and not request.filters.is_empty():
            return await run_chain([FiltersOnlyStrategy()], ctx)
        return SearchResponse(stage="empty", request_id=request.request_id)

    ctx.keywords = expand_query(ctx.query, ctx.vocabulary)
    chain = strategies if strategies is not None else strategies_for_mode(request.mode)
    return await run_chain(chain, ctx)

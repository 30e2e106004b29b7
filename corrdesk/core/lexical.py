"""
Lexical relevance scoring and semantic query expansion.

Scoring components (summed, unbounded, only meaningful within one query):
1. Exact match - raw query found in content, short_desc or keywords
2. Expanded keyword hits - per-field weights, scaled by keyword length
3. Recency - linear decay over a 30-day window from letter_date
4. Severity - flat bonus per severity bucket

Usage:
    from corrdesk.core.lexical import LexicalScorer, expand_query

    keywords = expand_query("cam duvar")
    scorer = LexicalScorer()
    score = scorer.score(document, "cam duvar", keywords)
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Literal

from corrdesk.core.schemas_documents import Document
from corrdesk.core.vocabulary import Vocabulary, get_vocabulary

SeverityBucket = Literal["high", "medium", "low"]

_WORD_RE = re.compile(r"\w+")


def expand_query(query: str, vocabulary: Vocabulary | None = None) -> list[str]:
    """
    Expand a raw query into lowercase search keywords.

    The result contains, in insertion order and without duplicates: the whole
    query, each whitespace token longer than one character, each token's
    synonyms, root variants with a derivational suffix stripped, and the
    semantic-map terms for any token (or root) that is a key in the map.

    Args:
        query: Raw query text
        vocabulary: Tables to expand with (defaults to the configured one)

    Returns:
        Keyword list; empty for blank queries
    """
    vocab = vocabulary or get_vocabulary()
    lowered = query.lower().strip()
    if not lowered:
        return []

    keywords: dict[str, None] = {lowered: None}
    words = [w for w in lowered.split() if len(w) > 1]

    for word in words:
        keywords[word] = None
        for synonym in vocab.synonyms_for(word):
            keywords[synonym] = None
        for root in root_variants(word, vocab):
            keywords[root] = None

    for word in words:
        for key in (word, *root_variants(word, vocab)):
            for term in vocab.semantic_map.get(key, []):
                keywords[term] = None

    return list(keywords)


def root_variants(word: str, vocabulary: Vocabulary) -> list[str]:
    """Strip each matching derivational suffix; roots shorter than 2 chars are dropped."""
    roots = []
    for suffix in vocabulary.root_suffixes:
        if word.endswith(suffix):
            root = word[: -len(suffix)]
            if len(root) > 1 and root not in roots:
                roots.append(root)
    return roots


def severity_bucket(value: str, vocabulary: Vocabulary | None = None) -> SeverityBucket | None:
    """Map a free-text severity to high/medium/low. None when empty."""
    if not value or not value.strip():
        return None
    vocab = vocabulary or get_vocabulary()
    tokens = set(_WORD_RE.findall(value.lower()))
    if tokens & vocab.high_severity:
        return "high"
    if tokens & vocab.medium_severity:
        return "medium"
    return "low"


@dataclass
class LexicalWeights:
    """Configurable weights for the lexical scorer."""

    exact_match: float = 100.0
    short_desc_hit: float = 20.0
    keywords_hit: float = 15.0
    content_hit: float = 10.0
    rarity_base: int = 20
    recency_window_days: float = 30.0
    severity_high: float = 15.0
    severity_medium: float = 10.0
    severity_low: float = 5.0


DEFAULT_WEIGHTS = LexicalWeights()


class LexicalScorer:
    """Scores a document against a query and its expanded keywords."""

    def __init__(
        self,
        weights: LexicalWeights | None = None,
        vocabulary: Vocabulary | None = None,
        now: datetime | None = None,
    ):
        """
        Initialize the scorer.

        Args:
            weights: Scoring weights (defaults to DEFAULT_WEIGHTS)
            vocabulary: Severity tables
            now: Reference time for recency (defaults to the current UTC time)
        """
        self.weights = weights or DEFAULT_WEIGHTS
        self.vocabulary = vocabulary or get_vocabulary()
        self.now = now

    def _today(self) -> date:
        now = self.now or datetime.now(timezone.utc)
        return now.date()

    def keyword_score(self, document: Document, keyword: str) -> float:
        """Weighted field hits for one keyword, scaled by its rarity."""
        w = self.weights
        score = 0.0
        if keyword in document.content.lower():
            score += w.content_hit
        if keyword in document.short_desc.lower():
            score += w.short_desc_hit
        if keyword in document.keywords.lower():
            score += w.keywords_hit

        # Shorter keywords weigh more; the factor bottoms out at 1/rarity_base
        rarity = max(1, w.rarity_base - len(keyword))
        return score * (rarity / w.rarity_base)

    def recency_bonus(self, document: Document) -> float:
        if document.letter_date is None:
            return 0.0
        days_since = max(0, (self._today() - document.letter_date).days)
        return max(0.0, self.weights.recency_window_days - days_since)

    def severity_bonus(self, document: Document) -> float:
        bucket = severity_bucket(document.severity_rate, self.vocabulary)
        if bucket is None:
            return 0.0
        if bucket == "high":
            return self.weights.severity_high
        if bucket == "medium":
            return self.weights.severity_medium
        return self.weights.severity_low

    def score(self, document: Document, query: str, keywords: list[str]) -> float:
        """
        Compute the lexical relevance score.

        Args:
            document: Document to score
            query: Raw query text
            keywords: Expanded keywords (see expand_query)

        Returns:
            Non-negative score
        """
        lowered = query.lower().strip()
        score = 0.0

        if lowered and (
            lowered in document.content.lower()
            or lowered in document.short_desc.lower()
            or lowered in document.keywords.lower()
        ):
            score += self.weights.exact_match

        for keyword in keywords:
            if keyword != lowered:
                score += self.keyword_score(document, keyword)

        score += self.recency_bonus(document)
        score += self.severity_bonus(document)
        return score

"""Deterministic hash-based pseudo-embeddings.

Used whenever no embedding API is configured or the API call fails. The
vector is corpus-independent: token frequencies are weighted with a static
IDF approximation, scattered into the output through salted rolling hashes,
enriched with domain synonyms and L2-normalized. It approximates topical
overlap well enough to rank; it is not a learned embedding.
"""

import math
import re
from collections import Counter

import numpy as np

from corrdesk.core.vocabulary import Vocabulary, get_vocabulary

_NON_WORD_RE = re.compile(r"[^\w\s]")

HASH_SALTS = (0, 31, 62)
SCATTER_CHARS = 8
SCATTER_STRIDE = 7
SCATTER_SCALE = 0.01
SYNONYM_WEIGHT = 0.3
COMMON_WORD_DF = 100
CORPUS_SIZE = 1000


def rolling_hash(token: str, salt: int = 0) -> int:
    """32-bit polynomial rolling hash (base 31) with an additive salt per character."""
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch) + salt) & 0xFFFFFFFF
    # Interpret as signed so the magnitude matches a 32-bit int hash
    if h >= 0x80000000:
        h -= 0x100000000
    return h


class SyntheticEmbedder:
    """Builds fixed-dimension pseudo-embeddings from text."""

    def __init__(self, dimension: int = 1536, vocabulary: Vocabulary | None = None):
        if dimension <= 0:
            raise ValueError("Embedding dimension must be positive")
        self.dimension = dimension
        self.vocabulary = vocabulary or get_vocabulary()

    def tokenize(self, text: str) -> list[str]:
        """Lowercase, strip punctuation, drop one-character tokens and stop words."""
        if not text:
            return []
        words = _NON_WORD_RE.sub(" ", text.lower()).split()
        return [w for w in words if len(w) > 1 and not self.vocabulary.is_stop_word(w)]

    def document_frequency(self, token: str) -> int:
        """Static DF approximation: common domain words are frequent, others scale with length."""
        if token in self.vocabulary.common_words:
            return COMMON_WORD_DF
        return max(1, len(token))

    def _scatter(self, vector: np.ndarray, token: str, weight: float) -> None:
        for salt_index, salt in enumerate(HASH_SALTS):
            base = abs(rolling_hash(token, salt)) % self.dimension
            hash_weight = weight * (0.5 + salt_index * 0.1)
            for i, ch in enumerate(token[:SCATTER_CHARS]):
                index = (base + i * SCATTER_STRIDE) % self.dimension
                vector[index] += (ord(ch) / 255.0) * hash_weight * SCATTER_SCALE

    def embed(self, text: str) -> list[float]:
        """
        Embed text.

        Args:
            text: Any text (may be empty)

        Returns:
            L2-normalized vector of length `dimension`; all zeros when the text
            has no usable tokens
        """
        vector = np.zeros(self.dimension, dtype=np.float64)
        frequencies = Counter(self.tokenize(text))

        for token, tf in frequencies.items():
            idf = math.log(CORPUS_SIZE / (self.document_frequency(token) + 1))
            tfidf = tf * idf
            self._scatter(vector, token, tfidf)

            for synonym in self.vocabulary.synonyms_for(token):
                if synonym != token:
                    self._scatter(vector, synonym, tfidf * SYNONYM_WEIGHT)

        magnitude = float(np.linalg.norm(vector))
        if magnitude > 0:
            vector /= magnitude
        return vector.tolist()


def synthetic_embedding(text: str, dimension: int | None = None) -> list[float]:
    """Embed text with the configured vocabulary and dimension."""
    if dimension is None:
        from corrdesk.core.config import get_settings

        dimension = get_settings().EMBEDDING_DIM
    return SyntheticEmbedder(dimension=dimension).embed(text)

"""Domain vocabulary tables used by the embedder, lexical scorer and timeline.

The tables are plain data and are passed into the components that need them,
so they can be replaced in tests or extended from a JSON file without
touching the algorithms:

    {
        "synonyms": {"kapı": ["kapı", "giriş"]},
        "stop_words": ["şey"],
        "inbound_tokens": ["received"]
    }

Mappings in the file are merged key-by-key over the defaults; lists are
unioned with the default entries.
"""

import json
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from pathlib import Path

from corrdesk.core.config import get_settings
from corrdesk.core.logging import get_logger

logger = get_logger(__name__)


STOP_WORDS = {
    "ve", "veya", "ile", "da", "de", "ki", "mi", "mı", "mu", "mü",
    "bir", "bu", "şu", "o", "için", "gibi", "kadar", "sonra", "önce",
    "olarak", "ise", "ama", "fakat", "ancak", "lakin", "halbuki",
    "yine", "tekrar", "yeniden", "şimdi", "burada", "orada", "şurada",
}

# Words that appear in most letters get a high document frequency
COMMON_WORDS = {
    "proje", "izin", "rapor", "onay", "ödeme", "sözleşme", "talep",
    "cevap", "yazı", "belge", "tarih", "konu", "hakkında", "iletişim",
}

# Used by the synthetic embedding and the first pass of query expansion
SYNONYMS: dict[str, list[str]] = {
    "cam": ["cam", "pencere", "kristal", "şeffaf"],
    "kurşun": ["kurşun", "mermi", "silah", "ateşli"],
    "geçirmez": ["geçirmez", "dayanıklı", "mukavim", "koruyucu"],
    "marble": ["mermer", "taş", "mineral"],
    "duvar": ["duvar", "yapı", "bina", "yüzey"],
    "çelik": ["çelik", "metal", "demir", "alaşım"],
    "beton": ["beton", "çimento", "yapı", "malzeme"],
}

# Broader topical mapping applied only during query expansion
SEMANTIC_MAP: dict[str, list[str]] = {
    "kurşun": ["kurşun", "mermi", "silah", "ateşli", "güvenlik", "korunma"],
    "cam": ["cam", "pencere", "kristal", "şeffaf", "koruyucu"],
    "geçirmez": ["geçirmez", "dayanıklı", "mukavim", "koruyucu", "güçlü"],
    "marble": ["mermer", "taş", "mineral", "yapı", "malzeme"],
    "duvar": ["duvar", "yapı", "bina", "yüzey", "korunma"],
    "çelik": ["çelik", "metal", "demir", "alaşım", "güçlü"],
    "beton": ["beton", "çimento", "yapı", "malzeme", "dayanıklı"],
    "güvenlik": ["güvenlik", "korunma", "koruyucu", "emniyet"],
    "malzeme": ["malzeme", "hammadde", "ürün", "stok"],
    "yapı": ["yapı", "bina", "inşaat", "imalat"],
}

# Derivational suffixes stripped to reach a root variant
ROOT_SUFFIXES = ("lık", "lik", "luk", "lük", "li", "lı")

HIGH_SEVERITY_TOKENS = {"yüksek", "high", "critical", "kritik", "urgent", "acil"}
MEDIUM_SEVERITY_TOKENS = {"orta", "medium", "normal"}

INBOUND_TOKENS = {"inc", "incoming", "in", "inbound", "gelen", "gln", "g"}
OUTBOUND_TOKENS = {"out", "outgoing", "ex", "outbound", "giden", "gdn", "external"}

# Fields checked, in order, for a direction literal
DIRECTION_FIELDS = ("inc_out", "incout", "direction")


@dataclass(frozen=True)
class Vocabulary:
    """Immutable bundle of lookup tables."""

    stop_words: frozenset[str] = field(default_factory=lambda: frozenset(STOP_WORDS))
    common_words: frozenset[str] = field(default_factory=lambda: frozenset(COMMON_WORDS))
    synonyms: dict[str, list[str]] = field(default_factory=lambda: dict(SYNONYMS))
    semantic_map: dict[str, list[str]] = field(default_factory=lambda: dict(SEMANTIC_MAP))
    root_suffixes: tuple[str, ...] = ROOT_SUFFIXES
    high_severity: frozenset[str] = field(
        default_factory=lambda: frozenset(HIGH_SEVERITY_TOKENS)
    )
    medium_severity: frozenset[str] = field(
        default_factory=lambda: frozenset(MEDIUM_SEVERITY_TOKENS)
    )
    inbound_tokens: frozenset[str] = field(default_factory=lambda: frozenset(INBOUND_TOKENS))
    outbound_tokens: frozenset[str] = field(default_factory=lambda: frozenset(OUTBOUND_TOKENS))
    direction_fields: tuple[str, ...] = DIRECTION_FIELDS

    def synonyms_for(self, word: str) -> list[str]:
        return self.synonyms.get(word, [])

    def is_stop_word(self, word: str) -> bool:
        return word in self.stop_words


def default_vocabulary() -> Vocabulary:
    """Return the built-in construction/security vocabulary."""
    return Vocabulary()


def _merge(base: Vocabulary, overrides: dict) -> Vocabulary:
    """Merge a parsed JSON object over a vocabulary."""
    known = {f.name for f in fields(Vocabulary)}
    changes = {}

    for key, value in overrides.items():
        if key not in known:
            logger.warning(f"Ignoring unknown vocabulary key: {key}")
            continue

        current = getattr(base, key)
        if isinstance(current, dict):
            if not isinstance(value, dict):
                raise ValueError(f"Vocabulary key {key!r} must be an object")
            merged = dict(current)
            merged.update({k.lower(): [s.lower() for s in v] for k, v in value.items()})
            changes[key] = merged
        elif isinstance(current, frozenset):
            if not isinstance(value, list):
                raise ValueError(f"Vocabulary key {key!r} must be a list")
            changes[key] = current | {str(v).lower() for v in value}
        else:
            if not isinstance(value, list):
                raise ValueError(f"Vocabulary key {key!r} must be a list")
            changes[key] = tuple(dict.fromkeys([*current, *value]))

    return replace(base, **changes)


def load_vocabulary(path: str | Path, base: Vocabulary | None = None) -> Vocabulary:
    """
    Load a vocabulary override file.

    Args:
        path: JSON file with any subset of the Vocabulary fields
        base: Vocabulary to merge over (defaults to the built-in one)

    Returns:
        Merged Vocabulary

    Raises:
        ValueError: If the file is not a JSON object or has wrongly typed values
        OSError: If the file cannot be read
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Vocabulary file must contain a JSON object")

    vocabulary = _merge(base or default_vocabulary(), raw)
    logger.info(f"Loaded vocabulary overrides from {path}", extra={"keys": sorted(raw)})
    return vocabulary


@lru_cache(maxsize=1)
def get_vocabulary() -> Vocabulary:
    """Get the configured vocabulary (cached)."""
    settings = get_settings()
    if settings.VOCABULARY_PATH:
        return load_vocabulary(settings.VOCABULARY_PATH)
    return default_vocabulary()

"""Inbound/outbound classification for letters.

Direction literals in the store are inconsistent ("inc", "Gelen", "OUT",
"outgoing", ...). Every comparison goes through ``classify_direction`` so no
other module looks at the raw values.
"""

from typing import Any

from corrdesk.core.schemas_documents import Direction
from corrdesk.core.vocabulary import Vocabulary, get_vocabulary


def classify_literal(value: Any, vocabulary: Vocabulary | None = None) -> Direction:
    """Classify one raw direction literal."""
    if value is None:
        return Direction.UNKNOWN

    vocab = vocabulary or get_vocabulary()
    token = " ".join(str(value).split()).lower()
    if not token:
        return Direction.UNKNOWN
    if token in vocab.inbound_tokens:
        return Direction.INBOUND
    if token in vocab.outbound_tokens:
        return Direction.OUTBOUND
    return Direction.UNKNOWN


def classify_direction(record: Any, vocabulary: Vocabulary | None = None) -> Direction:
    """
    Classify a document (model or row dict) by its candidate direction fields.

    The first field holding a recognized literal wins; unrecognized or empty
    values classify as UNKNOWN.
    """
    vocab = vocabulary or get_vocabulary()

    for field_name in vocab.direction_fields:
        if isinstance(record, dict):
            value = record.get(field_name)
        else:
            value = getattr(record, field_name, None)

        direction = classify_literal(value, vocab)
        if direction is not Direction.UNKNOWN:
            return direction

    return Direction.UNKNOWN


def literals_for(direction: Direction, vocabulary: Vocabulary | None = None) -> list[str]:
    """All known raw literals for a direction, in the casings stores commonly use."""
    vocab = vocabulary or get_vocabulary()
    if direction is Direction.INBOUND:
        tokens = vocab.inbound_tokens
    elif direction is Direction.OUTBOUND:
        tokens = vocab.outbound_tokens
    else:
        return []

    literals: list[str] = []
    for token in sorted(tokens):
        for variant in (token, token.upper(), token.capitalize()):
            if variant not in literals:
                literals.append(variant)
    return literals

"""Tests for vocabulary tables and direction classification."""

import json

import pytest

from corrdesk.core.direction import classify_direction, classify_literal, literals_for
from corrdesk.core.schemas_documents import Direction, Document
from corrdesk.core.vocabulary import default_vocabulary, get_vocabulary, load_vocabulary


@pytest.fixture
def vocab():
    return default_vocabulary()


@pytest.mark.parametrize(
    "literal,expected",
    [
        ("inc", Direction.INBOUND),
        ("Gelen", Direction.INBOUND),
        (" INCOMING ", Direction.INBOUND),
        ("out", Direction.OUTBOUND),
        ("Giden", Direction.OUTBOUND),
        ("External", Direction.OUTBOUND),
        ("memo", Direction.UNKNOWN),
        ("", Direction.UNKNOWN),
        (None, Direction.UNKNOWN),
    ],
)
def test_classify_literal(vocab, literal, expected):
    assert classify_literal(literal, vocab) is expected


def test_classify_direction_checks_fields_in_order(vocab):
    assert classify_direction({"inc_out": "", "direction": "giden"}, vocab) is Direction.OUTBOUND
    assert classify_direction({"incout": "gln"}, vocab) is Direction.INBOUND
    assert classify_direction(Document(inc_out="OUT"), vocab) is Direction.OUTBOUND
    assert classify_direction({}, vocab) is Direction.UNKNOWN


def test_literals_for_covers_casings(vocab):
    literals = literals_for(Direction.INBOUND, vocab)
    assert {"gelen", "GELEN", "Gelen", "inc", "INC", "Inc"} <= set(literals)
    assert literals_for(Direction.UNKNOWN, vocab) == []


def test_load_vocabulary_merges_over_defaults(tmp_path, vocab):
    path = tmp_path / "vocab.json"
    path.write_text(
        json.dumps(
            {
                "synonyms": {"Kapı": ["Kapı", "giriş"]},
                "inbound_tokens": ["Received"],
                "stop_words": ["şey"],
                "unknown_table": [1],
            }
        ),
        encoding="utf-8",
    )

    merged = load_vocabulary(path, base=vocab)

    assert merged.synonyms_for("kapı") == ["kapı", "giriş"]
    assert merged.synonyms_for("cam") == vocab.synonyms_for("cam")
    assert "received" in merged.inbound_tokens
    assert "gelen" in merged.inbound_tokens
    assert merged.is_stop_word("şey")
    assert classify_literal("received", merged) is Direction.INBOUND


def test_load_vocabulary_rejects_wrong_types(tmp_path):
    path = tmp_path / "vocab.json"
    path.write_text(json.dumps({"synonyms": ["not", "a", "map"]}), encoding="utf-8")

    with pytest.raises(ValueError, match="must be an object"):
        load_vocabulary(path)


def test_load_vocabulary_rejects_non_object(tmp_path):
    path = tmp_path / "vocab.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_vocabulary(path)


def test_get_vocabulary_reads_configured_path(tmp_path, monkeypatch):
    path = tmp_path / "vocab.json"
    path.write_text(json.dumps({"outbound_tokens": ["sent"]}), encoding="utf-8")
    monkeypatch.setenv("VOCABULARY_PATH", str(path))

    assert "sent" in get_vocabulary().outbound_tokens

"""Tests for document store queries with mocked Supabase."""

from datetime import date
from unittest.mock import MagicMock, call, patch

import pytest

from corrdesk.core.schemas_documents import SearchFilters
from corrdesk.core.vocabulary import default_vocabulary

BUILDER_METHODS = ("select", "eq", "neq", "gte", "lte", "ilike", "in_", "or_", "is_", "order", "range", "limit")


def make_builder():
    """Query builder mock whose filter methods chain back to itself."""
    builder = MagicMock()
    for name in BUILDER_METHODS:
        getattr(builder, name).return_value = builder
    builder.not_ = builder
    builder.execute.return_value = MagicMock(data=[], count=0)
    return builder


@pytest.fixture
def mock_supabase():
    """Fixture to mock Supabase client."""
    with patch("corrdesk.db.documents.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_client.table.return_value = make_builder()
        mock_get_supabase.return_value = mock_client
        yield mock_client


class TestFilterBuilding:
    def test_ilike_condition_quotes_patterns_with_spaces(self):
        from corrdesk.db.documents import ilike_condition

        assert ilike_condition("content", "cam") == "content.ilike.%cam%"
        assert ilike_condition("content", "cam duvar") == 'content.ilike."%cam duvar%"'

    def test_reserved_characters_are_stripped(self):
        from corrdesk.db.documents import clean_term, ilike_condition

        assert clean_term('cam,(duvar)"x"') == "cam duvar x"
        assert ilike_condition("content", ",()") is None

    def test_build_or_filter_crosses_terms_and_columns(self):
        from corrdesk.db.documents import build_or_filter

        conditions = build_or_filter(("content", "keywords"), ["cam", "cam", "beton"])

        assert conditions == [
            "content.ilike.%cam%",
            "keywords.ilike.%cam%",
            "content.ilike.%beton%",
            "keywords.ilike.%beton%",
        ]

    def test_apply_filters_expands_direction_literals(self):
        from corrdesk.db.documents import apply_filters

        query = make_builder()
        filters = SearchFilters(
            date_from=date(2024, 1, 1),
            date_to=date(2024, 2, 1),
            inc_out="Inbound",
            keywords="cam; beton",
            letter_no="A-0",
        )

        apply_filters(query, filters, default_vocabulary())

        query.gte.assert_called_once_with("letter_date", "2024-01-01")
        query.lte.assert_called_once_with("letter_date", "2024-02-01")
        column, literals = query.in_.call_args[0]
        assert column == "inc_out"
        assert {"gelen", "Gelen", "GELEN", "inc"} <= set(literals)
        query.ilike.assert_called_once_with("letter_no", "%A-0%")
        query.or_.assert_called_once_with("keywords.ilike.%cam%,keywords.ilike.%beton%")

    def test_apply_filters_unknown_direction_is_exact(self):
        from corrdesk.db.documents import apply_filters

        query = make_builder()
        apply_filters(query, SearchFilters(inc_out="memo"), default_vocabulary())

        query.eq.assert_called_once_with("inc_out", "memo")
        query.in_.assert_not_called()


class TestSearchDocuments:
    def test_search_documents_returns_rows_and_exact_count(self, mock_supabase):
        from corrdesk.db.documents import search_documents

        builder = mock_supabase.table.return_value
        builder.execute.return_value = MagicMock(data=[{"letter_no": "A-001"}], count=7)

        rows, total = search_documents(
            ["content.ilike.%cam%", "short_desc.ilike.%cam%"],
            SearchFilters(),
            limit=10,
            offset=20,
        )

        assert rows == [{"letter_no": "A-001"}]
        assert total == 7
        mock_supabase.table.assert_called_with("documents")
        builder.select.assert_called_once_with("*", count="exact")
        builder.or_.assert_called_once_with("content.ilike.%cam%,short_desc.ilike.%cam%")
        builder.order.assert_called_once_with("letter_date", desc=True)
        builder.range.assert_called_once_with(20, 29)

    def test_search_documents_without_conditions(self, mock_supabase):
        from corrdesk.db.documents import search_documents

        builder = mock_supabase.table.return_value
        search_documents(None, SearchFilters(type_of_corr="Letter"), limit=5)

        builder.or_.assert_not_called()
        builder.eq.assert_called_once_with("type_of_corr", "Letter")


class TestEmbeddings:
    def test_has_any_embedding(self, mock_supabase):
        from corrdesk.db.documents import has_any_embedding

        builder = mock_supabase.table.return_value
        builder.execute.return_value = MagicMock(data=[{"id": 1}])

        assert has_any_embedding() is True
        builder.is_.assert_called_once_with("embedding", "null")

    def test_match_documents_calls_rpc(self, mock_supabase):
        from corrdesk.db.documents import match_documents

        mock_supabase.rpc.return_value.execute.return_value = MagicMock(
            data=[{"letter_no": "A-001", "similarity": 0.8}]
        )

        rows = match_documents([0.1, 0.2], threshold=0.1, count=10)

        assert rows[0]["similarity"] == 0.8
        mock_supabase.rpc.assert_called_once_with(
            "match_documents",
            {"query_embedding": [0.1, 0.2], "match_threshold": 0.1, "match_count": 10},
        )


class TestLookups:
    def test_find_document_falls_through_to_internal_no(self, mock_supabase):
        from corrdesk.db.documents import find_document

        builder = mock_supabase.table.return_value
        builder.execute.side_effect = [
            MagicMock(data=[]),
            MagicMock(data=[{"letter_no": "A-001", "internal_no": "INT-100"}]),
        ]

        row = find_document(" INT-100 ")

        assert row["letter_no"] == "A-001"
        assert builder.eq.call_args_list == [
            call("letter_no", "INT-100"),
            call("internal_no", "INT-100"),
        ]

    def test_find_document_id_lookup_error_is_not_found(self, mock_supabase):
        from corrdesk.db.documents import find_document

        builder = mock_supabase.table.return_value
        builder.execute.side_effect = [
            MagicMock(data=[]),
            MagicMock(data=[]),
            Exception("invalid input syntax for type bigint"),
        ]

        assert find_document("not-a-number") is None

    def test_find_document_blank(self, mock_supabase):
        from corrdesk.db.documents import find_document

        assert find_document("   ") is None
        mock_supabase.table.assert_not_called()

    def test_get_documents_by_letter_nos_chunks_in_lists(self, mock_supabase):
        from corrdesk.db.documents import get_documents_by_letter_nos

        builder = mock_supabase.table.return_value
        builder.execute.return_value = MagicMock(data=[{"letter_no": "x"}])
        letter_nos = [f"L-{i}" for i in range(250)] + ["L-0", ""]

        rows = get_documents_by_letter_nos(letter_nos)

        assert builder.in_.call_count == 3
        assert len(builder.in_.call_args_list[0][0][1]) == 100
        assert len(builder.in_.call_args_list[2][0][1]) == 50
        assert len(rows) == 3

    def test_find_documents_by_keywords_excludes_id(self, mock_supabase):
        from corrdesk.db.documents import find_documents_by_keywords

        builder = mock_supabase.table.return_value
        find_documents_by_keywords(["cam", "cephe"], exclude_id=1, limit=5)

        builder.or_.assert_called_once_with("keywords.ilike.%cam%,keywords.ilike.%cephe%")
        builder.neq.assert_called_once_with("id", 1)
        builder.limit.assert_called_once_with(5)

    def test_find_documents_by_keywords_empty(self, mock_supabase):
        from corrdesk.db.documents import find_documents_by_keywords

        assert find_documents_by_keywords([" , "]) == []
        mock_supabase.table.assert_not_called()


class TestPagination:
    def test_list_document_relations_pages_until_short_page(self, mock_supabase):
        from corrdesk.db.documents import RELATION_COLUMNS, list_document_relations

        builder = mock_supabase.table.return_value
        builder.execute.side_effect = [
            MagicMock(data=[{"letter_no": "A"}, {"letter_no": "B"}]),
            MagicMock(data=[{"letter_no": "C"}]),
        ]

        rows = list_document_relations(page_size=2)

        assert [r["letter_no"] for r in rows] == ["A", "B", "C"]
        builder.select.assert_called_with(RELATION_COLUMNS)
        assert builder.range.call_args_list == [call(0, 1), call(2, 3)]

    def test_iter_embedded_documents_stops_on_empty_page(self, mock_supabase):
        from corrdesk.db.documents import iter_embedded_documents

        builder = mock_supabase.table.return_value
        builder.execute.side_effect = [
            MagicMock(data=[{"id": 1}, {"id": 2}]),
            MagicMock(data=[]),
        ]

        pages = list(iter_embedded_documents(page_size=2))

        assert pages == [[{"id": 1}, {"id": 2}]]

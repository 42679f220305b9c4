"""
Unit tests for the sample graph queries.

Checks query structure without requiring a live SurrealDB instance.
"""

import pytest

from graphload.graph.queries import GRAPH_QUERIES, get_query, list_queries


class TestGraphQueries:
    """Tests for SurrealDB graph queries."""

    def test_all_queries_have_description(self):
        """Every query should include a description."""
        for name, q in GRAPH_QUERIES.items():
            assert "description" in q, f"Query {name} missing description"
            assert len(q["description"]) > 10, f"Query {name} has empty description"

    def test_all_queries_have_query_string(self):
        """Every query should include a query string."""
        for name, q in GRAPH_QUERIES.items():
            assert "query" in q, f"Query {name} missing query"
            assert len(q["query"].strip()) > 10, f"Query {name} has empty query"

    def test_query_count(self):
        """Should have at least 8 sample queries."""
        assert len(GRAPH_QUERIES) >= 8

    def test_get_query_returns_string(self):
        """get_query should return a trimmed query string."""
        for name in list_queries():
            q = get_query(name)
            assert isinstance(q, str)
            assert q == q.strip()
            assert q.endswith(";")

    def test_get_query_raises_on_invalid_name(self):
        """get_query should raise KeyError for unknown queries."""
        with pytest.raises(KeyError):
            get_query("nonexistent_query_name")

    def test_list_queries_matches_dict(self):
        """list_queries should return all query names."""
        assert set(list_queries()) == set(GRAPH_QUERIES.keys())

    def test_queries_contain_graph_traversal_syntax(self):
        """Traversal queries should use SurrealDB graph syntax (-> or <-)."""
        traversal_queries = [
            "destinations_from_airport",
            "airports_per_country",
            "continent_airports",
            "two_hop_destinations",
            "busiest_hubs",
            "airport_location",
        ]
        for name in traversal_queries:
            q = get_query(name)
            assert "->" in q or "<-" in q, f"Query {name} missing graph traversal syntax"

    def test_keyword_names_are_escaped(self):
        """`contains` and `desc` collide with SurrealQL keywords."""
        for name in list_queries():
            q = get_query(name)
            assert "->contains->" not in q
            assert "<-contains<-" not in q
            assert " desc," not in q

    def test_identity_lookup_reads_registry(self):
        assert "FROM _identity" in get_query("identity_lookup")

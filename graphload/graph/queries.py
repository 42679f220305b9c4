"""
Sample SurrealDB Graph Queries.

Traversals over an air-routes graph loaded into the SurrealDB store:
airport, country and continent vertex tables joined by route and contains
relation tables. Each query is documented with the question it answers
and the traversal path.
"""

from typing import Dict


# Named collection of sample queries
GRAPH_QUERIES: Dict[str, Dict[str, str]] = {
    # ─────────────────────────────────────────────────────────────────
    # 1. Direct destinations from one airport
    # ─────────────────────────────────────────────────────────────────
    "destinations_from_airport": {
        "description": (
            "List the airports reachable with one flight from Austin (AUS). "
            "Path: airport->route->airport."
        ),
        "query": """
            SELECT
                code,
                city,
                ->route->airport.code AS destinations
            FROM airport
            WHERE code = 'AUS';
        """,
    },

    # ─────────────────────────────────────────────────────────────────
    # 2. Longest routes
    # ─────────────────────────────────────────────────────────────────
    "longest_routes": {
        "description": (
            "The ten longest routes by distance, with both endpoint codes. "
            "Reads the route relation table and its in/out airports."
        ),
        "query": """
            SELECT
                in.code AS origin,
                out.code AS destination,
                dist
            FROM route
            WHERE dist != NONE
            ORDER BY dist DESC
            LIMIT 10;
        """,
    },

    # ─────────────────────────────────────────────────────────────────
    # 3. Airports per country
    # ─────────────────────────────────────────────────────────────────
    "airports_per_country": {
        "description": (
            "Count the airports each country contains, largest first. "
            "Path: country->contains->airport."
        ),
        "query": """
            SELECT
                code,
                `desc` AS description,
                count(->`contains`->airport) AS airports
            FROM country
            ORDER BY airports DESC;
        """,
    },

    # ─────────────────────────────────────────────────────────────────
    # 4. Airports on a continent
    # ─────────────────────────────────────────────────────────────────
    "continent_airports": {
        "description": (
            "List the airport codes contained in each continent. "
            "Path: continent->contains->airport."
        ),
        "query": """
            SELECT
                code,
                `desc` AS description,
                ->`contains`->airport.code AS airports
            FROM continent;
        """,
    },

    # ─────────────────────────────────────────────────────────────────
    # 5. Two-hop reach
    # ─────────────────────────────────────────────────────────────────
    "two_hop_destinations": {
        "description": (
            "Airports reachable from Austin (AUS) with exactly one stop. "
            "Path: airport->route->airport->route->airport."
        ),
        "query": """
            SELECT
                code,
                array::distinct(->route->airport->route->airport.code) AS two_hops
            FROM airport
            WHERE code = 'AUS';
        """,
    },

    # ─────────────────────────────────────────────────────────────────
    # 6. Busiest hubs
    # ─────────────────────────────────────────────────────────────────
    "busiest_hubs": {
        "description": (
            "Airports with the most outgoing routes. "
            "Counts airport->route edges per airport."
        ),
        "query": """
            SELECT
                code,
                city,
                count(->route) AS outgoing_routes
            FROM airport
            ORDER BY outgoing_routes DESC
            LIMIT 10;
        """,
    },

    # ─────────────────────────────────────────────────────────────────
    # 7. Airport's country and continent
    # ─────────────────────────────────────────────────────────────────
    "airport_location": {
        "description": (
            "For every airport, the country and continent that contain it. "
            "Path: airport<-contains<-country and airport<-contains<-continent."
        ),
        "query": """
            SELECT
                code,
                <-`contains`<-country.code AS country,
                <-`contains`<-continent.code AS continent
            FROM airport;
        """,
    },

    # ─────────────────────────────────────────────────────────────────
    # 8. Identifier lookup
    # ─────────────────────────────────────────────────────────────────
    "identity_lookup": {
        "description": (
            "Resolve external identifiers to their vertex records through "
            "the _identity registry written by the loader."
        ),
        "query": """
            SELECT
                record::id(id) AS identity,
                vertex.code AS code,
                record::tb(vertex) AS label
            FROM _identity
            LIMIT 10;
        """,
    },
}


def get_query(name: str) -> str:
    """
    Get a named query string.

    Args:
        name: Query identifier (key in GRAPH_QUERIES).

    Returns:
        The SurrealQL query string.

    Raises:
        KeyError: If the query name is not found.
    """
    return GRAPH_QUERIES[name]["query"].strip()


def list_queries() -> list[str]:
    """List all available query names."""
    return list(GRAPH_QUERIES.keys())

"""
Shared test fixtures for the graph loader tests.
"""

import json
from pathlib import Path

import pytest

from graphload.graph.memory import InMemoryGraphStore


PROJECT_ROOT = Path(__file__).resolve().parent.parent

NODE_HEADER = "~id,~label,code:string,city:string,runways:int,lat:double,author:string,date:string"


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def store():
    """Empty in-memory store that creates undeclared labels/keys on use."""
    return InMemoryGraphStore()


@pytest.fixture
def strict_store():
    """Empty in-memory store that rejects undeclared labels/keys."""
    return InMemoryGraphStore(schema_default="none")


@pytest.fixture
def sample_schema():
    """Small air-routes schema descriptor."""
    return {
        "vertexLabels": [{"name": "airport"}, {"name": "country"}],
        "edgeLabels": [
            {"name": "route", "multiplicity": "MULTI"},
            {"name": "contains", "multiplicity": "ONE2MANY"},
        ],
        "propertyKeys": [
            {"name": "code", "dataType": "String", "cardinality": "SINGLE"},
            {"name": "city", "dataType": "String", "cardinality": "SINGLE"},
            {"name": "runways", "dataType": "Integer", "cardinality": "SINGLE"},
            {"name": "lat", "dataType": "Double", "cardinality": "SINGLE"},
            {"name": "dist", "dataType": "Integer", "cardinality": "SINGLE"},
        ],
        "graphIndices": {
            "compositeIndices": [
                {
                    "indexName": "byCode",
                    "elementType": "vertex",
                    "propertyKeys": ["code"],
                    "unique": True,
                    "indexOnly": "airport",
                }
            ]
        },
    }


@pytest.fixture
def write_schema(tmp_path):
    """Write a descriptor dict to schema.json and return its path."""
    def _write(descriptor, name="schema.json"):
        path = tmp_path / name
        path.write_text(json.dumps(descriptor))
        return path
    return _write


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV lines to a file and return its path."""
    def _write(name, lines):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return path
    return _write


@pytest.fixture
def sample_nodes(write_csv):
    """Three airports behind the header and the skipped version row."""
    return write_csv(
        "nodes.csv",
        [
            NODE_HEADER,
            "0,version,,,,,Kelvin,2022-07-06",
            "1,airport,ATL,Atlanta,5,33.6367,,",
            "2,airport,AUS,Austin,2,30.1945,,",
            "3,airport,BOS,Boston,6,42.3643,,",
        ],
    )


@pytest.fixture
def sample_edges(write_csv):
    """Two routes between the sample airports."""
    return write_csv(
        "edges.csv",
        [
            "~id,~from,~to,~label,dist:int",
            "100,1,2,route,811",
            "101,2,3,route,1410",
        ],
    )


@pytest.fixture
def project_data_dir():
    """The sample air-routes data shipped with the project."""
    return PROJECT_ROOT / "data"

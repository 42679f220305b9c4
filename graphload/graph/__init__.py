"""
Graph Layer - schema application and batched bulk loading.

Loads a JSON schema descriptor and node/edge CSV files into a graph store.
"""

from .loader import GraphLoader, LoadResult, LoadSummary
from .queries import GRAPH_QUERIES
from .schema import SchemaDescriptor, apply_schema, load_schema
from .store import GraphStore, build_store

__all__ = [
    "GraphLoader",
    "LoadResult",
    "LoadSummary",
    "GRAPH_QUERIES",
    "SchemaDescriptor",
    "apply_schema",
    "load_schema",
    "GraphStore",
    "build_store",
]

"""
Graph Bulk Loader - schema + CSV bulk load into a graph database.

Technologies:
- Schema: Pydantic (descriptor validation)
- Loading: stdlib csv streaming, batched transactions
- Store: SurrealDB (async SDK) or in-memory
- Config/Logging: Pydantic Settings + YAML, Loguru
"""

from .graph import GraphLoader, apply_schema, build_store, load_schema

__all__ = [
    "GraphLoader",
    "apply_schema",
    "build_store",
    "load_schema",
]

"""
Graph store connection interface.

A store is an explicitly passed connection object exposing two kinds of
scoped units of work:

- a management session (labels, property keys, composite indices)
- a data transaction (vertices, properties, lookups, edges)

Both are opened through async context managers that commit on success,
roll back on any error and always release the unit. Backends live in
``memory.py`` (in-process) and ``surreal.py`` (SurrealDB).

Usage:
    store = build_store(config.store, config.surreal)
    async with store:
        async with store.transaction() as tx:
            v = await tx.add_vertex("airport")
            await tx.set_property(v, "identity", "1")
"""

import itertools
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from .errors import (
    ConfigurationError,
    SchemaViolationError,
    StaleVertexError,
    TransactionClosedError,
)


# Reserved external identifier key and its unique index
IDENTITY_KEY = "identity"
IDENTITY_INDEX = "identityIndex"

_unit_ids = itertools.count(1)


# ──────────────────────────────────────────────────────────────────────────────
# Schema vocabulary
# ──────────────────────────────────────────────────────────────────────────────

_INT_RANGES = {
    "Byte": (-(2 ** 7), 2 ** 7 - 1),
    "Short": (-(2 ** 15), 2 ** 15 - 1),
    "Integer": (-(2 ** 31), 2 ** 31 - 1),
    "Long": (-(2 ** 63), 2 ** 63 - 1),
}


class DataType(str, Enum):
    """Scalar data type of a property key."""
    STRING = "String"
    CHARACTER = "Character"
    BOOLEAN = "Boolean"
    BYTE = "Byte"
    SHORT = "Short"
    INTEGER = "Integer"
    LONG = "Long"
    FLOAT = "Float"
    DOUBLE = "Double"

    @property
    def is_integral(self) -> bool:
        return self.value in _INT_RANGES

    @property
    def is_floating(self) -> bool:
        return self in (DataType.FLOAT, DataType.DOUBLE)

    @classmethod
    def infer(cls, value: Any) -> "DataType":
        """Data type used when a key is created implicitly from a value."""
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, int):
            return cls.LONG
        if isinstance(value, float):
            return cls.DOUBLE
        return cls.STRING

    def convert(self, key: str, value: Any) -> Any:
        """
        Check a value against this type.

        Integers widen to floating keys; booleans are never numbers.

        Raises:
            SchemaViolationError: If the value does not fit the type.
        """
        if self is DataType.BOOLEAN:
            if isinstance(value, bool):
                return value
        elif self.is_integral:
            if isinstance(value, int) and not isinstance(value, bool):
                low, high = _INT_RANGES[self.value]
                if low <= value <= high:
                    return value
                raise SchemaViolationError(
                    f"Value {value} out of range for {self.value} key {key!r}"
                )
        elif self.is_floating:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
        elif self is DataType.CHARACTER:
            if isinstance(value, str) and len(value) == 1:
                return value
        elif isinstance(value, str):
            return value
        raise SchemaViolationError(
            f"Value {value!r} ({type(value).__name__}) does not match "
            f"{self.value} key {key!r}"
        )


class Cardinality(str, Enum):
    """How many values a property key holds per element."""
    SINGLE = "SINGLE"
    LIST = "LIST"
    SET = "SET"


class Multiplicity(str, Enum):
    """Constraint on edges of one label between vertices."""
    MULTI = "MULTI"        # any number of parallel edges
    SIMPLE = "SIMPLE"      # at most one edge per vertex pair
    MANY2ONE = "MANY2ONE"  # at most one outgoing edge per vertex
    ONE2MANY = "ONE2MANY"  # at most one incoming edge per vertex
    ONE2ONE = "ONE2ONE"    # at most one outgoing and one incoming

    @property
    def unique_out(self) -> bool:
        return self in (Multiplicity.MANY2ONE, Multiplicity.ONE2ONE)

    @property
    def unique_in(self) -> bool:
        return self in (Multiplicity.ONE2MANY, Multiplicity.ONE2ONE)

    @property
    def unique_pair(self) -> bool:
        return self is Multiplicity.SIMPLE


class ElementType(str, Enum):
    """Element kind a composite index applies to."""
    VERTEX = "vertex"
    EDGE = "edge"


@dataclass(frozen=True)
class PropertyKeyDefinition:
    name: str
    data_type: DataType
    cardinality: Cardinality = Cardinality.SINGLE


@dataclass(frozen=True)
class IndexDefinition:
    """Composite index over one or more property keys."""
    name: str
    element_type: ElementType
    keys: Tuple[str, ...]
    unique: bool = False
    index_only: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Element handles
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Vertex:
    """Vertex handle, valid only inside the transaction that produced it."""
    id: str
    label: str
    tx_id: int


@dataclass(frozen=True)
class Edge:
    id: str
    label: str
    out_id: str
    in_id: str
    tx_id: int


# ──────────────────────────────────────────────────────────────────────────────
# Units of work
# ──────────────────────────────────────────────────────────────────────────────

class _UnitOfWork(ABC):
    """Shared open/closed bookkeeping for sessions and transactions."""

    def __init__(self):
        self.tx_id = next(_unit_ids)
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def _check_open(self) -> None:
        if not self._open:
            raise TransactionClosedError(
                f"{type(self).__name__} {self.tx_id} is already closed"
            )

    def _close(self) -> None:
        self._open = False

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...


class SchemaManagement(_UnitOfWork):
    """Schema management session. Contains-checks see pending definitions."""

    @abstractmethod
    async def make_vertex_label(self, name: str) -> None:
        ...

    @abstractmethod
    async def make_edge_label(
        self, name: str, multiplicity: Multiplicity = Multiplicity.MULTI
    ) -> None:
        ...

    @abstractmethod
    async def make_property_key(
        self,
        name: str,
        data_type: DataType,
        cardinality: Cardinality = Cardinality.SINGLE,
    ) -> None:
        ...

    @abstractmethod
    async def contains_vertex_label(self, name: str) -> bool:
        ...

    @abstractmethod
    async def contains_edge_label(self, name: str) -> bool:
        ...

    @abstractmethod
    async def contains_property_key(self, name: str) -> bool:
        ...

    @abstractmethod
    async def contains_graph_index(self, name: str) -> bool:
        ...

    @abstractmethod
    async def build_composite_index(self, index: IndexDefinition) -> None:
        """Build a new index. Raises SchemaViolationError if the name exists."""


class GraphTransaction(_UnitOfWork):
    """Data transaction. Writes become visible to others only on commit."""

    def _check_owned(self, vertex: Vertex) -> None:
        if vertex.tx_id != self.tx_id:
            raise StaleVertexError(
                f"Vertex {vertex.id} belongs to transaction {vertex.tx_id}, "
                f"not {self.tx_id}"
            )

    @abstractmethod
    async def add_vertex(self, label: str) -> Vertex:
        ...

    @abstractmethod
    async def set_property(self, vertex: Vertex, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def find_vertex(self, key: str, value: Any) -> Optional[Vertex]:
        """First vertex whose property ``key`` equals ``value``, or None."""

    @abstractmethod
    async def add_edge(
        self,
        out_vertex: Vertex,
        label: str,
        in_vertex: Vertex,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Edge:
        ...


class GraphStore(ABC):
    """Connection to a graph database."""

    backend = "abstract"

    async def connect(self) -> None:
        """Open the underlying connection (no-op for in-process stores)."""

    async def close(self) -> None:
        """Release the underlying connection."""

    async def __aenter__(self) -> "GraphStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    async def open_management(self) -> SchemaManagement:
        ...

    @abstractmethod
    async def new_transaction(self) -> GraphTransaction:
        ...

    @abstractmethod
    async def count_vertices(self) -> int:
        ...

    @abstractmethod
    async def count_edges(self) -> int:
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Drop all schema and data."""

    @asynccontextmanager
    async def management(self) -> AsyncIterator[SchemaManagement]:
        """Scoped management session: commit on success, roll back on error."""
        async with _scoped(await self.open_management()) as mgmt:
            yield mgmt

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[GraphTransaction]:
        """Scoped data transaction: commit on success, roll back on error."""
        async with _scoped(await self.new_transaction()) as tx:
            yield tx


@asynccontextmanager
async def _scoped(unit: _UnitOfWork):
    try:
        yield unit
        if unit.is_open:
            await unit.commit()
    finally:
        # Reached with the unit still open only when the body or the
        # commit raised
        if unit.is_open:
            await unit.rollback()


def build_store(store_config, surreal_config=None) -> GraphStore:
    """
    Create the store backend named in configuration.

    Args:
        store_config: StoreConfig (backend, schema_default).
        surreal_config: SurrealConfig, required for the surrealdb backend.

    Raises:
        ConfigurationError: If the backend name is unknown.
    """
    if store_config.backend == "memory":
        from .memory import InMemoryGraphStore
        return InMemoryGraphStore(schema_default=store_config.schema_default)
    if store_config.backend == "surrealdb":
        from .surreal import SurrealGraphStore
        if surreal_config is None:
            raise ConfigurationError("surrealdb backend requires surreal settings")
        return SurrealGraphStore(
            url=surreal_config.url,
            namespace=surreal_config.namespace,
            database=surreal_config.database,
            username=surreal_config.username,
            password=surreal_config.password,
        )
    raise ConfigurationError(f"Unsupported store backend: {store_config.backend}")

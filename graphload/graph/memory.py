"""
In-memory graph store.

Keeps schema and data in Python dictionaries. Transactions buffer their
writes and apply them on commit; rollback discards them. Data types,
cardinality, edge multiplicity and unique composite indices are enforced at
the offending call, the same way a real graph database rejects the write.

Usage:
    store = InMemoryGraphStore()
    async with store.transaction() as tx:
        v = await tx.add_vertex("airport")
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger

from .errors import (
    ConfigurationError,
    SchemaViolationError,
    StoreError,
    UniquenessViolationError,
)
from .store import (
    Cardinality,
    DataType,
    Edge,
    ElementType,
    GraphStore,
    GraphTransaction,
    IndexDefinition,
    Multiplicity,
    PropertyKeyDefinition,
    SchemaManagement,
    Vertex,
)

SCHEMA_DEFAULTS = ("default", "none")

IndexKey = Tuple[Any, ...]


@dataclass
class StoredVertex:
    id: str
    label: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredEdge:
    id: str
    label: str
    out_id: str
    in_id: str
    properties: Dict[str, Any] = field(default_factory=dict)


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(value)
    if isinstance(value, set):
        return frozenset(value)
    return value


def _index_key(index: IndexDefinition, label: str, props: Dict[str, Any]) -> Optional[IndexKey]:
    """Entry of an element in an index, or None if the element is not covered."""
    if index.index_only is not None and label != index.index_only:
        return None
    values = []
    for key in index.keys:
        if key not in props:
            return None
        values.append(_hashable(props[key]))
    return tuple(values)


def _describe(key: IndexKey) -> Any:
    return key[0] if len(key) == 1 else key


class InMemoryGraphStore(GraphStore):
    """
    Graph store held entirely in process memory.

    Args:
        schema_default: "default" creates undeclared labels and property
            keys on first use; "none" rejects them.
    """

    backend = "memory"

    def __init__(self, schema_default: str = "default"):
        if schema_default not in SCHEMA_DEFAULTS:
            raise ConfigurationError(f"Unsupported schema_default: {schema_default}")
        self.schema_default = schema_default
        self.logger = logger.bind(component="InMemoryGraphStore")
        self._ids = itertools.count(1)
        self._reset()

    def _reset(self) -> None:
        self.vertex_labels: Set[str] = set()
        self.edge_labels: Dict[str, Multiplicity] = {}
        self.property_keys: Dict[str, PropertyKeyDefinition] = {}
        self.indexes: Dict[str, IndexDefinition] = {}
        self._vertices: Dict[str, StoredVertex] = {}
        self._edges: Dict[str, StoredEdge] = {}
        # index name -> entry -> element ids, plus the reverse mapping
        self._index_entries: Dict[str, Dict[IndexKey, Set[str]]] = {}
        self._entry_of: Dict[Tuple[str, str], IndexKey] = {}
        # multiplicity bookkeeping
        self._out_degree: Dict[Tuple[str, str], int] = {}
        self._in_degree: Dict[Tuple[str, str], int] = {}
        self._pairs: Dict[Tuple[str, str, str], int] = {}

    # ──────────────────────────────────────────────────────────────────────
    # GraphStore API
    # ──────────────────────────────────────────────────────────────────────

    async def open_management(self) -> "InMemoryManagement":
        return InMemoryManagement(self)

    async def new_transaction(self) -> "InMemoryTransaction":
        return InMemoryTransaction(self)

    async def count_vertices(self) -> int:
        return len(self._vertices)

    async def count_edges(self) -> int:
        return len(self._edges)

    async def clear(self) -> None:
        self._reset()
        self.logger.info("In-memory store cleared")

    def vertices(self, label: Optional[str] = None) -> List[StoredVertex]:
        """Committed vertices, optionally restricted to one label."""
        return [v for v in self._vertices.values() if label is None or v.label == label]

    def edges(self, label: Optional[str] = None) -> List[StoredEdge]:
        """Committed edges, optionally restricted to one label."""
        return [e for e in self._edges.values() if label is None or e.label == label]

    # ──────────────────────────────────────────────────────────────────────
    # Internal helpers shared by sessions and transactions
    # ──────────────────────────────────────────────────────────────────────

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def _indexes_for(self, element_type: ElementType) -> List[IndexDefinition]:
        return [i for i in self.indexes.values() if i.element_type is element_type]

    def _require_vertex_label(self, label: str) -> None:
        if label in self.vertex_labels:
            return
        if self.schema_default == "none":
            raise SchemaViolationError(f"Undeclared vertex label: {label!r}")
        if label in self.edge_labels:
            raise SchemaViolationError(f"{label!r} is an edge label")
        self.vertex_labels.add(label)
        self.logger.debug(f"Created vertex label implicitly: {label}")

    def _require_edge_label(self, label: str) -> Multiplicity:
        if label in self.edge_labels:
            return self.edge_labels[label]
        if self.schema_default == "none":
            raise SchemaViolationError(f"Undeclared edge label: {label!r}")
        if label in self.vertex_labels:
            raise SchemaViolationError(f"{label!r} is a vertex label")
        self.edge_labels[label] = Multiplicity.MULTI
        self.logger.debug(f"Created edge label implicitly: {label}")
        return Multiplicity.MULTI

    def _require_property_key(self, key: str, value: Any) -> PropertyKeyDefinition:
        definition = self.property_keys.get(key)
        if definition is not None:
            return definition
        if self.schema_default == "none":
            raise SchemaViolationError(f"Undeclared property key: {key!r}")
        definition = PropertyKeyDefinition(key, DataType.infer(value))
        self.property_keys[key] = definition
        self.logger.debug(f"Created property key implicitly: {key} ({definition.data_type.value})")
        return definition

    def _set_entry(self, index_name: str, element_id: str, key: Optional[IndexKey]) -> None:
        old = self._entry_of.pop((index_name, element_id), None)
        if old is not None:
            self._index_entries[index_name][old].discard(element_id)
        if key is not None:
            self._index_entries.setdefault(index_name, {}).setdefault(key, set()).add(element_id)
            self._entry_of[(index_name, element_id)] = key

    def _elements(self, element_type: ElementType) -> Iterable:
        if element_type is ElementType.VERTEX:
            return self._vertices.values()
        return self._edges.values()

    def _scan_index(self, index: IndexDefinition) -> Dict[IndexKey, Set[str]]:
        """Entries for existing committed elements; unique clashes abort the build."""
        entries: Dict[IndexKey, Set[str]] = {}
        for element in self._elements(index.element_type):
            key = _index_key(index, element.label, element.properties)
            if key is None:
                continue
            ids = entries.setdefault(key, set())
            if index.unique and ids:
                raise UniquenessViolationError(index.name, _describe(key))
            ids.add(element.id)
        return entries

    def _install_index(self, index: IndexDefinition, entries: Dict[IndexKey, Set[str]]) -> None:
        self.indexes[index.name] = index
        self._index_entries[index.name] = entries
        for key, ids in entries.items():
            for element_id in ids:
                self._entry_of[(index.name, element_id)] = key


class InMemoryManagement(SchemaManagement):
    """Management session; definitions are applied to the store on commit."""

    def __init__(self, store: InMemoryGraphStore):
        super().__init__()
        self._store = store
        self._vertex_labels: Set[str] = set()
        self._edge_labels: Dict[str, Multiplicity] = {}
        self._property_keys: Dict[str, PropertyKeyDefinition] = {}
        self._indexes: Dict[str, IndexDefinition] = {}

    def _edge_multiplicity(self, name: str) -> Optional[Multiplicity]:
        if name in self._store.edge_labels:
            return self._store.edge_labels[name]
        return self._edge_labels.get(name)

    def _property_key(self, name: str) -> Optional[PropertyKeyDefinition]:
        return self._store.property_keys.get(name) or self._property_keys.get(name)

    async def make_vertex_label(self, name: str) -> None:
        self._check_open()
        if self._edge_multiplicity(name) is not None:
            raise SchemaViolationError(f"{name!r} is already an edge label")
        self._vertex_labels.add(name)

    async def make_edge_label(
        self, name: str, multiplicity: Multiplicity = Multiplicity.MULTI
    ) -> None:
        self._check_open()
        if await self.contains_vertex_label(name):
            raise SchemaViolationError(f"{name!r} is already a vertex label")
        existing = self._edge_multiplicity(name)
        if existing is not None and existing is not multiplicity:
            raise SchemaViolationError(
                f"Edge label {name!r} already defined with multiplicity {existing.value}"
            )
        self._edge_labels[name] = multiplicity

    async def make_property_key(
        self,
        name: str,
        data_type: DataType,
        cardinality: Cardinality = Cardinality.SINGLE,
    ) -> None:
        self._check_open()
        definition = PropertyKeyDefinition(name, data_type, cardinality)
        existing = self._property_key(name)
        if existing is not None and existing != definition:
            raise SchemaViolationError(
                f"Property key {name!r} already defined as "
                f"{existing.data_type.value}/{existing.cardinality.value}"
            )
        self._property_keys[name] = definition

    async def contains_vertex_label(self, name: str) -> bool:
        return name in self._store.vertex_labels or name in self._vertex_labels

    async def contains_edge_label(self, name: str) -> bool:
        return self._edge_multiplicity(name) is not None

    async def contains_property_key(self, name: str) -> bool:
        return self._property_key(name) is not None

    async def contains_graph_index(self, name: str) -> bool:
        return name in self._store.indexes or name in self._indexes

    async def build_composite_index(self, index: IndexDefinition) -> None:
        self._check_open()
        if await self.contains_graph_index(index.name):
            raise SchemaViolationError(f"Graph index {index.name!r} already exists")
        if not index.keys:
            raise SchemaViolationError(f"Graph index {index.name!r} has no keys")
        for key in index.keys:
            if self._property_key(key) is None:
                raise SchemaViolationError(
                    f"Graph index {index.name!r} references unknown key {key!r}"
                )
        if index.index_only is not None:
            if index.element_type is ElementType.VERTEX:
                known = await self.contains_vertex_label(index.index_only)
            else:
                known = await self.contains_edge_label(index.index_only)
            if not known:
                raise SchemaViolationError(
                    f"Graph index {index.name!r} restricted to unknown label "
                    f"{index.index_only!r}"
                )
        self._indexes[index.name] = index

    async def commit(self) -> None:
        self._check_open()
        store = self._store
        try:
            built = [(index, store._scan_index(index)) for index in self._indexes.values()]
            store.vertex_labels |= self._vertex_labels
            store.edge_labels.update(self._edge_labels)
            store.property_keys.update(self._property_keys)
            for index, entries in built:
                store._install_index(index, entries)
        finally:
            self._close()

    async def rollback(self) -> None:
        self._check_open()
        self._close()


class InMemoryTransaction(GraphTransaction):
    """Buffered data transaction against an InMemoryGraphStore."""

    def __init__(self, store: InMemoryGraphStore):
        super().__init__()
        self._store = store
        self._new_vertices: Dict[str, StoredVertex] = {}
        self._updated: Dict[str, Dict[str, Any]] = {}
        self._new_edges: Dict[str, StoredEdge] = {}
        # committed elements whose index entries are superseded by pending ones
        self._masked: Set[str] = set()
        self._pending_entries: Dict[str, Dict[IndexKey, Set[str]]] = {}
        self._pending_key_of: Dict[Tuple[str, str], IndexKey] = {}
        self._out_degree: Dict[Tuple[str, str], int] = {}
        self._in_degree: Dict[Tuple[str, str], int] = {}
        self._pairs: Dict[Tuple[str, str, str], int] = {}

    # ──────────────────────────────────────────────────────────────────────
    # Views
    # ──────────────────────────────────────────────────────────────────────

    def _vertex_view(self, vertex_id: str) -> Tuple[str, Dict[str, Any]]:
        if vertex_id in self._new_vertices:
            v = self._new_vertices[vertex_id]
            return v.label, v.properties
        stored = self._store._vertices.get(vertex_id)
        if stored is None:
            raise StoreError(f"Vertex {vertex_id} does not exist")
        return stored.label, self._updated.get(vertex_id, stored.properties)

    def _index_view(self, index_name: str, key: IndexKey) -> Set[str]:
        committed = self._store._index_entries.get(index_name, {}).get(key, set())
        ids = {i for i in committed if i not in self._masked}
        ids |= self._pending_entries.get(index_name, {}).get(key, set())
        return ids

    def _reindex(
        self,
        element_id: str,
        label: str,
        props: Dict[str, Any],
        element_type: ElementType,
        committed: bool,
    ) -> None:
        indexes = self._store._indexes_for(element_type)
        keys = [(index, _index_key(index, label, props)) for index in indexes]
        for index, key in keys:
            if index.unique and key is not None:
                if self._index_view(index.name, key) - {element_id}:
                    raise UniquenessViolationError(index.name, _describe(key))
        for index, key in keys:
            old = self._pending_key_of.pop((index.name, element_id), None)
            if old is not None:
                self._pending_entries[index.name][old].discard(element_id)
            if key is not None:
                self._pending_entries.setdefault(index.name, {}).setdefault(key, set()).add(element_id)
                self._pending_key_of[(index.name, element_id)] = key
        if committed:
            self._masked.add(element_id)

    # ──────────────────────────────────────────────────────────────────────
    # GraphTransaction API
    # ──────────────────────────────────────────────────────────────────────

    async def add_vertex(self, label: str) -> Vertex:
        self._check_open()
        self._store._require_vertex_label(label)
        vertex_id = self._store._next_id("v")
        self._new_vertices[vertex_id] = StoredVertex(vertex_id, label)
        return Vertex(vertex_id, label, self.tx_id)

    async def set_property(self, vertex: Vertex, key: str, value: Any) -> None:
        self._check_open()
        self._check_owned(vertex)
        definition = self._store._require_property_key(key, value)
        value = definition.data_type.convert(key, value)

        label, current = self._vertex_view(vertex.id)
        props = dict(current)
        if definition.cardinality is Cardinality.SINGLE:
            props[key] = value
        else:
            values = list(props.get(key, []))
            if definition.cardinality is Cardinality.LIST or value not in values:
                values.append(value)
            props[key] = values

        committed = vertex.id not in self._new_vertices
        if any(key in index.keys for index in self._store._indexes_for(ElementType.VERTEX)):
            self._reindex(vertex.id, label, props, ElementType.VERTEX, committed)
        if committed:
            self._updated[vertex.id] = props
        else:
            self._new_vertices[vertex.id].properties = props

    async def find_vertex(self, key: str, value: Any) -> Optional[Vertex]:
        self._check_open()
        for index in self._store._indexes_for(ElementType.VERTEX):
            if index.keys == (key,) and index.index_only is None:
                ids = sorted(self._index_view(index.name, (_hashable(value),)))
                if not ids:
                    return None
                label, _ = self._vertex_view(ids[0])
                return Vertex(ids[0], label, self.tx_id)

        candidates = itertools.chain(self._new_vertices.keys(), self._store._vertices.keys())
        for vertex_id in candidates:
            label, props = self._vertex_view(vertex_id)
            if key not in props:
                continue
            current = props[key]
            if current == value or (isinstance(current, list) and value in current):
                return Vertex(vertex_id, label, self.tx_id)
        return None

    async def add_edge(
        self,
        out_vertex: Vertex,
        label: str,
        in_vertex: Vertex,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Edge:
        self._check_open()
        self._check_owned(out_vertex)
        self._check_owned(in_vertex)
        store = self._store
        multiplicity = store._require_edge_label(label)

        out_key = (label, out_vertex.id)
        in_key = (label, in_vertex.id)
        pair_key = (label, out_vertex.id, in_vertex.id)
        if multiplicity.unique_out and (
            store._out_degree.get(out_key, 0) + self._out_degree.get(out_key, 0)
        ):
            raise SchemaViolationError(
                f"{multiplicity.value} edge {label!r}: vertex {out_vertex.id} already has an outgoing edge"
            )
        if multiplicity.unique_in and (
            store._in_degree.get(in_key, 0) + self._in_degree.get(in_key, 0)
        ):
            raise SchemaViolationError(
                f"{multiplicity.value} edge {label!r}: vertex {in_vertex.id} already has an incoming edge"
            )
        if multiplicity.unique_pair and (
            store._pairs.get(pair_key, 0) + self._pairs.get(pair_key, 0)
        ):
            raise SchemaViolationError(
                f"SIMPLE edge {label!r} already connects {out_vertex.id} -> {in_vertex.id}"
            )

        props: Dict[str, Any] = {}
        for key, value in (properties or {}).items():
            definition = store._require_property_key(key, value)
            props[key] = definition.data_type.convert(key, value)

        edge_id = store._next_id("e")
        if store._indexes_for(ElementType.EDGE):
            self._reindex(edge_id, label, props, ElementType.EDGE, committed=False)
        self._new_edges[edge_id] = StoredEdge(edge_id, label, out_vertex.id, in_vertex.id, props)
        self._out_degree[out_key] = self._out_degree.get(out_key, 0) + 1
        self._in_degree[in_key] = self._in_degree.get(in_key, 0) + 1
        self._pairs[pair_key] = self._pairs.get(pair_key, 0) + 1
        return Edge(edge_id, label, out_vertex.id, in_vertex.id, self.tx_id)

    async def commit(self) -> None:
        self._check_open()
        store = self._store
        try:
            # Re-check unique entries against data committed since they were written
            for name, entries in self._pending_entries.items():
                index = store.indexes.get(name)
                if index is None or not index.unique:
                    continue
                for key, ids in entries.items():
                    if not ids:
                        continue
                    committed = store._index_entries.get(name, {}).get(key, set())
                    if (committed - self._masked) - ids:
                        raise UniquenessViolationError(name, _describe(key))

            store._vertices.update(self._new_vertices)
            for vertex_id, props in self._updated.items():
                store._vertices[vertex_id].properties = props
            for (name, element_id), key in self._pending_key_of.items():
                store._set_entry(name, element_id, key)
            for element_id in self._masked:
                for index in store.indexes.values():
                    if (index.name, element_id) not in self._pending_key_of:
                        store._set_entry(index.name, element_id, None)
            store._edges.update(self._new_edges)
            for counter, pending in (
                (store._out_degree, self._out_degree),
                (store._in_degree, self._in_degree),
                (store._pairs, self._pairs),
            ):
                for key, count in pending.items():
                    counter[key] = counter.get(key, 0) + count
        finally:
            self._close()

    async def rollback(self) -> None:
        self._check_open()
        self._close()

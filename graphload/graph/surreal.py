"""
SurrealDB Graph Store.

Maps the graph schema onto SurrealDB using the async Python SDK:

- vertex label   -> DEFINE TABLE <label> TYPE NORMAL SCHEMALESS
- edge label     -> DEFINE TABLE <label> TYPE RELATION SCHEMALESS, plus
                    unique indexes on in/out encoding the multiplicity
- property key   -> DEFINE FIELD <key> ON TABLE <t> TYPE option<...> on
                    every label table
- composite index -> DEFINE INDEX <name> ON TABLE <t> FIELDS ... [UNIQUE]

A small catalog (_vertex_label, _edge_label, _property_key, _graph_index)
records the definitions, and an _identity table keyed by the external
identifier gives global identity uniqueness and direct endpoint lookup.

Management sessions and data transactions buffer their statements and send
them as one BEGIN/COMMIT TRANSACTION request on commit.
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from loguru import logger

try:
    from surrealdb import AsyncSurreal
except ImportError:
    AsyncSurreal = None  # Graceful degradation if not installed

from .errors import SchemaViolationError, StoreError, UniquenessViolationError
from .store import (
    IDENTITY_INDEX,
    IDENTITY_KEY,
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

CATALOG_TABLES = ("_vertex_label", "_edge_label", "_property_key", "_graph_index", "_identity")
RESERVED_FIELDS = ("id", "in", "out")

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_FIELD_TYPES = {
    DataType.STRING: "string",
    DataType.CHARACTER: "string",
    DataType.BOOLEAN: "bool",
    DataType.BYTE: "int",
    DataType.SHORT: "int",
    DataType.INTEGER: "int",
    DataType.LONG: "int",
    DataType.FLOAT: "float",
    DataType.DOUBLE: "float",
}


def _ident(name: str) -> str:
    """Validate a label or key for use as a bare SurrealQL identifier."""
    if not _IDENT.match(name) or name in CATALOG_TABLES:
        raise SchemaViolationError(f"Name not usable as a SurrealDB identifier: {name!r}")
    return name


def _quoted(name: str) -> str:
    """Escaped identifier, so names such as ``desc`` or ``contains`` are not read as keywords."""
    return f"`{_ident(name)}`"


def field_type(definition: PropertyKeyDefinition) -> str:
    """SurrealQL field type for a property key: ``option<int>``, ``option<array<float>>``..."""
    base = _FIELD_TYPES[definition.data_type]
    if definition.cardinality is Cardinality.LIST:
        base = f"array<{base}>"
    elif definition.cardinality is Cardinality.SET:
        base = f"set<{base}>"
    return f"option<{base}>"


def vertex_label_statements(label: str) -> List[str]:
    return [f"DEFINE TABLE IF NOT EXISTS {_quoted(label)} TYPE NORMAL SCHEMALESS"]


def edge_label_statements(label: str, multiplicity: Multiplicity) -> List[str]:
    """Relation table plus the unique indexes that enforce the multiplicity."""
    label = _ident(label)
    table = _quoted(label)
    statements = [f"DEFINE TABLE IF NOT EXISTS {table} TYPE RELATION SCHEMALESS"]
    # RELATE a->label->b stores the source in `in` and the target in `out`
    if multiplicity.unique_out:
        statements.append(
            f"DEFINE INDEX IF NOT EXISTS {label}_single_out ON TABLE {table} FIELDS in UNIQUE"
        )
    if multiplicity.unique_in:
        statements.append(
            f"DEFINE INDEX IF NOT EXISTS {label}_single_in ON TABLE {table} FIELDS out UNIQUE"
        )
    if multiplicity.unique_pair:
        statements.append(
            f"DEFINE INDEX IF NOT EXISTS {label}_simple ON TABLE {table} FIELDS in, out UNIQUE"
        )
    return statements


def field_statement(definition: PropertyKeyDefinition, table: str) -> str:
    return (
        f"DEFINE FIELD IF NOT EXISTS {_quoted(definition.name)} ON TABLE {_quoted(table)} "
        f"TYPE {field_type(definition)}"
    )


def index_statements(index: IndexDefinition, tables: List[str]) -> List[str]:
    fields = ", ".join(_quoted(k) for k in index.keys)
    unique = " UNIQUE" if index.unique else ""
    return [
        f"DEFINE INDEX IF NOT EXISTS {_ident(index.name)} ON TABLE {_quoted(t)} FIELDS {fields}{unique}"
        for t in tables
    ]


def _records(response: Any) -> Any:
    """
    Normalize a query response to the first statement's result.

    Depending on the SDK version, query() returns either the result itself
    or a list of {"status", "result"} dicts per statement.
    """
    if (
        isinstance(response, list)
        and response
        and isinstance(response[0], dict)
        and "status" in response[0]
        and "result" in response[0]
    ):
        first = response[0]
        if first.get("status") == "ERR":
            raise StoreError(f"SurrealDB error: {first.get('result')}")
        return first.get("result")
    if isinstance(response, str):
        raise StoreError(f"SurrealDB error: {response}")
    return response


def _check_committed(response: Any) -> None:
    """A buffered transaction starts with RETURN true; anything else is a failure."""
    if isinstance(response, list) and response and isinstance(response[0], dict) and "status" in response[0]:
        errors = [r.get("result") for r in response if r.get("status") == "ERR"]
        if errors:
            # Statements after the failing one only report the rollback
            cause = next((e for e in errors if "failed transaction" not in str(e)), errors[0])
            raise StoreError(f"SurrealDB transaction failed: {cause}")
        return
    if response is True or (isinstance(response, list) and response and response[0] is True):
        return
    raise StoreError(f"SurrealDB transaction failed: {response}")


@dataclass
class _Catalog:
    vertex_labels: Set[str] = field(default_factory=set)
    edge_labels: Dict[str, Multiplicity] = field(default_factory=dict)
    property_keys: Dict[str, PropertyKeyDefinition] = field(default_factory=dict)
    indexes: Dict[str, IndexDefinition] = field(default_factory=dict)


class _StatementBuffer:
    """Statements and parameters of one buffered transaction."""

    def __init__(self):
        self.statements: List[str] = []
        self.params: Dict[str, Any] = {}
        self._counter = 0

    def next_id(self) -> int:
        self._counter += 1
        return self._counter

    def add(self, sql: str, params: Optional[Dict[str, Any]] = None) -> None:
        self.statements.append(sql)
        self.params.update(params or {})

    def render(self) -> str:
        body = ";\n".join(self.statements)
        return f"BEGIN TRANSACTION;\nRETURN true;\n{body};\nCOMMIT TRANSACTION;"

    def __len__(self) -> int:
        return len(self.statements)


class SurrealGraphStore(GraphStore):
    """Graph store backed by a SurrealDB namespace/database."""

    backend = "surrealdb"

    def __init__(
        self,
        url: str = "ws://localhost:8000/rpc",
        namespace: str = "graph",
        database: str = "airroutes",
        username: str = "root",
        password: str = "root",
    ):
        if AsyncSurreal is None:
            raise ImportError(
                "surrealdb package not installed. "
                "Install with: pip install surrealdb>=1.0.0"
            )
        self.url = url
        self.namespace = namespace
        self.database = database
        self.username = username
        self.password = password
        self.db = None
        self._catalog: Optional[_Catalog] = None
        self.logger = logger.bind(component="SurrealGraphStore")

    async def connect(self) -> None:
        """Establish connection to SurrealDB."""
        self.db = AsyncSurreal(self.url)
        await self.db.connect()
        await self.db.signin({"username": self.username, "password": self.password})
        await self.db.use(self.namespace, self.database)
        self.logger.info(f"Connected to SurrealDB: {self.url} ({self.namespace}/{self.database})")

    async def close(self) -> None:
        """Close SurrealDB connection."""
        if self.db:
            await self.db.close()
            self.db = None
            self.logger.debug("SurrealDB connection closed")

    async def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self.db is None:
            raise StoreError("SurrealDB store is not connected")
        try:
            response = await self.db.query(sql, params or {})
        except Exception as e:
            raise StoreError(f"SurrealDB query failed: {e}") from e
        return _records(response)

    async def execute(self, buffer: _StatementBuffer) -> None:
        """Send a buffered transaction."""
        if self.db is None:
            raise StoreError("SurrealDB store is not connected")
        try:
            response = await self.db.query(buffer.render(), buffer.params)
        except Exception as e:
            raise StoreError(f"SurrealDB transaction failed: {e}") from e
        _check_committed(response)

    # ──────────────────────────────────────────────────────────────────────
    # Catalog
    # ──────────────────────────────────────────────────────────────────────

    async def catalog(self) -> _Catalog:
        if self._catalog is None:
            self._catalog = await self._load_catalog()
        return self._catalog

    async def _load_catalog(self) -> _Catalog:
        catalog = _Catalog()
        for row in await self.query("SELECT name FROM _vertex_label") or []:
            catalog.vertex_labels.add(row["name"])
        for row in await self.query("SELECT name, multiplicity FROM _edge_label") or []:
            catalog.edge_labels[row["name"]] = Multiplicity(row["multiplicity"])
        for row in await self.query("SELECT name, data_type, cardinality FROM _property_key") or []:
            catalog.property_keys[row["name"]] = PropertyKeyDefinition(
                row["name"], DataType(row["data_type"]), Cardinality(row["cardinality"])
            )
        rows = await self.query(
            "SELECT name, element_type, keys, unique, index_only FROM _graph_index"
        )
        for row in rows or []:
            catalog.indexes[row["name"]] = IndexDefinition(
                name=row["name"],
                element_type=ElementType(row["element_type"]),
                keys=tuple(row["keys"]),
                unique=bool(row["unique"]),
                index_only=row.get("index_only"),
            )
        self.logger.debug(
            f"Catalog: {len(catalog.vertex_labels)} vertex labels, "
            f"{len(catalog.edge_labels)} edge labels, {len(catalog.property_keys)} keys, "
            f"{len(catalog.indexes)} indexes"
        )
        return catalog

    # ──────────────────────────────────────────────────────────────────────
    # GraphStore API
    # ──────────────────────────────────────────────────────────────────────

    async def open_management(self) -> "SurrealManagement":
        return SurrealManagement(self, await self.catalog())

    async def new_transaction(self) -> "SurrealTransaction":
        return SurrealTransaction(self, await self.catalog())

    async def _count(self, tables) -> int:
        total = 0
        for table in sorted(tables):
            rows = await self.query(
                "SELECT count() AS n FROM type::table($table) GROUP ALL", {"table": table}
            )
            if rows:
                total += rows[0]["n"]
        return total

    async def count_vertices(self) -> int:
        return await self._count((await self.catalog()).vertex_labels)

    async def count_edges(self) -> int:
        return await self._count((await self.catalog()).edge_labels)

    async def clear(self) -> None:
        info = await self.query("INFO FOR DB")
        tables = list((info or {}).get("tables", {}))
        for table in tables:
            await self.query(f"REMOVE TABLE IF EXISTS `{table}`")
        self._catalog = _Catalog()
        self.logger.info(f"Cleared {len(tables)} tables from {self.namespace}/{self.database}")


class SurrealManagement(SchemaManagement):
    """Buffered schema session; catalog is updated after a successful commit."""

    def __init__(self, store: SurrealGraphStore, catalog: _Catalog):
        super().__init__()
        self._store = store
        self._catalog = catalog
        self._pending = _Catalog()
        self._buffer = _StatementBuffer()

    def _vertex_tables(self) -> List[str]:
        return sorted(self._catalog.vertex_labels | self._pending.vertex_labels)

    def _edge_tables(self) -> List[str]:
        return sorted(set(self._catalog.edge_labels) | set(self._pending.edge_labels))

    def _keys(self) -> List[PropertyKeyDefinition]:
        keys = dict(self._catalog.property_keys)
        keys.update(self._pending.property_keys)
        return list(keys.values())

    def _multiplicity(self, name: str) -> Optional[Multiplicity]:
        return self._catalog.edge_labels.get(name) or self._pending.edge_labels.get(name)

    def _property_key(self, name: str) -> Optional[PropertyKeyDefinition]:
        return self._catalog.property_keys.get(name) or self._pending.property_keys.get(name)

    def _add_catalog_record(self, table: str, name: str, content: Dict[str, Any]) -> None:
        n = self._buffer.next_id()
        self._buffer.add(
            f"UPSERT type::thing('{table}', $name_{n}) CONTENT $content_{n}",
            {f"name_{n}": name, f"content_{n}": content},
        )

    async def make_vertex_label(self, name: str) -> None:
        self._check_open()
        if await self.contains_vertex_label(name):
            return
        if self._multiplicity(name) is not None:
            raise SchemaViolationError(f"{name!r} is already an edge label")
        for sql in vertex_label_statements(name):
            self._buffer.add(sql)
        for key in self._keys():
            self._buffer.add(field_statement(key, name))
        self._add_catalog_record("_vertex_label", name, {"name": name})
        self._pending.vertex_labels.add(name)

    async def make_edge_label(
        self, name: str, multiplicity: Multiplicity = Multiplicity.MULTI
    ) -> None:
        self._check_open()
        existing = self._multiplicity(name)
        if existing is not None:
            if existing is not multiplicity:
                raise SchemaViolationError(
                    f"Edge label {name!r} already defined with multiplicity {existing.value}"
                )
            return
        if await self.contains_vertex_label(name):
            raise SchemaViolationError(f"{name!r} is already a vertex label")
        for sql in edge_label_statements(name, multiplicity):
            self._buffer.add(sql)
        for key in self._keys():
            self._buffer.add(field_statement(key, name))
        self._add_catalog_record(
            "_edge_label", name, {"name": name, "multiplicity": multiplicity.value}
        )
        self._pending.edge_labels[name] = multiplicity

    async def make_property_key(
        self,
        name: str,
        data_type: DataType,
        cardinality: Cardinality = Cardinality.SINGLE,
    ) -> None:
        self._check_open()
        if name in RESERVED_FIELDS:
            raise SchemaViolationError(f"{name!r} is a reserved SurrealDB field")
        definition = PropertyKeyDefinition(name, data_type, cardinality)
        existing = self._property_key(name)
        if existing is not None:
            if existing != definition:
                raise SchemaViolationError(
                    f"Property key {name!r} already defined as "
                    f"{existing.data_type.value}/{existing.cardinality.value}"
                )
            return
        for table in self._vertex_tables() + self._edge_tables():
            self._buffer.add(field_statement(definition, table))
        self._add_catalog_record(
            "_property_key",
            name,
            {"name": name, "data_type": data_type.value, "cardinality": cardinality.value},
        )
        self._pending.property_keys[name] = definition

    async def contains_vertex_label(self, name: str) -> bool:
        return name in self._catalog.vertex_labels or name in self._pending.vertex_labels

    async def contains_edge_label(self, name: str) -> bool:
        return self._multiplicity(name) is not None

    async def contains_property_key(self, name: str) -> bool:
        return self._property_key(name) is not None

    async def contains_graph_index(self, name: str) -> bool:
        return name in self._catalog.indexes or name in self._pending.indexes

    async def build_composite_index(self, index: IndexDefinition) -> None:
        self._check_open()
        if await self.contains_graph_index(index.name):
            raise SchemaViolationError(f"Graph index {index.name!r} already exists")
        for key in index.keys:
            if self._property_key(key) is None:
                raise SchemaViolationError(
                    f"Graph index {index.name!r} references unknown key {key!r}"
                )
        if index.index_only is not None:
            tables = [index.index_only]
        elif index.element_type is ElementType.VERTEX:
            tables = self._vertex_tables()
        else:
            tables = self._edge_tables()
        for sql in index_statements(index, tables):
            self._buffer.add(sql)
        self._add_catalog_record(
            "_graph_index",
            index.name,
            {
                "name": index.name,
                "element_type": index.element_type.value,
                "keys": list(index.keys),
                "unique": index.unique,
                "index_only": index.index_only,
            },
        )
        self._pending.indexes[index.name] = index

    async def commit(self) -> None:
        self._check_open()
        try:
            if len(self._buffer):
                await self._store.execute(self._buffer)
            self._catalog.vertex_labels |= self._pending.vertex_labels
            self._catalog.edge_labels.update(self._pending.edge_labels)
            self._catalog.property_keys.update(self._pending.property_keys)
            self._catalog.indexes.update(self._pending.indexes)
        finally:
            self._close()

    async def rollback(self) -> None:
        self._check_open()
        self._close()


class SurrealTransaction(GraphTransaction):
    """
    Buffered data transaction.

    Reads see committed data plus vertices created in this transaction;
    property updates to committed vertices become visible on commit.
    """

    def __init__(self, store: SurrealGraphStore, catalog: _Catalog):
        super().__init__()
        self._store = store
        self._catalog = catalog
        self._new_vertices: Dict[str, Tuple[str, Dict[str, Any]]] = {}
        self._identities: Dict[str, str] = {}
        self._writes = _StatementBuffer()

    def _definition(self, key: str) -> PropertyKeyDefinition:
        definition = self._catalog.property_keys.get(key)
        if definition is None:
            raise SchemaViolationError(f"Undeclared property key: {key!r}")
        return definition

    async def add_vertex(self, label: str) -> Vertex:
        self._check_open()
        if label not in self._catalog.vertex_labels:
            raise SchemaViolationError(f"Undeclared vertex label: {label!r}")
        key = uuid.uuid4().hex
        self._new_vertices[key] = (label, {})
        return Vertex(key, label, self.tx_id)

    async def _check_identity(self, vertex: Vertex, identity: str) -> None:
        owner = self._identities.get(identity)
        if owner is not None and owner != vertex.id:
            raise UniquenessViolationError(IDENTITY_INDEX, identity)
        if owner is None and await self._lookup_identity(identity) is not None:
            raise UniquenessViolationError(IDENTITY_INDEX, identity)

    async def set_property(self, vertex: Vertex, key: str, value: Any) -> None:
        self._check_open()
        self._check_owned(vertex)
        definition = self._definition(key)
        value = definition.data_type.convert(key, value)

        if vertex.id not in self._new_vertices:
            if key == IDENTITY_KEY:
                raise SchemaViolationError("identity of a committed vertex cannot change")
            self._buffer_update(vertex, definition, value)
            return

        label, props = self._new_vertices[vertex.id]
        if key == IDENTITY_KEY:
            await self._check_identity(vertex, value)
            old = props.get(IDENTITY_KEY)
            if old is not None:
                self._identities.pop(old, None)
            self._identities[value] = vertex.id
        if definition.cardinality is Cardinality.SINGLE:
            props[key] = value
        else:
            values = props.setdefault(key, [])
            if definition.cardinality is Cardinality.LIST or value not in values:
                values.append(value)

    def _buffer_update(self, vertex: Vertex, definition: PropertyKeyDefinition, value: Any) -> None:
        n = self._writes.next_id()
        name = _quoted(definition.name)
        if definition.cardinality is Cardinality.SINGLE:
            expr = f"$value_{n}"
        elif definition.cardinality is Cardinality.LIST:
            expr = f"array::append({name} ?? [], $value_{n})"
        else:
            expr = f"array::union({name} ?? [], [$value_{n}])"
        self._writes.add(
            f"UPDATE type::thing($tb_{n}, $id_{n}) SET {name} = {expr}",
            {f"tb_{n}": vertex.label, f"id_{n}": vertex.id, f"value_{n}": value},
        )

    async def _lookup_identity(self, identity: str) -> Optional[Tuple[str, str]]:
        rows = await self._store.query(
            "SELECT record::tb(vertex) AS label, record::id(vertex) AS key "
            "FROM type::thing('_identity', $identity)",
            {"identity": identity},
        )
        if not rows:
            return None
        return rows[0]["label"], str(rows[0]["key"])

    async def find_vertex(self, key: str, value: Any) -> Optional[Vertex]:
        self._check_open()
        if key == IDENTITY_KEY:
            vertex_id = self._identities.get(value)
            if vertex_id is not None:
                return Vertex(vertex_id, self._new_vertices[vertex_id][0], self.tx_id)
            found = await self._lookup_identity(value)
            if found is None:
                return None
            return Vertex(found[1], found[0], self.tx_id)

        for vertex_id, (label, props) in self._new_vertices.items():
            current = props.get(key)
            if current == value or (isinstance(current, list) and value in current):
                return Vertex(vertex_id, label, self.tx_id)
        field_name = _quoted(key)
        definition = self._definition(key)
        if definition.cardinality is Cardinality.SINGLE:
            condition = f"{field_name} = $value"
        else:
            condition = f"$value INSIDE {field_name}"
        for table in sorted(self._catalog.vertex_labels):
            rows = await self._store.query(
                f"SELECT record::id(id) AS key FROM type::table($table) WHERE {condition} LIMIT 1",
                {"table": table, "value": value},
            )
            if rows:
                return Vertex(str(rows[0]["key"]), table, self.tx_id)
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
        if label not in self._catalog.edge_labels:
            raise SchemaViolationError(f"Undeclared edge label: {label!r}")
        props = {
            key: self._definition(key).data_type.convert(key, value)
            for key, value in (properties or {}).items()
        }

        n = self._writes.next_id()
        edge_key = uuid.uuid4().hex
        self._writes.add(
            f"LET $from_{n} = type::thing($from_tb_{n}, $from_id_{n})",
            {f"from_tb_{n}": out_vertex.label, f"from_id_{n}": out_vertex.id},
        )
        self._writes.add(
            f"LET $to_{n} = type::thing($to_tb_{n}, $to_id_{n})",
            {f"to_tb_{n}": in_vertex.label, f"to_id_{n}": in_vertex.id},
        )
        self._writes.add(
            f"RELATE $from_{n}->{_quoted(label)}:`{edge_key}`->$to_{n} CONTENT $props_{n}",
            {f"props_{n}": props},
        )
        return Edge(edge_key, label, out_vertex.id, in_vertex.id, self.tx_id)

    def _render_creates(self) -> _StatementBuffer:
        buffer = _StatementBuffer()
        for vertex_id, (label, props) in self._new_vertices.items():
            n = buffer.next_id()
            buffer.add(
                f"CREATE type::thing($tb_v{n}, $id_v{n}) CONTENT $data_v{n}",
                {f"tb_v{n}": label, f"id_v{n}": vertex_id, f"data_v{n}": props},
            )
            identity = props.get(IDENTITY_KEY)
            if identity is not None:
                buffer.add(
                    f"CREATE type::thing('_identity', $identity_v{n}) "
                    f"SET vertex = type::thing($tb_v{n}, $id_v{n})",
                    {f"identity_v{n}": identity},
                )
        buffer.statements.extend(self._writes.statements)
        buffer.params.update(self._writes.params)
        return buffer

    async def commit(self) -> None:
        self._check_open()
        try:
            buffer = self._render_creates()
            if len(buffer):
                await self._store.execute(buffer)
        finally:
            self._close()

    async def rollback(self) -> None:
        self._check_open()
        self._close()

"""
Graph Bulk Loader.

Loads a schema descriptor, a node CSV and an edge CSV into a graph store.

Loading order:
1. Schema (labels, property keys, composite indices)
2. Nodes, all in one transaction (all-or-nothing)
3. Edges, one transaction per batch (a failed batch is logged and skipped)

Usage:
    loader = GraphLoader(store, batch_size=100)
    summary = await loader.load_all(schema_path, nodes_path, edges_path)
"""

import csv
import time
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from loguru import logger

from .errors import BatchCommitError, ParseError, UnresolvedEndpointError
from .schema import SchemaResult, apply_schema, load_schema
from .store import IDENTITY_KEY, GraphStore, GraphTransaction, Vertex
from .values import Column, ValueKind, parse_header

# Trailing node columns that carry loader metadata rather than properties
METADATA_COLUMNS = 2

DEFAULT_BATCH_SIZE = 100
DEFAULT_WEIGHT_KEY = "dist"


@dataclass
class LoadResult:
    """Result of loading one CSV file."""
    table: str
    table_type: str  # "node" or "edge"
    records_loaded: int = 0
    rows_processed: int = 0
    skipped: int = 0
    errors: int = 0
    batches: int = 0
    failed_batches: int = 0


@dataclass
class LoadSummary:
    """Outcome of a full schema + nodes + edges load."""
    schema: SchemaResult
    nodes: LoadResult
    edges: LoadResult
    elapsed_seconds: float
    vertex_count: int
    edge_count: int
    results: Dict[str, LoadResult] = field(default_factory=dict)


def _read_rows(reader, path: Path) -> Iterator[List[str]]:
    """Rows of a csv reader; undecodable bytes and malformed CSV raise ParseError."""
    try:
        yield from reader
    except (UnicodeDecodeError, csv.Error) as e:
        raise ParseError(f"{path.name} after line {reader.line_num}: {e}") from e


def _batched(rows: Iterator[List[str]], size: int) -> Iterator[List[List[str]]]:
    while True:
        batch = list(islice(rows, size))
        if not batch:
            return
        yield batch


class GraphLoader:
    """
    Bulk-loads vertices and edges into a graph store.

    Vertices are keyed by an external identifier stored in the reserved
    ``identity`` property; edge rows refer to their endpoints by that
    identifier.
    """

    def __init__(
        self,
        store: GraphStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        weight_key: str = DEFAULT_WEIGHT_KEY,
    ):
        """
        Initialize the loader.

        Args:
            store: Connected graph store.
            batch_size: Edge rows per transaction.
            weight_key: Edge property that receives the weight column.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.store = store
        self.batch_size = batch_size
        self.weight_key = weight_key
        self.logger = logger.bind(component="GraphLoader")

    async def load_all(
        self,
        schema_path: Path,
        nodes_path: Path,
        edges_path: Path,
    ) -> LoadSummary:
        """
        Apply the schema, then load nodes and edges.

        Schema and node errors propagate; edge batch errors are logged.

        Returns:
            LoadSummary with elapsed load time and final counts.
        """
        self.logger.info("=" * 60)
        self.logger.info(f"GRAPH LOAD: {self.store.backend} store")
        self.logger.info("=" * 60)

        descriptor = load_schema(schema_path)
        schema_result = await apply_schema(self.store, descriptor)

        started = time.perf_counter()
        nodes = await self.load_nodes(nodes_path)
        edges = await self.load_edges(edges_path)
        elapsed = time.perf_counter() - started

        vertex_count = await self.store.count_vertices()
        edge_count = await self.store.count_edges()
        self.logger.info(f"Data loaded in {elapsed:.2f}s")
        self.logger.info(f"Total vertices: {vertex_count}")
        self.logger.info(f"Total edges: {edge_count}")

        return LoadSummary(
            schema=schema_result,
            nodes=nodes,
            edges=edges,
            elapsed_seconds=elapsed,
            vertex_count=vertex_count,
            edge_count=edge_count,
            results={"nodes": nodes, "edges": edges},
        )

    # ──────────────────────────────────────────────────────────────────────
    # Nodes
    # ──────────────────────────────────────────────────────────────────────

    async def load_nodes(self, path: Path) -> LoadResult:
        """
        Load every vertex of a node CSV in a single transaction.

        Row 0 holds the typed headers, row 1 is skipped. Column 0 is the
        external identifier, column 1 the label; the last two columns are
        not loaded. Empty cells are omitted.

        Raises:
            ParseError: On a short row, a bad numeric cell, or undecodable input.
            StoreError: If the store rejects a write (e.g. duplicate identity).
        """
        path = Path(path)
        result = LoadResult(table=path.name, table_type="node")

        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f)
            rows = _read_rows(reader, path)
            headers = next(rows, None)
            if headers is None:
                self.logger.warning(f"Node file is empty: {path}")
                return result
            columns = parse_header(headers)
            properties = columns[2:len(columns) - METADATA_COLUMNS]
            next(rows, None)

            async with self.store.transaction() as tx:
                for fields in rows:
                    if not fields:
                        continue
                    await self._add_node(tx, fields, columns, properties, reader.line_num)
                    result.rows_processed += 1
                    result.records_loaded += 1

        self.logger.info(f"✓ {result.table}: {result.records_loaded} nodes")
        return result

    async def _add_node(
        self,
        tx: GraphTransaction,
        fields: List[str],
        columns: List[Column],
        properties: List[Column],
        line: int,
    ) -> None:
        required = max(2, len(columns) - METADATA_COLUMNS)
        if len(fields) < required:
            raise ParseError(f"expected {required} fields, found {len(fields)}", line=line)
        identity = fields[0].strip()
        label = fields[1].strip()
        vertex = await tx.add_vertex(label)
        await tx.set_property(vertex, IDENTITY_KEY, identity)
        for column in properties:
            raw = fields[column.index].strip()
            if not raw:
                continue
            try:
                value = column.coerce(raw)
            except ParseError as e:
                raise ParseError(str(e), column=e.column, value=e.value, line=line) from e
            await tx.set_property(vertex, column.name, value)

    # ──────────────────────────────────────────────────────────────────────
    # Edges
    # ──────────────────────────────────────────────────────────────────────

    async def load_edges(self, path: Path, batch_size: Optional[int] = None) -> LoadResult:
        """
        Load an edge CSV in fixed-size batches, one transaction per batch.

        Rows are ``[ignored, fromId, toId, label, weight?]``. Rows whose
        endpoints are not loaded are skipped. A failing batch is rolled
        back, logged and skipped; the remaining batches still load.

        Args:
            path: Edge CSV file.
            batch_size: Rows per transaction (defaults to the loader's).

        Returns:
            LoadResult; ``records_loaded`` counts edges in committed batches.

        Raises:
            ParseError: If the file cannot be decoded as UTF-8 CSV.
        """
        batch_size = self.batch_size if batch_size is None else batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        path = Path(path)
        result = LoadResult(table=path.name, table_type="edge")

        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f)
            rows = _read_rows(reader, path)
            next(rows, None)
            rows = (fields for fields in rows if fields)

            for batch in _batched(rows, batch_size):
                result.batches += 1
                result.rows_processed += len(batch)
                try:
                    created, skipped = await self._load_edge_batch(result.batches, batch)
                except BatchCommitError as e:
                    result.failed_batches += 1
                    result.errors += len(batch)
                    self.logger.error(f"Failed to insert batch of edges: {e}")
                    continue
                result.records_loaded += created
                result.skipped += skipped
                self.logger.debug(
                    f"Edge batch {result.batches}: {created} created, {skipped} skipped"
                )

        self.logger.info(
            f"✓ {result.table}: {result.records_loaded} edges"
            + (f" ({result.skipped} unresolved rows skipped)" if result.skipped else "")
            + (f" ({result.failed_batches} failed batches)" if result.failed_batches else "")
        )
        return result

    async def _load_edge_batch(self, number: int, batch: List[List[str]]) -> Tuple[int, int]:
        """
        Create the edges of one batch in a fresh transaction.

        Returns:
            (edges created, rows skipped)

        Raises:
            BatchCommitError: If anything in the batch fails.
        """
        created = skipped = 0
        try:
            async with self.store.transaction() as tx:
                cache: Dict[str, Optional[Vertex]] = {}
                for fields in batch:
                    try:
                        await self._add_edge(tx, fields, cache)
                        created += 1
                    except UnresolvedEndpointError as e:
                        skipped += 1
                        self.logger.debug(f"Skipping edge row {fields}: {e}")
        except Exception as e:
            raise BatchCommitError(number, len(batch), e) from e
        return created, skipped

    async def _resolve(
        self,
        tx: GraphTransaction,
        identity: str,
        cache: Dict[str, Optional[Vertex]],
    ) -> Vertex:
        if identity not in cache:
            cache[identity] = await tx.find_vertex(IDENTITY_KEY, identity)
        vertex = cache[identity]
        if vertex is None:
            raise UnresolvedEndpointError(identity)
        return vertex

    async def _add_edge(
        self,
        tx: GraphTransaction,
        fields: List[str],
        cache: Dict[str, Optional[Vertex]],
    ) -> None:
        if len(fields) < 4:
            raise ParseError(f"edge row needs at least 4 fields, found {len(fields)}")
        from_id, to_id, label = fields[1].strip(), fields[2].strip(), fields[3].strip()
        weight = fields[4].strip() if len(fields) > 4 else ""

        from_vertex = await self._resolve(tx, from_id, cache)
        to_vertex = await self._resolve(tx, to_id, cache)

        properties = None
        if weight:
            try:
                properties = {self.weight_key: ValueKind.INT.parse(weight)}
            except ValueError as e:
                raise ParseError(
                    f"Cannot parse weight {weight!r} as int",
                    column=self.weight_key,
                    value=weight,
                ) from e
        await tx.add_edge(from_vertex, label, to_vertex, properties)

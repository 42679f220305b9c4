"""
Graph Schema Descriptor and Schema Loader.

The descriptor is a JSON document:

    {
      "vertexLabels":  [{"name": "airport"}, ...],
      "edgeLabels":    [{"name": "route", "multiplicity": "MULTI"}, ...],
      "propertyKeys":  [{"name": "code", "dataType": "String",
                         "cardinality": "SINGLE"}, ...],
      "graphIndices":  {"compositeIndices": [
          {"indexName": "byCode", "elementType": "vertex",
           "propertyKeys": ["code"], "unique": false,
           "indexOnly": "airport"}]}
    }

Tokens are validated when the document is parsed, so an unsupported data
type or element type aborts the run before the store is touched. The
schema is then applied inside one management session: a failure rolls the
whole session back.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError
from .store import (
    IDENTITY_INDEX,
    IDENTITY_KEY,
    Cardinality,
    DataType,
    ElementType,
    GraphStore,
    IndexDefinition,
    Multiplicity,
    SchemaManagement,
)


# ──────────────────────────────────────────────────────────────────────────────
# Descriptor models
# ──────────────────────────────────────────────────────────────────────────────

class VertexLabelDef(BaseModel):
    name: str = Field(..., min_length=1)


class EdgeLabelDef(BaseModel):
    name: str = Field(..., min_length=1)
    multiplicity: Multiplicity = Multiplicity.MULTI


class PropertyKeyDef(BaseModel):
    name: str = Field(..., min_length=1)
    data_type: DataType = Field(..., alias="dataType")
    cardinality: Cardinality = Cardinality.SINGLE

    model_config = {"populate_by_name": True}


class CompositeIndexDef(BaseModel):
    index_name: str = Field(..., alias="indexName", min_length=1)
    element_type: ElementType = Field(..., alias="elementType")
    property_keys: List[str] = Field(..., alias="propertyKeys", min_length=1)
    unique: bool = False
    index_only: Optional[str] = Field(default=None, alias="indexOnly")

    model_config = {"populate_by_name": True}

    def to_definition(self) -> IndexDefinition:
        return IndexDefinition(
            name=self.index_name,
            element_type=self.element_type,
            keys=tuple(self.property_keys),
            unique=self.unique,
            index_only=self.index_only,
        )


class GraphIndicesDef(BaseModel):
    composite_indices: List[CompositeIndexDef] = Field(
        default_factory=list, alias="compositeIndices"
    )

    model_config = {"populate_by_name": True}


class SchemaDescriptor(BaseModel):
    """Declarative graph schema."""
    vertex_labels: List[VertexLabelDef] = Field(default_factory=list, alias="vertexLabels")
    edge_labels: List[EdgeLabelDef] = Field(default_factory=list, alias="edgeLabels")
    property_keys: List[PropertyKeyDef] = Field(default_factory=list, alias="propertyKeys")
    graph_indices: GraphIndicesDef = Field(default_factory=GraphIndicesDef, alias="graphIndices")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @classmethod
    def parse(cls, data) -> "SchemaDescriptor":
        """
        Validate a decoded descriptor document.

        Raises:
            ConfigurationError: On unsupported tokens or a malformed shape.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Schema descriptor must be a JSON object")
        # "graphIndices": null is accepted as "no indices"
        if data.get("graphIndices") is None:
            data = {k: v for k, v in data.items() if k != "graphIndices"}
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid schema descriptor: {problems}") from e


def load_schema(path: Path) -> SchemaDescriptor:
    """
    Read a schema descriptor from a JSON file.

    Raises:
        FileNotFoundError: If the file is missing.
        ConfigurationError: If the JSON is malformed or has unsupported tokens.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Schema file {path} is not valid JSON: {e}") from e
    return SchemaDescriptor.parse(data)


# ──────────────────────────────────────────────────────────────────────────────
# Schema Loader
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class SchemaResult:
    """What one schema application did."""
    vertex_labels: int = 0
    edge_labels: int = 0
    property_keys: int = 0
    indices_built: int = 0
    indices_skipped: int = 0


async def _require_index_references(mgmt: SchemaManagement, index: CompositeIndexDef) -> None:
    for key in index.property_keys:
        if not await mgmt.contains_property_key(key):
            raise ConfigurationError(
                f"Index {index.index_name!r} references undeclared property key {key!r}"
            )
    if index.index_only is not None:
        if index.element_type is ElementType.VERTEX:
            known = await mgmt.contains_vertex_label(index.index_only)
        else:
            known = await mgmt.contains_edge_label(index.index_only)
        if not known:
            raise ConfigurationError(
                f"Index {index.index_name!r} restricted to undeclared "
                f"{index.element_type.value} label {index.index_only!r}"
            )


async def apply_schema(store: GraphStore, descriptor: SchemaDescriptor) -> SchemaResult:
    """
    Apply a schema descriptor to a store.

    Labels and property keys are created unconditionally; composite indices
    are only built when no index of that name exists. The reserved identity
    key and its unique index are always ensured.

    Args:
        store: Target graph store.
        descriptor: Parsed schema descriptor.

    Returns:
        SchemaResult summary.

    Raises:
        ConfigurationError: If an index references an unknown key or label.
    """
    log = logger.bind(component="SchemaLoader")
    result = SchemaResult()

    async with store.management() as mgmt:
        for vertex_label in descriptor.vertex_labels:
            await mgmt.make_vertex_label(vertex_label.name)
            result.vertex_labels += 1

        for edge_label in descriptor.edge_labels:
            await mgmt.make_edge_label(edge_label.name, edge_label.multiplicity)
            result.edge_labels += 1

        for key in descriptor.property_keys:
            await mgmt.make_property_key(key.name, key.data_type, key.cardinality)
            result.property_keys += 1

        for index in descriptor.graph_indices.composite_indices:
            if await mgmt.contains_graph_index(index.index_name):
                log.debug(f"Composite index exists, skipping: {index.index_name}")
                result.indices_skipped += 1
                continue
            await _require_index_references(mgmt, index)
            await mgmt.build_composite_index(index.to_definition())
            result.indices_built += 1
            log.info(f"Created composite index: {index.index_name}")

        if not await mgmt.contains_property_key(IDENTITY_KEY):
            await mgmt.make_property_key(IDENTITY_KEY, DataType.STRING, Cardinality.SINGLE)
            result.property_keys += 1

        if await mgmt.contains_graph_index(IDENTITY_INDEX):
            result.indices_skipped += 1
        else:
            await mgmt.build_composite_index(
                IndexDefinition(
                    name=IDENTITY_INDEX,
                    element_type=ElementType.VERTEX,
                    keys=(IDENTITY_KEY,),
                    unique=True,
                )
            )
            result.indices_built += 1

    log.info(
        f"Schema initialized: {result.vertex_labels} vertex labels, "
        f"{result.edge_labels} edge labels, {result.property_keys} property keys, "
        f"{result.indices_built} indices built ({result.indices_skipped} existing)"
    )
    return result

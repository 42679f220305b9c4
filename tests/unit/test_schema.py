"""
Unit tests for the schema descriptor and the Schema Loader.
"""

import json

import pytest

from graphload.graph.errors import ConfigurationError, SchemaViolationError
from graphload.graph.memory import InMemoryGraphStore, InMemoryManagement
from graphload.graph.schema import SchemaDescriptor, apply_schema, load_schema
from graphload.graph.store import (
    IDENTITY_INDEX,
    IDENTITY_KEY,
    Cardinality,
    DataType,
    ElementType,
    Multiplicity,
)


@pytest.fixture
def build_calls(monkeypatch):
    """Record every composite index build issued against the in-memory store."""
    calls = []
    original = InMemoryManagement.build_composite_index

    async def spy(self, index):
        calls.append(index.name)
        await original(self, index)

    monkeypatch.setattr(InMemoryManagement, "build_composite_index", spy)
    return calls


class TestSchemaDescriptor:
    """Parsing and validating descriptor documents."""

    def test_parse_sample(self, sample_schema):
        descriptor = SchemaDescriptor.parse(sample_schema)
        assert [v.name for v in descriptor.vertex_labels] == ["airport", "country"]
        assert descriptor.edge_labels[1].multiplicity is Multiplicity.ONE2MANY
        assert descriptor.property_keys[2].data_type is DataType.INTEGER
        index = descriptor.graph_indices.composite_indices[0]
        assert index.element_type is ElementType.VERTEX
        assert index.to_definition().keys == ("code",)
        assert index.to_definition().index_only == "airport"

    def test_empty_document(self):
        descriptor = SchemaDescriptor.parse({})
        assert descriptor.vertex_labels == []
        assert descriptor.graph_indices.composite_indices == []

    def test_null_graph_indices(self):
        descriptor = SchemaDescriptor.parse({"graphIndices": None})
        assert descriptor.graph_indices.composite_indices == []

    def test_defaults(self):
        descriptor = SchemaDescriptor.parse({
            "edgeLabels": [{"name": "route"}],
            "propertyKeys": [{"name": "code", "dataType": "String"}],
        })
        assert descriptor.edge_labels[0].multiplicity is Multiplicity.MULTI
        assert descriptor.property_keys[0].cardinality is Cardinality.SINGLE

    @pytest.mark.parametrize("document", [
        {"propertyKeys": [{"name": "when", "dataType": "Date"}]},
        {"propertyKeys": [{"name": "tags", "dataType": "String", "cardinality": "BAG"}]},
        {"edgeLabels": [{"name": "route", "multiplicity": "MANY2MANY"}]},
        {"graphIndices": {"compositeIndices": [
            {"indexName": "x", "elementType": "property", "propertyKeys": ["code"]}
        ]}},
        {"graphIndices": {"compositeIndices": [
            {"indexName": "x", "elementType": "vertex", "propertyKeys": []}
        ]}},
    ])
    def test_unsupported_tokens_raise(self, document):
        with pytest.raises(ConfigurationError):
            SchemaDescriptor.parse(document)

    def test_non_object_raises(self):
        with pytest.raises(ConfigurationError):
            SchemaDescriptor.parse(["airport"])

    def test_load_schema_file(self, sample_schema, write_schema):
        descriptor = load_schema(write_schema(sample_schema))
        assert len(descriptor.property_keys) == 5

    def test_load_schema_bad_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{ not json")
        with pytest.raises(ConfigurationError):
            load_schema(path)

    def test_load_schema_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_schema(tmp_path / "missing.json")

    def test_project_schema_parses(self, project_data_dir):
        descriptor = load_schema(project_data_dir / "schema.json")
        names = {k.name for k in descriptor.property_keys}
        assert {"code", "lat", "dist"} <= names


class TestApplySchema:
    """Schema Loader behaviour against the in-memory store."""

    @pytest.mark.asyncio
    async def test_creates_labels_keys_and_indices(self, store, sample_schema):
        result = await apply_schema(store, SchemaDescriptor.parse(sample_schema))

        assert store.vertex_labels == {"airport", "country"}
        assert store.edge_labels == {"route": Multiplicity.MULTI, "contains": Multiplicity.ONE2MANY}
        assert store.property_keys["lat"].data_type is DataType.DOUBLE
        assert set(store.indexes) == {"byCode", IDENTITY_INDEX}
        assert result.indices_built == 2
        assert result.indices_skipped == 0

    @pytest.mark.asyncio
    async def test_identity_always_ensured(self, store):
        await apply_schema(store, SchemaDescriptor.parse({}))

        assert store.property_keys[IDENTITY_KEY].data_type is DataType.STRING
        index = store.indexes[IDENTITY_INDEX]
        assert index.unique is True
        assert index.keys == (IDENTITY_KEY,)
        assert index.index_only is None

    @pytest.mark.asyncio
    async def test_applying_twice_builds_no_duplicate_indices(self, store, sample_schema, build_calls):
        descriptor = SchemaDescriptor.parse(sample_schema)

        first = await apply_schema(store, descriptor)
        second = await apply_schema(store, descriptor)

        assert sorted(build_calls) == ["byCode", IDENTITY_INDEX]
        assert first.indices_built == 2
        assert second.indices_built == 0
        assert second.indices_skipped == 2
        assert len(store.indexes) == 2

    @pytest.mark.asyncio
    async def test_descriptor_identity_key_is_not_redefined(self, store):
        descriptor = SchemaDescriptor.parse({
            "propertyKeys": [{"name": IDENTITY_KEY, "dataType": "String"}],
        })
        result = await apply_schema(store, descriptor)
        assert result.property_keys == 1

    @pytest.mark.asyncio
    async def test_unknown_index_key_raises(self, store):
        descriptor = SchemaDescriptor.parse({
            "vertexLabels": [{"name": "airport"}],
            "graphIndices": {"compositeIndices": [
                {"indexName": "byIata", "elementType": "vertex", "propertyKeys": ["iata"]}
            ]},
        })
        with pytest.raises(ConfigurationError):
            await apply_schema(store, descriptor)
        # the whole session was rolled back
        assert store.vertex_labels == set()
        assert store.indexes == {}

    @pytest.mark.asyncio
    async def test_unknown_index_only_label_raises(self, store):
        descriptor = SchemaDescriptor.parse({
            "propertyKeys": [{"name": "code", "dataType": "String"}],
            "graphIndices": {"compositeIndices": [
                {"indexName": "byCode", "elementType": "vertex",
                 "propertyKeys": ["code"], "indexOnly": "airport"}
            ]},
        })
        with pytest.raises(ConfigurationError):
            await apply_schema(store, descriptor)

    @pytest.mark.asyncio
    async def test_conflicting_redefinition_raises(self, store, sample_schema):
        await apply_schema(store, SchemaDescriptor.parse(sample_schema))

        changed = json.loads(json.dumps(sample_schema))
        changed["propertyKeys"][2]["dataType"] = "String"
        with pytest.raises(SchemaViolationError):
            await apply_schema(store, SchemaDescriptor.parse(changed))
        assert store.property_keys["runways"].data_type is DataType.INTEGER

    @pytest.mark.asyncio
    async def test_unique_index_over_duplicates_fails(self, store):
        async with store.transaction() as tx:
            for _ in range(2):
                v = await tx.add_vertex("airport")
                await tx.set_property(v, "code", "AUS")

        descriptor = SchemaDescriptor.parse({
            "graphIndices": {"compositeIndices": [
                {"indexName": "byCode", "elementType": "vertex",
                 "propertyKeys": ["code"], "unique": True}
            ]},
        })
        with pytest.raises(SchemaViolationError):
            await apply_schema(store, descriptor)
        assert "byCode" not in store.indexes
        assert IDENTITY_INDEX not in store.indexes

    @pytest.mark.asyncio
    async def test_strict_store_accepts_declared_schema(self, strict_store, sample_schema):
        await apply_schema(strict_store, SchemaDescriptor.parse(sample_schema))
        async with strict_store.transaction() as tx:
            v = await tx.add_vertex("airport")
            await tx.set_property(v, "code", "AUS")
        assert await strict_store.count_vertices() == 1


def test_in_memory_store_rejects_unknown_schema_default():
    with pytest.raises(ConfigurationError):
        InMemoryGraphStore(schema_default="auto")

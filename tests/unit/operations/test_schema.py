# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for schema operations and field definitions."""

import unittest

import pytest

from FileMaker.OData.models.fields import calc_field, number_field, text_field
from FileMaker.OData.operations.schema import FieldDefinition, SchemaOperations

BASE = "https://fms.example.com/fmi/odata/v4/Contacts.fmp12"
JSON = {"Content-Type": "application/json"}


class TestFieldDefinition(unittest.TestCase):
    """Wire form of field definitions."""

    def test_string_with_length(self):
        self.assertEqual(
            FieldDefinition("title", "string", max_length=200).to_wire(),
            {"name": "title", "type": "varchar(200)"},
        )

    def test_repetitions_and_flags(self):
        wire = FieldDefinition("scores", "numeric", repetitions=3, global_=True, nullable=False).to_wire()
        self.assertEqual(wire, {"name": "scores", "type": "numeric[3]", "nullable": False, "global": True})

    def test_other_types_verbatim(self):
        wire = FieldDefinition("stamp", "timestamp", default="CURRENT_TIMESTAMP").to_wire()
        self.assertEqual(wire, {"name": "stamp", "type": "timestamp", "default": "CURRENT_TIMESTAMP"})

    def test_container_path(self):
        wire = FieldDefinition("photo", "container", external_secure_path="/photos").to_wire()
        self.assertEqual(wire["externalSecurePath"], "/photos")

    def test_from_declaration(self):
        definition = FieldDefinition.from_declaration("id", text_field().primary_key())
        self.assertEqual(definition.to_wire(), {"name": "id", "type": "varchar", "nullable": False, "primary": True})

    def test_from_calculated_declaration_raises(self):
        with self.assertRaises(ValueError):
            FieldDefinition.from_declaration("label", calc_field())


@pytest.fixture
def schema(adapter_factory):
    def build(responses=None):
        adapter = adapter_factory(responses)
        return adapter, SchemaOperations(adapter)

    return build


class TestSchemaOperations:
    """Requests against the system tables."""

    def test_create_table_from_definitions(self, schema):
        adapter, ops = schema([(200, JSON, {"tableName": "tasks"})])
        result = ops.create_table(
            "tasks",
            [
                FieldDefinition("id", "string", primary=True, nullable=False),
                {"name": "due", "type": "date"},
            ],
        )
        assert result == {"tableName": "tasks"}
        method, url, kwargs = adapter._http.calls[0]
        assert (method, url) == ("post", f"{BASE}/FileMaker_Tables")
        assert kwargs["json"]["fields"] == [
            {"name": "id", "type": "varchar", "nullable": False, "primary": True},
            {"name": "due", "type": "date"},
        ]

    def test_create_table_from_declaration_skips_calculated(self, schema, contacts):
        adapter, ops = schema([(200, JSON, {"tableName": "contacts"})])
        ops.create_table(contacts)
        body = adapter._http.calls[0][2]["json"]
        assert body["tableName"] == "contacts"
        assert [f["name"] for f in body["fields"]] == ["id", "name", "age", "city", "photo", "created"]
        assert body["fields"][4]["type"] == "container"

    def test_add_fields_from_declarations(self, schema):
        adapter, ops = schema([(200, JSON, {})])
        ops.add_fields("tasks", {"points": number_field()})
        method, url, kwargs = adapter._http.calls[0]
        assert (method, url) == ("patch", f"{BASE}/FileMaker_Tables/tasks")
        assert kwargs["json"] == {"fields": [{"name": "points", "type": "numeric", "nullable": True}]}

    def test_empty_fields_rejected(self, schema):
        adapter, ops = schema()
        with pytest.raises(ValueError):
            ops.create_table("tasks", [])
        with pytest.raises(ValueError):
            ops.add_fields("tasks", [])
        assert adapter._http.calls == []

    def test_drops_and_indexes(self, schema, contacts):
        adapter, ops = schema([(204, {}, None), (200, JSON, {"indexName": "city"}), (204, {}, None), (204, {}, None)])
        ops.drop_field(contacts, "age")
        assert ops.create_index("contacts", "city") == {"indexName": "city"}
        ops.drop_index("contacts", "city")
        ops.drop_table("contacts")
        assert [(m, u) for m, u, _ in adapter._http.calls] == [
            ("delete", f"{BASE}/FileMaker_Tables/contacts/age"),
            ("post", f"{BASE}/FileMaker_Indexes/contacts"),
            ("delete", f"{BASE}/FileMaker_Indexes/contacts/city"),
            ("delete", f"{BASE}/FileMaker_Tables/contacts"),
        ]
        assert adapter._http.calls[1][2]["json"] == {"indexName": "city"}

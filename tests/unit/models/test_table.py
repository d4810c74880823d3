# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for field and table declarations and their derived schemas."""

import datetime as dt

import pytest

from FileMaker.OData.core import _error_codes as ec
from FileMaker.OData.core.errors import ValidationError
from FileMaker.OData.models.column import ColumnHandle
from FileMaker.OData.models.fields import (
    FieldDeclaration,
    FieldType,
    calc_field,
    container_field,
    date_field,
    list_field,
    number_field,
    text_field,
)
from FileMaker.OData.models.table import TableDeclaration, fm_table


class TestFieldDeclaration:
    """Fluent modifiers on field declarations."""

    def test_modifiers_return_new_instances(self):
        base = text_field()
        required = base.not_null()
        assert base.nullable is True
        assert required.nullable is False
        assert required is not base

    def test_primary_key_is_not_null_and_read_only(self):
        pk = text_field().primary_key()
        assert pk.is_primary_key
        assert pk.nullable is False
        assert pk.is_read_only

    def test_calculated_fields_are_read_only(self):
        assert calc_field().is_read_only

    def test_entity_id_prefix_checked(self):
        assert text_field().with_entity_id("FMFID:1").entity_id == "FMFID:1"
        with pytest.raises(ValueError):
            text_field().with_entity_id("12")

    def test_field_type_coerced_from_string(self):
        assert FieldDeclaration("number").field_type is FieldType.NUMBER


class TestTableConstruction:
    """Declaration-time checks."""

    def test_columns_and_attribute_access(self, contacts):
        handle = contacts.c.name
        assert isinstance(handle, ColumnHandle)
        assert handle.table_name == "contacts"
        assert contacts["name"] is handle
        assert list(contacts.columns)[:3] == ["id", "name", "age"]
        assert contacts.primary_key == "id"
        assert contacts.container_fields == ("photo",)

    def test_unknown_column_attribute(self, contacts):
        with pytest.raises(AttributeError):
            contacts.c.missing
        with pytest.raises(ValidationError) as exc:
            contacts.column("missing")
        assert exc.value.subcode == ec.VALIDATION_UNKNOWN_COLUMN

    def test_columns_are_read_only(self, contacts):
        with pytest.raises(AttributeError):
            contacts.c.name = None
        with pytest.raises(TypeError):
            contacts.columns["name"] = None

    def test_duplicate_field_names(self):
        with pytest.raises(ValidationError) as exc:
            TableDeclaration("t", [("a", text_field()), ("a", number_field())])
        assert exc.value.subcode == ec.VALIDATION_DUPLICATE_FIELD

    def test_nullable_primary_key(self):
        nullable_pk = FieldDeclaration(FieldType.TEXT, is_primary_key=True)
        with pytest.raises(ValidationError) as exc:
            fm_table("t", {"id": nullable_pk})
        assert exc.value.subcode == ec.VALIDATION_NULLABLE_PRIMARY_KEY

    def test_multiple_primary_keys(self):
        with pytest.raises(ValidationError) as exc:
            fm_table("t", {"a": text_field().primary_key(), "b": text_field().primary_key()})
        assert exc.value.subcode == ec.VALIDATION_MULTIPLE_PRIMARY_KEYS

    def test_duplicate_entity_ids(self):
        with pytest.raises(ValidationError) as exc:
            fm_table(
                "t",
                {"a": text_field().with_entity_id("FMFID:1"), "b": text_field().with_entity_id("FMFID:1")},
            )
        assert exc.value.subcode == ec.VALIDATION_DUPLICATE_ENTITY_ID

    def test_relations_not_checked_at_declaration(self):
        table = fm_table("t", {"a": text_field()}, navigation=["nowhere"])
        assert table.navigable_relations == frozenset({"nowhere"})

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            fm_table("", {"a": text_field()})
        with pytest.raises(ValueError):
            fm_table("t", {"a": text_field()}, entity_id="1065089")
        with pytest.raises(ValueError):
            fm_table("t", {"a": text_field()}, default_select="some")


class TestEntityIdMaps:
    """Name and wire id mapping."""

    def test_round_trip_keys(self):
        table = fm_table(
            "t",
            {"name": text_field().with_entity_id("FMFID:1"), "age": number_field()},
            entity_id="FMTID:9",
        )
        assert table.has_entity_ids
        assert table.wire_name(True) == "FMTID:9"
        assert table.wire_name(False) == "t"
        assert table.keys_to_ids({"name": "x", "age": 1}) == {"FMFID:1": "x", "age": 1}
        assert table.keys_to_names({"FMFID:1": "x", "@id": "u"}) == {"name": "x", "@id": "u"}
        assert table.field_identifier("name", True) == "FMFID:1"

    def test_no_entity_ids_without_table_id(self):
        table = fm_table("t", {"name": text_field().with_entity_id("FMFID:1")})
        assert not table.has_entity_ids


class TestDefaultSelect:
    """Default select policies."""

    def test_schema_policy_drops_containers(self, contacts):
        selection = contacts.default_select_fields()
        assert "photo" not in selection
        assert list(selection) == ["id", "name", "age", "city", "created", "label"]

    def test_all_policy(self):
        table = fm_table("t", {"a": text_field()}, default_select="all")
        assert table.default_select_fields() is None

    def test_callable_policy(self):
        table = fm_table(
            "t",
            {"a": text_field(), "b": text_field(), "pic": container_field()},
            default_select=lambda c: {"alpha": c.a, "pic": c.pic},
        )
        assert table.default_select_fields() == {"alpha": "a"}


class TestReadValidation:
    """Validation of records read from the service."""

    def test_only_selected_fields_checked(self, contacts):
        record = contacts.validate_record({"age": 3, "name": None, "extra": "kept"}, ["age"])
        assert record == {"age": 3, "name": None, "extra": "kept"}

    def test_not_null_violation(self, contacts):
        with pytest.raises(ValidationError) as exc:
            contacts.validate_record({"id": "C-1", "name": None}, ["id", "name"])
        assert exc.value.subcode == ec.VALIDATION_RECORD_SCHEMA
        assert exc.value.details[0]["field"] == "name"

    def test_issues_are_aggregated(self, contacts):
        with pytest.raises(ValidationError) as exc:
            contacts.validate_record({"id": None, "name": None, "age": "old"}, ["id", "name", "age"])
        fields = {issue["field"] for issue in exc.value.details}
        assert {"id", "name", "age"} <= fields

    def test_missing_nullable_field_is_none(self, contacts):
        assert contacts.validate_record({}, ["age"]) == {"age": None}

    def test_read_transform_runs_after_validation(self):
        table = fm_table("t", {"tags": list_field()})
        assert table.validate_record({"tags": "a\rb"}, ["tags"]) == {"tags": ["a", "b"]}
        assert table.validate_record({"tags": None}, ["tags"]) == {"tags": []}


class TestInputValidation:
    """Validation of caller data for inserts and updates."""

    def test_insert_requires_not_null_fields(self, contacts):
        with pytest.raises(ValidationError) as exc:
            contacts.validate_input({"age": 3})
        assert exc.value.subcode == ec.VALIDATION_INPUT_SCHEMA
        assert exc.value.details[0]["field"] == "name"

    def test_read_only_and_unknown_keys_rejected(self, contacts):
        with pytest.raises(ValidationError) as exc:
            contacts.validate_input({"id": "C-1", "bogus": 1})
        fields = {issue["field"] for issue in exc.value.details}
        assert fields == {"id", "bogus", "name"}

    def test_calculated_field_rejected(self, contacts):
        with pytest.raises(ValidationError):
            contacts.validate_input({"name": "Ada", "label": "x"})

    def test_update_is_partial(self, contacts):
        assert contacts.validate_input({"age": 5}, partial=True) == {"age": 5}

    def test_temporal_values_serialised(self):
        table = fm_table("t", {"born": date_field()})
        assert table.validate_input({"born": dt.date(2023, 1, 2)}) == {"born": "2023-01-02"}

    def test_write_transform_runs(self):
        table = fm_table("t", {"tags": list_field()})
        assert table.validate_input({"tags": ["a", "b"]}) == {"tags": "a\rb"}

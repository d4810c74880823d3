# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for body parsing, error decoding and record shaping."""

import pytest

from FileMaker.OData.core import _error_codes as ec
from FileMaker.OData.core.errors import ProtocolError, SchemaLockedError, ValidationError
from FileMaker.OData.data._response import decode_error, parse_body, sanitize_json, shape_record
from FileMaker.OData.models.fields import text_field
from FileMaker.OData.models.query_builder import Expansion, QueryBuilder
from FileMaker.OData.models.table import fm_table

URL = "https://fms.example.com/fmi/odata/v4/db/contacts"


class TestSanitize:
    """FileMaker's bare question-mark values."""

    def test_object_and_array_values(self):
        assert sanitize_json('{"a": ?, "b": [1, ?], "c": "?"}') == '{"a": null, "b": [1, null], "c": "?"}'

    def test_valid_json_unchanged(self):
        text = '{"value": [{"q": "why?"}]}'
        assert sanitize_json(text) == text


class TestParseBody:
    """Successful response bodies."""

    def test_no_content(self, response_factory):
        assert parse_body(response_factory(204)) is None

    def test_empty_body(self, response_factory):
        assert parse_body(response_factory(200, body="  ")) is None

    def test_json(self, response_factory):
        assert parse_body(response_factory(200, body={"value": []})) == {"value": []}

    def test_json_with_question_marks(self, response_factory):
        response = response_factory(200, body='{"value": [{"a": ?}]}')
        assert parse_body(response) == {"value": [{"a": None}]}

    def test_xml_returned_as_text(self, response_factory):
        response = response_factory(200, {"Content-Type": "application/xml"}, "<edmx:Edmx/>")
        assert parse_body(response) == "<edmx:Edmx/>"

    def test_unparseable_json_falls_back_to_text(self, response_factory):
        assert parse_body(response_factory(200, body="not json")) == "not json"


class TestDecodeError:
    """Non-2xx responses become ProtocolError."""

    def test_json_error_envelope(self, response_factory):
        body = {"error": {"code": "8309", "message": "Field is missing", "target": "name", "details": [{"x": 1}]}}
        err = decode_error(response_factory(400, body=body), url=URL)
        assert isinstance(err, ProtocolError)
        assert err.kind == ec.PROTOCOL
        assert err.code == "8309"
        assert err.message == "Field is missing"
        assert err.target == "name"
        assert err.details == [{"x": 1}]
        assert err.status_code == 400
        assert err.subcode == "http_400"
        assert err.context["url"] == URL
        assert err.is_transient is False

    def test_non_json_body(self, response_factory):
        response = response_factory(502, {"Retry-After": "7"}, "<html>Gateway</html>", reason="Bad Gateway")
        err = decode_error(response, url=URL)
        assert err.code == "502"
        assert err.message == "Bad Gateway: <html>Gateway</html>"
        assert err.context["body_excerpt"] == "<html>Gateway</html>"
        assert err.context["retry_after"] == 7
        assert err.is_transient is True

    def test_empty_body_without_reason(self, response_factory):
        err = decode_error(response_factory(500, body=""))
        assert err.message == "Unknown error"
        assert err.code == "500"

    def test_schema_locked(self, response_factory):
        body = {"error": {"code": "303", "message": "Database schema is in use by another user"}}
        err = decode_error(response_factory(500, body=body))
        assert isinstance(err, SchemaLockedError)
        assert err.code == "303"

    def test_to_dict(self, response_factory):
        err = decode_error(response_factory(404, body={"error": {"code": "-1023", "message": "Not found"}}))
        data = err.to_dict()
        assert data["kind"] == "PROTOCOL"
        assert data["status_code"] == 404
        assert data["source"] == "server"
        assert err.is_not_found()


class TestShapeRecord:
    """Turning wire records into caller records."""

    def test_strips_special_and_odata_keys(self, contacts):
        raw = {"@odata.etag": "W/1", "@id": "u", "ROWID": 1, "ROWMODID": 2, "id": "C-1", "name": "Ada"}
        record = shape_record(contacts, raw, selection={"id": "id", "name": "name"})
        assert record == {"@id": "u", "id": "C-1", "name": "Ada"}

    def test_keeps_special_columns_when_enabled(self, contacts):
        raw = {"ROWID": 1, "id": "C-1", "name": "Ada"}
        record = shape_record(contacts, raw, selection={"id": "id", "name": "name"}, include_special_columns=True)
        assert record["ROWID"] == 1

    def test_renames_per_selection(self, contacts):
        record = shape_record(contacts, {"name": "Ada", "age": 36}, selection={"who": "name", "age": "age"})
        assert record == {"who": "Ada", "age": 36}

    def test_validation_failure(self, contacts):
        with pytest.raises(ValidationError):
            shape_record(contacts, {"id": "C-1", "name": None}, selection={"id": "id", "name": "name"})

    def test_non_object_rejected(self, contacts):
        with pytest.raises(ProtocolError) as exc:
            shape_record(contacts, ["not", "a", "record"])
        assert exc.value.subcode == ec.PROTOCOL_RESPONSE_STRUCTURE

    def test_entity_ids_mapped_back(self):
        table = fm_table("t", {"name": text_field().with_entity_id("FMFID:5")}, entity_id="FMTID:1")
        record = shape_record(table, {"FMFID:5": "Ada"}, selection={"name": "name"}, use_entity_ids=True)
        assert record == {"name": "Ada"}

    def test_expanded_records_validated_against_target(self, contacts, invoices):
        builder = QueryBuilder(contacts).select("name").expand(invoices, lambda q: q.select(invoices.c.total))
        raw = {"name": "Ada", "invoices": [{"total": 10}, {"total": 20}]}
        record = shape_record(contacts, raw, selection={"name": "name"}, expansions=builder._expand)
        assert record == {"name": "Ada", "invoices": [{"total": 10}, {"total": 20}]}

        bad = {"name": "Ada", "invoices": [{"total": "lots"}]}
        with pytest.raises(ValidationError):
            shape_record(contacts, bad, selection={"name": "name"}, expansions=builder._expand)

    def test_untyped_expansion_passes_through(self, contacts):
        expansion = Expansion("invoices")
        raw = {"name": "Ada", "invoices": [{"anything": True}]}
        record = shape_record(contacts, raw, selection={"name": "name"}, expansions=[expansion])
        assert record["invoices"] == [{"anything": True}]

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for EntitySet reads and writes against a fake transport."""

import warnings

import pytest

from FileMaker.OData.core import _error_codes as ec
from FileMaker.OData.core.config import ODataConfig
from FileMaker.OData.core.errors import CardinalityError, ProtocolError, ValidationError
from FileMaker.OData.core.results import ListResult
from FileMaker.OData.models.fields import number_field, text_field
from FileMaker.OData.models.operators import eq, gt
from FileMaker.OData.models.table import fm_table
from FileMaker.OData.operations.batch import BatchRequest
from FileMaker.OData.operations.entity_set import EntitySet

BASE = "https://fms.example.com/fmi/odata/v4/Contacts.fmp12"
JSON = {"Content-Type": "application/json"}
DEFAULT_SELECT = '$select="id",name,age,city,created,label'


def _record(i):
    return {"@id": f"{BASE}/contacts('C-{i}')", "id": f"C-{i}", "name": f"Name {i}", "age": i}


def _page(records, count=None):
    body = {"value": records}
    if count is not None:
        body["@odata.count"] = count
    return (200, JSON, body)


@pytest.fixture
def entity_set(adapter_factory, contacts):
    def build(responses=None, config=None, table=None):
        adapter = adapter_factory(responses, config=config)
        return adapter, EntitySet(adapter, table or contacts)

    return build


class TestList:
    """List queries."""

    def test_execute_returns_list_result(self, entity_set, contacts):
        adapter, people = entity_set([_page([_record(2), _record(3)])])
        result = people.list().where(gt(contacts.c.age, 1)).execute()

        assert isinstance(result, ListResult)
        assert len(result) == 2
        assert result[0]["name"] == "Name 2"
        assert result[0]["@id"] == f"{BASE}/contacts('C-2')"
        assert adapter._http.urls == [f"{BASE}/contacts?{DEFAULT_SELECT}&$filter=age gt 1&$top=1000&$count=true"]

    def test_found_count_reported(self, entity_set):
        _, people = entity_set([_page([_record(1)], count=1)])
        result = people.list().count().execute()
        assert result.found_count == 1
        assert result.returned_count == 1

    def test_partial_result_warns(self, entity_set):
        adapter, people = entity_set([_page([_record(1), _record(2)], count=5)])
        with pytest.warns(UserWarning, match="returned 2 of 5"):
            people.list().execute()
        assert "$count=true" in adapter._http.urls[0]

    def test_default_page_size_warns_when_truncated(self, entity_set):
        adapter, people = entity_set([_page([_record(1), _record(2)], count=1500)], config=ODataConfig(default_top=2))
        with pytest.warns(UserWarning, match="returned 2 of 1500"):
            result = people.list().select("name").execute()
        assert result.found_count == 1500
        assert adapter._http.urls == [f"{BASE}/contacts?$select=name&$top=2&$count=true"]

    def test_reserved_characters_in_filter_encoded(self, entity_set, contacts):
        adapter, people = entity_set([_page([])])
        people.list().select("name").where(eq(contacts.c.name, "Tom & Jerry #2 100%")).top(5).execute()
        assert adapter._http.urls == [
            f"{BASE}/contacts?$select=name&$filter=name eq 'Tom %26 Jerry %232 100%25'&$top=5"
        ]

    def test_explicit_paging_does_not_warn(self, entity_set):
        _, people = entity_set([_page([_record(1), _record(2)], count=5)])
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            people.list().top(2).execute()

    def test_builder_is_single_use(self, entity_set):
        adapter, people = entity_set([_page([])])
        query = people.list()
        query.execute()
        with pytest.raises(ValidationError) as exc:
            query.execute()
        assert exc.value.subcode == ec.VALIDATION_BUILDER_CONSUMED
        assert len(adapter._http.calls) == 1

    def test_invalid_record_raises(self, entity_set):
        _, people = entity_set([_page([{"id": "C-1", "name": None}])])
        with pytest.raises(ValidationError):
            people.list().execute()

    def test_protocol_error_propagates(self, entity_set):
        _, people = entity_set([(401, JSON, {"error": {"code": "212", "message": "Unauthorized"}})])
        with pytest.raises(ProtocolError) as exc:
            people.list().execute()
        assert exc.value.is_unauthorized()


class TestCardinality:
    """single and maybe_single."""

    def test_single_with_one_record(self, entity_set):
        _, people = entity_set([_page([_record(1)])])
        assert people.list().single().execute()["id"] == "C-1"

    def test_single_with_zero_records(self, entity_set):
        _, people = entity_set([_page([])])
        with pytest.raises(CardinalityError) as exc:
            people.list().single().execute()
        assert exc.value.expected == 1
        assert exc.value.received == 0

    def test_single_with_two_records(self, entity_set):
        _, people = entity_set([_page([_record(1), _record(2)])])
        with pytest.raises(CardinalityError) as exc:
            people.list().single().execute()
        assert exc.value.received == 2

    def test_maybe_single_with_zero_records(self, entity_set):
        _, people = entity_set([_page([])])
        assert people.list().maybe_single().execute() is None

    def test_maybe_single_with_two_records(self, entity_set):
        _, people = entity_set([_page([_record(1), _record(2)])])
        with pytest.raises(CardinalityError) as exc:
            people.list().maybe_single().execute()
        assert exc.value.kind == ec.CARDINALITY

    def test_single_mode_sends_no_default_top(self, entity_set):
        adapter, people = entity_set([_page([_record(1)])])
        people.list().select("name").single().execute()
        assert adapter._http.urls == [f"{BASE}/contacts?$select=name"]


class TestListAll:
    """Pagination helper."""

    def test_seven_records_in_pages_of_two(self, entity_set, contacts):
        pages = [
            _page([_record(1), _record(2)], count=7),
            _page([_record(3), _record(4)], count=7),
            _page([_record(5), _record(6)], count=7),
            _page([_record(7)], count=7),
        ]
        adapter, people = entity_set(pages)
        result = people.list().select(contacts.c.name).list_all(page_size=2)

        assert len(result) == 7
        assert result.found_count == 7
        assert [r["name"] for r in result][-1] == "Name 7"
        assert adapter._http.urls == [
            f"{BASE}/contacts?$select=name&$top=2&$skip={skip}&$count=true" for skip in (0, 2, 4, 6)
        ]

    def test_starts_from_caller_skip(self, entity_set):
        adapter, people = entity_set([_page([_record(5), _record(6)], count=7), _page([_record(7)], count=7)])
        result = people.list().select("name").skip(4).list_all(page_size=2)
        assert len(result) == 3
        assert [u.split("$skip=")[1].split("&")[0] for u in adapter._http.urls] == ["4", "6"]

    def test_stops_on_empty_page_without_count(self, entity_set):
        adapter, people = entity_set([_page([_record(1), _record(2)]), _page([])])
        result = people.list_all(page_size=2)
        assert len(result) == 2
        assert len(adapter._http.calls) == 2

    def test_find_all_alias(self, entity_set):
        adapter, people = entity_set([_page([_record(1)])])
        assert len(people.list().find_all(page_size=2)) == 1
        assert len(adapter._http.calls) == 1


class TestGet:
    """Single record reads."""

    def test_get_by_key(self, entity_set, contacts):
        adapter, people = entity_set([(200, JSON, {"@id": "u", "@editLink": "e", "name": "Ada"})])
        record = people.get("C-1").select(contacts.c.name).execute()
        assert record == {"name": "Ada", "@id": "u", "@editLink": "e"}
        assert adapter._http.urls == [f"{BASE}/contacts('C-1')?$select=name"]

    def test_reserved_characters_in_key_encoded(self, entity_set, contacts):
        adapter, people = entity_set([(200, JSON, {"name": "Ada"})])
        people.get("A#1").select(contacts.c.name).execute()
        assert adapter._http.urls == [f"{BASE}/contacts('A%231')?$select=name"]

    def test_get_integer_key_with_expand(self, entity_set, invoices):
        adapter, people = entity_set([(200, JSON, {"id": "7", "name": "Ada", "invoices": [{"id": "I-1", "total": 5}]})])
        record = people.get(7).expand(invoices).execute()
        assert record["invoices"][0]["total"] == 5
        assert adapter._http.urls[0].startswith(f"{BASE}/contacts(7)?{DEFAULT_SELECT}&$expand=invoices(")

    def test_get_field_value(self, entity_set, contacts):
        adapter, people = entity_set([(200, JSON, {"value": "Ada"})])
        assert people.get_field_value("C-1", contacts.c.name) == "Ada"
        assert adapter._http.urls == [f"{BASE}/contacts('C-1')/name"]

    def test_count(self, entity_set, contacts):
        adapter, people = entity_set([_page([], count=3)])
        assert people.count(eq(contacts.c.city, "Oslo")) == 3
        assert adapter._http.urls == [f"{BASE}/contacts?$filter=city eq 'Oslo'&$count=true&$top=0"]

    def test_count_filter_encoded(self, entity_set, contacts):
        adapter, people = entity_set([_page([], count=1)])
        people.count(eq(contacts.c.city, "A&B"))
        assert adapter._http.urls == [f"{BASE}/contacts?$filter=city eq 'A%26B'&$count=true&$top=0"]


class TestNavigate:
    """Related record queries."""

    def test_navigate_to_declared_table(self, entity_set, invoices):
        adapter, people = entity_set([_page([{"id": "I-1", "total": 20}])])
        result = people.navigate("C-1", invoices).where(gt(invoices.c.total, 10)).execute()
        assert result[0] == {"id": "I-1", "contact_id": None, "total": 20}
        assert adapter._http.urls == [
            f"{BASE}/contacts('C-1')/invoices"
            '?$select="id","contact_id",total&$filter=total gt 10&$top=1000&$count=true'
        ]

    def test_unknown_relation_warns(self, entity_set):
        _, people = entity_set()
        with pytest.warns(UserWarning, match="Cannot navigate to 'orders'"):
            people.navigate("C-1", "orders")

    def test_unknown_relation_raises_when_validating(self, entity_set):
        _, people = entity_set(config=ODataConfig(validate_relations=True))
        with pytest.raises(ValidationError) as exc:
            people.navigate("C-1", "orders")
        assert exc.value.subcode == ec.VALIDATION_UNKNOWN_RELATION


class TestWrites:
    """create, update, delete and references."""

    def test_create_returns_shaped_record(self, entity_set):
        created = {"@id": "u", "id": "C-9", "name": "Ada", "age": 36, "ROWID": 5, "ROWMODID": 0}
        adapter, people = entity_set([(201, JSON, created)])
        record = people.create({"name": "Ada", "age": 36})

        assert record["id"] == "C-9"
        assert record["name"] == "Ada"
        assert "ROWID" not in record
        method, url, kwargs = adapter._http.calls[0]
        assert (method, url) == ("post", f"{BASE}/contacts")
        assert kwargs["json"] == {"name": "Ada", "age": 36}

    def test_create_validates_before_sending(self, entity_set):
        adapter, people = entity_set()
        with pytest.raises(ValidationError) as exc:
            people.create({"age": 36, "id": "C-1"})
        assert {i["field"] for i in exc.value.details} == {"id", "name"}
        assert adapter._http.calls == []

    def test_update_without_echo_returns_none(self, entity_set):
        adapter, people = entity_set([(204, {}, None)])
        assert people.update("C-1", {"age": 37}) is None
        method, url, kwargs = adapter._http.calls[0]
        assert (method, url, kwargs["json"]) == ("patch", f"{BASE}/contacts('C-1')", {"age": 37})

    def test_update_with_echo_returns_record(self, entity_set):
        _, people = entity_set([(200, JSON, {"id": "C-1", "name": "Ada", "age": 37})])
        assert people.update("C-1", {"age": 37})["age"] == 37

    def test_delete(self, entity_set):
        adapter, people = entity_set([(204, {}, None)])
        people.delete(42)
        assert adapter._http.calls[0][:2] == ("delete", f"{BASE}/contacts(42)")

    def test_update_references(self, entity_set, invoices):
        adapter, people = entity_set([(204, {}, None)])
        people.update_references("C-1", invoices, {"@id": f"{BASE}/invoices('I-1')"})
        method, url, kwargs = adapter._http.calls[0]
        assert (method, url) == ("post", f"{BASE}/contacts('C-1')/invoices")
        assert kwargs["json"] == {"@id": f"{BASE}/invoices('I-1')"}

    def test_batch(self, entity_set, batch_response):
        adapter, people = entity_set([batch_response([(200, {"id": "C-1"})])])
        assert people.batch([BatchRequest("GET", "/contacts('C-1')")]) == [{"id": "C-1"}]
        assert adapter._http.urls == [f"{BASE}/$batch"]


class TestEntityIds:
    """Wire ids when enabled in config and declared on the table."""

    @pytest.fixture
    def things(self):
        return fm_table(
            "things",
            {
                "id": text_field().primary_key().with_entity_id("FMFID:1"),
                "name": text_field().with_entity_id("FMFID:2"),
                "size": number_field(),
            },
            entity_id="FMTID:100",
        )

    def test_query_uses_ids_and_maps_back(self, entity_set, things):
        config = ODataConfig(use_entity_ids=True)
        adapter, items = entity_set([_page([{"FMFID:2": "Box"}])], config=config, table=things)
        result = items.list().select(things.c.name).execute()

        assert result[0] == {"name": "Box"}
        assert adapter._http.urls == [f"{BASE}/FMTID:100?$select=FMFID:2&$top=1000&$count=true"]
        assert adapter._http.calls[0][2]["headers"]["Prefer"] == "fmodata.entity-ids"

    def test_create_sends_ids(self, entity_set, things):
        config = ODataConfig(use_entity_ids=True)
        adapter, items = entity_set([(204, {}, None)], config=config, table=things)
        assert items.create({"name": "Box", "size": 3}) is None
        assert adapter._http.calls[0][2]["json"] == {"FMFID:2": "Box", "size": 3}

    def test_names_used_when_disabled(self, entity_set, things):
        adapter, items = entity_set([_page([])], table=things)
        items.list().select(things.c.name).execute()
        assert adapter._http.urls == [f"{BASE}/things?$select=name&$top=1000&$count=true"]


class TestSpecialColumns:
    """ROWID and ROWMODID handling."""

    def test_kept_when_enabled(self, entity_set):
        config = ODataConfig(include_special_columns=True)
        record = dict(_record(1), ROWID=11, ROWMODID=2)
        adapter, people = entity_set([_page([record])], config=config)
        result = people.list().execute()
        assert result[0]["ROWID"] == 11
        assert ",label,ROWID,ROWMODID&" in adapter._http.urls[0]

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Unit tests for result types in FileMaker.OData.core.results.

Tests cover:
- ODataResponse construction from decoded payloads
- ListResult list behavior and counts
"""

import pytest

from FileMaker.OData.core import _error_codes as ec
from FileMaker.OData.core.errors import ProtocolError
from FileMaker.OData.core.results import ListResult, ODataResponse


class TestODataResponse:
    """Tests for ODataResponse.from_payload."""

    def test_collection(self):
        response = ODataResponse.from_payload({"value": [{"id": 1}], "@odata.count": "4", "@odata.nextLink": "n"})
        assert response.value == [{"id": 1}]
        assert response.count == 4
        assert response.next_link == "n"

    def test_without_count(self):
        response = ODataResponse.from_payload({"value": []})
        assert response.value == []
        assert response.count is None

    def test_none_payload(self):
        assert ODataResponse.from_payload(None) == ODataResponse()

    @pytest.mark.parametrize("payload", [["not", "an", "object"], {"value": "oops"}, "text"])
    def test_invalid_structure(self, payload):
        with pytest.raises(ProtocolError) as exc:
            ODataResponse.from_payload(payload, url="https://h/x")
        assert exc.value.subcode == ec.PROTOCOL_RESPONSE_STRUCTURE
        assert exc.value.context["url"] == "https://h/x"


class TestListResult:
    """Tests for ListResult."""

    def test_list_behavior(self):
        result = ListResult(records=[{"id": "a"}, {"id": "b"}], found_count=10)
        assert len(result) == 2
        assert result[1] == {"id": "b"}
        assert [r["id"] for r in result] == ["a", "b"]
        assert result.returned_count == 2
        assert result.found_count == 10
        assert bool(result) is True

    def test_empty(self):
        result = ListResult()
        assert len(result) == 0
        assert not result
        assert result.found_count is None

    def test_slicing(self):
        result = ListResult(records=[{"n": i} for i in range(5)])
        assert result[1:3] == [{"n": 1}, {"n": 2}]

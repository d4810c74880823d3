# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Shared pytest fixtures and fakes for the FileMaker OData client tests.

Transport fakes follow the queued-response pattern: each test enqueues
``(status, headers, body)`` tuples (or exceptions to raise) and inspects the
recorded calls afterwards.
"""

import json

import pytest

from FileMaker.OData.core.config import ODataConfig
from FileMaker.OData.data._odata import _ODataAdapter
from FileMaker.OData.models.fields import (
    calc_field,
    container_field,
    number_field,
    text_field,
    timestamp_field,
)
from FileMaker.OData.models.table import fm_table

BASE_URL = "https://fms.example.com/fmi/odata/v4/Contacts.fmp12"


class FakeResponse:
    def __init__(self, status, headers=None, body=None, reason=None):
        self.status_code = status
        self.headers = headers if headers is not None else {"Content-Type": "application/json"}
        self.reason = reason
        self._body = body
        if isinstance(body, (dict, list)):
            self.text = json.dumps(body)
        else:
            self.text = body or ""

    def json(self):
        if isinstance(self._body, (dict, list)):
            return self._body
        raise ValueError("non-json")


class DummyHTTP:
    """Stand-in for ``_HttpClient`` returning queued responses."""

    def __init__(self, responses=None):
        self._responses = list(responses or [])
        self._session = None
        self.calls = []

    def queue(self, *responses):
        self._responses.extend(responses)

    def resolve_timeout(self, method, timeout=None):
        return timeout if timeout is not None else 10

    def _request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self._responses:
            raise AssertionError("No more responses")
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        status, headers, body = item
        return FakeResponse(status, headers, body)

    @property
    def urls(self):
        return [url for _, url, _ in self.calls]


class FakeAdapter(_ODataAdapter):
    def get_auth_header(self):
        return "Basic dGVzdDp0ZXN0"


def make_adapter(responses=None, config=None):
    adapter = FakeAdapter("https://fms.example.com", "Contacts.fmp12", config=config)
    adapter._http = DummyHTTP(responses)
    return adapter


@pytest.fixture
def adapter_factory():
    """Build a fake adapter wired to a :class:`DummyHTTP` with the given responses."""
    return make_adapter


@pytest.fixture
def adapter_class():
    """Concrete adapter with a fixed Basic authorization header and the real transport."""
    return FakeAdapter


@pytest.fixture
def response_factory():
    """Build a fake ``requests.Response``: ``response_factory(status, headers, body, reason)``."""
    return FakeResponse


def _http_part(status, body):
    lines = ["Content-Type: application/http", "Content-Transfer-Encoding: binary", "", f"HTTP/1.1 {status} OK"]
    if body is None:
        return "\r\n".join(lines + ["", ""])
    return "\r\n".join(lines + ["Content-Type: application/json", "", json.dumps(body)])


def make_batch_response(items, boundary="batchresponse_1"):
    """
    Multipart ``$batch`` response. Each item is ``(status, body)`` or a list of
    them, which becomes a changeset.
    """
    lines = []
    for n, item in enumerate(items):
        lines.append(f"--{boundary}")
        if isinstance(item, list):
            inner = f"changesetresponse_{n}"
            lines.extend([f"Content-Type: multipart/mixed; boundary={inner}", ""])
            for status, body in item:
                lines.append(f"--{inner}")
                lines.append(_http_part(status, body))
            lines.append(f"--{inner}--")
        else:
            lines.append(_http_part(*item))
    lines.append(f"--{boundary}--")
    return (200, {"Content-Type": f"multipart/mixed; boundary={boundary}"}, "\r\n".join(lines))


@pytest.fixture
def batch_response():
    """Queued ``(status, headers, body)`` tuple holding a multipart ``$batch`` response."""
    return make_batch_response


@pytest.fixture
def test_config():
    """Configuration with safe defaults."""
    return ODataConfig(http_retries=0, http_backoff=0.1, http_timeout=5)


@pytest.fixture
def contacts():
    """Declared contacts table with one of each common field kind."""
    return fm_table(
        "contacts",
        {
            "id": text_field().primary_key(),
            "name": text_field().not_null(),
            "age": number_field(),
            "city": text_field(),
            "photo": container_field(),
            "created": timestamp_field().read_only(),
            "label": calc_field(),
        },
        navigation=["invoices"],
    )


@pytest.fixture
def invoices():
    """Declared invoices table."""
    return fm_table(
        "invoices",
        {
            "id": text_field().primary_key(),
            "contact_id": text_field(),
            "total": number_field(),
        },
    )

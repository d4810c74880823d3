# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Database-level operations namespace."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union, TYPE_CHECKING

from ..core.results import ODataRecord, ODataResponse
from ..models.table import TableDeclaration
from .batch import BatchRequest
from .entity_set import EntitySet
from .schema import SchemaOperations
from .webhooks import WebhookOperations

if TYPE_CHECKING:
    from ..data._odata import _ODataAdapter


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def navigation_properties(metadata_xml: str) -> Dict[str, Set[str]]:
    """
    Parse CSDL ``$metadata`` into ``{entity_type_name: {navigation_property_names}}``.

    :raises xml.etree.ElementTree.ParseError: If the document is not XML.
    """
    root = ET.fromstring(metadata_xml)
    result: Dict[str, Set[str]] = {}
    for element in root.iter():
        if _local(element.tag) != "EntityType":
            continue
        names = {
            child.get("Name", "")
            for child in element
            if _local(child.tag) == "NavigationProperty"
        }
        result[element.get("Name", "")] = names
    return result


class Database:
    """
    Operations on one hosted database. Obtained from ``client.database()``.

    Example::

        db = client.database()
        print(db.list_tables())
        contacts_set = db.from_(contacts)
        db.run_script("contacts", "Nightly Cleanup", param="full")
    """

    def __init__(self, adapter: "_ODataAdapter", *, request_options: Optional[Dict[str, Any]] = None) -> None:
        self._adapter = adapter
        self._options = dict(request_options or {})
        self.schema = SchemaOperations(adapter, request_options=self._options)
        self.webhook = WebhookOperations(adapter, request_options=self._options)

    @property
    def name(self) -> str:
        return self._adapter.database

    def from_(self, table: TableDeclaration) -> EntitySet:
        """Entity set for a declared table."""
        if not isinstance(table, TableDeclaration):
            raise TypeError("from_() expects a TableDeclaration; declare the table with fm_table()")
        return EntitySet(self._adapter, table, request_options=self._options)

    def list_tables(self) -> List[str]:
        """Names of the tables exposed by the service."""
        payload = self._adapter.get_tables(**self._options)
        return [entry.get("name") for entry in ODataResponse.from_payload(payload).value if isinstance(entry, dict)]

    def get_metadata(self) -> str:
        """The service's ``$metadata`` document (CSDL XML)."""
        return self._adapter.get_metadata(**self._options)

    def validate_relations(self, table: TableDeclaration) -> List[str]:
        """
        Check a table's declared navigable relations against ``$metadata``.

        :return: Declared relations the service does not expose, sorted. Empty when all exist.
        :rtype: list[str]
        """
        exposed = navigation_properties(self.get_metadata()).get(table.name, set())
        return sorted(set(table.navigable_relations) - exposed)

    def cross_join(self, tables: Sequence[Union[TableDeclaration, str]], query: str = "") -> List[ODataRecord]:
        """
        Records of ``/CrossJoin(a,b,...)``.

        :param query: Rendered query options, e.g. ``"$filter=contacts/id eq invoices/contact"``.
        """
        names = [t.name if isinstance(t, TableDeclaration) else t for t in tables]
        payload = self._adapter.cross_join(names, query, **self._options)
        return ODataResponse.from_payload(payload).value

    def batch(self, requests: Sequence[Union[BatchRequest, Mapping[str, Any]]]) -> List[Any]:
        """Send ``requests`` in one ``$batch`` call and return the response bodies in order."""
        return self._adapter.batch_requests(list(requests), **self._options)

    def run_script(self, table: Union[TableDeclaration, str], script: str, param: Optional[str] = None) -> Any:
        """
        Run a FileMaker script in the context of ``table``.

        :return: The ``scriptResult`` object (``{"code": ..., "resultParameter": ...}``)
            when present, else the raw response.
        """
        name = table.name if isinstance(table, TableDeclaration) else table
        payload = self._adapter.run_script(name, script, param, **self._options)
        if isinstance(payload, dict) and "scriptResult" in payload:
            return payload["scriptResult"]
        return payload


__all__ = ["Database", "navigation_properties"]

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Entity set operations: queries and writes against one declared table."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union, TYPE_CHECKING

from ..core.results import ListResult, ODataRecord
from ..data._response import shape_record
from ..models.column import ColumnHandle
from ..models.operators import FilterExpression
from ..models.query_builder import QueryBuilder, RecordQuery, _untyped_table, check_relation
from ..models.table import TableDeclaration
from ._executor import _QueryExecutor, builder_options
from .batch import BatchCoordinator, BatchRequest

if TYPE_CHECKING:
    from ..data._odata import _ODataAdapter

Key = Union[str, int]


class EntitySet:
    """
    Operations on one table. Obtained from ``db.from_(table)``.

    Query methods return builders; write methods execute immediately.

    Example:
        Read::

            people = db.from_(contacts)
            adults = people.list().where(gte(contacts.c.age, 18)).execute()
            one = people.get("C-1").select(contacts.c.name).execute()
            total = people.count(eq(contacts.c.city, "Oslo"))

        Write::

            created = people.create({"name": "Ada", "age": 36})
            people.update("C-1", {"age": 37})
            people.delete("C-1")
            people.update_where(eq(contacts.c.email, "ada@example.com"), {"city": "London"})
    """

    def __init__(
        self,
        adapter: "_ODataAdapter",
        table: TableDeclaration,
        *,
        request_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize EntitySet.

        :param adapter: Adapter performing requests.
        :type adapter: ~FileMaker.OData.data._odata._ODataAdapter
        :param table: Declared table.
        :type table: ~FileMaker.OData.models.table.TableDeclaration
        :param request_options: ``timeout``/``session`` forwarded to every request.
        :type request_options: dict or None
        """
        self._adapter = adapter
        self._table = table
        self._options = dict(request_options or {})
        self._builder_options = builder_options(adapter.config, table)
        self._executor = _QueryExecutor(adapter, request_options=self._options)
        self._coordinator = BatchCoordinator(adapter, table, request_options=self._options)

    @property
    def table(self) -> TableDeclaration:
        return self._table

    @property
    def _use_entity_ids(self) -> bool:
        return self._builder_options["use_entity_ids"]

    @property
    def _wire_table(self) -> str:
        return self._table.wire_name(self._use_entity_ids)

    def _prepare(self, data: Mapping[str, Any], *, partial: bool) -> Dict[str, Any]:
        payload = self._table.validate_input(data, partial=partial)
        return self._table.keys_to_ids(payload) if self._use_entity_ids else payload

    def _shape(self, payload: Any) -> Optional[ODataRecord]:
        if not isinstance(payload, dict):
            return None
        return shape_record(
            self._table,
            payload,
            selection=self._table.default_select_fields(),
            use_entity_ids=self._use_entity_ids,
            include_special_columns=self._builder_options["include_special_columns"],
        )

    # ---------------------------------------------------------------- reads

    def list(self) -> QueryBuilder:
        """Start a list query on this table."""
        return self._executor.attach(QueryBuilder(self._table, **self._builder_options))

    def get(self, key: Key) -> RecordQuery:
        """
        Start a query for the record with primary key ``key``.

        :param key: Primary key value. Strings are quoted on the wire, integers are not.
        :type key: str or int
        """
        query = RecordQuery(self._table, key, **self._builder_options)
        query.builder._executor = self._executor
        return query

    def get_field_value(self, key: Key, column: Union[ColumnHandle, str]) -> Any:
        """
        Read a single field of one record, including container fields.

        :return: The field value.
        """
        name = column.field_name if isinstance(column, ColumnHandle) else column
        identifier = self._table.field_identifier(name, self._use_entity_ids)
        payload = self._adapter.get_field_value(self._wire_table, key, identifier, **self._options)
        if isinstance(payload, dict) and "value" in payload:
            return payload["value"]
        return payload

    def count(self, filter: Optional[FilterExpression] = None) -> int:
        """Number of records matching ``filter`` (all records when omitted)."""
        rendered = filter.render(self._use_entity_ids) if filter is not None else None
        return self._adapter.get_record_count(self._wire_table, rendered, **self._options)

    def list_all(self, builder: Optional[QueryBuilder] = None, page_size: Optional[int] = None) -> ListResult:
        """
        Fetch every record matching ``builder`` (every record when omitted), page by page.

        :param builder: A builder from :meth:`list`.
        :type builder: QueryBuilder or None
        :param page_size: Records per request.
        :type page_size: int or None
        """
        return (builder if builder is not None else self.list()).list_all(page_size)

    def navigate(self, key: Key, relation: Union[TableDeclaration, str]) -> QueryBuilder:
        """
        Query the records related to one record through a navigation property.

        :param relation: Relation name or the declared target table.
        :return: A builder on the related table.
        :rtype: QueryBuilder

        Example::

            invoices_of_ada = db.from_(contacts).navigate("C-1", invoices).top(10).execute()
        """
        if isinstance(relation, TableDeclaration):
            target, name = relation, relation.name
        else:
            target, name = _untyped_table(str(relation)), str(relation)
        check_relation(self._table, name, strict=self._builder_options["strict_relations"], action="navigate to")

        options = builder_options(self._adapter.config, target)
        nav = target.wire_name(options["use_entity_ids"]) if options["use_entity_ids"] else name

        def fetch(query: str) -> Any:
            return self._adapter.navigate_related(
                self._wire_table,
                key,
                nav,
                query,
                use_entity_ids=options["use_entity_ids"],
                **self._options,
            )

        return _QueryExecutor(self._adapter, fetch, request_options=self._options).attach(
            QueryBuilder(target, **options)
        )

    # ---------------------------------------------------------------- writes

    def create(self, data: Mapping[str, Any]) -> Optional[ODataRecord]:
        """
        Insert a record.

        :param data: Field values. Every not-null writable field is required.
        :type data: dict
        :return: The created record as returned by the service.
        :raises ~FileMaker.OData.core.errors.ValidationError: If ``data`` fails the insert schema.
        """
        payload = self._prepare(data, partial=False)
        created = self._adapter.create_record(
            self._wire_table, payload, use_entity_ids=self._use_entity_ids, **self._options
        )
        return self._shape(created)

    def update(self, key: Key, data: Mapping[str, Any]) -> Optional[ODataRecord]:
        """
        Patch the record with primary key ``key``.

        :return: The updated record when the service returns one, else ``None``.
        """
        payload = self._prepare(data, partial=True)
        updated = self._adapter.update_record(
            self._wire_table, key, payload, use_entity_ids=self._use_entity_ids, **self._options
        )
        return self._shape(updated)

    def delete(self, key: Key) -> None:
        self._adapter.delete_record(self._wire_table, key, **self._options)

    def update_where(self, filter: FilterExpression, data: Mapping[str, Any]) -> Optional[ODataRecord]:
        """Patch the first record matching ``filter``. See :meth:`BatchCoordinator.update_where`."""
        return self._coordinator.update_where(filter, data)

    def update_many_where(self, filter: FilterExpression, data: Mapping[str, Any]) -> int:
        return self._coordinator.update_many_where(filter, data)

    def delete_where(self, filter: FilterExpression) -> int:
        return self._coordinator.delete_where(filter)

    def delete_many_where(self, filter: FilterExpression) -> int:
        return self._coordinator.delete_many_where(filter)

    def update_references(
        self,
        key: Key,
        relation: Union[TableDeclaration, str],
        data: Union[Mapping[str, Any], Iterable[Mapping[str, Any]]],
        method: str = "POST",
    ) -> None:
        """
        Add (``POST``) or replace (``PUT``) entity references on a relation.

        Example::

            db.from_(contacts).update_references(
                "C-1", "invoices", [{"@id": "https://.../invoices('I-9')"}]
            )
        """
        name = relation.name if isinstance(relation, TableDeclaration) else str(relation)
        self._adapter.update_record_references(self._wire_table, key, name, data, method, **self._options)

    def batch(self, requests: Sequence[Union[BatchRequest, Mapping[str, Any]]]) -> List[Any]:
        return self._coordinator.batch(requests)


__all__ = ["EntitySet"]

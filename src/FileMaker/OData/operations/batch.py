# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Composite operations built from finds and keyed writes.

:class:`BatchCoordinator` resolves a filter to primary keys and applies a
keyed write to each, one request at a time. The single-record variants act on
the first match only; the ``*_many_*`` variants page through every match and
report how many writes succeeded. It also forwards ``$batch`` and cross-join
requests to the adapter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Type, Union, TYPE_CHECKING

from ..core import _error_codes as ec
from ..core.errors import FMODataError, NotFoundError, ValidationError
from ..core.results import ODataRecord
from ..models.operators import FilterExpression
from ..models.query_builder import QueryBuilder, RecordQuery
from ..models.table import TableDeclaration
from ._executor import _QueryExecutor, builder_options

if TYPE_CHECKING:
    from ..data._odata import _ODataAdapter

logger = logging.getLogger(__name__)

Key = Union[str, int]


@dataclass
class BatchRequest:
    """
    One request inside a ``$batch`` call.

    :param method: HTTP method.
    :type method: str
    :param path: Request URL, relative to the database root (e.g. ``"/contacts('C-1')"``).
    :type path: str
    :param headers: Extra headers for this request.
    :type headers: dict
    :param body: JSON body, if any.
    """

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


class SequentialStrategy:
    """Apply an action to each key in order. Failures are logged and skipped."""

    name = "sequential"

    def run(self, keys: Iterable[Key], action: Callable[[Key], Any], *, operation: str, table: str) -> int:
        succeeded = 0
        for key in keys:
            try:
                action(key)
            except FMODataError as e:
                logger.warning("%s of %s(%r) failed: %s", operation, table, key, e)
                continue
            succeeded += 1
        return succeeded


STRATEGIES: Dict[str, Type[SequentialStrategy]] = {
    SequentialStrategy.name: SequentialStrategy,
}


class BatchCoordinator:
    """
    Find-then-write composites over one table.

    :param adapter: Adapter performing requests.
    :type adapter: ~FileMaker.OData.data._odata._ODataAdapter
    :param table: Declared table. Composites need its primary key.
    :type table: ~FileMaker.OData.models.table.TableDeclaration
    :param strategy: Name of a registered strategy in :data:`STRATEGIES`.
    :type strategy: str
    :param request_options: ``timeout``/``session`` forwarded to every request.
    :type request_options: dict or None

    :raises ~FileMaker.OData.core.errors.ValidationError: If ``strategy`` is not registered.
    """

    def __init__(
        self,
        adapter: "_ODataAdapter",
        table: TableDeclaration,
        strategy: str = "sequential",
        *,
        request_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        strategy_cls = STRATEGIES.get(strategy)
        if strategy_cls is None:
            raise ValidationError(
                f"Unknown batch strategy {strategy!r}. Available: {', '.join(sorted(STRATEGIES))}",
                subcode=ec.VALIDATION_UNKNOWN_STRATEGY,
                value=strategy,
            )
        self._adapter = adapter
        self._table = table
        self._strategy = strategy_cls()
        self._options = dict(request_options or {})
        self._builder_options = builder_options(adapter.config, table)
        self._executor = _QueryExecutor(adapter, request_options=self._options)

    @property
    def _wire_table(self) -> str:
        return self._table.wire_name(self._builder_options["use_entity_ids"])

    def _require_primary_key(self) -> str:
        pk = self._table.primary_key
        if pk is None:
            raise ValidationError(
                f"Table {self._table.name!r} declares no primary key; composite operations need one",
                subcode=ec.VALIDATION_MISSING_PRIMARY_KEY,
            )
        return pk

    def _query(self) -> QueryBuilder:
        return self._executor.attach(QueryBuilder(self._table, **self._builder_options))

    def _find_key(self, filter: FilterExpression) -> Key:
        pk = self._require_primary_key()
        record = self._query().select(pk).where(filter).top(1).maybe_single().execute()
        if record is None:
            raise NotFoundError(f"No record in {self._table.name!r} matches {filter.render()}", table=self._table.name)
        return record[pk]

    def _find_keys(self, filter: FilterExpression) -> List[Key]:
        pk = self._require_primary_key()
        result = self._query().select(pk).where(filter).list_all()
        return [record[pk] for record in result]

    def _prepare(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = self._table.validate_input(data, partial=True)
        if self._builder_options["use_entity_ids"]:
            payload = self._table.keys_to_ids(payload)
        return payload

    def _delete(self, key: Key) -> None:
        self._adapter.delete_record(self._wire_table, key, **self._options)

    def _update(self, key: Key, payload: Mapping[str, Any]) -> None:
        self._adapter.update_record(
            self._wire_table,
            key,
            payload,
            use_entity_ids=self._builder_options["use_entity_ids"],
            **self._options,
        )

    # ---------------------------------------------------------------- composites

    def delete_where(self, filter: FilterExpression) -> int:
        """
        Delete the first record matching ``filter``.

        :return: 1 if a record was deleted, 0 if none matched.
        :rtype: int
        """
        try:
            key = self._find_key(filter)
        except NotFoundError:
            return 0
        self._delete(key)
        return 1

    def delete_many_where(self, filter: FilterExpression) -> int:
        """
        Delete every record matching ``filter``, one request per record.

        :return: Number of records deleted. Failed deletes are logged and not counted.
        :rtype: int
        """
        keys = self._find_keys(filter)
        return self._strategy.run(keys, self._delete, operation="delete", table=self._table.name)

    def update_where(self, filter: FilterExpression, data: Mapping[str, Any]) -> Optional[ODataRecord]:
        """
        Patch the first record matching ``filter`` and return it as stored.

        :return: The updated record, read back after the patch, or ``None`` when nothing matched.
        :raises ~FileMaker.OData.core.errors.ValidationError: If ``data`` fails the write schema.
        """
        payload = self._prepare(data)
        try:
            key = self._find_key(filter)
        except NotFoundError:
            return None
        self._update(key, payload)
        query = RecordQuery(self._table, key, **self._builder_options)
        query.builder._executor = self._executor
        return query.execute()

    def update_many_where(self, filter: FilterExpression, data: Mapping[str, Any]) -> int:
        """
        Patch every record matching ``filter`` with the same ``data``.

        :return: Number of records updated. Failed updates are logged and not counted.
        :rtype: int
        """
        payload = self._prepare(data)
        keys = self._find_keys(filter)
        return self._strategy.run(
            keys,
            lambda key: self._update(key, payload),
            operation="update",
            table=self._table.name,
        )

    # ---------------------------------------------------------------- passthrough

    def batch(self, requests: Sequence[Union[BatchRequest, Mapping[str, Any]]]) -> List[Any]:
        """Send ``requests`` in one ``$batch`` call and return the response bodies in order."""
        return self._adapter.batch_requests(list(requests), **self._options)

    def cross_join(self, tables: Sequence[Union[TableDeclaration, str]], query: str = "") -> Any:
        names = [t.name if isinstance(t, TableDeclaration) else t for t in tables]
        return self._adapter.cross_join(names, query, **self._options)


__all__ = ["BatchRequest", "BatchCoordinator", "SequentialStrategy", "STRATEGIES"]

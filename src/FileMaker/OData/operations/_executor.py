# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Executes query builders against an adapter. Internal."""

from __future__ import annotations

import warnings
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..core.errors import CardinalityError
from ..core.results import ListResult, ODataRecord, ODataResponse
from ..data._response import shape_record
from ..models.query_builder import QueryBuilder, RecordQuery
from ..models.table import TableDeclaration

if TYPE_CHECKING:
    from ..core.config import ODataConfig
    from ..data._odata import _ODataAdapter

Fetch = Callable[[str], Any]


def builder_options(config: "ODataConfig", table: TableDeclaration) -> Dict[str, Any]:
    """Keyword arguments for a :class:`QueryBuilder` on ``table`` under ``config``."""
    return {
        "use_entity_ids": config.use_entity_ids and table.has_entity_ids,
        "default_top": config.default_top,
        "include_special_columns": config.include_special_columns,
        "strict_relations": config.validate_relations,
    }


class _QueryExecutor:
    """
    Runs builders created by an entity set.

    :param adapter: Adapter performing requests.
    :param fetch: Issues the collection request for a rendered query string.
        Defaults to ``adapter.get_records`` on the builder's table.
    :param request_options: ``timeout``/``session`` forwarded to every request.
    """

    def __init__(
        self,
        adapter: "_ODataAdapter",
        fetch: Optional[Fetch] = None,
        *,
        request_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._adapter = adapter
        self._fetch = fetch
        self._options = dict(request_options or {})

    def attach(self, builder: QueryBuilder) -> QueryBuilder:
        builder._executor = self
        return builder

    def _request(self, builder: QueryBuilder, query: str) -> ODataResponse:
        if self._fetch is not None:
            payload = self._fetch(query)
        else:
            payload = self._adapter.get_records(
                builder.table.wire_name(builder.use_entity_ids),
                query,
                use_entity_ids=builder.use_entity_ids,
                **self._options,
            )
        return ODataResponse.from_payload(payload)

    def _shape(self, builder: QueryBuilder, records: List[Any]) -> List[ODataRecord]:
        selection = builder.effective_selection()
        return [
            shape_record(
                builder.table,
                raw,
                selection=selection,
                expansions=builder._expand,
                use_entity_ids=builder.use_entity_ids,
                include_special_columns=builder.include_special_columns,
            )
            for raw in records
        ]

    def execute_query(self, builder: QueryBuilder) -> Any:
        response = self._request(builder, builder.render())
        records = self._shape(builder, response.value)

        if builder.mode == "single":
            if len(records) != 1:
                raise CardinalityError(1, len(records))
            return records[0]
        if builder.mode == "maybe_single":
            if len(records) > 1:
                raise CardinalityError(1, len(records))
            return records[0] if records else None

        if response.count is not None and response.count > len(records) and not builder.explicit_paging:
            warnings.warn(
                f"Query on {builder.table.name!r} returned {len(records)} of {response.count} matching records. "
                "Use list_all() to fetch every page.",
                UserWarning,
                stacklevel=3,
            )
        return ListResult(records=records, found_count=response.count)

    def list_all(self, builder: QueryBuilder, page_size: int) -> ListResult:
        start = builder._skip or 0
        skip = start
        records: List[ODataRecord] = []
        found: Optional[int] = None
        while True:
            response = self._request(builder, builder.render(top=page_size, skip=skip, count=True))
            page = self._shape(builder, response.value)
            if found is None:
                found = response.count
            records.extend(page)
            if not page:
                break
            if found is not None and start + len(records) >= found:
                break
            if found is None and len(page) < page_size:
                break
            skip += page_size
        return ListResult(records=records, found_count=found)

    def execute_record(self, query: RecordQuery) -> ODataRecord:
        builder = query.builder
        payload = self._adapter.get_record(
            query.table.wire_name(builder.use_entity_ids),
            query.key,
            query.render(),
            use_entity_ids=builder.use_entity_ids,
            **self._options,
        )
        return shape_record(
            query.table,
            payload or {},
            selection=builder.effective_selection(),
            expansions=builder._expand,
            use_entity_ids=builder.use_entity_ids,
            include_special_columns=builder.include_special_columns,
        )


__all__ = ["_QueryExecutor", "builder_options"]

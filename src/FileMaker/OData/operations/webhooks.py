# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Webhook registration and invocation."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union, TYPE_CHECKING

from ..models.column import ColumnHandle
from ..models.operators import FilterExpression
from ..models.query_builder import _render_select
from ..models.table import TableDeclaration
from ._executor import builder_options

if TYPE_CHECKING:
    from ..data._odata import _ODataAdapter

WebhookId = Union[str, int]


class WebhookOperations:
    """
    Webhooks on one hosted database. Obtained from ``db.webhook``.

    Example::

        result = db.webhook.add(
            "https://example.com/hook",
            contacts,
            filter=eq(contacts.c.city, "Oslo"),
            select=[contacts.c.name, contacts.c.id],
        )
        hook_id = result["webHookResult"]["webHookID"]
        db.webhook.invoke(hook_id, row_ids=[63, 61])
        db.webhook.remove(hook_id)
    """

    def __init__(self, adapter: "_ODataAdapter", *, request_options: Optional[Dict[str, Any]] = None) -> None:
        self._adapter = adapter
        self._options = dict(request_options or {})

    def add(
        self,
        url: str,
        table: TableDeclaration,
        *,
        headers: Optional[Mapping[str, str]] = None,
        notify_schema_changes: Optional[bool] = None,
        select: Union[str, Sequence[Union[ColumnHandle, str]], None] = None,
        filter: Union[str, FilterExpression, None] = None,
    ) -> Any:
        """
        Register a webhook that the server calls when records of ``table`` change.

        :param url: Endpoint the server will call.
        :type url: str
        :param table: Table to watch.
        :type table: ~FileMaker.OData.models.table.TableDeclaration
        :param headers: Extra headers sent with each notification.
        :type headers: dict or None
        :param notify_schema_changes: Also notify on schema changes.
        :type notify_schema_changes: bool or None
        :param select: Fields included in notifications, as columns or a rendered ``$select`` string.
        :param filter: Records that trigger notifications, as an expression or a rendered ``$filter`` string.
        :return: The service response, e.g. ``{"webHookResult": {"webHookID": 1}}``.
        :raises TypeError: If ``table`` is not a declared table.
        :raises ValueError: If a selected column belongs to another table.
        """
        if not isinstance(table, TableDeclaration):
            raise TypeError("add() expects a TableDeclaration; declare the table with fm_table()")
        use_ids = builder_options(self._adapter.config, table)["use_entity_ids"]

        definition: Dict[str, Any] = {"webhook": url, "tableName": table.wire_name(use_ids)}
        if headers is not None:
            definition["headers"] = dict(headers)
        if notify_schema_changes is not None:
            definition["notifySchemaChanges"] = notify_schema_changes
        if select is not None:
            definition["select"] = select if isinstance(select, str) else self._select(table, select, use_ids)
        if filter is not None:
            definition["filter"] = filter.render(use_ids) if isinstance(filter, FilterExpression) else filter
        return self._adapter.add_webhook(definition, **self._options)

    @staticmethod
    def _select(table: TableDeclaration, columns: Sequence[Union[ColumnHandle, str]], use_ids: bool) -> str:
        names: List[str] = []
        for column in columns:
            if isinstance(column, ColumnHandle):
                if not table.owns(column):
                    raise ValueError(f"Column {column.field_name!r} does not belong to table {table.name!r}")
                names.append(column.field_name)
            else:
                names.append(str(column))
        return _render_select(names, table, use_ids)

    def list(self) -> Any:
        """All registered webhooks: ``{"Status": ..., "WebHook": [...]}``."""
        return self._adapter.list_webhooks(**self._options)

    def get(self, webhook_id: WebhookId) -> Any:
        """One webhook's registration."""
        return self._adapter.get_webhook(webhook_id, **self._options)

    def remove(self, webhook_id: WebhookId) -> None:
        """Delete a webhook."""
        self._adapter.delete_webhook(webhook_id, **self._options)

    def invoke(self, webhook_id: WebhookId, row_ids: Optional[Sequence[int]] = None) -> Any:
        """Trigger a webhook now, for every record or only ``row_ids``."""
        return self._adapter.invoke_webhook(webhook_id, row_ids, **self._options)


__all__ = ["WebhookOperations"]

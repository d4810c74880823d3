# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
OData protocol adapter for FileMaker Server.

:class:`_ODataAdapter` turns operations into HTTP requests against
``{server}/fmi/odata/v4/{database}``, decodes successful bodies and converts
failures into the package's error hierarchy. Subclasses supply the
``Authorization`` header; see :mod:`FileMaker.OData.data.adapters`.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote, urlencode

import requests

from ..common.constants import (
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_XML,
    IEEE754_SUFFIX,
    ODATA_COUNT_KEY,
    ODATA_ROOT,
    ODATA_VERSION,
    PREFER_ENTITY_IDS,
    SYSTEM_INDEXES,
    SYSTEM_TABLES,
)
from ..core import _error_codes as ec
from ..core._http import _HttpClient
from ..core.config import ODataConfig
from ..core.errors import ProtocolError, RequestTimeoutError, TransportError
from ..core.telemetry import create_telemetry_manager
from ..models._format import encode_url_value, format_key
from ._batch import as_parts, format_batch, parse_batch
from ._response import decode_error, parse_body

logger = logging.getLogger(__name__)

Key = Union[str, int]


def _clean_database(database: str) -> str:
    name = (database or "").strip().strip("\"'").strip()
    if not name:
        raise ValueError("Database name is required")
    return name


class _ODataAdapter(ABC):
    """
    Base FileMaker OData adapter.

    Every operation accepts keyword ``timeout`` (seconds) and ``session``
    (a :class:`requests.Session`) that apply to that call only.

    :param server: Server origin, e.g. ``https://fms.example.com``.
    :type server: :class:`str`
    :param database: Hosted file name. Surrounding quotes and whitespace are stripped.
    :type database: :class:`str`
    :param config: Transport and protocol settings.
    :type config: ~FileMaker.OData.core.config.ODataConfig | None
    :param session: Session shared by every request of this adapter.
    :type session: :class:`requests.Session` | None

    :raises ValueError: If ``server`` or ``database`` is empty.
    """

    def __init__(
        self,
        server: str,
        database: str,
        *,
        config: Optional[ODataConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.server = (server or "").strip().rstrip("/")
        if not self.server:
            raise ValueError("server is required.")
        self.database = _clean_database(database)
        self.configure(config or ODataConfig(), session=session)
        self.base_url = self._build_base_url()

    def configure(self, config: ODataConfig, *, session: Optional[requests.Session] = None) -> None:
        """Apply ``config`` to the transport and telemetry of subsequent requests."""
        self.config = config
        self._http = _HttpClient(
            retries=self.config.http_retries,
            backoff=self.config.http_backoff,
            max_backoff=self.config.http_max_backoff,
            timeout=self.config.http_timeout,
            jitter=self.config.http_jitter,
            retry_transient_errors=self.config.http_retry_transient_errors,
            session=session,
        )
        self._telemetry = create_telemetry_manager(config.telemetry)

    def _build_base_url(self) -> str:
        return f"{self.server}{ODATA_ROOT}/{quote(self.database)}"

    @abstractmethod
    def get_auth_header(self) -> str:
        """Value of the ``Authorization`` header."""

    def bind_session(self, session: Optional[requests.Session]) -> None:
        """Use ``session`` for subsequent requests (``None`` reverts to module-level :mod:`requests`)."""
        self._http._session = session

    # ---------------------------------------------------------------- transport

    def _headers(
        self,
        method: str,
        *,
        has_body: bool,
        accept: Optional[str] = None,
        ieee754: Optional[bool] = None,
        use_entity_ids: bool = False,
        content_type: Optional[str] = None,
    ) -> Dict[str, str]:
        ieee = self.config.ieee754_compatible if ieee754 is None else ieee754
        headers = {
            "Authorization": self.get_auth_header(),
            "Accept": accept or (CONTENT_TYPE_JSON + IEEE754_SUFFIX if ieee else CONTENT_TYPE_JSON),
            "OData-Version": ODATA_VERSION,
            "OData-MaxVersion": ODATA_VERSION,
        }
        if has_body and method.upper() != "GET":
            headers["Content-Type"] = content_type or CONTENT_TYPE_JSON
        if use_entity_ids:
            headers["Prefer"] = PREFER_ENTITY_IDS
        return headers

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        query: Optional[str] = None,
        body: Any = None,
        data: Optional[str] = None,
        content_type: Optional[str] = None,
        raw: bool = False,
        accept: Optional[str] = None,
        ieee754: Optional[bool] = None,
        use_entity_ids: bool = False,
        table_name: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        headers = self._headers(
            method,
            has_body=body is not None or data is not None,
            accept=accept,
            ieee754=ieee754,
            use_entity_ids=use_entity_ids,
            content_type=content_type,
        )
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": timeout}
        if body is not None:
            kwargs["json"] = body
        elif data is not None:
            kwargs["data"] = data.encode("utf-8")
        if not self.config.verify_ssl:
            kwargs["verify"] = False

        request_id = str(uuid.uuid4())
        with self._telemetry.trace_request(
            operation,
            method.upper(),
            url,
            request_id,
            database=self.database,
            table_name=table_name,
        ) as ctx:
            try:
                response = self._http._request(method.lower(), url, session=session, **kwargs)
            except requests.exceptions.Timeout as e:
                raise RequestTimeoutError(self._http.resolve_timeout(method, timeout), url=url) from e
            except requests.exceptions.RequestException as e:
                raise TransportError(f"{method.upper()} {url} failed: {e}", url=url) from e

            self._telemetry.record_response(ctx, response.status_code, len(response.text or ""))
            if not 200 <= response.status_code < 300:
                raise decode_error(response, url=url)
            return response if raw else parse_body(response)

    # ---------------------------------------------------------------- paths

    def _table_path(self, table: str) -> str:
        return f"/{table}"

    def _record_path(self, table: str, key: Key) -> str:
        return f"/{table}({encode_url_value(format_key(key))})"

    # ---------------------------------------------------------------- discovery

    def get_tables(self, **options: Any) -> Any:
        """GET the service document listing the database's tables."""
        return self._request("tables.list", "GET", "", query="$format=json", **options)

    def get_metadata(self, **options: Any) -> str:
        """GET ``$metadata`` as CSDL XML text."""
        return self._request("metadata.get", "GET", "/$metadata", accept=CONTENT_TYPE_XML, **options)

    # ---------------------------------------------------------------- reads

    def get_records(self, table: str, query: str = "", *, use_entity_ids: bool = False, **options: Any) -> Any:
        """GET ``/{table}?{query}``; returns the collection envelope."""
        return self._request(
            "records.list",
            "GET",
            self._table_path(table),
            query=query,
            use_entity_ids=use_entity_ids,
            table_name=table,
            **options,
        )

    def get_record(self, table: str, key: Key, query: str = "", *, use_entity_ids: bool = False, **options: Any) -> Any:
        """GET ``/{table}({key})?{query}``; returns the entity."""
        return self._request(
            "records.get",
            "GET",
            self._record_path(table, key),
            query=query,
            use_entity_ids=use_entity_ids,
            table_name=table,
            **options,
        )

    def get_record_count(self, table: str, filter: Optional[str] = None, **options: Any) -> int:
        """
        Count matching records.

        Issues ``$count=true&$top=0`` and returns ``@odata.count``, or 0 when
        the service omits it. ``filter`` is the unencoded filter expression.
        """
        query = "$count=true&$top=0"
        if filter:
            query = f"$filter={encode_url_value(filter)}&{query}"
        payload = self._request("records.count", "GET", self._table_path(table), query=query, table_name=table, **options)
        if isinstance(payload, dict):
            return int(payload.get(ODATA_COUNT_KEY) or 0)
        return 0

    def get_field_value(self, table: str, key: Key, field: str, **options: Any) -> Any:
        """GET ``/{table}({key})/{field}``."""
        return self._request(
            "records.field",
            "GET",
            f"{self._record_path(table, key)}/{field}",
            table_name=table,
            **options,
        )

    def navigate_related(
        self,
        table: str,
        key: Key,
        navigation: str,
        query: str = "",
        *,
        use_entity_ids: bool = False,
        **options: Any,
    ) -> Any:
        """GET ``/{table}({key})/{navigation}?{query}``."""
        return self._request(
            "records.navigate",
            "GET",
            f"{self._record_path(table, key)}/{navigation}",
            query=query,
            use_entity_ids=use_entity_ids,
            table_name=table,
            **options,
        )

    def cross_join(self, tables: Sequence[str], query: str = "", **options: Any) -> Any:
        """GET ``/CrossJoin(a,b,...)?{query}``."""
        return self._request("records.crossjoin", "GET", f"/CrossJoin({','.join(tables)})", query=query, **options)

    # ---------------------------------------------------------------- writes

    def create_record(self, table: str, data: Mapping[str, Any], *, use_entity_ids: bool = False, **options: Any) -> Any:
        """POST ``/{table}``; returns the created entity."""
        return self._request(
            "records.create",
            "POST",
            self._table_path(table),
            body=dict(data),
            use_entity_ids=use_entity_ids,
            table_name=table,
            **options,
        )

    def update_record(
        self,
        table: str,
        key: Key,
        data: Mapping[str, Any],
        *,
        use_entity_ids: bool = False,
        **options: Any,
    ) -> Any:
        """PATCH ``/{table}({key})``."""
        return self._request(
            "records.update",
            "PATCH",
            self._record_path(table, key),
            body=dict(data),
            use_entity_ids=use_entity_ids,
            table_name=table,
            **options,
        )

    def delete_record(self, table: str, key: Key, **options: Any) -> None:
        """DELETE ``/{table}({key})``."""
        self._request("records.delete", "DELETE", self._record_path(table, key), table_name=table, **options)

    def update_record_references(
        self,
        table: str,
        key: Key,
        navigation: str,
        data: Union[Mapping[str, Any], Iterable[Mapping[str, Any]]],
        method: str = "POST",
        **options: Any,
    ) -> None:
        """
        Add (``POST``) or replace (``PUT``) references on a navigation property.

        One request is sent per item of ``data``, in order.
        """
        items = [data] if isinstance(data, Mapping) else list(data)
        path = f"{self._record_path(table, key)}/{navigation}"
        for item in items:
            self._request("records.references", method, path, body=dict(item), table_name=table, **options)

    def batch_requests(self, requests_: Sequence[Any], **options: Any) -> List[Any]:
        """
        POST ``/$batch`` as ``multipart/mixed``.

        Each item is a :class:`~FileMaker.OData.operations.batch.BatchRequest`
        or a mapping with ``method``, ``url``/``path``, ``headers`` and ``body``.
        Reads travel as individual parts; consecutive writes share a changeset.
        A sub-response with a non-2xx status yields ``None`` in its slot and is
        logged.

        :return: Response bodies in request order.
        :rtype: list
        :raises ~FileMaker.OData.core.errors.ProtocolError: If the response is
            not multipart or holds a different number of parts than were sent.
        """
        parts = as_parts(requests_)
        data, boundary = format_batch(parts, self.base_url)
        response = self._request(
            "batch",
            "POST",
            "/$batch",
            data=data,
            content_type=f"multipart/mixed; boundary={boundary}",
            raw=True,
            **options,
        )
        url = f"{self.base_url}/$batch"
        text = response.text or ""
        try:
            results = parse_batch(text, (response.headers or {}).get("Content-Type", ""))
        except ValueError as e:
            raise ProtocolError(
                f"Invalid batch response: {e}",
                response.status_code,
                code="response_structure",
                subcode=ec.PROTOCOL_RESPONSE_STRUCTURE,
                url=url,
                body_excerpt=text[:200],
            ) from e
        if len(results) != len(parts):
            raise ProtocolError(
                f"Invalid batch response: expected {len(parts)} responses but got {len(results)}",
                response.status_code,
                code="response_structure",
                subcode=ec.PROTOCOL_RESPONSE_STRUCTURE,
                url=url,
                body_excerpt=text[:200],
            )

        bodies = []
        for part, result in zip(parts, results):
            if not result.ok:
                logger.warning("Batch %s %s failed: %s %s", part.method.upper(), part.path, result.status, result.body)
                bodies.append(None)
                continue
            bodies.append(result.body)
        return bodies

    # ---------------------------------------------------------------- schema

    def create_table(self, name: str, fields: Sequence[Mapping[str, Any]], **options: Any) -> Any:
        """POST ``/FileMaker_Tables`` with ``{"tableName", "fields"}``."""
        body = {"tableName": name, "fields": [dict(f) for f in fields]}
        return self._request("schema.create_table", "POST", f"/{SYSTEM_TABLES}", body=body, table_name=name, **options)

    def add_fields(self, table: str, fields: Sequence[Mapping[str, Any]], **options: Any) -> Any:
        """PATCH ``/FileMaker_Tables/{table}`` with ``{"fields"}``."""
        body = {"fields": [dict(f) for f in fields]}
        return self._request(
            "schema.add_fields", "PATCH", f"/{SYSTEM_TABLES}/{table}", body=body, table_name=table, **options
        )

    def delete_table(self, table: str, **options: Any) -> None:
        """DELETE ``/FileMaker_Tables/{table}``."""
        self._request("schema.delete_table", "DELETE", f"/{SYSTEM_TABLES}/{table}", table_name=table, **options)

    def delete_field(self, table: str, field: str, **options: Any) -> None:
        """DELETE ``/FileMaker_Tables/{table}/{field}``."""
        self._request(
            "schema.delete_field", "DELETE", f"/{SYSTEM_TABLES}/{table}/{field}", table_name=table, **options
        )

    def create_index(self, table: str, field: str, **options: Any) -> Any:
        """POST ``/FileMaker_Indexes/{table}`` with ``{"indexName": field}``."""
        return self._request(
            "schema.create_index",
            "POST",
            f"/{SYSTEM_INDEXES}/{table}",
            body={"indexName": field},
            table_name=table,
            **options,
        )

    def delete_index(self, table: str, field: str, **options: Any) -> None:
        """DELETE ``/FileMaker_Indexes/{table}/{field}``."""
        self._request(
            "schema.delete_index", "DELETE", f"/{SYSTEM_INDEXES}/{table}/{field}", table_name=table, **options
        )

    # ---------------------------------------------------------------- scripts

    def run_script(self, table: str, script: str, param: Optional[str] = None, **options: Any) -> Any:
        """POST ``/{table}?script=...&script.param=...`` and return the script result."""
        params = {"script": script}
        if param:
            params["script.param"] = param
        return self._request(
            "scripts.run", "POST", self._table_path(table), query=urlencode(params), table_name=table, **options
        )

    # ---------------------------------------------------------------- webhooks

    def add_webhook(self, definition: Mapping[str, Any], **options: Any) -> Any:
        """POST ``/Webhook.Add`` with ``{"webhook", "tableName", ...}``."""
        return self._request(
            "webhooks.add",
            "POST",
            "/Webhook.Add",
            body=dict(definition),
            table_name=definition.get("tableName"),
            **options,
        )

    def list_webhooks(self, **options: Any) -> Any:
        """GET ``/Webhook.GetAll``."""
        return self._request("webhooks.list", "GET", "/Webhook.GetAll", **options)

    def get_webhook(self, webhook_id: Key, **options: Any) -> Any:
        """GET ``/Webhook.Get({id})``."""
        return self._request("webhooks.get", "GET", f"/Webhook.Get({webhook_id})", **options)

    def delete_webhook(self, webhook_id: Key, **options: Any) -> None:
        """DELETE ``/Webhook.Delete({id})``."""
        self._request("webhooks.delete", "DELETE", f"/Webhook.Delete({webhook_id})", **options)

    def invoke_webhook(self, webhook_id: Key, row_ids: Optional[Sequence[int]] = None, **options: Any) -> Any:
        """POST ``/Webhook.Invoke({id})``, with ``{"rowIDs": [...]}`` when given."""
        body = {"rowIDs": list(row_ids)} if row_ids is not None else None
        return self._request("webhooks.invoke", "POST", f"/Webhook.Invoke({webhook_id})", body=body, **options)


__all__ = ["_ODataAdapter"]

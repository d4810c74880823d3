# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Response decoding: body parsing, error envelopes and record shaping.

FileMaker emits a bare ``?`` for values it cannot represent, which is not
valid JSON; bodies are sanitised before parsing. Records are then stripped of
special columns and protocol metadata, mapped from entity ids back to names,
validated against the declared table and renamed per the caller's selection.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, TYPE_CHECKING

from ..common.constants import CONTENT_TYPE_XML, SPECIAL_COLUMNS
from ..core import _error_codes as ec
from ..core.errors import ProtocolError, SchemaLockedError

if TYPE_CHECKING:
    from ..models.query_builder import Expansion
    from ..models.table import TableDeclaration

_QMARK_VALUE = re.compile(r":\s*\?(?=\s*[,}\]])")
_QMARK_ITEM = re.compile(r"(?<=[\[,])\s*\?(?=\s*[,\]])")


def sanitize_json(text: str) -> str:
    """Replace FileMaker's unquoted ``?`` values with ``null``.

    Example::

        sanitize_json('{"a": ?, "b": [1, ?]}')
        # '{"a": null, "b": [1, null]}'
    """
    text = _QMARK_VALUE.sub(": null", text)
    return _QMARK_ITEM.sub(" null", text)


def parse_body(response: Any) -> Any:
    """
    Decode a successful response body.

    ``204`` or an empty body yields ``None``; JSON is parsed after
    sanitising and falls back to the raw text; XML and anything else is
    returned as text.
    """
    if response.status_code == 204:
        return None
    text = response.text or ""
    if not text.strip():
        return None
    content_type = (response.headers or {}).get("Content-Type", "")
    if CONTENT_TYPE_XML in content_type or "text/" in content_type:
        return text
    try:
        return json.loads(sanitize_json(text))
    except ValueError:
        return text


def _retry_after(response: Any) -> Optional[int]:
    value = (response.headers or {}).get("Retry-After")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def decode_error(response: Any, *, url: Optional[str] = None) -> ProtocolError:
    """
    Build a :class:`~FileMaker.OData.core.errors.ProtocolError` from a non-2xx response.

    The service's ``{"error": {"code", "message", "target", "details"}}``
    envelope is used when present; otherwise the status code and reason
    phrase. Service code ``303`` yields a
    :class:`~FileMaker.OData.core.errors.SchemaLockedError`.
    """
    status = response.status_code
    text = response.text or ""
    body: Any = None
    if text.strip():
        try:
            body = json.loads(sanitize_json(text))
        except ValueError:
            body = None

    code: Optional[str] = None
    message: Optional[str] = None
    target: Optional[str] = None
    details: Optional[List[Any]] = None
    envelope = body.get("error") if isinstance(body, dict) else None
    if isinstance(envelope, dict):
        raw_code = envelope.get("code")
        code = str(raw_code) if raw_code is not None else None
        message = envelope.get("message")
        target = envelope.get("target")
        raw_details = envelope.get("details")
        if isinstance(raw_details, list):
            details = raw_details
        elif raw_details is not None:
            details = [raw_details]

    if not message:
        message = getattr(response, "reason", None) or "Unknown error"
        if body is None and text.strip():
            message = f"{message}: {text.strip()[:200]}"

    error_cls = SchemaLockedError if code == ec.SERVICE_SCHEMA_LOCKED else ProtocolError
    return error_cls(
        message,
        status,
        code=code,
        target=target,
        details=details,
        url=url,
        body_excerpt=text[:200] if text else None,
        retry_after=_retry_after(response),
        is_transient=status in ec.TRANSIENT_STATUS_CODES,
    )


# ---------------------------------------------------------------- records


def _strip(record: Mapping[str, Any], *, keep: Sequence[str], include_special_columns: bool) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in record.items():
        if key.startswith("@odata."):
            continue
        if key in SPECIAL_COLUMNS and not include_special_columns and key not in keep:
            continue
        out[key] = value
    return out


def _rename(record: Dict[str, Any], selection: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    used = set()
    for output_name, field_name in selection.items():
        if field_name in record:
            out[output_name] = record[field_name]
            used.add(field_name)
    for key, value in record.items():
        if key not in used and key not in out:
            out[key] = value
    return out


def shape_record(
    table: "TableDeclaration",
    raw: Mapping[str, Any],
    *,
    selection: Optional[Mapping[str, str]] = None,
    expansions: Sequence["Expansion"] = (),
    use_entity_ids: bool = False,
    include_special_columns: bool = False,
) -> Dict[str, Any]:
    """
    Turn one wire record into the record returned to callers.

    :param table: Declared table the record belongs to.
    :param raw: Record as decoded from JSON.
    :param selection: ``{output_name: field_name}`` of the fields requested,
        or ``None`` when every field was requested.
    :param expansions: Expanded relations whose nested records are shaped
        against their own target tables.
    :raises ~FileMaker.OData.core.errors.ValidationError: If the record fails
        the table's read schema; every field issue is reported at once.
    """
    if not isinstance(raw, Mapping):
        raise ProtocolError(
            f"Invalid record in response from {table.name!r}: expected an object",
            None,
            code="response_structure",
            subcode=ec.PROTOCOL_RESPONSE_STRUCTURE,
            body_excerpt=str(raw)[:200],
        )
    record = table.keys_to_names(raw) if use_entity_ids else dict(raw)
    selected = list(selection.values()) if selection else None
    record = _strip(record, keep=selected or (), include_special_columns=include_special_columns)

    nested: Dict[str, Any] = {}
    for expansion in expansions:
        for key in (expansion.relation, expansion.wire_name(use_entity_ids)):
            if key in record:
                nested[expansion.relation] = (expansion, record.pop(key))
                break

    validated = table.validate_record(record, selected)
    for relation, (expansion, value) in nested.items():
        validated[relation] = _shape_expanded(expansion, value, use_entity_ids=use_entity_ids)

    return _rename(validated, selection) if selection else validated


def _shape_expanded(expansion: "Expansion", value: Any, *, use_entity_ids: bool) -> Any:
    if expansion.target is None or value is None:
        return value
    kwargs = dict(
        selection=expansion.selection(),
        expansions=expansion.children,
        use_entity_ids=use_entity_ids,
    )
    if isinstance(value, list):
        return [shape_record(expansion.target, item, **kwargs) for item in value]
    return shape_record(expansion.target, value, **kwargs)


__all__ = ["sanitize_json", "parse_body", "decode_error", "shape_record"]

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Structured exception hierarchy for the FileMaker OData client.

Every failure surfaced by this package derives from :class:`FMODataError`,
which carries a ``kind`` (one of ``TRANSPORT``, ``TIMEOUT``, ``PROTOCOL``,
``VALIDATION``, ``NOT_FOUND`` or ``CARDINALITY``) alongside a code, message,
optional target and details.
"""

from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, List, Optional, Union

from . import _error_codes as ec


class FMODataError(Exception):
    """
    Base structured error for the FileMaker OData client.

    :param message: Human readable description.
    :type message: :class:`str`
    :param code: Machine readable code. For protocol errors this is the code
        reported by the service (e.g. ``"303"``), otherwise a client category.
    :type code: :class:`str`
    :param subcode: Finer grained classification, see ``_error_codes``.
    :type subcode: :class:`str` | None
    :param status_code: HTTP status code when a response was received.
    :type status_code: :class:`int` | None
    :param target: Field or path the error refers to.
    :type target: :class:`str` | None
    :param details: Service detail entries or aggregated validation issues.
    :type details: :class:`list` | None
    :param context: Extra diagnostic values (url, body excerpt, retry-after).
    :type context: :class:`dict` | None
    """

    kind: str = ""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        subcode: Optional[str] = None,
        status_code: Optional[int] = None,
        target: Optional[str] = None,
        details: Optional[List[Any]] = None,
        context: Optional[Dict[str, Any]] = None,
        source: Optional[str] = None,
        is_transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.subcode = subcode
        self.status_code = status_code
        self.target = target
        self.details = list(details) if details else []
        self.context = context or {}
        self.source = source or "client"
        self.is_transient = is_transient
        self.timestamp = _dt.datetime.now(_dt.timezone.utc).isoformat().replace("+00:00", "Z")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "code": self.code,
            "subcode": self.subcode,
            "status_code": self.status_code,
            "target": self.target,
            "details": self.details,
            "context": self.context,
            "source": self.source,
            "is_transient": self.is_transient,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(kind={self.kind!r}, code={self.code!r}, message={self.message!r})"


class TransportError(FMODataError):
    """The request failed before any response was obtained."""

    kind = ec.TRANSPORT

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="transport_error",
            context={"url": url} if url else None,
            is_transient=True,
        )


class RequestTimeoutError(FMODataError):
    """The per-call timeout elapsed before the service answered."""

    kind = ec.TIMEOUT

    def __init__(self, timeout: Optional[float], *, url: Optional[str] = None) -> None:
        super().__init__(
            f"Request timeout after {timeout}s",
            code="TIMEOUT",
            context={"url": url, "timeout": timeout} if url else {"timeout": timeout},
        )
        self.timeout = timeout


class ProtocolError(FMODataError):
    """
    Non-2xx response from the OData service.

    ``code``, ``message``, ``target`` and ``details`` are taken from the
    service's ``{"error": {...}}`` envelope when the body can be decoded.
    """

    kind = ec.PROTOCOL

    def __init__(
        self,
        message: str,
        status_code: Optional[int],
        *,
        code: Optional[str] = None,
        target: Optional[str] = None,
        details: Optional[List[Any]] = None,
        subcode: Optional[str] = None,
        url: Optional[str] = None,
        body_excerpt: Optional[str] = None,
        retry_after: Optional[int] = None,
        is_transient: bool = False,
    ) -> None:
        ctx: Dict[str, Any] = {}
        if url is not None:
            ctx["url"] = url
        if body_excerpt is not None:
            ctx["body_excerpt"] = body_excerpt
        if retry_after is not None:
            ctx["retry_after"] = retry_after
        if subcode is None and status_code is not None:
            subcode = ec.http_subcode(status_code)
        super().__init__(
            message,
            code=code if code is not None else str(status_code),
            subcode=subcode,
            status_code=status_code,
            target=target,
            details=details,
            context=ctx,
            source="server",
            is_transient=is_transient,
        )

    def is_not_found(self) -> bool:
        return self.status_code == 404

    def is_unauthorized(self) -> bool:
        return self.status_code == 401


class SchemaLockedError(ProtocolError):
    """The table schema is locked by another session (service code 303)."""


class ValidationError(FMODataError):
    """
    Input or response data did not match the declared table schema.

    ``details`` holds every field issue found, each a dict with ``field``,
    ``message`` and ``type`` keys.
    """

    kind = ec.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        subcode: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
        value: Any = None,
    ) -> None:
        super().__init__(message, code="validation_error", subcode=subcode, target=field, details=details)
        self.field = field
        self.value = value

    @property
    def issues(self) -> List[Dict[str, Any]]:
        return self.details


class NotFoundError(FMODataError):
    """A find step matched no records."""

    kind = ec.NOT_FOUND

    def __init__(self, message: str, *, table: Optional[str] = None) -> None:
        super().__init__(message, code="not_found", target=table)


class CardinalityError(FMODataError):
    """A single-record query received an unexpected number of records."""

    kind = ec.CARDINALITY

    def __init__(self, expected: Union[int, str], received: int) -> None:
        super().__init__(
            f"Expected {expected} record(s), but received {received}",
            code="cardinality_error",
            context={"expected": expected, "received": received},
        )
        self.expected = expected
        self.received = received


__all__ = [
    "FMODataError",
    "TransportError",
    "RequestTimeoutError",
    "ProtocolError",
    "SchemaLockedError",
    "ValidationError",
    "NotFoundError",
    "CardinalityError",
]

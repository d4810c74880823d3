# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Result envelopes returned by adapter and query operations.

- :class:`ODataResponse`: decoded ``{"value": [...], "@odata.count": n}`` collection envelope
- :class:`ListResult`: validated records of a list query together with the found count

:class:`ListResult` behaves like a read-only list of records::

    result = db.from_(contacts).list().where(eq(contacts.c.city, "Oslo")).execute()
    for record in result:
        print(record["name"])
    print(result.found_count, len(result))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from ..common.constants import ODATA_COUNT_KEY, ODATA_NEXT_LINK_KEY
from . import _error_codes as ec
from .errors import ProtocolError

ODataRecord = Dict[str, Any]


@dataclass(frozen=True)
class ODataResponse:
    """
    Collection envelope returned by the service.

    :param value: Raw records as returned on the wire.
    :type value: :class:`list` of :class:`dict`
    :param count: ``@odata.count`` when ``$count=true`` was requested.
    :type count: :class:`int` | None
    :param next_link: ``@odata.nextLink`` for server-driven paging.
    :type next_link: :class:`str` | None
    """

    value: List[ODataRecord] = field(default_factory=list)
    count: Optional[int] = None
    next_link: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any, *, url: Optional[str] = None) -> "ODataResponse":
        """
        Build an envelope from a decoded response body.

        :raises ~FileMaker.OData.core.errors.ProtocolError: If ``payload`` is not a
            collection envelope.
        """
        if payload is None:
            return cls()
        if not isinstance(payload, dict) or not isinstance(payload.get("value", []), list):
            raise ProtocolError(
                "Invalid response structure: expected a collection with a 'value' array",
                None,
                code="response_structure",
                subcode=ec.PROTOCOL_RESPONSE_STRUCTURE,
                url=url,
                body_excerpt=str(payload)[:200],
            )
        count = payload.get(ODATA_COUNT_KEY)
        return cls(
            value=list(payload.get("value") or []),
            count=int(count) if count is not None else None,
            next_link=payload.get(ODATA_NEXT_LINK_KEY),
        )


@dataclass(frozen=True)
class ListResult:
    """
    Records returned by a list query.

    :param records: Validated, transformed records.
    :type records: :class:`list` of :class:`dict`
    :param found_count: Total matches reported by the service, when known.
    :type found_count: :class:`int` | None
    """

    records: List[ODataRecord] = field(default_factory=list)
    found_count: Optional[int] = None

    @property
    def returned_count(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ODataRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index):
        return self.records[index]

    def __bool__(self) -> bool:
        return bool(self.records)


__all__ = ["ODataRecord", "ODataResponse", "ListResult"]

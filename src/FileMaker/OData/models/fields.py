# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Field declarations for FileMaker tables.

A :class:`FieldDeclaration` describes one field: its semantic type,
nullability, key and read-only flags, optional ``FMFID`` wire identifier and
optional read/write transforms. Declarations are immutable; the fluent
modifiers return new instances::

    from FileMaker.OData.models.fields import text_field, number_field, timestamp_field

    fields = {
        "id": text_field().primary_key(),
        "name": text_field().not_null(),
        "age": number_field(),
        "created": timestamp_field().read_only(),
    }
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Union

from ..common.constants import FIELD_ID_PREFIX, LIST_FIELD_SEPARATOR

Transform = Callable[[Any], Any]


class FieldType(str, Enum):
    """Semantic type of a FileMaker field."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    CONTAINER = "container"
    CALCULATED = "calculated"

    @property
    def is_temporal(self) -> bool:
        return self in (FieldType.DATE, FieldType.TIME, FieldType.TIMESTAMP)


@dataclass(frozen=True)
class FieldDeclaration:
    """
    Declaration of a single table field.

    :param field_type: Semantic type of the field.
    :type field_type: ~FileMaker.OData.models.fields.FieldType
    :param nullable: Whether the field may hold ``null``.
    :type nullable: bool
    :param is_primary_key: Whether the field is the table's primary key. Implies read-only.
    :type is_primary_key: bool
    :param is_read_only: Whether writes to the field are rejected.
    :type is_read_only: bool
    :param entity_id: Stable ``FMFID:`` identifier used on the wire when entity ids are enabled.
    :type entity_id: str or None
    :param read_transform: Applied to validated values read from the service.
    :type read_transform: callable or None
    :param write_transform: Applied to validated values before they are sent.
    :type write_transform: callable or None
    :param comment: Free-form description.
    :type comment: str or None
    """

    field_type: FieldType
    nullable: bool = True
    is_primary_key: bool = False
    is_read_only: bool = False
    entity_id: Optional[str] = None
    read_transform: Optional[Transform] = None
    write_transform: Optional[Transform] = None
    comment: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.field_type, FieldType):
            object.__setattr__(self, "field_type", FieldType(self.field_type))
        if self.is_primary_key or self.field_type is FieldType.CALCULATED:
            object.__setattr__(self, "is_read_only", True)
        if self.entity_id is not None and not self.entity_id.startswith(FIELD_ID_PREFIX):
            raise ValueError(f"Field entity id must start with {FIELD_ID_PREFIX!r}, got {self.entity_id!r}")

    def not_null(self) -> "FieldDeclaration":
        return replace(self, nullable=False)

    def primary_key(self) -> "FieldDeclaration":
        """Mark as primary key. Primary keys are not-null and read-only."""
        return replace(self, is_primary_key=True, nullable=False, is_read_only=True)

    def read_only(self) -> "FieldDeclaration":
        return replace(self, is_read_only=True)

    def with_entity_id(self, entity_id: str) -> "FieldDeclaration":
        return replace(self, entity_id=entity_id)

    def with_comment(self, comment: str) -> "FieldDeclaration":
        return replace(self, comment=comment)

    def transform_read(self, fn: Transform) -> "FieldDeclaration":
        """Return a copy whose values pass through ``fn`` after being read and validated."""
        return replace(self, read_transform=fn)

    def transform_write(self, fn: Transform) -> "FieldDeclaration":
        """Return a copy whose values pass through ``fn`` before being written."""
        return replace(self, write_transform=fn)

    @property
    def is_container(self) -> bool:
        return self.field_type is FieldType.CONTAINER

    def wire_type(self) -> Any:
        """Python type of the field's value as it appears in JSON."""
        if self.field_type is FieldType.NUMBER:
            return Union[int, float]
        if self.field_type is FieldType.CALCULATED:
            return Any
        return str

    def input_type(self) -> Any:
        """Python type accepted on write, before serialisation."""
        if self.write_transform is not None:
            return Any
        if self.field_type is FieldType.DATE:
            return Union[_dt.date, str]
        if self.field_type is FieldType.TIME:
            return Union[_dt.time, str]
        if self.field_type is FieldType.TIMESTAMP:
            return Union[_dt.datetime, str]
        return self.wire_type()


def text_field() -> FieldDeclaration:
    return FieldDeclaration(FieldType.TEXT)


def number_field() -> FieldDeclaration:
    return FieldDeclaration(FieldType.NUMBER)


def date_field() -> FieldDeclaration:
    return FieldDeclaration(FieldType.DATE)


def time_field() -> FieldDeclaration:
    return FieldDeclaration(FieldType.TIME)


def timestamp_field() -> FieldDeclaration:
    return FieldDeclaration(FieldType.TIMESTAMP)


def container_field() -> FieldDeclaration:
    """Container field. Containers cannot be named in ``$select``."""
    return FieldDeclaration(FieldType.CONTAINER)


def calc_field() -> FieldDeclaration:
    """Calculation field. Always read-only."""
    return FieldDeclaration(FieldType.CALCULATED)


def list_field(separator: str = LIST_FIELD_SEPARATOR, item: Optional[Callable[[str], Any]] = None) -> FieldDeclaration:
    """
    Text field holding a value list, one item per line.

    FileMaker stores return-delimited lists in text fields. Reads split the
    stored text into a list (empty or ``null`` becomes ``[]``); writes join the
    items back with ``separator``.

    :param separator: Item separator. Defaults to a carriage return.
    :type separator: str
    :param item: Optional converter applied to each item on read.
    :type item: callable or None

    Example::

        tags = list_field()
        # "red\\rgreen" <-> ["red", "green"]
    """

    def _split(value: Any) -> List[Any]:
        if value is None or value == "":
            return []
        parts = str(value).split(separator)
        return [item(p) for p in parts] if item else parts

    def _join(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return separator.join(str(v) for v in value)

    return FieldDeclaration(FieldType.TEXT, read_transform=_split, write_transform=_join)


__all__ = [
    "FieldType",
    "FieldDeclaration",
    "text_field",
    "number_field",
    "date_field",
    "time_field",
    "timestamp_field",
    "container_field",
    "calc_field",
    "list_field",
]

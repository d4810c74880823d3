# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Schema mutation through the ``FileMaker_Tables`` and ``FileMaker_Indexes`` system tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union, TYPE_CHECKING

from ..models.fields import FieldDeclaration, FieldType
from ..models.table import TableDeclaration

if TYPE_CHECKING:
    from ..data._odata import _ODataAdapter

_DECLARED_TYPES = {
    FieldType.TEXT: "string",
    FieldType.NUMBER: "numeric",
    FieldType.DATE: "date",
    FieldType.TIME: "time",
    FieldType.TIMESTAMP: "timestamp",
    FieldType.CONTAINER: "container",
}


@dataclass
class FieldDefinition:
    """
    Field definition for schema changes.

    :param name: Field name.
    :type name: str
    :param type: ``"string"``, ``"numeric"``, ``"date"``, ``"time"``,
        ``"timestamp"`` or ``"container"``; any other value is sent verbatim
        (e.g. ``"INT"``, ``"VARCHAR(20)"``).
    :type type: str
    :param max_length: Maximum length of a string field.
    :type max_length: int or None
    :param repetitions: Number of repetitions.
    :type repetitions: int or None
    :param default: Server-side default, e.g. ``"CURRENT_TIMESTAMP"`` or ``"USER"``.
    :type default: str or None
    :param external_secure_path: Storage path for container fields.
    :type external_secure_path: str or None
    """

    name: str
    type: str
    nullable: Optional[bool] = None
    primary: Optional[bool] = None
    unique: Optional[bool] = None
    global_: Optional[bool] = None
    repetitions: Optional[int] = None
    max_length: Optional[int] = None
    default: Optional[str] = None
    external_secure_path: Optional[str] = None

    @classmethod
    def from_declaration(cls, name: str, declaration: FieldDeclaration, **extra: Any) -> "FieldDefinition":
        """
        Derive a definition from a declared field.

        :raises ValueError: For calculated fields, which cannot be created through OData.
        """
        field_type = _DECLARED_TYPES.get(declaration.field_type)
        if field_type is None:
            raise ValueError(f"Field {name!r} of type {declaration.field_type.value!r} cannot be created")
        return cls(
            name=name,
            type=field_type,
            nullable=declaration.nullable,
            primary=True if declaration.is_primary_key else None,
            **extra,
        )

    def to_wire(self) -> Dict[str, Any]:
        field_type = self.type
        if field_type == "string":
            field_type = "varchar"
            if self.max_length is not None:
                field_type += f"({self.max_length})"
        if self.repetitions is not None:
            field_type += f"[{self.repetitions}]"

        body: Dict[str, Any] = {"name": self.name, "type": field_type}
        optional = (
            ("nullable", self.nullable),
            ("primary", self.primary),
            ("unique", self.unique),
            ("global", self.global_),
            ("default", self.default),
            ("externalSecurePath", self.external_secure_path),
        )
        for key, value in optional:
            if value is not None:
                body[key] = value
        return body


FieldSpec = Union[FieldDefinition, Mapping[str, Any]]
FieldsArg = Union[Sequence[FieldSpec], Mapping[str, FieldDeclaration]]


def _compile(fields: FieldsArg) -> List[Dict[str, Any]]:
    if isinstance(fields, Mapping):
        return [FieldDefinition.from_declaration(n, d).to_wire() for n, d in fields.items()]
    compiled = []
    for item in fields:
        if isinstance(item, FieldDefinition):
            compiled.append(item.to_wire())
        else:
            compiled.append(dict(item))
    return compiled


def _table_name(table: Union[TableDeclaration, str]) -> str:
    return table.name if isinstance(table, TableDeclaration) else table


class SchemaOperations:
    """
    Table and field creation and removal. Accessed via ``db.schema``.

    Example::

        db.schema.create_table("tasks", [
            FieldDefinition("id", "string", primary=True, nullable=False),
            FieldDefinition("title", "string", max_length=200),
            FieldDefinition("due", "date"),
        ])
        db.schema.add_fields("tasks", [FieldDefinition("done", "numeric")])
        db.schema.drop_field("tasks", "due")
        db.schema.drop_table("tasks")

        # Or from a declaration; calculated fields are skipped
        db.schema.create_table(tasks)
    """

    def __init__(self, adapter: "_ODataAdapter", *, request_options: Optional[Dict[str, Any]] = None) -> None:
        self._adapter = adapter
        self._options = dict(request_options or {})

    def create_table(self, name: Union[TableDeclaration, str], fields: Optional[FieldsArg] = None) -> Any:
        """
        Create a table.

        :param name: Table name, or a declaration whose non-calculated fields are created.
        :type name: str or ~FileMaker.OData.models.table.TableDeclaration
        :param fields: Field definitions, raw field dicts, or declarations keyed by name.
        :return: The table definition echoed by the service.
        :raises ValueError: If no fields are given.
        """
        if isinstance(name, TableDeclaration) and fields is None:
            fields = {n: d for n, d in name.fields.items() if d.field_type is not FieldType.CALCULATED}
        if not fields:
            raise ValueError("create_table requires at least one field")
        return self._adapter.create_table(_table_name(name), _compile(fields), **self._options)

    def add_fields(self, table: Union[TableDeclaration, str], fields: FieldsArg) -> Any:
        if not fields:
            raise ValueError("add_fields requires at least one field")
        return self._adapter.add_fields(_table_name(table), _compile(fields), **self._options)

    def drop_table(self, table: Union[TableDeclaration, str]) -> None:
        self._adapter.delete_table(_table_name(table), **self._options)

    def drop_field(self, table: Union[TableDeclaration, str], field: str) -> None:
        self._adapter.delete_field(_table_name(table), field, **self._options)

    def create_index(self, table: Union[TableDeclaration, str], field: str) -> Any:
        """Index ``field``. Returns ``{"indexName": ...}`` as reported by the service."""
        return self._adapter.create_index(_table_name(table), field, **self._options)

    def drop_index(self, table: Union[TableDeclaration, str], field: str) -> None:
        self._adapter.delete_index(_table_name(table), field, **self._options)


__all__ = ["FieldDefinition", "SchemaOperations"]

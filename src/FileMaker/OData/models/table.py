# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Table declarations.

:class:`TableDeclaration` assembles field declarations into a named table and
derives from them:

- typed :class:`~FileMaker.OData.models.column.ColumnHandle` objects, reachable as
  ``table.c.name`` or ``table["name"]``;
- a read schema and a write schema (pydantic models) used to validate
  responses and inputs;
- metadata for the primary key, ``FMFID``/``FMTID`` wire ids and navigable relations.

Example::

    from FileMaker.OData import fm_table, text_field, number_field

    contacts = fm_table(
        "contacts",
        {
            "id": text_field().primary_key(),
            "name": text_field().not_null(),
            "age": number_field(),
        },
        navigation=["invoices"],
    )

    contacts.c.name          # ColumnHandle
    contacts.primary_key     # "id"
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from ..common.constants import TABLE_ID_PREFIX
from ..core import _error_codes as ec
from ..core.errors import ValidationError
from ._format import format_temporal
from .column import ColumnHandle
from .fields import FieldDeclaration, FieldType

DefaultSelect = Union[str, Callable[["_ColumnNamespace"], Any]]

_DEFAULT_SELECT_POLICIES = ("all", "schema")


class _ColumnNamespace:
    """Attribute access to a table's column handles (``table.c.name``)."""

    __slots__ = ("_columns",)

    def __init__(self, columns: Mapping[str, ColumnHandle]) -> None:
        object.__setattr__(self, "_columns", columns)

    def __getattr__(self, name: str) -> ColumnHandle:
        if name.startswith("__") or name == "_columns":
            raise AttributeError(name)
        try:
            return self._columns[name]
        except KeyError:
            raise AttributeError(f"No column named {name!r}") from None

    def __getitem__(self, name: str) -> ColumnHandle:
        return self._columns[name]

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("columns are read-only")

    def __iter__(self) -> Iterator[ColumnHandle]:
        return iter(self._columns.values())

    def __dir__(self) -> List[str]:
        return list(self._columns)


@dataclass(frozen=True)
class _TableMetadata:
    """Internal accessors kept alongside, not inside, the public column map."""

    primary_key: Optional[str]
    container_fields: Tuple[str, ...]
    read_only_fields: Tuple[str, ...]
    id_to_name: Mapping[str, str]
    name_to_id: Mapping[str, str]
    navigable_relations: FrozenSet[str]


@dataclass
class _Schema:
    """A derived pydantic model plus the mapping from wire key to model attribute."""

    model: Type[BaseModel]
    attrs: Dict[str, str] = field(default_factory=dict)


class TableDeclaration:
    """
    Named table description built from field declarations.

    :param name: Table occurrence name as exposed by the OData service.
    :type name: str
    :param fields: Field declarations keyed by name, or a sequence of ``(name, declaration)`` pairs.
    :type fields: dict or list[tuple[str, FieldDeclaration]]
    :param entity_id: ``FMTID:`` identifier of the table.
    :type entity_id: str or None
    :param navigation: Names of relations reachable by ``expand`` and ``navigate``.
        They are checked when used, not here.
    :type navigation: Iterable[str]
    :param default_select: ``"schema"`` (select declared, non-container fields),
        ``"all"`` (no ``$select``) or a callable receiving ``table.c`` and returning
        a list of columns or a mapping of output name to column.
    :type default_select: str or callable

    :raises ~FileMaker.OData.core.errors.ValidationError: On duplicate field names or
        entity ids, more than one primary key, or a nullable primary key.
    :raises ValueError: On an empty name, a malformed entity id or an unknown default select policy.
    """

    def __init__(
        self,
        name: str,
        fields: Union[Mapping[str, FieldDeclaration], Sequence[Tuple[str, FieldDeclaration]]],
        *,
        entity_id: Optional[str] = None,
        navigation: Iterable[str] = (),
        default_select: DefaultSelect = "schema",
    ) -> None:
        if not name or not str(name).strip():
            raise ValueError("Table name is required.")
        if entity_id is not None and not entity_id.startswith(TABLE_ID_PREFIX):
            raise ValueError(f"Table entity id must start with {TABLE_ID_PREFIX!r}, got {entity_id!r}")
        if not callable(default_select) and default_select not in _DEFAULT_SELECT_POLICIES:
            raise ValueError(f"default_select must be 'all', 'schema' or a callable, got {default_select!r}")

        items = list(fields.items()) if isinstance(fields, Mapping) else list(fields)
        declared: Dict[str, FieldDeclaration] = {}
        primary_keys: List[str] = []
        name_to_id: Dict[str, str] = {}
        for field_name, decl in items:
            if field_name in declared:
                raise ValidationError(
                    f"Duplicate field name {field_name!r} in table {name!r}",
                    subcode=ec.VALIDATION_DUPLICATE_FIELD,
                    field=field_name,
                )
            if decl.is_primary_key and decl.nullable:
                raise ValidationError(
                    f"Primary key field {field_name!r} cannot be nullable",
                    subcode=ec.VALIDATION_NULLABLE_PRIMARY_KEY,
                    field=field_name,
                )
            if decl.is_primary_key:
                primary_keys.append(field_name)
            if decl.entity_id is not None:
                if decl.entity_id in name_to_id.values():
                    raise ValidationError(
                        f"Duplicate entity id {decl.entity_id!r} in table {name!r}",
                        subcode=ec.VALIDATION_DUPLICATE_ENTITY_ID,
                        field=field_name,
                    )
                name_to_id[field_name] = decl.entity_id
            declared[field_name] = decl
        if len(primary_keys) > 1:
            raise ValidationError(
                f"Table {name!r} declares more than one primary key: {', '.join(primary_keys)}",
                subcode=ec.VALIDATION_MULTIPLE_PRIMARY_KEYS,
            )

        self._name = name
        self._entity_id = entity_id
        self._default_select = default_select
        self._fields = declared
        self._columns = {
            field_name: ColumnHandle(
                field_name=field_name,
                field_type=decl.field_type,
                table_name=name,
                entity_id=decl.entity_id,
                table_entity_id=entity_id,
                declaration=decl,
            )
            for field_name, decl in declared.items()
        }
        self.c = _ColumnNamespace(MappingProxyType(self._columns))
        self._meta = _TableMetadata(
            primary_key=primary_keys[0] if primary_keys else None,
            container_fields=tuple(n for n, d in declared.items() if d.is_container),
            read_only_fields=tuple(n for n, d in declared.items() if d.is_read_only),
            id_to_name=MappingProxyType({v: k for k, v in name_to_id.items()}),
            name_to_id=MappingProxyType(name_to_id),
            navigable_relations=frozenset(navigation),
        )
        self._read_schemas: Dict[FrozenSet[str], _Schema] = {}
        self._write_schemas: Dict[bool, _Schema] = {}

    # ------------------------------------------------------------ accessors

    @property
    def name(self) -> str:
        return self._name

    @property
    def entity_id(self) -> Optional[str]:
        return self._entity_id

    @property
    def fields(self) -> Mapping[str, FieldDeclaration]:
        return MappingProxyType(self._fields)

    @property
    def columns(self) -> Mapping[str, ColumnHandle]:
        return MappingProxyType(self._columns)

    @property
    def primary_key(self) -> Optional[str]:
        return self._meta.primary_key

    @property
    def container_fields(self) -> Tuple[str, ...]:
        return self._meta.container_fields

    @property
    def navigable_relations(self) -> FrozenSet[str]:
        return self._meta.navigable_relations

    @property
    def default_select(self) -> DefaultSelect:
        return self._default_select

    @property
    def has_entity_ids(self) -> bool:
        """True when the table and at least one field declare wire ids."""
        return self._entity_id is not None and bool(self._meta.name_to_id)

    def __getitem__(self, name: str) -> ColumnHandle:
        return self._columns[name]

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __repr__(self) -> str:
        return f"TableDeclaration({self._name!r}, fields={list(self._fields)!r})"

    def column(self, name: str) -> ColumnHandle:
        """
        Return the handle for ``name``.

        :raises ~FileMaker.OData.core.errors.ValidationError: If the field is not declared.
        """
        try:
            return self._columns[name]
        except KeyError:
            raise ValidationError(
                f"Table {self._name!r} has no field {name!r}",
                subcode=ec.VALIDATION_UNKNOWN_COLUMN,
                field=name,
            ) from None

    def owns(self, column: ColumnHandle) -> bool:
        return column.table_name == self._name and self._columns.get(column.field_name) == column

    # ------------------------------------------------------------ wire names

    def wire_name(self, use_entity_ids: bool = False) -> str:
        if use_entity_ids and self._entity_id:
            return self._entity_id
        return self._name

    def field_identifier(self, name: str, use_entity_ids: bool = False) -> str:
        if use_entity_ids:
            return self._meta.name_to_id.get(name, name)
        return name

    def field_name_for(self, identifier: str) -> str:
        """Map an ``FMFID`` back to its field name. Other keys are returned unchanged."""
        return self._meta.id_to_name.get(identifier, identifier)

    def keys_to_ids(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return {self._meta.name_to_id.get(k, k): v for k, v in data.items()}

    def keys_to_names(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return {k if k.startswith("@") else self.field_name_for(k): v for k, v in data.items()}

    # ------------------------------------------------------------ selection

    def default_select_fields(self) -> Optional[Dict[str, str]]:
        """
        Fields selected when a query names none, as ``{output_name: field_name}``.

        Returns ``None`` for the ``"all"`` policy. Container fields are always dropped.
        """
        policy = self._default_select
        if policy == "all":
            return None
        if policy == "schema":
            return {n: n for n in self._fields if n not in self._meta.container_fields}

        chosen = policy(self.c)
        if isinstance(chosen, Mapping):
            pairs = [(out, col.field_name) for out, col in chosen.items()]
        else:
            pairs = [(col.field_name, col.field_name) for col in chosen]
        selection = {out: name for out, name in pairs if name not in self._meta.container_fields}
        return selection or None

    # ------------------------------------------------------------ validation

    def read_schema(self, selected: Optional[Iterable[str]] = None) -> Type[BaseModel]:
        """Pydantic model validating the given fields (all non-container fields by default)."""
        return self._read_schema(selected).model

    def write_schema(self, *, partial: bool = False) -> Type[BaseModel]:
        """Pydantic model for inserts (``partial=False``) or updates (``partial=True``)."""
        return self._write_schema(partial).model

    def validate_record(self, record: Mapping[str, Any], selected: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """
        Validate one record read from the service and apply read transforms.

        Only ``selected`` fields (or every non-container field) are checked;
        keys that are not declared fields pass through untouched. Every issue is
        collected before raising.

        :raises ~FileMaker.OData.core.errors.ValidationError: With all field issues in ``details``.
        """
        schema = self._read_schema(selected)
        try:
            model = schema.model.model_validate(dict(record))
        except PydanticValidationError as e:
            raise _aggregate(f"Record from {self._name!r} failed validation", e, ec.VALIDATION_RECORD_SCHEMA) from e

        out: Dict[str, Any] = {}
        for key, raw in record.items():
            attr = schema.attrs.get(key)
            value = getattr(model, attr) if attr else raw
            decl = self._fields.get(key)
            if attr and decl is not None and decl.read_transform is not None:
                value = decl.read_transform(value)
            out[key] = value
        for key, attr in schema.attrs.items():
            # Nullable fields absent from the response still appear as None.
            if key not in out:
                decl = self._fields[key]
                value = getattr(model, attr)
                out[key] = decl.read_transform(value) if decl.read_transform is not None else value
        return out

    def validate_input(self, data: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
        """
        Validate caller data for an insert or update and prepare it for the wire.

        Read-only and undeclared keys are rejected; on insert every not-null
        writable field is required. Write transforms run after validation and
        temporal values are serialised to ISO strings.

        :raises ~FileMaker.OData.core.errors.ValidationError: With all field issues in ``details``.
        """
        issues: List[Dict[str, Any]] = []
        for key in data:
            decl = self._fields.get(key)
            if decl is not None and decl.is_read_only:
                issues.append({"field": key, "message": "Field is read-only", "type": "read_only"})

        writable = {k: v for k, v in data.items() if not (k in self._fields and self._fields[k].is_read_only)}
        schema = self._write_schema(partial)
        model = None
        try:
            model = schema.model.model_validate(writable)
        except PydanticValidationError as e:
            issues.extend(_issues(e))
        if issues:
            raise ValidationError(
                f"Input for {self._name!r} failed validation",
                subcode=ec.VALIDATION_INPUT_SCHEMA,
                field=issues[0]["field"] if len(issues) == 1 else None,
                details=issues,
                value=dict(data),
            )

        out: Dict[str, Any] = {}
        for key in writable:
            decl = self._fields[key]
            value = getattr(model, schema.attrs[key])
            if decl.write_transform is not None:
                value = decl.write_transform(value)
            if decl.field_type.is_temporal and isinstance(value, (_dt.date, _dt.time)):
                value = format_temporal(value, decl.field_type.value)
            out[key] = value
        return out

    def _read_schema(self, selected: Optional[Iterable[str]]) -> _Schema:
        if selected is None:
            names = [n for n in self._fields if n not in self._meta.container_fields]
        else:
            names = [n for n in selected if n in self._fields]
        cache_key = frozenset(names)
        schema = self._read_schemas.get(cache_key)
        if schema is None:
            specs = []
            for n in names:
                decl = self._fields[n]
                wire = decl.wire_type()
                if decl.nullable:
                    specs.append((n, Optional[wire], None))
                else:
                    specs.append((n, wire, ...))
            schema = _build_schema(f"{_model_name(self._name)}Record", specs, extra="allow")
            self._read_schemas[cache_key] = schema
        return schema

    def _write_schema(self, partial: bool) -> _Schema:
        schema = self._write_schemas.get(partial)
        if schema is None:
            specs = []
            for n, decl in self._fields.items():
                if decl.is_read_only:
                    continue
                annotation = decl.input_type()
                if decl.nullable:
                    specs.append((n, Optional[annotation], None))
                elif partial:
                    specs.append((n, annotation, None))
                else:
                    specs.append((n, annotation, ...))
            suffix = "Update" if partial else "Insert"
            schema = _build_schema(f"{_model_name(self._name)}{suffix}", specs, extra="forbid")
            self._write_schemas[partial] = schema
        return schema


def fm_table(
    name: str,
    fields: Union[Mapping[str, FieldDeclaration], Sequence[Tuple[str, FieldDeclaration]]],
    *,
    entity_id: Optional[str] = None,
    navigation: Iterable[str] = (),
    default_select: DefaultSelect = "schema",
) -> TableDeclaration:
    """Declare a table. See :class:`TableDeclaration`."""
    return TableDeclaration(
        name,
        fields,
        entity_id=entity_id,
        navigation=navigation,
        default_select=default_select,
    )


def _model_name(table_name: str) -> str:
    cleaned = "".join(ch if ch.isalnum() else "_" for ch in table_name)
    return cleaned[:1].upper() + cleaned[1:]


def _build_schema(model_name: str, specs: List[Tuple[str, Any, Any]], *, extra: str) -> _Schema:
    # Field names may contain spaces, so each is stored under a synthetic
    # attribute with the real name as alias.
    definitions: Dict[str, Any] = {}
    attrs: Dict[str, str] = {}
    for i, (field_name, annotation, default) in enumerate(specs):
        attr = f"f{i}"
        definitions[attr] = (annotation, Field(default, alias=field_name))
        attrs[field_name] = attr
    model = create_model(
        model_name,
        __config__=ConfigDict(extra=extra, arbitrary_types_allowed=True),
        **definitions,
    )
    return _Schema(model=model, attrs=attrs)


def _issues(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    issues = []
    for err in exc.errors():
        loc = err.get("loc") or ()
        issues.append(
            {
                "field": str(loc[0]) if loc else None,
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
        )
    return issues


def _aggregate(message: str, exc: PydanticValidationError, subcode: str) -> ValidationError:
    issues = _issues(exc)
    return ValidationError(
        message,
        subcode=subcode,
        field=issues[0]["field"] if len(issues) == 1 else None,
        details=issues,
    )


__all__ = ["TableDeclaration", "fm_table"]

# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Typed references to declared fields."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from ._format import quote_identifier
from .fields import FieldType

if TYPE_CHECKING:
    from .fields import FieldDeclaration


@dataclass(frozen=True)
class ColumnHandle:
    """
    Reference to one field of one declared table.

    Handles are created by :class:`~FileMaker.OData.models.table.TableDeclaration`
    and are used wherever a field is named: ``select``, filter operators and
    ``order_by``.

    :param field_name: Declared field name.
    :type field_name: str
    :param field_type: Semantic field type.
    :type field_type: ~FileMaker.OData.models.fields.FieldType
    :param table_name: Name of the owning table.
    :type table_name: str
    :param entity_id: ``FMFID`` of the field, if declared.
    :type entity_id: str or None
    :param table_entity_id: ``FMTID`` of the owning table, if declared.
    :type table_entity_id: str or None
    """

    field_name: str
    field_type: FieldType
    table_name: str
    entity_id: Optional[str] = None
    table_entity_id: Optional[str] = None
    declaration: Optional["FieldDeclaration"] = field(default=None, compare=False, repr=False)

    def identifier(self, use_entity_ids: bool = False) -> str:
        """Wire identifier: the ``FMFID`` when entity ids are in use and declared, else the name."""
        if use_entity_ids and self.entity_id:
            return self.entity_id
        return self.field_name

    def render(self, use_entity_ids: bool = False) -> str:
        """Identifier as it appears in a filter or order-by clause, quoted if required."""
        return quote_identifier(self.identifier(use_entity_ids))

    @property
    def is_container(self) -> bool:
        return self.field_type is FieldType.CONTAINER

    def __str__(self) -> str:
        return f"{self.table_name}.{self.field_name}"

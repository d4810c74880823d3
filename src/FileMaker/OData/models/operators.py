# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Filter and sort expression builders.

Pure functions that build immutable :class:`FilterExpression` trees and
:class:`OrderByExpression` values from column handles; rendering happens in
the query builder. No I/O.

Example::

    from FileMaker.OData.models.operators import and_, eq, gt, in_list, desc

    expr = and_(eq(contacts.c.city, "Oslo"), gt(contacts.c.age, 30))
    expr.render()                   # "city eq 'Oslo' and age gt 30"

    in_list(contacts.c.status, ["x", "y"]).render()
    # "(status eq 'x' or status eq 'y')"

    # Operator sugar
    expr = (eq(contacts.c.city, "Oslo") | eq(contacts.c.city, "Bergen")) & ~is_null(contacts.c.name)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple, Union

from ..core import _error_codes as ec
from ..core.errors import ValidationError
from ._format import format_literal, format_temporal, quote_identifier
from .column import ColumnHandle


@dataclass(frozen=True)
class ColumnFunction:
    """
    String function applied to a column, e.g. ``tolower(name)``.

    Usable wherever a column is accepted on the left of a comparison and in ``order_by``.
    """

    name: str
    column: ColumnHandle

    def render(self, use_entity_ids: bool = False) -> str:
        return f"{self.name}({self.column.render(use_entity_ids)})"

    @property
    def field_type(self):
        return self.column.field_type

    @property
    def declaration(self):
        return self.column.declaration


Operand = Union[ColumnHandle, ColumnFunction]

_COMPARISONS = {"eq": "eq", "ne": "ne", "gt": "gt", "gte": "ge", "lt": "lt", "lte": "le"}
_FUNCTIONS = {
    "contains": "contains",
    "startswith": "startswith",
    "endswith": "endswith",
    "matches_pattern": "matchesPattern",
}
_LOGICAL = ("and", "or")


def _is_column(value: Any) -> bool:
    return isinstance(value, (ColumnHandle, ColumnFunction))


def _render_operand(operand: Any, use_entity_ids: bool, column: Optional[Operand] = None) -> str:
    if _is_column(operand):
        return operand.render(use_entity_ids)

    value = operand
    decl = column.declaration if column is not None else None
    if decl is not None and decl.write_transform is not None and value is not None:
        value = decl.write_transform(value)

    field_type = column.field_type if column is not None else None
    if field_type is not None and field_type.is_temporal:
        # Temporal literals are never quoted.
        if value is None:
            return "null"
        return format_temporal(value, field_type.value)
    return format_literal(value)


@dataclass(frozen=True)
class FilterExpression:
    """
    Node of a filter tree.

    Leaves hold ``(column, value)`` or ``(column, column)`` operands for a
    comparison or string function; internal nodes hold child expressions for
    ``and``, ``or`` and ``not``.
    """

    operator: str
    operands: Tuple[Any, ...]

    def render(self, use_entity_ids: bool = False) -> str:
        """Render as an OData ``$filter`` expression."""
        op = self.operator
        if op in _COMPARISONS:
            return self._binary(_COMPARISONS[op], use_entity_ids)
        if op in _FUNCTIONS:
            column, value = self.operands
            column_for_value = column if _is_column(column) else None
            return (
                f"{_FUNCTIONS[op]}({_render_operand(column, use_entity_ids)}, "
                f"{_render_operand(value, use_entity_ids, column_for_value)})"
            )
        if op in ("in", "not_in"):
            return self._membership(op, use_entity_ids)
        if op == "is_null":
            return f"{_render_operand(self.operands[0], use_entity_ids)} eq null"
        if op == "is_not_null":
            return f"{_render_operand(self.operands[0], use_entity_ids)} ne null"
        if op in _LOGICAL:
            return self._logical(op, use_entity_ids)
        if op == "not":
            return f"not ({self.operands[0].render(use_entity_ids)})"
        raise ValueError(f"Unknown operator: {op}")

    def _binary(self, op: str, use_entity_ids: bool) -> str:
        left, right = self.operands
        if _is_column(left) and not _is_column(right):
            column_for_value = left
        elif _is_column(right) and not _is_column(left):
            column_for_value = right
        else:
            column_for_value = None
        return (
            f"{_render_operand(left, use_entity_ids, column_for_value)} {op} "
            f"{_render_operand(right, use_entity_ids, column_for_value)}"
        )

    def _membership(self, op: str, use_entity_ids: bool) -> str:
        column, values = self.operands
        target = _render_operand(column, use_entity_ids)
        if op == "in":
            clauses = [f"{target} eq {_render_operand(v, use_entity_ids, column)}" for v in values]
            return "(" + " or ".join(clauses) + ")"
        clauses = [f"{target} ne {_render_operand(v, use_entity_ids, column)}" for v in values]
        return "(" + " and ".join(clauses) + ")"

    def _logical(self, op: str, use_entity_ids: bool) -> str:
        parts = []
        for child in self.operands:
            text = child.render(use_entity_ids)
            if child.operator in _LOGICAL:
                text = f"({text})"
            parts.append(text)
        return f" {op} ".join(parts)

    def __and__(self, other: "FilterExpression") -> "FilterExpression":
        return and_(self, other)

    def __or__(self, other: "FilterExpression") -> "FilterExpression":
        return or_(self, other)

    def __invert__(self) -> "FilterExpression":
        return not_(self)

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class OrderByExpression:
    """Sort key: a column (or column function, or plain name) and a direction."""

    column: Union[ColumnHandle, ColumnFunction, str]
    direction: str = "asc"

    def __post_init__(self) -> None:
        direction = self.direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"direction must be 'asc' or 'desc', got {self.direction!r}")
        object.__setattr__(self, "direction", direction)

    def render(self, use_entity_ids: bool = False) -> str:
        if isinstance(self.column, str):
            return f"{quote_identifier(self.column)} {self.direction}"
        return f"{self.column.render(use_entity_ids)} {self.direction}"


# ---------------------------------------------------------------- comparisons


def eq(column: Operand, value: Any) -> FilterExpression:
    """``column eq value``. ``value`` may be another column."""
    return FilterExpression("eq", (column, value))


def ne(column: Operand, value: Any) -> FilterExpression:
    return FilterExpression("ne", (column, value))


def gt(column: Operand, value: Any) -> FilterExpression:
    return FilterExpression("gt", (column, value))


def gte(column: Operand, value: Any) -> FilterExpression:
    """``column ge value``."""
    return FilterExpression("gte", (column, value))


def lt(column: Operand, value: Any) -> FilterExpression:
    return FilterExpression("lt", (column, value))


def lte(column: Operand, value: Any) -> FilterExpression:
    """``column le value``."""
    return FilterExpression("lte", (column, value))


# ---------------------------------------------------------------- strings


def contains(column: Operand, value: Any) -> FilterExpression:
    """``contains(column, value)``."""
    return FilterExpression("contains", (column, value))


def startswith(column: Operand, value: Any) -> FilterExpression:
    """``startswith(column, value)``."""
    return FilterExpression("startswith", (column, value))


def endswith(column: Operand, value: Any) -> FilterExpression:
    """``endswith(column, value)``."""
    return FilterExpression("endswith", (column, value))


def matches_pattern(column: Operand, pattern: str) -> FilterExpression:
    """``matchesPattern(column, pattern)``, a regular expression match."""
    return FilterExpression("matches_pattern", (column, pattern))


def tolower(column: ColumnHandle) -> ColumnFunction:
    return ColumnFunction("tolower", column)


def toupper(column: ColumnHandle) -> ColumnFunction:
    return ColumnFunction("toupper", column)


def trim(column: ColumnHandle) -> ColumnFunction:
    return ColumnFunction("trim", column)


# ---------------------------------------------------------------- membership and nulls


def in_list(column: Operand, values: Iterable[Any]) -> FilterExpression:
    """
    Match any of ``values``.

    Rendered as a parenthesized disjunction: ``(status eq 'x' or status eq 'y')``.

    :raises ~FileMaker.OData.core.errors.ValidationError: If ``values`` is empty.
    """
    items = tuple(values)
    if not items:
        raise ValidationError("in_list requires at least one value", subcode=ec.VALIDATION_EMPTY_EXPRESSION)
    return FilterExpression("in", (column, items))


def not_in_list(column: Operand, values: Iterable[Any]) -> FilterExpression:
    """
    Match none of ``values``.

    Rendered as a parenthesized conjunction: ``(status ne 'x' and status ne 'y')``.

    :raises ~FileMaker.OData.core.errors.ValidationError: If ``values`` is empty.
    """
    items = tuple(values)
    if not items:
        raise ValidationError("not_in_list requires at least one value", subcode=ec.VALIDATION_EMPTY_EXPRESSION)
    return FilterExpression("not_in", (column, items))


def is_null(column: Operand) -> FilterExpression:
    return FilterExpression("is_null", (column,))


def is_not_null(column: Operand) -> FilterExpression:
    return FilterExpression("is_not_null", (column,))


# ---------------------------------------------------------------- logical


def _logical(op: str, expressions: Tuple[Optional[FilterExpression], ...]) -> FilterExpression:
    children = tuple(e for e in expressions if e is not None)
    if not children:
        raise ValidationError(f"{op}_ requires at least one expression", subcode=ec.VALIDATION_EMPTY_EXPRESSION)
    for child in children:
        if not isinstance(child, FilterExpression):
            raise TypeError(f"{op}_ operands must be FilterExpression, got {type(child).__name__}")
    if len(children) == 1:
        return children[0]
    return FilterExpression(op, children)


def and_(*expressions: Optional[FilterExpression]) -> FilterExpression:
    """
    Conjunction. ``None`` entries are skipped so optional clauses can be passed inline.

    Nested ``and``/``or`` children are parenthesized; a single child is returned as is.
    """
    return _logical("and", expressions)


def or_(*expressions: Optional[FilterExpression]) -> FilterExpression:
    """Disjunction. Same conventions as :func:`and_`."""
    return _logical("or", expressions)


def not_(expression: FilterExpression) -> FilterExpression:
    """Negation, rendered as ``not (expr)``."""
    if not isinstance(expression, FilterExpression):
        raise TypeError("not_ requires a FilterExpression")
    return FilterExpression("not", (expression,))


# ---------------------------------------------------------------- ordering


def asc(column: Union[ColumnHandle, ColumnFunction, str]) -> OrderByExpression:
    return OrderByExpression(column, "asc")


def desc(column: Union[ColumnHandle, ColumnFunction, str]) -> OrderByExpression:
    return OrderByExpression(column, "desc")


__all__ = [
    "ColumnFunction",
    "FilterExpression",
    "OrderByExpression",
    "eq",
    "ne",
    "gt",
    "gte",
    "lt",
    "lte",
    "contains",
    "startswith",
    "endswith",
    "matches_pattern",
    "tolower",
    "toupper",
    "trim",
    "in_list",
    "not_in_list",
    "is_null",
    "is_not_null",
    "and_",
    "or_",
    "not_",
    "asc",
    "desc",
]

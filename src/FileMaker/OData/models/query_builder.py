# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Fluent query builder for constructing OData queries.

Accumulates select, filter, sort, paging and expand state for one declared
table and renders it into an OData query string. Builders obtained from an
entity set can also execute themselves; standalone builders only render.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING, Union

from ..common.constants import DEFAULT_TOP, SPECIAL_COLUMNS
from ..core import _error_codes as ec
from ..core.errors import ValidationError
from ._format import encode_url_value, format_key, quote_identifier
from .column import ColumnHandle
from .operators import ColumnFunction, FilterExpression, OrderByExpression, and_, or_
from .table import TableDeclaration

if TYPE_CHECKING:
    from ..core.results import ListResult, ODataRecord

ColumnRef = Union[ColumnHandle, str]
Relation = Union[TableDeclaration, str]


def _untyped_table(name: str) -> TableDeclaration:
    """Placeholder declaration for a relation named only by string. Records pass through unvalidated."""
    return TableDeclaration(name, {}, default_select="all")


@dataclass
class Expansion:
    """
    One ``$expand`` entry: a relation, its declared target (if any) and the
    nested builder configuring it (if any).
    """

    relation: str
    target: Optional[TableDeclaration] = None
    builder: Optional["QueryBuilder"] = None

    def wire_name(self, use_entity_ids: bool = False) -> str:
        if use_entity_ids and self.target is not None and self.target.entity_id:
            return self.target.entity_id
        return self.relation

    def selection(self) -> Optional[Dict[str, str]]:
        """Fields requested from the target as ``{output_name: field_name}``."""
        if self.builder is not None and self.builder._select:
            return dict(self.builder._select)
        if self.target is not None:
            return self.target.default_select_fields()
        return None

    @property
    def children(self) -> List["Expansion"]:
        return list(self.builder._expand) if self.builder is not None else []

    def render(self, use_entity_ids: bool = False) -> str:
        name = self.wire_name(use_entity_ids)
        parts: List[str] = []
        selection = self.selection()
        if selection:
            parts.append(f"$select={_render_select(selection.values(), self.target, use_entity_ids)}")
        if self.builder is not None:
            parts.extend(self.builder._option_parts())
        if not parts:
            return name
        return f"{name}({';'.join(parts)})"


def _render_select(names, table: Optional[TableDeclaration], use_entity_ids: bool) -> str:
    rendered = []
    for name in dict.fromkeys(names):
        ident = table.field_identifier(name, use_entity_ids) if table is not None else name
        rendered.append(quote_identifier(ident))
    return ",".join(rendered)


@dataclass
class QueryBuilder:
    """
    Fluent interface for building OData queries against a declared table.

    Every configuration method mutates the builder and returns it for chaining.
    A builder is single-use: :meth:`execute` (or :meth:`list_all`) may be
    called once.

    :param table: Declared table to query.
    :type table: ~FileMaker.OData.models.table.TableDeclaration
    :param use_entity_ids: Render ``FMFID``/``FMTID`` identifiers instead of names.
    :type use_entity_ids: bool
    :param default_top: ``$top`` applied in list mode when :meth:`top` was not called.
    :type default_top: int or None
    :param include_special_columns: Request and keep ``ROWID``/``ROWMODID``.
    :type include_special_columns: bool
    :param strict_relations: Raise instead of warning when expanding an
        undeclared relation.
    :type strict_relations: bool

    Example:
        Execute through an entity set::

            result = (db.from_(contacts).list()
                      .select(contacts.c.name, years=contacts.c.age)
                      .where(eq(contacts.c.city, "Oslo"), gt(contacts.c.age, 30))
                      .order_by(desc(contacts.c.age))
                      .top(10)
                      .execute())

        Render standalone::

            QueryBuilder(contacts).select("name").top(5).render()
            # "$select=name&$top=5"
    """

    table: TableDeclaration
    use_entity_ids: bool = False
    default_top: Optional[int] = None
    include_special_columns: bool = False
    strict_relations: bool = False
    _select: Dict[str, str] = field(default_factory=dict)
    _filter: Optional[FilterExpression] = None
    _orderby: List[OrderByExpression] = field(default_factory=list)
    _top: Optional[int] = None
    _skip: Optional[int] = None
    _count: bool = False
    _expand: List[Expansion] = field(default_factory=list)
    _mode: str = "list"
    _consumed: bool = False
    _executor: Any = field(default=None, compare=False, repr=False)

    # ------------------------------------------------------------ select

    def select(self, *columns: ColumnRef, **renamed: ColumnRef) -> "QueryBuilder":
        """
        Select fields to retrieve.

        Positional arguments are column handles or field names; keyword
        arguments select a field under a different output name. Names that
        are not declared are passed through untyped.

        :raises ~FileMaker.OData.core.errors.ValidationError: For container
            fields or columns of another table.

        Example::

            builder.select(contacts.c.name, "age", town=contacts.c.city)
            # records look like {"name": ..., "age": ..., "town": ...}
        """
        for column in columns:
            name = self._resolve_column(column)
            self._select[name] = name
        for out, column in renamed.items():
            self._select[out] = self._resolve_column(column)
        return self

    def _resolve_column(self, column: ColumnRef) -> str:
        if isinstance(column, ColumnHandle):
            if not self.table.owns(column):
                raise ValidationError(
                    f"Column {column} does not belong to table {self.table.name!r}",
                    subcode=ec.VALIDATION_FOREIGN_COLUMN,
                    field=column.field_name,
                )
            handle = column
        elif isinstance(column, str):
            handle = self.table.columns.get(column)
            if handle is None:
                return column
        else:
            raise TypeError(f"select() expects column handles or names, got {type(column).__name__}")
        if handle.is_container:
            raise ValidationError(
                f"Container field {handle.field_name!r} cannot be selected",
                subcode=ec.VALIDATION_CONTAINER_SELECT,
                field=handle.field_name,
            )
        return handle.field_name

    # ------------------------------------------------------------ filter and sort

    def where(self, *expressions: FilterExpression, connector: str = "and") -> "QueryBuilder":
        """
        Add filter expressions, joined with ``connector`` (``"and"`` or ``"or"``).

        Repeated calls are combined with ``and``.

        Example::

            builder.where(eq(t.c.city, "Oslo"), eq(t.c.city, "Bergen"), connector="or")
        """
        if connector == "and":
            combined = and_(*expressions)
        elif connector == "or":
            combined = or_(*expressions)
        else:
            raise ValueError(f"connector must be 'and' or 'or', got {connector!r}")
        self._filter = combined if self._filter is None else and_(self._filter, combined)
        return self

    filter = where

    def order_by(self, *expressions: Union[OrderByExpression, ColumnHandle, ColumnFunction, str]) -> "QueryBuilder":
        """
        Add sort keys. Columns and names without a direction sort ascending.

        A column declared on another table triggers a :class:`UserWarning`.

        Example::

            builder.order_by(desc(t.c.age), t.c.name)
            # $orderby=age desc,name asc
        """
        for expr in expressions:
            if isinstance(expr, OrderByExpression):
                order = expr
            elif isinstance(expr, (ColumnHandle, ColumnFunction, str)):
                order = OrderByExpression(expr)
            else:
                raise TypeError(f"order_by() expects sort expressions or columns, got {type(expr).__name__}")
            self._check_sort_column(order.column)
            self._orderby.append(order)
        return self

    def _check_sort_column(self, target: Any) -> None:
        column = target.column if isinstance(target, ColumnFunction) else target
        if not isinstance(column, ColumnHandle) or not self.table.fields or self.table.owns(column):
            return
        warnings.warn(
            f"Cannot order {self.table.name!r} by {column.table_name}.{column.field_name}: "
            f"the column belongs to another table",
            UserWarning,
            stacklevel=3,
        )

    # ------------------------------------------------------------ paging

    def top(self, n: int) -> "QueryBuilder":
        if n < 0:
            raise ValueError("top must be non-negative")
        self._top = n
        return self

    def skip(self, n: int) -> "QueryBuilder":
        if n < 0:
            raise ValueError("skip must be non-negative")
        self._skip = n
        return self

    def count(self) -> "QueryBuilder":
        """Request the total match count (``$count=true``), reported as ``ListResult.found_count``."""
        self._count = True
        return self

    # ------------------------------------------------------------ expand

    def expand(
        self,
        relation: Relation,
        configure: Optional[Callable[["QueryBuilder"], Any]] = None,
    ) -> "QueryBuilder":
        """
        Expand a related table inline.

        :param relation: Relation name or the declared target table.
        :type relation: str or ~FileMaker.OData.models.table.TableDeclaration
        :param configure: Receives a nested builder on the target to select,
            filter, sort, page or expand further.
        :type configure: callable or None
        :return: Self for method chaining.
        :rtype: QueryBuilder

        Example::

            builder.expand(invoices, lambda q: q.select(invoices.c.total).top(5))
            # $expand=invoices($select=total;$top=5)
        """
        if isinstance(relation, TableDeclaration):
            name, target = relation.name, relation
        else:
            name, target = str(relation), None
        self._check_relation(name)

        nested = None
        if configure is not None:
            nested = QueryBuilder(
                target if target is not None else _untyped_table(name),
                use_entity_ids=self.use_entity_ids,
                strict_relations=self.strict_relations,
            )
            result = configure(nested)
            if isinstance(result, QueryBuilder):
                nested = result
        self._expand.append(Expansion(name, target, nested))
        return self

    def _check_relation(self, relation: str) -> None:
        check_relation(self.table, relation, strict=self.strict_relations, action="expand to")

    # ------------------------------------------------------------ modes

    def single(self) -> "QueryBuilder":
        """Expect exactly one record. ``execute()`` returns it or raises ``CardinalityError``."""
        self._mode = "single"
        return self

    def maybe_single(self) -> "QueryBuilder":
        """Expect at most one record. ``execute()`` returns it, ``None``, or raises ``CardinalityError``."""
        self._mode = "maybe_single"
        return self

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def explicit_paging(self) -> bool:
        """True when the caller set ``top`` or ``skip``."""
        return self._top is not None or self._skip is not None

    # ------------------------------------------------------------ rendering

    def effective_selection(self) -> Optional[Dict[str, str]]:
        """
        Fields requested on the wire as ``{output_name: field_name}``.

        The explicit selection if any, otherwise the table's default select.
        ``None`` means no ``$select`` is sent.
        """
        if self._select:
            return dict(self._select)
        selection = self.table.default_select_fields()
        if selection is not None and self.include_special_columns and self.table.default_select == "schema":
            for name in SPECIAL_COLUMNS:
                selection[name] = name
        return selection

    def build(self, *, top: Any = ..., skip: Any = ..., count: Optional[bool] = None) -> Dict[str, str]:
        """
        Build the query options as an ordered dictionary.

        Keyword overrides replace the builder's own ``top``/``skip``/``count``
        without mutating it.

        :return: Option name to rendered value, in ``$select``, ``$filter``,
            ``$orderby``, ``$top``, ``$skip``, ``$count``, ``$expand`` order.
        :rtype: dict

        Example::

            QueryBuilder(contacts).select("name").top(10).build()
            # {'$select': 'name', '$top': '10'}
        """
        ids = self.use_entity_ids
        params: Dict[str, str] = {}
        selection = self.effective_selection()
        if selection:
            params["$select"] = _render_select(selection.values(), self.table, ids)
        if self._filter is not None:
            params["$filter"] = self._filter.render(ids)
        if self._orderby:
            params["$orderby"] = ",".join(o.render(ids) for o in self._orderby)

        top_value = self._top if top is ... else top
        if top is ... and top_value is None and self._mode == "list":
            top_value = self.default_top
        if top_value is not None:
            params["$top"] = str(top_value)
        skip_value = self._skip if skip is ... else skip
        if skip_value is not None:
            params["$skip"] = str(skip_value)
        count_value = self._count if count is None else count
        if count is None and self._mode == "list" and top is ... and skip is ... and not self.explicit_paging:
            # lets the executor notice a result truncated by the default page size
            count_value = True
        if count_value:
            params["$count"] = "true"
        if self._expand:
            params["$expand"] = ",".join(e.render(ids) for e in self._expand)
        return params

    def render(self, **overrides: Any) -> str:
        """Render the OData query string (without a leading ``?``). Option values are percent-encoded."""
        return "&".join(f"{k}={encode_url_value(v)}" for k, v in self.build(**overrides).items())

    to_query_string = render

    def _option_parts(self) -> List[str]:
        """Options of a nested expand, excluding ``$select`` which the expansion renders."""
        ids = self.use_entity_ids
        parts: List[str] = []
        if self._filter is not None:
            parts.append(f"$filter={self._filter.render(ids)}")
        if self._orderby:
            parts.append(f"$orderby={','.join(o.render(ids) for o in self._orderby)}")
        if self._top is not None:
            parts.append(f"$top={self._top}")
        if self._skip is not None:
            parts.append(f"$skip={self._skip}")
        if self._expand:
            parts.append(f"$expand={','.join(e.render(ids) for e in self._expand)}")
        return parts

    # ------------------------------------------------------------ execution

    def _consume(self) -> None:
        if self._consumed:
            raise ValidationError(
                "This query has already been executed; build a new one",
                subcode=ec.VALIDATION_BUILDER_CONSUMED,
            )
        self._consumed = True

    def _require_executor(self) -> Any:
        if self._executor is None:
            raise RuntimeError(
                "Cannot execute: query was not created from an entity set. "
                "Use render() to obtain the query string instead."
            )
        return self._executor

    def execute(self) -> Union["ListResult", "ODataRecord", None]:
        """
        Execute the query.

        :return: A :class:`~FileMaker.OData.core.results.ListResult` in list
            mode, a record in ``single`` mode, a record or ``None`` in
            ``maybe_single`` mode.
        :raises RuntimeError: If the builder was not created from an entity set.
        :raises ~FileMaker.OData.core.errors.ValidationError: If the builder was
            already executed, or a record fails validation.
        :raises ~FileMaker.OData.core.errors.CardinalityError: On an unexpected record count.
        """
        executor = self._require_executor()
        self._consume()
        return executor.execute_query(self)

    def list_all(self, page_size: Optional[int] = None) -> "ListResult":
        """
        Fetch every matching record, page by page.

        Reissues the query with ``$count=true``, advancing ``$skip`` by
        ``page_size`` until the found count is reached or a page comes back
        empty.

        :param page_size: Records per request. Defaults to ``default_top`` (1000).
        :type page_size: int or None
        """
        executor = self._require_executor()
        self._consume()
        size = page_size or self._top or self.default_top or DEFAULT_TOP
        return executor.list_all(self, size)

    find_all = list_all


class RecordQuery:
    """
    Fetch one record by key, optionally selecting fields and expanding relations.

    Example::

        record = db.from_(contacts).get("C-1").select(contacts.c.name).expand("invoices").execute()
    """

    def __init__(self, table: TableDeclaration, key: Union[str, int], **options: Any) -> None:
        self.key = key
        self._builder = QueryBuilder(table, **options)

    @property
    def table(self) -> TableDeclaration:
        return self._builder.table

    @property
    def builder(self) -> QueryBuilder:
        return self._builder

    def select(self, *columns: ColumnRef, **renamed: ColumnRef) -> "RecordQuery":
        self._builder.select(*columns, **renamed)
        return self

    def expand(self, relation: Relation, configure: Optional[Callable[[QueryBuilder], Any]] = None) -> "RecordQuery":
        self._builder.expand(relation, configure)
        return self

    def path(self) -> str:
        """Entity path ``{table}({key})``."""
        return f"{self.table.wire_name(self._builder.use_entity_ids)}({format_key(self.key)})"

    def render(self) -> str:
        params = self._builder.build()
        return "&".join(f"{k}={encode_url_value(v)}" for k, v in params.items() if k in ("$select", "$expand"))

    def execute(self) -> "ODataRecord":
        """
        :raises ~FileMaker.OData.core.errors.ProtocolError: With status 404 when no record has the key.
        """
        executor = self._builder._require_executor()
        self._builder._consume()
        return executor.execute_record(self)


def check_relation(table: TableDeclaration, relation: str, *, strict: bool, action: str) -> None:
    """
    Warn (or raise, when ``strict``) if ``relation`` is not a declared navigable relation.

    Untyped placeholder tables are not checked.
    """
    if not table.fields or relation in table.navigable_relations:
        return
    valid = ", ".join(sorted(table.navigable_relations)) or "none"
    message = f"Cannot {action} {relation!r} from {table.name!r}. Valid navigation paths: {valid}"
    if strict:
        raise ValidationError(message, subcode=ec.VALIDATION_UNKNOWN_RELATION, field=relation)
    warnings.warn(message, UserWarning, stacklevel=4)


__all__ = ["QueryBuilder", "RecordQuery", "Expansion", "check_relation"]

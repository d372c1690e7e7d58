"""Statement builder for the DB routes.

Turns a table name, an optional row id, query-string parameters and JSON
records into parameterized SQL. Identifiers pass through
:func:`sanitize_identifier`; every value is returned in ``Statement.params``
and bound positionally, never interpolated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pydantic import TypeAdapter, ValidationError

from storage_gateway.errors import (
    InvalidBodyError,
    InvalidIdentifierError,
    InvalidPaginationError,
)
from storage_gateway.sql.identifiers import quote_keyword, sanitize_identifier

RESERVED_QUERY_KEYS = frozenset({"sort_by", "order", "limit", "offset"})

Scalar = Union[str, int, float, bool, None]

_RECORD_ADAPTER: TypeAdapter[dict[str, Scalar]] = TypeAdapter(dict[str, Scalar])


class StatementKind(str, Enum):
    """Kinds of generated statements."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class SortDirection(str, Enum):
    """ORDER BY direction."""

    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: str | None) -> SortDirection:
        """DESC for a case-insensitive "desc", ASC for anything else."""
        if value is not None and value.upper() == "DESC":
            return cls.DESC
        return cls.ASC


@dataclass(frozen=True)
class Statement:
    """A SQL statement with ``?`` placeholders and its positional parameters."""

    kind: StatementKind
    sql: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True)
class SortSpec:
    """Sanitized ORDER BY column and direction."""

    column: str
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True)
class Pagination:
    """LIMIT and optional OFFSET. Offset is only meaningful with a limit."""

    limit: int
    offset: int | None = None


@dataclass(frozen=True)
class FetchQuery:
    """Filters, sort and pagination parsed from a DB GET query string."""

    filters: dict[str, str] = field(default_factory=dict)
    sort: SortSpec | None = None
    pagination: Pagination | None = None


def _require_identifier(raw: str, what: str) -> str:
    sanitized = sanitize_identifier(raw)
    if not sanitized:
        raise InvalidIdentifierError(f"Invalid {what} name: {raw!r}")
    return sanitized


def _quoted_table(table: str) -> str:
    _require_identifier(table, "table")
    return quote_keyword(table)


def _parse_non_negative(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as e:
        raise InvalidPaginationError(f"Invalid {name}: {raw!r} is not an integer") from e
    if value < 0:
        raise InvalidPaginationError(f"Invalid {name}: {raw!r} must not be negative")
    return value


def parse_fetch_query(items: Iterable[tuple[str, str]]) -> FetchQuery:
    """Parse query-string items into a :class:`FetchQuery`.

    Every key except ``sort_by``, ``order``, ``limit`` and ``offset`` becomes
    an equality filter on the sanitized column of the same name. Repeated
    keys keep their first position and their last value.

    Args:
        items: Query-string (key, value) pairs in request order.

    Returns:
        The parsed query.

    Raises:
        InvalidIdentifierError: If a filter or sort column sanitizes to nothing.
        InvalidPaginationError: If limit or offset is not a non-negative integer.
    """
    filters: dict[str, str] = {}
    controls: dict[str, str] = {}

    for key, value in items:
        if key in RESERVED_QUERY_KEYS:
            controls[key] = value
            continue
        filters[_require_identifier(key, "column")] = value

    sort: SortSpec | None = None
    sort_by = controls.get("sort_by")
    if sort_by:
        sort = SortSpec(
            column=_require_identifier(sort_by, "sort column"),
            direction=SortDirection.parse(controls.get("order")),
        )

    pagination: Pagination | None = None
    limit = controls.get("limit")
    if limit:
        offset = controls.get("offset")
        pagination = Pagination(
            limit=_parse_non_negative("limit", limit),
            offset=_parse_non_negative("offset", offset) if offset else None,
        )

    return FetchQuery(filters=filters, sort=sort, pagination=pagination)


def build_select(table: str, row_id: str | None = None, query: FetchQuery | None = None) -> Statement:
    """Build ``SELECT * FROM <table>`` with filters, sort and pagination.

    Args:
        table: User-supplied table name.
        row_id: Optional id from the path, filtered as ``id = ?``.
        query: Parsed query-string options.

    Returns:
        The SELECT statement.
    """
    query = query or FetchQuery()
    sql = f"SELECT * FROM {_quoted_table(table)}"
    conditions: list[str] = []
    params: list[Any] = []

    if row_id:
        conditions.append("id = ?")
        params.append(row_id)

    for column, value in query.filters.items():
        conditions.append(f"{column} = ?")
        params.append(value)

    if conditions:
        sql += " WHERE " + " AND ".join(conditions)

    if query.sort is not None:
        sql += f" ORDER BY {query.sort.column} {query.sort.direction.value}"

    if query.pagination is not None:
        sql += " LIMIT ?"
        params.append(query.pagination.limit)
        if query.pagination.offset is not None:
            sql += " OFFSET ?"
            params.append(query.pagination.offset)

    return Statement(StatementKind.SELECT, sql, tuple(params))


def validate_record(body: Any) -> dict[str, Scalar]:
    """Validate a request body as a non-empty record of scalar column values.

    Args:
        body: Decoded JSON body.

    Returns:
        The record, in body key order.

    Raises:
        InvalidBodyError: If the body is not a JSON object, is empty, or holds
            a nested value.
    """
    if not isinstance(body, Mapping):
        raise InvalidBodyError("Invalid data format")
    if not body:
        raise InvalidBodyError("Invalid data format: no columns supplied")
    try:
        return _RECORD_ADAPTER.validate_python(dict(body), strict=True)
    except ValidationError as e:
        raise InvalidBodyError("Invalid data format: column values must be scalars") from e


def _columns_and_values(record: Mapping[str, Scalar]) -> tuple[list[str], list[Scalar]]:
    columns: list[str] = []
    values: list[Scalar] = []
    for key, value in record.items():
        column = _require_identifier(key, "column")
        if column in columns:
            raise InvalidBodyError(f"Duplicate column after sanitization: {column}")
        columns.append(column)
        values.append(value)
    return columns, values


def build_insert(table: str, record: Mapping[str, Scalar]) -> Statement:
    """Build ``INSERT INTO <table> (<cols>) VALUES (<placeholders>)``."""
    quoted = _quoted_table(table)
    columns, values = _columns_and_values(record)
    placeholders = ", ".join("?" for _ in columns)
    sql = f"INSERT INTO {quoted} ({', '.join(columns)}) VALUES ({placeholders})"
    return Statement(StatementKind.INSERT, sql, tuple(values))


def build_update(table: str, row_id: str, record: Mapping[str, Scalar]) -> Statement:
    """Build ``UPDATE <table> SET <col = ?, ...> WHERE id = ?``; the id is bound last."""
    quoted = _quoted_table(table)
    columns, values = _columns_and_values(record)
    assignments = ", ".join(f"{column} = ?" for column in columns)
    sql = f"UPDATE {quoted} SET {assignments} WHERE id = ?"
    return Statement(StatementKind.UPDATE, sql, (*values, row_id))


def build_delete(table: str, row_id: str) -> Statement:
    """Build ``DELETE FROM <table> WHERE id = ?``."""
    sql = f"DELETE FROM {_quoted_table(table)} WHERE id = ?"
    return Statement(StatementKind.DELETE, sql, (row_id,))

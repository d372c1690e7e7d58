"""Row operations for the DB routes.

Each operation validates its input, builds one statement and runs it on the
relational store in a worker thread. Store failures are re-raised as
:class:`BackendFailureError` carrying the backend's own message.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from storage_gateway.errors import BackendFailureError
from storage_gateway.observability import get_logger, track_backend_call
from storage_gateway.sql.builder import (
    Scalar,
    build_delete,
    build_insert,
    build_select,
    build_update,
    parse_fetch_query,
    validate_record,
)

if TYPE_CHECKING:
    from storage_gateway.sql.builder import Statement
    from storage_gateway.sql.engine import RelationalStore, StatementResult

logger = get_logger(__name__)


async def _run(store: RelationalStore, statement: Statement, operation: str) -> StatementResult:
    try:
        with track_backend_call("db", operation):
            result = await asyncio.to_thread(store.execute, statement)
    except Exception as e:
        logger.warning("db_statement_failed", operation=operation, sql=statement.sql, error=str(e))
        raise BackendFailureError(str(e)) from e
    logger.debug(
        "db_statement_executed",
        operation=operation,
        rows=len(result.rows),
        changes=result.changes,
    )
    return result


async def fetch_rows(
    store: RelationalStore,
    table: str,
    row_id: str | None,
    query_items: Iterable[tuple[str, str]],
) -> StatementResult:
    """Select rows from ``table`` filtered by id and query-string equality filters."""
    statement = build_select(table, row_id, parse_fetch_query(query_items))
    return await _run(store, statement, "fetch")


async def create_row(store: RelationalStore, table: str, body: Any) -> dict[str, Scalar]:
    """Insert one row from a JSON object body.

    Returns:
        The validated input record, echoed back to the client.
    """
    record = validate_record(body)
    await _run(store, build_insert(table, record), "create")
    return record


async def update_row(
    store: RelationalStore, table: str, row_id: str, body: Any
) -> dict[str, Scalar]:
    """Update the row with ``id = row_id`` from a JSON object body.

    Returns:
        The validated input record, echoed back to the client.
    """
    record = validate_record(body)
    await _run(store, build_update(table, row_id, record), "update")
    return record


async def delete_row(store: RelationalStore, table: str, row_id: str) -> StatementResult:
    """Delete the row with ``id = row_id``."""
    return await _run(store, build_delete(table, row_id), "delete")

"""DuckDB engine backing the DB routes.

Provides a connection manager that:
- Opens the configured database file (or an in-memory database)
- Applies memory and thread limits from configuration
- Executes prepared statements with positional parameters
- Provides health check for database connectivity
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import duckdb

from storage_gateway.config import get_settings
from storage_gateway.sql.builder import StatementKind

if TYPE_CHECKING:
    from collections.abc import Generator

    from storage_gateway.config import Settings
    from storage_gateway.sql.builder import Statement


@dataclass
class StatementResult:
    """Outcome of a single statement: result rows for reads, changes for writes."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    changes: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Render the result in the shape returned to DB fetch clients."""
        return {
            "results": self.rows,
            "success": True,
            "meta": {
                "rows_read": len(self.rows),
                "changes": self.changes,
                "duration_ms": round(self.duration_ms, 3),
            },
        }


class RelationalStore(Protocol):
    """What the DB routes need from a relational backend."""

    def execute(self, statement: Statement) -> StatementResult: ...


class DuckDBEngine:
    """DuckDB connection manager for the relational store.

    This class manages a DuckDB connection with:
    - Configurable database path, memory limit and thread count
    - Thread-safe statement execution through per-call cursors
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the DuckDB engine.

        Args:
            settings: Application settings. If None, uses cached settings.
        """
        self._settings = settings or get_settings()
        self._lock = threading.Lock()
        self._connection: duckdb.DuckDBPyConnection | None = None

    @property
    def database_path(self) -> str:
        """Get the configured database path."""
        return self._settings.database.path

    def _create_connection(self) -> duckdb.DuckDBPyConnection:
        """Create a new DuckDB connection with configured settings.

        Returns:
            Configured DuckDB connection.
        """
        conn = duckdb.connect(self.database_path, read_only=False)

        database_config = self._settings.database
        conn.execute(f"SET memory_limit = '{database_config.memory_limit}'")
        conn.execute(f"SET threads = {database_config.threads}")

        return conn

    def initialize(self) -> None:
        """Open the database connection.

        This method should be called once at application startup.
        """
        with self._lock:
            if self._connection is not None:
                return

            self._connection = self._create_connection()

    def close(self) -> None:
        """Close the engine and release resources."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def get_connection(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """Get a DuckDB cursor for statement execution.

        Yields:
            DuckDB connection cursor.

        Raises:
            RuntimeError: If engine is not initialized.
        """
        if self._connection is None:
            raise RuntimeError("Engine not initialized. Call initialize() first.")

        with self._lock:
            cursor = self._connection.cursor()
            try:
                yield cursor
            finally:
                cursor.close()

    def execute(self, statement: Statement) -> StatementResult:
        """Execute a statement with its bound parameters.

        Args:
            statement: Statement built by :mod:`storage_gateway.sql.builder`.

        Returns:
            Rows as column-name mappings for SELECT; affected row count otherwise.

        Raises:
            duckdb.Error: If DuckDB rejects or fails the statement.
        """
        start = time.perf_counter()
        with self.get_connection() as conn:
            cur = conn.execute(statement.sql, list(statement.params))
            if statement.kind == StatementKind.SELECT:
                columns = [col[0] for col in cur.description or []]
                rows = [dict(zip(columns, row)) for row in cur.fetchall()]
                changes = 0
            else:
                rows = []
                count = cur.fetchone()
                changes = int(count[0]) if count and count[0] is not None else 0
        return StatementResult(
            rows=rows,
            changes=changes,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    def health_check(self) -> dict[str, bool | str]:
        """Check health of the DuckDB connection.

        Returns:
            Dictionary with health status:
            - healthy: Overall health status
            - error: Error message if unhealthy
        """
        result: dict[str, bool | str] = {"healthy": False}

        if self._connection is None:
            result["error"] = "Engine not initialized"
            return result

        try:
            with self.get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
        except Exception as e:
            result["error"] = f"DuckDB error: {e}"
            return result

        result["healthy"] = True
        return result

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._connection is not None


_engine: DuckDBEngine | None = None


def get_engine() -> DuckDBEngine:
    """Get the global DuckDB engine instance (cached).

    Returns:
        The global DuckDB engine.
    """
    global _engine
    if _engine is None:
        _engine = DuckDBEngine()
    return _engine


def reset_engine() -> None:
    """Reset the global engine (useful for testing)."""
    global _engine
    if _engine is not None:
        _engine.close()
    _engine = None

"""Tests for the DuckDB engine."""

from __future__ import annotations

from unittest.mock import MagicMock

import duckdb
import pytest

from storage_gateway.config import DatabaseConfig, Settings
from storage_gateway.sql.builder import (
    build_delete,
    build_insert,
    build_select,
    build_update,
    parse_fetch_query,
)
from storage_gateway.sql.engine import DuckDBEngine, StatementResult, get_engine, reset_engine


@pytest.fixture
def settings() -> Settings:
    """Create settings for an in-memory database."""
    return Settings(database=DatabaseConfig(path=":memory:", memory_limit="512MB", threads=2))


@pytest.fixture
def engine(settings: Settings):
    """Create an initialized engine with a users table."""
    engine = DuckDBEngine(settings=settings)
    engine.initialize()
    with engine.get_connection() as conn:
        conn.execute("CREATE TABLE users (id VARCHAR, name VARCHAR, status VARCHAR, age INTEGER)")
        conn.execute(
            "INSERT INTO users VALUES "
            "('1', 'Ada', 'active', 36), "
            "('2', 'Grace', 'inactive', 45), "
            "('3', 'Linus', 'active', 28)"
        )
    yield engine
    engine.close()


class TestDuckDBEngineLifecycle:
    """Tests for engine initialization and shutdown."""

    def test_engine_creation(self, settings: Settings):
        """Test engine can be created without connecting."""
        engine = DuckDBEngine(settings=settings)
        assert engine.database_path == ":memory:"
        assert not engine.is_initialized

    def test_engine_uses_default_settings(self):
        """Test engine uses get_settings() when no settings provided."""
        assert DuckDBEngine().database_path == ":memory:"

    def test_create_connection_applies_threads(self, settings: Settings):
        """Test thread count is applied to connection."""
        engine = DuckDBEngine(settings=settings)
        conn = engine._create_connection()
        try:
            result = conn.execute("SELECT current_setting('threads')").fetchone()
            assert result is not None
            assert int(result[0]) == 2
        finally:
            conn.close()

    def test_initialize_is_idempotent(self, settings: Settings):
        """Test a second initialize keeps the first connection."""
        engine = DuckDBEngine(settings=settings)
        engine.initialize()
        first = engine._connection
        engine.initialize()
        assert engine._connection is first
        engine.close()

    def test_get_connection_without_init_raises(self, settings: Settings):
        """Test get_connection raises if not initialized."""
        engine = DuckDBEngine(settings=settings)

        with pytest.raises(RuntimeError, match="Engine not initialized"), engine.get_connection():
            pass

    def test_close_engine(self, settings: Settings):
        """Test engine can be closed."""
        engine = DuckDBEngine(settings=settings)
        engine._connection = duckdb.connect(":memory:")

        assert engine.is_initialized
        engine.close()
        assert not engine.is_initialized


class TestDuckDBEngineExecute:
    """Tests for statement execution against a real in-memory database."""

    def test_select_returns_rows_as_mappings(self, engine: DuckDBEngine):
        """Test SELECT rows come back keyed by column name."""
        result = engine.execute(build_select("users", "1"))
        assert result.rows == [{"id": "1", "name": "Ada", "status": "active", "age": 36}]
        assert result.changes == 0

    def test_select_with_filter_and_sort(self, engine: DuckDBEngine):
        """Test filters and sort are applied by the database."""
        query = parse_fetch_query([("status", "active"), ("sort_by", "age"), ("order", "desc")])
        result = engine.execute(build_select("users", query=query))
        assert [row["name"] for row in result.rows] == ["Ada", "Linus"]

    def test_insert_reports_changes(self, engine: DuckDBEngine):
        """Test INSERT reports one affected row and the row is stored."""
        result = engine.execute(build_insert("users", {"id": "4", "name": "Barbara", "age": 50}))
        assert result.changes == 1
        rows = engine.execute(build_select("users", "4")).rows
        assert rows[0]["name"] == "Barbara"
        assert rows[0]["status"] is None

    def test_update_and_delete(self, engine: DuckDBEngine):
        """Test UPDATE and DELETE affect the addressed row."""
        updated = engine.execute(build_update("users", "2", {"status": "active"}))
        assert updated.changes == 1
        assert engine.execute(build_select("users", "2")).rows[0]["status"] == "active"

        deleted = engine.execute(build_delete("users", "2"))
        assert deleted.changes == 1
        assert engine.execute(build_select("users", "2")).rows == []

    def test_missing_table_raises_duckdb_error(self, engine: DuckDBEngine):
        """Test backend errors propagate from execute."""
        with pytest.raises(duckdb.Error):
            engine.execute(build_select("no_such_table"))


class TestStatementResult:
    """Tests for StatementResult rendering."""

    def test_to_dict(self):
        """Test the fetch payload shape."""
        result = StatementResult(rows=[{"id": "1"}], duration_ms=1.23456)
        assert result.to_dict() == {
            "results": [{"id": "1"}],
            "success": True,
            "meta": {"rows_read": 1, "changes": 0, "duration_ms": 1.235},
        }


class TestHealthCheck:
    """Tests for engine health check."""

    def test_not_initialized(self, settings: Settings):
        """Test health check before initialization."""
        result = DuckDBEngine(settings=settings).health_check()
        assert result["healthy"] is False
        assert result["error"] == "Engine not initialized"

    def test_healthy(self, engine: DuckDBEngine):
        """Test health check on a working connection."""
        assert engine.health_check() == {"healthy": True}

    def test_query_failure(self, settings: Settings):
        """Test health check reports DuckDB errors."""
        engine = DuckDBEngine(settings=settings)
        mock_conn = MagicMock()
        mock_conn.cursor.return_value.execute.side_effect = Exception("boom")
        engine._connection = mock_conn

        result = engine.health_check()
        assert result["healthy"] is False
        assert "DuckDB error: boom" in result["error"]


class TestGlobalEngine:
    """Tests for the cached global engine."""

    def test_get_engine_cached(self):
        """Test get_engine returns the same instance."""
        assert get_engine() is get_engine()

    def test_reset_engine(self):
        """Test reset_engine drops the cached instance."""
        first = get_engine()
        reset_engine()
        assert get_engine() is not first

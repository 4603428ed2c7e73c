"""Database client for Postgres.

The pipeline talks to the database through the DatabaseClient protocol:
execute a read-only statement, or list columns and foreign keys of the
configured schema. PostgresClient is the psycopg implementation.
"""
import os
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Generator, Optional, Protocol

import psycopg
from psycopg.rows import dict_row

from .errors import ExecutionError
from .logging import logger
from .validator import check_read_only


class DatabaseConfig:
    """Database configuration from environment variables."""

    def __init__(self) -> None:
        self.host = os.getenv("DB_HOST", "localhost")
        self.port = int(os.getenv("DB_PORT", "5432"))
        self.name = os.getenv("DB_NAME", "rsql_db")
        self.user = os.getenv("DB_USER", "rsql_user")
        self.password = os.getenv("DB_PASSWORD", "rsql_password")

    def connection_string(self) -> str:
        """Return PostgreSQL connection string."""
        return (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.name} "
            f"user={self.user} "
            f"password={self.password}"
        )


@contextmanager
def get_connection(config: Optional[DatabaseConfig] = None) -> Generator[psycopg.Connection, None, None]:
    """Get a read-only database connection as a context manager.

    Usage:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT ...")
    """
    config = config or DatabaseConfig()
    conn = psycopg.connect(config.connection_string(), row_factory=dict_row)
    conn.read_only = True
    try:
        yield conn
    finally:
        conn.close()


class DatabaseClient(Protocol):
    """What the pipeline needs from a database."""

    def execute(self, sql: str) -> list[dict[str, Any]]:
        """Run a read-only statement and return its rows.

        Raises:
            ExecutionError: If the database rejects the statement
        """
        ...

    def fetch_columns(self) -> list[dict[str, Any]]:
        """Rows of (table_name, column_name, data_type, is_nullable, is_primary_key)."""
        ...

    def fetch_foreign_keys(self) -> list[dict[str, Any]]:
        """Rows of (table_name, column_name, referenced_table, referenced_column)."""
        ...

    def close(self) -> None:
        ...


COLUMNS_QUERY = """
SELECT
    c.table_name,
    c.column_name,
    c.data_type,
    c.is_nullable = 'YES' AS is_nullable,
    EXISTS (
        SELECT 1
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON tc.constraint_name = kcu.constraint_name
         AND tc.table_schema = kcu.table_schema
        WHERE tc.constraint_type = 'PRIMARY KEY'
          AND tc.table_schema = c.table_schema
          AND tc.table_name = c.table_name
          AND kcu.column_name = c.column_name
    ) AS is_primary_key
FROM information_schema.columns c
JOIN information_schema.tables t
  ON t.table_schema = c.table_schema
 AND t.table_name = c.table_name
WHERE c.table_schema = %s
  AND t.table_type IN ('BASE TABLE', 'VIEW')
ORDER BY c.table_name, c.ordinal_position
"""

FOREIGN_KEYS_QUERY = """
SELECT
    kcu.table_name,
    kcu.column_name,
    ccu.table_name AS referenced_table,
    ccu.column_name AS referenced_column
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
  ON tc.constraint_name = kcu.constraint_name
 AND tc.table_schema = kcu.table_schema
JOIN information_schema.constraint_column_usage ccu
  ON ccu.constraint_name = tc.constraint_name
 AND ccu.table_schema = tc.table_schema
WHERE tc.constraint_type = 'FOREIGN KEY'
  AND tc.table_schema = %s
ORDER BY kcu.table_name, kcu.column_name
"""


def _serialize_value(value: Any) -> Any:
    """Convert driver types that do not serialize to JSON."""
    if isinstance(value, Decimal):
        return float(value)
    return value


class PostgresClient:
    """DatabaseClient backed by psycopg.

    Every statement runs on its own read-only connection from
    get_connection(); concurrent calls never share a transaction.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, db_schema: str = "public"):
        self._config = config or DatabaseConfig()
        self._db_schema = db_schema

    def _run(self, sql: str, params: Optional[tuple] = None) -> list[dict[str, Any]]:
        try:
            with get_connection(self._config) as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    rows = cur.fetchall() if cur.description else []
        except psycopg.Error as e:
            raise ExecutionError(str(e).strip(), details={"sqlstate": getattr(e, "sqlstate", None)})

        return [
            {key: _serialize_value(value) for key, value in row.items()}
            for row in rows
        ]

    def execute(self, sql: str) -> list[dict[str, Any]]:
        """Execute a read-only statement.

        Raises:
            ExecutionError: If the statement is not read-only or the
                database rejects it
        """
        errors = check_read_only(sql)
        if errors:
            raise ExecutionError("; ".join(errors), retryable=False, details={"sql": sql})
        logger.debug("db_execute sql_length=%d", len(sql))
        return self._run(sql)

    def fetch_columns(self) -> list[dict[str, Any]]:
        return self._run(COLUMNS_QUERY, (self._db_schema,))

    def fetch_foreign_keys(self) -> list[dict[str, Any]]:
        return self._run(FOREIGN_KEYS_QUERY, (self._db_schema,))

    def close(self) -> None:
        """Nothing to release: connections are closed after each statement."""

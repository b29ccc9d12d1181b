"""In-memory relational store backed by DuckDB.

The store is a thin, synchronous wrapper around one in-memory DuckDB
connection. Every statement is prepared, executed and released as a
discrete unit, so concurrent readers on the event loop need no locking.
Writes only happen during imports, inside an explicit transaction.

Example:
    store = TabularStore()
    with store.transaction():
        store.execute('CREATE TABLE "t" ("a" INTEGER)')
    rows = store.execute('SELECT * FROM "t" WHERE "a" > ?', [1])
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import duckdb

from src.store.models import SchemaColumn, TableSchema

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Double-quote an SQL identifier, escaping embedded quotes.

    Args:
        name: Table or column name.

    Returns:
        Quoted identifier safe to interpolate into SQL.
    """
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Single-quote an SQL string literal, escaping embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


class TabularStore:
    """Single-session relational store.

    Maintains an in-memory DuckDB connection for the process lifetime.
    Rows are returned in object mode (one dict per row keyed by column).
    """

    def __init__(self, database: str = ":memory:") -> None:
        """Open the DuckDB connection.

        Args:
            database: DuckDB database path (default: in-memory).
        """
        self._conn = duckdb.connect(database)
        self._extensions: set[str] = set()

    def close(self) -> None:
        """Close the connection."""
        self._conn.close()

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Run a statement and return rows as dicts.

        Args:
            sql: SQL with ``?`` placeholders.
            params: Positional parameter values.

        Returns:
            One dict per row. Empty for statements that return nothing.
        """
        cursor = self._conn.execute(sql, list(params) if params else [])
        if cursor.description is None:
            return []
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]

    def execute_with_columns(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> tuple[list[str], list[dict[str, Any]]]:
        """Run a query and return its column names along with the rows."""
        cursor = self._conn.execute(sql, list(params) if params else [])
        if cursor.description is None:
            return [], []
        columns = [d[0] for d in cursor.description]
        rows = [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]
        return columns, rows

    def executemany(self, sql: str, rows: Sequence[Sequence[Any]]) -> None:
        """Run one prepared statement for every parameter row."""
        if rows:
            self._conn.executemany(sql, [list(r) for r in rows])

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Wrap a block in BEGIN/COMMIT, rolling back on error."""
        self._conn.execute("BEGIN TRANSACTION")
        try:
            yield
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        else:
            self._conn.execute("COMMIT")

    def load_extension(self, name: str) -> None:
        """Install and load a DuckDB extension once per connection.

        Raises:
            duckdb.Error: If the extension cannot be installed or loaded.
        """
        if name in self._extensions:
            return
        self._conn.execute(f"INSTALL {name}; LOAD {name};")
        self._extensions.add(name)

    @contextmanager
    def attached(self, path: str, alias: str, db_type: str) -> Iterator[str]:
        """Attach an external database read-only for the duration of a block.

        Args:
            path: Database file path.
            alias: Catalog name to attach under.
            db_type: DuckDB attach type (e.g. 'sqlite').

        Yields:
            The alias, quoted for use in SQL.
        """
        quoted = quote_identifier(alias)
        self._conn.execute(f"ATTACH {quote_literal(path)} AS {quoted} (TYPE {db_type}, READ_ONLY)")
        try:
            yield quoted
        finally:
            self._conn.execute(f"DETACH {quoted}")

    def table_names(self) -> list[str]:
        """List user tables in the main schema."""
        rows = self._conn.execute(
            "SELECT table_name FROM duckdb_tables() "
            "WHERE database_name = current_database() AND schema_name = 'main' "
            "ORDER BY table_name"
        ).fetchall()
        return [r[0] for r in rows]

    def has_table(self, name: str) -> bool:
        """Check whether a table exists."""
        return name in self.table_names()

    def columns(self, table: str) -> list[SchemaColumn]:
        """Get PRAGMA table_info for a table."""
        rows = self._conn.execute(
            f"PRAGMA table_info({quote_literal(table)})"
        ).fetchall()
        return [
            SchemaColumn(
                name=name,
                type=str(col_type),
                notnull=bool(notnull),
                default_value=default,
                primary_key=bool(pk),
            )
            for _cid, name, col_type, notnull, default, pk in rows
        ]

    def schema(self, exclude: set[str] | None = None) -> list[TableSchema]:
        """Describe every table with its DDL and columns.

        Args:
            exclude: Table names to leave out (e.g. internal catalog tables).

        Returns:
            List of TableSchema ordered by table name.
        """
        exclude = exclude or set()
        rows = self._conn.execute(
            "SELECT table_name, sql FROM duckdb_tables() "
            "WHERE database_name = current_database() AND schema_name = 'main' "
            "ORDER BY table_name"
        ).fetchall()
        return [
            TableSchema(name=name, sql=sql or "", columns=self.columns(name))
            for name, sql in rows
            if name not in exclude
        ]

    def distinct_values(self, table: str, column: str) -> list[Any]:
        """Get the distinct non-null values of a column, in sorted order."""
        col = quote_identifier(column)
        rows = self._conn.execute(
            f"SELECT DISTINCT {col} FROM {quote_identifier(table)} "
            f"WHERE {col} IS NOT NULL ORDER BY 1"
        ).fetchall()
        return [r[0] for r in rows]

    def row_count(self, table: str) -> int:
        """Count rows in a table."""
        return self._conn.execute(
            f"SELECT COUNT(*) FROM {quote_identifier(table)}"
        ).fetchone()[0]

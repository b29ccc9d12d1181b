"""Pydantic models for the Tabular Store and file imports.

These models define the contracts for data exchange between the store,
the importers, and the CLI. Import reports carry per-table outcomes so one
failing table never hides the others.
"""

from typing import Any

from pydantic import BaseModel, Field

from src.errors.formatter import CocoaGPTError


class SchemaColumn(BaseModel):
    """Represents a column as reported by PRAGMA table_info.

    Attributes:
        name: Column name
        type: Declared column type
        notnull: Whether the column is declared NOT NULL
        default_value: Declared default, if any
        primary_key: Whether the column is part of the primary key
    """

    name: str = Field(..., description="Column name")
    type: str = Field(..., description="Declared column type")
    notnull: bool = Field(default=False, description="Declared NOT NULL")
    default_value: Any = Field(default=None, description="Declared default value")
    primary_key: bool = Field(default=False, description="Part of the primary key")


class TableSchema(BaseModel):
    """A table in the store with its DDL and columns."""

    name: str = Field(..., description="Table name")
    sql: str = Field(default="", description="CREATE TABLE statement")
    columns: list[SchemaColumn] = Field(default_factory=list)


class TableImport(BaseModel):
    """Outcome of importing one table.

    Attributes:
        table: Target table name in the store
        row_count: Number of rows inserted (0 on failure)
        error: Error code and message if this table failed
    """

    table: str = Field(..., description="Target table name")
    row_count: int = Field(default=0, description="Rows inserted")
    error: str | None = Field(default=None, description="Failure description")


class ImportReport(BaseModel):
    """Result of importing one file.

    Attributes:
        file: File name as given by the user
        source_type: 'sqlite' or 'delimited' (None if unrecognized)
        tables: Per-table outcomes
        errors: File-level and table-level errors, in order
    """

    file: str = Field(..., description="Imported file name")
    source_type: str | None = Field(default=None, description="Detected source type")
    tables: list[TableImport] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when the file and every table imported cleanly."""
        return not self.errors

    @property
    def row_count(self) -> int:
        """Total rows inserted across tables."""
        return sum(t.row_count for t in self.tables)

    def add_error(self, error: CocoaGPTError) -> str:
        """Record an error and return its display text."""
        text = str(error)
        self.errors.append(text)
        return text

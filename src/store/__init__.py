"""Tabular Store: in-memory DuckDB store and file importers."""

from src.store.importers import (
    DELIMITERS,
    SQLITE_EXTENSIONS,
    import_file,
    import_files,
    table_name_for,
)
from src.store.models import ImportReport, SchemaColumn, TableImport, TableSchema
from src.store.tabular_store import TabularStore, quote_identifier, quote_literal

__all__ = [
    "TabularStore",
    "quote_identifier",
    "quote_literal",
    "import_file",
    "import_files",
    "table_name_for",
    "SQLITE_EXTENSIONS",
    "DELIMITERS",
    "ImportReport",
    "TableImport",
    "SchemaColumn",
    "TableSchema",
]

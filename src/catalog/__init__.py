"""Metadata Catalog: per-column statistics and categories."""

from src.catalog.metadata import (
    CATALOG_TABLE,
    ColumnCategory,
    ColumnMetadata,
    build_catalog,
    catalog_context,
    catalog_index,
    classify_column,
    load_catalog,
)

__all__ = [
    "CATALOG_TABLE",
    "ColumnCategory",
    "ColumnMetadata",
    "build_catalog",
    "catalog_context",
    "catalog_index",
    "classify_column",
    "load_catalog",
]

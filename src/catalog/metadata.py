"""Per-column metadata catalog.

Computes, once per dataset load, a statistics row for every (table, column)
pair: declared type, number of distinct values, the five most frequent
values, and a category that tells the filter pipeline whether a column is
matched fuzzily (enum, embedding) or compared literally (numeric, other).

The catalog is materialized as the ``column_metadata`` table so it can be
queried through the store like any other table. An optional overrides
table (``metadata`` by default, e.g. loaded from metadata.csv) with
``table``, ``column`` and ``category`` columns pins categories by hand.
"""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from src.store.tabular_store import TabularStore, quote_identifier

logger = logging.getLogger(__name__)

CATALOG_TABLE = "column_metadata"
DEFAULT_ENUM_MAX_DISTINCT = 50

_NUMERIC_TYPES = {
    "TINYINT", "SMALLINT", "INTEGER", "BIGINT", "HUGEINT",
    "UTINYINT", "USMALLINT", "UINTEGER", "UBIGINT", "UHUGEINT",
    "FLOAT", "REAL", "DOUBLE", "DECIMAL", "NUMERIC",
}
_TEXT_TYPES = {"VARCHAR", "TEXT", "STRING", "CHAR", "BPCHAR"}


class ColumnCategory(str, Enum):
    """How a column's values are matched by filters."""

    enum = "enum"
    embedding = "embedding"
    numeric = "numeric"
    other = "other"

    @property
    def is_fuzzy(self) -> bool:
        """True for categories resolved through similarity matching."""
        return self in (ColumnCategory.enum, ColumnCategory.embedding)


class ColumnMetadata(BaseModel):
    """Statistics for one (table, column) pair."""

    table: str = Field(..., description="Table name")
    column: str = Field(..., description="Column name")
    type: str = Field(..., description="Declared column type")
    nunique: int = Field(default=0, description="Number of distinct non-null values")
    top5: str = Field(default="", description="Five most frequent values, comma-joined")
    category: ColumnCategory = Field(default=ColumnCategory.other)


def classify_column(
    col_type: str,
    nunique: int,
    enum_max_distinct: int = DEFAULT_ENUM_MAX_DISTINCT,
) -> ColumnCategory:
    """Classify a column from its type and cardinality.

    Args:
        col_type: Declared DuckDB type (e.g. 'VARCHAR', 'DECIMAL(18,3)').
        nunique: Number of distinct non-null values.
        enum_max_distinct: Text columns with at most this many distinct
            values are enums; larger ones are matched by embedding.

    Returns:
        The column category.
    """
    base = col_type.upper().split("(")[0].strip()
    if base in _NUMERIC_TYPES:
        return ColumnCategory.numeric
    if base in _TEXT_TYPES:
        if nunique <= enum_max_distinct:
            return ColumnCategory.enum
        return ColumnCategory.embedding
    return ColumnCategory.other


def _load_overrides(store: TabularStore, overrides_table: str | None) -> dict[tuple[str, str], ColumnCategory]:
    """Read hand-pinned categories from the overrides table, if present."""
    if not overrides_table or not store.has_table(overrides_table):
        return {}

    names = {c.name.lower(): c.name for c in store.columns(overrides_table)}
    if not {"table", "column", "category"} <= names.keys():
        logger.debug("Overrides table %s lacks table/column/category columns", overrides_table)
        return {}

    rows = store.execute(
        "SELECT {}, {}, {} FROM {}".format(
            quote_identifier(names["table"]),
            quote_identifier(names["column"]),
            quote_identifier(names["category"]),
            quote_identifier(overrides_table),
        )
    )
    overrides: dict[tuple[str, str], ColumnCategory] = {}
    for row in rows:
        table, column, category = (row[names["table"]], row[names["column"]], row[names["category"]])
        try:
            overrides[(str(table), str(column))] = ColumnCategory(str(category).strip().lower())
        except ValueError:
            logger.warning(
                "Ignoring unknown category %r for %s.%s in %s",
                category, table, column, overrides_table,
            )
    return overrides


def _column_stats(store: TabularStore, table: str, column: str) -> tuple[int, str]:
    """Count distinct values and collect the five most frequent."""
    t = quote_identifier(table)
    c = quote_identifier(column)
    nunique = store.execute(f"SELECT COUNT(DISTINCT {c}) AS n FROM {t}")[0]["n"]
    top = store.execute(
        f"SELECT CAST({c} AS VARCHAR) AS v, COUNT(*) AS n FROM {t} "
        f"WHERE {c} IS NOT NULL GROUP BY 1 ORDER BY n DESC, v LIMIT 5"
    )
    return int(nunique), ", ".join(r["v"] for r in top)


def build_catalog(
    store: TabularStore,
    enum_max_distinct: int = DEFAULT_ENUM_MAX_DISTINCT,
    overrides_table: str | None = "metadata",
) -> list[ColumnMetadata]:
    """Compute the catalog for every user table and materialize it.

    Replaces any previous ``column_metadata`` table.

    Args:
        store: The store holding the imported data.
        enum_max_distinct: Cardinality cut-off between enum and embedding.
        overrides_table: Table with hand-pinned categories (skipped if absent).

    Returns:
        Catalog rows ordered by table then column position.
    """
    skip = {CATALOG_TABLE}
    if overrides_table:
        skip.add(overrides_table)
    overrides = _load_overrides(store, overrides_table)

    catalog: list[ColumnMetadata] = []
    for table in store.table_names():
        if table in skip:
            continue
        for col in store.columns(table):
            nunique, top5 = _column_stats(store, table, col.name)
            category = overrides.get(
                (table, col.name),
                classify_column(col.type, nunique, enum_max_distinct),
            )
            catalog.append(
                ColumnMetadata(
                    table=table,
                    column=col.name,
                    type=col.type,
                    nunique=nunique,
                    top5=top5,
                    category=category,
                )
            )

    _materialize(store, catalog)
    logger.info("Built catalog: %d columns", len(catalog))
    return catalog


def _materialize(store: TabularStore, catalog: list[ColumnMetadata]) -> None:
    """Write the catalog rows to the column_metadata table."""
    name = quote_identifier(CATALOG_TABLE)
    with store.transaction():
        store.execute(f"DROP TABLE IF EXISTS {name}")
        store.execute(
            f'CREATE TABLE {name} ("table" VARCHAR, "column" VARCHAR, "type" VARCHAR, '
            '"nunique" BIGINT, "top5" VARCHAR, "category" VARCHAR)'
        )
        store.executemany(
            f"INSERT INTO {name} VALUES (?, ?, ?, ?, ?, ?)",
            [
                (m.table, m.column, m.type, m.nunique, m.top5, m.category.value)
                for m in catalog
            ],
        )


def load_catalog(store: TabularStore) -> list[ColumnMetadata]:
    """Read the materialized catalog back from the store."""
    if not store.has_table(CATALOG_TABLE):
        return []
    rows = store.execute(f"SELECT * FROM {quote_identifier(CATALOG_TABLE)}")
    return [ColumnMetadata(**row) for row in rows]


def catalog_index(catalog: list[ColumnMetadata]) -> dict[tuple[str, str], ColumnMetadata]:
    """Index catalog rows by (table, column)."""
    return {(m.table, m.column): m for m in catalog}


def catalog_context(catalog: list[ColumnMetadata]) -> str:
    """Render the catalog as prompt context, one line per column."""
    lines = []
    for m in catalog:
        lines.append(
            f"- {m.table}.{m.column} ({m.type}, {m.category.value}, "
            f"{m.nunique} distinct; top: {m.top5})"
        )
    return "\n".join(lines)

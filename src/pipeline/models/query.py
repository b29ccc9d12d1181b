"""Query plan and result models.

A QueryPlan is built fresh from the enabled filters on every apply and
consumed immediately; it is never cached.
"""

from typing import Any

from pydantic import BaseModel, Field

from src.store.tabular_store import quote_identifier


class QueryPlan(BaseModel):
    """Parameterized SELECT for one table.

    Attributes:
        table: Table to query.
        clauses: WHERE clauses joined with AND, each with ``?`` placeholders.
        params: Parameter values in placeholder order.
        error: Compile failure; the plan is not executed when set.
    """

    table: str
    clauses: list[str] = Field(default_factory=list)
    params: list[Any] = Field(default_factory=list)
    error: str | None = None

    @property
    def sql(self) -> str:
        sql = f"SELECT * FROM {quote_identifier(self.table)}"
        if self.clauses:
            sql += " WHERE " + " AND ".join(self.clauses)
        return sql


class TableResult(BaseModel):
    """Rows returned by one table's query, or the error that stopped it."""

    table: str
    sql: str
    params: list[Any] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExcludedTable(BaseModel):
    """A table left out of the key intersection, and why."""

    table: str
    reason: str


class KeyIntersection(BaseModel):
    """Key values present in every participating table's results.

    Attributes:
        key: The intersection key column.
        values: Intersected values, truncated to the display limit.
        total: Full number of intersected values.
        tables_used: Tables whose key sets were intersected.
        tables_excluded: Tables left out, with the reason.
    """

    key: str
    values: list[Any] = Field(default_factory=list)
    total: int = 0
    tables_used: list[str] = Field(default_factory=list)
    tables_excluded: list[ExcludedTable] = Field(default_factory=list)

    @property
    def truncated(self) -> bool:
        return self.total > len(self.values)


class QueryOutcome(BaseModel):
    """Everything produced by one apply action."""

    results: list[TableResult] = Field(default_factory=list)
    intersection: KeyIntersection | None = None

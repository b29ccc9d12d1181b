"""Per-table parameterized SELECTs and key intersection.

Compiles the enabled filters into one ``SELECT * FROM table WHERE ...``
per referenced table, runs each independently, and intersects a key
column's values across the results. Every value is bound as a parameter;
only quoted identifiers are interpolated.

Clause policy:
    MatchedFilter: ``"col" IN (?, ...)`` over the accepted matches. No
        clause when nothing clears the threshold or matches are unresolved.
    LiteralFilter: ``"col" op ?``. Range operators bind a number.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import duckdb

from src.errors.formatter import CocoaGPTError
from src.pipeline.models.filter import (
    FilterCompilationError,
    LiteralFilter,
    MatchedFilter,
)
from src.pipeline.models.query import (
    ExcludedTable,
    KeyIntersection,
    QueryPlan,
    TableResult,
)
from src.store.tabular_store import TabularStore, quote_identifier

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_LIMIT = 100


def coerce_number(flt: LiteralFilter) -> int | float:
    """Convert a range filter's value to a number.

    Raises:
        FilterCompilationError: If the value is not a finite number.
    """
    text = flt.value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        number = math.nan
    if not math.isfinite(number):
        error = CocoaGPTError.from_code(
            "E-2004",
            table=flt.table,
            column=flt.column,
            operator=flt.operator.value,
            value=flt.value,
        )
        raise FilterCompilationError(error.code, error.message)
    return number


def compile_clause(flt: LiteralFilter | MatchedFilter) -> tuple[str, list[Any]] | None:
    """Compile one filter into a WHERE clause and its parameters.

    Returns:
        (clause, params), or None when the filter contributes no clause.

    Raises:
        FilterCompilationError: If a range filter's value is not numeric.
    """
    col = quote_identifier(flt.column)
    if isinstance(flt, MatchedFilter):
        accepted = flt.accepted_matches()
        if not accepted:
            return None
        placeholders = ", ".join("?" for _ in accepted)
        return f"{col} IN ({placeholders})", [m.value for m in accepted]

    value: Any = coerce_number(flt) if flt.operator.is_range else flt.value
    return f"{col} {flt.operator.value} ?", [value]


def build_query_plans(filters: list[LiteralFilter | MatchedFilter]) -> list[QueryPlan]:
    """Group enabled filters by table and compile one plan per table.

    Tables appear in the order they are first referenced. A compile
    failure marks only that table's plan.
    """
    plans: dict[str, QueryPlan] = {}
    for flt in filters:
        if flt.disabled:
            continue
        plan = plans.setdefault(flt.table, QueryPlan(table=flt.table))
        if plan.error:
            continue
        try:
            compiled = compile_clause(flt)
        except FilterCompilationError as e:
            plan.error = str(e)
            continue
        if compiled is None:
            logger.debug("Filter on %s.%s contributes no clause", flt.table, flt.column)
            continue
        clause, params = compiled
        plan.clauses.append(clause)
        plan.params.extend(params)
    return list(plans.values())


def run_query_plans(store: TabularStore, plans: list[QueryPlan]) -> list[TableResult]:
    """Execute each plan independently.

    A failing table is reported on its own result; the others still run.
    """
    results = []
    for plan in plans:
        result = TableResult(table=plan.table, sql=plan.sql, params=list(plan.params))
        if plan.error:
            result.error = plan.error
            results.append(result)
            continue
        try:
            result.columns, result.rows = store.execute_with_columns(plan.sql, plan.params)
        except duckdb.Error as e:
            error = CocoaGPTError.from_code("E-2005", table=plan.table, details=str(e))
            result.error = str(error)
            logger.warning("Query on %s failed: %s", plan.table, e)
        results.append(result)
    return results


def intersect_keys(
    results: list[TableResult],
    key: str,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
    exclude_single_key_tables: bool = True,
) -> KeyIntersection:
    """Intersect the distinct values of ``key`` across table results.

    Tables that failed or lack the key column are excluded. With
    ``exclude_single_key_tables`` set, tables with fewer than two distinct
    key values are excluded too. Every exclusion is listed with its reason.

    Args:
        results: Per-table query results.
        key: Column to intersect on.
        display_limit: Maximum number of values kept for display.
        exclude_single_key_tables: Leave out tables with one distinct key.

    Returns:
        KeyIntersection with values in first-table order.
    """
    outcome = KeyIntersection(key=key)
    ordered: list[Any] | None = None
    common: set[Any] = set()

    for result in results:
        if result.error:
            outcome.tables_excluded.append(ExcludedTable(table=result.table, reason="query failed"))
            continue
        if key not in result.columns:
            outcome.tables_excluded.append(
                ExcludedTable(table=result.table, reason=f"no column '{key}'")
            )
            continue

        keys = list(dict.fromkeys(row[key] for row in result.rows if row[key] is not None))
        if exclude_single_key_tables and len(keys) <= 1:
            outcome.tables_excluded.append(
                ExcludedTable(
                    table=result.table,
                    reason=f"{len(keys)} distinct key value(s)",
                )
            )
            continue

        outcome.tables_used.append(result.table)
        if ordered is None:
            ordered = keys
            common = set(keys)
        else:
            common &= set(keys)

    values = [v for v in ordered or [] if v in common]
    outcome.total = len(values)
    outcome.values = values[:display_limit]
    return outcome

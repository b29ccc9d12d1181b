"""Tests for per-table query compilation, execution and key intersection."""

import pytest

from src.pipeline.compiler import (
    build_query_plans,
    coerce_number,
    compile_clause,
    intersect_keys,
    run_query_plans,
)
from src.pipeline.models.filter import (
    FilterCompilationError,
    LiteralFilter,
    MatchedFilter,
    SimilarityMatch,
)
from src.pipeline.models.query import TableResult
from src.store.tabular_store import TabularStore


def _literal(table: str, column: str, operator: str, value: str, **kw) -> LiteralFilter:
    return LiteralFilter(
        requirement=f"{column} {operator} {value}",
        table=table,
        column=column,
        operator=operator,
        value=value,
        **kw,
    )


def _ecuador(**kw) -> MatchedFilter:
    return MatchedFilter(
        requirement="from Ecuador",
        table="products",
        column="origin",
        operator="=",
        value="Ecuador",
        matches=[
            SimilarityMatch(value="Ecuador", score=0.95),
            SimilarityMatch(value="Peru", score=0.3),
        ],
        **kw,
    )


def _result(table: str, keys: list, key: str = "supplier_id") -> TableResult:
    return TableResult(table=table, sql="", columns=[key], rows=[{key: k} for k in keys])


class TestCompileClause:
    """Tests for single-filter compilation."""

    def test_range_binds_integer(self):
        clause, params = compile_clause(_literal("products", "cocoa_pct", ">", "70"))
        assert clause == '"cocoa_pct" > ?'
        assert params == [70]
        assert isinstance(params[0], int)

    def test_range_binds_float(self):
        _, params = compile_clause(_literal("products", "cocoa_pct", "<=", " 72.5 "))
        assert params == [72.5]

    def test_equality_binds_text(self):
        assert compile_clause(_literal("suppliers", "country", "!=", "Peru")) == ('"country" != ?', ["Peru"])

    def test_matched_uses_accepted_values(self):
        assert compile_clause(_ecuador()) == ('"origin" IN (?)', ["Ecuador"])

    def test_matched_lower_threshold_widens(self):
        clause, params = compile_clause(_ecuador(min_similarity=0.2))
        assert clause == '"origin" IN (?, ?)'
        assert params == ["Ecuador", "Peru"]

    def test_matched_nothing_accepted_gives_no_clause(self):
        assert compile_clause(_ecuador(min_similarity=0.99)) is None

    def test_unresolved_gives_no_clause(self):
        flt = _ecuador()
        flt.begin_resolution()
        assert compile_clause(flt) is None

    def test_identifier_is_quoted(self):
        clause, _ = compile_clause(_literal("t", 'odd "name"', "=", "x"))
        assert clause == '"odd ""name""" = ?'

    @pytest.mark.parametrize("value", ["seventy", "", "nan", "inf"])
    def test_non_numeric_range_value_rejected(self, value):
        with pytest.raises(FilterCompilationError) as exc:
            coerce_number(_literal("products", "cocoa_pct", ">", value))
        assert exc.value.code == "E-2004"


class TestBuildQueryPlans:
    """Tests for grouping filters into per-table plans."""

    def test_groups_by_table_in_first_seen_order(self):
        plans = build_query_plans([
            _literal("suppliers", "country", "=", "Peru"),
            _literal("products", "cocoa_pct", ">", "70"),
            _ecuador(),
        ])
        assert [p.table for p in plans] == ["suppliers", "products"]
        assert plans[1].sql == 'SELECT * FROM "products" WHERE "cocoa_pct" > ? AND "origin" IN (?)'
        assert plans[1].params == [70, "Ecuador"]

    def test_disabled_filters_skipped(self):
        plans = build_query_plans([
            _literal("products", "cocoa_pct", ">", "70", disabled=True),
            _literal("suppliers", "country", "=", "Peru"),
        ])
        assert [p.table for p in plans] == ["suppliers"]

    def test_where_count_matches_contributing_filters(self):
        filters = [
            _literal("products", "cocoa_pct", ">", "70"),
            _literal("products", "cocoa_pct", "<", "90"),
            _ecuador(),
            _ecuador(min_similarity=0.99),
        ]
        (plan,) = build_query_plans(filters)
        assert len(plan.clauses) == 3
        assert plan.sql.count("?") == len(plan.params)

    def test_no_clauses_selects_whole_table(self):
        (plan,) = build_query_plans([_ecuador(min_similarity=0.99)])
        assert plan.sql == 'SELECT * FROM "products"'
        assert plan.params == []

    def test_bad_value_marks_only_its_table(self):
        plans = build_query_plans([
            _literal("products", "cocoa_pct", ">", "lots"),
            _literal("suppliers", "country", "=", "Peru"),
        ])
        assert plans[0].error.startswith("E-2004")
        assert plans[1].error is None


class TestRunQueryPlans:
    """Tests for execution against the store."""

    def test_filters_rows(self, loaded_store: TabularStore):
        plans = build_query_plans([_literal("products", "cocoa_pct", ">", "70"), _ecuador()])
        (result,) = run_query_plans(loaded_store, plans)
        assert result.ok
        assert sorted(r["id"] for r in result.rows) == [1, 3, 5]
        assert "supplier_id" in result.columns

    def test_failing_table_does_not_stop_others(self, loaded_store: TabularStore):
        plans = build_query_plans([
            _literal("suppliers", "no_such_column", "=", "x"),
            _literal("products", "cocoa_pct", ">", "80"),
        ])
        failed, ok = run_query_plans(loaded_store, plans)
        assert failed.error.startswith("E-2005")
        assert "suppliers" in failed.error
        assert sorted(r["id"] for r in ok.rows) == [3, 5]

    def test_compile_error_not_executed(self, loaded_store: TabularStore):
        plans = build_query_plans([_literal("products", "cocoa_pct", ">", "lots")])
        (result,) = run_query_plans(loaded_store, plans)
        assert not result.ok
        assert result.rows == []


class TestIntersectKeys:
    """Tests for the key intersection."""

    def test_intersection_across_tables(self, loaded_store: TabularStore):
        plans = build_query_plans([
            _literal("products", "cocoa_pct", ">", "70"),
            _ecuador(),
            _literal("suppliers", "supplier_id", ">=", "2"),
        ])
        outcome = intersect_keys(run_query_plans(loaded_store, plans), "supplier_id")
        assert sorted(outcome.values) == [2, 3]
        assert outcome.total == 2
        assert outcome.tables_used == ["products", "suppliers"]
        assert outcome.tables_excluded == []

    def test_values_follow_first_table_order(self):
        outcome = intersect_keys([_result("a", [3, 1, 2, 1]), _result("b", [1, 2, 3])], "supplier_id")
        assert outcome.values == [3, 1, 2]

    def test_single_key_table_excluded(self):
        outcome = intersect_keys([_result("a", [1, 2]), _result("b", [7, 7])], "supplier_id")
        assert outcome.values == [1, 2]
        assert outcome.tables_used == ["a"]
        assert outcome.tables_excluded[0].table == "b"
        assert outcome.tables_excluded[0].reason == "1 distinct key value(s)"

    def test_single_key_table_kept_when_configured(self):
        outcome = intersect_keys(
            [_result("a", [1, 2]), _result("b", [2])],
            "supplier_id",
            exclude_single_key_tables=False,
        )
        assert outcome.values == [2]
        assert outcome.tables_used == ["a", "b"]

    def test_missing_key_and_failed_tables_excluded(self):
        failed = TableResult(table="c", sql="", error="E-2005: boom")
        outcome = intersect_keys(
            [_result("a", [1, 2]), _result("b", [1, 2], key="id"), failed],
            "supplier_id",
        )
        reasons = {e.table: e.reason for e in outcome.tables_excluded}
        assert reasons == {"b": "no column 'supplier_id'", "c": "query failed"}

    def test_nulls_ignored(self):
        outcome = intersect_keys([_result("a", [None, 1, 2]), _result("b", [None, 2, 5])], "supplier_id")
        assert outcome.values == [2]

    def test_display_limit_truncates(self):
        keys = list(range(10))
        outcome = intersect_keys([_result("a", keys), _result("b", keys)], "supplier_id", display_limit=4)
        assert outcome.values == [0, 1, 2, 3]
        assert outcome.total == 10
        assert outcome.truncated

    def test_no_usable_tables(self):
        outcome = intersect_keys([_result("a", [1])], "supplier_id")
        assert outcome.values == []
        assert outcome.total == 0

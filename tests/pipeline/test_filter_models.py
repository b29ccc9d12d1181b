"""Tests for filter models: specs, tagged filter variants, filter sets."""

import pytest
from pydantic import ValidationError

from src.pipeline.models.filter import (
    FilterOperator,
    FilterSet,
    FilterSpec,
    LiteralFilter,
    MatchedFilter,
    SimilarityMatch,
)


def _matched(**overrides) -> MatchedFilter:
    fields = dict(
        requirement="origin similar to Ecuador",
        table="products",
        column="origin",
        operator="=",
        value="Ecuador",
    )
    fields.update(overrides)
    return MatchedFilter(**fields)


class TestFilterSpec:
    """Tests for the model output item."""

    def test_numeric_value_coerced_to_string(self):
        spec = FilterSpec(requirement="r", table="t", column="c", operator=">", value=70)
        assert spec.value == "70"
        assert spec.operator is FilterOperator.gt

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValidationError):
            FilterSpec(requirement="r", table="t", column="c", operator="LIKE", value="x")

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError):
            FilterSpec(requirement="r", table="t", column="c", operator="=")

    def test_range_operators(self):
        assert {op for op in FilterOperator if op.is_range} == {
            FilterOperator.gt, FilterOperator.gte, FilterOperator.lt, FilterOperator.lte,
        }


class TestMatchedFilter:
    """Tests for similarity-matched filters."""

    def test_defaults(self):
        flt = _matched()
        assert flt.kind == "matched"
        assert flt.matches is None
        assert flt.min_similarity == 0.4
        assert flt.pending

    def test_accepted_matches_sorted_by_score(self):
        flt = _matched(matches=[
            SimilarityMatch(value="Peru", score=0.5),
            SimilarityMatch(value="Ecuador", score=0.95),
            SimilarityMatch(value="Colombia", score=0.1),
        ])
        assert [m.value for m in flt.accepted_matches()] == ["Ecuador", "Peru"]

    def test_threshold_is_inclusive(self):
        flt = _matched(matches=[SimilarityMatch(value="Peru", score=0.4)])
        assert [m.value for m in flt.accepted_matches()] == ["Peru"]

    def test_unresolved_has_no_accepted_matches(self):
        assert _matched().accepted_matches() == []

    @pytest.mark.parametrize("bad", [-0.1, 1.5])
    def test_threshold_validated_on_assignment(self, bad):
        flt = _matched()
        with pytest.raises(ValidationError):
            flt.min_similarity = bad
        assert flt.min_similarity == 0.4

    def test_begin_resolution_bumps_version(self):
        flt = _matched(matches=[], resolution_error="E-2002: old")
        stamp = flt.begin_resolution()
        assert stamp == 1
        assert flt.matches is None
        assert flt.resolution_error is None
        assert flt.is_current(1)
        flt.begin_resolution()
        assert not flt.is_current(1)


class TestFilterSet:
    """Tests for the ordered filter collection."""

    def test_discriminated_union_from_dicts(self):
        fs = FilterSet.model_validate({
            "cycle": 2,
            "filters": [
                {"kind": "literal", "requirement": "r", "table": "t", "column": "a", "operator": ">", "value": "1"},
                {"kind": "matched", "requirement": "r", "table": "t", "column": "b", "operator": "=", "value": "x"},
            ],
        })
        assert isinstance(fs.filters[0], LiteralFilter)
        assert isinstance(fs.filters[1], MatchedFilter)

    def test_enabled_skips_disabled(self):
        fs = FilterSet(filters=[_matched(), _matched(column="name", disabled=True)])
        assert [f.column for f in fs.enabled()] == ["origin"]

    def test_get_out_of_range(self):
        with pytest.raises(IndexError):
            FilterSet().get(0)

    def test_to_spec_uses_current_value(self):
        flt = _matched()
        flt.value = "Peru"
        assert flt.to_spec().value == "Peru"

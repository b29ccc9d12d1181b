"""Mutable filter state and the derived filter table view.

FilterState wraps the live FilterSet and applies user edits to it by
position. Rendering is a separate pure function: ``render_rows`` derives
the accepted matches from each filter's scores and threshold at call time
and never touches the filters, so re-rendering is free of side effects
and threshold changes never need a new similarity call.
"""

import json
import logging
from typing import Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from src.catalog.metadata import ColumnMetadata
from src.errors.domain import NotFoundError, ValidationError
from src.pipeline.models.filter import (
    DEFAULT_MIN_SIMILARITY,
    FilterSet,
    FilterSpec,
    LiteralFilter,
    MatchedFilter,
    SimilarityMatch,
)

logger = logging.getLogger(__name__)


def build_filter(
    spec: FilterSpec,
    index: dict[tuple[str, str], ColumnMetadata],
    default_min_similarity: float = DEFAULT_MIN_SIMILARITY,
) -> LiteralFilter | MatchedFilter:
    """Choose the filter variant from the column's catalog category.

    Columns missing from the catalog are compared literally.
    """
    fields = spec.model_dump()
    meta = index.get((spec.table, spec.column))
    if meta is not None and meta.category.is_fuzzy:
        return MatchedFilter(**fields, min_similarity=default_min_similarity)
    return LiteralFilter(**fields)


def build_filter_set(
    specs: list[FilterSpec],
    index: dict[tuple[str, str], ColumnMetadata],
    cycle: int,
    default_min_similarity: float = DEFAULT_MIN_SIMILARITY,
) -> FilterSet:
    """Build a fresh FilterSet from extracted specs."""
    return FilterSet(
        cycle=cycle,
        filters=[build_filter(s, index, default_min_similarity) for s in specs],
    )


class FilterRow(BaseModel):
    """Display view of one filter."""

    index: int
    requirement: str
    table: str
    column: str
    operator: str
    value: str
    disabled: bool
    status: Literal["literal", "pending", "resolved", "failed"]
    min_similarity: float | None = None
    accepted: list[SimilarityMatch] = Field(default_factory=list)
    candidates: int = 0
    error: str | None = None


def render_rows(filter_set: FilterSet) -> list[FilterRow]:
    """Derive the filter table from a FilterSet.

    A pure function of the filters and their thresholds.
    """
    rows = []
    for i, flt in enumerate(filter_set.filters):
        row = FilterRow(
            index=i,
            requirement=flt.requirement,
            table=flt.table,
            column=flt.column,
            operator=flt.operator.value,
            value=flt.value,
            disabled=flt.disabled,
            status="literal",
        )
        if isinstance(flt, MatchedFilter):
            row.min_similarity = flt.min_similarity
            if flt.resolution_error:
                row.status = "failed"
                row.error = flt.resolution_error
            elif flt.matches is None:
                row.status = "pending"
            else:
                row.status = "resolved"
                row.accepted = flt.accepted_matches()
                row.candidates = len(flt.matches)
        rows.append(row)
    return rows


class FilterState:
    """The live, user-editable filter set.

    Filters are addressed by position; several filters may target the
    same (table, column) pair.
    """

    def __init__(self, filter_set: FilterSet | None = None) -> None:
        self._filter_set = filter_set or FilterSet()

    @property
    def filter_set(self) -> FilterSet:
        return self._filter_set

    def replace(self, filter_set: FilterSet) -> None:
        """Replace the whole set; filters from earlier cycles are dropped."""
        self._filter_set = filter_set

    def _get(self, index: int) -> LiteralFilter | MatchedFilter:
        try:
            return self._filter_set.get(index)
        except IndexError:
            raise NotFoundError("Filter", str(index)) from None

    def set_disabled(self, index: int, disabled: bool) -> None:
        """Enable or disable a filter; nothing else about it changes."""
        self._get(index).disabled = disabled

    def edit_value(self, index: int, value: str) -> MatchedFilter | None:
        """Change a filter's value.

        Returns:
            The filter if it needs similarity re-resolution, else None.
        """
        flt = self._get(index)
        flt.value = value
        if isinstance(flt, MatchedFilter):
            return flt
        return None

    def set_threshold(self, index: int, min_similarity: float) -> None:
        """Set a matched filter's acceptance threshold.

        Raises:
            NotFoundError: If no filter exists at ``index``.
            ValidationError: If the filter is literal or the threshold is
                outside [0, 1].
        """
        flt = self._get(index)
        if not isinstance(flt, MatchedFilter):
            raise ValidationError(
                f"Filter {index} on {flt.table}.{flt.column} is compared literally and has no threshold"
            )
        try:
            flt.min_similarity = min_similarity
        except PydanticValidationError:
            raise ValidationError(
                f"Similarity threshold must be between 0 and 1, got {min_similarity}"
            ) from None

    def enabled_filters(self) -> list[LiteralFilter | MatchedFilter]:
        return self._filter_set.enabled()

    def find(self, table: str, column: str) -> list[int]:
        """Positions of the filters on a (table, column) pair."""
        return [
            i
            for i, f in enumerate(self._filter_set.filters)
            if f.table == table and f.column == column
        ]

    def summary(self) -> str:
        """JSON summary of the enabled filters in the extractor's output shape.

        Used as the assistant turn when the user asks for an update.
        """
        payload = {"filters": [f.to_spec().model_dump(mode="json") for f in self.enabled_filters()]}
        return json.dumps(payload)

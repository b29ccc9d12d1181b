"""Filter data models for natural-language filter extraction.

This module defines the type hierarchy for the filter pipeline:
FilterSpec (LLM output) → LiteralFilter | MatchedFilter (editable state)
→ QueryPlan (parameterized SQL, see models/query.py). All models are
Pydantic v2 for validation and serialization.

A filter is a tagged variant selected by the column category: columns
classified as enum or embedding become MatchedFilters resolved through
similarity scoring; every other column becomes a LiteralFilter compared
with its operator and value.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MIN_SIMILARITY = 0.4

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FilterOperator(str, Enum):
    """Allowed comparison operators."""

    eq = "="
    neq = "!="
    gt = ">"
    gte = ">="
    lt = "<"
    lte = "<="

    @property
    def is_range(self) -> bool:
        """True for ordering comparisons that need numeric operands."""
        return self in (FilterOperator.gt, FilterOperator.gte, FilterOperator.lt, FilterOperator.lte)


# ---------------------------------------------------------------------------
# LLM output
# ---------------------------------------------------------------------------


class FilterSpec(BaseModel):
    """One filter as produced by the language model."""

    requirement: str = Field(..., description="Verbatim source requirement text.")
    table: str = Field(..., description="Table the filter applies to.")
    column: str = Field(..., description="Column the filter applies to.")
    operator: FilterOperator = Field(..., description="Comparison operator.")
    value: str = Field(..., description="Comparison value as text.")

    @field_validator("value", mode="before")
    @classmethod
    def _stringify_value(cls, v: Any) -> Any:
        if isinstance(v, bool):
            return str(v).lower()
        if isinstance(v, (int, float)):
            return str(v)
        return v


# ---------------------------------------------------------------------------
# Editable filter state
# ---------------------------------------------------------------------------


class SimilarityMatch(BaseModel):
    """A candidate column value and how closely it matches the filter value."""

    value: Any = Field(..., description="Distinct column value.")
    score: float = Field(..., description="Similarity score against the filter value.")


class _FilterBase(BaseModel):
    """Fields shared by both filter variants."""

    model_config = ConfigDict(validate_assignment=True)

    requirement: str
    table: str
    column: str
    operator: FilterOperator
    value: str
    disabled: bool = False

    def to_spec(self) -> FilterSpec:
        """Project back to the LLM output shape with the current value."""
        return FilterSpec(
            requirement=self.requirement,
            table=self.table,
            column=self.column,
            operator=self.operator,
            value=self.value,
        )


class LiteralFilter(_FilterBase):
    """Filter resolved literally via operator and value."""

    kind: Literal["literal"] = "literal"


class MatchedFilter(_FilterBase):
    """Filter resolved by similarity matching against column values.

    ``matches`` is None while resolution is pending. ``version`` is a
    monotonic stamp bumped by every resolution so responses issued for an
    older value can be recognised and discarded.
    """

    kind: Literal["matched"] = "matched"
    matches: list[SimilarityMatch] | None = None
    min_similarity: float = Field(default=DEFAULT_MIN_SIMILARITY, ge=0.0, le=1.0)
    version: int = 0
    resolution_error: str | None = None

    @property
    def pending(self) -> bool:
        """True while a resolution is outstanding."""
        return self.matches is None and self.resolution_error is None

    def begin_resolution(self) -> int:
        """Mark the filter pending and return the new resolution stamp."""
        self.version += 1
        self.matches = None
        self.resolution_error = None
        return self.version

    def is_current(self, stamp: int) -> bool:
        """Check whether a resolution stamp is still the latest."""
        return stamp == self.version

    def accepted_matches(self) -> list[SimilarityMatch]:
        """Matches at or above the threshold, best first.

        Derived at call time from ``matches`` and ``min_similarity``; a
        threshold change never needs a re-fetch.
        """
        if not self.matches:
            return []
        accepted = [m for m in self.matches if m.score >= self.min_similarity]
        return sorted(accepted, key=lambda m: m.score, reverse=True)


Filter = Annotated[LiteralFilter | MatchedFilter, Field(discriminator="kind")]


class FilterSet(BaseModel):
    """Ordered filters produced by one generation cycle."""

    cycle: int = Field(default=0, description="Generation cycle that produced this set.")
    filters: list[Filter] = Field(default_factory=list)

    def get(self, index: int) -> LiteralFilter | MatchedFilter:
        """Get a filter by position.

        Raises:
            IndexError: If no filter exists at that position.
        """
        if index < 0 or index >= len(self.filters):
            raise IndexError(index)
        return self.filters[index]

    def enabled(self) -> list[LiteralFilter | MatchedFilter]:
        """Filters that are not disabled, in order."""
        return [f for f in self.filters if not f.disabled]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class FilterCompilationError(Exception):
    """Raised when a filter cannot be compiled into a query clause."""

    def __init__(self, code: str, message: str) -> None:
        """Initialize with a registry error code and message.

        Args:
            code: Error code in E-XXXX format.
            message: Human-readable description of the failure.
        """
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class ResolutionError(Exception):
    """Raised when similarity resolution fails for one filter."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class ConversationStateError(Exception):
    """Raised when a conversation operation is invalid in the current state."""

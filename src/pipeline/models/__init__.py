"""Pydantic models for the filter pipeline."""

from src.pipeline.models.conversation import ChatMessage
from src.pipeline.models.filter import (
    DEFAULT_MIN_SIMILARITY,
    ConversationStateError,
    Filter,
    FilterCompilationError,
    FilterOperator,
    FilterSet,
    FilterSpec,
    LiteralFilter,
    MatchedFilter,
    ResolutionError,
    SimilarityMatch,
)
from src.pipeline.models.query import (
    ExcludedTable,
    KeyIntersection,
    QueryOutcome,
    QueryPlan,
    TableResult,
)

__all__ = [
    "ChatMessage",
    "DEFAULT_MIN_SIMILARITY",
    "ConversationStateError",
    "Filter",
    "FilterCompilationError",
    "FilterOperator",
    "FilterSet",
    "FilterSpec",
    "LiteralFilter",
    "MatchedFilter",
    "ResolutionError",
    "SimilarityMatch",
    "ExcludedTable",
    "KeyIntersection",
    "QueryOutcome",
    "QueryPlan",
    "TableResult",
]

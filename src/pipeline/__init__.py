"""Filter pipeline: extraction, resolution, editing, compilation.

requirement → FilterExtractor (streamed) → FilterState → SimilarityResolver
→ user edits → query compiler → per-table results + key intersection.
QuerySession wires the pieces together.
"""

from src.pipeline.compiler import build_query_plans, intersect_keys, run_query_plans
from src.pipeline.conversation import ConversationController, ConversationState
from src.pipeline.events import Notice, SessionEventEmitter, SessionObserver
from src.pipeline.extractor import ExtractionSnapshot, FilterExtractor
from src.pipeline.resolver import SimilarityResolver
from src.pipeline.session import QuerySession, SessionSettings
from src.pipeline.state import FilterRow, FilterState, render_rows

__all__ = [
    "build_query_plans",
    "intersect_keys",
    "run_query_plans",
    "ConversationController",
    "ConversationState",
    "Notice",
    "SessionEventEmitter",
    "SessionObserver",
    "ExtractionSnapshot",
    "FilterExtractor",
    "SimilarityResolver",
    "QuerySession",
    "SessionSettings",
    "FilterRow",
    "FilterState",
    "render_rows",
]

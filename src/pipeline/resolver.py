"""Similarity resolution for filters on enum and embedding columns.

For each MatchedFilter the resolver reads the column's distinct values,
marks the filter pending, scores every value against the filter's current
value through the similarity endpoint, and stores the (value, score)
pairs as the filter's matches. A column with no values resolves to an
empty match list without a remote call.

Every resolution carries a version stamp taken from the filter when the
resolution is scheduled. A response whose stamp is no longer current, or
whose topic differs from the filter's value, is discarded, so the last
edit always wins.
"""

import logging
from typing import Any

import duckdb

from src.errors.formatter import CocoaGPTError
from src.llm.client import LLMClientError
from src.pipeline.events import Notice, SessionEventEmitter
from src.pipeline.models.filter import MatchedFilter, ResolutionError, SimilarityMatch
from src.store.tabular_store import TabularStore

logger = logging.getLogger(__name__)


def zip_scores(values: list[Any], matrix: list[list[float]], flt: MatchedFilter) -> list[SimilarityMatch]:
    """Pair each distinct value with its score against the sole topic.

    Args:
        values: Distinct column values, in the order they were sent.
        matrix: Similarity response, one row per value.
        flt: The filter being resolved (for error context).

    Returns:
        One SimilarityMatch per value.

    Raises:
        ResolutionError: If the response does not have exactly one score
            per value.
    """
    if len(matrix) != len(values) or any(not row for row in matrix):
        error = CocoaGPTError.from_code(
            "E-2003",
            table=flt.table,
            column=flt.column,
            scores=len(matrix),
            values=len(values),
        )
        raise ResolutionError(error.code, error.message)
    return [SimilarityMatch(value=v, score=row[0]) for v, row in zip(values, matrix, strict=True)]


class SimilarityResolver:
    """Resolves MatchedFilters against the store via the similarity endpoint."""

    def __init__(
        self,
        store: TabularStore,
        similarity_client: Any,
        emitter: SessionEventEmitter,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Store holding the filtered tables.
            similarity_client: Object with an async ``similarity(docs, topics)``
                method (SimilarityClient in production).
            emitter: Receives pending/resolved events and failure notices.
        """
        self._store = store
        self._similarity = similarity_client
        self._emitter = emitter

    async def resolve(self, index: int, flt: MatchedFilter, stamp: int | None = None) -> bool:
        """Resolve one filter.

        Failures are recorded on the filter and emitted as notices; they
        never propagate, so concurrent resolutions of other filters are
        unaffected.

        Args:
            index: Position of the filter in its set (for events).
            flt: The filter to resolve.
            stamp: Resolution stamp already taken with
                ``flt.begin_resolution()``. A new one is taken when omitted.

        Returns:
            True if matches were stored, False on failure or stale response.
        """
        if stamp is None:
            stamp = flt.begin_resolution()
        topic = flt.value

        try:
            values = self._store.distinct_values(flt.table, flt.column)
        except duckdb.Error as e:
            if not flt.is_current(stamp):
                return False
            error = CocoaGPTError.from_code(
                "E-2002", value=topic, table=flt.table, column=flt.column, details=str(e)
            )
            await self._fail(index, flt, error.code, error.message)
            return False

        if not self._is_current(flt, stamp, topic):
            return False
        await self._emitter.emit_filter_pending(index, flt)

        if not values:
            if not self._is_current(flt, stamp, topic):
                return False
            flt.matches = []
            logger.debug("No values to match on %s.%s", flt.table, flt.column)
            await self._emitter.emit_filter_resolved(index, flt)
            return True

        try:
            matrix = await self._similarity.similarity([str(v) for v in values], [topic])
        except LLMClientError as e:
            if not self._is_current(flt, stamp, topic):
                logger.debug("Dropping failed stale resolution for %s.%s", flt.table, flt.column)
                return False
            error = CocoaGPTError.from_code("E-3002", details=e.message)
            await self._fail(index, flt, error.code, f"{flt.table}.{flt.column}: {error.message}")
            return False

        if not self._is_current(flt, stamp, topic):
            logger.debug(
                "Discarding stale resolution of %r for %s.%s (stamp %d, now %d)",
                topic, flt.table, flt.column, stamp, flt.version,
            )
            return False

        try:
            flt.matches = zip_scores(values, matrix, flt)
        except ResolutionError as e:
            await self._fail(index, flt, e.code, e.message)
            return False

        logger.debug(
            "Resolved %r on %s.%s: %d candidates, %d accepted",
            topic, flt.table, flt.column, len(flt.matches), len(flt.accepted_matches()),
        )
        await self._emitter.emit_filter_resolved(index, flt)
        return True

    @staticmethod
    def _is_current(flt: MatchedFilter, stamp: int, topic: str) -> bool:
        """A response applies only to the latest stamp and the value it scored."""
        return flt.is_current(stamp) and flt.value == topic

    async def _fail(self, index: int, flt: MatchedFilter, code: str, message: str) -> None:
        """Record a resolution failure and notify observers."""
        flt.matches = None
        flt.resolution_error = f"{code}: {message}"
        await self._emitter.emit_filter_resolved(index, flt)
        await self._emitter.emit_notice(Notice(level="warning", code=code, message=message))

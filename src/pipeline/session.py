"""Query session: the explicit context for one user's work.

QuerySession owns everything that changes while the user works: the
column catalog, the conversation history, the live filter set and the
in-flight similarity resolutions. Front ends drive it through its methods
and observe it through a SessionEventEmitter; nothing is module-global.

Example:
    async with ChatClient(llm_config) as chat, SimilarityClient(sim_config) as sim:
        session = QuerySession(TabularStore(), chat, sim)
        await session.import_files(["products.csv", "suppliers.csv"])
        await session.submit("cocoa content above 70% from Ecuador")
        await session.wait_for_resolutions()
        outcome = await session.apply(key="supplier_id")
"""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import duckdb
from pydantic import BaseModel, Field

from src.catalog.metadata import (
    CATALOG_TABLE,
    DEFAULT_ENUM_MAX_DISTINCT,
    ColumnMetadata,
    build_catalog,
    catalog_index,
    load_catalog,
)
from src.errors.formatter import CocoaGPTError
from src.llm.client import LLMClientError
from src.llm.config import DEFAULT_MODEL
from src.pipeline.compiler import (
    DEFAULT_DISPLAY_LIMIT,
    build_query_plans,
    intersect_keys,
    run_query_plans,
)
from src.pipeline.conversation import ConversationController
from src.pipeline.events import Notice, SessionEventEmitter
from src.pipeline.extractor import ExtractionSnapshot, FilterExtractor
from src.pipeline.models.conversation import ChatMessage
from src.pipeline.models.filter import DEFAULT_MIN_SIMILARITY, FilterSet, MatchedFilter
from src.pipeline.models.query import QueryOutcome
from src.pipeline.prompts import build_schema_text, render_system_prompt
from src.pipeline.questions import QuestionInfo, QuestionSuggester
from src.pipeline.resolver import SimilarityResolver
from src.pipeline.state import FilterState, build_filter_set
from src.store.importers import import_files
from src.store.models import ImportReport, TableSchema
from src.store.tabular_store import TabularStore

logger = logging.getLogger(__name__)


class SessionSettings(BaseModel):
    """Tunables for a session, usually taken from the CLI configuration."""

    model: str = DEFAULT_MODEL
    default_min_similarity: float = Field(default=DEFAULT_MIN_SIMILARITY, ge=0.0, le=1.0)
    enum_max_distinct: int = DEFAULT_ENUM_MAX_DISTINCT
    overrides_table: str | None = "metadata"
    intersection_display_limit: int = DEFAULT_DISPLAY_LIMIT
    exclude_single_key_tables: bool = True
    prompt_template: str | None = None


def _notice_from_text(text: str, level: str = "error") -> Notice:
    """Split an 'E-XXXX: message' string into a Notice."""
    code, sep, message = text.partition(": ")
    if not sep or not code.startswith("E-"):
        return Notice(level=level, message=text)
    return Notice(level=level, code=code, message=message)


class QuerySession:
    """Single-user session over one store."""

    def __init__(
        self,
        store: TabularStore,
        chat_client: Any,
        similarity_client: Any,
        settings: SessionSettings | None = None,
        emitter: SessionEventEmitter | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            store: Store holding the user's tables.
            chat_client: Open ChatClient (or a fake with the same methods).
            similarity_client: Open SimilarityClient (or a fake).
            settings: Session tunables; defaults when omitted.
            emitter: Event emitter; a new one when omitted.
        """
        self.store = store
        self.settings = settings or SessionSettings()
        self.emitter = emitter or SessionEventEmitter()
        self.conversation = ConversationController()
        self.state = FilterState()
        self._extractor = FilterExtractor(chat_client, self.settings.model)
        self._resolver = SimilarityResolver(store, similarity_client, self.emitter)
        self._questions = QuestionSuggester(chat_client, self.settings.model)
        self._catalog: list[ColumnMetadata] = load_catalog(store)
        self._cycle = 0
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Dataset
    # ------------------------------------------------------------------

    @property
    def catalog(self) -> list[ColumnMetadata]:
        return self._catalog

    @property
    def filter_set(self) -> FilterSet:
        return self.state.filter_set

    def hidden_tables(self) -> set[str]:
        """Tables kept out of the user schema and the prompt."""
        hidden = {CATALOG_TABLE}
        if self.settings.overrides_table:
            hidden.add(self.settings.overrides_table)
        return hidden

    async def import_files(self, paths: Iterable[str | Path]) -> list[ImportReport]:
        """Import files into the store and rebuild the catalog.

        Per-file and per-table failures are emitted as notices; the
        remaining files are still imported.
        """
        reports = import_files(self.store, paths)
        for report in reports:
            for text in report.errors:
                await self.emitter.emit_notice(_notice_from_text(text))
        try:
            self.rebuild_catalog()
        except duckdb.Error as e:
            error = CocoaGPTError.from_code("E-4001", details=str(e))
            await self.emitter.emit_notice(Notice(code=error.code, message=error.message))
        return reports

    def rebuild_catalog(self) -> list[ColumnMetadata]:
        """Recompute the column catalog after the dataset changed.

        Raises:
            duckdb.Error: If the statistics queries fail.
        """
        self._catalog = build_catalog(
            self.store,
            enum_max_distinct=self.settings.enum_max_distinct,
            overrides_table=self.settings.overrides_table,
        )
        return self._catalog

    def schema(self) -> list[TableSchema]:
        """User tables with DDL and columns."""
        return self.store.schema(exclude=self.hidden_tables())

    def system_prompt(self) -> str:
        """The system prompt with the current schema substituted."""
        schema_text = build_schema_text(self.schema(), self._catalog)
        return render_system_prompt(schema_text, self.settings.prompt_template)

    async def suggest_questions(self) -> QuestionInfo:
        """Suggested questions for the current schema (cached per schema)."""
        return await self._questions.suggest(self.schema())

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def submit(self, requirement: str) -> FilterSet:
        """Start a new conversation from a requirement and extract filters."""
        messages = self.conversation.start(self.system_prompt(), requirement)
        return await self._extract(messages)

    async def update(self, instruction: str) -> FilterSet:
        """Ask for a revised filter set given the current filters.

        Raises:
            ConversationStateError: If no requirement was submitted yet.
        """
        messages = self.conversation.follow_up(self.state.summary(), instruction)
        return await self._extract(messages)

    async def _extract(self, messages: list[ChatMessage]) -> FilterSet:
        """Stream one extraction cycle into the filter state."""
        self._cancel_resolutions()
        self._cycle += 1
        cycle = self._cycle
        index = catalog_index(self._catalog)
        final = ExtractionSnapshot(final=True, parsed=False)

        try:
            async for snapshot in self._extractor.stream_filters(messages):
                filter_set = build_filter_set(
                    snapshot.specs, index, cycle, self.settings.default_min_similarity
                )
                self.state.replace(filter_set)
                await self.emitter.emit_filters_changed(filter_set, snapshot.final)
                if snapshot.final:
                    final = snapshot
        except LLMClientError as e:
            empty = FilterSet(cycle=cycle)
            self.state.replace(empty)
            await self.emitter.emit_filters_changed(empty, True)
            error = CocoaGPTError.from_code("E-3001", details=e.message)
            await self.emitter.emit_notice(Notice(code=error.code, message=error.message))
            return empty

        filter_set = self.state.filter_set
        if not final.specs:
            error = CocoaGPTError.from_code("E-2001")
            await self.emitter.emit_notice(
                Notice(level="warning", code=error.code, message=error.message)
            )
            return filter_set

        logger.info("Cycle %d produced %d filters", cycle, len(filter_set.filters))
        for i, flt in enumerate(filter_set.filters):
            if isinstance(flt, MatchedFilter):
                self._schedule_resolution(i, flt)
        return filter_set

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_disabled(self, index: int, disabled: bool) -> None:
        self.state.set_disabled(index, disabled)

    def set_threshold(self, index: int, min_similarity: float) -> None:
        self.state.set_threshold(index, min_similarity)

    def edit_value(self, index: int, value: str) -> None:
        """Change a filter's value, re-resolving matched filters.

        The filter is marked pending before this returns, so a response
        still in flight for the previous value is discarded. Must be called
        from a running event loop.
        """
        flt = self.state.edit_value(index, value)
        if flt is not None:
            self._schedule_resolution(index, flt)

    def _schedule_resolution(self, index: int, flt: MatchedFilter) -> None:
        stamp = flt.begin_resolution()
        task = asyncio.create_task(self._resolver.resolve(index, flt, stamp))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_resolutions(self) -> None:
        """Cancel resolutions for filters that are about to be replaced."""
        for task in self._tasks:
            task.cancel()

    @property
    def pending_resolutions(self) -> int:
        return len(self._tasks)

    async def wait_for_resolutions(self) -> None:
        """Wait until every in-flight resolution has finished."""
        while self._tasks:
            results = await asyncio.gather(*list(self._tasks), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Resolution task failed: %s", result)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def apply(self, key: str | None = None) -> QueryOutcome:
        """Compile the enabled filters, run them and intersect on ``key``.

        Filters whose resolution is still pending contribute no clause.
        """
        plans = build_query_plans(self.state.enabled_filters())
        results = run_query_plans(self.store, plans)
        for result in results:
            if result.error:
                await self.emitter.emit_notice(_notice_from_text(result.error))

        outcome = QueryOutcome(results=results)
        if key:
            outcome.intersection = intersect_keys(
                results,
                key,
                display_limit=self.settings.intersection_display_limit,
                exclude_single_key_tables=self.settings.exclude_single_key_tables,
            )
        return outcome

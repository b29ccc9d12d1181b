"""Observer pattern for session events.

Provides the SessionObserver protocol and SessionEventEmitter class for
notifying front ends when the filter set changes, when a filter's
similarity resolution starts or lands, and when a failure needs to be
shown to the user.
"""

import logging
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from src.pipeline.models.filter import FilterSet, MatchedFilter

logger = logging.getLogger(__name__)


class Notice(BaseModel):
    """A user-visible message about a failure or outcome."""

    level: Literal["info", "warning", "error"] = "error"
    code: str | None = Field(default=None, description="Registry error code, if any")
    message: str


class SessionObserver(Protocol):
    """Observer protocol for session events.

    Implementations can subscribe to session events via SessionEventEmitter
    to re-render the filter table or surface notices.
    """

    async def on_filters_changed(self, filter_set: FilterSet, final: bool) -> None:
        """Called when the live FilterSet is replaced.

        Args:
            filter_set: The new filter set.
            final: True once the generation stream has completed.
        """
        ...

    async def on_filter_pending(self, index: int, flt: MatchedFilter) -> None:
        """Called when a filter's similarity resolution begins.

        Args:
            index: Position of the filter in the set.
            flt: The filter, now with ``matches`` unset.
        """
        ...

    async def on_filter_resolved(self, index: int, flt: MatchedFilter) -> None:
        """Called when a filter's resolution completes or fails.

        Args:
            index: Position of the filter in the set.
            flt: The filter with ``matches`` or ``resolution_error`` set.
        """
        ...

    async def on_notice(self, notice: Notice) -> None:
        """Called for user-visible failures and outcomes.

        Args:
            notice: The message to show.
        """
        ...


class SessionEventEmitter:
    """Emits session events to registered observers.

    Exceptions from individual observers are caught and logged to prevent
    one broken observer from stopping event delivery to others.
    """

    def __init__(self) -> None:
        """Initialize emitter with empty observer list."""
        self._observers: list[SessionObserver] = []

    def add_observer(self, observer: SessionObserver) -> None:
        """Register an observer to receive session events."""
        self._observers.append(observer)

    def remove_observer(self, observer: SessionObserver) -> None:
        """Unregister an observer."""
        self._observers.remove(observer)

    async def emit_filters_changed(self, filter_set: FilterSet, final: bool) -> None:
        """Emit filter set replacement to all observers."""
        for observer in self._observers:
            try:
                await observer.on_filters_changed(filter_set, final)
            except Exception as e:
                logger.error(
                    "Observer %s failed on_filters_changed: %s",
                    type(observer).__name__,
                    e,
                )

    async def emit_filter_pending(self, index: int, flt: MatchedFilter) -> None:
        """Emit resolution started to all observers."""
        for observer in self._observers:
            try:
                await observer.on_filter_pending(index, flt)
            except Exception as e:
                logger.error(
                    "Observer %s failed on_filter_pending: %s",
                    type(observer).__name__,
                    e,
                )

    async def emit_filter_resolved(self, index: int, flt: MatchedFilter) -> None:
        """Emit resolution finished to all observers."""
        for observer in self._observers:
            try:
                await observer.on_filter_resolved(index, flt)
            except Exception as e:
                logger.error(
                    "Observer %s failed on_filter_resolved: %s",
                    type(observer).__name__,
                    e,
                )

    async def emit_notice(self, notice: Notice) -> None:
        """Emit a notice to all observers.

        Notices are also logged so failures stay visible without observers.
        """
        level = logging.getLevelName(notice.level.upper())
        logger.log(level, "%s %s", notice.code or "-", notice.message)
        for observer in self._observers:
            try:
                await observer.on_notice(notice)
            except Exception as e:
                logger.error(
                    "Observer %s failed on_notice: %s",
                    type(observer).__name__,
                    e,
                )

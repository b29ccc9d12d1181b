"""Observer that records session events for assertions."""

from src.pipeline.events import Notice
from src.pipeline.models.filter import FilterSet, MatchedFilter


class RecordingObserver:
    """Records every session event in arrival order."""

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.notices: list[Notice] = []

    async def on_filters_changed(self, filter_set: FilterSet, final: bool) -> None:
        self.events.append(("changed", len(filter_set.filters), final))

    async def on_filter_pending(self, index: int, flt: MatchedFilter) -> None:
        self.events.append(("pending", index, flt.matches))

    async def on_filter_resolved(self, index: int, flt: MatchedFilter) -> None:
        self.events.append(("resolved", index, flt.resolution_error))

    async def on_notice(self, notice: Notice) -> None:
        self.notices.append(notice)
        self.events.append(("notice", notice.code))

"""Tests for streaming filter extraction."""

import pytest

from src.llm.client import LLMClientError
from src.pipeline.extractor import FilterExtractor, parse_partial_filters
from src.pipeline.models.conversation import ChatMessage
from tests.helpers import FakeChatClient, chunked, filters_json

COCOA = {
    "requirement": "cocoa content above 70%",
    "table": "products",
    "column": "cocoa_pct",
    "operator": ">",
    "value": "70",
}
ORIGIN = {
    "requirement": "origin similar to Ecuador",
    "table": "products",
    "column": "origin",
    "operator": "=",
    "value": "Ecuador",
}

MESSAGES = [
    ChatMessage(role="system", content="schema"),
    ChatMessage(role="user", content="dark Ecuador chocolate"),
]


async def _collect(extractor: FilterExtractor):
    return [s async for s in extractor.stream_filters(MESSAGES)]


class TestParsePartialFilters:
    """Tests for parsing truncated documents."""

    def test_complete_document(self):
        specs = parse_partial_filters(filters_json(COCOA, ORIGIN))
        assert [s.column for s in specs] == ["cocoa_pct", "origin"]

    def test_incomplete_trailing_item_skipped(self):
        text = filters_json(COCOA, ORIGIN)
        cut = text.index('"Ecuador"') + 4
        specs = parse_partial_filters(text[:cut])
        assert [s.column for s in specs] == ["cocoa_pct"]

    def test_truncated_prefix_parses_empty(self):
        assert parse_partial_filters('{"filt') == []

    def test_garbage_is_unparseable(self):
        assert parse_partial_filters("Sorry, I can't help") is None

    def test_non_object_is_unparseable(self):
        assert parse_partial_filters("[1, 2") is None


class TestFilterExtractor:
    """Tests for the streamed snapshot sequence."""

    def test_request_body(self):
        extractor = FilterExtractor(FakeChatClient(), model="gpt-4o-mini")
        body = extractor.build_request(MESSAGES)
        assert body["model"] == "gpt-4o-mini"
        assert body["stream"] is True
        assert body["messages"][1] == {"role": "user", "content": "dark Ecuador chocolate"}
        schema = body["response_format"]["json_schema"]["schema"]
        item = schema["properties"]["filters"]["items"]
        assert item["properties"]["operator"]["enum"] == ["=", "!=", ">", ">=", "<", "<="]
        assert set(item["required"]) == {"requirement", "table", "column", "operator", "value"}

    @pytest.mark.asyncio
    async def test_progressive_snapshots(self):
        chat = FakeChatClient(streams=[chunked(filters_json(COCOA, ORIGIN))])
        snapshots = await _collect(FilterExtractor(chat, model="m"))

        counts = [len(s.specs) for s in snapshots if not s.final]
        assert counts == sorted(counts)
        assert 1 in counts

        final = snapshots[-1]
        assert final.final and final.parsed
        assert [s.column for s in final.specs] == ["cocoa_pct", "origin"]
        assert final.specs[0].value == "70"

    @pytest.mark.asyncio
    async def test_unparseable_stream_gives_empty_final(self):
        chat = FakeChatClient(streams=[["I cannot ", "do that."]])
        snapshots = await _collect(FilterExtractor(chat, model="m"))
        assert len(snapshots) == 1
        assert snapshots[0].final
        assert not snapshots[0].parsed
        assert snapshots[0].specs == []

    @pytest.mark.asyncio
    async def test_final_keeps_last_good_parse(self):
        good = filters_json(COCOA)
        chat = FakeChatClient(streams=[[good, " trailing garbage"]])
        snapshots = await _collect(FilterExtractor(chat, model="m"))
        assert snapshots[-1].parsed
        assert [s.column for s in snapshots[-1].specs] == ["cocoa_pct"]

    @pytest.mark.asyncio
    async def test_endpoint_error_propagates(self):
        chat = FakeChatClient(error=LLMClientError("HTTP 500: down", status_code=500))
        with pytest.raises(LLMClientError):
            await _collect(FilterExtractor(chat, model="m"))

"""Streaming filter extraction from natural language.

Sends the conversation to the generation endpoint with a JSON schema
response format and parses the accumulated output after every received
chunk. Each successful parse yields a snapshot of the filters completed so
far, so a front end can show filters as they arrive; the final snapshot
carries the last good parse and is authoritative.

Example:
    extractor = FilterExtractor(chat_client, model="gpt-4o-mini")
    async for snapshot in extractor.stream_filters(messages):
        render(snapshot.specs)
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError
from pydantic_core import from_json

from src.pipeline.models.conversation import ChatMessage
from src.pipeline.models.filter import FilterSpec
from src.pipeline.prompts import filters_response_format

logger = logging.getLogger(__name__)


@dataclass
class ExtractionSnapshot:
    """Filters parsed from the stream at one point in time.

    Attributes:
        specs: Complete filter items parsed so far, in order.
        final: True for the last snapshot, emitted after the stream ends.
        parsed: False only on a final snapshot when no chunk ever parsed.
    """

    specs: list[FilterSpec] = field(default_factory=list)
    final: bool = False
    parsed: bool = True


def parse_partial_filters(buffer: str) -> list[FilterSpec] | None:
    """Parse a possibly truncated ``{"filters": [...]}`` document.

    Incomplete trailing strings are dropped by the partial parser, so an
    item that is still being written fails validation and is left out
    until a later chunk completes it.

    Args:
        buffer: Concatenated content received so far.

    Returns:
        Complete filter items, or None if the buffer is not parseable JSON.
    """
    try:
        data = from_json(buffer, allow_partial=True)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    items = data.get("filters")
    if not isinstance(items, list):
        return []

    specs = []
    for item in items:
        try:
            specs.append(FilterSpec.model_validate(item))
        except ValidationError:
            continue
    return specs


class FilterExtractor:
    """Issues structured generation requests and streams filter snapshots."""

    def __init__(self, chat_client: Any, model: str) -> None:
        """Initialize with an open chat client.

        Args:
            chat_client: Object with an async ``stream_chat(body)`` generator
                (ChatClient in production).
            model: Model identifier sent with every request.
        """
        self._chat = chat_client
        self.model = model

    def build_request(self, messages: list[ChatMessage]) -> dict[str, Any]:
        """Build the request body for a filter extraction call."""
        return {
            "model": self.model,
            "stream": True,
            "messages": [m.model_dump() for m in messages],
            "response_format": filters_response_format(),
        }

    async def stream_filters(self, messages: list[ChatMessage]) -> AsyncIterator[ExtractionSnapshot]:
        """Stream filter snapshots for a conversation.

        Args:
            messages: Full conversation history, system prompt first.

        Yields:
            One snapshot per successfully parsed chunk, then a final one.

        Raises:
            LLMClientError: If the endpoint call fails.
        """
        buffer = ""
        last_good: list[FilterSpec] | None = None
        chunks = 0

        async for delta in self._chat.stream_chat(self.build_request(messages)):
            chunks += 1
            buffer += delta
            specs = parse_partial_filters(buffer)
            if specs is None:
                continue
            last_good = specs
            yield ExtractionSnapshot(specs=specs)

        logger.debug(
            "Extraction stream finished: %d chunks, %d chars, %s filters",
            chunks,
            len(buffer),
            len(last_good) if last_good is not None else "no parseable",
        )
        yield ExtractionSnapshot(
            specs=last_good or [],
            final=True,
            parsed=last_good is not None,
        )

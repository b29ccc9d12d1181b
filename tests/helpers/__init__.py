"""Test helpers shared across test modules."""

from tests.helpers.fakes import (
    ORIGIN_SCORES,
    FakeChatClient,
    FakeSimilarityClient,
    GatedSimilarityClient,
    chunked,
    filters_json,
)
from tests.helpers.observers import RecordingObserver

__all__ = [
    "ORIGIN_SCORES",
    "FakeChatClient",
    "FakeSimilarityClient",
    "GatedSimilarityClient",
    "RecordingObserver",
    "chunked",
    "filters_json",
]

"""Clients for the remote generation and similarity endpoints."""

from src.llm.client import ChatClient, LLMClientError, SimilarityClient
from src.llm.config import (
    DEFAULT_CHAT_URL,
    DEFAULT_MODEL,
    DEFAULT_SIMILARITY_URL,
    LLMConfig,
    SimilarityConfig,
)

__all__ = [
    "ChatClient",
    "SimilarityClient",
    "LLMClientError",
    "LLMConfig",
    "SimilarityConfig",
    "DEFAULT_CHAT_URL",
    "DEFAULT_MODEL",
    "DEFAULT_SIMILARITY_URL",
]

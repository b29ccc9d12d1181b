"""Configuration for the remote generation and similarity endpoints.

Environment Variables:
    LLMFOUNDRY_TOKEN: Bearer token used for both endpoints when no api_key
        is configured explicitly.

The generation endpoint is any OpenAI-compatible chat completions URL that
supports streaming and ``response_format`` JSON schemas.
"""

import os

from pydantic import BaseModel, Field

DEFAULT_CHAT_URL = "https://llmfoundry.straive.com/openai/v1/chat/completions"
DEFAULT_SIMILARITY_URL = "https://llmfoundry.straive.com/similarity"
DEFAULT_MODEL = "gpt-4o-mini"


def get_api_key() -> str:
    """Get the bearer token from the environment.

    Returns:
        Token string, or empty string if not set.
    """
    return os.environ.get("LLMFOUNDRY_TOKEN", "")


class LLMConfig(BaseModel):
    """Generation endpoint settings."""

    chat_url: str = DEFAULT_CHAT_URL
    model: str = DEFAULT_MODEL
    api_key: str = Field(default_factory=get_api_key)
    timeout: float = 60.0


class SimilarityConfig(BaseModel):
    """Similarity endpoint settings."""

    url: str = DEFAULT_SIMILARITY_URL
    api_key: str = Field(default_factory=get_api_key)
    timeout: float = 60.0

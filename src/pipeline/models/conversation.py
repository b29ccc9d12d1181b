"""Chat message model shared by the conversation controller and extractor."""

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One turn of the conversation sent to the generation endpoint."""

    role: Literal["system", "user", "assistant"] = Field(..., description="Speaker role")
    content: str = Field(..., description="Message text")

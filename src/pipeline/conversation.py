"""Conversation history for filter extraction.

Two states: Fresh (no history) and Active. Submitting a requirement seeds
``[system, user]`` and enters Active; each follow-up appends the assistant
summary of the current filters and the user's instruction, so the next
extraction is conditioned on the whole exchange. History is never trimmed.
"""

import logging
from enum import Enum

from src.errors.formatter import CocoaGPTError
from src.pipeline.models.conversation import ChatMessage
from src.pipeline.models.filter import ConversationStateError

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    """Conversation lifecycle state."""

    fresh = "fresh"
    active = "active"


class ConversationController:
    """Owns the message history sent to the generation endpoint."""

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []

    @property
    def state(self) -> ConversationState:
        return ConversationState.active if self._messages else ConversationState.fresh

    @property
    def messages(self) -> list[ChatMessage]:
        """A copy of the history, oldest first."""
        return list(self._messages)

    def start(self, system_prompt: str, requirement: str) -> list[ChatMessage]:
        """Seed a new conversation with a requirement.

        Valid in either state; while Active it discards the old history and
        starts over.

        Returns:
            The messages to send.
        """
        if self._messages:
            logger.debug("Starting a new conversation; dropping %d messages", len(self._messages))
        self._messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=requirement),
        ]
        return self.messages

    def follow_up(self, summary: str, instruction: str) -> list[ChatMessage]:
        """Append the current filter summary and a follow-up instruction.

        Args:
            summary: Assistant turn describing the currently enabled filters.
            instruction: The user's update request.

        Returns:
            The full history to send.

        Raises:
            ConversationStateError: If no conversation has been started.
        """
        if self.state is ConversationState.fresh:
            raise ConversationStateError(str(CocoaGPTError.from_code("E-2006")))
        self._messages.append(ChatMessage(role="assistant", content=summary))
        self._messages.append(ChatMessage(role="user", content=instruction))
        return self.messages

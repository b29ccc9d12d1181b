"""Suggested questions for the loaded dataset.

Asks the generation endpoint for five questions answerable from the
schema. The answer (or the failure) is cached against a signature of the
schema and only recomputed when the schema changes.
"""

import hashlib
import json
import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from src.errors.formatter import CocoaGPTError
from src.llm.client import LLMClientError
from src.pipeline.prompts import QUESTIONS_SYSTEM_PROMPT, questions_response_format
from src.store.models import TableSchema

logger = logging.getLogger(__name__)


class QuestionInfo(BaseModel):
    """Cached suggestions for one schema."""

    schema_signature: str = ""
    questions: list[str] = Field(default_factory=list)
    error: str | None = None


class _QuestionsResponse(BaseModel):
    questions: list[str]


def schema_signature(tables: list[TableSchema]) -> str:
    """Stable hash of the table DDL."""
    payload = json.dumps([[t.name, t.sql] for t in tables])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class QuestionSuggester:
    """Fetches and caches suggested questions."""

    def __init__(self, chat_client: Any, model: str) -> None:
        self._chat = chat_client
        self.model = model
        self._info = QuestionInfo()

    @property
    def info(self) -> QuestionInfo:
        return self._info

    async def suggest(self, tables: list[TableSchema]) -> QuestionInfo:
        """Return suggestions for the schema, calling the endpoint on change.

        Failures are cached as ``error`` for the same schema rather than
        raised.
        """
        signature = schema_signature(tables)
        if signature == self._info.schema_signature:
            return self._info

        info = QuestionInfo(schema_signature=signature)
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": QUESTIONS_SYSTEM_PROMPT},
                {"role": "user", "content": "\n\n".join(t.sql for t in tables)},
            ],
            "response_format": questions_response_format(),
        }
        try:
            content = await self._chat.complete_chat(body)
            info.questions = _QuestionsResponse.model_validate_json(content).questions
        except LLMClientError as e:
            info.error = str(CocoaGPTError.from_code("E-3001", details=e.message))
        except ValidationError as e:
            info.error = str(CocoaGPTError.from_code("E-3001", details=f"unexpected response: {e}"))

        if info.error:
            logger.warning("Could not fetch suggested questions: %s", info.error)
        self._info = info
        return info

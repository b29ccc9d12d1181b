"""HTTP clients for the generation and similarity endpoints.

Thin wrappers around httpx. Error responses and transport failures raise
LLMClientError so the pipeline can report them per filter or per cycle
without knowing about httpx.

Usage:
    async with ChatClient(config) as chat:
        async for delta in chat.stream_chat(body):
            ...
"""

import json
import logging
from typing import Any, AsyncIterator

import httpx

from src.llm.config import LLMConfig, SimilarityConfig
from src.utils.redaction import sanitize_message

logger = logging.getLogger(__name__)


class LLMClientError(Exception):
    """Raised when a remote endpoint call fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, if the server responded.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class _EndpointClient:
    """Shared httpx lifecycle for endpoint clients."""

    def __init__(
        self,
        api_key: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        """Open httpx async client."""
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close httpx async client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise LLMClientError("Client is not open; use 'async with'.")
        return self._client

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        """Extract an error message from a JSON or text body."""
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        if isinstance(body, dict):
            error = body.get("error", body.get("detail", body))
            if isinstance(error, dict):
                return str(error.get("message", error))
            return str(error)
        return str(body)

    def _raise_for_status(self, resp: httpx.Response) -> None:
        """Raise LLMClientError on non-2xx responses."""
        if resp.status_code >= 400:
            raise LLMClientError(
                message=f"HTTP {resp.status_code}: {sanitize_message(self._error_detail(resp))}",
                status_code=resp.status_code,
            )


class ChatClient(_EndpointClient):
    """OpenAI-compatible chat completions client."""

    def __init__(
        self,
        config: LLMConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with endpoint settings.

        Args:
            config: Generation endpoint settings.
            transport: Optional httpx transport (used by tests).
        """
        super().__init__(config.api_key, config.timeout, transport)
        self.config = config

    async def stream_chat(self, body: dict[str, Any]) -> AsyncIterator[str]:
        """POST a streaming request and yield content deltas.

        Args:
            body: Request body; ``stream`` is forced to true.

        Yields:
            Non-empty ``choices[0].delta.content`` strings in arrival order.

        Raises:
            LLMClientError: On HTTP errors, transport failures, or an
                error object in the stream.
        """
        payload = {**body, "stream": True}
        try:
            async with self._http().stream("POST", self.config.chat_url, json=payload) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    self._raise_for_status(resp)
                async for line in resp.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data_str = line[5:].strip()
                    if data_str == "[DONE]":
                        break
                    try:
                        data = json.loads(data_str)
                    except json.JSONDecodeError:
                        logger.debug("Skipping undecodable stream line: %s", data_str[:80])
                        continue
                    if data.get("error"):
                        error = data["error"]
                        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                        raise LLMClientError(message)
                    for choice in data.get("choices") or []:
                        content = (choice.get("delta") or {}).get("content")
                        if content:
                            yield content
        except httpx.HTTPError as e:
            raise LLMClientError(f"Transport error: {e}") from e

    async def complete_chat(self, body: dict[str, Any]) -> str:
        """POST a non-streaming request and return the message content.

        Args:
            body: Request body; ``stream`` is forced to false.

        Returns:
            ``choices[0].message.content``.

        Raises:
            LLMClientError: On HTTP errors, transport failures, or a
                response without content.
        """
        payload = {**body, "stream": False}
        try:
            resp = await self._http().post(self.config.chat_url, json=payload)
        except httpx.HTTPError as e:
            raise LLMClientError(f"Transport error: {e}") from e
        self._raise_for_status(resp)
        try:
            return resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMClientError(f"Unexpected response shape: {e}") from e


class SimilarityClient(_EndpointClient):
    """Similarity scoring client: scores documents against topics."""

    def __init__(
        self,
        config: SimilarityConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with endpoint settings.

        Args:
            config: Similarity endpoint settings.
            transport: Optional httpx transport (used by tests).
        """
        super().__init__(config.api_key, config.timeout, transport)
        self.config = config

    async def similarity(self, docs: list[str], topics: list[str]) -> list[list[float]]:
        """Score every document against every topic.

        Args:
            docs: Candidate documents.
            topics: Topics to score against.

        Returns:
            Matrix where ``result[i][j]`` is the score of ``docs[i]``
            against ``topics[j]``.

        Raises:
            LLMClientError: On HTTP errors, transport failures, or a
                malformed response.
        """
        try:
            resp = await self._http().post(
                self.config.url, json={"docs": docs, "topics": topics}
            )
        except httpx.HTTPError as e:
            raise LLMClientError(f"Transport error: {e}") from e
        self._raise_for_status(resp)
        try:
            matrix = resp.json()["similarity"]
            return [[float(score) for score in row] for row in matrix]
        except (ValueError, KeyError, TypeError) as e:
            raise LLMClientError(f"Unexpected response shape: {e}") from e

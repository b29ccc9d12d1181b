"""Tests for ChatClient and SimilarityClient — mocked HTTP responses."""

import json

import httpx
import pytest

from src.llm.client import ChatClient, LLMClientError, SimilarityClient
from src.llm.config import LLMConfig, SimilarityConfig


class FakeTransport(httpx.AsyncBaseTransport):
    """Mock transport that returns one canned response and records requests."""

    def __init__(self, status: int = 200, body: bytes | dict = b"", error: Exception | None = None):
        self._status = status
        self._body = body
        self._error = error
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request):
        self.requests.append(request)
        if self._error:
            raise self._error
        if isinstance(self._body, dict):
            return httpx.Response(self._status, json=self._body, request=request)
        return httpx.Response(self._status, content=self._body, request=request)


def _sse(*events: dict | str) -> bytes:
    lines = []
    for event in events:
        data = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode()


def _delta(content: str) -> dict:
    return {"choices": [{"delta": {"content": content}}]}


async def _collect(client: ChatClient, body: dict) -> list[str]:
    return [chunk async for chunk in client.stream_chat(body)]


class TestStreamChat:
    """Tests for ChatClient.stream_chat."""

    @pytest.mark.asyncio
    async def test_yields_deltas_until_done(self):
        """Content deltas arrive in order; nothing after [DONE] is read."""
        transport = FakeTransport(body=_sse(
            _delta('{"filters"'),
            {"choices": [{"delta": {"role": "assistant"}}]},
            _delta(": []}"),
            "[DONE]",
            _delta("ignored"),
        ))
        async with ChatClient(LLMConfig(api_key="k"), transport=transport) as client:
            chunks = await _collect(client, {"model": "m", "messages": []})
        assert chunks == ['{"filters"', ": []}"]

    @pytest.mark.asyncio
    async def test_request_forces_stream_and_auth(self):
        """Bearer token and stream flag are sent."""
        transport = FakeTransport(body=_sse("[DONE]"))
        async with ChatClient(LLMConfig(api_key="secret-key"), transport=transport) as client:
            await _collect(client, {"model": "m", "stream": False})

        request = transport.requests[0]
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert json.loads(request.content) == {"model": "m", "stream": True}

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        transport = FakeTransport(body=_sse("[DONE]"))
        async with ChatClient(LLMConfig(api_key=""), transport=transport) as client:
            await _collect(client, {})
        assert "Authorization" not in transport.requests[0].headers

    @pytest.mark.asyncio
    async def test_skips_comments_and_bad_lines(self):
        body = b": keep-alive\n\ndata: {not json\n\n" + _sse(_delta("ok"), "[DONE]")
        transport = FakeTransport(body=body)
        async with ChatClient(LLMConfig(), transport=transport) as client:
            assert await _collect(client, {}) == ["ok"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        """Non-2xx raises with the server's message and status."""
        transport = FakeTransport(status=401, body={"error": {"message": "bad token"}})
        async with ChatClient(LLMConfig(), transport=transport) as client:
            with pytest.raises(LLMClientError) as exc:
                await _collect(client, {})
        assert exc.value.status_code == 401
        assert exc.value.message == "HTTP 401: bad token"

    @pytest.mark.asyncio
    async def test_error_object_in_stream(self):
        transport = FakeTransport(body=_sse(_delta("{"), {"error": {"message": "overloaded"}}))
        async with ChatClient(LLMConfig(), transport=transport) as client:
            with pytest.raises(LLMClientError, match="overloaded"):
                await _collect(client, {})

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        transport = FakeTransport(error=httpx.ConnectError("refused"))
        async with ChatClient(LLMConfig(), transport=transport) as client:
            with pytest.raises(LLMClientError, match="Transport error"):
                await _collect(client, {})

    @pytest.mark.asyncio
    async def test_unopened_client(self):
        """Calls outside 'async with' fail clearly."""
        with pytest.raises(LLMClientError, match="not open"):
            await _collect(ChatClient(LLMConfig()), {})


class TestCompleteChat:
    """Tests for ChatClient.complete_chat."""

    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        transport = FakeTransport(body={"choices": [{"message": {"content": '{"questions": []}'}}]})
        async with ChatClient(LLMConfig(), transport=transport) as client:
            content = await client.complete_chat({"model": "m"})
        assert content == '{"questions": []}'
        assert json.loads(transport.requests[0].content)["stream"] is False

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        transport = FakeTransport(body={"choices": []})
        async with ChatClient(LLMConfig(), transport=transport) as client:
            with pytest.raises(LLMClientError, match="Unexpected response shape"):
                await client.complete_chat({})

    @pytest.mark.asyncio
    async def test_error_message_redacted(self):
        """Tokens echoed back by the server are not shown."""
        transport = FakeTransport(status=403, body=b"rejected: Bearer abc.def.ghi")
        async with ChatClient(LLMConfig(), transport=transport) as client:
            with pytest.raises(LLMClientError) as exc:
                await client.complete_chat({})
        assert "abc.def.ghi" not in exc.value.message
        assert "REDACTED" in exc.value.message


class TestSimilarity:
    """Tests for SimilarityClient.similarity."""

    @pytest.mark.asyncio
    async def test_returns_matrix(self):
        transport = FakeTransport(body={"similarity": [[0.9], [0.1]]})
        async with SimilarityClient(SimilarityConfig(), transport=transport) as client:
            matrix = await client.similarity(["Ecuador", "Peru"], ["Ecuador"])
        assert matrix == [[0.9], [0.1]]
        assert json.loads(transport.requests[0].content) == {
            "docs": ["Ecuador", "Peru"],
            "topics": ["Ecuador"],
        }

    @pytest.mark.asyncio
    async def test_posts_to_configured_url(self):
        transport = FakeTransport(body={"similarity": []})
        config = SimilarityConfig(url="http://localhost:9000/sim")
        async with SimilarityClient(config, transport=transport) as client:
            await client.similarity([], ["x"])
        assert str(transport.requests[0].url) == "http://localhost:9000/sim"

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        transport = FakeTransport(body={"scores": []})
        async with SimilarityClient(SimilarityConfig(), transport=transport) as client:
            with pytest.raises(LLMClientError, match="Unexpected response shape"):
                await client.similarity(["a"], ["b"])

    @pytest.mark.asyncio
    async def test_server_error(self):
        transport = FakeTransport(status=500, body={"detail": "boom"})
        async with SimilarityClient(SimilarityConfig(), transport=transport) as client:
            with pytest.raises(LLMClientError) as exc:
                await client.similarity(["a"], ["b"])
        assert exc.value.status_code == 500
        assert exc.value.message == "HTTP 500: boom"


class TestConfig:
    """Tests for endpoint settings."""

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("LLMFOUNDRY_TOKEN", "env-token")
        assert LLMConfig().api_key == "env-token"
        assert SimilarityConfig().api_key == "env-token"

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("LLMFOUNDRY_TOKEN", "env-token")
        assert LLMConfig(api_key="mine").api_key == "mine"

"""Tests for the chat completion client."""

import json

import httpx
import pytest
import respx

from auto_heal.oracles import ChatCompletionClient, OracleAPIError, OracleAuthError, OracleResponseError

API_BASE = "https://llm.test.com/v1"


def completion(content: str) -> dict:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class TestChatCompletionClient:
    """Tests for ChatCompletionClient."""

    def test_init_strips_trailing_slash(self) -> None:
        """Test base URL normalization."""
        client = ChatCompletionClient(f"{API_BASE}/", "key", "gpt-4-turbo")

        assert client.api_base == API_BASE
        assert client._client is None

    @pytest.mark.asyncio
    async def test_complete_requires_context_manager(self) -> None:
        """Test that the client must be entered first."""
        client = ChatCompletionClient(API_BASE, "key", "gpt-4-turbo")

        with pytest.raises(RuntimeError, match="Client not initialized"):
            await client.complete("hi")

    @pytest.mark.asyncio
    @respx.mock
    async def test_complete(self) -> None:
        """Test a successful completion."""
        route = respx.post(f"{API_BASE}/chat/completions").mock(
            return_value=httpx.Response(200, json=completion("hello")),
        )

        async with ChatCompletionClient(API_BASE, "secret", "gpt-4-turbo") as client:
            reply = await client.complete("Say hello", system="Be brief")

        assert reply == "hello"
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["model"] == "gpt-4-turbo"
        assert body["temperature"] == 0
        assert body["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Say hello"},
        ]

    @pytest.mark.asyncio
    @respx.mock
    async def test_auth_error(self) -> None:
        """Test that 401 raises OracleAuthError."""
        respx.post(f"{API_BASE}/chat/completions").mock(return_value=httpx.Response(401))

        async with ChatCompletionClient(API_BASE, "bad", "gpt-4-turbo") as client:
            with pytest.raises(OracleAuthError):
                await client.complete("hi")

    @pytest.mark.asyncio
    @respx.mock
    async def test_api_error(self) -> None:
        """Test that other HTTP errors raise OracleAPIError with the status code."""
        respx.post(f"{API_BASE}/chat/completions").mock(return_value=httpx.Response(500, text="overloaded"))

        async with ChatCompletionClient(API_BASE, "key", "gpt-4-turbo") as client:
            with pytest.raises(OracleAPIError) as exc_info:
                await client.complete("hi")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error(self) -> None:
        """Test that connection failures raise OracleAPIError."""
        respx.post(f"{API_BASE}/chat/completions").mock(side_effect=httpx.ConnectError("refused"))

        async with ChatCompletionClient(API_BASE, "key", "gpt-4-turbo") as client:
            with pytest.raises(OracleAPIError):
                await client.complete("hi")

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_payload(self) -> None:
        """Test that a reply without choices raises OracleResponseError."""
        respx.post(f"{API_BASE}/chat/completions").mock(return_value=httpx.Response(200, json={"choices": []}))

        async with ChatCompletionClient(API_BASE, "key", "gpt-4-turbo") as client:
            with pytest.raises(OracleResponseError):
                await client.complete("hi")

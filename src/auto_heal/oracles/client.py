"""Client for OpenAI-compatible chat completion APIs."""

import logging
from typing import Any

import httpx

from auto_heal.oracles.exceptions import OracleAPIError, OracleAuthError, OracleResponseError

logger = logging.getLogger(__name__)


class ChatCompletionClient:
    """Minimal async client for the ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_base: str,
        api_key: str,
        model: str,
        timeout: float = 120.0,
    ) -> None:
        """Initialize the client.

        Args:
            api_base: Base URL of the API (e.g. https://api.openai.com/v1)
            api_key: Bearer token
            model: Model name sent with every request
            timeout: Request timeout in seconds
        """
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ChatCompletionClient":
        """Async context manager entry.

        Returns:
            Self
        """
        self._client = httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit.

        Args:
            exc_type: Exception type
            exc_val: Exception value
            exc_tb: Exception traceback
        """
        if self._client:
            await self._client.aclose()

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Send one prompt and return the model's reply.

        Args:
            prompt: User message
            system: Optional system message

        Returns:
            Content of the first choice

        Raises:
            OracleAuthError: Authentication failed
            OracleAPIError: API request failed
            OracleResponseError: Response did not contain a message
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": 0,
        }

        logger.debug(f"Requesting completion from {self.model} ({len(prompt)} prompt chars)")

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise OracleAPIError(f"HTTP error: {e}") from e

        if response.status_code in (401, 403):
            raise OracleAuthError("Authentication failed. Check ORACLE_API_KEY.")

        if response.status_code >= 400:
            raise OracleAPIError(
                f"API request failed: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise OracleResponseError(f"Unexpected completion payload: {response.text[:200]}") from e

        if not isinstance(content, str):
            raise OracleResponseError("Completion content is not text")

        return content

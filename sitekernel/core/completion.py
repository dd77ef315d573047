import json
from collections.abc import AsyncIterator

import httpx
from pydantic import ValidationError

from sitekernel.models.completion import (
    ChatCompletionRequest,
    StreamChunk,
)
from sitekernel.models.config import CompletionConfig
from sitekernel.utils.logging import get_logger


logger = get_logger("completion")


class CompletionError(Exception):
    """Completion provider error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _payload_error(payload: object) -> str | None:
    """Message of an OpenAI-style `{"error": ...}` document, if it is one."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or error.get("code") or "Completion provider error")
    if error:
        return str(error)
    return None


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an OpenAI-style error body."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"Completion provider returned {response.status_code}"

    if message := _payload_error(payload):
        return message
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text


class DeltaStream:
    """
    Text deltas of one streamed completion.

    The underlying response is already open and known to be successful.
    It can be iterated only once; `aclose()` releases the connection and
    may be called any number of times.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._consumed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[str]:
        if self._consumed:
            raise RuntimeError("Delta stream can only be consumed once")
        self._consumed = True
        return self._iter_deltas()

    async def _iter_deltas(self) -> AsyncIterator[str]:
        try:
            async for line in self._response.aiter_lines():
                if not line:
                    continue

                # SSE format: "data: {...}" or "data: [DONE]"
                if not line.startswith("data:"):
                    continue
                data = line[5:].strip()

                if data == "[DONE]":
                    break

                try:
                    payload = json.loads(data)
                except json.JSONDecodeError as e:
                    logger.warning(f"Failed to parse SSE chunk: {e}")
                    continue

                # Providers report failures after the 200 as an error event
                if message := _payload_error(payload):
                    logger.error(f"Provider error mid-stream: {message}")
                    raise CompletionError(message)

                try:
                    chunk = StreamChunk.model_validate(payload)
                except ValidationError as e:
                    logger.warning(f"Failed to parse SSE chunk: {e}")
                    continue

                yield chunk.text

        except httpx.HTTPError as e:
            logger.error(f"Stream interrupted: {e}")
            raise CompletionError(f"Stream interrupted: {e}") from e

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await self._response.aclose()


class CompletionClient:
    """Async client for an OpenAI-compatible chat completion API."""

    def __init__(
        self,
        api_key: str | None,
        config: CompletionConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self.config.timeout_sec),
                limits=httpx.Limits(
                    max_connections=self.config.max_connections,
                    max_keepalive_connections=self.config.max_keepalive_connections,
                    keepalive_expiry=30,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def open_stream(self, request: ChatCompletionRequest) -> DeltaStream:
        """
        Start a streaming chat completion.

        Returns once the provider has accepted the request, so every
        failure to establish the stream surfaces here as a single
        CompletionError rather than from the first pulled delta.

        Args:
            request: Chat completion request; `stream` is forced on

        Returns:
            DeltaStream over the generated text

        Raises:
            CompletionError: If the stream cannot be established
        """
        if not self.is_configured:
            raise CompletionError("OpenAI API key not configured.")

        client = await self._get_client()

        request_data = request.model_dump(exclude_none=True)
        request_data["stream"] = True

        try:
            http_request = client.build_request(
                "POST",
                "/chat/completions",
                json=request_data,
            )
            response = await client.send(http_request, stream=True)
        except httpx.RequestError as e:
            logger.error(f"Request error: {e}")
            raise CompletionError(f"Request failed: {e}") from e

        if response.is_error:
            try:
                await response.aread()
            finally:
                await response.aclose()
            message = _error_message(response)
            logger.error(f"HTTP error {response.status_code}: {message}")
            raise CompletionError(message, status_code=response.status_code)

        return DeltaStream(response)

    async def __aenter__(self) -> "CompletionClient":
        await self._get_client()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

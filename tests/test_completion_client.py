import json

import httpx
import pytest

from sitekernel.core.completion import CompletionClient, CompletionError
from sitekernel.models.completion import ChatCompletionRequest, ChatMessage
from sitekernel.models.config import CompletionConfig


def _sse(*deltas, done=True):
    lines = []
    for delta in deltas:
        chunk = {
            "id": "chatcmpl-1",
            "object": "chat.completion.chunk",
            "model": "gpt-test",
            "choices": [{"index": 0, "delta": {"content": delta}}],
        }
        lines.append(f"data: {json.dumps(chunk)}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def _client(handler, api_key="sk-test"):
    return CompletionClient(
        api_key=api_key,
        config=CompletionConfig(base_url="https://llm.test/v1"),
        transport=httpx.MockTransport(handler),
    )


def _request():
    return ChatCompletionRequest(
        model="gpt-test",
        messages=[ChatMessage(role="user", content="make a red button")],
        stream=False,
    )


@pytest.mark.asyncio
async def test_open_stream_yields_deltas_in_order():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            content=_sse("<html>", "", "</html>"),
            headers={"Content-Type": "text/event-stream"},
        )

    async with _client(handler) as client:
        stream = await client.open_stream(_request())
        deltas = [delta async for delta in stream]
        await stream.aclose()

    assert deltas == ["<html>", "", "</html>"]
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["stream"] is True
    assert seen["body"]["model"] == "gpt-test"
    assert stream.closed


@pytest.mark.asyncio
async def test_bad_chunks_and_comments_are_skipped():
    body = b": keep-alive\n\ndata: {not json}\n\n" + _sse("ok")

    def handler(request):
        return httpx.Response(200, content=body)

    async with _client(handler) as client:
        stream = await client.open_stream(_request())
        deltas = [delta async for delta in stream]

    assert deltas == ["ok"]


@pytest.mark.asyncio
async def test_rejected_credentials_fail_before_first_delta():
    def handler(request):
        return httpx.Response(
            401,
            json={"error": {"message": "Incorrect API key provided", "type": "invalid_request_error"}},
        )

    async with _client(handler) as client:
        with pytest.raises(CompletionError) as exc_info:
            await client.open_stream(_request())

    assert str(exc_info.value) == "Incorrect API key provided"
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_unreachable_endpoint_fails_on_open():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(CompletionError) as exc_info:
            await client.open_stream(_request())

    assert "connection refused" in str(exc_info.value)


@pytest.mark.asyncio
async def test_missing_key_fails_without_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, content=_sse("x"))

    client = _client(handler, api_key=None)

    with pytest.raises(CompletionError, match="API key not configured"):
        await client.open_stream(_request())
    assert calls == []
    assert not client.is_configured


@pytest.mark.asyncio
async def test_stream_can_only_be_consumed_once():
    def handler(request):
        return httpx.Response(200, content=_sse("a"))

    async with _client(handler) as client:
        stream = await client.open_stream(_request())
        assert [delta async for delta in stream] == ["a"]

        with pytest.raises(RuntimeError):
            aiter(stream)



@pytest.mark.asyncio
async def test_error_event_after_first_delta_raises():
    body = (
        _sse("<html>", done=False)
        + b'data: {"error": {"message": "Rate limit reached", "code": 429}}\n\n'
    )

    def handler(request):
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    async with _client(handler) as client:
        stream = await client.open_stream(_request())
        seen = []
        with pytest.raises(CompletionError, match="Rate limit reached"):
            async for delta in stream:
                seen.append(delta)
        await stream.aclose()

    assert seen == ["<html>"]

"""Tests for the Vapi REST client using httpx.MockTransport."""

import httpx
import pytest

from app.core.errors import VoiceProviderError
from app.services.voice_provider import VapiClient


def _client(handler):
    return VapiClient(api_key="vapi-key", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_create_assistant_posts_config():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = request.content
        return httpx.Response(201, json={"id": "asst_1", "name": "Interview"})

    client = _client(handler)
    assistant_id = await client.create_assistant({"name": "Interview"})
    await client.aclose()

    assert assistant_id == "asst_1"
    assert seen["method"] == "POST"
    assert seen["path"] == "/assistant"
    assert seen["auth"] == "Bearer vapi-key"
    assert b'"name"' in seen["body"]


@pytest.mark.asyncio
async def test_rejected_request_raises_with_status():
    client = _client(lambda request: httpx.Response(400, json={"message": "voiceId invalid"}))

    with pytest.raises(VoiceProviderError) as exc:
        await client.create_assistant({"name": "Interview"})

    assert exc.value.details["status"] == 400
    assert "voiceId invalid" in exc.value.details["body"]


@pytest.mark.asyncio
async def test_missing_assistant_id_raises():
    client = _client(lambda request: httpx.Response(200, json={"name": "Interview"}))

    with pytest.raises(VoiceProviderError):
        await client.create_assistant({"name": "Interview"})


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(VoiceProviderError):
        await _client(handler).get_call("call_1")


@pytest.mark.asyncio
async def test_non_json_body_raises():
    client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(VoiceProviderError):
        await client.get_call("call_1")


@pytest.mark.asyncio
async def test_get_call_returns_body():
    def handler(request):
        assert request.url.path == "/call/call_1"
        return httpx.Response(200, json={"id": "call_1", "analysis": {"summary": "Good"}})

    call = await _client(handler).get_call("call_1")

    assert call["analysis"]["summary"] == "Good"

"""
Unit tests for services.bridge.inference module.

Tests:
- open()/close() lifecycle and context manager
- Bearer token header from token_env
- inject() request payload and response parsing
- Error translation to InferenceError (status, transport, timeout, body)
- Bounded response reading
- End-to-end request against a local aiohttp server
"""

import json
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from nostrbridge.core.exceptions import ConfigurationError, InferenceError
from nostrbridge.models.channel import ChannelReference
from nostrbridge.services.bridge.configs import InferenceConfig
from nostrbridge.services.bridge.inference import HttpInferenceClient, _read_json


PEER = "a1" * 32
SENDER = "npub1sender"
SESSION = f"nostr-dm-{PEER}"


def _response(status: int = 200, chunks: list[bytes] | None = None) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.content.read = AsyncMock(side_effect=[*(chunks or []), b""])
    return response


def _session_returning(response: MagicMock) -> MagicMock:
    session = MagicMock()
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    session.post.return_value = context
    return session


@pytest.fixture
def channel():
    return ChannelReference.direct(PEER)


@pytest.fixture
def client():
    return HttpInferenceClient(InferenceConfig(url="http://ai.example/v1/messages"))


# ============================================================================
# Lifecycle
# ============================================================================


class TestLifecycle:
    """open()/close()."""

    async def test_context_manager(self, client):
        async with client as entered:
            assert entered is client
            assert client._session is not None
        assert client._session is None

    async def test_open_idempotent(self, client):
        await client.open()
        session = client._session
        await client.open()
        assert client._session is session
        await client.close()

    async def test_close_without_open(self, client):
        await client.close()

    async def test_inject_when_closed(self, client, channel):
        with pytest.raises(InferenceError, match="not open"):
            await client.inject(SESSION, "hi", sender=SENDER, channel=channel)


class TestHeaders:
    """Authorization header."""

    def test_no_token(self, client):
        assert "Authorization" not in client._headers()

    def test_bearer_token(self, monkeypatch):
        monkeypatch.setenv("AI_TOKEN", "s3cret")  # pragma: allowlist secret
        client = HttpInferenceClient(InferenceConfig(token_env="AI_TOKEN"))
        assert client._headers()["Authorization"] == "Bearer s3cret"

    def test_missing_token(self, monkeypatch):
        monkeypatch.delenv("AI_TOKEN", raising=False)
        client = HttpInferenceClient(InferenceConfig(token_env="AI_TOKEN"))
        with pytest.raises(ConfigurationError, match="AI_TOKEN environment variable"):
            client._headers()


# ============================================================================
# inject()
# ============================================================================


class TestInject:
    """inject() with a mocked session."""

    async def test_payload_and_response(self, client, channel):
        client._session = _session_returning(_response(chunks=[b'{"response": "hello back"}']))

        text = await client.inject(SESSION, f"[{SENDER}]: hi", sender=SENDER, channel=channel)

        assert text == "hello back"
        client._session.post.assert_called_once_with(
            "http://ai.example/v1/messages",
            json={
                "session": SESSION,
                "message": f"[{SENDER}]: hi",
                "from": SENDER,
                "channel": {"type": "nostr", "id": f"dm:{PEER}", "name": "Nostr DM"},
            },
        )

    async def test_chunked_body(self, client, channel):
        client._session = _session_returning(_response(chunks=[b'{"resp', b'onse": "ok"}']))
        assert await client.inject(SESSION, "hi", sender=SENDER, channel=channel) == "ok"

    async def test_http_error(self, client, channel):
        client._session = _session_returning(_response(status=503))
        with pytest.raises(InferenceError, match="HTTP 503"):
            await client.inject(SESSION, "hi", sender=SENDER, channel=channel)

    @pytest.mark.parametrize(
        "body",
        [b"not json", b"[1, 2]", b'{"answer": "x"}', b'{"response": 42}'],
    )
    async def test_bad_body(self, client, channel, body):
        client._session = _session_returning(_response(chunks=[body]))
        with pytest.raises(InferenceError):
            await client.inject(SESSION, "hi", sender=SENDER, channel=channel)

    async def test_client_error(self, client, channel):
        session = MagicMock()
        session.post.side_effect = aiohttp.ClientConnectionError("refused")
        client._session = session
        with pytest.raises(InferenceError, match="request failed"):
            await client.inject(SESSION, "hi", sender=SENDER, channel=channel)

    async def test_timeout(self, client, channel):
        session = MagicMock()
        session.post.side_effect = TimeoutError()
        client._session = session
        with pytest.raises(InferenceError, match="TimeoutError"):
            await client.inject(SESSION, "hi", sender=SENDER, channel=channel)

    async def test_oversized_body(self, channel):
        client = HttpInferenceClient(InferenceConfig(), max_response_size=8)
        client._session = _session_returning(_response(chunks=[b'{"response": "too long"}']))
        with pytest.raises(InferenceError, match="too large"):
            await client.inject(SESSION, "hi", sender=SENDER, channel=channel)

    async def test_log_message_does_not_call_endpoint(self, client, channel):
        client._session = MagicMock()
        await client.log_message(SESSION, "hi", sender=SENDER, channel=channel)
        client._session.post.assert_not_called()


class TestReadJson:
    """_read_json()."""

    async def test_exact_limit(self):
        body = json.dumps({"response": "x"}).encode()
        assert await _read_json(_response(chunks=[body]), len(body)) == {"response": "x"}

    async def test_over_limit(self):
        with pytest.raises(ValueError, match="too large"):
            await _read_json(_response(chunks=[b"123456789"]), 4)


# ============================================================================
# Local Server
# ============================================================================


class TestAgainstServer:
    """Round trip through a real aiohttp server."""

    async def test_round_trip(self, channel, monkeypatch):
        received = {}

        async def handler(request: web.Request) -> web.Response:
            received["body"] = await request.json()
            received["auth"] = request.headers.get("Authorization")
            return web.json_response({"response": "from server"})

        app = web.Application()
        app.router.add_post("/v1/messages", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        monkeypatch.setenv("AI_TOKEN", "tok")  # pragma: allowlist secret
        try:
            config = InferenceConfig(
                url=str(server.make_url("/v1/messages")), timeout=5, token_env="AI_TOKEN"
            )
            async with HttpInferenceClient(config) as client:
                text = await client.inject(SESSION, "ping", sender=SENDER, channel=channel)
        finally:
            await server.close()

        assert text == "from server"
        assert received["auth"] == "Bearer tok"
        assert received["body"]["session"] == SESSION
        assert received["body"]["channel"]["id"] == f"dm:{PEER}"

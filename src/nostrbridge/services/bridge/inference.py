"""Inference collaborator contract and its HTTP implementation.

The gate only needs two calls: record an inbound message against a
session, and obtain a response for a message. Any object with those two
coroutines satisfies [InferenceClient][nostrbridge.services.bridge.inference.InferenceClient].

[HttpInferenceClient][nostrbridge.services.bridge.inference.HttpInferenceClient]
posts each message as JSON:

```json
{"session": "nostr-dm-<hex>", "message": "[npub1...]: hello", "from": "npub1...",
 "channel": {"type": "nostr", "id": "dm:<hex>", "name": "Nostr DM"}}
```

and expects ``{"response": "<text>"}`` back. No retries are attempted.
"""

from __future__ import annotations

import json
import os
from types import TracebackType
from typing import Any, Protocol, Self

import aiohttp

from nostrbridge.core.exceptions import ConfigurationError, InferenceError
from nostrbridge.core.logger import Logger
from nostrbridge.models.channel import ChannelReference
from nostrbridge.services.bridge.configs import InferenceConfig


_MAX_RESPONSE_SIZE = 1_048_576


class InferenceClient(Protocol):
    """What the gate needs from the inference collaborator."""

    async def log_message(
        self, session_id: str, message: str, *, sender: str, channel: ChannelReference
    ) -> None: ...

    async def inject(
        self, session_id: str, message: str, *, sender: str, channel: ChannelReference
    ) -> str: ...


async def _read_json(response: aiohttp.ClientResponse, max_size: int) -> Any:
    """Read the response body in chunks, refusing bodies larger than *max_size*."""
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return json.loads(b"".join(chunks))


class HttpInferenceClient:
    """Inference over HTTP with aiohttp.

    Use as an async context manager, or call ``open()`` and ``close()``.

    Args:
        config: Endpoint, timeout and optional token variable.
        max_response_size: Largest accepted response body in bytes.
    """

    def __init__(
        self, config: InferenceConfig, *, max_response_size: int = _MAX_RESPONSE_SIZE
    ) -> None:
        self._config = config
        self._max_response_size = max_response_size
        self._session: aiohttp.ClientSession | None = None
        self._logger = Logger("inference")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.token_env:
            token = os.getenv(self._config.token_env)
            if not token:
                raise ConfigurationError(
                    f"{self._config.token_env} environment variable is required"
                )
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def open(self) -> None:
        if self._session is not None:
            return
        self._session = aiohttp.ClientSession(
            headers=self._headers(),
            timeout=aiohttp.ClientTimeout(total=self._config.timeout),
        )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def log_message(
        self, session_id: str, message: str, *, sender: str, channel: ChannelReference
    ) -> None:
        """Record an inbound message against *session_id* (content is not logged)."""
        self._logger.debug(
            "message_logged",
            session=session_id,
            sender=sender,
            channel=channel.channel_id,
            length=len(message),
        )

    async def inject(
        self, session_id: str, message: str, *, sender: str, channel: ChannelReference
    ) -> str:
        """Send *message* for *session_id* and return the response text.

        Raises:
            InferenceError: On transport errors, timeouts, non-2xx status,
                or a body without a string ``response`` field.
        """
        if self._session is None:
            raise InferenceError("Inference client is not open")

        payload = {
            "session": session_id,
            "message": message,
            "from": sender,
            "channel": channel.to_dict(),
        }
        try:
            async with self._session.post(self._config.url, json=payload) as response:
                if response.status >= 400:
                    raise InferenceError(f"Inference endpoint returned HTTP {response.status}")
                body = await _read_json(response, self._max_response_size)
        except (aiohttp.ClientError, TimeoutError) as e:
            reason = str(e) or type(e).__name__
            raise InferenceError(f"Inference request failed: {reason}") from e
        except ValueError as e:
            raise InferenceError(f"Invalid inference response: {e}") from e

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise InferenceError("Inference response has no 'response' text")

        self._logger.debug("inference_completed", session=session_id, length=len(text))
        return text

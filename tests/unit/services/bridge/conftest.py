"""Shared fixtures for bridge service tests."""

import asyncio
from collections.abc import Sequence

import pytest

from nostrbridge.core.exceptions import ConnectivityError
from nostrbridge.models.channel import ChannelReference
from nostrbridge.services.bridge.multiplexer import RelayMultiplexer
from nostrbridge.services.bridge.publisher import ResponsePublisher


RELAY_A = "wss://relay-a.example"
RELAY_B = "wss://relay-b.example"
FIXED_NOW = 1_700_000_000


class FakeTransport:
    """In-memory relay transport.

    ``errors`` maps a URL to the exception its sends raise; ``holds`` maps a
    URL to an ``asyncio.Event`` its sends wait on before completing.
    """

    def __init__(self) -> None:
        self.connect_outcomes: dict[str, str | None] = {}
        self.errors: dict[str, Exception] = {}
        self.holds: dict[str, asyncio.Event] = {}
        self.subscriptions: dict[str, tuple] = {}
        self.unsubscribed: list[str] = []
        self.sent: list[tuple[str, object]] = []
        self.fail_subscribe_at: int | None = None
        self.listener = None
        self.closed = False
        self._next_id = 0

    def set_status_listener(self, listener) -> None:
        self.listener = listener

    async def connect(self, urls: Sequence[str]) -> dict[str, str | None]:
        return {url: self.connect_outcomes.get(url) for url in urls}

    async def subscribe(self, subscription_filter, on_event) -> str:
        self._next_id += 1
        if self._next_id == self.fail_subscribe_at:
            raise ConnectivityError("subscription refused")
        subscription_id = f"sub{self._next_id}"
        self.subscriptions[subscription_id] = (subscription_filter, on_event)
        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        self.subscriptions.pop(subscription_id, None)
        self.unsubscribed.append(subscription_id)

    async def send(self, url: str, event) -> None:
        self.sent.append((url, event))
        hold = self.holds.get(url)
        if hold is not None:
            await hold.wait()
        error = self.errors.get(url)
        if error is not None:
            raise error

    async def close(self) -> None:
        self.closed = True

    def deliver(self, raw_event: str, relay: str = RELAY_A) -> None:
        """Push a wire event through every open subscription."""
        for _, on_event in list(self.subscriptions.values()):
            on_event(relay, raw_event)

    def sent_events(self):
        """Distinct events sent, in first-send order."""
        seen: dict[str, object] = {}
        for _, event in self.sent:
            seen.setdefault(event.id, event)
        return list(seen.values())


class FakeInference:
    """Inference collaborator that records calls and answers with ``reply``."""

    def __init__(self, reply: str = "inference reply") -> None:
        self.reply = reply
        self.error: Exception | None = None
        self.logged: list[tuple[str, str, str, ChannelReference]] = []
        self.injected: list[tuple[str, str, str, ChannelReference]] = []

    async def log_message(self, session_id, message, *, sender, channel) -> None:
        self.logged.append((session_id, message, sender, channel))

    async def inject(self, session_id, message, *, sender, channel) -> str:
        self.injected.append((session_id, message, sender, channel))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_inference() -> FakeInference:
    return FakeInference()


@pytest.fixture
def multiplexer(fake_transport: FakeTransport) -> RelayMultiplexer:
    return RelayMultiplexer([RELAY_A, RELAY_B], fake_transport)


@pytest.fixture
def publisher(key_provider, multiplexer: RelayMultiplexer) -> ResponsePublisher:
    return ResponsePublisher(key_provider, multiplexer, clock=lambda: float(FIXED_NOW))

"""Relay transport on top of the nostr-sdk client.

Defines the [RelayTransport][nostrbridge.utils.protocol.RelayTransport]
contract consumed by the multiplexer and its nostr-sdk implementation,
[NostrSdkTransport][nostrbridge.utils.protocol.NostrSdkTransport]. The
transport owns framing and reconnection; everything above it sees only
relay URLs, raw event JSON and per-relay liveness reports.

Attributes:
    create_client: Client factory with an optional signer.
    RelayTransport: Structural contract for a relay transport.
    NostrSdkTransport: ``nostr_sdk.Client`` backed transport with a
        reconnect supervisor.

Note:
    nostr-sdk reconnects dropped relays on its own. The supervisor started
    by [connect()][nostrbridge.utils.protocol.NostrSdkTransport.connect]
    polls every relay each ``reconnect_interval`` seconds, reports
    liveness changes to the status listener, and asks the client to
    reconnect a dropped relay at most ``max_reconnect_attempts`` times in
    a row.

Examples:
    ```python
    transport = NostrSdkTransport(publish_timeout=10.0)
    outcomes = await transport.connect(["wss://nos.lol"])
    sub_id = await transport.subscribe(SubscriptionFilter(kinds=(4,)), on_event)
    await transport.send("wss://nos.lol", signed_event)
    await transport.close()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol

from nostr_sdk import (
    Client,
    ClientBuilder,
    Event,
    Filter,
    HandleNotification,
    NostrSdkError,
    NostrSigner,
    RelayUrl,
)

from nostrbridge.core.exceptions import ConnectivityError, RelayTimeoutError


if TYPE_CHECKING:
    from nostr_sdk import Keys

    from nostrbridge.models.event import SignedEvent
    from nostrbridge.models.filter import SubscriptionFilter


logger = logging.getLogger(__name__)

EventCallback = Callable[[str, str], None]
"""Called with ``(relay_url, raw_event_json)`` for every delivered event."""

StatusListener = Callable[[str, bool, "str | None"], None]
"""Called with ``(relay_url, connected, error)`` on liveness reports."""

DEFAULT_TIMEOUT = 10.0


def create_client(keys: Keys | None = None) -> Client:
    """Create a nostr-sdk client, with a signer when *keys* is given."""
    builder = ClientBuilder()
    if keys is not None:
        builder = builder.signer(NostrSigner.keys(keys))
    return builder.build()


class RelayTransport(Protocol):
    """What the multiplexer needs from a relay transport."""

    def set_status_listener(self, listener: StatusListener | None) -> None: ...

    async def connect(self, urls: Sequence[str]) -> dict[str, str | None]:
        """Connect to *urls*; map each to ``None`` on success or an error reason."""
        ...

    async def subscribe(
        self, subscription_filter: SubscriptionFilter, on_event: EventCallback
    ) -> str:
        """Open a subscription on every connected relay and return its id."""
        ...

    async def unsubscribe(self, subscription_id: str) -> None: ...

    async def send(self, url: str, event: SignedEvent) -> None:
        """Send *event* to one relay; raise if the relay does not accept it."""
        ...

    async def close(self) -> None: ...


class _NotificationHandler(HandleNotification):
    """Forwards nostr-sdk notifications to the owning transport."""

    def __init__(self, transport: NostrSdkTransport) -> None:
        self._transport = transport

    async def handle(self, relay_url: Any, subscription_id: Any, event: Any) -> bool:
        self._transport._dispatch(str(relay_url), str(subscription_id), event.as_json())
        return False

    async def handle_msg(self, relay_url: Any, msg: Any) -> bool:
        self._transport._on_message(str(relay_url), msg.as_json())
        return False


class NostrSdkTransport:
    """Relay transport backed by a single ``nostr_sdk.Client``.

    Args:
        keys: Optional signer identity (events are signed before they
            reach the transport, so this is only used for NIP-42 auth).
        connect_timeout: Seconds to wait for the initial connections.
        publish_timeout: Seconds to wait for one relay to answer a send.
        reconnect_interval: Seconds between supervisor passes.
        max_reconnect_attempts: Consecutive reconnect requests per relay
            before the supervisor stops asking (it keeps polling).
        client: Pre-built client, mainly for tests.
    """

    def __init__(
        self,
        keys: Keys | None = None,
        *,
        connect_timeout: float = DEFAULT_TIMEOUT,
        publish_timeout: float = DEFAULT_TIMEOUT,
        reconnect_interval: float = 5.0,
        max_reconnect_attempts: int = 10,
        client: Client | None = None,
    ) -> None:
        self._client = client if client is not None else create_client(keys)
        self._connect_timeout = connect_timeout
        self._publish_timeout = publish_timeout
        self._reconnect_interval = reconnect_interval
        self._max_reconnect_attempts = max_reconnect_attempts

        self._relay_urls: dict[str, Any] = {}
        self._connected: dict[str, bool] = {}
        self._attempts: dict[str, int] = {}
        self._callbacks: dict[str, EventCallback] = {}
        self._listener: StatusListener | None = None

        self._notifications_task: asyncio.Task[Any] | None = None
        self._supervisor_task: asyncio.Task[None] | None = None

    def set_status_listener(self, listener: StatusListener | None) -> None:
        self._listener = listener

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self, urls: Sequence[str]) -> dict[str, str | None]:
        """Add and connect every relay, then start notifications and supervision.

        Returns:
            Mapping of URL to ``None`` (connected) or the failure reason.
        """
        for url in urls:
            relay_url = RelayUrl.parse(url)
            self._relay_urls[url] = relay_url
            self._attempts[url] = 0
            await self._client.add_relay(relay_url)

        output = await self._client.try_connect(timedelta(seconds=self._connect_timeout))

        outcomes: dict[str, str | None] = {}
        for url, relay_url in self._relay_urls.items():
            if relay_url in output.success:
                outcomes[url] = None
                self._connected[url] = True
                logger.debug("relay_connected relay=%s", url)
            else:
                reason = str(output.failed.get(relay_url, "Unknown error"))
                outcomes[url] = reason
                self._connected[url] = False
                logger.debug("relay_connect_failed relay=%s error=%s", url, reason)

        self._notifications_task = asyncio.create_task(
            self._client.handle_notifications(_NotificationHandler(self))
        )
        self._supervisor_task = asyncio.create_task(self._supervise())
        return outcomes

    async def _supervise(self) -> None:
        while True:
            await asyncio.sleep(self._reconnect_interval)
            await self.check_relays()

    async def check_relays(self) -> None:
        """Run one supervisor pass over every relay."""
        for url, relay_url in self._relay_urls.items():
            error: str | None = None
            try:
                relay = await self._client.relay(relay_url)
                connected = bool(relay.is_connected())
            except NostrSdkError as e:
                connected, error = False, str(e)

            previous = self._connected.get(url)
            if connected:
                self._attempts[url] = 0
                if previous is not True:
                    logger.info("relay_reconnected relay=%s", url)
                    self._report(url, True, None)
                continue

            if self._attempts[url] >= self._max_reconnect_attempts:
                if previous is not False:
                    self._report(url, False, error or "disconnected")
                continue

            self._attempts[url] += 1
            logger.info(
                "relay_reconnecting relay=%s attempt=%d max=%d",
                url,
                self._attempts[url],
                self._max_reconnect_attempts,
            )
            try:
                await self._client.connect_relay(relay_url)
            except NostrSdkError as e:
                error = str(e)
            self._report(url, False, error or "disconnected")

    def _report(self, url: str, connected: bool, error: str | None) -> None:
        self._connected[url] = connected
        if self._listener is not None:
            self._listener(url, connected, error)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(
        self, subscription_filter: SubscriptionFilter, on_event: EventCallback
    ) -> str:
        subscription_id = uuid.uuid4().hex
        self._callbacks[subscription_id] = on_event
        nostr_filter = Filter.from_json(json.dumps(subscription_filter.to_dict()))
        try:
            await self._client.subscribe_with_id(subscription_id, nostr_filter)
        except NostrSdkError as e:
            self._callbacks.pop(subscription_id, None)
            raise ConnectivityError(f"Failed to subscribe: {e}") from e
        logger.debug(
            "subscribed subscription=%s filter=%s",
            subscription_id,
            json.dumps(subscription_filter.to_dict()),
        )
        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        if self._callbacks.pop(subscription_id, None) is None:
            return
        try:
            await self._client.unsubscribe(subscription_id)
        except NostrSdkError as e:
            logger.debug("unsubscribe_failed subscription=%s error=%s", subscription_id, e)

    def _dispatch(self, relay_url: str, subscription_id: str, raw_event: str) -> None:
        callback = self._callbacks.get(subscription_id)
        if callback is None:
            return
        callback(relay_url, raw_event)

    def _on_message(self, relay_url: str, raw_message: str) -> None:
        try:
            message = json.loads(raw_message)
        except ValueError:
            return
        if not isinstance(message, list) or not message:
            return
        if message[0] == "EOSE" and len(message) > 1:
            logger.info("eose relay=%s subscription=%s", relay_url, message[1])
        elif message[0] == "NOTICE" and len(message) > 1:
            logger.debug("notice relay=%s message=%s", relay_url, message[1])

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def send(self, url: str, event: SignedEvent) -> None:
        """Send *event* to the relay at *url*.

        Raises:
            RelayTimeoutError: If the relay did not answer within ``publish_timeout``.
            ConnectivityError: If the relay rejected the event or the send failed.
        """
        relay_url = self._relay_urls.get(url) or RelayUrl.parse(url)
        try:
            nostr_event = Event.from_json(event.to_json())
            output = await asyncio.wait_for(
                self._client.send_event_to([relay_url], nostr_event),
                timeout=self._publish_timeout,
            )
        except TimeoutError:
            raise RelayTimeoutError(f"Timed out after {self._publish_timeout}s") from None
        except NostrSdkError as e:
            raise ConnectivityError(str(e)) from e

        if relay_url not in output.success:
            raise ConnectivityError(str(output.failed.get(relay_url, "rejected")))

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Stop supervision and notifications, then shut the client down."""
        for task in (self._supervisor_task, self._notifications_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, NostrSdkError):
                    await task
        self._supervisor_task = None
        self._notifications_task = None
        self._callbacks.clear()

        with contextlib.suppress(NostrSdkError):
            await self._client.shutdown()
        logger.debug("transport_closed relays=%d", len(self._relay_urls))

"""
Multi-relay subscription and first-acceptance publishing.

[RelayMultiplexer][nostrbridge.services.bridge.multiplexer.RelayMultiplexer]
owns the configured relay endpoints and their liveness status. It fans
subscriptions out over the whole relay set, and publishes every event to
all relays at once, returning as soon as one of them accepts it.

Endpoint status is written from three sources, all on the event loop:

* the outcome of the initial ``connect()``;
* liveness reports pushed by the transport's reconnect supervisor;
* the outcome of every publish attempt, including attempts that finish
  after ``publish()`` has already returned (drained in the background).

See Also:
    [RelayTransport][nostrbridge.utils.protocol.RelayTransport]: The
        transport contract this class drives.
    [RelayEndpoint][nostrbridge.models.relay.RelayEndpoint]: Per-relay
        status cell.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from nostrbridge.core.exceptions import ConfigurationError, PublishingError
from nostrbridge.core.logger import Logger
from nostrbridge.models.event import SignedEvent
from nostrbridge.models.relay import RelayEndpoint, RelayStatus


if TYPE_CHECKING:
    from nostrbridge.models.filter import SubscriptionFilter
    from nostrbridge.utils.protocol import RelayTransport


EventHandler = Callable[[SignedEvent], None]


class Subscription:
    """Handle over one or more transport subscriptions opened together.

    ``close()`` closes every underlying subscription and is idempotent.
    Closing does not cancel event handling that has already started.
    """

    def __init__(self, multiplexer: RelayMultiplexer, subscription_ids: Sequence[str]) -> None:
        self._multiplexer = multiplexer
        self._ids = tuple(subscription_ids)
        self._closed = False

    @property
    def ids(self) -> tuple[str, ...]:
        return self._ids

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._multiplexer._close_subscription(self)


class RelayMultiplexer:
    """Fan-out over a fixed set of relays.

    Args:
        urls: Relay URLs; invalid or empty input raises
            [ConfigurationError][nostrbridge.core.exceptions.ConfigurationError].
        transport: The [RelayTransport][nostrbridge.utils.protocol.RelayTransport]
            doing the actual I/O.

    Examples:
        ```python
        multiplexer = RelayMultiplexer(config.relays, transport)
        await multiplexer.connect()
        subscription = await multiplexer.subscribe(filters, gate_callback)
        await multiplexer.publish(signed_event)
        await multiplexer.close()
        ```
    """

    def __init__(self, urls: Sequence[str], transport: RelayTransport) -> None:
        if not urls:
            raise ConfigurationError("At least one relay URL is required")

        self._endpoints: dict[str, RelayEndpoint] = {}
        for raw in urls:
            try:
                endpoint = RelayEndpoint(raw)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid relay URL {raw!r}: {e}") from e
            self._endpoints.setdefault(endpoint.url, endpoint)

        self._transport = transport
        self._transport.set_status_listener(self._on_transport_status)
        self._subscriptions: set[Subscription] = set()
        self._drain_tasks: set[asyncio.Task[None]] = set()
        self._logger = Logger("multiplexer")

    @property
    def urls(self) -> list[str]:
        return list(self._endpoints)

    @property
    def connected_count(self) -> int:
        return sum(1 for endpoint in self._endpoints.values() if endpoint.connected)

    def statuses(self) -> list[RelayStatus]:
        """Snapshot of every endpoint, in configuration order."""
        return [endpoint.snapshot() for endpoint in self._endpoints.values()]

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def _record(self, url: str, error: str | None) -> None:
        endpoint = self._endpoints.get(url)
        if endpoint is None:
            return
        was_connected = endpoint.connected
        if error is None:
            endpoint.mark_connected()
        else:
            endpoint.mark_failed(error)
        if was_connected != endpoint.connected:
            self._logger.info(
                "relay_status_changed",
                relay=url,
                connected=endpoint.connected,
                error=error or "",
            )

    def _on_transport_status(self, url: str, connected: bool, error: str | None) -> None:
        self._record(url, None if connected else (error or "disconnected"))

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> int:
        """Connect every endpoint through the transport.

        Returns:
            The number of endpoints that connected. Zero is not an error:
            the transport keeps retrying in the background.
        """
        outcomes = await self._transport.connect(self.urls)
        for url in self._endpoints:
            self._record(url, outcomes.get(url, "no connection outcome"))

        connected = self.connected_count
        if connected == 0:
            self._logger.warning("no_relays_connected", total=len(self._endpoints))
        else:
            self._logger.info("relays_connected", connected=connected, total=len(self._endpoints))
        return connected

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(
        self, filters: Sequence[SubscriptionFilter], on_event: EventHandler
    ) -> Subscription:
        """Open one subscription per filter across every relay.

        Events are forwarded to *on_event* whichever relay delivered them.
        Wire events that do not parse are dropped at debug level.

        Raises:
            ValueError: If *filters* is empty.
        """
        if not filters:
            raise ValueError("At least one filter is required")

        def deliver(relay_url: str, raw_event: str) -> None:
            try:
                event = SignedEvent.from_json(raw_event)
            except (TypeError, ValueError) as e:
                self._logger.debug("malformed_event_dropped", relay=relay_url, error=str(e))
                return
            on_event(event)

        subscription_ids: list[str] = []
        try:
            for subscription_filter in filters:
                subscription_ids.append(await self._transport.subscribe(subscription_filter, deliver))
        except Exception:
            for subscription_id in subscription_ids:
                await self._transport.unsubscribe(subscription_id)
            raise

        subscription = Subscription(self, subscription_ids)
        self._subscriptions.add(subscription)
        self._logger.info("subscribed", filters=len(filters), relays=len(self._endpoints))
        return subscription

    async def _close_subscription(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
        for subscription_id in subscription.ids:
            await self._transport.unsubscribe(subscription_id)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(self, event: SignedEvent) -> str:
        """Send *event* to every relay; return once one accepts it.

        Returns:
            URL of the first relay that accepted the event.

        Raises:
            PublishingError: If every relay rejected the event or failed;
                ``failures`` maps each URL to its reason.
        """
        tasks = {
            asyncio.create_task(self._transport.send(url, event)): url for url in self._endpoints
        }
        pending: set[asyncio.Task[None]] = set(tasks)
        failures: dict[str, str] = {}
        accepted: str | None = None

        try:
            while pending and accepted is None:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    url = tasks[task]
                    error = _outcome(task)
                    self._record(url, error)
                    if error is None:
                        accepted = accepted or url
                    else:
                        failures[url] = error
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            raise

        if pending:
            drain = asyncio.create_task(self._drain(event.id, {t: tasks[t] for t in pending}))
            self._drain_tasks.add(drain)
            drain.add_done_callback(self._drain_tasks.discard)

        if accepted is None:
            self._logger.error("publish_failed", event_id=event.id, failures=len(failures))
            raise PublishingError("Failed to publish event to any relay", failures)

        self._logger.debug("publish_accepted", event_id=event.id, relay=accepted)
        return accepted

    async def _drain(self, event_id: str, pending: dict[asyncio.Task[None], str]) -> None:
        """Record outcomes of sends that finished after ``publish()`` returned."""
        done, _ = await asyncio.wait(pending)
        for task in done:
            url = pending[task]
            error = _outcome(task)
            self._record(url, error)
            self._logger.debug(
                "publish_late_outcome",
                event_id=event_id,
                relay=url,
                accepted=error is None,
                error=error or "",
            )

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close subscriptions, wait for draining publishes, close the transport."""
        for subscription in list(self._subscriptions):
            await subscription.close()
        if self._drain_tasks:
            await asyncio.gather(*self._drain_tasks, return_exceptions=True)
        await self._transport.close()
        self._logger.info("multiplexer_closed", relays=len(self._endpoints))


def _outcome(task: asyncio.Task[None]) -> str | None:
    """``None`` if the send succeeded, otherwise the failure reason."""
    if task.cancelled():
        return "cancelled"
    error = task.exception()
    if error is None:
        return None
    return str(error) or type(error).__name__

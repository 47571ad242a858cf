"""Bridge service: relays in, inference, signed replies out.

The [Bridge][nostrbridge.services.bridge.service.Bridge] is the explicit
context that owns every component for its lifetime:

```text
RelayMultiplexer -> EventGate -> {AuthorizationPolicy, decrypt, inference}
                 <- ResponsePublisher <-
```

Lifecycle:
    1. ``__aenter__``: build the multiplexer, publisher, channel provider
       and gate, connect to the relays, and subscribe to kind 4 (and,
       when enabled, kind 1) events addressed to the bridge since now.
    2. Each delivered event is handled in its own task.
       [run()][nostrbridge.services.bridge.service.Bridge.run] is the
       periodic status cycle (relay liveness, in-flight work, gauges).
    3. ``__aexit__``: close the subscription, drain in-flight events for
       up to ``shutdown_timeout`` seconds (cancelling stragglers), close
       the multiplexer and the inference client.

See Also:
    [BridgeConfig][nostrbridge.services.bridge.configs.BridgeConfig]:
        Service configuration.
    [EventGate][nostrbridge.services.bridge.gate.EventGate]: Per-event
        pipeline.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, ClassVar

from nostrbridge.core.base_service import BaseService
from nostrbridge.core.metrics import EVENT_DURATION_SECONDS, RELAY_CONNECTED
from nostrbridge.models.constants import EventKind, ServiceName
from nostrbridge.models.filter import SubscriptionFilter
from nostrbridge.services.bridge.channel import ChannelProvider
from nostrbridge.services.bridge.configs import BridgeConfig
from nostrbridge.services.bridge.gate import EventGate
from nostrbridge.services.bridge.inference import HttpInferenceClient
from nostrbridge.services.bridge.multiplexer import RelayMultiplexer
from nostrbridge.services.bridge.policy import AuthorizationPolicy
from nostrbridge.services.bridge.publisher import ResponsePublisher
from nostrbridge.utils.crypto import KeyProvider
from nostrbridge.utils.protocol import NostrSdkTransport


if TYPE_CHECKING:
    from types import TracebackType

    from nostrbridge.models.event import SignedEvent
    from nostrbridge.services.bridge.inference import InferenceClient
    from nostrbridge.services.bridge.multiplexer import Subscription
    from nostrbridge.utils.protocol import RelayTransport


class Bridge(BaseService[BridgeConfig]):
    """Nostr to inference bridge.

    Args:
        config: Bridge configuration (defaults from the environment).
        transport: Relay transport; a
            [NostrSdkTransport][nostrbridge.utils.protocol.NostrSdkTransport]
            is built from the configuration when omitted.
        inference: Inference collaborator; an
            [HttpInferenceClient][nostrbridge.services.bridge.inference.HttpInferenceClient]
            is built, opened and closed by the bridge when omitted.
        clock: Returns the current unix time in seconds.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.BRIDGE
    CONFIG_CLASS: ClassVar[type[BridgeConfig]] = BridgeConfig

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        transport: RelayTransport | None = None,
        inference: InferenceClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(config)
        self._keys = KeyProvider(self._config.keys)
        self._transport = transport
        self._inference = inference
        self._http_inference: HttpInferenceClient | None = None
        self._clock = clock

        self._multiplexer: RelayMultiplexer | None = None
        self._publisher: ResponsePublisher | None = None
        self._channel: ChannelProvider | None = None
        self._gate: EventGate | None = None
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def keys(self) -> KeyProvider:
        return self._keys

    @property
    def channel(self) -> ChannelProvider:
        """The channel provider; available once the bridge is entered."""
        if self._channel is None:
            raise RuntimeError("Bridge is not started")
        return self._channel

    @property
    def multiplexer(self) -> RelayMultiplexer:
        if self._multiplexer is None:
            raise RuntimeError("Bridge is not started")
        return self._multiplexer

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def subscription_filters(self, since: int) -> list[SubscriptionFilter]:
        """Filters for events addressed to the bridge created at or after *since*."""
        own = (self._keys.public_key,)
        filters = [
            SubscriptionFilter(kinds=(EventKind.ENCRYPTED_DIRECT_MESSAGE,), p_tags=own, since=since)
        ]
        if self._config.enable_public_replies:
            filters.append(SubscriptionFilter(kinds=(EventKind.TEXT_NOTE,), p_tags=own, since=since))
        return filters

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Bridge:
        await super().__aenter__()

        transport = self._transport or NostrSdkTransport(
            self._config.keys,
            connect_timeout=self._config.connect_timeout,
            publish_timeout=self._config.publish_timeout,
            reconnect_interval=self._config.reconnect_interval,
            max_reconnect_attempts=self._config.max_reconnect_attempts,
        )
        self._multiplexer = RelayMultiplexer(self._config.relays, transport)

        try:
            if self._inference is None:
                self._http_inference = HttpInferenceClient(self._config.inference)
                await self._http_inference.open()
                self._inference = self._http_inference

            self._publisher = ResponsePublisher(self._keys, self._multiplexer, clock=self._clock)
            self._channel = ChannelProvider(
                self._publisher,
                self._keys.npub,
                command_prefix=self._config.command_prefix,
            )
            self._gate = EventGate(
                self._keys,
                self._publisher,
                self._inference,
                AuthorizationPolicy(self._config.dm_policy, self._config.allowed_pubkeys),
                channel=self._channel,
                enable_public_replies=self._config.enable_public_replies,
                dedup_cache_size=self._config.dedup_cache_size,
                on_metric=self.inc_counter,
            )

            self._logger.info(
                "bridge_starting",
                pubkey=self._keys.public_key,
                npub=self._keys.npub,
                relays=len(self._multiplexer.urls),
                dm_policy=self._config.dm_policy,
                public_replies=self._config.enable_public_replies,
            )

            await self._multiplexer.connect()
            since = int(self._clock())
            self._subscription = await self._multiplexer.subscribe(
                self.subscription_filters(since), self._on_event
            )
        except Exception:
            await self._teardown()
            await super().__aexit__(None, None, None)
            raise

        self._logger.info("bridge_listening", since=since)
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self._teardown()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def _teardown(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None

        await self._drain()

        if self._multiplexer is not None:
            await self._multiplexer.close()
        if self._http_inference is not None:
            await self._http_inference.close()
            self._http_inference = None
            self._inference = None

    async def _drain(self) -> None:
        """Wait for in-flight events up to ``shutdown_timeout``; cancel the rest."""
        if not self._tasks:
            return
        self._logger.info("draining_events", in_flight=len(self._tasks))
        _, pending = await asyncio.wait(set(self._tasks), timeout=self._config.shutdown_timeout)
        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self._logger.warning("events_cancelled", count=len(pending))

    # -------------------------------------------------------------------------
    # Event intake
    # -------------------------------------------------------------------------

    def _on_event(self, event: SignedEvent) -> None:
        if self._gate is None:
            return
        task = asyncio.create_task(self._process(self._gate, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process(self, gate: EventGate, event: SignedEvent) -> None:
        start = time.monotonic()
        await gate.handle(event)
        if self._config.metrics.enabled:
            EVENT_DURATION_SECONDS.labels(service=self.SERVICE_NAME, kind=str(event.kind)).observe(
                time.monotonic() - start
            )

    # -------------------------------------------------------------------------
    # Status cycle
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Report relay liveness and in-flight work."""
        if self._multiplexer is None:
            return

        statuses = self._multiplexer.statuses()
        connected = sum(1 for status in statuses if status.connected)

        self.set_gauge("relays_connected", connected)
        self.set_gauge("relays_total", len(statuses))
        self.set_gauge("events_in_flight", len(self._tasks))
        if self._config.metrics.enabled:
            for status in statuses:
                RELAY_CONNECTED.labels(service=self.SERVICE_NAME, relay=status.url).set(
                    1 if status.connected else 0
                )

        for status in statuses:
            if not status.connected:
                self._logger.debug(
                    "relay_down",
                    relay=status.url,
                    error=status.last_error or "",
                    attempts=status.reconnect_attempts,
                )

        self._logger.info(
            "status",
            relays_connected=connected,
            relays_total=len(statuses),
            in_flight=len(self._tasks),
        )

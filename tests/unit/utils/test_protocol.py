"""
Unit tests for utils.protocol module.

Tests:
- create_client() with and without a signer
- NostrSdkTransport.connect() outcomes per relay
- check_relays() liveness reports and reconnect attempt limits
- subscribe()/unsubscribe() and notification dispatch
- send() acceptance, rejection, timeout and SDK errors
- close() cancels background tasks and shuts the client down
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from nostr_sdk import NostrSdkError

from nostrbridge.core.exceptions import ConnectivityError, RelayTimeoutError
from nostrbridge.models.filter import SubscriptionFilter
from nostrbridge.utils.protocol import (
    NostrSdkTransport,
    _NotificationHandler,
    create_client,
)


RELAY_A = "wss://relay-a.example"
RELAY_B = "wss://relay-b.example"


def _sdk_error(message: str) -> NostrSdkError:
    return NostrSdkError.Generic(message)


@pytest.fixture
def relay_urls():
    """Distinct stand-ins for nostr_sdk.RelayUrl objects, keyed by URL."""
    return {RELAY_A: MagicMock(name="relay_a"), RELAY_B: MagicMock(name="relay_b")}


@pytest.fixture
def patched_relay_url(relay_urls):
    with patch("nostrbridge.utils.protocol.RelayUrl") as mock_relay_url:
        mock_relay_url.parse.side_effect = lambda url: relay_urls[url]
        yield mock_relay_url


@pytest.fixture
def mock_client(relay_urls):
    client = MagicMock()
    client.add_relay = AsyncMock()
    output = MagicMock()
    output.success = [relay_urls[RELAY_A]]
    output.failed = {relay_urls[RELAY_B]: "connection refused"}
    client.try_connect = AsyncMock(return_value=output)
    client.handle_notifications = AsyncMock()
    client.subscribe_with_id = AsyncMock()
    client.unsubscribe = AsyncMock()
    client.connect_relay = AsyncMock()
    client.shutdown = AsyncMock()
    client.send_event_to = AsyncMock()
    client.relay = AsyncMock()
    return client


@pytest.fixture
async def transport(mock_client, patched_relay_url):
    transport = NostrSdkTransport(
        client=mock_client,
        connect_timeout=1.0,
        publish_timeout=0.05,
        reconnect_interval=3600.0,
        max_reconnect_attempts=2,
    )
    yield transport
    await transport.close()


def _relay_state(client, states):
    """Make client.relay(url) return relays whose is_connected() follows *states*."""

    async def relay(relay_url):
        relay = MagicMock()
        state = states[relay_url]
        if isinstance(state, Exception):
            raise state
        relay.is_connected.return_value = state
        return relay

    client.relay = AsyncMock(side_effect=relay)


# ============================================================================
# create_client
# ============================================================================


class TestCreateClient:
    """create_client()."""

    def test_without_keys(self):
        with patch("nostrbridge.utils.protocol.ClientBuilder") as builder_cls:
            create_client()
        builder_cls.return_value.signer.assert_not_called()
        builder_cls.return_value.build.assert_called_once()

    def test_with_keys(self):
        keys = MagicMock()
        with (
            patch("nostrbridge.utils.protocol.ClientBuilder") as builder_cls,
            patch("nostrbridge.utils.protocol.NostrSigner") as signer_cls,
        ):
            create_client(keys)
        signer_cls.keys.assert_called_once_with(keys)
        builder_cls.return_value.signer.assert_called_once_with(signer_cls.keys.return_value)
        builder_cls.return_value.signer.return_value.build.assert_called_once()


# ============================================================================
# Connection
# ============================================================================


class TestConnect:
    """connect()."""

    async def test_outcomes(self, transport, mock_client):
        outcomes = await transport.connect([RELAY_A, RELAY_B])
        assert outcomes == {RELAY_A: None, RELAY_B: "connection refused"}
        assert mock_client.add_relay.await_count == 2
        mock_client.try_connect.assert_awaited_once()

    async def test_unknown_failure_reason(self, transport, mock_client):
        mock_client.try_connect.return_value.failed = {}
        outcomes = await transport.connect([RELAY_B])
        assert outcomes == {RELAY_B: "Unknown error"}

    async def test_starts_background_tasks(self, transport, mock_client):
        await transport.connect([RELAY_A])
        assert transport._notifications_task is not None
        assert transport._supervisor_task is not None
        await asyncio.sleep(0)
        mock_client.handle_notifications.assert_awaited_once()
        handler = mock_client.handle_notifications.await_args.args[0]
        assert isinstance(handler, _NotificationHandler)


class TestCheckRelays:
    """Supervisor pass."""

    async def test_reports_reconnect(self, transport, mock_client, relay_urls):
        listener = MagicMock()
        transport.set_status_listener(listener)
        await transport.connect([RELAY_A, RELAY_B])
        _relay_state(mock_client, {relay_urls[RELAY_A]: True, relay_urls[RELAY_B]: True})

        await transport.check_relays()

        listener.assert_called_once_with(RELAY_B, True, None)
        mock_client.connect_relay.assert_not_awaited()

    async def test_requests_reconnect_of_dropped_relay(self, transport, mock_client, relay_urls):
        listener = MagicMock()
        transport.set_status_listener(listener)
        await transport.connect([RELAY_A])
        _relay_state(mock_client, {relay_urls[RELAY_A]: False})

        await transport.check_relays()

        mock_client.connect_relay.assert_awaited_once_with(relay_urls[RELAY_A])
        listener.assert_called_once_with(RELAY_A, False, "disconnected")

    async def test_reconnect_error_reported(self, transport, mock_client, relay_urls):
        listener = MagicMock()
        transport.set_status_listener(listener)
        await transport.connect([RELAY_A])
        _relay_state(mock_client, {relay_urls[RELAY_A]: False})
        mock_client.connect_relay.side_effect = _sdk_error("dns failure")

        await transport.check_relays()

        url, connected, error = listener.call_args.args
        assert (url, connected) == (RELAY_A, False)
        assert "dns failure" in error

    async def test_attempts_capped(self, transport, mock_client, relay_urls):
        await transport.connect([RELAY_A])
        _relay_state(mock_client, {relay_urls[RELAY_A]: False})

        for _ in range(5):
            await transport.check_relays()

        assert mock_client.connect_relay.await_count == 2

    async def test_attempts_reset_after_recovery(self, transport, mock_client, relay_urls):
        await transport.connect([RELAY_A])
        states = {relay_urls[RELAY_A]: False}
        _relay_state(mock_client, states)
        await transport.check_relays()
        await transport.check_relays()

        states[relay_urls[RELAY_A]] = True
        await transport.check_relays()
        states[relay_urls[RELAY_A]] = False
        await transport.check_relays()

        assert mock_client.connect_relay.await_count == 3

    async def test_relay_lookup_error(self, transport, mock_client, relay_urls):
        listener = MagicMock()
        transport.set_status_listener(listener)
        await transport.connect([RELAY_A])
        _relay_state(mock_client, {relay_urls[RELAY_A]: _sdk_error("relay not found")})

        await transport.check_relays()

        assert listener.call_args.args[1] is False
        assert "relay not found" in listener.call_args.args[2]


# ============================================================================
# Subscriptions
# ============================================================================


class TestSubscriptions:
    """subscribe()/unsubscribe() and dispatch."""

    async def test_subscribe(self, transport, mock_client):
        with patch("nostrbridge.utils.protocol.Filter") as filter_cls:
            sub_id = await transport.subscribe(
                SubscriptionFilter(kinds=(4,), p_tags=("b2" * 32,)), MagicMock()
            )
        assert len(sub_id) == 32
        filter_cls.from_json.assert_called_once_with(
            json.dumps({"kinds": [4], "#p": ["b2" * 32]})
        )
        mock_client.subscribe_with_id.assert_awaited_once_with(
            sub_id, filter_cls.from_json.return_value
        )

    async def test_dispatch_to_callback(self, transport):
        on_event = MagicMock()
        with patch("nostrbridge.utils.protocol.Filter"):
            sub_id = await transport.subscribe(SubscriptionFilter(kinds=(1,)), on_event)
        transport._dispatch(RELAY_A, sub_id, '{"id": "x"}')
        on_event.assert_called_once_with(RELAY_A, '{"id": "x"}')

    async def test_dispatch_unknown_subscription_ignored(self, transport):
        transport._dispatch(RELAY_A, "unknown", "{}")

    async def test_subscribe_error(self, transport, mock_client):
        mock_client.subscribe_with_id.side_effect = _sdk_error("not connected")
        with (
            patch("nostrbridge.utils.protocol.Filter"),
            pytest.raises(ConnectivityError, match="Failed to subscribe"),
        ):
            await transport.subscribe(SubscriptionFilter(kinds=(4,)), MagicMock())
        assert transport._callbacks == {}

    async def test_unsubscribe(self, transport, mock_client):
        on_event = MagicMock()
        with patch("nostrbridge.utils.protocol.Filter"):
            sub_id = await transport.subscribe(SubscriptionFilter(kinds=(4,)), on_event)
        await transport.unsubscribe(sub_id)
        mock_client.unsubscribe.assert_awaited_once_with(sub_id)
        transport._dispatch(RELAY_A, sub_id, "{}")
        on_event.assert_not_called()

    async def test_unsubscribe_unknown_is_noop(self, transport, mock_client):
        await transport.unsubscribe("missing")
        mock_client.unsubscribe.assert_not_awaited()


class TestNotificationHandler:
    """_NotificationHandler forwarding."""

    async def test_handle_forwards_event(self):
        transport = MagicMock()
        event = MagicMock()
        event.as_json.return_value = '{"kind": 4}'
        handler = _NotificationHandler(transport)

        result = await handler.handle(RELAY_A, "sub1", event)

        assert result is False
        transport._dispatch.assert_called_once_with(RELAY_A, "sub1", '{"kind": 4}')

    async def test_handle_msg_forwards_message(self):
        transport = MagicMock()
        msg = MagicMock()
        msg.as_json.return_value = '["EOSE", "sub1"]'
        handler = _NotificationHandler(transport)

        assert await handler.handle_msg(RELAY_A, msg) is False
        transport._on_message.assert_called_once_with(RELAY_A, '["EOSE", "sub1"]')

    @pytest.mark.parametrize(
        "raw", ['["EOSE", "sub1"]', '["NOTICE", "slow down"]', "[]", "{}", "not json"]
    )
    def test_on_message_tolerates_input(self, raw):
        NostrSdkTransport(client=MagicMock())._on_message(RELAY_A, raw)


# ============================================================================
# Publishing
# ============================================================================


class TestSend:
    """send()."""

    @pytest.fixture
    def event(self, make_event):
        return make_event(1, "hello")

    async def test_accepted(self, transport, mock_client, relay_urls, event):
        await transport.connect([RELAY_A])
        output = MagicMock()
        output.success = [relay_urls[RELAY_A]]
        output.failed = {}
        mock_client.send_event_to.return_value = output

        await transport.send(RELAY_A, event)

        args = mock_client.send_event_to.await_args.args
        assert args[0] == [relay_urls[RELAY_A]]
        assert args[1].id().to_hex() == event.id

    async def test_rejected(self, transport, mock_client, relay_urls, event):
        output = MagicMock()
        output.success = []
        output.failed = {relay_urls[RELAY_A]: "blocked: rate-limited"}
        mock_client.send_event_to.return_value = output

        with pytest.raises(ConnectivityError, match="rate-limited"):
            await transport.send(RELAY_A, event)

    async def test_rejected_without_reason(self, transport, mock_client, event):
        output = MagicMock()
        output.success = []
        output.failed = {}
        mock_client.send_event_to.return_value = output

        with pytest.raises(ConnectivityError, match="rejected"):
            await transport.send(RELAY_A, event)

    async def test_timeout(self, transport, mock_client, event):
        async def slow(*_args):
            await asyncio.sleep(1)

        mock_client.send_event_to.side_effect = slow

        with pytest.raises(RelayTimeoutError, match="Timed out"):
            await transport.send(RELAY_A, event)

    async def test_sdk_error(self, transport, mock_client, event):
        mock_client.send_event_to.side_effect = _sdk_error("not connected")

        with pytest.raises(ConnectivityError, match="not connected") as exc_info:
            await transport.send(RELAY_A, event)
        assert not isinstance(exc_info.value, RelayTimeoutError)


# ============================================================================
# Teardown
# ============================================================================


class TestClose:
    """close()."""

    async def test_cancels_tasks_and_shuts_down(self, mock_client, patched_relay_url):
        transport = NostrSdkTransport(client=mock_client, reconnect_interval=3600.0)
        await transport.connect([RELAY_A])
        supervisor = transport._supervisor_task

        await transport.close()

        assert supervisor.cancelled()
        assert transport._supervisor_task is None
        assert transport._notifications_task is None
        mock_client.shutdown.assert_awaited_once()

    async def test_shutdown_error_suppressed(self, mock_client):
        mock_client.shutdown.side_effect = _sdk_error("already closed")
        await NostrSdkTransport(client=mock_client).close()

    async def test_close_without_connect(self, mock_client):
        await NostrSdkTransport(client=mock_client).close()
        mock_client.shutdown.assert_awaited_once()

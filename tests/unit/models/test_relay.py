"""
Unit tests for models.relay module.

Tests:
- validate_relay_url() normalization and rejection
- RelayEndpoint status transitions
- RelayStatus snapshots are independent copies
"""

from dataclasses import FrozenInstanceError

import pytest

from nostrbridge.models.relay import RelayEndpoint, RelayStatus, validate_relay_url


# ============================================================================
# URL Validation
# ============================================================================


class TestValidateRelayUrl:
    """validate_relay_url()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("wss://relay.damus.io", "wss://relay.damus.io"),
            ("wss://relay.damus.io/", "wss://relay.damus.io"),
            ("WSS://Relay.Damus.IO", "wss://relay.damus.io"),
            ("  wss://nos.lol  ", "wss://nos.lol"),
            ("ws://localhost:7777", "ws://localhost:7777"),
            ("wss://relay.example.com/inbox", "wss://relay.example.com/inbox"),
        ],
    )
    def test_valid(self, raw, expected):
        assert validate_relay_url(raw) == expected

    @pytest.mark.parametrize("raw", ["https://relay.damus.io", "http://nos.lol", "ftp://x.org"])
    def test_wrong_scheme(self, raw):
        with pytest.raises(ValueError, match="must be ws or wss"):
            validate_relay_url(raw)

    @pytest.mark.parametrize("raw", ["relay.damus.io", "//relay.damus.io"])
    def test_missing_component(self, raw):
        with pytest.raises(ValueError):
            validate_relay_url(raw)

    def test_empty(self):
        with pytest.raises(ValueError, match="must not be empty"):
            validate_relay_url("")


# ============================================================================
# RelayEndpoint
# ============================================================================


class TestRelayEndpoint:
    """Status transitions."""

    def test_normalizes_url(self):
        assert RelayEndpoint("wss://NOS.lol/").url == "wss://nos.lol"

    def test_invalid_url(self):
        with pytest.raises(ValueError):
            RelayEndpoint("https://nos.lol")

    def test_initial_state(self):
        endpoint = RelayEndpoint("wss://nos.lol")
        assert endpoint.connected is False
        assert endpoint.last_error is None
        assert endpoint.reconnect_attempts == 0

    def test_failures_accumulate(self):
        endpoint = RelayEndpoint("wss://nos.lol")
        endpoint.mark_failed("timeout")
        endpoint.mark_failed("refused")
        assert endpoint.connected is False
        assert endpoint.last_error == "refused"
        assert endpoint.reconnect_attempts == 2

    def test_success_resets(self):
        endpoint = RelayEndpoint("wss://nos.lol")
        endpoint.mark_failed("timeout")
        endpoint.mark_connected()
        assert endpoint.connected is True
        assert endpoint.last_error is None
        assert endpoint.reconnect_attempts == 0

    def test_snapshot(self):
        endpoint = RelayEndpoint("wss://nos.lol")
        endpoint.mark_failed("timeout")
        snap = endpoint.snapshot()
        assert snap == RelayStatus("wss://nos.lol", False, "timeout", 1)
        endpoint.mark_connected()
        assert snap.connected is False
        with pytest.raises(FrozenInstanceError):
            snap.connected = True  # type: ignore[misc]

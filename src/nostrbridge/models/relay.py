"""
Relay endpoint URL validation and per-endpoint status.

[RelayEndpoint][nostrbridge.models.relay.RelayEndpoint] is the mutable
status cell the multiplexer keeps for every configured relay. Unlike the
other models it is not frozen: the multiplexer updates it in place as
connect, liveness and publish outcomes arrive, and hands out immutable
[RelayStatus][nostrbridge.models.relay.RelayStatus] snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from ._validation import validate_str_not_empty


def validate_relay_url(raw: str) -> str:
    """Validate a relay URL and return it in normalized form.

    The URL must use the ``ws`` or ``wss`` scheme and name a host. Scheme
    and host are lowercased by RFC 3986 normalization and a trailing
    slash on an empty path is dropped.

    Args:
        raw: Raw URL string, e.g. ``"wss://relay.damus.io/"``.

    Returns:
        The normalized URL, e.g. ``"wss://relay.damus.io"``.

    Raises:
        ValueError: If the URL is malformed, has another scheme, or has no host.
    """
    validate_str_not_empty(raw, "relay url")
    uri = uri_reference(raw.strip()).normalize()

    validator = (
        Validator()
        .require_presence_of("scheme", "host")
        .allow_schemes("ws", "wss")
        .check_validity_of("scheme", "host", "port", "path")
    )

    try:
        validator.validate(uri)
    except UnpermittedComponentError:
        raise ValueError(f"Invalid relay scheme: must be ws or wss: {raw}") from None
    except ValidationError as e:
        raise ValueError(f"Invalid relay URL {raw}: {e}") from None

    url = uri.unsplit()
    if uri.path in ("", "/") and not uri.query and not uri.fragment:
        url = url.rstrip("/")
    return url


@dataclass(frozen=True, slots=True)
class RelayStatus:
    """Point-in-time copy of a [RelayEndpoint][nostrbridge.models.relay.RelayEndpoint]."""

    url: str
    connected: bool
    last_error: str | None
    reconnect_attempts: int


@dataclass(slots=True)
class RelayEndpoint:
    """Mutable liveness status of one configured relay.

    Attributes:
        url: Normalized ``ws://`` or ``wss://`` URL.
        connected: Whether the last known outcome for this relay was a success.
        last_error: Reason of the most recent failure, cleared on success.
        reconnect_attempts: Failed attempts since the last success.

    Raises:
        ValueError: If *url* is not a valid relay URL.
    """

    url: str
    connected: bool = False
    last_error: str | None = None
    reconnect_attempts: int = 0

    def __post_init__(self) -> None:
        self.url = validate_relay_url(self.url)

    def mark_connected(self) -> None:
        self.connected = True
        self.last_error = None
        self.reconnect_attempts = 0

    def mark_failed(self, reason: str) -> None:
        self.connected = False
        self.last_error = reason
        self.reconnect_attempts += 1

    def snapshot(self) -> RelayStatus:
        return RelayStatus(
            url=self.url,
            connected=self.connected,
            last_error=self.last_error,
            reconnect_attempts=self.reconnect_attempts,
        )

"""nostrbridge exception hierarchy.

Typed exceptions for every error category the bridge distinguishes, so
that callers catch specific failures instead of bare ``Exception`` and
``CancelledError`` always propagates untouched.

Exception hierarchy:

```text
NostrBridgeError (base -- never raised directly)
├── ConfigurationError      -- missing/invalid key, bad relay URL, bad YAML
├── ConnectivityError        -- relay unreachable, network failures
│   └── RelayTimeoutError    -- connect or send timed out
├── ProtocolError            -- malformed events, unsupported channel ids
├── CryptoError              -- signing, verification, NIP-44 failures
├── PublishingError          -- no relay accepted an outbound event
└── InferenceError           -- the inference collaborator failed
```

See Also:
    [EventGate][nostrbridge.services.bridge.gate.EventGate]: The error
        boundary that logs every subclass raised while handling an event.
    [RelayMultiplexer][nostrbridge.services.bridge.multiplexer.RelayMultiplexer]:
        Raises [PublishingError][nostrbridge.core.exceptions.PublishingError]
        when every endpoint rejects an event.
"""

from __future__ import annotations


class NostrBridgeError(Exception):
    """Base exception for all nostrbridge errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrBridgeError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    Fatal to startup; the bridge never starts with a bad configuration.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(NostrBridgeError):
    """Base for relay/network connectivity errors."""


class RelayTimeoutError(ConnectivityError):
    """Connecting to or sending to a relay timed out."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NostrBridgeError):
    """Malformed wire event or unsupported channel identifier."""


# ---------------------------------------------------------------------------
# Crypto
# ---------------------------------------------------------------------------


class CryptoError(NostrBridgeError):
    """Signing, signature verification, or NIP-44 encryption failure.

    Raised by [KeyProvider][nostrbridge.utils.crypto.KeyProvider] so that
    callers never have to catch the FFI-level ``NostrSdkError`` directly.
    """


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(NostrBridgeError):
    """No relay accepted an outbound event.

    Attributes:
        failures: Mapping of relay URL to the rejection or error reason
            reported for that endpoint.
    """

    def __init__(self, message: str, failures: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.failures: dict[str, str] = dict(failures or {})


# ---------------------------------------------------------------------------
# Inference
# ---------------------------------------------------------------------------


class InferenceError(NostrBridgeError):
    """The inference collaborator failed to produce a response."""

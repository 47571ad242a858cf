"""Shared constants for the models layer.

Enumerations used across model, service and adapter modules. Placing
them here keeps the models layer free of dependencies on the layers
above it.

See Also:
    [SignedEvent][nostrbridge.models.event.SignedEvent]: Carries an
        [EventKind][nostrbridge.models.constants.EventKind].
    [decide()][nostrbridge.services.bridge.policy.decide]: Maps a
        [DmPolicy][nostrbridge.models.constants.DmPolicy] to an
        [AuthorizationDecision][nostrbridge.models.constants.AuthorizationDecision].
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics labels.

    Attributes:
        BRIDGE: The relay/inference bridge
            ([Bridge][nostrbridge.services.bridge.service.Bridge]).
    """

    BRIDGE = "bridge"


class EventKind(IntEnum):
    """Nostr event kinds the bridge consumes and produces.

    Attributes:
        TEXT_NOTE: Kind 1 -- public short text note (NIP-01). Inbound
            mentions and outbound public replies.
        ENCRYPTED_DIRECT_MESSAGE: Kind 4 -- encrypted direct message.
            Payloads are NIP-44 encrypted in both directions.
    """

    TEXT_NOTE = 1
    ENCRYPTED_DIRECT_MESSAGE = 4


class DmPolicy(StrEnum):
    """Authorization mode for inbound direct messages.

    Attributes:
        OPEN: Every sender is allowed.
        ALLOWLIST: Only senders listed in ``allowed_pubkeys`` are allowed.
        DISABLED: Every direct message is denied.
    """

    OPEN = "open"
    ALLOWLIST = "allowlist"
    DISABLED = "disabled"


class AuthorizationDecision(StrEnum):
    """Outcome of a direct-message authorization check."""

    ALLOW = "allow"
    DENY = "deny"


class ChannelType(StrEnum):
    """Conversation channel a reply is routed to.

    Attributes:
        DIRECT: Encrypted one-to-one conversation keyed by peer pubkey.
        PUBLIC: Public thread keyed by the originating event id.
    """

    DIRECT = "direct"
    PUBLIC = "public"


EVENT_KIND_MAX = 65_535

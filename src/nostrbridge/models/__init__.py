"""Pure dataclass models with zero I/O for events, relays and channels.

The models layer has no dependencies on other nostrbridge packages. Frozen
models use ``@dataclass(frozen=True, slots=True)`` and validate in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    SignedEvent: Validated signed event with lossless wire form.
    EventTemplate: Unsigned outbound event.
    RelayEndpoint: Mutable per-relay status cell owned by the multiplexer.
    RelayStatus: Immutable snapshot of a relay endpoint.
    ChannelReference: ``dm:``/``public:`` conversation address.
    SubscriptionFilter: NIP-01 filter for a relay subscription.
"""

from .channel import (
    CHANNEL_PROVIDER_TYPE,
    ChannelReference,
    dm_session_id,
    public_session_id,
)
from .constants import (
    EVENT_KIND_MAX,
    AuthorizationDecision,
    ChannelType,
    DmPolicy,
    EventKind,
    ServiceName,
)
from .event import EventTemplate, SignedEvent, Tags
from .filter import SubscriptionFilter
from .relay import RelayEndpoint, RelayStatus, validate_relay_url


__all__ = [
    "CHANNEL_PROVIDER_TYPE",
    "EVENT_KIND_MAX",
    "AuthorizationDecision",
    "ChannelReference",
    "ChannelType",
    "DmPolicy",
    "EventKind",
    "EventTemplate",
    "RelayEndpoint",
    "RelayStatus",
    "ServiceName",
    "SignedEvent",
    "SubscriptionFilter",
    "Tags",
    "dm_session_id",
    "public_session_id",
    "validate_relay_url",
]

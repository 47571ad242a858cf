"""Nostr relay to inference bridge.

See Also:
    [Bridge][nostrbridge.services.bridge.service.Bridge]: The service class.
    [BridgeConfig][nostrbridge.services.bridge.configs.BridgeConfig]: Service configuration.
"""

from .channel import ChannelCommand, ChannelProvider, MessageParser, Registry
from .configs import BridgeConfig, InferenceConfig
from .gate import EventGate
from .inference import HttpInferenceClient, InferenceClient
from .multiplexer import RelayMultiplexer, Subscription
from .policy import AuthorizationPolicy, decide
from .publisher import ResponsePublisher
from .service import Bridge


__all__ = [
    "AuthorizationPolicy",
    "Bridge",
    "BridgeConfig",
    "ChannelCommand",
    "ChannelProvider",
    "EventGate",
    "HttpInferenceClient",
    "InferenceClient",
    "InferenceConfig",
    "MessageParser",
    "Registry",
    "RelayMultiplexer",
    "ResponsePublisher",
    "Subscription",
    "decide",
]

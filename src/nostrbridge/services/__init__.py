"""Services built on [BaseService][nostrbridge.core.base_service.BaseService].

Attributes:
    Bridge: Subscribes to relays, answers direct messages and mentions
        through the inference collaborator, and publishes signed replies.
"""

from .bridge import Bridge, BridgeConfig


__all__ = ["Bridge", "BridgeConfig"]

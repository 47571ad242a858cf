r"""nostrbridge -- bridge between Nostr relays and a conversational inference service.

Ingests signed events from several relays, authenticates and authorizes
them, decrypts direct messages, asks the inference service for a reply,
and publishes the signed reply back across the same relays.

```text
              services         Bridge service, gate, multiplexer, publisher
             /        \
          core        utils    Base service, logging, metrics / keys, crypto, transport
             \        /
              models           Pure dataclasses (zero I/O)
```

Note:
    Top-level imports (``from nostrbridge import Bridge``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _get_version


try:
    __version__ = _get_version("nostrbridge")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "BaseService",
    "Bridge",
    "BridgeConfig",
    "ChannelCommand",
    "ChannelProvider",
    "ChannelReference",
    "EventGate",
    "KeyProvider",
    "Logger",
    "RelayMultiplexer",
    "ResponsePublisher",
    "SignedEvent",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("nostrbridge.core", "BaseService"),
    "Logger": ("nostrbridge.core", "Logger"),
    "ChannelReference": ("nostrbridge.models", "ChannelReference"),
    "SignedEvent": ("nostrbridge.models", "SignedEvent"),
    "Bridge": ("nostrbridge.services.bridge", "Bridge"),
    "BridgeConfig": ("nostrbridge.services.bridge", "BridgeConfig"),
    "ChannelCommand": ("nostrbridge.services.bridge", "ChannelCommand"),
    "ChannelProvider": ("nostrbridge.services.bridge", "ChannelProvider"),
    "EventGate": ("nostrbridge.services.bridge", "EventGate"),
    "RelayMultiplexer": ("nostrbridge.services.bridge", "RelayMultiplexer"),
    "ResponsePublisher": ("nostrbridge.services.bridge", "ResponsePublisher"),
    "KeyProvider": ("nostrbridge.utils.crypto", "KeyProvider"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'nostrbridge' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__

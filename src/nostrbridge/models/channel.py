"""
Conversation channel references and session identifiers.

A [ChannelReference][nostrbridge.models.channel.ChannelReference] names
where a reply goes: a direct conversation with a peer (``dm:<pubkey>``)
or a public thread rooted at an event (``public:<event-id>``). Session
identifiers group messages per sender for the inference collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_hex64
from .constants import ChannelType


_PREFIXES: dict[ChannelType, str] = {
    ChannelType.DIRECT: "dm",
    ChannelType.PUBLIC: "public",
}

_NAMES: dict[ChannelType, str] = {
    ChannelType.DIRECT: "Nostr DM",
    ChannelType.PUBLIC: "Nostr Public",
}

CHANNEL_PROVIDER_TYPE = "nostr"


@dataclass(frozen=True, slots=True)
class ChannelReference:
    """Where a conversation lives.

    Attributes:
        type: [ChannelType][nostrbridge.models.constants.ChannelType].
        id: Peer pubkey (direct) or originating event id (public), hex.

    Examples:
        ```python
        ref = ChannelReference.direct("ab" * 32)
        ref.channel_id   # 'dm:abab...'
        ref.name         # 'Nostr DM'
        ChannelReference.parse(ref.channel_id) == ref   # True
        ```
    """

    type: ChannelType
    id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", ChannelType(self.type))
        validate_hex64(self.id, "channel id")

    @classmethod
    def direct(cls, pubkey: str) -> ChannelReference:
        return cls(ChannelType.DIRECT, pubkey)

    @classmethod
    def public(cls, event_id: str) -> ChannelReference:
        return cls(ChannelType.PUBLIC, event_id)

    @property
    def channel_id(self) -> str:
        """``dm:<hex>`` or ``public:<event-id>``."""
        return f"{_PREFIXES[self.type]}:{self.id}"

    @property
    def name(self) -> str:
        return _NAMES[self.type]

    def to_dict(self) -> dict[str, str]:
        """Channel descriptor sent alongside a message: ``{type, id, name}``."""
        return {"type": CHANNEL_PROVIDER_TYPE, "id": self.channel_id, "name": self.name}

    @classmethod
    def parse(cls, channel_id: str) -> ChannelReference:
        """Parse a ``dm:<hex>`` or ``public:<event-id>`` identifier.

        Raises:
            ValueError: If the prefix is unknown or the id is not 64 hex characters.
        """
        prefix, sep, value = channel_id.partition(":")
        if not sep:
            raise ValueError(f"Invalid channel id: {channel_id}")
        for channel_type, known in _PREFIXES.items():
            if prefix == known:
                return cls(channel_type, value)
        raise ValueError(f"Unknown channel prefix: {prefix}")


def dm_session_id(pubkey: str) -> str:
    """Session identifier for direct messages from *pubkey*."""
    return f"nostr-dm-{pubkey}"


def public_session_id(pubkey: str) -> str:
    """Session identifier for public mentions from *pubkey*."""
    return f"nostr-public-{pubkey}"

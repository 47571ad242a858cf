"""
Signed and unsigned Nostr event records.

[SignedEvent][nostrbridge.models.event.SignedEvent] is the validated,
immutable form of an event received from (or sent to) a relay.
[EventTemplate][nostrbridge.models.event.EventTemplate] is the unsigned
shape built by the publisher and handed to the key provider for signing.

Construction checks field types and hex shapes only. Whether ``id``
matches the canonical fingerprint and ``sig`` verifies is decided by
[KeyProvider.verify()][nostrbridge.utils.crypto.KeyProvider.verify].

See Also:
    [EventGate][nostrbridge.services.bridge.gate.EventGate]: Consumes
        [SignedEvent][nostrbridge.models.event.SignedEvent] instances.
    [ResponsePublisher][nostrbridge.services.bridge.publisher.ResponsePublisher]:
        Produces [EventTemplate][nostrbridge.models.event.EventTemplate] instances.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from ._validation import (
    freeze_tags,
    validate_hex64,
    validate_hex128,
    validate_kind,
    validate_str,
    validate_timestamp,
)


Tags = tuple[tuple[str, ...], ...]

_WIRE_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


def _tags_to_wire(tags: Tags) -> list[list[str]]:
    return [list(tag) for tag in tags]


@dataclass(frozen=True, slots=True)
class SignedEvent:
    """Immutable signed Nostr event.

    Attributes:
        id: Event id, 64 lowercase hex characters.
        pubkey: Author public key, 64 lowercase hex characters.
        kind: Event kind (0..65535).
        created_at: Unix timestamp in seconds.
        content: Event content (ciphertext for kind 4).
        tags: Ordered tags, each an ordered tuple of strings.
        sig: Schnorr signature, 128 lowercase hex characters.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a hex field has the wrong shape or a number is out of range.

    Examples:
        ```python
        event = SignedEvent.from_json(raw)
        event.kind                      # 4
        event.is_addressed_to(my_hex)   # True when a p-tag names my_hex
        event.to_json() == raw          # wire form round-trips
        ```
    """

    id: str
    pubkey: str
    kind: int
    created_at: int
    content: str
    tags: Tags
    sig: str

    def __post_init__(self) -> None:
        validate_hex64(self.id, "id")
        validate_hex64(self.pubkey, "pubkey")
        validate_kind(self.kind, "kind")
        validate_timestamp(self.created_at, "created_at")
        validate_str(self.content, "content")
        object.__setattr__(self, "tags", freeze_tags(self.tags, "tags"))
        validate_hex128(self.sig, "sig")

    # -------------------------------------------------------------------------
    # Tag helpers
    # -------------------------------------------------------------------------

    def tag_values(self, name: str) -> tuple[str, ...]:
        """Return the first value of every tag whose name is *name*, in order."""
        return tuple(tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name)

    def p_tags(self) -> tuple[str, ...]:
        """Return the pubkeys named by ``p`` tags."""
        return self.tag_values("p")

    def is_addressed_to(self, pubkey: str) -> bool:
        """Whether any ``p`` tag names *pubkey* (hex)."""
        return pubkey in self.p_tags()

    # -------------------------------------------------------------------------
    # Wire form
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignedEvent:
        """Build an event from its wire dictionary.

        Raises:
            ValueError: If a required field is missing.
            TypeError: If a field has the wrong type.
        """
        missing = [name for name in _WIRE_FIELDS if name not in data]
        if missing:
            raise ValueError(f"Event is missing fields: {', '.join(missing)}")
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            kind=data["kind"],
            created_at=data["created_at"],
            content=data["content"],
            tags=data["tags"],
            sig=data["sig"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire dictionary ``{id, pubkey, created_at, kind, tags, content, sig}``."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": _tags_to_wire(self.tags),
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_json(cls, raw: str) -> SignedEvent:
        """Parse a JSON wire event.

        Raises:
            ValueError: If *raw* is not valid JSON or not a JSON object.
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Event JSON must be an object, got {type(data).__name__}")
        return cls.from_dict(data)

    def to_json(self) -> str:
        """Serialize to compact JSON in wire field order."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True, slots=True)
class EventTemplate:
    """Unsigned outbound event.

    Attributes:
        kind: Event kind.
        created_at: Unix timestamp in seconds, stamped by the publisher.
        tags: Ordered tags.
        content: Content to sign (ciphertext for direct messages).
    """

    kind: int
    created_at: int
    tags: Tags = field(default=())
    content: str = ""

    def __post_init__(self) -> None:
        validate_kind(self.kind, "kind")
        validate_timestamp(self.created_at, "created_at")
        validate_str(self.content, "content")
        object.__setattr__(self, "tags", freeze_tags(self.tags, "tags"))

    def tags_as_lists(self) -> list[list[str]]:
        """Tags in the list-of-lists shape ``Tag.parse`` expects."""
        return _tags_to_wire(self.tags)

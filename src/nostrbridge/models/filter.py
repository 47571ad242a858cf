"""Subscription filter record.

A [SubscriptionFilter][nostrbridge.models.filter.SubscriptionFilter] is
the bridge-side description of one relay subscription. Its wire form is
the NIP-01 filter object, e.g. ``{"kinds": [4], "#p": ["<hex>"], "since": 1700000000}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_hex64, validate_kind, validate_timestamp


@dataclass(frozen=True, slots=True)
class SubscriptionFilter:
    """One subscription filter.

    Attributes:
        kinds: Event kinds to match.
        p_tags: Pubkeys (hex) that must appear in a ``p`` tag.
        since: Only events created at or after this unix timestamp.
    """

    kinds: tuple[int, ...]
    p_tags: tuple[str, ...] = field(default=())
    since: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kinds", tuple(self.kinds))
        object.__setattr__(self, "p_tags", tuple(self.p_tags))
        if not self.kinds:
            raise ValueError("kinds must not be empty")
        for kind in self.kinds:
            validate_kind(kind, "kinds")
        for pubkey in self.p_tags:
            validate_hex64(pubkey, "p_tags")
        if self.since is not None:
            validate_timestamp(self.since, "since")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kinds": list(self.kinds)}
        if self.p_tags:
            data["#p"] = list(self.p_tags)
        if self.since is not None:
            data["since"] = self.since
        return data

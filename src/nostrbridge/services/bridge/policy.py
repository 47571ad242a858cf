"""Authorization of inbound direct messages.

[decide()][nostrbridge.services.bridge.policy.decide] is a pure function
of (sender, mode, allow-set). [AuthorizationPolicy][nostrbridge.services.bridge.policy.AuthorizationPolicy]
decodes the configured allow-list once and delegates to it.

Allow-list entries are either 64-character hex pubkeys or ``npub1...``
strings. An entry that does not decode simply never matches.
"""

from __future__ import annotations

from collections.abc import Iterable

from nostrbridge.models.constants import AuthorizationDecision, DmPolicy
from nostrbridge.utils.keys import decode_npub


def normalize_allow_set(entries: Iterable[str]) -> frozenset[str]:
    """Return the hex pubkeys named by *entries*; undecodable entries are skipped."""
    allowed: set[str] = set()
    for entry in entries:
        if entry.startswith("npub1"):
            decoded = decode_npub(entry)
            if decoded is not None:
                allowed.add(decoded)
        else:
            allowed.add(entry.lower())
    return frozenset(allowed)


def decide(
    sender_pubkey: str,
    mode: DmPolicy | str,
    allow_set: Iterable[str],
) -> AuthorizationDecision:
    """Decide whether a direct message from *sender_pubkey* is accepted.

    Args:
        sender_pubkey: Sender public key, hex.
        mode: Policy mode, as a [DmPolicy][nostrbridge.models.constants.DmPolicy]
            or its string value.
        allow_set: Hex or ``npub`` entries, consulted only in
            [ALLOWLIST][nostrbridge.models.constants.DmPolicy] mode.
    """
    mode = DmPolicy(mode)
    if mode == DmPolicy.OPEN:
        return AuthorizationDecision.ALLOW
    if mode == DmPolicy.DISABLED:
        return AuthorizationDecision.DENY

    if sender_pubkey.lower() in normalize_allow_set(allow_set):
        return AuthorizationDecision.ALLOW
    return AuthorizationDecision.DENY


class AuthorizationPolicy:
    """Configured DM policy with a pre-decoded allow-set."""

    def __init__(self, mode: DmPolicy = DmPolicy.OPEN, allowed: Iterable[str] = ()) -> None:
        self._mode = DmPolicy(mode)
        self._allowed = normalize_allow_set(allowed)

    @property
    def mode(self) -> DmPolicy:
        return self._mode

    @property
    def allowed(self) -> frozenset[str]:
        return self._allowed

    def decide(self, sender_pubkey: str) -> AuthorizationDecision:
        return decide(sender_pubkey, self._mode, self._allowed)

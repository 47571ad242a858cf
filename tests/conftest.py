"""
Pytest configuration and shared fixtures for nostrbridge tests.

Provides:
- The bridge identity loaded into ``NOSTR_NSEC`` for every test
- Key providers for the bridge and for a peer
- A factory for signed events authored by the peer
"""

import logging
import time
from collections.abc import Callable

import pytest
from nostr_sdk import Keys

from nostrbridge.models.event import EventTemplate, SignedEvent
from nostrbridge.utils.crypto import KeyProvider


# Valid secp256k1 test keys (DO NOT USE IN PRODUCTION)
VALID_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)
PEER_HEX_KEY = (
    "3f1c6a7bd2e04c52a0b8f6d1e9c47a25b8d36e0f14a9c2d7e5b08f3a6c1d2e4f"  # pragma: allowlist secret
)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def _set_private_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set NOSTR_NSEC for every test so configs load an identity."""
    monkeypatch.setenv("NOSTR_NSEC", VALID_HEX_KEY)


# ============================================================================
# Identities
# ============================================================================


@pytest.fixture
def bridge_keys() -> Keys:
    return Keys.parse(VALID_HEX_KEY)


@pytest.fixture
def key_provider(bridge_keys: Keys) -> KeyProvider:
    """Key provider for the bridge identity."""
    return KeyProvider(bridge_keys)


@pytest.fixture
def peer_provider() -> KeyProvider:
    """Key provider for a remote user talking to the bridge."""
    return KeyProvider(Keys.parse(PEER_HEX_KEY))


@pytest.fixture
def make_event(peer_provider: KeyProvider) -> Callable[..., SignedEvent]:
    """Factory for events signed by the peer (or by ``signer`` when given)."""

    def _make(
        kind: int,
        content: str = "",
        tags: tuple[tuple[str, ...], ...] = (),
        *,
        signer: KeyProvider | None = None,
        created_at: int | None = None,
    ) -> SignedEvent:
        template = EventTemplate(
            kind=kind,
            created_at=created_at if created_at is not None else int(time.time()),
            tags=tags,
            content=content,
        )
        return (signer or peer_provider).sign(template)

    return _make

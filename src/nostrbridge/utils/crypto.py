"""Signing, verification and NIP-44 encryption on top of nostr-sdk.

[KeyProvider][nostrbridge.utils.crypto.KeyProvider] is the only place
the bridge touches its secret key. It converts between the bridge's own
[SignedEvent][nostrbridge.models.event.SignedEvent] /
[EventTemplate][nostrbridge.models.event.EventTemplate] records and
nostr-sdk FFI objects, and translates ``NostrSdkError`` into
[CryptoError][nostrbridge.core.exceptions.CryptoError].
"""

from __future__ import annotations

import logging

from nostr_sdk import (
    Event,
    EventBuilder,
    Keys,
    Kind,
    Nip44Version,
    NostrSdkError,
    PublicKey,
    Tag,
    Timestamp,
    nip44_decrypt,
    nip44_encrypt,
)

from nostrbridge.core.exceptions import CryptoError
from nostrbridge.models.event import EventTemplate, SignedEvent


logger = logging.getLogger(__name__)


def _parse_public_key(pubkey: str) -> PublicKey:
    try:
        return PublicKey.parse(pubkey)
    except NostrSdkError as e:
        raise CryptoError(f"Invalid public key {pubkey}: {e}") from e


class KeyProvider:
    """Key and crypto primitives bound to one identity.

    Args:
        keys: The bridge identity (secret key plus derived public key).

    Examples:
        ```python
        provider = KeyProvider(config.keys)
        signed = provider.sign(EventTemplate(kind=1, created_at=now, content="hi"))
        provider.verify(signed)                      # True
        ciphertext = provider.encrypt(peer_hex, "hello")
        ```
    """

    def __init__(self, keys: Keys) -> None:
        self._keys = keys
        self._public_key = keys.public_key()
        self._public_key_hex = self._public_key.to_hex()
        self._npub = self._public_key.to_bech32()

    @property
    def public_key(self) -> str:
        """Own public key, hex."""
        return self._public_key_hex

    @property
    def npub(self) -> str:
        """Own public key, ``npub1...``."""
        return self._npub

    def sign(self, template: EventTemplate) -> SignedEvent:
        """Compute the id of *template* and sign it.

        Raises:
            CryptoError: If the SDK rejects a tag or fails to sign.
        """
        try:
            builder = (
                EventBuilder(Kind(template.kind), template.content)
                .tags([Tag.parse(tag) for tag in template.tags_as_lists()])
                .custom_created_at(Timestamp.from_secs(template.created_at))
            )
            event = builder.sign_with_keys(self._keys)
        except NostrSdkError as e:
            raise CryptoError(f"Failed to sign event: {e}") from e
        return SignedEvent.from_json(event.as_json())

    def verify(self, event: SignedEvent) -> bool:
        """Whether the id of *event* is its canonical fingerprint and its signature verifies."""
        try:
            return bool(Event.from_json(event.to_json()).verify())
        except NostrSdkError as e:
            logger.debug("verify_error event_id=%s error=%s", event.id, e)
            return False

    def encrypt(self, peer_pubkey: str, plaintext: str) -> str:
        """Encrypt *plaintext* for *peer_pubkey* with NIP-44 v2.

        Raises:
            CryptoError: If the peer key is invalid or encryption fails.
        """
        peer = _parse_public_key(peer_pubkey)
        try:
            return nip44_encrypt(self._keys.secret_key(), peer, plaintext, Nip44Version.V2)
        except NostrSdkError as e:
            raise CryptoError(f"NIP-44 encryption failed: {e}") from e

    def decrypt(self, peer_pubkey: str, ciphertext: str) -> str:
        """Decrypt a NIP-44 payload sent by *peer_pubkey*.

        Raises:
            CryptoError: If the peer key is invalid or the payload does not decrypt.
        """
        peer = _parse_public_key(peer_pubkey)
        try:
            return nip44_decrypt(self._keys.secret_key(), peer, ciphertext)
        except NostrSdkError as e:
            raise CryptoError(f"NIP-44 decryption failed: {e}") from e

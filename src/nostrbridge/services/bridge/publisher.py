"""Outbound replies: public notes and encrypted direct messages.

[ResponsePublisher][nostrbridge.services.bridge.publisher.ResponsePublisher]
builds the unsigned template for each outbound shape, has the
[KeyProvider][nostrbridge.utils.crypto.KeyProvider] sign it, and hands
the signed event to the
[RelayMultiplexer][nostrbridge.services.bridge.multiplexer.RelayMultiplexer].

Tag layout:

```text
public reply    kind 1   [["e", <parent id>, "", "reply"], ["p", <parent author>]]
direct message  kind 4   [["p", <recipient>]]          content = NIP-44 ciphertext
```

Encryption and publish failures propagate to the caller.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from nostrbridge.core.logger import Logger
from nostrbridge.models.constants import EventKind
from nostrbridge.models.event import EventTemplate


if TYPE_CHECKING:
    from nostrbridge.services.bridge.multiplexer import RelayMultiplexer
    from nostrbridge.utils.crypto import KeyProvider


class ResponsePublisher:
    """Signs and publishes the bridge's responses.

    Args:
        keys: Key provider for the bridge identity.
        multiplexer: Relay fan-out used to publish.
        clock: Returns the current unix time in seconds.
    """

    def __init__(
        self,
        keys: KeyProvider,
        multiplexer: RelayMultiplexer,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._keys = keys
        self._multiplexer = multiplexer
        self._clock = clock
        self._logger = Logger("publisher")

    async def publish_reply(self, text: str, parent_event_id: str, parent_pubkey: str) -> str:
        """Publish *text* as a kind 1 reply to *parent_event_id*.

        Returns:
            Id of the published event.

        Raises:
            CryptoError: If signing fails.
            PublishingError: If no relay accepted the event.
        """
        template = EventTemplate(
            kind=EventKind.TEXT_NOTE,
            created_at=int(self._clock()),
            tags=(("e", parent_event_id, "", "reply"), ("p", parent_pubkey)),
            content=text,
        )
        event = self._keys.sign(template)
        self._logger.info("publishing_reply", event_id=event.id, parent=parent_event_id)
        await self._multiplexer.publish(event)
        return event.id

    async def publish_direct_message(self, text: str, recipient_pubkey: str) -> str:
        """Encrypt *text* for *recipient_pubkey* and publish it as kind 4.

        Returns:
            Id of the published event.

        Raises:
            CryptoError: If encryption or signing fails.
            PublishingError: If no relay accepted the event.
        """
        ciphertext = self._keys.encrypt(recipient_pubkey, text)
        template = EventTemplate(
            kind=EventKind.ENCRYPTED_DIRECT_MESSAGE,
            created_at=int(self._clock()),
            tags=(("p", recipient_pubkey),),
            content=ciphertext,
        )
        event = self._keys.sign(template)
        self._logger.info("publishing_dm", event_id=event.id, recipient=recipient_pubkey)
        await self._multiplexer.publish(event)
        return event.id

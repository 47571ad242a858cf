"""
Inbound event dispatch: authenticate, filter, route, answer.

[EventGate.handle()][nostrbridge.services.bridge.gate.EventGate.handle]
runs every delivered event through, in order:

1. signature verification (invalid: warning, dropped);
2. self-loop guard (own events: dropped silently);
3. replay guard over a bounded recently-seen id cache (debug, dropped);
4. routing by kind:
    * kind 4 addressed to the bridge: direct-message pipeline;
    * kind 1 addressed to the bridge, when public replies are enabled:
      mention pipeline;
    * anything else: ignored.

Both pipelines record the inbound message, offer it to the channel's
message parsers, obtain a response (from a registered command or from
inference) and publish it. Decryption, inference and publish failures
are logged as errors and abandon the event. Nothing but
``asyncio.CancelledError`` escapes ``handle()``.

See Also:
    [AuthorizationPolicy][nostrbridge.services.bridge.policy.AuthorizationPolicy]:
        Applied to every direct message.
    [ResponsePublisher][nostrbridge.services.bridge.publisher.ResponsePublisher]:
        Publishes the reply.
"""

from __future__ import annotations

import asyncio
import re
from collections import OrderedDict
from collections.abc import Callable
from typing import TYPE_CHECKING

from nostrbridge.core.exceptions import CryptoError, InferenceError, PublishingError
from nostrbridge.core.logger import Logger
from nostrbridge.models.channel import ChannelReference, dm_session_id, public_session_id
from nostrbridge.models.constants import AuthorizationDecision, EventKind
from nostrbridge.utils.keys import encode_npub


if TYPE_CHECKING:
    from nostrbridge.models.event import SignedEvent
    from nostrbridge.services.bridge.channel import ChannelProvider
    from nostrbridge.services.bridge.inference import InferenceClient
    from nostrbridge.services.bridge.policy import AuthorizationPolicy
    from nostrbridge.services.bridge.publisher import ResponsePublisher
    from nostrbridge.utils.crypto import KeyProvider


MetricHook = Callable[[str], None]
"""Called with a counter name each time the gate counts something."""


class RecentlySeen:
    """Bounded LRU set of event ids. A capacity of 0 remembers nothing."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must be non-negative")
        self._capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._ids)

    def check_and_add(self, event_id: str) -> bool:
        """Return True if *event_id* was already present; remember it either way."""
        if self._capacity == 0:
            return False
        if event_id in self._ids:
            self._ids.move_to_end(event_id)
            return True
        self._ids[event_id] = None
        if len(self._ids) > self._capacity:
            self._ids.popitem(last=False)
        return False


class EventGate:
    """Top-level dispatcher for events delivered by the relay subscription.

    Args:
        keys: Bridge identity: verification, decryption, own pubkey.
        publisher: Publishes replies.
        inference: The inference collaborator.
        policy: DM authorization policy.
        channel: Channel provider for commands and message parsers.
        enable_public_replies: Handle kind 1 mentions.
        dedup_cache_size: Capacity of the replay guard (0 disables it).
        on_metric: Optional counter hook.
    """

    def __init__(
        self,
        keys: KeyProvider,
        publisher: ResponsePublisher,
        inference: InferenceClient,
        policy: AuthorizationPolicy,
        *,
        channel: ChannelProvider | None = None,
        enable_public_replies: bool = False,
        dedup_cache_size: int = 10_000,
        on_metric: MetricHook | None = None,
    ) -> None:
        self._keys = keys
        self._publisher = publisher
        self._inference = inference
        self._policy = policy
        self._channel = channel
        self._enable_public_replies = enable_public_replies
        self._seen = RecentlySeen(dedup_cache_size)
        self._on_metric = on_metric
        self._logger = Logger("event_gate")

        own_npub = re.escape(keys.npub)
        self._own_mention = re.compile(f"nostr:{own_npub}|@{own_npub}")

    def _count(self, name: str) -> None:
        if self._on_metric is not None:
            self._on_metric(name)

    async def handle(self, event: SignedEvent) -> None:
        """Process one inbound event. Never raises except on cancellation."""
        log = self._logger.bind(event_id=event.id, sender=event.pubkey)
        try:
            await self._dispatch(event, log)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Intentionally broad: per-event error boundary
            log.exception("event_handling_failed", error=str(e))

    async def _dispatch(self, event: SignedEvent, log: Logger) -> None:
        self._count("events_received")

        if not self._keys.verify(event):
            log.warning("invalid_signature_dropped", kind=event.kind)
            self._count("events_rejected_signature")
            return

        own_pubkey = self._keys.public_key
        if event.pubkey == own_pubkey:
            return

        if self._seen.check_and_add(event.id):
            log.debug("replay_dropped", kind=event.kind)
            self._count("events_replayed")
            return

        if event.kind == EventKind.ENCRYPTED_DIRECT_MESSAGE:
            if event.is_addressed_to(own_pubkey):
                await self._handle_direct_message(event, log)
            return

        if event.kind == EventKind.TEXT_NOTE and self._enable_public_replies:
            if event.is_addressed_to(own_pubkey):
                await self._handle_mention(event, log)

    # -------------------------------------------------------------------------
    # Pipelines
    # -------------------------------------------------------------------------

    async def _handle_direct_message(self, event: SignedEvent, log: Logger) -> None:
        if self._policy.decide(event.pubkey) is AuthorizationDecision.DENY:
            log.info("dm_denied", policy=self._policy.mode)
            self._count("dm_denied")
            return

        try:
            plaintext = self._keys.decrypt(event.pubkey, event.content)
        except CryptoError as e:
            log.error("decrypt_failed", error=str(e))
            self._count("decrypt_failed")
            return

        channel = ChannelReference.direct(event.pubkey)
        sender = encode_npub(event.pubkey)
        session_id = dm_session_id(event.pubkey)
        log.info("dm_received", channel=channel.channel_id)

        response = await self._respond(session_id, plaintext, sender, channel, log)
        if response is None:
            return

        try:
            reply_id = await self._publisher.publish_direct_message(response, event.pubkey)
        except (CryptoError, PublishingError) as e:
            log.error("publish_failed", error=str(e))
            self._count("publish_failed")
            return

        log.info("dm_answered", reply_id=reply_id)
        self._count("replies_published")

    async def _handle_mention(self, event: SignedEvent, log: Logger) -> None:
        channel = ChannelReference.public(event.id)
        sender = encode_npub(event.pubkey)
        session_id = public_session_id(event.pubkey)
        text = self._own_mention.sub("", event.content).strip()
        log.info("mention_received", channel=channel.channel_id)

        response = await self._respond(session_id, text, sender, channel, log)
        if response is None:
            return

        try:
            reply_id = await self._publisher.publish_reply(response, event.id, event.pubkey)
        except (CryptoError, PublishingError) as e:
            log.error("publish_failed", error=str(e))
            self._count("publish_failed")
            return

        log.info("mention_answered", reply_id=reply_id)
        self._count("replies_published")

    async def _respond(
        self,
        session_id: str,
        text: str,
        sender: str,
        channel: ChannelReference,
        log: Logger,
    ) -> str | None:
        """Record *text*, then answer it by command or inference. None means abandon."""
        await self._inference.log_message(session_id, text, sender=sender, channel=channel)

        if self._channel is not None:
            await self._channel.observe(text, channel)
            try:
                command_reply = await self._channel.run_command(text, channel)
            except Exception as e:  # Intentionally broad: command handlers are host code
                log.error("command_failed", error=str(e))
                return None
            if command_reply is not None:
                return command_reply

        try:
            return await self._inference.inject(
                session_id, f"[{sender}]: {text}", sender=sender, channel=channel
            )
        except InferenceError as e:
            log.error("inference_failed", session=session_id, error=str(e))
            self._count("inference_failed")
            return None

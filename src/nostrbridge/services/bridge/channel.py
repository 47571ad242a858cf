"""
Channel provider: commands, message parsers and outbound sends.

The [ChannelProvider][nostrbridge.services.bridge.channel.ChannelProvider]
is the bridge's surface toward the host application. It is constructed
by the [Bridge][nostrbridge.services.bridge.service.Bridge] with the
publisher and bot identity it needs, and owns two
[Registry][nostrbridge.services.bridge.channel.Registry] instances:

* commands, keyed by name: a direct message that starts with the command
  prefix followed by a registered name is answered by the command
  handler instead of the inference collaborator;
* message parsers, keyed by id: every inbound message is offered to each
  parser whose ``matches()`` accepts it.

Examples:
    ```python
    provider.register_command(
        ChannelCommand("ping", "Liveness check", lambda args, channel: "pong")
    )
    await provider.send("dm:" + peer_hex, "hello")
    ```
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

from nostrbridge.core.exceptions import ProtocolError
from nostrbridge.core.logger import Logger
from nostrbridge.models.channel import CHANNEL_PROVIDER_TYPE, ChannelReference
from nostrbridge.models.constants import ChannelType


if TYPE_CHECKING:
    from nostrbridge.services.bridge.publisher import ResponsePublisher


T = TypeVar("T")

CommandHandler = Callable[[list[str], ChannelReference], "str | Awaitable[str]"]


@dataclass(frozen=True, slots=True)
class ChannelCommand:
    """A named command answered without inference.

    Attributes:
        name: Word following the prefix, e.g. ``"help"`` for ``!help``.
        description: One-line help text.
        handler: Called with the whitespace-split arguments and the channel;
            returns the reply text (or an awaitable of it).
    """

    name: str
    description: str
    handler: CommandHandler

    def __post_init__(self) -> None:
        if not self.name or any(c.isspace() for c in self.name):
            raise ValueError(f"Command name must be a single non-empty word: {self.name!r}")


class MessageParser(Protocol):
    """Observer of inbound messages."""

    @property
    def id(self) -> str: ...

    def matches(self, text: str) -> bool: ...

    async def handle(self, text: str, channel: ChannelReference) -> None: ...


class Registry(Generic[T]):
    """Keyed collection whose only mutators are ``register`` and ``unregister``.

    Re-registering a key replaces the previous item and keeps its position.
    """

    def __init__(self) -> None:
        self._items: dict[str, T] = {}

    def register(self, key: str, item: T) -> None:
        self._items[key] = item

    def unregister(self, key: str) -> bool:
        """Remove *key*; return whether it was present."""
        return self._items.pop(key, None) is not None

    def get(self, key: str) -> T | None:
        return self._items.get(key)

    def values(self) -> list[T]:
        return list(self._items.values())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)


class ChannelProvider:
    """Host-facing channel surface for the ``nostr`` channel type.

    Args:
        publisher: Publisher used by [send()][nostrbridge.services.bridge.channel.ChannelProvider.send].
        bot_npub: The bridge identity as ``npub1...``.
        command_prefix: Prefix that marks a command in a direct message.
    """

    id = CHANNEL_PROVIDER_TYPE

    def __init__(
        self,
        publisher: ResponsePublisher,
        bot_npub: str,
        *,
        command_prefix: str = "!",
    ) -> None:
        self._publisher = publisher
        self._bot_npub = bot_npub
        self._command_prefix = command_prefix
        self._commands: Registry[ChannelCommand] = Registry()
        self._parsers: Registry[MessageParser] = Registry()
        self._logger = Logger("channel")

    @property
    def bot_username(self) -> str:
        return self._bot_npub

    @property
    def command_prefix(self) -> str:
        return self._command_prefix

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def register_command(self, command: ChannelCommand) -> None:
        self._commands.register(command.name, command)

    def unregister_command(self, name: str) -> None:
        self._commands.unregister(name)

    def commands(self) -> list[ChannelCommand]:
        return self._commands.values()

    def match_command(self, text: str) -> tuple[ChannelCommand, list[str]] | None:
        """Return the registered command *text* invokes and its arguments, if any."""
        stripped = text.strip()
        if not stripped.startswith(self._command_prefix):
            return None
        words = stripped[len(self._command_prefix) :].split()
        if not words:
            return None
        command = self._commands.get(words[0])
        if command is None:
            return None
        return command, words[1:]

    async def run_command(self, text: str, channel: ChannelReference) -> str | None:
        """Run the command *text* invokes and return its reply, or None if it is not a command."""
        matched = self.match_command(text)
        if matched is None:
            return None
        command, args = matched
        self._logger.info("command_invoked", command=command.name, channel=channel.channel_id)
        result = command.handler(args, channel)
        if inspect.isawaitable(result):
            result = await result
        return str(result)

    # -------------------------------------------------------------------------
    # Message parsers
    # -------------------------------------------------------------------------

    def add_message_parser(self, parser: MessageParser) -> None:
        self._parsers.register(parser.id, parser)

    def remove_message_parser(self, parser_id: str) -> None:
        self._parsers.unregister(parser_id)

    def message_parsers(self) -> list[MessageParser]:
        return self._parsers.values()

    async def observe(self, text: str, channel: ChannelReference) -> None:
        """Offer *text* to every matching parser; parser errors are logged only."""
        for parser in self._parsers.values():
            try:
                if parser.matches(text):
                    await parser.handle(text, channel)
            except Exception as e:  # Intentionally broad: parsers are third-party observers
                self._logger.error(
                    "message_parser_failed",
                    parser=parser.id,
                    channel=channel.channel_id,
                    error=str(e),
                )

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def send(self, channel_id: str, content: str) -> str:
        """Send *content* to a ``dm:<hex>`` channel.

        Returns:
            Id of the published event.

        Raises:
            ProtocolError: If *channel_id* is not a direct-message channel.
            CryptoError: If encryption fails.
            PublishingError: If no relay accepted the event.
        """
        try:
            channel = ChannelReference.parse(channel_id)
        except (TypeError, ValueError):
            raise ProtocolError(f"Unsupported Nostr channel format: {channel_id}") from None
        if channel.type is not ChannelType.DIRECT:
            raise ProtocolError(f"Unsupported Nostr channel format: {channel_id}")
        return await self._publisher.publish_direct_message(content, channel.id)

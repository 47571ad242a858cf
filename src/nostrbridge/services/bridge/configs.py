"""Bridge service configuration models.

See Also:
    [Bridge][nostrbridge.services.bridge.service.Bridge]: The service class
        that consumes these configurations.
    [BaseServiceConfig][nostrbridge.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures`` and
        ``metrics``.
    [KeysConfig][nostrbridge.utils.keys.KeysConfig]: Loads the bridge
        identity from ``keys_env``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from nostrbridge.core.base_service import BaseServiceConfig
from nostrbridge.models.constants import DmPolicy
from nostrbridge.models.relay import validate_relay_url
from nostrbridge.utils.keys import ENV_PRIVATE_KEY, KeysConfig


DEFAULT_RELAYS: tuple[str, ...] = (
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
    "wss://nos.lol",
    "wss://relay.snort.social",
)


class InferenceConfig(BaseModel):
    """Where and how to reach the inference collaborator.

    Attributes:
        url: Endpoint receiving ``POST`` requests with the inbound message.
        timeout: Total seconds allowed for one inference call.
        token_env: Optional environment variable holding a bearer token.
    """

    url: str = Field(
        default="http://127.0.0.1:8080/v1/messages",
        min_length=1,
        description="Inference endpoint URL",
    )
    timeout: float = Field(default=120.0, gt=0.0, le=3600.0)
    token_env: str | None = Field(
        default=None,
        description="Environment variable name for the bearer token",
    )

    @field_validator("url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Inference url must be http(s): {v}")
        return v


class BridgeConfig(BaseServiceConfig, KeysConfig):
    """Configuration for the [Bridge][nostrbridge.services.bridge.service.Bridge].

    Inherits key management from
    [KeysConfig][nostrbridge.utils.keys.KeysConfig]; the secret key is
    only ever read from ``keys_env`` (``NOSTR_NSEC`` by default).

    Attributes:
        relays: Relay URLs to subscribe on and publish to.
        enable_public_replies: Also answer kind 1 mentions.
        command_prefix: Prefix marking a registered command in a DM.
        dm_policy: [DmPolicy][nostrbridge.models.constants.DmPolicy] for
            inbound direct messages.
        allowed_pubkeys: Hex or ``npub`` entries consulted in allowlist mode.
        reconnect_interval: Seconds between transport supervisor passes.
        max_reconnect_attempts: Consecutive reconnect requests per relay.
        connect_timeout: Seconds to wait for the initial relay connections.
        publish_timeout: Per-relay send timeout in seconds.
        dedup_cache_size: Recently-seen event ids kept (0 disables replay checks).
        shutdown_timeout: Seconds to drain in-flight events on shutdown.
        inference: [InferenceConfig][nostrbridge.services.bridge.configs.InferenceConfig].
    """

    keys_env: str = Field(default=ENV_PRIVATE_KEY, min_length=1)
    relays: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS), min_length=1)
    enable_public_replies: bool = Field(default=False)
    command_prefix: str = Field(default="!", min_length=1, max_length=8)
    dm_policy: DmPolicy = Field(default=DmPolicy.OPEN)
    allowed_pubkeys: list[str] = Field(default_factory=list)
    reconnect_interval: float = Field(default=5.0, gt=0.0, le=3600.0)
    max_reconnect_attempts: int = Field(default=10, ge=0)
    connect_timeout: float = Field(default=10.0, gt=0.0, le=300.0)
    publish_timeout: float = Field(default=10.0, gt=0.0, le=300.0)
    dedup_cache_size: int = Field(default=10_000, ge=0)
    shutdown_timeout: float = Field(default=10.0, ge=0.0, le=600.0)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)

    @field_validator("relays")
    @classmethod
    def _validate_relays(cls, v: list[str]) -> list[str]:
        """Normalize each URL and drop duplicates, preserving order."""
        normalized: list[str] = []
        for raw in v:
            url = validate_relay_url(raw)
            if url not in normalized:
                normalized.append(url)
        return normalized

    @field_validator("allowed_pubkeys")
    @classmethod
    def _strip_allowed_pubkeys(cls, v: list[str]) -> list[str]:
        return [entry.strip() for entry in v if entry.strip()]

"""Nostr key management utilities.

Loads the bridge identity from an environment variable and converts
public keys between hex and ``npub`` (bech32) form. Accepts a secret key
as ``nsec1...`` bech32 or as exactly 64 hex characters.

Warning:
    Secret keys must never be stored in configuration files or logged.
    [KeysConfig][nostrbridge.utils.keys.KeysConfig] only reads them from
    the environment.

Examples:
    ```python
    import os

    os.environ["NOSTR_NSEC"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("NOSTR_NSEC")
    encode_npub(keys.public_key().to_hex())   # 'npub1...'
    ```
"""

from __future__ import annotations

import os
import re
from typing import Any

from nostr_sdk import Keys, NostrSdkError, PublicKey
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "NOSTR_NSEC"  # pragma: allowlist secret  # Default env var name

_HEX_SECRET = re.compile(r"[0-9a-fA-F]{64}")


def parse_secret_key(value: str) -> Keys:
    """Parse a secret key given as ``nsec1...`` or 64 hex characters.

    Args:
        value: The encoded secret key. Surrounding whitespace is ignored.

    Returns:
        A ``nostr_sdk.Keys`` instance holding the secret and derived public key.

    Raises:
        ValueError: If the value is in neither accepted form or does not
            decode to a valid secp256k1 secret key.
    """
    candidate = value.strip()
    if not (candidate.startswith("nsec1") or _HEX_SECRET.fullmatch(candidate)):
        raise ValueError("Secret key must be nsec1 bech32 or 64 hex characters")
    try:
        return Keys.parse(candidate)
    except NostrSdkError as e:
        raise ValueError(f"Invalid secret key: {e}") from None


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable holding the secret key.

    Raises:
        ValueError: If the variable is unset, empty, or holds an invalid key.
    """
    value = os.getenv(env_var)

    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )

    return parse_secret_key(value)


def encode_npub(pubkey_hex: str) -> str:
    """Encode a hex public key as ``npub1...``.

    Raises:
        ValueError: If *pubkey_hex* is not a valid public key.
    """
    try:
        return PublicKey.parse(pubkey_hex).to_bech32()
    except NostrSdkError as e:
        raise ValueError(f"Invalid public key: {e}") from None


def decode_npub(value: str) -> str | None:
    """Decode an ``npub1...`` string to hex, or return None if it does not decode."""
    if not value.startswith("npub1"):
        return None
    try:
        return PublicKey.parse(value).to_hex()
    except NostrSdkError:
        return None


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    The ``keys`` field is populated during validation from the environment
    variable named by ``keys_env``. Inherited by
    [BridgeConfig][nostrbridge.services.bridge.configs.BridgeConfig].

    Attributes:
        keys_env: Environment variable name for the secret key.
        keys: Loaded ``nostr_sdk.Keys`` instance.

    Raises:
        ValueError: If the environment variable is unset or the key is invalid.

    Warning:
        The ``keys`` field holds a live secret key. Do not serialize this
        model to logs or persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for the secret key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Populate ``keys`` from the environment; keys are never read from YAML."""
        if isinstance(data, dict):
            if "nsec" in data:
                raise ValueError("nsec must be provided through keys_env, not configuration")
            if "keys" in data and not isinstance(data["keys"], Keys):
                raise ValueError("keys must be provided through keys_env, not configuration")
            if "keys" not in data:
                env_var = data.get("keys_env", ENV_PRIVATE_KEY)
                data = {**data, "keys": load_keys_from_env(env_var)}
        return data

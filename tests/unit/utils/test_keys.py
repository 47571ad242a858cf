"""
Unit tests for utils.keys module.

Tests:
- ENV_PRIVATE_KEY constant
- parse_secret_key() with hex and nsec forms
- load_keys_from_env() with missing, empty and invalid values
- encode_npub()/decode_npub() conversions
- KeysConfig - Pydantic model that loads keys from the environment
"""

import pytest
from nostr_sdk import Keys
from pydantic import ValidationError

from nostrbridge.utils.keys import (
    ENV_PRIVATE_KEY,
    KeysConfig,
    decode_npub,
    encode_npub,
    load_keys_from_env,
    parse_secret_key,
)


# =============================================================================
# Test Constants
# =============================================================================

# Valid secp256k1 test keys (DO NOT USE IN PRODUCTION)
VALID_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)
VALID_NSEC_KEY = (
    "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"  # pragma: allowlist secret
)

INVALID_KEYS = [
    "invalid_key",  # Not hex or nsec
    "0" * 32,  # Too short
    "0" * 128,  # Too long
    "nsec1invalid",  # Invalid bech32 checksum
    "npub1abc",  # Public key prefix
    "xyz" * 21 + "x",  # 64 chars but not hex
]


# =============================================================================
# Constants
# =============================================================================


class TestEnvPrivateKeyConstant:
    """ENV_PRIVATE_KEY constant value."""

    def test_constant_value(self):
        assert ENV_PRIVATE_KEY == "NOSTR_NSEC"  # pragma: allowlist secret


# =============================================================================
# parse_secret_key()
# =============================================================================


class TestParseSecretKey:
    """parse_secret_key()."""

    def test_hex(self):
        keys = parse_secret_key(VALID_HEX_KEY)
        assert isinstance(keys, Keys)

    def test_nsec_matches_hex(self):
        from_hex = parse_secret_key(VALID_HEX_KEY)
        from_nsec = parse_secret_key(VALID_NSEC_KEY)
        assert from_hex.public_key().to_hex() == from_nsec.public_key().to_hex()

    def test_whitespace_stripped(self):
        assert isinstance(parse_secret_key(f"  {VALID_HEX_KEY}\n"), Keys)

    def test_uppercase_hex_accepted(self):
        assert isinstance(parse_secret_key(VALID_HEX_KEY.upper()), Keys)

    @pytest.mark.parametrize("value", INVALID_KEYS)
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_secret_key(value)


# =============================================================================
# load_keys_from_env()
# =============================================================================


class TestLoadKeysFromEnv:
    """load_keys_from_env()."""

    def test_unset(self, monkeypatch):
        monkeypatch.delenv("BRIDGE_TEST_KEY", raising=False)
        with pytest.raises(ValueError, match="BRIDGE_TEST_KEY environment variable is required"):
            load_keys_from_env("BRIDGE_TEST_KEY")

    def test_empty(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_TEST_KEY", "")
        with pytest.raises(ValueError, match="environment variable is required"):
            load_keys_from_env("BRIDGE_TEST_KEY")

    def test_nsec(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_TEST_KEY", VALID_NSEC_KEY)
        assert isinstance(load_keys_from_env("BRIDGE_TEST_KEY"), Keys)

    def test_invalid(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_TEST_KEY", "not-a-key")
        with pytest.raises(ValueError):
            load_keys_from_env("BRIDGE_TEST_KEY")


# =============================================================================
# npub helpers
# =============================================================================


class TestNpub:
    """encode_npub()/decode_npub()."""

    @pytest.fixture
    def pubkey_hex(self):
        return Keys.parse(VALID_HEX_KEY).public_key().to_hex()

    def test_round_trip(self, pubkey_hex):
        npub = encode_npub(pubkey_hex)
        assert npub.startswith("npub1")
        assert decode_npub(npub) == pubkey_hex

    def test_encode_invalid(self):
        with pytest.raises(ValueError, match="Invalid public key"):
            encode_npub("zz")

    def test_decode_hex_returns_none(self, pubkey_hex):
        assert decode_npub(pubkey_hex) is None

    def test_decode_bad_checksum_returns_none(self):
        assert decode_npub("npub1qqqqqqqq") is None


# =============================================================================
# KeysConfig
# =============================================================================


class TestKeysConfig:
    """KeysConfig model."""

    def test_loads_from_default_env(self):
        config = KeysConfig()
        assert config.keys_env == "NOSTR_NSEC"
        expected = Keys.parse(VALID_HEX_KEY).public_key().to_hex()
        assert config.keys.public_key().to_hex() == expected

    def test_custom_env(self, monkeypatch):
        monkeypatch.setenv("OTHER_KEY", VALID_NSEC_KEY)
        config = KeysConfig(keys_env="OTHER_KEY")
        assert config.keys_env == "OTHER_KEY"

    def test_missing_env(self, monkeypatch):
        monkeypatch.delenv("NOSTR_NSEC")
        with pytest.raises(ValidationError, match="environment variable is required"):
            KeysConfig()

    def test_keys_from_config_rejected(self):
        with pytest.raises(ValidationError, match="must be provided through keys_env"):
            KeysConfig(keys=VALID_HEX_KEY)

    def test_keys_instance_accepted(self):
        keys = Keys.generate()
        assert KeysConfig(keys=keys).keys is keys

    def test_input_not_mutated(self):
        data = {"keys_env": "NOSTR_NSEC"}
        KeysConfig(**data)
        assert data == {"keys_env": "NOSTR_NSEC"}

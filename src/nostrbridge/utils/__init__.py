"""Adapters over third-party primitives: keys, crypto and relay transport.

Attributes:
    keys: Secret key parsing, environment loading and npub conversion.
        See [KeysConfig][nostrbridge.utils.keys.KeysConfig].
    crypto: Signing, verification and NIP-44 encryption.
        See [KeyProvider][nostrbridge.utils.crypto.KeyProvider].
    protocol: nostr-sdk backed relay transport.
        See [NostrSdkTransport][nostrbridge.utils.protocol.NostrSdkTransport].
"""

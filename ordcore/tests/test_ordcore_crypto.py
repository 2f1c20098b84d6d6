"""
Tests for hashing and taproot tweaking.
"""

from __future__ import annotations

import hashlib

import pytest
from coincurve import PrivateKey

from ordcore.crypto import (
    CryptoError,
    hash256,
    schnorr_verify,
    tagged_hash,
    tap_leaf_hash,
    taproot_tweak_pubkey,
    taproot_tweak_seckey,
    xonly_pubkey,
)

# BIP86 test vector: m/86'/0'/0'/0/0 of "abandon ... about"
BIP86_INTERNAL_KEY = "cc8a4bc64d897bddc5fbc2f670f7a8ba0b386779106cf1223c6fc5d7cd6fc115"
BIP86_OUTPUT_KEY = "a60869f0dbcf1dc659c9cecbaf8050135ea9e8cdc487053f1dc6880949dc684c"


class TestHashes:
    def test_hash256_empty(self) -> None:
        expected = "5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456"
        assert hash256(b"").hex() == expected

    def test_tagged_hash(self) -> None:
        tag = hashlib.sha256(b"TapLeaf").digest()
        assert tagged_hash("TapLeaf", b"abc") == hashlib.sha256(tag + tag + b"abc").digest()

    def test_tap_leaf_hash_commits_to_version(self) -> None:
        assert tap_leaf_hash(b"\x51") != tap_leaf_hash(b"\x51", leaf_version=0xC2)


class TestTaprootTweak:
    """Tests for BIP341 key tweaking."""

    def test_bip86_vector(self) -> None:
        output_key, _ = taproot_tweak_pubkey(bytes.fromhex(BIP86_INTERNAL_KEY))
        assert output_key.hex() == BIP86_OUTPUT_KEY

    def test_seckey_tweak_matches_pubkey_tweak(self) -> None:
        key = PrivateKey(b"\x11" * 32)
        merkle_root = tap_leaf_hash(b"\x51")

        output_key, parity = taproot_tweak_pubkey(xonly_pubkey(key), merkle_root)
        tweaked = PrivateKey(taproot_tweak_seckey(key.secret, merkle_root))
        compressed = tweaked.public_key.format(compressed=True)

        assert compressed[1:] == output_key
        assert compressed[0] & 1 == parity

    def test_invalid_key_length(self) -> None:
        with pytest.raises(CryptoError):
            taproot_tweak_pubkey(b"\x02" * 31)


class TestSchnorr:
    def test_sign_and_verify(self) -> None:
        key = PrivateKey(b"\x22" * 32)
        msg = hashlib.sha256(b"message").digest()
        sig = key.sign_schnorr(msg)

        assert schnorr_verify(xonly_pubkey(key), sig, msg)
        assert not schnorr_verify(xonly_pubkey(key), sig, hashlib.sha256(b"other").digest())

"""
Hashing and taproot (BIP340/BIP341) primitives.
"""

from __future__ import annotations

import hashlib

from coincurve import PrivateKey, PublicKey, PublicKeyXOnly

from ordcore.constants import TAPROOT_LEAF_VERSION
from ordcore.serialization import encode_bytes

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)


class CryptoError(Exception):
    pass


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    """SHA256(SHA256(data))"""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def tagged_hash(tag: str, data: bytes) -> bytes:
    """BIP340 tagged hash: SHA256(SHA256(tag) || SHA256(tag) || data)"""
    tag_hash = hashlib.sha256(tag.encode()).digest()
    return hashlib.sha256(tag_hash + tag_hash + data).digest()


def xonly_pubkey(private_key: PrivateKey) -> bytes:
    """32-byte x-only public key of a private key."""
    return private_key.public_key.format(compressed=True)[1:]


def tap_leaf_hash(script: bytes, leaf_version: int = TAPROOT_LEAF_VERSION) -> bytes:
    return tagged_hash("TapLeaf", bytes([leaf_version]) + encode_bytes(script))


def _tweak_scalar(internal_key: bytes, merkle_root: bytes) -> bytes:
    tweak = tagged_hash("TapTweak", internal_key + merkle_root)
    if int.from_bytes(tweak, "big") >= SECP256K1_N:
        raise CryptoError("Taproot tweak exceeds curve order")
    return tweak


def taproot_tweak_pubkey(internal_key: bytes, merkle_root: bytes = b"") -> tuple[bytes, int]:
    """
    Tweak an x-only internal key (BIP341 taproot_tweak_pubkey).

    Args:
        internal_key: 32-byte x-only internal public key
        merkle_root: Script tree root, or b"" for a key-path only output

    Returns:
        (32-byte x-only output key, parity of the output key's Y coordinate)
    """
    if len(internal_key) != 32:
        raise CryptoError(f"Invalid x-only key length: {len(internal_key)}")

    tweak = _tweak_scalar(internal_key, merkle_root)
    try:
        point = PublicKey(b"\x02" + internal_key)
    except ValueError as e:
        raise CryptoError(f"Internal key is not on the curve: {e}") from e

    output = point.add(tweak).format(compressed=True)
    return output[1:], output[0] & 1


def taproot_tweak_seckey(secret: bytes, merkle_root: bytes = b"") -> bytes:
    """Tweak a private key for key-path signing (BIP341 taproot_tweak_seckey)."""
    d = int.from_bytes(secret, "big")
    public = PrivateKey(secret).public_key.format(compressed=True)
    if public[0] == 0x03:
        d = SECP256K1_N - d

    tweak = _tweak_scalar(public[1:], merkle_root)
    tweaked = (d + int.from_bytes(tweak, "big")) % SECP256K1_N
    if tweaked == 0:
        raise CryptoError("Tweaked private key is zero")
    return tweaked.to_bytes(32, "big")


def schnorr_verify(xonly_key: bytes, signature: bytes, message: bytes) -> bool:
    """Verify a 64-byte BIP340 signature over a 32-byte message."""
    try:
        return PublicKeyXOnly(xonly_key).verify(signature[:64], message)
    except ValueError:
        return False

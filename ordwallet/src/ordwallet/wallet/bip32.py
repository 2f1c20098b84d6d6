"""
BIP32 key derivation with BIP86 (taproot) and BIP84 (native segwit) addresses.

Only private derivation is needed: the wallet always holds the seed, and
inscription inputs are signed locally.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from coincurve import PrivateKey
from ordcore.address import pubkey_to_p2wpkh_address, xonly_to_p2tr_address
from ordcore.crypto import taproot_tweak_pubkey
from ordcore.models import NetworkType

HARDENED = 0x80000000


def parse_path(path: str) -> list[int]:
    """
    Parse "m/86'/0'/0'/0/5" into child indices.

    Both ' and h mark a hardened step.
    """
    head, *steps = path.split("/")
    if head != "m":
        raise ValueError(f"Derivation path must start with 'm': {path}")

    indices = []
    for step in filter(None, steps):
        hardened = step[-1] in "'h"
        index = int(step.rstrip("'h"))
        if not 0 <= index < HARDENED:
            raise ValueError(f"Child index out of range in {path}: {step}")
        indices.append(index + HARDENED if hardened else index)
    return indices


def format_path(indices: list[int]) -> str:
    steps = [f"{i - HARDENED}'" if i >= HARDENED else str(i) for i in indices]
    return "/".join(["m", *steps])


@dataclass(frozen=True)
class HDKey:
    private_key: PrivateKey
    chain_code: bytes
    path: str = "m"

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        digest = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return cls(PrivateKey(digest[:32]), digest[32:])

    @property
    def depth(self) -> int:
        return len(parse_path(self.path))

    @property
    def pubkey(self) -> bytes:
        """Compressed SEC public key."""
        return self.private_key.public_key.format(compressed=True)

    @property
    def xonly(self) -> bytes:
        return self.pubkey[1:]

    def child(self, index: int) -> HDKey:
        if index >= HARDENED:
            data = b"\x00" + self.private_key.secret
        else:
            data = self.pubkey
        digest = hmac.new(self.chain_code, data + index.to_bytes(4, "big"), hashlib.sha512).digest()

        # coincurve rejects a tweak >= n or a zero result; BIP32 says skip to
        # the next index, which no path used here will ever hit
        child_key = self.private_key.add(digest[:32])
        return HDKey(child_key, digest[32:], format_path([*parse_path(self.path), index]))

    def derive(self, path: str) -> HDKey:
        """Derive an absolute path from this key, which must be the master key."""
        if self.path != "m":
            raise ValueError(f"Cannot derive {path} from non-master key {self.path}")
        key = self
        for index in parse_path(path):
            key = key.child(index)
        return key

    def address(self, address_type: str = "p2tr", network: NetworkType | str = "mainnet") -> str:
        """
        Single-key address for this key.

        p2tr is the BIP86 key-path-only output (tweaked with an empty script
        tree), p2wpkh the BIP84 witness-v0 output.
        """
        if address_type == "p2tr":
            output_key, _ = taproot_tweak_pubkey(self.xonly)
            return xonly_to_p2tr_address(output_key, network)
        if address_type == "p2wpkh":
            return pubkey_to_p2wpkh_address(self.pubkey, network)
        raise ValueError(f"Unsupported address type: {address_type}")


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """
    BIP39 mnemonic to seed.

    The word list checksum is not validated.
    """
    normalized = " ".join(mnemonic.split()).encode("utf-8")
    salt = ("mnemonic" + passphrase).encode("utf-8")
    return hashlib.pbkdf2_hmac("sha512", normalized, salt, 2048, dklen=64)

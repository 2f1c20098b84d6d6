"""
Shared data models.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"


# Bech32 human-readable part per network
BECH32_HRP: dict[NetworkType, str] = {
    NetworkType.MAINNET: "bc",
    NetworkType.TESTNET: "tb",
    NetworkType.SIGNET: "tb",
    NetworkType.REGTEST: "bcrt",
}


def get_hrp(network: NetworkType | str) -> str:
    """Get the bech32 HRP for a network name or NetworkType."""
    return BECH32_HRP[NetworkType(network)]


@dataclass(frozen=True, order=True)
class OutPoint:
    """Reference to a transaction output (txid in RPC byte order)."""

    txid: str
    vout: int

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"

    @classmethod
    def parse(cls, value: str) -> OutPoint:
        txid, sep, vout = value.rpartition(":")
        if not sep or len(txid) != 64:
            raise ValueError(f"Invalid outpoint: {value}")
        return cls(txid=txid, vout=int(vout))

"""
Chain access used by the wallet and the inscriber.

Only a handful of queries are needed: the unspent outputs of an address,
raw transaction submission, transaction lookup (for decoding reveals by
txid) and a fee estimate for when the caller does not pick a rate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ordcore.models import OutPoint


@dataclass
class UTXO:
    txid: str
    vout: int
    value: int
    address: str
    # 0 while the funding transaction is unconfirmed
    confirmations: int
    scriptpubkey: str

    @property
    def outpoint(self) -> OutPoint:
        return OutPoint(self.txid, self.vout)


@dataclass
class ChainTransaction:
    """A transaction as seen by the node, mempool or confirmed."""

    txid: str
    raw: bytes
    confirmations: int = 0
    block_height: int | None = None

    @property
    def in_mempool(self) -> bool:
        return self.confirmations == 0


class BlockchainBackend(ABC):
    @abstractmethod
    async def get_utxos(self, addresses: list[str]) -> list[UTXO]:
        """Unspent outputs paying to any of the addresses"""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Submit a raw transaction; returns its txid or raises ValueError on rejection"""

    @abstractmethod
    async def get_transaction(self, txid: str) -> ChainTransaction | None:
        """Look up a transaction, None if the node does not know it"""

    @abstractmethod
    async def estimate_fee(self, target_blocks: int) -> int:
        """Fee rate in sat/vB expected to confirm within target_blocks"""

    async def close(self) -> None:
        """Release connections held by the backend"""

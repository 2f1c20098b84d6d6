"""
Blockchain backend implementations.

Available backends:
- BitcoinCoreBackend: Full node via Bitcoin Core RPC (no wallet, uses scantxoutset)
"""

from ordwallet.backends.base import UTXO, BlockchainBackend, ChainTransaction
from ordwallet.backends.bitcoin_core import BitcoinCoreBackend

__all__ = [
    "BlockchainBackend",
    "BitcoinCoreBackend",
    "ChainTransaction",
    "UTXO",
]

"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass

from ordcore.address import script_type
from ordcore.models import OutPoint


@dataclass
class UTXOInfo:
    """Extended UTXO information with wallet context"""

    txid: str
    vout: int
    value: int
    address: str
    confirmations: int
    scriptpubkey: str
    path: str = ""

    @property
    def outpoint(self) -> OutPoint:
        return OutPoint(self.txid, self.vout)

    @property
    def script_type(self) -> str:
        return script_type(bytes.fromhex(self.scriptpubkey))

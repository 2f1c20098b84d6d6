"""
Wallet collaborator interface consumed by the inscriber.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from coincurve import PrivateKey
from ordcore.models import OutPoint
from ordcore.transaction import Transaction

from ordwallet.wallet.models import UTXOInfo


class Wallet(ABC):
    """
    What the inscription engine needs from a wallet.

    Implementations own key storage and address derivation; the engine only
    sees spendable outputs, signatures and a one-time key.
    """

    @abstractmethod
    async def list_spendable(self, address: str) -> list[UTXOInfo]:
        """Spendable (unlocked) outputs paying to address"""

    @abstractmethod
    def sign_key_path(self, tx: Transaction, input_index: int) -> list[bytes]:
        """
        Witness stack for a wallet-owned input.

        tx.spent_outputs[input_index] identifies the output being spent.
        """

    @abstractmethod
    def sign_script_path(
        self, key: PrivateKey, tx: Transaction, input_index: int, script: bytes
    ) -> bytes:
        """Schnorr signature of a tapscript leaf spend with key"""

    @abstractmethod
    def get_or_create_key(self) -> tuple[PrivateKey, bytes]:
        """(private key, x-only public key) for one inscription"""

    @abstractmethod
    def lock_outputs(self, outpoints: Iterable[OutPoint]) -> None:
        """Exclude outpoints from future list_spendable results"""

    @abstractmethod
    def unlock_outputs(self, outpoints: Iterable[OutPoint]) -> None:
        """Release outpoints locked by lock_outputs"""

    @abstractmethod
    def is_locked(self, outpoint: OutPoint) -> bool:
        """Whether an outpoint is locked"""

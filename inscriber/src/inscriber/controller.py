"""
Dry-run/broadcast controller.

PREPARED -> FINALIZED_LOCAL      (dry run: nothing leaves the process)
PREPARED -> FINALIZED_BROADCAST  (lock inputs, submit commit, then reveal)

A commit rejection releases the locked inputs and aborts with BroadcastError;
the reveal is never submitted. A reveal rejection after an accepted commit
is a partial failure: it is reported, not retried, and the raw reveal is
handed back so the caller can resubmit it once the commit propagates.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from loguru import logger
from ordwallet.backends.base import BlockchainBackend
from ordwallet.wallet.base import Wallet

from inscriber.builder import CommitTransaction, RevealTransaction
from inscriber.errors import BroadcastError


class Broadcaster(ABC):
    """Submits raw transactions to the network."""

    @abstractmethod
    async def submit(self, raw_tx: bytes) -> str:
        """Submit a serialized transaction, returns its txid"""


class BackendBroadcaster(Broadcaster):
    """Broadcaster over a blockchain backend (sendrawtransaction)."""

    def __init__(self, backend: BlockchainBackend):
        self.backend = backend

    async def submit(self, raw_tx: bytes) -> str:
        return await self.backend.broadcast_transaction(raw_tx.hex())


class InscriptionState(str, Enum):
    PREPARED = "prepared"
    FINALIZED_LOCAL = "finalized_local"
    FINALIZED_BROADCAST = "finalized_broadcast"


class InscriptionStatus(str, Enum):
    DRY_RUN = "dry_run"
    BROADCAST = "broadcast"
    REVEAL_PENDING = "reveal_pending"


@dataclass
class Finalized:
    status: InscriptionStatus
    commit_txid: str
    reveal_txid: str
    commit_hex: str
    reveal_hex: str
    reveal_error: str | None = None

    @property
    def reveal_hex_pending(self) -> str | None:
        if self.status == InscriptionStatus.REVEAL_PENDING:
            return self.reveal_hex
        return None


class InscriptionController:
    """Takes a signed commit/reveal pair to its final state, exactly once."""

    def __init__(
        self,
        commit: CommitTransaction,
        reveal: RevealTransaction,
        wallet: Wallet,
        broadcaster: Broadcaster | None = None,
    ):
        self.commit = commit
        self.reveal = reveal
        self.wallet = wallet
        self.broadcaster = broadcaster
        self.state = InscriptionState.PREPARED

    def _result(self, status: InscriptionStatus, error: str | None = None) -> Finalized:
        return Finalized(
            status=status,
            commit_txid=self.commit.txid,
            reveal_txid=self.reveal.txid,
            commit_hex=self.commit.hex(),
            reveal_hex=self.reveal.hex(),
            reveal_error=error,
        )

    async def finalize(self, dry_run: bool) -> Finalized:
        if self.state != InscriptionState.PREPARED:
            raise RuntimeError(f"Inscription already finalized ({self.state.value})")

        if dry_run:
            self.state = InscriptionState.FINALIZED_LOCAL
            logger.info("Dry run: transactions were not broadcast")
            return self._result(InscriptionStatus.DRY_RUN)

        if self.broadcaster is None:
            raise ValueError("A broadcaster is required unless dry_run is set")

        self.state = InscriptionState.FINALIZED_BROADCAST
        self.wallet.lock_outputs(self.commit.outpoints)

        commit_hex = self.commit.hex()
        reveal_hex = self.reveal.hex()

        try:
            commit_txid = await self.broadcaster.submit(self.commit.tx.serialize())
        except Exception as e:
            logger.error(f"Commit broadcast failed: {e}")
            self.wallet.unlock_outputs(self.commit.outpoints)
            raise BroadcastError(
                f"Commit broadcast failed: {e}", commit_hex=commit_hex, reveal_hex=reveal_hex
            ) from e

        if commit_txid != self.commit.txid:
            logger.warning(f"Node reported commit txid {commit_txid}, expected {self.commit.txid}")
        logger.info(f"Commit broadcast: {self.commit.txid}")

        try:
            reveal_txid = await self.broadcaster.submit(self.reveal.tx.serialize())
        except Exception as e:
            logger.error(
                f"Reveal broadcast failed after commit {self.commit.txid} was accepted: {e}. "
                f"Resubmit the reveal hex to complete the inscription."
            )
            return self._result(InscriptionStatus.REVEAL_PENDING, error=str(e))

        if reveal_txid != self.reveal.txid:
            logger.warning(f"Node reported reveal txid {reveal_txid}, expected {self.reveal.txid}")
        logger.info(f"Reveal broadcast: {self.reveal.txid}")
        return self._result(InscriptionStatus.BROADCAST)

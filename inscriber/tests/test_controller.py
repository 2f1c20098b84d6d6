"""
Tests for the dry-run/broadcast controller.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from ordcore.address import address_to_scriptpubkey
from ordcore.transaction import Transaction
from ordwallet.backends.base import BlockchainBackend
from ordwallet.wallet.base import Wallet

from inscriber.controller import (
    BackendBroadcaster,
    InscriptionController,
    InscriptionState,
    InscriptionStatus,
)
from inscriber.errors import BroadcastError
from inscriber.signer import sign_inscription


@pytest.fixture
def signed(wallet, origin, make_pair):
    key, commit_tx, reveal = make_pair(wallet, address_to_scriptpubkey(origin))
    sign_inscription(wallet, commit_tx, reveal, key)
    return commit_tx, reveal


@pytest.fixture
def mock_wallet() -> MagicMock:
    return MagicMock(spec=Wallet)


class TestFinalize:
    """Tests for InscriptionController.finalize."""

    @pytest.mark.asyncio
    async def test_dry_run_submits_nothing(self, signed, mock_wallet, broadcaster) -> None:
        commit_tx, reveal = signed
        controller = InscriptionController(commit_tx, reveal, mock_wallet, broadcaster)

        result = await controller.finalize(dry_run=True)

        assert result.status == InscriptionStatus.DRY_RUN
        assert result.commit_hex == commit_tx.hex()
        assert result.reveal_hex == reveal.hex()
        assert result.reveal_hex_pending is None
        assert controller.state == InscriptionState.FINALIZED_LOCAL
        broadcaster.submit.assert_not_awaited()
        mock_wallet.lock_outputs.assert_not_called()

    @pytest.mark.asyncio
    async def test_dry_run_without_broadcaster(self, signed, mock_wallet) -> None:
        commit_tx, reveal = signed
        result = await InscriptionController(commit_tx, reveal, mock_wallet).finalize(True)
        assert result.status == InscriptionStatus.DRY_RUN

    @pytest.mark.asyncio
    async def test_broadcast_commit_then_reveal(self, signed, mock_wallet, broadcaster) -> None:
        commit_tx, reveal = signed
        controller = InscriptionController(commit_tx, reveal, mock_wallet, broadcaster)

        result = await controller.finalize(dry_run=False)

        assert result.status == InscriptionStatus.BROADCAST
        assert controller.state == InscriptionState.FINALIZED_BROADCAST
        submitted = [call.args[0] for call in broadcaster.submit.await_args_list]
        assert submitted == [commit_tx.tx.serialize(), reveal.tx.serialize()]
        mock_wallet.lock_outputs.assert_called_once_with(commit_tx.outpoints)
        assert result.commit_txid == commit_tx.txid
        assert result.reveal_txid == reveal.txid

    @pytest.mark.asyncio
    async def test_commit_rejected(self, signed, mock_wallet, broadcaster) -> None:
        commit_tx, reveal = signed
        broadcaster.submit.side_effect = ValueError("Broadcast failed: insufficient fee")
        controller = InscriptionController(commit_tx, reveal, mock_wallet, broadcaster)

        with pytest.raises(BroadcastError) as exc:
            await controller.finalize(dry_run=False)

        assert exc.value.commit_hex == commit_tx.hex()
        assert exc.value.reveal_hex == reveal.hex()
        assert exc.value.commit_txid is None
        assert broadcaster.submit.await_count == 1
        mock_wallet.unlock_outputs.assert_called_once_with(commit_tx.outpoints)

    @pytest.mark.asyncio
    async def test_reveal_rejected(self, signed, mock_wallet, broadcaster) -> None:
        commit_tx, reveal = signed

        async def submit(raw_tx: bytes) -> str:
            tx = Transaction.deserialize(raw_tx)
            if tx.txid == reveal.txid:
                raise ValueError("Broadcast failed: missing inputs")
            return tx.txid

        broadcaster.submit.side_effect = submit
        controller = InscriptionController(commit_tx, reveal, mock_wallet, broadcaster)

        result = await controller.finalize(dry_run=False)

        assert result.status == InscriptionStatus.REVEAL_PENDING
        mock_wallet.unlock_outputs.assert_not_called()
        assert result.reveal_hex_pending == reveal.hex()
        assert "missing inputs" in result.reveal_error
        assert broadcaster.submit.await_count == 2

    @pytest.mark.asyncio
    async def test_finalize_once(self, signed, mock_wallet, broadcaster) -> None:
        commit_tx, reveal = signed
        controller = InscriptionController(commit_tx, reveal, mock_wallet, broadcaster)
        await controller.finalize(dry_run=True)

        with pytest.raises(RuntimeError):
            await controller.finalize(dry_run=False)
        broadcaster.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broadcast_requires_broadcaster(self, signed, mock_wallet) -> None:
        commit_tx, reveal = signed
        with pytest.raises(ValueError):
            await InscriptionController(commit_tx, reveal, mock_wallet).finalize(False)


class TestBackendBroadcaster:
    @pytest.mark.asyncio
    async def test_submits_hex(self) -> None:
        backend = MagicMock(spec=BlockchainBackend)
        backend.broadcast_transaction = AsyncMock(return_value="ab" * 32)

        txid = await BackendBroadcaster(backend).submit(b"\x02\x00")

        assert txid == "ab" * 32
        backend.broadcast_transaction.assert_awaited_once_with("0200")

"""
Test configuration for inscriber tests.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from ordcore.address import address_to_scriptpubkey
from ordcore.script import op_return_script
from ordcore.transaction import Transaction
from ordwallet.backends.base import UTXO, BlockchainBackend
from ordwallet.wallet.models import UTXOInfo
from ordwallet.wallet.service import WalletService

from inscriber.builder import build_inscription
from inscriber.controller import Broadcaster
from inscriber.envelope import EnvelopeEncoder, commit
from inscriber.fees import select_coins
from inscriber.instruction import parse_instruction


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (not for production use!)."""
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def mock_backend() -> MagicMock:
    """Backend whose UTXO set is filled in by the fund fixture."""
    backend = MagicMock(spec=BlockchainBackend)
    backend.utxos = {}

    async def get_utxos(addresses: list[str]) -> list[UTXO]:
        return [u for address in addresses for u in backend.utxos.get(address, [])]

    backend.get_utxos = AsyncMock(side_effect=get_utxos)
    backend.close = AsyncMock()
    return backend


@pytest.fixture
def wallet(sample_mnemonic: str, mock_backend: MagicMock) -> WalletService:
    return WalletService(sample_mnemonic, mock_backend, network="regtest")


@pytest.fixture
def origin(wallet: WalletService) -> str:
    return wallet.get_receive_address(0)


@pytest.fixture
def fund(mock_backend: MagicMock):
    """Add a confirmed UTXO at an address: fund(address, value, txid_byte="aa", vout=0)."""

    def add(
        address: str,
        value: int,
        txid_byte: str = "aa",
        vout: int = 0,
        confirmations: int = 6,
    ) -> UTXO:
        utxo = UTXO(
            txid=txid_byte * 32,
            vout=vout,
            value=value,
            address=address,
            confirmations=confirmations,
            scriptpubkey=address_to_scriptpubkey(address).hex(),
        )
        mock_backend.utxos.setdefault(address, []).append(utxo)
        return utxo

    return add


@pytest.fixture
def broadcaster() -> MagicMock:
    """Broadcaster that accepts everything and echoes the real txid."""
    mock = MagicMock(spec=Broadcaster)

    async def submit(raw_tx: bytes) -> str:
        return Transaction.deserialize(raw_tx).txid

    mock.submit = AsyncMock(side_effect=submit)
    return mock


@pytest.fixture
def make_pair():
    """Build an unsigned mint commit/reveal pair funded by one 100,000 sat UTXO at spk."""

    def build(wallet: WalletService, spk: bytes):
        key, xonly = wallet.get_or_create_key()
        instruction = parse_instruction({"type": "mint", "asset": "X", "amount": 100})
        commitment = commit(EnvelopeEncoder().encode(instruction), xonly)
        utxos = [
            UTXOInfo(
                txid="aa" * 32,
                vout=0,
                value=100_000,
                address="",
                confirmations=6,
                scriptpubkey=spk.hex(),
            )
        ]
        selection = select_coins(
            utxos,
            funding_value=12_000,
            fee_rate=2,
            funding_scriptpubkey=commitment.scriptpubkey,
            carrier_scriptpubkey=op_return_script(b"orddefi:auth"),
            change_scriptpubkey=spk,
            dust_threshold=546,
        )
        commit_tx, reveal = build_inscription(
            selection,
            commitment,
            destination_scriptpubkey=spk,
            change_scriptpubkey=spk,
            carrier_scriptpubkey=op_return_script(b"orddefi:auth"),
            postage=10_000,
            max_tx_weight=400_000,
        )
        return key, commit_tx, reveal

    return build


@pytest.fixture
def other(wallet: WalletService) -> str:
    """A second wallet address, distinct from origin."""
    return wallet.get_receive_address(1)

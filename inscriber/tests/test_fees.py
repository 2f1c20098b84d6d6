"""
Tests for coin selection and fee accounting.
"""

from __future__ import annotations

import pytest
from ordcore.models import OutPoint
from ordcore.script import op_return_script
from ordwallet.wallet.models import UTXOInfo

from inscriber.errors import InsufficientFunds
from inscriber.fees import FeeBreakdown, dummy_witness, eligible_utxos, select_coins

P2TR_SPK = b"\x51\x20" + b"\x01" * 32
FUNDING_SPK = b"\x51\x20" + b"\x02" * 32
CARRIER_SPK = op_return_script(b"orddefi:auth")
P2PKH_SPK = b"\x76\xa9\x14" + b"\x03" * 20 + b"\x88\xac"


def utxo(
    value: int,
    txid_byte: str = "aa",
    vout: int = 0,
    confirmations: int = 6,
    spk: bytes = P2TR_SPK,
) -> UTXOInfo:
    return UTXOInfo(
        txid=txid_byte * 32,
        vout=vout,
        value=value,
        address="",
        confirmations=confirmations,
        scriptpubkey=spk.hex(),
    )


def select(utxos: list[UTXOInfo], funding_value: int, fee_rate: int, **kwargs):
    return select_coins(
        utxos,
        funding_value=funding_value,
        fee_rate=fee_rate,
        funding_scriptpubkey=FUNDING_SPK,
        carrier_scriptpubkey=CARRIER_SPK,
        change_scriptpubkey=P2TR_SPK,
        dust_threshold=546,
        **kwargs,
    )


class TestSelectCoins:
    """Tests for select_coins."""

    def test_single_input_with_change(self) -> None:
        """100,000 sats at 36 sat/vB funding a 14,932 sat reveal output."""
        selection = select([utxo(100_000)], funding_value=14_932, fee_rate=36)

        assert selection.commit_basis_vsize == 154
        assert selection.commit_vsize == 177
        assert selection.commit_fee == 154 * 36
        assert selection.change_value == 100_000 - 14_932 - 154 * 36
        assert selection.has_change
        assert (
            selection.funding_value + selection.change_value + selection.commit_fee
            == selection.total_input
        )

    def test_small_remainder_is_folded_into_fee(self) -> None:
        # 111 vB without change, remainder below dust + change cost
        selection = select([utxo(10_000 + 111 + 500)], funding_value=10_000, fee_rate=1)

        assert not selection.has_change
        assert selection.commit_basis_vsize == 111
        assert selection.commit_vsize == 134
        assert selection.commit_fee == 111 + 500

    def test_change_threshold_is_strict(self) -> None:
        # remainder exactly dust + change cost (546 + 43)
        selection = select([utxo(10_000 + 111 + 589)], funding_value=10_000, fee_rate=1)
        assert not selection.has_change

        selection = select([utxo(10_000 + 111 + 590)], funding_value=10_000, fee_rate=1)
        assert selection.change_value == 547

    def test_largest_first_until_covered(self) -> None:
        utxos = [utxo(5_000, "bb"), utxo(10_000, "aa"), utxo(20_000, "cc")]
        selection = select(utxos, funding_value=25_000, fee_rate=1)

        assert selection.outpoints == [OutPoint("cc" * 32, 0), OutPoint("aa" * 32, 0)]
        # two P2TR inputs: 169 vB, plus 43 vB for the change output
        assert selection.commit_fee == 169 + 43
        assert selection.change_value == 30_000 - 25_000 - 212

    def test_vsize_correction(self) -> None:
        selection = select(
            [utxo(100_000)], funding_value=10_000, fee_rate=2, vsize_correction=4
        )
        assert selection.commit_basis_vsize == 158
        assert selection.commit_fee == 158 * 2

    def test_insufficient_funds(self) -> None:
        with pytest.raises(InsufficientFunds) as exc:
            select([utxo(10_000)], funding_value=14_932, fee_rate=36)

        assert exc.value.available == 10_000
        assert exc.value.required == 14_932 + 111 * 36

    def test_no_utxos(self) -> None:
        with pytest.raises(InsufficientFunds) as exc:
            select([], funding_value=10_000, fee_rate=1)
        assert exc.value.available == 0

    def test_unconfirmed_outputs_are_ineligible(self) -> None:
        with pytest.raises(InsufficientFunds):
            select([utxo(100_000, confirmations=0)], funding_value=10_000, fee_rate=1)

        selection = select(
            [utxo(100_000, confirmations=0)],
            funding_value=10_000,
            fee_rate=1,
            min_confirmations=0,
        )
        assert selection.total_input == 100_000

    def test_locked_outputs_are_ineligible(self) -> None:
        locked = {OutPoint("aa" * 32, 0)}
        utxos = [utxo(100_000, "aa"), utxo(50_000, "bb")]

        selection = select(utxos, funding_value=10_000, fee_rate=1, is_locked=locked.__contains__)
        assert selection.outpoints == [OutPoint("bb" * 32, 0)]


class TestEligibleUtxos:
    def test_tie_break_by_outpoint(self) -> None:
        utxos = [utxo(1_000, "bb", 0), utxo(1_000, "aa", 1), utxo(1_000, "aa", 0)]
        ordered = eligible_utxos(utxos)
        assert [str(u.outpoint) for u in ordered] == [
            f"{'aa' * 32}:0",
            f"{'aa' * 32}:1",
            f"{'bb' * 32}:0",
        ]

    def test_unsupported_script_types_are_skipped(self) -> None:
        utxos = [utxo(100_000, "aa", spk=P2PKH_SPK), utxo(1_000, "bb")]
        assert [u.txid for u in eligible_utxos(utxos)] == ["bb" * 32]

    def test_dummy_witness_unsupported(self) -> None:
        with pytest.raises(ValueError):
            dummy_witness("p2pkh")


class TestFeeBreakdown:
    """The carrier output is outside the commit fee basis."""

    def test_effective_commit_rate(self) -> None:
        fees = FeeBreakdown(
            commit_fee=5_544,
            reveal_fee=4_932,
            commit_fee_rate=36,
            reveal_fee_rate=36,
            commit_vsize=177,
            commit_basis_vsize=154,
            reveal_vsize=137,
        )

        assert fees.total_fees == (154 + 137) * 36
        assert fees.carrier_vbytes == 23
        assert fees.effective_commit_fee_rate == pytest.approx(5_544 / 177)
        assert fees.effective_commit_fee_rate < 36
        assert fees.commit_fee_rate_skew == pytest.approx(23 * 36 / 177)

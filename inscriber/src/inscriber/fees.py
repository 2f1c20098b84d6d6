"""
Coin selection and fee estimation.

Sizes come from template transactions carrying dummy witnesses of the size a
real signature produces, so the estimate for a given input set is exact for
taproot inputs and at most one vbyte high per P2WPKH input (DER signatures
vary between 71 and 73 bytes).

The commit fee is charged on the commit transaction *without* its zero-value
carrier output. The carrier bytes are in the delivered transaction but not in
the fee basis, so the effective commit fee rate is lower than requested by
exactly carrier_vbytes * rate / commit_vsize.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger
from ordcore.constants import SCHNORR_SIGNATURE_SIZE
from ordcore.models import OutPoint
from ordcore.transaction import Transaction, TxIn, TxOut, output_vbytes
from ordwallet.wallet.models import UTXOInfo

from inscriber.errors import InsufficientFunds

# Largest DER signature plus sighash byte
P2WPKH_SIGNATURE_SIZE = 73
COMPRESSED_PUBKEY_SIZE = 33

SUPPORTED_INPUT_TYPES = ("p2tr", "p2wpkh")


def dummy_witness(input_type: str) -> list[bytes]:
    """Witness stack of the size a real signature for input_type produces."""
    if input_type == "p2tr":
        return [b"\x00" * SCHNORR_SIGNATURE_SIZE]
    if input_type == "p2wpkh":
        return [b"\x00" * P2WPKH_SIGNATURE_SIZE, b"\x00" * COMPRESSED_PUBKEY_SIZE]
    raise ValueError(f"Cannot estimate witness for {input_type} input")


def dummy_reveal_witness(leaf_script: bytes, control_block: bytes) -> list[bytes]:
    return [b"\x00" * SCHNORR_SIGNATURE_SIZE, leaf_script, control_block]


def commit_template(utxos: list[UTXOInfo], outputs: list[TxOut]) -> Transaction:
    inputs = [TxIn(u.txid, u.vout, witness=dummy_witness(u.script_type)) for u in utxos]
    return Transaction(inputs=inputs, outputs=outputs)


def fee_for(vsize: int, fee_rate: int) -> int:
    return vsize * fee_rate


@dataclass
class CoinSelection:
    """Inputs chosen for the commit transaction and how their value is split."""

    utxos: list[UTXOInfo]
    funding_value: int
    change_value: int
    commit_fee: int
    fee_rate: int
    # Fee basis: commit without the carrier output
    commit_basis_vsize: int
    # Delivered commit, carrier included
    commit_vsize: int

    @property
    def total_input(self) -> int:
        return sum(u.value for u in self.utxos)

    @property
    def has_change(self) -> bool:
        return self.change_value > 0

    @property
    def outpoints(self) -> list[OutPoint]:
        return [u.outpoint for u in self.utxos]


@dataclass(frozen=True)
class FeeBreakdown:
    commit_fee: int
    reveal_fee: int
    commit_fee_rate: int
    reveal_fee_rate: int
    commit_vsize: int
    commit_basis_vsize: int
    reveal_vsize: int

    @property
    def total_fees(self) -> int:
        return self.commit_fee + self.reveal_fee

    @property
    def carrier_vbytes(self) -> int:
        return self.commit_vsize - self.commit_basis_vsize

    @property
    def effective_commit_fee_rate(self) -> float:
        return self.commit_fee / self.commit_vsize

    @property
    def commit_fee_rate_skew(self) -> float:
        """Requested minus effective commit fee rate (sat/vB)."""
        return self.commit_fee_rate - self.effective_commit_fee_rate


def eligible_utxos(
    utxos: list[UTXOInfo],
    min_confirmations: int = 1,
    is_locked: Callable[[OutPoint], bool] | None = None,
) -> list[UTXOInfo]:
    """
    Outputs that may fund a commit, largest first.

    Ties are broken by (txid, vout) so selection is reproducible.
    """
    eligible = []
    for utxo in utxos:
        if utxo.confirmations < min_confirmations:
            logger.debug(f"Skipping {utxo.outpoint}: {utxo.confirmations} confirmations")
            continue
        if is_locked is not None and is_locked(utxo.outpoint):
            logger.debug(f"Skipping {utxo.outpoint}: locked")
            continue
        if utxo.script_type not in SUPPORTED_INPUT_TYPES:
            logger.debug(f"Skipping {utxo.outpoint}: unsupported {utxo.script_type} output")
            continue
        eligible.append(utxo)

    eligible.sort(key=lambda u: (-u.value, u.txid, u.vout))
    return eligible


def select_coins(
    utxos: list[UTXOInfo],
    funding_value: int,
    fee_rate: int,
    funding_scriptpubkey: bytes,
    carrier_scriptpubkey: bytes,
    change_scriptpubkey: bytes,
    dust_threshold: int,
    min_confirmations: int = 1,
    is_locked: Callable[[OutPoint], bool] | None = None,
    vsize_correction: int = 0,
) -> CoinSelection:
    """
    Select commit inputs largest-first until they cover
    funding_value + commit fee.

    Args:
        utxos: Candidate outputs (snapshot from the wallet)
        funding_value: Value of the reveal-funding output (postage + reveal fee)
        fee_rate: Commit fee rate in sat/vB
        funding_scriptpubkey: P2TR commitment output script
        carrier_scriptpubkey: OP_RETURN carrier output, outside the fee basis
        change_scriptpubkey: Where any remainder goes
        dust_threshold: Minimum economical change value
        min_confirmations: Outputs with fewer confirmations are ineligible
        is_locked: Wallet lock check; locked outputs are ineligible
        vsize_correction: Added to every commit size estimate

    Raises:
        InsufficientFunds: If all eligible outputs together fall short
    """
    candidates = eligible_utxos(utxos, min_confirmations, is_locked)
    funding = TxOut(funding_value, funding_scriptpubkey)
    change_vbytes = output_vbytes(change_scriptpubkey)
    change_cost = fee_for(change_vbytes, fee_rate)

    selected: list[UTXOInfo] = []
    total = 0
    required = funding_value
    for utxo in candidates:
        selected.append(utxo)
        total += utxo.value

        basis_vsize = commit_template(selected, [funding]).vsize + vsize_correction
        commit_fee = fee_for(basis_vsize, fee_rate)
        required = funding_value + commit_fee
        if total < required:
            continue

        remainder = total - required
        change_value = 0
        if remainder > dust_threshold + change_cost:
            change_value = remainder - change_cost
            commit_fee += change_cost
            basis_vsize += change_vbytes
        else:
            # Uneconomical change is left to the miner
            commit_fee += remainder

        logger.debug(
            f"Selected {len(selected)} of {len(candidates)} UTXOs: "
            f"in={total}, funding={funding_value}, fee={commit_fee}, change={change_value}"
        )
        return CoinSelection(
            utxos=list(selected),
            funding_value=funding_value,
            change_value=change_value,
            commit_fee=commit_fee,
            fee_rate=fee_rate,
            commit_basis_vsize=basis_vsize,
            commit_vsize=basis_vsize + output_vbytes(carrier_scriptpubkey),
        )

    raise InsufficientFunds(required=required, available=total)

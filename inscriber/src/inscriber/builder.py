"""
Commit/reveal transaction builder.

Commit: selected UTXOs -> [reveal-funding P2TR output, carrier OP_RETURN,
optional change]. Reveal: commit output 0 -> postage to the destination,
spent through the envelope leaf.

Both transactions are returned with placeholder witnesses of signing size,
so their vsize is the size estimate the fees were computed from.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from ordcore.address import dust_threshold
from ordcore.models import OutPoint
from ordcore.transaction import Transaction, TxIn, TxOut
from ordwallet.wallet.models import UTXOInfo

from inscriber.envelope import Commitment
from inscriber.errors import FeeMismatch, PayloadTooLarge, ValidationError
from inscriber.fees import CoinSelection, commit_template, dummy_reveal_witness

FUNDING_VOUT = 0
CARRIER_VOUT = 1

# Stands in for the commit txid while sizing the reveal
PLACEHOLDER_OUTPOINT = OutPoint("00" * 32, FUNDING_VOUT)


@dataclass
class CommitTransaction:
    tx: Transaction
    utxos: list[UTXOInfo]
    change_vout: int | None = None

    @property
    def txid(self) -> str:
        return self.tx.txid

    @property
    def funding_output(self) -> TxOut:
        return self.tx.outputs[FUNDING_VOUT]

    @property
    def funding_outpoint(self) -> OutPoint:
        return self.tx.outpoint(FUNDING_VOUT)

    @property
    def outpoints(self) -> list[OutPoint]:
        return [u.outpoint for u in self.utxos]

    def hex(self) -> str:
        return self.tx.hex()


@dataclass
class RevealTransaction:
    tx: Transaction
    commitment: Commitment

    @property
    def txid(self) -> str:
        return self.tx.txid

    @property
    def commit_outpoint(self) -> OutPoint:
        return self.tx.inputs[0].outpoint

    @property
    def inscription_id(self) -> str:
        return f"{self.txid}i0"

    def hex(self) -> str:
        return self.tx.hex()


@dataclass(frozen=True)
class SizeEstimate:
    commit_vsize: int
    reveal_vsize: int


def build_reveal(
    commit_outpoint: OutPoint,
    commitment: Commitment,
    funding_value: int,
    destination_scriptpubkey: bytes,
    postage: int,
) -> RevealTransaction:
    tx = Transaction(
        inputs=[
            TxIn(
                commit_outpoint.txid,
                commit_outpoint.vout,
                witness=dummy_reveal_witness(commitment.leaf_script, commitment.control_block),
            )
        ],
        outputs=[TxOut(postage, destination_scriptpubkey)],
        spent_outputs=[TxOut(funding_value, commitment.scriptpubkey)],
    )
    return RevealTransaction(tx=tx, commitment=commitment)


def _check_dust(what: str, value: int, scriptpubkey: bytes) -> None:
    threshold = dust_threshold(scriptpubkey)
    if value < threshold:
        raise ValidationError(f"{what} output of {value} sats is below dust ({threshold} sats)")


def build_inscription(
    selection: CoinSelection,
    commitment: Commitment,
    destination_scriptpubkey: bytes,
    change_scriptpubkey: bytes,
    carrier_scriptpubkey: bytes,
    postage: int,
    max_tx_weight: int,
    no_limit: bool = False,
) -> tuple[CommitTransaction, RevealTransaction]:
    """
    Assemble the unsigned commit and reveal transactions.

    The reveal's only input is output 0 of the commit, referenced by the
    commit txid (witness data does not affect it, so signing the commit
    later leaves the reference valid).

    Raises:
        ValidationError: If a non-carrier output would be dust
        PayloadTooLarge: If a transaction exceeds max_tx_weight and not no_limit
    """
    outputs = [
        TxOut(selection.funding_value, commitment.scriptpubkey),
        TxOut(0, carrier_scriptpubkey),
    ]
    change_vout = None
    if selection.has_change:
        change_vout = len(outputs)
        outputs.append(TxOut(selection.change_value, change_scriptpubkey))

    commit_tx = commit_template(selection.utxos, outputs)
    commit_tx.spent_outputs = [
        TxOut(u.value, bytes.fromhex(u.scriptpubkey)) for u in selection.utxos
    ]
    commit = CommitTransaction(tx=commit_tx, utxos=list(selection.utxos), change_vout=change_vout)

    reveal = build_reveal(
        commit.funding_outpoint,
        commitment,
        selection.funding_value,
        destination_scriptpubkey,
        postage,
    )

    _check_dust("Reveal-funding", selection.funding_value, commitment.scriptpubkey)
    _check_dust("Reveal", postage, destination_scriptpubkey)
    if change_vout is not None:
        _check_dust("Change", selection.change_value, change_scriptpubkey)

    if not no_limit:
        for name, tx in (("Commit", commit.tx), ("Reveal", reveal.tx)):
            if tx.weight > max_tx_weight:
                raise PayloadTooLarge(
                    tx.weight, max_tx_weight, what=f"{name} transaction", unit="WU"
                )

    logger.debug(
        f"Built commit {commit.txid} ({commit.tx.vsize} vB, {len(outputs)} outputs) "
        f"and reveal ({reveal.tx.vsize} vB)"
    )
    return commit, reveal


def _check_size(which: str, estimated: int, actual: int, inputs: int, tolerance: int) -> None:
    if actual > estimated or estimated - actual > tolerance * inputs + 1:
        raise FeeMismatch(which, estimated, actual)


def verify_sizes(
    commit: CommitTransaction,
    reveal: RevealTransaction,
    estimate: SizeEstimate,
    tolerance_per_input: int = 1,
) -> None:
    """
    Compare signed sizes with the estimates the fees were based on.

    A signed transaction larger than its estimate pays less than the
    requested rate; one much smaller overpays.

    Raises:
        FeeMismatch: On the first transaction outside tolerance
    """
    _check_size(
        "commit",
        estimate.commit_vsize,
        commit.tx.vsize,
        len(commit.tx.inputs),
        tolerance_per_input,
    )
    _check_size(
        "reveal",
        estimate.reveal_vsize,
        reveal.tx.vsize,
        len(reveal.tx.inputs),
        tolerance_per_input,
    )

"""
Signs the commit inputs with wallet keys and the reveal with the one-time
envelope key.
"""

from __future__ import annotations

from coincurve import PrivateKey
from loguru import logger
from ordcore.crypto import CryptoError
from ordwallet.wallet.base import Wallet
from ordwallet.wallet.signing import TransactionSigningError

from inscriber.builder import CommitTransaction, RevealTransaction
from inscriber.errors import SigningError


def sign_commit(wallet: Wallet, commit: CommitTransaction) -> None:
    """Replace every placeholder commit witness with a wallet signature."""
    for index, utxo in enumerate(commit.utxos):
        try:
            commit.tx.inputs[index].witness = wallet.sign_key_path(commit.tx, index)
        except (TransactionSigningError, CryptoError) as e:
            raise SigningError(f"Cannot sign commit input {utxo.outpoint}: {e}") from e
    logger.debug(f"Signed {len(commit.utxos)} commit inputs")


def sign_reveal(
    wallet: Wallet, reveal: RevealTransaction, key: PrivateKey
) -> None:
    """
    Produce the reveal witness: [signature, leaf script, control block].

    key must be the one-time key the envelope was committed to.
    """
    commitment = reveal.commitment
    if key.public_key.format(compressed=True)[1:] != commitment.internal_key:
        raise SigningError("Reveal key does not match the envelope commitment")

    try:
        signature = wallet.sign_script_path(key, reveal.tx, 0, commitment.leaf_script)
    except (TransactionSigningError, CryptoError) as e:
        raise SigningError(f"Cannot sign reveal: {e}") from e

    reveal.tx.inputs[0].witness = [signature, commitment.leaf_script, commitment.control_block]


def sign_inscription(
    wallet: Wallet,
    commit: CommitTransaction,
    reveal: RevealTransaction,
    key: PrivateKey,
) -> None:
    sign_commit(wallet, commit)
    # Witness data never changes the txid, so the reveal outpoint still holds
    sign_reveal(wallet, reveal, key)

"""
The inscribe pipeline.

validate -> encode -> list spendable -> select -> build -> sign -> verify
sizes -> finalize

Validation (including the authentication rule) and envelope encoding finish
before the wallet is asked for anything, so a rejected request has no side
effects. A FeeMismatch from size verification triggers exactly one rebuild
with the measured correction; a second mismatch is raised.
"""

from __future__ import annotations

import httpx
from coincurve import PrivateKey
from loguru import logger
from ordcore.address import AddressError, address_to_scriptpubkey, dust_threshold
from ordcore.models import NetworkType
from ordcore.script import op_return_script
from ordwallet.wallet.base import Wallet
from ordwallet.wallet.models import UTXOInfo

from inscriber.builder import (
    PLACEHOLDER_OUTPOINT,
    CommitTransaction,
    RevealTransaction,
    SizeEstimate,
    build_inscription,
    build_reveal,
    verify_sizes,
)
from inscriber.config import InscriberConfig
from inscriber.controller import Broadcaster, InscriptionController
from inscriber.envelope import Commitment, EnvelopeEncoder, commit, max_envelope_size
from inscriber.errors import FeeMismatch, InscriptionError, ValidationError
from inscriber.fees import FeeBreakdown, fee_for, select_coins
from inscriber.instruction import validate_request
from inscriber.models import InscriptionRequest, InscriptionResult
from inscriber.signer import sign_inscription


def _scriptpubkey(role: str, address: str, network: NetworkType) -> bytes:
    try:
        return address_to_scriptpubkey(address, network)
    except AddressError as e:
        raise ValidationError(f"Invalid {role} address: {e}") from e


async def _spendable_utxos(wallet: Wallet, origin: str, change: str) -> list[UTXOInfo]:
    """Outputs at origin, then at the change address, without duplicates."""
    addresses = [origin] if change == origin else [origin, change]
    utxos: list[UTXOInfo] = []
    seen = set()
    for address in addresses:
        try:
            found = await wallet.list_spendable(address)
        except (httpx.HTTPError, ValueError) as e:
            raise InscriptionError(f"Cannot list spendable outputs of {address}: {e}") from e
        for utxo in found:
            if utxo.outpoint not in seen:
                seen.add(utxo.outpoint)
                utxos.append(utxo)
    return utxos


class _Plan:
    """Everything one build attempt needs besides the size corrections."""

    def __init__(
        self,
        request: InscriptionRequest,
        config: InscriberConfig,
        commitment: Commitment,
        key: PrivateKey,
        destination_spk: bytes,
        change_spk: bytes,
        postage: int,
    ):
        self.request = request
        self.config = config
        self.commitment = commitment
        self.key = key
        self.destination_spk = destination_spk
        self.change_spk = change_spk
        self.carrier_spk = op_return_script(config.carrier_data)
        self.postage = postage


def _build_and_sign(
    plan: _Plan,
    wallet: Wallet,
    utxos: list[UTXOInfo],
    corrections: dict[str, int],
) -> tuple[CommitTransaction, RevealTransaction, FeeBreakdown]:
    request = plan.request
    config = plan.config

    reveal_template = build_reveal(
        PLACEHOLDER_OUTPOINT, plan.commitment, 0, plan.destination_spk, plan.postage
    )
    reveal_vsize = reveal_template.tx.vsize + corrections["reveal"]
    reveal_fee = fee_for(reveal_vsize, request.fee_rate)

    selection = select_coins(
        utxos,
        funding_value=plan.postage + reveal_fee,
        fee_rate=request.effective_commit_fee_rate,
        funding_scriptpubkey=plan.commitment.scriptpubkey,
        carrier_scriptpubkey=plan.carrier_spk,
        change_scriptpubkey=plan.change_spk,
        dust_threshold=config.dust_threshold,
        min_confirmations=config.min_confirmations,
        is_locked=wallet.is_locked,
        vsize_correction=corrections["commit"],
    )

    commit_tx, reveal_tx = build_inscription(
        selection,
        plan.commitment,
        destination_scriptpubkey=plan.destination_spk,
        change_scriptpubkey=plan.change_spk,
        carrier_scriptpubkey=plan.carrier_spk,
        postage=plan.postage,
        max_tx_weight=config.max_tx_weight,
        no_limit=request.no_limit or config.no_limit,
    )

    sign_inscription(wallet, commit_tx, reveal_tx, plan.key)
    verify_sizes(
        commit_tx,
        reveal_tx,
        SizeEstimate(commit_vsize=selection.commit_vsize, reveal_vsize=reveal_vsize),
        config.size_tolerance_per_input,
    )

    fees = FeeBreakdown(
        commit_fee=selection.commit_fee,
        reveal_fee=reveal_fee,
        commit_fee_rate=request.effective_commit_fee_rate,
        reveal_fee_rate=request.fee_rate,
        commit_vsize=selection.commit_vsize,
        commit_basis_vsize=selection.commit_basis_vsize,
        reveal_vsize=reveal_vsize,
    )
    return commit_tx, reveal_tx, fees


async def inscribe(
    request: InscriptionRequest,
    wallet: Wallet,
    broadcaster: Broadcaster | None = None,
    config: InscriberConfig | None = None,
    network: NetworkType | str = NetworkType.MAINNET,
) -> InscriptionResult:
    """
    Inscribe one instruction.

    Args:
        request: What to inscribe and where
        wallet: Supplies spendable outputs, signatures and the one-time key
        broadcaster: Submits transactions; unused (and optional) for dry runs
        config: Engine parameters, defaults to InscriberConfig()
        network: Network the addresses must belong to

    Returns:
        InscriptionResult with status dry_run, broadcast or reveal_pending

    Raises:
        ValidationError: Malformed instruction, authentication failure, bad address
        EnvelopeError: Payload cannot be encoded or is too large
        InsufficientFunds: Spendable outputs do not cover postage and fees
        FeeMismatch: Signed sizes drifted twice in a row
        SigningError: A key was unavailable
        BroadcastError: The commit transaction was rejected
    """
    config = config or InscriberConfig()
    network = NetworkType(network)

    instruction = validate_request(request)
    logger.info(f"Validated {instruction.type} instruction")

    destination_spk = _scriptpubkey("destination", request.destination, network)
    change_spk = _scriptpubkey("change", request.change, network)
    _scriptpubkey("origin", request.origin, network)

    postage = request.postage or config.postage
    if postage < dust_threshold(destination_spk):
        raise ValidationError(
            f"Postage of {postage} sats is below dust for the destination address"
        )

    no_limit = request.no_limit or config.no_limit
    encoder = EnvelopeEncoder(
        chunk_size=config.chunk_size,
        max_script_size=None if no_limit else max_envelope_size(config.max_tx_weight),
    )
    envelope = encoder.encode(instruction)
    logger.debug(
        f"Envelope: {len(envelope.payload)} byte payload in {len(envelope.chunks)} chunk(s), "
        f"{len(envelope.script)} byte script"
    )

    key, xonly = wallet.get_or_create_key()
    commitment = commit(envelope, xonly)
    commit_address = commitment.address(network)
    logger.info(f"Commit address: {commit_address}")

    utxos = await _spendable_utxos(wallet, request.origin, request.change)
    logger.info(f"Found {len(utxos)} candidate UTXOs")

    plan = _Plan(request, config, commitment, key, destination_spk, change_spk, postage)
    corrections = {"commit": 0, "reveal": 0}
    try:
        commit_tx, reveal_tx, fees = _build_and_sign(plan, wallet, utxos, corrections)
    except FeeMismatch as e:
        logger.warning(f"{e}; rebuilding with a {e.correction:+d} vbyte correction")
        corrections[e.which] += e.correction
        commit_tx, reveal_tx, fees = _build_and_sign(plan, wallet, utxos, corrections)

    logger.info(
        f"Commit {commit_tx.txid} ({fees.commit_vsize} vB, fee {fees.commit_fee}), "
        f"reveal {reveal_tx.txid} ({fees.reveal_vsize} vB, fee {fees.reveal_fee})"
    )

    controller = InscriptionController(commit_tx, reveal_tx, wallet, broadcaster)
    finalized = await controller.finalize(request.dry_run)

    return InscriptionResult(
        status=finalized.status.value,
        commit_txid=finalized.commit_txid,
        reveal_txid=finalized.reveal_txid,
        inscription_id=reveal_tx.inscription_id,
        commit_hex=finalized.commit_hex,
        reveal_hex=finalized.reveal_hex,
        reveal_hex_pending=finalized.reveal_hex_pending,
        reveal_error=finalized.reveal_error,
        commit_address=commit_address,
        postage=postage,
        commit_fee=fees.commit_fee,
        reveal_fee=fees.reveal_fee,
        total_fees=fees.total_fees,
        commit_vsize=fees.commit_vsize,
        reveal_vsize=fees.reveal_vsize,
        commit_fee_rate=fees.commit_fee_rate,
        reveal_fee_rate=fees.reveal_fee_rate,
        effective_commit_fee_rate=fees.effective_commit_fee_rate,
    )

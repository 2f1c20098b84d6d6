"""
Command-line interface for the OrdDeFi inscriber.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Annotated

import httpx
import typer
from coincurve import PrivateKey
from loguru import logger
from ordcore.crypto import xonly_pubkey
from ordcore.models import NetworkType
from ordcore.transaction import Transaction, TransactionError
from ordwallet.backends.bitcoin_core import BitcoinCoreBackend
from ordwallet.wallet.service import WalletService

from inscriber.config import InscriberConfig, Settings, get_settings
from inscriber.controller import BackendBroadcaster
from inscriber.engine import inscribe as run_inscribe
from inscriber.envelope import EnvelopeEncoder, commit, decode_envelope
from inscriber.errors import BroadcastError, InscriptionError
from inscriber.instruction import parse_instruction
from inscriber.models import InscriptionRequest

app = typer.Typer(
    name="orddefi",
    help="OrdDeFi inscriber - inscribe DeFi instructions with commit/reveal transactions",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_mnemonic(mnemonic: str | None, wallet: str, settings: Settings) -> str:
    """
    Load mnemonic from argument, environment variable, or wallet file.

    Priority:
    1. --mnemonic argument
    2. MNEMONIC environment variable
    3. <data_dir>/wallets/<wallet>.mnemonic

    Raises:
        ValueError: If no mnemonic source is available
    """
    if mnemonic:
        return mnemonic

    env_mnemonic = os.environ.get("MNEMONIC")
    if env_mnemonic:
        return env_mnemonic

    wallet_file = settings.data_dir / "wallets" / f"{wallet}.mnemonic"
    if wallet_file.exists():
        return wallet_file.read_text().strip()

    raise ValueError(f"Mnemonic required. Use --mnemonic, MNEMONIC env var, or create {wallet_file}")


def _print_json(data: dict) -> None:
    typer.echo(json.dumps(data, indent=2))


def _read_instruction(path: Path) -> bytes:
    if not path.exists():
        raise ValueError(f"Instruction file not found: {path}")
    return path.read_bytes()


def _make_backend(
    settings: Settings, rpc_url: str | None, rpc_user: str | None, rpc_password: str | None
) -> BitcoinCoreBackend:
    return BitcoinCoreBackend(
        rpc_url=rpc_url or settings.rpc_url,
        rpc_user=rpc_user or settings.rpc_user,
        rpc_password=rpc_password or settings.rpc_password,
    )


@app.command()
def inscribe(
    file: Annotated[Path, typer.Option("--file", help="Instruction JSON file")],
    origin: Annotated[str, typer.Option("--origin", help="Address funding the inscription")],
    fee_rate: Annotated[
        int | None,
        typer.Option("--fee-rate", help="Fee rate in sat/vB (default: node estimate)"),
    ] = None,
    fee_target: Annotated[
        int | None,
        typer.Option("--fee-target", help="Confirmation target in blocks for the fee estimate"),
    ] = None,
    destination: Annotated[
        str | None,
        typer.Option("--destination", help="Address receiving the reveal output (default: origin)"),
    ] = None,
    change: Annotated[
        str | None, typer.Option("--change", help="Change address (default: origin)")
    ] = None,
    commit_fee_rate: Annotated[
        int | None,
        typer.Option("--commit-fee-rate", help="Commit fee rate in sat/vB (default: --fee-rate)"),
    ] = None,
    postage: Annotated[
        int | None, typer.Option("--postage", help="Reveal output value in sats (default 10000)")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Build and sign but do not broadcast")
    ] = False,
    no_limit: Annotated[
        bool,
        typer.Option(
            "--no-limit",
            help="Skip the 400,000 WU standard weight check. Heavier transactions are not relayed.",
        ),
    ] = False,
    wallet: Annotated[str, typer.Option("--wallet", "-w", help="Wallet name")] = "default",
    mnemonic: Annotated[
        str | None, typer.Option("--mnemonic", help="Wallet mnemonic phrase")
    ] = None,
    address_type: Annotated[
        str, typer.Option("--address-type", help="Wallet address type: p2tr | p2wpkh")
    ] = "p2tr",
    network: Annotated[str | None, typer.Option("--network", help="Bitcoin network")] = None,
    rpc_url: Annotated[str | None, typer.Option("--rpc-url", help="Bitcoin Core RPC URL")] = None,
    rpc_user: Annotated[str | None, typer.Option("--rpc-user", help="RPC user")] = None,
    rpc_password: Annotated[
        str | None, typer.Option("--rpc-password", help="RPC password")
    ] = None,
    log_level: Annotated[str | None, typer.Option("--log-level", "-l", help="Log level")] = None,
) -> None:
    """Inscribe an instruction."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    try:
        network_type = NetworkType(network or settings.network)
    except ValueError:
        logger.error(f"Invalid network: {network}")
        raise typer.Exit(1)

    try:
        resolved_mnemonic = load_mnemonic(mnemonic, wallet, settings)
        fields = {
            "wallet": wallet,
            "fee_rate": fee_rate,
            "commit_fee_rate": commit_fee_rate,
            "origin": origin,
            "destination": destination or origin,
            "change": change or origin,
            "dry_run": dry_run,
            "instruction": _read_instruction(file),
            "postage": postage,
            "no_limit": no_limit,
        }
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    backend = _make_backend(settings, rpc_url, rpc_user, rpc_password)
    wallet_service = WalletService(
        mnemonic=resolved_mnemonic,
        backend=backend,
        network=network_type,
        address_type=address_type,
    )

    asyncio.run(
        _run_inscribe(
            fields, fee_target or settings.fee_target_blocks, wallet_service, backend, network_type
        )
    )


async def _run_inscribe(
    fields: dict,
    fee_target: int,
    wallet: WalletService,
    backend: BitcoinCoreBackend,
    network: NetworkType,
) -> None:
    try:
        if fields["fee_rate"] is None:
            fields["fee_rate"] = await backend.estimate_fee(fee_target)
            logger.info(f"Fee rate {fields['fee_rate']} sat/vB (target {fee_target} blocks)")

        result = await run_inscribe(
            InscriptionRequest(**fields),
            wallet,
            broadcaster=BackendBroadcaster(backend),
            config=InscriberConfig(),
            network=network,
        )
    except BroadcastError as e:
        logger.error(f"BroadcastError: {e}")
        _print_json(
            {
                "status": "rejected",
                "error": str(e),
                "commit_txid": e.commit_txid,
                "commit_hex": e.commit_hex,
                "reveal_hex": e.reveal_hex,
            }
        )
        raise typer.Exit(1)
    except (InscriptionError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        raise typer.Exit(1)
    finally:
        await wallet.close()

    _print_json(result.to_output())
    if result.status == "reveal_pending":
        raise typer.Exit(1)


async def _fetch_transaction(txid: str, backend: BitcoinCoreBackend) -> bytes | None:
    try:
        tx = await backend.get_transaction(txid)
    finally:
        await backend.close()
    return tx.raw if tx else None


@app.command()
def decode(
    data: Annotated[
        str,
        typer.Argument(help="Reveal transaction, tapscript leaf or envelope script (hex)"),
    ],
    txid: Annotated[
        bool, typer.Option("--txid", help="DATA is a reveal txid to fetch from the node")
    ] = False,
    rpc_url: Annotated[str | None, typer.Option("--rpc-url", help="Bitcoin Core RPC URL")] = None,
    rpc_user: Annotated[str | None, typer.Option("--rpc-user", help="RPC user")] = None,
    rpc_password: Annotated[
        str | None, typer.Option("--rpc-password", help="RPC password")
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """Decode the instruction carried by a reveal transaction or script."""
    setup_logging(log_level)

    try:
        raw = bytes.fromhex(data)
    except ValueError:
        logger.error("Input is not valid hex")
        raise typer.Exit(1)

    if txid:
        if len(raw) != 32:
            logger.error("A txid is 32 bytes of hex")
            raise typer.Exit(1)
        backend = _make_backend(get_settings(), rpc_url, rpc_user, rpc_password)
        try:
            fetched = asyncio.run(_fetch_transaction(data, backend))
        except (ValueError, httpx.HTTPError) as e:
            logger.error(f"Cannot fetch transaction {data}: {e}")
            raise typer.Exit(1)
        if fetched is None:
            logger.error(f"Transaction {data} not found")
            raise typer.Exit(1)
        raw = fetched

    script = raw
    try:
        tx = Transaction.deserialize(raw)
        if tx.inputs and len(tx.inputs[0].witness) >= 2:
            script = tx.inputs[0].witness[1]
    except TransactionError:
        logger.debug("Input is not a transaction, decoding as script")

    try:
        instruction = decode_envelope(script)
    except InscriptionError as e:
        logger.error(f"Cannot decode instruction: {e}")
        raise typer.Exit(1)

    _print_json(instruction.model_dump())


@app.command("commit-gen-prv")
def commit_gen_prv() -> None:
    """Generate a one-time commit key."""
    key = PrivateKey()
    _print_json({"xprv": key.secret.hex()})


@app.command("commit-gen-addr")
def commit_gen_addr(
    prv: Annotated[str, typer.Option("--prv", help="One-time commit key (hex)")],
    file: Annotated[Path, typer.Option("--file", help="Instruction JSON file")],
    network: Annotated[str, typer.Option("--network", help="Bitcoin network")] = "mainnet",
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """Print the commit address an instruction would use with a given key."""
    setup_logging(log_level)

    try:
        key = PrivateKey(bytes.fromhex(prv))
    except ValueError:
        logger.error("Cannot restore private key: expected 32 bytes of hex")
        raise typer.Exit(1)

    try:
        instruction = parse_instruction(_read_instruction(file))
        envelope = EnvelopeEncoder().encode(instruction)
        commitment = commit(envelope, xonly_pubkey(key))
        address = commitment.address(NetworkType(network))
    except (InscriptionError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)

    _print_json({"address": address})


def main() -> None:
    app()


if __name__ == "__main__":
    main()

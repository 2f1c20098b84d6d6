"""
Bitcoin Core RPC backend.

Works against a node with no wallet loaded: outputs are found with
scantxoutset over addr() descriptors, which reads the chainstate directly.
Because of that, outputs created by unconfirmed transactions are not seen
until they are mined.
"""

from __future__ import annotations

import asyncio
import os
import random
from typing import Any

import httpx
from loguru import logger
from ordcore.transaction import Transaction

from ordwallet.backends.base import UTXO, BlockchainBackend, ChainTransaction

# Seconds
DEFAULT_RPC_TIMEOUT = 30.0
# A mainnet chainstate scan can take minutes
SCAN_RPC_TIMEOUT = 300.0

SCAN_MAX_ATTEMPTS = 30
SCAN_BACKOFF_BASE = 0.5
SCAN_POLL_INTERVAL = 10.0

# sat/vB used when estimatesmartfee has no data (regtest, freshly started nodes)
FALLBACK_FEE_RATE = 10

# bitcoind RPC error codes
RPC_INVALID_ADDRESS_OR_KEY = -5
RPC_VERIFY_REJECTED = -26
RPC_VERIFY_ALREADY_IN_CHAIN = -27

# WARNING: logs addresses and raw scan results
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class RPCError(ValueError):
    """Error object returned by bitcoind."""

    def __init__(self, code: int | None, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC error {code}: {message}")


def _descriptor_address(desc: str) -> str:
    # "addr(bc1q...)#checksum" -> "bc1q..."
    body = desc.partition("#")[0]
    if body.startswith("addr(") and body.endswith(")"):
        return body[5:-1]
    if body:
        logger.warning(f"Unexpected descriptor in scan result: '{body}'")
    return ""


class BitcoinCoreBackend(BlockchainBackend):
    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:8332",
        rpc_user: str = "",
        rpc_password: str = "",
        scan_timeout: float = SCAN_RPC_TIMEOUT,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.scan_timeout = scan_timeout
        self.client = httpx.AsyncClient(timeout=DEFAULT_RPC_TIMEOUT, auth=(rpc_user, rpc_password))
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list | None = None, timeout: float | None = None) -> Any:
        """
        Call a bitcoind RPC method.

        Raises:
            RPCError: The node answered with an error object
            httpx.HTTPError: Connection, timeout or unexpected HTTP status
        """
        self._request_id += 1
        payload = {"jsonrpc": "1.0", "id": self._request_id, "method": method, "params": params or []}

        try:
            response = await self.client.post(
                self.rpc_url, json=payload, timeout=timeout or DEFAULT_RPC_TIMEOUT
            )
            # RPC errors come back as HTTP 500 (or 404 for unknown methods) with a JSON body
            if response.status_code not in (404, 500):
                response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"RPC {method} failed: {e}")
            raise

        error = data.get("error")
        if error:
            raise RPCError(error.get("code"), error.get("message", str(error)))
        return data.get("result")

    async def _scan(self, descriptors: list[str]) -> dict[str, Any]:
        """Run scantxoutset; bitcoind allows one scan at a time, so wait out any other."""
        for attempt in range(1, SCAN_MAX_ATTEMPTS + 1):
            progress = await self._rpc_call("scantxoutset", ["status"])
            if progress is not None and attempt < SCAN_MAX_ATTEMPTS:
                logger.debug(
                    f"Waiting for running scan ({progress.get('progress', 0)}%), "
                    f"attempt {attempt}/{SCAN_MAX_ATTEMPTS}"
                )
                await asyncio.sleep(SCAN_POLL_INTERVAL)
                continue

            try:
                result = await self._rpc_call(
                    "scantxoutset", ["start", descriptors], timeout=self.scan_timeout
                )
            except RPCError as e:
                # Lost the race against another client starting a scan
                if "already in progress" in e.message and attempt < SCAN_MAX_ATTEMPTS:
                    delay = SCAN_BACKOFF_BASE * 2 ** (attempt - 1) + random.uniform(0, 0.5)
                    logger.debug(f"Scan started elsewhere, retrying in {delay:.2f}s")
                    await asyncio.sleep(delay)
                    continue
                raise

            if SENSITIVE_LOGGING:
                logger.debug(f"Scan result: {result}")
            return result or {}

        raise RPCError(None, f"scantxoutset still busy after {SCAN_MAX_ATTEMPTS} attempts")

    async def get_utxos(self, addresses: list[str]) -> list[UTXO]:
        if not addresses:
            return []
        if SENSITIVE_LOGGING:
            logger.debug(f"Scanning {addresses}")

        result = await self._scan([f"addr({address})" for address in addresses])
        # Chain height the scan was taken at
        tip = result.get("height")
        if tip is None:
            tip = await self.get_block_height()

        utxos = []
        for entry in result.get("unspents", []):
            height = entry.get("height", 0)
            utxos.append(
                UTXO(
                    txid=entry["txid"],
                    vout=entry["vout"],
                    value=round(entry["amount"] * 100_000_000),
                    address=_descriptor_address(entry.get("desc", "")),
                    confirmations=tip - height + 1 if height > 0 else 0,
                    scriptpubkey=entry.get("scriptPubKey", ""),
                )
            )

        logger.debug(f"Scanned {len(addresses)} address(es) at height {tip}: {len(utxos)} UTXOs")
        return utxos

    async def broadcast_transaction(self, tx_hex: str) -> str:
        try:
            txid = await self._rpc_call("sendrawtransaction", [tx_hex])
        except RPCError as e:
            if e.code == RPC_VERIFY_ALREADY_IN_CHAIN:
                # Resubmitting a transaction that already confirmed is not a failure
                txid = Transaction.deserialize(bytes.fromhex(tx_hex)).txid
                logger.info(f"Transaction {txid} already in chain")
                return txid
            logger.error(f"Node rejected transaction: {e.message}")
            raise
        except httpx.HTTPError as e:
            raise ValueError(f"Broadcast failed: {e}") from e

        logger.info(f"Broadcast transaction: {txid}")
        return txid

    async def get_transaction(self, txid: str) -> ChainTransaction | None:
        try:
            data = await self._rpc_call("getrawtransaction", [txid, True])
        except RPCError as e:
            if e.code == RPC_INVALID_ADDRESS_OR_KEY:
                # Unknown to the node (or not indexed without -txindex)
                logger.debug(f"Transaction {txid} not found: {e.message}")
                return None
            raise

        if not data:
            return None

        confirmations = data.get("confirmations", 0)
        block_height = None
        if confirmations > 0:
            block_height = await self.get_block_height() - confirmations + 1

        return ChainTransaction(
            txid=data.get("txid", txid),
            raw=bytes.fromhex(data["hex"]),
            confirmations=confirmations,
            block_height=block_height,
        )

    async def estimate_fee(self, target_blocks: int) -> int:
        try:
            result = await self._rpc_call("estimatesmartfee", [target_blocks])
        except (RPCError, httpx.HTTPError) as e:
            logger.warning(f"Fee estimation failed: {e}, using {FALLBACK_FEE_RATE} sat/vB")
            return FALLBACK_FEE_RATE

        feerate = (result or {}).get("feerate")
        if feerate is None:
            logger.warning(f"No fee estimate available, using {FALLBACK_FEE_RATE} sat/vB")
            return FALLBACK_FEE_RATE

        # BTC/kvB -> sat/vB, rounded up so the target is not undershot
        sat_per_vb = max(1, -(-round(feerate * 100_000_000) // 1000))
        logger.debug(f"Fee estimate for {target_blocks} blocks: {sat_per_vb} sat/vB")
        return sat_per_vb

    async def get_block_height(self) -> int:
        info = await self._rpc_call("getblockchaininfo")
        return info.get("blocks", 0)

    async def close(self) -> None:
        await self.client.aclose()

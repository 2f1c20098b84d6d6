"""
OrdDeFi wallet service.
"""

from __future__ import annotations

from collections.abc import Iterable

from coincurve import PrivateKey
from loguru import logger
from ordcore.address import AddressError, script_type, scriptpubkey_to_address
from ordcore.models import NetworkType, OutPoint
from ordcore.transaction import Transaction

from ordwallet.backends.base import BlockchainBackend
from ordwallet.wallet.base import Wallet
from ordwallet.wallet.bip32 import HDKey, mnemonic_to_seed
from ordwallet.wallet.models import UTXOInfo
from ordwallet.wallet.signing import (
    TransactionSigningError,
    create_p2wpkh_script_code,
    create_witness_stack,
    sign_p2wpkh_input,
    sign_taproot_key_path,
    sign_taproot_script_path,
)

# BIP44 purpose per address type
PURPOSES = {"p2tr": 86, "p2wpkh": 84}


class WalletService(Wallet):
    """
    HD wallet backed by a blockchain backend.

    Derivation path: m/{purpose}'/{coin_type}'/{account}'/{change}/{index}
    - purpose: 86 (taproot, default) or 84 (native segwit)
    - change: 0 (external/receive), 1 (internal/change)

    Locked outputs live in memory only and are released when the process
    exits.
    """

    def __init__(
        self,
        mnemonic: str,
        backend: BlockchainBackend,
        network: NetworkType | str = "mainnet",
        account: int = 0,
        gap_limit: int = 20,
        address_type: str = "p2tr",
        passphrase: str = "",
    ):
        if address_type not in PURPOSES:
            raise ValueError(f"Unsupported address type: {address_type}")

        self.backend = backend
        self.network = NetworkType(network)
        self.gap_limit = gap_limit
        self.address_type = address_type

        self.master_key = HDKey.from_seed(mnemonic_to_seed(mnemonic, passphrase))

        coin_type = 0 if self.network == NetworkType.MAINNET else 1
        self.root_path = f"m/{PURPOSES[address_type]}'/{coin_type}'/{account}'"

        self.address_cache: dict[str, str] = {}
        self.locked: set[OutPoint] = set()
        self._scanned = False

        logger.info(f"Initialized {address_type} wallet at {self.root_path}")

    def get_address(self, change: int, index: int) -> str:
        """Get address for given path"""
        path = f"{self.root_path}/{change}/{index}"
        address = self.master_key.derive(path).address(self.address_type, self.network)

        self.address_cache[address] = path
        return address

    def get_receive_address(self, index: int) -> str:
        """Get external (receive) address"""
        return self.get_address(0, index)

    def get_change_address(self, index: int) -> str:
        """Get internal (change) address"""
        return self.get_address(1, index)

    def _populate_cache(self) -> None:
        if self._scanned:
            return
        for change in (0, 1):
            for index in range(self.gap_limit):
                self.get_address(change, index)
        self._scanned = True

    def get_key_for_address(self, address: str) -> HDKey | None:
        """Get HD key for an address within the gap limit"""
        if address not in self.address_cache:
            self._populate_cache()
        path = self.address_cache.get(address)
        if path is None:
            return None
        return self.master_key.derive(path)

    async def list_spendable(self, address: str) -> list[UTXOInfo]:
        backend_utxos = await self.backend.get_utxos([address])
        path = self.address_cache.get(address, "")

        utxos = [
            UTXOInfo(
                txid=utxo.txid,
                vout=utxo.vout,
                value=utxo.value,
                address=utxo.address or address,
                confirmations=utxo.confirmations,
                scriptpubkey=utxo.scriptpubkey,
                path=path,
            )
            for utxo in backend_utxos
        ]
        spendable = [u for u in utxos if u.outpoint not in self.locked]

        logger.debug(
            f"{address}: {len(spendable)} spendable UTXOs "
            f"({len(utxos) - len(spendable)} locked), "
            f"{sum(u.value for u in spendable)} sats"
        )
        return spendable

    def sign_key_path(self, tx: Transaction, input_index: int) -> list[bytes]:
        if input_index >= len(tx.spent_outputs):
            raise TransactionSigningError(f"No spent output for input {input_index}")

        spent = tx.spent_outputs[input_index]
        try:
            address = scriptpubkey_to_address(spent.scriptpubkey, self.network)
        except AddressError as e:
            raise TransactionSigningError(f"Cannot sign input {input_index}: {e}") from e

        key = self.get_key_for_address(address)
        if key is None:
            raise TransactionSigningError(f"No key for address {address} in this wallet")

        if script_type(spent.scriptpubkey) == "p2tr":
            return [sign_taproot_key_path(tx, input_index, key.private_key)]

        pubkey = key.pubkey
        script_code = create_p2wpkh_script_code(pubkey)
        signature = sign_p2wpkh_input(tx, input_index, script_code, spent.value, key.private_key)
        return create_witness_stack(signature, pubkey)

    def sign_script_path(
        self, key: PrivateKey, tx: Transaction, input_index: int, script: bytes
    ) -> bytes:
        return sign_taproot_script_path(tx, input_index, key, script)

    def get_or_create_key(self) -> tuple[PrivateKey, bytes]:
        key = PrivateKey()
        return key, key.public_key.format(compressed=True)[1:]

    def lock_outputs(self, outpoints: Iterable[OutPoint]) -> None:
        for outpoint in outpoints:
            self.locked.add(outpoint)
            logger.debug(f"Locked {outpoint}")

    def unlock_outputs(self, outpoints: Iterable[OutPoint]) -> None:
        for outpoint in outpoints:
            self.locked.discard(outpoint)
            logger.debug(f"Unlocked {outpoint}")

    def is_locked(self, outpoint: OutPoint) -> bool:
        return outpoint in self.locked

    async def close(self) -> None:
        """Close backend connection"""
        await self.backend.close()

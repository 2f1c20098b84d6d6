"""
ordcore - Core library for OrdDeFi components

Provides shared Bitcoin primitives: scripts, addresses, transactions and
taproot cryptography.
"""

__version__ = "0.3.0"

from ordcore.address import (
    AddressError,
    address_to_scriptpubkey,
    dust_threshold,
    p2tr_scriptpubkey,
    script_type,
    scriptpubkey_to_address,
    xonly_to_p2tr_address,
)
from ordcore.constants import (
    CARRIER_DATA,
    DEFAULT_POSTAGE,
    MAX_SCRIPT_ELEMENT_SIZE,
    MAX_STANDARD_TX_WEIGHT,
    PROTOCOL_TAG,
    STANDARD_DUST_LIMIT,
)
from ordcore.crypto import (
    CryptoError,
    hash256,
    tagged_hash,
    taproot_tweak_pubkey,
    taproot_tweak_seckey,
)
from ordcore.models import NetworkType, OutPoint
from ordcore.script import ScriptError, parse_script, push_data
from ordcore.transaction import Transaction, TransactionError, TxIn, TxOut

__all__ = [
    "AddressError",
    "CARRIER_DATA",
    "CryptoError",
    "DEFAULT_POSTAGE",
    "MAX_SCRIPT_ELEMENT_SIZE",
    "MAX_STANDARD_TX_WEIGHT",
    "NetworkType",
    "OutPoint",
    "PROTOCOL_TAG",
    "STANDARD_DUST_LIMIT",
    "ScriptError",
    "Transaction",
    "TransactionError",
    "TxIn",
    "TxOut",
    "address_to_scriptpubkey",
    "dust_threshold",
    "hash256",
    "p2tr_scriptpubkey",
    "parse_script",
    "push_data",
    "script_type",
    "scriptpubkey_to_address",
    "tagged_hash",
    "taproot_tweak_pubkey",
    "taproot_tweak_seckey",
    "xonly_to_p2tr_address",
]

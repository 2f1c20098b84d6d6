"""
Bitcoin consensus/policy constants and OrdDeFi protocol constants.

Policy values mirror Bitcoin Core's defaults. They are used as defaults for
the inscriber configuration and can be overridden there when a node runs
with non-default relay policy.
"""

from __future__ import annotations

# Standard P2PKH dust limit in Bitcoin Core
STANDARD_DUST_LIMIT = 546  # satoshis

# Maximum size of a single script element push (MAX_SCRIPT_ELEMENT_SIZE)
MAX_SCRIPT_ELEMENT_SIZE = 520  # bytes

# Transactions heavier than this are non-standard and not relayed
MAX_STANDARD_TX_WEIGHT = 400_000  # weight units

WITNESS_SCALE_FACTOR = 4

# BIP341
TAPROOT_LEAF_VERSION = 0xC0
SCHNORR_SIGNATURE_SIZE = 64

# Default value carried by the reveal output (same as ord's TARGET_POSTAGE)
DEFAULT_POSTAGE = 10_000  # satoshis

# OrdDeFi protocol
PROTOCOL_TAG = b"orddefi"
PAYLOAD_VERSION = 0x01
# Zero-value OP_RETURN data attached to every commit transaction
CARRIER_DATA = b"orddefi:auth"

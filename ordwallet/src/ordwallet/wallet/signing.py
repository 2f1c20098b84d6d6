"""
Bitcoin transaction signing utilities.

- P2WPKH inputs: BIP143 sighash, DER-encoded ECDSA signatures
- P2TR inputs: BIP341 sighash, BIP340 Schnorr signatures, key path and
  script path
"""

from __future__ import annotations

import hashlib
import struct

from coincurve import PrivateKey
from ordcore.crypto import hash160, hash256, tagged_hash, tap_leaf_hash, taproot_tweak_seckey
from ordcore.serialization import encode_bytes
from ordcore.transaction import Transaction

SIGHASH_DEFAULT = 0x00
SIGHASH_ALL = 0x01


class TransactionSigningError(Exception):
    pass


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def compute_sighash_segwit(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP143 signature hash for a segwit v0 input."""
    if input_index >= len(tx.inputs):
        raise TransactionSigningError("Input index out of range")

    hash_prevouts = hash256(b"".join(inp.serialize_outpoint() for inp in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))

    target_input = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + target_input.serialize_outpoint()
        + encode_bytes(script_code)
        + value.to_bytes(8, "little")
        + struct.pack("<I", target_input.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + sighash_type.to_bytes(4, "little")
    )

    return hash256(preimage)


def create_p2wpkh_script_code(pubkey_bytes: bytes) -> bytes:
    """Create the scriptCode for P2WPKH signing (BIP 143).

    For P2WPKH, the scriptCode is the P2PKH script:
    OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
    """
    return b"\x76\xa9\x14" + hash160(pubkey_bytes) + b"\x88\xac"


def sign_p2wpkh_input(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    private_key: PrivateKey,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """Sign a P2WPKH input using coincurve.

    Returns:
        DER-encoded signature with sighash type byte appended
    """
    sighash = compute_sighash_segwit(tx, input_index, script_code, value, sighash_type)

    # The sighash is already SHA256d, so skip coincurve's hashing
    signature = private_key.sign(sighash, hasher=None)

    return signature + bytes([sighash_type])


def create_witness_stack(signature: bytes, pubkey_bytes: bytes) -> list[bytes]:
    return [signature, pubkey_bytes]


def compute_sighash_taproot(
    tx: Transaction,
    input_index: int,
    sighash_type: int = SIGHASH_DEFAULT,
    leaf_script: bytes | None = None,
) -> bytes:
    """
    BIP341 signature hash.

    Only SIGHASH_DEFAULT and SIGHASH_ALL are supported. Passing leaf_script
    computes the script-path (ext_flag = 1) variant for that tapleaf.

    tx.spent_outputs must hold the output spent by every input.
    """
    if sighash_type not in (SIGHASH_DEFAULT, SIGHASH_ALL):
        raise TransactionSigningError(f"Unsupported taproot sighash type: {sighash_type:#x}")
    if input_index >= len(tx.inputs):
        raise TransactionSigningError("Input index out of range")
    if len(tx.spent_outputs) != len(tx.inputs):
        raise TransactionSigningError("Taproot signing requires every spent output")

    sha_prevouts = _sha256(b"".join(inp.serialize_outpoint() for inp in tx.inputs))
    sha_amounts = _sha256(b"".join(struct.pack("<Q", out.value) for out in tx.spent_outputs))
    sha_scriptpubkeys = _sha256(
        b"".join(encode_bytes(out.scriptpubkey) for out in tx.spent_outputs)
    )
    sha_sequences = _sha256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    sha_outputs = _sha256(b"".join(out.serialize() for out in tx.outputs))

    ext_flag = 0 if leaf_script is None else 1
    spend_type = ext_flag * 2  # no annex

    msg = (
        bytes([0x00])  # epoch
        + bytes([sighash_type])
        + struct.pack("<I", tx.version)
        + struct.pack("<I", tx.locktime)
        + sha_prevouts
        + sha_amounts
        + sha_scriptpubkeys
        + sha_sequences
        + sha_outputs
        + bytes([spend_type])
        + struct.pack("<I", input_index)
    )

    if leaf_script is not None:
        msg += tap_leaf_hash(leaf_script) + bytes([0x00]) + struct.pack("<I", 0xFFFFFFFF)

    return tagged_hash("TapSighash", msg)


def _schnorr_signature(private_key: PrivateKey, sighash: bytes, sighash_type: int) -> bytes:
    signature = private_key.sign_schnorr(sighash)
    if sighash_type != SIGHASH_DEFAULT:
        signature += bytes([sighash_type])
    return signature


def sign_taproot_key_path(
    tx: Transaction,
    input_index: int,
    private_key: PrivateKey,
    sighash_type: int = SIGHASH_DEFAULT,
) -> bytes:
    """Sign a BIP86 (key-path only) P2TR input with the untweaked wallet key."""
    sighash = compute_sighash_taproot(tx, input_index, sighash_type)
    tweaked = PrivateKey(taproot_tweak_seckey(private_key.secret))
    return _schnorr_signature(tweaked, sighash, sighash_type)


def sign_taproot_script_path(
    tx: Transaction,
    input_index: int,
    private_key: PrivateKey,
    leaf_script: bytes,
    sighash_type: int = SIGHASH_DEFAULT,
) -> bytes:
    """Sign a tapscript leaf spend with the key named in the leaf."""
    sighash = compute_sighash_taproot(tx, input_index, sighash_type, leaf_script)
    return _schnorr_signature(private_key, sighash, sighash_type)

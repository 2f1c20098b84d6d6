"""
Transaction model, serialization and size accounting.

Sizes follow BIP141: weight = base_size * 3 + total_size and
vsize = ceil(weight / 4).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from ordcore.constants import WITNESS_SCALE_FACTOR
from ordcore.crypto import hash256
from ordcore.models import OutPoint
from ordcore.serialization import encode_bytes, encode_varint, read_varint

# nSequence that signals RBF without enabling a relative locktime
SEQUENCE_ENABLE_RBF = 0xFFFFFFFD


class TransactionError(Exception):
    pass


@dataclass
class TxIn:
    """Transaction input."""

    txid: str
    vout: int
    sequence: int = SEQUENCE_ENABLE_RBF
    script_sig: bytes = b""
    witness: list[bytes] = field(default_factory=list)

    @property
    def outpoint(self) -> OutPoint:
        return OutPoint(self.txid, self.vout)

    def serialize_outpoint(self) -> bytes:
        # txid is in RPC format (big-endian), reversed for raw tx
        return bytes.fromhex(self.txid)[::-1] + struct.pack("<I", self.vout)

    def serialize(self) -> bytes:
        return (
            self.serialize_outpoint()
            + encode_bytes(self.script_sig)
            + struct.pack("<I", self.sequence)
        )


@dataclass
class TxOut:
    """Transaction output."""

    value: int
    scriptpubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<Q", self.value) + encode_bytes(self.scriptpubkey)


@dataclass
class Transaction:
    """
    A Bitcoin transaction.

    spent_outputs carries the outputs being spent by each input (value and
    scriptPubKey). It is not serialized; signers need it for BIP143/BIP341
    sighashes.
    """

    inputs: list[TxIn]
    outputs: list[TxOut]
    version: int = 2
    locktime: int = 0
    spent_outputs: list[TxOut] = field(default_factory=list)

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize transaction to bytes."""
        segwit = include_witness and self.has_witness

        result = struct.pack("<I", self.version)
        if segwit:
            # Marker and flag for SegWit
            result += bytes([0x00, 0x01])

        result += encode_varint(len(self.inputs))
        for inp in self.inputs:
            result += inp.serialize()

        result += encode_varint(len(self.outputs))
        for out in self.outputs:
            result += out.serialize()

        if segwit:
            for inp in self.inputs:
                result += encode_varint(len(inp.witness))
                for item in inp.witness:
                    result += encode_bytes(item)

        result += struct.pack("<I", self.locktime)
        return result

    def hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, in RPC byte order."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize(include_witness=True))
        return base_size * (WITNESS_SCALE_FACTOR - 1) + total_size

    @property
    def vsize(self) -> int:
        return (self.weight + WITNESS_SCALE_FACTOR - 1) // WITNESS_SCALE_FACTOR

    def outpoint(self, vout: int) -> OutPoint:
        if vout >= len(self.outputs):
            raise TransactionError(f"Output index {vout} out of range")
        return OutPoint(self.txid, vout)

    @classmethod
    def deserialize(cls, data: bytes) -> Transaction:
        try:
            return cls._deserialize(data)
        except (IndexError, struct.error) as e:
            raise TransactionError(f"Failed to parse transaction: {e}") from e

    @classmethod
    def _deserialize(cls, data: bytes) -> Transaction:
        offset = 0
        version = struct.unpack("<I", data[offset : offset + 4])[0]
        offset += 4

        segwit = False
        if data[offset] == 0x00 and data[offset + 1] == 0x01:
            segwit = True
            offset += 2

        input_count, offset = read_varint(data, offset)
        inputs: list[TxIn] = []
        for _ in range(input_count):
            txid = data[offset : offset + 32][::-1].hex()
            offset += 32
            vout = struct.unpack("<I", data[offset : offset + 4])[0]
            offset += 4
            script_len, offset = read_varint(data, offset)
            script_sig = data[offset : offset + script_len]
            offset += script_len
            sequence = struct.unpack("<I", data[offset : offset + 4])[0]
            offset += 4
            inputs.append(TxIn(txid, vout, sequence, script_sig))

        output_count, offset = read_varint(data, offset)
        outputs: list[TxOut] = []
        for _ in range(output_count):
            value = struct.unpack("<Q", data[offset : offset + 8])[0]
            offset += 8
            script_len, offset = read_varint(data, offset)
            outputs.append(TxOut(value, data[offset : offset + script_len]))
            offset += script_len

        if segwit:
            for inp in inputs:
                stack_count, offset = read_varint(data, offset)
                for _ in range(stack_count):
                    item_len, offset = read_varint(data, offset)
                    inp.witness.append(data[offset : offset + item_len])
                    offset += item_len

        locktime = struct.unpack("<I", data[offset : offset + 4])[0]
        offset += 4
        if offset != len(data):
            raise TransactionError(f"{len(data) - offset} trailing bytes after transaction")

        return cls(inputs=inputs, outputs=outputs, version=version, locktime=locktime)


def output_vbytes(scriptpubkey: bytes) -> int:
    """Virtual size contributed by one output (value + script length + script)."""
    return len(TxOut(0, scriptpubkey).serialize())

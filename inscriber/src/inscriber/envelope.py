"""
Envelope encoding.

Payload layout (all integers little-endian):

    b"orddefi" | version (1) | discriminant (1) | fields...

Fields are written in declaration order per instruction type. Strings are a
compact-size length followed by UTF-8 bytes (at most 255 bytes), amounts are
unsigned 64-bit, and an optional string is a presence byte (0/1) followed by
the string when present.

The payload sits in a branch that is never executed:

    OP_FALSE OP_IF <"orddefi"> OP_0 <chunk> <chunk> ... OP_ENDIF

and is committed to a one-time key through a single tapscript leaf:

    <xonly-key> OP_CHECKSIG <envelope>
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ordcore.address import p2tr_scriptpubkey, xonly_to_p2tr_address
from ordcore.constants import (
    MAX_SCRIPT_ELEMENT_SIZE,
    MAX_STANDARD_TX_WEIGHT,
    PAYLOAD_VERSION,
    PROTOCOL_TAG,
    SCHNORR_SIGNATURE_SIZE,
    TAPROOT_LEAF_VERSION,
)
from ordcore.crypto import CryptoError, tap_leaf_hash, taproot_tweak_pubkey
from ordcore.models import NetworkType
from ordcore.script import (
    OP_0,
    OP_CHECKSIG,
    OP_ENDIF,
    OP_FALSE,
    OP_IF,
    ScriptError,
    parse_script,
    push_data,
)
from ordcore.serialization import encode_varint, read_varint
from ordcore.transaction import Transaction, TxIn, TxOut

from inscriber.errors import EncodingError, EnvelopeError, PayloadTooLarge, SchemaError
from inscriber.instruction import (
    AddLiquidityInstruction,
    BaseInstruction,
    MintInstruction,
    RemoveLiquidityInstruction,
    SwapInstruction,
    TransferInstruction,
    parse_instruction,
)

MAX_STRING_BYTES = 255
MAX_AMOUNT = 2**64 - 1

# (discriminant, [(field, kind), ...]) per instruction type
PAYLOAD_LAYOUT: dict[type[BaseInstruction], tuple[int, list[tuple[str, str]]]] = {
    MintInstruction: (1, [("asset", "str"), ("amount", "u64")]),
    AddLiquidityInstruction: (
        2,
        [("asset_a", "str"), ("asset_b", "str"), ("amount_a", "u64"), ("amount_b", "u64")],
    ),
    RemoveLiquidityInstruction: (
        3,
        [("asset_a", "str"), ("asset_b", "str"), ("liquidity", "u64")],
    ),
    SwapInstruction: (
        4,
        [("asset_in", "str"), ("asset_out", "str"), ("amount_in", "u64"), ("min_amount_out", "u64")],
    ),
    TransferInstruction: (5, [("asset", "str"), ("amount", "u64"), ("to", "opt_str")]),
}

_BY_DISCRIMINANT = {disc: (cls, fields) for cls, (disc, fields) in PAYLOAD_LAYOUT.items()}
_TYPE_TAGS = {
    cls: cls.model_fields["type"].default for cls in PAYLOAD_LAYOUT
}

_HEADER = PROTOCOL_TAG + bytes([PAYLOAD_VERSION])


def _encode_string(name: str, value: str) -> bytes:
    data = value.encode("utf-8")
    if len(data) > MAX_STRING_BYTES:
        raise EncodingError(f"{name} is {len(data)} bytes, limit is {MAX_STRING_BYTES}")
    return encode_varint(len(data)) + data


def _encode_amount(name: str, value: int) -> bytes:
    if value < 0 or value > MAX_AMOUNT:
        raise EncodingError(f"{name}={value} does not fit in an unsigned 64-bit integer")
    return struct.pack("<Q", value)


def encode_payload(instruction: BaseInstruction) -> bytes:
    """Canonical binary form of a validated instruction."""
    layout = PAYLOAD_LAYOUT.get(type(instruction))
    if layout is None:
        raise EncodingError(f"No payload layout for {type(instruction).__name__}")
    discriminant, fields = layout

    result = _HEADER + bytes([discriminant])
    for name, kind in fields:
        value = getattr(instruction, name)
        if kind == "str":
            result += _encode_string(name, value)
        elif kind == "u64":
            result += _encode_amount(name, value)
        elif value is None:
            result += b"\x00"
        else:
            result += b"\x01" + _encode_string(name, value)
    return result


class _Reader:
    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    def take(self, n: int) -> bytes:
        if self.offset + n > len(self.data):
            raise EncodingError("Payload truncated")
        chunk = self.data[self.offset : self.offset + n]
        self.offset += n
        return chunk

    def string(self) -> str:
        try:
            length, self.offset = read_varint(self.data, self.offset)
        except IndexError as e:
            raise EncodingError("Payload truncated") from e
        try:
            return self.take(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"Invalid UTF-8 in payload: {e}") from e


def decode_payload(payload: bytes) -> BaseInstruction:
    """Inverse of encode_payload."""
    if not payload.startswith(PROTOCOL_TAG):
        raise EncodingError("Payload does not start with the protocol tag")
    reader = _Reader(payload, len(PROTOCOL_TAG))

    version = reader.take(1)[0]
    if version != PAYLOAD_VERSION:
        raise EncodingError(f"Unsupported payload version {version}")

    discriminant = reader.take(1)[0]
    if discriminant not in _BY_DISCRIMINANT:
        raise EncodingError(f"Unknown instruction discriminant {discriminant}")
    cls, fields = _BY_DISCRIMINANT[discriminant]

    doc: dict[str, object] = {"type": _TYPE_TAGS[cls]}
    for name, kind in fields:
        if kind == "str":
            doc[name] = reader.string()
        elif kind == "u64":
            doc[name] = struct.unpack("<Q", reader.take(8))[0]
        else:
            present = reader.take(1)[0]
            if present > 1:
                raise EncodingError(f"Invalid presence byte {present} for {name}")
            doc[name] = reader.string() if present else None

    if reader.offset != len(payload):
        raise EncodingError(f"{len(payload) - reader.offset} trailing bytes in payload")

    try:
        return parse_instruction(doc)
    except SchemaError as e:
        raise EncodingError(f"Decoded payload is not a valid instruction: {e}") from e


@dataclass(frozen=True)
class Envelope:
    """Encoded payload and the guarded branch script that carries it."""

    payload: bytes
    script: bytes
    chunk_size: int

    @property
    def chunks(self) -> list[bytes]:
        return [
            self.payload[i : i + self.chunk_size]
            for i in range(0, len(self.payload), self.chunk_size)
        ]


@dataclass(frozen=True)
class Commitment:
    """An envelope bound to a one-time key through a single-leaf taproot tree."""

    internal_key: bytes
    leaf_script: bytes
    output_key: bytes
    parity: int

    @property
    def leaf_hash(self) -> bytes:
        return tap_leaf_hash(self.leaf_script)

    @property
    def control_block(self) -> bytes:
        return bytes([TAPROOT_LEAF_VERSION | self.parity]) + self.internal_key

    @property
    def scriptpubkey(self) -> bytes:
        return p2tr_scriptpubkey(self.output_key)

    def address(self, network: NetworkType | str = "mainnet") -> str:
        return xonly_to_p2tr_address(self.output_key, network)


def leaf_script_for(internal_key: bytes, envelope_script: bytes) -> bytes:
    return push_data(internal_key) + bytes([OP_CHECKSIG]) + envelope_script


def max_envelope_size(max_tx_weight: int = MAX_STANDARD_TX_WEIGHT) -> int:
    """
    Largest envelope script that keeps the reveal transaction within
    max_tx_weight.

    Measured on a reveal with the widest standard destination output
    (34-byte scriptPubKey) and an empty envelope, less 4 bytes for the leaf
    length prefix growing to its 5-byte form.
    """
    leaf = leaf_script_for(b"\x00" * 32, b"")
    template = Transaction(
        inputs=[
            TxIn(
                "00" * 32,
                0,
                witness=[b"\x00" * SCHNORR_SIGNATURE_SIZE, leaf, b"\x00" * 33],
            )
        ],
        outputs=[TxOut(0, b"\x00" * 34)],
    )
    return max_tx_weight - template.weight - 4


class EnvelopeEncoder:
    """
    Build envelopes from instructions.

    Args:
        chunk_size: Largest data push (at most 520 bytes)
        max_script_size: Ceiling for the envelope script, None for no limit
    """

    def __init__(
        self,
        chunk_size: int = MAX_SCRIPT_ELEMENT_SIZE,
        max_script_size: int | None = None,
    ):
        if not 1 <= chunk_size <= MAX_SCRIPT_ELEMENT_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_SCRIPT_ELEMENT_SIZE}")
        self.chunk_size = chunk_size
        self.max_script_size = max_script_size

    def encode(self, instruction: BaseInstruction) -> Envelope:
        payload = encode_payload(instruction)

        script = bytes([OP_FALSE, OP_IF]) + push_data(PROTOCOL_TAG) + bytes([OP_0])
        for i in range(0, len(payload), self.chunk_size):
            script += push_data(payload[i : i + self.chunk_size])
        script += bytes([OP_ENDIF])

        if self.max_script_size is not None and len(script) > self.max_script_size:
            raise PayloadTooLarge(len(script), self.max_script_size)

        return Envelope(payload=payload, script=script, chunk_size=self.chunk_size)


def commit(envelope: Envelope, internal_key: bytes) -> Commitment:
    """
    Commit an envelope to a 32-byte x-only key.

    The same key is both the taproot internal key and the key checked by the
    leaf, so only its holder can spend through either path.
    """
    leaf = leaf_script_for(internal_key, envelope.script)
    try:
        output_key, parity = taproot_tweak_pubkey(internal_key, tap_leaf_hash(leaf))
    except CryptoError as e:
        raise EnvelopeError(f"Cannot commit envelope: {e}") from e
    return Commitment(
        internal_key=internal_key, leaf_script=leaf, output_key=output_key, parity=parity
    )


def extract_payload(script: bytes) -> bytes:
    """Concatenated payload chunks of the first OrdDeFi envelope in a script."""
    try:
        ops = parse_script(script)
    except ScriptError as e:
        raise EnvelopeError(f"Malformed script: {e}") from e

    for i in range(len(ops) - 3):
        if (
            ops[i].opcode == OP_FALSE
            and ops[i + 1].opcode == OP_IF
            and ops[i + 2].data == PROTOCOL_TAG
            and ops[i + 3].opcode == OP_0
        ):
            payload = b""
            for op in ops[i + 4 :]:
                if op.opcode == OP_ENDIF:
                    return payload
                if not op.is_push:
                    raise EnvelopeError(f"Unexpected opcode {op.opcode:#x} inside envelope")
                payload += op.data
            raise EnvelopeError("Envelope is not terminated by OP_ENDIF")

    raise EnvelopeError("No OrdDeFi envelope found in script")


def decode_envelope(script: bytes) -> BaseInstruction:
    """Recover the instruction from an envelope or tapscript leaf."""
    return decode_payload(extract_payload(script))

"""
Script opcodes, pushdata encoding and script parsing.
"""

from __future__ import annotations

from dataclasses import dataclass

OP_0 = 0x00
OP_FALSE = OP_0
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1 = 0x51
OP_IF = 0x63
OP_ENDIF = 0x68
OP_RETURN = 0x6A
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC


class ScriptError(Exception):
    pass


@dataclass(frozen=True)
class ScriptOp:
    """A parsed script element: either an opcode or a data push."""

    opcode: int
    data: bytes | None = None

    @property
    def is_push(self) -> bool:
        return self.data is not None


def push_data(data: bytes) -> bytes:
    """Serialize a data push using the smallest push opcode for its length."""
    length = len(data)
    if length == 0:
        return bytes([OP_0])
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


def parse_script(script: bytes) -> list[ScriptOp]:
    """Split a script into opcodes and data pushes."""
    ops: list[ScriptOp] = []
    offset = 0

    while offset < len(script):
        opcode = script[offset]
        offset += 1

        if opcode == OP_0:
            ops.append(ScriptOp(opcode, b""))
            continue

        if opcode < OP_PUSHDATA1:
            length = opcode
        elif opcode == OP_PUSHDATA1:
            length = _read_length(script, offset, 1)
            offset += 1
        elif opcode == OP_PUSHDATA2:
            length = _read_length(script, offset, 2)
            offset += 2
        elif opcode == OP_PUSHDATA4:
            length = _read_length(script, offset, 4)
            offset += 4
        else:
            ops.append(ScriptOp(opcode))
            continue

        if offset + length > len(script):
            raise ScriptError(f"Push of {length} bytes runs past end of script")
        ops.append(ScriptOp(opcode, script[offset : offset + length]))
        offset += length

    return ops


def _read_length(script: bytes, offset: int, size: int) -> int:
    if offset + size > len(script):
        raise ScriptError("Truncated pushdata length")
    return int.from_bytes(script[offset : offset + size], "little")


def op_return_script(data: bytes) -> bytes:
    """OP_RETURN <data> (null data / carrier output)."""
    return bytes([OP_RETURN]) + push_data(data)


def is_op_return(scriptpubkey: bytes) -> bool:
    return len(scriptpubkey) > 0 and scriptpubkey[0] == OP_RETURN

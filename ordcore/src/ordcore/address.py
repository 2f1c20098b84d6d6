"""
Bitcoin address encoding and decoding.

Supports:
- P2WPKH / P2WSH (bech32, BIP173)
- P2TR (bech32m, BIP350)
- P2PKH / P2SH (base58check)
"""

from __future__ import annotations

import base58

from ordcore.crypto import hash160
from ordcore.models import NetworkType, get_hrp
from ordcore.script import OP_0, OP_1

BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32_CONST = 1
BECH32M_CONST = 0x2BC830A3

P2PKH_VERSIONS = (0x00, 0x6F)  # Mainnet/Testnet
P2SH_VERSIONS = (0x05, 0xC4)


class AddressError(ValueError):
    pass


def bech32_polymod(values: list[int]) -> int:
    """Bech32 checksum polymod"""
    gen = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
    chk = 1
    for v in values:
        b = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= gen[i] if ((b >> i) & 1) else 0
    return chk


def bech32_hrp_expand(hrp: str) -> list[int]:
    """Expand HRP for bech32"""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def bech32_create_checksum(hrp: str, data: list[int], const: int = BECH32_CONST) -> list[int]:
    """Create bech32 (const=1) or bech32m checksum"""
    values = bech32_hrp_expand(hrp) + data
    polymod = bech32_polymod(values + [0, 0, 0, 0, 0, 0]) ^ const
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def bech32_encode(hrp: str, data: list[int], const: int = BECH32_CONST) -> str:
    """Encode bech32 string"""
    combined = data + bech32_create_checksum(hrp, data, const)
    return hrp + "1" + "".join([BECH32_CHARSET[d] for d in combined])


def bech32_decode(address: str) -> tuple[str, list[int], int]:
    """
    Decode a bech32/bech32m string.

    Returns:
        (hrp, data without checksum, checksum constant)
    """
    if address.lower() != address and address.upper() != address:
        raise AddressError(f"Mixed case in bech32 address: {address}")
    address = address.lower()

    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address) or len(address) > 90:
        raise AddressError(f"Invalid bech32 address: {address}")

    hrp = address[:pos]
    try:
        data = [BECH32_CHARSET.index(c) for c in address[pos + 1 :]]
    except ValueError as e:
        raise AddressError(f"Invalid bech32 character in {address}") from e

    const = bech32_polymod(bech32_hrp_expand(hrp) + data)
    if const not in (BECH32_CONST, BECH32M_CONST):
        raise AddressError(f"Invalid bech32 checksum: {address}")

    return hrp, data[:-6], const


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Convert between bit groups"""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise AddressError("Invalid bits")

    return ret


def encode_segwit_address(hrp: str, witver: int, witprog: bytes) -> str:
    const = BECH32_CONST if witver == 0 else BECH32M_CONST
    return bech32_encode(hrp, [witver] + convertbits(witprog, 8, 5), const)


def decode_segwit_address(address: str) -> tuple[str, int, bytes]:
    """
    Decode a segwit address.

    Returns:
        (hrp, witness version, witness program)
    """
    hrp, data, const = bech32_decode(address)
    if not data:
        raise AddressError(f"Empty segwit address data: {address}")

    witver = data[0]
    witprog = bytes(convertbits(data[1:], 5, 8, pad=False))

    if witver > 16 or not 2 <= len(witprog) <= 40:
        raise AddressError(f"Invalid witness program: {address}")
    if witver == 0 and len(witprog) not in (20, 32):
        raise AddressError(f"Invalid v0 witness program length: {address}")
    if (witver == 0) != (const == BECH32_CONST):
        raise AddressError(f"Wrong checksum variant for witness version {witver}: {address}")

    return hrp, witver, witprog


def pubkey_to_p2wpkh_address(pubkey: bytes, network: NetworkType | str = "mainnet") -> str:
    """
    Convert compressed public key to P2WPKH (native segwit) address.
    BIP173 bech32 encoding.
    """
    if len(pubkey) != 33:
        raise AddressError(f"Invalid compressed pubkey length: {len(pubkey)}")
    return encode_segwit_address(get_hrp(network), 0, hash160(pubkey))


def xonly_to_p2tr_address(output_key: bytes, network: NetworkType | str = "mainnet") -> str:
    """Encode a (tweaked) x-only output key as a P2TR address (BIP350 bech32m)."""
    if len(output_key) != 32:
        raise AddressError(f"Invalid x-only key length: {len(output_key)}")
    return encode_segwit_address(get_hrp(network), 1, output_key)


def p2wpkh_scriptpubkey(pubkey: bytes) -> bytes:
    """OP_0 <20-byte-hash>"""
    return bytes([0x00, 0x14]) + hash160(pubkey)


def p2tr_scriptpubkey(output_key: bytes) -> bytes:
    """OP_1 <32-byte-output-key>"""
    return bytes([OP_1, 0x20]) + output_key


def address_to_scriptpubkey(address: str, network: NetworkType | str | None = None) -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    If network is given, the address must belong to it.
    """
    if address.lower().startswith(("bc1", "tb1", "bcrt1")):
        hrp, witver, witprog = decode_segwit_address(address)
        if network is not None and hrp != get_hrp(network):
            raise AddressError(f"Address {address} is not valid on {NetworkType(network).value}")
        opcode = OP_0 if witver == 0 else OP_1 + witver - 1
        return bytes([opcode, len(witprog)]) + witprog

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise AddressError(f"Invalid base58 address: {address}") from e

    if len(decoded) != 21:
        raise AddressError(f"Invalid base58 payload length: {address}")
    version = decoded[0]
    payload = decoded[1:]
    if network is not None:
        mainnet = NetworkType(network) == NetworkType.MAINNET
        if (version in (0x00, 0x05)) != mainnet:
            raise AddressError(f"Address {address} is not valid on {NetworkType(network).value}")

    if version in P2PKH_VERSIONS:
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version in P2SH_VERSIONS:
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise AddressError(f"Unknown address version: {version}")


def scriptpubkey_to_address(scriptpubkey: bytes, network: NetworkType | str = "mainnet") -> str:
    """Convert a segwit scriptPubKey to its address."""
    kind = script_type(scriptpubkey)
    if kind in ("p2wpkh", "p2wsh"):
        return encode_segwit_address(get_hrp(network), 0, scriptpubkey[2:])
    if kind == "p2tr":
        return encode_segwit_address(get_hrp(network), 1, scriptpubkey[2:])
    raise AddressError(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")


def script_type(scriptpubkey: bytes) -> str:
    """Classify a scriptPubKey: p2wpkh, p2wsh, p2tr, p2pkh, p2sh, nulldata or unknown."""
    n = len(scriptpubkey)
    if n == 22 and scriptpubkey[:2] == b"\x00\x14":
        return "p2wpkh"
    if n == 34 and scriptpubkey[:2] == b"\x00\x20":
        return "p2wsh"
    if n == 34 and scriptpubkey[:2] == b"\x51\x20":
        return "p2tr"
    if n == 25 and scriptpubkey[:3] == b"\x76\xa9\x14" and scriptpubkey[23:] == b"\x88\xac":
        return "p2pkh"
    if n == 23 and scriptpubkey[:2] == b"\xa9\x14" and scriptpubkey[22] == 0x87:
        return "p2sh"
    if n > 0 and scriptpubkey[0] == 0x6A:
        return "nulldata"
    return "unknown"


def dust_threshold(scriptpubkey: bytes, dust_relay_fee: int = 3) -> int:
    """
    Smallest non-dust value for an output (Bitcoin Core GetDustThreshold).

    dust_relay_fee is in sat/vB.
    """
    kind = script_type(scriptpubkey)
    if kind == "nulldata":
        return 0

    output_size = 8 + 1 + len(scriptpubkey)
    if kind in ("p2wpkh", "p2wsh", "p2tr"):
        # 32 + 4 + 1 + (107 / 4) + 4 spend estimate for witness outputs
        spend_size = 32 + 4 + 1 + 26 + 4
    else:
        spend_size = 32 + 4 + 1 + 107 + 4
    return (output_size + spend_size) * dust_relay_fee

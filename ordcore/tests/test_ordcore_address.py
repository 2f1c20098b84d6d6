"""
Tests for address encoding and decoding.
"""

from __future__ import annotations

import pytest

from ordcore.address import (
    AddressError,
    address_to_scriptpubkey,
    dust_threshold,
    script_type,
    scriptpubkey_to_address,
    xonly_to_p2tr_address,
)
from ordcore.script import op_return_script

# BIP173 / BIP350 test vectors
P2WPKH_ADDRESS = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
P2WPKH_SPK = "0014751e76e8199196d454941c45d1b3a323f1433bd6"
P2TR_ADDRESS = "bc1p0xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqzk5jj0"
P2TR_SPK = "512079be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
P2PKH_ADDRESS = "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"
P2PKH_SPK = "76a91477bff20c60e522dfaa3350c39b030a5d004e839a88ac"


class TestAddressToScriptPubKey:
    """Tests for address to scriptPubKey conversion."""

    def test_p2wpkh(self) -> None:
        assert address_to_scriptpubkey(P2WPKH_ADDRESS).hex() == P2WPKH_SPK

    def test_p2wpkh_uppercase(self) -> None:
        assert address_to_scriptpubkey(P2WPKH_ADDRESS.upper()).hex() == P2WPKH_SPK

    def test_p2tr_bech32m(self) -> None:
        assert address_to_scriptpubkey(P2TR_ADDRESS).hex() == P2TR_SPK

    def test_p2pkh(self) -> None:
        assert address_to_scriptpubkey(P2PKH_ADDRESS).hex() == P2PKH_SPK

    def test_bad_checksum(self) -> None:
        with pytest.raises(AddressError):
            address_to_scriptpubkey(P2TR_ADDRESS[:-1] + "q")

    def test_wrong_network(self) -> None:
        with pytest.raises(AddressError):
            address_to_scriptpubkey(P2TR_ADDRESS, "regtest")

    def test_garbage(self) -> None:
        with pytest.raises(AddressError):
            address_to_scriptpubkey("not-an-address")


class TestScriptPubKeyToAddress:
    def test_p2tr_round_trip(self) -> None:
        spk = bytes.fromhex(P2TR_SPK)
        assert scriptpubkey_to_address(spk, "mainnet") == P2TR_ADDRESS

    def test_regtest_hrp(self) -> None:
        address = xonly_to_p2tr_address(bytes.fromhex(P2TR_SPK)[2:], "regtest")
        assert address.startswith("bcrt1p")
        assert address_to_scriptpubkey(address, "regtest").hex() == P2TR_SPK

    def test_unsupported(self) -> None:
        with pytest.raises(AddressError):
            scriptpubkey_to_address(bytes.fromhex(P2PKH_SPK))


class TestScriptType:
    def test_classification(self) -> None:
        assert script_type(bytes.fromhex(P2WPKH_SPK)) == "p2wpkh"
        assert script_type(bytes.fromhex(P2TR_SPK)) == "p2tr"
        assert script_type(bytes.fromhex(P2PKH_SPK)) == "p2pkh"
        assert script_type(op_return_script(b"x")) == "nulldata"
        assert script_type(b"\x01\x02") == "unknown"


class TestDustThreshold:
    """Dust limits at Bitcoin Core's default dust relay fee."""

    def test_p2tr(self) -> None:
        assert dust_threshold(bytes.fromhex(P2TR_SPK)) == 330

    def test_p2wpkh(self) -> None:
        assert dust_threshold(bytes.fromhex(P2WPKH_SPK)) == 294

    def test_p2pkh(self) -> None:
        assert dust_threshold(bytes.fromhex(P2PKH_SPK)) == 546

    def test_op_return_is_never_dust(self) -> None:
        assert dust_threshold(op_return_script(b"orddefi:auth")) == 0

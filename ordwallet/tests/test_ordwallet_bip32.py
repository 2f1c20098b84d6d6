"""
Tests for BIP32 derivation against the BIP84/BIP86 test vectors.
"""

from __future__ import annotations

import pytest

from ordwallet.wallet.bip32 import HARDENED, HDKey, format_path, mnemonic_to_seed, parse_path


@pytest.fixture
def master_key(sample_mnemonic: str) -> HDKey:
    return HDKey.from_seed(mnemonic_to_seed(sample_mnemonic))


class TestPaths:
    def test_parse(self) -> None:
        assert parse_path("m/86'/0h/0'/1/5") == [86 + HARDENED, HARDENED, HARDENED, 1, 5]

    def test_master(self) -> None:
        assert parse_path("m") == []

    def test_format_normalizes_hardened_marker(self) -> None:
        assert format_path(parse_path("m/86h/1h/0h/0/3")) == "m/86'/1'/0'/0/3"

    @pytest.mark.parametrize("path", ["86'/0'", "M/86'", "m/-1", f"m/{HARDENED}", "m/x"])
    def test_invalid(self, path: str) -> None:
        with pytest.raises(ValueError):
            parse_path(path)


class TestDerivation:
    def test_bip86_first_receive_address(self, master_key: HDKey) -> None:
        key = master_key.derive("m/86'/0'/0'/0/0")
        assert key.xonly.hex() == (
            "cc8a4bc64d897bddc5fbc2f670f7a8ba0b386779106cf1223c6fc5d7cd6fc115"
        )
        assert key.address("p2tr") == (
            "bc1p5cyxnuxmeuwuvkwfem96lqzszd02n6xdcjrs20cac6yqjjwudpxqkedrcr"
        )

    def test_bip84_first_receive_address(self, master_key: HDKey) -> None:
        key = master_key.derive("m/84'/0'/0'/0/0")
        assert key.address("p2wpkh") == "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"

    def test_regtest_prefix(self, master_key: HDKey) -> None:
        assert master_key.derive("m/86'/1'/0'/0/0").address("p2tr", "regtest").startswith("bcrt1p")

    def test_unsupported_address_type(self, master_key: HDKey) -> None:
        with pytest.raises(ValueError, match="p2pkh"):
            master_key.address("p2pkh")

    def test_hardened_suffixes_are_equivalent(self, master_key: HDKey) -> None:
        a = master_key.derive("m/86'/0'/0'")
        b = master_key.derive("m/86h/0h/0h")
        assert a.private_key.secret == b.private_key.secret
        assert a.path == b.path == "m/86'/0'/0'"

    def test_stepwise_matches_full_path(self, master_key: HDKey) -> None:
        account = master_key.derive("m/86'/0'/0'")
        assert account.child(0).child(7).pubkey == master_key.derive("m/86'/0'/0'/0/7").pubkey

    def test_depth(self, master_key: HDKey) -> None:
        assert master_key.depth == 0
        assert master_key.derive("m/86'/0'/0'/0/5").depth == 5

    def test_derive_requires_master(self, master_key: HDKey) -> None:
        with pytest.raises(ValueError, match="non-master"):
            master_key.derive("m/86'").derive("m/0'")

    def test_passphrase_changes_seed(self, sample_mnemonic: str) -> None:
        assert mnemonic_to_seed(sample_mnemonic) != mnemonic_to_seed(sample_mnemonic, "TREZOR")

    def test_mnemonic_whitespace_is_normalized(self, sample_mnemonic: str) -> None:
        assert mnemonic_to_seed(f"  {sample_mnemonic}\n") == mnemonic_to_seed(sample_mnemonic)

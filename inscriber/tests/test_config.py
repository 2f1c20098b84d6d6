"""
Tests for settings and engine configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from inscriber.config import InscriberConfig, Settings


class TestInscriberConfig:
    def test_defaults(self) -> None:
        config = InscriberConfig()
        assert config.postage == 10_000
        assert config.chunk_size == 520
        assert config.max_tx_weight == 400_000
        assert config.dust_threshold == 546
        assert config.min_confirmations == 1
        assert config.carrier_data == b"orddefi:auth"
        assert not config.no_limit

    @pytest.mark.parametrize("chunk_size", [0, 521])
    def test_chunk_size_bounds(self, chunk_size: int) -> None:
        with pytest.raises(ValidationError):
            InscriberConfig(chunk_size=chunk_size)

    def test_postage_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            InscriberConfig(postage=0)


class TestSettings:
    def test_environment_prefix(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("ORDDEFI_NETWORK", "regtest")
        monkeypatch.setenv("ORDDEFI_RPC_URL", "http://node:18443")
        monkeypatch.setenv("ORDDEFI_DATA_DIR", str(tmp_path))

        settings = Settings()

        assert settings.network == "regtest"
        assert settings.rpc_url == "http://node:18443"
        assert settings.data_dir == tmp_path

    def test_fee_target(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ORDDEFI_FEE_TARGET_BLOCKS", raising=False)
        assert Settings().fee_target_blocks == 6
        monkeypatch.setenv("ORDDEFI_FEE_TARGET_BLOCKS", "2")
        assert Settings().fee_target_blocks == 2
        monkeypatch.setenv("ORDDEFI_FEE_TARGET_BLOCKS", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_unknown_network(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ORDDEFI_NETWORK", "litecoin")
        with pytest.raises(ValidationError):
            Settings()

"""
Configuration for the OrdDeFi inscriber.

Settings holds process-level values read from the environment / .env file.
InscriberConfig holds engine parameters; its defaults mirror Bitcoin Core's
relay policy and can be overridden when a node runs non-default policy.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from ordcore.constants import (
    CARRIER_DATA,
    DEFAULT_POSTAGE,
    MAX_SCRIPT_ELEMENT_SIZE,
    MAX_STANDARD_TX_WEIGHT,
    STANDARD_DUST_LIMIT,
)
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ORDDEFI_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: Literal["mainnet", "testnet", "signet", "regtest"] = "mainnet"

    rpc_url: str = "http://127.0.0.1:8332"
    rpc_user: str = ""
    rpc_password: str = ""

    data_dir: Path = Path.home() / ".orddefi"

    # Confirmation target used when no fee rate is given
    fee_target_blocks: int = Field(default=6, ge=1, le=1008)

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()


class InscriberConfig(BaseModel):
    """Engine parameters for one inscription."""

    # Value carried by the reveal output
    postage: int = Field(default=DEFAULT_POSTAGE, gt=0)
    # Largest data push inside the envelope
    chunk_size: int = Field(default=MAX_SCRIPT_ELEMENT_SIZE, ge=1, le=MAX_SCRIPT_ELEMENT_SIZE)
    max_tx_weight: int = Field(default=MAX_STANDARD_TX_WEIGHT, gt=0)
    # Skip the standard weight check (non-standard transactions are not relayed)
    no_limit: bool = False
    # Minimum economical change; smaller remainders are folded into the fee
    dust_threshold: int = Field(default=STANDARD_DUST_LIMIT, ge=0)
    min_confirmations: int = Field(default=1, ge=0)
    carrier_data: bytes = CARRIER_DATA
    # Signed size may undershoot the estimate by this many vbytes per input
    size_tolerance_per_input: int = Field(default=1, ge=0)

"""
Request and result models for the inscribe operation.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class InscriptionRequest(BaseModel):
    """One instruction to inscribe."""

    model_config = ConfigDict(frozen=True)

    wallet: str = "default"
    fee_rate: PositiveInt = Field(description="Reveal fee rate in sat/vB")
    # Defaults to fee_rate
    commit_fee_rate: PositiveInt | None = None
    origin: str
    destination: str
    change: str
    dry_run: bool = False
    instruction: bytes
    # Overrides the configured postage
    postage: PositiveInt | None = None
    no_limit: bool = False

    @property
    def effective_commit_fee_rate(self) -> int:
        return self.commit_fee_rate or self.fee_rate


class InscriptionResult(BaseModel):
    """
    Outcome of an inscription.

    status is "dry_run" (nothing submitted), "broadcast" (both submitted) or
    "reveal_pending" (commit accepted, reveal rejected: reveal_hex_pending
    holds the transaction to resubmit).
    """

    status: str
    commit_txid: str
    reveal_txid: str
    inscription_id: str
    commit_hex: str
    reveal_hex: str
    reveal_hex_pending: str | None = None
    reveal_error: str | None = None
    commit_address: str
    postage: int
    commit_fee: int
    reveal_fee: int
    total_fees: int
    commit_vsize: int
    reveal_vsize: int
    commit_fee_rate: int
    reveal_fee_rate: int
    effective_commit_fee_rate: float

    def to_output(self) -> dict[str, Any]:
        """JSON document printed by the CLI."""
        output: dict[str, Any] = {
            "commit": self.commit_txid,
            "reveal": self.reveal_txid,
            "inscriptions": [
                {"id": self.inscription_id, "location": f"{self.reveal_txid}:0:0"}
            ],
            "total_fees": self.total_fees,
            "status": self.status,
            "commit_hex": self.commit_hex,
            "reveal_hex": self.reveal_hex,
        }
        if self.reveal_hex_pending is not None:
            output["reveal_hex_pending"] = self.reveal_hex_pending
            output["reveal_error"] = self.reveal_error
        return output

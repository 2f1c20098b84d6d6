"""
Instruction parsing, validation and the authentication rule.

An instruction document is a JSON object with a `type` tag and
variant-specific fields. Unknown fields are ignored. Parsed instructions are
immutable pydantic models.

Authentication rule: mint, addlp, rmlp, swap and direct transfers (no `to`)
act on the funds of the destination address, so the request's origin must
be that same address. Indirect transfers name their recipient explicitly and
are exempt.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Any, ClassVar, Literal, Union

from ordcore.address import AddressError, address_to_scriptpubkey
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from inscriber.errors import AuthenticationMismatch, SchemaError
from inscriber.models import InscriptionRequest

_DIGITS = re.compile(r"[0-9]+")


def _parse_amount(value: Any) -> int:
    # bool is an int subclass; JSON true/false is never an amount
    if isinstance(value, bool):
        raise ValueError("amount must be an unsigned integer")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("amount must not be negative")
        return value
    if isinstance(value, str) and _DIGITS.fullmatch(value):
        return int(value)
    raise ValueError("amount must be an unsigned integer")


Amount = Annotated[int, BeforeValidator(_parse_amount)]
AssetId = Annotated[str, StringConstraints(pattern=r"^[A-Za-z0-9]{1,32}$")]


class BaseInstruction(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str
    privileged: ClassVar[bool] = True

    def requires_authentication(self) -> bool:
        return self.privileged


class MintInstruction(BaseInstruction):
    type: Literal["mint"] = "mint"
    asset: AssetId
    amount: Amount


class PairInstruction(BaseInstruction):
    """Instruction acting on a pair of distinct assets."""

    # Names of the two asset fields
    pair_fields: ClassVar[tuple[str, str]]

    def pair_assets(self) -> tuple[str, str]:
        first, second = self.pair_fields
        return getattr(self, first), getattr(self, second)

    @model_validator(mode="after")
    def check_distinct_assets(self) -> PairInstruction:
        first, second = self.pair_assets()
        if first == second:
            raise ValueError(f"pair assets must differ, got {first} twice")
        return self


class AddLiquidityInstruction(PairInstruction):
    type: Literal["addlp"] = "addlp"
    pair_fields: ClassVar[tuple[str, str]] = ("asset_a", "asset_b")
    asset_a: AssetId
    asset_b: AssetId
    amount_a: Amount
    amount_b: Amount


class RemoveLiquidityInstruction(PairInstruction):
    type: Literal["rmlp"] = "rmlp"
    pair_fields: ClassVar[tuple[str, str]] = ("asset_a", "asset_b")
    asset_a: AssetId
    asset_b: AssetId
    liquidity: Amount


class SwapInstruction(PairInstruction):
    type: Literal["swap"] = "swap"
    pair_fields: ClassVar[tuple[str, str]] = ("asset_in", "asset_out")
    asset_in: AssetId
    asset_out: AssetId
    amount_in: Amount
    min_amount_out: Amount = 0


class TransferInstruction(BaseInstruction):
    type: Literal["transfer"] = "transfer"
    asset: AssetId
    amount: Amount
    to: str | None = None

    @field_validator("to")
    @classmethod
    def validate_recipient(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            address_to_scriptpubkey(v)
        except AddressError as e:
            raise ValueError(f"invalid recipient address: {e}") from e
        return v

    @property
    def is_direct(self) -> bool:
        return self.to is None

    def requires_authentication(self) -> bool:
        return self.is_direct


Instruction = Annotated[
    Union[
        MintInstruction,
        AddLiquidityInstruction,
        RemoveLiquidityInstruction,
        SwapInstruction,
        TransferInstruction,
    ],
    Field(discriminator="type"),
]

INSTRUCTION_TYPES: dict[str, type[BaseInstruction]] = {
    "mint": MintInstruction,
    "addlp": AddLiquidityInstruction,
    "rmlp": RemoveLiquidityInstruction,
    "swap": SwapInstruction,
    "transfer": TransferInstruction,
}

_instruction_adapter: TypeAdapter[Instruction] = TypeAdapter(Instruction)


def parse_instruction(raw: bytes | str | dict[str, Any]) -> BaseInstruction:
    """
    Parse and validate an instruction document.

    Raises:
        SchemaError: On malformed JSON, unknown type, missing or invalid fields
    """
    if isinstance(raw, dict):
        doc = raw
    else:
        try:
            doc = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SchemaError(f"Instruction is not valid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise SchemaError("Instruction must be a JSON object")

    if "type" not in doc:
        raise SchemaError("Missing required field 'type'", field="type")

    tag = doc["type"]
    if not isinstance(tag, str) or tag not in INSTRUCTION_TYPES:
        raise SchemaError(
            f"Unknown instruction type {tag!r}, expected one of {sorted(INSTRUCTION_TYPES)}",
            field="type",
        )

    try:
        return _instruction_adapter.validate_python(doc)
    except PydanticValidationError as e:
        error = e.errors()[0]
        # loc is (tag, field, ...) for discriminated unions
        loc = [str(part) for part in error["loc"] if part != tag]
        field = loc[0] if loc else None
        if error["type"] == "missing":
            message = f"Missing required field {field!r} for {tag}"
        else:
            message = f"Invalid {tag} instruction: {field or 'document'}: {error['msg']}"
        raise SchemaError(message, field=field) from e


def _normalize_address(address: str) -> str:
    # bech32 is case-insensitive; base58 is not
    if address.lower().startswith(("bc1", "tb1", "bcrt1")):
        return address.lower()
    return address


def authenticate(instruction: BaseInstruction, origin: str, destination: str) -> None:
    """
    Enforce origin == destination for privileged instructions.

    Raises:
        AuthenticationMismatch: If the rule applies and the addresses differ
    """
    if not instruction.requires_authentication():
        return
    if _normalize_address(origin) != _normalize_address(destination):
        raise AuthenticationMismatch(instruction.type, origin, destination)


def validate_request(request: InscriptionRequest) -> BaseInstruction:
    """Parse the request's instruction and apply the authentication rule."""
    instruction = parse_instruction(request.instruction)
    authenticate(instruction, request.origin, request.destination)
    return instruction

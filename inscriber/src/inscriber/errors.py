"""
Inscription error taxonomy.

Everything the engine raises derives from InscriptionError. Validation and
envelope errors are raised before any coin is touched or any network call is
made.
"""

from __future__ import annotations


class InscriptionError(Exception):
    """Base class for inscription failures."""

    retryable = False


class ValidationError(InscriptionError):
    """The instruction or request violates a rule; user must fix the input."""


class SchemaError(ValidationError):
    """Malformed instruction document."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthenticationMismatch(ValidationError):
    """Origin and destination differ for a privileged instruction."""

    def __init__(self, instruction_type: str, origin: str, destination: str):
        super().__init__(
            f"{instruction_type} requires origin == destination "
            f"(origin={origin}, destination={destination})"
        )
        self.instruction_type = instruction_type
        self.origin = origin
        self.destination = destination


class EnvelopeError(InscriptionError):
    """Envelope construction impossible."""


class PayloadTooLarge(EnvelopeError):
    def __init__(self, size: int, limit: int, what: str = "Envelope script", unit: str = "bytes"):
        super().__init__(f"{what} is {size} {unit}, limit is {limit} {unit}")
        self.size = size
        self.limit = limit


class EncodingError(EnvelopeError):
    """A field value cannot be represented in the binary payload."""


class InsufficientFunds(InscriptionError):
    def __init__(self, required: int, available: int):
        super().__init__(
            f"Wallet does not contain enough spendable funds: "
            f"need {required} sats, have {available} sats"
        )
        self.required = required
        self.available = available


class FeeMismatch(InscriptionError):
    """Signed transaction size drifted from the size used for fee estimation."""

    retryable = True

    def __init__(self, which: str, estimated_vsize: int, actual_vsize: int):
        super().__init__(
            f"{which} transaction vsize {actual_vsize} differs from estimate {estimated_vsize}"
        )
        self.which = which
        self.estimated_vsize = estimated_vsize
        self.actual_vsize = actual_vsize

    @property
    def correction(self) -> int:
        return self.actual_vsize - self.estimated_vsize


class SigningError(InscriptionError):
    """A required key could not be obtained or used."""


class BroadcastError(InscriptionError):
    """
    The node rejected a submission.

    Carries the raw transactions so the caller can retry by hand. commit_txid
    is set when the commit was accepted and only the reveal failed.
    """

    def __init__(
        self,
        message: str,
        commit_hex: str,
        reveal_hex: str,
        commit_txid: str | None = None,
    ):
        super().__init__(message)
        self.commit_hex = commit_hex
        self.reveal_hex = reveal_hex
        self.commit_txid = commit_txid

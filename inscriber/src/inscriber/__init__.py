"""
inscriber - OrdDeFi instruction inscription engine
"""

__version__ = "0.3.0"

from inscriber.engine import inscribe
from inscriber.errors import (
    AuthenticationMismatch,
    BroadcastError,
    EncodingError,
    EnvelopeError,
    FeeMismatch,
    InscriptionError,
    InsufficientFunds,
    PayloadTooLarge,
    SchemaError,
    SigningError,
    ValidationError,
)
from inscriber.models import InscriptionRequest, InscriptionResult

__all__ = [
    "AuthenticationMismatch",
    "BroadcastError",
    "EncodingError",
    "EnvelopeError",
    "FeeMismatch",
    "InscriptionError",
    "InscriptionRequest",
    "InscriptionResult",
    "InsufficientFunds",
    "PayloadTooLarge",
    "SchemaError",
    "SigningError",
    "ValidationError",
    "inscribe",
]

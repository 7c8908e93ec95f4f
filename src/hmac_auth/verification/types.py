"""
Type definitions for request validation

This module provides the closed set of validation result codes and the
immutable result returned by the validator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ValidationResultCode(str, Enum):
    """Outcome of a request validation"""
    OK = "ok"
    DATE_MISSING = "date_missing"
    DATE_INVALID = "date_invalid"
    USERNAME_MISSING = "username_missing"
    KEY_MISSING = "key_missing"
    BODY_HASH_MISSING = "body_hash_missing"
    BODY_HASH_MISMATCH = "body_hash_mismatch"
    AUTHORIZATION_MISSING = "authorization_missing"
    AUTHORIZATION_INVALID = "authorization_invalid"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validating one request

    Attributes:
        code: Result code
        message: Human-readable reason; None for OK
    """
    code: ValidationResultCode
    message: Optional[str] = None

    def __post_init__(self):
        """Validate result consistency"""
        if self.code == ValidationResultCode.OK and self.message is not None:
            raise ValueError("An OK result cannot carry a message")

    @property
    def is_valid(self) -> bool:
        return self.code == ValidationResultCode.OK

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            'valid': self.is_valid,
            'code': self.code.value,
            'message': self.message,
        }

    @classmethod
    def failure(cls, code: ValidationResultCode, message: str) -> 'ValidationResult':
        """Create a failed result."""
        if code == ValidationResultCode.OK:
            raise ValueError("A failure cannot use the OK code")
        return cls(code, message)


VALIDATION_OK = ValidationResult(ValidationResultCode.OK)

"""
HMAC request authentication - Request Validation Module

This module validates HMAC-signed requests and provides WSGI middleware that
rejects requests failing validation.
"""

from .types import (
    ValidationResultCode,
    ValidationResult,
    VALIDATION_OK,
)

from .validator import HmacValidator

from .middleware import (
    WsgiRequestView,
    HmacVerificationMiddleware,
    create_skip_patterns,
    ENVIRON_USERNAME_KEY,
    ENVIRON_RESULT_KEY,
)

__all__ = [
    # Types
    'ValidationResultCode',
    'ValidationResult',
    'VALIDATION_OK',
    # Validation
    'HmacValidator',
    # WSGI integration
    'WsgiRequestView',
    'HmacVerificationMiddleware',
    'create_skip_patterns',
    'ENVIRON_USERNAME_KEY',
    'ENVIRON_RESULT_KEY',
]

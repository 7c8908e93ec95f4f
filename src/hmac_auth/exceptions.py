"""
Exception classes for the HMAC request authentication library
"""

from typing import Optional, Dict, Any


class HmacAuthError(Exception):
    """Base exception for all HMAC authentication errors"""

    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (code: {self.error_code}, details: {self.details})"
        return f"{self.message} (code: {self.error_code})"


class HmacConfigurationError(HmacAuthError):
    """Exception raised when a configuration value is missing or unusable"""

    def __init__(self, message: str, error_code: str = "INVALID_CONFIG", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class ConfigurationParseError(HmacConfigurationError):
    """Exception raised when a configuration document cannot be read"""

    def __init__(self, message: str, error_code: str = "PARSE_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class ConfigurationNotFoundError(HmacConfigurationError):
    """Exception raised when a named configuration does not exist in a store"""

    def __init__(self, name: str):
        super().__init__(
            f"The configuration with name '{name}' was not found",
            "CONFIGURATION_NOT_FOUND",
            {"name": name}
        )
        self.name = name


class ConfigurationStoreClosedError(HmacAuthError):
    """Exception raised when a closed configuration store is used"""

    def __init__(self, message: str = "The configuration store has been closed"):
        super().__init__(message, "STORE_CLOSED")


class HmacKeyRepositoryError(HmacAuthError):
    """Exception raised when a key repository fails to provide a key"""

    def __init__(self, message: str, error_code: str = "KEY_REPOSITORY_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)

"""
HMAC configuration

This module defines the configuration that governs signing and validation,
its built-in defaults, and the mapping from HMAC algorithm names to hash
implementations.
"""

import copy
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional, Type

from cryptography.hazmat.primitives import hashes

# Name of the configuration used when no name is given
DEFAULT_CONFIGURATION_NAME = "default"

# Built-in defaults
DEFAULT_USER_HEADER_NAME = "X-Auth-User"
DEFAULT_AUTHORIZATION_SCHEME = "HMAC"
DEFAULT_SIGNATURE_DATA_SEPARATOR = "\n"
DEFAULT_CHARACTER_ENCODING = "utf-8"
DEFAULT_HMAC_ALGORITHM = "HMACSHA512"
DEFAULT_MAX_REQUEST_AGE = timedelta(minutes=5)

# Supported HMAC variants, keyed by normalized name
HMAC_ALGORITHMS: Dict[str, Type[hashes.HashAlgorithm]] = {
    'HMACMD5': hashes.MD5,
    'HMACSHA1': hashes.SHA1,
    'HMACSHA256': hashes.SHA256,
    'HMACSHA384': hashes.SHA384,
    'HMACSHA512': hashes.SHA512,
}


def normalize_algorithm_name(name: str) -> str:
    """
    Normalize an HMAC algorithm name.

    Case, dashes and underscores are ignored and the "HMAC" prefix is
    optional, so "hmac-sha256", "SHA256" and "HMACSHA256" are equal.

    Args:
        name: Algorithm name

    Returns:
        str: Normalized name such as "HMACSHA256"
    """
    normalized = name.strip().upper().replace('-', '').replace('_', '')
    if not normalized.startswith('HMAC'):
        normalized = 'HMAC' + normalized
    return normalized


def resolve_hash_algorithm(name: Optional[str]) -> Optional[Type[hashes.HashAlgorithm]]:
    """
    Resolve an HMAC algorithm name to its hash algorithm class.

    Args:
        name: Algorithm name

    Returns:
        Hash algorithm class, or None when the name is unknown or empty
    """
    if not name:
        return None
    return HMAC_ALGORITHMS.get(normalize_algorithm_name(name))


@dataclass
class HmacConfiguration:
    """
    Parameters governing the signing and validation of requests

    Attributes:
        name: Unique name of the configuration within a store
        user_header_name: Header carrying the username; None when no username is required
        authorization_scheme: Scheme preceding the signature in the Authorization header
        signature_data_separator: Separator placed between the signed fields
        character_encoding: Codec used to turn the key and representation into bytes
        hmac_algorithm: HMAC variant, e.g. "HMACSHA512"
        max_request_age: Maximum age of a request; None disables the date check
        sign_request_uri: Whether the absolute request URI is signed
        validate_content_md5: Whether the body is checked against Content-MD5
        headers: Additional header names whose values are signed
    """
    name: str = DEFAULT_CONFIGURATION_NAME
    user_header_name: Optional[str] = DEFAULT_USER_HEADER_NAME
    authorization_scheme: str = DEFAULT_AUTHORIZATION_SCHEME
    signature_data_separator: str = DEFAULT_SIGNATURE_DATA_SEPARATOR
    character_encoding: str = DEFAULT_CHARACTER_ENCODING
    hmac_algorithm: str = DEFAULT_HMAC_ALGORITHM
    max_request_age: Optional[timedelta] = DEFAULT_MAX_REQUEST_AGE
    sign_request_uri: bool = True
    validate_content_md5: bool = False
    headers: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate the configuration and normalize the header list"""
        if self.max_request_age is not None:
            if not isinstance(self.max_request_age, timedelta):
                raise TypeError("max_request_age must be a timedelta or None")
            if self.max_request_age < timedelta(0):
                raise ValueError("max_request_age cannot be negative")

        self.headers = normalize_header_list(self.headers)

    def clone(self) -> 'HmacConfiguration':
        """Create a deep copy that shares no mutable state with this instance."""
        return copy.deepcopy(self)


def normalize_header_list(headers: Optional[List[str]]) -> List[str]:
    """
    Trim header names, drop empty ones and remove case-insensitive duplicates.

    The first spelling of each name is kept, in the original order.
    """
    if not headers:
        return []

    if isinstance(headers, str):
        raise TypeError("headers must be a list of header names, not a string")

    result: List[str] = []
    seen = set()
    for name in headers:
        if name is None:
            continue
        trimmed = str(name).strip()
        if not trimmed or trimmed.lower() in seen:
            continue
        seen.add(trimmed.lower())
        result.append(trimmed)
    return result

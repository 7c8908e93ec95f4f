"""
HMAC request authentication - Request Signing Module

This module provides the request view types, header canonicalization, the
HMAC signer, key repositories and the requests integration.
"""

from .types import (
    HttpHeaders,
    RequestView,
    HmacRequest,
    SignatureData,
    AUTHORIZATION_HEADER,
    CONTENT_MD5_HEADER,
    CONTENT_TYPE_HEADER,
    DATE_HEADER,
    WWW_AUTHENTICATE_HEADER,
)

from .utils import (
    format_http_date,
    parse_http_date,
    normalize_header_name,
    normalize_whitespace,
)

from .canonical_message import (
    canonicalize_headers,
    build_representation,
)

from .hmac_signer import (
    HmacSigner,
    EMPTY_CONTENT_MD5,
    extract_signature_data,
    compute_signature,
)

from .key_repository import (
    KeyRepository,
    SingleKeyRepository,
    SingleUserKeyRepository,
    DictKeyRepository,
    KeyringKeyRepository,
)

from .integration import (
    HmacAuth,
    PreparedRequestView,
    create_signing_session,
)

# Public API exports
__all__ = [
    # Types
    'HttpHeaders',
    'RequestView',
    'HmacRequest',
    'SignatureData',
    'AUTHORIZATION_HEADER',
    'CONTENT_MD5_HEADER',
    'CONTENT_TYPE_HEADER',
    'DATE_HEADER',
    'WWW_AUTHENTICATE_HEADER',
    # Utilities
    'format_http_date',
    'parse_http_date',
    'normalize_header_name',
    'normalize_whitespace',
    # Canonicalization
    'canonicalize_headers',
    'build_representation',
    # Signing
    'HmacSigner',
    'EMPTY_CONTENT_MD5',
    'extract_signature_data',
    'compute_signature',
    # Key repositories
    'KeyRepository',
    'SingleKeyRepository',
    'SingleUserKeyRepository',
    'DictKeyRepository',
    'KeyringKeyRepository',
    # HTTP client integration
    'HmacAuth',
    'PreparedRequestView',
    'create_signing_session',
]

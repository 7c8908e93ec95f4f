"""
HMAC request authentication
Shared-secret request signing and validation with hot-reloadable configuration
"""

from .version import __version__
from .exceptions import (
    HmacAuthError,
    HmacConfigurationError,
    ConfigurationParseError,
    ConfigurationNotFoundError,
    ConfigurationStoreClosedError,
    HmacKeyRepositoryError,
)
from .config import (
    HmacConfiguration,
    HmacConfigurationStore,
    FileWatcher,
    FileWatcherEvent,
    FileWatcherEventKind,
    DEFAULT_CONFIGURATION_NAME,
    register_parser,
)
from .signing import (
    # Types
    HttpHeaders,
    RequestView,
    HmacRequest,
    SignatureData,
    # Canonicalization
    canonicalize_headers,
    build_representation,
    # Signing
    HmacSigner,
    extract_signature_data,
    compute_signature,
    # Utilities
    format_http_date,
    parse_http_date,
    # Key repositories
    KeyRepository,
    SingleKeyRepository,
    SingleUserKeyRepository,
    DictKeyRepository,
    KeyringKeyRepository,
    # HTTP Integration
    HmacAuth,
    PreparedRequestView,
    create_signing_session,
)
from .verification import (
    ValidationResultCode,
    ValidationResult,
    HmacValidator,
    WsgiRequestView,
    HmacVerificationMiddleware,
)

# Public API exports
__all__ = [
    '__version__',
    # Exceptions
    'HmacAuthError',
    'HmacConfigurationError',
    'ConfigurationParseError',
    'ConfigurationNotFoundError',
    'ConfigurationStoreClosedError',
    'HmacKeyRepositoryError',
    # Configuration
    'HmacConfiguration',
    'HmacConfigurationStore',
    'FileWatcher',
    'FileWatcherEvent',
    'FileWatcherEventKind',
    'DEFAULT_CONFIGURATION_NAME',
    'register_parser',
    # Signing
    'HttpHeaders',
    'RequestView',
    'HmacRequest',
    'SignatureData',
    'canonicalize_headers',
    'build_representation',
    'HmacSigner',
    'extract_signature_data',
    'compute_signature',
    'format_http_date',
    'parse_http_date',
    # Key repositories
    'KeyRepository',
    'SingleKeyRepository',
    'SingleUserKeyRepository',
    'DictKeyRepository',
    'KeyringKeyRepository',
    # HTTP Integration
    'HmacAuth',
    'PreparedRequestView',
    'create_signing_session',
    # Validation
    'ValidationResultCode',
    'ValidationResult',
    'HmacValidator',
    'WsgiRequestView',
    'HmacVerificationMiddleware',
]

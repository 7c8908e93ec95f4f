"""
Configuration management for HMAC request authentication

This module provides the HMAC configuration, parsers for JSON, XML and YAML
configuration documents, and a thread-safe, hot-reloadable store of named
configurations.
"""

from .hmac_configuration import (
    HmacConfiguration,
    HMAC_ALGORITHMS,
    DEFAULT_CONFIGURATION_NAME,
    DEFAULT_USER_HEADER_NAME,
    DEFAULT_AUTHORIZATION_SCHEME,
    DEFAULT_SIGNATURE_DATA_SEPARATOR,
    DEFAULT_CHARACTER_ENCODING,
    DEFAULT_HMAC_ALGORITHM,
    DEFAULT_MAX_REQUEST_AGE,
    normalize_algorithm_name,
    resolve_hash_algorithm,
)
from .parsers import (
    parse_json,
    parse_xml,
    parse_yaml,
    parse_configurations,
    parse_section,
    build_configuration,
    build_configurations,
    register_parser,
    get_parser,
    format_from_path,
)
from .file_watcher import (
    FileWatcher,
    FileWatcherEvent,
    FileWatcherEventKind,
)
from .store import HmacConfigurationStore

__all__ = [
    # Configuration
    'HmacConfiguration',
    'HMAC_ALGORITHMS',
    'DEFAULT_CONFIGURATION_NAME',
    'DEFAULT_USER_HEADER_NAME',
    'DEFAULT_AUTHORIZATION_SCHEME',
    'DEFAULT_SIGNATURE_DATA_SEPARATOR',
    'DEFAULT_CHARACTER_ENCODING',
    'DEFAULT_HMAC_ALGORITHM',
    'DEFAULT_MAX_REQUEST_AGE',
    'normalize_algorithm_name',
    'resolve_hash_algorithm',
    # Parsers
    'parse_json',
    'parse_xml',
    'parse_yaml',
    'parse_configurations',
    'parse_section',
    'build_configuration',
    'build_configurations',
    'register_parser',
    'get_parser',
    'format_from_path',
    # Watching and store
    'FileWatcher',
    'FileWatcherEvent',
    'FileWatcherEventKind',
    'HmacConfigurationStore',
]

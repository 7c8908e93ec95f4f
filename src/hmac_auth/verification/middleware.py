"""
WSGI integration for request validation

This module provides a request view over a WSGI environ and a middleware
that validates every request before it reaches the wrapped application.
Rejected requests receive a 401 response with a JSON error body and a
WWW-Authenticate header.
"""

import io
import json
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern
from urllib.parse import quote

from ..config.hmac_configuration import HmacConfiguration
from ..config.store import HmacConfigurationStore
from ..signing.key_repository import KeyRepository
from ..signing.types import CONTENT_MD5_HEADER, CONTENT_TYPE_HEADER, DATE_HEADER, HttpHeaders
from ..signing.utils import READ_CHUNK_SIZE, RequestContent, parse_http_date
from .types import ValidationResult
from .validator import HmacValidator

logger = logging.getLogger(__name__)

# Environ keys set for requests that passed validation
ENVIRON_USERNAME_KEY = 'hmac_auth.username'
ENVIRON_RESULT_KEY = 'hmac_auth.result'

# Characters requests leaves unescaped in a path (see requests.utils.requote_uri)
_PATH_SAFE_CHARACTERS = "!$&'()*+,/:;=@[]~"

# Environ keys of headers that WSGI does not prefix with HTTP_
_UNPREFIXED_HEADERS = {
    'CONTENT_TYPE': 'Content-Type',
    'CONTENT_LENGTH': 'Content-Length',
}

WsgiApplication = Callable[[Dict[str, Any], Callable], Iterable[bytes]]


class WsgiRequestView:
    """
    Request view over a WSGI environ

    The body is read into memory once and environ['wsgi.input'] is replaced
    by an in-memory copy, so the application can still read it.
    """

    def __init__(self, environ: Dict[str, Any]):
        if environ is None:
            raise TypeError("The WSGI environ cannot be None")

        self.environ = environ
        self.method: str = environ.get('REQUEST_METHOD', 'GET')
        self.url: str = _request_url(environ)
        self.headers = _environ_headers(environ)
        self.date: Optional[datetime] = parse_http_date(self.headers.get(DATE_HEADER))
        self.content_type: Optional[str] = self.headers.get(CONTENT_TYPE_HEADER)
        self.content_md5: Optional[str] = self.headers.get(CONTENT_MD5_HEADER)
        self._content: Optional[io.BytesIO] = None

    @property
    def content(self) -> RequestContent:
        if self._content is None:
            self._content = _buffer_body(self.environ)
        return self._content


def _request_url(environ: Dict[str, Any]) -> str:
    """
    Rebuild the absolute URL the client signed.

    The raw request target is used when the server provides it (RAW_URI from
    gunicorn, REQUEST_URI from uWSGI and others). Otherwise the decoded
    path is quoted again the way requests quotes outgoing URLs, which only
    differs from the original when the client escaped reserved characters.
    """
    url = _host_url(environ)

    raw_uri = environ.get('RAW_URI') or environ.get('REQUEST_URI')
    if raw_uri and raw_uri.startswith('/'):
        return url + raw_uri

    path = environ.get('SCRIPT_NAME', '') + environ.get('PATH_INFO', '')
    try:
        path_bytes = path.encode('latin-1')
    except UnicodeEncodeError:
        path_bytes = path.encode('utf-8')
    url += quote(path_bytes, safe=_PATH_SAFE_CHARACTERS) or '/'

    query = environ.get('QUERY_STRING')
    if query:
        url += '?' + query
    return url


def _host_url(environ: Dict[str, Any]) -> str:
    scheme = environ.get('wsgi.url_scheme', 'http')
    host = environ.get('HTTP_HOST')
    if host:
        return f"{scheme}://{host}"

    host = environ.get('SERVER_NAME', '')
    port = str(environ.get('SERVER_PORT', ''))
    if port and (scheme, port) not in (('http', '80'), ('https', '443')):
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


def _environ_headers(environ: Dict[str, Any]) -> HttpHeaders:
    headers = HttpHeaders()
    for key, value in environ.items():
        if key.startswith('HTTP_'):
            name = key[5:].replace('_', '-').title()
        elif key in _UNPREFIXED_HEADERS:
            name = _UNPREFIXED_HEADERS[key]
            if not value:
                continue
        else:
            continue
        headers.add(name, value)
    return headers


def _buffer_body(environ: Dict[str, Any]) -> io.BytesIO:
    stream = environ.get('wsgi.input')
    try:
        remaining = int(environ.get('CONTENT_LENGTH') or 0)
    except ValueError:
        remaining = 0

    buffer = io.BytesIO()
    while stream is not None and remaining > 0:
        chunk = stream.read(min(remaining, READ_CHUNK_SIZE))
        if not chunk:
            break
        buffer.write(chunk)
        remaining -= len(chunk)

    buffer.seek(0)
    environ['wsgi.input'] = buffer
    return buffer


class HmacVerificationMiddleware:
    """
    WSGI middleware rejecting requests that fail HMAC validation.

    Example:
        >>> app = HmacVerificationMiddleware(
        ...     app,
        ...     DictKeyRepository({"alice": "secret"}),
        ...     store=store,
        ...     www_authenticate='HMAC realm="api"'
        ... )
    """

    def __init__(
        self,
        app: WsgiApplication,
        key_repository: KeyRepository,
        configuration: Optional[HmacConfiguration] = None,
        store: Optional[HmacConfigurationStore] = None,
        configuration_name: Optional[str] = None,
        www_authenticate: Optional[str] = None,
        skip_patterns: Optional[List[str]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the middleware.

        Args:
            app: Wrapped WSGI application
            key_repository: Repository resolving the key of a username
            configuration: Fixed configuration; mutually exclusive with store
            store: Store consulted for every request, so reloads take effect
            configuration_name: Name of the store configuration; the default when None
            www_authenticate: WWW-Authenticate value of rejections; the
                authorization scheme when None
            skip_patterns: Regular expressions of paths that are not validated
            clock: Returns the current time for date checks
        """
        if app is None:
            raise TypeError("The WSGI application cannot be None")
        if key_repository is None:
            raise TypeError("The key repository cannot be None")
        if (configuration is None) == (store is None):
            raise ValueError("Exactly one of configuration and store must be given")

        self.app = app
        self.key_repository = key_repository
        self.configuration = configuration.clone() if configuration is not None else None
        self.store = store
        self.configuration_name = configuration_name
        self.www_authenticate = www_authenticate
        self.skip_patterns: List[Pattern] = create_skip_patterns(skip_patterns or [])
        self.clock = clock

    def get_configuration(self) -> HmacConfiguration:
        """Get the configuration used for the next request."""
        if self.store is not None:
            return self.store.get(self.configuration_name)
        return self.configuration

    def __call__(self, environ: Dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        path = environ.get('PATH_INFO', '')
        if any(pattern.search(path) for pattern in self.skip_patterns):
            return self.app(environ, start_response)

        configuration = self.get_configuration()
        request = WsgiRequestView(environ)
        validator = HmacValidator.create(configuration, self.key_repository, self.clock)
        result = validator.validate(request)

        if not result.is_valid:
            logger.warning(f"Rejected {request.method} {request.url}: {result.code.value}: {result.message}")
            return self._reject(result, configuration, start_response)

        if configuration.user_header_name:
            environ[ENVIRON_USERNAME_KEY] = ','.join(request.headers.get_all(configuration.user_header_name)) or None
        environ[ENVIRON_RESULT_KEY] = result
        request.content.seek(0)

        return self.app(environ, start_response)

    def _reject(
        self,
        result: ValidationResult,
        configuration: HmacConfiguration,
        start_response: Callable
    ) -> Iterable[bytes]:
        body = json.dumps({
            'error': 'unauthorized',
            'code': result.code.value,
            'message': result.message,
        }).encode('utf-8')

        headers = [
            ('Content-Type', 'application/json'),
            ('Content-Length', str(len(body))),
        ]
        HmacValidator.add_www_authenticate_header(
            headers,
            self.www_authenticate or configuration.authorization_scheme
        )

        start_response('401 Unauthorized', headers)
        return [body]


def create_skip_patterns(patterns: List[str]) -> List[Pattern]:
    """
    Create compiled regex patterns for skipping validation

    Args:
        patterns: List of regex pattern strings

    Returns:
        List[Pattern]: Compiled regex patterns
    """
    return [re.compile(pattern) for pattern in patterns]

"""
Type definitions for request signing functionality

This module provides the header collection, the request view protocol that
every signable request type satisfies, and the data classes exchanged between
the signer and the validator.
"""

from datetime import datetime
from typing import (
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)
from dataclasses import dataclass, field

from .utils import RequestContent, normalize_header_name, parse_http_date

# Header names
AUTHORIZATION_HEADER = "Authorization"
CONTENT_MD5_HEADER = "Content-MD5"
CONTENT_TYPE_HEADER = "Content-Type"
DATE_HEADER = "Date"
WWW_AUTHENTICATE_HEADER = "WWW-Authenticate"

HeaderValue = Union[str, Sequence[str], None]
HeaderSource = Union['HttpHeaders', Mapping[str, HeaderValue], Iterable[Tuple[str, Optional[str]]]]


class HttpHeaders:
    """
    Ordered, case-insensitive, multi-valued HTTP header collection.

    Names keep the spelling of their first occurrence. A name can be present
    without any value (``add(name, None)``), which is different from the name
    being absent.
    """

    def __init__(self, headers: Optional[HeaderSource] = None):
        self._entries: Dict[str, Tuple[str, Optional[List[str]]]] = {}
        if headers is not None:
            self.extend(headers)

    def add(self, name: str, value: Optional[str]) -> None:
        """
        Add a value for a header, keeping any existing values.

        Args:
            name: Header name
            value: Header value, or None to register the name without values
        """
        if not isinstance(name, str):
            raise TypeError("Header name must be a string")

        key = normalize_header_name(name)
        existing = self._entries.get(key)

        if value is None:
            if existing is None:
                self._entries[key] = (name, None)
            return

        if existing is None or existing[1] is None:
            original_name = existing[0] if existing else name
            self._entries[key] = (original_name, [str(value)])
        else:
            existing[1].append(str(value))

    def set(self, name: str, value: HeaderValue) -> None:
        """
        Replace all values of a header.

        Args:
            name: Header name
            value: A value, a sequence of values, or None
        """
        self.remove(name)
        self._add_values(name, value)

    def extend(self, headers: HeaderSource) -> None:
        """
        Add all headers from another collection, mapping or iterable of pairs.

        Args:
            headers: Headers to add
        """
        if isinstance(headers, HttpHeaders):
            for name, values in headers.items():
                self._add_values(name, values)
        elif isinstance(headers, Mapping) or hasattr(headers, 'items'):
            for name, value in headers.items():
                self._add_values(name, value)
        else:
            for name, value in headers:
                self.add(name, value)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value of a header."""
        entry = self._entries.get(normalize_header_name(name))
        if entry is None or not entry[1]:
            return default
        return entry[1][0]

    def get_all(self, name: str) -> List[str]:
        """Get all values of a header, in the order they were added."""
        entry = self._entries.get(normalize_header_name(name))
        if entry is None or entry[1] is None:
            return []
        return list(entry[1])

    def remove(self, name: str) -> None:
        """Remove a header and all of its values."""
        self._entries.pop(normalize_header_name(name), None)

    def items(self) -> Iterator[Tuple[str, Optional[List[str]]]]:
        """Iterate over (name, values) pairs; values is None for value-less headers."""
        for original_name, values in self._entries.values():
            yield original_name, list(values) if values is not None else None

    def copy(self) -> 'HttpHeaders':
        """Create an independent copy of the collection."""
        return HttpHeaders(self)

    def to_dict(self) -> Dict[str, str]:
        """Flatten to a plain dictionary, joining multiple values with commas."""
        return {
            name: ','.join(values) if values else ''
            for name, values in self.items()
        }

    def _add_values(self, name: str, value: HeaderValue) -> None:
        if value is None or isinstance(value, (str, bytes)):
            self.add(name, value.decode('latin-1') if isinstance(value, bytes) else value)
            return
        values = list(value)
        if not values:
            self.add(name, None)
        for item in values:
            self.add(name, item)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_header_name(name) in self._entries

    def __iter__(self) -> Iterator[str]:
        return (original_name for original_name, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HttpHeaders):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"HttpHeaders({list(self.items())!r})"


@runtime_checkable
class RequestView(Protocol):
    """
    Read-only view of an HTTP request as needed for signing and validation.

    Any request type exposing these attributes can be signed or validated:
    inbound server requests and outbound client requests alike.
    """

    method: str
    url: str
    headers: HttpHeaders
    date: Optional[datetime]
    content: Union[RequestContent, str]
    content_type: Optional[str]
    content_md5: Optional[str]


@dataclass
class HmacRequest:
    """
    In-memory HTTP request implementing the request view

    Attributes:
        method: HTTP method (GET, POST, etc.)
        url: Absolute request URL
        headers: Request headers; a mapping or iterable of pairs is converted
        content: Request body as bytes, a binary stream or a string; strings are
            encoded with the configured character encoding when hashed
        date: Request timestamp; taken from the Date header when omitted
        content_type: Body media type; taken from the Content-Type header when omitted
        content_md5: Base64 body hash; taken from the Content-MD5 header when omitted
    """
    method: str
    url: str
    headers: HttpHeaders = field(default_factory=HttpHeaders)
    content: Union[RequestContent, str] = None
    date: Optional[datetime] = None
    content_type: Optional[str] = None
    content_md5: Optional[str] = None

    def __post_init__(self):
        """Validate request and derive header-backed fields"""
        if not self.method:
            raise ValueError("Request method cannot be empty")

        if not self.url:
            raise ValueError("Request URL cannot be empty")

        if not isinstance(self.headers, HttpHeaders):
            self.headers = HttpHeaders(self.headers)

        if self.date is None:
            self.date = parse_http_date(self.headers.get(DATE_HEADER))

        if self.content_type is None:
            self.content_type = self.headers.get(CONTENT_TYPE_HEADER)

        if self.content_md5 is None:
            self.content_md5 = self.headers.get(CONTENT_MD5_HEADER)


@dataclass
class SignatureData:
    """
    Request data that goes into a signature, before it is hashed

    Attributes:
        key: Shared secret resolved for the user
        http_method: Uppercase HTTP method
        content_md5: Base64 MD5 hash of the body
        content_type: Body media type
        date: Request date in HTTP date format
        username: Username taken from the configured user header
        request_uri: Absolute request URI
        headers: Additional headers selected by the configuration
    """
    key: Optional[str] = None
    http_method: Optional[str] = None
    content_md5: Optional[str] = None
    content_type: Optional[str] = None
    date: Optional[str] = None
    username: Optional[str] = None
    request_uri: Optional[str] = None
    headers: Optional[HttpHeaders] = None

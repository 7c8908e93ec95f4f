"""
Utility functions for request signing

This module provides the helpers shared by the signer and the validator:
HTTP date formatting and parsing, header name and value normalization,
and chunked reading of request bodies.
"""

import re
from datetime import datetime, timezone
from typing import BinaryIO, Iterator, Optional, Union

# English names are used regardless of the process locale
_WEEKDAYS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')
_MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
           'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

_HTTP_DATE_PATTERN = re.compile(
    r'^(?P<weekday>[A-Za-z]{3}), (?P<day>\d{2}) (?P<month>[A-Za-z]{3}) (?P<year>\d{4}) '
    r'(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2}) GMT$'
)

READ_CHUNK_SIZE = 64 * 1024

RequestContent = Union[bytes, bytearray, BinaryIO, None]


def to_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive datetimes are taken to be in UTC already.

    Args:
        value: Datetime to normalize

    Returns:
        datetime: Aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_http_date(value: datetime) -> str:
    """
    Format a datetime as an RFC 1123 HTTP date (e.g. "Wed, 30 Dec 2015 12:30:45 GMT").

    Args:
        value: Datetime to format; naive values are taken to be UTC

    Returns:
        str: Formatted date string
    """
    utc = to_utc(value)
    return (
        f"{_WEEKDAYS[utc.weekday()]}, {utc.day:02d} {_MONTHS[utc.month - 1]} "
        f"{utc.year:04d} {utc.hour:02d}:{utc.minute:02d}:{utc.second:02d} GMT"
    )


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 1123 HTTP date in the exact format produced by format_http_date.

    Args:
        value: Header value to parse

    Returns:
        datetime or None: Aware UTC datetime, or None when the value is
        missing or does not match the format
    """
    if not value:
        return None

    match = _HTTP_DATE_PATTERN.match(value.strip())
    if not match:
        return None

    month_name = match.group('month').capitalize()
    weekday_name = match.group('weekday').capitalize()
    if month_name not in _MONTHS or weekday_name not in _WEEKDAYS:
        return None

    try:
        parsed = datetime(
            int(match.group('year')),
            _MONTHS.index(month_name) + 1,
            int(match.group('day')),
            int(match.group('hour')),
            int(match.group('minute')),
            int(match.group('second')),
            tzinfo=timezone.utc
        )
    except ValueError:
        return None

    if _WEEKDAYS[parsed.weekday()] != weekday_name:
        return None

    return parsed


def normalize_header_name(name: str) -> str:
    """
    Normalize header name to lowercase for consistent processing.

    Args:
        name: Header name to normalize

    Returns:
        str: Trimmed, lowercase header name
    """
    return name.strip().lower()


def normalize_whitespace(value: str) -> str:
    """
    Trim a header value and reduce every whitespace sequence to a single space.

    Args:
        value: Header value to normalize

    Returns:
        str: Normalized value
    """
    return ' '.join(value.split())


def is_stream(content: RequestContent) -> bool:
    """Check whether request content is a readable binary stream."""
    return content is not None and hasattr(content, 'read')


def iter_content(content: RequestContent, chunk_size: int = READ_CHUNK_SIZE) -> Iterator[bytes]:
    """
    Iterate over request content in chunks.

    Seekable streams are rewound before and after reading, so the body can
    be read again by the application. Non-seekable streams are read from
    their current position.

    Args:
        content: Bytes, a binary stream or None
        chunk_size: Size of the chunks read from streams

    Yields:
        bytes: Content chunks
    """
    if content is None:
        return

    if isinstance(content, (bytes, bytearray, memoryview)):
        if content:
            yield bytes(content)
        return

    if not is_stream(content):
        raise TypeError(f"Content must be bytes or a binary stream, got {type(content)}")

    seekable = _is_seekable(content)
    if seekable:
        content.seek(0)

    try:
        while True:
            chunk = content.read(chunk_size)
            if not chunk:
                break
            if isinstance(chunk, str):
                raise TypeError("Content streams must be opened in binary mode")
            yield chunk
    finally:
        if seekable:
            content.seek(0)


def _is_seekable(stream) -> bool:
    seekable = getattr(stream, 'seekable', None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except ValueError:
        # Closed streams raise on seekable()
        return False

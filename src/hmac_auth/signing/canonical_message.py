"""
Canonical message construction for HMAC request signatures

This module turns a header collection into a canonical string that does not
depend on header order, name casing or whitespace, and joins it with the
other signed fields into the representation that is fed to the HMAC.
"""

from typing import Dict, List, Optional, Sequence

from .types import HeaderSource, HttpHeaders, SignatureData
from .utils import normalize_header_name, normalize_whitespace


def canonicalize_headers(headers: HeaderSource, separator: Optional[str] = "\n") -> str:
    """
    Build the canonical string for a set of headers.

    Canonicalization is done by:
    - trimming header names and converting them to lowercase;
    - reducing whitespace sequences in values to a single space;
    - merging duplicate headers into one comma-separated value list,
      keeping the order in which the values were encountered;
    - joining each name and its values with a colon;
    - sorting the resulting strings ordinally;
    - joining them with the separator.

    Args:
        headers: Headers as an HttpHeaders, a mapping or an iterable of pairs
        separator: Separator placed between the canonical headers

    Returns:
        str: Canonical header string

    Raises:
        TypeError: If headers is None
    """
    if headers is None:
        raise TypeError("The header collection cannot be None")

    if not isinstance(headers, HttpHeaders):
        headers = HttpHeaders(headers)

    merged: Dict[str, Optional[List[str]]] = {}
    for name, values in headers.items():
        canonical_name = normalize_header_name(name)
        current = merged.get(canonical_name)
        if values is None:
            merged.setdefault(canonical_name, None)
            continue
        normalized = [normalize_whitespace(value) for value in values]
        merged[canonical_name] = (current or []) + normalized

    lines = [
        f"{name}:{','.join(values) if values is not None else ''}"
        for name, values in merged.items()
    ]
    # Sorting code points gives the same order as an ordinal byte comparison
    lines.sort()

    return (separator or '').join(lines)


def build_representation(signature_data: SignatureData, separator: Optional[str], sign_request_uri: bool) -> str:
    """
    Build the string that is signed for a request.

    The fields are joined in a fixed order: method, content MD5, content
    type, date, username, canonical headers and, when enabled, the request
    URI. Missing fields are represented by empty strings.

    Args:
        signature_data: Extracted request data
        separator: Separator placed between the fields
        sign_request_uri: Whether the request URI is part of the signature

    Returns:
        str: Representation string
    """
    separator = separator or ''

    header_string = None
    if signature_data.headers is not None:
        header_string = canonicalize_headers(signature_data.headers, separator)

    fields: Sequence[Optional[str]] = (
        signature_data.http_method,
        signature_data.content_md5,
        signature_data.content_type,
        signature_data.date,
        signature_data.username,
        header_string,
        signature_data.request_uri if sign_request_uri else None,
    )

    return separator.join(value if value is not None else '' for value in fields)

"""
HMAC request signer

This module extracts the signed fields from a request, computes HMAC
signatures and MD5 content hashes, and builds and parses Authorization
header values. Hash objects are created for every call, so one signer can
be shared between threads.
"""

import base64
import codecs
import hashlib
import logging
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives import hmac

from ..config.hmac_configuration import HmacConfiguration, resolve_hash_algorithm
from ..exceptions import HmacConfigurationError, HmacKeyRepositoryError
from .canonical_message import build_representation
from .key_repository import KeyRepository
from .types import AUTHORIZATION_HEADER, HttpHeaders, RequestView, SignatureData
from .utils import RequestContent, format_http_date, iter_content

logger = logging.getLogger(__name__)

HashableContent = Union[RequestContent, str]

# Base64 MD5 of an empty body
EMPTY_CONTENT_MD5 = base64.b64encode(hashlib.md5(b"").digest()).decode("ascii")


class HmacSigner:
    """
    Signer producing HMAC signatures for requests under one configuration.

    The configuration is copied on construction; later changes to the
    caller's instance do not affect the signer.
    """

    def __init__(self, configuration: HmacConfiguration, key_repository: KeyRepository):
        """
        Initialize the signer.

        Args:
            configuration: Configuration governing the signature
            key_repository: Repository resolving the key of a username

        Raises:
            TypeError: If an argument is None
        """
        if configuration is None:
            raise TypeError("The configuration cannot be None")
        if key_repository is None:
            raise TypeError("The key repository cannot be None")

        self.configuration = configuration.clone()
        self.key_repository = key_repository

    def extract_signature_data(self, request: RequestView) -> SignatureData:
        """
        Extract the fields that go into the signature of a request.

        Args:
            request: Request to extract from

        Returns:
            SignatureData: Extracted, not yet hashed data

        Raises:
            TypeError: If request is None
            HmacKeyRepositoryError: If the key repository fails
        """
        if request is None:
            raise TypeError("The request cannot be None")

        configuration = self.configuration
        headers = request.headers

        username = None
        if configuration.user_header_name:
            # Repeated user headers count as one comma-joined value
            values = headers.get_all(configuration.user_header_name)
            username = ','.join(values) if values else None

        try:
            key = self.key_repository.get_key(username)
        except Exception as e:
            raise HmacKeyRepositoryError(
                f"Failed to retrieve the key for user '{username}'",
                details={"username": username, "repository": type(self.key_repository).__name__}
            ) from e

        selected_headers = None
        if configuration.headers:
            selected_headers = HttpHeaders()
            for name in configuration.headers:
                if name in headers:
                    selected_headers.set(name, headers.get_all(name) or None)

        return SignatureData(
            key=key,
            http_method=request.method.upper() if request.method else None,
            content_md5=request.content_md5,
            content_type=request.content_type,
            date=format_http_date(request.date) if request.date is not None else None,
            username=username,
            request_uri=request.url if configuration.sign_request_uri else None,
            headers=selected_headers,
        )

    def compute_signature(self, signature_data: SignatureData) -> str:
        """
        Compute the base64 HMAC signature of extracted request data.

        Args:
            signature_data: Data returned by extract_signature_data

        Returns:
            str: Base64-encoded signature

        Raises:
            TypeError: If signature_data is None
            ValueError: If the key is missing or empty
            HmacConfigurationError: If the encoding or algorithm is unusable
        """
        return _compute_signature(signature_data, self.configuration)

    def compute_content_hash(self, content: HashableContent) -> bytes:
        """
        Compute the MD5 hash of a request body.

        Strings are encoded with the configured character encoding. Seekable
        streams are hashed from the start and rewound afterwards.

        Args:
            content: Bytes, string, binary stream or None

        Returns:
            bytes: Raw MD5 digest
        """
        if isinstance(content, str):
            content = content.encode(_resolve_encoding(self.configuration))

        md5 = hashlib.md5()
        for chunk in iter_content(content):
            md5.update(chunk)
        return md5.digest()

    def compute_base64_content_hash(self, content: HashableContent) -> str:
        """Compute the base64-encoded MD5 hash of a request body."""
        return base64.b64encode(self.compute_content_hash(content)).decode('ascii')

    @staticmethod
    def build_authorization_value(scheme: str, signature: str) -> str:
        """
        Format an Authorization header value.

        Args:
            scheme: Authorization scheme
            signature: Base64 signature

        Returns:
            str: "{scheme} {signature}"
        """
        return f"{scheme} {signature}"

    @staticmethod
    def parse_authorization_value(value: Optional[str]) -> Optional[Tuple[str, str]]:
        """
        Split an Authorization header value into scheme and token.

        Args:
            value: Header value

        Returns:
            tuple or None: (scheme, token), or None when either part is missing
        """
        if not value:
            return None

        scheme, _, token = value.strip().partition(' ')
        token = token.strip()
        if not scheme or not token:
            return None
        return scheme, token

    def add_authorization_header(self, headers: HttpHeaders, signature: str) -> None:
        """
        Set the Authorization header using the configured scheme.

        Args:
            headers: Headers to modify
            signature: Base64 signature

        Raises:
            HmacConfigurationError: If no authorization scheme is configured
        """
        if headers is None:
            raise TypeError("The headers cannot be None")
        if not signature:
            raise ValueError("The signature cannot be empty")

        scheme = self.configuration.authorization_scheme
        if not scheme:
            raise HmacConfigurationError("The authorization scheme cannot be empty")

        headers.set(AUTHORIZATION_HEADER, self.build_authorization_value(scheme, signature))

    def sign(self, request: RequestView) -> str:
        """Extract the signature data of a request and compute its signature."""
        return self.compute_signature(self.extract_signature_data(request))


def extract_signature_data(
    request: RequestView,
    configuration: HmacConfiguration,
    key_repository: KeyRepository
) -> SignatureData:
    """
    Convenience function to extract signature data without keeping a signer.

    Args:
        request: Request to extract from
        configuration: Configuration governing the signature
        key_repository: Repository resolving the key of a username

    Returns:
        SignatureData: Extracted data
    """
    return HmacSigner(configuration, key_repository).extract_signature_data(request)


def compute_signature(signature_data: SignatureData, configuration: HmacConfiguration) -> str:
    """
    Convenience function to compute a signature from extracted data.

    Args:
        signature_data: Extracted request data carrying the key
        configuration: Configuration governing the signature

    Returns:
        str: Base64-encoded signature
    """
    if configuration is None:
        raise TypeError("The configuration cannot be None")
    return _compute_signature(signature_data, configuration)


def _compute_signature(signature_data: SignatureData, configuration: HmacConfiguration) -> str:
    if signature_data is None:
        raise TypeError("The signature data cannot be None")
    if not signature_data.key:
        raise ValueError("The key of the signature data cannot be empty")

    encoding = _resolve_encoding(configuration)
    algorithm = resolve_hash_algorithm(configuration.hmac_algorithm)
    if algorithm is None:
        raise HmacConfigurationError(
            f"The HMAC algorithm '{configuration.hmac_algorithm}' is not supported",
            details={"hmac_algorithm": configuration.hmac_algorithm}
        )

    representation = build_representation(
        signature_data,
        configuration.signature_data_separator,
        configuration.sign_request_uri
    )

    mac = hmac.HMAC(signature_data.key.encode(encoding), algorithm())
    mac.update(representation.encode(encoding))
    signature = base64.b64encode(mac.finalize()).decode('ascii')

    logger.debug(f"Computed {configuration.hmac_algorithm} signature for {signature_data.http_method} {signature_data.request_uri}")
    return signature


def _resolve_encoding(configuration: HmacConfiguration) -> str:
    encoding = configuration.character_encoding
    if not encoding:
        raise HmacConfigurationError("The character encoding cannot be empty")
    try:
        return codecs.lookup(encoding).name
    except LookupError as e:
        raise HmacConfigurationError(
            f"The character encoding '{encoding}' is not supported",
            details={"character_encoding": encoding}
        ) from e

"""
HMAC request validator

This module checks inbound requests against a configuration. The checks run
in a fixed order and the first failing check decides the result:

1. request date present and not older than max_request_age
2. username present when a user header is configured
3. key resolved for the username
4. body matches Content-MD5 when content validation is enabled
5. Authorization header present and using the configured scheme
6. signature in the Authorization header matches the recomputed one

A request that is invalid is an expected outcome and is reported through
ValidationResult; exceptions are only raised for unusable configurations,
failing key repositories and invalid arguments.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Callable, List, MutableMapping, Optional, Tuple, Union

from ..config.hmac_configuration import HmacConfiguration
from ..exceptions import HmacConfigurationError
from ..signing.hmac_signer import EMPTY_CONTENT_MD5, HashableContent, HmacSigner
from ..signing.key_repository import KeyRepository
from ..signing.types import (
    AUTHORIZATION_HEADER,
    WWW_AUTHENTICATE_HEADER,
    HttpHeaders,
    RequestView,
    SignatureData,
)
from ..signing.utils import to_utc
from .types import VALIDATION_OK, ValidationResult, ValidationResultCode

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ResponseHeaders = Union[HttpHeaders, MutableMapping[str, str], List[Tuple[str, str]]]


class HmacValidator:
    """
    Validator of HMAC-signed requests under one configuration.

    The validator is stateless between calls and can be shared between
    threads.
    """

    def __init__(self, configuration: HmacConfiguration, signer: HmacSigner, clock: Optional[Clock] = None):
        """
        Initialize the validator.

        Args:
            configuration: Configuration the requests must satisfy
            signer: Signer built with the same configuration
            clock: Returns the current time; defaults to the system UTC clock

        Raises:
            TypeError: If configuration or signer is None
            ValueError: If the signer uses a different configuration
        """
        if configuration is None:
            raise TypeError("The configuration cannot be None")
        if signer is None:
            raise TypeError("The signer cannot be None")
        if signer.configuration != configuration:
            raise ValueError("The signer must use the same configuration as the validator")

        self.configuration = configuration.clone()
        self.signer = signer
        self.clock = clock or _utc_now

    @classmethod
    def create(
        cls,
        configuration: HmacConfiguration,
        key_repository: KeyRepository,
        clock: Optional[Clock] = None
    ) -> 'HmacValidator':
        """Create a validator together with its signer."""
        return cls(configuration, HmacSigner(configuration, key_repository), clock)

    def validate(self, request: RequestView) -> ValidationResult:
        """
        Validate a request.

        Args:
            request: Inbound request

        Returns:
            ValidationResult: OK, or the code of the first failing check

        Raises:
            HmacConfigurationError: If no authorization scheme is configured
                or the encoding or algorithm is unusable
            HmacKeyRepositoryError: If the key repository fails
        """
        if request is None:
            raise TypeError("The request cannot be None")

        configuration = self.configuration
        scheme = configuration.authorization_scheme
        if not scheme:
            raise HmacConfigurationError("The authorization scheme cannot be empty")

        signature_data = self.signer.extract_signature_data(request)

        if configuration.max_request_age is not None:
            if request.date is None:
                return self._fail(ValidationResultCode.DATE_MISSING, "The request date was not found")
            if not self.is_valid_request_date(request.date):
                return self._fail(ValidationResultCode.DATE_INVALID, "The request date is older than the maximum request age")

        if configuration.user_header_name and not signature_data.username:
            return self._fail(
                ValidationResultCode.USERNAME_MISSING,
                f"The username header '{configuration.user_header_name}' was not found"
            )

        if not signature_data.key:
            return self._fail(ValidationResultCode.KEY_MISSING, "No key was found for the request")

        if configuration.validate_content_md5 and not self.is_valid_content_md5(request.content_md5, request.content):
            if not request.content_md5:
                return self._fail(ValidationResultCode.BODY_HASH_MISSING, "The Content-MD5 header was not found")
            return self._fail(ValidationResultCode.BODY_HASH_MISMATCH, "The Content-MD5 header does not match the body")

        authorization = request.headers.get(AUTHORIZATION_HEADER)
        if not authorization or not authorization.strip():
            return self._fail(ValidationResultCode.AUTHORIZATION_MISSING, "The Authorization header was not found")

        parsed = self.signer.parse_authorization_value(authorization)
        if parsed is None or parsed[0] != scheme:
            return self._fail(
                ValidationResultCode.AUTHORIZATION_INVALID,
                f"The Authorization header does not use the '{scheme}' scheme"
            )

        if not self.is_valid_signature(signature_data, parsed[1]):
            return self._fail(ValidationResultCode.SIGNATURE_MISMATCH, "The signature does not match the request")

        logger.debug(f"Validated {request.method} request to {request.url} for user '{signature_data.username}'")
        return VALIDATION_OK

    def is_valid_request_date(self, date: Optional[datetime]) -> bool:
        """
        Check a request date against the maximum request age.

        Dates in the future are accepted. Naive datetimes are taken to be UTC.

        Args:
            date: Request date

        Returns:
            bool: True when the date is recent enough or no maximum age is configured
        """
        max_request_age = self.configuration.max_request_age
        if max_request_age is None:
            return True
        if date is None:
            return False
        return to_utc(self.clock()) <= to_utc(date) + max_request_age

    def is_valid_content_md5(self, content_md5: Optional[str], content: HashableContent) -> bool:
        """
        Check a body against its advertised MD5 hash.

        An empty body is only valid without a hash and a body without a hash
        is never valid.

        Args:
            content_md5: Base64 hash from the Content-MD5 header
            content: Request body

        Returns:
            bool: True when the hash matches the body
        """
        actual = self.signer.compute_base64_content_hash(content)
        body_is_empty = actual == EMPTY_CONTENT_MD5

        if not content_md5:
            return body_is_empty
        if body_is_empty:
            return False
        return hmac.compare_digest(actual.encode('ascii'), content_md5.encode('utf-8'))

    def is_valid_signature(self, signature_data: SignatureData, signature: Optional[str]) -> bool:
        """
        Check a signature against the one computed from the signature data.

        Args:
            signature_data: Data extracted from the request
            signature: Signature taken from the Authorization header

        Returns:
            bool: True when the signatures are equal
        """
        if not signature:
            return False
        expected = self.signer.compute_signature(signature_data)
        return hmac.compare_digest(expected.encode('ascii'), signature.encode('utf-8'))

    @staticmethod
    def add_www_authenticate_header(headers: ResponseHeaders, value: str) -> None:
        """
        Set the WWW-Authenticate header of a response.

        Args:
            headers: Response headers as HttpHeaders, a mutable mapping or a
                WSGI list of (name, value) pairs
            value: Challenge to send, e.g. the authorization scheme
        """
        if headers is None:
            raise TypeError("The headers cannot be None")
        if not value:
            raise ValueError("The WWW-Authenticate value cannot be empty")

        if isinstance(headers, HttpHeaders):
            headers.set(WWW_AUTHENTICATE_HEADER, value)
        elif isinstance(headers, list):
            headers[:] = [
                (name, existing) for name, existing in headers
                if name.lower() != WWW_AUTHENTICATE_HEADER.lower()
            ]
            headers.append((WWW_AUTHENTICATE_HEADER, value))
        else:
            headers[WWW_AUTHENTICATE_HEADER] = value

    def _fail(self, code: ValidationResultCode, message: str) -> ValidationResult:
        logger.debug(f"Request validation failed: {code.value}: {message}")
        return ValidationResult.failure(code, message)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

"""
HTTP client integration for request signing

This module plugs the HMAC signer into the requests library: HmacAuth is a
requests authentication handler that signs every prepared request, and
create_signing_session returns a session with the handler installed.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import requests
from requests.auth import AuthBase
from requests.models import PreparedRequest

from ..config.hmac_configuration import HmacConfiguration
from ..config.store import HmacConfigurationStore
from ..exceptions import HmacConfigurationError
from .hmac_signer import EMPTY_CONTENT_MD5, HmacSigner
from .key_repository import KeyRepository
from .types import (
    AUTHORIZATION_HEADER,
    CONTENT_MD5_HEADER,
    CONTENT_TYPE_HEADER,
    DATE_HEADER,
    HttpHeaders,
)
from .utils import RequestContent, format_http_date, parse_http_date

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class PreparedRequestView:
    """
    Request view over a requests.PreparedRequest

    The view reads the prepared request when it is created; create a new
    view after changing the request.
    """

    def __init__(self, request: PreparedRequest):
        if request is None:
            raise TypeError("The prepared request cannot be None")

        self.request = request
        self.method = request.method or ''
        self.url = request.url or ''
        self.headers = HttpHeaders(request.headers.items() if request.headers else None)
        self.date: Optional[datetime] = parse_http_date(self.headers.get(DATE_HEADER))
        self.content_type: Optional[str] = self.headers.get(CONTENT_TYPE_HEADER)
        self.content_md5: Optional[str] = self.headers.get(CONTENT_MD5_HEADER)

    @property
    def content(self) -> RequestContent:
        body = self.request.body
        if isinstance(body, str):
            return body.encode('utf-8')
        return body


class HmacAuth(AuthBase):
    """
    requests authentication handler adding an HMAC Authorization header.

    Before signing, a Date header is added when the configuration limits the
    request age and the request has none, and a Content-MD5 header is added
    when the configuration validates content hashes, the body is not empty
    and the request has none. Stream bodies must be seekable to be hashed.

    Example:
        >>> auth = HmacAuth(SingleKeyRepository("secret"), configuration=HmacConfiguration())
        >>> requests.post(url, json=payload, headers={"X-Auth-User": "alice"}, auth=auth)
    """

    def __init__(
        self,
        key_repository: KeyRepository,
        configuration: Optional[HmacConfiguration] = None,
        store: Optional[HmacConfigurationStore] = None,
        configuration_name: Optional[str] = None,
        clock: Optional[Clock] = None
    ):
        """
        Initialize the handler.

        Args:
            key_repository: Repository resolving the key of a username
            configuration: Fixed configuration; mutually exclusive with store
            store: Store consulted for every request, so reloads take effect
            configuration_name: Name of the store configuration; the default when None
            clock: Returns the current time for generated Date headers
        """
        if key_repository is None:
            raise TypeError("The key repository cannot be None")
        if (configuration is None) == (store is None):
            raise ValueError("Exactly one of configuration and store must be given")

        self.key_repository = key_repository
        self.configuration = configuration.clone() if configuration is not None else None
        self.store = store
        self.configuration_name = configuration_name
        self.clock = clock or _utc_now

    def get_configuration(self) -> HmacConfiguration:
        """Get the configuration used for the next request."""
        if self.store is not None:
            return self.store.get(self.configuration_name)
        return self.configuration

    def __call__(self, r: PreparedRequest) -> PreparedRequest:
        configuration = self.get_configuration()
        if not configuration.authorization_scheme:
            raise HmacConfigurationError("The authorization scheme cannot be empty")

        signer = HmacSigner(configuration, self.key_repository)

        if isinstance(r.body, str):
            r.body = r.body.encode('utf-8')
            r.prepare_content_length(r.body)

        if configuration.max_request_age is not None and DATE_HEADER not in r.headers:
            r.headers[DATE_HEADER] = format_http_date(self.clock())

        if configuration.validate_content_md5 and r.body is not None and CONTENT_MD5_HEADER not in r.headers:
            content_md5 = signer.compute_base64_content_hash(r.body)
            if content_md5 != EMPTY_CONTENT_MD5:
                r.headers[CONTENT_MD5_HEADER] = content_md5

        signature = signer.sign(PreparedRequestView(r))
        r.headers[AUTHORIZATION_HEADER] = signer.build_authorization_value(
            configuration.authorization_scheme,
            signature
        )

        logger.debug(f"Signed {r.method} request to {r.url} with configuration '{configuration.name}'")
        return r


def create_signing_session(
    key_repository: KeyRepository,
    configuration: Optional[HmacConfiguration] = None,
    store: Optional[HmacConfigurationStore] = None,
    configuration_name: Optional[str] = None,
    session: Optional[requests.Session] = None
) -> requests.Session:
    """
    Create a requests session that signs every request.

    Args:
        key_repository: Repository resolving the key of a username
        configuration: Fixed configuration; mutually exclusive with store
        store: Store consulted for every request
        configuration_name: Name of the store configuration
        session: Existing session to install the handler on

    Returns:
        requests.Session: Session with HmacAuth installed
    """
    session = session or requests.Session()
    session.auth = HmacAuth(
        key_repository,
        configuration=configuration,
        store=store,
        configuration_name=configuration_name
    )
    return session


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

"""
Key repositories for HMAC signing

A key repository maps a username to the shared secret used to sign and
validate that user's requests. The signer only depends on the abstract
KeyRepository interface; the classes here are ready-made implementations.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

import keyring

logger = logging.getLogger(__name__)

# Service name under which keys are looked up in the OS keyring
DEFAULT_KEYRING_SERVICE = "hmac-auth"


class KeyRepository(ABC):
    """Abstract repository resolving the HMAC key for a username"""

    @abstractmethod
    def get_key(self, username: Optional[str]) -> Optional[str]:
        """
        Get the key for a username.

        Args:
            username: Username taken from the request, or None when the
                request does not carry one

        Returns:
            str or None: The key, or None when no key exists for the user
        """


class SingleKeyRepository(KeyRepository):
    """Repository returning the same key for every user, including no user"""

    def __init__(self, key: str):
        if key is None:
            raise TypeError("The key cannot be None")
        if not key:
            raise ValueError("The key cannot be empty")
        self.key = key

    def get_key(self, username: Optional[str]) -> Optional[str]:
        return self.key


class SingleUserKeyRepository(KeyRepository):
    """Repository holding the key of exactly one user"""

    def __init__(self, username: str, key: str, case_sensitive: bool = True):
        if username is None:
            raise TypeError("The username cannot be None")
        if not username:
            raise ValueError("The username cannot be empty")
        if key is None:
            raise TypeError("The key cannot be None")
        if not key:
            raise ValueError("The key cannot be empty")

        self.username = username
        self.key = key
        self.case_sensitive = case_sensitive

    def get_key(self, username: Optional[str]) -> Optional[str]:
        if username is None:
            return None
        if self.case_sensitive:
            matches = username == self.username
        else:
            matches = username.casefold() == self.username.casefold()
        return self.key if matches else None


class DictKeyRepository(KeyRepository):
    """
    Repository backed by an in-memory username to key mapping.

    Requests without a username resolve to default_key.
    """

    def __init__(self, keys: Mapping[str, str], default_key: Optional[str] = None):
        if keys is None:
            raise TypeError("The key mapping cannot be None")
        self._keys: Dict[str, str] = dict(keys)
        self.default_key = default_key

    def get_key(self, username: Optional[str]) -> Optional[str]:
        if username is None:
            return self.default_key
        return self._keys.get(username)


class KeyringKeyRepository(KeyRepository):
    """
    Repository reading keys from the OS keyring.

    Each key is stored as the password of the username under a single
    keyring service. Requests without a username use default_username.
    Keyring failures propagate; the signer wraps them in
    HmacKeyRepositoryError.
    """

    def __init__(self, service_name: str = DEFAULT_KEYRING_SERVICE, default_username: Optional[str] = None):
        if not service_name:
            raise ValueError("The keyring service name cannot be empty")
        self.service_name = service_name
        self.default_username = default_username

    def get_key(self, username: Optional[str]) -> Optional[str]:
        lookup_name = username if username is not None else self.default_username
        if lookup_name is None:
            return None

        key = keyring.get_password(self.service_name, lookup_name)
        if key is None:
            logger.debug(f"No keyring entry for user '{lookup_name}' in service '{self.service_name}'")
        return key

    def store_key(self, username: str, key: str) -> None:
        """
        Store or replace the key of a user in the keyring.

        Args:
            username: Username the key belongs to
            key: Shared secret
        """
        if not username:
            raise ValueError("The username cannot be empty")
        if not key:
            raise ValueError("The key cannot be empty")
        keyring.set_password(self.service_name, username, key)

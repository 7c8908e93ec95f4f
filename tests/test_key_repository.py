"""
Test suite for key repositories
"""

from unittest.mock import patch

import pytest

from hmac_auth.signing import (
    KeyRepository,
    SingleKeyRepository,
    SingleUserKeyRepository,
    DictKeyRepository,
    KeyringKeyRepository,
)


class TestSingleKeyRepository:
    """Test the single key repository"""

    def test_any_user(self):
        """Test the key is returned for every username, including none"""
        repository = SingleKeyRepository("secret")
        assert repository.get_key("alice") == "secret"
        assert repository.get_key(None) == "secret"

    def test_invalid_key(self):
        """Test None and empty keys are rejected"""
        with pytest.raises(TypeError):
            SingleKeyRepository(None)
        with pytest.raises(ValueError):
            SingleKeyRepository("")


class TestSingleUserKeyRepository:
    """Test the single user repository"""

    def test_matching_user(self):
        """Test only the configured user gets the key"""
        repository = SingleUserKeyRepository("alice", "secret")
        assert repository.get_key("alice") == "secret"
        assert repository.get_key("Alice") is None
        assert repository.get_key("bob") is None
        assert repository.get_key(None) is None

    def test_case_insensitive(self):
        """Test case-insensitive username matching"""
        repository = SingleUserKeyRepository("alice", "secret", case_sensitive=False)
        assert repository.get_key("ALICE") == "secret"

    def test_invalid_arguments(self):
        """Test empty usernames and keys are rejected"""
        with pytest.raises(ValueError):
            SingleUserKeyRepository("", "secret")
        with pytest.raises(ValueError):
            SingleUserKeyRepository("alice", "")
        with pytest.raises(TypeError):
            SingleUserKeyRepository(None, "secret")


class TestDictKeyRepository:
    """Test the mapping repository"""

    def test_lookup(self):
        """Test keys are looked up by username"""
        repository = DictKeyRepository({"alice": "a", "bob": "b"})
        assert repository.get_key("alice") == "a"
        assert repository.get_key("bob") == "b"
        assert repository.get_key("carol") is None

    def test_default_key(self):
        """Test requests without a username use the default key"""
        repository = DictKeyRepository({"alice": "a"}, default_key="fallback")
        assert repository.get_key(None) == "fallback"
        assert repository.get_key("carol") is None

    def test_mapping_is_copied(self):
        """Test later changes to the source mapping are not seen"""
        keys = {"alice": "a"}
        repository = DictKeyRepository(keys)
        keys["bob"] = "b"
        assert repository.get_key("bob") is None


class TestKeyringKeyRepository:
    """Test the OS keyring repository"""

    def test_get_key(self):
        """Test keys are read from the configured keyring service"""
        with patch('hmac_auth.signing.key_repository.keyring') as mock_keyring:
            mock_keyring.get_password.return_value = "secret"
            repository = KeyringKeyRepository("my-service")

            assert repository.get_key("alice") == "secret"
            mock_keyring.get_password.assert_called_once_with("my-service", "alice")

    def test_missing_entry(self):
        """Test a missing keyring entry yields None"""
        with patch('hmac_auth.signing.key_repository.keyring') as mock_keyring:
            mock_keyring.get_password.return_value = None
            assert KeyringKeyRepository().get_key("alice") is None

    def test_default_username(self):
        """Test requests without a username use the default username"""
        with patch('hmac_auth.signing.key_repository.keyring') as mock_keyring:
            mock_keyring.get_password.return_value = "service-secret"
            repository = KeyringKeyRepository("svc", default_username="service-account")

            assert repository.get_key(None) == "service-secret"
            mock_keyring.get_password.assert_called_once_with("svc", "service-account")

    def test_no_username(self):
        """Test no lookup happens without any username"""
        with patch('hmac_auth.signing.key_repository.keyring') as mock_keyring:
            assert KeyringKeyRepository("svc").get_key(None) is None
            mock_keyring.get_password.assert_not_called()

    def test_store_key(self):
        """Test keys are stored under the service"""
        with patch('hmac_auth.signing.key_repository.keyring') as mock_keyring:
            KeyringKeyRepository("svc").store_key("alice", "secret")
            mock_keyring.set_password.assert_called_once_with("svc", "alice", "secret")

    def test_errors_propagate(self):
        """Test keyring errors are raised to the caller"""
        with patch('hmac_auth.signing.key_repository.keyring') as mock_keyring:
            mock_keyring.get_password.side_effect = RuntimeError("locked")
            with pytest.raises(RuntimeError):
                KeyringKeyRepository("svc").get_key("alice")


class TestCustomRepository:
    """Test user-defined repositories"""

    def test_subclass(self):
        """Test the abstract interface can be implemented"""
        class UpperCaseRepository(KeyRepository):
            def get_key(self, username):
                return username.upper() if username else None

        assert UpperCaseRepository().get_key("abc") == "ABC"

    def test_abstract(self):
        """Test the interface cannot be instantiated"""
        with pytest.raises(TypeError):
            KeyRepository()

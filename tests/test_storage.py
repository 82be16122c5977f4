"""Tests for encrypted credential storage."""

import stat

import pytest

from pgshark.errors import StorageError
from pgshark.models import Credentials
from pgshark.storage import NONCE_SIZE, CredentialStore


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    return CredentialStore(tmp_path / "creds" / "credentials.enc")


class TestCredentialStore:
    """Tests for CredentialStore."""

    def test_missing_returns_none(self, store: CredentialStore) -> None:
        """Test loading before anything was saved."""
        assert store.load() is None

    def test_round_trip(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test saved credentials load back."""
        store.save(credentials)
        assert store.load() == credentials

    def test_round_trip_new_instance(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test a fresh store reads what another one wrote."""
        store.save(credentials)
        assert CredentialStore(store.path).load() == credentials

    def test_ciphertext_hides_password(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test the password is not stored in clear."""
        store.save(credentials)
        assert b"s3cret" not in store.path.read_bytes()

    def test_key_file_created_private(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test the key lives beside the data with owner-only permissions."""
        store.save(credentials)
        assert store.key_path.name == "credentials.enc.key"
        assert len(store.key_path.read_bytes()) == 32
        assert stat.S_IMODE(store.key_path.stat().st_mode) == 0o600
        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600

    def test_fresh_nonce_per_save(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test saving twice never reuses a nonce."""
        store.save(credentials)
        first = store.path.read_bytes()[:NONCE_SIZE]
        store.save(credentials)
        assert store.path.read_bytes()[:NONCE_SIZE] != first

    def test_tampered_file(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test a modified ciphertext is rejected."""
        store.save(credentials)
        data = bytearray(store.path.read_bytes())
        data[-1] ^= 0xFF
        store.path.write_bytes(bytes(data))
        with pytest.raises(StorageError, match="decrypted"):
            store.load()

    def test_truncated_file(self, store: CredentialStore) -> None:
        """Test a file shorter than a nonce is rejected."""
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b"short")
        with pytest.raises(StorageError, match="truncated"):
            store.load()

    def test_wrong_key(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test a replaced key cannot decrypt old data."""
        store.save(credentials)
        store.key_path.write_bytes(b"\x00" * 32)
        with pytest.raises(StorageError):
            CredentialStore(store.path).load()

    def test_corrupt_key(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test a key of the wrong size is reported."""
        store.save(credentials)
        store.key_path.write_bytes(b"tiny")
        with pytest.raises(StorageError, match="corrupt"):
            CredentialStore(store.path).load()

    def test_clear(self, store: CredentialStore, credentials: Credentials) -> None:
        """Test clearing removes stored credentials."""
        store.save(credentials)
        assert store.clear() is True
        assert store.load() is None
        assert store.clear() is False

"""Encrypted-at-rest credential storage.

Credentials are serialized to JSON and sealed with AES-256-GCM. The file
layout is ``nonce || ciphertext``; the key lives next to it in
``<path>.key``. Both files are created with mode 0600.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from pgshark.errors import StorageError
from pgshark.models import Credentials

logger = logging.getLogger(__name__)


NONCE_SIZE = 12
KEY_BITS = 256


def _write_private(path: Path, data: bytes) -> None:
    """Write bytes to a file readable only by the owner."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


class CredentialStore:
    """Load and save a single set of credentials."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.key_path = self.path.with_name(self.path.name + ".key")
        self._key: Optional[bytes] = None

    def _get_key(self) -> bytes:
        if self._key is not None:
            return self._key
        try:
            if self.key_path.exists():
                key = self.key_path.read_bytes()
            else:
                key = AESGCM.generate_key(bit_length=KEY_BITS)
                _write_private(self.key_path, key)
                logger.info("Generated new credential key at %s", self.key_path)
        except OSError as exc:
            raise StorageError(f"cannot access credential key: {exc}") from exc

        if len(key) != KEY_BITS // 8:
            raise StorageError(f"credential key at {self.key_path} is corrupt")
        self._key = key
        return key

    def load(self) -> Optional[Credentials]:
        """Return the stored credentials, or None if none were saved yet."""
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"cannot read credentials: {exc}") from exc

        if len(data) < NONCE_SIZE:
            raise StorageError("stored credentials are truncated")

        nonce, ciphertext = data[:NONCE_SIZE], data[NONCE_SIZE:]
        try:
            plaintext = AESGCM(self._get_key()).decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise StorageError("stored credentials could not be decrypted") from exc

        try:
            credentials = Credentials(**json.loads(plaintext))
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            raise StorageError("stored credentials are malformed") from exc

        logger.info("Loaded credentials for %s", credentials.display_name())
        return credentials

    def save(self, credentials: Credentials) -> None:
        """Encrypt and persist credentials, replacing any previous ones."""
        plaintext = json.dumps(credentials.model_dump()).encode("utf-8")
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = AESGCM(self._get_key()).encrypt(nonce, plaintext, None)
        try:
            _write_private(self.path, nonce + ciphertext)
        except OSError as exc:
            raise StorageError(f"cannot save credentials: {exc}") from exc
        logger.info("Saved credentials for %s", credentials.display_name())

    def clear(self) -> bool:
        """Delete stored credentials. Returns True if a file was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"cannot remove credentials: {exc}") from exc
        return True

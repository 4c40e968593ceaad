"""
File-based key-value store with password protection.

Stores identity keys and sender-key records as JSON, encrypted with
AES-256-GCM under a password-derived key (PBKDF2). Entries live in
`~/.senderkeys/<store>/` unless another directory is given.

## Storage Format

Each entry file contains:
- Salt: 32 bytes (random, for PBKDF2)
- Nonce: 12 bytes (random, for AES-GCM)
- Ciphertext: variable (UTF-8 JSON of the value)
- Tag: 16 bytes (authentication tag)

File names are the URL-safe base64 encoding of the entry key, so channel
and user identifiers with path separators are safe.

## Security

- Uses PBKDF2 with 100,000 iterations for key derivation
- Uses AES-256-GCM for authenticated encryption
- Files are stored with 600 permissions (owner read/write only)
- Salt is unique per entry file
"""

import base64
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..types import StorageError
from .key_value_store import KeyValueStore

logger = logging.getLogger(__name__)


class PasswordRequiredError(StorageError):
    """Raised when password is required but not set."""

    def __init__(self) -> None:
        super().__init__("Password is required for file storage")


class StoreDecryptionFailedError(StorageError):
    """Raised when decryption fails (wrong password)."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Decryption failed for {key} - incorrect password or corrupted data")
        self.key = key


class InvalidEntryDataError(StorageError):
    """Raised when entry data is invalid."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Invalid entry data format for {key}")
        self.key = key


class FileKeyValueStore(KeyValueStore):
    """
    File-based key-value store with password protection.

    Example usage:
        ```python
        store = FileKeyValueStore(password="user-password")

        await store.set("private:alice", jwk, "keypairs")
        jwk = await store.get("private:alice", "keypairs")
        ```
    """

    # PBKDF2 iteration count (OWASP recommendation for SHA256)
    PBKDF2_ITERATIONS = 100_000

    SALT_SIZE = 32

    NONCE_SIZE = 12

    TAG_SIZE = 16

    # Default directory, relative to the home directory
    DIRECTORY_NAME = ".senderkeys"

    # Minimum file size (salt + nonce + tag)
    MIN_FILE_SIZE = 32 + 12 + 16

    ENTRY_SUFFIX = ".entry"

    def __init__(self, password: Optional[str] = None, directory: Optional[Path] = None) -> None:
        """
        Create a new file store.

        Args:
            password: Optional password for encryption. If not provided,
                      must be set before use.
            directory: Root directory; defaults to `~/.senderkeys`.
        """
        self._password = password
        self._directory = Path(directory) if directory is not None else Path.home() / self.DIRECTORY_NAME
        self._derived_keys: dict[bytes, bytes] = {}

    def set_password(self, password: str) -> None:
        """Set the password for encryption/decryption."""
        self._password = password
        self._derived_keys.clear()

    def clear_password(self) -> None:
        """Clear the password and cached keys from memory."""
        self._password = None
        self._derived_keys.clear()

    async def get(self, key: str, store: str) -> Optional[Any]:
        """
        Retrieve a value.

        Raises:
            PasswordRequiredError: If no password is set.
            StoreDecryptionFailedError: If decryption fails (wrong password).
            InvalidEntryDataError: If the entry data is corrupted.
        """
        if not self._password:
            raise PasswordRequiredError()

        file_path = self._entry_path(key, store)
        if not file_path.exists():
            return None

        file_data = file_path.read_bytes()
        if len(file_data) < self.MIN_FILE_SIZE:
            raise InvalidEntryDataError(key)

        salt = file_data[: self.SALT_SIZE]
        nonce = file_data[self.SALT_SIZE : self.SALT_SIZE + self.NONCE_SIZE]
        ciphertext_and_tag = file_data[self.SALT_SIZE + self.NONCE_SIZE :]

        derived_key = self._derive_key(self._password, salt)
        try:
            plaintext = AESGCM(derived_key).decrypt(nonce, ciphertext_and_tag, None)
        except InvalidTag as e:
            raise StoreDecryptionFailedError(key) from e

        try:
            return json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise InvalidEntryDataError(key) from e

    async def set(self, key: str, value: Any, store: str) -> None:
        """
        Store a value.

        Raises:
            PasswordRequiredError: If no password is set.
        """
        if not self._password:
            raise PasswordRequiredError()

        directory = self._ensure_directory(store)

        salt = os.urandom(self.SALT_SIZE)
        nonce = os.urandom(self.NONCE_SIZE)
        derived_key = self._derive_key(self._password, salt)

        plaintext = json.dumps(value, separators=(",", ":")).encode("utf-8")
        ciphertext_and_tag = AESGCM(derived_key).encrypt(nonce, plaintext, None)

        file_path = directory / self._file_name(key)
        file_path.write_bytes(salt + nonce + ciphertext_and_tag)
        self._set_restrictive_permissions(file_path)

    async def delete(self, key: str, store: str) -> None:
        file_path = self._entry_path(key, store)
        if file_path.exists():
            file_path.unlink()

    async def keys(self, store: str) -> list[str]:
        directory = self._directory / store
        if not directory.exists():
            return []

        return [
            base64.urlsafe_b64decode(f.stem.encode("ascii")).decode("utf-8")
            for f in directory.iterdir()
            if f.suffix == self.ENTRY_SUFFIX
        ]

    def _file_name(self, key: str) -> str:
        return base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii") + self.ENTRY_SUFFIX

    def _entry_path(self, key: str, store: str) -> Path:
        return self._directory / store / self._file_name(key)

    def _ensure_directory(self, store: str) -> Path:
        directory = self._directory / store
        directory.mkdir(parents=True, exist_ok=True)
        try:
            directory.chmod(0o700)
        except OSError:
            logger.debug("Could not restrict permissions on %s", directory)
        return directory

    def _derive_key(self, password: str, salt: bytes) -> bytes:
        """Derive an encryption key from password using PBKDF2."""
        cached = self._derived_keys.get(salt)
        if cached is not None:
            return cached

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self.PBKDF2_ITERATIONS,
        )
        derived_key = kdf.derive(password.encode("utf-8"))
        self._derived_keys[salt] = derived_key
        return derived_key

    def _set_restrictive_permissions(self, file_path: Path) -> None:
        """Set restrictive file permissions (600 on Unix)."""
        try:
            file_path.chmod(0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", file_path)

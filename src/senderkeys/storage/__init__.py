"""senderkeys storage module."""

from .key_value_store import KeyValueStore, InMemoryKeyValueStore
from .file_store import (
    FileKeyValueStore,
    PasswordRequiredError,
    StoreDecryptionFailedError,
    InvalidEntryDataError,
)
from .shared_key_cache import SharedKeyCache
from .sender_key_cache import SenderKeyCache

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "PasswordRequiredError",
    "StoreDecryptionFailedError",
    "InvalidEntryDataError",
    "SharedKeyCache",
    "SenderKeyCache",
]

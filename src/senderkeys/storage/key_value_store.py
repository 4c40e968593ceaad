"""Local key-value store interface and in-memory implementation."""

import copy
from abc import ABC, abstractmethod
from typing import Any, Optional


class KeyValueStore(ABC):
    """
    Interface for the client-local persistent store.

    Values are JSON-compatible (dicts, lists, strings, numbers). Every entry
    lives in a named store so that unrelated records never collide.
    """

    @abstractmethod
    async def get(self, key: str, store: str) -> Optional[Any]:
        """Return the value for a key, or None if absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, store: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    @abstractmethod
    async def delete(self, key: str, store: str) -> None:
        """Delete a key. Deleting a missing key is a no-op."""
        ...

    @abstractmethod
    async def keys(self, store: str) -> list[str]:
        """List all keys in a store."""
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """
    In-memory implementation of KeyValueStore (for testing).

    WARNING: This is NOT secure for production use. Keys are stored in memory
    without encryption and are lost when the process exits.
    """

    def __init__(self) -> None:
        self._stores: dict[str, dict[str, Any]] = {}

    async def get(self, key: str, store: str) -> Optional[Any]:
        value = self._stores.get(store, {}).get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, store: str) -> None:
        self._stores.setdefault(store, {})[key] = copy.deepcopy(value)

    async def delete(self, key: str, store: str) -> None:
        self._stores.get(store, {}).pop(key, None)

    async def keys(self, store: str) -> list[str]:
        return list(self._stores.get(store, {}).keys())

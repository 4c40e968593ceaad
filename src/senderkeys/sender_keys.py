"""Sender-key records: one symmetric key per (channel, sender)."""

import asyncio
import base64
import logging
import os
import uuid
from dataclasses import dataclass, replace
from typing import Optional

from .config import SenderKeysConfig
from .storage import KeyValueStore, SenderKeyCache
from .types import SYMMETRIC_KEY_SIZE, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SenderKeyRecord:
    """A sender key generation for one sender in one channel.

    Attributes:
        channel_id: Channel the key encrypts messages in.
        sender_id: Identity that encrypts with the key.
        key: 32 bytes of AES-256-GCM key material.
        key_id: Random epoch identifier; changes on every rotation.
        counter: Next message counter (local keys only; 0 for remote keys).
    """

    channel_id: str
    sender_id: str
    key: bytes
    key_id: str
    counter: int = 0

    def to_dict(self) -> dict:
        return {
            "key": base64.b64encode(self.key).decode("ascii"),
            "key_id": self.key_id,
            "counter": self.counter,
        }

    @classmethod
    def from_dict(cls, channel_id: str, sender_id: str, data: dict) -> "SenderKeyRecord":
        try:
            return cls(
                channel_id=channel_id,
                sender_id=sender_id,
                key=base64.b64decode(data["key"]),
                key_id=str(data["key_id"]),
                counter=int(data.get("counter", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt sender key record for {channel_id}:{sender_id}") from e


def generate_key_id() -> str:
    return str(uuid.uuid4())


class SenderKeyManager:
    """
    Owns sender-key records, backed by the local store and an in-memory cache.

    Counter updates for a record are serialized with a per-record lock, so
    concurrent sends in one channel never stamp the same counter twice.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[SenderKeysConfig] = None,
        cache: Optional[SenderKeyCache] = None,
    ) -> None:
        self._store = store
        self._config = config or SenderKeysConfig()
        self.cache = cache if cache is not None else SenderKeyCache()
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    @staticmethod
    def _record_name(channel_id: str, sender_id: str) -> str:
        return f"{channel_id}:{sender_id}"

    def _lock(self, channel_id: str, sender_id: str) -> asyncio.Lock:
        return self._locks.setdefault((channel_id, sender_id), asyncio.Lock())

    async def _persist(self, record: SenderKeyRecord) -> None:
        await self._store.set(
            self._record_name(record.channel_id, record.sender_id),
            record.to_dict(),
            self._config.sender_key_store,
        )
        self.cache.store(record)

    async def get_key(self, channel_id: str, sender_id: str) -> Optional[SenderKeyRecord]:
        """Return the record for (channel, sender) from cache or store, or None."""
        record = self.cache.retrieve(channel_id, sender_id)
        if record is not None:
            return record

        data = await self._store.get(self._record_name(channel_id, sender_id), self._config.sender_key_store)
        if data is None:
            return None

        record = SenderKeyRecord.from_dict(channel_id, sender_id, data)
        self.cache.store(record)
        return record

    async def has_key(self, channel_id: str, sender_id: str) -> bool:
        """True if a record exists for (channel, sender), cached or persisted."""
        if (channel_id, sender_id) in self.cache:
            return True
        data = await self._store.get(self._record_name(channel_id, sender_id), self._config.sender_key_store)
        return data is not None

    async def get_or_create_own_key(self, user_id: str, channel_id: str) -> SenderKeyRecord:
        """
        Return the local user's sender key for a channel, creating it if needed.

        Args:
            user_id: Local sender identity.
            channel_id: Channel identifier.

        Returns:
            The active SenderKeyRecord.
        """
        async with self._lock(channel_id, user_id):
            return await self._get_or_create(user_id, channel_id)

    async def _get_or_create(self, user_id: str, channel_id: str) -> SenderKeyRecord:
        record = await self.get_key(channel_id, user_id)
        if record is not None:
            return record

        record = SenderKeyRecord(
            channel_id=channel_id,
            sender_id=user_id,
            key=os.urandom(SYMMETRIC_KEY_SIZE),
            key_id=generate_key_id(),
        )
        await self._persist(record)
        logger.info("Created sender key %s for %s in channel %s", record.key_id, user_id, channel_id)
        return record

    async def next_counter(self, user_id: str, channel_id: str) -> tuple[SenderKeyRecord, int]:
        """
        Reserve the next message counter for the local sender key.

        Returns:
            Tuple of (record, counter_to_use). The persisted counter is
            advanced before returning.
        """
        async with self._lock(channel_id, user_id):
            record = await self._get_or_create(user_id, channel_id)
            counter = record.counter
            await self._persist(replace(record, counter=counter + 1))
            return record, counter

    async def cache_remote_key(self, channel_id: str, sender_id: str, raw_key: bytes, key_id: str) -> None:
        """
        Store a sender key received through a distribution.

        Any earlier record for (channel, sender) is overwritten.
        """
        if len(raw_key) != SYMMETRIC_KEY_SIZE:
            raise ValueError(f"Sender key must be {SYMMETRIC_KEY_SIZE} bytes, got {len(raw_key)}")

        async with self._lock(channel_id, sender_id):
            record = SenderKeyRecord(
                channel_id=channel_id,
                sender_id=sender_id,
                key=bytes(raw_key),
                key_id=key_id,
            )
            await self._persist(record)
        logger.debug("Cached sender key %s from %s in channel %s", key_id, sender_id, channel_id)

    async def rotate(self, user_id: str, channel_id: str) -> None:
        """
        Discard the local sender key for a channel.

        The next `get_or_create_own_key` generates a new key with a new key
        id. Redistribution is left to the caller.
        """
        async with self._lock(channel_id, user_id):
            self.cache.invalidate(channel_id, user_id)
            await self._store.delete(self._record_name(channel_id, user_id), self._config.sender_key_store)
        logger.info("Rotated sender key for %s in channel %s", user_id, channel_id)

    def clear_cache(self) -> None:
        """Drop cached records and the locks of records nobody is mutating."""
        self.cache.clear()
        self._locks = {k: lock for k, lock in self._locks.items() if lock.locked()}

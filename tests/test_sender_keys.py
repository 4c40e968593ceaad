"""Tests for the sender key manager."""

import asyncio

import pytest
from senderkeys.sender_keys import SenderKeyManager, SenderKeyRecord
from senderkeys.storage import InMemoryKeyValueStore
from senderkeys.types import StorageError


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def manager(store) -> SenderKeyManager:
    return SenderKeyManager(store)


class TestOwnKeys:
    """Test creation and persistence of local sender keys."""

    @pytest.mark.asyncio
    async def test_create_on_first_use(self, manager) -> None:
        assert not await manager.has_key("c1", "alice")

        record = await manager.get_or_create_own_key("alice", "c1")

        assert record.channel_id == "c1"
        assert record.sender_id == "alice"
        assert len(record.key) == 32
        assert record.counter == 0
        assert record.key_id
        assert await manager.has_key("c1", "alice")

    @pytest.mark.asyncio
    async def test_returns_same_key(self, manager) -> None:
        first = await manager.get_or_create_own_key("alice", "c1")
        second = await manager.get_or_create_own_key("alice", "c1")

        assert first == second

    @pytest.mark.asyncio
    async def test_keys_are_per_channel(self, manager) -> None:
        c1 = await manager.get_or_create_own_key("alice", "c1")
        c2 = await manager.get_or_create_own_key("alice", "c2")

        assert c1.key != c2.key
        assert c1.key_id != c2.key_id

    @pytest.mark.asyncio
    async def test_persisted_across_managers(self, store, manager) -> None:
        """A fresh manager on the same store sees the persisted record."""
        record = await manager.get_or_create_own_key("alice", "c1")

        reloaded = SenderKeyManager(store)
        assert await reloaded.has_key("c1", "alice")
        assert await reloaded.get_key("c1", "alice") == record


class TestCounter:
    """Test the per-sender message counter."""

    @pytest.mark.asyncio
    async def test_counter_increments(self, store, manager) -> None:
        counters = [(await manager.next_counter("alice", "c1"))[1] for _ in range(3)]

        assert counters == [0, 1, 2]
        persisted = await SenderKeyManager(store).get_key("c1", "alice")
        assert persisted.counter == 3

    @pytest.mark.asyncio
    async def test_concurrent_sends_get_unique_counters(self, manager) -> None:
        results = await asyncio.gather(*(manager.next_counter("alice", "c1") for _ in range(20)))

        counters = sorted(counter for _, counter in results)
        assert counters == list(range(20))
        assert len({record.key_id for record, _ in results}) == 1

    @pytest.mark.asyncio
    async def test_clear_cache_releases_idle_locks(self, manager) -> None:
        for channel_id in ("c1", "c2", "c3"):
            await manager.next_counter("alice", channel_id)
        await manager.cache_remote_key("c1", "bob", b"\x01" * 32, "epoch-1")
        assert len(manager._locks) == 4

        manager.clear_cache()

        assert manager._locks == {}
        assert (await manager.next_counter("alice", "c1"))[1] == 1


class TestRemoteKeys:
    """Test caching of keys received through distributions."""

    @pytest.mark.asyncio
    async def test_cache_remote_key(self, store, manager) -> None:
        await manager.cache_remote_key("c1", "bob", b"\x07" * 32, "epoch-1")

        record = await SenderKeyManager(store).get_key("c1", "bob")
        assert record.key == b"\x07" * 32
        assert record.key_id == "epoch-1"

    @pytest.mark.asyncio
    async def test_cache_remote_key_overwrites(self, manager) -> None:
        await manager.cache_remote_key("c1", "bob", b"\x01" * 32, "epoch-1")
        await manager.cache_remote_key("c1", "bob", b"\x02" * 32, "epoch-2")

        record = await manager.get_key("c1", "bob")
        assert record.key == b"\x02" * 32
        assert record.key_id == "epoch-2"

    @pytest.mark.asyncio
    async def test_rejects_wrong_key_length(self, manager) -> None:
        with pytest.raises(ValueError, match="32 bytes"):
            await manager.cache_remote_key("c1", "bob", b"short", "epoch-1")


class TestRotation:
    """Test sender key rotation."""

    @pytest.mark.asyncio
    async def test_rotate_regenerates(self, store, manager) -> None:
        before = await manager.get_or_create_own_key("alice", "c1")

        await manager.rotate("alice", "c1")
        assert not await manager.has_key("c1", "alice")
        assert not await SenderKeyManager(store).has_key("c1", "alice")

        after = await manager.get_or_create_own_key("alice", "c1")
        assert after.key_id != before.key_id
        assert after.key != before.key
        assert after.counter == 0

    @pytest.mark.asyncio
    async def test_rotate_missing_is_noop(self, manager) -> None:
        await manager.rotate("alice", "c1")
        assert not await manager.has_key("c1", "alice")


class TestRecordSerialization:
    """Test persisted record format."""

    def test_round_trip_dict(self) -> None:
        record = SenderKeyRecord("c1", "alice", b"\x05" * 32, "epoch", counter=4)
        data = record.to_dict()

        assert set(data) == {"key", "key_id", "counter"}
        assert SenderKeyRecord.from_dict("c1", "alice", data) == record

    def test_corrupt_record_raises(self) -> None:
        with pytest.raises(StorageError):
            SenderKeyRecord.from_dict("c1", "alice", {"key_id": "epoch"})

"""Shared fixtures: independent parties with isolated stores and caches."""

from dataclasses import dataclass
from typing import Optional

import pytest

from senderkeys.distribution import DistributionProtocol
from senderkeys.engine import MessageEngine
from senderkeys.identity import IdentityKeyStore
from senderkeys.pairwise import PairwiseKeyAgreement
from senderkeys.sender_keys import SenderKeyManager
from senderkeys.storage import InMemoryKeyValueStore
from senderkeys.transport import ChannelPublisher, KeyDirectory
from senderkeys.types import ParticipantKey


@dataclass
class Party:
    """One local user with its own store and component graph."""
    user_id: str
    store: InMemoryKeyValueStore
    identities: IdentityKeyStore
    pairwise: PairwiseKeyAgreement
    sender_keys: SenderKeyManager
    distribution: DistributionProtocol
    engine: MessageEngine

    async def public_key(self) -> str:
        return await self.identities.ensure_identity(self.user_id)

    async def participant(self) -> ParticipantKey:
        return ParticipantKey(user_id=self.user_id, public_key=await self.public_key())


def make_party(user_id: str) -> Party:
    store = InMemoryKeyValueStore()
    identities = IdentityKeyStore(store)
    pairwise = PairwiseKeyAgreement(identities)
    sender_keys = SenderKeyManager(store)
    distribution = DistributionProtocol(identities, pairwise, sender_keys)
    engine = MessageEngine(pairwise, sender_keys, distribution)
    return Party(user_id, store, identities, pairwise, sender_keys, distribution, engine)


@pytest.fixture
def alice() -> Party:
    return make_party("alice")


@pytest.fixture
def bob() -> Party:
    return make_party("bob")


@pytest.fixture
def carol() -> Party:
    return make_party("carol")


class FakeDirectory(KeyDirectory):
    """In-memory key directory with explicit channel membership."""

    def __init__(self) -> None:
        self.keys: dict[str, str] = {}
        self.members: dict[str, list[str]] = {}
        self.uploads = 0

    async def fetch_participant_keys(self, channel_id: str) -> list[ParticipantKey]:
        return [
            ParticipantKey(user_id=uid, public_key=self.keys[uid])
            for uid in self.members.get(channel_id, [])
            if uid in self.keys
        ]

    async def upload_public_key(self, user_id: str, public_key: str) -> None:
        self.uploads += 1
        self.keys[user_id] = public_key

    async def get_public_key(self, user_id: str) -> Optional[str]:
        return self.keys.get(user_id)


class FakeChannel(ChannelPublisher):
    """Records published wire strings with their sender."""

    def __init__(self, user_id: str, log: list) -> None:
        self.user_id = user_id
        self.log = log

    async def publish_to_channel(self, channel_id: str, wire: str) -> None:
        self.log.append((channel_id, self.user_id, wire))


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def wire_log() -> list:
    return []


async def make_party_sharing_prefix(user_id: str, other: Party, prefix_length: int = 32) -> Party:
    """Generate identities until the public key starts like `other`'s."""
    target = (await other.public_key())[:prefix_length]
    for _ in range(5000):
        party = make_party(user_id)
        if (await party.public_key())[:prefix_length] == target:
            return party
    raise AssertionError(f"no public key starting with {target!r}")

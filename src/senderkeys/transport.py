"""
Collaborator interfaces.

The relay channel and the key directory live outside this library. They
are consumed through these abstract base classes; implementations can use
any transport (WebSocket, HTTP, pub/sub).
"""

from abc import ABC, abstractmethod
from typing import Optional

from .types import ParticipantKey


class ChannelPublisher(ABC):
    """Broadcasts opaque strings into a channel."""

    @abstractmethod
    async def publish_to_channel(self, channel_id: str, wire: str) -> None:
        """Publish a wire string to every member of a channel."""
        ...


class KeyDirectory(ABC):
    """Server-side store mapping user ids to uploaded public keys."""

    @abstractmethod
    async def fetch_participant_keys(self, channel_id: str) -> list[ParticipantKey]:
        """Return the current (user id, public key) pairs for a channel."""
        ...

    @abstractmethod
    async def upload_public_key(self, user_id: str, public_key: str) -> None:
        """Upload (or replace) a user's public key."""
        ...

    @abstractmethod
    async def get_public_key(self, user_id: str) -> Optional[str]:
        """Return a user's uploaded public key, or None if absent."""
        ...

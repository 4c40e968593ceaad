"""
Sender-key client for encrypted channels.

The SenderKeyClient binds one local user to the engine and to the external
collaborators (channel publisher and key directory).
"""

import logging
from typing import Optional

from .config import SenderKeysConfig
from .distribution import DistributionProtocol
from .engine import MessageEngine, render
from .envelope import EnvelopeKind, classify, decode_distribution
from .identity import IdentityKeyStore
from .pairwise import PairwiseKeyAgreement
from .sender_keys import SenderKeyManager
from .storage import KeyValueStore, SenderKeyCache, SharedKeyCache
from .transport import ChannelPublisher, KeyDirectory
from .types import Control, DecryptResult, EnvelopeError, ParticipantKey

logger = logging.getLogger(__name__)


class SenderKeyClient:
    """
    High-level client for sender-key encrypted channels.

    The SenderKeyClient provides methods for:
    - Creating and uploading the local identity key
    - Distributing the local sender key to channel participants
    - Sending encrypted channel messages
    - Routing and decrypting incoming wire strings
    - Rotating the sender key on membership change

    Example usage:
        ```python
        client = SenderKeyClient("alice", directory, publisher, store)
        await client.setup()
        await client.distribute("c1")

        await client.send("c1", "hi bob")
        result = await client.handle_incoming("c1", "bob", wire)
        ```
    """

    def __init__(
        self,
        user_id: str,
        directory: KeyDirectory,
        publisher: ChannelPublisher,
        store: KeyValueStore,
        config: Optional[SenderKeysConfig] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            user_id: The local user identity.
            directory: Key directory for participant public keys.
            publisher: Channel publisher for outgoing wire strings.
            store: Local persistent key-value store.
            config: Optional configuration (default: SenderKeysConfig()).
        """
        self.user_id = user_id
        self.directory = directory
        self.publisher = publisher
        self.config = config or SenderKeysConfig()

        self.identities = IdentityKeyStore(store, self.config)
        self.pairwise = PairwiseKeyAgreement(self.identities, SharedKeyCache())
        self.sender_keys = SenderKeyManager(store, self.config, SenderKeyCache())
        self.distribution = DistributionProtocol(self.identities, self.pairwise, self.sender_keys)
        self.engine = MessageEngine(self.pairwise, self.sender_keys, self.distribution, self.config)

        self._participants: dict[str, dict[str, ParticipantKey]] = {}

    # MARK: - Setup

    async def setup(self) -> str:
        """
        Ensure a local identity exists and the directory has its public key.

        Returns:
            The local public key (JWK JSON string).
        """
        public_key = await self.identities.ensure_identity(self.user_id)
        uploaded = await self.directory.get_public_key(self.user_id)
        if uploaded != public_key:
            await self.directory.upload_public_key(self.user_id, public_key)
            logger.info("Uploaded public key for %s", self.user_id)
        return public_key

    async def refresh_participants(self, channel_id: str) -> list[ParticipantKey]:
        """Fetch and remember the participant keys of a channel."""
        participants = await self.directory.fetch_participant_keys(channel_id)
        self._participants[channel_id] = {p.user_id: p for p in participants}
        return list(participants)

    def participants(self, channel_id: str) -> list[ParticipantKey]:
        """The last fetched participant keys of a channel."""
        return list(self._participants.get(channel_id, {}).values())

    async def _public_key_for(self, channel_id: str, user_id: str) -> Optional[str]:
        participant = self._participants.get(channel_id, {}).get(user_id)
        if participant is None:
            # Unknown sender: the member list may predate their join.
            await self.refresh_participants(channel_id)
            participant = self._participants[channel_id].get(user_id)
        return participant.public_key if participant else None

    # MARK: - Sending

    async def distribute(self, channel_id: str) -> Optional[str]:
        """
        Publish the local sender key to the current channel participants.

        Call on joining a channel and whenever its membership changes.

        Returns:
            The published distribution, or None if nobody else is in the channel.
        """
        participants = await self.refresh_participants(channel_id)
        if not any(p.user_id != self.user_id for p in participants):
            logger.debug("No other participants in channel %s, skipping distribution", channel_id)
            return None

        wire = await self.distribution.create_distribution(self.user_id, channel_id, participants)
        await self.publisher.publish_to_channel(channel_id, wire)
        return wire

    async def send(self, channel_id: str, text: str) -> str:
        """
        Encrypt and publish a channel message.

        The first message in a channel distributes the sender key first.

        Returns:
            The published wire string.
        """
        if not await self.sender_keys.has_key(channel_id, self.user_id):
            await self.distribute(channel_id)

        wire = await self.engine.encrypt(text, self.user_id, channel_id)
        await self.publisher.publish_to_channel(channel_id, wire)
        return wire

    async def rotate(self, channel_id: str, redistribute: bool = True) -> Optional[str]:
        """
        Replace the local sender key for a channel.

        Args:
            channel_id: The channel whose key to rotate.
            redistribute: Publish the new key to current participants.

        Returns:
            The published distribution, if any.
        """
        await self.sender_keys.rotate(self.user_id, channel_id)
        if not redistribute:
            return None
        return await self.distribute(channel_id)

    # MARK: - Receiving

    async def handle_incoming(self, channel_id: str, sender_id: str, wire: str) -> DecryptResult:
        """
        Route an incoming wire string.

        Distributions are consumed and come back as `Control`; they must
        not be shown. Everything else decrypts to a displayable result.

        Args:
            channel_id: Channel the string arrived in.
            sender_id: User id the transport attributes the string to.
            wire: The received string.
        """
        kind = classify(wire)

        if kind is EnvelopeKind.DISTRIBUTION:
            return await self._handle_distribution(channel_id, sender_id, wire)

        sender_public_key = None
        if kind in (EnvelopeKind.DIRECT, EnvelopeKind.LEGACY_GROUP):
            sender_public_key = await self._public_key_for(channel_id, sender_id)

        return await self.engine.decrypt(wire, channel_id, self.user_id, sender_public_key)

    async def handle_incoming_text(self, channel_id: str, sender_id: str, wire: str) -> Optional[str]:
        """Like `handle_incoming`, rendered for display; None for distributions."""
        result = await self.handle_incoming(channel_id, sender_id, wire)
        if isinstance(result, Control):
            return None
        return render(result, self.config)

    async def _handle_distribution(self, channel_id: str, sender_id: str, wire: str) -> Control:
        if sender_id == self.user_id:
            return Control(accepted=False)

        try:
            envelope = decode_distribution(wire)
        except EnvelopeError:
            logger.warning("Ignoring malformed distribution from %s", sender_id, exc_info=True)
            return Control(accepted=False)

        if envelope.sender_id != sender_id or envelope.channel_id != channel_id:
            logger.warning(
                "Distribution claims sender %s in channel %s but arrived from %s in %s",
                envelope.sender_id,
                envelope.channel_id,
                sender_id,
                channel_id,
            )
            return Control(accepted=False)

        sender_public_key = await self._public_key_for(channel_id, sender_id)
        if sender_public_key is None:
            logger.warning("No public key for %s in channel %s", sender_id, channel_id)
            return Control(accepted=False)

        accepted = await self.distribution.process_distribution(envelope, self.user_id, sender_public_key)
        if not accepted and self.user_id in envelope.distributions:
            # The sender may have regenerated their identity since the last fetch.
            await self.refresh_participants(channel_id)
            participant = self._participants[channel_id].get(sender_id)
            if participant is not None and participant.public_key != sender_public_key:
                logger.info("Retrying distribution from %s with refreshed public key", sender_id)
                accepted = await self.distribution.process_distribution(
                    envelope, self.user_id, participant.public_key
                )
        return Control(accepted=accepted)

    # MARK: - Queries

    async def has_sender_key(self, channel_id: str, sender_id: str) -> bool:
        return await self.sender_keys.has_key(channel_id, sender_id)

    def clear_caches(self) -> None:
        """Drop in-memory key caches; persisted records are kept."""
        self.pairwise.clear_cache()
        self.sender_keys.clear_cache()
        self._participants.clear()

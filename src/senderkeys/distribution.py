"""
Sender-key distribution.

A distribution carries the sender's current sender key wrapped once per
channel participant with the pairwise key between the sender and that
participant. It is broadcast through the channel like any other message,
so every recipient looks up its own entry and ignores the rest.
"""

import logging
from typing import Iterable, Union

from .crypto import unwrap_key, wrap_key
from .envelope import DistributionEnvelope, decode_distribution, encode_distribution
from .identity import IdentityKeyStore
from .pairwise import PairwiseKeyAgreement
from .sender_keys import SenderKeyManager
from .types import (
    DecryptionError,
    EncryptionError,
    EnvelopeError,
    InvalidPublicKeyError,
    NoIdentityKeyError,
    ParticipantKey,
)

logger = logging.getLogger(__name__)


class DistributionProtocol:
    """Packs and unpacks sender-key distributions."""

    def __init__(
        self,
        identities: IdentityKeyStore,
        pairwise: PairwiseKeyAgreement,
        sender_keys: SenderKeyManager,
    ) -> None:
        self._identities = identities
        self._pairwise = pairwise
        self._sender_keys = sender_keys

    async def build_distribution(
        self,
        my_user_id: str,
        channel_id: str,
        participants: Iterable[ParticipantKey],
    ) -> DistributionEnvelope:
        """
        Wrap the local sender key for every participant except ourselves.

        A participant whose public key is unusable is logged and skipped;
        the rest still receive the key.

        Raises:
            NoIdentityKeyError: If the local user has no key pair.
        """
        if not await self._identities.has_identity(my_user_id):
            raise NoIdentityKeyError(my_user_id)

        record = await self._sender_keys.get_or_create_own_key(my_user_id, channel_id)

        distributions: dict[str, bytes] = {}
        for participant in participants:
            if participant.user_id == my_user_id:
                continue
            try:
                shared_key = await self._pairwise.get_or_derive_shared(my_user_id, participant.public_key)
                distributions[participant.user_id] = wrap_key(shared_key, record.key)
            except (InvalidPublicKeyError, EncryptionError, ValueError):
                logger.warning(
                    "Skipping sender key distribution to %s in channel %s",
                    participant.user_id,
                    channel_id,
                    exc_info=True,
                )

        logger.info(
            "Distributing sender key %s in channel %s to %d participant(s)",
            record.key_id,
            channel_id,
            len(distributions),
        )
        return DistributionEnvelope(
            sender_id=my_user_id,
            channel_id=channel_id,
            key_id=record.key_id,
            distributions=distributions,
        )

    async def create_distribution(
        self,
        my_user_id: str,
        channel_id: str,
        participants: Iterable[ParticipantKey],
    ) -> str:
        """Build a distribution and encode it for broadcast."""
        envelope = await self.build_distribution(my_user_id, channel_id, participants)
        return encode_distribution(envelope)

    async def process_distribution(
        self,
        distribution: Union[str, DistributionEnvelope],
        my_user_id: str,
        sender_public_key: str,
    ) -> bool:
        """
        Unwrap our entry of a distribution and cache the sender's key.

        Args:
            distribution: Wire string or decoded envelope.
            my_user_id: Local recipient.
            sender_public_key: Distributing sender's public key (JWK JSON string).

        Returns:
            True if the sender key was cached; False if the distribution has
            no entry for us or cannot be decrypted.

        Raises:
            NoIdentityKeyError: If the local user has no key pair.
        """
        if isinstance(distribution, str):
            try:
                envelope = decode_distribution(distribution)
            except EnvelopeError:
                logger.warning("Ignoring malformed sender key distribution", exc_info=True)
                return False
        else:
            envelope = distribution

        wrapped = envelope.distributions.get(my_user_id)
        if wrapped is None:
            logger.debug(
                "Distribution from %s in channel %s has no entry for %s",
                envelope.sender_id,
                envelope.channel_id,
                my_user_id,
            )
            return False

        try:
            shared_key = await self._pairwise.get_or_derive_shared(my_user_id, sender_public_key)
            sender_key = unwrap_key(shared_key, wrapped)
            await self._sender_keys.cache_remote_key(
                envelope.channel_id, envelope.sender_id, sender_key, envelope.key_id
            )
        except (DecryptionError, InvalidPublicKeyError, ValueError):
            logger.warning(
                "Failed to process sender key distribution from %s in channel %s",
                envelope.sender_id,
                envelope.channel_id,
                exc_info=True,
            )
            return False

        return True

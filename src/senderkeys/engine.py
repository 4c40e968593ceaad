"""
Message engine: encrypt and decrypt channel messages.

Once a sender key is cached, encrypting or decrypting a message costs one
AES-GCM operation regardless of channel size. Soft failures never raise
out of `decrypt`; they come back as `MissingKey` or `Corrupt` results.
"""

import logging
from typing import Optional

from .config import SenderKeysConfig
from .crypto import (
    decrypt_direct_message,
    decrypt_legacy_group_message,
    decrypt_sender_key_message,
    encrypt_direct_message,
    encrypt_sender_key_message,
)
from .distribution import DistributionProtocol
from .envelope import (
    EnvelopeKind,
    classify,
    decode_direct,
    decode_legacy_group,
    decode_sender_key_message,
    encode_direct,
    encode_sender_key_message,
)
from .pairwise import PairwiseKeyAgreement
from .sender_keys import SenderKeyManager
from .types import (
    Control,
    Corrupt,
    Decrypted,
    DecryptionError,
    DecryptResult,
    EnvelopeError,
    InvalidPublicKeyError,
    MissingKey,
    NotEncrypted,
    StorageError,
)

logger = logging.getLogger(__name__)

# Failures that leave a message undecryptable without affecting anything else
_SOFT_ERRORS = (EnvelopeError, DecryptionError, InvalidPublicKeyError, StorageError)


def render(result: DecryptResult, config: Optional[SenderKeysConfig] = None) -> str:
    """Render a decrypt result as display text."""
    config = config or SenderKeysConfig()
    if isinstance(result, (Decrypted, NotEncrypted)):
        return result.text
    if isinstance(result, MissingKey):
        return config.missing_key_placeholder
    if isinstance(result, Corrupt):
        return config.locked_placeholder
    return ""


class MessageEngine:
    """
    Encrypts with the local sender key and decrypts all four envelope kinds.

    Example usage:
        ```python
        wire = await engine.encrypt("hi bob", "alice", "c1")
        result = await engine.decrypt(wire, "c1")
        ```
    """

    def __init__(
        self,
        pairwise: PairwiseKeyAgreement,
        sender_keys: SenderKeyManager,
        distribution: DistributionProtocol,
        config: Optional[SenderKeysConfig] = None,
    ) -> None:
        self._pairwise = pairwise
        self._sender_keys = sender_keys
        self._distribution = distribution
        self.config = config or SenderKeysConfig()

    # MARK: - Sender-key messages

    async def encrypt(self, plaintext: str, my_user_id: str, channel_id: str) -> str:
        """
        Encrypt a channel message with the local sender key.

        The sender key is created on first use; the counter is advanced and
        persisted for every message.

        Returns:
            Sender-key message wire string.
        """
        record, counter = await self._sender_keys.next_counter(my_user_id, channel_id)
        envelope = encrypt_sender_key_message(plaintext, my_user_id, record.key, record.key_id, counter)
        return encode_sender_key_message(envelope)

    async def decrypt(
        self,
        wire: str,
        channel_id: str,
        my_user_id: Optional[str] = None,
        sender_public_key: Optional[str] = None,
    ) -> DecryptResult:
        """
        Decrypt any wire string received in a channel.

        Sender-key messages need only the channel. Direct and legacy group
        messages, and distributions, also need the local user and the
        sender's public key; without them they decode as `Corrupt` (or an
        unaccepted `Control` for distributions).

        Raises:
            NoIdentityKeyError: If a pairwise key is needed and the local
                user has no key pair.
        """
        kind = classify(wire)

        if kind is EnvelopeKind.PLAINTEXT:
            return NotEncrypted(text=wire)

        if kind is EnvelopeKind.SENDER_KEY_MESSAGE:
            return await self._decrypt_sender_key_message(wire, channel_id)

        if kind is EnvelopeKind.DISTRIBUTION:
            if my_user_id is None or sender_public_key is None:
                return Control(accepted=False)
            accepted = await self._distribution.process_distribution(wire, my_user_id, sender_public_key)
            return Control(accepted=accepted)

        if my_user_id is None or sender_public_key is None:
            return Corrupt(reason="sender public key unavailable")

        if kind is EnvelopeKind.LEGACY_GROUP:
            return await self.decrypt_legacy(wire, my_user_id, sender_public_key)
        return await self.decrypt_direct(wire, my_user_id, sender_public_key)

    async def decrypt_text(
        self,
        wire: str,
        channel_id: str,
        my_user_id: Optional[str] = None,
        sender_public_key: Optional[str] = None,
    ) -> str:
        """Decrypt and render: plaintext, or a placeholder on failure."""
        result = await self.decrypt(wire, channel_id, my_user_id, sender_public_key)
        return render(result, self.config)

    async def _decrypt_sender_key_message(self, wire: str, channel_id: str) -> DecryptResult:
        try:
            envelope = decode_sender_key_message(wire)
            record = await self._sender_keys.get_key(channel_id, envelope.sender_id)
            if record is None or record.key_id != envelope.key_id:
                logger.debug(
                    "No sender key %s for %s in channel %s",
                    envelope.key_id,
                    envelope.sender_id,
                    channel_id,
                )
                return MissingKey(channel_id=channel_id, sender_id=envelope.sender_id, key_id=envelope.key_id)

            text = decrypt_sender_key_message(envelope, record.key)
        except _SOFT_ERRORS as e:
            logger.warning("Sender key decryption failed in channel %s: %s", channel_id, e)
            return Corrupt(reason=str(e))

        return Decrypted(text=text, sender_id=envelope.sender_id, counter=envelope.counter)

    # MARK: - Direct and legacy formats

    async def encrypt_direct(self, plaintext: str, my_user_id: str, their_public_key: str) -> str:
        """Encrypt a 1:1 message with the pairwise key."""
        shared_key = await self._pairwise.get_or_derive_shared(my_user_id, their_public_key)
        return encode_direct(encrypt_direct_message(plaintext, shared_key))

    async def decrypt_direct(self, wire: str, my_user_id: str, sender_public_key: str) -> DecryptResult:
        """Decrypt a 1:1 message with the pairwise key."""
        try:
            envelope = decode_direct(wire)
            shared_key = await self._pairwise.get_or_derive_shared(my_user_id, sender_public_key)
            text = decrypt_direct_message(envelope, shared_key)
        except _SOFT_ERRORS as e:
            logger.warning("Direct message decryption failed: %s", e)
            return Corrupt(reason=str(e))
        return Decrypted(text=text)

    async def decrypt_legacy(self, wire: str, my_user_id: str, sender_public_key: str) -> DecryptResult:
        """Decrypt an old per-message wrapped-key group message; read-only."""
        try:
            envelope = decode_legacy_group(wire)
            shared_key = await self._pairwise.get_or_derive_shared(my_user_id, sender_public_key)
            text = decrypt_legacy_group_message(envelope, my_user_id, shared_key)
        except _SOFT_ERRORS as e:
            logger.warning("Legacy group message decryption failed: %s", e)
            return Corrupt(reason=str(e))

        if text is None:
            return Corrupt(reason=f"no wrapped key for {my_user_id}")
        return Decrypted(text=text)

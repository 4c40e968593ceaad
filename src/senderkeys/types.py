"""Type definitions for senderkeys."""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ParticipantKey:
    """A channel participant and their uploaded public key (JWK JSON string)."""
    user_id: str
    public_key: str


# Wire prefixes
DIRECT_PREFIX = "e2e::"
LEGACY_GROUP_PREFIX = "e2e-ch::"
SENDER_KEY_PREFIX = "e2e-sk::"
DISTRIBUTION_PREFIX = "e2e-skd::"

# Crypto constants
NONCE_SIZE = 12
TAG_SIZE = 16
SYMMETRIC_KEY_SIZE = 32

# Local store names
KEYPAIR_STORE = "keypairs"
SENDER_KEY_STORE = "sender_keys"

# Placeholders
LOCKED_PLACEHOLDER = "\U0001f512 [Encrypted message: cannot decrypt]"
MISSING_KEY_PLACEHOLDER = "\U0001f511 [Waiting for the sender's encryption key]"


# Decrypt results


@dataclass(frozen=True)
class Decrypted:
    """Successfully decrypted content."""
    text: str
    sender_id: Optional[str] = None
    counter: Optional[int] = None


@dataclass(frozen=True)
class NotEncrypted:
    """The wire value carried no encryption prefix."""
    text: str


@dataclass(frozen=True)
class MissingKey:
    """No local sender key matches the envelope (yet)."""
    channel_id: str
    sender_id: str
    key_id: str


@dataclass(frozen=True)
class Corrupt:
    """The envelope cannot be decrypted: bad tag, wrong key or malformed data."""
    reason: str


@dataclass(frozen=True)
class Control:
    """A key distribution, consumed internally and never shown."""
    accepted: bool


DecryptResult = Union[Decrypted, NotEncrypted, MissingKey, Corrupt, Control]


# Exception types
class SenderKeysError(Exception):
    """Base exception for senderkeys errors."""
    pass


class NoIdentityKeyError(SenderKeysError):
    """No local identity key pair exists for a user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No identity key found for user: {user_id}")
        self.user_id = user_id


class InvalidPublicKeyError(SenderKeysError):
    """Public key material could not be parsed or is not on P-256."""
    pass


class EnvelopeError(SenderKeysError):
    """Malformed or unrecognised wire envelope."""
    pass


class EncryptionError(SenderKeysError):
    """Encryption failed."""
    pass


class DecryptionError(SenderKeysError):
    """Decryption failed."""
    pass


class StorageError(SenderKeysError):
    """Storage operation failed."""
    pass

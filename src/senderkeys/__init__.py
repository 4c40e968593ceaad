"""
senderkeys - Sender-Keys group encryption for chat channels

Python implementation of channel end-to-end encryption using P-256 ECDH
pairwise keys to distribute per-sender AES-256-GCM keys.
"""

from .keys import generate_keypair, ecdh, public_key_to_material, public_key_from_material
from .crypto import seal, open_sealed, wrap_key, unwrap_key
from .envelope import (
    EnvelopeKind,
    DirectEnvelope,
    LegacyGroupEnvelope,
    SenderKeyMessageEnvelope,
    DistributionEnvelope,
    classify,
    is_distribution,
    is_sender_key_message,
    is_group_encrypted,
    is_direct_message,
    is_encrypted,
    encode_envelope,
    decode_envelope,
)
from .types import (
    ParticipantKey,
    Decrypted,
    NotEncrypted,
    MissingKey,
    Corrupt,
    Control,
    DecryptResult,
    DIRECT_PREFIX,
    LEGACY_GROUP_PREFIX,
    SENDER_KEY_PREFIX,
    DISTRIBUTION_PREFIX,
    LOCKED_PLACEHOLDER,
    MISSING_KEY_PLACEHOLDER,
    SenderKeysError,
    NoIdentityKeyError,
    InvalidPublicKeyError,
    EnvelopeError,
    EncryptionError,
    DecryptionError,
    StorageError,
)
from .config import SenderKeysConfig
from .storage import (
    KeyValueStore,
    InMemoryKeyValueStore,
    FileKeyValueStore,
    SharedKeyCache,
    SenderKeyCache,
)
from .identity import IdentityKeyStore
from .pairwise import PairwiseKeyAgreement
from .sender_keys import SenderKeyRecord, SenderKeyManager
from .distribution import DistributionProtocol
from .engine import MessageEngine, render
from .transport import ChannelPublisher, KeyDirectory
from .client import SenderKeyClient

__version__ = "0.1.0"

__all__ = [
    # Keys
    "generate_keypair",
    "ecdh",
    "public_key_to_material",
    "public_key_from_material",
    # Crypto
    "seal",
    "open_sealed",
    "wrap_key",
    "unwrap_key",
    # Envelope
    "EnvelopeKind",
    "DirectEnvelope",
    "LegacyGroupEnvelope",
    "SenderKeyMessageEnvelope",
    "DistributionEnvelope",
    "classify",
    "is_distribution",
    "is_sender_key_message",
    "is_group_encrypted",
    "is_direct_message",
    "is_encrypted",
    "encode_envelope",
    "decode_envelope",
    # Results
    "ParticipantKey",
    "Decrypted",
    "NotEncrypted",
    "MissingKey",
    "Corrupt",
    "Control",
    "DecryptResult",
    # Constants
    "DIRECT_PREFIX",
    "LEGACY_GROUP_PREFIX",
    "SENDER_KEY_PREFIX",
    "DISTRIBUTION_PREFIX",
    "LOCKED_PLACEHOLDER",
    "MISSING_KEY_PLACEHOLDER",
    # Errors
    "SenderKeysError",
    "NoIdentityKeyError",
    "InvalidPublicKeyError",
    "EnvelopeError",
    "EncryptionError",
    "DecryptionError",
    "StorageError",
    # Config
    "SenderKeysConfig",
    # Storage
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "SharedKeyCache",
    "SenderKeyCache",
    # Components
    "IdentityKeyStore",
    "PairwiseKeyAgreement",
    "SenderKeyRecord",
    "SenderKeyManager",
    "DistributionProtocol",
    "MessageEngine",
    "render",
    # Client
    "ChannelPublisher",
    "KeyDirectory",
    "SenderKeyClient",
]

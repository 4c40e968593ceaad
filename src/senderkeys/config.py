"""Configuration for senderkeys."""

from dataclasses import dataclass

from .types import (
    KEYPAIR_STORE,
    LOCKED_PLACEHOLDER,
    MISSING_KEY_PLACEHOLDER,
    SENDER_KEY_STORE,
)


@dataclass
class SenderKeysConfig:
    """Configuration shared by the key stores, the engine and the client."""

    keypair_store: str = KEYPAIR_STORE
    """Local store holding identity key pairs."""

    sender_key_store: str = SENDER_KEY_STORE
    """Local store holding sender-key records."""

    locked_placeholder: str = LOCKED_PLACEHOLDER
    """Rendered for messages that can never be decrypted locally."""

    missing_key_placeholder: str = MISSING_KEY_PLACEHOLDER
    """Rendered for messages whose sender key has not arrived yet."""

"""AES-256-GCM sealing and the per-format message crypto."""

import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .envelope import DirectEnvelope, LegacyGroupEnvelope, SenderKeyMessageEnvelope
from .types import NONCE_SIZE, SYMMETRIC_KEY_SIZE, DecryptionError, EncryptionError


def seal(key: bytes, plaintext: bytes) -> tuple[bytes, bytes]:
    """
    Encrypt with AES-256-GCM under a fresh random nonce.

    Args:
        key: 32-byte key
        plaintext: Data to encrypt

    Returns:
        Tuple of (nonce, ciphertext_with_tag)
    """
    if len(key) != SYMMETRIC_KEY_SIZE:
        raise EncryptionError(f"Key must be {SYMMETRIC_KEY_SIZE} bytes, got {len(key)}")
    nonce = os.urandom(NONCE_SIZE)
    return nonce, AESGCM(key).encrypt(nonce, plaintext, None)


def open_sealed(key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    """
    Decrypt AES-256-GCM data.

    Raises:
        DecryptionError: On tag mismatch, wrong key or malformed input.
    """
    if len(key) != SYMMETRIC_KEY_SIZE:
        raise DecryptionError(f"Key must be {SYMMETRIC_KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != NONCE_SIZE:
        raise DecryptionError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError("Authentication tag mismatch") from e


def wrap_key(wrapping_key: bytes, key: bytes) -> bytes:
    """Encrypt key material; returns nonce || ciphertext."""
    nonce, ciphertext = seal(wrapping_key, key)
    return nonce + ciphertext


def unwrap_key(wrapping_key: bytes, blob: bytes) -> bytes:
    """Inverse of `wrap_key`."""
    return open_sealed(wrapping_key, blob[:NONCE_SIZE], blob[NONCE_SIZE:])


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Plaintext is not valid UTF-8") from e


def encrypt_direct_message(plaintext: str, shared_key: bytes) -> DirectEnvelope:
    """Encrypt a 1:1 message with a pairwise key."""
    nonce, ciphertext = seal(shared_key, plaintext.encode("utf-8"))
    return DirectEnvelope(nonce=nonce, ciphertext=ciphertext)


def decrypt_direct_message(envelope: DirectEnvelope, shared_key: bytes) -> str:
    """Decrypt a 1:1 message with a pairwise key."""
    return _decode_text(open_sealed(shared_key, envelope.nonce, envelope.ciphertext))


def decrypt_legacy_group_message(
    envelope: LegacyGroupEnvelope,
    my_user_id: str,
    shared_key: bytes,
) -> Optional[str]:
    """
    Decrypt a legacy per-message wrapped-key group message.

    Args:
        envelope: The legacy envelope
        my_user_id: Recipient looking for their wrapped key
        shared_key: Pairwise key between the recipient and the sender

    Returns:
        The plaintext, or None if the message holds no key for this recipient
    """
    wrapped = envelope.wrapped_keys.get(my_user_id)
    if wrapped is None:
        return None

    message_key = unwrap_key(shared_key, wrapped)
    return _decode_text(open_sealed(message_key, envelope.nonce, envelope.ciphertext))


def encrypt_sender_key_message(
    plaintext: str,
    sender_id: str,
    sender_key: bytes,
    key_id: str,
    counter: int,
) -> SenderKeyMessageEnvelope:
    """Encrypt a channel message with a sender key."""
    nonce, ciphertext = seal(sender_key, plaintext.encode("utf-8"))
    return SenderKeyMessageEnvelope(
        sender_id=sender_id,
        key_id=key_id,
        counter=counter,
        nonce=nonce,
        ciphertext=ciphertext,
    )


def decrypt_sender_key_message(envelope: SenderKeyMessageEnvelope, sender_key: bytes) -> str:
    """Decrypt a channel message with a sender key."""
    return _decode_text(open_sealed(sender_key, envelope.nonce, envelope.ciphertext))

"""Envelope encoding, decoding and classification.

Every envelope is a text string: a literal prefix followed by base64 of
either raw bytes or a JSON object.

    Direct:        e2e::<b64(nonce[12] || ciphertext)>
    Legacy group:  e2e-ch::<b64(JSON{wrapped_keys, iv, ciphertext})>
    Distribution:  e2e-skd::<b64(JSON{sender, channel, key_id, distributions})>
    Sender-key:    e2e-sk::<b64(JSON{sid, kid, ctr, nonce, ciphertext})>

Classification is an exact prefix match and nothing more.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .types import (
    DIRECT_PREFIX,
    DISTRIBUTION_PREFIX,
    LEGACY_GROUP_PREFIX,
    NONCE_SIZE,
    SENDER_KEY_PREFIX,
    TAG_SIZE,
    EnvelopeError,
)


class EnvelopeKind(Enum):
    """Wire envelope kinds, plus PLAINTEXT for unprefixed strings."""
    DIRECT = "direct"
    LEGACY_GROUP = "legacy_group"
    DISTRIBUTION = "distribution"
    SENDER_KEY_MESSAGE = "sender_key_message"
    PLAINTEXT = "plaintext"


@dataclass(frozen=True)
class DirectEnvelope:
    """1:1 message sealed with the pairwise key."""
    nonce: bytes  # 12 bytes
    ciphertext: bytes  # message + 16-byte tag


@dataclass(frozen=True)
class LegacyGroupEnvelope:
    """Old per-message format: body key wrapped for every recipient."""
    wrapped_keys: dict  # user id -> wrap nonce (12) || wrapped key
    nonce: bytes
    ciphertext: bytes


@dataclass(frozen=True)
class SenderKeyMessageEnvelope:
    """Channel message sealed with the sender's current sender key."""
    sender_id: str
    key_id: str
    counter: int
    nonce: bytes
    ciphertext: bytes


@dataclass(frozen=True)
class DistributionEnvelope:
    """A sender key wrapped individually for each channel participant."""
    sender_id: str
    channel_id: str
    key_id: str
    distributions: dict = field(default_factory=dict)  # user id -> nonce (12) || wrapped key


Envelope = Union[DirectEnvelope, LegacyGroupEnvelope, SenderKeyMessageEnvelope, DistributionEnvelope]


# Classification


def classify(wire: str) -> EnvelopeKind:
    """Determine the envelope kind of a wire string from its prefix."""
    if not isinstance(wire, str):
        return EnvelopeKind.PLAINTEXT
    if wire.startswith(SENDER_KEY_PREFIX):
        return EnvelopeKind.SENDER_KEY_MESSAGE
    if wire.startswith(DISTRIBUTION_PREFIX):
        return EnvelopeKind.DISTRIBUTION
    if wire.startswith(LEGACY_GROUP_PREFIX):
        return EnvelopeKind.LEGACY_GROUP
    if wire.startswith(DIRECT_PREFIX):
        return EnvelopeKind.DIRECT
    return EnvelopeKind.PLAINTEXT


def is_distribution(wire: str) -> bool:
    return classify(wire) is EnvelopeKind.DISTRIBUTION


def is_sender_key_message(wire: str) -> bool:
    return classify(wire) is EnvelopeKind.SENDER_KEY_MESSAGE


def is_group_encrypted(wire: str) -> bool:
    """True for the legacy per-message wrapped-key group format."""
    return classify(wire) is EnvelopeKind.LEGACY_GROUP


def is_direct_message(wire: str) -> bool:
    return classify(wire) is EnvelopeKind.DIRECT


def is_encrypted(wire: str) -> bool:
    """True for any of the four envelope kinds."""
    return classify(wire) is not EnvelopeKind.PLAINTEXT


# Helpers


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(text: Any, what: str) -> bytes:
    if not isinstance(text, str):
        raise EnvelopeError(f"{what} must be a base64 string")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EnvelopeError(f"{what} is not valid base64") from e


def _encode_json(prefix: str, payload: dict) -> str:
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return prefix + _b64encode(body)


def _decode_json(wire: str, prefix: str) -> dict:
    if not wire.startswith(prefix):
        raise EnvelopeError(f"Expected prefix {prefix!r}")
    body = _b64decode(wire[len(prefix):], "envelope body")
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise EnvelopeError("Envelope body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise EnvelopeError("Envelope body must be a JSON object")
    return payload


def _require_str(payload: dict, name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value:
        raise EnvelopeError(f"Missing or invalid field: {name}")
    return value


def _nonce(data: bytes, what: str) -> bytes:
    if len(data) != NONCE_SIZE:
        raise EnvelopeError(f"{what} must be {NONCE_SIZE} bytes, got {len(data)}")
    return data


def _wrapped_map(value: Any, what: str) -> dict:
    """Decode a user id -> wrapped blob map; unreadable entries are dropped."""
    if not isinstance(value, dict):
        raise EnvelopeError(f"{what} must be an object")
    result = {}
    for user_id, blob in value.items():
        try:
            data = _b64decode(blob, f"{what}[{user_id}]")
        except EnvelopeError:
            continue
        if len(data) >= NONCE_SIZE + TAG_SIZE:
            result[str(user_id)] = data
    return result


# Direct


def encode_direct(envelope: DirectEnvelope) -> str:
    return DIRECT_PREFIX + _b64encode(envelope.nonce + envelope.ciphertext)


def decode_direct(wire: str) -> DirectEnvelope:
    if not wire.startswith(DIRECT_PREFIX):
        raise EnvelopeError(f"Expected prefix {DIRECT_PREFIX!r}")
    data = _b64decode(wire[len(DIRECT_PREFIX):], "direct payload")
    if len(data) < NONCE_SIZE + TAG_SIZE:
        raise EnvelopeError(f"Direct payload too short: {len(data)} bytes")
    return DirectEnvelope(nonce=data[:NONCE_SIZE], ciphertext=data[NONCE_SIZE:])


# Legacy group


def encode_legacy_group(envelope: LegacyGroupEnvelope) -> str:
    """Encode a legacy envelope. Only used to reproduce old history."""
    return _encode_json(
        LEGACY_GROUP_PREFIX,
        {
            "wrapped_keys": {uid: _b64encode(blob) for uid, blob in envelope.wrapped_keys.items()},
            "iv": _b64encode(envelope.nonce),
            "ciphertext": _b64encode(envelope.ciphertext),
        },
    )


def decode_legacy_group(wire: str) -> LegacyGroupEnvelope:
    payload = _decode_json(wire, LEGACY_GROUP_PREFIX)
    # Written as "iv" by older clients
    nonce_field = "iv" if "iv" in payload else "nonce"
    return LegacyGroupEnvelope(
        wrapped_keys=_wrapped_map(payload.get("wrapped_keys"), "wrapped_keys"),
        nonce=_nonce(_b64decode(payload.get(nonce_field), nonce_field), nonce_field),
        ciphertext=_b64decode(payload.get("ciphertext"), "ciphertext"),
    )


# Sender-key message


def encode_sender_key_message(envelope: SenderKeyMessageEnvelope) -> str:
    return _encode_json(
        SENDER_KEY_PREFIX,
        {
            "sid": envelope.sender_id,
            "kid": envelope.key_id,
            "ctr": envelope.counter,
            "nonce": _b64encode(envelope.nonce),
            "ciphertext": _b64encode(envelope.ciphertext),
        },
    )


def decode_sender_key_message(wire: str) -> SenderKeyMessageEnvelope:
    payload = _decode_json(wire, SENDER_KEY_PREFIX)
    counter = payload.get("ctr")
    if not isinstance(counter, int) or isinstance(counter, bool) or counter < 0:
        raise EnvelopeError("Missing or invalid field: ctr")
    return SenderKeyMessageEnvelope(
        sender_id=_require_str(payload, "sid"),
        key_id=_require_str(payload, "kid"),
        counter=counter,
        nonce=_nonce(_b64decode(payload.get("nonce"), "nonce"), "nonce"),
        ciphertext=_b64decode(payload.get("ciphertext"), "ciphertext"),
    )


# Distribution


def encode_distribution(envelope: DistributionEnvelope) -> str:
    return _encode_json(
        DISTRIBUTION_PREFIX,
        {
            "sender": envelope.sender_id,
            "channel": envelope.channel_id,
            "key_id": envelope.key_id,
            "distributions": {uid: _b64encode(blob) for uid, blob in envelope.distributions.items()},
        },
    )


def decode_distribution(wire: str) -> DistributionEnvelope:
    payload = _decode_json(wire, DISTRIBUTION_PREFIX)
    return DistributionEnvelope(
        sender_id=_require_str(payload, "sender"),
        channel_id=_require_str(payload, "channel"),
        key_id=_require_str(payload, "key_id"),
        distributions=_wrapped_map(payload.get("distributions"), "distributions"),
    )


_DECODERS = {
    EnvelopeKind.DIRECT: decode_direct,
    EnvelopeKind.LEGACY_GROUP: decode_legacy_group,
    EnvelopeKind.SENDER_KEY_MESSAGE: decode_sender_key_message,
    EnvelopeKind.DISTRIBUTION: decode_distribution,
}


def decode_envelope(wire: str) -> Envelope:
    """
    Decode any prefixed wire string.

    Raises:
        EnvelopeError: If the string is not an envelope or is malformed.
    """
    kind = classify(wire)
    if kind is EnvelopeKind.PLAINTEXT:
        raise EnvelopeError("Not an encrypted envelope")
    return _DECODERS[kind](wire)


def encode_envelope(envelope: Envelope) -> str:
    """Encode any envelope variant."""
    if isinstance(envelope, SenderKeyMessageEnvelope):
        return encode_sender_key_message(envelope)
    if isinstance(envelope, DistributionEnvelope):
        return encode_distribution(envelope)
    if isinstance(envelope, LegacyGroupEnvelope):
        return encode_legacy_group(envelope)
    if isinstance(envelope, DirectEnvelope):
        return encode_direct(envelope)
    raise EnvelopeError(f"Unknown envelope type: {type(envelope).__name__}")

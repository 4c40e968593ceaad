"""Tests for envelope classification and decoding."""

import base64
import json

import pytest
from senderkeys.envelope import (
    DirectEnvelope,
    DistributionEnvelope,
    EnvelopeKind,
    LegacyGroupEnvelope,
    SenderKeyMessageEnvelope,
    classify,
    decode_direct,
    decode_distribution,
    decode_envelope,
    decode_legacy_group,
    decode_sender_key_message,
    encode_envelope,
    is_direct_message,
    is_distribution,
    is_encrypted,
    is_group_encrypted,
    is_sender_key_message,
)
from senderkeys.types import EnvelopeError

NONCE = bytes(range(12))
BLOB = bytes(range(60))


def _json_wire(prefix: str, payload) -> str:
    return prefix + base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TestClassification:
    """Test exact-prefix classification."""

    @pytest.mark.parametrize(
        "wire, kind",
        [
            ("e2e::AAAA", EnvelopeKind.DIRECT),
            ("e2e-ch::AAAA", EnvelopeKind.LEGACY_GROUP),
            ("e2e-sk::AAAA", EnvelopeKind.SENDER_KEY_MESSAGE),
            ("e2e-skd::AAAA", EnvelopeKind.DISTRIBUTION),
            ("hello", EnvelopeKind.PLAINTEXT),
            ("", EnvelopeKind.PLAINTEXT),
        ],
    )
    def test_classify(self, wire: str, kind: EnvelopeKind) -> None:
        assert classify(wire) is kind

    @pytest.mark.parametrize(
        "text",
        [
            "e2e: hello",
            "e2e-sk: not really",
            "e2e-skd:almost",
            "e2e-ch:close",
            "E2E::upper case",
            " e2e::leading space",
            "talking about e2e-sk:: in a sentence",
            "e2e-s::",
        ],
    )
    def test_near_misses_are_plaintext(self, text: str) -> None:
        """Plaintext resembling a prefix is not treated as encrypted."""
        assert classify(text) is EnvelopeKind.PLAINTEXT
        assert not is_encrypted(text)

    def test_predicates(self) -> None:
        assert is_distribution("e2e-skd::x")
        assert not is_distribution("e2e-sk::x")
        assert is_sender_key_message("e2e-sk::x")
        assert not is_sender_key_message("e2e-skd::x")
        assert is_group_encrypted("e2e-ch::x")
        assert not is_group_encrypted("e2e::x")
        assert is_direct_message("e2e::x")
        assert not is_direct_message("e2e-ch::x")


class TestSenderKeyMessage:
    """Test the sender-key content format."""

    def test_wire_format(self) -> None:
        envelope = SenderKeyMessageEnvelope("alice", "epoch", 7, NONCE, b"ciphertext-bytes")
        wire = encode_envelope(envelope)

        assert wire.startswith("e2e-sk::")
        payload = json.loads(base64.b64decode(wire[len("e2e-sk::"):]))
        assert payload == {
            "sid": "alice",
            "kid": "epoch",
            "ctr": 7,
            "nonce": _b64(NONCE),
            "ciphertext": _b64(b"ciphertext-bytes"),
        }
        assert decode_envelope(wire) == envelope

    @pytest.mark.parametrize(
        "payload",
        [
            {"kid": "k", "ctr": 0, "nonce": _b64(NONCE), "ciphertext": "AA=="},
            {"sid": "a", "ctr": 0, "nonce": _b64(NONCE), "ciphertext": "AA=="},
            {"sid": "a", "kid": "k", "nonce": _b64(NONCE), "ciphertext": "AA=="},
            {"sid": "a", "kid": "k", "ctr": -1, "nonce": _b64(NONCE), "ciphertext": "AA=="},
            {"sid": "a", "kid": "k", "ctr": True, "nonce": _b64(NONCE), "ciphertext": "AA=="},
            {"sid": "a", "kid": "k", "ctr": 0, "nonce": _b64(b"short"), "ciphertext": "AA=="},
            {"sid": "a", "kid": "k", "ctr": 0, "nonce": "not base64!", "ciphertext": "AA=="},
            {"sid": "a", "kid": "k", "ctr": 0, "nonce": _b64(NONCE)},
        ],
    )
    def test_rejects_invalid_fields(self, payload: dict) -> None:
        with pytest.raises(EnvelopeError):
            decode_sender_key_message(_json_wire("e2e-sk::", payload))

    @pytest.mark.parametrize("body", ["!!!not-base64!!!", base64.b64encode(b"not json").decode(), _b64(b"[1, 2]")])
    def test_rejects_bad_body(self, body: str) -> None:
        with pytest.raises(EnvelopeError):
            decode_sender_key_message("e2e-sk::" + body)


class TestDistribution:
    """Test the distribution format."""

    def test_wire_format(self) -> None:
        envelope = DistributionEnvelope("alice", "c1", "epoch", {"bob": BLOB})
        wire = encode_envelope(envelope)

        assert wire.startswith("e2e-skd::")
        payload = json.loads(base64.b64decode(wire[len("e2e-skd::"):]))
        assert payload == {
            "sender": "alice",
            "channel": "c1",
            "key_id": "epoch",
            "distributions": {"bob": _b64(BLOB)},
        }
        assert decode_distribution(wire) == envelope

    def test_unreadable_entries_are_dropped(self) -> None:
        """One bad entry does not hide the others."""
        wire = _json_wire(
            "e2e-skd::",
            {
                "sender": "alice",
                "channel": "c1",
                "key_id": "epoch",
                "distributions": {"bob": _b64(BLOB), "carol": "%%%", "dave": _b64(b"tiny")},
            },
        )
        envelope = decode_distribution(wire)

        assert envelope.distributions == {"bob": BLOB}

    def test_requires_distribution_map(self) -> None:
        wire = _json_wire("e2e-skd::", {"sender": "alice", "channel": "c1", "key_id": "epoch"})
        with pytest.raises(EnvelopeError):
            decode_distribution(wire)


class TestLegacyAndDirect:
    """Test the legacy group and direct formats."""

    def test_legacy_reads_iv_field(self) -> None:
        wire = _json_wire(
            "e2e-ch::",
            {"wrapped_keys": {"bob": _b64(BLOB)}, "iv": _b64(NONCE), "ciphertext": _b64(b"body")},
        )
        envelope = decode_legacy_group(wire)

        assert envelope == LegacyGroupEnvelope({"bob": BLOB}, NONCE, b"body")
        assert decode_legacy_group(encode_envelope(envelope)) == envelope

    def test_legacy_accepts_nonce_field(self) -> None:
        wire = _json_wire(
            "e2e-ch::",
            {"wrapped_keys": {}, "nonce": _b64(NONCE), "ciphertext": _b64(b"body")},
        )
        assert decode_legacy_group(wire).nonce == NONCE

    def test_direct_splits_nonce(self) -> None:
        wire = "e2e::" + _b64(NONCE + BLOB)
        envelope = decode_direct(wire)

        assert envelope == DirectEnvelope(NONCE, BLOB)
        assert encode_envelope(envelope) == wire

    def test_direct_too_short(self) -> None:
        with pytest.raises(EnvelopeError):
            decode_direct("e2e::" + _b64(b"short"))

    def test_decode_plaintext_raises(self) -> None:
        with pytest.raises(EnvelopeError):
            decode_envelope("just text")

    def test_decoder_checks_prefix(self) -> None:
        with pytest.raises(EnvelopeError):
            decode_sender_key_message("e2e-skd::AAAA")

"""Tests for certissuer/services/signing.py."""

from __future__ import annotations

import re
import uuid

import pytest

from certissuer.services.signing import (
    CertificateSigner,
    canonical_payload,
    generate_certificate_number,
    make_verification_token,
    parse_verification_token,
    serialize_payload,
    to_base36,
)

TEMPLATE_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
CUSTOMER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")


@pytest.fixture
def signer():
    return CertificateSigner("unit-test-secret")


def _payload(data=None, number="CERT-ABC-000001"):
    return canonical_payload(
        TEMPLATE_ID, data or {"name": "Ada"}, number, CUSTOMER_ID
    )


class TestBase36:
    def test_zero(self):
        assert to_base36(0) == "0"

    def test_known_values(self):
        assert to_base36(35) == "Z"
        assert to_base36(36) == "10"
        assert to_base36(1295) == "ZZ"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            to_base36(-1)


class TestCertificateNumber:
    def test_format(self):
        number = generate_certificate_number()
        assert re.fullmatch(r"CERT-[0-9A-Z]+-[0-9A-Z]{6}", number)

    def test_timestamp_segment(self):
        number = generate_certificate_number(now_ms=36**3)
        assert number.startswith("CERT-1000-")

    def test_numbers_differ(self):
        numbers = {generate_certificate_number(now_ms=1) for _ in range(50)}
        assert len(numbers) > 1


class TestCanonicalPayload:
    def test_key_order_is_fixed(self):
        payload = _payload()
        assert list(payload) == [
            "templateId",
            "data",
            "certificateNumber",
            "customerId",
        ]

    def test_ids_are_strings(self):
        payload = _payload()
        assert payload["templateId"] == str(TEMPLATE_ID)
        assert payload["customerId"] == str(CUSTOMER_ID)

    def test_serialization_is_compact(self):
        body = serialize_payload({"a": 1, "b": "é"})
        assert body == '{"a":1,"b":"é"}'.encode()


class TestSigner:
    def test_deterministic(self, signer):
        assert signer.sign(_payload()) == signer.sign(_payload())

    def test_hex_sha256(self, signer):
        assert re.fullmatch(r"[0-9a-f]{64}", signer.sign(_payload()))

    def test_data_change_changes_signature(self, signer):
        assert signer.sign(_payload({"name": "Ada"})) != signer.sign(
            _payload({"name": "Grace"})
        )

    def test_number_change_changes_signature(self, signer):
        assert signer.sign(_payload(number="CERT-A-1")) != signer.sign(
            _payload(number="CERT-A-2")
        )

    def test_secret_changes_signature(self, signer):
        other = CertificateSigner("another-secret")
        assert signer.sign(_payload()) != other.sign(_payload())

    def test_verify_accepts_own_signature(self, signer):
        payload = _payload()
        assert signer.verify(payload, signer.sign(payload))

    def test_verify_rejects_tampered_data(self, signer):
        signature = signer.sign(_payload({"name": "Ada"}))
        assert not signer.verify(_payload({"name": "Eve"}), signature)

    def test_verify_rejects_empty_signature(self, signer):
        assert not signer.verify(_payload(), "")
        assert not signer.verify(_payload(), None)

    def test_verify_rejects_unserializable_payload(self, signer):
        assert not signer.verify({"data": object()}, "deadbeef")

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            CertificateSigner("")


class TestVerificationToken:
    def test_round_trip(self):
        token = make_verification_token("CERT-ABC-000001", "f00d")
        assert parse_verification_token(token) == ("CERT-ABC-000001", "f00d")

    def test_url_safe(self):
        token = make_verification_token("CERT-ABC-000001", "a" * 64)
        assert re.fullmatch(r"[A-Za-z0-9_=-]+", token)

    @pytest.mark.parametrize("token", ["not base64!!", "bm9jb2xvbg==", ""])
    def test_malformed_tokens(self, token):
        assert parse_verification_token(token) is None

"""Tests for webhook signature utilities (no DB needed)."""

from app.core.security import sign_payload, verify_signature

BODY = b'{"message": {"type": "call-start"}}'


def test_sign_and_verify():
    signature = sign_payload(BODY, "s3cret")

    assert verify_signature(BODY, signature, "s3cret")
    assert not verify_signature(BODY, signature, "other")
    assert not verify_signature(BODY + b" ", signature, "s3cret")


def test_verify_accepts_sha256_prefix():
    signature = "sha256=" + sign_payload(BODY, "s3cret")

    assert verify_signature(BODY, signature, "s3cret")


def test_verify_empty_signature():
    assert not verify_signature(BODY, "", "s3cret")

"""Tests for Clerk token handling."""

from unittest.mock import MagicMock, patch

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException
from jwt.algorithms import RSAAlgorithm

from pdfchat import auth
from pdfchat.config import settings


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def jwks(rsa_key, monkeypatch):
    """Serve a single-key JWKS without touching the network."""
    jwk = RSAAlgorithm.to_jwk(rsa_key.public_key(), as_dict=True)
    jwk["kid"] = "test-kid"
    monkeypatch.setattr(auth, "_jwks", {"keys": [jwk]})
    return jwk


def _token(rsa_key, **claims) -> str:
    pem = rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    payload = {"sub": "user_1", "iss": settings.clerk_issuer}
    payload.update(claims)
    return jwt.encode(payload, pem, algorithm="RS256", headers={"kid": "test-kid"})


def test_verify_token_accepts_valid_signature(rsa_key, jwks):
    payload = auth.verify_token(_token(rsa_key, email="a@example.com"))

    assert payload["sub"] == "user_1"
    assert payload["email"] == "a@example.com"


def test_verify_token_rejects_wrong_issuer(rsa_key, jwks):
    with pytest.raises(HTTPException) as exc_info:
        auth.verify_token(_token(rsa_key, iss="https://evil.example.com"))

    assert exc_info.value.status_code == 401


def _jwks_response(keys) -> MagicMock:
    response = MagicMock()
    response.json.return_value = {"keys": keys}
    return response


def test_verify_token_rejects_unknown_key(rsa_key, jwks, monkeypatch):
    monkeypatch.setattr(auth, "_jwks", {"keys": []})

    with patch("pdfchat.auth.requests.get", return_value=_jwks_response([])) as fetch:
        with pytest.raises(HTTPException) as exc_info:
            auth.verify_token(_token(rsa_key))

    assert exc_info.value.status_code == 401
    fetch.assert_called_once()


def test_unknown_key_triggers_one_jwks_refresh(rsa_key, jwks, monkeypatch):
    """A key rotated in after the set was cached is picked up without a restart."""
    monkeypatch.setattr(auth, "_jwks", {"keys": [{"kid": "retired-kid", "n": "AQAB", "e": "AQAB"}]})

    with patch("pdfchat.auth.requests.get", return_value=_jwks_response([jwks])) as fetch:
        payload = auth.verify_token(_token(rsa_key))
        auth.verify_token(_token(rsa_key))

    assert payload["sub"] == "user_1"
    fetch.assert_called_once()


def test_verify_token_rejects_garbage(jwks):
    with pytest.raises(HTTPException) as exc_info:
        auth.verify_token("not-a-token")

    assert exc_info.value.status_code == 401


class TestExtractUser:
    def test_reads_identity_and_name(self):
        user = auth.extract_user_from_payload({
            "sub": "user_9",
            "email_addresses": [{"email_address": "nine@example.com"}],
            "first_name": "Ada",
            "last_name": "Lovelace",
        })

        assert user.user_id == "user_9"
        assert user.email == "nine@example.com"
        assert user.display_name == "Ada Lovelace"

    def test_display_name_falls_back_to_email(self):
        user = auth.extract_user_from_payload({"sub": "user_9", "email": "nine@example.com"})

        assert user.display_name == "nine@example.com"

    def test_missing_subject_is_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            auth.extract_user_from_payload({"email": "nine@example.com"})

        assert exc_info.value.status_code == 401

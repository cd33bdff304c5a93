from __future__ import annotations

import asyncio

import pytest
from google.auth.exceptions import TransportError as GoogleTransportError

from webchat import identity
from webchat.identity import GoogleIdentityVerifier, IdentityClaim


CLIENT_ID = "1234.apps.googleusercontent.com"


def test_verify_returns_claim(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    def fake_verify(token, request, audience):
        seen["token"] = token
        seen["audience"] = audience
        return {"sub": "1001", "email": "alice@example.com", "name": "Alice"}

    monkeypatch.setattr(identity.google_id_token, "verify_oauth2_token", fake_verify)
    claim = asyncio.run(GoogleIdentityVerifier(CLIENT_ID).verify("tok"))

    assert claim == IdentityClaim(subject="1001", email="alice@example.com")
    assert claim.key == "alice@example.com"
    assert seen == {"token": "tok", "audience": CLIENT_ID}


@pytest.mark.parametrize("error", [ValueError("Token expired"), GoogleTransportError("no certs")])
def test_verify_failure_returns_none(monkeypatch: pytest.MonkeyPatch, error):
    def fake_verify(token, request, audience):
        raise error

    monkeypatch.setattr(identity.google_id_token, "verify_oauth2_token", fake_verify)
    assert asyncio.run(GoogleIdentityVerifier(CLIENT_ID).verify("tok")) is None


@pytest.mark.parametrize("client_id", ["", None, "REPLACE_WITH_YOUR_CLIENT_ID"])
def test_placeholder_client_id_skips_verification(monkeypatch: pytest.MonkeyPatch, client_id):
    def fake_verify(token, request, audience):  # pragma: no cover - must not be called
        raise AssertionError("verify_oauth2_token should not be called")

    monkeypatch.setattr(identity.google_id_token, "verify_oauth2_token", fake_verify)
    assert asyncio.run(GoogleIdentityVerifier(client_id).verify("tok")) is None


def test_missing_token_returns_none():
    assert asyncio.run(GoogleIdentityVerifier(CLIENT_ID).verify(None)) is None
    assert asyncio.run(GoogleIdentityVerifier(CLIENT_ID).verify("")) is None


def test_claim_key_falls_back_to_subject():
    claim = IdentityClaim.from_payload({"sub": "42"})
    assert claim.email is None
    assert claim.key == "42"


@pytest.mark.parametrize("token", [123, ["tok"], {"t": "tok"}])
def test_non_string_token_returns_none(monkeypatch: pytest.MonkeyPatch, token):
    def fake_verify(token, request, audience):  # pragma: no cover - must not be called
        raise AssertionError("verify_oauth2_token should not be called")

    monkeypatch.setattr(identity.google_id_token, "verify_oauth2_token", fake_verify)
    assert asyncio.run(GoogleIdentityVerifier(CLIENT_ID).verify(token)) is None

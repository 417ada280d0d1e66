"""Tests for the token issuer/verifier and the bearer-token dependency."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from starlette.requests import Request

from paytrack.core.security import (
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
    TokenService,
    get_token_from_request,
)

SECRET = "unit-test-secret-abcdefghijklmnopqrstuvwxyz"


@pytest.fixture
def tokens():
    return TokenService(SECRET, ttl_hours=24)


def _request(headers: dict) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/api/devices", "headers": raw})


def _flip_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    # First char carries six full bits of the MAC, so swapping it always changes it
    first = "A" if signature[0] != "A" else "B"
    return f"{header}.{payload}.{first}{signature[1:]}"


class TestIssueVerify:
    @pytest.mark.parametrize("user_id,username,email", [
        (1, "ACC001", "john@example.com"),
        (42, "jane", "jane@example.org"),
        (987654, "x", "x@y.z"),
    ])
    def test_round_trip_returns_same_identity(self, tokens, user_id, username, email):
        identity = tokens.verify(tokens.issue(user_id, username, email))

        assert identity.id == user_id
        assert identity.username == username
        assert identity.email == email
        assert identity.account_no == user_id

    def test_expiry_is_24_hours_after_issue(self, tokens):
        now = datetime.now(timezone.utc).replace(microsecond=0)
        identity = tokens.verify(tokens.issue(1, "ACC001", "john@example.com", now=now))

        assert identity.issued_at == now
        assert identity.expires_at - identity.issued_at == timedelta(hours=24)

    def test_same_inputs_same_token(self, tokens):
        now = datetime.now(timezone.utc)
        assert tokens.issue(1, "a", "a@b.c", now=now) == tokens.issue(1, "a", "a@b.c", now=now)

    @pytest.mark.parametrize("user_id,username,email", [
        (None, "ACC001", "john@example.com"),
        (1, "", "john@example.com"),
        (1, "ACC001", ""),
    ])
    def test_issue_requires_every_identity_field(self, tokens, user_id, username, email):
        with pytest.raises(ValueError):
            tokens.issue(user_id, username, email)

    def test_service_refuses_empty_secret(self):
        with pytest.raises(ValueError):
            TokenService("")


class TestVerifyFailures:
    def test_expired_token(self, tokens):
        issued = datetime.now(timezone.utc) - timedelta(hours=25)
        token = tokens.issue(1, "ACC001", "john@example.com", now=issued)

        with pytest.raises(TokenExpiredError):
            tokens.verify(token)

    def test_altered_signature(self, tokens):
        token = tokens.issue(1, "ACC001", "john@example.com")

        with pytest.raises(InvalidSignatureError):
            tokens.verify(_flip_signature(token))

    def test_signed_with_another_secret(self, tokens):
        other = TokenService("another-secret-entirely-0987654321")
        token = other.issue(1, "ACC001", "john@example.com")

        with pytest.raises(InvalidSignatureError):
            tokens.verify(token)

    def test_bad_signature_wins_over_expiry(self, tokens):
        issued = datetime.now(timezone.utc) - timedelta(hours=48)
        token = tokens.issue(1, "ACC001", "john@example.com", now=issued)

        with pytest.raises(InvalidSignatureError):
            tokens.verify(_flip_signature(token))

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b", "a.b.c", "###.###.###"])
    def test_malformed(self, tokens, token):
        with pytest.raises(MalformedTokenError):
            tokens.verify(token)

    def test_valid_signature_without_identity_claims(self, tokens):
        exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
        token = jwt.encode({"sub": "1", "exp": exp}, SECRET, algorithm="HS256")

        with pytest.raises(MalformedTokenError):
            tokens.verify(token)


class TestTokenExtraction:
    def test_bearer_header(self):
        assert get_token_from_request(_request({"Authorization": "Bearer abc.def.ghi"})) == "abc.def.ghi"

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": ""},
        {"Authorization": "Bearer"},
        {"Authorization": "Bearer "},
        {"Authorization": "Basic dXNlcjpwYXNz"},
        {"Authorization": "bearer abc.def.ghi"},
    ])
    def test_anything_else_counts_as_no_token(self, headers):
        assert get_token_from_request(_request(headers)) is None

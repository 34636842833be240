"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - Invite round trip recovers the email within 15 minutes
  - Invite / access tokens expire after 15 minutes (TTL boundary)
  - Refresh tokens carry no exp claim and keep verifying
  - Cross-class rejection: each token only verifies against its own secret
  - Tampered and garbage tokens surface as MalformedError
  - Cookie helpers write the documented flags, lifetimes and paths
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.responses import JSONResponse
from jose import jwt

from auth.errors import ExpiredError, MalformedError
from auth.tokens import TokenKind, TokenService, set_access_cookie, set_refresh_cookie


class TestInviteTokens:
    @pytest.mark.parametrize("email", ["a@x.com", "Mixed.Case+tag@example.org", "ü@例え.jp"])
    def test_round_trip_recovers_email(self, tokens: TokenService, email: str) -> None:
        claims = tokens.verify(tokens.issue_invite(email), TokenKind.invite)
        assert claims["email"] == email

    def test_valid_just_inside_ttl(self, make_tokens) -> None:
        """Minted 14 minutes ago -- still inside the 15-minute window."""
        token = make_tokens(timedelta(minutes=-14)).issue_invite("a@x.com")
        assert make_tokens(timedelta(0)).verify(token, TokenKind.invite)["email"] == "a@x.com"

    def test_expired_after_ttl(self, tokens: TokenService, make_tokens) -> None:
        """Minted 16 minutes ago -- past the 15-minute window."""
        token = make_tokens(timedelta(minutes=-16)).issue_invite("a@x.com")
        with pytest.raises(ExpiredError):
            tokens.verify(token, TokenKind.invite)

    def test_exp_is_fifteen_minutes_after_iat(self, tokens: TokenService) -> None:
        claims = tokens.verify(tokens.issue_invite("a@x.com"), TokenKind.invite)
        assert claims["exp"] - claims["iat"] == 15 * 60


class TestAccessAndRefreshTokens:
    def test_access_token_carries_user_id(self, tokens: TokenService) -> None:
        claims = tokens.verify(tokens.issue_access_token("user-1"), TokenKind.access)
        assert claims["user_id"] == "user-1"
        assert claims["exp"] - claims["iat"] == 15 * 60

    def test_access_token_expires(self, tokens: TokenService, make_tokens) -> None:
        token = make_tokens(timedelta(minutes=-16)).issue_access_token("user-1")
        with pytest.raises(ExpiredError):
            tokens.verify(token, TokenKind.access)

    def test_refresh_token_has_no_expiry(self, tokens: TokenService) -> None:
        claims = tokens.verify(tokens.issue_refresh_token("user-1"), TokenKind.refresh)
        assert claims["user_id"] == "user-1"
        assert "exp" not in claims

    def test_old_refresh_token_still_verifies(self, tokens: TokenService, make_tokens) -> None:
        """A refresh token minted 30 days ago still verifies -- only the cookie ages out."""
        token = make_tokens(timedelta(days=-30)).issue_refresh_token("user-1")
        assert tokens.verify(token, TokenKind.refresh)["user_id"] == "user-1"


class TestCrossClassRejection:
    @pytest.mark.parametrize("wrong_kind", [TokenKind.invite, TokenKind.refresh])
    def test_access_token_rejected_by_other_secrets(self, tokens: TokenService, wrong_kind: TokenKind) -> None:
        token = tokens.issue_access_token("user-1")
        assert tokens.verify(token, TokenKind.access)["user_id"] == "user-1"
        with pytest.raises(MalformedError):
            tokens.verify(token, wrong_kind)

    @pytest.mark.parametrize("wrong_kind", [TokenKind.invite, TokenKind.access])
    def test_refresh_token_rejected_by_other_secrets(self, tokens: TokenService, wrong_kind: TokenKind) -> None:
        with pytest.raises(MalformedError):
            tokens.verify(tokens.issue_refresh_token("user-1"), wrong_kind)

    def test_invite_token_cannot_pass_as_access(self, tokens: TokenService) -> None:
        with pytest.raises(MalformedError):
            tokens.verify(tokens.issue_invite("a@x.com"), TokenKind.access)


class TestMalformedTokens:
    def test_tampered_payload(self, tokens: TokenService) -> None:
        header, _payload, signature = tokens.issue_access_token("user-1").split(".")
        forged_payload = jwt.encode({"user_id": "admin"}, "attacker-key", algorithm="HS256").split(".")[1]
        with pytest.raises(MalformedError):
            tokens.verify(f"{header}.{forged_payload}.{signature}", TokenKind.access)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "eyJhbGciOiJIUzI1NiJ9.e30."])
    def test_garbage(self, tokens: TokenService, garbage: str) -> None:
        with pytest.raises(MalformedError):
            tokens.verify(garbage, TokenKind.refresh)

    def test_wrong_secret_and_tampering_raise_same_error(self, tokens: TokenService) -> None:
        other = TokenService("x" * 32, "y" * 32, "z" * 32)
        with pytest.raises(MalformedError):
            tokens.verify(other.issue_refresh_token("user-1"), TokenKind.refresh)


class TestCookieHelpers:
    def test_access_cookie_flags(self) -> None:
        resp = JSONResponse({})
        set_access_cookie(resp, "tok", secure=True)
        header = resp.headers["set-cookie"].lower()
        assert header.startswith("access_token=tok")
        assert "max-age=900" in header
        assert "path=/;" in header or header.endswith("path=/")
        assert "httponly" in header
        assert "secure" in header
        assert "samesite=strict" in header

    def test_refresh_cookie_scoped_to_refresh_path(self) -> None:
        resp = JSONResponse({})
        set_refresh_cookie(resp, "tok", path="/api/identity/refresh", secure=True)
        header = resp.headers["set-cookie"].lower()
        assert header.startswith("refresh_token=tok")
        assert "max-age=604800" in header
        assert "path=/api/identity/refresh" in header
        assert "httponly" in header
        assert "samesite=strict" in header

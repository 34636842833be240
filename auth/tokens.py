"""
auth/tokens.py -- Signed token issuance/verification and session cookies.

Security design decisions:
  JWT: python-jose with HS256. Three token classes, each signed with its own
       secret so a leaked invite secret cannot mint access tokens:

         invite   {email}    15 min   proves "this email was invited"
         access   {user_id}  15 min   proves "bearer is this user"
         refresh  {user_id}  no exp   proves "bearer may mint access tokens"

       The refresh token carries no exp claim; the 7-day cookie lifetime is
       the only retention limit and the token is never rotated.

  verify() raises ExpiredError or MalformedError. A token signed with the
       wrong secret and a tampered token both come out as MalformedError --
       jose cannot tell them apart and neither should callers.

  Secrets come in through the constructor. TokenService.from_settings() is the
       only bridge to core.config, called once at wiring time.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from auth.errors import ExpiredError, MalformedError

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"

INVITE_TOKEN_TTL = timedelta(minutes=15)
ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_COOKIE_TTL = timedelta(days=7)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


class TokenKind(str, enum.Enum):
    invite = "invite"
    access = "access"
    refresh = "refresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Mints and verifies invite, access and refresh tokens.

    Stateless apart from the secrets, so one instance is shared by every
    request.

    Usage:
        tokens = TokenService(invite_secret, access_secret, refresh_secret)
        raw = tokens.issue_access_token(user.user_id)
        claims = tokens.verify(raw, TokenKind.access)  # {"user_id": ..., ...}
    """

    def __init__(
        self,
        invite_secret: str,
        access_secret: str,
        refresh_secret: str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._secrets = {
            TokenKind.invite: invite_secret,
            TokenKind.access: access_secret,
            TokenKind.refresh: refresh_secret,
        }
        self._clock = clock or _utcnow

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(
            invite_secret=settings.invite_token_secret,
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_invite(self, email: str) -> str:
        """Sign {email} with the invite secret. Valid for 15 minutes.

        Does not look at the store -- inviting an address that already has an
        account is allowed; registration will then fail on the UNIQUE(email)
        constraint.
        """
        return self._sign(TokenKind.invite, {"email": email}, INVITE_TOKEN_TTL)

    def issue_access_token(self, user_id: str) -> str:
        """Sign {user_id} with the access secret. Valid for 15 minutes."""
        return self._sign(TokenKind.access, {"user_id": user_id}, ACCESS_TOKEN_TTL)

    def issue_refresh_token(self, user_id: str) -> str:
        """Sign {user_id} with the refresh secret. No expiry claim."""
        return self._sign(TokenKind.refresh, {"user_id": user_id}, None)

    def _sign(self, kind: TokenKind, claims: dict, ttl: timedelta | None) -> str:
        now = self._clock()
        payload = dict(claims, iat=now)
        if ttl is not None:
            payload["exp"] = now + ttl
        return jwt.encode(payload, self._secrets[kind], algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str, kind: TokenKind) -> dict:
        """Check signature and (when present) expiry against kind's secret.

        Returns the claims dict. Raises ExpiredError if the token is past its
        TTL, MalformedError for a bad signature, wrong secret, or garbage.
        """
        try:
            return jwt.decode(token, self._secrets[kind], algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredError(f"{kind.value} token expired") from exc
        except JWTError as exc:
            raise MalformedError(f"{kind.value} token invalid") from exc


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_access_cookie(response, token: str, secure: bool = True) -> None:
    """Write the access token as an httpOnly cookie valid for 15 minutes.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    path="/": every endpoint may authenticate with it.
    """
    seconds = int(ACCESS_TOKEN_TTL.total_seconds())
    response.set_cookie(
        ACCESS_COOKIE,
        value=token,
        max_age=seconds,
        expires=seconds,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )


def set_refresh_cookie(response, token: str, path: str, secure: bool = True) -> None:
    """Write the refresh token as an httpOnly cookie kept for 7 days.

    path is the refresh endpoint, so browsers only send the long-lived token
    to the one route that consumes it.
    """
    seconds = int(REFRESH_COOKIE_TTL.total_seconds())
    response.set_cookie(
        REFRESH_COOKIE,
        value=token,
        max_age=seconds,
        expires=seconds,
        path=path,
        httponly=True,
        secure=secure,
        samesite="strict",
    )


def clear_session_cookies(response, refresh_path: str, secure: bool = True) -> None:
    """Expire both session cookies. Path must match or browsers keep the old one."""
    response.delete_cookie(ACCESS_COOKIE, path="/", httponly=True, secure=secure, samesite="strict")
    response.delete_cookie(REFRESH_COOKIE, path=refresh_path, httponly=True, secure=secure, samesite="strict")

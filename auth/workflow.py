"""
auth/workflow.py -- Invite -> register -> login -> refresh orchestration.

There is no session object. Everything the workflow needs to know between
steps lives either in the UserStore or in a token the client hands back:

  invite    email            -> invite token (mailed as a registration link)
  register  invite + profile -> User row
  login     email + password -> access token + refresh token
  refresh   refresh token    -> new access token

Every step validates in a fixed order and the first failure wins. Nothing is
written before the final insert, so a rejected registration leaves no trace.

Token failures of any kind (expired, forged, wrong class, garbage) become a
plain Unauthorized. The internal reason travels in the exception's detail
for the server log only.

Layer rule: no imports from api/. core/ is used only by build_workflow().
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from auth.errors import NotificationError, Unauthorized, ValidationError, VerificationError
from auth.mailer import build_gateway
from auth.models import LoginResult, User
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher, password_too_long
from auth.tokens import INVITE_TOKEN_TTL, TokenKind, TokenService

if TYPE_CHECKING:
    from auth.mailer import NotificationGateway
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("identity.workflow")

# Authorization header values look like "Bearer <token>". The scheme prefix is
# a fixed 7 characters and is cut off without inspecting it.
_SCHEME_PREFIX_LEN = len("Bearer ")

_BAD_CREDENTIALS = "Invalid email or password."


def strip_scheme(authorization: str | None) -> str:
    """Return the token part of an Authorization header value ("" if absent)."""
    if not authorization:
        return ""
    return authorization[_SCHEME_PREFIX_LEN:].strip()


class IdentityWorkflow:
    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        gateway: NotificationGateway,
        frontend_url: str,
        invite_subject: str = "Invitation to newsfeed",
        notification_timeout: float = 10.0,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.gateway = gateway
        self.frontend_url = frontend_url.rstrip("/")
        self.invite_subject = invite_subject
        self.notification_timeout = notification_timeout

    # ------------------------------------------------------------------
    # Invite
    # ------------------------------------------------------------------

    async def invite(self, email: str | None) -> str:
        """Mint an invite token for email and mail it as a registration link.

        Returns the token once the gateway confirms delivery. Whether the
        address already has an account is not checked here.

        Raises ValidationError for a missing email, NotificationError if the
        gateway reports failure or does not answer within
        notification_timeout seconds.
        """
        if not email:
            raise ValidationError("Missing email")

        token = self.tokens.issue_invite(email)
        minutes = int(INVITE_TOKEN_TTL.total_seconds() // 60)
        link = f"{self.frontend_url}/register?registerToken={token}"
        body = f"Click this link to register: {link}\nThe link is valid for {minutes} minutes."

        try:
            delivered = await asyncio.wait_for(
                self.gateway.send(email, self.invite_subject, body),
                timeout=self.notification_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Invite mail to %s timed out after %.1fs", email, self.notification_timeout)
            raise NotificationError(detail="timeout") from exc
        if not delivered:
            logger.error("Invite mail to %s was not delivered", email)
            raise NotificationError(detail="delivery_failed")

        logger.info("Invite sent to %s", email)
        return token

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(
        self,
        authorization: str | None,
        username: str | None,
        email: str | None,
        password: str | None,
    ) -> User:
        """Create a user from a valid invite.

        Order matters: the invite is checked before the body so an
        unauthenticated caller learns nothing about field requirements, and
        the email binding is checked last because it needs both.

        Raises Unauthorized (missing/invalid/expired invite, email mismatch),
        ValidationError (missing field, password over MAX_PASSWORD_BYTES),
        StorageError (insert failed, including a duplicate email).
        """
        invite_token = strip_scheme(authorization)
        if not invite_token:
            logger.warning("Registration rejected: no invite token")
            raise Unauthorized("Invalid token", detail="missing_invite_token")
        claims = self._verify(invite_token, TokenKind.invite)

        if not username or not email or not password:
            raise ValidationError("Missing data")
        if password_too_long(password):
            raise ValidationError(f"Password longer than {MAX_PASSWORD_BYTES} bytes")

        if claims.get("email") != email:
            logger.warning("Registration rejected: invite is bound to a different email than %s", email)
            raise Unauthorized("Wrong email", detail="invite_email_mismatch")

        user = User(
            user_id=str(uuid.uuid4()),
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            created_at=datetime.now(timezone.utc).isoformat(),
            edited_at=None,
        )
        self.store.insert(user)
        logger.info("User %s registered (user_id=%s)", email, user.user_id)
        return user

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str | None, password: str | None) -> LoginResult:
        """Check credentials and mint an access/refresh token pair.

        Unknown email and wrong password are checked separately (and logged
        with different reasons) but look identical to the client. A dummy
        bcrypt check on the unknown-email branch keeps response times alike.
        """
        if not email or not password:
            raise ValidationError("Missing email or password")
        if password_too_long(password):
            raise ValidationError(f"Password longer than {MAX_PASSWORD_BYTES} bytes")

        user = self.store.find_by_email(email)
        if user is None:
            self.hasher.dummy_verify(password)
            logger.warning("Login rejected for %s: unknown email", email)
            raise Unauthorized(_BAD_CREDENTIALS, detail="unknown_email")

        if not self.hasher.verify(password, user.password_hash):
            logger.warning("Login rejected for %s: wrong password", email)
            raise Unauthorized(_BAD_CREDENTIALS, detail="wrong_password")

        result = LoginResult(
            user=user,
            access_token=self.tokens.issue_access_token(user.user_id),
            refresh_token=self.tokens.issue_refresh_token(user.user_id),
        )
        logger.info("User %s logged in", user.user_id)
        return result

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str | None) -> str:
        """Mint a new access token for the subject of refresh_token.

        The refresh token itself is left alone: it stays valid and is not
        reissued.
        """
        if not refresh_token:
            raise Unauthorized("Refresh token not found", detail="missing_refresh_token")

        claims = self._verify(refresh_token, TokenKind.refresh)
        user_id = claims.get("user_id")
        if not user_id:
            logger.warning("Refresh rejected: token has no user_id claim")
            raise Unauthorized("Invalid token", detail="missing_user_id_claim")

        logger.info("Access token refreshed for %s", user_id)
        return self.tokens.issue_access_token(user_id)

    # ------------------------------------------------------------------
    # Authenticate
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str | None) -> User:
        """Resolve an access token to its User. Any failure is Unauthorized."""
        if not access_token:
            raise Unauthorized("Authentication required.", detail="missing_access_token")
        claims = self._verify(access_token, TokenKind.access)
        user = self.store.find_by_id(claims.get("user_id", ""))
        if user is None:
            raise Unauthorized("Authentication required.", detail="unknown_user_id")
        return user

    def _verify(self, token: str, kind: TokenKind) -> dict:
        try:
            return self.tokens.verify(token, kind)
        except VerificationError as exc:
            logger.warning("Rejected %s token: %s", kind.value, exc)
            raise Unauthorized("Invalid token", detail=f"{kind.value}_token_{type(exc).__name__}") from exc


def build_workflow(settings: Settings, store: UserStore) -> IdentityWorkflow:
    """Wire an IdentityWorkflow from settings. The only place config is read."""
    return IdentityWorkflow(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenService.from_settings(settings),
        gateway=build_gateway(settings),
        frontend_url=settings.frontend_url,
        invite_subject=settings.invite_subject,
        notification_timeout=settings.notification_timeout_seconds,
    )

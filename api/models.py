"""
API request and response models for the identity REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
apart from the dataclasses in auth/models.py, which own the domain shape.
Route handlers map between the two.

Request fields are all Optional on purpose: presence checks belong to the
workflow, which must run them after the invite token check and report them
as 400 rather than FastAPI's default 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Character cap only. bcrypt's limit is 72 UTF-8 bytes, which the workflow
# checks; a 72-character non-ASCII password passes here and fails there.
_PASSWORD_MAX = 72

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class InviteRequest(BaseModel):
    """Request body for POST /api/identity/invite."""

    email: Optional[str] = Field(default=None, max_length=255)


class RegisterRequest(BaseModel):
    """Request body for POST /api/identity/register.

    The invite token is not part of the body; it arrives as
    Authorization: Bearer <token>.
    """

    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX)


class LoginRequest(BaseModel):
    """Request body for POST /api/identity/login."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class InviteResponse(BaseModel):
    """Response for POST /invite. register_token is only meaningful on 200."""

    model_config = ConfigDict(frozen=True)

    message: str
    register_token: str


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user_id: str


class LoginResponse(BaseModel):
    """Response for POST /login. The same tokens are also set as cookies."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    """Response for GET /me. password_hash is never part of any response."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    email: str
    created_at: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]

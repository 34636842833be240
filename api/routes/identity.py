"""
api/routes/identity.py -- Identity and session REST endpoints.

Routes (mounted under /api/identity):
  POST /invite    -- mail a registration link to an email address
  POST /register  -- create a user from a Bearer invite token + profile body
  POST /login     -- password login; sets access + refresh cookies
  POST /refresh   -- new access cookie from the refresh cookie
  POST /logout    -- clears both cookies
  GET  /me        -- current user info (requires an access token)

Handlers stay thin: read the transport (body, header, cookie), call the
workflow, write the transport (status, cookies). Workflow failures are
IdentityError subclasses and are rendered by the app-level handler in
api/main.py.

Security:
  [R1] POST /login and POST /invite are rate-limited per client IP.
  [R2] Cache-Control: no-store on every response that carries a token.
  [R3] The refresh cookie is scoped to the refresh path; it is read only here.

No `from __future__ import annotations` here: slowapi wraps the handlers and
FastAPI resolves string annotations against the wrapper's module globals.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    InviteRequest,
    InviteResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
)
from auth.dependencies import get_current_user, get_workflow
from auth.models import User
from auth.tokens import (
    ACCESS_TOKEN_TTL,
    REFRESH_COOKIE,
    clear_session_cookies,
    set_access_cookie,
    set_refresh_cookie,
)
from auth.workflow import IdentityWorkflow
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /invite:    public (rate-limited)
# - POST /register:  Bearer invite token
# - POST /login:     public (rate-limited)
# - POST /refresh:   refresh_token cookie
# - POST /logout:    public -- clearing cookies needs no prior auth
# - GET  /me:        access token (cookie or Bearer)
router = APIRouter()


@router.post("/invite", response_model=InviteResponse)
@limiter.limit(_settings.invite_rate_limit)  # [R1]
async def invite(
    request: Request,
    body: InviteRequest,
    workflow: IdentityWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Mint an invite token and mail it as a registration link.

    The token is echoed in the body only after the mail gateway reports
    success; a delivery failure surfaces as 500 notification_error.
    """
    token = await workflow.invite(body.email)
    resp = JSONResponse(
        status_code=200,
        content=InviteResponse(message="Email sent", register_token=token).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [R2]
    return resp


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    workflow: IdentityWorkflow = Depends(get_workflow),
) -> RegisterResponse:
    """Create a user. Does not log the new user in."""
    user = workflow.register(
        request.headers.get("Authorization"),
        body.username,
        body.email,
        body.password,
    )
    return RegisterResponse(message="User created", user_id=user.user_id)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(_settings.login_rate_limit)  # [R1]
def login(
    request: Request,
    body: LoginRequest,
    workflow: IdentityWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Authenticate with email and password; set both session cookies.

    The tokens are returned in the body as well as in cookies so non-browser
    clients can use the Authorization header instead.
    """
    settings = request.app.state.settings
    result = workflow.login(body.email, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=int(ACCESS_TOKEN_TTL.total_seconds()),
        ).model_dump(),
    )
    set_access_cookie(resp, result.access_token, secure=settings.secure_cookies)
    set_refresh_cookie(
        resp,
        result.refresh_token,
        path=settings.refresh_cookie_path,
        secure=settings.secure_cookies,
    )
    resp.headers["Cache-Control"] = "no-store"  # [R2]
    return resp


@router.post("/refresh", response_model=MessageResponse)
def refresh(
    request: Request,
    workflow: IdentityWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Issue a new access cookie. The refresh cookie is left untouched [R3]."""
    settings = request.app.state.settings
    access_token = workflow.refresh(request.cookies.get(REFRESH_COOKIE))
    resp = JSONResponse(status_code=200, content={"message": "Access token refreshed"})
    set_access_cookie(resp, access_token, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [R2]
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear both session cookies.

    Tokens are not revoked server-side; a copied refresh token stays valid.
    """
    settings = request.app.state.settings
    resp = JSONResponse(content={"message": "Logged out."})
    clear_session_cookies(resp, settings.refresh_cookie_path, secure=settings.secure_cookies)
    return resp


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=current_user.user_id,
        username=current_user.username,
        email=current_user.email,
        created_at=current_user.created_at,
    )

"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two places an access token may arrive, checked in priority order:
  1. JWT cookie ("access_token") -- set by POST /login and POST /refresh.
  2. Authorization: Bearer <token> header -- API clients reading the login body.

Both converge on IdentityWorkflow.authenticate(), which raises Unauthorized
on any failure. The app-level IdentityError handler turns that into a 401.

Layer rule: may import from fastapi (Request) because this module is part of
the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.tokens import ACCESS_COOKIE
from auth.workflow import IdentityWorkflow, strip_scheme


def get_workflow(request: Request) -> IdentityWorkflow:
    return request.app.state.workflow


def get_current_user(request: Request) -> User:
    """Require an access token. Raises Unauthorized if absent or invalid.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = strip_scheme(auth_header)
    return get_workflow(request).authenticate(token)

"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). Stores and the
workflow do the work; these only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered identity.

    user_id is a UUID4 string generated at registration and never changed.
    email is the login key; the store's UNIQUE constraint guarantees at most
    one User per address.

    password_hash is excluded from repr so it cannot leak through log lines
    or tracebacks. edited_at stays None -- profile edits are not implemented.
    """

    user_id: str
    username: str
    email: str
    password_hash: str = field(repr=False)
    created_at: str = ""  # ISO 8601 UTC
    edited_at: str | None = None


@dataclass
class LoginResult:
    """Outcome of a successful login: the user plus both minted tokens."""

    user: User
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)

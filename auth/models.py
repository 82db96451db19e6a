"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the gateway
do the work; these types only carry shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenClass(str, Enum):
    """Which signing key and horizon a token belongs to."""

    access = "access"
    refresh = "refresh"


@dataclass
class User:
    """A registered account.

    refresh_token holds the single currently valid refresh token for the
    account (one session per user). None means no live session: the user has
    never logged in, or logged out with server-side revocation.
    """

    email: str
    hashed_password: str
    id: int | None = None
    refresh_token: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a signed token."""

    user_id: int
    token_class: TokenClass
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

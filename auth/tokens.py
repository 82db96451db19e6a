"""
auth/tokens.py -- JWT issue/verify and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Two token classes, two secrets:
       access tokens  -- ACCESS_TOKEN_SECRET, short horizon (15 min default),
                         presented per request, never stored server side.
       refresh tokens -- REFRESH_TOKEN_SECRET, long horizon (7 days default),
                         carried in an httpOnly cookie, one live value per user
                         in the credential store.
       A token verified under the wrong class's key fails signature checks, and
       the "typ" claim is checked as well. Verification returns None on any
       failure -- the gateway turns that into a token Failure.

  jti: every token carries a random id, so two tokens minted for the same user
       in the same second are still different strings. Rotation relies on this:
       the new refresh token must never equal the one it replaces.

  Passwords: bcrypt with a per-hash random salt. The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered [C1].

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenClaims, TokenClass
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import CredentialStore

logger = logging.getLogger("tokengate.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

_SECRETS: dict[TokenClass, str] = {
    TokenClass.access: _settings.access_token_secret,
    TokenClass.refresh: _settings.refresh_token_secret,
}

_LIFETIMES: dict[TokenClass, timedelta] = {
    TokenClass.access: timedelta(seconds=_settings.access_token_expire_seconds),
    TokenClass.refresh: timedelta(seconds=_settings.refresh_token_expire_seconds),
}

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps password length at 72 characters (Pydantic field).
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("tokengate_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _create_token(user_id: int, token_class: TokenClass, expires_delta: timedelta | None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else _LIFETIMES[token_class])
    payload = {
        "user_id": user_id,
        "typ": token_class.value,
        # Fractional seconds so a rotated token's iat orders after the old one.
        "iat": now.timestamp(),
        "exp": expire,
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, _SECRETS[token_class], algorithm=_ALGORITHM)


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Encode a signed access token for user_id.

    Args:
        user_id:       Numeric user ID stored in the DB.
        expires_delta: Override for the configured access horizon. Tests pass
                       a negative delta to mint already-expired tokens.
    """
    return _create_token(user_id, TokenClass.access, expires_delta)


def create_refresh_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Encode a signed refresh token for user_id. Same arguments as create_access_token()."""
    return _create_token(user_id, TokenClass.refresh, expires_delta)


def decode_token(token: str, token_class: TokenClass) -> TokenClaims | None:
    """Verify signature, expiry and class of a token. Returns claims or None on any failure.

    Returning None (rather than raising) keeps callers simple: any invalid
    token is treated as unauthenticated.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, _SECRETS[token_class], algorithms=[_ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("user_id")
    if payload.get("typ") != token_class.value or not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    try:
        issued_at = datetime.fromtimestamp(float(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(float(payload["exp"]), tz=timezone.utc)
    except (KeyError, TypeError, ValueError):
        return None
    return TokenClaims(
        user_id=user_id,
        token_class=token_class,
        issued_at=issued_at,
        expires_at=expires_at,
    )


# ---------------------------------------------------------------------------
# User authentication (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate_user(store: CredentialStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.find_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        logger.info("Login rejected: unknown email")
        return None
    if not verify_password(password, user.hashed_password):
        logger.info("Login rejected: password mismatch for user %s", user.id)
        return None
    return user

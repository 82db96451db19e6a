"""
auth/service.py -- Auth gateway: the session lifecycle decisions.

    Anonymous --register--> Registered --login--> Authenticated
    Authenticated --refresh--> Authenticated (both tokens rotated)
    Authenticated --logout--> Registered

Every operation returns Success(...) or Failure(kind, message) from
auth.results; nothing here raises for an expected failure. HTTP concerns
(status codes, cookies, headers) live in api/routes/auth.py.

Refresh rotation [R1]:
  A refresh succeeds only if ALL hold:
    1. a token was presented,
    2. it verifies under the refresh key and is unexpired,
    3. its user_id maps to an existing user,
    4. the user's stored refresh token equals the presented one.
  Check 4 and the overwrite with the new token are one atomic
  compare-and-set in the store, so a token can be exchanged at most once.
  A well-formed but rotated-out token is rejected exactly like a forged one
  (replay defense) and logged as a warning.

Single session per user [R2]:
  login() overwrites the refresh slot, which revokes the refresh token of any
  earlier session for the same account.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.models import TokenClass, TokenPair, User
from auth.results import ErrorKind, Failure, Result, Success
from auth.store import CredentialStore, DuplicateEmailError
from auth.tokens import (
    authenticate_user,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
)

logger = logging.getLogger("tokengate.auth")

# bcrypt only looks at the first 72 bytes of a password.
_MAX_PASSWORD_BYTES = 72


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthGateway:
    """Ties the credential store, token issuer and token verifier together."""

    def __init__(self, store: CredentialStore, revoke_refresh_on_logout: bool = True) -> None:
        self.store = store
        self.revoke_refresh_on_logout = revoke_refresh_on_logout

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> Result[User]:
        """Create an account. The plaintext password is hashed and never stored."""
        email = normalize_email(email or "")
        if not email or not password:
            return Failure(ErrorKind.validation, "Email and password are required")
        if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
            return Failure(ErrorKind.validation, f"Password must be at most {_MAX_PASSWORD_BYTES} bytes")

        if self.store.find_by_email(email) is not None:
            return Failure(ErrorKind.validation, "User already exists")

        try:
            user = self.store.insert(User(email=email, hashed_password=hash_password(password)))
        except DuplicateEmailError:
            # Lost a race with a concurrent registration for the same email.
            return Failure(ErrorKind.validation, "User already exists")

        logger.info("Registered user %s", user.id)
        return Success(user)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> Result[TokenPair]:
        """Verify credentials, mint a token pair and record the refresh token [R2].

        Unknown email and wrong password produce the same message so the
        response does not reveal which accounts exist.
        """
        email = normalize_email(email or "")
        if not email or not password:
            return Failure(ErrorKind.validation, "Email and password are required")

        user = authenticate_user(self.store, email, password)
        if user is None:
            return Failure(ErrorKind.authentication, "Invalid email or password")

        pair = TokenPair(
            access_token=create_access_token(user.id),
            refresh_token=create_refresh_token(user.id),
        )
        self.store.set_refresh_token(user.id, pair.refresh_token)
        logger.info("User %s logged in", user.id)
        return Success(pair)

    # ------------------------------------------------------------------
    # Protected-resource authorization
    # ------------------------------------------------------------------

    def authorize(self, access_token: str | None) -> Result[int]:
        """Return the user id bound to a valid, unexpired access token."""
        if not access_token:
            return Failure(ErrorKind.token, "You need to login")
        claims = decode_token(access_token, TokenClass.access)
        if claims is None:
            return Failure(ErrorKind.token, "Invalid or expired access token")
        return Success(claims.user_id)

    # ------------------------------------------------------------------
    # Refresh with rotation [R1]
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str | None) -> Result[TokenPair]:
        if not refresh_token:
            return Failure(ErrorKind.token, "No refresh token")

        claims = decode_token(refresh_token, TokenClass.refresh)
        if claims is None:
            return Failure(ErrorKind.token, "Invalid or expired refresh token")

        user = self.store.find_by_id(claims.user_id)
        if user is None:
            logger.warning("Refresh token for unknown user %s", claims.user_id)
            return Failure(ErrorKind.token, "Unknown user")

        pair = TokenPair(
            access_token=create_access_token(user.id),
            refresh_token=create_refresh_token(user.id),
        )
        if not self.store.compare_and_set_refresh_token(user.id, refresh_token, pair.refresh_token):
            logger.warning("Rejected stale or reused refresh token for user %s", user.id)
            return Failure(ErrorKind.token, "Refresh token is no longer valid")

        logger.info("Rotated tokens for user %s", user.id)
        return Success(pair)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self, access_token: str | None) -> bool:
        """Revoke the server-side session if the caller proves who they are.

        The refresh cookie is scoped to the refresh route, so logout never
        sees it. A valid access token identifies the user instead. Returns
        True if the stored refresh token was cleared; False means only the
        client cookie goes away and the stored token stays valid until it
        expires or is rotated.
        """
        if not self.revoke_refresh_on_logout:
            logger.warning("Logout without server-side revocation (REVOKE_REFRESH_ON_LOGOUT=false)")
            return False

        claims = decode_token(access_token, TokenClass.access) if access_token else None
        if claims is None:
            logger.warning("Logout without a valid access token; stored refresh token left in place")
            return False

        self.store.set_refresh_token(claims.user_id, None)
        logger.info("User %s logged out; refresh token revoked", claims.user_id)
        return True

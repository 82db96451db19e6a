"""
auth/transport.py -- How tokens travel between client and server.

  Access token:  returned in the JSON body of /login and /refresh_token; the
                 client keeps it and sends "Authorization: Bearer <token>".
  Refresh token: set as an httpOnly cookie whose path is the refresh route,
                 so the browser sends it to /refresh_token and nowhere else.
                 JavaScript cannot read it (XSS mitigation).

Cookie attributes come from core.config.Settings:
  httponly=True always.
  path:     REFRESH_COOKIE_PATH (default /refresh_token).
  samesite: REFRESH_COOKIE_SAMESITE (default lax).
  secure:   SECURE_COOKIES (set true in production, HTTPS only).
  max_age:  the refresh-token horizon, so cookie and token expire together.

Layer rule: no imports from api/. Starlette request/response objects are
accepted duck-typed.
"""

from __future__ import annotations

from core.config import get_settings

_settings = get_settings()

_BEARER_PREFIX = "Bearer "


def set_refresh_cookie(response, token: str) -> None:
    """Write the refresh token as an httpOnly cookie scoped to the refresh route."""
    response.set_cookie(
        _settings.refresh_cookie_name,
        value=token,
        httponly=True,
        path=_settings.refresh_cookie_path,
        samesite=_settings.refresh_cookie_samesite,
        secure=_settings.secure_cookies,
        max_age=_settings.refresh_token_expire_seconds,
    )


def clear_refresh_cookie(response) -> None:
    """Expire the refresh cookie. Path must match the one it was set with."""
    response.delete_cookie(
        _settings.refresh_cookie_name,
        path=_settings.refresh_cookie_path,
        httponly=True,
        samesite=_settings.refresh_cookie_samesite,
        secure=_settings.secure_cookies,
    )


def read_refresh_cookie(request) -> str | None:
    return request.cookies.get(_settings.refresh_cookie_name) or None


def read_bearer_token(request) -> str | None:
    """Return the token from "Authorization: Bearer <token>", or None.

    The scheme match is case-insensitive; anything else in the header
    (Basic auth, a bare token) is treated as absent.
    """
    header = request.headers.get("Authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX.lower():
        return None
    return header[len(_BEARER_PREFIX) :].strip() or None

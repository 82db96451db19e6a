"""
api/routes/auth.py -- Authentication endpoints.

Routes:
  POST /register       -- create an account
  POST /login          -- password login; access token in body, refresh token cookie
  POST /logout         -- clear the refresh cookie; revoke the stored session if possible
  POST /protected      -- example protected resource (Bearer access token)
  POST /refresh_token  -- rotate both tokens using the refresh cookie

Handlers are plain `def` functions: bcrypt and JWT signing are CPU-bound, and
Starlette runs sync endpoints in its worker thread pool, so one slow hash does
not stall other requests.

Security:
  [H2] POST /login and POST /register are rate-limited per IP.
  [C1] authenticate_user() provides timing equalization -- the gateway uses it.
  [M5] Cache-Control: no-store on every response that carries a token.
  Refresh failures are answered with 200 {"accesstoken": ""}: a first visit
  with no cookie is the normal case, not an error.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import credential_rate_limit, limiter
from api.models import (
    CredentialsRequest,
    ErrorResponse,
    LoginResponse,
    LogoutResponse,
    MessageResponse,
    ProtectedResponse,
    RefreshResponse,
)
from auth.dependencies import get_gateway, require_user_id
from auth.results import ErrorKind, Failure
from auth.service import AuthGateway, normalize_email
from auth.transport import clear_refresh_cookie, read_bearer_token, read_refresh_cookie, set_refresh_cookie

# Auth policy:
# - POST /register:       public, rate-limited
# - POST /login:          public, rate-limited
# - POST /logout:         public -- clearing a cookie needs no prior auth
# - POST /refresh_token:  public -- authenticated by the refresh cookie itself
# - POST /protected:      requires a valid access token (require_user_id)
router = APIRouter()

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation: 400,
    ErrorKind.authentication: 401,
    ErrorKind.token: 401,
}


def _failure_response(failure: Failure) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_BY_KIND[failure.kind],
        content=ErrorResponse(error=failure.message, code=failure.kind.value).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", response_model=MessageResponse)
@limiter.limit(credential_rate_limit)  # [H2]
def register(
    request: Request,
    body: CredentialsRequest,
    gateway: AuthGateway = Depends(get_gateway),
) -> JSONResponse:
    """Create a user. Duplicate emails are rejected with a validation error."""
    result = gateway.register(body.email, body.password)
    if isinstance(result, Failure):
        return _failure_response(result)
    return JSONResponse(content=MessageResponse(message="User created").model_dump())


@router.post("/login", response_model=LoginResponse)
@limiter.limit(credential_rate_limit)  # [H2]
def login(
    request: Request,
    body: CredentialsRequest,
    gateway: AuthGateway = Depends(get_gateway),
) -> JSONResponse:
    """Authenticate with email and password.

    The access token goes in the body for the client to hold in memory; the
    refresh token goes in an httpOnly cookie only the refresh route receives.
    """
    result = gateway.login(body.email, body.password)
    if isinstance(result, Failure):
        resp = _failure_response(result)
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    pair = result.value
    content = LoginResponse(accesstoken=pair.access_token, email=normalize_email(body.email))
    resp = JSONResponse(content=content.model_dump())
    set_refresh_cookie(resp, pair.refresh_token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/logout", response_model=LogoutResponse)
def logout(request: Request, gateway: AuthGateway = Depends(get_gateway)) -> JSONResponse:
    """Clear the refresh cookie.

    If the request also carries a valid Bearer access token, the stored
    refresh token is revoked as well; session_revoked reports which happened.
    """
    revoked = gateway.logout(read_bearer_token(request))
    resp = JSONResponse(content=LogoutResponse(message="Logged out", session_revoked=revoked).model_dump())
    clear_refresh_cookie(resp)
    return resp


@router.post("/refresh_token", response_model=RefreshResponse)
def refresh_token(request: Request, gateway: AuthGateway = Depends(get_gateway)) -> JSONResponse:
    """Exchange the refresh cookie for a new access token and a rotated refresh cookie."""
    result = gateway.refresh(read_refresh_cookie(request))
    if isinstance(result, Failure):
        resp = JSONResponse(content=RefreshResponse(accesstoken="").model_dump())
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    pair = result.value
    resp = JSONResponse(content=RefreshResponse(accesstoken=pair.access_token).model_dump())
    set_refresh_cookie(resp, pair.refresh_token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/protected", response_model=ProtectedResponse)
def protected(user_id: int = Depends(require_user_id)) -> ProtectedResponse:
    """Return protected data. 401 unless the Bearer access token is valid."""
    return ProtectedResponse(data="This is protected data.")

"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_gateway() returns the AuthGateway wired into app.state by the lifespan.
require_user_id() authenticates a request by its Bearer access token and
raises HTTP 401 otherwise. There is no implicit refresh: a client holding an
expired access token must call /refresh_token itself.

Layer rule: auth/dependencies.py may import from fastapi (for Depends/
HTTPException/Request) because this module is part of the FastAPI dependency
injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.results import Failure
from auth.service import AuthGateway
from auth.transport import read_bearer_token


def get_gateway(request: Request) -> AuthGateway:
    return request.app.state.gateway


def require_user_id(request: Request, gateway: AuthGateway = Depends(get_gateway)) -> int:
    """Require a valid access token. Raises HTTP 401 if it is missing, expired or forged.

    Use as a FastAPI dependency:
        @router.post("/protected")
        def route(user_id: int = Depends(require_user_id)): ...
    """
    result = gateway.authorize(read_bearer_token(request))
    if isinstance(result, Failure):
        raise HTTPException(
            status_code=401,
            detail={"code": result.kind.value, "message": result.message},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.value

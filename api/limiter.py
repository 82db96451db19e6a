"""
api/limiter.py -- Shared slowapi rate limiter for the credential endpoints.

api/main.py mounts it (app.state.limiter + SlowAPIMiddleware) and
api/routes/auth.py applies it to /login and /register with
@limiter.limit(credential_rate_limit). Counters are keyed by client IP in one
in-memory store, so every route must use this single instance.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def credential_rate_limit() -> str:
    """Current LOGIN_RATE_LIMIT, read per request so a reconfigured limit applies without re-import."""
    return get_settings().login_rate_limit

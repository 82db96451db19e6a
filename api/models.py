"""
API request and response models for TokenGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Field names follow the wire format existing clients already use
(e.g. "accesstoken" rather than "access_token").
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Deliberately loose: one "@" with something on both sides. Deliverability is
# not our concern, uniqueness is.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /register and POST /login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    # bcrypt ignores input past 72 bytes; the gateway re-checks the byte length.
    password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class LoginResponse(BaseModel):
    """Body of a successful POST /login. The refresh token travels in a cookie."""

    model_config = ConfigDict(frozen=True)

    accesstoken: str
    email: str


class RefreshResponse(BaseModel):
    """Body of POST /refresh_token.

    accesstoken is the empty string when the refresh was refused; clients
    treat that as "not authenticated", not as a transport failure.
    """

    model_config = ConfigDict(frozen=True)

    accesstoken: str


class LogoutResponse(BaseModel):
    """session_revoked tells the client whether the stored refresh token was cleared."""

    model_config = ConfigDict(frozen=True)

    message: str
    session_revoked: bool


class ProtectedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: str


class ErrorResponse(BaseModel):
    """Uniform error envelope: {"error": <message>, "code": <kind>}."""

    model_config = ConfigDict(frozen=True)

    error: str
    code: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)

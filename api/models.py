"""
API request and response models for mintgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Presence is the only validation: both fields are opaque strings and must be
    non-empty. An empty field is a 422, rejected before the Authenticator runs.
    max_length keeps request bodies bounded; bcrypt itself reads 72 bytes.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1024)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Successful login: the sanitized identity plus its signed token."""

    model_config = ConfigDict(frozen=True)

    username: str
    role: str
    token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds.")


class MeResponse(BaseModel):
    """Claims of the token presented on GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    username: str
    role: str
    issued_at: datetime
    expires_at: datetime


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]

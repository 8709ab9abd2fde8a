"""
api/routes/v1/auth.py -- Login and identity REST endpoints.

Routes:
  POST /api/v1/auth/login   -- verify username/password; return identity token
  GET  /api/v1/auth/me      -- claims of the presented Bearer token (requires auth)

Security:
  The Authenticator returns None for every failure reason, and this route
  turns None into one fixed 401 body. Unknown username, wrong password and
  ambiguous record are indistinguishable to the client.
  Cache-Control: no-store on every login response, success or failure.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, MeResponse
from auth.authenticator import Authenticator
from auth.dependencies import get_current_identity
from auth.models import TokenClaims
from auth.tokens import TOKEN_LIFETIME

# Auth policy:
# - POST /api/v1/auth/login: public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:    requires auth (get_current_identity)
router = APIRouter()

_BAD_CREDENTIALS = ErrorResponse(
    error=ErrorDetail(code="bad_credentials", message="Username or password is incorrect.")
).model_dump(exclude_none=True)


# Sync def on purpose: FastAPI runs it in the worker threadpool, so the
# deliberately slow bcrypt check never blocks the event loop and concurrent
# logins verify in parallel.
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a signed 24h identity token."""
    authenticator: Authenticator = request.app.state.authenticator
    result = authenticator.authenticate(body.username, body.password)
    if result is None:
        resp = JSONResponse(status_code=401, content=_BAD_CREDENTIALS)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            username=result.username,
            role=result.role,
            token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=int(TOKEN_LIFETIME.total_seconds()),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(identity: TokenClaims = Depends(get_current_identity)) -> MeResponse:
    """Return the verified claims of the caller's identity token."""
    return MeResponse(
        username=identity.subject,
        role=identity.role,
        issued_at=identity.issued_at,
        expires_at=identity.expires_at,
    )

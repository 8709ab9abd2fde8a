"""
auth/dependencies.py -- FastAPI Depends() helpers for the downstream authorization layer.

Routes that need a caller's identity accept the token minted by the
Authenticator as an "Authorization: Bearer <token>" header. Verification
uses the same signing key the Authenticator holds, read from
app.state.authenticator so there is exactly one key per process.

try_get_current_identity() is the soft variant (returns None on failure).
get_current_identity() wraps it and raises HTTP 401 if unauthenticated.
require_role() builds a dependency that additionally raises HTTP 403.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.authenticator import Authenticator
from auth.models import TokenClaims
from auth.tokens import decode_identity_token


def try_get_current_identity(request: Request) -> TokenClaims | None:
    """Return verified claims from the Bearer header, or None. Never raises."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    if not token:
        return None
    authenticator: Authenticator = request.app.state.authenticator
    return decode_identity_token(token, authenticator.secret_key)


def get_current_identity(request: Request) -> TokenClaims:
    """Require a valid identity token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: TokenClaims = Depends(get_current_identity)): ...
    """
    identity = try_get_current_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def require_role(role: str) -> Callable[[Request], TokenClaims]:
    """Build a dependency that requires the token's role claim to equal role.

    Raises HTTP 401 if unauthenticated, HTTP 403 if the role differs:
        @router.get("/admin-only")
        def route(identity: TokenClaims = Depends(require_role("admin"))): ...
    """

    def dependency(request: Request) -> TokenClaims:
        identity = get_current_identity(request)
        if identity.role != role:
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"Role '{role}' required."},
            )
        return identity

    return dependency

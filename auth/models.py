"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The snapshot loader and
the Authenticator do the work; these only own the shape.

All three are frozen: records are shared read-only across every concurrent
authentication call and must not change after the snapshot is built.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class IdentityRecord:
    """One principal that can authenticate.

    password_hash is a self-describing bcrypt string ($2b$<cost>$<salt+digest>),
    never the plaintext. It is kept out of repr() so a stray log line or
    traceback cannot leak it.
    """

    username: str
    password_hash: str = field(repr=False)
    role: str


@dataclass(frozen=True)
class AuthResult:
    """Sanitized view of an IdentityRecord returned after a successful login.

    Carries the serialized identity token; never the password hash.
    """

    username: str
    role: str
    token: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an identity token, as seen by a downstream consumer."""

    subject: str
    role: str
    issued_at: datetime  # timezone-aware UTC
    expires_at: datetime  # issued_at + 24h

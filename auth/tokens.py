"""
auth/tokens.py -- Password hashing and identity token encode/decode.

Security design decisions:
  Tokens: python-jose with HS256. A token carries exactly sub (username),
       role, iat and exp (iat + 24h). Signing and verification take the key as
       an argument -- the Authenticator and the downstream dependency both get
       it injected from Settings, so no module here holds a key of its own.
       Verification returns None on any failure; the route layer turns that
       into a 401.

  Passwords: bcrypt, used directly. The hash is self-describing: cost and
       salt are embedded in the $2b$NN$... string, so no separate salt column
       exists. dummy_hash() lets the Authenticator run a full bcrypt check even
       when no usable record exists, so response time does not reveal whether
       a username exists.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenClaims

logger = logging.getLogger("mintgate.auth")

ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(hours=24)

_REQUIRED_CLAIMS = ("sub", "role", "iat", "exp")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes of input; longer passwords are
    truncated before hashing, the same way verify_password() truncates them.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed hash is a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = 12) -> str:
    """Return the timing-equalization hash for the given bcrypt cost.

    A miss must cost the same as a wrong password, so the cost has to match
    the one enrollment uses. Cached per cost so repeated Authenticator
    construction does not pay for a fresh hash.
    """
    return hash_password("mintgate_timing_dummy", rounds=rounds)


# ---------------------------------------------------------------------------
# Identity token encode / decode
# ---------------------------------------------------------------------------


def create_identity_token(
    username: str,
    role: str,
    secret_key: str | bytes,
    now: datetime | None = None,
) -> str:
    """Encode a signed identity token valid for [now, now + 24h).

    Args:
        username:   Becomes the sub claim.
        role:       Single role tag, copied verbatim into the role claim.
        secret_key: HMAC key shared with every downstream verifier.
        now:        Issue time. Defaults to the current UTC time; tests pass a
                    fixed value to pin iat/exp.
    """
    issued_at = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    # Float NumericDates keep sub-second precision, so two logins in the same
    # second still carry different iat values.
    payload = {
        "sub": username,
        "role": role,
        "iat": issued_at.timestamp(),
        "exp": (issued_at + TOKEN_LIFETIME).timestamp(),
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def decode_identity_token(
    token: str,
    secret_key: str | bytes,
    now: datetime | None = None,
) -> TokenClaims | None:
    """Verify a token's signature and expiry. Returns TokenClaims or None on any failure.

    With now=None, python-jose checks exp against the wall clock. With an
    explicit now, the signature is still verified by jose but expiry is
    evaluated against the supplied instant instead (the token is valid while
    now < exp).
    """
    options = {"verify_exp": now is None}
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM], options=options)
    except (JWTError, TypeError):
        # jose raises TypeError from its own iat/exp checks on a null or list value
        return None

    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        return None
    if not all(_is_numeric_date(payload[claim]) for claim in ("iat", "exp")):
        logger.warning("Identity token with non-numeric iat/exp rejected")
        return None
    if now is not None and _as_utc(now).timestamp() >= payload["exp"]:
        return None

    try:
        return TokenClaims(
            subject=payload["sub"],
            role=payload["role"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (ValueError, OverflowError, OSError):
        logger.warning("Identity token with out-of-range iat/exp rejected")
        return None


def _as_utc(moment: datetime) -> datetime:
    """Treat a naive datetime as UTC."""
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _is_numeric_date(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)

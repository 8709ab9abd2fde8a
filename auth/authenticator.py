"""
auth/authenticator.py -- Verify a credential pair, then mint an identity token.

authenticate() is the only security-critical decision in mintgate:

  1. lookup     -- exactly one record must carry the submitted username
  2. verify     -- bcrypt check of the password against that record's hash
  3. mint       -- HS256 token {sub, role, iat, exp = iat + 24h}
  4. sanitize   -- AuthResult(username, role, token); the hash never leaves

Every failure (unknown user, wrong password, ambiguous record) returns None.
Callers cannot tell them apart, which prevents username enumeration. The
reason is still logged so operators can spot an ambiguous record.

Timing: when step 1 fails, a bcrypt check still runs against a dummy hash of
the enrollment cost (bcrypt_rounds), so a miss costs the same as a wrong
password.

Concurrency: the snapshot and the key are immutable after __init__ and no
per-call state is kept on self. Calls from many threads at once are safe, and
bcrypt releases the GIL while hashing, so verifications actually run in
parallel.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from auth.models import AuthResult
from auth.snapshot import CredentialSnapshot, RecordSource, load_snapshot
from auth.tokens import create_identity_token, dummy_hash, verify_password

logger = logging.getLogger("mintgate.auth")


class FailureReason(str, Enum):
    """Internal diagnostic for a failed login. Logged, never returned."""

    not_found = "not_found"
    mismatch = "mismatch"
    ambiguous = "ambiguous"


class Authenticator:
    """Holds the credential snapshot and the signing key for the life of the process.

    Usage:
        authenticator = Authenticator.from_store(RecordStore(url), settings.secret_key, settings.bcrypt_rounds)
        result = authenticator.authenticate("alice", "wonderland")
        if result is None:
            ...  # generic "incorrect username or password"
    """

    def __init__(self, snapshot: CredentialSnapshot, secret_key: str | bytes, bcrypt_rounds: int = 12) -> None:
        if not secret_key:
            raise ValueError("Authenticator requires a non-empty signing key.")
        self._snapshot = snapshot
        self._secret_key = secret_key
        self._dummy_hash = dummy_hash(bcrypt_rounds)

    @classmethod
    def from_store(cls, source: RecordSource, secret_key: str | bytes, bcrypt_rounds: int = 12) -> Authenticator:
        """Load the snapshot from source and build an Authenticator.

        bcrypt_rounds is the enrollment cost; the dummy hash for misses is
        built at the same cost. SnapshotError propagates: an Authenticator
        never exists without a complete, validated snapshot.
        """
        return cls(load_snapshot(source), secret_key, bcrypt_rounds)

    @property
    def snapshot(self) -> CredentialSnapshot:
        return self._snapshot

    @property
    def secret_key(self) -> str | bytes:
        """The signing key, for downstream verifiers in the same process."""
        return self._secret_key

    @property
    def dummy_hash(self) -> str:
        return self._dummy_hash

    def authenticate(self, username: str, password: str, now: datetime | None = None) -> AuthResult | None:
        """Return AuthResult on success, None on any authentication failure.

        now pins the token's issue time (tests); it defaults to the current
        UTC time.
        """
        matches = self._snapshot.lookup(username) if username else ()

        if len(matches) != 1:
            # Equalize timing -- do NOT return before running bcrypt.
            verify_password(password or "", self._dummy_hash)
            reason = FailureReason.ambiguous if matches else FailureReason.not_found
            self._log_failure(username, reason)
            return None

        record = matches[0]
        verified = verify_password(password or "", record.password_hash)
        if not password or not verified:
            self._log_failure(username, FailureReason.mismatch)
            return None

        token = create_identity_token(record.username, record.role, self._secret_key, now=now)
        logger.info("Login succeeded for %r (role=%s)", record.username, record.role)
        return AuthResult(username=record.username, role=record.role, token=token)

    @staticmethod
    def _log_failure(username: str, reason: FailureReason) -> None:
        if reason is FailureReason.ambiguous:
            logger.error("Login refused for %r (reason=%s): duplicate identity records", username, reason.value)
        else:
            logger.info("Login failed for %r (reason=%s)", username, reason.value)

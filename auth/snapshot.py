"""
auth/snapshot.py -- Load-once, read-only snapshot of identity records.

Pattern: Adapter. load_snapshot() reads the whole external record store once
(at Authenticator construction) and freezes the result into a username-keyed
CredentialSnapshot. After that, authentication never touches the store again,
so concurrent requests read shared immutable data without any locking.

Failure policy:
  - The store cannot be read            -> SnapshotUnavailableError (fatal)
  - A record lacks username/hash/role   -> MalformedRecordError (fatal)
  - Two records share a username        -> logged at ERROR, load continues;
                                           lookup() reports the collision and
                                           the Authenticator refuses that user.

A half-loaded snapshot is never returned: validation runs over every record
before the snapshot object is built.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Protocol

from auth.models import IdentityRecord

logger = logging.getLogger("mintgate.auth.snapshot")

_REQUIRED_FIELDS = ("username", "password_hash", "role")


class SnapshotError(Exception):
    """Raised when the credential snapshot cannot be built. Always fatal at startup."""


class SnapshotUnavailableError(SnapshotError):
    """The external record store could not be read."""


class MalformedRecordError(SnapshotError):
    """A stored record is missing a required field (username, password_hash or role)."""


class RecordSource(Protocol):
    """Anything that can hand over every stored record in one bulk read."""

    def fetch_all(self) -> Iterable[Mapping[str, Any]]: ...


class CredentialSnapshot:
    """Immutable username -> records index.

    Each username maps to a tuple of every record stored under it. A tuple of
    length one is the normal case; longer tuples only exist when the record
    store holds duplicates, and are exposed so the caller can refuse them.
    """

    __slots__ = ("_index", "_ambiguous")

    def __init__(self, records: Iterable[IdentityRecord]) -> None:
        grouped: dict[str, list[IdentityRecord]] = {}
        for record in records:
            grouped.setdefault(record.username, []).append(record)
        self._index: Mapping[str, tuple[IdentityRecord, ...]] = MappingProxyType(
            {username: tuple(group) for username, group in grouped.items()}
        )
        self._ambiguous = frozenset(u for u, group in self._index.items() if len(group) > 1)

    def lookup(self, username: str) -> tuple[IdentityRecord, ...]:
        """Return every record stored under username (empty tuple if none). Case-sensitive."""
        return self._index.get(username, ())

    @property
    def ambiguous_usernames(self) -> frozenset[str]:
        return self._ambiguous

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __contains__(self, username: object) -> bool:
        return username in self._index

    def __repr__(self) -> str:
        return f"CredentialSnapshot(usernames={len(self)}, ambiguous={len(self._ambiguous)})"


def _to_record(raw: Mapping[str, Any], position: int) -> IdentityRecord:
    """Validate one raw row. Error messages name the row and field, never the hash value."""
    for name in _REQUIRED_FIELDS:
        value = raw.get(name)
        if not isinstance(value, str) or not value:
            raise MalformedRecordError(f"Record #{position} has a missing or empty '{name}' field.")
    return IdentityRecord(
        username=raw["username"],
        password_hash=raw["password_hash"],
        role=raw["role"],
    )


def load_snapshot(source: RecordSource) -> CredentialSnapshot:
    """Read every record from source and freeze them into a CredentialSnapshot.

    Raises:
        SnapshotUnavailableError: source.fetch_all() failed for any reason.
        MalformedRecordError:     at least one record failed validation.
    """
    try:
        rows = list(source.fetch_all())
    except Exception as exc:
        raise SnapshotUnavailableError(f"Record store could not be read: {type(exc).__name__}") from exc

    records = [_to_record(row, position) for position, row in enumerate(rows, start=1)]
    snapshot = CredentialSnapshot(records)

    for username in sorted(snapshot.ambiguous_usernames):
        logger.error(
            "Integrity defect: %d records share username %r; logins for it will be refused",
            len(snapshot.lookup(username)),
            username,
        )
    logger.info(
        "Credential snapshot loaded (%d records, %d usernames, %d ambiguous)",
        len(records),
        len(snapshot),
        len(snapshot.ambiguous_usernames),
    )
    return snapshot

"""
auth/store.py -- SQLAlchemy Core access to the external identity record store.

Pattern: Repository. RecordStore owns the SQL; the snapshot loader in
auth/snapshot.py only ever calls fetch_all().

The users table deliberately has no UNIQUE constraint on username. The record
store is owned by an external enrollment process that never guaranteed
uniqueness, so duplicate detection lives in the snapshot loader instead of in
the schema. role is nullable for the same reason: a NULL role is a malformed
record that the loader must reject, and the schema has to be able to hold one.

Security:
  All queries use bound parameters. No f-strings in SQL.

DB path default: mintgate_records.db at the project root (see core/config.py).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, func, select, text
from sqlalchemy.engine import Engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, index=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(64)),  # NULL = malformed, rejected at snapshot load
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RecordStore:
    """Repository over the users table.

    Usage:
        store = RecordStore("sqlite:///records.db")
        store.create_schema()
        store.add_record("alice", hash_password("wonderland"), "admin")
        rows = store.fetch_all()
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)

    def create_schema(self) -> None:
        """Create the users table if missing. Enrollment tooling only.

        The login service never calls this: a store without a users table
        fails fetch_all() and startup with it. On SQLite the database is also
        switched to WAL journal mode (persistent in the file) so the startup
        bulk read never blocks an enrollment write.
        """
        _metadata.create_all(self.engine)
        if self.engine.dialect.name == "sqlite":
            with self.engine.connect() as conn:
                conn.execute(text("PRAGMA journal_mode=WAL"))

    def fetch_all(self) -> list[dict]:
        """Bulk read of every record as plain dicts (username, password_hash, role).

        Ordered by id so duplicate diagnostics are reported deterministically.
        Raises sqlalchemy.exc.SQLAlchemyError if the database cannot be read,
        including when the users table does not exist.
        """
        query = select(_users.c.username, _users.c.password_hash, _users.c.role)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_users.c.id)).fetchall()
        return [dict(row._mapping) for row in rows]

    def add_record(self, username: str, password_hash: str, role: str | None) -> int:
        """Insert one record and return its id. Used by enrollment tooling only.

        No uniqueness or role check here -- the store mirrors whatever the
        external enrollment process writes, and validation happens on load.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=username,
                    password_hash=password_hash,
                    role=role,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def count(self) -> int:
        """Return the number of stored rows (duplicates included)."""
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()

#!/usr/bin/env python3
"""
mintgate -- operator CLI for the credential record store and identity tokens.

Enrollment is not part of the login service itself; these commands are the
out-of-band tooling an operator uses to populate and inspect the record store
the service snapshots at startup.

Usage:
  python main.py hash-password
  python main.py hash-password --stdin < password.txt
  python main.py enroll alice --role admin
  python main.py check-records
  python main.py decode-token eyJhbGciOi...

Environment variables (see core/config.py):
  SECRET_KEY     Signing key; required by decode-token (or DEBUG=true).
  DATABASE_URL   Record store URL; overridable per command with --database-url.
  BCRYPT_ROUNDS  Cost factor for new hashes (default 12).
"""

import argparse
import getpass
import json
import sys
from typing import Optional

from pydantic import ValidationError

from auth.snapshot import SnapshotError, load_snapshot
from auth.store import RecordStore
from auth.tokens import decode_identity_token, hash_password
from core.config import get_record_settings, get_settings
from core.log import configure_logging


def _read_password(from_stdin: bool, confirm: bool = True) -> Optional[str]:
    """Read a password from stdin or an interactive prompt. Returns None if empty or unconfirmed."""
    if from_stdin:
        password = sys.stdin.readline().rstrip("\n")
    else:
        password = getpass.getpass("Password: ")
        if confirm and getpass.getpass("Confirm password: ") != password:
            print("  [!] Passwords do not match.", file=sys.stderr)
            return None
    if not password:
        print("  [!] Password must not be empty.", file=sys.stderr)
        return None
    return password


def cmd_hash_password(args: argparse.Namespace) -> int:
    password = _read_password(args.stdin)
    if password is None:
        return 1
    print(hash_password(password, rounds=get_record_settings().bcrypt_rounds))
    return 0


def cmd_enroll(args: argparse.Namespace) -> int:
    """Insert one record. Refuses a username that already exists -- duplicates make logins ambiguous."""
    if not args.username or not args.role:
        print("  [!] Username and role must not be empty.", file=sys.stderr)
        return 1
    settings = get_record_settings()
    store = RecordStore(args.database_url or settings.database_url)
    try:
        store.create_schema()
        existing = {row["username"] for row in store.fetch_all()}
        if args.username in existing:
            print(f"  [!] A record for '{args.username}' already exists.", file=sys.stderr)
            return 1
        password = _read_password(args.stdin)
        if password is None:
            return 1
        record_id = store.add_record(args.username, hash_password(password, rounds=settings.bcrypt_rounds), args.role)
    finally:
        store.close()
    print(f"  Enrolled '{args.username}' (role={args.role}, id={record_id}).")
    return 0


def cmd_check_records(args: argparse.Namespace) -> int:
    """Load a snapshot exactly as the API does at startup and report on it."""
    store = RecordStore(args.database_url or get_record_settings().database_url)
    try:
        snapshot = load_snapshot(store)
        total = store.count()
    except SnapshotError as exc:
        print(f"  [!] Snapshot failed: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(f"  {total} record(s), {len(snapshot)} username(s) loaded.")
    if snapshot.ambiguous_usernames:
        print("  [!] Ambiguous usernames (logins refused):")
        for username in sorted(snapshot.ambiguous_usernames):
            print(f"      {username} ({len(snapshot.lookup(username))} records)")
        return 1
    return 0


def cmd_decode_token(args: argparse.Namespace) -> int:
    """The only command that needs SECRET_KEY."""
    claims = decode_identity_token(args.token, get_settings().secret_key)
    if claims is None:
        print("  [!] Token is invalid or expired.", file=sys.stderr)
        return 1
    print(
        json.dumps(
            {
                "subject": claims.subject,
                "role": claims.role,
                "issued_at": claims.issued_at.isoformat(),
                "expires_at": claims.expires_at.isoformat(),
            },
            indent=2,
        )
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mintgate",
        description="Manage mintgate identity records and inspect identity tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py enroll alice --role admin
  python main.py check-records --database-url sqlite:///records.db
  SECRET_KEY=... python main.py decode-token eyJhbGciOi...
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_hash = sub.add_parser("hash-password", help="Print a bcrypt hash for a password")
    p_hash.add_argument("--stdin", action="store_true", help="Read the password from stdin instead of prompting")
    p_hash.set_defaults(func=cmd_hash_password)

    p_enroll = sub.add_parser("enroll", help="Add a record to the record store")
    p_enroll.add_argument("username", help="Case-sensitive username")
    p_enroll.add_argument("--role", required=True, help="Role claim carried in issued tokens")
    p_enroll.add_argument("--database-url", metavar="URL", help="Record store URL (default: DATABASE_URL)")
    p_enroll.add_argument("--stdin", action="store_true", help="Read the password from stdin instead of prompting")
    p_enroll.set_defaults(func=cmd_enroll)

    p_check = sub.add_parser("check-records", help="Validate the record store the way startup does")
    p_check.add_argument("--database-url", metavar="URL", help="Record store URL (default: DATABASE_URL)")
    p_check.set_defaults(func=cmd_check_records)

    p_decode = sub.add_parser("decode-token", help="Verify an identity token and print its claims")
    p_decode.add_argument("token", help="Serialized identity token")
    p_decode.set_defaults(func=cmd_decode_token)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        configure_logging(get_record_settings().log_level)
        return args.func(args)
    except ValidationError as exc:
        print(f"  [!] Configuration error: {exc}", file=sys.stderr)
        return 2


def _entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":
    _entrypoint()

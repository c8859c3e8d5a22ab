"""
Tool: API Sessions
Purpose: Issue and check the bearer tokens that scope task API requests to a user

A session row keeps the SHA-256 of its token, so a leaked database does
not leak usable credentials. The raw token leaves this module once, in
the result of create_session; clients send it back as
`Authorization: Bearer <token>` or in the `adhder_session` cookie.

Usage:
    python -m adhder.security.session --action create --user alice
    python -m adhder.security.session --action validate --token "abc123..."
    python -m adhder.security.session --action revoke --token "abc123..."
    python -m adhder.security.session --action revoke-all --user alice
"""

import argparse
import hashlib
import json
import logging
import secrets
import sqlite3
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any

from ..dashboard.backend.database import Database

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 168
MAX_TTL_HOURS = 24 * 30
TOKEN_BYTES = 32


@contextmanager
def _sessions(db: Database) -> Iterator[sqlite3.Connection]:
    conn = db.connect()
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def hash_token(token: str) -> str:
    """Digest stored in place of the token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(db: Database, user_id: str, ttl_hours: int = DEFAULT_TTL_HOURS) -> dict[str, Any]:
    """
    Open a session for user_id, lasting at most MAX_TTL_HOURS.

    Returns:
        dict with `success`, `token` (raw, not retrievable later),
        `session_id`, `user_id` and `expires_at`
    """
    issued = datetime.now()
    expires = issued + timedelta(hours=min(ttl_hours, MAX_TTL_HOURS))
    token = secrets.token_urlsafe(TOKEN_BYTES)
    session_id = str(uuid.uuid4())

    with _sessions(db) as conn:
        conn.execute(
            "INSERT INTO sessions (id, user_id, token_hash, created_at, expires_at, last_activity, is_active) "
            "VALUES (?, ?, ?, ?, ?, ?, 1)",
            (session_id, user_id, hash_token(token), issued.isoformat(), expires.isoformat(), issued.isoformat()),
        )

    logger.info(f"Opened session {session_id} for {user_id}")
    return {
        "success": True,
        "token": token,
        "session_id": session_id,
        "user_id": user_id,
        "expires_at": expires.isoformat(),
    }


def validate_session(db: Database, token: str, update_activity: bool = True) -> dict[str, Any]:
    """
    Look up the session behind a token.

    An expired session is deactivated on first sight, so later checks
    report it as revoked.

    Returns:
        {"valid": True, "session_id", "user_id", "expires_at"} or
        {"valid": False, "reason": "token_not_found" | "session_revoked" | "session_expired"}
    """
    with _sessions(db) as conn:
        row = conn.execute(
            "SELECT id, user_id, expires_at, is_active FROM sessions WHERE token_hash = ?",
            (hash_token(token),),
        ).fetchone()

        if row is None:
            return {"valid": False, "reason": "token_not_found"}
        if not row["is_active"]:
            return {"valid": False, "reason": "session_revoked"}

        now = datetime.now()
        if now > datetime.fromisoformat(row["expires_at"]):
            conn.execute("UPDATE sessions SET is_active = 0 WHERE id = ?", (row["id"],))
            return {"valid": False, "reason": "session_expired"}

        if update_activity:
            conn.execute("UPDATE sessions SET last_activity = ? WHERE id = ?", (now.isoformat(), row["id"]))

    return {"valid": True, "session_id": row["id"], "user_id": row["user_id"], "expires_at": row["expires_at"]}


def revoke_session(db: Database, token: str) -> bool:
    """Deactivate one session. False when it was unknown or already inactive."""
    with _sessions(db) as conn:
        revoked = conn.execute(
            "UPDATE sessions SET is_active = 0 WHERE token_hash = ? AND is_active = 1", (hash_token(token),)
        ).rowcount
    return revoked > 0


def revoke_all_sessions(db: Database, user_id: str) -> int:
    """Deactivate every active session of a user; returns how many."""
    with _sessions(db) as conn:
        revoked = conn.execute(
            "UPDATE sessions SET is_active = 0 WHERE user_id = ? AND is_active = 1", (user_id,)
        ).rowcount
    if revoked:
        logger.info(f"Revoked {revoked} session(s) for {user_id}")
    return revoked


def _fail(message: str) -> None:
    print(json.dumps({"success": False, "error": message}))
    sys.exit(1)


def main():
    parser = argparse.ArgumentParser(description="Manage task API sessions")
    parser.add_argument("--action", required=True, choices=["create", "validate", "revoke", "revoke-all"])
    parser.add_argument("--user", help="User ID (create, revoke-all)")
    parser.add_argument("--token", help="Raw session token (validate, revoke)")
    parser.add_argument("--ttl", type=int, help="Lifetime in hours; defaults to security.session_ttl_hours")
    parser.add_argument("--db", help="SQLite file; defaults to database.path")
    args = parser.parse_args()

    from ..config import load_config, resolve_path

    config = load_config()
    db = Database(args.db or resolve_path(config["database"]["path"]))
    db.init_db()

    if args.action in ("create", "revoke-all") and not args.user:
        _fail("--user required")
    if args.action in ("validate", "revoke") and not args.token:
        _fail("--token required")

    if args.action == "create":
        ttl = args.ttl or int(config.get("security", {}).get("session_ttl_hours", DEFAULT_TTL_HOURS))
        result = create_session(db, args.user, ttl_hours=ttl)
    elif args.action == "validate":
        result = {"success": True, **validate_session(db, args.token, update_activity=False)}
    elif args.action == "revoke":
        result = {"success": revoke_session(db, args.token)}
    else:
        result = {"success": True, "revoked": revoke_all_sessions(db, args.user)}

    print(json.dumps(result, indent=2))
    sys.exit(0 if result["success"] else 1)


if __name__ == "__main__":
    main()

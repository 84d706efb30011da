# bonfire_node/directory.py

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from bonfire_node.database import db_lock, get_db
from bonfire_node.encoding import key_from_b64


class DuplicateUser(Exception):
    """Raised when an email is already registered."""
    pass


def _row_to_user(r) -> Dict:
    return {
        "id": r["id"],
        "email": r["email"],
        "username": r["username"],
        "public_key": r["public_key"],
    }


# ---------------------------------------------------------
# INSERT HELPERS
# ---------------------------------------------------------

def register_user(email: str, public_key: str, username: str = None) -> Dict:
    """
    Adds a user to the key directory.
    public_key must be base64 of a 32-byte X25519 key (MalformedInput otherwise).
    The username defaults to the local part of the email address.
    """
    key_from_b64(public_key)

    user_id = str(uuid.uuid4())
    username = username or email.split("@")[0]
    now = datetime.now(timezone.utc).isoformat()

    db = get_db()
    with db_lock():
        try:
            db.execute(
                """
                INSERT INTO users(id, email, username, public_key, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, email, username, public_key, now)
            )
            db.commit()
        except sqlite3.IntegrityError as exc:
            db.rollback()
            raise DuplicateUser(f"email already registered: {email}") from exc

    return {"id": user_id, "email": email, "username": username, "public_key": public_key}


# ---------------------------------------------------------
# LOOKUP HELPERS
# ---------------------------------------------------------

def get_user(user_id: str) -> Optional[Dict]:
    db = get_db()
    r = db.execute(
        "SELECT id, email, username, public_key FROM users WHERE id = ?",
        (user_id,)
    ).fetchone()
    return _row_to_user(r) if r else None


def list_users(exclude_id: str = None) -> List[Dict]:
    """
    All directory entries, optionally without *exclude_id* (the caller).
    """
    db = get_db()
    rows = db.execute(
        """
        SELECT id, email, username, public_key
        FROM users
        WHERE ? IS NULL OR id != ?
        ORDER BY username, email
        """,
        (exclude_id, exclude_id)
    ).fetchall()
    return [_row_to_user(r) for r in rows]

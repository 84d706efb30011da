# bonfire_node/messages.py

from datetime import datetime, timezone
from typing import Dict, List

from bonfire_node.database import db_lock, get_db


def _row_to_message(r) -> Dict:
    return {
        "id": r["id"],
        "sender_id": r["sender_id"],
        "receiver_id": r["receiver_id"],
        "ciphertext": r["ciphertext"],
        "created_at": r["created_at"],
    }


def insert_message(sender_id: str, receiver_id: str, ciphertext: str) -> Dict:
    """
    Stores an encrypted message. The ciphertext is opaque to the relay.
    """
    now = datetime.now(timezone.utc).isoformat()

    db = get_db()
    with db_lock():
        cur = db.execute(
            """
            INSERT INTO messages(sender_id, receiver_id, ciphertext, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (sender_id, receiver_id, ciphertext, now)
        )
        db.commit()
        message_id = cur.lastrowid

    return {
        "id": message_id,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "ciphertext": ciphertext,
        "created_at": now,
    }


def list_conversation(user_a: str, user_b: str, after_id: int = 0) -> List[Dict]:
    """
    Messages exchanged between two users in both directions, oldest first.
    after_id restricts the result to rows inserted after a known row (polling).
    """
    db = get_db()
    rows = db.execute(
        """
        SELECT id, sender_id, receiver_id, ciphertext, created_at
        FROM messages
        WHERE ((sender_id = ? AND receiver_id = ?) OR (sender_id = ? AND receiver_id = ?))
          AND id > ?
        ORDER BY created_at, id
        """,
        (user_a, user_b, user_b, user_a, after_id)
    ).fetchall()
    return [_row_to_message(r) for r in rows]

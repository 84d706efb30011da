# bonfire_node/database.py

import logging
import sqlite3
import threading

from bonfire_node import config

logger = logging.getLogger(__name__)

_conn = None
_lock = threading.RLock()


def get_db():
    """
    Returns a global SQLite connection and initializes the relay schema if needed.
    The connection is created with check_same_thread=False so FastAPI worker
    threads can share it; writers take db_lock().
    """
    global _conn
    if _conn is None:
        with _lock:
            if _conn is None:
                _conn = _connect()
    return _conn


def db_lock():
    return _lock


def close_db():
    global _conn
    with _lock:
        if _conn is not None:
            _conn.close()
            _conn = None


def _connect():
    config.ensure_directories()

    conn = sqlite3.connect(config.DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    # ---- Performance pragmas ----
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")

    # -----------------------------------------------------
    #  USERS TABLE (key directory)
    # -----------------------------------------------------
    conn.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            username TEXT NULL,
            public_key TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
    """)

    # -----------------------------------------------------
    #  MESSAGES TABLE (opaque ciphertext only)
    # -----------------------------------------------------
    conn.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sender_id TEXT NOT NULL REFERENCES users(id),
            receiver_id TEXT NOT NULL REFERENCES users(id),
            ciphertext TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
    """)

    # ---- Indexes for common queries ----
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_messages_pair ON messages(sender_id, receiver_id, id)"
    )

    conn.commit()
    logger.info("Database initialized at %s (WAL mode, indexes created)", config.DB_PATH)
    return conn

# bonfire_node/session.py

import logging

from bonfire_node.errors import MalformedInput

logger = logging.getLogger(__name__)


class SecretBuffer:
    """
    Mutable holder for secret bytes that can be explicitly wiped.

    Python may still hold transient copies (e.g. inside PyNaCl objects);
    clear() only guarantees the buffer owned here is overwritten.
    """

    def __init__(self, data: bytes):
        self._buf = bytearray(data)
        self._cleared = False

    def __len__(self):
        return len(self._buf)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.clear()
        return False

    def __repr__(self):
        state = "cleared" if self._cleared else f"{len(self._buf)} bytes"
        return f"<{type(self).__name__} {state}>"

    @property
    def cleared(self) -> bool:
        return self._cleared

    def reveal(self) -> bytes:
        if self._cleared:
            raise ValueError(f"{type(self).__name__} has been cleared")
        return bytes(self._buf)

    def clear(self):
        for i in range(len(self._buf)):
            self._buf[i] = 0
        self._cleared = True


class SessionKey(SecretBuffer):
    """
    The unlocked private key of the signed-in user.
    Owned by the caller for the lifetime of the session; call clear() on sign-out.
    """

    def __init__(self, private_key: bytes, user_id: str | None = None):
        super().__init__(private_key)
        self.user_id = user_id

    def clear(self):
        super().clear()
        logger.debug("Session key cleared (user_id=%s)", self.user_id)


def key_bytes(key) -> bytes:
    """Accept raw bytes or a SecretBuffer wherever a key is expected."""
    if isinstance(key, SecretBuffer):
        return key.reveal()
    if isinstance(key, (bytes, bytearray, memoryview)):
        return bytes(key)
    raise MalformedInput(f"expected key bytes, got {type(key).__name__}")

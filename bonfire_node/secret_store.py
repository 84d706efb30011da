# bonfire_node/secret_store.py

import logging
import threading
from pathlib import Path

from bonfire_node import config
from bonfire_node.storage import read_file, remove_file, write_private_file

logger = logging.getLogger(__name__)


class LocalSecretStore:
    """
    Single-slot persistent store for the wrapped private key.

    The stored text is opaque here; it is produced and consumed only by
    PassphraseKeyWrap. One writer at a time within the process.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else config.SECRET_STORE_PATH
        self._lock = threading.Lock()

    def set(self, wrapped_private_key: str):
        if not isinstance(wrapped_private_key, str) or not wrapped_private_key:
            raise ValueError("wrapped_private_key must be a non-empty string")
        with self._lock:
            write_private_file(self.path, wrapped_private_key.encode("ascii"))
        logger.info("Wrapped private key stored at %s", self.path)

    def get(self) -> str | None:
        raw = read_file(self.path)
        if raw is None:
            return None
        text = raw.decode("ascii", errors="replace").strip()
        return text or None

    def remove(self):
        with self._lock:
            remove_file(self.path)
        logger.info("Wrapped private key removed from %s", self.path)

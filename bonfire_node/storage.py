# bonfire_node/storage.py

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def write_private_file(path: Path, data: bytes):
    """
    Atomically replace *path* with *data*, readable by the owner only.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as exc:
        logger.error("Failed to write file %s: %s", path, exc)
        raise


def read_file(path: Path) -> bytes | None:
    """Returns None when the file does not exist."""
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.error("Failed to read file %s: %s", path, exc)
        raise


def remove_file(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.error("Failed to remove file %s: %s", path, exc)
        raise

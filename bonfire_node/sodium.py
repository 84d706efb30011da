# bonfire_node/sodium.py

import logging
import threading

from nacl import bindings

from bonfire_node.errors import InitializationError

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_handle = None


class Sodium:
    """
    Proof that libsodium has been initialized in this process.
    Obtained from initialize() and captured by the crypto components.
    """

    __slots__ = ("_ready",)

    def __init__(self):
        self._ready = True

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure_ready(self):
        if not self._ready:
            raise InitializationError("libsodium is not initialized")


def initialize() -> Sodium:
    """
    Run the libsodium initializer exactly once and return the shared handle.
    Safe to call from several threads; later calls are no-ops.
    """
    global _handle
    if _handle is not None:
        return _handle

    with _lock:
        if _handle is None:
            try:
                bindings.sodium_init()
            except Exception as exc:
                logger.error("libsodium initialization failed: %s", exc)
                raise InitializationError("libsodium initialization failed") from exc
            _handle = Sodium()
            logger.debug("libsodium initialized")

    return _handle


def require_ready(sodium) -> Sodium:
    """Validate a handle passed to a crypto component."""
    if not isinstance(sodium, Sodium):
        raise InitializationError("expected the handle returned by initialize()")
    sodium.ensure_ready()
    return sodium

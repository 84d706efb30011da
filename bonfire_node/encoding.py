# bonfire_node/encoding.py

import binascii
from base64 import b64decode, b64encode

from bonfire_node.errors import MalformedInput


def to_b64(data: bytes) -> str:
    """Standard alphabet, padded."""
    return b64encode(bytes(data)).decode("ascii")


def from_b64(text: str) -> bytes:
    if not isinstance(text, (str, bytes)):
        raise MalformedInput("expected base64 text")
    try:
        return b64decode(text.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise MalformedInput("not valid base64") from None


def key_from_b64(text: str, size: int = 32) -> bytes:
    """Decode a base64 key and check its length."""
    raw = from_b64(text)
    if len(raw) != size:
        raise MalformedInput(f"key must be {size} bytes, got {len(raw)}")
    return raw

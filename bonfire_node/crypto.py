# bonfire_node/crypto.py

import logging
from dataclasses import dataclass, field

import nacl.exceptions
import nacl.utils
from nacl import bindings
from nacl.public import Box, PrivateKey, PublicKey
from nacl.pwhash import argon2id
from nacl.secret import SecretBox

from bonfire_node.encoding import from_b64, key_from_b64, to_b64
from bonfire_node.errors import AuthenticationFailed, KeyGenerationError, MalformedInput
from bonfire_node.session import SecretBuffer, key_bytes
from bonfire_node.sodium import Sodium, require_ready

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Fixed sizes and cost parameters
# ---------------------------------------------------------------------------
KEY_SIZE = PrivateKey.SIZE                       # 32
SALT_SIZE = argon2id.SALTBYTES                   # 16
WRAP_NONCE_SIZE = SecretBox.NONCE_SIZE           # 24
WRAP_MAC_SIZE = bindings.crypto_secretbox_ZEROBYTES - bindings.crypto_secretbox_BOXZEROBYTES
BOX_NONCE_SIZE = Box.NONCE_SIZE                  # 24
BOX_MAC_SIZE = bindings.crypto_box_ZEROBYTES - bindings.crypto_box_BOXZEROBYTES

# "interactive" limits: 2 passes over 64 MiB
KDF_OPSLIMIT = argon2id.OPSLIMIT_INTERACTIVE
KDF_MEMLIMIT = argon2id.MEMLIMIT_INTERACTIVE

# salt || nonce || secretbox(private_key)
WRAP_HEADER_SIZE = SALT_SIZE + WRAP_NONCE_SIZE
WRAP_MIN_SIZE = WRAP_HEADER_SIZE + WRAP_MAC_SIZE
WRAPPED_KEY_SIZE = WRAP_MIN_SIZE + KEY_SIZE      # 88

# nonce || box(plaintext)
MESSAGE_MIN_SIZE = BOX_NONCE_SIZE + BOX_MAC_SIZE


@dataclass(frozen=True)
class KeyPair:
    public_key: bytes
    private_key: bytes = field(repr=False)

    @property
    def public_key_b64(self) -> str:
        return to_b64(self.public_key)

    @property
    def private_key_b64(self) -> str:
        return to_b64(self.private_key)

    @classmethod
    def from_b64(cls, public_key: str, private_key: str) -> "KeyPair":
        return cls(
            public_key=key_from_b64(public_key, KEY_SIZE),
            private_key=key_from_b64(private_key, KEY_SIZE),
        )


# ---------------------------------------------------------------------------
# Key argument helpers
# ---------------------------------------------------------------------------

def _public_key(value) -> PublicKey:
    """Accept raw 32 bytes or base64 text."""
    raw = key_from_b64(value, KEY_SIZE) if isinstance(value, str) else key_bytes(value)
    if len(raw) != KEY_SIZE:
        raise MalformedInput(f"public key must be {KEY_SIZE} bytes, got {len(raw)}")
    return PublicKey(raw)


def _private_key(value) -> PrivateKey:
    """Accept raw 32 bytes or a SessionKey."""
    raw = key_bytes(value)
    if len(raw) != KEY_SIZE:
        raise MalformedInput(f"private key must be {KEY_SIZE} bytes, got {len(raw)}")
    return PrivateKey(raw)


def _box(own_private_key, other_public_key) -> Box:
    sk = _private_key(own_private_key)
    pk = _public_key(other_public_key)
    try:
        return Box(sk, pk)
    except nacl.exceptions.CryptoError:
        # libsodium rejects low-order points when computing the shared key
        raise MalformedInput("public key is not a usable curve point") from None


def _passphrase_bytes(passphrase) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    if isinstance(passphrase, (bytes, bytearray)):
        return bytes(passphrase)
    raise TypeError(f"passphrase must be str, got {type(passphrase).__name__}")


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

class KeyPairGenerator:
    """Fresh X25519 identity key pairs from the libsodium CSPRNG."""

    def __init__(self, sodium: Sodium):
        self._sodium = require_ready(sodium)

    def generate(self) -> KeyPair:
        self._sodium.ensure_ready()
        try:
            sk = PrivateKey.generate()
        except Exception as exc:
            logger.error("Key pair generation failed: %s", type(exc).__name__)
            raise KeyGenerationError("random source unavailable") from exc

        return KeyPair(public_key=sk.public_key.encode(), private_key=sk.encode())


class PassphraseKeyWrap:
    """
    Seals a private key under a passphrase for storage.

    Layout of the wrapped artifact (base64 of):
        salt (16) || nonce (24) || ciphertext (32 + 16 tag)

    The tag is the only check of the passphrase: a wrong passphrase and a
    corrupted blob are indistinguishable and both raise AuthenticationFailed.
    """

    def __init__(self, sodium: Sodium):
        self._sodium = require_ready(sodium)

    def _derived(self, passphrase, salt: bytes) -> SecretBuffer:
        if len(salt) != SALT_SIZE:
            raise MalformedInput(f"salt must be {SALT_SIZE} bytes, got {len(salt)}")
        key = argon2id.kdf(
            SecretBox.KEY_SIZE,
            _passphrase_bytes(passphrase),
            bytes(salt),
            opslimit=KDF_OPSLIMIT,
            memlimit=KDF_MEMLIMIT,
        )
        return SecretBuffer(key)

    def derive_key(self, passphrase: str, salt: bytes) -> bytes:
        """Argon2id(passphrase, salt) with the interactive limits. Deterministic."""
        self._sodium.ensure_ready()
        with self._derived(passphrase, salt) as key:
            return key.reveal()

    def wrap(self, private_key, passphrase: str) -> str:
        self._sodium.ensure_ready()
        raw = key_bytes(private_key)
        if len(raw) != KEY_SIZE:
            raise MalformedInput(f"private key must be {KEY_SIZE} bytes, got {len(raw)}")

        salt = nacl.utils.random(SALT_SIZE)
        nonce = nacl.utils.random(WRAP_NONCE_SIZE)

        with self._derived(passphrase, salt) as key:
            ciphertext = SecretBox(key.reveal()).encrypt(raw, nonce).ciphertext

        logger.debug("Private key wrapped (%d bytes)", WRAP_HEADER_SIZE + len(ciphertext))
        return to_b64(salt + nonce + ciphertext)

    def unwrap(self, wrapped: str, passphrase: str) -> bytes:
        self._sodium.ensure_ready()
        blob = from_b64(wrapped)
        if len(blob) < WRAP_MIN_SIZE:
            raise MalformedInput(
                f"wrapped key is {len(blob)} bytes, expected at least {WRAP_MIN_SIZE}"
            )

        salt = blob[:SALT_SIZE]
        nonce = blob[SALT_SIZE:WRAP_HEADER_SIZE]
        ciphertext = blob[WRAP_HEADER_SIZE:]

        with self._derived(passphrase, salt) as key:
            try:
                private_key = SecretBox(key.reveal()).decrypt(ciphertext, nonce)
            except nacl.exceptions.CryptoError:
                raise AuthenticationFailed("wrong passphrase or corrupted key") from None

        if len(private_key) != KEY_SIZE:
            raise MalformedInput(f"unwrapped key is {len(private_key)} bytes, expected {KEY_SIZE}")
        return private_key


class MessageCipher:
    """
    crypto_box (X25519 + XSalsa20-Poly1305) for direct messages.

    Encoded message: base64 of nonce (24) || ciphertext (len + 16 tag).

    decrypt() must be given the public key of the *other* party of the
    message relative to the caller: the recipient when the caller sent it,
    the sender when the caller received it.
    """

    def __init__(self, sodium: Sodium):
        self._sodium = require_ready(sodium)

    def encrypt(self, plaintext: bytes, recipient_public_key, sender_private_key) -> str:
        self._sodium.ensure_ready()
        if not isinstance(plaintext, (bytes, bytearray, memoryview)):
            raise TypeError("plaintext must be bytes; use encrypt_text for str")

        box = _box(sender_private_key, recipient_public_key)
        nonce = nacl.utils.random(BOX_NONCE_SIZE)
        sealed = box.encrypt(bytes(plaintext), nonce)
        return to_b64(bytes(sealed))

    def decrypt(self, encoded: str, counterparty_public_key, own_private_key) -> bytes:
        self._sodium.ensure_ready()
        blob = from_b64(encoded)
        if len(blob) < MESSAGE_MIN_SIZE:
            raise MalformedInput(
                f"message is {len(blob)} bytes, expected at least {MESSAGE_MIN_SIZE}"
            )

        box = _box(own_private_key, counterparty_public_key)
        nonce = blob[:BOX_NONCE_SIZE]
        ciphertext = blob[BOX_NONCE_SIZE:]
        try:
            return box.decrypt(ciphertext, nonce)
        except nacl.exceptions.CryptoError:
            raise AuthenticationFailed("message could not be verified") from None

    def encrypt_text(self, text: str, recipient_public_key, sender_private_key) -> str:
        return self.encrypt(text.encode("utf-8"), recipient_public_key, sender_private_key)

    def decrypt_text(self, encoded: str, counterparty_public_key, own_private_key) -> str:
        plaintext = self.decrypt(encoded, counterparty_public_key, own_private_key)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedInput("message is not valid UTF-8") from None

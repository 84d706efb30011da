# bonfire_node/account.py

import hmac
import logging

from nacl import bindings

from bonfire_node import config
from bonfire_node.crypto import KeyPairGenerator, PassphraseKeyWrap
from bonfire_node.encoding import key_from_b64
from bonfire_node.errors import AuthenticationFailed
from bonfire_node.secret_store import LocalSecretStore
from bonfire_node.session import SessionKey
from bonfire_node.sodium import initialize

logger = logging.getLogger(__name__)


class NoStoredKey(Exception):
    """No wrapped private key in the local secret store. Sign up first."""
    pass


class WeakPassphrase(ValueError):
    """The sign-up passphrase is shorter than MIN_PASSPHRASE_LENGTH."""
    pass


class KeyMismatch(Exception):
    """The stored private key does not belong to the requested account."""
    pass


class Account:
    """
    Sign-up / sign-in / sign-out of a local identity.

    sign-up:  generate key pair -> wrap private key -> register public key
              -> store wrapped key -> hand back a SessionKey
    sign-in:  read wrapped key -> unwrap -> check it matches the directory
    sign-out: wipe the SessionKey and remove the wrapped key
    """

    def __init__(self, relay, store: LocalSecretStore = None, sodium=None):
        sodium = sodium or initialize()
        self.relay = relay
        self.store = store or LocalSecretStore()
        self._keygen = KeyPairGenerator(sodium)
        self._wrap = PassphraseKeyWrap(sodium)

    def sign_up(self, email: str, passphrase: str, username: str = None):
        """
        Returns (user_record, session_key).
        Nothing is stored locally unless the directory accepted the public key.
        """
        if len(passphrase) < config.MIN_PASSPHRASE_LENGTH:
            raise WeakPassphrase(
                f"passphrase must be at least {config.MIN_PASSPHRASE_LENGTH} characters"
            )

        keypair = self._keygen.generate()
        wrapped = self._wrap.wrap(keypair.private_key, passphrase)

        user = self.relay.register_user(email, keypair.public_key_b64, username=username)

        self.store.set(wrapped)
        logger.info("Account created: id=%s", user["id"])
        return user, SessionKey(keypair.private_key, user_id=user["id"])

    def sign_in(self, user_id: str, passphrase: str) -> SessionKey:
        """
        Raises NoStoredKey, AuthenticationFailed (wrong passphrase) or KeyMismatch.
        """
        wrapped = self.store.get()
        if wrapped is None:
            raise NoStoredKey("No encrypted key found. Please sign up first.")

        try:
            private_key = self._wrap.unwrap(wrapped, passphrase)
        except AuthenticationFailed:
            logger.warning("Sign-in failed for id=%s: wrong passphrase", user_id)
            raise

        user = self.relay.get_user(user_id)
        published = key_from_b64(user["public_key"])
        derived = bindings.crypto_scalarmult_base(private_key)
        if not hmac.compare_digest(published, derived):
            raise KeyMismatch(f"stored key does not belong to user {user_id}")

        logger.info("Signed in: id=%s", user_id)
        return SessionKey(private_key, user_id=user_id)

    def sign_out(self, session: SessionKey = None):
        if session is not None:
            session.clear()
        self.store.remove()
        logger.info("Signed out")

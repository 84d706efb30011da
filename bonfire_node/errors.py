# bonfire_node/errors.py


class BonfireCryptoError(Exception):
    """Base class for every failure raised by the crypto core."""
    pass


class InitializationError(BonfireCryptoError):
    """libsodium is not ready. Fatal until initialize() succeeds."""
    pass


class KeyGenerationError(BonfireCryptoError):
    """The random source could not produce a key pair. Fatal."""
    pass


class MalformedInput(BonfireCryptoError):
    """
    An artifact or key does not have the fixed layout it must have
    (too short, wrong key length, not base64). Not retriable.
    """
    pass


class AuthenticationFailed(BonfireCryptoError):
    """
    Tag verification failed on unwrap or decrypt: wrong passphrase,
    tampered data, or the wrong counterpart key.
    """
    pass

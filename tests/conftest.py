# tests/conftest.py

import pytest
from fastapi.testclient import TestClient

from bonfire_node.api import RelayClient
from bonfire_node.crypto import KeyPairGenerator, MessageCipher, PassphraseKeyWrap
from bonfire_node.secret_store import LocalSecretStore
from bonfire_node.sodium import initialize


@pytest.fixture(autouse=True)
def temp_bonfire_dir(tmp_path, monkeypatch):
    """
    Point all Bonfire data paths to a fresh temp directory per test.
    """
    base = tmp_path / "bonfire_data"

    import bonfire_node.config as cfg
    monkeypatch.setattr(cfg, "BASE_DIR", base)
    monkeypatch.setattr(cfg, "DB_PATH", base / "bonfire.db")
    monkeypatch.setattr(cfg, "SECRET_STORE_PATH", base / "keys" / "encrypted_private_key")

    # Fresh DB connection per test
    import bonfire_node.database as db_mod
    db_mod.close_db()

    yield tmp_path

    db_mod.close_db()


@pytest.fixture
def sodium():
    return initialize()


@pytest.fixture
def keygen(sodium):
    return KeyPairGenerator(sodium)


@pytest.fixture
def key_wrap(sodium):
    return PassphraseKeyWrap(sodium)


@pytest.fixture
def cipher(sodium):
    return MessageCipher(sodium)


@pytest.fixture
def alice(keygen):
    return keygen.generate()


@pytest.fixture
def bob(keygen):
    return keygen.generate()


@pytest.fixture
def carol(keygen):
    return keygen.generate()


@pytest.fixture
def test_client():
    from bonfire_node.main import app
    return TestClient(app)


@pytest.fixture
def relay(test_client):
    """RelayClient talking to the in-process FastAPI app."""
    return RelayClient(base_url="http://testserver", session=test_client, max_retries=1)


@pytest.fixture
def secret_store(tmp_path):
    return LocalSecretStore(tmp_path / "bonfire_data" / "keys" / "encrypted_private_key")

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
BASE_DIR = Path(os.getenv("BONFIRE_BASE_DIR", "./bonfire_data"))
DB_PATH = Path(os.getenv("BONFIRE_DB_PATH", str(BASE_DIR / "bonfire.db")))
SECRET_STORE_PATH = Path(
    os.getenv("BONFIRE_SECRET_STORE", str(BASE_DIR / "keys" / "encrypted_private_key"))
)

# ---------------------------------------------------------------------------
# Relay (directory + message store)
# ---------------------------------------------------------------------------
RELAY_URL = os.getenv("RELAY_URL", "http://127.0.0.1:8080").rstrip("/")
RELAY_TIMEOUT = int(os.getenv("RELAY_TIMEOUT", "15"))
RELAY_MAX_RETRIES = int(os.getenv("RELAY_MAX_RETRIES", "3"))

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------
BONFIRE_PORT = int(os.getenv("BONFIRE_PORT", "8080"))
BONFIRE_HOST = os.getenv("BONFIRE_HOST", "127.0.0.1")

# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
MIN_PASSPHRASE_LENGTH = int(os.getenv("MIN_PASSPHRASE_LENGTH", "8"))

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------
MAX_CIPHERTEXT_SIZE = int(os.getenv("MAX_CIPHERTEXT_SIZE", str(256 * 1024)))  # base64 chars
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s  %(name)-28s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def ensure_directories():
    BASE_DIR.mkdir(parents=True, exist_ok=True)
    SECRET_STORE_PATH.parent.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

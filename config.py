"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from pathlib import Path
from urllib.parse import quote

from dotenv import load_dotenv

load_dotenv()


# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "postgres")
DB_USER: str = os.getenv("DB_USER", "postgres")
DB_PASS: str = os.getenv("DB_PASS", "")

# An explicit DATABASE_URL wins over the individual DB_* settings.
# libpq percent-decodes the user and password but treats "+" literally.
DATABASE_URL: str = os.getenv(
    "DATABASE_URL",
    f"postgresql://{quote(DB_USER, safe='')}:{quote(DB_PASS, safe='')}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# ── Timeouts (seconds) ────────────────────────────────────
CONNECT_TIMEOUT: int = int(os.getenv("CONNECT_TIMEOUT", "15"))
COMMAND_TIMEOUT: int = int(os.getenv("COMMAND_TIMEOUT", "0"))  # 0 = no limit

# ── Self-update ───────────────────────────────────────────
UPDATE_METADATA_URL: str = os.getenv("UPDATE_METADATA_URL", "")
UPDATE_TIMEOUT: int = int(os.getenv("UPDATE_TIMEOUT", "30"))
INSTALL_DIR: Path = Path(
    os.getenv("INSTALL_DIR", str(Path(__file__).resolve().parent))
)

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# ── Application ───────────────────────────────────────────
APP_NAME: str = "sqlbridge"
APP_VERSION: str = "1.0.0"

import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]

load_dotenv(ROOT_DIR / ".env")

PROG_NAME = "rotjoin"
PROG_VERSION = "0.3"

# Where the minute files live, e.g. "/rot/" for /rot/2012-01-01/2359.flac
DEFAULT_PREFIX = os.getenv("ROTJOIN_PREFIX", "")

# IANA zone the recorder names its files in; empty means local time.
TIMEZONE = os.getenv("ROTJOIN_TIMEZONE", "").strip()

LOG_LEVEL = os.getenv("ROTJOIN_LOG_LEVEL", "INFO").strip().upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

CHUNK_SECONDS = float(os.getenv("ROTJOIN_CHUNK_SECONDS", "5.0"))

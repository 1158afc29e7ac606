import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Backend configuration
API_BASE_URL = os.getenv("ERRORLY_API_URL", "https://errorlyapi.onrender.com")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("ERRORLY_TIMEOUT_SECONDS", "15"))

# Session storage for the bearer credential
ACCESS_TOKEN = os.getenv("ERRORLY_ACCESS_TOKEN", "")
TOKEN_FILE = os.getenv("ERRORLY_TOKEN_FILE", "")

# Presentation defaults
DEFAULT_ORDER = os.getenv("ERRORLY_DEFAULT_ORDER", "newest")
LOG_LEVEL = os.getenv("ERRORLY_LOG_LEVEL", "WARNING").upper()


def read_access_token() -> Optional[str]:
    """Return the stored bearer token, preferring the token file when set."""
    if TOKEN_FILE:
        try:
            with open(TOKEN_FILE, encoding="utf-8") as fh:
                token = fh.read().strip()
        except OSError:
            token = ""
        if token:
            return token
    return ACCESS_TOKEN or None

"""
Roster console configuration.
All values come from the environment (a local .env file is honoured).
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Remote roster API
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api").rstrip("/")
API_TOKEN = os.getenv("API_TOKEN")
REQUEST_TIMEOUT_SEC = float(os.getenv("REQUEST_TIMEOUT_SEC", "30"))
ROSTER_FETCH_LIMIT = int(os.getenv("ROSTER_FETCH_LIMIT", "200"))

# List presentation
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
PAGE_SIZE_OPTIONS = os.getenv("PAGE_SIZE_OPTIONS", "5,10,20,50")
PAGINATION_WINDOW = int(os.getenv("PAGINATION_WINDOW", "5"))

# Uploads
AVATAR_MAX_BYTES = int(os.getenv("AVATAR_MAX_BYTES", str(2 * 1024 * 1024)))

VERSION = "0.1.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_api_base_url() -> str:
    """Current API base URL without trailing slash."""
    return os.getenv("API_BASE_URL", API_BASE_URL).rstrip("/")


def get_api_token():
    """Bearer token for the roster API, or None when running unauthenticated."""
    return os.getenv("API_TOKEN", API_TOKEN)


def get_page_size_options() -> List[int]:
    """Page sizes offered to the operator, smallest first."""
    sizes = sorted({int(part) for part in PAGE_SIZE_OPTIONS.split(",") if part.strip()})
    return [size for size in sizes if size > 0]

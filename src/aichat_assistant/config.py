"""Environment-driven settings and platform-aware data paths."""

import os
import sys
from pathlib import Path

DEFAULT_API_BASE = "https://akgptapi.vercel.app/api"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_STORAGE_QUOTA = 50 * 1024 * 1024  # 50 MiB


def get_data_dir() -> Path:
    """Return the per-user directory holding the chat database."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "aichat-assistant"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "aichat-assistant"
    else:  # Linux
        xdg = os.environ.get("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
        return base / "aichat-assistant"


def get_db_path() -> Path:
    """Return the path to the local chat database."""
    env = os.environ.get("AICHAT_DB_PATH")
    if env:
        return Path(env)
    return get_data_dir() / "chat.db"


def get_api_base() -> str:
    """Return the base URL of the text-generation API, without trailing slash."""
    return os.environ.get("AICHAT_API_BASE", DEFAULT_API_BASE).rstrip("/")


def get_default_model() -> str:
    return os.environ.get("AICHAT_MODEL", DEFAULT_MODEL)


def get_api_timeout() -> float | None:
    """Return the request timeout in seconds, or None for no timeout."""
    env = os.environ.get("AICHAT_API_TIMEOUT")
    if not env:
        return None
    return float(env)


def get_storage_quota() -> int:
    """Return the storage quota in bytes used for the usage indicator."""
    env = os.environ.get("AICHAT_STORAGE_QUOTA")
    if env:
        return int(env)
    return DEFAULT_STORAGE_QUOTA

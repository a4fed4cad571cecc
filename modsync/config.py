"""Runtime settings, read from environment variables."""

import os
from dataclasses import dataclass

from . import __version__

DEFAULT_API_URL = "https://api.modrinth.com/v2"
DEFAULT_USER_AGENT = f"modsync/{__version__}"


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "")
    return int(value) if value.strip().isdigit() else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, "").strip()
    try:
        return float(value) if value else default
    except ValueError:
        return default


@dataclass
class Settings:
    api_url: str = DEFAULT_API_URL
    user_agent: str = DEFAULT_USER_AGENT
    search_limit: int = 10  # candidates per catalog search
    max_workers: int = 4  # concurrent identity lookups
    timeout: float = 30.0  # seconds per HTTP request

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from MODSYNC_* environment variables."""
        return cls(
            api_url=os.environ.get("MODSYNC_API_URL", DEFAULT_API_URL).rstrip("/"),
            user_agent=os.environ.get("MODSYNC_USER_AGENT", DEFAULT_USER_AGENT),
            search_limit=_env_int("MODSYNC_SEARCH_LIMIT", 10),
            max_workers=max(1, _env_int("MODSYNC_MAX_WORKERS", 4)),
            timeout=_env_float("MODSYNC_TIMEOUT", 30.0),
        )

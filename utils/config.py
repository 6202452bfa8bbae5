"""
Configuration utilities for textcal.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_FILE_NAME = ".textcal.env"


def load_env_vars() -> None:
    """
    Load environment variables from .env files in the following order:
    1. .textcal.env in the current directory
    2. .textcal.env in the user's home directory
    Values already present in the environment win.
    """
    if os.path.exists(ENV_FILE_NAME):
        load_dotenv(ENV_FILE_NAME)

    home_env = Path.home() / ENV_FILE_NAME
    if home_env.exists():
        load_dotenv(home_env)


def get_config(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get configuration value from environment variables."""
    return os.getenv(key, default)


@dataclass(frozen=True)
class CalendarInfo:
    """Connection details for one remote calendar collection."""
    ref: str
    server_url: str
    username: str
    password: str
    calendar: str


class MissingConfigError(RuntimeError):
    """Raised when a required configuration key is not set."""


def load_calendar_info() -> CalendarInfo:
    """Build a :class:`CalendarInfo` from ``TEXTCAL_*`` environment variables."""
    required = {
        "server_url": "TEXTCAL_SERVER_URL",
        "username": "TEXTCAL_USERNAME",
        "password": "TEXTCAL_PASSWORD",
        "calendar": "TEXTCAL_CALENDAR",
    }
    values = {field: get_config(key) for field, key in required.items()}
    missing = [required[field] for field, value in values.items() if not value]
    if missing:
        raise MissingConfigError(
            f"Missing required configuration: {', '.join(missing)}. "
            f"Set them in your {ENV_FILE_NAME} file or environment variables."
        )
    ref = get_config("TEXTCAL_CALENDAR_REF") or values["calendar"]
    return CalendarInfo(ref=ref, **values)


def mirror_path() -> Path:
    """Location of the JSON mirror file."""
    configured = get_config("TEXTCAL_MIRROR_PATH")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".textcal" / "mirror.json"

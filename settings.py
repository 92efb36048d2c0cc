"""Environment-driven configuration for the conversation harness.

Values come from the process environment, with a local ``.env`` file loaded
first so developers can keep their OpenAI key and target URL out of the shell
history. CLI flags in ``main.py`` override anything read here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


load_dotenv()

DEFAULT_CHAT_URL = "https://m365.cloud.microsoft/chat/?internalredirect=CCM&auth=2"
DEFAULT_CDP_URL = "http://localhost:9222"
PLACEHOLDER_API_KEYS = {"", "your-api-key-here", "your-openai-api-key-here"}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    print(f"  • Unrecognized {name} value '{raw}', keeping default {default}.")
    return default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        print(f"  • {name} must be an integer (got '{raw}'), keeping default {default}.")
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        print(f"  • {name} must be a number (got '{raw}'), keeping default {default}.")
        return default


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip()
    return value or default


#GLOBAL CONSTANTS

CHAT_URL = env_str("CHAT_URL", DEFAULT_CHAT_URL)
CHAT_CDP_URL = env_str("CHAT_CDP_URL")
CHAT_HEADLESS = env_flag("CHAT_HEADLESS", False)
CHAT_PROFILE_DIR = Path(env_str("CHAT_PROFILE_DIR", "profiles/chat"))
CHAT_MAX_TURNS = env_int("CHAT_MAX_TURNS", 5)

SCREENSHOT_DIR = Path(env_str("SCREENSHOT_DIR", "screenshots"))
RESULTS_DIR = Path(env_str("RESULTS_DIR", "test-results"))
SUMMARY_DIR = RESULTS_DIR / "conversation-summary"
VIDEO_DIR = RESULTS_DIR / "videos"
AUTH_STATE_PATH = Path(env_str("CHAT_AUTH_STATE", "playwright/.auth/user.json"))

OPENAI_MODEL = env_str("OPENAI_MODEL", "gpt-4o")
OPENAI_TIMEOUT = env_float("OPENAI_TIMEOUT", 60.0)


def openai_api_key() -> Optional[str]:
    """Return the configured key, or ``None`` when unset or still a template value."""

    key = (os.environ.get("OPENAI_API_KEY") or "").strip()
    if key in PLACEHOLDER_API_KEYS:
        return None
    return key

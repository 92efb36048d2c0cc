from __future__ import annotations

import hashlib
import time
from pathlib import Path
from typing import Optional

from playwright.sync_api import Error as PWError


def take_screenshot(page, file_name: str, directory: Path, full_page: bool = True) -> str:
    """Write a PNG of ``page`` to ``directory / file_name`` and return that path."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / file_name
    page.screenshot(path=str(path), full_page=full_page)
    print(f"📸 Screenshot saved: {path}")
    return str(path)


def turn_screenshot_name(turn_index: int, stamp_ms: Optional[int] = None) -> str:
    stamp = stamp_ms if stamp_ms is not None else int(time.time() * 1000)
    return f"conversation-turn-{turn_index}-{stamp}.png"


def final_screenshot_name(stamp_ms: Optional[int] = None) -> str:
    stamp = stamp_ms if stamp_ms is not None else int(time.time() * 1000)
    return f"conversation-final-{stamp}.png"


def page_fingerprint(page) -> Optional[str]:
    """Hash of the current viewport rendering, or ``None`` when capture fails."""

    try:
        png = page.screenshot()
    except PWError as exc:
        print(f"  • Fingerprint capture failed: {exc}")
        return None
    return hashlib.sha256(png).hexdigest()

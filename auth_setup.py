# auth_setup.py
"""Sign in once so later runs reuse the session.

Opens the persistent profile with a visible window, waits for you to finish
the login (password, MFA) by hand, then also exports the storage state to
``CHAT_AUTH_STATE``. ``main.py --cdp`` seeds a new context from that file
when the attached browser has none open.
"""

from __future__ import annotations

import re
import sys

from playwright.sync_api import Error as PWError

import settings
from agent_selector import find_chat_input
from bots._profile_launch import launch_persistent, shutdown


LOGIN_HOSTS = ("login.microsoftonline.com", "login.live.com")
CHAT_URL_PATTERN = re.compile(r".*copilot|.*chat|.*m365\.cloud\.microsoft.*")
LOGIN_TIMEOUT_MS = 180000


def main() -> int:
    playwright = None
    context = None
    try:
        playwright, context, page = launch_persistent(
            settings.CHAT_URL, str(settings.CHAT_PROFILE_DIR), headless=False
        )
        page.wait_for_load_state("domcontentloaded")

        if any(host in page.url for host in LOGIN_HOSTS):
            print("Redirected to login page, proceeding with authentication...")
            email = settings.env_str("CHAT_LOGIN_EMAIL")
            if email:
                email_input = page.locator('input[type="email"], input[name="loginfmt"]')
                email_input.wait_for(timeout=10000)
                email_input.fill(email)
                page.locator('input[type="submit"], button[type="submit"]').first.click()
            print("🔐 Please finish signing in manually in the browser window...")
            print("⏳ Waiting for you to complete login (password + MFA if required)...")
            page.wait_for_url(CHAT_URL_PATTERN, timeout=LOGIN_TIMEOUT_MS)
        else:
            print("Already logged in or redirected to the chat directly")

        if find_chat_input(page, timeout_ms=70000) is None:
            print("❌ Signed in, but the chat input never appeared.")
            return 1

        settings.AUTH_STATE_PATH.parent.mkdir(parents=True, exist_ok=True)
        context.storage_state(path=str(settings.AUTH_STATE_PATH))
        print(f"✅ Authentication state saved to: {settings.AUTH_STATE_PATH}")
        return 0
    except PWError as exc:
        print(f"❌ Authentication setup failed: {exc}")
        return 1
    finally:
        shutdown(playwright, context)


if __name__ == "__main__":
    sys.exit(main())

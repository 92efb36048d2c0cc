"""Utilities for opening the browser session a conversation run drives.

Two ways in: a persistent Chromium profile (cookies and the signed-in chat
session survive between runs, and every page is recorded to video), or an
already running Edge/Chrome started with ``--remote-debugging-port`` that we
attach to over CDP. Both helpers return the Playwright controller alongside
the context and page so callers can release everything through ``shutdown``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

from playwright.sync_api import BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PWError


def launch_persistent(
    start_url: Optional[str],
    profile_dir: str,
    *,
    headless: bool = False,
    video_dir: Optional[str] = None,
    channel: Optional[str] = None,
) -> Tuple[Playwright, BrowserContext, Page]:
    """Launch a persistent Chromium context backed by ``profile_dir``.

    Parameters
    ----------
    start_url:
        Optional URL to navigate to immediately after launch.
    profile_dir:
        Directory that stores the Chromium profile (cookies, localStorage,
        the signed-in chat session). Created when missing.
    headless:
        Whether to launch without a window. Signing in needs a visible one.
    video_dir:
        When given, every page in the context is recorded into this
        directory. The file is finalized once the context closes.
    channel:
        Browser channel such as ``"msedge"``; ``None`` uses bundled Chromium.
    """

    profile_path = Path(profile_dir)
    profile_path.mkdir(parents=True, exist_ok=True)

    launch_kwargs = {"headless": headless}
    if video_dir:
        Path(video_dir).mkdir(parents=True, exist_ok=True)
        launch_kwargs["record_video_dir"] = str(video_dir)
    if channel:
        launch_kwargs["channel"] = channel

    playwright = sync_playwright().start()
    try:
        context = playwright.chromium.launch_persistent_context(str(profile_path), **launch_kwargs)
    except PWError:
        playwright.stop()
        raise

    if context.pages:
        page = context.pages[0]
    else:
        page = context.new_page()

    if start_url:
        _goto_quietly(page, start_url)

    return playwright, context, page


def connect_existing(
    cdp_url: str,
    start_url: Optional[str] = None,
    storage_state: Optional[str] = None,
) -> Tuple[Playwright, BrowserContext, Page]:
    """Attach to a browser that is already running with remote debugging enabled.

    Reuses the first open context and tab, which keeps whatever session the
    user has signed into. A browser without any open context (a freshly
    started headless one, say) gets a new context seeded from
    ``storage_state`` when that file exists, which is the session exported by
    ``auth_setup.py``. Video is not available on attached browsers.
    """

    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.connect_over_cdp(cdp_url)
    except PWError:
        playwright.stop()
        raise

    if browser.contexts:
        context = browser.contexts[0]
    elif storage_state and Path(storage_state).is_file():
        context = browser.new_context(storage_state=str(storage_state))
    else:
        context = browser.new_context()
    page = context.pages[0] if context.pages else context.new_page()

    if start_url:
        _goto_quietly(page, start_url)

    return playwright, context, page


def _goto_quietly(page: Page, url: str) -> None:
    try:
        page.goto(url, wait_until="domcontentloaded")
    except PWError as exc:
        # Auth redirects and slow tenants are common; the caller decides what
        # to do with a page that did not finish loading.
        print(f"  • Initial navigation to {url} did not complete: {exc}")


def video_path_for(page: Optional[Page]) -> Optional[str]:
    """Return the recording path of ``page`` when video capture is active."""

    if page is None:
        return None
    try:
        video = page.video
        if video is None:
            return None
        return str(video.path())
    except PWError:
        return None


def shutdown(
    playwright: Optional[Playwright],
    context: Optional[BrowserContext],
    *,
    close_context: bool = True,
) -> None:
    """Dispose of Playwright resources from ``launch_persistent``/``connect_existing``.

    ``close_context=False`` leaves an attached browser's session open for the
    user and only disconnects the driver.
    """

    try:
        if context and close_context:
            context.close()
    finally:
        if playwright:
            playwright.stop()

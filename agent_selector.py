"""Best-effort lookups for the agent picker and chat box of the assistant web app.

The vendor markup is unversioned and changes without notice, so every lookup
walks a prioritized list of ``(description, builder)`` candidates and takes
the first one that shows up. Running out of candidates is a normal outcome:
callers get ``None`` or ``(False, reason)`` and decide how to degrade.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from playwright.sync_api import Error as PWError

from run_log import RunLog, emit


Candidate = Tuple[str, Callable]

PROBE_TIMEOUT_MS = 3000
PROBE_SLICE_MS = 500
AGENT_MATCH_LIMIT = 10

ALL_AGENTS_SELECTORS = [
    'text="All agents"',
    '[href*="agents"]',
    'a:has-text("All agents")',
    'button:has-text("All agents")',
    'a[data-testid*="all-agents"]',
]

SEARCH_INPUT_SELECTORS = [
    'input[placeholder*="Search agents"]',
    'input[placeholder*="search"]',
    '[data-testid*="search"]',
    'input[type="search"]',
    ".search-input",
    "#search-agents",
]

CHAT_INPUT_SELECTORS = [
    'textarea[placeholder*="message"]',
    'textarea[placeholder*="Message Copilot"]',
    'input[type="text"]',
    "textarea",
    "#chat-input",
    '[data-testid*="chat-input"]',
    '[role="textbox"]',
    'div[contenteditable="true"]',
    '[contenteditable="true"]',
]


@dataclass
class ChatInput:
    locator: object
    selector: str
    is_content_editable: bool = False


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _selector_candidates(selectors: List[str]) -> List[Candidate]:
    return [(selector, lambda page, selector=selector: page.locator(selector)) for selector in selectors]


def make_agent_candidates(agent_name: str) -> List[Candidate]:
    """Return locator builders for an agent card/result, most specific first."""

    name = agent_name.strip()
    if not name:
        return []
    quoted = _quote(name)
    testid = "-".join(name.lower().split())

    selectors = [
        f'div:has-text("{quoted}"):not(:has-text("search")):visible',
        f'button:has-text("{quoted}")',
        f'[data-testid*="{_quote(testid)}"]',
        f'.agent-card:has-text("{quoted}")',
        f'.search-suggestion:has-text("{quoted}")',
        f'text="{quoted}"',
        f':is(button, a, div[role="button"], [tabindex]):has-text("{quoted}")',
        f'div:has(img) + div:has-text("{quoted}")',
        f'div:has([data-testid*="icon"]):has-text("{quoted}")',
    ]

    options: List[Candidate] = []
    seen: set[str] = set()
    for selector in selectors:
        if selector in seen:
            continue
        seen.add(selector)
        options.append((selector, lambda page, selector=selector: page.locator(selector)))
    return options


def find_first_visible(
    page,
    candidates: List[Candidate],
    timeout_ms: int = PROBE_TIMEOUT_MS,
) -> Optional[Tuple[str, object]]:
    """Return ``(description, locator)`` for the first candidate that becomes visible.

    Candidates are swept in priority order, each probe waiting at most
    ``PROBE_SLICE_MS``, until the sweeps have used up ``timeout_ms``. An
    element that only renders after the lookup starts is still found, even
    when it matches a candidate near the end of the list.
    """

    if not candidates:
        return None
    slice_ms = max(1, min(PROBE_SLICE_MS, timeout_ms))
    sweeps = max(1, math.ceil(timeout_ms / (slice_ms * len(candidates))))
    for _ in range(sweeps):
        for desc, builder in candidates:
            try:
                target = builder(page).first
                target.wait_for(state="visible", timeout=slice_ms)
                return desc, target
            except PWError:
                continue
    return None


def open_agent_store(page, log: Optional[RunLog] = None, timeout_ms: int = PROBE_TIMEOUT_MS) -> bool:
    match = find_first_visible(page, _selector_candidates(ALL_AGENTS_SELECTORS), timeout_ms)
    if not match:
        emit(log, 'Could not find "All agents" link, may already be on agents page')
        return False
    desc, target = match
    try:
        target.click(timeout=timeout_ms)
    except PWError as exc:
        emit(log, f"  • Clicking All agents via {desc} failed: {exc}")
        return False
    emit(log, "Successfully clicked on All agents")
    return True


def search_for_agent(
    page,
    agent_name: str,
    log: Optional[RunLog] = None,
    timeout_ms: int = PROBE_TIMEOUT_MS,
    results_timeout_ms: int = 10000,
) -> bool:
    match = find_first_visible(page, _selector_candidates(SEARCH_INPUT_SELECTORS), timeout_ms)
    if not match:
        emit(log, "Could not find search input, trying direct selection")
        return False
    desc, search_input = match
    try:
        search_input.fill(agent_name, timeout=timeout_ms)
        page.keyboard.press("Enter")
    except PWError as exc:
        emit(log, f"  • Searching via {desc} failed: {exc}")
        return False
    emit(log, f'Filled search input with "{agent_name}" and pressed Enter')

    try:
        page.get_by_text(agent_name).first.wait_for(state="visible", timeout=results_timeout_ms)
    except PWError:
        emit(log, f"⚠️ No visible result mentioning {agent_name} yet")
    return True


def select_agent(page, agent_name: str, log: Optional[RunLog] = None, timeout_ms: int = 2000) -> Optional[str]:
    """Click the first visible element matching any agent candidate; return the selector used."""

    for index, (desc, builder) in enumerate(make_agent_candidates(agent_name), start=1):
        try:
            elements = builder(page)
            count = min(elements.count(), AGENT_MATCH_LIMIT)
        except PWError as exc:
            emit(log, f"  • Selector {index} failed: {exc}")
            continue
        for nth in range(count):
            element = elements.nth(nth)
            try:
                if not element.is_visible():
                    continue
                element.click(timeout=timeout_ms)
            except PWError as exc:
                emit(log, f"  • Selector {index} element {nth} failed: {exc}")
                continue
            emit(log, f"Successfully clicked {agent_name} using selector: {desc} (element {nth})")
            return desc
    emit(log, f"Could not find {agent_name} in search results")
    return None


def select_and_open_agent(page, agent_name: str, log: Optional[RunLog] = None) -> bool:
    """Agent store → search → select. Each step is optional; returns whether the agent was clicked."""

    emit(log, "Step 1: Clicking on All agents...")
    open_agent_store(page, log)

    emit(log, f"Step 2: Searching for {agent_name}...")
    search_for_agent(page, agent_name, log)

    emit(log, f"Step 3: Selecting {agent_name} from results...")
    return select_agent(page, agent_name, log) is not None


def find_chat_input(page, log: Optional[RunLog] = None, timeout_ms: int = 10000) -> Optional[ChatInput]:
    match = find_first_visible(page, _selector_candidates(CHAT_INPUT_SELECTORS), timeout_ms)
    if not match:
        return None
    desc, target = match
    editable = False
    try:
        tag_name = target.evaluate("el => el.tagName.toLowerCase()")
        editable = tag_name == "div" or target.get_attribute("contenteditable") == "true"
    except PWError:
        tag_name = "unknown"
    emit(log, f"Found chat input with selector: {desc} ({tag_name}, contenteditable: {editable})")
    return ChatInput(locator=target, selector=desc, is_content_editable=editable)


def send_message(page, chat_input: ChatInput, text: str) -> tuple[bool, str]:
    """Type ``text`` into the chat box and submit it with Enter."""

    target = chat_input.locator
    typed_via = "fill"
    try:
        try:
            target.fill(text, timeout=5000)
        except PWError:
            if not chat_input.is_content_editable:
                raise
            # rich editors sometimes reject fill(); fall back to keystrokes
            typed_via = "type"
            target.click(timeout=5000)
            page.keyboard.press("Control+A")
            page.keyboard.press("Backspace")
            page.keyboard.type(text, delay=20)
        page.keyboard.press("Enter")
    except PWError as exc:
        return False, f"Sending failed: {exc}"
    return True, f"Sent via {chat_input.selector} ({typed_via})"

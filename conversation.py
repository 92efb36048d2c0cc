"""Multi-turn conversation driver.

Each turn waits for the agent's answer to settle, screenshots the chat,
decides whether to keep going and, if so, submits the next user message.
Follow-ups come from the vision model when an OpenAI key is configured and
from a fixed table otherwise. A failure while deciding only affects the
current turn; a failure while submitting ends the conversation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from playwright.sync_api import Error as PWError

from agent_selector import ChatInput, send_message
from capture import final_screenshot_name, page_fingerprint, take_screenshot, turn_screenshot_name
from llm_client import (
    FALLBACK_TURN_LIMIT,
    MAX_TURNS,
    RECOVERY_RESPONSES,
    classify_continuation,
    fallback_message,
    generate_next_message,
)
from run_log import RunLog, emit
import settings as app_settings
from summary import LLM_MODE, SIMPLE_MODE


SIMPLE_FOLLOW_UPS = [
    "Can you provide more details about that?",
    "How would I implement this in practice?",
    "Are there alternative approaches to consider?",
    "Can you summarize the key takeaways?",
    "Thank you! Is there anything else important I should know?",
]


@dataclass
class ConversationSettings:
    max_turns: int = MAX_TURNS
    fallback_turn_limit: int = FALLBACK_TURN_LIMIT
    fallback_messages: Sequence[str] = field(default_factory=lambda: list(SIMPLE_FOLLOW_UPS))
    recovery_messages: Sequence[str] = field(default_factory=lambda: list(RECOVERY_RESPONSES))
    llm_enabled: bool = False
    screenshot_dir: Path = app_settings.SCREENSHOT_DIR
    # polled stability check that replaces a fixed sleep before each capture
    settle_timeout_ms: int = 30000
    settle_interval_ms: int = 1000
    settle_matches: int = 2
    post_send_delay_ms: int = 1000

    @property
    def conversation_mode(self) -> str:
        return LLM_MODE if self.llm_enabled else SIMPLE_MODE


@dataclass
class TurnRecord:
    turn: int
    message: str
    source: str

    def as_dict(self) -> dict:
        return {"turn": self.turn, "message": self.message, "source": self.source}


@dataclass(frozen=True)
class TurnResult:
    should_continue: bool
    next_message: Optional[str] = None
    source: str = "fallback"


@dataclass
class ConversationState:
    max_turns: int = MAX_TURNS
    turn_index: int = 0
    accumulated_context: List[str] = field(default_factory=list)
    screenshot_paths: List[str] = field(default_factory=list)
    turns: List[TurnRecord] = field(default_factory=list)
    aborted: bool = False

    def context_text(self) -> str:
        return " ".join(self.accumulated_context)

    def record_turn(self, message: str, source: str) -> None:
        self.accumulated_context.append(f"Turn {self.turn_index}: {message}")
        self.turns.append(TurnRecord(turn=self.turn_index, message=message, source=source))


def simple_decision(turn_index: int, config: ConversationSettings) -> TurnResult:
    should_continue = turn_index < config.fallback_turn_limit and turn_index < config.max_turns
    if not should_continue:
        return TurnResult(should_continue=False)
    return TurnResult(
        should_continue=True,
        next_message=fallback_message(turn_index, config.fallback_messages),
        source="fallback",
    )


def decide_turn(
    state: ConversationState,
    screenshot_path: str,
    config: ConversationSettings,
    *,
    client=None,
    log: Optional[RunLog] = None,
) -> TurnResult:
    """Decide whether to continue after ``state.turn_index`` and what to say next."""

    turn = state.turn_index
    if not config.llm_enabled:
        return simple_decision(turn, config)

    emit(log, "🤖 Using LLM to analyze conversation and generate follow-up...")
    try:
        image = Path(screenshot_path).read_bytes()
        should_continue = classify_continuation(
            image,
            turn,
            client=client,
            max_turns=config.max_turns,
            fallback_limit=config.fallback_turn_limit,
        )
        if not should_continue:
            return TurnResult(should_continue=False, source="llm")
        message = generate_next_message(
            image,
            state.context_text(),
            turn,
            client=client,
            fallback_messages=config.recovery_messages,
        )
        return TurnResult(should_continue=True, next_message=message, source="llm")
    except Exception as exc:
        emit(log, f"❌ LLM analysis failed: {exc}")

    return simple_decision(turn, config)


def wait_for_stable_page(
    page,
    *,
    baseline: Optional[str] = None,
    timeout_ms: int = 30000,
    interval_ms: int = 1000,
    required_matches: int = 2,
) -> bool:
    """Poll screenshots until ``required_matches`` consecutive repeats differ from ``baseline``.

    Returns False when the page never settles within ``timeout_ms``.
    """

    polls = max(1, timeout_ms // max(interval_ms, 1))
    previous: Optional[str] = None
    matches = 0
    for _ in range(polls):
        current = page_fingerprint(page)
        if current is not None and current == previous:
            matches += 1
        else:
            matches = 0
        previous = current
        if matches >= required_matches and current != baseline:
            return True
        page.wait_for_timeout(interval_ms)
    return False


def conversation_loop(
    page,
    chat_input: ChatInput,
    config: ConversationSettings,
    *,
    client=None,
    log: Optional[RunLog] = None,
    state: Optional[ConversationState] = None,
) -> ConversationState:
    """Run follow-up turns until the decision says stop or ``max_turns`` is reached.

    Pass ``state`` to keep hold of the partial transcript yourself. A browser
    error mid-loop marks the state aborted instead of propagating, and the
    final screenshot is still attempted.
    """

    if state is None:
        state = ConversationState(max_turns=config.max_turns)
    emit(log, f"🔄 Starting conversation loop ({config.conversation_mode})...")
    if not config.llm_enabled:
        emit(log, "💡 OPENAI_API_KEY not set, using simple conversation logic.")

    try:
        _run_turns(page, chat_input, config, state, client=client, log=log)
    except PWError as exc:
        emit(log, f"❌ Browser error during conversation turn {state.turn_index + 1}: {exc}")
        state.aborted = True

    try:
        final_path = take_screenshot(page, final_screenshot_name(), config.screenshot_dir)
        state.screenshot_paths.append(final_path)
    except PWError as exc:
        emit(log, f"❌ Final screenshot failed: {exc}")
        state.aborted = True

    emit(log, f"🎯 Conversation completed after {state.turn_index} turns")
    emit(log, f"📸 Total screenshots captured: {len(state.screenshot_paths)}")
    return state


def _run_turns(
    page,
    chat_input: ChatInput,
    config: ConversationSettings,
    state: ConversationState,
    *,
    client=None,
    log: Optional[RunLog] = None,
) -> None:
    baseline = page_fingerprint(page)
    while state.turn_index < state.max_turns:
        # a turn only counts once its screenshot exists
        turn = state.turn_index + 1
        emit(log, f"--- Conversation Turn {turn} ---")

        emit(log, "⏳ Waiting for agent response...")
        settled = wait_for_stable_page(
            page,
            baseline=baseline,
            timeout_ms=config.settle_timeout_ms,
            interval_ms=config.settle_interval_ms,
            required_matches=config.settle_matches,
        )
        if not settled:
            emit(log, f"⚠️ Page still changing after {config.settle_timeout_ms} ms, capturing anyway")

        screenshot_path = take_screenshot(page, turn_screenshot_name(turn), config.screenshot_dir)
        state.turn_index = turn
        state.screenshot_paths.append(screenshot_path)
        emit(log, f"📸 Conversation Turn {turn} screenshot: {screenshot_path}")

        result = decide_turn(state, screenshot_path, config, client=client, log=log)
        if not result.should_continue or not result.next_message:
            emit(log, "🏁 Conversation analysis indicates natural ending point")
            return

        emit(log, f'❓ Follow-up message: "{result.next_message}"')
        ok, detail = send_message(page, chat_input, result.next_message)
        if not ok:
            emit(log, f"❌ Error sending follow-up message: {detail}")
            state.aborted = True
            return
        state.record_turn(result.next_message, result.source)
        emit(log, "✅ Sent follow-up message")

        baseline = page_fingerprint(page)
        if config.post_send_delay_ms:
            page.wait_for_timeout(config.post_send_delay_ms)
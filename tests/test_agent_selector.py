import pytest
from playwright.sync_api import Error as PWError
from playwright.sync_api import TimeoutError as PWTimeoutError

from agent_selector import (
    CHAT_INPUT_SELECTORS,
    PROBE_SLICE_MS,
    ChatInput,
    find_chat_input,
    find_first_visible,
    make_agent_candidates,
    select_agent,
    select_and_open_agent,
    send_message,
)
from fakes import FakeLocator, FakePage
from run_log import RunLog


def test_agent_candidates_are_ordered_and_unique() -> None:
    candidates = make_agent_candidates("Prompt Coach")
    descriptions = [desc for desc, _ in candidates]

    assert descriptions[0] == 'div:has-text("Prompt Coach"):not(:has-text("search")):visible'
    assert descriptions[1] == 'button:has-text("Prompt Coach")'
    assert '[data-testid*="prompt-coach"]' in descriptions
    assert len(descriptions) == len(set(descriptions))


def test_agent_candidates_escape_quotes() -> None:
    desc, _ = make_agent_candidates('The "Best" Agent')[1]
    assert desc == 'button:has-text("The \\"Best\\" Agent")'


def test_blank_agent_name_has_no_candidates() -> None:
    assert make_agent_candidates("   ") == []


def test_find_first_visible_skips_missing_and_hidden() -> None:
    shown = FakeLocator()
    page = FakePage({"#hidden": FakeLocator(visible=False), "#shown": shown})
    candidates = [
        ("missing", lambda p: p.locator("#missing")),
        ("hidden", lambda p: p.locator("#hidden")),
        ("shown", lambda p: p.locator("#shown")),
    ]
    assert find_first_visible(page, candidates, timeout_ms=10) == ("shown", shown)


def test_find_first_visible_returns_none_when_nothing_matches() -> None:
    assert find_first_visible(FakePage(), [("missing", lambda p: p.locator("#x"))], timeout_ms=10) is None


def test_select_agent_clicks_first_visible_match() -> None:
    card = FakeLocator(count=3)
    page = FakePage({'button:has-text("Researcher")': card})
    log = RunLog(echo=False)

    assert select_agent(page, "Researcher", log) == 'button:has-text("Researcher")'
    assert card.clicks == 1
    assert any("Successfully clicked Researcher" in event.text for event in log.events())


def test_select_agent_moves_on_after_click_failure() -> None:
    broken = FakeLocator(click_error=PWError("element intercepts pointer events"))
    working = FakeLocator()
    page = FakePage(
        {
            'div:has-text("Analyst"):not(:has-text("search")):visible': broken,
            'button:has-text("Analyst")': working,
        }
    )
    assert select_agent(page, "Analyst", RunLog(echo=False)) == 'button:has-text("Analyst")'
    assert working.clicks == 1


def test_select_agent_reports_not_found() -> None:
    log = RunLog(echo=False)
    assert select_agent(FakePage(), "Nobody", log) is None
    assert log.events()[-1].text == "Could not find Nobody in search results"


def test_select_and_open_agent_tolerates_missing_store_and_search() -> None:
    page = FakePage({'text="CAPEPilot"': FakeLocator()})
    assert select_and_open_agent(page, "CAPEPilot", RunLog(echo=False)) is True


def test_select_and_open_agent_searches_when_box_is_present() -> None:
    search = FakeLocator()
    page = FakePage(
        {
            'input[placeholder*="Search agents"]': search,
            'button:has-text("CAPEPilot")': FakeLocator(),
        }
    )
    assert select_and_open_agent(page, "CAPEPilot", RunLog(echo=False)) is True
    assert search.filled == ["CAPEPilot"]
    assert page.keyboard.pressed == ["Enter"]


def test_find_chat_input_prefers_textarea() -> None:
    page = FakePage({"textarea": FakeLocator(), '[contenteditable="true"]': FakeLocator(tag="div")})
    chat = find_chat_input(page, RunLog(echo=False), timeout_ms=10)
    assert chat is not None
    assert chat.selector == "textarea"
    assert chat.is_content_editable is False


@pytest.mark.parametrize(
    ("locator", "editable"),
    [
        (FakeLocator(tag="div"), True),
        (FakeLocator(tag="p", contenteditable="true"), True),
        (FakeLocator(tag="span"), False),
    ],
)
def test_find_chat_input_detects_rich_editors(locator: FakeLocator, editable: bool) -> None:
    page = FakePage({'[role="textbox"]': locator})
    chat = find_chat_input(page, RunLog(echo=False), timeout_ms=10)
    assert chat is not None
    assert chat.is_content_editable is editable


def test_find_chat_input_returns_none_when_absent() -> None:
    assert find_chat_input(FakePage(), RunLog(echo=False), timeout_ms=10) is None
    assert len(CHAT_INPUT_SELECTORS) > 1


def test_send_message_fills_and_submits() -> None:
    page = FakePage()
    chat = ChatInput(locator=FakeLocator(), selector="textarea")

    ok, detail = send_message(page, chat, "Hello there")
    assert ok is True
    assert chat.locator.filled == ["Hello there"]
    assert page.keyboard.pressed == ["Enter"]
    assert "fill" in detail


def test_send_message_types_into_contenteditable_when_fill_fails() -> None:
    page = FakePage()
    chat = ChatInput(
        locator=FakeLocator(tag="div", fill_error=PWError("Element is not an <input>")),
        selector='div[contenteditable="true"]',
        is_content_editable=True,
    )
    ok, detail = send_message(page, chat, "Draft it please")
    assert ok is True
    assert page.keyboard.typed == ["Draft it please"]
    assert page.keyboard.pressed == ["Control+A", "Backspace", "Enter"]
    assert detail.endswith("(type)")


def test_send_message_reports_failure_without_raising() -> None:
    page = FakePage()
    chat = ChatInput(locator=FakeLocator(fill_error=PWError("Target closed")), selector="textarea")
    ok, detail = send_message(page, chat, "Hello")
    assert ok is False
    assert detail.startswith("Sending failed:")
    assert page.keyboard.pressed == []


class RenderingLocator(FakeLocator):
    """Not attached yet (``count() == 0``) but becomes visible after ``ready_after`` waits."""

    def __init__(self, ready_after: int = 0, **kwargs) -> None:
        super().__init__(count=0, **kwargs)
        self.ready_after = ready_after
        self.waits = 0

    def wait_for(self, state: str = "visible", timeout: float = 0) -> None:
        self.waits += 1
        if self.waits <= self.ready_after:
            raise PWTimeoutError(f"Timeout {timeout}ms exceeded waiting for {state}")


def test_find_chat_input_waits_for_input_that_is_not_rendered_yet() -> None:
    late = RenderingLocator()
    page = FakePage({"textarea": late})

    chat = find_chat_input(page, RunLog(echo=False), timeout_ms=70000)
    assert chat is not None
    assert chat.locator is late
    assert late.waits == 1


def test_find_first_visible_keeps_sweeping_until_the_budget_is_spent() -> None:
    late = RenderingLocator(ready_after=3)
    page = FakePage({"#late": late})
    candidates = [
        ("missing", lambda p: p.locator("#missing")),
        ("late", lambda p: p.locator("#late")),
    ]

    assert find_first_visible(page, candidates, timeout_ms=PROBE_SLICE_MS * 2 * 4) == ("late", late)
    assert late.waits == 4


def test_find_first_visible_gives_up_after_the_budget() -> None:
    late = RenderingLocator(ready_after=10)
    page = FakePage({"#late": late})

    assert find_first_visible(page, [("late", lambda p: p.locator("#late"))], timeout_ms=PROBE_SLICE_MS * 3) is None
    assert late.waits == 3

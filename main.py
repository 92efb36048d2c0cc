# main.py
"""Drive a conversation with a named agent of the chat assistant.

    python main.py                                   # default scenario
    python main.py --agent "Researcher" --prompt "..."
    python main.py --all --report                     # every built-in scenario, then the HTML report
    python main.py --cdp                              # attach to Edge started with --remote-debugging-port=9222
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from playwright.sync_api import Error as PWError

import report
import settings
from agent_selector import find_chat_input, select_and_open_agent, send_message
from bots._profile_launch import connect_existing, launch_persistent, shutdown, video_path_for
from conversation import ConversationSettings, ConversationState, conversation_loop
from llm_client import has_llm_credentials
from run_log import RunLog
from scenarios import DEFAULT_SCENARIO, SCENARIOS, Scenario, find_scenario, load_scenarios
from summary import FAILED, PASSED, RunSummary, utc_timestamp, write_summary


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run an LLM-guided conversation against a chat agent.")
    parser.add_argument("--agent", help="Agent name to search for and select.")
    parser.add_argument("--prompt", help="Initial prompt to send to the agent.")
    parser.add_argument("--all", action="store_true", help="Run every scenario one after another.")
    parser.add_argument("--scenarios-file", type=Path, help="JSON file with a list of scenarios.")
    parser.add_argument("--url", default=settings.CHAT_URL, help="Chat application URL.")
    parser.add_argument(
        "--cdp",
        nargs="?",
        const=settings.DEFAULT_CDP_URL,
        default=settings.CHAT_CDP_URL,
        help="Attach to a running browser over CDP instead of launching one.",
    )
    parser.add_argument("--profile-dir", type=Path, default=settings.CHAT_PROFILE_DIR)
    parser.add_argument("--channel", help='Browser channel for launched browsers, e.g. "msedge".')
    parser.add_argument("--headless", action="store_true", default=settings.CHAT_HEADLESS)
    parser.add_argument("--max-turns", type=int, default=settings.CHAT_MAX_TURNS)
    parser.add_argument("--no-llm", action="store_true", help="Force the simple fallback conversation.")
    parser.add_argument("--report", action="store_true", help="Generate the HTML report after the runs.")
    return parser.parse_args(argv)


def resolve_scenarios(args: argparse.Namespace) -> List[Scenario]:
    available = load_scenarios(args.scenarios_file) if args.scenarios_file else SCENARIOS
    if args.all:
        return list(available)
    if args.agent:
        known = find_scenario(args.agent, available)
        prompt = args.prompt or (known.prompt if known else DEFAULT_SCENARIO.prompt)
        description = known.description if known and not args.prompt else ""
        return [Scenario(args.agent, prompt, description)]
    base = available[0] if available else DEFAULT_SCENARIO
    if args.prompt:
        return [Scenario(base.agent_name, args.prompt)]
    return [base]


def run_scenario(scenario: Scenario, args: argparse.Namespace) -> RunSummary:
    log = RunLog()
    llm_enabled = has_llm_credentials() and not args.no_llm
    config = ConversationSettings(
        max_turns=args.max_turns,
        llm_enabled=llm_enabled,
        screenshot_dir=settings.SCREENSHOT_DIR,
    )
    browser_info = f"Attached over CDP ({args.cdp})" if args.cdp else f"{args.channel or 'chromium'} (persistent profile)"

    log.record(f"🚀 Starting test for {scenario.agent_name}")
    log.record(f'📝 Prompt: "{scenario.prompt}"')

    started = time.monotonic()
    status = FAILED
    state = ConversationState(max_turns=config.max_turns)
    video_path: Optional[str] = None

    playwright = None
    context = None
    page = None
    try:
        if args.cdp:
            playwright, context, page = connect_existing(
                args.cdp, args.url, storage_state=str(settings.AUTH_STATE_PATH)
            )
            log.record("Connected to existing browser!")
        else:
            playwright, context, page = launch_persistent(
                args.url,
                str(args.profile_dir),
                headless=args.headless,
                video_dir=str(settings.VIDEO_DIR),
                channel=args.channel,
            )
            video_path = video_path_for(page)

        page.wait_for_load_state("domcontentloaded")
        select_and_open_agent(page, scenario.agent_name, log)

        log.record("Step 4: Looking for chat input...")
        chat_input = find_chat_input(page, log)
        if chat_input is None:
            log.record(f"❌ Chat interface not found after navigating to {scenario.agent_name}")
        else:
            log.record(f"Step 5: Sending prompt to {scenario.agent_name}...")
            ok, detail = send_message(page, chat_input, scenario.prompt)
            if not ok:
                log.record(f"❌ Could not send prompt: {detail}")
            else:
                log.record(f'Successfully sent prompt: "{scenario.prompt}"')
                conversation_loop(page, chat_input, config, log=log, state=state)
                status = FAILED if state.aborted else PASSED
                mode = "LLM-powered" if llm_enabled else "Simple"
                log.record(
                    f"✅ Complete workflow executed: All agents → Search → {scenario.agent_name} "
                    f"→ Send prompt → {mode} conversation completed"
                )
    except PWError as exc:
        log.record(f"❌ Browser automation failed for {scenario.agent_name}: {exc}")
        if args.cdp:
            log.record("💡 Make sure the browser is running with --remote-debugging-port=9222")
    finally:
        shutdown(playwright, context, close_context=not args.cdp)

    summary = RunSummary(
        title=scenario.title,
        agent_name=scenario.agent_name,
        timestamp=utc_timestamp(),
        duration_ms=int((time.monotonic() - started) * 1000),
        status=status,
        conversation_mode=config.conversation_mode,
        screenshot_paths=list(state.screenshot_paths),
        video_path=video_path,
        test_name=f"Conversation with {scenario.agent_name} > {scenario.title}",
        initial_prompt=scenario.prompt,
        browser_info=browser_info,
        llm_analysis=llm_enabled,
        max_turns=config.max_turns,
        turns=[turn.as_dict() for turn in state.turns],
        events=log.as_dicts(),
    )
    write_summary(summary, settings.SUMMARY_DIR)
    return summary


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        scenarios = resolve_scenarios(args)
    except (OSError, ValueError) as exc:
        print(f"❌ {exc}")
        return 1

    results: List[RunSummary] = []
    for scenario in scenarios:
        try:
            results.append(run_scenario(scenario, args))
        except OSError as exc:
            print(f"❌ Could not record run for {scenario.agent_name}: {exc}")
            return 1

    for result in results:
        icon = "✅" if result.status == PASSED else "❌"
        print(f"{icon} {result.agent_name}: {result.status} ({len(result.screenshot_paths)} screenshots)")

    exit_code = 0 if all(result.status == PASSED for result in results) else 1
    if args.report:
        exit_code = report.main([]) or exit_code
    return exit_code


if __name__ == "__main__":
    sys.exit(main())

"""Render the latest conversation summary into a browsable HTML report.

    python report.py            # write the report from the newest summary
    python report.py --open     # ...and open it in the default browser

The template is plain HTML with ``{{TOKEN}}`` placeholders. Rendering only
depends on the summary file, so running it twice gives identical output.
"""

from __future__ import annotations

import argparse
import html
import re
import sys
import webbrowser
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import settings
from summary import PASSED, RunSummary, load_latest_summary


TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "conversation-report-template.html"
REPORT_NAME = "conversation-test-report.html"
SCREENSHOT_SPACING = timedelta(seconds=30)
PLACEHOLDER_PATTERN = re.compile(r"\{\{([A-Z0-9_]+)\}\}")
STEP_MARKERS = ("Step ", "Conversation Turn", "Screenshot")
TIMELINE_MARKERS = STEP_MARKERS + ("Follow-up", "LLM")


def apply_placeholders(template: str, values: Dict[str, object]) -> str:
    """Replace every ``{{KEY}}`` in one pass; unknown keys are left untouched."""

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def escape_html(text: object) -> str:
    if text is None:
        return ""
    return html.escape(str(text), quote=True)


def format_duration(ms: Optional[float]) -> str:
    if not ms:
        return "N/A"
    seconds = round(ms / 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes}m {remaining}s"


def parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _clock(moment: Optional[datetime]) -> str:
    return moment.strftime("%H:%M:%S") if moment else "N/A"


def screenshot_src(path: str) -> str:
    if path.startswith(("http://", "https://", "file://", "data:")):
        return path
    return Path(path).absolute().as_uri()


def render_gallery(screenshots: Sequence[str], started: Optional[datetime]) -> str:
    if not screenshots:
        return "<p>No screenshots captured during this test run.</p>"
    items: List[str] = []
    total = len(screenshots)
    for index, path in enumerate(screenshots):
        shot_time = started - SCREENSHOT_SPACING * (total - index) if started else None
        items.append(
            f'<div class="screenshot-item">'
            f'<img src="{screenshot_src(path)}" alt="Screenshot {index + 1}">'
            f'<div class="screenshot-info">'
            f'<div class="screenshot-title">Conversation Turn {index + 1}</div>'
            f'<div class="screenshot-timestamp">{_clock(shot_time)}</div>'
            f"</div></div>"
        )
    return "\n".join(items)


def render_conversation_steps(summary: RunSummary) -> str:
    if not summary.screenshot_paths:
        return "<p>No conversation turns recorded.</p>"
    messages = {turn.get("turn"): turn.get("message") for turn in summary.turns}
    steps: List[str] = []
    for index in range(len(summary.screenshot_paths)):
        message = messages.get(index + 1)
        detail = escape_html(message) if message else "User interaction and agent response"
        steps.append(
            f'<div class="flow-step"><div class="step-number">{index + 1}</div>'
            f"<div><strong>Turn {index + 1}:</strong> {detail}</div></div>"
        )
    return "\n".join(steps)


def _matching_events(summary: RunSummary, markers: Sequence[str]) -> List[dict]:
    return [event for event in summary.events if any(marker in str(event.get("text", "")) for marker in markers)]


def render_execution_steps(summary: RunSummary) -> str:
    events = _matching_events(summary, STEP_MARKERS)
    if not events:
        return "<p>No detailed execution steps available.</p>"
    return "\n".join(
        f'<div class="step-item"><div class="step-title">{escape_html(event.get("text"))}</div>'
        f'<div class="step-details">Execution step {index}</div></div>'
        for index, event in enumerate(events, start=1)
    )


def render_timeline(summary: RunSummary) -> str:
    events = _matching_events(summary, TIMELINE_MARKERS)
    if not events:
        return '<div class="timeline-item"><div class="timeline-content">No detailed timeline available.</div></div>'
    return "\n".join(
        f'<div class="timeline-item"><div class="timeline-time">{_clock(parse_timestamp(str(event.get("time", ""))))}</div>'
        f'<div class="timeline-content"><strong>{escape_html(event.get("text"))}</strong></div></div>'
        for event in events
    )


def render_logs(summary: RunSummary) -> str:
    if not summary.events:
        return "<div>No detailed execution logs available.</div>"
    return "\n".join(f"<div>{escape_html(event.get('text'))}</div>" for event in summary.events)


def render_llm_analysis(summary: RunSummary) -> str:
    follow_ups = [turn for turn in summary.turns if turn.get("source") == "llm"]
    if not follow_ups:
        return "<p>No LLM analysis data available for this test run.</p>"
    return "\n".join(
        f'<div class="llm-analysis"><h4>LLM Follow-up {index}</h4><p>{escape_html(turn.get("message"))}</p></div>'
        for index, turn in enumerate(follow_ups, start=1)
    )


def render_video(summary: RunSummary) -> str:
    if summary.video_path:
        return (
            f'<video controls preload="metadata"><source src="{screenshot_src(summary.video_path)}" type="video/webm">'
            f"</video>"
        )
    return (
        '<div class="video-placeholder"><h4>📹 Test Recording</h4>'
        "<p>No video recording was captured for this run.</p></div>"
    )


def render_report(summary: RunSummary, template: str) -> str:
    started = parse_timestamp(summary.timestamp)
    passed = summary.status == PASSED
    turns = len(summary.screenshot_paths)
    return apply_placeholders(
        template,
        {
            "TEST_TITLE": escape_html(summary.title or "Conversation Test"),
            "TEST_STATUS": summary.status.upper(),
            "STATUS_CLASS": "passed" if passed else "failed",
            "DURATION": format_duration(summary.duration_ms),
            "AGENT_NAME": escape_html(summary.agent_name or "Unknown agent"),
            "BROWSER_INFO": escape_html(summary.browser_info or "Chromium"),
            "LLM_MODE": escape_html(summary.conversation_mode),
            "SCREENSHOT_COUNT": turns,
            "FORMATTED_TIMESTAMP": started.strftime("%Y-%m-%d %H:%M:%S %Z") if started else "N/A",
            "CONVERSATION_STEPS": render_conversation_steps(summary),
            "CONVERSATION_TURNS": turns,
            "SUCCESS_RATE": 100 if passed else 0,
            "AGENT_RESPONSES": turns,
            "INITIAL_PROMPT": escape_html(summary.initial_prompt or "No initial prompt recorded."),
            "VIDEO_SECTION": render_video(summary),
            "EXECUTION_STEPS": render_execution_steps(summary),
            "SCREENSHOT_GALLERY": render_gallery(summary.screenshot_paths, started),
            "TIMELINE_ITEMS": render_timeline(summary),
            "EXECUTION_LOGS": render_logs(summary),
            "LLM_ANALYSIS_CONTENT": render_llm_analysis(summary),
        },
    )


def generate_report(
    summary_dir: Path = settings.SUMMARY_DIR,
    template_path: Path = TEMPLATE_PATH,
    output_paths: Optional[Sequence[Path]] = None,
) -> List[Path]:
    """Render the newest summary in ``summary_dir`` and write it to every output path."""

    summary_path, summary = load_latest_summary(summary_dir)
    print(f"📋 Found test summary: {summary_path.name}")
    template = Path(template_path).read_text(encoding="utf-8")
    content = render_report(summary, template)

    targets = list(output_paths) if output_paths else [settings.RESULTS_DIR / REPORT_NAME, Path(REPORT_NAME)]
    written: List[Path] = []
    for target in targets:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)

    print(f"✅ HTML report generated: {written[0]}")
    for extra in written[1:]:
        print(f"📋 Report also available at: {extra}")
    print(f"📊 Report includes: {len(summary.screenshot_paths)} screenshots, {len(summary.events)} log lines")
    return written


def open_report(report_path: Path = Path(REPORT_NAME)) -> bool:
    report_path = Path(report_path)
    if not report_path.exists():
        print("❌ Report not found. Generate it first: python report.py")
        return False
    url = report_path.resolve().as_uri()
    print(f"🌐 Opening report: {url}")
    if not webbrowser.open(url):
        print(f"❌ Could not open browser automatically. Please open this URL manually: {url}")
        return False
    return True


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the HTML report for the latest conversation run.")
    parser.add_argument("--summary-dir", type=Path, default=settings.SUMMARY_DIR)
    parser.add_argument("--template", type=Path, default=TEMPLATE_PATH)
    parser.add_argument(
        "--output",
        type=Path,
        action="append",
        help="Where to write the report (repeatable). Defaults to the results directory and the current directory.",
    )
    parser.add_argument("--open", action="store_true", help="Open the generated report in the default browser.")
    parser.add_argument("--open-only", action="store_true", help="Open an existing report without regenerating it.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        if args.open_only:
            return 0 if open_report(args.output[0] if args.output else Path(REPORT_NAME)) else 1
        print("🔄 Generating conversation test report...")
        written = generate_report(args.summary_dir, args.template, args.output)
        if args.open:
            return 0 if open_report(written[-1]) else 1
        return 0
    except (OSError, ValueError) as exc:
        print(f"❌ Error generating report: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

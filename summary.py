"""Persisted record of one conversation run.

One JSON file per run under the summary directory, named after the run's UTC
timestamp so that a plain sort puts the newest run last. Files are never
rewritten or cleaned up.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


SUMMARY_PREFIX = "conversation-summary-"
LLM_MODE = "llm-powered"
SIMPLE_MODE = "simple-fallback"

PASSED = "passed"
FAILED = "failed"
UNKNOWN = "unknown"
FAILED_STATUSES = {"failed", "timedout", "interrupted", "error"}


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    moment = (moment or datetime.now(UTC)).astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def normalize_status(value: Any) -> str:
    text = str(value or "").strip().lower()
    if text == PASSED:
        return PASSED
    if text in FAILED_STATUSES:
        return FAILED
    return UNKNOWN


def _is_remote(path: str) -> bool:
    return path.startswith(("http://", "https://", "file://", "data:"))


def _relativize(path: Optional[str], base_dir: Path) -> Optional[str]:
    if not path:
        return None
    if _is_remote(path):
        return path
    return os.path.relpath(os.path.abspath(path), os.path.abspath(base_dir)).replace("\\", "/")


def _resolve(path: Optional[str], base_dir: Path) -> Optional[str]:
    if not path:
        return None
    if _is_remote(path) or os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(os.path.abspath(base_dir), path))


@dataclass
class RunSummary:
    title: str
    agent_name: str
    timestamp: str = field(default_factory=utc_timestamp)
    duration_ms: Optional[int] = None
    status: str = UNKNOWN
    conversation_mode: str = SIMPLE_MODE
    screenshot_paths: List[str] = field(default_factory=list)
    video_path: Optional[str] = None
    test_name: str = ""
    initial_prompt: str = ""
    browser_info: str = ""
    llm_analysis: bool = False
    max_turns: int = 5
    turns: List[Dict[str, Any]] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self, relative_to: Optional[Path] = None) -> Dict[str, Any]:
        screenshots = list(self.screenshot_paths)
        video = self.video_path
        if relative_to is not None:
            screenshots = [_relativize(path, relative_to) for path in screenshots]
            video = _relativize(video, relative_to)
        return {
            "testTitle": self.title,
            "testName": self.test_name or self.title,
            "agentName": self.agent_name,
            "initialPrompt": self.initial_prompt,
            "timestamp": self.timestamp,
            "duration": self.duration_ms,
            "status": normalize_status(self.status),
            "conversationMode": self.conversation_mode,
            "artifacts": {
                "video": video,
                "screenshots": screenshots,
                "screenshotsCount": len(screenshots),
            },
            "testConfig": {
                "browser": self.browser_info,
                "llmAnalysis": self.llm_analysis,
                "maxConversationTurns": self.max_turns,
            },
            "turns": list(self.turns),
            "events": list(self.events),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "RunSummary":
        """Build a summary from persisted JSON, tolerating older or partial records."""

        if not isinstance(data, dict):
            raise ValueError("summary JSON must be an object")
        artifacts = data.get("artifacts") if isinstance(data.get("artifacts"), dict) else {}
        config = data.get("testConfig") if isinstance(data.get("testConfig"), dict) else {}
        screenshots = artifacts.get("screenshots") or data.get("screenshots") or []
        screenshots = [str(item) for item in screenshots if item]
        video = artifacts.get("video") or data.get("videoPath")
        if base_dir is not None:
            screenshots = [_resolve(path, base_dir) for path in screenshots]
            video = _resolve(video, base_dir)

        duration = data.get("duration")
        if not isinstance(duration, (int, float)) or isinstance(duration, bool):
            duration = None

        max_turns = config.get("maxConversationTurns")
        return cls(
            title=str(data.get("testTitle") or "Conversation Test"),
            agent_name=str(data.get("agentName") or ""),
            timestamp=str(data.get("timestamp") or ""),
            duration_ms=int(duration) if duration is not None else None,
            status=normalize_status(data.get("status")),
            conversation_mode=str(data.get("conversationMode") or SIMPLE_MODE),
            screenshot_paths=screenshots,
            video_path=video,
            test_name=str(data.get("testName") or ""),
            initial_prompt=str(data.get("initialPrompt") or ""),
            browser_info=str(config.get("browser") or ""),
            llm_analysis=bool(config.get("llmAnalysis", False)),
            max_turns=int(max_turns) if isinstance(max_turns, int) else 5,
            turns=[turn for turn in data.get("turns") or [] if isinstance(turn, dict)],
            events=[event for event in data.get("events") or [] if isinstance(event, dict)],
        )


def summary_filename(timestamp: str) -> str:
    stamp = timestamp.replace(":", "-").replace(".", "-")
    return f"{SUMMARY_PREFIX}{stamp}.json"


def write_summary(summary: RunSummary, directory: Path) -> Path:
    """Write ``summary`` as indented JSON; refuses to overwrite an existing file."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / summary_filename(summary.timestamp)
    payload = summary.to_dict(relative_to=directory)
    with path.open("x", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)
    print(f"📋 Test summary created: {path}")
    if summary.video_path:
        print(f"🎬 Video recording: {summary.video_path}")
    return path


def latest_summary_path(directory: Path) -> Path:
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Summary directory not found: {directory}")
    candidates = sorted(
        entry.name
        for entry in directory.iterdir()
        if entry.is_file() and entry.name.startswith(SUMMARY_PREFIX) and entry.suffix == ".json"
    )
    if not candidates:
        raise FileNotFoundError(f"No test summary files found in {directory}")
    return directory / candidates[-1]


def load_summary(path: Path) -> RunSummary:
    path = Path(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    return RunSummary.from_dict(data, base_dir=path.parent)


def load_latest_summary(directory: Path) -> Tuple[Path, RunSummary]:
    path = latest_summary_path(directory)
    return path, load_summary(path)

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from summary import (
    FAILED,
    LLM_MODE,
    PASSED,
    UNKNOWN,
    RunSummary,
    latest_summary_path,
    load_latest_summary,
    load_summary,
    normalize_status,
    summary_filename,
    utc_timestamp,
    write_summary,
)


def make_summary(tmp_path: Path, timestamp: str = "2025-03-04T10:20:30.456Z") -> RunSummary:
    shots = tmp_path / "screenshots"
    shots.mkdir(exist_ok=True)
    paths = []
    for name in ("conversation-turn-1-1.png", "conversation-final-2.png"):
        path = shots / name
        path.write_bytes(b"png")
        paths.append(str(path))
    return RunSummary(
        title="Researcher - AI trends",
        agent_name="Researcher",
        timestamp=timestamp,
        duration_ms=83000,
        status=PASSED,
        conversation_mode=LLM_MODE,
        screenshot_paths=paths,
        test_name="Conversation with Researcher > Researcher - AI trends",
        initial_prompt="What are the latest trends in artificial intelligence?",
        browser_info="chromium (persistent profile)",
        llm_analysis=True,
        turns=[{"turn": 1, "message": "Thanks, very helpful.", "source": "llm"}],
        events=[{"time": "2025-03-04T10:19:00+00:00", "text": "Step 1: Clicking on All agents..."}],
    )


def test_utc_timestamp_format() -> None:
    moment = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=UTC)
    assert utc_timestamp(moment) == "2025-01-02T03:04:05.678Z"


def test_summary_filename_is_filesystem_safe() -> None:
    name = summary_filename("2025-03-04T10:20:30.456Z")
    assert name == "conversation-summary-2025-03-04T10-20-30-456Z.json"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("passed", PASSED),
        ("PASSED", PASSED),
        ("failed", FAILED),
        ("timedOut", FAILED),
        ("interrupted", FAILED),
        ("skipped", UNKNOWN),
        (None, UNKNOWN),
    ],
)
def test_normalize_status(raw, expected: str) -> None:
    assert normalize_status(raw) == expected


def test_written_summary_reads_back_equal(tmp_path: Path) -> None:
    summary = make_summary(tmp_path)
    summary_dir = tmp_path / "results" / "conversation-summary"
    path = write_summary(summary, summary_dir)

    assert path.name == summary_filename(summary.timestamp)
    loaded = load_summary(path)
    assert loaded == summary


def test_written_paths_are_relative_to_the_summary_file(tmp_path: Path) -> None:
    summary_dir = tmp_path / "results" / "conversation-summary"
    path = write_summary(make_summary(tmp_path), summary_dir)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["artifacts"]["screenshots"][0] == "../../screenshots/conversation-turn-1-1.png"
    assert data["artifacts"]["screenshotsCount"] == 2
    assert data["testConfig"]["llmAnalysis"] is True
    assert data["conversationMode"] == LLM_MODE


def test_existing_summary_is_never_overwritten(tmp_path: Path) -> None:
    summary = make_summary(tmp_path)
    path = write_summary(summary, tmp_path / "summaries")
    before = path.read_bytes()

    with pytest.raises(FileExistsError):
        write_summary(summary, tmp_path / "summaries")
    assert path.read_bytes() == before


def test_latest_summary_is_the_newest_timestamp(tmp_path: Path) -> None:
    summary_dir = tmp_path / "summaries"
    for stamp in ("2025-03-04T10:20:30.456Z", "2025-03-05T08:00:00.000Z", "2025-03-04T23:59:59.999Z"):
        write_summary(make_summary(tmp_path, timestamp=stamp), summary_dir)
    (summary_dir / "notes.json").write_text("{}", encoding="utf-8")

    path, summary = load_latest_summary(summary_dir)
    assert path.name == "conversation-summary-2025-03-05T08-00-00-000Z.json"
    assert summary.timestamp == "2025-03-05T08:00:00.000Z"


def test_missing_directory_is_reported(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        latest_summary_path(tmp_path / "does-not-exist")


def test_empty_directory_is_reported(tmp_path: Path) -> None:
    (tmp_path / "other.json").write_text("{}", encoding="utf-8")
    with pytest.raises(FileNotFoundError):
        latest_summary_path(tmp_path)


def test_partial_summary_gets_defaults(tmp_path: Path) -> None:
    data = {
        "testTitle": "Old run",
        "status": "timedOut",
        "screenshots": ["shots/one.png"],
        "duration": "slow",
    }
    summary = RunSummary.from_dict(data, base_dir=tmp_path)

    assert summary.status == FAILED
    assert summary.duration_ms is None
    assert summary.agent_name == ""
    assert summary.screenshot_paths == [str(tmp_path / "shots" / "one.png")]
    assert summary.video_path is None
    assert summary.turns == []


def test_non_object_summary_is_rejected() -> None:
    with pytest.raises(ValueError):
        RunSummary.from_dict(["not", "a", "summary"])

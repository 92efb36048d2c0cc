import json
from pathlib import Path

import pytest

import main
from scenarios import DEFAULT_SCENARIO, SCENARIOS, Scenario, find_scenario, load_scenarios


def test_default_scenario_comes_first() -> None:
    assert SCENARIOS[0] is DEFAULT_SCENARIO
    assert DEFAULT_SCENARIO.title == "CAPEPilot - Recognition note conversation"


def test_title_without_description() -> None:
    assert Scenario("Helper", "hi").title == "Helper conversation"


def test_find_scenario_ignores_case() -> None:
    assert find_scenario("prompt coach").agent_name == "Prompt Coach"
    assert find_scenario("nobody") is None


def test_load_scenarios_from_json(tmp_path: Path) -> None:
    path = tmp_path / "scenarios.json"
    path.write_text(
        json.dumps([{"agentName": "Writer", "prompt": "Draft a memo", "description": "Memo"}]),
        encoding="utf-8",
    )
    assert load_scenarios(path) == [Scenario("Writer", "Draft a memo", "Memo")]


@pytest.mark.parametrize(
    "payload",
    [{"agentName": "Writer"}, ["not an object"], [{"agentName": "Writer"}], [{"prompt": "hi"}]],
)
def test_load_scenarios_rejects_bad_entries(tmp_path: Path, payload) -> None:
    path = tmp_path / "scenarios.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError):
        load_scenarios(path)


def test_cli_defaults_to_the_default_scenario() -> None:
    assert main.resolve_scenarios(main.parse_args([])) == [DEFAULT_SCENARIO]


def test_cli_agent_reuses_known_prompt() -> None:
    [scenario] = main.resolve_scenarios(main.parse_args(["--agent", "researcher"]))
    assert scenario.agent_name == "researcher"
    assert scenario.prompt == "What are the latest trends in artificial intelligence?"


def test_cli_prompt_overrides_scenario() -> None:
    [scenario] = main.resolve_scenarios(main.parse_args(["--agent", "Analyst", "--prompt", "Summarize Q3"]))
    assert scenario == Scenario("Analyst", "Summarize Q3")


def test_cli_all_runs_every_scenario() -> None:
    assert main.resolve_scenarios(main.parse_args(["--all"])) == SCENARIOS


def test_cli_max_turns_and_cdp_flag() -> None:
    args = main.parse_args(["--max-turns", "3", "--cdp"])
    assert args.max_turns == 3
    assert args.cdp == "http://localhost:9222"

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class Scenario:
    agent_name: str
    prompt: str
    description: str = ""

    @property
    def title(self) -> str:
        if self.description:
            return f"{self.agent_name} - {self.description}"
        return f"{self.agent_name} conversation"


# Change these to test other agents and prompts
DEFAULT_SCENARIO = Scenario(
    agent_name="CAPEPilot",
    prompt="Help me write a recognition note for a colleague who did a great job on the project",
    description="Recognition note conversation",
)

SCENARIOS: List[Scenario] = [
    DEFAULT_SCENARIO,
    Scenario(
        agent_name="Prompt Coach",
        prompt="Help me write a professional email about project updates",
        description="Test Prompt Coach with email writing request",
    ),
    Scenario(
        agent_name="Researcher",
        prompt="What are the latest trends in artificial intelligence?",
        description="Test Researcher with AI trends question",
    ),
    Scenario(
        agent_name="Analyst",
        prompt="Analyze the performance metrics for our Q4 sales data",
        description="Test Analyst with data analysis request",
    ),
]


def find_scenario(agent_name: str, scenarios: Optional[List[Scenario]] = None) -> Optional[Scenario]:
    wanted = agent_name.strip().lower()
    for scenario in scenarios or SCENARIOS:
        if scenario.agent_name.lower() == wanted:
            return scenario
    return None


def load_scenarios(path: Path) -> List[Scenario]:
    """Read ``[{"agentName": ..., "prompt": ..., "description": ...}]`` from a JSON file."""

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON array of scenarios")
    scenarios: List[Scenario] = []
    for index, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"Scenario {index} in {path} is not an object")
        agent_name = str(item.get("agentName") or item.get("agent_name") or "").strip()
        prompt = str(item.get("prompt") or "").strip()
        if not agent_name or not prompt:
            raise ValueError(f"Scenario {index} in {path} needs both agentName and prompt")
        scenarios.append(Scenario(agent_name, prompt, str(item.get("description") or "").strip()))
    return scenarios

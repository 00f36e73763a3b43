"""Shared pytest fixtures."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    BoardConfig,
    InboxConfig,
    MemberConfig,
    ModelConfig,
    PhaseTimeouts,
    PromptsConfig,
    SynthesisConfig,
)
from board.models import Document, InputPackage, Source
from board.providers.base import AIProvider, CallOptions, ModelResponse
from board.schemas import FinalVote


# ---------------------------------------------------------------------------
# JSON payloads as the models return them (camelCase)
# ---------------------------------------------------------------------------

def analysis_json(verdict: str = "GO", confidence: int = 80, concern: str = "Burn rate") -> str:
    return json.dumps({
        "verdict": verdict,
        "confidence": confidence,
        "arguments": [{"point": "Strong team", "strength": "strong", "evidence": "Two exits"}],
        "concerns": [{"concern": concern, "severity": "medium", "mitigation": None}],
        "wouldChangeVerdict": ["Churn above 5%"],
    })


def debate_json(new_verdict: str | None = None, justification: str = "I hold my view.") -> str:
    payload: dict = {
        "positionChanged": new_verdict is not None,
        "justification": justification,
        "responsesToOthers": [],
        "newPoints": [],
    }
    if new_verdict is not None:
        payload["newVerdict"] = new_verdict
        payload["newConfidence"] = 70
    return json.dumps(payload)


def vote_json(
    verdict: str = "GO",
    confidence: int = 85,
    agreement: list[str] | None = None,
    concerns: list[str] | None = None,
) -> str:
    return json.dumps({
        "verdict": verdict,
        "confidence": confidence,
        "justification": f"Final call: {verdict}",
        "keyFactors": [{"factor": "Market size", "weight": "high", "direction": "positive"}],
        "agreementPoints": agreement if agreement is not None else ["Strong team"],
        "remainingConcerns": concerns if concerns is not None else [],
    })


def synthesis_json(consensus=("Strong team",), friction=(), questions=()) -> str:
    return json.dumps({
        "consensusPoints": list(consensus),
        "frictionPoints": list(friction),
        "questionsForFounder": list(questions),
    })


def phase_of(prompt: str) -> str:
    """Test prompt templates start with the phase name in capitals."""
    return prompt.split(maxsplit=1)[0]


# ---------------------------------------------------------------------------
# Provider test double
# ---------------------------------------------------------------------------

class MockProvider(AIProvider):
    """Test double AIProvider scripted per phase.

    `script` maps a phase name (ANALYSIS, DEBATE, VOTE, SYNTHESIS) to either a
    single item reused on every call or a list consumed in order whose last
    item repeats. An item is response text or an exception instance to raise.
    """

    def __init__(self, key: str = "mock", script: dict | None = None) -> None:
        super().__init__(
            ModelConfig(
                name=key,
                sdk="mock",
                model="mock-model",
                api_key_env="MOCK_API_KEY",
                timeout_sec=30,
                max_tokens=1024,
                input_cost_per_mtok=1.0,
                output_cost_per_mtok=2.0,
            )
        )
        self._script = {k: list(v) if isinstance(v, list) else [v] for k, v in (script or {}).items()}
        # Shadow the class method with an AsyncMock at the instance level.
        self.generate = AsyncMock(side_effect=self._respond)  # type: ignore[assignment]

    async def _respond(self, prompt: str, options: CallOptions | None = None) -> ModelResponse:
        items = self._script.get(phase_of(prompt))
        if not items:
            raise AssertionError(f"{self.name()} has no scripted response for {phase_of(prompt)}")
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, BaseException):
            raise item
        return ModelResponse(
            provider=self.name(),
            model="mock-model",
            content=item,
            latency_sec=0.1,
            input_tokens=1000,
            output_tokens=500,
        )

    async def generate(self, prompt: str, options: CallOptions | None = None) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return await self._respond(prompt, options)

    def calls(self, phase: str) -> int:
        return sum(1 for c in self.generate.call_args_list if phase_of(c.args[0]) == phase)


# Cost of one MockProvider call: (1000 * 1.0 + 500 * 2.0) / 1e6
MOCK_CALL_COST = 0.002


def board_script(
    analysis: str = "GO",
    debate: list | str | None = None,
    vote: str | None = None,
) -> dict:
    """Script for a member that analyzes, holds (or follows `debate`) and votes."""
    return {
        "ANALYSIS": analysis_json(analysis),
        "DEBATE": debate if debate is not None else debate_json(),
        "VOTE": vote_json(vote or analysis),
    }


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="You are {member_name}.",
        analysis="ANALYSIS\n{deal}\nReply with JSON {{\"verdict\": ...}}",
        debate="DEBATE round {round}\n{deal}\nYOURS:\n{own_analysis}\nOTHERS:\n{others_analyses}",
        vote="VOTE\n{deal}\nHISTORY:\n{debate_history}",
        synthesis=(
            "SYNTHESIS for {member_count} members\n"
            "CONSENSUS ({consensus_count}):\n{consensus_points}\n"
            "FRICTION ({friction_count}):\n{friction_points}\n"
            "QUESTIONS ({questions_count}):\n{questions}"
        ),
    )


def make_members(*ids: str) -> list[MemberConfig]:
    return [
        MemberConfig(id=i, model_key=f"{i}_model", name=i.title(), color="#123456", provider="mock")
        for i in ids
    ]


@pytest.fixture
def four_members() -> list[MemberConfig]:
    return make_members("claude", "gpt", "gemini", "grok")


@pytest.fixture
def board_config(tmp_path: Path) -> BoardConfig:
    return BoardConfig(
        max_rounds=3,
        timeout_sec=600.0,
        min_members=2,
        retry_attempts=2,
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig, four_members) -> AppConfig:
    models = {
        m.model_key: ModelConfig(
            name=m.model_key,
            sdk="anthropic",
            model="claude-sonnet-4-20250514",
            api_key_env="ANTHROPIC_API_KEY",
            timeout_sec=60,
            max_tokens=4096,
        )
        for m in four_members
    }
    return AppConfig(
        board=BoardConfig(output_dir=tmp_path / "output"),
        timeouts=PhaseTimeouts(),
        models=models,
        rosters={"test": four_members, "prod": four_members[:2]},
        synthesis=SynthesisConfig(model_key="claude_model"),
        prompts=sample_prompts_config,
        inbox=InboxConfig(dir=tmp_path / "inbox", archive_dir=tmp_path / "inbox" / "archive"),
        available_models=set(models),
    )


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_package() -> InputPackage:
    return InputPackage(
        deal_id="deal-42",
        deal_name="Acme Seed",
        company_name="Acme Robotics",
        documents=(Document(name="deck.pdf", type="pitch_deck", extracted_text="We build warehouse robots."),),
        agent_outputs={"tier1": {"market": "large"}},
        enriched_data={"employees": 12},
        sources=(Source(source="Crunchbase", reliability="high", data_points=("funding", "team")),),
    )


@pytest.fixture
def sample_vote() -> FinalVote:
    return FinalVote.model_validate_json(
        vote_json("GO", agreement=["Strong team", "Large market"], concerns=["Burn rate"])
    )


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider("mock", board_script())

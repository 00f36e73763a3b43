"""Integration tests: real API calls, no mocks. Requires .env with 2+ API keys."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

# Skip entire module if fewer than 2 API keys are set
_AVAILABLE_KEYS = [
    k for k in ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "XAI_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if len(_AVAILABLE_KEYS) < 2:
    pytestmark = [pytestmark, pytest.mark.skip(reason=f"Need 2+ API keys, found {len(_AVAILABLE_KEYS)}")]


async def test_full_board_session(tmp_path: Path):
    """Run a real one-round board session on the test roster, verify no crash."""
    from config.config_loader import BoardConfig, load_config
    from board.inputs import static_loader
    from board.models import Document, InputPackage
    from board.orchestrator import BoardOrchestrator
    from board.output import save_report
    from board.persistence import JsonSessionStore
    from board.providers.registry import build_providers

    config = load_config()
    members = config.members("test")
    providers = build_providers(config, [m.model_key for m in members] + [config.synthesis.model_key])
    seated = [m for m in members if m.model_key in providers]
    assert len(seated) >= 2, f"Need 2+ member models, got {len(seated)}"

    package = InputPackage(
        deal_id="integration-deal",
        deal_name="Integration Seed",
        company_name="Tiny Tools Ltd",
        documents=(Document(
            name="memo.md",
            type="deal_memo",
            extracted_text=(
                "Tiny Tools sells a $20/month CLI for log search to small dev teams. "
                "120 paying customers, 4% monthly churn, two founders, raising $500k at a $4M cap."
            ),
        ),),
    )
    store = JsonSessionStore(tmp_path / "output")
    events: list = []
    orchestrator = BoardOrchestrator(
        seated,
        providers,
        config.prompts,
        static_loader(package),
        board=BoardConfig(max_rounds=2, min_members=2),
        timeouts=config.timeouts,
        synthesis=config.synthesis,
        synthesis_provider=providers.get(config.synthesis.model_key),
        store=store,
        on_progress=events.append,
    )

    result = await orchestrator.run_board(package.deal_id)

    assert result.votes, "No member voted"
    assert result.total_cost > 0
    assert events[-1].kind == "verdict_reached"
    assert store.path_for(orchestrator.session_id).exists()

    report = save_report(result, package, orchestrator.debate_history, tmp_path / "output")
    content = report.read_text(encoding="utf-8")
    assert "# Board Verdict: Integration Seed" in content
    assert "## Final Votes" in content

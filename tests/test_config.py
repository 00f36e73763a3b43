"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import PROFILE_ENV, AppConfig, ModelConfig, PromptsConfig, load_config


def _settings() -> dict:
    return {
        "board": {
            "max_rounds": 2,
            "timeout_sec": 300,
            "min_members": 2,
            "retry_attempts": 2,
            "output_dir": "./out",
            "profile": "test",
        },
        "timeouts": {"analysis_sec": 100, "debate_sec": 80, "vote_sec": 50},
        "models": {
            "claude_haiku": {
                "sdk": "anthropic",
                "model": "claude-3-5-haiku-latest",
                "api_key_env": "TEST_CLAUDE_KEY",
                "timeout_sec": 120,
                "max_tokens": 4096,
                "input_cost_per_mtok": 0.8,
                "output_cost_per_mtok": 4.0,
            },
            "gpt4o_mini": {
                "sdk": "openai",
                "model": "gpt-4o-mini",
                "api_key_env": "TEST_OPENAI_KEY",
                "timeout_sec": 120,
                "max_tokens": 4096,
            },
        },
        "members": {
            "test": [
                {"id": "claude", "model": "claude_haiku", "name": "Claude", "color": "#D97706",
                 "provider": "anthropic"},
                {"id": "gpt", "model": "gpt4o_mini", "name": "GPT", "color": "#10B981", "provider": "openai"},
            ],
            "prod": [
                {"id": "claude", "model": "claude_haiku", "name": "Claude", "provider": "anthropic"},
            ],
        },
        "synthesis": {"model": "claude_haiku", "max_tokens": 1500, "temperature": 0.2},
        "prompts": {
            "system": "You are {member_name}.",
            "analysis": "Analyze: {deal}",
            "debate": "Round {round}: {deal} {own_analysis} {others_analyses}",
            "vote": "Vote: {deal} {debate_history}",
            "synthesis": "{member_count} {consensus_points} {friction_points} {questions}",
        },
    }


def _write(tmp_path: Path, settings: dict) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    return _write(tmp_path, _settings())


def test_load_config_returns_app_config(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config, AppConfig)


def test_load_config_board_section(minimal_settings):
    config = load_config(minimal_settings)
    assert config.board.max_rounds == 2
    assert config.board.timeout_sec == 300.0
    assert config.board.min_members == 2
    assert config.board.retry_attempts == 2
    assert isinstance(config.board.output_dir, Path)


def test_load_config_phase_timeouts(minimal_settings):
    config = load_config(minimal_settings)
    assert config.timeouts.analysis_sec == 100.0
    assert config.timeouts.debate_sec == 80.0
    assert config.timeouts.vote_sec == 50.0


def test_load_config_defaults_when_sections_missing(tmp_path: Path):
    settings = _settings()
    del settings["board"]
    del settings["timeouts"]
    config = load_config(_write(tmp_path, settings))
    assert config.board.max_rounds == 3
    assert config.board.timeout_sec == 600.0
    assert config.board.min_members == 2
    assert config.timeouts.analysis_sec == 120.0
    assert config.timeouts.debate_sec == 90.0
    assert config.timeouts.vote_sec == 60.0


def test_load_config_models_and_pricing(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.models["claude_haiku"], ModelConfig)
    assert config.models["claude_haiku"].input_cost_per_mtok == 0.8
    assert config.models["claude_haiku"].output_cost_per_mtok == 4.0
    assert config.models["gpt4o_mini"].input_cost_per_mtok == 0.0


def test_model_config_base_url_optional(minimal_settings):
    config = load_config(minimal_settings)
    assert config.models["claude_haiku"].base_url is None


def test_load_config_prompts(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.prompts, PromptsConfig)
    assert "{member_name}" in config.prompts.system
    assert "{others_analyses}" in config.prompts.debate


def test_load_config_synthesis(minimal_settings):
    config = load_config(minimal_settings)
    assert config.synthesis.model_key == "claude_haiku"
    assert config.synthesis.max_tokens == 1500
    assert config.synthesis.temperature == 0.2


def test_load_config_available_models_with_key(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test-key")
    monkeypatch.delenv("TEST_OPENAI_KEY", raising=False)
    config = load_config(minimal_settings)
    assert config.available_models == {"claude_haiku"}


def test_load_config_blank_key_is_unavailable(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_CLAUDE_KEY", "   ")
    config = load_config(minimal_settings)
    assert "claude_haiku" not in config.available_models


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/settings.yaml"))


def test_members_uses_settings_profile(minimal_settings, monkeypatch):
    monkeypatch.delenv(PROFILE_ENV, raising=False)
    config = load_config(minimal_settings)
    members = config.members()
    assert [m.id for m in members] == ["claude", "gpt"]
    assert members[0].color == "#D97706"


def test_members_env_overrides_settings_profile(minimal_settings, monkeypatch):
    monkeypatch.setenv(PROFILE_ENV, "prod")
    config = load_config(minimal_settings)
    assert [m.id for m in config.members()] == ["claude"]


def test_members_argument_overrides_env(minimal_settings, monkeypatch):
    monkeypatch.setenv(PROFILE_ENV, "prod")
    config = load_config(minimal_settings)
    assert len(config.members("test")) == 2


def test_members_default_color(minimal_settings, monkeypatch):
    monkeypatch.delenv(PROFILE_ENV, raising=False)
    config = load_config(minimal_settings)
    assert config.members("prod")[0].color == "#666666"


def test_members_unknown_profile_raises(minimal_settings):
    config = load_config(minimal_settings)
    with pytest.raises(KeyError, match="staging"):
        config.members("staging")


def test_unknown_member_model_raises(tmp_path: Path):
    settings = _settings()
    settings["members"]["test"][0]["model"] = "nope"
    with pytest.raises(ValueError, match="unknown model 'nope'"):
        load_config(_write(tmp_path, settings))


def test_duplicate_member_ids_raise(tmp_path: Path):
    settings = _settings()
    settings["members"]["test"][1]["id"] = "claude"
    with pytest.raises(ValueError, match="Duplicate member ids"):
        load_config(_write(tmp_path, settings))


def test_unknown_synthesis_model_raises(tmp_path: Path):
    settings = _settings()
    settings["synthesis"]["model"] = "nope"
    with pytest.raises(ValueError, match="Synthesis model"):
        load_config(_write(tmp_path, settings))


@pytest.mark.parametrize("key", ["min_members", "retry_attempts"])
def test_non_positive_board_limits_raise(tmp_path: Path, key: str):
    settings = _settings()
    settings["board"][key] = 0
    with pytest.raises(ValueError, match=key):
        load_config(_write(tmp_path, settings))


def test_shipped_settings_load(monkeypatch):
    monkeypatch.delenv(PROFILE_ENV, raising=False)
    config = load_config()
    assert {m.id for m in config.members("test")} == {"claude", "gpt", "gemini", "grok"}
    assert {m.id for m in config.members("prod")} == {"claude", "gpt", "gemini", "grok"}
    # Templates must render with the placeholders the prompt builders pass
    config.prompts.system.format(member_name="Claude")
    config.prompts.analysis.format(deal="D")
    config.prompts.debate.format(round=1, deal="D", own_analysis="O", others_analyses="X")
    config.prompts.vote.format(deal="D", debate_history="H")
    config.prompts.synthesis.format(
        member_count=4, consensus_count=1, consensus_points="C", friction_count=1,
        friction_points="F", questions_count=1, questions="Q",
    )

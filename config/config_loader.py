"""Load settings.yaml into typed dataclasses. Reports API key availability at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

# Env var that overrides the member roster profile ("test" or "prod")
PROFILE_ENV = "BOARD_CONFIG"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    input_cost_per_mtok: float = 0.0
    output_cost_per_mtok: float = 0.0


@dataclass
class MemberConfig:
    id: str
    model_key: str         # key into AppConfig.models
    name: str
    color: str             # hex color, used by renderers
    provider: str          # "anthropic", "openai", "google", "xai"


@dataclass
class PhaseTimeouts:
    analysis_sec: float = 120.0
    debate_sec: float = 90.0
    vote_sec: float = 60.0


@dataclass
class BoardConfig:
    max_rounds: int = 3
    timeout_sec: float = 600.0
    min_members: int = 2
    retry_attempts: int = 2  # total attempts for debate and vote calls
    output_dir: Path = Path("./output")
    profile: str = "test"


@dataclass
class SynthesisConfig:
    model_key: str
    max_tokens: int = 2000
    temperature: float = 0.1


@dataclass
class PromptsConfig:
    system: str
    analysis: str
    debate: str
    vote: str
    synthesis: str


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    board: BoardConfig
    timeouts: PhaseTimeouts
    models: dict[str, ModelConfig]
    rosters: dict[str, list[MemberConfig]]
    synthesis: SynthesisConfig
    prompts: PromptsConfig
    inbox: InboxConfig = field(default_factory=InboxConfig)
    available_models: set[str] = field(default_factory=set)

    def members(self, profile: str | None = None) -> list[MemberConfig]:
        """Return the member roster for a profile.

        Precedence: explicit argument > BOARD_CONFIG env var > settings profile.
        """
        chosen = profile or os.environ.get(PROFILE_ENV, "").strip() or self.board.profile
        if chosen not in self.rosters:
            raise KeyError(f"Unknown member profile '{chosen}' (known: {', '.join(sorted(self.rosters))})")
        return self.rosters[chosen]


def _load_members(raw_rosters: dict, models: dict[str, ModelConfig]) -> dict[str, list[MemberConfig]]:
    rosters: dict[str, list[MemberConfig]] = {}
    for profile, entries in raw_rosters.items():
        roster: list[MemberConfig] = []
        for entry in entries:
            member = MemberConfig(
                id=str(entry["id"]),
                model_key=str(entry["model"]),
                name=str(entry["name"]),
                color=str(entry.get("color", "#666666")),
                provider=str(entry["provider"]),
            )
            if member.model_key not in models:
                raise ValueError(
                    f"Member '{member.id}' in profile '{profile}' references unknown model '{member.model_key}'"
                )
            roster.append(member)
        ids = [m.id for m in roster]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate member ids in profile '{profile}': {ids}")
        rosters[str(profile)] = roster
    return rosters


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError on
    inconsistent member rosters. Logs missing API keys but does not raise;
    callers check available_models.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    board_raw = raw.get("board", {})
    board = BoardConfig(
        max_rounds=int(board_raw.get("max_rounds", 3)),
        timeout_sec=float(board_raw.get("timeout_sec", 600)),
        min_members=int(board_raw.get("min_members", 2)),
        retry_attempts=int(board_raw.get("retry_attempts", 2)),
        output_dir=Path(board_raw.get("output_dir", "./output")),
        profile=str(board_raw.get("profile", "test")),
    )
    if board.min_members < 1:
        raise ValueError("board.min_members must be >= 1")
    if board.retry_attempts < 1:
        raise ValueError("board.retry_attempts must be >= 1")

    timeouts_raw = raw.get("timeouts", {})
    timeouts = PhaseTimeouts(
        analysis_sec=float(timeouts_raw.get("analysis_sec", 120)),
        debate_sec=float(timeouts_raw.get("debate_sec", 90)),
        vote_sec=float(timeouts_raw.get("vote_sec", 60)),
    )

    models: dict[str, ModelConfig] = {}
    available_models: set[str] = set()

    for model_key, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=model_key,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            input_cost_per_mtok=float(model_raw.get("input_cost_per_mtok", 0.0)),
            output_cost_per_mtok=float(model_raw.get("output_cost_per_mtok", 0.0)),
        )
        models[model_key] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_models.add(model_key)
            logger.info("Model available: %s", model_key)
        else:
            logger.info(
                "Model skipped (no API key): %s, set %s in .env",
                model_key,
                model_raw["api_key_env"],
            )

    rosters = _load_members(raw["members"], models)

    synthesis_raw = raw["synthesis"]
    synthesis = SynthesisConfig(
        model_key=str(synthesis_raw["model"]),
        max_tokens=int(synthesis_raw.get("max_tokens", 2000)),
        temperature=float(synthesis_raw.get("temperature", 0.1)),
    )
    if synthesis.model_key not in models:
        raise ValueError(f"Synthesis model '{synthesis.model_key}' is not defined under models")

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        system=prompts_raw["system"],
        analysis=prompts_raw["analysis"],
        debate=prompts_raw["debate"],
        vote=prompts_raw["vote"],
        synthesis=prompts_raw["synthesis"],
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    return AppConfig(
        board=board,
        timeouts=timeouts,
        models=models,
        rosters=rosters,
        synthesis=synthesis,
        prompts=prompts,
        inbox=inbox,
        available_models=available_models,
    )

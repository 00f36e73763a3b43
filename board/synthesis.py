"""Final synthesis: collect key points from the votes and merge duplicates."""

import asyncio
import logging
from dataclasses import dataclass, field

from config.config_loader import PromptsConfig, SynthesisConfig
from board.prompts import synthesis_prompt
from board.providers.base import AIProvider, CallOptions
from board.schemas import FinalVote, KeyPointSynthesis

logger = logging.getLogger(__name__)

_SYNTHESIS_TIMEOUT_SEC = 60.0


@dataclass
class KeyPoints:
    consensus_points: list[str] = field(default_factory=list)
    friction_points: list[str] = field(default_factory=list)
    questions_for_founder: list[str] = field(default_factory=list)
    cost: float = 0.0


def collect_raw_questions(votes: list[FinalVote]) -> list[str]:
    """Turn high-weight negative factors and remaining concerns into founder questions."""
    questions: list[str] = []
    for vote in votes:
        for factor in vote.key_factors:
            if factor.direction == "negative" and factor.weight == "high":
                questions.append(f"How do you plan to address: {factor.factor}?")
        for concern in vote.remaining_concerns:
            questions.append(f"Can you clarify: {concern}?")
    return questions


def exact_dedup(items: list[str]) -> list[str]:
    """Drop exact duplicates, keeping first-seen order."""
    return list(dict.fromkeys(items))


def _clean(items: list[str]) -> list[str]:
    return [s for s in items if s.strip()]


async def synthesize_key_points(
    provider: AIProvider | None,
    prompts: PromptsConfig,
    settings: SynthesisConfig,
    votes: list[FinalVote],
    timeout_sec: float = _SYNTHESIS_TIMEOUT_SEC,
) -> KeyPoints:
    """Merge semantic duplicates across all final votes with one low-temperature call.

    Falls back to exact-match dedup of the raw lists when there is no provider,
    or on timeout, provider error, or a malformed response. Never raises.
    """
    raw_consensus = [p for v in votes for p in v.agreement_points]
    raw_friction = [c for v in votes for c in v.remaining_concerns]
    raw_questions = collect_raw_questions(votes)

    fallback = KeyPoints(
        consensus_points=exact_dedup(raw_consensus),
        friction_points=exact_dedup(raw_friction),
        questions_for_founder=exact_dedup(raw_questions),
    )

    if not raw_consensus and not raw_friction and not raw_questions:
        return fallback
    if provider is None:
        logger.info("No synthesis model available, using exact-match dedup")
        return fallback

    prompt = synthesis_prompt(prompts, len(votes), raw_consensus, raw_friction, raw_questions)
    options = CallOptions(
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        timeout_sec=timeout_sec,
    )

    try:
        result = await asyncio.wait_for(
            provider.complete_json(prompt, KeyPointSynthesis, options),
            timeout=timeout_sec,
        )
    except Exception as exc:
        logger.warning("Key point synthesis via %s failed, using exact-match dedup: %s", provider.name(), exc)
        return fallback

    data = result.data
    logger.info(
        "Key points merged: %d->%d consensus, %d->%d friction, %d->%d questions",
        len(raw_consensus), len(data.consensus_points),
        len(raw_friction), len(data.friction_points),
        len(raw_questions), len(data.questions_for_founder),
    )
    return KeyPoints(
        consensus_points=_clean(data.consensus_points),
        friction_points=_clean(data.friction_points),
        questions_for_founder=_clean(data.questions_for_founder),
        cost=result.cost,
    )

"""Board member: one model configuration taking part in analysis, debate and vote."""

import asyncio
import logging
from typing import TypeVar

from pydantic import BaseModel

from config.config_loader import MemberConfig, PhaseTimeouts, PromptsConfig
from board import prompts as prompt_builder
from board.log_context import member_context
from board.models import DebateRound, InputPackage, MemberId, PeerAnalysis
from board.providers.base import AIProvider, CallOptions, ProviderTimeout
from board.schemas import DebateResponse, FinalVote, InitialAnalysis

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# (max_tokens, temperature) per phase
_ANALYSIS_PARAMS = (4096, 0.7)
_DEBATE_PARAMS = (3000, 0.6)
_VOTE_PARAMS = (2000, 0.4)


class BoardMember:
    """Adapter exposing analyze/debate/vote as timeout-raced structured calls.

    Holds the running cost of every successful call made through it. There is
    no retry here; the orchestrator decides what gets retried.
    """

    def __init__(
        self,
        config: MemberConfig,
        provider: AIProvider,
        prompts: PromptsConfig,
        timeouts: PhaseTimeouts | None = None,
    ) -> None:
        self.id = MemberId(config.id)
        self.name = config.name
        self.color = config.color
        self.model_key = config.model_key
        self._provider = provider
        self._prompts = prompts
        self._timeouts = timeouts or PhaseTimeouts()
        self._system_prompt = prompt_builder.system_prompt(prompts, config.name)
        self._total_cost = 0.0

    @property
    def total_cost(self) -> float:
        return self._total_cost

    async def _call(
        self,
        phase: str,
        prompt: str,
        schema: type[T],
        params: tuple[int, float],
        timeout_sec: float,
    ) -> tuple[T, float]:
        max_tokens, temperature = params
        options = CallOptions(
            system_prompt=self._system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout_sec=timeout_sec,
        )
        with member_context(self.id):
            logger.debug("%s call to %s", phase, self._provider.name())
            try:
                result = await asyncio.wait_for(
                    self._provider.complete_json(prompt, schema, options),
                    timeout=timeout_sec,
                )
            except TimeoutError as exc:
                raise ProviderTimeout(self._provider.name(), f"{phase} timeout after {timeout_sec:g}s") from exc

            self._total_cost += result.cost
            logger.info("%s done for %s, cost $%.4f", phase, self.name, result.cost)
            return result.data, result.cost

    async def analyze(self, package: InputPackage) -> tuple[InitialAnalysis, float]:
        """Phase 1: independent analysis of the deal."""
        prompt = prompt_builder.analysis_prompt(self._prompts, package)
        return await self._call("analysis", prompt, InitialAnalysis, _ANALYSIS_PARAMS, self._timeouts.analysis_sec)

    async def debate(
        self,
        package: InputPackage,
        own_analysis: InitialAnalysis,
        others: list[PeerAnalysis],
        round_number: int,
    ) -> tuple[DebateResponse, float]:
        """Phase 2: respond to the other members' analyses."""
        prompt = prompt_builder.debate_prompt(self._prompts, package, own_analysis, others, round_number)
        return await self._call("debate", prompt, DebateResponse, _DEBATE_PARAMS, self._timeouts.debate_sec)

    async def vote(self, package: InputPackage, history: list[DebateRound]) -> tuple[FinalVote, float]:
        """Phase 3: final vote after the debate."""
        prompt = prompt_builder.vote_prompt(self._prompts, package, history)
        return await self._call("vote", prompt, FinalVote, _VOTE_PARAMS, self._timeouts.vote_sec)

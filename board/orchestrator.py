"""Board orchestration: analysis, debate rounds and final vote as one session state machine."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping

from config.config_loader import BoardConfig, MemberConfig, PhaseTimeouts, PromptsConfig, SynthesisConfig
from board.consensus import consensus_level, majority_verdict
from board.errors import InsufficientMembers, ManualStop, SessionTimeout
from board.member import BoardMember
from board.models import (
    DebateEntry,
    DebateRound,
    InputPackage,
    MemberId,
    MemberVoteSummary,
    PeerAnalysis,
    Phase,
    SessionStatus,
    StoppingDecision,
    StoppingReason,
    VerdictMap,
    VerdictResult,
)
from board.persistence import NullSessionStore, SessionStore
from board.progress import (
    DebateResponseReceived,
    DebateRoundCompleted,
    DebateRoundStarted,
    MemberAnalysisCompleted,
    MemberAnalysisStarted,
    MemberFailed,
    MemberVoted,
    ProgressCallback,
    ProgressEmitter,
    SessionError,
    SessionStarted,
    SessionStopped,
    VerdictReached,
    VotingStarted,
)
from board.providers.base import AIProvider
from board.retry import call_with_retry
from board.schemas import FinalVote, InitialAnalysis
from board.stopping import evaluate_stopping_condition
from board.synthesis import synthesize_key_points

logger = logging.getLogger(__name__)

InputLoader = Callable[[str], Awaitable[InputPackage]]

# Forward order of the non-terminal lifecycle; FAILED and STOPPED are reachable from any of these
_LIFECYCLE = (
    SessionStatus.INITIALIZING,
    SessionStatus.ANALYZING,
    SessionStatus.DEBATING,
    SessionStatus.VOTING,
    SessionStatus.COMPLETED,
)

# Confidence reported for members whose final vote never happened
_UNKNOWN_CONFIDENCE = 50


class BoardOrchestrator:
    """Runs one board session from member setup to compiled verdict.

    One instance per session. The instance owns the verdict maps, the initial
    analyses and the debate history; all of them are mutated only after a
    phase has fanned in, so concurrent member calls never race on them.
    """

    def __init__(
        self,
        member_configs: list[MemberConfig],
        providers: Mapping[str, AIProvider],
        prompts: PromptsConfig,
        input_loader: InputLoader,
        board: BoardConfig | None = None,
        timeouts: PhaseTimeouts | None = None,
        synthesis: SynthesisConfig | None = None,
        synthesis_provider: AIProvider | None = None,
        store: SessionStore | None = None,
        on_progress: ProgressCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._member_configs = list(member_configs)
        self._providers = providers
        self._prompts = prompts
        self._input_loader = input_loader
        self._board = board or BoardConfig()
        self._timeouts = timeouts or PhaseTimeouts()
        self._synthesis = synthesis or SynthesisConfig(model_key="")
        self._synthesis_provider = synthesis_provider
        self._store = store or NullSessionStore()
        self._emitter = ProgressEmitter(on_progress)
        self._clock = clock

        self._session_id: str | None = None
        self._status = SessionStatus.INITIALIZING
        self._start = 0.0
        self._stop_requested = False
        self._stopped_result: VerdictResult | None = None
        self._synthesis_cost = 0.0

        self._members: list[BoardMember] = []
        self._initial_analyses: dict[MemberId, InitialAnalysis] = {}
        self._current_verdicts: VerdictMap = {}
        self._previous_verdicts: VerdictMap = {}
        self._debate_history: list[DebateRound] = []

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def members(self) -> list[BoardMember]:
        return list(self._members)

    @property
    def current_verdicts(self) -> VerdictMap:
        return dict(self._current_verdicts)

    @property
    def previous_verdicts(self) -> VerdictMap:
        return dict(self._previous_verdicts)

    @property
    def debate_history(self) -> list[DebateRound]:
        return list(self._debate_history)

    @property
    def total_cost(self) -> float:
        return sum(m.total_cost for m in self._members) + self._synthesis_cost

    def active_members(self) -> list[BoardMember]:
        """Members that completed the initial analysis, in roster order."""
        return [m for m in self._members if m.id in self._initial_analyses]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_board(self, deal_id: str, requested_by: str | None = None) -> VerdictResult:
        """Run the full deliberation for a deal.

        Raises:
            InsufficientMembers: Fewer than min_members completed the analysis.
            ManualStop: stop_board() was called; carries the partial result.
                Errors raised after the stop also surface as ManualStop.
            Exception: Any other phase failure, after the session is marked FAILED.
        """
        if self._session_id is not None:
            raise RuntimeError("BoardOrchestrator instances run a single session")

        self._start = self._clock()
        self._session_id = await self._store.create_session(deal_id, requested_by)
        logger.info("Board session %s started for deal %s", self._session_id, deal_id)
        self._emitter.emit(SessionStarted(
            session_id=self._session_id,
            member_ids=tuple(MemberId(c.id) for c in self._member_configs),
        ))

        try:
            _, package = await asyncio.gather(
                self.initialize_members(),
                self.prepare_input_package(deal_id),
            )

            self._check_stop()
            await self._transition(SessionStatus.ANALYZING)
            await self.run_initial_analyses(package)

            self._check_stop()
            await self._transition(SessionStatus.DEBATING)
            decision = await self.run_debate_rounds(package)

            self._check_stop()
            await self._transition(SessionStatus.VOTING)
            self._emitter.emit(VotingStarted(session_id=self._session_id))
            votes = await self.run_final_votes(package)

            self._check_stop()
            result = await self.compile_verdict(votes, decision.reason or StoppingReason.MAX_ROUNDS)

            self._check_stop()
            await self._store.save_results(self._session_id, result)
            await self._transition(SessionStatus.COMPLETED, result.stopping_reason)
        except ManualStop:
            raise
        except Exception as exc:
            if self._stop_requested:
                logger.warning("Session %s stopped while failing: %s", self._session_id, exc)
                raise ManualStop(self._stopped_result) from exc
            await self._fail(exc)
            raise

        logger.info(
            "Board session %s verdict: %s (%s, %s) after %d round(s), $%.4f",
            self._session_id, result.verdict.value, result.consensus_level.value,
            result.stopping_reason.value, result.total_rounds, result.total_cost,
        )
        self._emitter.emit(VerdictReached(session_id=self._session_id, result=result))
        return result

    async def stop_board(self) -> VerdictResult | None:
        """Stop the session and return a partial result from the current verdicts.

        In-flight member calls are neither awaited nor cancelled; the running
        session raises ManualStop at its next round or phase boundary.
        Returns None if the session never started, already ended, or no
        member has a verdict yet.
        """
        if self._session_id is None or self._status.is_terminal:
            return None

        result = self._partial_result() if self._current_verdicts else None
        self._stopped_result = result
        self._stop_requested = True
        await self._transition(SessionStatus.STOPPED, StoppingReason.MANUAL_STOP)

        logger.info("Board session %s stopped manually", self._session_id)
        self._emitter.emit(SessionStopped(session_id=self._session_id, result=result))
        return result

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def initialize_members(self) -> None:
        """Build one BoardMember per configured member and persist the member rows."""
        members: list[BoardMember] = []
        for cfg in self._member_configs:
            provider = self._providers.get(cfg.model_key)
            if provider is None:
                logger.warning("No provider for model '%s', member %s left off the board", cfg.model_key, cfg.id)
                continue
            members.append(BoardMember(cfg, provider, self._prompts, self._timeouts))
        self._members = members

        await asyncio.gather(*(
            self._store.create_member(self._session_id, m.id, m.model_key, m.name, m.color)
            for m in self._members
        ))
        logger.info("Board members: %s", ", ".join(m.name for m in self._members) or "(none)")

    async def prepare_input_package(self, deal_id: str) -> InputPackage:
        package = await self._input_loader(deal_id)
        logger.info(
            "Input package for %s: %d document(s), %d agent output group(s), %d source(s)",
            package.deal_name, len(package.documents), len(package.agent_outputs), len(package.sources),
        )
        return package

    async def run_initial_analyses(self, package: InputPackage) -> None:
        """Fan out analyze() with no retry. Failing members are out for the rest of the session.

        Raises:
            InsufficientMembers: If fewer than min_members succeed.
        """
        members = list(self._members)
        results = await asyncio.gather(*(self._analyze_member(package, m) for m in members))

        for member, analysis in zip(members, results):
            if analysis is not None:
                self._initial_analyses[member.id] = analysis
                self._current_verdicts[member.id] = analysis.verdict

        logger.info("Initial analyses: %d/%d members succeeded", len(self._initial_analyses), len(members))
        if len(self._initial_analyses) < self._board.min_members:
            raise InsufficientMembers(len(self._initial_analyses), self._board.min_members)

    async def run_debate_rounds(self, package: InputPackage) -> StoppingDecision:
        """Debate until the stopping condition fires, the budget runs out, or max_rounds.

        Returns the decision that ended the debate.
        """
        max_rounds = self._board.max_rounds
        decision: StoppingDecision | None = None

        for round_number in range(1, max_rounds + 1):
            self._check_stop()
            try:
                self._check_budget()
            except SessionTimeout as exc:
                logger.warning("%s, ending debate before round %d", exc, round_number)
                break

            decision = evaluate_stopping_condition(
                self._current_verdicts,
                self._previous_verdicts,
                round_number,
                max_rounds,
                self._board.min_members,
            )
            if decision.should_stop:
                logger.info("Stopping debate before round %d: %s", round_number, decision.reason.value)
                break

            self._emitter.emit(DebateRoundStarted(session_id=self._session_id, round_number=round_number))
            self._previous_verdicts = dict(self._current_verdicts)

            entries = await self._run_single_round(package, round_number)
            debate_round = DebateRound(round_number=round_number, responses=entries)
            self._debate_history.append(debate_round)
            await self._store.save_debate_round(self._session_id, debate_round, dict(self._current_verdicts))

            logger.info("Round %d complete: %d/%d members responded", round_number, len(entries),
                        len(self.active_members()))
            self._emitter.emit(DebateRoundCompleted(
                session_id=self._session_id, round_number=round_number, responded=len(entries),
            ))

        if decision is None or not decision.should_stop:
            # Budget ran out (or max_rounds < 1): classify the board as it stands
            decision = evaluate_stopping_condition(
                self._current_verdicts, self._previous_verdicts, max_rounds, max_rounds, self._board.min_members,
            )
        return decision

    async def run_final_votes(self, package: InputPackage) -> list[tuple[BoardMember, FinalVote]]:
        """Fan out vote() with retry. Every successful vote overwrites the member's verdict.

        A store error while recording a vote propagates and fails the session.
        """
        active = self.active_members()
        history = list(self._debate_history)
        results = await asyncio.gather(*(self._vote_member(package, m, history) for m in active))

        votes = [(member, vote) for member, vote in zip(active, results) if vote is not None]

        logger.info("Final votes: %d/%d members voted", len(votes), len(active))
        return votes

    async def compile_verdict(
        self,
        votes: list[tuple[BoardMember, FinalVote]],
        reason: StoppingReason,
    ) -> VerdictResult:
        key_points = await synthesize_key_points(
            self._synthesis_provider,
            self._prompts,
            self._synthesis,
            [vote for _, vote in votes],
        )
        self._synthesis_cost = key_points.cost

        return VerdictResult(
            verdict=majority_verdict(self._current_verdicts),
            consensus_level=consensus_level(self._current_verdicts),
            stopping_reason=reason,
            votes=[
                MemberVoteSummary(
                    member_id=member.id,
                    member_name=member.name,
                    color=member.color,
                    verdict=vote.verdict,
                    confidence=vote.confidence,
                    justification=vote.justification,
                )
                for member, vote in votes
            ],
            consensus_points=key_points.consensus_points,
            friction_points=key_points.friction_points,
            questions_for_founder=key_points.questions_for_founder,
            total_rounds=len(self._debate_history),
            total_cost=self.total_cost,
            total_time_ms=self._elapsed_ms(),
        )

    # ------------------------------------------------------------------
    # Per-member calls
    # ------------------------------------------------------------------

    async def _analyze_member(self, package: InputPackage, member: BoardMember) -> InitialAnalysis | None:
        """Returns None on failure; the failure is logged and emitted."""
        self._emitter.emit(MemberAnalysisStarted(
            session_id=self._session_id, member_id=member.id, member_name=member.name,
        ))
        try:
            analysis, cost = await member.analyze(package)
            await self._store.save_member_analysis(self._session_id, member.id, analysis, cost)
        except Exception as exc:
            self._member_failed(member, Phase.ANALYSIS, exc)
            return None

        self._emitter.emit(MemberAnalysisCompleted(
            session_id=self._session_id, member_id=member.id, member_name=member.name, analysis=analysis,
        ))
        return analysis

    async def _debate_member(
        self,
        package: InputPackage,
        member: BoardMember,
        active: list[BoardMember],
        round_number: int,
    ) -> DebateEntry | None:
        own = self._initial_analyses[member.id]
        peers = [
            PeerAnalysis(member_id=other.id, member_name=other.name, analysis=self._initial_analyses[other.id])
            for other in active
            if other.id != member.id
        ]
        try:
            response, _ = await call_with_retry(
                lambda: member.debate(package, own, peers, round_number),
                attempts=self._board.retry_attempts,
                label=f"{member.name} debate round {round_number}",
            )
        except Exception as exc:
            self._member_failed(member, Phase.DEBATE, exc, round_number)
            return None

        self._emitter.emit(DebateResponseReceived(
            session_id=self._session_id,
            member_id=member.id,
            member_name=member.name,
            round_number=round_number,
            response=response,
        ))
        return DebateEntry(member_id=member.id, member_name=member.name, response=response)

    async def _run_single_round(self, package: InputPackage, round_number: int) -> list[DebateEntry]:
        active = self.active_members()
        results = await asyncio.gather(*(
            self._debate_member(package, m, active, round_number) for m in active
        ))

        entries: list[DebateEntry] = []
        for entry in results:
            if entry is None:
                continue
            entries.append(entry)
            if entry.response.position_changed and entry.response.new_verdict is not None:
                self._current_verdicts[entry.member_id] = entry.response.new_verdict
        return entries

    async def _vote_member(
        self,
        package: InputPackage,
        member: BoardMember,
        history: list[DebateRound],
    ) -> FinalVote | None:
        try:
            vote, cost = await call_with_retry(
                lambda: member.vote(package, history),
                attempts=self._board.retry_attempts,
                label=f"{member.name} vote",
            )
        except Exception as exc:
            self._member_failed(member, Phase.VOTE, exc)
            return None

        self._current_verdicts[member.id] = vote.verdict
        await self._store.save_member_vote(self._session_id, member.id, vote, cost)
        self._emitter.emit(MemberVoted(
            session_id=self._session_id, member_id=member.id, member_name=member.name, vote=vote,
        ))
        return vote

    def _member_failed(
        self,
        member: BoardMember,
        phase: Phase,
        exc: Exception,
        round_number: int | None = None,
    ) -> None:
        where = f"{phase.value} round {round_number}" if round_number is not None else phase.value
        logger.warning("%s failed in %s: %s", member.name, where, exc)
        self._emitter.emit(MemberFailed(
            session_id=self._session_id,
            member_id=member.id,
            member_name=member.name,
            phase=phase,
            error=str(exc),
            round_number=round_number,
        ))

    # ------------------------------------------------------------------
    # Session bookkeeping
    # ------------------------------------------------------------------

    async def _transition(self, status: SessionStatus, reason: StoppingReason | None = None) -> None:
        """Move the session forward. Status is updated before the store is awaited."""
        current = self._status
        if current.is_terminal:
            raise RuntimeError(f"Session already {current.value}, cannot move to {status.value}")
        if status not in (SessionStatus.FAILED, SessionStatus.STOPPED):
            if _LIFECYCLE.index(status) != _LIFECYCLE.index(current) + 1:
                raise RuntimeError(f"Illegal session transition {current.value} -> {status.value}")

        self._status = status
        logger.debug("Session %s: %s -> %s", self._session_id, current.value, status.value)
        await self._store.update_status(self._session_id, status, reason)

    async def _fail(self, exc: Exception) -> None:
        if self._status.is_terminal:
            logger.warning("Session %s error after %s: %s", self._session_id, self._status.value, exc)
            return
        logger.error("Board session %s failed: %s", self._session_id, exc)
        await self._transition(SessionStatus.FAILED)
        self._emitter.emit(SessionError(session_id=self._session_id, error=str(exc)))

    def _check_stop(self) -> None:
        if self._stop_requested:
            raise ManualStop(self._stopped_result)

    def _check_budget(self) -> None:
        elapsed = self._clock() - self._start
        if elapsed > self._board.timeout_sec:
            raise SessionTimeout(elapsed, self._board.timeout_sec)

    def _elapsed_ms(self) -> int:
        return int((self._clock() - self._start) * 1000)

    def _partial_result(self) -> VerdictResult:
        by_id = {m.id: m for m in self._members}
        votes = [
            MemberVoteSummary(
                member_id=member_id,
                member_name=by_id[member_id].name if member_id in by_id else member_id,
                color=by_id[member_id].color if member_id in by_id else "#666666",
                verdict=verdict,
                confidence=_UNKNOWN_CONFIDENCE,
                justification="Session stopped before the final vote",
            )
            for member_id, verdict in self._current_verdicts.items()
        ]
        return VerdictResult(
            verdict=majority_verdict(self._current_verdicts),
            consensus_level=consensus_level(self._current_verdicts),
            stopping_reason=StoppingReason.MANUAL_STOP,
            votes=votes,
            total_rounds=len(self._debate_history),
            total_cost=self.total_cost,
            total_time_ms=self._elapsed_ms(),
        )

"""Progress events: one frozen dataclass per kind, plus the synchronous emitter."""

import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

from board.models import MemberId, Phase, VerdictResult
from board.schemas import DebateResponse, FinalVote, InitialAnalysis

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ProgressEvent:
    kind: ClassVar[str] = ""

    session_id: str
    timestamp: float = 0.0  # set by ProgressEmitter at emission


@dataclass(frozen=True, kw_only=True)
class SessionStarted(ProgressEvent):
    kind: ClassVar[str] = "session_started"

    member_ids: tuple[MemberId, ...] = ()


@dataclass(frozen=True, kw_only=True)
class MemberAnalysisStarted(ProgressEvent):
    kind: ClassVar[str] = "member_analysis_started"

    member_id: MemberId
    member_name: str


@dataclass(frozen=True, kw_only=True)
class MemberAnalysisCompleted(ProgressEvent):
    kind: ClassVar[str] = "member_analysis_completed"

    member_id: MemberId
    member_name: str
    analysis: InitialAnalysis


@dataclass(frozen=True, kw_only=True)
class MemberFailed(ProgressEvent):
    """A member's call failed in some phase. Debate failures carry the round."""

    kind: ClassVar[str] = "member_analysis_failed"

    member_id: MemberId
    member_name: str
    phase: Phase
    error: str
    round_number: int | None = None


@dataclass(frozen=True, kw_only=True)
class DebateRoundStarted(ProgressEvent):
    kind: ClassVar[str] = "debate_round_started"

    round_number: int


@dataclass(frozen=True, kw_only=True)
class DebateResponseReceived(ProgressEvent):
    kind: ClassVar[str] = "debate_response"

    member_id: MemberId
    member_name: str
    round_number: int
    response: DebateResponse


@dataclass(frozen=True, kw_only=True)
class DebateRoundCompleted(ProgressEvent):
    kind: ClassVar[str] = "debate_round_completed"

    round_number: int
    responded: int


@dataclass(frozen=True, kw_only=True)
class VotingStarted(ProgressEvent):
    kind: ClassVar[str] = "voting_started"


@dataclass(frozen=True, kw_only=True)
class MemberVoted(ProgressEvent):
    kind: ClassVar[str] = "member_voted"

    member_id: MemberId
    member_name: str
    vote: FinalVote


@dataclass(frozen=True, kw_only=True)
class VerdictReached(ProgressEvent):
    kind: ClassVar[str] = "verdict_reached"

    result: VerdictResult


@dataclass(frozen=True, kw_only=True)
class SessionError(ProgressEvent):
    kind: ClassVar[str] = "error"

    error: str


@dataclass(frozen=True, kw_only=True)
class SessionStopped(ProgressEvent):
    kind: ClassVar[str] = "stopped"

    result: VerdictResult | None = None


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressEmitter:
    """Stamp and hand events to a callback, in call order.

    Nothing is buffered or redelivered; without a callback events are dropped.
    Exceptions raised by the callback propagate to the emitting code.
    """

    def __init__(self, callback: ProgressCallback | None = None, clock: Callable[[], float] = time.time) -> None:
        self._callback = callback
        self._clock = clock

    def emit(self, event: ProgressEvent) -> ProgressEvent:
        stamped = dataclasses.replace(event, timestamp=self._clock())
        logger.debug("progress %s %s", stamped.kind, stamped.session_id)
        if self._callback is not None:
            self._callback(stamped)
        return stamped

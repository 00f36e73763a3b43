"""Dataclasses and enums shared across the board pipeline. No logic beyond helpers, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, NewType

if TYPE_CHECKING:
    from board.schemas import DebateResponse, InitialAnalysis

MemberId = NewType("MemberId", str)


class Verdict(str, Enum):
    # Declaration order is the majority tie-break order
    GO = "GO"
    NO_GO = "NO_GO"
    NEED_MORE_INFO = "NEED_MORE_INFO"


class ConsensusLevel(str, Enum):
    UNANIMOUS = "UNANIMOUS"
    STRONG = "STRONG"
    SPLIT = "SPLIT"
    MINORITY = "MINORITY"


class StoppingReason(str, Enum):
    CONSENSUS = "consensus"
    MAJORITY_STABLE = "majority_stable"
    MAX_ROUNDS = "max_rounds"
    STAGNATION = "stagnation"
    MANUAL_STOP = "manual_stop"


class SessionStatus(str, Enum):
    INITIALIZING = "INITIALIZING"
    ANALYZING = "ANALYZING"
    DEBATING = "DEBATING"
    VOTING = "VOTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.STOPPED)


class Phase(str, Enum):
    ANALYSIS = "analysis"
    DEBATE = "debate"
    VOTE = "vote"


# Member id -> verdict. Never rely on key order for correctness.
VerdictMap = dict[MemberId, Verdict]


@dataclass(frozen=True)
class Document:
    name: str
    type: str
    extracted_text: str | None = None


@dataclass(frozen=True)
class Source:
    source: str
    reliability: str       # "high", "medium", "low"
    data_points: tuple[str, ...] = ()


@dataclass(frozen=True)
class InputPackage:
    """Everything the board sees about one deal. Built once per session."""

    deal_id: str
    deal_name: str
    company_name: str
    documents: tuple[Document, ...] = ()
    agent_outputs: dict[str, Any] = field(default_factory=dict)
    enriched_data: dict[str, Any] | None = None
    sources: tuple[Source, ...] = ()


@dataclass(frozen=True)
class StoppingDecision:
    should_stop: bool
    reason: StoppingReason | None
    consensus_level: ConsensusLevel | None


@dataclass
class MemberVoteSummary:
    member_id: MemberId
    member_name: str
    color: str
    verdict: Verdict
    confidence: int
    justification: str


@dataclass
class VerdictResult:
    verdict: Verdict
    consensus_level: ConsensusLevel
    stopping_reason: StoppingReason
    votes: list[MemberVoteSummary]
    consensus_points: list[str] = field(default_factory=list)
    friction_points: list[str] = field(default_factory=list)
    questions_for_founder: list[str] = field(default_factory=list)
    total_rounds: int = 0
    total_cost: float = 0.0
    total_time_ms: int = 0


@dataclass(frozen=True)
class DebateEntry:
    member_id: MemberId
    member_name: str
    response: "DebateResponse"


@dataclass
class DebateRound:
    round_number: int
    responses: list[DebateEntry] = field(default_factory=list)


@dataclass(frozen=True)
class PeerAnalysis:
    """Another member's analysis as handed to a debater."""

    member_id: MemberId
    member_name: str
    analysis: "InitialAnalysis"

"""Stopping-condition evaluator for the debate loop."""

from collections.abc import Mapping

from board.consensus import consensus_level, count_verdicts
from board.models import ConsensusLevel, MemberId, StoppingDecision, StoppingReason, Verdict

_CONTINUE = StoppingDecision(should_stop=False, reason=None, consensus_level=None)

# A stable majority needs at least this many members agreeing
_MAJORITY_SIZE = 3


def _any_change(
    current: Mapping[MemberId, Verdict],
    previous: Mapping[MemberId, Verdict],
    *,
    ignore_missing: bool = False,
) -> bool:
    for member_id, verdict in current.items():
        if member_id not in previous:
            if ignore_missing:
                continue
            return True
        if previous[member_id] != verdict:
            return True
    return False


def evaluate_stopping_condition(
    current: Mapping[MemberId, Verdict],
    previous: Mapping[MemberId, Verdict],
    round_number: int,
    max_rounds: int,
    min_members: int,
) -> StoppingDecision:
    """Decide whether the debate should stop before running `round_number`.

    Checks run in priority order and the first match wins:

    1. consensus: every active member shares one verdict and there are at
       least `min_members` of them.
    2. majority_stable: at least three of three or more members agree, a
       previous snapshot exists, and nobody changed verdict since it.
    3. max_rounds: `round_number >= max_rounds`.
    4. stagnation: a previous snapshot exists and no verdict changed.

    Pure: reads its arguments only and never mutates them.
    """
    counts = count_verdicts(current)
    active = len(current)
    has_snapshot = len(previous) > 0

    if active >= min_members and any(count == active for count in counts.values()):
        return StoppingDecision(True, StoppingReason.CONSENSUS, ConsensusLevel.UNANIMOUS)

    if (
        active >= _MAJORITY_SIZE
        and any(count >= _MAJORITY_SIZE for count in counts.values())
        and has_snapshot
        and not _any_change(current, previous, ignore_missing=True)
    ):
        return StoppingDecision(True, StoppingReason.MAJORITY_STABLE, ConsensusLevel.STRONG)

    if round_number >= max_rounds:
        return StoppingDecision(True, StoppingReason.MAX_ROUNDS, consensus_level(current))

    if has_snapshot and not _any_change(current, previous):
        return StoppingDecision(True, StoppingReason.STAGNATION, consensus_level(current))

    return _CONTINUE

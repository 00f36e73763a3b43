"""Pure functions classifying agreement within a verdict map."""

from collections import Counter
from collections.abc import Mapping

from board.models import ConsensusLevel, MemberId, Verdict

# Fixed tie-break order for the majority verdict
VERDICT_ORDER: tuple[Verdict, ...] = (Verdict.GO, Verdict.NO_GO, Verdict.NEED_MORE_INFO)


def count_verdicts(verdicts: Mapping[MemberId, Verdict]) -> dict[Verdict, int]:
    """Count each verdict, including zero counts, in VERDICT_ORDER."""
    counts = Counter(verdicts.values())
    return {v: counts.get(v, 0) for v in VERDICT_ORDER}


def consensus_level(verdicts: Mapping[MemberId, Verdict]) -> ConsensusLevel:
    """Classify agreement.

    UNANIMOUS when every member shares one verdict, STRONG when at least three
    agree, SPLIT for a 2-2 board of four, MINORITY otherwise.
    """
    counts = count_verdicts(verdicts)
    max_count = max(counts.values())
    total = len(verdicts)

    if max_count == total:
        return ConsensusLevel.UNANIMOUS
    if max_count >= 3:
        return ConsensusLevel.STRONG
    if max_count == 2 and total == 4:
        return ConsensusLevel.SPLIT
    return ConsensusLevel.MINORITY


def majority_verdict(verdicts: Mapping[MemberId, Verdict]) -> Verdict:
    """Return the most common verdict.

    Ties resolve deterministically to the first verdict in VERDICT_ORDER
    (GO, NO_GO, NEED_MORE_INFO). An empty map yields NEED_MORE_INFO.
    """
    counts = count_verdicts(verdicts)
    best, best_count = Verdict.NEED_MORE_INFO, 0
    for verdict in VERDICT_ORDER:
        if counts[verdict] > best_count:
            best, best_count = verdict, counts[verdict]
    return best

"""Session-level errors raised by the board orchestrator."""

from board.models import VerdictResult


class BoardError(Exception):
    """Base for errors that end or interrupt a board session."""


class InsufficientMembers(BoardError):
    """Raised when fewer members than required survive a phase."""

    def __init__(self, succeeded: int, required: int) -> None:
        self.succeeded = succeeded
        self.required = required
        super().__init__(
            f"Only {succeeded} member(s) completed the analysis, minimum required: {required}"
        )


class SessionTimeout(BoardError):
    """Raised at a round boundary when the session wall-clock budget is spent."""

    def __init__(self, elapsed_sec: float, budget_sec: float) -> None:
        self.elapsed_sec = elapsed_sec
        self.budget_sec = budget_sec
        super().__init__(f"Session budget exceeded: {elapsed_sec:.1f}s > {budget_sec:.1f}s")


class ManualStop(BoardError):
    """Raised in the running session once a stop request is observed at a boundary."""

    def __init__(self, result: VerdictResult | None = None) -> None:
        self.result = result
        super().__init__("Board session stopped manually")

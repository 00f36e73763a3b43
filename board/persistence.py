"""Session persistence: the interface the orchestrator drives, plus no-op and JSON-file stores."""

import asyncio
import dataclasses
import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from board.consensus import count_verdicts
from board.models import DebateRound, MemberId, SessionStatus, StoppingReason, VerdictMap, VerdictResult
from board.schemas import FinalVote, InitialAnalysis

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, pydantic models and enums into plain JSON types."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    return value


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStore(ABC):
    """Snapshot target for a board session. Return values other than the session id are ignored."""

    @abstractmethod
    async def create_session(self, deal_id: str, requested_by: str | None) -> str:
        """Create a session record and return its id."""
        ...

    @abstractmethod
    async def update_status(
        self,
        session_id: str,
        status: SessionStatus,
        stopping_reason: StoppingReason | None = None,
    ) -> None: ...

    @abstractmethod
    async def create_member(self, session_id: str, member_id: MemberId, model_key: str, name: str, color: str) -> None: ...

    @abstractmethod
    async def save_member_analysis(
        self, session_id: str, member_id: MemberId, analysis: InitialAnalysis, cost: float
    ) -> None: ...

    @abstractmethod
    async def save_debate_round(self, session_id: str, debate_round: DebateRound, verdicts: VerdictMap) -> None: ...

    @abstractmethod
    async def save_member_vote(self, session_id: str, member_id: MemberId, vote: FinalVote, cost: float) -> None: ...

    @abstractmethod
    async def save_results(self, session_id: str, result: VerdictResult) -> None: ...


class NullSessionStore(SessionStore):
    """Discards everything. Used when no output location is configured."""

    async def create_session(self, deal_id: str, requested_by: str | None) -> str:
        return uuid.uuid4().hex

    async def update_status(self, session_id, status, stopping_reason=None) -> None:
        return None

    async def create_member(self, session_id, member_id, model_key, name, color) -> None:
        return None

    async def save_member_analysis(self, session_id, member_id, analysis, cost) -> None:
        return None

    async def save_debate_round(self, session_id, debate_round, verdicts) -> None:
        return None

    async def save_member_vote(self, session_id, member_id, vote, cost) -> None:
        return None

    async def save_results(self, session_id, result) -> None:
        return None


class JsonSessionStore(SessionStore):
    """Keeps one JSON document per session and rewrites it on every update.

    Files live at `<output_dir>/session_<id>.json`.
    """

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = output_dir
        self._sessions: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def path_for(self, session_id: str) -> Path:
        return self._output_dir / f"session_{session_id}.json"

    def snapshot(self, session_id: str) -> dict[str, Any]:
        """Return the current in-memory document for a session."""
        return self._sessions[session_id]

    async def _write(self, session_id: str) -> None:
        async with self._lock:
            doc = self._sessions[session_id]
            doc["updated_at"] = _now()
            self._output_dir.mkdir(parents=True, exist_ok=True)
            path = self.path_for(session_id)
            path.write_text(json.dumps(doc, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Session %s snapshot written to %s", session_id, path)

    async def create_session(self, deal_id: str, requested_by: str | None) -> str:
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = {
            "id": session_id,
            "deal_id": deal_id,
            "requested_by": requested_by,
            "status": SessionStatus.INITIALIZING.value,
            "status_history": [{"status": SessionStatus.INITIALIZING.value, "at": _now()}],
            "started_at": _now(),
            "completed_at": None,
            "stopping_reason": None,
            "members": {},
            "rounds": [],
            "result": None,
        }
        await self._write(session_id)
        return session_id

    async def update_status(self, session_id, status, stopping_reason=None) -> None:
        doc = self._sessions[session_id]
        doc["status"] = status.value
        doc["status_history"].append({"status": status.value, "at": _now()})
        if stopping_reason is not None:
            doc["stopping_reason"] = stopping_reason.value
        if status.is_terminal:
            doc["completed_at"] = _now()
        await self._write(session_id)

    async def create_member(self, session_id, member_id, model_key, name, color) -> None:
        self._sessions[session_id]["members"][member_id] = {
            "model": model_key,
            "name": name,
            "color": color,
            "initial_analysis": None,
            "analysis_cost": None,
            "final_vote": None,
            "vote_cost": None,
        }
        await self._write(session_id)

    async def save_member_analysis(self, session_id, member_id, analysis, cost) -> None:
        row = self._sessions[session_id]["members"][member_id]
        row["initial_analysis"] = to_jsonable(analysis)
        row["analysis_cost"] = cost
        await self._write(session_id)

    async def save_debate_round(self, session_id, debate_round, verdicts) -> None:
        counts = count_verdicts(verdicts)
        self._sessions[session_id]["rounds"].append({
            "round_number": debate_round.round_number,
            "responses": to_jsonable(debate_round.responses),
            "current_verdicts": to_jsonable(dict(verdicts)),
            "consensus_reached": bool(verdicts) and any(c == len(verdicts) for c in counts.values()),
            "majority_stable": any(c >= 3 for c in counts.values()),
        })
        await self._write(session_id)

    async def save_member_vote(self, session_id, member_id, vote, cost) -> None:
        row = self._sessions[session_id]["members"][member_id]
        row["final_vote"] = to_jsonable(vote)
        row["vote_cost"] = cost
        await self._write(session_id)

    async def save_results(self, session_id, result) -> None:
        doc = self._sessions[session_id]
        doc["result"] = to_jsonable(result)
        doc["stopping_reason"] = result.stopping_reason.value
        await self._write(session_id)

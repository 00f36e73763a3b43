"""
Pydantic models for the structured outputs board members produce.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON shapes requested in the prompts.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from board.models import Verdict


class _WireModel(BaseModel):
    """Base for LLM payloads: camelCase aliases, immutable once parsed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ============== Phase 1: Initial analysis ==============

class Argument(_WireModel):
    point: str
    strength: Literal["strong", "moderate", "weak"]
    evidence: str = ""


class Concern(_WireModel):
    concern: str
    severity: Literal["critical", "high", "medium", "low"]
    mitigation: str | None = None


class InitialAnalysis(_WireModel):
    verdict: Verdict
    confidence: int = Field(..., ge=0, le=100)
    arguments: list[Argument] = Field(default_factory=list)
    concerns: list[Concern] = Field(default_factory=list)
    would_change_verdict: list[str] = Field(default_factory=list)


# ============== Phase 2: Debate ==============

class ResponseToOther(_WireModel):
    target_member_id: str
    point_addressed: str
    response: str
    agreement: Literal["agree", "disagree", "partially_agree"]


class NewPoint(_WireModel):
    point: str
    evidence: str = ""


class DebateResponse(_WireModel):
    position_changed: bool
    new_verdict: Verdict | None = None
    new_confidence: int | None = Field(default=None, ge=0, le=100)
    justification: str
    responses_to_others: list[ResponseToOther] = Field(default_factory=list)
    new_points: list[NewPoint] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _drop_unchanged_position(cls, data):
        """Models often echo their current verdict in newVerdict without changing position."""
        if isinstance(data, dict) and not data.get("positionChanged", data.get("position_changed")):
            data = {
                k: v for k, v in data.items()
                if k not in ("newVerdict", "new_verdict", "newConfidence", "new_confidence")
            }
        return data

    @model_validator(mode="after")
    def _changed_position_has_verdict(self) -> "DebateResponse":
        if self.position_changed and self.new_verdict is None:
            raise ValueError("positionChanged is true but newVerdict is missing")
        return self


# ============== Phase 3: Final vote ==============

class KeyFactor(_WireModel):
    factor: str
    weight: Literal["high", "medium", "low"]
    direction: Literal["positive", "negative", "neutral"]


class FinalVote(_WireModel):
    verdict: Verdict
    confidence: int = Field(..., ge=0, le=100)
    justification: str
    key_factors: list[KeyFactor] = Field(default_factory=list)
    agreement_points: list[str] = Field(default_factory=list)
    remaining_concerns: list[str] = Field(default_factory=list)


# ============== Synthesis ==============

class KeyPointSynthesis(_WireModel):
    """Deduplicated lists returned by the synthesis call. All three are required."""

    consensus_points: list[str]
    friction_points: list[str]
    questions_for_founder: list[str]

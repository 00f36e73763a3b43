"""Tests for board/persistence.py."""

import json
from pathlib import Path

import pytest

from board.models import (
    ConsensusLevel,
    DebateEntry,
    DebateRound,
    MemberId,
    MemberVoteSummary,
    SessionStatus,
    StoppingReason,
    Verdict,
    VerdictResult,
)
from board.persistence import JsonSessionStore, NullSessionStore, to_jsonable
from board.schemas import DebateResponse, FinalVote, InitialAnalysis
from tests.conftest import analysis_json, debate_json, vote_json


def test_to_jsonable_uses_camel_case_for_payloads():
    analysis = InitialAnalysis.model_validate_json(analysis_json("GO"))
    data = to_jsonable({"analysis": analysis, "status": SessionStatus.DEBATING, "path": Path("a/b")})
    assert data["analysis"]["wouldChangeVerdict"] == ["Churn above 5%"]
    assert data["status"] == "DEBATING"
    assert data["path"] == str(Path("a/b"))


async def test_null_store_returns_unique_ids():
    store = NullSessionStore()
    first = await store.create_session("deal-1", None)
    second = await store.create_session("deal-1", None)
    assert first != second
    await store.update_status(first, SessionStatus.ANALYZING)


@pytest.fixture
def store(tmp_path: Path) -> JsonSessionStore:
    return JsonSessionStore(tmp_path / "sessions")


async def test_create_session_writes_file(store):
    session_id = await store.create_session("deal-1", "analyst@fund.vc")
    doc = json.loads(store.path_for(session_id).read_text(encoding="utf-8"))
    assert doc["deal_id"] == "deal-1"
    assert doc["requested_by"] == "analyst@fund.vc"
    assert doc["status"] == "INITIALIZING"
    assert doc["completed_at"] is None


async def test_status_history_and_completion(store):
    session_id = await store.create_session("deal-1", None)
    for status in (SessionStatus.ANALYZING, SessionStatus.DEBATING, SessionStatus.VOTING):
        await store.update_status(session_id, status)
    await store.update_status(session_id, SessionStatus.COMPLETED, StoppingReason.CONSENSUS)

    doc = store.snapshot(session_id)
    assert [h["status"] for h in doc["status_history"]] == [
        "INITIALIZING", "ANALYZING", "DEBATING", "VOTING", "COMPLETED",
    ]
    assert doc["stopping_reason"] == "consensus"
    assert doc["completed_at"] is not None


async def test_member_rows_record_analysis_vote_and_costs(store):
    session_id = await store.create_session("deal-1", None)
    await store.create_member(session_id, MemberId("claude"), "claude_haiku", "Claude", "#D97706")
    await store.save_member_analysis(
        session_id, MemberId("claude"), InitialAnalysis.model_validate_json(analysis_json("NO_GO")), 0.01
    )
    await store.save_member_vote(session_id, MemberId("claude"), FinalVote.model_validate_json(vote_json()), 0.02)

    row = json.loads(store.path_for(session_id).read_text(encoding="utf-8"))["members"]["claude"]
    assert row["model"] == "claude_haiku"
    assert row["initial_analysis"]["verdict"] == "NO_GO"
    assert row["analysis_cost"] == 0.01
    assert row["final_vote"]["verdict"] == "GO"
    assert row["vote_cost"] == 0.02


async def test_debate_round_records_verdicts_and_flags(store):
    session_id = await store.create_session("deal-1", None)
    entry = DebateEntry(MemberId("gpt"), "GPT", DebateResponse.model_validate_json(debate_json("GO")))
    verdicts = {
        MemberId("claude"): Verdict.GO,
        MemberId("gpt"): Verdict.GO,
        MemberId("gemini"): Verdict.GO,
        MemberId("grok"): Verdict.NO_GO,
    }
    await store.save_debate_round(session_id, DebateRound(1, [entry]), verdicts)

    rnd = store.snapshot(session_id)["rounds"][0]
    assert rnd["round_number"] == 1
    assert rnd["responses"][0]["response"]["newVerdict"] == "GO"
    assert rnd["current_verdicts"]["grok"] == "NO_GO"
    assert rnd["consensus_reached"] is False
    assert rnd["majority_stable"] is True


async def test_save_results(store):
    session_id = await store.create_session("deal-1", None)
    result = VerdictResult(
        verdict=Verdict.GO,
        consensus_level=ConsensusLevel.UNANIMOUS,
        stopping_reason=StoppingReason.CONSENSUS,
        votes=[MemberVoteSummary(MemberId("claude"), "Claude", "#D97706", Verdict.GO, 90, "Yes")],
        consensus_points=["Strong team"],
        total_rounds=0,
        total_cost=0.05,
    )
    await store.save_results(session_id, result)
    doc = json.loads(store.path_for(session_id).read_text(encoding="utf-8"))
    assert doc["result"]["verdict"] == "GO"
    assert doc["result"]["votes"][0]["confidence"] == 90
    assert doc["result"]["consensus_points"] == ["Strong team"]
    assert doc["stopping_reason"] == "consensus"

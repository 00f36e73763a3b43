"""Render the deal, analyses and debate history into the prompt templates from settings.yaml."""

import json

from config.config_loader import PromptsConfig
from board.models import DebateRound, InputPackage, PeerAnalysis
from board.schemas import InitialAnalysis

# Per-document cap on extracted text sent to the models
_MAX_DOCUMENT_CHARS = 5000


def _bullets(items: list[str], indent: str = "  ") -> str:
    if not items:
        return f"{indent}* (none)"
    return "\n".join(f"{indent}* {item}" for item in items)


def format_deal(package: InputPackage) -> str:
    """Format the input package as markdown sections separated by rules."""
    sections: list[str] = [f"# DEAL: {package.deal_name}\nCompany: {package.company_name}"]

    if package.documents:
        docs: list[str] = []
        for doc in package.documents:
            if doc.extracted_text:
                text = doc.extracted_text[:_MAX_DOCUMENT_CHARS]
                if len(doc.extracted_text) > _MAX_DOCUMENT_CHARS:
                    text += "\n[...truncated...]"
            else:
                text = "[No extracted text]"
            docs.append(f"### {doc.name} ({doc.type})\n{text}")
        sections.append("## DOCUMENTS\n" + "\n\n".join(docs))

    for tier, output in package.agent_outputs.items():
        if output:
            sections.append(f"## AGENT RESULTS: {tier}\n{json.dumps(output, indent=2, ensure_ascii=False, default=str)}")

    if package.enriched_data:
        sections.append(
            "## ENRICHED CONTEXT\n" + json.dumps(package.enriched_data, indent=2, ensure_ascii=False, default=str)
        )

    if package.sources:
        lines = [f"- {s.source} [{s.reliability}]: {', '.join(s.data_points)}" for s in package.sources]
        sections.append("## SOURCES\n" + "\n".join(lines))

    return "\n\n---\n\n".join(sections)


def format_own_analysis(analysis: InitialAnalysis) -> str:
    return "\n".join([
        f"- Verdict: {analysis.verdict.value} ({analysis.confidence}% confidence)",
        f"- Arguments: {'; '.join(a.point for a in analysis.arguments) or '(none)'}",
        f"- Concerns: {'; '.join(c.concern for c in analysis.concerns) or '(none)'}",
    ])


def format_peer_analyses(peers: list[PeerAnalysis]) -> str:
    """Format every other member's analysis, labelled with their id for responsesToOthers."""
    parts: list[str] = []
    for peer in peers:
        a = peer.analysis
        parts.append(
            f"### {peer.member_name} (id: {peer.member_id})\n"
            f"- Verdict: {a.verdict.value} ({a.confidence}% confidence)\n"
            f"- Main arguments:\n{_bullets([f'[{arg.strength}] {arg.point}' for arg in a.arguments])}\n"
            f"- Concerns:\n{_bullets([f'[{c.severity}] {c.concern}' for c in a.concerns])}"
        )
    return "\n\n".join(parts)


def format_debate_history(history: list[DebateRound]) -> str:
    if not history:
        return "(no debate rounds were held)"
    parts: list[str] = []
    for rnd in history:
        lines = [f"### Round {rnd.round_number}"]
        for entry in rnd.responses:
            line = f"**{entry.member_name}**: {entry.response.justification}"
            if entry.response.position_changed and entry.response.new_verdict is not None:
                line += f"\n(CHANGED position to {entry.response.new_verdict.value})"
            lines.append(line)
        parts.append("\n\n".join(lines))
    return "\n\n".join(parts)


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1)) or "(none)"


def system_prompt(prompts: PromptsConfig, member_name: str) -> str:
    return prompts.system.format(member_name=member_name)


def analysis_prompt(prompts: PromptsConfig, package: InputPackage) -> str:
    return prompts.analysis.format(deal=format_deal(package))


def debate_prompt(
    prompts: PromptsConfig,
    package: InputPackage,
    own_analysis: InitialAnalysis,
    peers: list[PeerAnalysis],
    round_number: int,
) -> str:
    return prompts.debate.format(
        round=round_number,
        deal=format_deal(package),
        own_analysis=format_own_analysis(own_analysis),
        others_analyses=format_peer_analyses(peers),
    )


def vote_prompt(prompts: PromptsConfig, package: InputPackage, history: list[DebateRound]) -> str:
    return prompts.vote.format(deal=format_deal(package), debate_history=format_debate_history(history))


def synthesis_prompt(
    prompts: PromptsConfig,
    member_count: int,
    consensus: list[str],
    friction: list[str],
    questions: list[str],
) -> str:
    return prompts.synthesis.format(
        member_count=member_count,
        consensus_count=len(consensus),
        consensus_points=_numbered(consensus),
        friction_count=len(friction),
        friction_points=_numbered(friction),
        questions_count=len(questions),
        questions=_numbered(questions),
    )

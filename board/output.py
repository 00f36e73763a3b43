"""Rich console output for progress and verdicts, plus the markdown report file."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from board.models import DebateRound, InputPackage, Verdict, VerdictResult
from board.progress import (
    DebateResponseReceived,
    DebateRoundCompleted,
    DebateRoundStarted,
    MemberAnalysisCompleted,
    MemberAnalysisStarted,
    MemberFailed,
    MemberVoted,
    ProgressEvent,
    SessionError,
    SessionStarted,
    SessionStopped,
    VerdictReached,
    VotingStarted,
)

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_VERDICT_STYLE = {
    Verdict.GO: "bold green",
    Verdict.NO_GO: "bold red",
    Verdict.NEED_MORE_INFO: "bold yellow",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def format_event(event: ProgressEvent) -> str | None:
    """One line of rich markup per progress event. Returns None for events not shown."""
    match event:
        case SessionStarted(member_ids=ids):
            return f"[bold cyan]Board convened[/bold cyan] ({len(ids)} members)"
        case MemberAnalysisStarted(member_name=name):
            return f"[dim]{name} is analyzing...[/dim]"
        case MemberAnalysisCompleted(member_name=name, analysis=a):
            return f"[green]OK[/green] {name}: {a.verdict.value} ({a.confidence}%)"
        case MemberFailed(member_name=name, phase=phase, error=err, round_number=rnd):
            where = f"{phase.value} round {rnd}" if rnd is not None else phase.value
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            return f"[red]FAIL[/red] {name} ({where}): {short_err}"
        case DebateRoundStarted(round_number=rnd):
            return f"[bold]Debate round {rnd}[/bold]"
        case DebateResponseReceived(member_name=name, response=r):
            if r.position_changed and r.new_verdict is not None:
                return f"  {name} [yellow]changed position to {r.new_verdict.value}[/yellow]"
            return f"  {name} holds position"
        case DebateRoundCompleted(round_number=rnd, responded=n):
            return f"[green]OK[/green] Round {rnd} complete ({n} responses)"
        case VotingStarted():
            return "[bold]Final vote[/bold]"
        case MemberVoted(member_name=name, vote=v):
            return f"  {name} votes [{_VERDICT_STYLE[v.verdict]}]{v.verdict.value}[/] ({v.confidence}%)"
        case VerdictReached(result=result):
            return f"[bold green]Verdict reached:[/bold green] {result.verdict.value}"
        case SessionError(error=err):
            return f"[bold red]Session failed:[/bold red] {err}"
        case SessionStopped():
            return "[yellow]Session stopped[/yellow]"
    return None


def print_event(event: ProgressEvent) -> None:
    line = format_event(event)
    if line is not None:
        console.print(line)


def print_verdict(result: VerdictResult) -> None:
    """Print the verdict, each member's vote and the key points."""
    console.print(Rule("[bold green]Board Verdict[/bold green]"))
    headline = Text()
    headline.append(result.verdict.value, style=_VERDICT_STYLE[result.verdict])
    headline.append(
        f"  {result.consensus_level.value} | stopped: {result.stopping_reason.value} | "
        f"rounds: {result.total_rounds} | cost: ${result.total_cost:.4f} | "
        f"{result.total_time_ms / 1000:.1f}s"
    )
    console.print(headline)

    for vote in result.votes:
        console.print(
            Panel(
                vote.justification,
                title=f"[bold]{vote.member_name}[/bold] {vote.verdict.value}",
                subtitle=f"{vote.confidence}%",
                border_style=vote.color,
            )
        )

    console.print(Markdown(_key_points_markdown(result)))


def _bullet_list(items: list[str]) -> list[str]:
    return [f"- {item}" for item in items] if items else ["- (none)"]


def _key_points_markdown(result: VerdictResult) -> str:
    lines = ["## Consensus points", ""]
    lines += _bullet_list(result.consensus_points)
    lines += ["", "## Friction points", ""]
    lines += _bullet_list(result.friction_points)
    lines += ["", "## Questions for the founder", ""]
    lines += _bullet_list(result.questions_for_founder)
    return "\n".join(lines)


def render_report(
    result: VerdictResult,
    package: InputPackage,
    history: list[DebateRound],
    session_id: str | None = None,
) -> str:
    """Render the full session as a markdown document."""
    lines: list[str] = [
        f"# Board Verdict: {package.deal_name}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Company:** {package.company_name}",
        f"**Deal:** {package.deal_id}",
    ]
    if session_id:
        lines.append(f"**Session:** {session_id}")
    lines += [
        f"**Verdict:** {result.verdict.value} ({result.consensus_level.value})",
        f"**Stopping reason:** {result.stopping_reason.value}",
        f"**Rounds:** {result.total_rounds}",
        f"**Cost:** ${result.total_cost:.4f}",
        f"**Duration:** {result.total_time_ms / 1000:.1f}s",
        "",
        "---",
        "",
    ]

    for rnd in history:
        lines.append(f"## Debate Round {rnd.round_number}")
        lines.append("")
        for entry in rnd.responses:
            resp = entry.response
            changed = (
                f" (changed to {resp.new_verdict.value})"
                if resp.position_changed and resp.new_verdict is not None
                else ""
            )
            lines.append(f"### {entry.member_name}{changed}")
            lines.append("")
            lines.append(resp.justification)
            lines.append("")

    lines.append("## Final Votes")
    lines.append("")
    for vote in result.votes:
        lines.append(f"### {vote.member_name}: {vote.verdict.value} ({vote.confidence}%)")
        lines.append("")
        lines.append(vote.justification)
        lines.append("")

    lines.append(_key_points_markdown(result))
    lines.append("")
    return "\n".join(lines)


def save_report(
    result: VerdictResult,
    package: InputPackage,
    history: list[DebateRound],
    output_dir: Path,
    session_id: str | None = None,
    slug_override: str | None = None,
) -> Path:
    """Save the session report as a timestamped markdown file and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(package.deal_name)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    filepath.write_text(render_report(result, package, history, session_id), encoding="utf-8")
    logger.info("Report saved to: %s", filepath)
    return filepath

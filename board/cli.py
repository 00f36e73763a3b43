"""Click CLI: config loading, provider selection, health check, board session and output."""

import asyncio
import dataclasses
import logging
import signal
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, BoardConfig, MemberConfig, load_config
from board.errors import ManualStop
from board.healthcheck import run_health_checks
from board.inputs import archive_file, ensure_dirs, load_deal_file, scan_inbox, static_loader
from board.log_context import MemberContextFilter
from board.models import InputPackage, VerdictResult
from board.orchestrator import BoardOrchestrator
from board.output import print_event, print_verdict, save_report
from board.persistence import JsonSessionStore
from board.providers.base import AIProvider
from board.providers.registry import build_providers

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.addFilter(MemberContextFilter())
    logging.basicConfig(
        level=level,
        format="[%(member_id)s] %(message)s",
        handlers=[handler],
    )


def _check_and_filter_providers(providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask the user what to do on failures.

    Returns the working providers. Exits if the user declines to continue or
    nothing passes.
    """
    console.print("\n[bold]Checking models...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(providers))

    failed: list[str] = []
    for key in sorted(results):
        ok, err = results[key]
        if ok:
            console.print(f"  [green]OK  [/green] {key}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {key}: {short_err}")
            failed.append(key)

    if not failed:
        console.print()
        return providers

    working = {k: p for k, p in providers.items() if k not in failed}
    if not working:
        console.print("\n[bold red]Error:[/bold red] No models passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed)} model(s) failed:[/yellow] {', '.join(failed)}")
    console.print(f"Working models: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working models only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _request_stop(orchestrator: BoardOrchestrator, stop_tasks: list[asyncio.Task]) -> None:
    console.print("\n[yellow]Stop requested, finishing in-flight calls...[/yellow]")
    stop_tasks.append(asyncio.ensure_future(orchestrator.stop_board()))


async def _run_session(
    config: AppConfig,
    board: BoardConfig,
    members: list[MemberConfig],
    providers: dict[str, AIProvider],
    package: InputPackage,
    output_dir: Path,
    requested_by: str | None,
    slug_override: str | None = None,
) -> VerdictResult | None:
    """Run one board session, print it, and save the report. Returns None if stopped."""
    store = JsonSessionStore(output_dir)
    orchestrator = BoardOrchestrator(
        members,
        providers,
        config.prompts,
        static_loader(package),
        board=board,
        timeouts=config.timeouts,
        synthesis=config.synthesis,
        synthesis_provider=providers.get(config.synthesis.model_key),
        store=store,
        on_progress=print_event,
    )

    stop_tasks: list[asyncio.Task] = []
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _request_stop, orchestrator, stop_tasks)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported on this platform, Ctrl+C aborts the session")

    console.print(
        f"\n[bold cyan]AI Board[/bold cyan] - {package.deal_name} ({package.company_name}), "
        f"{len(members)} members, up to {board.max_rounds} rounds\n"
    )
    try:
        result = await orchestrator.run_board(package.deal_id, requested_by)
    except ManualStop as exc:
        if exc.result is not None:
            print_verdict(exc.result)
        console.print(f"[dim]Session snapshot: {store.path_for(orchestrator.session_id)}[/dim]")
        return None
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
        if stop_tasks:
            await asyncio.gather(*stop_tasks)

    print_verdict(result)
    report = save_report(
        result, package, orchestrator.debate_history, output_dir,
        session_id=orchestrator.session_id, slug_override=slug_override,
    )
    console.print(f"\n[dim]Saved to: {report}[/dim]")
    console.print(f"[dim]Session snapshot: {store.path_for(orchestrator.session_id)}[/dim]")
    return result


async def _run_inbox(
    config: AppConfig,
    board: BoardConfig,
    members: list[MemberConfig],
    providers: dict[str, AIProvider],
    inbox_dir: Path,
    archive_dir: Path,
    output_dir: Path,
    requested_by: str | None,
) -> None:
    """Run a board session for every deal file in the inbox, archiving each one."""
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No deal files in inbox.")
        return

    for file_path in files:
        try:
            package = load_deal_file(file_path)
            result = await _run_session(
                config, board, members, providers, package, output_dir, requested_by,
                slug_override=file_path.stem,
            )
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, failed=True)
            continue
        if result is None:
            click.echo(f"Stopped at {file_path.name}, remaining files left in inbox.")
            return
        archived = archive_file(file_path, archive_dir)
        click.echo(f"Processed: {file_path.name} -> {result.verdict.value} (archived: {archived.name})")


@click.command()
@click.argument("deal_file", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--rounds", default=None, type=int, help="Maximum debate rounds (default: from config)")
@click.option("--timeout", "timeout_sec", default=None, type=float,
              help="Session wall-clock budget in seconds (default: from config)")
@click.option("--min-members", default=None, type=int,
              help="Members that must complete the analysis (default: from config)")
@click.option("--profile", default=None, help="Member roster: test or prod (default: $BOARD_CONFIG, then config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--requested-by", default=None, help="Recorded in the session snapshot")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False, help="Process all deal files in the inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    deal_file: Path | None,
    rounds: int | None,
    timeout_sec: float | None,
    min_members: int | None,
    profile: str | None,
    output_path: str | None,
    requested_by: str | None,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """AI Board -- multi-model investment committee for a deal.

    \b
    Examples:
      python -m board.cli deals/acme.md
      python -m board.cli deals/acme.md --rounds 2 --profile prod
      python -m board.cli --inbox
      python -m board.cli --inbox --inbox-dir ./my_queue
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    overrides = {
        "max_rounds": rounds,
        "timeout_sec": timeout_sec,
        "min_members": min_members,
    }
    board = dataclasses.replace(config.board, **{k: v for k, v in overrides.items() if v is not None})
    output_dir = Path(output_path) if output_path else board.output_dir

    try:
        members = config.members(profile)
    except KeyError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc.args[0]}")
        sys.exit(1)

    model_keys = [m.model_key for m in members] + [config.synthesis.model_key]
    providers = build_providers(config, model_keys)

    if not any(m.model_key in providers for m in members):
        console.print("[bold red]Error:[/bold red] No member models available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        providers = _check_and_filter_providers(providers)

    seated = sum(1 for m in members if m.model_key in providers)
    if seated < board.min_members:
        console.print(
            f"[bold red]Error:[/bold red] Need at least {board.min_members} members, got {seated}. "
            "Check API keys in .env or lower --min-members."
        )
        sys.exit(1)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(_run_inbox(
            config, board, members, providers, inbox_dir, config.inbox.archive_dir, output_dir, requested_by,
        ))
        return

    if deal_file is None:
        console.print("[bold red]Error:[/bold red] Provide a DEAL_FILE argument or --inbox.")
        sys.exit(1)

    try:
        package = load_deal_file(deal_file)
    except ValueError as exc:
        console.print(f"[bold red]Deal file error:[/bold red] {exc}")
        sys.exit(1)

    try:
        result = asyncio.run(_run_session(config, board, members, providers, package, output_dir, requested_by))
    except Exception as exc:
        console.print(f"[bold red]Board session failed:[/bold red] {exc}")
        sys.exit(1)
    if result is None:
        sys.exit(130)


if __name__ == "__main__":
    main()

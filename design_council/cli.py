"""Click CLI: loads config, builds agents, runs design sessions, plans and repairs."""

import asyncio
import logging
import sys
import uuid
from collections.abc import Iterable
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from design_council.agents.base import AgentCapability
from design_council.agents.provider_agent import ProviderAgent
from design_council.errors import ConfigurationError
from design_council.feedback.engine import FeedbackEngine, python_syntax_check, repair
from design_council.feedback.fixer import AgentFixGenerator
from design_council.feedback.policy import RetryPolicy
from design_council.healthcheck import run_health_checks
from design_council.inbox import archive_file, ensure_dirs, parse_file, scan_inbox, session_config_for
from design_council.models import (
    DESIGN_ROLES,
    PLANNING_ROLES,
    FeedbackStatus,
    ReadinessScore,
    Role,
    SessionOutcome,
)
from design_council.output import (
    print_consensus,
    print_feedback_summary,
    print_plan,
    print_turn,
    print_wave,
    save_to_file,
)
from design_council.planner import PlanningState, plan
from design_council.providers.anthropic import AnthropicProvider
from design_council.providers.base import AIProvider
from design_council.providers.gemini import GeminiProvider
from design_council.providers.openai_provider import OpenAIProvider
from design_council.scheduler import execute_parallel, plan_waves
from design_council.session import DesignSessionConfig, run_design_session

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# keyed by the `sdk` field of a model config
PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load_config_or_exit() -> AppConfig:
    try:
        return load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by config name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _build_agents(
    config: AppConfig,
    providers: dict[str, AIProvider],
    roles: Iterable[Role],
) -> dict[Role, AgentCapability]:
    """Bind each role to a ProviderAgent.

    A role whose configured provider is unavailable falls back to the default
    provider, then to any available one. One agent is shared per provider.
    """
    if not providers:
        return {}
    shared: dict[str, ProviderAgent] = {}
    agents: dict[Role, AgentCapability] = {}
    for role in roles:
        name = config.provider_for(role.value)
        if name not in providers:
            fallback = (
                config.defaults.default_provider
                if config.defaults.default_provider in providers
                else next(iter(providers))
            )
            logger.warning("Provider '%s' for role %s unavailable, using '%s'", name, role.value, fallback)
            name = fallback
        if name not in shared:
            shared[name] = ProviderAgent(providers[name], config.prompts)
        agents[role] = shared[name]
    return agents


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask the user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(all_providers))

    for name in sorted(results):
        result = results[name]
        if result.ok:
            console.print(f"  [green]OK  [/green] {name} [dim]({result.latency_sec:.1f}s)[/dim]")
        else:
            console.print(f"  [red]FAIL[/red] {name}: {result.short_error}")

    failed_names = sorted(n for n, r in results.items() if not r.ok)
    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}
    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}")
    console.print(f"Working providers: {', '.join(sorted(working))}")
    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _providers_or_exit(config: AppConfig, skip_health_check: bool) -> dict[str, AIProvider]:
    providers = _build_all_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)
    if not skip_health_check:
        providers = _check_and_filter_providers(providers)
    return providers


def _fixed_path(path: Path) -> Path:
    """app.py -> app.fixed.py"""
    return path.with_name(f"{path.stem}.fixed{path.suffix or '.py'}")


async def _run_single(
    request: str,
    source: str,
    agents: dict[Role, AgentCapability],
    config: AppConfig,
    session_config: DesignSessionConfig,
    output_dir: Path,
) -> Path:
    """Run one design session with live output and return the saved path."""
    console.print(
        f"\n[bold cyan]Design Council[/bold cyan] ({len(DESIGN_ROLES)} roles, "
        f"{session_config.min_turns}-{session_config.max_turns} turns, "
        f"threshold {session_config.confidence_threshold:.2f})"
    )
    console.print(f"Request: [italic]{request[:80]}{'...' if len(request) > 80 else ''}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Designers are talking...", total=None)
        outcome = await run_design_session(
            request, agents, session_config, on_turn=print_turn, prompts=config.prompts,
        )

    print_consensus(outcome)
    saved = save_to_file(outcome, output_dir, source=source)
    console.print(f"\n[dim]Saved to: {saved}[/dim]")
    return saved


async def _run_inbox_file(
    file_path: Path,
    agents: dict[Role, AgentCapability],
    config: AppConfig,
    base: DesignSessionConfig,
    overrides: dict,
    output_dir: Path,
    archive_dir: Path,
) -> None:
    try:
        inbox_request = parse_file(file_path)
        session_config = session_config_for(inbox_request.metadata, base, **overrides)
        outcome: SessionOutcome = await run_design_session(
            inbox_request.request, agents, session_config, prompts=config.prompts,
        )
        saved = save_to_file(outcome, output_dir, slug_override=file_path.stem, source=str(file_path))
    except Exception as exc:
        logger.error("Failed: %s -- %s", file_path.name, exc)
        archive_file(file_path, archive_dir, failed=True)
        return
    archived = archive_file(file_path, archive_dir)
    click.echo(f"Processed: {file_path.name} -> {saved} (archived: {archived.name})")


async def _run_inbox(
    agents: dict[Role, AgentCapability],
    config: AppConfig,
    base: DesignSessionConfig,
    overrides: dict,
    inbox_dir: Path,
    output_dir: Path,
) -> None:
    """Process every .md file in the inbox concurrently; each file owns its own session.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    archive_dir = config.inbox.archive_dir
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)
    if not files:
        click.echo("No files in inbox.")
        return
    results = await asyncio.gather(
        *(_run_inbox_file(f, agents, config, base, overrides, output_dir, archive_dir) for f in files),
        return_exceptions=True,
    )
    for file_path, result in zip(files, results):
        if isinstance(result, Exception):
            logger.error("Could not archive %s: %s", file_path.name, result)


@click.group()
def main() -> None:
    """Design Council -- multi-agent app design, planning and repair.

    \b
    Examples:
      design-council design "A habit tracker with streaks"
      design-council design --file request.md --max-turns 8
      design-council design --inbox
      design-council plan "add a due date field" --has-schema --has-layout
      design-council fix broken_script.py
    """
    # Model replies carry Unicode; keep the Windows console from choking on it.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    load_dotenv()


@main.command()
@click.argument("request", required=False)
@click.option("--file", "request_file", type=click.Path(exists=True), help="Read the request from a .md file")
@click.option("--inbox", "use_inbox", is_flag=True, default=False, help="Process all .md files in the inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None, help="Override inbox folder path")
@click.option("--max-turns", type=int, default=None, help="Turn ceiling (default: from config)")
@click.option("--min-turns", type=int, default=None, help="Turns before consensus is checked (default: from config)")
@click.option("--threshold", type=float, default=None, help="Mean confidence needed for consensus")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the API connectivity check")
def design(
    request: str | None,
    request_file: str | None,
    use_inbox: bool,
    inbox_dir_override: str | None,
    max_turns: int | None,
    min_turns: int | None,
    threshold: float | None,
    output_path: str | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Run a design session until the designers agree (or the turn ceiling)."""
    _setup_logging(verbose)
    config = _load_config_or_exit()

    base = DesignSessionConfig.from_defaults(config.defaults)
    overrides = {"max_turns": max_turns, "min_turns": min_turns, "threshold": threshold}
    output_dir = Path(output_path) if output_path else config.defaults.output_dir

    if not use_inbox and not request and not request_file:
        console.print("[bold red]Error:[/bold red] Provide a REQUEST argument, --file, or --inbox.")
        sys.exit(1)

    providers = _providers_or_exit(config, skip_health_check)
    agents = _build_agents(config, providers, DESIGN_ROLES)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(_run_inbox(agents, config, base, overrides, inbox_dir, output_dir))
        return

    if request_file:
        request_text = Path(request_file).read_text(encoding="utf-8").strip()
        source = request_file
    else:
        request_text = request or ""
        source = "cli"

    try:
        asyncio.run(
            _run_single(request_text, source, agents, config, session_config_for({}, base, **overrides), output_dir)
        )
    except ConfigurationError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)


@main.command("plan")
@click.argument("message")
@click.option("--has-schema", is_flag=True, help="A data schema already exists")
@click.option("--has-layout", is_flag=True, help="A UI layout already exists")
@click.option("--readiness", type=click.IntRange(0, 100), default=0, help="Current overall readiness (0-100)")
@click.option("--dry-run", is_flag=True, help="Show the plan and its waves without running agents")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the API connectivity check")
def plan_command(
    message: str,
    has_schema: bool,
    has_layout: bool,
    readiness: int,
    dry_run: bool,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Plan the next agent actions for MESSAGE and run them in dependency waves."""
    _setup_logging(verbose)
    config = _load_config_or_exit()
    state = PlanningState(has_schema=has_schema, has_layout=has_layout, readiness=ReadinessScore(overall=readiness))

    if dry_run:
        # no providers needed: the primary planner is skipped
        agents: dict[Role, AgentCapability] = {}
    else:
        providers = _providers_or_exit(config, skip_health_check)
        agents = _build_agents(config, providers, (*PLANNING_ROLES, Role.ARCHITECT))

    async def _run() -> None:
        decision = await plan(message, state, agents.get(Role.ARCHITECT), config.prompts)
        waves, stuck = plan_waves(decision.actions)
        print_plan(decision, waves)
        if stuck:
            console.print(f"[yellow]{len(stuck)} action(s) can never run (dependency cycle)[/yellow]")
        if dry_run or not decision.actions:
            return
        results = await execute_parallel(decision.actions, agents, on_wave_complete=print_wave)
        console.print(f"\n{sum(r.success for r in results)}/{len(results)} action(s) succeeded")

    asyncio.run(_run())


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--max-iterations", type=int, default=None, help="Give up after this many failing checks")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the API connectivity check")
def fix(file: Path, max_iterations: int | None, verbose: bool, skip_health_check: bool) -> None:
    """Repair syntax errors in a Python FILE, writing FILE.fixed.py on success."""
    _setup_logging(verbose)
    config = _load_config_or_exit()

    code = file.read_text(encoding="utf-8")
    if python_syntax_check(code) is None:
        console.print(f"[green]No syntax errors in {file}[/green]")
        return

    try:
        policy = RetryPolicy.from_config(config.retry)
    except ConfigurationError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    providers = _providers_or_exit(config, skip_health_check)
    fixer = _build_agents(config, providers, (Role.FIXER,))[Role.FIXER]
    engine = FeedbackEngine(
        session_id=uuid.uuid4().hex[:12],
        original_prompt=f"Make {file.name} valid Python without changing what it does.",
        fix_generator=AgentFixGenerator(fixer, config.prompts),
        policy=policy,
        max_iterations=max_iterations if max_iterations is not None else config.defaults.max_iterations,
        prompts=config.prompts,
    )

    session = asyncio.run(repair(code, python_syntax_check, engine))
    print_feedback_summary(engine.get_summary(), session)

    if session.status is FeedbackStatus.RESOLVED and session.current_code is not None:
        target = _fixed_path(file)
        target.write_text(session.current_code, encoding="utf-8")
        console.print(f"\n[dim]Saved to: {target}[/dim]")
    else:
        sys.exit(1)


if __name__ == "__main__":
    main()

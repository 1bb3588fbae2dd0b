"""Rich console output and markdown file save for design sessions."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from design_council.models import ActionResult, Contribution, FeedbackSession, FeedbackSummary, SessionOutcome
from design_council.planner import PlanDecision

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, words: int = 50) -> str:
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def print_turn(contribution: Contribution) -> None:
    style = "red" if contribution.failed else "dim"
    subtitle = "failed" if contribution.failed else f"confidence {contribution.confidence:.2f}"
    console.print(
        Panel(
            _preview(contribution.content),
            title=f"[bold]Turn {contribution.turn}: {contribution.role.value}[/bold]",
            subtitle=subtitle,
            border_style=style,
        )
    )


def print_consensus(outcome: SessionOutcome) -> None:
    session, consensus = outcome.session, outcome.consensus
    title = "Forced Synthesis" if consensus.forced else "Design Consensus"
    colour = "yellow" if consensus.forced else "green"
    console.print(Rule(f"[bold {colour}]{title}[/bold {colour}]"))
    console.print(
        Text(
            f"Status: {session.status.value} | Turns: {session.turn}/{session.max_turns} | "
            f"Agreed by: {', '.join(r.value for r in consensus.agreed_by) or 'nobody'}",
            style="dim",
        )
    )
    console.print(Markdown(consensus.summary))


def print_plan(decision: PlanDecision, waves: list[list]) -> None:
    console.print(Rule(f"[bold cyan]Plan ({decision.branch.value})[/bold cyan]"))
    console.print(decision.user_message)
    table = Table("Wave", "Role", "Action", "Priority")
    for number, wave in enumerate(waves, start=1):
        for action in wave:
            table.add_row(str(number), action.role.value, action.action, str(action.priority))
    console.print(table)
    if decision.expected_readiness:
        console.print(Text(f"Expected readiness: {decision.expected_readiness.overall}%", style="dim"))


def print_wave(wave_number: int, results: list[ActionResult]) -> None:
    for result in results:
        mark = "[green]OK  [/green]" if result.success else "[red]FAIL[/red]"
        detail = _preview(result.output.content, 20) if result.output else (result.error or "")
        console.print(f"  {mark} wave {wave_number} {result.role.value}: {detail}")


def print_feedback_summary(summary: FeedbackSummary, session: FeedbackSession) -> None:
    colour = "green" if summary.status.value == "resolved" else "red"
    console.print(Rule(f"[bold {colour}]Repair {summary.status.value}[/bold {colour}]"))
    table = Table("#", "Category", "Strategy", "Fix", "Error")
    for it in session.iterations:
        fix = "-"
        if it.fix_result is not None:
            fix = "applied" if it.fix_result.success else "failed"
        table.add_row(
            str(it.number), it.analysis.category.value, it.strategy.value, fix,
            it.error.splitlines()[-1][:80] if it.error else "",
        )
    console.print(table)
    console.print(
        Text(
            f"Attempts: {summary.attempts}/{summary.max_attempts} | Tokens: ~{summary.tokens_used}",
            style="dim",
        )
    )


def _artifact_block(artifact: object) -> str:
    return "```json\n" + json.dumps(artifact, indent=2, ensure_ascii=False, default=str) + "\n```"


def save_to_file(
    outcome: SessionOutcome,
    output_dir: Path,
    slug_override: str | None = None,
    source: str = "cli",
) -> Path:
    """Save the session transcript and consensus as a markdown file.

    Args:
        outcome: The finished session and its consensus.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the request text. Used in inbox mode.
        source: Where the request came from ("cli" or a file path).

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    session, consensus = outcome.session, outcome.consensus

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(session.request)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Design Council: {session.request[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Session:** {session.id}",
        f"**Status:** {session.status.value}",
        f"**Turns:** {session.turn}/{session.max_turns}",
        f"**Forced:** {'yes' if consensus.forced else 'no'}",
        f"**Source:** {source}",
        "",
        "---",
        "",
        "## Dialogue",
        "",
    ]
    for c in session.contributions:
        status = "failed" if c.failed else f"confidence {c.confidence:.2f}"
        lines.append(f"### Turn {c.turn}: {c.role.value} ({status})")
        lines.append("")
        lines.append(c.content)
        lines.append("")

    lines += ["## Consensus", "", consensus.summary, ""]
    for role, artifact in consensus.artifacts.items():
        origin = consensus.sources.get(role)
        label = f"turn {origin}" if origin is not None else "default"
        lines.append(f"### {role.value} ({label})")
        lines.append("")
        lines.append(_artifact_block(artifact))
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Design saved to: %s", filepath)
    return filepath

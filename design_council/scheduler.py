"""Dependency-ordered parallel execution of agent Actions in waves."""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping

from design_council.agents.base import AgentCapability, AgentError
from design_council.models import Action, ActionResult, AgentReply, Role

logger = logging.getLogger(__name__)

WaveCallback = Callable[[int, list[ActionResult]], None]


def dependency_graph(actions: list[Action]) -> dict[str, list[str]]:
    """Map each action id to its sorted dependency ids."""
    return {a.id: sorted(a.depends_on) for a in actions}


def _runnable(pending: list[Action], completed: set[str]) -> list[Action]:
    ready = [a for a in pending if a.depends_on <= completed]
    # sorted() is stable, so equal priorities keep submission order
    return sorted(ready, key=lambda a: -a.priority)


def plan_waves(actions: list[Action]) -> tuple[list[list[Action]], list[Action]]:
    """Partition actions into the waves execute_parallel would run.

    Returns:
        (waves, stuck) where stuck holds actions that can never become
        runnable (cycles, or dependencies on ids outside the set).
    """
    completed: set[str] = set()
    pending = list(actions)
    waves: list[list[Action]] = []
    while pending:
        wave = _runnable(pending, completed)
        if not wave:
            break
        waves.append(wave)
        completed.update(a.id for a in wave)
        pending = [a for a in pending if a.id not in completed]
    return waves, pending


async def _run_action(action: Action, agents: Mapping[Role, AgentCapability]) -> ActionResult:
    """Run one action. Never raises; failures become a failed ActionResult."""
    agent = agents.get(action.role)
    if agent is None:
        return ActionResult(
            action_id=action.id,
            role=action.role,
            success=False,
            error=f"No agent registered for role {action.role.value}",
        )

    prompt = str(action.context.get("user_message", ""))
    context = {**action.context, "action": action.action, "priority": action.priority}

    start = time.monotonic()
    try:
        reply = await agent.invoke(action.role, prompt, context)
    except AgentError as exc:
        logger.warning("Action %s (%s/%s) failed: %s", action.id, action.role.value, action.action, exc)
        return ActionResult(action.id, action.role, False, error=str(exc), duration_sec=time.monotonic() - start)
    except Exception as exc:
        logger.warning(
            "Action %s (%s/%s) raised unexpectedly: %s", action.id, action.role.value, action.action, exc,
        )
        return ActionResult(
            action.id, action.role, False,
            error=f"Unexpected error: {exc}",
            duration_sec=time.monotonic() - start,
        )

    if not isinstance(reply, AgentReply):
        return ActionResult(
            action.id, action.role, False,
            error=f"Agent returned {type(reply).__name__}, expected AgentReply",
            duration_sec=time.monotonic() - start,
        )
    return ActionResult(action.id, action.role, True, output=reply, duration_sec=time.monotonic() - start)


async def execute_parallel(
    actions: list[Action],
    agents: Mapping[Role, AgentCapability],
    on_wave_complete: WaveCallback | None = None,
) -> list[ActionResult]:
    """Execute actions wave by wave.

    Each wave dispatches every action whose dependencies have completed and
    waits for the whole wave before computing the next one. An action counts
    as completed once it has run, whether or not it succeeded, so dependents
    of a failed action still execute.

    Args:
        actions: The action set. May contain cycles.
        agents: Capability per role. Actions for unregistered roles fail
            immediately without invoking anything.
        on_wave_complete: Optional callback invoked with (wave_number, results).

    Returns:
        One ActionResult per executed action. On deadlock the remaining
        actions are left out and a warning is logged.
    """
    results: list[ActionResult] = []
    completed: set[str] = set()
    pending = list(actions)
    wave_number = 0

    while pending:
        runnable = _runnable(pending, completed)
        if not runnable:
            stuck = ", ".join(f"{a.id}<-{sorted(a.depends_on - completed)}" for a in pending)
            logger.warning(
                "Deadlock: %d action(s) can never run (cyclic or missing dependencies): %s",
                len(pending), stuck,
            )
            break

        wave_number += 1
        logger.info(
            "Wave %d: dispatching %d action(s): %s",
            wave_number, len(runnable), ", ".join(f"{a.role.value}/{a.action}" for a in runnable),
        )
        batch = await asyncio.gather(*(_run_action(a, agents) for a in runnable))
        results.extend(batch)

        completed.update(a.id for a in runnable)
        pending = [a for a in pending if a.id not in completed]

        logger.info(
            "Wave %d complete: %d/%d succeeded",
            wave_number, sum(r.success for r in batch), len(batch),
        )
        if on_wave_complete:
            on_wave_complete(wave_number, list(batch))

    return results

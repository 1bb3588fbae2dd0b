"""Action planning: primary LLM planner with a deterministic keyword fallback.

The fallback is a pure function of (message, state). It exists so the
pipeline keeps moving toward a buildable design when the primary planner
errors or returns something unusable.
"""

import logging
import math
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from config.config_loader import PromptsConfig
from design_council.agents.base import AgentCapability
from design_council.models import PLANNING_ROLES, Action, ReadinessScore, Role
from design_council.readiness import READY_TO_BUILD, project_readiness

logger = logging.getLogger(__name__)

_APPROVAL_RE = re.compile(r"looks? good|\byes\b|\bok(ay)?\b|perfect|great|approve", re.I)
_BUILD_RE = re.compile(r"build|create|generate|finalize|deploy", re.I)
_SCHEMA_RE = re.compile(r"field|column|data|type|add|remove|property|attribute", re.I)
_UI_RE = re.compile(r"layout|form|table|chart|side|position|view|display", re.I)

_AREA_FOR_ROLE = {Role.SCHEMA: "schema", Role.UI: "ui", Role.WORKFLOW: "workflow"}


class PlanBranch(str, Enum):
    BUILD_READY = "build-ready"
    NEW_REQUEST = "new-request"
    NEXT_MISSING_ARTIFACT = "next-missing-artifact"
    REFINEMENT = "refinement"
    DEFAULT_PROGRESS = "default-progress"
    PRIMARY = "primary"


@dataclass
class PlanningState:
    has_schema: bool = False
    has_layout: bool = False
    readiness: ReadinessScore = field(default_factory=ReadinessScore)

    @property
    def ready_to_build(self) -> bool:
        return self.has_schema and self.has_layout and self.readiness.overall >= READY_TO_BUILD


@dataclass
class PlanDecision:
    actions: list[Action]
    branch: PlanBranch
    user_message: str
    generate_proposals: bool = False
    expected_readiness: ReadinessScore | None = None
    estimated_ms: int = 0


class PlanValidationError(ValueError):
    """The primary planner's output could not be turned into a valid action set."""


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _action(role: Role, name: str, priority: int, message: str, *, depends_on: tuple[str, ...] = (),
            estimated_ms: int = 2000, key: str = "user_message") -> Action:
    return Action(
        id=_new_id(),
        role=role,
        action=name,
        priority=priority,
        depends_on=frozenset(depends_on),
        estimated_ms=estimated_ms,
        context={key: message, "user_message": message},
    )


def _affected_areas(actions: list[Action], branch: PlanBranch) -> set[str]:
    if branch is PlanBranch.NEW_REQUEST:
        return {"all"}
    return {_AREA_FOR_ROLE[a.role] for a in actions if a.role in _AREA_FOR_ROLE}


def _decision(actions: list[Action], branch: PlanBranch, message: str, state: PlanningState) -> PlanDecision:
    overall = state.readiness.overall
    if overall >= READY_TO_BUILD:
        message += " Your app is ready to build!"
    elif overall >= 60:
        message += f" ({overall}% ready - almost there!)"
    is_new = branch is PlanBranch.NEW_REQUEST
    return PlanDecision(
        actions=actions,
        branch=branch,
        user_message=message,
        generate_proposals=is_new,
        expected_readiness=project_readiness(state.readiness, _affected_areas(actions, branch), is_new),
        estimated_ms=sum(a.estimated_ms for a in actions),
    )


def fallback_plan(message: str, state: PlanningState) -> PlanDecision:
    """Pick exactly one branch and emit its actions.

    Emits no actions only when the design is ready to build and the message
    asks for a build; while schema or layout is missing at least one action
    is always returned.
    """
    is_approval = bool(_APPROVAL_RE.search(message))
    is_build = bool(_BUILD_RE.search(message))

    if is_build and state.ready_to_build:
        return _decision(
            [], PlanBranch.BUILD_READY,
            "Great! Your app is ready to build. Start the build to generate your application.",
            state,
        )

    if not state.has_schema and not is_approval:
        intent = _action(Role.INTENT, "extract", 10, message, estimated_ms=1500)
        schema = _action(Role.SCHEMA, "propose", 9, message, depends_on=(intent.id,))
        ui = _action(Role.UI, "propose", 8, message, depends_on=(schema.id,))
        return _decision(
            [intent, schema, ui], PlanBranch.NEW_REQUEST,
            "I'm designing your app now. I'll create the data model and user interface for you.",
            state,
        )

    if state.has_schema and not state.has_layout:
        return _decision(
            [_action(Role.UI, "propose", 9, message)], PlanBranch.NEXT_MISSING_ARTIFACT,
            "I'll design the user interface for your app now.",
            state,
        )

    if is_approval and state.has_schema and state.has_layout and state.readiness.overall < READY_TO_BUILD:
        return _decision(
            [_action(Role.WORKFLOW, "analyze", 7, message, estimated_ms=1500)], PlanBranch.NEXT_MISSING_ARTIFACT,
            "Finalizing the design. I'm adding some smart automations to make your app more powerful.",
            state,
        )

    actions: list[Action] = []
    if _SCHEMA_RE.search(message):
        actions.append(_action(Role.SCHEMA, "refine" if state.has_schema else "propose", 8, message, key="feedback"))
    if _UI_RE.search(message):
        actions.append(_action(Role.UI, "refine" if state.has_layout else "propose", 8, message, key="feedback"))
    if actions:
        return _decision(actions, PlanBranch.REFINEMENT, "Updating the design based on your feedback.", state)

    if not state.has_schema:
        action = _action(Role.INTENT, "extract", 10, message, estimated_ms=1500, key="feedback")
    elif not state.has_layout:
        action = _action(Role.UI, "propose", 9, message, key="feedback")
    else:
        action = _action(Role.SCHEMA, "refine", 5, message, key="feedback")
    return _decision([action], PlanBranch.DEFAULT_PROGRESS, "Updating the design based on your feedback.", state)


def _parse_plan(structured: dict[str, Any] | None, message: str, state: PlanningState) -> PlanDecision:
    """Turn the primary planner's structured output into a PlanDecision.

    Expected shape::

        {"actions": [{"key": "s", "role": "schema", "action": "propose",
                      "priority": 8, "depends_on": ["i"], "estimated_ms": 2000}],
         "affected_areas": ["schema"], "is_new_request": true, "user_message": "..."}
    """
    if not structured:
        raise PlanValidationError("Planner returned no structured output")
    raw_actions = structured.get("actions")
    if not isinstance(raw_actions, list):
        raise PlanValidationError("'actions' must be a list")

    ids_by_key: dict[str, str] = {}
    for i, raw in enumerate(raw_actions):
        if not isinstance(raw, dict):
            raise PlanValidationError(f"Action {i} is not an object")
        key = str(raw.get("key", i))
        if key in ids_by_key:
            raise PlanValidationError(f"Duplicate action key {key!r}")
        ids_by_key[key] = _new_id()

    actions: list[Action] = []
    for i, raw in enumerate(raw_actions):
        try:
            role = Role(raw.get("role"))
        except ValueError as exc:
            raise PlanValidationError(f"Action {i} has unknown role {raw.get('role')!r}") from exc
        if role not in PLANNING_ROLES:
            raise PlanValidationError(f"Action {i} role {role.value} cannot be planned")
        name = raw.get("action")
        if not isinstance(name, str) or not name.strip():
            raise PlanValidationError(f"Action {i} has no action name")
        deps = raw.get("depends_on") or []
        if not isinstance(deps, list) or any(str(d) not in ids_by_key for d in deps):
            raise PlanValidationError(f"Action {i} depends on unknown keys: {deps!r}")
        priority = raw.get("priority", 5)
        estimated = raw.get("estimated_ms", 2000)
        for label, value in (("priority", priority), ("estimated_ms", estimated)):
            if isinstance(value, float) and not math.isfinite(value):
                raise PlanValidationError(f"Action {i} has non-finite {label}: {value!r}")
        actions.append(Action(
            id=ids_by_key[str(raw.get("key", i))],
            role=role,
            action=name.strip(),
            priority=max(1, min(10, int(priority))) if isinstance(priority, (int, float)) else 5,
            depends_on=frozenset(ids_by_key[str(d)] for d in deps),
            estimated_ms=int(estimated) if isinstance(estimated, (int, float)) and estimated > 0 else 2000,
            context={"user_message": message},
        ))

    if not actions and not state.ready_to_build:
        raise PlanValidationError("Planner returned no actions while the design is incomplete")

    areas = structured.get("affected_areas") or []
    is_new = bool(structured.get("is_new_request", False))
    return PlanDecision(
        actions=actions,
        branch=PlanBranch.PRIMARY,
        user_message=str(structured.get("user_message") or ""),
        generate_proposals=is_new,
        expected_readiness=project_readiness(state.readiness, [str(a) for a in areas], is_new),
        estimated_ms=sum(a.estimated_ms for a in actions),
    )


async def plan(
    message: str,
    state: PlanningState,
    planner_agent: AgentCapability | None = None,
    prompts: PromptsConfig | None = None,
) -> PlanDecision:
    """Plan the next actions, falling back to fallback_plan on any planner failure."""
    if planner_agent is None:
        logger.info("No primary planner registered, using fallback planning")
        return fallback_plan(message, state)

    prompts = prompts or PromptsConfig()
    prompt = prompts.plan.format(
        message=message,
        has_schema=state.has_schema,
        has_layout=state.has_layout,
        readiness=state.readiness.overall,
    )
    try:
        reply = await planner_agent.invoke(Role.ARCHITECT, prompt, {"kind": "plan"})
        decision = _parse_plan(reply.structured_output, message, state)
    except Exception as exc:
        logger.warning("Primary planning failed, using fallback: %s", exc)
        return fallback_plan(message, state)

    logger.info("Primary planner proposed %d action(s)", len(decision.actions))
    return decision

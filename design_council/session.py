"""Design session: turn-based dialogue between design roles until consensus."""

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from config.config_loader import DefaultsConfig, PromptsConfig
from design_council.agents.base import AgentCapability, AgentError
from design_council.errors import ConfigurationError
from design_council.models import (
    DESIGN_ROLES,
    AgentReply,
    Consensus,
    Contribution,
    DesignSession,
    Role,
    SessionOutcome,
    SessionStatus,
)

logger = logging.getLogger(__name__)

# Who speaks after whom once every role has had its first turn
RESPONDS_TO: dict[Role, Role] = {
    Role.UX_DESIGNER: Role.INTERACTION_DESIGNER,
    Role.INTERACTION_DESIGNER: Role.COMPONENT_ARCHITECT,
    Role.COMPONENT_ARCHITECT: Role.DATA_ARCHITECT,
    Role.DATA_ARCHITECT: Role.UX_DESIGNER,
}

DefaultFactory = Callable[[str], dict[str, Any]]
TurnCallback = Callable[[Contribution], None]


def _default_journey(request: str) -> dict[str, Any]:
    return {
        "app_name": "App",
        "app_purpose": request,
        "flows": [{"name": "Main", "description": "Main flow", "is_primary": True, "steps": []}],
        "key_moments": [],
        "navigation": {"type": "minimal", "items": []},
    }


def _default_interactions(request: str) -> dict[str, Any]:
    return {
        "gestures": [],
        "animations": [],
        "micro_interactions": [],
        "page_transitions": [],
        "loading_states": [{"context": "loading", "type": "skeleton"}],
    }


def _default_components(request: str) -> dict[str, Any]:
    return {
        "components": [{
            "name": "MainView",
            "purpose": "Primary view",
            "is_primary": True,
            "layout_role": "hero",
        }],
        "design_tokens": {
            "colors": {"primary": "#3b82f6", "background": "#0a0a0a", "text": "#fff"},
            "fonts": {"body": "system-ui"},
        },
        "relationships": [],
    }


def _default_data_layer(request: str) -> dict[str, Any]:
    return {
        "structures": [{
            "name": "items",
            "purpose": "Main data",
            "fields": [{"name": "id", "type": "string", "required": True}],
        }],
        "operations": [{"name": "getItems", "description": "Get all items", "output": "Item[]"}],
        "storage": {"type": "local"},
    }


DEFAULT_FACTORIES: dict[Role, DefaultFactory] = {
    Role.UX_DESIGNER: _default_journey,
    Role.INTERACTION_DESIGNER: _default_interactions,
    Role.COMPONENT_ARCHITECT: _default_components,
    Role.DATA_ARCHITECT: _default_data_layer,
}


@dataclass
class DesignSessionConfig:
    max_turns: int = 10
    min_turns: int = 4
    confidence_threshold: float = 0.7

    @classmethod
    def from_defaults(cls, defaults: DefaultsConfig) -> "DesignSessionConfig":
        return cls(
            max_turns=defaults.max_turns,
            min_turns=defaults.min_turns,
            confidence_threshold=defaults.confidence_threshold,
        )


def next_role(
    session: DesignSession,
    required_roles: Sequence[Role],
    responds_to: Mapping[Role, Role] = RESPONDS_TO,
) -> Role:
    """Role that speaks next.

    The first len(required_roles) turns visit every role once, in order.
    After that the last speaker's responder goes next.
    """
    spoken = len(session.contributions)
    if spoken < len(required_roles):
        return required_roles[spoken]
    last = session.contributions[-1].role
    return responds_to.get(last, required_roles[0])


def has_consensus(
    session: DesignSession,
    required_roles: Sequence[Role],
    min_turns: int,
    threshold: float,
) -> bool:
    """True when every role has spoken, min_turns has passed and recent confidence is high enough.

    "Recent" means the last len(required_roles) contributions, so the
    predicate is always false while fewer contributions than roles exist.
    """
    window = len(required_roles)
    if window == 0 or len(session.contributions) < window:
        return False
    if session.turn < min_turns:
        return False

    contributed = {c.role for c in session.contributions if not c.failed}
    if not all(role in contributed for role in required_roles):
        return False

    recent = session.contributions[-window:]
    mean = sum(c.confidence for c in recent) / window
    return mean >= threshold


def _latest_artifacts(session: DesignSession, roles: Sequence[Role]) -> tuple[dict[Role, Any], dict[Role, int]]:
    artifacts: dict[Role, Any] = {}
    sources: dict[Role, int] = {}
    for contribution in session.contributions:
        if contribution.role in roles and contribution.structured_output:
            artifacts[contribution.role] = contribution.structured_output
            sources[contribution.role] = contribution.turn
    return artifacts, sources


def summarize(session: DesignSession, consensus_sources: Mapping[Role, int | None], forced: bool) -> str:
    verb = "forced after" if forced else "agreed after"
    lines = [f"Design for {session.request!r} {verb} {session.turn} turn(s).", ""]
    for role, turn in consensus_sources.items():
        origin = f"turn {turn}" if turn is not None else "default"
        lines.append(f"- {role.value}: {origin}")
    failures = sum(1 for c in session.contributions if c.failed)
    if failures:
        lines.append("")
        lines.append(f"{failures} contribution(s) failed and were skipped.")
    return "\n".join(lines)


def synthesize_consensus(
    session: DesignSession,
    required_roles: Sequence[Role] = DESIGN_ROLES,
    default_factories: Mapping[Role, DefaultFactory] | None = None,
    forced: bool = False,
) -> Consensus:
    """Merge the latest structured output of every role into one Consensus.

    Last write wins per role. Roles that never produced an artifact are
    filled from default_factories, then the built-in defaults, then an empty
    dict, so the result always carries every required role.
    """
    factories = {**DEFAULT_FACTORIES, **(default_factories or {})}
    latest, turns = _latest_artifacts(session, required_roles)

    artifacts: dict[Role, Any] = {}
    sources: dict[Role, int | None] = {}
    for role in required_roles:
        if role in latest:
            artifacts[role] = latest[role]
            sources[role] = turns[role]
        else:
            factory = factories.get(role)
            artifacts[role] = factory(session.request) if factory else {}
            sources[role] = None
            logger.info("No artifact from %s, using default", role.value)

    contributed = {c.role for c in session.contributions if not c.failed}
    return Consensus(
        artifacts=artifacts,
        sources=sources,
        summary=summarize(session, sources, forced),
        agreed_by=[r for r in required_roles if r in contributed],
        forced=forced,
    )


def _format_transcript(contributions: list[Contribution]) -> str:
    if not contributions:
        return "(nobody has spoken yet)"
    parts = []
    for c in contributions:
        if c.failed:
            continue
        parts.append(f"### Turn {c.turn}: {c.role.value} (confidence {c.confidence:.2f})\n{c.content}")
    return "\n\n".join(parts) or "(no successful contributions yet)"


class DesignSessionManager:
    """Runs one design dialogue at a time; each run owns its DesignSession."""

    def __init__(
        self,
        agents: Mapping[Role, AgentCapability],
        config: DesignSessionConfig | None = None,
        prompts: PromptsConfig | None = None,
        required_roles: Sequence[Role] = DESIGN_ROLES,
        responds_to: Mapping[Role, Role] = RESPONDS_TO,
        default_factories: Mapping[Role, DefaultFactory] | None = None,
    ) -> None:
        if not required_roles:
            raise ConfigurationError("A design session needs at least one required role")
        if not any(role in agents for role in required_roles):
            raise ConfigurationError(
                "No agent registered for any required role: "
                + ", ".join(r.value for r in required_roles)
            )
        self._agents = agents
        self._config = config or DesignSessionConfig()
        if self._config.max_turns < 0:
            raise ConfigurationError(f"max_turns must be >= 0, got {self._config.max_turns}")
        self._prompts = prompts or PromptsConfig()
        self._required_roles = tuple(required_roles)
        self._responds_to = responds_to
        self._default_factories = default_factories

        missing = [r.value for r in self._required_roles if r not in agents]
        if missing:
            logger.warning("No agent for role(s) %s; their turns will fail", ", ".join(missing))

    def _prompt(self, session: DesignSession, role: Role) -> str:
        transcript = _format_transcript(session.contributions)
        if session.turn <= len(self._required_roles) or not session.contributions:
            return self._prompts.contribute.format(
                request=session.request,
                transcript=transcript,
                turn=session.turn,
                role=role.value,
            )
        last = session.contributions[-1]
        return self._prompts.refine.format(
            request=session.request,
            last_role=last.role.value,
            last_content=last.content,
            transcript=transcript,
            role=role.value,
            turn=session.turn,
        )

    def _failed(self, session: DesignSession, role: Role, message: str) -> Contribution:
        return Contribution(
            id=uuid.uuid4().hex[:12],
            role=role,
            turn=session.turn,
            content=message,
            structured_output=None,
            confidence=0.0,
            failed=True,
        )

    async def _contribute(self, session: DesignSession, role: Role) -> Contribution:
        """Ask one role to speak. Never raises; failures become failed contributions."""
        agent = self._agents.get(role)
        if agent is None:
            return self._failed(session, role, f"No agent registered for role {role.value}")

        artifacts, _ = _latest_artifacts(session, self._required_roles)
        context = {
            "turn": session.turn,
            "request": session.request,
            "artifacts": {r.value: a for r, a in artifacts.items()},
        }
        try:
            reply = await agent.invoke(role, self._prompt(session, role), context)
        except AgentError as exc:
            logger.warning("Turn %d: %s failed: %s", session.turn, role.value, exc)
            return self._failed(session, role, str(exc))
        except Exception as exc:
            logger.warning("Turn %d: %s raised unexpectedly: %s", session.turn, role.value, exc)
            return self._failed(session, role, f"Unexpected error: {exc}")

        if not isinstance(reply, AgentReply):
            return self._failed(session, role, f"Agent returned {type(reply).__name__}, expected AgentReply")

        return Contribution(
            id=uuid.uuid4().hex[:12],
            role=role,
            turn=session.turn,
            content=reply.content,
            structured_output=reply.structured_output,
            confidence=reply.confidence,
        )

    async def run_session(self, request: str, on_turn: TurnCallback | None = None) -> SessionOutcome:
        """Run the dialogue to organic consensus or to the turn ceiling.

        Returns:
            SessionOutcome whose consensus always carries every required role.
            Status is COMPLETE on organic consensus, FAILED when forced.
        """
        cfg = self._config
        session = DesignSession(id=uuid.uuid4().hex[:12], request=request, max_turns=cfg.max_turns)
        logger.info(
            "Design session %s started: %d roles, turns %d..%d, threshold %.2f",
            session.id, len(self._required_roles), cfg.min_turns, cfg.max_turns, cfg.confidence_threshold,
        )

        while session.turn < cfg.max_turns:
            session.turn += 1
            role = next_role(session, self._required_roles, self._responds_to)
            contribution = await self._contribute(session, role)
            session.contributions.append(contribution)
            logger.info(
                "Turn %d: %s %s (confidence %.2f)",
                session.turn, role.value, "failed" if contribution.failed else "contributed",
                contribution.confidence,
            )
            if on_turn:
                on_turn(contribution)

            if session.turn >= cfg.min_turns and has_consensus(
                session, self._required_roles, cfg.min_turns, cfg.confidence_threshold,
            ):
                session.status = SessionStatus.CONSENSUS_REACHED
                logger.info("Consensus reached at turn %d", session.turn)
                break

        if session.status is SessionStatus.CONSENSUS_REACHED:
            session.consensus = synthesize_consensus(
                session, self._required_roles, self._default_factories, forced=False,
            )
            session.status = SessionStatus.COMPLETE
        else:
            logger.warning(
                "No consensus after %d turn(s), forcing synthesis with defaults", session.turn,
            )
            session.consensus = synthesize_consensus(
                session, self._required_roles, self._default_factories, forced=True,
            )
            session.status = SessionStatus.FAILED

        return SessionOutcome(session=session, consensus=session.consensus)


async def run_design_session(
    request: str,
    agents: Mapping[Role, AgentCapability],
    config: DesignSessionConfig | None = None,
    on_turn: TurnCallback | None = None,
    **kwargs: Any,
) -> SessionOutcome:
    """Run one design session. Extra keyword arguments go to DesignSessionManager."""
    manager = DesignSessionManager(agents, config, **kwargs)
    return await manager.run_session(request, on_turn=on_turn)

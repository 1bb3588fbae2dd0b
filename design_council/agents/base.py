"""Agent capability boundary: the interface every design agent implements.

Anything an agent returns is validated here before it reaches session state,
so the orchestration core only ever sees well-formed AgentReply values or a
typed AgentError.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from design_council.models import AgentReply, Role

DEFAULT_CONFIDENCE = 0.8

TIMEOUT = "timeout"
MALFORMED_OUTPUT = "malformed-output"
RATE_LIMIT = "rate-limit"
UNAVAILABLE = "unavailable"
FAILED = "failed"

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)


class AgentError(Exception):
    """Raised when an agent invocation fails."""

    def __init__(self, role: Role | str, kind: str, message: str) -> None:
        self.role = role
        self.kind = kind
        label = role.value if isinstance(role, Role) else role
        super().__init__(f"[{label}:{kind}] {message}")


class AgentCapability(ABC):
    """Something that can speak for one or more roles."""

    @abstractmethod
    def name(self) -> str:
        """Return a short display name for logs and transcripts."""
        ...

    @abstractmethod
    async def invoke(self, role: Role, prompt: str, context: dict[str, Any]) -> AgentReply:
        """Produce a reply for the given role.

        Args:
            role: The role being asked to speak.
            prompt: The turn/action prompt.
            context: Opaque action or turn context (action name, turn, ...).

        Returns:
            A validated AgentReply.

        Raises:
            AgentError: On timeout, rate limit, malformed output or other failure.
        """
        ...


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _strip_fence(text: str) -> str:
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


def parse_agent_reply(text: str, role: Role | str = "agent", strict: bool = True) -> AgentReply:
    """Validate a raw JSON agent reply.

    Expected shape::

        {"content": str, "structured_output": {...} | null, "confidence": 0..1}

    With strict=False, text that is not JSON at all is accepted as plain
    content at the default confidence. Text that *is* JSON but has the wrong
    shape is always rejected.

    Raises:
        AgentError: kind MALFORMED_OUTPUT when the reply cannot be used.
    """
    body = _strip_fence(text)
    try:
        raw = json.loads(body)
    except json.JSONDecodeError as exc:
        if strict:
            raise AgentError(role, MALFORMED_OUTPUT, f"Reply is not JSON: {exc}") from exc
        if not body:
            raise AgentError(role, MALFORMED_OUTPUT, "Empty reply") from exc
        return AgentReply(content=body, structured_output=None, confidence=DEFAULT_CONFIDENCE)

    if not isinstance(raw, dict):
        raise AgentError(role, MALFORMED_OUTPUT, f"Expected a JSON object, got {type(raw).__name__}")

    content = raw.get("content", "")
    if not isinstance(content, str):
        raise AgentError(role, MALFORMED_OUTPUT, "'content' must be a string")

    structured = raw.get("structured_output")
    if structured is not None and not isinstance(structured, dict):
        raise AgentError(role, MALFORMED_OUTPUT, "'structured_output' must be an object or null")

    confidence = raw.get("confidence", DEFAULT_CONFIDENCE)
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise AgentError(role, MALFORMED_OUTPUT, "'confidence' must be a number")

    if not content.strip() and not structured:
        raise AgentError(role, MALFORMED_OUTPUT, "Reply has neither content nor structured output")

    return AgentReply(
        content=content,
        structured_output=structured,
        confidence=clamp_confidence(confidence),
    )

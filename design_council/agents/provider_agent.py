"""AgentCapability backed by an LLM provider."""

import logging
from typing import Any

from config.config_loader import PromptsConfig
from design_council.agents.base import (
    FAILED,
    RATE_LIMIT,
    TIMEOUT,
    AgentCapability,
    AgentError,
    parse_agent_reply,
)
from design_council.models import AgentReply, Role
from design_council.providers.base import AIProvider, ProviderError, ProviderReply

logger = logging.getLogger(__name__)

REPLY_FORMAT = (
    "Reply with a single JSON object and nothing else:\n"
    '{"content": "<your message to the other designers>", '
    '"structured_output": {<your artifact>} or null, '
    '"confidence": <0.0-1.0, how settled your part of the design is>}'
)


def _error_kind(exc: ProviderError) -> str:
    text = str(exc).lower()
    if "timed out" in text:
        return TIMEOUT
    if "rate limit" in text:
        return RATE_LIMIT
    return FAILED


class ProviderAgent(AgentCapability):
    """Speaks for any role through one provider, using per-role personas."""

    def __init__(self, provider: AIProvider, prompts: PromptsConfig | None = None, strict: bool = True) -> None:
        self._provider = provider
        self._prompts = prompts or PromptsConfig()
        self._strict = strict
        self.tokens_used = 0

    def name(self) -> str:
        return f"{self._provider.name()} ({self._provider.model_string()})"

    async def _generate(self, role: Role, prompt: str, system: str) -> ProviderReply:
        """Call the provider, retrying once on timeout with 1.5x the timeout."""
        try:
            return await self._provider.generate(prompt, system=system)
        except ProviderError as exc:
            if _error_kind(exc) != TIMEOUT:
                raise AgentError(role, _error_kind(exc), str(exc)) from exc

            retry_timeout = self._provider._config.timeout_sec * 1.5
            logger.warning(
                "%s timed out speaking as %s, retrying once with %.0fs",
                self._provider.name(), role.value, retry_timeout,
            )
            try:
                return await self._provider.generate(prompt, system=system, timeout_sec=retry_timeout)
            except ProviderError as retry_exc:
                raise AgentError(role, _error_kind(retry_exc), str(retry_exc)) from retry_exc

    async def invoke(self, role: Role, prompt: str, context: dict[str, Any]) -> AgentReply:
        persona = self._prompts.personas.get(role.value, "")
        system = f"{persona}\n\n{REPLY_FORMAT}" if persona else REPLY_FORMAT
        try:
            reply = await self._generate(role, prompt, system)
        except AgentError:
            raise
        except Exception as exc:
            raise AgentError(role, FAILED, f"Unexpected error: {exc}") from exc

        if reply.token_count:
            self.tokens_used += reply.token_count
        logger.info(
            "%s spoke as %s in %.2fs (%s tokens)",
            reply.provider, role.value, reply.latency_sec, reply.token_count,
        )
        return parse_agent_reply(reply.text, role=role, strict=self._strict)

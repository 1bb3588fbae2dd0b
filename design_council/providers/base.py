"""Provider base: one request in, one ProviderReply out, every failure a ProviderError.

Subclasses only talk to their SDK (`_complete`). Timing, the request timeout
and error mapping live here so every backend fails the same way.
"""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


@dataclass
class ProviderReply:
    provider: str          # config name, e.g. "claude"
    model: str             # actual model string used
    text: str
    latency_sec: float
    token_count: int | None


@dataclass
class Completion:
    text: str
    token_count: int | None = None


def api_key_for(config: ModelConfig) -> str:
    """Read the model's API key from the environment.

    Raises:
        ProviderError: If the variable is unset or blank.
    """
    api_key = os.environ.get(config.api_key_env, "").strip()
    if not api_key:
        raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
    return api_key


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    def name(self) -> str:
        """Short provider name from config (e.g. 'gemini', 'claude')."""
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    @abstractmethod
    async def _complete(self, prompt: str, system: str) -> Completion:
        """Send one request to the SDK. Raise whatever the SDK raises."""
        ...

    def _is_rate_limit(self, exc: Exception) -> bool:
        return False

    async def generate(self, prompt: str, system: str = "", timeout_sec: float | None = None) -> ProviderReply:
        """Generate a completion for the given prompt.

        Args:
            prompt: The full user prompt text.
            system: Optional system instruction (the agent persona).
            timeout_sec: Per-call override of the configured timeout.

        Returns:
            ProviderReply with text and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        name = self.name()
        timeout = timeout_sec if timeout_sec is not None else self._config.timeout_sec
        start = time.monotonic()
        try:
            completion = await asyncio.wait_for(self._complete(prompt, system), timeout=timeout)
        except ProviderError:
            raise
        except asyncio.TimeoutError as exc:
            raise ProviderError(name, f"Request timed out after {timeout}s") from exc
        except Exception as exc:
            if self._is_rate_limit(exc):
                raise ProviderError(name, f"Rate limited: {exc}") from exc
            raise ProviderError(name, f"API call failed: {exc}") from exc
        latency = time.monotonic() - start

        if not completion.text or not completion.text.strip():
            raise ProviderError(name, "Empty response")

        logger.debug("%s %s: %.2fs, %s tokens", name, self.model_string(), latency, completion.token_count)
        return ProviderReply(
            provider=name,
            model=self.model_string(),
            text=completion.text,
            latency_sec=latency,
            token_count=completion.token_count,
        )

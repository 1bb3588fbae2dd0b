"""Anthropic Claude provider (anthropic SDK, native async)."""

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from design_council.providers.base import AIProvider, Completion, api_key_for


class AnthropicProvider(AIProvider):
    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key_for(config))

    def _is_rate_limit(self, exc: Exception) -> bool:
        return isinstance(exc, anthropic_sdk.RateLimitError)

    async def _complete(self, prompt: str, system: str) -> Completion:
        request: dict = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system

        response = await self._client.messages.create(**request)

        text = "\n".join(b.text for b in (response.content or []) if b.type == "text")
        usage = response.usage
        return Completion(text, usage.input_tokens + usage.output_tokens if usage else None)

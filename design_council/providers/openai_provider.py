"""OpenAI provider (openai SDK, native async).

Also serves OpenAI-compatible endpoints (xAI, DeepSeek, local servers) when the
model config carries a base_url.
"""

from openai import AsyncOpenAI, RateLimitError

from config.config_loader import ModelConfig
from design_council.providers.base import AIProvider, Completion, api_key_for


class OpenAIProvider(AIProvider):
    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        client_args = {"api_key": api_key_for(config)}
        if config.base_url:
            client_args["base_url"] = config.base_url
        self._client = AsyncOpenAI(**client_args)

    def _is_rate_limit(self, exc: Exception) -> bool:
        return isinstance(exc, RateLimitError)

    async def _complete(self, prompt: str, system: str) -> Completion:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})

        response = await self._client.chat.completions.create(
            model=self._config.model,
            messages=messages,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )

        text = response.choices[0].message.content if response.choices else None
        return Completion(text or "", response.usage.total_tokens if response.usage else None)

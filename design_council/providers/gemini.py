"""Google Gemini provider (google-genai SDK, `client.aio` async surface)."""

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from design_council.providers.base import AIProvider, Completion, api_key_for


class GeminiProvider(AIProvider):
    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        self._client = genai.Client(api_key=api_key_for(config))

    def _is_rate_limit(self, exc: Exception) -> bool:
        # google.genai.errors.APIError carries the HTTP status as `code`
        return getattr(exc, "code", None) == 429

    async def _complete(self, prompt: str, system: str) -> Completion:
        response = await self._client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system_instruction=system or None,
            ),
        )
        usage = response.usage_metadata
        return Completion(response.text or "", usage.total_token_count if usage else None)

"""Shared pytest fixtures and test doubles."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from design_council.agents.base import AgentCapability
from design_council.models import DESIGN_ROLES, Action, AgentReply, Role
from design_council.providers.base import AIProvider, Completion, ProviderReply


def make_action(action_id: str, role: Role = Role.SCHEMA, deps: tuple[str, ...] = (), priority: int = 5,
                message: str = "build me a todo app") -> Action:
    return Action(
        id=action_id,
        role=role,
        action="propose",
        priority=priority,
        depends_on=frozenset(deps),
        context={"user_message": message},
    )


class MockAgent(AgentCapability):
    """Test double AgentCapability; invoke is an AsyncMock."""

    def __init__(
        self,
        agent_name: str = "mock",
        content: str = "Mock contribution",
        structured_output: dict[str, Any] | None = None,
        confidence: float = 0.9,
    ) -> None:
        self._name = agent_name
        self.invoke = AsyncMock(  # type: ignore[assignment]
            return_value=AgentReply(content=content, structured_output=structured_output, confidence=confidence)
        )

    def name(self) -> str:
        return self._name

    async def invoke(self, role: Role, prompt: str, context: dict[str, Any]) -> AgentReply:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return AgentReply(content="Mock contribution")


class MockProvider(AIProvider):
    """Test double AIProvider; generate is an AsyncMock."""

    def __init__(self, provider_name: str = "mock", response_text: str = "Mock response") -> None:
        super().__init__(
            ModelConfig(
                name=provider_name,
                sdk="mock",
                model="mock-model",
                api_key_env="MOCK_API_KEY",
                timeout_sec=30,
                max_tokens=256,
            )
        )
        self._response_text = response_text
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ProviderReply(
                provider=provider_name,
                model="mock-model",
                text=response_text,
                latency_sec=0.1,
                token_count=10,
            )
        )

    async def _complete(self, prompt: str, system: str) -> Completion:
        return Completion(self._response_text, 10)


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="anthropic",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(personas={"ux-designer": "You are a UX designer."})


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        max_turns=10,
        min_turns=4,
        confidence_threshold=0.7,
        output_dir=tmp_path / "output",
        default_provider="claude",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    claude = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    openai = ModelConfig(
        name="openai",
        sdk="openai",
        model="gpt-4.1",
        api_key_env="OPENAI_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": claude, "openai": openai},
        prompts=sample_prompts_config,
        roles={"ux-designer": "claude", "data-architect": "openai", "fixer": "gemini"},
        available_providers={"claude", "openai"},
    )


@pytest.fixture
def design_agents() -> dict[Role, MockAgent]:
    """One confident agent per design role, each producing its own artifact."""
    return {
        role: MockAgent(role.value, f"{role.value} proposal", {"by": role.value}, 0.9)
        for role in DESIGN_ROLES
    }


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()

"""Integration tests: real API calls, no mocks. Requires .env with at least one API key."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

_AVAILABLE_KEYS = [
    k for k in ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "XAI_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if not _AVAILABLE_KEYS:
    pytestmark = pytest.mark.skip(reason="Need at least one provider API key")


async def test_full_design_session(tmp_path: Path):
    """Run a short real design session with available providers, verify no crash."""
    from config.config_loader import load_config
    from design_council.cli import _build_agents, _build_all_providers
    from design_council.models import DESIGN_ROLES
    from design_council.output import save_to_file
    from design_council.session import DesignSessionConfig, run_design_session

    config = load_config()
    providers = _build_all_providers(config)
    assert providers, "No providers could be built"

    agents = _build_agents(config, providers, DESIGN_ROLES)
    outcome = await run_design_session(
        "A personal reading list with ratings and notes",
        agents,
        DesignSessionConfig(max_turns=4, min_turns=4, confidence_threshold=0.5),
        prompts=config.prompts,
    )

    assert 1 <= outcome.session.turn <= 4
    assert set(outcome.consensus.artifacts) == set(DESIGN_ROLES)

    saved = save_to_file(outcome, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "# Design Council:" in content
    assert "## Consensus" in content


async def test_fix_loop_repairs_syntax_error():
    from config.config_loader import load_config
    from design_council.cli import _build_agents, _build_all_providers
    from design_council.feedback.engine import FeedbackEngine, python_syntax_check, repair
    from design_council.feedback.fixer import AgentFixGenerator
    from design_council.feedback.policy import RetryPolicy
    from design_council.models import FeedbackStatus, Role

    config = load_config()
    providers = _build_all_providers(config)
    fixer = _build_agents(config, providers, (Role.FIXER,))[Role.FIXER]
    engine = FeedbackEngine(
        "integration",
        "A function that averages a list of numbers",
        AgentFixGenerator(fixer, config.prompts),
        policy=RetryPolicy.from_config(config.retry),
        max_iterations=3,
        prompts=config.prompts,
    )

    broken = "def average(values:\n    return sum(values) / len(values)\n"
    session = await repair(broken, python_syntax_check, engine)

    assert session.status is FeedbackStatus.RESOLVED
    assert python_syntax_check(session.current_code) is None

"""Tests for provider/agent wiring and commands in design_council/cli.py."""

from pathlib import Path

import pytest
from click.testing import CliRunner

import design_council.cli as cli
from design_council.agents.provider_agent import ProviderAgent
from design_council.models import DESIGN_ROLES, Role
from design_council.session import DesignSessionConfig
from tests.conftest import MockProvider


class _FakeProvider(MockProvider):
    def __init__(self, config) -> None:
        super().__init__(config.name)


class _BrokenProvider(MockProvider):
    def __init__(self, config) -> None:
        raise RuntimeError("no network")


@pytest.fixture
def providers() -> dict[str, MockProvider]:
    return {"claude": MockProvider("claude"), "openai": MockProvider("openai")}


def test_build_agents_binds_configured_provider(sample_app_config, providers):
    agents = cli._build_agents(sample_app_config, providers, DESIGN_ROLES)
    assert set(agents) == set(DESIGN_ROLES)
    assert agents[Role.DATA_ARCHITECT].name() == "openai (mock-model)"
    assert agents[Role.UX_DESIGNER].name() == "claude (mock-model)"


def test_build_agents_shares_one_agent_per_provider(sample_app_config, providers):
    agents = cli._build_agents(sample_app_config, providers, DESIGN_ROLES)
    # interaction-designer is unlisted, so it lands on the default provider
    assert agents[Role.UX_DESIGNER] is agents[Role.INTERACTION_DESIGNER]
    assert isinstance(agents[Role.UX_DESIGNER], ProviderAgent)


def test_build_agents_falls_back_when_provider_unavailable(sample_app_config, providers, caplog):
    agents = cli._build_agents(sample_app_config, providers, (Role.FIXER,))
    assert agents[Role.FIXER].name() == "claude (mock-model)"
    assert "gemini" in caplog.text


def test_build_agents_falls_back_to_any_provider(sample_app_config):
    agents = cli._build_agents(sample_app_config, {"openai": MockProvider("openai")}, (Role.UX_DESIGNER,))
    assert agents[Role.UX_DESIGNER].name() == "openai (mock-model)"


def test_build_agents_without_providers(sample_app_config):
    assert cli._build_agents(sample_app_config, {}, DESIGN_ROLES) == {}


def test_build_all_providers(sample_app_config, monkeypatch):
    monkeypatch.setitem(cli.PROVIDER_CLASSES, "anthropic", _FakeProvider)
    monkeypatch.setitem(cli.PROVIDER_CLASSES, "openai", _BrokenProvider)
    providers = cli._build_all_providers(sample_app_config)
    assert list(providers) == ["claude"]


def test_build_all_providers_skips_unknown_sdk(sample_app_config, caplog):
    sample_app_config.models["claude"].sdk = "mystery"
    sample_app_config.available_providers = {"claude"}
    assert cli._build_all_providers(sample_app_config) == {}
    assert "unknown sdk" in caplog.text


def test_fixed_path():
    assert cli._fixed_path(Path("scripts/app.py")) == Path("scripts/app.fixed.py")
    assert cli._fixed_path(Path("notes")) == Path("notes.fixed.py")


async def test_inbox_file_is_processed_and_archived(tmp_path, sample_app_config, design_agents):
    inbox, archive, output = tmp_path / "inbox", tmp_path / "archive", tmp_path / "out"
    inbox.mkdir()
    archive.mkdir()
    request = inbox / "tracker.md"
    request.write_text("---\nmax_turns: 4\n---\nA habit tracker", encoding="utf-8")

    await cli._run_inbox_file(
        request, design_agents, sample_app_config, DesignSessionConfig(), {}, output, archive,
    )

    assert not request.exists()
    archived = list(archive.iterdir())
    assert len(archived) == 1 and not archived[0].name.startswith("FAILED_")
    saved = list(output.glob("*_tracker.md"))
    assert len(saved) == 1
    assert "A habit tracker" in saved[0].read_text(encoding="utf-8")


async def test_inbox_file_with_bad_frontmatter_is_archived_as_failed(tmp_path, sample_app_config, design_agents):
    inbox, archive = tmp_path / "inbox", tmp_path / "archive"
    inbox.mkdir()
    archive.mkdir()
    request = inbox / "bad.md"
    request.write_text("---\nmax_turns: lots\n---\nA habit tracker", encoding="utf-8")

    await cli._run_inbox_file(
        request, design_agents, sample_app_config, DesignSessionConfig(), {}, tmp_path / "out", archive,
    )

    assert [p.name.startswith("FAILED_") for p in archive.iterdir()] == [True]


async def test_unparseable_inbox_file_does_not_stop_the_others(tmp_path, sample_app_config, design_agents):
    inbox, archive, output = tmp_path / "inbox", tmp_path / "archive", tmp_path / "out"
    inbox.mkdir()
    (inbox / "broken.md").write_text("---\nmax_turns: [4\n---\nA habit tracker", encoding="utf-8")
    (inbox / "good.md").write_text("A recipe organizer", encoding="utf-8")
    sample_app_config.inbox.archive_dir = archive

    await cli._run_inbox(design_agents, sample_app_config, DesignSessionConfig(), {}, inbox, output)

    assert list(inbox.glob("*.md")) == []
    archived = {p.name.rsplit("_", 1)[-1]: p.name for p in archive.iterdir()}
    assert set(archived) == {"broken.md", "good.md"}
    assert archived["broken.md"].startswith("FAILED_")
    assert not archived["good.md"].startswith("FAILED_")
    assert len(list(output.glob("*_good.md"))) == 1


def test_plan_dry_run_needs_no_providers():
    result = CliRunner().invoke(cli.main, ["plan", "I need a recipe organizer", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "new-request" in result.output
    assert "intent" in result.output


def test_fix_on_clean_file_exits_early(tmp_path):
    target = tmp_path / "ok.py"
    target.write_text("x = 1\n", encoding="utf-8")
    result = CliRunner().invoke(cli.main, ["fix", str(target)])
    assert result.exit_code == 0
    assert "No syntax errors" in result.output
    assert not (tmp_path / "ok.fixed.py").exists()


def test_design_without_request_fails():
    result = CliRunner().invoke(cli.main, ["design", "--skip-health-check"])
    assert result.exit_code == 1
    assert "Provide a REQUEST" in result.output

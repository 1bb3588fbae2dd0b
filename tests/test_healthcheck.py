"""Health check tests; providers are mocks, nothing leaves the process."""

import asyncio
from unittest.mock import AsyncMock

import design_council.healthcheck as hc
from design_council.healthcheck import HealthResult, run_health_checks
from design_council.providers.base import ProviderError
from tests.conftest import MockProvider


async def test_every_provider_answers():
    providers = {"claude": MockProvider("claude"), "gemini": MockProvider("gemini")}

    results = await run_health_checks(providers)

    assert set(results) == {"claude", "gemini"}
    assert all(r.ok and r.error == "" for r in results.values())
    assert all(r.latency_sec >= 0 for r in results.values())


async def test_ping_is_short():
    provider = MockProvider("claude")
    await run_health_checks({"claude": provider})
    args, kwargs = provider.generate.await_args
    assert "OK" in args[0]
    assert kwargs["system"]


async def test_failure_is_isolated():
    providers = {"claude": MockProvider("claude"), "grok": MockProvider("grok")}
    providers["grok"].generate = AsyncMock(side_effect=ProviderError("grok", "403 Forbidden\nrequest id abc"))

    results = await run_health_checks(providers)

    assert results["claude"].ok
    assert not results["grok"].ok
    assert results["grok"].short_error == "[grok] 403 Forbidden"


async def test_unexpected_exceptions_are_reported():
    providers = {"openai": MockProvider("openai")}
    providers["openai"].generate = AsyncMock(side_effect=Exception("openai down"))

    result = (await run_health_checks(providers))["openai"]

    assert result == HealthResult("openai", False, "openai down")


async def test_no_providers():
    assert await run_health_checks({}) == {}


async def test_slow_provider_fails(monkeypatch):
    providers = {"slow": MockProvider("slow")}

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    providers["slow"].generate = AsyncMock(side_effect=hang)
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    result = (await run_health_checks(providers))["slow"]

    assert not result.ok
    assert "No reply within" in result.error


def test_short_error_fallback():
    assert HealthResult("x", False).short_error == "unknown error"
    assert HealthResult("x", False, "y" * 300).short_error == "y" * 120

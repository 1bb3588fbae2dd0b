"""Connectivity check run before a session so dead providers drop out early."""

import asyncio
import logging
import time
from dataclasses import dataclass

from design_council.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_PING_SYSTEM = "You are a connectivity check."
_TIMEOUT_SEC = 15.0


@dataclass(frozen=True)
class HealthResult:
    name: str
    ok: bool
    error: str = ""
    latency_sec: float = 0.0

    @property
    def short_error(self) -> str:
        return self.error.splitlines()[0][:120] if self.error else "unknown error"


async def _ping(name: str, provider: AIProvider) -> HealthResult:
    start = time.monotonic()
    try:
        await asyncio.wait_for(provider.generate(_PING_PROMPT, system=_PING_SYSTEM), timeout=_TIMEOUT_SEC)
    except asyncio.TimeoutError:
        return HealthResult(name, False, f"No reply within {_TIMEOUT_SEC:.0f}s")
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", name, exc)
        return HealthResult(name, False, str(exc))
    return HealthResult(name, True, latency_sec=time.monotonic() - start)


async def run_health_checks(providers: dict[str, AIProvider]) -> dict[str, HealthResult]:
    """Ping all providers concurrently; the result is keyed by provider name."""
    results = await asyncio.gather(*(_ping(n, p) for n, p in providers.items()))
    return {r.name: r for r in results}

"""Fix generation: turn an iteration plus its context window into corrected code."""

import logging
import math
from abc import ABC, abstractmethod

from config.config_loader import PromptsConfig
from design_council.agents.base import AgentCapability, AgentError
from design_council.feedback.context import ContextExtractor, clean_generated_code
from design_council.models import ContextWindow, FixResult, Iteration, RetryStrategy, Role

logger = logging.getLogger(__name__)

_INSTRUCTIONS = {
    RetryStrategy.TARGETED_FIX: (
        "Fix ONLY the error. Return only the corrected lines {start}-{end}, "
        "without line numbers, markers or explanation."
    ),
    RetryStrategy.INCREMENTAL: (
        "Rewrite lines {start}-{end} so the error is gone, keeping names, signatures and structure. "
        "Return only those lines, without line numbers, markers or explanation."
    ),
    RetryStrategy.FULL_REGENERATION: (
        "The error could not be fixed incrementally. Return the COMPLETE corrected file, "
        "keeping the same functionality, with no explanation."
    ),
}


def build_fix_prompt(
    prompts: PromptsConfig,
    original_prompt: str,
    iteration: Iteration,
    window: ContextWindow,
    code: str,
    extractor: ContextExtractor | None = None,
) -> str:
    extractor = extractor or ContextExtractor()
    if iteration.strategy is RetryStrategy.FULL_REGENERATION:
        context = f"CURRENT CODE (WITH ERROR):\n```\n{code}\n```"
    else:
        context = extractor.format_for_prompt(window)
    instruction = _INSTRUCTIONS[iteration.strategy].format(start=window.start_line, end=window.end_line)
    return prompts.fix.format(
        original_prompt=original_prompt or "(not provided)",
        category=iteration.analysis.category.value,
        error=iteration.analysis.message,
        root_cause=iteration.analysis.root_cause,
        suggestion=iteration.analysis.suggestion,
        context=context,
        strategy=iteration.strategy.value,
        instruction=instruction,
    )


def splice_lines(code: str, replacement: str, start_line: int, end_line: int) -> str:
    """Replace lines start_line..end_line (1-based, inclusive) of code."""
    lines = code.split("\n")
    return "\n".join(lines[:start_line - 1] + replacement.split("\n") + lines[end_line:])


class FixGenerator(ABC):
    """Produces a FixResult for the latest failing iteration."""

    @abstractmethod
    async def generate_fix(
        self,
        code: str,
        iteration: Iteration,
        window: ContextWindow,
        original_prompt: str,
    ) -> FixResult:
        """Never raises for generation failures; returns FixResult(success=False) instead."""
        ...


class AgentFixGenerator(FixGenerator):
    """Asks the `fixer` role for corrected code and applies it."""

    def __init__(
        self,
        agent: AgentCapability,
        prompts: PromptsConfig | None = None,
        extractor: ContextExtractor | None = None,
    ) -> None:
        self._agent = agent
        self._prompts = prompts or PromptsConfig()
        self._extractor = extractor or ContextExtractor()

    async def generate_fix(
        self,
        code: str,
        iteration: Iteration,
        window: ContextWindow,
        original_prompt: str,
    ) -> FixResult:
        strategy = iteration.strategy
        prompt = build_fix_prompt(self._prompts, original_prompt, iteration, window, code, self._extractor)
        context = {
            "strategy": strategy.value,
            "iteration": iteration.number,
            "start_line": window.start_line,
            "end_line": window.end_line,
        }
        logger.info(
            "Iteration %d: requesting %s fix for %s error",
            iteration.number, strategy.value, iteration.analysis.category.value,
        )
        try:
            reply = await self._agent.invoke(Role.FIXER, prompt, context)
        except AgentError as exc:
            logger.warning("Fix generation failed on iteration %d: %s", iteration.number, exc)
            return FixResult(
                success=False,
                fixed_code=code,
                change_description="Fix generation failed",
                strategy=strategy,
                error=str(exc),
            )

        raw = reply.content
        if reply.structured_output and isinstance(reply.structured_output.get("code"), str):
            raw = reply.structured_output["code"]
        fixed = clean_generated_code(raw)
        if not fixed.strip():
            return FixResult(
                success=False,
                fixed_code=code,
                change_description="Fixer returned no code",
                strategy=strategy,
                error="empty fix",
            )

        category = iteration.analysis.category.value
        if strategy is RetryStrategy.FULL_REGENERATION:
            return FixResult(
                success=True,
                fixed_code=fixed,
                change_description=f"Regenerated the whole file to fix {category} error",
                strategy=strategy,
                estimated_tokens=math.ceil(len(code) / 4) + math.ceil(len(fixed) / 4),
            )

        verb = "Fixed" if strategy is RetryStrategy.TARGETED_FIX else "Rewrote"
        return FixResult(
            success=True,
            fixed_code=splice_lines(code, fixed, window.start_line, window.end_line),
            change_description=(
                f"{verb} lines {window.start_line}-{window.end_line} to fix {category} error "
                f"at line {window.error_line}"
            ),
            strategy=strategy,
            estimated_tokens=math.ceil(len(fixed) / 4),
        )

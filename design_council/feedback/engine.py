"""Feedback engine: iterate check -> analyze -> fix until the code is clean or we give up."""

import logging
from collections.abc import Callable

from config.config_loader import PromptsConfig
from design_council.errors import FeedbackSessionClosed
from design_council.feedback.analyzer import ErrorAnalyzer
from design_council.feedback.context import ContextExtractor
from design_council.feedback.fixer import FixGenerator, build_fix_prompt
from design_council.feedback.policy import RetryPolicy
from design_council.models import (
    ErrorAnalysis,
    FeedbackSession,
    FeedbackStatus,
    FeedbackSummary,
    FixResult,
    Iteration,
    TokenUsage,
)

logger = logging.getLogger(__name__)

ErrorCheck = Callable[[str], str | None]

_SIMILARITY_THRESHOLD = 0.5


def _normalize(message: str) -> str:
    return message.strip().lower()


def _similar(a: str, b: str) -> bool:
    """Jaccard similarity over words longer than three characters."""
    words_a = {w for w in a.split() if len(w) > 3}
    words_b = {w for w in b.split() if len(w) > 3}
    union = words_a | words_b
    return bool(union) and len(words_a & words_b) / len(union) > _SIMILARITY_THRESHOLD


def _same_error(iteration: Iteration, message: str, analysis: ErrorAnalysis) -> bool:
    previous = _normalize(iteration.error)
    return previous == message or (
        iteration.analysis.category == analysis.category and _similar(previous, message)
    )


class FeedbackEngine:
    """Owns one FeedbackSession. Not safe to share between coroutines."""

    def __init__(
        self,
        session_id: str,
        original_prompt: str,
        fix_generator: FixGenerator,
        policy: RetryPolicy | None = None,
        analyzer: ErrorAnalyzer | None = None,
        extractor: ContextExtractor | None = None,
        max_iterations: int | None = None,
        prompts: PromptsConfig | None = None,
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._fixer = fix_generator
        self._analyzer = analyzer or ErrorAnalyzer()
        self._extractor = extractor or ContextExtractor(
            self._policy.context_lines, self._policy.expanded_context_lines,
        )
        self._prompts = prompts or PromptsConfig()
        self.session = FeedbackSession(
            id=session_id,
            original_prompt=original_prompt,
            max_iterations=max_iterations if max_iterations is not None else self._policy.max_retries,
        )

    def _guard(self) -> None:
        if self.session.status is not FeedbackStatus.ACTIVE:
            raise FeedbackSessionClosed(self.session.id, self.session.status.value)

    def _last(self) -> Iteration | None:
        return self.session.iterations[-1] if self.session.iterations else None

    def count_same_errors(self, message: str, analysis: ErrorAnalysis) -> int:
        """How many recorded iterations carry this error (or one close enough to it)."""
        normalized = _normalize(message)
        return sum(1 for it in self.session.iterations if _same_error(it, normalized, analysis))

    def add_iteration(self, code: str, error: str) -> Iteration:
        """Record a failing attempt.

        Raises:
            FeedbackSessionClosed: If the session is already resolved or failed.
        """
        self._guard()
        analysis = self._analyzer.analyze(error)
        number = len(self.session.iterations) + 1
        strategy = self._policy.choose_strategy(
            number, self.count_same_errors(error, analysis), len(code),
        )
        iteration = Iteration(number=number, code=code, error=error, analysis=analysis, strategy=strategy)
        self.session.iterations.append(iteration)
        self.session.current_code = code
        logger.info(
            "Feedback %s iteration %d: %s error (%s), strategy %s",
            self.session.id, number, analysis.category.value, analysis.root_cause, strategy.value,
        )

        if self._policy.is_fatal(analysis.category):
            logger.warning("Feedback %s failed: %s errors are fatal", self.session.id, analysis.category.value)
            self.session.status = FeedbackStatus.FAILED
        elif len(self.session.iterations) >= self.session.max_iterations:
            logger.warning(
                "Feedback %s failed: reached %d iteration(s)", self.session.id, self.session.max_iterations,
            )
            self.session.status = FeedbackStatus.FAILED
        return iteration

    def should_use_incremental_fix(self) -> bool:
        """False once the latest error has repeated same_error_threshold times."""
        last = self._last()
        if last is None or len(self.session.iterations) <= self._policy.incremental_threshold:
            return True
        return self.count_same_errors(last.error, last.analysis) < self._policy.same_error_threshold

    async def attempt_fix(self) -> FixResult | None:
        """Generate a fix for the latest iteration and apply it to current_code.

        Returns None when there is nothing to fix yet.

        Raises:
            FeedbackSessionClosed: If the session is already resolved or failed.
        """
        self._guard()
        last = self._last()
        if last is None or self.session.current_code is None:
            return None

        code = self.session.current_code
        window = self._extractor.extract(
            code, last.analysis, last.number, self._policy.context_window_lines(last.number),
        )
        last.context = window
        last.estimated_tokens = window.estimated_tokens

        try:
            result = await self._fixer.generate_fix(code, last, window, self.session.original_prompt)
        except Exception as exc:
            logger.warning("Fix generator raised on iteration %d: %s", last.number, exc)
            result = FixResult(
                success=False,
                fixed_code=code,
                change_description="Fix generation failed",
                strategy=last.strategy,
                error=str(exc),
            )

        last.fix_result = result
        self.session.total_tokens += window.estimated_tokens + result.estimated_tokens
        if result.success:
            self.session.current_code = result.fixed_code
            logger.info("Iteration %d: %s", last.number, result.change_description)
        return result

    def should_retry(self) -> bool:
        if not self.is_active():
            return False
        last = self._last()
        if last is None:
            return True
        return self._policy.should_retry(len(self.session.iterations), last.analysis.category)

    def _mark(self, status: FeedbackStatus) -> None:
        if self.session.status is status:
            return
        self._guard()
        self.session.status = status
        logger.info("Feedback %s %s after %d iteration(s)", self.session.id, status.value, len(self.session.iterations))

    def mark_resolved(self) -> None:
        self._mark(FeedbackStatus.RESOLVED)

    def mark_failed(self) -> None:
        self._mark(FeedbackStatus.FAILED)

    def is_active(self) -> bool:
        return self.session.status is FeedbackStatus.ACTIVE

    def remaining_attempts(self) -> int:
        return max(0, self.session.max_iterations - len(self.session.iterations))

    def token_usage(self) -> TokenUsage:
        count = len(self.session.iterations)
        return TokenUsage(
            total_tokens=self.session.total_tokens,
            avg_tokens_per_iteration=round(self.session.total_tokens / count) if count else 0,
            iteration_count=count,
        )

    def get_summary(self) -> FeedbackSummary:
        last = self._last()
        return FeedbackSummary(
            status=self.session.status,
            attempts=len(self.session.iterations),
            max_attempts=self.session.max_iterations,
            tokens_used=self.session.total_tokens,
            last_error=last.analysis.root_cause if last else None,
            last_strategy=last.strategy if last else None,
        )

    def correction_prompt(self) -> str:
        """Fix prompt for the latest iteration, or "" when there is none."""
        last = self._last()
        if last is None:
            return ""
        code = self.session.current_code or last.code
        window = last.context or self._extractor.extract(
            code, last.analysis, last.number, self._policy.context_window_lines(last.number),
        )
        return build_fix_prompt(self._prompts, self.session.original_prompt, last, window, code, self._extractor)


async def repair(code: str, check: ErrorCheck, engine: FeedbackEngine) -> FeedbackSession:
    """Drive an engine until check passes or the engine gives up.

    check returns None for clean code, otherwise the error text.
    """
    current = code
    while engine.is_active():
        error = check(current)
        if error is None:
            engine.session.current_code = current
            engine.mark_resolved()
            break

        engine.add_iteration(current, error)
        if not engine.is_active():
            break
        if not engine.should_retry():
            logger.info("Retry policy says stop after %d attempt(s)", len(engine.session.iterations))
            engine.mark_failed()
            break

        await engine.attempt_fix()
        current = engine.session.current_code or current

    return engine.session


def python_syntax_check(code: str) -> str | None:
    """Compile code; return the error as `File "<code>", line N[, column C]` text, or None."""
    try:
        compile(code, "<code>", "exec")
    except SyntaxError as exc:
        location = f'File "<code>", line {exc.lineno}'
        if exc.offset:
            location += f", column {exc.offset}"
        return f"{location}\n{type(exc).__name__}: {exc.msg}"
    except ValueError as exc:
        return f"ValueError: {exc}"
    return None

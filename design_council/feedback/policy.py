"""Retry policy: when to keep trying and how broad each fix attempt should be."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from config.config_loader import RetryConfig
from design_council.errors import ConfigurationError
from design_council.models import ErrorCategory, RetryStrategy

logger = logging.getLogger(__name__)

CONTEXT_WINDOW_LINES = 10
EXPANDED_CONTEXT_LINES = 20


def _default_category_limits() -> dict[ErrorCategory, int]:
    # capability errors rarely go away on retry: allow one more attempt only
    return {ErrorCategory.CAPABILITY: 2}


@dataclass
class RetryPolicy:
    max_retries: int = 5
    incremental_threshold: int = 2
    same_error_threshold: int = 2
    min_code_length_for_incremental: int = 50
    context_lines: int = CONTEXT_WINDOW_LINES
    expanded_context_lines: int = EXPANDED_CONTEXT_LINES
    per_category_limits: Mapping[ErrorCategory, int] = field(default_factory=_default_category_limits)
    fatal_categories: frozenset[ErrorCategory] = frozenset()

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> "RetryPolicy":
        """Build a policy from the `retry` section of settings.yaml.

        Raises:
            ConfigurationError: If a category name is not an ErrorCategory value.
        """
        try:
            limits = {ErrorCategory(k): v for k, v in cfg.per_category_limits.items()}
            fatal = frozenset(ErrorCategory(c) for c in cfg.fatal_categories)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid retry configuration: {exc}") from exc
        return cls(
            max_retries=cfg.max_retries,
            incremental_threshold=cfg.incremental_threshold,
            same_error_threshold=cfg.same_error_threshold,
            min_code_length_for_incremental=cfg.min_code_length_for_incremental,
            per_category_limits=limits or _default_category_limits(),
            fatal_categories=fatal,
        )

    def is_fatal(self, category: ErrorCategory) -> bool:
        return category in self.fatal_categories

    def should_retry(self, attempts: int, category: ErrorCategory) -> bool:
        """Table lookup on (attempts so far, error category)."""
        if self.is_fatal(category):
            logger.info("Not retrying: %s errors are fatal", category.value)
            return False
        limit = min(self.per_category_limits.get(category, self.max_retries), self.max_retries)
        return attempts < limit

    def choose_strategy(self, attempt: int, same_errors: int, code_length: int) -> RetryStrategy:
        """Pick the fix scope for an attempt.

        Repeated errors and code too short to patch go straight to full
        regeneration. Early attempts are targeted, middle ones rewrite a wider
        section, and the final attempt regenerates everything.
        """
        if same_errors >= self.same_error_threshold:
            return RetryStrategy.FULL_REGENERATION
        if code_length < self.min_code_length_for_incremental:
            return RetryStrategy.FULL_REGENERATION
        if attempt <= self.incremental_threshold:
            return RetryStrategy.TARGETED_FIX
        if attempt <= self.max_retries - 1:
            return RetryStrategy.INCREMENTAL
        return RetryStrategy.FULL_REGENERATION

    def context_window_lines(self, attempt: int) -> int:
        if attempt <= 2:
            return self.context_lines
        return self.expanded_context_lines

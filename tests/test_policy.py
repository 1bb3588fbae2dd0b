"""Tests for design_council/feedback/policy.py."""

import pytest

from config.config_loader import RetryConfig
from design_council.errors import ConfigurationError
from design_council.feedback.policy import RetryPolicy
from design_council.models import ErrorCategory, RetryStrategy

LONG = 500


@pytest.mark.parametrize(
    "attempt,strategy",
    [
        (1, RetryStrategy.TARGETED_FIX),
        (2, RetryStrategy.TARGETED_FIX),
        (3, RetryStrategy.INCREMENTAL),
        (4, RetryStrategy.INCREMENTAL),
        (5, RetryStrategy.FULL_REGENERATION),
    ],
)
def test_strategy_escalates_with_attempts(attempt, strategy):
    assert RetryPolicy().choose_strategy(attempt, 0, LONG) is strategy


def test_repeated_error_forces_full_regeneration():
    policy = RetryPolicy(same_error_threshold=2)
    assert policy.choose_strategy(1, 1, LONG) is RetryStrategy.TARGETED_FIX
    assert policy.choose_strategy(1, 2, LONG) is RetryStrategy.FULL_REGENERATION


def test_short_code_is_regenerated():
    assert RetryPolicy().choose_strategy(1, 0, 20) is RetryStrategy.FULL_REGENERATION


def test_should_retry_respects_max_retries():
    policy = RetryPolicy(max_retries=3)
    assert policy.should_retry(2, ErrorCategory.SYNTAX) is True
    assert policy.should_retry(3, ErrorCategory.SYNTAX) is False


def test_capability_errors_get_fewer_attempts():
    policy = RetryPolicy()
    assert policy.should_retry(1, ErrorCategory.CAPABILITY) is True
    assert policy.should_retry(2, ErrorCategory.CAPABILITY) is False
    assert policy.should_retry(2, ErrorCategory.SEMANTIC) is True


def test_category_limit_cannot_exceed_max_retries():
    policy = RetryPolicy(max_retries=2, per_category_limits={ErrorCategory.SYNTAX: 10})
    assert policy.should_retry(2, ErrorCategory.SYNTAX) is False


def test_fatal_category_never_retries():
    policy = RetryPolicy(fatal_categories=frozenset({ErrorCategory.ENVIRONMENT}))
    assert policy.is_fatal(ErrorCategory.ENVIRONMENT)
    assert policy.should_retry(0, ErrorCategory.ENVIRONMENT) is False


def test_context_window_widens_after_second_attempt():
    policy = RetryPolicy(context_lines=5, expanded_context_lines=15)
    assert policy.context_window_lines(1) == 5
    assert policy.context_window_lines(2) == 5
    assert policy.context_window_lines(3) == 15


def test_from_config():
    cfg = RetryConfig(
        max_retries=4,
        incremental_threshold=1,
        per_category_limits={"semantic": 3},
        fatal_categories=["capability"],
    )
    policy = RetryPolicy.from_config(cfg)
    assert policy.max_retries == 4
    assert policy.per_category_limits == {ErrorCategory.SEMANTIC: 3}
    assert policy.fatal_categories == {ErrorCategory.CAPABILITY}
    assert policy.choose_strategy(2, 0, LONG) is RetryStrategy.INCREMENTAL


def test_from_config_without_limits_keeps_capability_default():
    policy = RetryPolicy.from_config(RetryConfig())
    assert policy.per_category_limits == {ErrorCategory.CAPABILITY: 2}


def test_from_config_rejects_unknown_category():
    with pytest.raises(ConfigurationError, match="Invalid retry configuration"):
        RetryPolicy.from_config(RetryConfig(fatal_categories=["cosmic-rays"]))

"""Tests for design_council/feedback/analyzer.py."""

import pytest

from design_council.feedback.analyzer import ErrorAnalyzer
from design_council.models import ErrorCategory


@pytest.fixture
def analyzer() -> ErrorAnalyzer:
    return ErrorAnalyzer()


@pytest.mark.parametrize(
    "message,category",
    [
        ("src/App.jsx:12:5: ERROR: Unexpected token", ErrorCategory.SYNTAX),
        ('File "<code>", line 3\nIndentationError: expected an indented block', ErrorCategory.SYNTAX),
        ("SyntaxError: '(' was never closed", ErrorCategory.SYNTAX),
        ("TypeError: Cannot read properties of undefined (reading 'map')", ErrorCategory.SEMANTIC),
        ("AttributeError: 'NoneType' object has no attribute 'split'", ErrorCategory.SEMANTIC),
        ("ModuleNotFoundError: No module named 'numpy'", ErrorCategory.ENVIRONMENT),
        ("Module not found: Can't resolve 'react-dom'", ErrorCategory.ENVIRONMENT),
        ("useStore is not defined", ErrorCategory.ENVIRONMENT),
        ("NotImplementedError: websockets", ErrorCategory.CAPABILITY),
        ("localStorage is not available in sandbox", ErrorCategory.CAPABILITY),
        ("the moon is in retrograde", ErrorCategory.UNKNOWN),
    ],
)
def test_classification(analyzer, message, category):
    assert analyzer.analyze(message).category is category


def test_earlier_rule_wins(analyzer):
    # mentions both a syntax and a semantic marker
    analysis = analyzer.analyze("SyntaxError while handling TypeError")
    assert analysis.category is ErrorCategory.SYNTAX


def test_unknown_has_no_location(analyzer):
    analysis = analyzer.analyze("something odd happened")
    assert analysis.root_cause == "Unclassified error"
    assert analysis.line is None
    assert analysis.column is None


def test_colon_location(analyzer):
    analysis = analyzer.analyze("src/App.jsx:12:5: ERROR: Unexpected token")
    assert (analysis.line, analysis.column) == (12, 5)


def test_python_location(analyzer):
    analysis = analyzer.analyze('File "<code>", line 3, column 7\nSyntaxError: invalid syntax')
    assert (analysis.line, analysis.column) == (3, 7)


def test_line_without_column(analyzer):
    assert ErrorAnalyzer.extract_location("error on line 42") == (42, None)


def test_message_is_stripped(analyzer):
    assert analyzer.analyze("  TypeError: x  \n").message == "TypeError: x"

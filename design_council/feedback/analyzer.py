"""Classify raw error output into a category with a root cause and a suggestion."""

import re

from design_council.models import ErrorAnalysis, ErrorCategory

_SYNTAX_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"SyntaxError",
        r"IndentationError",
        r"TabError",
        r"Unexpected token",
        r"Unexpected [\"'<>{}\[\]()]",          # esbuild: Unexpected '>'
        r"Expected .+ but found",
        r"Parsing error",
        r"Unterminated string",
        r"Unterminated regular expression",
        r"unterminated triple-quoted string",
        r"Expression expected",
        r"Invalid or unexpected token",
        r"Unexpected end of input",
        r"Unexpected end of file",
        r"unexpected EOF",
        r"Missing closing",
        r"Unclosed",
        r"was never closed",
        r"Unexpected closing",
        r"does not match opening",
        r"JSX",
    )
]

_SEMANTIC_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"ReferenceError",
        r"TypeError",
        r"AttributeError",
        r"KeyError",
        r"IndexError",
        r"ValueError",
        r"ZeroDivisionError",
        r"undefined is not a",
        r"cannot read propert",
        r"has no attribute",
        r"Minified React error",
        r"React Hook",
        r"Invalid hook call",
        r"Rendered more hooks",
    )
]

_ENVIRONMENT_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"Module not found",
        r"ModuleNotFoundError",
        r"No module named",
        r"Import ?Error",
        r"is not defined",           # a missing global or import, usually
        r"command not found",
    )
]

_CAPABILITY_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"NotImplementedError",
        r"not supported",
        r"unsupported",
        r"not available in (?:the )?sandbox",
    )
]

_COLON_LOCATION_RE = re.compile(r":(\d+):(\d+)")
_LINE_LOCATION_RE = re.compile(r"line (\d+)(?:,\s*col(?:umn)?\s*(\d+))?", re.I)

_RULES: list[tuple[ErrorCategory, list[re.Pattern], str, str]] = [
    (
        ErrorCategory.SYNTAX,
        _SYNTAX_PATTERNS,
        "Code structure violation or invalid syntax",
        "Check for missing brackets, colons, quotes, bad indentation or invalid keywords.",
    ),
    (
        ErrorCategory.SEMANTIC,
        _SEMANTIC_PATTERNS,
        "Logic error or invalid state usage",
        "Verify types, attribute names, state initialization and call arguments.",
    ),
    (
        ErrorCategory.ENVIRONMENT,
        _ENVIRONMENT_PATTERNS,
        "Missing dependency or environment mismatch",
        "Ensure every library used is imported and available in the runtime.",
    ),
    (
        ErrorCategory.CAPABILITY,
        _CAPABILITY_PATTERNS,
        "The requested feature is not supported by the target runtime",
        "Remove or replace the unsupported feature; retrying will not help.",
    ),
]


class ErrorAnalyzer:
    """Regex classifier for JavaScript and Python error output. Pure and deterministic."""

    def analyze(self, message: str) -> ErrorAnalysis:
        clean = message.strip()
        for category, patterns, root_cause, suggestion in _RULES:
            if any(p.search(clean) for p in patterns):
                line, column = self.extract_location(clean)
                return ErrorAnalysis(
                    message=clean,
                    category=category,
                    root_cause=root_cause,
                    suggestion=suggestion,
                    line=line,
                    column=column,
                )
        return ErrorAnalysis(
            message=clean,
            category=ErrorCategory.UNKNOWN,
            root_cause="Unclassified error",
            suggestion="Review the error log manually.",
        )

    @staticmethod
    def extract_location(message: str) -> tuple[int | None, int | None]:
        """Find `file:line:col` or `line N[, column C]` in an error message."""
        match = _COLON_LOCATION_RE.search(message)
        if match:
            return int(match.group(1)), int(match.group(2))
        match = _LINE_LOCATION_RE.search(message)
        if match:
            column = int(match.group(2)) if match.group(2) else None
            return int(match.group(1)), column
        return None, None

"""Cut a small, numbered window of code around an error for the fix prompt."""

import math
import re
from dataclasses import dataclass

from design_council.feedback.policy import CONTEXT_WINDOW_LINES, EXPANDED_CONTEXT_LINES
from design_council.models import ContextWindow, ErrorAnalysis

_JS_IMPORT_RE = re.compile(
    r"^import\s+(?:(?:\{[^}]*\}|\*\s+as\s+\w+|\w+)(?:\s*,\s*(?:\{[^}]*\}|\*\s+as\s+\w+|\w+))*\s+from\s+)?"
    r"['\"][^'\"]+['\"];?$",
    re.M,
)
_PY_IMPORT_RE = re.compile(r"^(?:from\s+[\w.]+\s+)?import\s+[^(\n]+$", re.M)

_PY_BLOCK_RE = re.compile(r"^(\s*)(?:async\s+)?(?:def|class)\s+(\w+)")
_JS_FUNCTION_RES = [
    re.compile(r"function\s+(\w+)\s*\([^)]*\)\s*(?::\s*\w+(?:<[^>]+>)?\s*)?\{"),
    re.compile(r"(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?(?:\([^)]*\)|\w+)\s*=>"),
    re.compile(r"(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?function\s*\([^)]*\)\s*\{"),
]

# exact shape of the numbered lines `extract` emits: marker, space, number right-aligned to 4, colon
_LINE_PREFIX_RE = re.compile(r"^(?:>>>| {3}) (?: {3}\d| {2}\d{2}| \d{3}|\d{4,}):(?: |$)")


@dataclass
class _Block:
    name: str
    start_line: int
    end_line: int
    code: str


def _python_blocks(lines: list[str]) -> list[_Block]:
    blocks = []
    for i, line in enumerate(lines):
        match = _PY_BLOCK_RE.match(line)
        if not match:
            continue
        indent = len(match.group(1))
        end = i
        for j in range(i + 1, len(lines)):
            text = lines[j]
            if not text.strip():
                continue
            if len(text) - len(text.lstrip()) <= indent:
                break
            end = j
        blocks.append(_Block(match.group(2), i + 1, end + 1, "\n".join(lines[i:end + 1])))
    return blocks


def _brace_end(lines: list[str], start_line: int) -> int | None:
    depth = 0
    opened = False
    for i in range(start_line - 1, len(lines)):
        for char in lines[i]:
            if char == "{":
                depth += 1
                opened = True
            elif char == "}":
                depth -= 1
            if opened and depth == 0:
                return i + 1
    return None


def _js_blocks(lines: list[str]) -> list[_Block]:
    code = "\n".join(lines)
    blocks = []
    for pattern in _JS_FUNCTION_RES:
        for match in pattern.finditer(code):
            start = code.count("\n", 0, match.start()) + 1
            end = _brace_end(lines, start)
            if end is not None:
                blocks.append(_Block(match.group(1), start, end, "\n".join(lines[start - 1:end])))
    return blocks


def _imported_names(statement: str) -> list[str]:
    names: list[str] = []
    if statement.startswith(("import ", "from ")) and " from " not in statement and "'" not in statement \
            and '"' not in statement:
        # python: import a.b as c / from x import a, b as c
        imported = statement.split(" import ", 1)[1] if statement.startswith("from ") else statement[len("import "):]
        for part in imported.split(","):
            part = part.strip()
            if " as " in part:
                names.append(part.split(" as ", 1)[1].strip())
            elif part:
                names.append(part.split(".")[0])
        return [n for n in names if n and n != "*"]

    default = re.match(r"^import\s+(\w+)\s*(?:,|from)", statement)
    if default:
        names.append(default.group(1))
    named = re.search(r"\{([^}]+)\}", statement)
    if named:
        for part in named.group(1).split(","):
            alias = re.match(r"\s*(\w+)\s+as\s+(\w+)", part)
            names.append(alias.group(2) if alias else part.strip())
    namespace = re.search(r"\*\s+as\s+(\w+)", statement)
    if namespace:
        names.append(namespace.group(1))
    return [n for n in names if n]


def clean_generated_code(text: str) -> str:
    """Strip markdown fences and `>>>   12: ` prefixes copied from the prompt.

    Prefixes are removed only when every non-blank line carries one, so code
    such as `    12: 'twelve',` inside a dict literal is left alone.
    """
    text = re.sub(r"^```[\w+-]*[ \t]*$\n?", "", text, flags=re.M)
    lines = text.split("\n")
    if any(line.strip() for line in lines) and all(
        _LINE_PREFIX_RE.match(line) for line in lines if line.strip()
    ):
        lines = [_LINE_PREFIX_RE.sub("", line, count=1) for line in lines]
    return "\n".join(lines).strip("\n").rstrip()


class ContextExtractor:
    """Builds ContextWindows: numbered snippet, imports in use, enclosing function."""

    def __init__(self, base_lines: int = CONTEXT_WINDOW_LINES, expanded_lines: int = EXPANDED_CONTEXT_LINES) -> None:
        self._base_lines = base_lines
        self._expanded_lines = expanded_lines

    def window_size(self, iteration_number: int) -> int:
        return self._base_lines if iteration_number <= 2 else self._expanded_lines

    def extract(
        self,
        code: str,
        analysis: ErrorAnalysis,
        iteration_number: int = 1,
        window_lines: int | None = None,
    ) -> ContextWindow:
        """Extract the window around analysis.line (line 1 when unknown).

        window_lines overrides the iteration-based size.
        """
        lines = code.split("\n")
        size = window_lines if window_lines is not None else self.window_size(iteration_number)
        error_line = min(max(analysis.line or 1, 1), len(lines))

        start = max(1, error_line - size)
        end = min(len(lines), error_line + size)
        numbered = []
        for number in range(start, end + 1):
            marker = ">>>" if number == error_line else "   "
            numbered.append(f"{marker} {number:>4}: {lines[number - 1]}")
        snippet = "\n".join(numbered)

        window_code = "\n".join(lines[start - 1:end])
        imports = self.relevant_imports(code, window_code)
        block = self._enclosing_block(lines, error_line)

        chars = len(snippet) + len("\n".join(imports)) + (len(block.code) if block else 0)
        return ContextWindow(
            snippet=snippet,
            start_line=start,
            end_line=end,
            error_line=error_line,
            error_column=analysis.column,
            relevant_imports=imports,
            affected_function=block.name if block else None,
            estimated_tokens=math.ceil(chars / 4),
        )

    @staticmethod
    def find_imports(code: str) -> list[str]:
        found = [m.group(0).strip() for m in _JS_IMPORT_RE.finditer(code)]
        found += [m.group(0).strip() for m in _PY_IMPORT_RE.finditer(code) if m.group(0).strip() not in found]
        return found

    def relevant_imports(self, code: str, window_code: str) -> list[str]:
        """Imports whose bound names appear in the window. Import lines themselves do not count."""
        body = "\n".join(
            line for line in window_code.split("\n")
            if not line.lstrip().startswith(("import ", "from "))
        )
        relevant = []
        for statement in self.find_imports(code):
            names = _imported_names(statement)
            if any(re.search(rf"\b{re.escape(name)}\b", body) for name in names):
                relevant.append(statement)
        return relevant

    @staticmethod
    def _enclosing_block(lines: list[str], error_line: int) -> _Block | None:
        candidates = [
            b for b in _python_blocks(lines) + _js_blocks(lines)
            if b.start_line <= error_line <= b.end_line
        ]
        if not candidates:
            return None
        # innermost: latest start wins
        return max(candidates, key=lambda b: b.start_line)

    def format_for_prompt(self, window: ContextWindow) -> str:
        parts: list[str] = []
        if window.relevant_imports:
            parts.append("RELEVANT IMPORTS:")
            parts.append("\n".join(window.relevant_imports))
            parts.append("")
        location = f"ERROR LOCATION: Line {window.error_line}"
        if window.error_column is not None:
            location += f", Column {window.error_column}"
        parts.append(location)
        parts.append("")
        parts.append(f"CODE AROUND ERROR (lines {window.start_line}-{window.end_line}):")
        parts.append(window.snippet)
        if window.affected_function:
            parts.append("")
            parts.append(f"AFFECTED FUNCTION: {window.affected_function}")
        return "\n".join(parts)

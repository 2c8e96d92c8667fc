# pegblock/diagnostics.py
"""Source positions and failure reports.

- `LineIndex`: absolute offset -> (line, col), both 1-based
- `caret_snippet`: the offending line with a `^` under the column
- `FurthestFailure`: the single report produced for a failed parse
"""

from __future__ import annotations
import bisect
from dataclasses import dataclass
from typing import List, Optional, Tuple


def line_bounds(src: str, pos: int) -> Tuple[int, int]:
    """[start, end) of the line containing pos."""
    start = src.rfind("\n", 0, pos)
    start = 0 if start < 0 else start + 1
    end = src.find("\n", pos)
    end = len(src) if end < 0 else end
    return start, end


def caret_snippet(src: str, pos: int) -> str:
    start, end = line_bounds(src, pos)
    line = src[start:end]
    caret = " " * (pos - start) + "^"
    return f"{line}\n{caret}"


class LineIndex:
    """Offsets of line starts, searched with bisect."""

    def __init__(self, text: str):
        self.text = text
        self.starts: List[int] = [0]
        i = text.find("\n")
        while i >= 0:
            self.starts.append(i + 1)
            i = text.find("\n", i + 1)

    def line_col(self, pos: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self.starts, pos)
        return line, pos - self.starts[line - 1] + 1

    def snippet(self, pos: int) -> str:
        return caret_snippet(self.text, pos)


@dataclass(frozen=True)
class FurthestFailure:
    """Deepest position any failing expression reached during one match."""
    position: int
    line: int
    col: int
    expected: Tuple[str, ...]
    rule_stack: Tuple[str, ...] = ()
    snippet: str = ""
    path: Optional[str] = None

    @property
    def where(self) -> str:
        prefix = f"{self.path}:" if self.path else ""
        return f"{prefix}{self.line}:{self.col}"

    def __str__(self) -> str:
        if self.expected:
            head = f"Parse error at {self.where}: expected one of {{{', '.join(self.expected)}}}"
        else:
            head = f"Parse error at {self.where}"
        parts = [head]
        if self.snippet:
            parts.append(self.snippet)
        if self.rule_stack:
            parts.append("rule stack: " + " > ".join(self.rule_stack))
        return "\n".join(parts)

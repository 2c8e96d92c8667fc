# pegblock/grammar/errors.py
"""Compile errors.

Every error raised while turning grammar text into a `Grammar` derives from
`CompileError`, itself a `SyntaxError` so callers that only know about
SyntaxError keep working. The message carries `path:line:col` and, when the
source text is at hand, a caret snippet of the offending line.
"""

from __future__ import annotations
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .ast import Span


class CompileError(SyntaxError):
    def __init__(self, message: str, span: Optional["Span"] = None, snippet: str = ""):
        self.message = message
        self.span = span
        self.snippet = snippet
        text = message if span is None else f"{message} at {span}"
        if snippet:
            text = f"{text}\n{snippet}"
        super().__init__(text)


class GrammarSyntaxError(CompileError):
    """Malformed grammar text (scanner or recursive-descent parser)."""


class UndefinedRule(CompileError):
    def __init__(self, name: str, span: Optional["Span"] = None, snippet: str = ""):
        self.name = name
        super().__init__(f"Undefined rule '{name}'", span, snippet)


class UndefinedBlock(CompileError):
    def __init__(self, name: str, span: Optional["Span"] = None, snippet: str = ""):
        self.name = name
        super().__init__(f"Undefined block '{name}'", span, snippet)


class UndefinedArgument(CompileError):
    def __init__(self, name: str, rule: str, span: Optional["Span"] = None, snippet: str = ""):
        self.name = name
        self.rule = rule
        super().__init__(f"Rule '{rule}' has no parameter '{name}'", span, snippet)


class DuplicateDefinition(CompileError):
    def __init__(self, name: str, kind: str = "rule", span: Optional["Span"] = None, snippet: str = ""):
        self.name = name
        self.kind = kind
        super().__init__(f"Duplicate {kind} '{name}'", span, snippet)


class ArityMismatch(CompileError):
    def __init__(self, callee: str, expected: int, got: int, channel: str = "generic",
                 span: Optional["Span"] = None, snippet: str = ""):
        self.callee = callee
        self.expected = expected
        self.got = got
        self.channel = channel
        super().__init__(
            f"Rule '{callee}' takes {expected} {channel} argument(s), got {got}", span, snippet
        )


class MissingStart(CompileError):
    def __init__(self):
        super().__init__("No '+ start' directive in program (exactly one is required)")


class MultipleStart(CompileError):
    def __init__(self, first: "Span", span: "Span", snippet: str = ""):
        self.first = first
        super().__init__(f"Second '+ start' directive (first one at {first})", span, snippet)


class InvalidCharClass(CompileError):
    pass


class InvalidLoopRange(CompileError):
    pass


class InvalidRandomOrder(CompileError):
    pass

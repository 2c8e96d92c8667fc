# pegblock/peg/runtime.py
"""Parse entry point.

`parse(grammar, text)` runs the start rule (or an explicit one) over a fully
materialized text and returns a result value:

- `ParseSuccess(tree, end)`
- `ParseFailure(diagnostic)`      furthest-failure report
- `ResourceExceeded(reason, ...)` step budget, deadline or nesting depth

Failures are ordinary outcomes, not exceptions; `.unwrap()` converts them to
a `ParseError` when the caller wants one. Each call owns its own `Matcher`,
so concurrent calls against one Grammar share nothing mutable.
"""

from __future__ import annotations
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from ..grammar.ast import Grammar
from ..grammar.errors import ArityMismatch
from ..grammar.loader import load_program, normalize_newlines
from ..grammar.transform import compile_grammar
from ..diagnostics import FurthestFailure, LineIndex
from .ast import SyntaxNode, build_tree
from .engine import DEFAULT_MAX_DEPTH, BudgetExceeded, Matcher

END_OF_INPUT = "end of input"


class ParseError(SyntaxError):
    pass


@dataclass
class ParseOptions:
    """Per-parse configuration.

    max_steps    : rule invocations allowed (None = unlimited)
    timeout      : seconds before the match is abandoned (None = no deadline)
    memoize      : packrat caching of parameterless rules
    require_full : the start rule must consume the whole input
    max_depth    : nested rule invocations allowed before the match is abandoned
    """
    max_steps: Optional[int] = None
    timeout: Optional[float] = None
    memoize: bool = False
    require_full: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH


@dataclass(frozen=True)
class ParseSuccess:
    tree: SyntaxNode
    end: int
    ok = True

    def unwrap(self) -> SyntaxNode:
        return self.tree


@dataclass(frozen=True)
class ParseFailure:
    diagnostic: FurthestFailure
    ok = False

    def unwrap(self) -> SyntaxNode:
        raise ParseError(str(self.diagnostic))

    def __str__(self) -> str:
        return str(self.diagnostic)


@dataclass(frozen=True)
class ResourceExceeded:
    reason: str
    position: int
    steps: int
    ok = False

    def unwrap(self) -> SyntaxNode:
        raise ParseError(str(self))

    def __str__(self) -> str:
        return f"Resource exceeded: {self.reason} (position {self.position}, {self.steps} steps)"


ParseResult = Union[ParseSuccess, ParseFailure, ResourceExceeded]


def parse(grammar: Grammar, text: str, rule: Optional[str] = None,
          options: Optional[ParseOptions] = None, path: Optional[str] = None) -> ParseResult:
    """Match `text` (CRLF and CR read as LF; positions refer to the normalized text)."""
    opts = options or ParseOptions()
    text = normalize_newlines(text)
    target = grammar.rule(rule) if rule is not None else grammar.start_rule
    if target.params:
        raise ArityMismatch(target.id, 0, len(target.params), "start")

    deadline = time.monotonic() + opts.timeout if opts.timeout is not None else None
    m = Matcher(grammar, text, max_steps=opts.max_steps, deadline=deadline,
                memoize=opts.memoize, max_depth=opts.max_depth)
    try:
        ok, end, trace = m.run(grammar.index_of(target))
    except BudgetExceeded as e:
        return ResourceExceeded(e.reason, e.position, m.steps)

    lines = LineIndex(text)
    if ok and (not opts.require_full or end == len(text)):
        return ParseSuccess(build_tree(trace, lines), end)

    if ok:
        # matched a prefix only
        m.expect(end, END_OF_INPUT)
    pos = max(m.far, 0)
    line, col = lines.line_col(pos)
    return ParseFailure(FurthestFailure(
        position=pos,
        line=line,
        col=col,
        expected=tuple(sorted(m.expected)),
        rule_stack=m.far_stack,
        snippet=lines.snippet(pos),
        path=path,
    ))


@dataclass
class PegProgram:
    """Compiled grammar program."""
    grammar: Grammar

    @classmethod
    def from_source(cls, src: str, path: Optional[str] = None) -> "PegProgram":
        return cls(compile_grammar(src, path))

    @classmethod
    def from_files(cls, paths: Sequence[str], search_path: Sequence[str] = ()) -> "PegProgram":
        return cls(load_program(paths, search_path))


class PegRunner:
    """Execute a program on input texts with fixed options."""
    def __init__(self, program: PegProgram, options: Optional[ParseOptions] = None):
        self.program = program
        self.options = options or ParseOptions()

    def run(self, text: str, rule: Optional[str] = None, path: Optional[str] = None) -> ParseResult:
        return parse(self.program.grammar, text, rule, self.options, path)

# pegblock/peg/__init__.py
"""Matching side of pegblock.

This package provides:
- the match engine (ordered choice, lookahead, loops, random order, parametrized calls)
- the syntax tree and the reflection-driven builder
- `parse` / `PegProgram` / `PegRunner` entry points returning result values
"""

from .ast import SyntaxNode, SyntaxLeaf, build_tree
from .engine import Matcher, Trace, match_random_order
from .runtime import (
    ParseOptions, ParseSuccess, ParseFailure, ResourceExceeded, ParseError,
    parse, PegProgram, PegRunner,
)

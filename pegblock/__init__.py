# pegblock/__init__.py
"""pegblock: block-structured PEG grammars compiled and matched into syntax trees.

    >>> from pegblock import compile_grammar, parse
    >>> g = compile_grammar('[Main]{ + start Main.Digits  Digits <- [0-9]+, }')
    >>> parse(g, "123").unwrap().text
    '123'
"""

from .grammar import (
    Grammar, CompileError, UndefinedRule, DuplicateDefinition, ArityMismatch,
    MissingStart, MultipleStart, parse_grammar, link, compile_grammar, load_program,
)
from .peg import (
    SyntaxNode, SyntaxLeaf, ParseOptions, ParseSuccess, ParseFailure,
    ResourceExceeded, ParseError, parse, PegProgram, PegRunner,
)
from .diagnostics import FurthestFailure

__version__ = "0.1.0"

# pegblock/grammar/__init__.py
"""Grammar model and compiler: text -> parsed declarations -> linked Grammar."""

from .ast import (
    Span, Lookahead, Loop, Reflection,
    Literal, CharClass, Wildcard, RuleRef, ArgRef, Join,
    SeqElem, Seq, Choice, RuleDef, Import, Block, Grammar, GrammarFile,
)
from .errors import (
    CompileError, GrammarSyntaxError, UndefinedRule, UndefinedBlock, UndefinedArgument,
    DuplicateDefinition, ArityMismatch, MissingStart, MultipleStart,
    InvalidCharClass, InvalidLoopRange, InvalidRandomOrder,
)
from .parser import parse_grammar
from .transform import link, compile_grammar
from .loader import load_grammar_text, load_program, load_text, normalize_newlines

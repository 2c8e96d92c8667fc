# pegblock/grammar/ast.py
"""Grammar model.

Two layers live here:

- declarations (`GrammarFile`, `BlockDecl`, `UseDecl`, `StartDecl`,
  `RuleDecl`) as the bootstrap parser reads them, references unresolved;
- the compiled `Grammar`: an arena of `RuleDef`s whose `RuleRef`s point at
  arena indices. It is immutable once `transform.link` returns it.

Expression trees (`Choice` > `Seq` > `SeqElem` > item) are shared by both
layers; only `RuleRef.target` and `Join` differ after linking.
"""

from __future__     import annotations
from dataclasses    import dataclass, field
from types          import MappingProxyType
from typing         import Any, List, Mapping, Optional, Sequence, Tuple, Union

from .errors        import UndefinedRule


@dataclass(frozen=True)
class Span:
    start: int
    end: int
    line: int
    col: int
    path: Optional[str] = None

    def __str__(self) -> str:
        prefix = f"{self.path}:" if self.path else ""
        return f"{prefix}{self.line}:{self.col}"


class Lookahead:
    NONE     = "none"
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class Loop:
    """Repetition bounds; max=None is unbounded."""
    min: int = 1
    max: Optional[int] = 1

    @property
    def is_once(self) -> bool:
        return self.min == 1 and self.max == 1

    def __str__(self) -> str:
        if (self.min, self.max) == (0, 1):
            return "?"
        if (self.min, self.max) == (0, None):
            return "*"
        if (self.min, self.max) == (1, None):
            return "+"
        if self.is_once:
            return ""
        hi = "" if self.max is None else str(self.max)
        return f"{{{self.min},{hi}}}"


ONCE = Loop(1, 1)


@dataclass(frozen=True)
class Reflection:
    """AST reflection marker: omit (`#`), flatten (`##`) or name (`#Name`)."""
    kind: str
    name: Optional[str] = None

    OMIT    = "omit"
    FLATTEN = "flatten"
    NAME    = "name"

    def __str__(self) -> str:
        if self.kind == Reflection.OMIT:
            return "#"
        if self.kind == Reflection.FLATTEN:
            return "##"
        return f"#{self.name or ''}"


# ---- expressions ----

@dataclass(frozen=True)
class Literal:
    text: str
    span: Optional[Span] = field(default=None, compare=False)

    def __str__(self) -> str:
        body = self.text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
        return f'"{body}"'


@dataclass(frozen=True)
class CharClass:
    source: str     # including the brackets, as written
    pattern: Any = field(default=None, compare=False, repr=False)
    span: Optional[Span] = field(default=None, compare=False)

    def __str__(self) -> str:
        return self.source


@dataclass(frozen=True)
class Wildcard:
    span: Optional[Span] = field(default=None, compare=False)

    def __str__(self) -> str:
        return "."


@dataclass(frozen=True)
class RuleRef:
    chain: Tuple[str, ...]
    generics: Tuple["Choice", ...] = ()
    templates: Tuple["Choice", ...] = ()
    target: int = -1       # arena index once linked
    span: Optional[Span] = field(default=None, compare=False)

    @property
    def name(self) -> str:
        return ".".join(self.chain)

    def __str__(self) -> str:
        out = self.name
        if self.generics:
            out += "<" + ", ".join(map(str, self.generics)) + ">"
        if self.templates:
            out += "(" + ", ".join(map(str, self.templates)) + ")"
        return out


@dataclass(frozen=True)
class ArgRef:
    name: str
    span: Optional[Span] = field(default=None, compare=False)

    def __str__(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class Join:
    """Builtin JOIN<arg>: one leaf with the text of the reflected leaves."""
    arg: "Choice"
    span: Optional[Span] = field(default=None, compare=False)

    def __str__(self) -> str:
        return f"JOIN<{self.arg}>"


Expr = Union[Literal, CharClass, Wildcard, RuleRef, ArgRef, Join]


@dataclass(frozen=True)
class SeqElem:
    item: Union[Expr, "Choice"]
    lookahead: str = Lookahead.NONE
    loop: Loop = ONCE
    random: Optional[Loop] = None
    reflect: Optional[Reflection] = None
    span: Optional[Span] = field(default=None, compare=False)

    def __str__(self) -> str:
        prefix = {Lookahead.POSITIVE: "&", Lookahead.NEGATIVE: "!"}.get(self.lookahead, "")
        body = f"({self.item})" if isinstance(self.item, Choice) else str(self.item)
        out = prefix + body + str(self.loop)
        if self.random is not None:
            out += "^" + ("" if self.random.is_once else str(self.random))
        if self.reflect is not None:
            out += str(self.reflect)
        return out


@dataclass(frozen=True)
class Seq:
    elems: Tuple[SeqElem, ...]

    def __str__(self) -> str:
        return " ".join(map(str, self.elems))


@dataclass(frozen=True)
class Choice:
    alts: Tuple[Seq, ...]

    def __str__(self) -> str:
        return " : ".join(map(str, self.alts))


# ---- declarations (bootstrap parser output) ----

@dataclass
class RuleDecl:
    name: str
    generics: List[str]
    templates: List[str]
    body: Choice
    span: Optional[Span] = None


@dataclass
class UseDecl:
    target: str
    alias: Optional[str] = None
    span: Optional[Span] = None


@dataclass
class StartDecl:
    chain: Tuple[str, ...]
    span: Optional[Span] = None


@dataclass
class BlockDecl:
    name: str
    rules: List[RuleDecl] = field(default_factory=list)
    uses: List[UseDecl] = field(default_factory=list)
    starts: List[StartDecl] = field(default_factory=list)
    span: Optional[Span] = None


@dataclass
class GrammarFile:
    text: str
    path: Optional[str] = None
    blocks: List[BlockDecl] = field(default_factory=list)


# ---- compiled model ----

@dataclass(frozen=True)
class RuleDef:
    name: str
    block: str
    generics: Tuple[str, ...]
    templates: Tuple[str, ...]
    body: Choice
    span: Optional[Span] = field(default=None, compare=False)

    @property
    def id(self) -> str:
        return f"{self.block}.{self.name}"

    @property
    def params(self) -> Tuple[str, ...]:
        return self.generics + self.templates

    def __str__(self) -> str:
        head = self.name
        if self.generics:
            head += "<" + ", ".join(self.generics) + ">"
        if self.templates:
            head += "(" + ", ".join(self.templates) + ")"
        return f"{head} <- {self.body},"


@dataclass(frozen=True)
class Import:
    target: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class Block:
    name: str
    rules: Mapping[str, int]       # local rule name -> arena index
    imports: Tuple[Import, ...]
    visible: Mapping[str, str]     # qualifier usable in this block -> block name


def lookup_rule(blocks: Mapping[str, Block], block: str, chain: Sequence[str]) -> Optional[int]:
    """Arena index of `chain` as seen from `block`, or None."""
    home = blocks[block]
    if len(chain) == 1:
        return home.rules.get(chain[0])
    if len(chain) == 2:
        target = home.visible.get(chain[0])
        if target is None:
            return None
        return blocks[target].rules.get(chain[1])
    return None


def frozen_map(d) -> Mapping:
    return MappingProxyType(dict(d))


@dataclass(frozen=True)
class Grammar:
    blocks: Mapping[str, Block]
    rules: Tuple[RuleDef, ...]
    start: int

    @property
    def start_rule(self) -> RuleDef:
        return self.rules[self.start]

    def resolve(self, name: Union[str, Sequence[str]], block: str, span: Optional[Span] = None) -> RuleDef:
        """Resolve a (possibly qualified) name as written inside `block`."""
        chain = tuple(name.split(".")) if isinstance(name, str) else tuple(name)
        if block not in self.blocks:
            raise UndefinedRule(".".join(chain), span)
        idx = lookup_rule(self.blocks, block, chain)
        if idx is None:
            raise UndefinedRule(".".join(chain), span)
        return self.rules[idx]

    def rule(self, rule_id: str) -> RuleDef:
        """Fetch by id: `Block.Rule`, or a bare name in the start rule's block."""
        chain = rule_id.split(".")
        if len(chain) == 2 and chain[0] in self.blocks:
            idx = self.blocks[chain[0]].rules.get(chain[1])
            if idx is not None:
                return self.rules[idx]
            raise UndefinedRule(rule_id)
        return self.resolve(chain, self.start_rule.block)

    def index_of(self, rule: RuleDef) -> int:
        return self.blocks[rule.block].rules[rule.name]

    def __str__(self) -> str:
        lines = []
        for blk in self.blocks.values():
            lines.append(f"[{blk.name}]{{")
            for imp in blk.imports:
                lines.append(f"    + use {imp.target}" + (f" as {imp.alias}" if imp.alias else ""))
            if self.start_rule.block == blk.name:
                lines.append(f"    + start {self.start_rule.id}")
            for idx in blk.rules.values():
                lines.append(f"    {self.rules[idx]}")
            lines.append("}")
        return "\n".join(lines)

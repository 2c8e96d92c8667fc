# pegblock/grammar/transform.py
"""Link parsed grammar files into one immutable `Grammar`.

Passes, in order:
  1) register blocks and their local rule names (duplicates are errors)
  2) expand `+ use` into each block's visible-qualifier table
  3) find the single `+ start` directive
  4) rewrite every rule body: RuleRef -> arena index (arity checked),
     `$Param` checked against the enclosing rule, JOIN<...> -> Join
Rules are numbered in declaration order, so linking is deterministic.
"""

from __future__     import annotations
from typing         import Dict, List, Optional, Sequence, Tuple

from .ast           import *
from .errors        import (
    ArityMismatch, DuplicateDefinition, MissingStart, MultipleStart,
    UndefinedArgument, UndefinedBlock, UndefinedRule,
)
from .parser        import parse_grammar
from ..diagnostics  import caret_snippet

JOIN = "JOIN"


class _Linker:
    def __init__(self, files: Sequence[GrammarFile]):
        self.files = list(files)
        self.texts: Dict[Optional[str], str] = {f.path: f.text for f in self.files}
        self.decls: Dict[str, BlockDecl] = {}
        self.blocks: Dict[str, Block] = {}
        self.order: List[Tuple[str, RuleDecl]] = []

    def snippet(self, span: Optional[Span]) -> str:
        if span is None:
            return ""
        text = self.texts.get(span.path)
        return caret_snippet(text, span.start) if text is not None else ""

    # ---- 1) blocks and rule names ----
    def register(self) -> Dict[str, Dict[str, int]]:
        local: Dict[str, Dict[str, int]] = {}
        for f in self.files:
            for bd in f.blocks:
                if bd.name in self.decls:
                    raise DuplicateDefinition(bd.name, "block", bd.span, self.snippet(bd.span))
                self.decls[bd.name] = bd
                names: Dict[str, int] = {}
                for rd in bd.rules:
                    if rd.name in names:
                        raise DuplicateDefinition(f"{bd.name}.{rd.name}", "rule", rd.span, self.snippet(rd.span))
                    seen = set()
                    for p in rd.generics + rd.templates:
                        if p in seen:
                            raise DuplicateDefinition(p, "parameter", rd.span, self.snippet(rd.span))
                        seen.add(p)
                    names[rd.name] = len(self.order)
                    self.order.append((bd.name, rd))
                local[bd.name] = names
        return local

    # ---- 2) imports ----
    def expand_uses(self, local: Dict[str, Dict[str, int]]) -> None:
        for name, bd in self.decls.items():
            visible: Dict[str, str] = {name: name}
            imports: List[Import] = []
            for use in bd.uses:
                if use.target not in self.decls:
                    raise UndefinedBlock(use.target, use.span, self.snippet(use.span))
                qualifier = use.alias or use.target
                if qualifier in visible and visible[qualifier] != use.target:
                    raise DuplicateDefinition(qualifier, "import", use.span, self.snippet(use.span))
                visible[qualifier] = use.target
                imports.append(Import(use.target, use.alias))
            self.blocks[name] = Block(name, frozen_map(local[name]), tuple(imports), frozen_map(visible))

    # ---- 3) start ----
    def find_start(self) -> int:
        found: Optional[Tuple[str, StartDecl]] = None
        for name, bd in self.decls.items():
            for sd in bd.starts:
                if found is not None:
                    raise MultipleStart(found[1].span, sd.span, self.snippet(sd.span))
                found = (name, sd)
        if found is None:
            raise MissingStart()
        block, sd = found
        idx = lookup_rule(self.blocks, block, sd.chain)
        if idx is None:
            raise UndefinedRule(".".join(sd.chain), sd.span, self.snippet(sd.span))
        _, rd = self.order[idx]
        if rd.generics or rd.templates:
            got = len(rd.generics) + len(rd.templates)
            raise ArityMismatch(".".join(sd.chain), 0, got, "start", sd.span, self.snippet(sd.span))
        return idx

    # ---- 4) bodies ----
    def link_choice(self, c: Choice, block: str, rd: RuleDecl) -> Choice:
        return Choice(tuple(
            Seq(tuple(self.link_elem(e, block, rd) for e in s.elems)) for s in c.alts
        ))

    def link_elem(self, e: SeqElem, block: str, rd: RuleDecl) -> SeqElem:
        item = e.item
        if isinstance(item, Choice):
            item = self.link_choice(item, block, rd)
        elif isinstance(item, RuleRef):
            item = self.link_ref(item, block, rd)
        elif isinstance(item, ArgRef):
            if item.name not in rd.generics and item.name not in rd.templates:
                raise UndefinedArgument(item.name, f"{block}.{rd.name}", item.span, self.snippet(item.span))
        return SeqElem(item, e.lookahead, e.loop, e.random, e.reflect, e.span)

    def link_ref(self, ref: RuleRef, block: str, rd: RuleDecl):
        generics = tuple(self.link_choice(a, block, rd) for a in ref.generics)
        templates = tuple(self.link_choice(a, block, rd) for a in ref.templates)
        idx = lookup_rule(self.blocks, block, ref.chain)

        if idx is None and ref.chain == (JOIN,):
            if len(generics) != 1:
                raise ArityMismatch(JOIN, 1, len(generics), "generic", ref.span, self.snippet(ref.span))
            if templates:
                raise ArityMismatch(JOIN, 0, len(templates), "template", ref.span, self.snippet(ref.span))
            return Join(generics[0], ref.span)

        if idx is None:
            raise UndefinedRule(ref.name, ref.span, self.snippet(ref.span))

        callee_block, callee = self.order[idx]
        callee_id = f"{callee_block}.{callee.name}"
        if len(generics) != len(callee.generics):
            raise ArityMismatch(callee_id, len(callee.generics), len(generics), "generic",
                                ref.span, self.snippet(ref.span))
        if len(templates) != len(callee.templates):
            raise ArityMismatch(callee_id, len(callee.templates), len(templates), "template",
                                ref.span, self.snippet(ref.span))
        return RuleRef(ref.chain, generics, templates, idx, ref.span)

    def link(self) -> Grammar:
        local = self.register()
        self.expand_uses(local)
        start = self.find_start()
        rules = tuple(
            RuleDef(rd.name, block, tuple(rd.generics), tuple(rd.templates),
                    self.link_choice(rd.body, block, rd), rd.span)
            for block, rd in self.order
        )
        return Grammar(frozen_map(self.blocks), rules, start)


def link(files: Sequence[GrammarFile]) -> Grammar:
    """Resolve a whole program (one or more parsed files) into a Grammar."""
    return _Linker(files).link()


def compile_grammar(src: str, path: Optional[str] = None) -> Grammar:
    """Parse and link a single grammar source."""
    return link([parse_grammar(src, path)])

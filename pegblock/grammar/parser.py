# pegblock/grammar/parser.py
"""Bootstrap parser for grammar sources.

The grammar language describes itself (see grammars/syntax.peg), but the
compiler does not derive its parser from that file: it is a hand-written
recursive descent over a small fixed set of productions.

    file      := (block | ",")*
    block     := "[" NAME "]" "{" item* "}"
    item      := "+" directive | rule | ","
    directive := "use" NAME ("as" NAME)? ","?  |  "start" NAME ","?
    rule      := NAME params "<-" choice ","
    choice    := seq (":" seq)*
    seq       := elem+
    elem      := ("&"|"!")? primary loop? random? reflect?
    primary   := STRING | CLASS | "." | ARG | "(" choice ")" | NAME args
    loop      := "?" | "*" | "+" | "{" NUM? ("," NUM?)? "}"
    random    := "^" ("{" NUM? ("," NUM?)? "}")?
    reflect   := "##" | "#" NAME?

Comments (`% text ,`) and whitespace never reach the parser. Three places
need two tokens to touch: `Name<...>` / `Name(...)` (arguments or
parameters) and `#Name` (named reflection).
"""

from __future__ import annotations
import regex as re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .ast import *
from .errors import GrammarSyntaxError, InvalidCharClass, InvalidLoopRange, InvalidRandomOrder
from ..diagnostics import caret_snippet

# ---- scanner tokens ----
_TOKEN_SPEC = [
    ("WS",       r"[ \t\f\r\n]+"),
    ("COMMENT",  r"%[^,\n]*,?"),
    ("ARROW",    r"<-"),
    ("STRING",   r'"(?:\\.|[^"\\\n])*"'),
    ("CLASS",    r"\[(?:\\.|[^\]\\\n])*\]"),
    ("ARG",      r"\$[A-Za-z_][A-Za-z0-9_]*"),
    ("NAME",     r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*"),
    ("NUMBER",   r"[0-9]+"),
    ("HASH2",    r"##"),
    ("HASH",     r"#"),
    ("LT",       r"<"),
    ("GT",       r">"),
    ("LPAREN",   r"\("),
    ("RPAREN",   r"\)"),
    ("LBRACE",   r"\{"),
    ("RBRACE",   r"\}"),
    ("COMMA",    r","),
    ("COLON",    r":"),
    ("AMP",      r"&"),
    ("BANG",     r"!"),
    ("QMARK",    r"\?"),
    ("STAR",     r"\*"),
    ("PLUS",     r"\+"),
    ("CARET",    r"\^"),
    ("DOT",      r"\."),
]
MASTER_RE = re.compile("|".join(f"(?P<{n}>{p})" for n, p in _TOKEN_SPEC))

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# kinds that may begin a sequence element
_ELEM_START = ("STRING", "CLASS", "DOT", "ARG", "LPAREN", "NAME", "AMP", "BANG")

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", '"': '"'}
_ESCAPE_RE = re.compile(r"\\(x[0-9A-Fa-f]{2}|u[0-9A-Fa-f]{4}|.)", re.S)


@dataclass
class Tok:
    kind: str
    lexeme: str
    start: int
    end: int
    line: int
    col: int


def _scan(src: str, path: Optional[str] = None) -> List[Tok]:
    """Whitespace and comments only advance line/col; they are not emitted."""
    toks: List[Tok] = []
    line = col = 1
    i = 0
    while i < len(src):
        m = MASTER_RE.match(src, i)
        if not m:
            raise GrammarSyntaxError(
                f"Unexpected char {src[i]!r}", Span(i, i + 1, line, col, path), caret_snippet(src, i)
            )
        kind = m.lastgroup or ""
        lex = m.group(0)
        start, end = i, m.end()

        if kind not in ("WS", "COMMENT"):
            toks.append(Tok(kind, lex, start, end, line, col))

        nl_count = lex.count("\n")
        if nl_count:
            line += nl_count
            col = len(lex) - lex.rfind("\n")
        else:
            col += len(lex)
        i = end

    toks.append(Tok("EOF", "", len(src), len(src), line, col))
    return toks


def _unescape(body: str) -> str:
    def sub(m) -> str:
        esc = m.group(1)
        if esc[0] in "xu" and len(esc) > 1:
            return chr(int(esc[1:], 16))
        return _ESCAPES.get(esc, esc)
    return _ESCAPE_RE.sub(sub, body)


# --- token stream ---
class _TS:
    def __init__(self, toks: List[Tok], src: str, path: Optional[str]):
        self.toks = toks
        self.i = 0
        self.src = src
        self.path = path

    def la(self, k: int = 0) -> Tok:
        return self.toks[min(self.i + k, len(self.toks) - 1)]

    def prev(self) -> Tok:
        return self.toks[self.i - 1]

    def span(self, tok: Tok, end: Optional[int] = None) -> Span:
        return Span(tok.start, tok.end if end is None else end, tok.line, tok.col, self.path)

    def error(self, msg: str, tok: Tok) -> GrammarSyntaxError:
        return GrammarSyntaxError(msg, self.span(tok), caret_snippet(self.src, tok.start))

    def eat(self, kind: str) -> Tok:
        t = self.la()
        if t.kind != kind:
            raise self.error(f"Expected {kind}, got {t.kind}", t)
        self.i += 1
        return t

    def match(self, kind: str) -> Optional[Tok]:
        if self.la().kind == kind:
            return self.eat(kind)
        return None

    def touching(self, kind: str) -> Optional[Tok]:
        """Consume the next token only if it is `kind` and directly follows the previous one."""
        t = self.la()
        if t.kind == kind and t.start == self.prev().end:
            self.i += 1
            return t
        return None

    def keyword(self, word: str) -> Tok:
        t = self.la()
        if t.kind != "NAME" or t.lexeme != word:
            raise self.error(f"Expected '{word}', got {t.lexeme or t.kind}", t)
        self.i += 1
        return t


def _require_comma(ts: _TS, context: str, example: str) -> None:
    """Rule definitions end with ','. Caret goes where the comma belongs."""
    if ts.match("COMMA"):
        return
    got = ts.la()
    anchor = ts.prev()
    found = "EOF" if got.kind == "EOF" else got.kind
    raise GrammarSyntaxError(
        f"Missing ',' after {context}\n"
        f"- Found: {found} at {got.line}:{got.col}\n"
        f"- Example: {example}",
        Span(anchor.end, anchor.end, anchor.line, anchor.col, ts.path),
        caret_snippet(ts.src, anchor.end),
    )


def _simple_name(ts: _TS, tok: Tok) -> str:
    if "." in tok.lexeme:
        raise ts.error(f"Expected a plain identifier, got '{tok.lexeme}'", tok)
    return tok.lexeme


# --- grammar file ---
def parse_grammar(src: str, path: Optional[str] = None) -> GrammarFile:
    ts = _TS(_scan(src, path), src, path)
    gf = GrammarFile(text=src, path=path)

    while ts.la().kind != "EOF":
        if ts.match("COMMA"):
            continue
        t = ts.la()
        if t.kind != "CLASS":
            raise ts.error(f"Expected block header [Name], got {t.lexeme or t.kind}", t)
        gf.blocks.append(_parse_block(ts))
    return gf


def _parse_block(ts: _TS) -> BlockDecl:
    head = ts.eat("CLASS")
    name = head.lexeme[1:-1].strip()
    if not _IDENT_RE.fullmatch(name):
        raise ts.error(f"Invalid block name {name!r}", head)
    ts.eat("LBRACE")
    blk = BlockDecl(name=name, span=ts.span(head))

    while True:
        t = ts.la()
        if t.kind == "RBRACE":
            ts.eat("RBRACE")
            return blk
        if t.kind == "COMMA":
            ts.eat("COMMA")
        elif t.kind == "PLUS":
            _parse_directive(ts, blk)
        elif t.kind == "NAME":
            blk.rules.append(_parse_rule(ts))
        elif t.kind == "EOF":
            raise ts.error(f"Unterminated block [{name}] (missing '}}')", head)
        else:
            raise ts.error(f"Expected rule, directive or '}}', got {t.lexeme or t.kind}", t)


def _parse_directive(ts: _TS, blk: BlockDecl) -> None:
    """+ use X [as Y]  |  + start X.Y"""
    plus = ts.eat("PLUS")
    kw = ts.eat("NAME")
    if kw.lexeme == "use":
        target_tok = ts.eat("NAME")
        target = _simple_name(ts, target_tok)
        alias: Optional[str] = None
        t = ts.la()
        if t.kind == "NAME" and t.lexeme == "as" and ts.la(1).kind == "NAME" and ts.la(2).kind != "ARROW":
            ts.keyword("as")
            alias = _simple_name(ts, ts.eat("NAME"))
        blk.uses.append(UseDecl(target, alias, ts.span(plus, ts.prev().end)))
    elif kw.lexeme == "start":
        target_tok = ts.eat("NAME")
        blk.starts.append(StartDecl(tuple(target_tok.lexeme.split(".")), ts.span(target_tok)))
    else:
        raise ts.error(f"Unknown directive '+ {kw.lexeme}'", kw)
    ts.match("COMMA")


def _name_list(ts: _TS, close: str) -> List[str]:
    names = [_simple_name(ts, ts.eat("NAME"))]
    while ts.match("COMMA"):
        names.append(_simple_name(ts, ts.eat("NAME")))
    ts.eat(close)
    return names


def _parse_rule(ts: _TS) -> RuleDecl:
    name_tok = ts.eat("NAME")
    name = _simple_name(ts, name_tok)
    generics: List[str] = []
    templates: List[str] = []
    if ts.touching("LT"):
        generics = _name_list(ts, "GT")
    if ts.touching("LPAREN"):
        templates = _name_list(ts, "RPAREN")
    ts.eat("ARROW")
    body = _parse_choice(ts)
    _require_comma(ts, f"rule '{name}'", f"{name} <- ... ,")
    return RuleDecl(name, generics, templates, body, ts.span(name_tok))


# --- expressions ---
def _parse_choice(ts: _TS) -> Choice:
    alts = [_parse_seq(ts)]
    while ts.match("COLON"):
        alts.append(_parse_seq(ts))
    return Choice(tuple(alts))


def _parse_seq(ts: _TS) -> Seq:
    items: List[SeqElem] = []
    while ts.la().kind in _ELEM_START:
        items.append(_parse_elem(ts))
    if not items:
        t = ts.la()
        raise ts.error(f"Expected an expression, got {t.lexeme or t.kind}", t)
    return Seq(tuple(items))


def _parse_elem(ts: _TS) -> SeqElem:
    first = ts.la()
    lookahead = Lookahead.NONE
    if ts.match("AMP"):
        lookahead = Lookahead.POSITIVE
    elif ts.match("BANG"):
        lookahead = Lookahead.NEGATIVE

    item = _parse_primary(ts)

    loop = ONCE
    if ts.match("QMARK"):
        loop = Loop(0, 1)
    elif ts.match("STAR"):
        loop = Loop(0, None)
    elif ts.match("PLUS"):
        loop = Loop(1, None)
    elif ts.la().kind == "LBRACE":
        loop = _parse_range(ts)

    random: Optional[Loop] = None
    caret = ts.match("CARET")
    if caret is not None:
        nxt = ts.la()
        random = _parse_range(ts) if nxt.kind == "LBRACE" and nxt.start == caret.end else ONCE
        if not isinstance(item, Choice):
            raise InvalidRandomOrder(
                "Random-order '^' needs a parenthesized choice",
                ts.span(caret), caret_snippet(ts.src, caret.start),
            )

    reflect: Optional[Reflection] = None
    if ts.match("HASH2"):
        reflect = Reflection(Reflection.FLATTEN)
    elif ts.match("HASH"):
        name_tok = ts.touching("NAME")
        if name_tok is not None:
            reflect = Reflection(Reflection.NAME, _simple_name(ts, name_tok))
        else:
            reflect = Reflection(Reflection.OMIT)

    return SeqElem(item, lookahead, loop, random, reflect, ts.span(first, ts.prev().end))


def _parse_range(ts: _TS) -> Loop:
    """{n} | {min,} | {,max} | {min,max} | {,}"""
    lb = ts.eat("LBRACE")
    lo_tok = ts.match("NUMBER")
    if ts.match("COMMA"):
        hi_tok = ts.match("NUMBER")
        lo = int(lo_tok.lexeme) if lo_tok else 0
        hi: Optional[int] = int(hi_tok.lexeme) if hi_tok else None
    else:
        if lo_tok is None:
            raise ts.error("Expected a repetition count", ts.la())
        lo = hi = int(lo_tok.lexeme)
    ts.eat("RBRACE")
    if hi is not None and lo > hi:
        raise InvalidLoopRange(
            f"Invalid loop range {{{lo},{hi}}}", ts.span(lb, ts.prev().end), caret_snippet(ts.src, lb.start)
        )
    return Loop(lo, hi)


def _parse_args(ts: _TS, close: str) -> Tuple[Choice, ...]:
    args = [_parse_choice(ts)]
    while ts.match("COMMA"):
        args.append(_parse_choice(ts))
    ts.eat(close)
    return tuple(args)


def _parse_primary(ts: _TS):
    t = ts.la()
    if t.kind == "STRING":
        ts.eat("STRING")
        return Literal(_unescape(t.lexeme[1:-1]), ts.span(t))
    if t.kind == "CLASS":
        ts.eat("CLASS")
        try:
            pattern = re.compile(t.lexeme)
        except re.error as e:
            raise InvalidCharClass(
                f"Invalid character class {t.lexeme} ({e})", ts.span(t), caret_snippet(ts.src, t.start)
            )
        return CharClass(t.lexeme, pattern, ts.span(t))
    if t.kind == "DOT":
        ts.eat("DOT")
        return Wildcard(ts.span(t))
    if t.kind == "ARG":
        ts.eat("ARG")
        return ArgRef(t.lexeme[1:], ts.span(t))
    if t.kind == "LPAREN":
        ts.eat("LPAREN")
        inner = _parse_choice(ts)
        ts.eat("RPAREN")
        return inner
    if t.kind == "NAME":
        ts.eat("NAME")
        generics: Tuple[Choice, ...] = ()
        templates: Tuple[Choice, ...] = ()
        if ts.touching("LT"):
            generics = _parse_args(ts, "GT")
        if ts.touching("LPAREN"):
            templates = _parse_args(ts, "RPAREN")
        return RuleRef(tuple(t.lexeme.split(".")), generics, templates, span=ts.span(t))
    raise ts.error(f"Unexpected token {t.lexeme or t.kind}", t)

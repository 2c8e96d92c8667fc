# pegblock/peg/ast.py
"""Syntax tree produced by a successful parse, and the builder that shapes it.

Reflection policy per matched item:

    item            no marker              #      ##       #Name
    rule reference  node named after rule  omit   splice   node "Name"
    ( group )       unnamed node           omit   splice   node "Name"
    $Param          splice                 omit   splice   node "Name"
    "lit" [c] . JOIN unnamed leaf          omit   leaf     leaf "Name"

Unnamed group nodes with no children are dropped.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from ..grammar.ast import Reflection
from ..diagnostics import LineIndex
from .engine import Trace


@dataclass
class SyntaxLeaf:
    value: str
    name: str = ""
    start: int = 0
    end: int = 0
    line: int = 1
    col: int = 1

    @property
    def text(self) -> str:
        return self.value

    @property
    def children(self) -> List["Element"]:
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "span": [self.start, self.end]}

    def _pretty(self, nest: int, out: List[str]) -> None:
        value = self.value.replace("\\", "\\\\").replace("\n", "\\n").replace("\t", "\\t")
        label = f" ({self.name})" if self.name else ""
        out.append(f"|{'   |' * nest}- \"{value}\" {self.line}:{self.col}{label}")


@dataclass
class SyntaxNode:
    name: str
    children: List["Element"] = field(default_factory=list)
    start: int = 0
    end: int = 0
    line: int = 1
    col: int = 1

    @property
    def text(self) -> str:
        """Concatenated values of every leaf below this node."""
        return "".join(leaf.value for leaf in self.leaves())

    def nodes(self) -> List["SyntaxNode"]:
        return [c for c in self.children if isinstance(c, SyntaxNode)]

    def find(self, name: str) -> Optional["Element"]:
        """First direct child called `name`."""
        for c in self.children:
            if c.name == name:
                return c
        return None

    def find_all(self, name: str) -> List["Element"]:
        return [c for c in self.children if c.name == name]

    def walk(self) -> Iterator["Element"]:
        """Pre-order traversal, self first."""
        yield self
        for c in self.children:
            if isinstance(c, SyntaxNode):
                yield from c.walk()
            else:
                yield c

    def leaves(self) -> Iterator[SyntaxLeaf]:
        for c in self.walk():
            if isinstance(c, SyntaxLeaf):
                yield c

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "span": [self.start, self.end],
            "children": [c.to_dict() for c in self.children],
        }

    def pretty(self) -> str:
        out: List[str] = []
        self._pretty(0, out)
        return "\n".join(out)

    def _pretty(self, nest: int, out: List[str]) -> None:
        out.append(f"|{'   |' * nest} {self.name or '[noname]'}")
        for c in self.children:
            c._pretty(nest + 1, out)


Element = Union[SyntaxNode, SyntaxLeaf]


def build_tree(root: Trace, lines: LineIndex) -> SyntaxNode:
    """Root is always a node named after the start rule."""
    line, col = lines.line_col(root.start)
    return SyntaxNode(root.name, build_nodes(root.children, lines), root.start, root.end, line, col)


def build_nodes(traces: List[Trace], lines: Optional[LineIndex] = None) -> List[Element]:
    out: List[Element] = []
    for t in traces:
        out.extend(_build(t, lines))
    return out


def _build(t: Trace, lines: Optional[LineIndex]) -> List[Element]:
    policy = t.reflect
    if policy is not None and policy.kind == Reflection.OMIT:
        return []
    line, col = lines.line_col(t.start) if lines is not None else (1, 1)
    named = policy is not None and policy.kind == Reflection.NAME

    if t.kind == "leaf":
        return [SyntaxLeaf(t.value, policy.name if named else "", t.start, t.end, line, col)]

    children = build_nodes(t.children, lines)
    if named:
        return [SyntaxNode(policy.name or t.name, children, t.start, t.end, line, col)]
    if policy is not None and policy.kind == Reflection.FLATTEN:
        return children
    if t.kind == "rule":
        return [SyntaxNode(t.name, children, t.start, t.end, line, col)]
    if t.kind == "arg" or not children:
        return children
    return [SyntaxNode("", children, t.start, t.end, line, col)]

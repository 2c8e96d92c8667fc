""" Reflection markers and the shape of the syntax tree. """
import unittest

from pegblock import SyntaxLeaf, SyntaxNode, compile_grammar, parse
from pegblock.grammar import Reflection
from pegblock.peg import Trace
from pegblock.peg.ast import build_nodes


def tree(text: str, *rules: str) -> SyntaxNode:
    g = compile_grammar("[Main]{ + start Main.A  " + " ".join(rules) + " }")
    return parse(g, text).unwrap()


def shape(node):
    """(name, [children...]) for nodes, value for leaves."""
    if isinstance(node, SyntaxLeaf):
        return node.value
    return node.name, [shape(c) for c in node.children]


class TestReflection(unittest.TestCase):
    def test_00_rule_reference_makes_a_named_node(self):
        t = tree("bc", 'A <- B "c",', 'B <- "b",')
        self.assertEqual(("A", [("B", ["b"]), "c"]), shape(t))

    def test_01_flatten_repeated_group(self):
        rules = ('A <- (Item ","#)*##,', "Item <- [a-z],")
        t = tree("a,b,c,", *rules)
        self.assertEqual(3, len(t.children))
        self.assertEqual(["Item"] * 3, [c.name for c in t.children])
        # without the marker every repetition gets its own wrapper
        t = tree("a,b,c,", 'A <- (Item ","#)*,', "Item <- [a-z],")
        self.assertEqual([("", [("Item", ["a"])]), ("", [("Item", ["b"])]), ("", [("Item", ["c"])])],
                         [shape(c) for c in t.children])

    def test_02_omit(self):
        t = tree("(b)", 'A <- "("# B ")"#,', 'B <- "b",')
        self.assertEqual(("A", [("B", ["b"])]), shape(t))
        t = tree("bb", "A <- B# B,", 'B <- "b",')
        self.assertEqual(("A", [("B", ["b"])]), shape(t))

    def test_03_names(self):
        t = tree("bb", "A <- B#first B#second,", 'B <- "b",')
        self.assertEqual(["first", "second"], [c.name for c in t.children])
        t = tree("x", 'A <- "x"#tag,')
        (leaf,) = t.children
        self.assertEqual(("tag", "x"), (leaf.name, leaf.value))
        t = tree("xy", 'A <- ("x" "y")#pair,')
        self.assertEqual(("A", [("pair", ["x", "y"])]), shape(t))

    def test_04_flattened_rule(self):
        t = tree("bc", "A <- B##,", 'B <- "b" "c",')
        self.assertEqual(("A", ["b", "c"]), shape(t))

    def test_05_empty_groups_are_dropped_rules_are_kept(self):
        t = tree("xy", 'A <- ("x"#) ("z")? "y",')
        self.assertEqual(("A", ["y"]), shape(t))
        t = tree("y", 'A <- E "y",', 'E <- "e"?,')
        self.assertEqual(("A", [("E", []), "y"]), shape(t))

    def test_06_arguments_splice_unless_named(self):
        t = tree("ab", 'A <- W<"a" "b">,', "W<X> <- $X,")
        self.assertEqual(("A", [("W", ["a", "b"])]), shape(t))
        t = tree("ab", 'A <- W<"a" "b">,', "W<X> <- $X#inner,")
        self.assertEqual(("A", [("W", [("inner", ["a", "b"])])]), shape(t))
        t = tree("ab", 'A <- W<"a" "b">,', "W<X> <- $X#,")
        self.assertEqual(("A", [("W", [])]), shape(t))

    def test_07_join(self):
        t = tree("ab-cd", 'A <- JOIN<[a-z]+ ("-"# [a-z]+)?>,')
        (leaf,) = t.children
        self.assertIsInstance(leaf, SyntaxLeaf)
        self.assertEqual("abcd", leaf.value)
        self.assertEqual((0, 5), (leaf.start, leaf.end))
        t = tree("42", "A <- JOIN<Digit+>#num,", "Digit <- [0-9],")
        self.assertEqual(("num", "42"), (t.children[0].name, t.children[0].value))

    def test_08_builder_on_raw_traces(self):
        traces = [
            Trace("leaf", 0, 1, Reflection(Reflection.OMIT), value="("),
            Trace("rule", 1, 2, None, name="B", children=[Trace("leaf", 1, 2, value="b")]),
            Trace("group", 2, 4, Reflection(Reflection.FLATTEN), children=[
                Trace("leaf", 2, 3, value="c"), Trace("leaf", 3, 4, value="d"),
            ]),
        ]
        out = build_nodes(traces)
        self.assertEqual([("B", ["b"]), "c", "d"], [shape(e) for e in out])


class TestSyntaxNode(unittest.TestCase):
    def setUp(self):
        self.t = tree("ab\ncd", 'A <- Line ("\\n"# Line)*##,', "Line <- Word,", "Word <- JOIN<[a-z]+>,")

    def test_00_positions(self):
        first, second = self.t.children
        self.assertEqual((1, 1, 0, 2), (first.line, first.col, first.start, first.end))
        self.assertEqual((2, 1, 3, 5), (second.line, second.col, second.start, second.end))
        self.assertEqual((0, 5), (self.t.start, self.t.end))

    def test_01_queries(self):
        self.assertEqual("abcd", self.t.text)
        self.assertEqual(2, len(self.t.find_all("Line")))
        self.assertEqual("ab", self.t.find("Line").text)
        self.assertIsNone(self.t.find("Word"))
        self.assertEqual(["A", "Line", "Word", "ab", "Line", "Word", "cd"],
                         [e.name if isinstance(e, SyntaxNode) else e.value for e in self.t.walk()])
        self.assertEqual(["ab", "cd"], [leaf.value for leaf in self.t.leaves()])
        self.assertEqual(2, len(self.t.nodes()))

    def test_02_pretty(self):
        t = tree("bc", 'A <- B "c",', 'B <- "b",')
        self.assertEqual(
            '| A\n'
            '|   | B\n'
            '|   |   |- "b" 1:1\n'
            '|   |- "c" 1:2',
            t.pretty(),
        )
        t = tree("\n", 'A <- "\\n"#nl,')
        self.assertEqual('| A\n|   |- "\\n" 1:1 (nl)', t.pretty())

    def test_03_to_dict(self):
        t = tree("bc", 'A <- B "c",', 'B <- "b",')
        self.assertEqual(
            {"name": "A", "span": [0, 2], "children": [
                {"name": "B", "span": [0, 1], "children": [{"name": "", "value": "b", "span": [0, 1]}]},
                {"name": "", "value": "c", "span": [1, 2]},
            ]},
            t.to_dict(),
        )


if __name__ == "__main__":
    unittest.main()

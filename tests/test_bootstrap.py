""" grammars/syntax.peg describes the grammar language; check it against the bootstrap parser. """
import unittest
from pathlib import Path

import pegblock
from pegblock import ParseOptions, parse
from pegblock.grammar import load_grammar_text, load_program

GRAMMARS = Path(pegblock.__file__).parent / "grammars"


def texts(nodes, child):
    return [n.find(child).text for n in nodes]


class TestSelfDescription(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.syntax = load_program([str(GRAMMARS / "syntax.peg")])

    def read(self, name):
        return load_grammar_text(str(GRAMMARS / name))

    def test_00_compiles(self):
        self.assertEqual("Syntax.File", self.syntax.start_rule.id)

    def test_01_reads_the_sample_grammar(self):
        tree = parse(self.syntax, self.read("proplist.peg")).unwrap()
        self.assertEqual("File", tree.name)
        blocks = tree.find_all("Block")
        self.assertEqual(["PropList", "Chars"], texts(blocks, "name"))
        self.assertEqual(["List", "Item", "Key", "Value"], texts(blocks[0].find_all("Rule"), "name"))
        self.assertEqual(["Space", "Newline", "Letter", "Digit"], texts(blocks[1].find_all("Rule"), "name"))

        use = blocks[0].find("Use")
        self.assertEqual(("Chars", "C"), (use.find("target").text, use.find("alias").text))
        self.assertEqual("PropList.List", blocks[0].find("Start").find("target").text)

        item = blocks[0].find_all("Rule")[1]
        first = item.find("Choice").find("Seq").find("Elem")
        self.assertEqual("Key", first.find("RuleRef").find("name").text)
        self.assertEqual("#key", first.find("Reflect").text)

    def test_02_reads_itself(self):
        src = self.read("syntax.peg")
        tree = parse(self.syntax, src, options=ParseOptions(memoize=True)).unwrap()
        (block,) = tree.find_all("Block")
        rules = block.find_all("Rule")
        self.assertEqual([r.name for r in self.syntax.rules], texts(rules, "name"))

        by_name = {r.find("name").text: r for r in rules}
        self.assertEqual(["X"], [n.text for n in by_name["T"].find("generics").nodes()])
        bracketed = by_name["Bracketed"]
        self.assertEqual(["Open", "Close"], [n.text for n in bracketed.find("generics").nodes()])
        self.assertEqual(["Item"], [n.text for n in bracketed.find("templates").nodes()])

    def test_03_agrees_with_the_compiler_on_errors(self):
        src = '[M]{ + start M.A  A <- "a" }'
        r = parse(self.syntax, src)
        self.assertFalse(r.ok)
        self.assertEqual(src.index("}"), r.diagnostic.position)
        self.assertIn('","', r.diagnostic.expected)
        with self.assertRaises(SyntaxError):
            pegblock.compile_grammar(src)


if __name__ == "__main__":
    unittest.main()

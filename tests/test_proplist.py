""" The property-list sample grammar, end to end. """
import unittest
from pathlib import Path

import pegblock
from pegblock import ParseFailure, PegProgram, PegRunner, parse
from pegblock.grammar import load_program

PROPLIST = Path(pegblock.__file__).parent / "grammars" / "proplist.peg"


class TestPropList(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.g = load_program([str(PROPLIST)])

    def items(self, text):
        return [(i.find("key").text, i.find("value").text) for i in parse(self.g, text).unwrap().children]

    def test_00_compiles(self):
        self.assertEqual("PropList.List", self.g.start_rule.id)
        self.assertEqual(["PropList", "Chars"], list(self.g.blocks))
        self.assertEqual(8, len(self.g.rules))

    def test_01_round_trip(self):
        tree = parse(self.g, "name: value,\nage: 10,\n").unwrap()
        self.assertEqual("List", tree.name)
        self.assertEqual(["Item", "Item"], [c.name for c in tree.children])
        self.assertEqual([("name", "value"), ("age", "10")], self.items("name: value,\nage: 10,\n"))

    def test_02_spacing_and_last_newline(self):
        self.assertEqual([("a", "x y"), ("b_c", "1")], self.items("a:\t x y,\nb_c: 1,"))
        self.assertEqual([], self.items(""))

    def test_03_errors(self):
        r = parse(self.g, "name value,\n", path="props.txt")
        self.assertIsInstance(r, ParseFailure)
        d = r.diagnostic
        self.assertEqual((1, 5), (d.line, d.col))
        self.assertIn('":"', d.expected)
        self.assertEqual("props.txt:1:5", d.where)

    def test_04_runner(self):
        runner = PegRunner(PegProgram.from_files([str(PROPLIST)]))
        self.assertEqual(2, len(runner.run("a: 1,\nb: 2,\n").unwrap().children))
        self.assertFalse(runner.run("a: 1").ok)


if __name__ == "__main__":
    unittest.main()

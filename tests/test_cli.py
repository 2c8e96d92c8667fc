""" pegc check / pegc parse """
import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

import pegblock
from pegblock.pegc import main

PROPLIST = str(Path(pegblock.__file__).parent / "grammars" / "proplist.peg")
HERE = Path(__file__).parent / "grammar_test"


def run(*argv):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(list(argv))
    return code, out.getvalue(), err.getvalue()


class TestCheck(unittest.TestCase):
    def test_00_ok(self):
        code, out, err = run("check", PROPLIST)
        self.assertEqual(0, code)
        self.assertEqual("[CHECK OK] blocks=2 rules=8 start=PropList.List\n", out)
        self.assertEqual("", err)

    def test_01_debug_goes_to_stderr(self):
        code, out, err = run("check", PROPLIST, "-D")
        self.assertEqual(0, code)
        self.assertIn("[DEBUG] Grammar linked", err)
        self.assertIn("[PropList]{", err)

    def test_02_compile_error(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "bad.peg")
            with open(path, "w", encoding="utf-8") as f:
                f.write('[M]{ + start M.A  A <- "a", } [N]{ + start N.B  B <- "b", }')
            code, out, err = run("check", path)
        self.assertEqual(2, code)
        self.assertIn("[SYNTAX ERROR]", err)
        self.assertIn("'+ start'", err)

    def test_03_missing_file(self):
        code, out, err = run("check", str(HERE / "nope.peg"))
        self.assertEqual(2, code)
        self.assertIn("[ERROR]", err)

    def test_04_include_dir(self):
        code, out, err = run("check", str(HERE / "words_main.peg"), "-I", str(HERE / "lib"))
        self.assertEqual(0, code, err)


class TestParse(unittest.TestCase):
    def test_00_pretty(self):
        code, out, err = run("parse", PROPLIST, "--text", "name: value,\n")
        self.assertEqual(0, code, err)
        self.assertTrue(out.startswith("| List\n|   | Item\n|   |   | key\n"))

    def test_01_json(self):
        code, out, err = run("parse", PROPLIST, "--text", "a: 1,\nb: 2,\n", "--json")
        self.assertEqual(0, code, err)
        tree = json.loads(out)
        self.assertEqual("List", tree["name"])
        self.assertEqual(2, len(tree["children"]))

    def test_02_input_file_and_path_in_errors(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "props.txt")
            with open(path, "w", encoding="utf-8") as f:
                f.write("a: 1,\nb 2,\n")
            code, out, err = run("parse", PROPLIST, "--input", path)
        self.assertEqual(1, code)
        self.assertIn("[PARSE ERROR]", err)
        self.assertIn(f"{path}:2:2", err)

    def test_03_rule_and_partial(self):
        code, out, err = run("parse", PROPLIST, "--text", "abc: x", "--rule", "PropList.Key", "--partial")
        self.assertEqual(0, code, err)
        self.assertIn('"abc"', out)
        code, out, err = run("parse", PROPLIST, "--text", "abc: x", "--rule", "PropList.Key")
        self.assertEqual(1, code)
        self.assertIn("end of input", err)

    def test_04_unknown_rule(self):
        code, out, err = run("parse", PROPLIST, "--text", "x", "--rule", "PropList.Nope")
        self.assertEqual(2, code)
        self.assertIn("Undefined rule", err)

    def test_05_budget(self):
        code, out, err = run("parse", PROPLIST, "--text", "a: 1,\n" * 20, "--max-steps", "10")
        self.assertEqual(1, code)
        self.assertIn("[RESOURCE]", err)
        code, out, err = run("parse", PROPLIST, "--text", "a: 1,\n" * 20, "--memo", "--timeout", "30")
        self.assertEqual(0, code, err)

    def test_06_text_or_input_is_required(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as cm:
                main(["parse", PROPLIST])
        self.assertEqual(2, cm.exception.code)

    def test_07_nesting_depth(self):
        code, out, err = run("parse", PROPLIST, "--text", "a: 1,\n", "--max-depth", "1")
        self.assertEqual(1, code)
        self.assertIn("[RESOURCE]", err)
        self.assertIn("nesting depth of 1 exceeded", err)
        code, out, err = run("parse", PROPLIST, "--text", "a: 1,\n", "--max-depth", "4")
        self.assertEqual(0, code, err)

    def test_08_crlf_input_file(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "props.txt")
            with open(path, "wb") as f:
                f.write(b"a: 1,\r\nb: 2,\r\n")
            code, out, err = run("parse", PROPLIST, "--input", path, "--json")
        self.assertEqual(0, code, err)
        self.assertEqual(2, len(json.loads(out)["children"]))


if __name__ == "__main__":
    unittest.main()

# pegblock/grammar/loader.py
"""Grammar file loader.

A program may span several files. `load_program` parses the files it is
given, then follows `+ use X` directives naming blocks it has not seen yet by
looking for `X.peg` next to the importing file and in `search_path`.
"""

from __future__ import annotations
from pathlib    import Path
from typing     import Dict, List, Sequence

from .ast       import Grammar, GrammarFile
from .parser    import parse_grammar
from .transform import link

GRAMMAR_SUFFIX = ".peg"


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def load_text(path: str) -> str:
    """Read a UTF-8 file (grammar or input), newlines normalized to LF."""
    return normalize_newlines(Path(path).read_text(encoding="utf-8"))


def load_grammar_text(path: str) -> str:
    """
    Load Grammar Text
    """
    return load_text(path)


def load_grammar_file(path: str) -> GrammarFile:
    return parse_grammar(load_grammar_text(path), str(path))


def load_program(paths: Sequence[str], search_path: Sequence[str] = ()) -> Grammar:
    files: List[GrammarFile] = []
    loaded: Dict[str, bool] = {}
    known_blocks = set()

    pending = [str(Path(p)) for p in paths]
    while pending:
        p = pending.pop(0)
        key = str(Path(p).resolve())
        if key in loaded:
            continue
        loaded[key] = True
        gf = load_grammar_file(p)
        files.append(gf)
        known_blocks.update(b.name for b in gf.blocks)

        # block imports not satisfied yet -> sibling or search-path files
        dirs = [Path(p).parent] + [Path(d) for d in search_path]
        for blk in gf.blocks:
            for use in blk.uses:
                if use.target in known_blocks:
                    continue
                for d in dirs:
                    candidate = d / (use.target + GRAMMAR_SUFFIX)
                    if candidate.is_file():
                        pending.append(str(candidate))
                        break
    return link(files)

# pegblock/pegc.py
"""pegc – pegblock CLI

사용 예)
    $ python -m pegblock check tests/grammar_test/proplist.peg -D
    $ python -m pegblock parse pegblock/grammars/proplist.peg --text 'name: value,' --json
    $ pegc parse main.peg --input data.txt -I grammars --rule Main.Item --partial

기능
----
- check : 문법 파일을 컴파일(파싱 + 이름 해석)하고 요약을 출력
- parse : 컴파일한 문법으로 입력을 파싱해 구문 트리를 출력

디버그 모드(-D/--debug)를 켜면 단계별 진행 상황을 stderr로 출력합니다.
Exit codes: 0 ok, 1 parse failure / resource exhausted, 2 grammar or usage error.
"""

from __future__ import annotations
import argparse
import json
import sys
from typing import Optional

from .peg.engine import DEFAULT_MAX_DEPTH

# ------------------------------
# 헬퍼
# ------------------------------

def _eprint(*args, **kw) -> None:
    print(*args, file=sys.stderr, **kw)


def _load(args):
    from .grammar.loader import load_program

    g = load_program(args.grammar, args.include)
    if args.debug:
        _eprint("[DEBUG] Grammar linked | blocks=%d rules=%d start=%s" %
                (len(g.blocks), len(g.rules), g.start_rule.id))
    return g

# ------------------------------
# 커맨드 구현
# ------------------------------

def cmd_check(args) -> int:
    try:
        g = _load(args)
    except SyntaxError as e:
        _eprint("[SYNTAX ERROR]")
        _eprint(str(e))
        return 2
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2

    if args.debug:
        _eprint("\n[GRAMMAR]\n" + str(g))

    print(f"[CHECK OK] blocks={len(g.blocks)} rules={len(g.rules)} start={g.start_rule.id}")
    return 0


def cmd_parse(args) -> int:
    from .peg.runtime import ParseOptions, ResourceExceeded, parse

    try:
        g = _load(args)
    except SyntaxError as e:
        _eprint("[SYNTAX ERROR]")
        _eprint(str(e))
        return 2
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2

    path: Optional[str] = None
    if args.text is not None:
        text = args.text
    else:
        from .grammar.loader import load_text
        path = args.input
        try:
            text = load_text(args.input)
        except OSError as e:
            _eprint("[ERROR]", type(e).__name__, str(e))
            return 2

    opts = ParseOptions(
        max_steps=args.max_steps,
        timeout=args.timeout,
        memoize=args.memo,
        require_full=not args.partial,
        max_depth=args.max_depth,
    )
    if args.debug:
        _eprint(f"[DEBUG] Input ready | chars={len(text)} options={opts}")

    try:
        result = parse(g, text, args.rule, opts, path)
    except SyntaxError as e:
        # --rule names an unknown or parametrized rule
        _eprint("[SYNTAX ERROR]")
        _eprint(str(e))
        return 2

    if not result.ok:
        _eprint("[RESOURCE]" if isinstance(result, ResourceExceeded) else "[PARSE ERROR]")
        _eprint(str(result))
        return 1

    if args.debug:
        _eprint(f"[DEBUG] Parsed | consumed={result.end}/{len(text)}")

    if args.json:
        print(json.dumps(result.tree.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(result.tree.pretty())
    return 0

# ------------------------------
# 엔트리포인트
# ------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="pegc", description="pegblock grammar compiler / parser CLI")
    sub = ap.add_subparsers(dest="cmd", required=True)

    def _common(p) -> None:
        p.add_argument("grammar", nargs="+", help=".peg 문법 파일(여러 개 가능)")
        p.add_argument("-I", "--include", action="append", default=[], help="+ use 대상 블록을 찾을 디렉터리")
        p.add_argument("-D", "--debug", action="store_true", help="디버그 정보를 상세 출력")

    p_check = sub.add_parser("check", help="문법을 컴파일하고 요약을 출력합니다")
    _common(p_check)
    p_check.set_defaults(func=cmd_check)

    p_parse = sub.add_parser("parse", help="문법으로 입력 텍스트를 파싱합니다")
    _common(p_parse)
    src_group = p_parse.add_mutually_exclusive_group(required=True)
    src_group.add_argument("--text", help="직접 입력 텍스트")
    src_group.add_argument("--input", help="입력 텍스트 파일 경로")
    p_parse.add_argument("--rule", help="시작 규칙 ID (Block.Rule); 미지정시 + start 대상")
    p_parse.add_argument("--json", action="store_true", help="구문 트리를 JSON으로 출력")
    p_parse.add_argument("--partial", action="store_true", help="입력 전체를 소비하지 않아도 성공으로 처리")
    p_parse.add_argument("--max-steps", type=int, default=None, help="규칙 호출 횟수 상한")
    p_parse.add_argument("--timeout", type=float, default=None, help="파싱 제한 시간(초)")
    p_parse.add_argument("--memo", action="store_true", help="packrat 메모이제이션 사용")
    p_parse.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="중첩 규칙 호출 깊이 상한")
    p_parse.set_defaults(func=cmd_parse)

    args = ap.parse_args(argv)
    return int(args.func(args))

if __name__ == "__main__":
    sys.exit(main())

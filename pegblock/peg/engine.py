# pegblock/peg/engine.py
"""Match engine.

Evaluates a linked `Grammar` against a text buffer with PEG semantics:
ordered choice, lookahead, bounded repetition, random-order groups and
parametrized rule calls. Every evaluator returns `(ok, end, traces)`; on
failure `end` is the position the evaluator started from.

- Rule calls with arguments push a `Frame`; `$Param` evaluates the bound
  expression in the frame it was captured in, then the frame is dropped.
- Memoization (optional) covers parameterless rules only, keyed by
  (rule index, pos). An in-progress entry makes left recursion fail.
- A step budget, a deadline and a nesting depth are checked at every rule
  invocation.
- The furthest failing position, what was expected there and the active
  rule stack are tracked for the final report.
"""

from __future__ import annotations
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..grammar.ast import (
    ArgRef, CharClass, Choice, Grammar, Join, Literal, Lookahead, Loop,
    Reflection, RuleRef, Seq, SeqElem, Wildcard,
)

Result = Tuple[bool, int, List["Trace"]]


@dataclass
class Trace:
    """One matched item, before reflection policies are applied.

    kind: "leaf" (literal, class, wildcard, JOIN), "rule", "group" or "arg".
    """
    kind: str
    start: int
    end: int
    reflect: Optional[Reflection] = None
    name: str = ""
    value: str = ""
    children: List["Trace"] = field(default_factory=list)


@dataclass
class Frame:
    """Parameter bindings of one rule call: name -> (argument, frame it was written in)."""
    bindings: Dict[str, Tuple[Choice, Optional["Frame"]]]


class BudgetExceeded(Exception):
    def __init__(self, reason: str, position: int):
        super().__init__(reason)
        self.reason = reason
        self.position = position


def match_random_order(alts: Sequence[Seq], bounds: Loop, pos: int,
                       run: Callable[[Seq, int], Result]) -> Result:
    """Random-order policy for `(a : b : c)^{min,max}`.

    Each alternative may contribute one run of min..max repetitions, in any
    order, at most once. A successful run uses its alternative up even when
    it consumed nothing. After every successful run the remaining
    alternatives are retried in declared order. The group succeeds when all
    alternatives were used.
    """
    used = [False] * len(alts)
    cur = pos
    out: List[Trace] = []
    progress = True
    while progress and not all(used):
        progress = False
        for i, alt in enumerate(alts):
            if used[i]:
                continue
            ok, end, kids = run(alt, cur)
            if ok:
                used[i] = True
                out.extend(kids)
                cur = end
                progress = True
                break
    if not all(used):
        return False, pos, []
    return True, cur, out


_IN_PROGRESS = (False, -1, [])

DEFAULT_MAX_DEPTH = 5000
# upper bound of python frames per nested rule invocation
_FRAMES_PER_RULE = 16
_BYTES_PER_FRAME = 1024
_STACK_LOCK = threading.Lock()


def call_with_stack(fn: Callable[[], Any], frames: int) -> Any:
    """Run fn in a helper thread whose stack and recursion limit fit `frames`.

    The process recursion limit is only ever raised.
    """
    if sys.getrecursionlimit() < frames:
        sys.setrecursionlimit(frames)
    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["value"] = fn()
        except BaseException as e:
            outcome["error"] = e

    size = max(frames * _BYTES_PER_FRAME, 1 << 22)
    size += -size % 4096
    with _STACK_LOCK:
        old = threading.stack_size(size)
        try:
            worker = threading.Thread(target=target, name="pegblock-match")
            worker.start()
        finally:
            threading.stack_size(old)
    worker.join()
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


class Matcher:
    def __init__(self, grammar: Grammar, text: str, *, max_steps: Optional[int] = None,
                 deadline: Optional[float] = None, memoize: bool = False,
                 max_depth: int = DEFAULT_MAX_DEPTH):
        self.g = grammar
        self.text = text
        self.n = len(text)
        self.max_steps = max_steps
        self.deadline = deadline
        self.memoize = memoize
        self.max_depth = max_depth
        self.memo: Dict[Tuple[int, int], Result] = {}
        self.frame: Optional[Frame] = None
        self.steps = 0
        self.stack: List[str] = []
        self.quiet = 0
        # furthest failure
        self.far = -1
        self.expected: Dict[str, None] = {}
        self.far_stack: Tuple[str, ...] = ()

    # ---- public entrypoint ----
    def run(self, rule_index: int, pos: int = 0) -> Tuple[bool, int, Optional[Trace]]:
        """Match one rule at pos. Raises BudgetExceeded when a budget runs out.

        The match runs on a helper thread sized for `max_depth` nested rule
        invocations, so deeply right-recursive input does not hit Python's
        default recursion limit.
        """
        rule = self.g.rules[rule_index]
        frames = (self.max_depth + 1) * _FRAMES_PER_RULE + 1000
        try:
            ok, end, kids = call_with_stack(lambda: self._apply_rule(rule_index, pos, None), frames)
        except RecursionError:
            raise BudgetExceeded("recursion depth exceeded", self.far if self.far >= 0 else pos)
        if not ok:
            return False, pos, None
        return True, end, Trace("rule", pos, end, name=rule.name, children=kids)

    def expect(self, pos: int, what: str) -> None:
        if self.quiet:
            return
        if pos > self.far:
            self.far = pos
            self.expected = {what: None}
            self.far_stack = tuple(self.stack)
        elif pos == self.far:
            self.expected[what] = None

    # ---- budget ----
    def _tick(self, pos: int) -> None:
        self.steps += 1
        if self.max_steps is not None and self.steps > self.max_steps:
            raise BudgetExceeded(f"step budget of {self.max_steps} exceeded", pos)
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise BudgetExceeded("deadline passed", pos)

    # ---- rule application ----
    def _apply_rule(self, idx: int, pos: int, frame: Optional[Frame]) -> Result:
        self._tick(pos)
        if len(self.stack) >= self.max_depth:
            raise BudgetExceeded(f"nesting depth of {self.max_depth} exceeded", pos)
        rule = self.g.rules[idx]
        key = (idx, pos)
        memo_ok = self.memoize and not rule.params
        if memo_ok:
            m = self.memo.get(key)
            if m is not None:
                if m is _IN_PROGRESS:
                    # left recursion: fail instead of recursing forever
                    return False, pos, []
                return m
            self.memo[key] = _IN_PROGRESS

        saved = self.frame
        self.frame = frame
        self.stack.append(rule.id)
        try:
            result = self._eval_choice(rule.body, pos)
        finally:
            self.stack.pop()
            self.frame = saved

        if memo_ok:
            self.memo[key] = result
        return result

    # ---- structure ----
    def _eval_choice(self, choice: Choice, pos: int) -> Result:
        for alt in choice.alts:
            ok, end, kids = self._eval_seq(alt, pos)
            if ok:
                return True, end, kids
        return False, pos, []

    def _eval_seq(self, seq: Seq, pos: int) -> Result:
        cur = pos
        out: List[Trace] = []
        for elem in seq.elems:
            ok, end, kids = self._eval_elem(elem, cur)
            if not ok:
                return False, pos, []
            out.extend(kids)
            cur = end
        return True, cur, out

    def _eval_elem(self, elem: SeqElem, pos: int) -> Result:
        if elem.lookahead == Lookahead.NONE:
            return self._eval_loop(elem, pos)

        positive = elem.lookahead == Lookahead.POSITIVE
        self.quiet += 1
        try:
            ok, _, _ = self._eval_loop(elem, pos)
        finally:
            self.quiet -= 1
        if ok == positive:
            return True, pos, []
        self.expect(pos, _describe(elem.item) if positive else f"not {_describe(elem.item)}")
        return False, pos, []

    def _eval_loop(self, elem: SeqElem, pos: int) -> Result:
        if elem.loop.is_once:
            return self._eval_once(elem, pos)
        return self._repeat(lambda p: self._eval_once(elem, p), elem.loop, pos)

    def _repeat(self, one: Callable[[int], Result], bounds: Loop, pos: int) -> Result:
        """Match `one` between bounds.min and bounds.max times.

        A zero-width success counts once and ends the loop; the minimum is
        then satisfied, since every further iteration would be the same.
        """
        cur = pos
        count = 0
        out: List[Trace] = []
        while bounds.max is None or count < bounds.max:
            ok, end, kids = one(cur)
            if not ok:
                break
            out.extend(kids)
            count += 1
            if end == cur:
                count = max(count, bounds.min)
                break
            cur = end
        if count < bounds.min:
            return False, pos, []
        return True, cur, out

    # ---- one occurrence of an element ----
    def _eval_once(self, elem: SeqElem, pos: int) -> Result:
        item = elem.item
        text = self.text

        if isinstance(item, Literal):
            if text.startswith(item.text, pos):
                end = pos + len(item.text)
                return True, end, [Trace("leaf", pos, end, elem.reflect, value=item.text)]
            self.expect(pos, str(item))
            return False, pos, []

        if isinstance(item, CharClass):
            if pos < self.n and item.pattern.match(text, pos) is not None:
                return True, pos + 1, [Trace("leaf", pos, pos + 1, elem.reflect, value=text[pos])]
            self.expect(pos, item.source)
            return False, pos, []

        if isinstance(item, Wildcard):
            if pos < self.n:
                return True, pos + 1, [Trace("leaf", pos, pos + 1, elem.reflect, value=text[pos])]
            self.expect(pos, "any character")
            return False, pos, []

        if isinstance(item, Choice):
            if elem.random is not None:
                bounds = elem.random
                ok, end, kids = match_random_order(
                    item.alts, bounds, pos,
                    lambda alt, p: self._repeat(lambda q: self._eval_seq(alt, q), bounds, p),
                )
            else:
                ok, end, kids = self._eval_choice(item, pos)
            if not ok:
                return False, pos, []
            return True, end, [Trace("group", pos, end, elem.reflect, children=kids)]

        if isinstance(item, RuleRef):
            frame = None
            if item.generics or item.templates:
                callee = self.g.rules[item.target]
                args = item.generics + item.templates
                frame = Frame({name: (arg, self.frame) for name, arg in zip(callee.params, args)})
            ok, end, kids = self._apply_rule(item.target, pos, frame)
            if not ok:
                return False, pos, []
            name = self.g.rules[item.target].name
            return True, end, [Trace("rule", pos, end, elem.reflect, name=name, children=kids)]

        if isinstance(item, ArgRef):
            arg, captured = self.frame.bindings[item.name]
            saved = self.frame
            self.frame = captured
            try:
                ok, end, kids = self._eval_choice(arg, pos)
            finally:
                self.frame = saved
            if not ok:
                return False, pos, []
            return True, end, [Trace("arg", pos, end, elem.reflect, name=item.name, children=kids)]

        if isinstance(item, Join):
            ok, end, kids = self._eval_choice(item.arg, pos)
            if not ok:
                return False, pos, []
            value = "".join(_leaf_values(kids))
            return True, end, [Trace("leaf", pos, end, elem.reflect, value=value)]

        raise AssertionError(f"unknown element: {item!r}")


def _leaf_values(traces: Sequence[Trace]):
    """Text of the leaves a trace list would reflect (omitted parts skipped)."""
    for t in traces:
        if t.reflect is not None and t.reflect.kind == Reflection.OMIT:
            continue
        if t.kind == "leaf":
            yield t.value
        else:
            yield from _leaf_values(t.children)


def _describe(item) -> str:
    if isinstance(item, Choice):
        return f"({item})"
    return str(item)

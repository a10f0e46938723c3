"""
Hand instrumentation for subjects written in Python.

A subject calls `probe.compare(...)` for each condition and
`probe.branch(b, bid)` where it decides, inside a `probe.method(...)` block.
The probe records the evaluated branches with their true/false distances
into an ExecutionTrace the distance calculator can consume.
"""
import operator as _op
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional

from guidance.trace import ExecutionTrace, MethodCall

_OP = {">": _op.gt, ">=": _op.ge, "<": _op.lt, "<=": _op.le, "==": _op.eq, "!=": _op.ne}

K = 1.0


def negate(op: str) -> str:
    return {">": "<=", ">=": "<", "<": ">=", "<=": ">", "==": "!=", "!=": "=="}[op]


def _str_distance(a: str, b: str) -> float:
    # character code differences plus a penalty per missing character
    d = sum(abs(ord(x) - ord(y)) for x, y in zip(a, b))
    return float(d + 128 * abs(len(a) - len(b)))


def bd(a, b, op: str, want_true: bool, k: float = K) -> float:
    """Branch distance of `a op b` to the wanted outcome (0.0 when it already holds)."""
    use_op = op if want_true else negate(op)
    if _OP[use_op](a, b):
        return 0.0
    if isinstance(a, str) and isinstance(b, str):
        if use_op == "==":
            return _str_distance(a, b)
        return k
    if use_op == "==":
        return float(abs(a - b))
    if use_op == "!=":
        return k
    if use_op == "<":
        return float(a - b) + k
    if use_op == "<=":
        return float(a - b)
    if use_op == ">":
        return float(b - a) + k
    return float(b - a)


@dataclass
class B:
    value: bool
    d_true: float
    d_false: float

    def __bool__(self):
        return self.value


class BranchProbe:
    def __init__(self):
        self.trace = ExecutionTrace()
        self._stack: List[MethodCall] = []

    def clear(self):
        self.trace = ExecutionTrace()
        self._stack.clear()

    @staticmethod
    def _to_B(x) -> B:
        if isinstance(x, B):
            return x
        bx = bool(x)
        return B(bx, 0.0 if bx else K, K if bx else 0.0)

    @contextmanager
    def method(self, class_name: str, method_name: str):
        call = self.trace.enter_method(class_name, method_name)
        self._stack.append(call)
        try:
            yield call
        finally:
            self._stack.pop()

    @property
    def current(self) -> Optional[MethodCall]:
        return self._stack[-1] if self._stack else None

    def compare(self, a, c, op: str) -> B:
        out = _OP[op](a, c)
        return B(out, bd(a, c, op, True), bd(a, c, op, False))

    def branch(self, b, bid: int) -> bool:
        b = self._to_B(b)
        if self.current is None:
            raise RuntimeError("branch evaluated outside of a probed method")
        self.trace.branch_passed(self.current, bid, b.d_true, b.d_false)
        return bool(b)

    def bool_and(self, L, R) -> B:
        L = self._to_B(L); R = self._to_B(R)
        # L and R == T iff L == T and R == T
        return B(bool(L) and bool(R), L.d_true + R.d_true, min(L.d_false, R.d_false))

    def bool_or(self, L, R) -> B:
        L = self._to_B(L); R = self._to_B(R)
        # L or R == F iff L == F and R == F
        return B(bool(L) or bool(R), min(L.d_true, R.d_true), L.d_false + R.d_false)

    def bool_not(self, b) -> B:
        b = self._to_B(b)
        return B(not bool(b), b.d_false, b.d_true)

"""
Candidate solutions as seen by the local search operators.

A candidate is a sequence of statements. Primitive statements carry the value
local search works on; constructor and method statements only record what
was called so an execution result can point at the statement that threw.
"""
import random
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import numpy as np

from guidance.config import DEFAULT_CONFIG

_INT_KINDS = {"int8": np.int8, "int16": np.int16, "int32": np.int32, "int64": np.int64}
_FLOAT_KINDS = {"float32": np.float32, "float64": np.float64}


class NumericStatement:
    def __init__(self, value, kind: str = "int32"):
        if kind not in _INT_KINDS and kind not in _FLOAT_KINDS:
            raise ValueError(f"unknown numeric kind {kind!r}")
        self.kind = kind
        self.value = self._coerce(value)

    @property
    def is_floating(self) -> bool:
        return self.kind in _FLOAT_KINDS

    @property
    def max_precision(self) -> int:
        if self.kind == "float32":
            return DEFAULT_CONFIG.float32_precision
        return DEFAULT_CONFIG.float64_precision

    def _coerce(self, v):
        if self.is_floating:
            return float(_FLOAT_KINDS[self.kind](v))
        info = np.iinfo(_INT_KINDS[self.kind])
        return int(min(max(int(v), int(info.min)), int(info.max)))

    def set_value(self, v):
        self.value = self._coerce(v)

    def stepped(self, delta: float):
        """The value `delta` away from the current one, in this statement's type"""
        if self.is_floating:
            return self._coerce(self.value + delta)
        return self._coerce(self.value + int(delta))

    def code(self) -> str:
        return f"{self.kind} = {self.value!r}"

    def __repr__(self):
        return f"NumericStatement({self.value!r}, {self.kind!r})"


def random_char(rng: random.Random) -> str:
    return chr(rng.randrange(DEFAULT_CONFIG.char_lo, DEFAULT_CONFIG.char_hi))


class StringStatement:
    def __init__(self, value: str = ""):
        self.value = value

    def set_value(self, v: str):
        self.value = v

    def increment(self, rng: random.Random):
        """Apply a few random character edits, each kind with probability 1/3."""
        s = self.value
        if not s:
            self.value = random_char(rng)
            return
        p = 1.0 / 3.0
        if rng.random() < p:
            s = "".join(ch for ch in s if rng.random() >= p / len(s))
        if s and rng.random() < p:
            s = "".join(random_char(rng) if rng.random() < p / len(s) else ch for ch in s)
        if rng.random() < p:
            pos = rng.randint(0, len(s))
            s = s[:pos] + random_char(rng) + s[pos:]
        self.value = s

    def randomize(self, rng: random.Random, max_length: Optional[int] = None):
        n = rng.randint(0, max_length or DEFAULT_CONFIG.string_length)
        self.value = "".join(random_char(rng) for _ in range(n))

    def code(self) -> str:
        return f"str = {self.value!r}"

    def __repr__(self):
        return f"StringStatement({self.value!r})"


@dataclass
class ConstructorStatement:
    class_name: str
    method_name: str = "__init__"


@dataclass
class MethodStatement:
    class_name: str
    method_name: str


@dataclass
class Snapshot:
    index: int
    value: Any
    result: Any
    changed: bool


class Candidate:
    def __init__(self, statements: List[Any]):
        self.statements = list(statements)
        self.last_execution_result = None
        self.changed = True

    def statement(self, index: int):
        return self.statements[index]

    def set_value(self, index: int, value):
        self.statements[index].set_value(value)
        self.changed = True

    def values(self) -> List[Any]:
        return [getattr(s, "value", None) for s in self.statements]

    def backup(self, index: int) -> Snapshot:
        return Snapshot(index, self.statements[index].value, self.last_execution_result, self.changed)

    def restore(self, snapshot: Snapshot):
        self.statements[snapshot.index].set_value(snapshot.value)
        self.last_execution_result = snapshot.result
        self.changed = snapshot.changed

    def trial(self, index: int, value, accept: Callable[["Candidate"], bool]) -> bool:
        """Set a value and keep it only if `accept` says so; otherwise roll everything back."""
        snapshot = self.backup(index)
        self.set_value(index, value)
        if accept(self):
            return True
        self.restore(snapshot)
        return False

    def __len__(self):
        return len(self.statements)

    def __repr__(self):
        return f"Candidate({self.values()})"

"""
Execution traces as produced by running one candidate.

One MethodCall is recorded per invocation; it holds the branch ids evaluated
during that invocation in order, together with the distance to the true and
to the false outcome at each evaluation.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set


@dataclass
class MethodCall:
    class_name: str
    method_name: str
    branch_trace: List[int] = field(default_factory=list)
    true_distance_trace: List[float] = field(default_factory=list)
    false_distance_trace: List[float] = field(default_factory=list)

    def add_branch(self, branch_id: int, true_distance: float, false_distance: float):
        self.branch_trace.append(branch_id)
        self.true_distance_trace.append(true_distance)
        self.false_distance_trace.append(false_distance)

    def positions_of(self, branch_id: int) -> List[int]:
        return [pos for pos, bid in enumerate(self.branch_trace) if bid == branch_id]

    @property
    def key(self) -> str:
        return f"{self.class_name}.{self.method_name}"


class ExecutionTrace:
    def __init__(self):
        self.method_calls: List[MethodCall] = []
        self.covered_methods: Set[str] = set()
        self.covered_true_branches: Set[int] = set()
        self.covered_false_branches: Set[int] = set()
        # minimum distance seen per branch id
        self.true_distances: Dict[int, float] = {}
        self.false_distances: Dict[int, float] = {}

    def enter_method(self, class_name: str, method_name: str) -> MethodCall:
        call = MethodCall(class_name, method_name)
        self.method_calls.append(call)
        self.covered_methods.add(call.key)
        return call

    def branch_passed(self, call: MethodCall, branch_id: int,
                      true_distance: float, false_distance: float):
        call.add_branch(branch_id, true_distance, false_distance)
        if true_distance == 0.0:
            self.covered_true_branches.add(branch_id)
        if false_distance == 0.0:
            self.covered_false_branches.add(branch_id)
        self.true_distances[branch_id] = min(true_distance, self.true_distances.get(branch_id, true_distance))
        self.false_distances[branch_id] = min(false_distance, self.false_distances.get(branch_id, false_distance))

    def calls_of(self, class_name: str, method_name: str) -> List[MethodCall]:
        return [c for c in self.method_calls
                if c.class_name == class_name and c.method_name == method_name]

    def has_entered(self, class_name: str, method_name: str) -> bool:
        return f"{class_name}.{method_name}" in self.covered_methods

    def __repr__(self):
        return (f"ExecutionTrace(calls={len(self.method_calls)}, "
                f"true={sorted(self.covered_true_branches)}, false={sorted(self.covered_false_branches)})")


class ExecutionResult:
    """A trace plus what happened to the run as a whole."""

    def __init__(self, trace: ExecutionTrace, test: Sequence = (),
                 exceptions: Optional[Dict[int, BaseException]] = None,
                 timeout: bool = False, test_exception: bool = False):
        self.trace = trace
        self.test = test
        # statement position -> exception thrown there
        self.exceptions: Dict[int, BaseException] = dict(exceptions or {})
        self.timeout = timeout
        self.test_exception = test_exception

    def has_timeout(self) -> bool:
        return self.timeout

    def has_test_exception(self) -> bool:
        return self.test_exception

    def no_thrown_exceptions(self) -> bool:
        return not self.exceptions

    def first_position_of_thrown_exception(self) -> Optional[int]:
        if not self.exceptions:
            return None
        return min(self.exceptions)

    def statement_at(self, position: Optional[int]):
        if position is None or not 0 <= position < len(self.test):
            return None
        return self.test[position]

    def __repr__(self):
        return f"ExecutionResult({self.trace!r}, timeout={self.timeout}, exceptions={sorted(self.exceptions)})"

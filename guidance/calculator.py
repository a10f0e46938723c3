"""
Control-flow distance calculator.

Turns an execution result into a ControlFlowDistance for one coverage goal:

* a timed-out run gets the worst distance possible for the goal,
* a root goal is covered as soon as its method was entered,
* a branch goal already covered in the desired direction is (0, 0.0),
* otherwise, per recorded call of the branch's method, the distance is the
  recorded branch distance if the branch was traced, or else the best
  distance over the branches it is control dependent on plus one approach
  level. The minimum over all calls wins.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple

from guidance.candidate import ConstructorStatement
from guidance.cdg import UNKNOWN_DEPTH, Branch, ControlDependenceModel, Instruction
from guidance.config import DEFAULT_CONFIG
from guidance.distance import ControlFlowDistance
from guidance.goals import BranchGoal, CoverageGoal, RootGoal, coverage_goal
from guidance.trace import ExecutionResult, MethodCall

logger = logging.getLogger(__name__)


@dataclass
class _Evaluation:
    """Per-call state: memoized (branch id, value) distances and the branches being expanded."""
    call: MethodCall
    memo: Dict[Tuple[int, bool], ControlFlowDistance] = field(default_factory=dict)
    active: Set[int] = field(default_factory=set)
    expansions: Counter = field(default_factory=Counter)


class ControlFlowDistanceCalculator:

    def __init__(self, model: ControlDependenceModel,
                 timeout_approach_level: int = DEFAULT_CONFIG.timeout_approach_level):
        self.model = model
        self.timeout_approach_level = timeout_approach_level

    # -----------------
    # Entry points
    # -----------------
    def get_distance(self, result: ExecutionResult, goal: CoverageGoal) -> ControlFlowDistance:
        if result is None or goal is None:
            raise ValueError("null given")

        if result.has_timeout():
            logger.debug("Has timeout!")
            return self.worst_distance(goal)

        if isinstance(goal, RootGoal):
            return self._root_distance(result, goal.class_name, goal.method_name)
        if not isinstance(goal, BranchGoal):
            raise TypeError(f"unsupported goal {goal!r}")

        trace = result.trace
        covered = trace.covered_true_branches if goal.value else trace.covered_false_branches
        if goal.branch.branch_id in covered:
            return ControlFlowDistance(0, 0.0)

        return self._non_root_distance(result, goal.branch, goal.value)

    def distance_for(self, result: ExecutionResult, branch: Optional[Branch], value: bool,
                     class_name: str, method_name: str) -> ControlFlowDistance:
        if result is None:
            raise ValueError("null given")
        return self.get_distance(result, coverage_goal(class_name, method_name, branch, value))

    def depth(self, branch: Branch) -> int:
        return self.model.depth(branch)

    # -----------------
    # Worst cases
    # -----------------
    def worst_distance(self, goal: CoverageGoal) -> ControlFlowDistance:
        if isinstance(goal, RootGoal):
            return ControlFlowDistance(self.timeout_approach_level, 0.0)
        d = self.depth(goal.branch)
        if d == UNKNOWN_DEPTH:
            return ControlFlowDistance(self.timeout_approach_level, 0.0)
        return ControlFlowDistance(d + 2, 0.0)

    def _cycle_distance(self) -> ControlFlowDistance:
        return ControlFlowDistance(self.timeout_approach_level, 0.0)

    # -----------------
    # Root goals
    # -----------------
    def _root_distance(self, result: ExecutionResult, class_name: str, method_name: str) -> ControlFlowDistance:
        if result.trace.has_entered(class_name, method_name):
            return ControlFlowDistance(0, 0.0)
        if self._has_constructor_exception(result, class_name, method_name):
            return ControlFlowDistance(0, 0.0)
        return ControlFlowDistance(1, 0.0)

    @staticmethod
    def _has_constructor_exception(result: ExecutionResult, class_name: str, method_name: str) -> bool:
        # A constructor that died inside a superclass constructor never shows up in the trace.
        # Only the first thrown exception is looked at.
        if result.has_timeout() or result.has_test_exception() or result.no_thrown_exceptions():
            return False
        statement = result.statement_at(result.first_position_of_thrown_exception())
        if not isinstance(statement, ConstructorStatement):
            return False
        return statement.class_name == class_name and statement.method_name == method_name

    # -----------------
    # Branch goals
    # -----------------
    def _non_root_distance(self, result: ExecutionResult, branch: Branch, value: bool) -> ControlFlowDistance:
        d = self.depth(branch)
        if d == UNKNOWN_DEPTH:
            best = ControlFlowDistance(self.timeout_approach_level, 0.0)
        else:
            best = ControlFlowDistance(d + 1, 0.0)

        for call in result.trace.calls_of(branch.class_name, branch.method_name):
            ev = _Evaluation(call)
            distance = self._call_distance(ev, branch, value)
            if distance < best:
                best = distance
        return best

    def _call_distance(self, ev: _Evaluation, branch: Branch, value: bool) -> ControlFlowDistance:
        key = (branch.branch_id, value)
        if key in ev.memo:
            return ev.memo[key]

        if branch.branch_id in ev.active:
            logger.debug("cycle through bid=%d, giving up on this path", branch.branch_id)
            return self._cycle_distance()

        ev.active.add(branch.branch_id)
        try:
            ev.expansions[key] += 1
            positions = ev.call.positions_of(branch.branch_id)
            if positions:
                distances = ev.call.true_distance_trace if value else ev.call.false_distance_trace
                distance = ControlFlowDistance(0, min(distances[p] for p in positions))
            else:
                distance = self._control_dependence_distance(ev, branch.instruction).increased()
            ev.memo[key] = distance
            return distance
        finally:
            ev.active.discard(branch.branch_id)

    def _control_dependence_distance(self, ev: _Evaluation, instruction: Instruction) -> ControlFlowDistance:
        if instruction.exception_handler_entry:
            return ControlFlowDistance(0, 0.0)

        best = None
        for cd in instruction.control_dependencies:
            if cd.branch.instruction is instruction:
                continue
            d = self._call_distance(ev, cd.branch, cd.value)
            if best is None or d < best:
                best = d

        if best is None:
            # only dependent on entering the method
            return ControlFlowDistance(0, 0.0)
        return best

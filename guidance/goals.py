"""
Coverage goals.

A goal is either "enter this method" (RootGoal) or "evaluate this branch this
way" (BranchGoal). The two shapes are separate types so a root goal can never
carry a false outcome.
"""
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional, Union

from guidance.cdg import Branch
from guidance.distance import ControlFlowDistance


@total_ordering
class _Goal:
    def sort_key(self):
        raise NotImplementedError

    def __lt__(self, other):
        if not isinstance(other, _Goal):
            return NotImplemented
        return self.sort_key() < other.sort_key()


@dataclass(frozen=True, eq=True)
class RootGoal(_Goal):
    class_name: str
    method_name: str

    def __post_init__(self):
        if self.class_name is None or self.method_name is None:
            raise ValueError("null given")

    @property
    def value(self) -> bool:
        return True

    @property
    def branch(self) -> None:
        return None

    def sort_key(self):
        return (self.class_name, self.method_name, -1, -1, True)

    def __str__(self):
        return f"{self.class_name}.{self.method_name}: root-Branch"


@dataclass(frozen=True, eq=True)
class BranchGoal(_Goal):
    branch: Branch
    value: bool

    def __post_init__(self):
        if self.branch is None:
            raise ValueError("a branch goal needs a branch, use RootGoal for method entry")

    @property
    def class_name(self) -> str:
        return self.branch.class_name

    @property
    def method_name(self) -> str:
        return self.branch.method_name

    def sort_key(self):
        return (self.class_name, self.method_name,
                self.branch.instruction.line_number, self.branch.branch_id, self.value)

    def __str__(self):
        return (f"{self.class_name}.{self.method_name}: "
                f"bid={self.branch.branch_id} ({'true' if self.value else 'false'})")


CoverageGoal = Union[RootGoal, BranchGoal]


def coverage_goal(class_name: str, method_name: str,
                  branch: Optional[Branch] = None, value: bool = True) -> CoverageGoal:
    """Build a goal from the loose (branch, value, class, method) form, rejecting bad combinations."""
    if class_name is None or method_name is None:
        raise ValueError("null given")
    if branch is None:
        if not value:
            raise ValueError("expect distance for a root branch to always have value set to true")
        return RootGoal(class_name, method_name)
    if branch.class_name != class_name or branch.method_name != method_name:
        raise ValueError(
            "expect explicitly given information about a branch to coincide "
            "with the information given by that branch")
    return BranchGoal(branch, value)


class BranchFitness:
    """Fitness of an execution result with respect to one goal (lower is better)."""

    def __init__(self, goal: CoverageGoal, calculator):
        self.goal = goal
        self.calculator = calculator

    def distance(self, result) -> ControlFlowDistance:
        return self.calculator.get_distance(result, self.goal)

    def fitness(self, result) -> float:
        return self.distance(result).resulting_branch_fitness()

    def is_covered(self, result) -> bool:
        return self.distance(result).is_satisfied()

    def __repr__(self):
        return f"BranchFitness({self.goal})"

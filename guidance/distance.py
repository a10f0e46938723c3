"""
Control-flow distance value.

A distance is the pair (approach level, branch distance). The approach level
counts the control-dependency hops between what was executed and the goal,
the branch distance tells how close the deciding branch came to flipping.
Distances compare lexicographically and (0, 0.0) means the goal is covered.
"""
import math
from dataclasses import dataclass, replace

# reserved branch distance for "could not be evaluated at all"
INFEASIBLE = math.inf


def normalize(d: float) -> float:
    # maps [0, inf] onto [0, 1] keeping the order
    if math.isinf(d):
        return 1.0
    return d / (d + 1.0)


@dataclass(frozen=True, order=True)
class ControlFlowDistance:
    approach_level: int = 0
    branch_distance: float = 0.0

    def __post_init__(self):
        if self.approach_level < 0:
            raise ValueError(f"approach level must be >= 0, got {self.approach_level}")
        if math.isnan(self.branch_distance) or self.branch_distance < 0:
            raise ValueError(f"branch distance must be >= 0, got {self.branch_distance}")

    def increased(self) -> "ControlFlowDistance":
        return replace(self, approach_level=self.approach_level + 1)

    def is_satisfied(self) -> bool:
        return self.approach_level == 0 and self.branch_distance == 0.0

    def resulting_branch_fitness(self) -> float:
        """approach level + normalized branch distance, the scalar the search minimises"""
        return self.approach_level + normalize(self.branch_distance)

    def __repr__(self):
        return f"ControlFlowDistance(al={self.approach_level}, bd={self.branch_distance:.6g})"

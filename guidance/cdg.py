"""
Control-dependence model consumed by the distance calculator.

Each instruction knows which branch outcomes it is control dependent on. A
branch is a decision instruction with a program-wide unique id. The model is
filled in by whoever instruments the program under test and is only read
here, except for the depth cache it owns.
"""
import logging
import sys
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# depth of a branch whose dependency chain never reaches a terminal branch
UNKNOWN_DEPTH = sys.maxsize


class Instruction:
    """A node of the control-dependence graph. Compared by identity."""

    def __init__(self, class_name: str, method_name: str, line_number: int = -1,
                 exception_handler_entry: bool = False):
        self.class_name = class_name
        self.method_name = method_name
        self.line_number = line_number
        self.exception_handler_entry = exception_handler_entry
        self.control_dependencies: List["ControlDependency"] = []

    def add_control_dependency(self, branch: "Branch", value: bool):
        dep = ControlDependency(branch, value)
        if dep not in self.control_dependencies:
            self.control_dependencies.append(dep)

    def is_root_dependent(self) -> bool:
        return not self.control_dependencies

    def __repr__(self):
        return f"Instruction {self.class_name}.{self.method_name} at lineno={self.line_number}"


class Branch:
    def __init__(self, instruction: Instruction, branch_id: int):
        if instruction is None:
            raise ValueError("a branch needs an instruction")
        self.instruction = instruction
        self.branch_id = branch_id

    @property
    def class_name(self) -> str:
        return self.instruction.class_name

    @property
    def method_name(self) -> str:
        return self.instruction.method_name

    def __eq__(self, other):
        return isinstance(other, Branch) and other.branch_id == self.branch_id

    def __hash__(self):
        return hash(self.branch_id)

    def __repr__(self):
        return f"Branch bid={self.branch_id} in {self.class_name}.{self.method_name}"


@dataclass(frozen=True)
class ControlDependency:
    branch: Branch
    value: bool


class DepthCache:
    """
    Compute-once cache of structural depths keyed by branch id.

    The depth is the minimum number of control-dependency hops from a branch to
    one that only depends on entering its method (or to an exception handler
    entry). Values never change for a given program, so concurrent workers may
    share one cache; the lock only makes the first insert win.
    """

    def __init__(self):
        self._depths: Dict[int, int] = {}
        self._lock = threading.Lock()

    def depth(self, branch: Branch) -> int:
        d = self._depths.get(branch.branch_id)
        if d is not None:
            return d
        d = compute_depth(branch.instruction)
        with self._lock:
            return self._depths.setdefault(branch.branch_id, d)

    def __contains__(self, branch_id: int) -> bool:
        return branch_id in self._depths

    def __len__(self):
        return len(self._depths)


def compute_depth(start: Instruction) -> int:
    """BFS outwards along "is control dependent on" edges."""
    queue = deque([(start, 0)])
    visited = {id(start)}

    while queue:
        current, depth = queue.popleft()
        if current.exception_handler_entry:
            return depth
        if current.is_root_dependent():
            return depth
        for cd in current.control_dependencies:
            parent = cd.branch.instruction
            if id(parent) not in visited:
                visited.add(id(parent))
                queue.append((parent, depth + 1))

    logger.debug("no terminal branch reachable from %r", start)
    return UNKNOWN_DEPTH


class ControlDependenceModel:
    """Registry of the branches of the program under test."""

    def __init__(self, depth_cache: Optional[DepthCache] = None):
        self._branches: Dict[int, Branch] = {}
        self._by_method: Dict[Tuple[str, str], List[Branch]] = defaultdict(list)
        self.depth_cache = depth_cache if depth_cache is not None else DepthCache()

    def add_branch(self, instruction: Instruction, branch_id: int) -> Branch:
        if branch_id in self._branches:
            raise ValueError(f"branch id {branch_id} already registered")
        branch = Branch(instruction, branch_id)
        self._branches[branch_id] = branch
        self._by_method[(instruction.class_name, instruction.method_name)].append(branch)
        return branch

    def add_dependency(self, instruction: Instruction, branch: Branch, value: bool):
        if branch.branch_id not in self._branches:
            raise ValueError(f"unknown branch {branch!r}")
        instruction.add_control_dependency(branch, value)

    def branch(self, branch_id: int) -> Branch:
        return self._branches[branch_id]

    def branches_of(self, class_name: str, method_name: str) -> List[Branch]:
        return list(self._by_method.get((class_name, method_name), []))

    def depth(self, branch: Branch) -> int:
        return self.depth_cache.depth(branch)

    def __len__(self):
        return len(self._branches)

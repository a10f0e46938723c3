"""
Objective and budget contracts used by the local search operators.

Operators never look at distances themselves; they only ask an objective
whether the candidate got better since the last accepted state, and poll a
budget before every trial.
"""
import logging
import time
from typing import Callable, Optional, Protocol

from guidance.candidate import Candidate
from guidance.goals import BranchFitness
from guidance.trace import ExecutionResult

logger = logging.getLogger(__name__)


class LocalSearchBudget:
    """Evaluation-count and/or wall-clock budget, polled cooperatively."""

    def __init__(self, max_evaluations: Optional[int] = None, max_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.max_evaluations = max_evaluations
        self.max_seconds = max_seconds
        self._clock = clock
        self.evaluations = 0
        self._started = clock()

    def start(self):
        self.evaluations = 0
        self._started = self._clock()

    def count_evaluation(self):
        self.evaluations += 1

    def elapsed(self) -> float:
        return self._clock() - self._started

    def is_finished(self) -> bool:
        if self.max_evaluations is not None and self.evaluations >= self.max_evaluations:
            return True
        if self.max_seconds is not None and self.elapsed() >= self.max_seconds:
            return True
        return False

    def __repr__(self):
        return f"LocalSearchBudget(evals={self.evaluations}/{self.max_evaluations}, max_seconds={self.max_seconds})"


class LocalSearchObjective(Protocol):
    def has_improved(self, candidate: Candidate) -> bool: ...

    def has_not_worsened(self, candidate: Candidate) -> bool: ...

    def has_changed(self, candidate: Candidate) -> int:
        """-1 improved, 0 unchanged, 1 worsened"""
        ...


class BranchLocalSearchObjective:
    """
    Objective for one coverage goal.

    The candidate is executed through `executor` whenever it is marked changed;
    the result is cached on the candidate. Fitness is compared against the best
    accepted fitness, which moves whenever a check accepts the candidate.
    """

    def __init__(self, fitness: BranchFitness, executor: Callable[[Candidate], ExecutionResult],
                 candidate: Candidate, budget: Optional[LocalSearchBudget] = None):
        self.fitness_function = fitness
        self.executor = executor
        self.budget = budget if budget is not None else LocalSearchBudget()
        self.best_fitness, self.best_covered = self._evaluate(candidate)

    def _evaluate(self, candidate: Candidate):
        if candidate.changed or candidate.last_execution_result is None:
            candidate.last_execution_result = self.executor(candidate)
            candidate.changed = False
            self.budget.count_evaluation()
        distance = self.fitness_function.distance(candidate.last_execution_result)
        return distance.resulting_branch_fitness(), distance.is_satisfied()

    def _accept(self, fitness: float, covered: bool):
        self.best_fitness, self.best_covered = fitness, covered

    def has_improved(self, candidate: Candidate) -> bool:
        f, covered = self._evaluate(candidate)
        if f < self.best_fitness:
            logger.debug("fitness improved %.6g -> %.6g", self.best_fitness, f)
            self._accept(f, covered)
            return True
        return False

    def has_not_worsened(self, candidate: Candidate) -> bool:
        f, covered = self._evaluate(candidate)
        if f <= self.best_fitness:
            self._accept(f, covered)
            return True
        return False

    def has_changed(self, candidate: Candidate) -> int:
        f, covered = self._evaluate(candidate)
        if covered != self.best_covered:
            if covered:
                self._accept(f, covered)
                return -1
            return 1
        if f < self.best_fitness:
            self._accept(f, covered)
            return -1
        if f > self.best_fitness:
            return 1
        return 0

    def is_covered(self) -> bool:
        return self.best_covered

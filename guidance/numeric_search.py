"""
Alternating variable method on a single numeric statement.

Starting from the current value, a step of +delta (then -delta) is tried; an
improving step is followed by steps of doubling size in the same direction
until one fails, and the last improving value is kept. Rounds repeat until
neither direction improves. Floating point values are then refined at
decreasing step sizes, 10**-1 down to the precision of the type.
"""
import logging
from decimal import ROUND_HALF_EVEN, Decimal

import numpy as np

from guidance.candidate import Candidate, NumericStatement
from guidance.local_search import LocalSearch
from guidance.objective import LocalSearchObjective

logger = logging.getLogger(__name__)


class NumericalLocalSearch(LocalSearch):

    def do_search(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        p = candidate.statement(index)
        if not isinstance(p, NumericStatement):
            raise TypeError(f"statement {index} is not numeric: {p!r}")
        logger.info("Applying search to: %s", p.code())
        improved = self.execute_search(candidate, index, objective)
        logger.info("Finished local search with result %s", p.code())
        return improved

    def execute_search(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        raise NotImplementedError

    def _step(self, candidate: Candidate, index: int, objective: LocalSearchObjective, delta: float) -> bool:
        p = candidate.statement(index)
        logger.debug("Trying increment %s of %s", delta, p.code())
        return candidate.trial(index, p.stepped(delta), objective.has_improved)

    def perform_avm(self, candidate: Candidate, index: int, objective: LocalSearchObjective,
                    initial_delta: float, factor: float) -> bool:
        improved = False
        done = False
        while not done:
            if self.is_finished():
                break
            done = True

            if self._step(candidate, index, objective, initial_delta):
                done = False
                improved = True
                self.iterate(candidate, index, objective, factor * initial_delta, factor)
                continue

            if self.is_finished():
                break
            if self._step(candidate, index, objective, -initial_delta):
                done = False
                improved = True
                self.iterate(candidate, index, objective, -factor * initial_delta, factor)
        return improved

    def iterate(self, candidate: Candidate, index: int, objective: LocalSearchObjective,
                delta: float, factor: float) -> bool:
        """Keep stepping in one direction with a growing step; stops at the last improving value."""
        improvement = False
        while not self.is_finished():
            if not self._step(candidate, index, objective, delta):
                break
            improvement = True
            delta = factor * delta
        return improvement


class IntegerLocalSearch(NumericalLocalSearch):

    def execute_search(self, candidate, index, objective) -> bool:
        return self.perform_avm(candidate, index, objective,
                                self.config.avm_initial_delta, self.config.avm_factor)


class FloatLocalSearch(NumericalLocalSearch):

    def execute_search(self, candidate, index, objective) -> bool:
        p = candidate.statement(index)
        if not np.isfinite(p.value):
            return False

        improved = self.perform_avm(candidate, index, objective,
                                    self.config.avm_initial_delta, self.config.avm_factor)
        if not improved:
            logger.info("Stopping search as variable doesn't influence fitness")
            return False

        logger.info("Checking after the comma: %s", p.code())
        for precision in range(1, p.max_precision + 1):
            if self.is_finished():
                break
            self.round_precision(candidate, index, objective, precision)
            logger.debug("Current precision: %d", precision)
            if self.perform_avm(candidate, index, objective, 10.0 ** -precision, self.config.avm_factor):
                improved = True
        return improved

    def round_precision(self, candidate: Candidate, index: int,
                        objective: LocalSearchObjective, precision: int) -> bool:
        p = candidate.statement(index)
        value = p.value
        if not np.isfinite(value) or self.is_finished():
            return False

        rounded = float(Decimal(value).quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_EVEN))
        if rounded == value:
            return False

        logger.info("Trying to chop precision %d: %r -> %r", precision, value, rounded)
        if candidate.trial(index, rounded, objective.has_not_worsened):
            return True
        logger.info("Restoring old value: %r", value)
        return False

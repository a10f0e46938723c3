"""Common base of the local search operators and the per-statement factory."""
import random
from typing import Optional

from guidance.candidate import Candidate, NumericStatement, StringStatement
from guidance.config import DEFAULT_CONFIG, SearchConfig
from guidance.objective import LocalSearchBudget, LocalSearchObjective


class LocalSearch:
    """Improves one statement of a candidate in place; returns whether it got better."""

    def __init__(self, budget: Optional[LocalSearchBudget] = None,
                 config: SearchConfig = DEFAULT_CONFIG, rng: Optional[random.Random] = None):
        self.budget = budget if budget is not None else LocalSearchBudget()
        self.config = config
        self.rng = rng if rng is not None else random.Random()

    def is_finished(self) -> bool:
        return self.budget.is_finished()

    def do_search(self, candidate: Candidate, index: int, objective: LocalSearchObjective) -> bool:
        raise NotImplementedError


def local_search_for(statement, budget: Optional[LocalSearchBudget] = None,
                     config: SearchConfig = DEFAULT_CONFIG, rng: Optional[random.Random] = None,
                     avm_strings: bool = True) -> LocalSearch:
    # imported here, both operator modules import LocalSearch from this one
    from guidance.numeric_search import FloatLocalSearch, IntegerLocalSearch
    from guidance.string_search import StringAVMLocalSearch, StringLocalSearch

    if isinstance(statement, NumericStatement):
        cls = FloatLocalSearch if statement.is_floating else IntegerLocalSearch
    elif isinstance(statement, StringStatement):
        cls = StringAVMLocalSearch if avm_strings else StringLocalSearch
    else:
        raise TypeError(f"no local search for {statement!r}")
    return cls(budget, config, rng)

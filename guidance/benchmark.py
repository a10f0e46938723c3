"""
Benchmark subjects and runner for the local search operators.

Each subject is a small Python function instrumented by hand with a
BranchProbe, together with the control-dependence model of its branches.
The runner targets every branch outcome of every subject from seeded random
starts and collects one row per trial into a pandas DataFrame.
"""
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from guidance.calculator import ControlFlowDistanceCalculator
from guidance.candidate import Candidate, MethodStatement, NumericStatement, StringStatement
from guidance.cdg import ControlDependenceModel, Instruction
from guidance.goals import BranchFitness, BranchGoal, CoverageGoal, RootGoal
from guidance.local_search import local_search_for
from guidance.objective import BranchLocalSearchObjective, LocalSearchBudget
from guidance.probe import BranchProbe
from guidance.trace import ExecutionResult

logger = logging.getLogger(__name__)

INITIAL_LOW, INITIAL_HIGH = -1000, 1000
MAX_INITIAL_STRING = 10


# =====================
# Subjects
# =====================
def triangle(probe: BranchProbe, a: int, b: int, c: int) -> str:
    with probe.method("Triangle", "classify"):
        nonpositive = probe.bool_or(probe.bool_or(probe.compare(a, 0, "<="), probe.compare(b, 0, "<=")),
                                    probe.compare(c, 0, "<="))
        if probe.branch(nonpositive, 101):
            return "invalid"
        degenerate = probe.bool_or(probe.bool_or(probe.compare(a + b, c, "<="), probe.compare(a + c, b, "<=")),
                                   probe.compare(b + c, a, "<="))
        if probe.branch(degenerate, 102):
            return "invalid"
        if probe.branch(probe.bool_and(probe.compare(a, b, "=="), probe.compare(b, c, "==")), 103):
            return "equilateral"
        isosceles = probe.bool_or(probe.bool_or(probe.compare(a, b, "=="), probe.compare(b, c, "==")),
                                  probe.compare(a, c, "=="))
        if probe.branch(isosceles, 104):
            return "isosceles"
        return "scalene"


def needle(probe: BranchProbe, x: int) -> bool:
    with probe.method("Needle", "find"):
        return probe.branch(probe.compare(x, 4242, "=="), 201)


def plateau(probe: BranchProbe, x: float) -> str:
    with probe.method("Plateau", "locate"):
        if probe.branch(probe.compare(x, 100.0, ">"), 301):
            if probe.branch(probe.compare(x, 100.5, "<"), 302):
                if probe.branch(probe.compare(x, 100.25, "=="), 303):
                    return "exact"
                return "inside"
            return "above"
        return "below"


def classify_word(probe: BranchProbe, s: str) -> str:
    with probe.method("Words", "classify"):
        if probe.branch(probe.compare(len(s), 0, "=="), 401):
            return "empty"
        if probe.branch(probe.compare(s, "evo", "=="), 402):
            return "keyword"
        if probe.branch(probe.compare(ord(s[0]), ord("z"), "=="), 403):
            return "zed"
        return "word"


@dataclass
class Subject:
    name: str
    class_name: str
    method_name: str
    kinds: Tuple[str, ...]
    function: Callable
    # (branch id, line, [(parent bid, value), ...])
    branches: Tuple[Tuple[int, int, Tuple[Tuple[int, bool], ...]], ...]

    def register(self, model: ControlDependenceModel):
        for bid, line, deps in self.branches:
            instruction = Instruction(self.class_name, self.method_name, line)
            model.add_branch(instruction, bid)
            for parent, value in deps:
                model.add_dependency(instruction, model.branch(parent), value)

    @property
    def arity(self) -> int:
        return len(self.kinds)

    def random_candidate(self, rng: np.random.Generator) -> Candidate:
        statements = []
        for kind in self.kinds:
            if kind == "str":
                n = int(rng.integers(0, MAX_INITIAL_STRING + 1))
                statements.append(StringStatement("".join(chr(int(c)) for c in rng.integers(32, 127, size=n))))
            elif kind.startswith("float"):
                statements.append(NumericStatement(float(rng.uniform(INITIAL_LOW, INITIAL_HIGH)), kind))
            else:
                statements.append(NumericStatement(int(rng.integers(INITIAL_LOW, INITIAL_HIGH + 1)), kind))
        statements.append(MethodStatement(self.class_name, self.method_name))
        return Candidate(statements)

    def execute(self, candidate: Candidate) -> ExecutionResult:
        probe = BranchProbe()
        args = [s.value for s in candidate.statements[:self.arity]]
        exceptions = {}
        try:
            self.function(probe, *args)
        except Exception as e:
            # the subject's own failure is part of the observed behaviour
            exceptions[self.arity] = e
        return ExecutionResult(probe.trace, candidate.statements, exceptions)


SUBJECTS: Dict[str, Subject] = {
    s.name: s for s in (
        Subject("triangle", "Triangle", "classify", ("int32", "int32", "int32"), triangle,
                ((101, 3, ()), (102, 7, ((101, False),)), (103, 10, ((102, False),)),
                 (104, 14, ((103, False),)))),
        Subject("needle", "Needle", "find", ("int32",), needle, ((201, 2, ()),)),
        Subject("plateau", "Plateau", "locate", ("float64",), plateau,
                ((301, 2, ()), (302, 3, ((301, True),)), (303, 4, ((302, True),)))),
        Subject("classify_word", "Words", "classify", ("str",), classify_word,
                ((401, 2, ()), (402, 4, ((401, False),)), (403, 6, ((402, False),)))),
    )
}


def build_model(subjects: Sequence[Subject]) -> Tuple[ControlDependenceModel, Dict[str, List[CoverageGoal]]]:
    model = ControlDependenceModel()
    goals = {}
    for subject in subjects:
        subject.register(model)
        branches = model.branches_of(subject.class_name, subject.method_name)
        goals[subject.name] = [RootGoal(subject.class_name, subject.method_name)] + [
            BranchGoal(b, value) for b in branches for value in (True, False)]
    return model, goals


# =====================
# Runner
# =====================
def search_goal(subject: Subject, goal: CoverageGoal, calculator: ControlFlowDistanceCalculator,
                candidate: Candidate, budget: LocalSearchBudget, rng: random.Random):
    """Alternate local search over the subject's arguments until covered, stuck or out of budget."""
    objective = BranchLocalSearchObjective(BranchFitness(goal, calculator), subject.execute, candidate, budget)
    history = [objective.best_fitness]
    operators = set()

    improved = True
    while improved and not objective.is_covered() and not budget.is_finished():
        improved = False
        for i in range(subject.arity):
            op = local_search_for(candidate.statement(i), budget, rng=rng)
            operators.add(type(op).__name__)
            if op.do_search(candidate, i, objective):
                improved = True
            history.append(objective.best_fitness)
            if objective.is_covered() or budget.is_finished():
                break
    return objective, history, sorted(operators)


def run_benchmark(subject_names: Optional[Sequence[str]] = None, trials: int = 5,
                  max_evaluations: int = 2000, seed: int = 42) -> pd.DataFrame:
    subjects = [SUBJECTS[n] for n in (subject_names or SUBJECTS)]
    model, goals = build_model(subjects)
    calculator = ControlFlowDistanceCalculator(model)

    rows = []
    for subject in subjects:
        for goal in goals[subject.name]:
            for trial in range(trials):
                rng = np.random.default_rng(seed + trial)
                candidate = subject.random_candidate(rng)
                budget = LocalSearchBudget(max_evaluations=max_evaluations)
                t0 = time.perf_counter()
                objective, history, operators = search_goal(
                    subject, goal, calculator, candidate, budget, random.Random(seed + trial))
                rows.append({
                    "subject": subject.name,
                    "goal": str(goal),
                    "operators": "+".join(operators),
                    "trial": trial,
                    "covered": objective.is_covered(),
                    "fitness": objective.best_fitness,
                    "evaluations": budget.evaluations,
                    "seconds": time.perf_counter() - t0,
                    "solution": candidate.values()[:subject.arity],
                    "history": history,
                })
                logger.info("%s trial %d: covered=%s fitness=%.4g evals=%d",
                            goal, trial, objective.is_covered(), objective.best_fitness, budget.evaluations)
    return pd.DataFrame(rows)


def summarize(df: pd.DataFrame) -> pd.DataFrame:
    return (df.groupby(["subject", "goal"], sort=False)
              .agg(coverage=("covered", "mean"), evaluations=("evaluations", "mean"),
                   best_fitness=("fitness", "min"))
              .reset_index())


def plot_histories(df: pd.DataFrame, save_path: str):
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    goals = list(dict.fromkeys(df["goal"]))
    fig, axes = plt.subplots(len(goals), 1, figsize=(8, 2.5 * len(goals)), squeeze=False)
    for ax, goal in zip(axes[:, 0], goals):
        for _, row in df[df["goal"] == goal].iterrows():
            ax.plot(np.arange(len(row["history"])), row["history"], alpha=0.7, label=f"trial {row['trial']}")
        ax.set_title(goal, fontsize=9)
        ax.set_ylabel("fitness")
    axes[-1, 0].set_xlabel("operator application")
    fig.tight_layout()
    fig.savefig(save_path)
    plt.close(fig)

import pytest

from guidance.calculator import ControlFlowDistanceCalculator
from guidance.cdg import ControlDependenceModel, Instruction
from guidance.objective import LocalSearchBudget
from guidance.trace import ExecutionResult, ExecutionTrace, MethodCall

CLASS_NAME = "pkg.NestedConditions"
METHOD_NAME = "classify"


@pytest.fixture
def model():
    return ControlDependenceModel()


@pytest.fixture
def calculator(model):
    return ControlFlowDistanceCalculator(model)


@pytest.fixture
def make_branch(model):
    def _make(bid, line=0, deps=(), handler=False, class_name=CLASS_NAME, method_name=METHOD_NAME):
        instruction = Instruction(class_name, method_name, line, exception_handler_entry=handler)
        branch = model.add_branch(instruction, bid)
        for parent, value in deps:
            model.add_dependency(instruction, parent, value)
        return branch
    return _make


@pytest.fixture
def make_call():
    def _make(hits=(), class_name=CLASS_NAME, method_name=METHOD_NAME):
        call = MethodCall(class_name, method_name)
        for bid, true_d, false_d in hits:
            call.add_branch(bid, true_d, false_d)
        return call
    return _make


@pytest.fixture
def make_result():
    def _make(calls=(), covered_true=(), covered_false=(), methods=(), **kwargs):
        trace = ExecutionTrace()
        trace.method_calls.extend(calls)
        trace.covered_true_branches.update(covered_true)
        trace.covered_false_branches.update(covered_false)
        trace.covered_methods.update(methods)
        return ExecutionResult(trace, **kwargs)
    return _make


class FakeOracle:
    """Objective over statement `index` driven by a plain fitness function (lower is better)."""

    def __init__(self, fitness, candidate, index=0, budget=None):
        self.fitness = fitness
        self.index = index
        self.budget = budget
        self.best = fitness(candidate.statement(index).value)
        self.calls = {"has_improved": 0, "has_not_worsened": 0, "has_changed": 0}
        self.executions = 0

    def _evaluate(self, candidate):
        if candidate.changed:
            self.executions += 1
            candidate.last_execution_result = ("result", candidate.statement(self.index).value)
            candidate.changed = False
            if self.budget is not None:
                self.budget.count_evaluation()
        return self.fitness(candidate.statement(self.index).value)

    def has_improved(self, candidate):
        self.calls["has_improved"] += 1
        f = self._evaluate(candidate)
        if f < self.best:
            self.best = f
            return True
        return False

    def has_not_worsened(self, candidate):
        self.calls["has_not_worsened"] += 1
        f = self._evaluate(candidate)
        if f <= self.best:
            self.best = f
            return True
        return False

    def has_changed(self, candidate):
        self.calls["has_changed"] += 1
        f = self._evaluate(candidate)
        if f < self.best:
            self.best = f
            return -1
        return 1 if f > self.best else 0


@pytest.fixture
def oracle_factory():
    return FakeOracle


@pytest.fixture
def unlimited_budget():
    return LocalSearchBudget()

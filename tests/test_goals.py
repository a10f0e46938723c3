import pytest

from guidance.distance import ControlFlowDistance
from guidance.goals import BranchFitness, BranchGoal, RootGoal, coverage_goal


def test_root_goal_value_is_always_true():
    goal = coverage_goal("C", "m")
    assert isinstance(goal, RootGoal)
    assert goal.value is True
    assert goal.branch is None


def test_root_goal_with_false_outcome_is_rejected():
    with pytest.raises(ValueError):
        coverage_goal("C", "m", branch=None, value=False)


def test_null_names_are_rejected(make_branch):
    branch = make_branch(1)
    with pytest.raises(ValueError):
        coverage_goal(None, "m")
    with pytest.raises(ValueError):
        coverage_goal(branch.class_name, None, branch, True)


def test_branch_owner_must_match(make_branch):
    branch = make_branch(1)
    with pytest.raises(ValueError):
        coverage_goal("SomethingElse", branch.method_name, branch, False)
    with pytest.raises(ValueError):
        coverage_goal(branch.class_name, "other", branch, True)


def test_branch_goal_needs_a_branch():
    with pytest.raises(ValueError):
        BranchGoal(None, True)


def test_branch_goal_from_factory(make_branch):
    branch = make_branch(1)
    goal = coverage_goal(branch.class_name, branch.method_name, branch, False)
    assert goal == BranchGoal(branch, False)
    assert goal.class_name == branch.class_name
    assert goal.method_name == branch.method_name


def test_goal_equality_and_hash(make_branch):
    b1 = make_branch(1, line=10)
    b2 = make_branch(2, line=20)
    g1 = BranchGoal(b1, True)
    assert g1 == BranchGoal(b1, True)
    assert hash(g1) == hash(BranchGoal(b1, True))
    assert g1 != BranchGoal(b2, True)
    assert g1 != BranchGoal(b1, False)
    assert g1 != RootGoal(b1.class_name, b1.method_name)


def test_goal_ordering(make_branch):
    b1 = make_branch(1, line=10)
    b2 = make_branch(2, line=20)
    b3 = make_branch(3, line=10)
    root = RootGoal(b1.class_name, b1.method_name)
    g1, g2, g3 = BranchGoal(b1, True), BranchGoal(b2, True), BranchGoal(b3, True)
    g1_false = BranchGoal(b1, False)

    assert g1 < g2 and g2 > g1
    assert g1_false < g1
    assert g1 < g3
    assert sorted([g2, g1, root, g1_false]) == [root, g1_false, g1, g2]


def test_branch_fitness(calculator, make_branch, make_result, make_call):
    branch = make_branch(1)
    fitness = BranchFitness(BranchGoal(branch, True), calculator)
    result = make_result([make_call([(1, 3.0, 0.0)])], covered_false=[1])

    assert fitness.distance(result) == ControlFlowDistance(0, 3.0)
    assert fitness.fitness(result) == pytest.approx(0.75)
    assert not fitness.is_covered(result)

import math

import numpy as np
import pytest

from guidance.candidate import Candidate, NumericStatement, StringStatement
from guidance.local_search import local_search_for
from guidance.numeric_search import FloatLocalSearch, IntegerLocalSearch
from guidance.objective import LocalSearchBudget
from guidance.string_search import StringAVMLocalSearch, StringLocalSearch


def peak_at_100(v):
    return 100 - v if v <= 100 else 1000


def test_integer_avm_climbs_to_optimum(oracle_factory):
    candidate = Candidate([NumericStatement(10)])
    oracle = oracle_factory(peak_at_100, candidate)

    assert IntegerLocalSearch().do_search(candidate, 0, oracle)
    assert candidate.statement(0).value == 100
    assert oracle.best == 0


def test_integer_avm_respects_budget(oracle_factory):
    budget = LocalSearchBudget(max_evaluations=3)
    candidate = Candidate([NumericStatement(10)])
    oracle = oracle_factory(peak_at_100, candidate, budget=budget)

    assert IntegerLocalSearch(budget).do_search(candidate, 0, oracle)
    # 11, 13, 17
    assert candidate.statement(0).value == 17
    assert oracle.calls["has_improved"] == 3


def test_failed_steps_restore_everything(oracle_factory):
    candidate = Candidate([NumericStatement(10)])
    candidate.last_execution_result = "sentinel"
    candidate.changed = False
    oracle = oracle_factory(lambda v: 5, candidate)

    assert not IntegerLocalSearch().do_search(candidate, 0, oracle)
    assert candidate.statement(0).value == 10
    assert candidate.last_execution_result == "sentinel"
    assert candidate.changed is False
    assert oracle.calls["has_improved"] == 2


def test_float_search_refines_after_the_comma(oracle_factory):
    candidate = Candidate([NumericStatement(0.0, "float64")])
    oracle = oracle_factory(lambda v: abs(v - 3.14159), candidate)

    assert FloatLocalSearch().do_search(candidate, 0, oracle)
    assert candidate.statement(0).value == pytest.approx(3.14159, abs=1e-6)


def test_float_search_skips_irrelevant_variable(oracle_factory):
    candidate = Candidate([NumericStatement(2.5, "float64")])
    oracle = oracle_factory(lambda v: 1.0, candidate)

    assert not FloatLocalSearch().do_search(candidate, 0, oracle)
    assert candidate.statement(0).value == 2.5
    assert oracle.calls["has_not_worsened"] == 0


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
def test_float_search_aborts_on_non_finite(oracle_factory, value):
    candidate = Candidate([NumericStatement(value, "float64")])
    oracle = oracle_factory(lambda v: 1.0, candidate)

    assert not FloatLocalSearch().do_search(candidate, 0, oracle)
    assert sum(oracle.calls.values()) == 0


def test_round_precision_accepts_neutral_rounding(oracle_factory):
    candidate = Candidate([NumericStatement(1.23456, "float64")])
    oracle = oracle_factory(lambda v: 0.0, candidate)

    assert FloatLocalSearch().round_precision(candidate, 0, oracle, 2)
    assert candidate.statement(0).value == 1.23


def test_round_precision_is_half_even(oracle_factory):
    candidate = Candidate([NumericStatement(0.125, "float64")])
    oracle = oracle_factory(lambda v: 0.0, candidate)

    FloatLocalSearch().round_precision(candidate, 0, oracle, 2)
    assert candidate.statement(0).value == 0.12


def test_round_precision_restores_when_worse(oracle_factory):
    candidate = Candidate([NumericStatement(1.23456, "float64")])
    oracle = oracle_factory(lambda v: abs(v - 1.23456), candidate)

    assert not FloatLocalSearch().round_precision(candidate, 0, oracle, 2)
    assert candidate.statement(0).value == 1.23456


def test_numeric_kinds():
    f = NumericStatement(0.1, "float32")
    assert f.value == float(np.float32(0.1))
    assert f.value != 0.1
    assert f.max_precision == 7
    assert NumericStatement(0.1, "float64").max_precision == 15

    small = NumericStatement(120, "int8")
    assert small.stepped(10) == 127
    small.set_value(-1000)
    assert small.value == -128

    with pytest.raises(ValueError):
        NumericStatement(1, "int128")


def test_operator_for_statement():
    assert isinstance(local_search_for(NumericStatement(1)), IntegerLocalSearch)
    assert isinstance(local_search_for(NumericStatement(1.0, "float32")), FloatLocalSearch)
    assert isinstance(local_search_for(StringStatement("a")), StringAVMLocalSearch)
    assert isinstance(local_search_for(StringStatement("a"), avm_strings=False), StringLocalSearch)
    with pytest.raises(TypeError):
        local_search_for(object())


def test_non_numeric_statement_is_rejected(oracle_factory):
    candidate = Candidate([StringStatement("x")])
    with pytest.raises(TypeError):
        IntegerLocalSearch().do_search(candidate, 0, oracle_factory(len, candidate))

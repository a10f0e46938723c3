import threading

import pytest

import guidance.cdg as cdg
from guidance.cdg import UNKNOWN_DEPTH, DepthCache, Instruction, compute_depth


def test_depth_of_nested_branches(model, make_branch):
    outer = make_branch(1, line=24)
    inner = make_branch(2, line=25, deps=[(outer, False)])
    innermost = make_branch(3, line=26, deps=[(inner, True)])

    assert model.depth(outer) == 0
    assert model.depth(inner) == 1
    assert model.depth(innermost) == 2


def test_depth_takes_shortest_path(model, make_branch):
    a = make_branch(1)
    b = make_branch(2, deps=[(a, True)])
    c = make_branch(3, deps=[(b, True)])
    d = make_branch(4, deps=[(c, True), (a, False)])
    assert model.depth(d) == 1


def test_depth_stops_at_exception_handler(model, make_branch):
    a = make_branch(1)
    b = make_branch(2, deps=[(a, True)])
    handler = make_branch(3, deps=[(b, True)], handler=True)
    inside = make_branch(4, deps=[(handler, True)])
    assert model.depth(handler) == 0
    assert model.depth(inside) == 1


def test_cycle_gives_unknown_depth(model, make_branch):
    b1 = make_branch(1)
    b2 = make_branch(2, deps=[(b1, True)])
    b3 = make_branch(3, deps=[(b2, True)])
    model.add_dependency(b1.instruction, b3, True)
    assert model.depth(b1) == UNKNOWN_DEPTH
    assert model.depth(b3) == UNKNOWN_DEPTH


def test_depth_is_computed_once(model, make_branch, monkeypatch):
    a = make_branch(1)
    b = make_branch(2, deps=[(a, True)])
    calls = []
    real = cdg.compute_depth

    def counting(instruction):
        calls.append(instruction)
        return real(instruction)

    monkeypatch.setattr(cdg, "compute_depth", counting)
    assert model.depth(b) == 1
    assert model.depth(b) == 1
    assert len(calls) == 1
    assert 2 in model.depth_cache


def test_shared_cache_across_threads(model, make_branch):
    chain = [make_branch(1)]
    for bid in range(2, 30):
        chain.append(make_branch(bid, deps=[(chain[-1], True)]))
    cache = DepthCache()
    results = []

    def worker():
        results.append([cache.depth(b) for b in chain])

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert all(r == list(range(29)) for r in results)
    assert len(cache) == 29


def test_compute_depth_on_bare_instruction():
    assert compute_depth(Instruction("C", "m")) == 0


def test_duplicate_branch_id_rejected(model, make_branch):
    make_branch(7)
    with pytest.raises(ValueError):
        make_branch(7)


def test_branches_of_method(model, make_branch):
    a = make_branch(1)
    b = make_branch(2, class_name="Other", method_name="run")
    assert model.branches_of(a.class_name, a.method_name) == [a]
    assert model.branches_of("Other", "run") == [b]
    assert model.branch(2) is b
    assert len(model) == 2

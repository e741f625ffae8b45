from __future__ import annotations

import pytest

from teal_dash.core.exceptions import NotReady, ReentrancyError
from teal_dash.core.reactive import MISSING, NodeStatus, ReactiveGraph, req


def _make_chain():
    graph = ReactiveGraph("test")
    a = graph.value("a", 1)
    b = graph.computed("b", lambda x: x + 1, deps=[a])
    c = graph.computed("c", lambda x: x * 10, deps=[b])
    return graph, a, b, c


def test_computed_nodes_evaluate_on_creation():
    _, _, b, c = _make_chain()
    assert b.value == 2
    assert c.value == 20
    assert c.status is NodeStatus.READY


def test_setting_source_recomputes_dependents_in_order():
    graph, a, b, c = _make_chain()
    a.set(5)
    assert (b.value, c.value) == (6, 60)
    assert graph.last_evaluated == ["b", "c"]


def test_unchanged_value_is_a_no_op():
    graph, a, b, _ = _make_chain()
    before = b.eval_count
    assert a.set(1) is False
    assert b.eval_count == before


def test_diamond_evaluates_each_node_once_per_batch():
    graph = ReactiveGraph()
    a = graph.value("a", 1)
    left = graph.computed("left", lambda x: x + 1, deps=[a])
    right = graph.computed("right", lambda x: x + 2, deps=[a])
    calls = []

    def join(l, r):
        calls.append((l, r))
        return l + r

    bottom = graph.computed("bottom", join, deps=[left, right])
    calls.clear()

    with graph.batch():
        a.set(10)
        a.set(20)

    assert calls == [(21, 22)]
    assert bottom.value == 43


def test_node_without_input_value_is_pending():
    graph = ReactiveGraph()
    source = graph.value("x")
    node = graph.computed("y", lambda v: v * 2, deps=[source])
    assert node.status is NodeStatus.PENDING
    assert node.value is MISSING

    source.set(4)
    assert node.value == 8


def test_error_keeps_last_good_value_and_does_not_trigger_dependents():
    graph = ReactiveGraph()
    source = graph.value("x", 1)

    def invert(v):
        return 1 / v

    node = graph.computed("inv", invert, deps=[source])
    downstream = graph.computed("down", lambda v: v * 2, deps=[node])
    before = downstream.eval_count

    source.set(0)

    assert node.status is NodeStatus.ERROR
    assert isinstance(node.error, ZeroDivisionError)
    assert node.value == 1.0
    assert downstream.eval_count == before
    assert downstream.value == 2.0


def test_recovery_after_error_triggers_dependents_again():
    graph = ReactiveGraph()
    source = graph.value("x", 1)
    node = graph.computed("inv", lambda v: 1 / v, deps=[source])
    downstream = graph.computed("down", lambda v: v * 2, deps=[node])

    source.set(0)
    source.set(4)

    assert node.status is NodeStatus.READY
    assert node.error is None
    assert downstream.value == 0.5


def test_req_raises_not_ready_for_missing_values():
    with pytest.raises(NotReady):
        req(None)
    with pytest.raises(NotReady):
        req("x", [])
    req(0, False, "a", [1])


def test_req_inside_computation_makes_node_pending():
    graph = ReactiveGraph()
    source = graph.value("x", None)

    def needs_value(v):
        req(v)
        return v

    node = graph.computed("n", needs_value, deps=[source])
    assert node.status is NodeStatus.PENDING
    assert node.error is None


def test_kwdeps_are_passed_by_name():
    graph = ReactiveGraph()
    a = graph.value("a", 2)
    b = graph.value("b", 3)
    node = graph.computed("pow", lambda base, exp: base ** exp, deps=[a], kwdeps={"exp": b})
    assert node.value == 8


def test_isolate_reads_without_dependency():
    graph = ReactiveGraph()
    a = graph.value("a", 1)
    b = graph.value("b", 10)
    node = graph.computed("sum", lambda x: x + graph.isolate(b), deps=[a])

    b.set(20)
    assert node.value == 11

    a.set(2)
    assert node.value == 22


def test_dependencies_must_share_graph():
    first = ReactiveGraph("one")
    second = ReactiveGraph("two")
    node = first.value("a", 1)
    with pytest.raises(ValueError):
        second.computed("b", lambda x: x, deps=[node])


def test_setting_source_inside_computation_is_rejected():
    graph = ReactiveGraph()
    a = graph.value("a", 1)
    other = graph.value("other", 0)

    def side_effect(v):
        other.set(v)
        return v

    node = graph.computed("bad", side_effect, deps=[a])
    assert node.status is NodeStatus.ERROR
    assert isinstance(node.error, ReentrancyError)


def test_error_before_first_value_reaches_dependents():
    graph = ReactiveGraph()
    source = graph.value("x", 0)
    node = graph.computed("inv", lambda v: 1 / v, deps=[source])
    downstream = graph.computed("down", lambda v: v * 2, deps=[node])

    assert downstream.status is NodeStatus.ERROR
    assert downstream.error is node.error
    assert downstream.upstream_failed
    assert not node.upstream_failed

    source.set(2)
    assert downstream.status is NodeStatus.READY
    assert downstream.value == 1.0


def test_dependents_follow_a_valueless_node_back_to_pending():
    graph = ReactiveGraph()
    source = graph.value("x", 0)

    def invert(v):
        req(v)
        return 1 / v

    node = graph.computed("inv", invert, deps=[source])
    downstream = graph.computed("down", lambda v: v, deps=[node])
    assert downstream.status is NodeStatus.ERROR

    source.set(None)
    assert node.status is NodeStatus.PENDING
    assert downstream.status is NodeStatus.PENDING
    assert downstream.error is None


def test_failed_batch_restores_sources_and_skips_the_flush():
    graph = ReactiveGraph()
    a = graph.value("a", 1)
    b = graph.value("b", 2)
    total = graph.computed("total", lambda x, y: x + y, deps=[a, b])

    with pytest.raises(RuntimeError):
        with graph.batch():
            a.set(10)
            raise RuntimeError("half-applied")

    assert a.value == 1
    assert total.value == 3
    before = total.eval_count

    b.set(5)
    assert total.value == 6
    assert total.eval_count == before + 1

import pytest

from ossim_cli.deadlock import GraphState, check_safety, tally_edges
from ossim_cli.models import Edge, ResourceData


def _request(pid, rid):
    return Edge(from_id=pid, to_id=rid, is_request=True)


def _hold(rid, pid):
    return Edge(from_id=rid, to_id=pid, is_request=False)


def test_no_processes_is_trivially_safe():
    result = check_safety([], [ResourceData("R1", 1)], [])
    assert result.is_safe
    assert result.safe_sequence == []


def test_holder_without_requests_is_safe():
    result = check_safety(["P1"], [ResourceData("R1", 1)], [_hold("R1", "P1")])
    assert result.is_safe
    assert result.safe_sequence == ["P1"]


def test_holder_releases_for_waiting_process():
    result = check_safety(
        ["P1", "P2"],
        [ResourceData("R1", 1)],
        [_request("P1", "R1"), _hold("R1", "P2")],
    )
    assert result.is_safe
    assert result.safe_sequence == ["P2", "P1"]


def test_circular_wait_is_unsafe():
    result = check_safety(
        ["P1", "P2"],
        [ResourceData("R1", 1), ResourceData("R2", 1)],
        [_hold("R1", "P1"), _request("P1", "R2"), _hold("R2", "P2"), _request("P2", "R1")],
    )
    assert not result.is_safe
    assert result.safe_sequence == []


def test_sequence_follows_input_order_and_restarts_scan():
    # P2 frees R1, after which the scan starts over and P1 goes before P3.
    result = check_safety(
        ["P1", "P2", "P3"],
        [ResourceData("R1", 1)],
        [_request("P1", "R1"), _hold("R1", "P2")],
    )
    assert result.safe_sequence == ["P2", "P1", "P3"]


def test_multi_instance_resource():
    result = check_safety(
        ["P1", "P2"],
        [ResourceData("R1", 2)],
        [_hold("R1", "P1"), _request("P2", "R1"), _request("P1", "R1")],
    )
    # One instance is free: whichever process comes first can proceed.
    assert result.is_safe
    assert result.safe_sequence == ["P1", "P2"]


def test_unsatisfiable_request_never_makes_state_safer():
    resources = [ResourceData("R1", 1), ResourceData("R2", 1)]
    edges = [_hold("R1", "P1"), _hold("R2", "P2"), _request("P1", "R2")]
    before = check_safety(["P1", "P2"], resources, edges)
    after = check_safety(["P1", "P2"], resources, edges + [_request("P2", "R1")])
    assert before.is_safe
    assert not after.is_safe

    unsafe_edges = edges + [_request("P2", "R1")]
    still = check_safety(["P1", "P2"], resources, unsafe_edges + [_request("P1", "R1")])
    assert not still.is_safe


def test_edges_with_unknown_or_misdirected_ids_are_ignored():
    allocated, requested = tally_edges(
        ["P1"],
        [ResourceData("R1", 1)],
        [
            _request("P9", "R1"),
            _request("P1", "R9"),
            _hold("P1", "R1"),  # wrong direction for an allocation
            _request("R1", "P1"),  # wrong direction for a request
            _hold("R1", "P1"),
        ],
    )
    assert {p: dict(r) for p, r in allocated.items()} == {"P1": {"R1": 1}}
    assert {p: dict(r) for p, r in requested.items()} == {}


def _graph():
    graph = GraphState()
    graph.add_process()
    graph.add_process()
    graph.add_resource(total_instances=1)
    return graph


def test_graph_auto_ids():
    graph = _graph()
    assert graph.processes == ["P1", "P2"]
    assert [r.id for r in graph.resources] == ["R1"]


def test_graph_rejects_misdirected_edges():
    graph = _graph()
    ok, _ = graph.add_edge(Edge("R1", "P1", is_request=True))
    assert not ok
    ok, _ = graph.add_edge(Edge("P1", "R1", is_request=False))
    assert not ok
    ok, _ = graph.add_edge(Edge("P1", "P2", is_request=True))
    assert not ok
    ok, _ = graph.add_edge(Edge("P1", "R7", is_request=True))
    assert not ok
    assert graph.edges == []


def test_graph_caps_allocations_at_total_instances():
    graph = _graph()
    assert graph.add_edge(_hold("R1", "P1"))[0]
    ok, reason = graph.add_edge(_hold("R1", "P2"))
    assert not ok
    assert "R1" in reason
    assert graph.available_instances() == {"R1": 0}

    graph.set_instances("R1", 2)
    assert graph.add_edge(_hold("R1", "P2"))[0]
    assert graph.allocated_counts() == {"R1": 2}


def test_set_instances_rejects_unknown_resource_and_over_allocation():
    graph = _graph()
    graph.set_instances("R1", 2)
    graph.add_edge(_hold("R1", "P1"))
    graph.add_edge(_hold("R1", "P2"))

    with pytest.raises(ValueError, match="Unknown resource"):
        graph.set_instances("R9", 3)
    with pytest.raises(ValueError, match="allocated"):
        graph.set_instances("R1", 1)
    assert graph.available_instances() == {"R1": 0}


def test_graph_rejects_duplicate_edges():
    graph = _graph()
    assert graph.add_edge(_request("P1", "R1"))[0]
    assert not graph.add_edge(_request("P1", "R1"))[0]


def test_removing_a_node_drops_its_edges():
    graph = _graph()
    graph.add_edge(_hold("R1", "P2"))
    graph.add_edge(_request("P1", "R1"))
    graph.remove_node("P2")
    assert graph.edges == [_request("P1", "R1")]
    assert graph.check_safety().safe_sequence == ["P1"]

    graph.remove_edge(_request("P1", "R1"))
    assert graph.edges == []

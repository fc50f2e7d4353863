from __future__ import annotations

import math

import pytest

from bikeroute.arc import Arc
from bikeroute.errors import ArcNotInRouteError, IlsError
from bikeroute.graph import BikeGraph, GraphEdge, build_bike_graph
from bikeroute.oracle import GraphOracle
from bikeroute.route import Route

STEP_DEG = math.degrees(10.0 / 6_371_000.0)


def _line_graph(priorities: dict[int, float]) -> BikeGraph:
    # 0 - 1 - 2 - 3 - 4, 10 m per edge, edge i joins i and i + 1
    nodes = {i: (i * STEP_DEG, 0.0) for i in range(5)}
    edges = [
        GraphEdge(edge_id=i, u=i, v=i + 1, distance_m=10.0, priority=priorities.get(i, 0.0))
        for i in range(4)
    ]
    return build_bike_graph(nodes, edges)


def _arc(oracle: GraphOracle, edge_id: int, base_node: int) -> Arc:
    edge = next(e for e in oracle.edges_from(base_node) if e.edge_id == edge_id)
    return Arc.from_edge(edge, oracle.score_of(edge))


def _assert_consistent(route: Route) -> None:
    if route.is_empty():
        assert route.segments == ()
        assert route.cost == pytest.approx(0.0)
        return
    assert len(route.segments) == len(route) + 1
    arcs = route.arcs
    for i, segment in enumerate(route.segments):
        assert segment.found
        assert segment.start == (arcs[i - 1].adj_node if i > 0 else route.start)
        assert segment.end == (arcs[i].base_node if i < len(arcs) else route.end)
    expected = sum(s.distance for s in route.segments) + sum(a.cost for a in arcs)
    assert route.cost == pytest.approx(expected)
    assert route.score == pytest.approx(sum(a.score for a in arcs))
    used = [a.edge_id for a in arcs] + [e.edge_id for s in route.segments for e in s.edges]
    assert len(used) == len(set(used))


def test_add_arc_builds_segments_around_it() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)

    route.add_arc(0, _arc(oracle, 1, 1))

    assert len(route) == 1
    assert route.cost == pytest.approx(40.0)
    assert route.score == pytest.approx(5.0)
    assert route.remaining_budget == pytest.approx(10.0)
    assert route.segments[0].nodes == (0, 1)
    assert route.segments[1].nodes == (2, 3, 4)
    _assert_consistent(route)


def test_add_second_arc_replaces_the_gap_segment() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0, 3: 2.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    route.add_arc(0, _arc(oracle, 1, 1))

    route.add_arc(1, _arc(oracle, 3, 3))

    assert [a.edge_id for a in route] == [1, 3]
    assert len(route.segments) == 3
    assert route.segments[1].nodes == (2, 3)
    assert route.segments[2].edges == ()
    assert route.cost == pytest.approx(40.0)
    assert route.score == pytest.approx(7.0)
    _assert_consistent(route)


def test_add_arc_rejects_bad_index_and_reused_edge() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    route.add_arc(0, _arc(oracle, 1, 1))

    with pytest.raises(IlsError) as exc:
        route.add_arc(3, _arc(oracle, 3, 3))
    assert exc.value.reason_code == "route_index_out_of_range"

    with pytest.raises(IlsError) as exc:
        route.add_arc(1, _arc(oracle, 1, 1))
    assert exc.value.reason_code == "route_segment_not_found"


def test_remove_arc_bridges_the_gap() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0, 3: 2.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    first = _arc(oracle, 1, 1)
    route.add_arc(0, first)
    route.add_arc(1, _arc(oracle, 3, 3))

    index = route.remove_arc(first)

    assert index == 0
    assert [a.edge_id for a in route] == [3]
    assert route.segments[0].nodes == (0, 1, 2, 3)
    assert route.cost == pytest.approx(40.0)
    assert route.score == pytest.approx(2.0)
    _assert_consistent(route)


def test_remove_last_arc_empties_route() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    arc = _arc(oracle, 1, 1)
    route.add_arc(0, arc)

    assert route.remove_arc(arc) == 0

    assert route.is_empty()
    assert route.segments == ()
    assert route.cost == pytest.approx(0.0)
    assert route.score == pytest.approx(0.0)


def test_navigation_and_missing_arc() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0, 3: 2.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    first = _arc(oracle, 1, 1)
    second = _arc(oracle, 3, 3)
    route.add_arc(0, first)
    route.add_arc(1, second)

    assert route.prev_node(first) == 0
    assert route.next_node(first) == 3
    assert route.prev_node(second) == 2
    assert route.next_node(second) == 4
    assert route.contains(second)
    assert second in route

    stranger = _arc(oracle, 0, 0)
    with pytest.raises(ArcNotInRouteError) as exc:
        route.index_of(stranger)
    assert exc.value.reason_code == "arc_not_in_route"
    with pytest.raises(ArcNotInRouteError):
        route.remove_arc(stranger)


def test_blacklist_around_skips_arc_and_its_segments() -> None:
    oracle = GraphOracle(_line_graph({0: 1.0, 3: 2.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    first = _arc(oracle, 0, 0)
    second = _arc(oracle, 3, 3)
    route.add_arc(0, first)
    route.add_arc(1, second)

    assert route.segments[1].nodes == (1, 2, 3)
    assert route.blacklist_around(second) == frozenset({0})
    assert route.blacklist_around(first) == frozenset({3})


def test_insert_route_splices_sub_route() -> None:
    oracle = GraphOracle(_line_graph({0: 1.0, 1: 5.0, 3: 2.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    route.add_arc(0, _arc(oracle, 0, 0))
    route.add_arc(1, _arc(oracle, 3, 3))
    sub = Route(oracle, start=1, end=3, max_cost=20.0)
    sub.add_arc(0, _arc(oracle, 1, 1))
    assert sub.cost == pytest.approx(20.0)

    route.insert_route(1, sub)

    assert [a.edge_id for a in route] == [0, 1, 3]
    assert route.cost == pytest.approx(40.0)
    assert route.score == pytest.approx(8.0)
    _assert_consistent(route)

    before = (route.arcs, route.segments, route.cost, route.score)
    route.insert_route(1, Route(oracle, start=1, end=1, max_cost=0.5))
    assert (route.arcs, route.segments, route.cost, route.score) == before


def test_insert_arc_at_min_path_segment_checks_budget() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0, 3: 2.0}))

    tight = Route(oracle, start=0, end=4, max_cost=35.0)
    assert not tight.insert_arc_at_min_path_segment(_arc(oracle, 1, 1))
    assert tight.is_empty()
    assert tight.cost == 0.0

    roomy = Route(oracle, start=0, end=4, max_cost=40.0)
    assert roomy.insert_arc_at_min_path_segment(_arc(oracle, 1, 1))
    # Edge 3 already lies on the 2 -> 4 segment and edge 1 is an arc.
    assert not roomy.insert_arc_at_min_path_segment(_arc(oracle, 3, 3))
    assert not roomy.insert_arc_at_min_path_segment(_arc(oracle, 1, 1))
    assert [a.edge_id for a in roomy] == [1]
    assert roomy.cost <= roomy.max_cost
    _assert_consistent(roomy)


def test_improve_potential_and_candidate_pool() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0}))
    route = Route(oracle, start=0, end=4, max_cost=100.0)
    fake = Arc.fake(0, 4, 30.0)
    fake.set_cas([_arc(oracle, 1, 1)])
    route.add_arc(0, fake)

    # Candidate detour costs 40 against the fake arc's 30: gain 5 over headroom 10.
    assert route.improve_potential(fake) == pytest.approx(0.5)
    assert route.candidate_arcs_by_improve_potential() == [fake]
    assert fake.improve_potential == pytest.approx(0.5)

    wide = Route(oracle, start=0, end=4, max_cost=100.0)
    wide_fake = Arc.fake(0, 4, 60.0)
    wide_fake.set_cas([_arc(oracle, 1, 1)])
    wide.add_arc(0, wide_fake)
    assert wide.improve_potential(wide_fake) == 0.0


def test_to_path_interleaves_segments_and_arcs() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0, 2: 0.5}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)

    fallback = route.to_path()
    assert not fallback.found
    assert fallback.edge_ids == (0, 1, 2, 3)
    assert fallback.score == pytest.approx(5.5)

    route.add_arc(0, _arc(oracle, 1, 1))
    path = route.to_path()
    assert path.found
    assert path.edge_ids == (0, 1, 2, 3)
    assert path.node_ids == (0, 1, 2, 3, 4)
    assert path.distance == pytest.approx(route.cost)
    # Connecting segments count towards the path score.
    assert path.score == pytest.approx(5.5)
    assert "(1)" in str(route)


def test_to_path_with_fake_arc_falls_back() -> None:
    oracle = GraphOracle(_line_graph({1: 5.0}))
    route = Route(oracle, start=0, end=4, max_cost=50.0)
    route.add_arc(0, Arc.fake(0, 4, 50.0))

    path = route.to_path()

    assert route.has_fake_arc()
    assert not path.found
    assert path.edge_ids == (0, 1, 2, 3)

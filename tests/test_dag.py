"""Tests for the dependency graph and cycle rejection."""

from __future__ import annotations

import pytest

from gridcalc.dag import CycleError, DependencyGraph


def _assert_inverse(g: DependencyGraph) -> None:
    upstream, downstream = g.snapshot()
    for node, ups in upstream.items():
        assert ups, f"empty upstream entry for {node}"
        for up in ups:
            assert node in downstream[up]
    for node, downs in downstream.items():
        assert downs, f"empty downstream entry for {node}"
        for down in downs:
            assert node in upstream[down]


class TestLookups:
    def test_empty_graph(self) -> None:
        g = DependencyGraph()
        assert g.upstream_of("A1") == frozenset()
        assert g.downstream_of("A1") == frozenset()
        assert len(g) == 0

    def test_add_records_both_directions(self) -> None:
        g = DependencyGraph()
        g.add("C1", {"A1", "B1"})
        assert g.upstream_of("C1") == {"A1", "B1"}
        assert g.downstream_of("A1") == {"C1"}
        assert g.downstream_of("B1") == {"C1"}
        assert "A1" in g and "C1" in g
        _assert_inverse(g)

    def test_returned_sets_are_not_aliases(self) -> None:
        g = DependencyGraph()
        g.add("C1", {"A1"})
        down = g.downstream_of("A1")
        g.add("D1", {"A1"})
        assert down == {"C1"}
        assert g.downstream_of("A1") == {"C1", "D1"}


class TestAdd:
    def test_replace_upstream(self) -> None:
        g = DependencyGraph()
        g.add("A1", {"B1"})
        g.add("A1", {"B1", "C1", "D1"})
        assert g.upstream_of("A1") == {"B1", "C1", "D1"}
        g.add("A1", {"C1"})
        assert g.upstream_of("A1") == {"C1"}
        assert g.downstream_of("B1") == frozenset()
        assert g.downstream_of("D1") == frozenset()
        _assert_inverse(g)

    def test_empty_upstream_removes(self) -> None:
        g = DependencyGraph()
        g.add("A1", {"B1"})
        g.add("A1", set())
        assert g.upstream_of("A1") == frozenset()
        assert g.snapshot() == ({}, {})

    def test_replace_keeps_own_dependents(self) -> None:
        g = DependencyGraph()
        g.add("B1", {"A1"})
        g.add("A1", {"Z1"})
        g.add("A1", {"Y1"})
        assert g.downstream_of("A1") == {"B1"}
        _assert_inverse(g)

    def test_demo_sequence(self) -> None:
        g = DependencyGraph()
        g.add("A1", {"B1"})
        g.add("A1", {"B1", "C1", "D1"})
        g.add("B1", {"C1", "D1"})
        g.add("C1", {"E1", "F2"})
        g.remove("F2")
        g.remove("A1")
        g.add("A1", {"E1", "F2", "C1"})
        assert g.upstream_of("A1") == {"E1", "F2", "C1"}
        assert g.upstream_of("B1") == {"C1", "D1"}
        assert g.upstream_of("C1") == {"E1", "F2"}
        assert g.downstream_of("C1") == {"A1", "B1"}
        assert g.downstream_of("E1") == {"A1", "C1"}
        _assert_inverse(g)


class TestCycles:
    def test_self_reference(self) -> None:
        g = DependencyGraph()
        with pytest.raises(CycleError) as exc_info:
            g.add("A1", {"A1"})
        assert exc_info.value.cycle_path == ["A1", "A1"]
        assert g.snapshot() == ({}, {})

    def test_two_cycle_rejected(self) -> None:
        g = DependencyGraph()
        g.add("A1", {"B1"})
        before = g.snapshot()
        with pytest.raises(CycleError, match="A1 -> B1 -> A1|B1 -> A1 -> B1"):
            g.add("B1", {"A1"})
        assert g.snapshot() == before

    def test_cycle_path_starts_and_ends_with_origin(self) -> None:
        g = DependencyGraph()
        g.add("A1", {"E1", "F2", "C1"})
        g.add("C1", {"E1", "F2"})
        before = g.snapshot()
        with pytest.raises(CycleError) as exc_info:
            g.add("F2", {"B1", "A1"})
        path = exc_info.value.cycle_path
        assert path[0] == "F2"
        assert path[-1] == "F2"
        assert path in (["F2", "A1", "F2"], ["F2", "A1", "C1", "F2"])
        assert g.snapshot() == before

    def test_rejected_replacement_restores_previous_links(self) -> None:
        g = DependencyGraph()
        g.add("B1", {"A1"})
        g.add("C1", {"B1"})
        g.add("A1", {"Z1"})
        before = g.snapshot()
        with pytest.raises(CycleError):
            g.add("A1", {"Z1", "C1"})
        assert g.snapshot() == before
        assert g.upstream_of("A1") == {"Z1"}

    def test_long_chain_cycle(self) -> None:
        g = DependencyGraph()
        n = 5000
        for i in range(2, n + 1):
            g.add(f"A{i}", {f"A{i - 1}"})
        before = g.snapshot()
        with pytest.raises(CycleError) as exc_info:
            g.add("A1", {f"A{n}"})
        assert len(exc_info.value.cycle_path) == n + 1
        assert g.snapshot() == before

    def test_wide_diamonds_no_cycle(self) -> None:
        # 30 layers of diamonds: exponential path count, linear search.
        g = DependencyGraph()
        for i in range(1, 31):
            g.add(f"B{i}", {f"A{i}"})
            g.add(f"C{i}", {f"A{i}"})
            g.add(f"A{i + 1}", {f"B{i}", f"C{i}"})
        g.add("Z1", {"A31"})
        assert g.find_cycle("Z1") is None


class TestRemove:
    def test_remove_prunes_empty_downstream(self) -> None:
        g = DependencyGraph()
        g.add("C1", {"A1", "B1"})
        g.remove("C1")
        assert g.snapshot() == ({}, {})

    def test_remove_keeps_dependents(self) -> None:
        g = DependencyGraph()
        g.add("B1", {"A1"})
        g.add("A1", {"Z1"})
        g.remove("A1")
        assert g.upstream_of("A1") == frozenset()
        assert g.downstream_of("A1") == {"B1"}
        assert g.downstream_of("Z1") == frozenset()
        _assert_inverse(g)

    def test_remove_absent_is_noop(self) -> None:
        g = DependencyGraph()
        g.add("B1", {"A1"})
        before = g.snapshot()
        g.remove("Q7")
        assert g.snapshot() == before


class TestAffectedOrder:
    def test_chain(self) -> None:
        g = DependencyGraph()
        g.add("B1", {"A1"})
        g.add("C1", {"B1"})
        assert g.affected_order("A1") == ["B1", "C1"]

    def test_diamond_visits_once(self) -> None:
        g = DependencyGraph()
        g.add("B1", {"A1"})
        g.add("C1", {"A1"})
        g.add("D1", {"B1", "C1"})
        order = g.affected_order("A1")
        assert sorted(order) == ["B1", "C1", "D1"]
        assert order[-1] == "D1"

    def test_uneven_paths(self) -> None:
        # D1 reads A1 directly and through B1 -> C1.
        g = DependencyGraph()
        g.add("B1", {"A1"})
        g.add("C1", {"B1"})
        g.add("D1", {"A1", "C1"})
        order = g.affected_order("A1")
        assert order.index("C1") < order.index("D1")
        assert order.index("B1") < order.index("C1")

    def test_unrelated_not_affected(self) -> None:
        g = DependencyGraph()
        g.add("B1", {"A1"})
        g.add("D1", {"C1"})
        assert g.affected_order("A1") == ["B1"]
        assert g.affected_order("Z9") == []


class TestDisplay:
    def test_str(self) -> None:
        g = DependencyGraph()
        g.add("C1", {"D1", "A1"})
        assert str(g) == (
            "Upstream Links:\n"
            "  C1 : [A1, D1]\n"
            "Downstream Links:\n"
            "  A1 : [C1]\n"
            "  D1 : [C1]\n"
        )

    def test_repr(self) -> None:
        g = DependencyGraph()
        g.add("C1", {"A1", "B1"})
        g.add("D1", {"C1"})
        assert repr(g) == "DependencyGraph(nodes=4, links=3)"

"""Tests for bounded expansion and reachability resolution."""

import threading
from unittest.mock import MagicMock

import pytest

from impactgraph_cli.graph import build_forward_graph, build_reverse_graph, freeze
from impactgraph_cli.lookup import DependencyLookupError, LocalDependencyLookup, LookupCancelled
from impactgraph_cli.registry import UnitRegistry
from impactgraph_cli.resolvers import BoundedExpansionResolver, ReachabilityResolver


@pytest.fixture
def chain_lookup(chain_registry: UnitRegistry) -> LocalDependencyLookup:
    return LocalDependencyLookup(build_forward_graph(chain_registry))


class TestBoundedExpansion:
    """Tests for BoundedExpansionResolver."""

    def test_depth_two_stops_before_third_hop(self, chain_lookup):
        assert BoundedExpansionResolver(chain_lookup, max_depth=2).resolve({"A"}) == {"A", "B", "C"}

    def test_depth_one_is_direct_dependencies(self, chain_lookup):
        assert BoundedExpansionResolver(chain_lookup, max_depth=1).resolve({"A"}) == {"A", "B"}

    def test_depth_zero_returns_seeds(self, chain_lookup):
        resolver = BoundedExpansionResolver(chain_lookup, max_depth=0)

        assert resolver.resolve({"A", "C"}) == {"A", "C"}
        assert chain_lookup.calls == 0

    def test_negative_depth_rejected(self, chain_lookup):
        with pytest.raises(ValueError):
            BoundedExpansionResolver(chain_lookup, max_depth=-1)

    def test_one_lookup_call_per_level(self):
        """Test that the whole frontier goes out in a single batch."""
        lookup = LocalDependencyLookup(freeze({
            "S1": {"X1", "X2", "X3"},
            "S2": {"X4"},
            "X1": {"Y"}, "X2": {"Y"}, "X3": set(), "X4": set(),
        }))

        result = BoundedExpansionResolver(lookup, max_depth=2).resolve({"S1", "S2"})

        assert result == {"S1", "S2", "X1", "X2", "X3", "X4", "Y"}
        assert lookup.calls == 2

    def test_stops_early_when_frontier_empty(self):
        lookup = LocalDependencyLookup(freeze({"A": set()}))

        assert BoundedExpansionResolver(lookup, max_depth=5).resolve({"A"}) == {"A"}
        assert lookup.calls == 1

    def test_cycles_are_bounded(self):
        lookup = LocalDependencyLookup(freeze({"A": {"B"}, "B": {"A"}}))

        assert BoundedExpansionResolver(lookup, max_depth=6).resolve({"A"}) == {"A", "B"}

    def test_unknown_seed_has_no_dependencies(self, chain_lookup):
        assert BoundedExpansionResolver(chain_lookup).resolve({"Ghost"}) == {"Ghost"}

    def test_first_discovery_wins(self):
        """Test that a unit mapped at level 1 keeps its level-1 entry."""
        lookup = MagicMock()
        lookup.fetch.side_effect = [
            {"A": {"B"}, "B": {"C"}},
            {"C": {"D"}},
        ]

        mapping, levels = BoundedExpansionResolver(lookup, max_depth=2).resolve_mapping(["A", "B"])

        assert mapping == {"A": {"B"}, "B": {"C"}, "C": {"D"}}
        assert levels == {"A": 1, "B": 1, "C": 2}
        assert lookup.fetch.call_args_list[1].args[0] == ["C"]

    def test_lookup_failure_aborts(self):
        lookup = MagicMock()
        lookup.fetch.side_effect = [{"A": {"B"}}, DependencyLookupError("timeout")]

        with pytest.raises(DependencyLookupError):
            BoundedExpansionResolver(lookup, max_depth=2).resolve({"A"})

    def test_cancellation(self, chain_lookup):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(LookupCancelled):
            BoundedExpansionResolver(chain_lookup).resolve({"A"}, cancel=cancel)

    def test_idempotent(self, chain_lookup):
        resolver = BoundedExpansionResolver(chain_lookup, max_depth=2)

        assert resolver.resolve({"A"}) == resolver.resolve({"A"})


class TestReachability:
    """Tests for ReachabilityResolver."""

    def test_full_closure_from_leaf(self, chain_registry: UnitRegistry):
        reverse = build_reverse_graph(build_forward_graph(chain_registry))

        assert ReachabilityResolver(reverse).dependents_of("D") == {"A", "B", "C"}

    def test_target_excluded_without_cycle(self, chain_registry: UnitRegistry):
        reverse = build_reverse_graph(build_forward_graph(chain_registry))

        assert "D" not in ReachabilityResolver(reverse).dependents_of("D")
        assert ReachabilityResolver(reverse).dependents_of("A") == set()

    def test_self_loop(self):
        reverse = build_reverse_graph(freeze({"S": {"S"}}))

        assert ReachabilityResolver(reverse).dependents_of("S") == {"S"}

    def test_clique_terminates(self):
        names = [f"N{i}" for i in range(8)]
        forward = freeze({n: set(names) for n in names})
        reverse = build_reverse_graph(forward)

        assert ReachabilityResolver(reverse).dependents_of("N0") == set(names)

    def test_deep_chain_does_not_recurse(self):
        """Test that a very long chain does not hit the recursion limit."""
        depth = 5000
        forward = freeze({f"U{i}": {f"U{i + 1}"} for i in range(depth)})
        reverse = build_reverse_graph(forward)

        assert len(ReachabilityResolver(reverse).dependents_of(f"U{depth}")) == depth

    def test_unknown_target(self):
        assert ReachabilityResolver(freeze({})).dependents_of("Ghost") == set()

    def test_dependents_of_any(self, chain_registry: UnitRegistry):
        reverse = build_reverse_graph(build_forward_graph(chain_registry))

        assert ReachabilityResolver(reverse).dependents_of_any(["B", "C"]) == {"A", "B"}

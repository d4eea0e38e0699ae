"""
Tests for dependency ordering.

This test suite covers:
1. Topological order for direct and transitive dependencies
2. Stability on registration order
3. Unknown dependency names
4. Cycle detection
5. The pairwise comparator and its direct-dependency guarantee
"""

import pytest

from sawmon.plugin.manifest import PluginRecord
from sawmon.plugin.ordering import (
    DependencyCycleError,
    order,
    pairwise_order,
    topological_order,
)
from sawmon.plugin.wrapper import PluginWrapper


@pytest.fixture
def wrap(make_module):
    def _wrap(name, deps=None):
        return PluginWrapper(
            module=make_module(name, dependencies=deps),
            record=PluginRecord(name=name, version="1.0.0"),
        )

    return _wrap


def names(wrappers):
    return [w.name for w in wrappers]


class TestTopologicalOrder:
    """Test Kahn's-algorithm ordering."""

    def test_direct_dependency(self, wrap):
        """A dependency should come before its dependent."""
        a = wrap("a", ["b"])
        b = wrap("b")
        assert names(topological_order([a, b])) == ["b", "a"]

    def test_transitive_chain(self, wrap):
        """A -> B -> C registered in the worst order should come out C, B, A."""
        a = wrap("a", ["b"])
        b = wrap("b", ["c"])
        c = wrap("c")
        assert names(topological_order([a, b, c])) == ["c", "b", "a"]

    def test_chain_with_unrelated_plugin_between(self, wrap):
        """Unrelated plugins keep registration order relative to each other."""
        a = wrap("a", ["c"])
        x = wrap("x")
        c = wrap("c")
        y = wrap("y")
        result = names(topological_order([a, x, c, y]))
        assert result.index("c") < result.index("a")
        assert result.index("x") < result.index("y")

    def test_independent_plugins_keep_registration_order(self, wrap):
        wrappers = [wrap("core"), wrap("b"), wrap("a")]
        assert names(topological_order(wrappers)) == ["core", "b", "a"]

    def test_unknown_dependency_is_ignored(self, wrap):
        """Dependencies on unregistered names count as satisfied."""
        a = wrap("a", ["not-installed"])
        b = wrap("b")
        assert names(topological_order([a, b])) == ["a", "b"]

    def test_diamond(self, wrap):
        top = wrap("top", ["left", "right"])
        left = wrap("left", ["core"])
        right = wrap("right", ["core"])
        core = wrap("core")
        result = names(topological_order([top, left, right, core]))
        assert result[0] == "core"
        assert result[-1] == "top"

    def test_cycle_detected(self, wrap):
        a = wrap("a", ["b"])
        b = wrap("b", ["a"])
        c = wrap("c")
        with pytest.raises(DependencyCycleError, match="a, b") as exc_info:
            topological_order([a, b, c])
        assert exc_info.value.names == ["a", "b"]

    def test_self_dependency_is_a_cycle(self, wrap):
        with pytest.raises(DependencyCycleError):
            topological_order([wrap("a", ["a"])])

    def test_string_dependencies_are_ignored(self, wrap):
        """A bare string is not a dependency list."""
        a = wrap("a", "b")
        b = wrap("b")
        assert names(topological_order([a, b])) == ["a", "b"]

    def test_empty(self):
        assert topological_order([]) == []


class TestPairwiseOrder:
    """Test the pairwise comparator ordering."""

    def test_direct_dependency(self, wrap):
        a = wrap("a", ["b"])
        b = wrap("b")
        assert names(pairwise_order([a, b])) == ["b", "a"]

    def test_no_dependencies_is_stable(self, wrap):
        wrappers = [wrap("c"), wrap("a"), wrap("b")]
        assert names(pairwise_order(wrappers)) == ["c", "a", "b"]

    def test_cycle_does_not_raise(self, wrap):
        a = wrap("a", ["b"])
        b = wrap("b", ["a"])
        assert sorted(names(pairwise_order([a, b]))) == ["a", "b"]


class TestOrderStrategy:
    def test_default_is_topological(self, wrap):
        a = wrap("a", ["b"])
        b = wrap("b", ["c"])
        c = wrap("c")
        assert names(order([a, b, c])) == ["c", "b", "a"]

    def test_pairwise_strategy(self, wrap):
        a = wrap("a", ["b"])
        b = wrap("b")
        assert names(order([a, b], "pairwise")) == ["b", "a"]

    def test_unknown_strategy(self, wrap):
        with pytest.raises(ValueError, match="Unknown ordering strategy"):
            order([wrap("a")], "alphabetical")

"""
Dependency Ordering.

This module orders plugin wrappers so that a plugin never precedes a plugin
it depends on.

Key features:
- Topological sort (Kahn's algorithm), stable on registration order
- Cycle detection
- Pairwise comparator ordering, kept for installations that rely on it
"""

import heapq
from collections.abc import Sequence
from functools import cmp_to_key

from sawmon.plugin.wrapper import PluginWrapper

TOPOLOGICAL = "topological"
PAIRWISE = "pairwise"
STRATEGIES = (TOPOLOGICAL, PAIRWISE)


class DependencyCycleError(Exception):
    """Raised when plugin dependencies form a cycle."""

    def __init__(self, names: list[str]):
        super().__init__(f"Dependency cycle between plugins: {', '.join(names)}")
        self.names = names


def topological_order(wrappers: Sequence[PluginWrapper]) -> list[PluginWrapper]:
    """
    Order wrappers so every plugin comes after all plugins it depends on.

    Only dependencies among the given wrappers count; names that are not
    present are treated as already satisfied. Among plugins that are free to
    go, the one registered first goes first.

    Raises:
        DependencyCycleError: If the dependencies form a cycle
    """
    index_of: dict[str, int] = {}
    for index, wrapper in enumerate(wrappers):
        index_of.setdefault(wrapper.name, index)

    # dependency index -> indexes of the plugins waiting on it
    dependents: dict[int, list[int]] = {i: [] for i in range(len(wrappers))}
    in_degree = [0] * len(wrappers)

    for index, wrapper in enumerate(wrappers):
        for dep_name in set(wrapper.dependencies):
            dep_index = index_of.get(dep_name)
            if dep_index is None:
                continue
            dependents[dep_index].append(index)
            in_degree[index] += 1

    ready = [i for i, degree in enumerate(in_degree) if degree == 0]
    heapq.heapify(ready)
    result = []

    while ready:
        index = heapq.heappop(ready)
        result.append(wrappers[index])

        for dependent in dependents[index]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, dependent)

    if len(result) != len(wrappers):
        stuck = sorted(wrappers[i].name for i, degree in enumerate(in_degree) if degree > 0)
        raise DependencyCycleError(stuck)

    return result


def _compare(a: PluginWrapper, b: PluginWrapper) -> int:
    if b.name in a.dependencies:
        return 1
    if a.name in b.dependencies:
        return -1
    return 0


def pairwise_order(wrappers: Sequence[PluginWrapper]) -> list[PluginWrapper]:
    """
    Sort wrappers with a single pairwise dependency comparator.

    Correct for direct dependencies only: a chain A -> B -> C is not
    guaranteed to come out as C, B, A because A and C may never be compared.
    """
    return sorted(wrappers, key=cmp_to_key(_compare))


def order(
    wrappers: Sequence[PluginWrapper], strategy: str = TOPOLOGICAL
) -> list[PluginWrapper]:
    """
    Order wrappers with the named strategy.

    Raises:
        ValueError: If strategy is unknown
        DependencyCycleError: If the topological strategy finds a cycle
    """
    if strategy == TOPOLOGICAL:
        return topological_order(wrappers)
    if strategy == PAIRWISE:
        return pairwise_order(wrappers)
    raise ValueError(f"Unknown ordering strategy: {strategy}")

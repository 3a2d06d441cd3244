"""subtours.py

Cycle decomposition and subtour selection for lazy TSP cuts.

Given the edges selected by an incumbent of the degree-2 TSP model, the
selected edges split the cities into disjoint cycles. One of them is picked
by a policy and handed back to the solver as a subtour-elimination cut.

Notes:
  - Everything here is pure and allocates only per-call state, so it can be
    called from any number of solver callbacks.
  - Cycles are reported in seed order (first unvisited node scanning 0..n-1).
    The direction in which a cycle is walked depends on neighbor order, so
    compare cycles as sets.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

EdgePredicate = Callable[[int, int], bool]
Cycle = List[int]

POLICIES = ("shortest", "longest", "random")


class MalformedIncumbentError(ValueError):
    """The selected edges do not give every node the required degree."""

    def __init__(self, node: int, degree: int, expected: int):
        super().__init__(f"node {node} has {degree} selected edge(s), expected {expected}")
        self.node = node
        self.degree = degree
        self.expected = expected


class SubtourConfigError(ValueError):
    """Unknown selection policy, or a random policy without a random source."""


def check_policy(policy: str, rng: Optional[np.random.Generator] = None) -> str:
    if policy not in POLICIES:
        raise SubtourConfigError(f"policy must be one of {POLICIES}, got {policy!r}.")
    if policy == "random" and rng is None:
        raise SubtourConfigError("policy 'random' needs an explicit numpy Generator (rng).")
    return policy


def selected_from_values(values: Mapping[Tuple[int, int], float], threshold: float = 0.5) -> EdgePredicate:
    """Turn edge values keyed by (i, j) in either orientation into a symmetric predicate."""
    selected = set()
    for (i, j), v in values.items():
        if float(v) > threshold:
            selected.add((i, j))
            selected.add((j, i))

    def edge_selected(i: int, j: int) -> bool:
        return (i, j) in selected

    return edge_selected


def _adjacency(edge_selected: EdgePredicate, n: int) -> List[List[int]]:
    adj: List[List[int]] = [[] for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            if edge_selected(i, j):
                adj[i].append(j)
                adj[j].append(i)
    return adj


def decompose(edge_selected: EdgePredicate, n: int) -> List[Cycle]:
    """Partition nodes 0..n-1 into the cycles formed by the selected edges.

    Every node must have exactly min(2, n - 1) selected edges; otherwise
    MalformedIncumbentError is raised before any walking is done.
    """
    if n < 0:
        raise ValueError("n must be nonnegative.")
    if n == 0:
        return []

    adj = _adjacency(edge_selected, n)
    expected = min(2, n - 1)
    for node, nbrs in enumerate(adj):
        if len(nbrs) != expected:
            raise MalformedIncumbentError(node, len(nbrs), expected)

    visited = [False] * n
    cycles: List[Cycle] = []
    n_seen = 0
    seed = 0
    while n_seen < n:
        while visited[seed]:
            seed += 1

        cycle = [seed]
        visited[seed] = True
        current = seed
        while True:
            nxt = next((j for j in adj[current] if not visited[j]), None)
            if nxt is None:
                break
            cycle.append(nxt)
            visited[nxt] = True
            current = nxt

        cycles.append(cycle)
        n_seen += len(cycle)

    return cycles


def cycles_from_values(values: Mapping[Tuple[int, int], float], n: int, threshold: float = 0.5) -> List[Cycle]:
    return decompose(selected_from_values(values, threshold), n)


def select_subtour(cycles: List[Cycle], policy: str, rng: Optional[np.random.Generator] = None) -> Cycle:
    """Pick one cycle. Ties go to the cycle found first."""
    check_policy(policy, rng)
    if not cycles:
        raise ValueError("Cannot select from an empty cycle collection.")

    if policy == "shortest":
        return min(cycles, key=len)
    if policy == "longest":
        return max(cycles, key=len)
    return cycles[int(rng.integers(len(cycles)))]


def separate_subtour(
    edge_selected: EdgePredicate,
    n: int,
    policy: str,
    rng: Optional[np.random.Generator] = None,
) -> Optional[Cycle]:
    """Return the subtour to cut off, or None if the incumbent is a full tour."""
    cycles = decompose(edge_selected, n)
    if not cycles:
        return None

    chosen = select_subtour(cycles, policy, rng)
    logger.debug(
        "incumbent has %d cycle(s) with sizes %s; %s policy picked %d node(s)",
        len(cycles),
        [len(c) for c in cycles],
        policy,
        len(chosen),
    )
    if len(chosen) == n:
        return None
    return chosen


def boundary_edges(nodes: Iterable[int], n: int) -> List[Tuple[int, int]]:
    """Edges (i, j) with i < j and exactly one endpoint in `nodes`."""
    inside = set(nodes)
    return [(i, j) for i in range(n) for j in range(i + 1, n) if (i in inside) != (j in inside)]


def crossing_count(nodes: Iterable[int], edge_selected: EdgePredicate, n: int) -> int:
    return sum(1 for i, j in boundary_edges(nodes, n) if edge_selected(i, j))


def cut_key(nodes: Iterable[int]) -> Hashable:
    return frozenset(nodes)


def tour_edges(tour: List[int]) -> Dict[Tuple[int, int], float]:
    """Edge values (canonical i < j, value 1.0) for a closed tour."""
    out: Dict[Tuple[int, int], float] = {}
    if len(tour) < 2:
        return out
    for a, b in zip(tour, tour[1:] + tour[:1]):
        if a != b:
            out[(min(a, b), max(a, b))] = 1.0
    return out

"""diagnostics.py

Post-solve verification utilities for the lazy subtour-elimination TSP model.

Goals:
  1) Confirm that a reported optimum is really one Hamiltonian tour.
  2) Independently validate subtour cuts: a cut must separate the incumbent
     it was generated from, and must never cut off a full tour.

Design choice:
  - Work on plain edge values ((i, j) -> float) so the checks run the same on
    Gurobi solutions, callback snapshots and hand-written test data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Optional

from subtours import (
    MalformedIncumbentError,
    boundary_edges,
    crossing_count,
    decompose,
    selected_from_values,
    tour_edges,
)


@dataclass
class DiagIssue:
    kind: str
    msg: str
    indices: Optional[Tuple[Any, ...]] = None
    lhs: Optional[float] = None
    rhs: Optional[float] = None


@dataclass
class DiagReport:
    ok: bool
    issues: List[DiagIssue]

    def summarize(self, max_items: int = 20) -> str:
        if self.ok:
            return "Diagnostics: OK"
        lines = [f"Diagnostics: FAIL ({len(self.issues)} issue(s))"]
        for it in self.issues[:max_items]:
            idx = f" idx={it.indices}" if it.indices is not None else ""
            lr = ""
            if it.lhs is not None or it.rhs is not None:
                lr = f" (lhs={it.lhs:.6g}, rhs={it.rhs:.6g})"
            lines.append(f"- [{it.kind}]{idx}: {it.msg}{lr}")
        if len(self.issues) > max_items:
            lines.append(f"... ({len(self.issues) - max_items} more)")
        return "\n".join(lines)


def _val(v) -> float:
    """Best-effort numeric extraction for Gurobi vars / python numbers."""
    try:
        return float(v.X)  # type: ignore[attr-defined]
    except Exception:
        return float(v)


def check_tour_invariants(
    instance: Dict[str, Any],
    x: Dict[Tuple[int, int], Any],
    obj_val: Optional[float] = None,
    tol: float = 1e-6,
) -> DiagReport:
    """Verify degree-2, a single Hamiltonian cycle, and the tour cost.

    `x` maps canonical edges (i < j) to Gurobi vars or numbers.
    """
    n: int = instance["n"]
    dist = instance["dist"]

    issues: List[DiagIssue] = []
    values = {e: _val(v) for e, v in x.items()}

    # 1) Integrality and degree.
    for e, v in values.items():
        if min(abs(v), abs(v - 1.0)) > 1e-4:
            issues.append(DiagIssue("integrality", "edge value is not 0/1", e, v, round(v)))
    for i in range(n):
        deg = sum(v for (a, b), v in values.items() if a == i or b == i)
        if abs(deg - 2.0) > 1e-4:
            issues.append(DiagIssue("degree", "node degree != 2", (i,), deg, 2.0))

    # 2) One cycle through every node.
    try:
        cycles = decompose(selected_from_values(values), n)
    except MalformedIncumbentError as exc:
        issues.append(DiagIssue("structure", str(exc), (exc.node,)))
        cycles = []
    if cycles and len(cycles) != 1:
        issues.append(
            DiagIssue("subtour", f"solution splits into {len(cycles)} cycles", tuple(len(c) for c in cycles))
        )

    # 3) Objective matches the tour cost.
    if obj_val is not None:
        cost = sum(float(dist[e]) * v for e, v in values.items())
        if abs(cost - float(obj_val)) > max(1e-4, tol * abs(cost)):
            issues.append(DiagIssue("objective", "objective differs from selected edge cost", None, float(obj_val), cost))

    ok = len(issues) == 0
    return DiagReport(ok=ok, issues=issues)


def check_cut_soundness(
    nodes: List[int],
    incumbent: Dict[Tuple[int, int], float],
    tour: List[int],
    n: int,
) -> DiagReport:
    """The cut sum_{e in delta(S)} x_e >= 2 must separate `incumbent` and keep `tour`."""
    issues: List[DiagIssue] = []

    if not nodes or len(set(nodes)) >= n:
        issues.append(DiagIssue("cut", "cut node set must be a proper nonempty subset", tuple(sorted(nodes))))
        return DiagReport(ok=False, issues=issues)

    lhs_inc = float(crossing_count(nodes, selected_from_values(incumbent), n))
    if lhs_inc >= 2.0:
        issues.append(DiagIssue("cut", "cut is not violated by the incumbent", tuple(sorted(nodes)), lhs_inc, 2.0))

    if sorted(tour) != list(range(n)):
        issues.append(DiagIssue("tour", "reference tour does not visit every node once", tuple(tour)))
    else:
        lhs_tour = float(crossing_count(nodes, selected_from_values(tour_edges(tour)), n))
        if lhs_tour < 2.0:
            issues.append(DiagIssue("cut", "cut removes a Hamiltonian tour", tuple(sorted(nodes)), lhs_tour, 2.0))

    if len(boundary_edges(nodes, n)) == 0:
        issues.append(DiagIssue("cut", "cut has an empty left-hand side", tuple(sorted(nodes))))

    ok = len(issues) == 0
    return DiagReport(ok=ok, issues=issues)


if __name__ == "__main__":
    print("This module provides diagnostics functions for the TSP lazy-cut solvers. Import and call check_tour_invariants() and check_cut_soundness() after solving the model to validate the solution.")

from diagnostics import DiagIssue, DiagReport, check_cut_soundness, check_tour_invariants
from subtours import tour_edges


def _square_instance():
    # Unit square: the perimeter tour 0-1-2-3 costs 4.
    coords = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
    dist = {}
    for i in range(4):
        for j in range(i + 1, 4):
            dx = coords[i][0] - coords[j][0]
            dy = coords[i][1] - coords[j][1]
            dist[(i, j)] = (dx * dx + dy * dy) ** 0.5
    return {"n": 4, "Nodes": [0, 1, 2, 3], "coords": coords, "dist": dist}


def _full_x(instance, selected):
    return {e: (1.0 if e in selected else 0.0) for e in instance["dist"]}


def test_tour_invariants_ok():
    inst = _square_instance()
    x = _full_x(inst, tour_edges([0, 1, 2, 3]))
    rep = check_tour_invariants(inst, x, obj_val=4.0)
    assert rep.ok
    assert rep.summarize() == "Diagnostics: OK"


def test_tour_invariants_wrong_objective():
    inst = _square_instance()
    x = _full_x(inst, tour_edges([0, 1, 2, 3]))
    rep = check_tour_invariants(inst, x, obj_val=5.0)
    assert not rep.ok
    assert [it.kind for it in rep.issues] == ["objective"]


def test_tour_invariants_detect_subtours():
    inst = {"n": 6, "Nodes": list(range(6)), "dist": {(i, j): 1.0 for i in range(6) for j in range(i + 1, 6)}}
    selected = dict(tour_edges([0, 1, 2]))
    selected.update(tour_edges([3, 4, 5]))
    rep = check_tour_invariants(inst, _full_x(inst, selected), obj_val=6.0)
    assert not rep.ok
    assert [it.kind for it in rep.issues] == ["subtour"]
    assert rep.issues[0].indices == (3, 3)


def test_tour_invariants_detect_bad_degree():
    inst = _square_instance()
    x = _full_x(inst, {(0, 1): 1.0, (1, 2): 1.0, (2, 3): 1.0})
    rep = check_tour_invariants(inst, x)
    assert not rep.ok
    kinds = {it.kind for it in rep.issues}
    assert kinds == {"degree", "structure"}


def test_tour_invariants_detect_fractional():
    inst = _square_instance()
    x = _full_x(inst, tour_edges([0, 1, 2, 3]))
    x[(0, 2)] = 0.3
    rep = check_tour_invariants(inst, x)
    assert not rep.ok
    assert "integrality" in {it.kind for it in rep.issues}


def test_cut_soundness_ok():
    incumbent = dict(tour_edges([0, 1, 2]))
    incumbent.update(tour_edges([3, 4, 5]))
    rep = check_cut_soundness([0, 1, 2], incumbent, [0, 3, 1, 4, 2, 5], 6)
    assert rep.ok


def test_cut_soundness_not_violated():
    incumbent = tour_edges([0, 1, 2, 3, 4, 5])
    rep = check_cut_soundness([0, 1, 2], incumbent, [0, 1, 2, 3, 4, 5], 6)
    assert not rep.ok
    assert rep.issues[0].lhs == 2.0


def test_cut_soundness_rejects_full_node_set():
    rep = check_cut_soundness([0, 1, 2], tour_edges([0, 1, 2]), [0, 1, 2], 3)
    assert not rep.ok


def test_summarize_truncates():
    issues = [DiagIssue("degree", "node degree != 2", (i,), 1.0, 2.0) for i in range(5)]
    text = DiagReport(ok=False, issues=issues).summarize(max_items=2)
    lines = text.splitlines()
    assert lines[0] == "Diagnostics: FAIL (5 issue(s))"
    assert lines[1] == "- [degree] idx=(0,): node degree != 2 (lhs=1, rhs=2)"
    assert lines[-1] == "... (3 more)"

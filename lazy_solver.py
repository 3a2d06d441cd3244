from base_solver import SolveResult, attach_diagnostics, build_tsp_model, extract_tour, format_summary, resolve_seed
from config_generate import generate_euclidean_instance, load_tsp_config
from subtours import (
    POLICIES,
    MalformedIncumbentError,
    boundary_edges,
    check_policy,
    cut_key,
    decompose,
    select_subtour,
    selected_from_values,
)
import gurobipy as gp
from gurobipy import GRB
import numpy as np
import logging
import time

import argparse
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _pick_uncut(model: gp.Model, cycles: List[List[int]], chosen: List[int]) -> List[int]:
    """With the cut cache on, prefer a subtour that has not been cut before."""
    added = model._added_cuts
    if cut_key(chosen) not in added:
        return chosen
    for cyc in cycles:
        if len(cyc) < model._n and cut_key(cyc) not in added:
            logger.debug("subtour %s already cut; using %s instead", sorted(chosen), sorted(cyc))
            return cyc
    # Every subtour was cut before; the incumbent still has to be rejected.
    logger.debug("all %d subtour(s) already cut; resubmitting %s", len(cycles), sorted(chosen))
    return chosen


def _subtour_elim_lazy_cb(model: gp.Model, where: int) -> None:
    if where != GRB.Callback.MIPSOL:
        return

    model._n_callbacks += 1
    n = model._n
    x = model._x

    vals = model.cbGetSolution(x)
    try:
        cycles = decompose(selected_from_values(vals), n)
    except MalformedIncumbentError as exc:
        logger.warning("MIPSOL #%d: malformed incumbent (%s)", model._n_callbacks, exc)
        raise
    chosen = select_subtour(cycles, model._policy, model._rng)
    if len(chosen) == n:
        logger.debug("MIPSOL #%d is a full tour", model._n_callbacks)
        return

    if model._dedupe_cuts:
        chosen = _pick_uncut(model, cycles, chosen)
        model._added_cuts.add(cut_key(chosen))

    model.cbLazy(gp.quicksum(x[e] for e in boundary_edges(chosen, n)) >= 2)
    model._cut_sizes.append(len(chosen))
    logger.debug(
        "MIPSOL #%d: %d cycle(s), lazy cut on %d node(s)",
        model._n_callbacks,
        len(cycles),
        len(chosen),
    )


def build_and_solve(
    instance: Dict[str, Any],
    *,
    policy: str = "shortest",
    rng: Optional[np.random.Generator] = None,
    time_limit: Optional[float] = None,
    mip_gap: Optional[float] = None,
    output_flag: int = 1,
    dedupe_cuts: bool = False,
    run_diagnostics: bool = True,
) -> SolveResult:
    # Fail before the solve rather than inside the first callback.
    check_policy(policy, rng)
    n = int(instance["n"])

    m, x = build_tsp_model(
        instance,
        name="TSP_Lazy_SEC",
        time_limit=time_limit,
        mip_gap=mip_gap,
        output_flag=output_flag,
    )
    m.Params.LazyConstraints = 1

    m._n = n
    m._x = x
    m._policy = policy
    m._rng = rng
    m._dedupe_cuts = bool(dedupe_cuts)
    m._added_cuts = set()
    m._n_callbacks = 0
    m._cut_sizes = []

    # ==========================================
    # Solve
    # ==========================================
    start_time = time.time()
    m.optimize(_subtour_elim_lazy_cb)
    end_time = time.time()

    tour: Optional[List[int]] = None
    if m.SolCount > 0:
        tour = extract_tour(m.getAttr("X", x), n)

    res = SolveResult(
        status=int(m.status),
        runtime_sec=float(end_time - start_time),
        obj_val=float(m.ObjVal) if m.SolCount > 0 else None,
        mip_gap=float(getattr(m, "MIPGap", 0.0)) if m.SolCount > 0 and m.IsMIP else None,
        n_vars=int(m.NumVars),
        n_constrs=int(m.NumConstrs),
        policy=policy,
        tour=tour,
        n_rounds=1,
        n_callbacks=int(m._n_callbacks),
        n_cuts=len(m._cut_sizes),
        cut_sizes=list(m._cut_sizes),
    )
    logger.info(
        "lazy solve finished: status=%d callbacks=%d cuts=%d",
        res.status,
        res.n_callbacks,
        res.n_cuts,
    )

    if run_diagnostics and m.SolCount > 0:
        attach_diagnostics(res, instance, x)

    return res


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", type=str, required=True, help="Path to a JSON config generated by config_generate.py")
    ap.add_argument("--policy", type=str, choices=POLICIES, default=None, help="Overrides the policy in the config.")
    ap.add_argument("--seed", type=int, default=None, help="Overrides the seed stored in the config.")
    ap.add_argument("--time_limit", type=float, default=None)
    ap.add_argument("--mip_gap", type=float, default=None)
    ap.add_argument("--output_flag", type=int, default=1)
    ap.add_argument("--dedupe_cuts", action="store_true")
    ap.add_argument("--log_level", type=str, default="WARNING")
    args = ap.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")

    cfg, seed_in_config = load_tsp_config(args.config)
    run_seed = resolve_seed(args.seed, seed_in_config)
    instance = generate_euclidean_instance(cfg, int(run_seed))
    policy = args.policy or cfg.policy
    res = build_and_solve(
        instance,
        policy=policy,
        rng=np.random.default_rng(int(run_seed)),
        time_limit=args.time_limit,
        mip_gap=args.mip_gap,
        output_flag=args.output_flag,
        dedupe_cuts=args.dedupe_cuts or cfg.dedupe_cuts,
        run_diagnostics=True,
    )
    print(format_summary(res, run_seed))
    if res.diag_tour_summary:
        print(res.diag_tour_summary)
    if res.tour is not None:
        print("tour:", res.tour)


if __name__ == "__main__":
    main()

from config_generate import generate_euclidean_instance, load_tsp_config
from diagnostics import check_tour_invariants
from subtours import POLICIES, boundary_edges, check_policy, decompose, selected_from_values, separate_subtour
import gurobipy as gp
from gurobipy import GRB
import numpy as np
import logging
import time

import argparse
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class SolveResult:
    status: int
    runtime_sec: float
    obj_val: Optional[float]
    mip_gap: Optional[float]
    n_vars: int
    n_constrs: int
    policy: str = "shortest"
    tour: Optional[List[int]] = None
    n_rounds: int = 0
    n_callbacks: int = 0
    n_cuts: int = 0
    cut_sizes: List[int] = field(default_factory=list)
    diag_tour_ok: Optional[bool] = None
    diag_tour_summary: Optional[str] = None


def build_tsp_model(
    instance: Dict[str, Any],
    *,
    name: str = "TSP_Degree2",
    time_limit: Optional[float] = None,
    mip_gap: Optional[float] = None,
    output_flag: int = 1,
) -> Tuple[gp.Model, gp.tupledict]:
    """Degree-2 relaxation of the symmetric TSP: no subtour constraints yet."""
    Nodes = instance["Nodes"]
    dist = instance["dist"]

    m = gp.Model(name)
    m.Params.OutputFlag = int(output_flag)
    m.Params.Seed = 1
    if time_limit is not None:
        m.Params.TimeLimit = float(time_limit)
    if mip_gap is not None:
        m.Params.MIPGap = float(mip_gap)

    # One binary per unordered city pair (i < j).
    x = m.addVars(dist.keys(), obj=dist, vtype=GRB.BINARY, name="x")

    for i in Nodes:
        m.addConstr(
            gp.quicksum(x[min(i, j), max(i, j)] for j in Nodes if j != i) == 2,
            name=f"deg_{i}",
        )

    m.ModelSense = GRB.MINIMIZE
    return m, x


def extract_tour(values: Dict[Tuple[int, int], float], n: int) -> Optional[List[int]]:
    cycles = decompose(selected_from_values(values), n)
    if len(cycles) != 1:
        return None
    return cycles[0]


def attach_diagnostics(res: SolveResult, instance: Dict[str, Any], x: gp.tupledict) -> None:
    rep = check_tour_invariants(instance, x, obj_val=res.obj_val, tol=1e-6)
    res.diag_tour_ok = bool(rep.ok)
    res.diag_tour_summary = rep.summarize(max_items=30)


DEFAULT_SEED = 7


def resolve_seed(cli_seed: Optional[int], seed_in_config: Optional[int]) -> int:
    """--seed wins over the config seed; both fall back to DEFAULT_SEED."""
    if cli_seed is not None:
        return int(cli_seed)
    if seed_in_config is not None:
        return int(seed_in_config)
    return DEFAULT_SEED


def format_summary(res: SolveResult, seed: int) -> str:
    return (
        f"seed={seed} policy={res.policy} status={res.status} runtime={res.runtime_sec:.2f}s "
        f"obj={res.obj_val} gap={res.mip_gap} vars={res.n_vars} constrs={res.n_constrs} "
        f"rounds={res.n_rounds} callbacks={res.n_callbacks} cuts={res.n_cuts}"
    )


def build_and_solve(
    instance: Dict[str, Any],
    *,
    policy: str = "shortest",
    rng: Optional[np.random.Generator] = None,
    max_rounds: Optional[int] = None,
    time_limit: Optional[float] = None,
    mip_gap: Optional[float] = None,
    output_flag: int = 1,
    run_diagnostics: bool = True,
) -> SolveResult:
    """Re-solve the degree-2 model, adding one subtour cut per round, until the optimum is a tour."""
    check_policy(policy, rng)
    n = int(instance["n"])

    m, x = build_tsp_model(
        instance,
        name="TSP_Iterative_SEC",
        time_limit=time_limit,
        mip_gap=mip_gap,
        output_flag=output_flag,
    )

    n_rounds = 0
    cut_sizes: List[int] = []
    tour: Optional[List[int]] = None

    start_time = time.time()
    while True:
        if time_limit is not None:
            remaining = float(time_limit) - (time.time() - start_time)
            if remaining <= 0:
                logger.warning("time limit reached after %d round(s)", n_rounds)
                break
            m.Params.TimeLimit = remaining

        m.optimize()
        n_rounds += 1
        if m.SolCount == 0 or m.status != GRB.OPTIMAL:
            logger.warning("round %d ended with status %d; stopping", n_rounds, m.status)
            break

        values = m.getAttr("X", x)
        subtour = separate_subtour(selected_from_values(values), n, policy, rng)
        if subtour is None:
            tour = extract_tour(values, n)
            break
        if max_rounds is not None and n_rounds >= max_rounds:
            logger.warning("max_rounds=%d reached with a subtour of %d node(s) left", max_rounds, len(subtour))
            break

        m.addConstr(
            gp.quicksum(x[e] for e in boundary_edges(subtour, n)) >= 2,
            name=f"sec_{len(cut_sizes)}",
        )
        cut_sizes.append(len(subtour))
        logger.info("round %d: cut subtour %s", n_rounds, sorted(subtour))
    end_time = time.time()

    res = SolveResult(
        status=int(m.status),
        runtime_sec=float(end_time - start_time),
        obj_val=float(m.ObjVal) if m.SolCount > 0 else None,
        mip_gap=float(getattr(m, "MIPGap", 0.0)) if m.SolCount > 0 and m.IsMIP else None,
        n_vars=int(m.NumVars),
        n_constrs=int(m.NumConstrs),
        policy=policy,
        tour=tour,
        n_rounds=n_rounds,
        n_cuts=len(cut_sizes),
        cut_sizes=cut_sizes,
    )

    if run_diagnostics and m.SolCount > 0:
        attach_diagnostics(res, instance, x)

    return res


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", type=str, required=True, help="Path to a JSON config generated by config_generate.py")
    ap.add_argument("--policy", type=str, choices=POLICIES, default=None, help="Overrides the policy in the config.")
    ap.add_argument("--seed", type=int, default=None, help="Overrides the seed stored in the config.")
    ap.add_argument("--max_rounds", type=int, default=None)
    ap.add_argument("--time_limit", type=float, default=None)
    ap.add_argument("--mip_gap", type=float, default=None)
    ap.add_argument("--output_flag", type=int, default=1)
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
        max_rounds=args.max_rounds,
        time_limit=args.time_limit,
        mip_gap=args.mip_gap,
        output_flag=args.output_flag,
        run_diagnostics=True,
    )
    print(format_summary(res, run_seed))
    if res.diag_tour_summary:
        print(res.diag_tour_summary)
    if res.tour is not None:
        print("tour:", res.tour)


if __name__ == "__main__":
    main()

# run_grid_experiments.py
import argparse
import csv
import math
import re
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from config_generate import TSPInstanceConfig, save_tsp_config
from subtours import POLICIES


SUMMARY_RE = re.compile(
    r"seed=(?P<seed>-?\d+)\s+"
    r"policy=(?P<policy>\w+)\s+"
    r"status=(?P<status>-?\d+)\s+"
    r"runtime=(?P<runtime>[0-9]+(?:\.[0-9]+)?)s\s+"
    r"obj=(?P<obj>\S+)\s+"
    r"gap=(?P<gap>\S+)\s+"
    r"vars=(?P<vars>\d+)\s+"
    r"constrs=(?P<constrs>\d+)\s+"
    r"rounds=(?P<rounds>\d+)\s+"
    r"callbacks=(?P<callbacks>\d+)\s+"
    r"cuts=(?P<cuts>\d+)"
)

SOLVER_SCRIPTS = {"lazy": "lazy_solver.py", "base": "base_solver.py"}
DEFAULT_SIZES = [10, 15, 20, 30]
DEFAULT_SEEDS = [202601, 202602, 202603]

# Runtime codes written to the manifest when no summary line was produced.
RUNTIME_FAILED = -1
RUNTIME_TIMEOUT = -2


def _to_float(raw: str) -> Optional[float]:
    try:
        val = float(raw)
    except ValueError:
        return None
    return None if math.isnan(val) else val


def _parse_solver_summary(stdout: str) -> Optional[Dict[str, object]]:
    m = SUMMARY_RE.search(stdout)
    if not m:
        return None
    g = m.groupdict()
    return {
        "seed": int(g["seed"]),
        "policy": g["policy"],
        "status": int(g["status"]),
        "runtime_sec": float(g["runtime"]),
        "obj_val": _to_float(g["obj"]),
        "mip_gap": _to_float(g["gap"]),
        "n_vars": int(g["vars"]),
        "n_constrs": int(g["constrs"]),
        "n_rounds": int(g["rounds"]),
        "n_callbacks": int(g["callbacks"]),
        "n_cuts": int(g["cuts"]),
    }


@dataclass
class GridRun:
    runtime_sec: float
    obj_val: Optional[float] = None
    n_callbacks: Optional[int] = None
    n_cuts: Optional[int] = None
    note: str = ""

    def columns(self, prefix: str) -> Dict[str, str]:
        runtime = f"{self.runtime_sec:.6f}" if self.runtime_sec >= 0 else str(int(self.runtime_sec))
        return {
            f"{prefix}_runtime_sec": runtime,
            f"{prefix}_obj_val": "" if self.obj_val is None else f"{self.obj_val:.6f}",
            f"{prefix}_callbacks": "" if self.n_callbacks is None else str(self.n_callbacks),
            f"{prefix}_cuts": "" if self.n_cuts is None else str(self.n_cuts),
        }


def run_once(cmd: List[str], timeout_sec: float) -> GridRun:
    """Run one solver invocation and turn its summary line into a GridRun."""
    try:
        p = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_sec, check=False)
    except subprocess.TimeoutExpired:
        return GridRun(RUNTIME_TIMEOUT, note=f"timeout >{timeout_sec}s")

    if p.returncode != 0:
        err = " | ".join((p.stderr or "").strip().splitlines()[-3:]) or "(no stderr)"
        return GridRun(RUNTIME_FAILED, note=f"rc={p.returncode} {err}")

    parsed = _parse_solver_summary(p.stdout)
    if parsed is None:
        return GridRun(RUNTIME_FAILED, note="no summary line in stdout")
    return GridRun(
        runtime_sec=float(parsed["runtime_sec"]),  # type: ignore[arg-type]
        obj_val=parsed["obj_val"],  # type: ignore[arg-type]
        n_callbacks=int(parsed["n_callbacks"]),  # type: ignore[arg-type]
        n_cuts=int(parsed["n_cuts"]),  # type: ignore[arg-type]
    )


def regenerate_grid(
    manifest_path: str = "configs/grid/manifest.csv",
    grid_dir: str = "configs/grid",
    sizes: Sequence[int] = DEFAULT_SIZES,
    seeds: Sequence[int] = DEFAULT_SEEDS,
    coord_scale: float = 100.0,
) -> None:
    """Write one config per (n_cities, seed) and a manifest listing them."""
    base_dir = Path(grid_dir)
    manifest = Path(manifest_path)
    base_dir.mkdir(parents=True, exist_ok=True)
    manifest.parent.mkdir(parents=True, exist_ok=True)

    rows: List[Dict[str, str]] = []
    for n_cities in sizes:
        for seed in seeds:
            file_name = f"cfg_tsp_n{n_cities}_s{seed}.json"
            cfg = TSPInstanceConfig(n_cities=int(n_cities), coord_scale=float(coord_scale))
            save_tsp_config(cfg, str(base_dir / file_name), seed=int(seed))
            rows.append({"file": file_name, "n_cities": str(n_cities), "seed": str(seed)})

    with manifest.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["file", "n_cities", "seed"])
        w.writeheader()
        w.writerows(rows)
    print(f"Regenerated {len(rows)} configs in {base_dir}, manifest: {manifest}")


def run_grid(
    manifest_path: str = "configs/grid/manifest.csv",
    grid_dir: str = "configs/grid",
    solvers: Sequence[str] = ("lazy",),
    policies: Sequence[str] = POLICIES,
    time_limit_sec: int = 600,
    timeout_sec: int = 900,
    python_bin: str = sys.executable,
) -> None:
    """Solve every manifest config with each (solver, policy) pair and add the results as columns."""
    for solver in solvers:
        if solver not in SOLVER_SCRIPTS:
            raise ValueError(f"Unknown solver {solver!r}; expected one of {sorted(SOLVER_SCRIPTS)}.")
    for policy in policies:
        if policy not in POLICIES:
            raise ValueError(f"Unknown policy {policy!r}; expected one of {POLICIES}.")

    manifest = Path(manifest_path)
    with manifest.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    if not rows:
        raise RuntimeError(f"Empty manifest: {manifest}")

    pairs = [(s, p) for s in solvers for p in policies]
    solved = {f"{s}_{p}": 0 for s, p in pairs}
    for i, row in enumerate(rows, 1):
        cfg_path = Path(grid_dir) / row["file"]
        for solver, policy in pairs:
            prefix = f"{solver}_{policy}"
            cmd = [
                python_bin, SOLVER_SCRIPTS[solver],
                "--config", str(cfg_path),
                "--policy", policy,
                "--time_limit", str(time_limit_sec),
                "--output_flag", "0",
            ]
            t0 = time.time()
            run = run_once(cmd, timeout_sec)
            wall = time.time() - t0
            row.update(run.columns(prefix))
            if run.runtime_sec >= 0:
                solved[prefix] += 1
                print(
                    f"[{i}/{len(rows)}] {row['file']} {prefix}: obj={run.obj_val} "
                    f"runtime={run.runtime_sec:.3f}s callbacks={run.n_callbacks} cuts={run.n_cuts}"
                )
            else:
                print(f"[{i}/{len(rows)}] {row['file']} {prefix}: FAIL after {wall:.1f}s ({run.note})")

    fields = list(rows[0].keys())
    for row in rows[1:]:
        fields.extend(k for k in row if k not in fields)
    with manifest.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fields)
        w.writeheader()
        w.writerows(rows)

    for prefix, count in solved.items():
        print(f"DONE [{prefix}] solved={count}/{len(rows)}")
    print(f"Wrote manifest: {manifest}")


def _split_csv(raw: str) -> List[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


def _build_cli() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Compare subtour selection policies on a grid of TSP instances.")
    ap.add_argument("--solvers", type=str, default=",".join(SOLVER_SCRIPTS), help="Comma-separated subset of: lazy,base")
    ap.add_argument("--policies", type=str, default=",".join(POLICIES))
    ap.add_argument("--sizes", type=str, default=",".join(str(n) for n in DEFAULT_SIZES))
    ap.add_argument("--seeds", type=str, default=",".join(str(s) for s in DEFAULT_SEEDS))
    ap.add_argument("--manifest_path", type=str, default="configs/grid/manifest.csv")
    ap.add_argument("--grid_dir", type=str, default="configs/grid")
    ap.add_argument("--time_limit_sec", type=int, default=600)
    ap.add_argument("--timeout_sec", type=int, default=900)
    ap.add_argument("--python_bin", type=str, default=sys.executable)
    ap.add_argument("--regenerate", action="store_true", help="Write the config grid before running.")
    ap.add_argument("--regenerate_only", action="store_true", help="Only write configs + manifest.")
    return ap


if __name__ == "__main__":
    args = _build_cli().parse_args()
    if args.regenerate or args.regenerate_only:
        regenerate_grid(
            args.manifest_path,
            args.grid_dir,
            sizes=[int(s) for s in _split_csv(args.sizes)],
            seeds=[int(s) for s in _split_csv(args.seeds)],
        )
    if not args.regenerate_only:
        run_grid(
            manifest_path=args.manifest_path,
            grid_dir=args.grid_dir,
            solvers=_split_csv(args.solvers),
            policies=_split_csv(args.policies),
            time_limit_sec=args.time_limit_sec,
            timeout_sec=args.timeout_sec,
            python_bin=args.python_bin,
        )

from dataclasses import dataclass, asdict
from typing import Dict, Tuple, List, Optional, Any
from pathlib import Path
import argparse
import json
import numpy as np

from subtours import POLICIES

# ---------- Type aliases ----------
Node = int
Edge = Tuple[int, int]
Coords = List[Tuple[float, float]]

CONFIG_TYPE = "euclidean_tsp"


@dataclass
class TSPInstanceConfig:
    # Dimensions
    n_cities: int

    # City placement
    coords: Optional[List[Tuple[float, float]]] = None  # length n_cities
    coord_scale: float = 100.0  # used if coords is None

    # Lazy cut generation
    policy: str = "shortest"  # {"shortest","longest","random"}
    dedupe_cuts: bool = False


def _generate_coords(n: int, scale: float, rng: np.random.Generator) -> Coords:
    coords = []
    for _ in range(n):
        coords.append((float(rng.uniform(0, scale)), float(rng.uniform(0, scale))))
    return coords


def _distance_matrix(coords: Coords) -> Dict[Edge, float]:
    """Euclidean distances for unordered pairs, keyed (i, j) with i < j."""
    dist: Dict[Edge, float] = {}
    for i, (xi, yi) in enumerate(coords):
        for j in range(i + 1, len(coords)):
            xj, yj = coords[j]
            dx = xi - xj
            dy = yi - yj
            dist[(i, j)] = float(np.sqrt(dx * dx + dy * dy))
    return dist


def validate_config(cfg: TSPInstanceConfig) -> None:
    if cfg.n_cities < 3:
        raise ValueError("n_cities must be at least 3 for the degree-2 model.")
    if cfg.coords is not None and len(cfg.coords) != cfg.n_cities:
        raise ValueError("coords must have length n_cities.")
    if cfg.coord_scale <= 0:
        raise ValueError("coord_scale must be positive.")
    if cfg.policy not in POLICIES:
        raise ValueError(f"policy must be one of {POLICIES}.")


def generate_euclidean_instance(cfg: TSPInstanceConfig, seed: int = 0) -> Dict[str, Any]:
    """
    Generate a symmetric Euclidean TSP instance. Cities are uniform in
    [0, coord_scale]^2 unless explicit coords are given.
    """
    validate_config(cfg)
    rng = np.random.default_rng(seed)

    n = cfg.n_cities
    Nodes = list(range(n))
    if cfg.coords is not None:
        coords = [(float(x), float(y)) for x, y in cfg.coords]
    else:
        coords = _generate_coords(n, cfg.coord_scale, rng)

    data = {
        "seed": int(seed),
        "cfg": asdict(cfg),
        "n": n,
        "Nodes": Nodes,
        "coords": coords,
        "dist": _distance_matrix(coords),
    }
    return data


def save_tsp_config(cfg: TSPInstanceConfig, output_path: str, seed: Optional[int] = None) -> None:
    payload: Dict[str, Any] = {
        "config_type": CONFIG_TYPE,
        "config": asdict(cfg),
    }
    if seed is not None:
        payload["seed"] = int(seed)
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_tsp_config(config_path: str) -> Tuple[TSPInstanceConfig, Optional[int]]:
    raw = json.loads(Path(config_path).read_text(encoding="utf-8"))
    if raw.get("config_type") != CONFIG_TYPE:
        raise ValueError(f"Unsupported config_type. Expected '{CONFIG_TYPE}'.")
    cfg_raw = raw.get("config")
    if not isinstance(cfg_raw, dict):
        raise ValueError("Config file missing object field 'config'.")
    if cfg_raw.get("coords") is not None:
        cfg_raw["coords"] = [tuple(p) for p in cfg_raw["coords"]]
    cfg = TSPInstanceConfig(**cfg_raw)
    validate_config(cfg)
    seed = raw.get("seed")
    if seed is not None:
        seed = int(seed)
    return cfg, seed


def _build_cli() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Generate a Euclidean TSP config JSON.")
    ap.add_argument("--output", type=str, required=True, help="Output config JSON path.")
    ap.add_argument("--n_cities", type=int, required=True)
    ap.add_argument("--seed", type=int, default=None, help="Optional seed to store in config file.")
    ap.add_argument("--coord_scale", type=float, default=100.0)
    ap.add_argument("--policy", type=str, choices=POLICIES, default="shortest")
    ap.add_argument("--dedupe_cuts", action="store_true")
    return ap


if __name__ == "__main__":
    args = _build_cli().parse_args()
    cfg = TSPInstanceConfig(
        n_cities=args.n_cities,
        coord_scale=args.coord_scale,
        policy=args.policy,
        dedupe_cuts=args.dedupe_cuts,
    )
    validate_config(cfg)
    save_tsp_config(cfg, args.output, seed=args.seed)
    print(f"Wrote config to: {args.output}")

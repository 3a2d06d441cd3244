import csv
import sys

import pytest

from config_generate import load_tsp_config
from run_grid_experiments import (
    RUNTIME_FAILED,
    RUNTIME_TIMEOUT,
    GridRun,
    _parse_solver_summary,
    regenerate_grid,
    run_grid,
    run_once,
)

SUMMARY = (
    "seed=5 policy=random status=2 runtime=0.12s obj=123.5 gap=None vars=28 constrs=8 "
    "rounds=1 callbacks=4 cuts=3"
)


def test_parse_summary_handles_missing_values():
    parsed = _parse_solver_summary("solver banner\n" + SUMMARY + "\ntour: [0, 1]")
    assert parsed["policy"] == "random"
    assert parsed["obj_val"] == 123.5
    assert parsed["mip_gap"] is None
    assert parsed["n_callbacks"] == 4
    assert parsed["n_cuts"] == 3
    assert _parse_solver_summary("nothing useful") is None


def test_run_once_reads_summary_line():
    run = run_once([sys.executable, "-c", f"print({SUMMARY!r})"], timeout_sec=60)
    assert run.runtime_sec == pytest.approx(0.12)
    assert run.obj_val == 123.5
    assert run.n_cuts == 3


def test_run_once_failures():
    assert run_once([sys.executable, "-c", "raise SystemExit(3)"], timeout_sec=60).runtime_sec == RUNTIME_FAILED
    assert run_once([sys.executable, "-c", "print('no summary')"], timeout_sec=60).runtime_sec == RUNTIME_FAILED
    slow = run_once([sys.executable, "-c", "import time; time.sleep(5)"], timeout_sec=0.5)
    assert slow.runtime_sec == RUNTIME_TIMEOUT


def test_grid_run_columns():
    cols = GridRun(RUNTIME_TIMEOUT).columns("lazy_shortest")
    assert cols == {
        "lazy_shortest_runtime_sec": "-2",
        "lazy_shortest_obj_val": "",
        "lazy_shortest_callbacks": "",
        "lazy_shortest_cuts": "",
    }


def test_regenerate_grid_writes_configs_and_manifest(tmp_path):
    manifest = tmp_path / "manifest.csv"
    regenerate_grid(str(manifest), str(tmp_path / "grid"), sizes=[5, 6], seeds=[1, 2])

    with manifest.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [(r["n_cities"], r["seed"]) for r in rows] == [("5", "1"), ("5", "2"), ("6", "1"), ("6", "2")]
    cfg, seed = load_tsp_config(str(tmp_path / "grid" / rows[-1]["file"]))
    assert cfg.n_cities == 6
    assert seed == 2


def test_run_grid_rejects_unknown_names(tmp_path):
    with pytest.raises(ValueError):
        run_grid(str(tmp_path / "m.csv"), str(tmp_path), solvers=["nested"])
    with pytest.raises(ValueError):
        run_grid(str(tmp_path / "m.csv"), str(tmp_path), policies=["median"])

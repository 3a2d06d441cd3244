import json

import pytest

from config_generate import (
    TSPInstanceConfig,
    generate_euclidean_instance,
    load_tsp_config,
    save_tsp_config,
    validate_config,
)


def test_instance_is_reproducible_from_seed():
    cfg = TSPInstanceConfig(n_cities=8)
    a = generate_euclidean_instance(cfg, seed=3)
    b = generate_euclidean_instance(cfg, seed=3)
    c = generate_euclidean_instance(cfg, seed=4)
    assert a["coords"] == b["coords"]
    assert a["coords"] != c["coords"]
    assert a["n"] == 8
    assert a["Nodes"] == list(range(8))


def test_distances_cover_unordered_pairs():
    cfg = TSPInstanceConfig(n_cities=3, coords=[(0.0, 0.0), (3.0, 0.0), (3.0, 4.0)])
    inst = generate_euclidean_instance(cfg)
    assert set(inst["dist"]) == {(0, 1), (0, 2), (1, 2)}
    assert inst["dist"][(0, 1)] == pytest.approx(3.0)
    assert inst["dist"][(0, 2)] == pytest.approx(5.0)
    assert inst["dist"][(1, 2)] == pytest.approx(4.0)


def test_coords_within_scale():
    inst = generate_euclidean_instance(TSPInstanceConfig(n_cities=20, coord_scale=5.0), seed=1)
    for x, y in inst["coords"]:
        assert 0.0 <= x <= 5.0
        assert 0.0 <= y <= 5.0


@pytest.mark.parametrize(
    "cfg",
    [
        TSPInstanceConfig(n_cities=2),
        TSPInstanceConfig(n_cities=4, coords=[(0.0, 0.0)]),
        TSPInstanceConfig(n_cities=4, coord_scale=0.0),
        TSPInstanceConfig(n_cities=4, policy="median"),
    ],
)
def test_invalid_configs(cfg):
    with pytest.raises(ValueError):
        validate_config(cfg)


def test_save_and_load(tmp_path):
    path = tmp_path / "nested" / "cfg.json"
    cfg = TSPInstanceConfig(n_cities=5, coords=[(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.5, 2.0)], policy="random")
    save_tsp_config(cfg, str(path), seed=17)

    loaded, seed = load_tsp_config(str(path))
    assert seed == 17
    assert loaded == cfg


def test_load_without_seed(tmp_path):
    path = tmp_path / "cfg.json"
    save_tsp_config(TSPInstanceConfig(n_cities=6), str(path))
    loaded, seed = load_tsp_config(str(path))
    assert seed is None
    assert loaded.n_cities == 6
    assert loaded.policy == "shortest"


def test_load_rejects_other_config_types(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"config_type": "linear_distance", "config": {}}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_tsp_config(str(path))

    path.write_text(json.dumps({"config_type": "euclidean_tsp"}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_tsp_config(str(path))

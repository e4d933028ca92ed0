"""Tests for engine configuration loading"""

import json

import pytest
import yaml

from fractal_engine.config import ConfigManager, EngineConfig, parse_bounds


def test_defaults_are_valid():
    config = EngineConfig()
    config.validate()
    assert config.zoom_level == pytest.approx(1.0)


@pytest.mark.parametrize("changes", [
    {'width': 0},
    {'height': -5},
    {'max_iterations': -1},
    {'escape_radius': 0.0},
    {'newton_tolerance': 0.0},
    {'bounds': (1.0, -1.0, -1.0, 1.0)},
    {'bounds': (-1.0, 1.0, 0.5, 0.5)},
    {'precision': 'quad'},
    {'num_processes': 0},
    {'tile_size': 0},
    {'chunk_rows': 0},
])
def test_validate_rejects(changes):
    with pytest.raises(ValueError):
        EngineConfig(**changes).validate()


def test_resolved_precision():
    assert EngineConfig(precision='double').resolved_precision() == 'double'
    assert EngineConfig(precision='auto').resolved_precision() == 'single'
    deep = EngineConfig(precision='auto', bounds=(-0.75, -0.75 + 3.5e-10, 0.1, 0.1 + 3.5e-10))
    assert deep.resolved_precision() == 'double'


def test_dict_round_trip():
    config = EngineConfig(width=320, bounds=(-1.0, 1.0, -0.5, 0.5), seed=4)
    data = config.to_dict()
    assert data['bounds'] == [-1.0, 1.0, -0.5, 0.5]
    assert EngineConfig.from_dict(data) == config


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="colormap"):
        EngineConfig.from_dict({'colormap': 'hot'})


def test_parse_bounds():
    assert parse_bounds("-2, 1, -1.5, 1.5") == (-2.0, 1.0, -1.5, 1.5)
    with pytest.raises(ValueError):
        parse_bounds("1,2,3")


def test_load_yaml_and_json(tmp_path):
    yaml_path = tmp_path / "engine.yaml"
    yaml_path.write_text(yaml.safe_dump({'width': 100, 'precision': 'single'}))
    json_path = tmp_path / "engine.json"
    json_path.write_text(json.dumps({'height': 50}))

    manager = ConfigManager(environ={})
    assert manager.load_file(yaml_path) == {'width': 100, 'precision': 'single'}
    assert manager.load_file(json_path) == {'height': 50}


def test_load_empty_and_invalid_files(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    listing = tmp_path / "list.yaml"
    listing.write_text("- 1\n- 2\n")

    manager = ConfigManager(environ={})
    assert manager.load_file(empty) == {}
    with pytest.raises(ValueError):
        manager.load_file(listing)
    with pytest.raises(FileNotFoundError):
        manager.load_file(tmp_path / "missing.yaml")


@pytest.mark.parametrize("suffix", [".yaml", ".json"])
def test_save_then_build(tmp_path, suffix):
    path = tmp_path / f"saved{suffix}"
    manager = ConfigManager(environ={})
    manager.save_file(EngineConfig(width=64, height=48, max_iterations=30), path)

    config = manager.build(path)
    assert (config.width, config.height, config.max_iterations) == (64, 48, 30)
    assert config.bounds == EngineConfig().bounds


def test_environment_overrides_are_typed():
    manager = ConfigManager(environ={
        'FRACTAL_ENGINE_MAX_ITERATIONS': '500',
        'FRACTAL_ENGINE_USE_NUMBA': 'no',
        'FRACTAL_ENGINE_BOUNDS': '-1,1,-1,1',
        'FRACTAL_ENGINE_SEED': 'none',
        'UNRELATED': 'x',
    })
    assert manager.environment_overrides() == {
        'max_iterations': 500,
        'use_numba': False,
        'bounds': (-1.0, 1.0, -1.0, 1.0),
        'seed': None,
    }


def test_invalid_environment_value():
    manager = ConfigManager(environ={'FRACTAL_ENGINE_USE_NUMBA': 'maybe'})
    with pytest.raises(ValueError, match="FRACTAL_ENGINE_USE_NUMBA"):
        manager.environment_overrides()


def test_build_precedence(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text(yaml.safe_dump({'width': 100, 'height': 100, 'max_iterations': 10}))
    manager = ConfigManager(environ={
        'FRACTAL_ENGINE_HEIGHT': '200',
        'FRACTAL_ENGINE_MAX_ITERATIONS': '20',
    })

    config = manager.build(path, overrides={'max_iterations': 30, 'width': None})

    assert config.width == 100
    assert config.height == 200
    assert config.max_iterations == 30


def test_build_validates():
    manager = ConfigManager(environ={'FRACTAL_ENGINE_WIDTH': '-1'})
    with pytest.raises(ValueError):
        manager.build()

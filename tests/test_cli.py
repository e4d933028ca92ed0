"""Tests for the command-line interface"""

import numpy as np
import pytest
import yaml
from click.testing import CliRunner

from fractal_engine import __version__
from fractal_engine.cli.main import main


SMALL_GRID = ['--width', '24', '--height', '16', '--max-iter', '30', '--no-numba']


@pytest.fixture
def runner():
    return CliRunner()


def test_version(runner):
    result = runner.invoke(main, ['--version'])
    assert result.exit_code == 0
    assert f"Fractal Engine v{__version__}" in result.output


def test_escape_grid(runner):
    result = runner.invoke(main, ['escape', 'mandelbrot', *SMALL_GRID])
    assert result.exit_code == 0, result.output
    assert "Computing mandelbrot grid 24x16" in result.output
    assert "using numpy" in result.output
    assert "Points inside:" in result.output


def test_escape_newton_lists_roots(runner):
    result = runner.invoke(main, ['escape', 'newton', *SMALL_GRID,
                                  '--bounds=-2,2,-2,2', '--newton-k', '1,0'])
    assert result.exit_code == 0, result.output
    assert "Converged points:" in result.output
    assert "Roots found: 3" in result.output


def test_escape_julia_preset(runner):
    result = runner.invoke(main, ['escape', 'julia', *SMALL_GRID, '--julia-c', 'rabbit'])
    assert result.exit_code == 0, result.output
    assert "Using Julia preset: rabbit" in result.output


def test_escape_single_point(runner):
    result = runner.invoke(main, ['escape', 'mandelbrot', '--point', '0,0', '--max-iter', '100'])
    assert result.exit_code == 0, result.output
    assert "100 iterations" in result.output

    result = runner.invoke(main, ['escape', 'newton', '--point', '1,0', '--newton-k', '1,0'])
    assert "0 iterations" in result.output
    assert "Root index: 0" in result.output


def test_escape_saves_iterations(runner, tmp_path):
    output = tmp_path / "grid"
    result = runner.invoke(main, ['escape', 'mandelbrot', *SMALL_GRID, '-o', str(output)])
    assert result.exit_code == 0, result.output
    assert np.load(tmp_path / "grid.npy").shape == (16, 24)


def test_escape_invalid_bounds(runner):
    result = runner.invoke(main, ['escape', 'mandelbrot', *SMALL_GRID, '--bounds', '1,2,3'])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_environment_configures_grid(runner):
    result = runner.invoke(main, ['escape', 'mandelbrot', '--no-numba'], env={
        'FRACTAL_ENGINE_WIDTH': '12',
        'FRACTAL_ENGINE_HEIGHT': '8',
        'FRACTAL_ENGINE_MAX_ITERATIONS': '20',
    })
    assert result.exit_code == 0, result.output
    assert "grid 12x8" in result.output
    assert "of 96" in result.output


def test_init_config_then_use_it(runner, tmp_path):
    path = tmp_path / "engine.yaml"
    result = runner.invoke(main, ['init-config', '-o', str(path)])
    assert result.exit_code == 0, result.output

    data = yaml.safe_load(path.read_text())
    data.update(width=10, height=6, max_iterations=15)
    path.write_text(yaml.safe_dump(data))

    result = runner.invoke(main, ['--config', str(path), 'escape', 'julia', '--no-numba'])
    assert result.exit_code == 0, result.output
    assert "grid 10x6" in result.output


def test_bulb_menger(runner):
    result = runner.invoke(main, ['bulb', 'menger', '--level', '1'])
    assert result.exit_code == 0, result.output
    assert "menger: 20 points" in result.output


def test_bulb_mandelbulb_with_seed(runner):
    result = runner.invoke(main, ['bulb', 'mandelbulb', '--density', '300', '--max-iter', '5',
                                  '--seed', '1'])
    assert result.exit_code == 0, result.output
    assert "mandelbulb:" in result.output


@pytest.mark.parametrize("preset,dims", [('barnsley_fern', 2), ('cube_edges', 3)])
def test_ifs(runner, tmp_path, preset, dims):
    output = tmp_path / "points.npy"
    result = runner.invoke(main, ['ifs', preset, '-n', '200', '--seed', '4', '-o', str(output)])
    assert result.exit_code == 0, result.output
    assert f"{preset}: 200 points" in result.output
    assert np.load(output).shape == (200, dims)


def test_ifs_unknown_preset(runner):
    result = runner.invoke(main, ['ifs', 'dodecahedron'])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_ifs_rejects_bad_lambda(runner):
    result = runner.invoke(main, ['ifs', 'tetra', '--lam', '1.5', '-n', '10'])
    assert result.exit_code == 1


def test_orbit(runner):
    result = runner.invoke(main, ['orbit', 'octa', '--steps', '100', '--mode', 'continuous'])
    assert result.exit_code == 0, result.output
    assert "octa continuous orbit: 100 points" in result.output


def test_dendrite(runner):
    result = runner.invoke(main, ['dendrite', 'bottom', '--depth', '3', '--seed', '2'])
    assert result.exit_code == 0, result.output
    assert "bottom:" in result.output


def test_lsystem(runner):
    result = runner.invoke(main, ['lsystem', 'koch', '-n', '2', '-w', '200', '-h', '200'])
    assert result.exit_code == 0, result.output
    assert "koch: 48 segments" in result.output
    assert "Fit to 200x200" in result.output


def test_koch(runner):
    result = runner.invoke(main, ['koch', '2'])
    assert result.exit_code == 0, result.output
    assert "Koch snowflake depth 2: 48 segments" in result.output


def test_curve(runner):
    result = runner.invoke(main, ['curve', 'peano', '2', '-w', '90', '-h', '90'])
    assert result.exit_code == 0, result.output
    assert "peano order 2: 81 points" in result.output


def test_curve_unknown_family(runner):
    result = runner.invoke(main, ['curve', 'dragon', '2'])
    assert result.exit_code == 2


def test_list_presets(runner):
    result = runner.invoke(main, ['list-presets'])
    assert result.exit_code == 0, result.output
    for heading in ("Escape-time fractals:", "Julia set presets:", "L-system presets:"):
        assert heading in result.output
    assert "barnsley_fern" in result.output
    assert "hilbert" in result.output


def test_system_info(runner):
    result = runner.invoke(main, ['system-info'])
    assert result.exit_code == 0, result.output
    assert "CPU cores:" in result.output
    assert "Recommended processes:" in result.output


def test_benchmark(runner):
    result = runner.invoke(main, ['benchmark', '--size', '20x10', '--iterations', '10'])
    assert result.exit_code == 0, result.output
    assert "NUMPY:" in result.output


def test_benchmark_bad_size(runner):
    result = runner.invoke(main, ['benchmark', '--size', 'large'])
    assert result.exit_code == 1

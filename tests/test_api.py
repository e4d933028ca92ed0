"""Tests for the FractalEngine facade"""

import numpy as np
import pytest

from fractal_engine.api import ComputationCancelled, FractalEngine
from fractal_engine.config import EngineConfig
from fractal_engine.core.fractal_types import FractalRegistry
from fractal_engine.core.math_functions import RootRegistry


def small_config(**changes):
    values = dict(width=48, height=36, max_iterations=50, use_numba=False, chunk_rows=7)
    values.update(changes)
    return EngineConfig(**values)


def test_chunked_grid_matches_single_pass():
    chunked = FractalEngine(small_config(chunk_rows=5)).compute_grid('mandelbrot')
    whole = FractalEngine(small_config(chunk_rows=1000)).compute_grid('mandelbrot')

    assert chunked.method == 'numpy'
    assert np.array_equal(chunked.iterations, whole.iterations)
    assert np.array_equal(chunked.result.escaped, whole.result.escaped)


def test_progress_is_reported_per_chunk():
    fractions = []
    FractalEngine(small_config(height=20, chunk_rows=6)).compute_grid(
        'julia', progress_callback=fractions.append)

    assert fractions == pytest.approx([6 / 20, 12 / 20, 18 / 20, 1.0])


def test_cancellation_between_chunks():
    calls = []

    def should_cancel():
        calls.append(1)
        return len(calls) > 2

    with pytest.raises(ComputationCancelled):
        FractalEngine(small_config()).compute_grid('mandelbrot', should_cancel=should_cancel)
    assert len(calls) == 3


def test_newton_grid_reports_roots():
    config = small_config(width=41, height=41, bounds=(-2.0, 2.0, -2.0, 2.0), max_iterations=60)
    fractal = FractalRegistry.create_fractal('newton', k_real=1.0, k_imag=0.0)

    grid = FractalEngine(config).compute_grid(fractal)

    assert len(grid.roots) == 3
    assert grid.root_indices.shape == (41, 41)
    assert set(np.unique(grid.root_indices)) <= {-1, 0, 1, 2}
    assert len(grid.metadata()['roots']) == 3


def test_newton_chunks_share_one_registry():
    fractal = FractalRegistry.create_fractal('newton', k_real=1.0, k_imag=0.0)
    bounds = (-2.0, 2.0, -2.0, 2.0)
    chunked = FractalEngine(small_config(bounds=bounds, chunk_rows=3)).compute_grid(fractal)
    whole = FractalEngine(small_config(bounds=bounds, chunk_rows=1000)).compute_grid(fractal)

    assert np.array_equal(chunked.root_indices, whole.root_indices)
    assert chunked.roots == whole.roots


def test_newton_extends_given_registry():
    registry = RootRegistry()
    registry.classify(5 + 5j)
    fractal = FractalRegistry.create_fractal('newton', k_real=1.0, k_imag=0.0)

    grid = FractalEngine(small_config(bounds=(-2.0, 2.0, -2.0, 2.0))).compute_grid(
        fractal, registry=registry)

    assert grid.registry is registry
    assert 0 not in set(np.unique(grid.root_indices))


def test_mandelbrot_has_no_root_indices():
    grid = FractalEngine(small_config()).compute_grid('mandelbrot')
    assert grid.root_indices is None
    assert grid.roots == []


def test_forced_method_must_be_enabled():
    engine = FractalEngine(small_config())
    with pytest.raises(ValueError):
        engine.compute_grid('mandelbrot', method='numba')
    with pytest.raises(ValueError):
        engine.compute_grid('mandelbrot', method='gpu')


def test_numba_method_matches_numpy():
    engine = FractalEngine(small_config(use_numba=True))
    assert engine.accelerators.numba is not None

    numba_grid = engine.compute_grid('julia')
    numpy_grid = engine.compute_grid('julia', method='numpy')

    assert numba_grid.method == 'numba'
    assert np.array_equal(numba_grid.iterations, numpy_grid.iterations)


def test_single_precision_disables_numba():
    engine = FractalEngine(small_config(use_numba=True, precision='single'))
    assert engine.accelerators.numba is None
    assert 'numba' in engine.accelerators.notes
    assert engine.compute_grid('mandelbrot').method == 'numpy'


def test_update_config():
    engine = FractalEngine(small_config())
    engine.update_config(max_iterations=10, precision='single')
    assert engine.config.max_iterations == 10
    assert engine.precision_config.precision == 'single'

    with pytest.raises(ValueError):
        engine.update_config(colormap='hot')


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        FractalEngine(small_config(width=0))


def test_generate_bulb_uses_config_seed():
    engine = FractalEngine(small_config(seed=3))
    first = engine.generate_bulb('mandelbulb', max_iter=6, density=500)
    second = engine.generate_bulb('mandelbulb', max_iter=6, density=500)
    assert np.array_equal(first, second)

    with pytest.raises(ValueError):
        engine.generate_bulb('menger')


@pytest.mark.parametrize("preset,dims", [
    ('barnsley_fern', 2),
    ('octa_faces', 3),
    ('sierpinski_tetrahedron', 3),
    ('icosa', 3),
])
def test_generate_ifs(preset, dims):
    points = FractalEngine(small_config()).generate_ifs(preset, iterations=300, seed=1)
    assert points.shape == (300, dims)


def test_generate_other_families():
    engine = FractalEngine(small_config(width=90, height=60, seed=2))

    assert engine.generate_menger(1).shape == (20, 3)
    assert engine.generate_orbit('tetra', steps=50).shape == (50, 3)
    assert engine.generate_dendrite('center', depth=3).shape[1:] == (2, 2)
    assert len(engine.generate_lsystem('koch', 2)) == 48

    curve = engine.generate_curve('hilbert', 2)
    assert curve.shape == (16, 2)
    assert curve.max(axis=0).tolist() == [90.0, 60.0]


def test_benchmark_reports_enabled_methods():
    results = FractalEngine(small_config(width=20, height=10)).benchmark_performance()
    assert list(results['benchmarks']) == ['numpy']
    assert results['config']['resolution'] == '20x10'


def test_multiprocessing_pass_shares_one_pool(monkeypatch):
    engine = FractalEngine(small_config(use_multiprocessing=True, num_processes=2,
                                        tile_size=8, chunk_rows=5))
    accelerator = engine.accelerators.multiprocessing
    opened = []
    open_pool = accelerator.executor

    def counting_executor():
        opened.append(1)
        return open_pool()

    monkeypatch.setattr(accelerator, 'executor', counting_executor)

    parallel = engine.compute_grid('mandelbrot', method='multiprocessing')
    sequential = engine.compute_grid('mandelbrot', method='numpy')

    assert len(opened) == 1
    assert parallel.method == 'multiprocessing'
    assert np.array_equal(parallel.iterations, sequential.iterations)

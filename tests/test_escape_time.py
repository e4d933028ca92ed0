"""Tests for the 2D escape-time families"""

import cmath
import math

import numpy as np
import pytest

from fractal_engine.core.math_functions import (
    ComplexPlane, FractalIterator, RootRegistry, escape_time_2d,
)
from fractal_engine.core.fractal_types import FractalRegistry, JuliaSet, JULIA_PRESETS
from fractal_engine.core.precision import PrecisionConfig, detect_precision_need


CUBE_ROOTS_OF_UNITY = [cmath.exp(2j * math.pi * n / 3) for n in range(3)]


def test_mandelbrot_origin_never_escapes():
    assert escape_time_2d(0j, 0j, 100, 'mandelbrot').iterations == 100


def test_mandelbrot_far_point_escapes_quickly():
    assert escape_time_2d(2 + 2j, 0j, 100, 'mandelbrot').iterations <= 2


@pytest.mark.parametrize("k", [0j, -0.75 + 0.1j, 0.3 - 0.5j, -1.25 + 0j, 0.5 + 0.5j])
def test_julia_from_origin_matches_mandelbrot(k):
    julia = escape_time_2d(0j, k, 80, 'julia')
    mandelbrot = escape_time_2d(k, 0j, 80, 'mandelbrot')
    assert julia.iterations == mandelbrot.iterations


def test_julia_point_outside_escapes():
    c = JULIA_PRESETS['rabbit'].c
    assert escape_time_2d(3 + 0j, c, 50, 'julia').iterations <= 1


def test_non_finite_point_counts_as_escaped():
    result = escape_time_2d(complex(float('nan'), 0.0), 0j, 10, 'mandelbrot')
    assert result.iterations == 0


def test_newton_exact_root_converges_immediately():
    result = escape_time_2d(1 + 0j, 1 + 0j, 50, 'newton')
    assert result.iterations == 0
    assert result.root_index == 0


def test_newton_zero_derivative_does_not_converge():
    # f'(0) = k - 1 = 0 for k = 1
    result = escape_time_2d(0j, 1 + 0j, 50, 'newton')
    assert result.iterations == 50
    assert result.root_index is None


def test_newton_shared_registry_assigns_stable_indices():
    registry = RootRegistry()
    first = escape_time_2d(1.2 + 0.1j, 1 + 0j, 50, 'newton', registry=registry)
    again = escape_time_2d(0.9 - 0.05j, 1 + 0j, 50, 'newton', registry=registry)
    other = escape_time_2d(-0.5 + 0.9j, 1 + 0j, 50, 'newton', registry=registry)

    assert first.root_index == again.root_index == 0
    assert other.root_index == 1
    assert len(registry) == 2


def test_unknown_family_raises():
    with pytest.raises(ValueError):
        escape_time_2d(0j, 0j, 10, 'burning_ship')


def test_newton_grid_finds_three_roots():
    plane = ComplexPlane(-2.0, 2.0, -2.0, 2.0, 41, 41)
    iterator = FractalIterator(max_iter=60)
    registry = RootRegistry(iterator.tolerance)

    result = iterator.newton_iteration(plane.create_complex_array(), 1 + 0j, registry)

    assert len(registry) == 3
    for root in registry.roots:
        assert min(abs(root - r) for r in CUBE_ROOTS_OF_UNITY) < 1e-6
    assert set(np.unique(result.root_indices)) <= {-1, 0, 1, 2}
    assert np.array_equal(result.root_indices == -1, result.escaped)


def test_newton_grid_classifies_in_row_major_order():
    plane = ComplexPlane(-2.0, 2.0, -2.0, 2.0, 21, 21)
    iterator = FractalIterator(max_iter=60)
    result = iterator.newton_iteration(plane.create_complex_array(), 1 + 0j)

    flat = result.root_indices.ravel()
    assert set(np.unique(flat)) >= {0, 1, 2}
    first_seen = [int(np.argmax(flat == i)) for i in range(3)]
    assert first_seen[0] < first_seen[1] < first_seen[2]


@pytest.mark.parametrize("family,constant", [
    ('mandelbrot', 0j),
    ('julia', -0.8 + 0.156j),
])
def test_grid_matches_scalar(family, constant):
    plane = ComplexPlane(-2.0, 1.0, -1.2, 1.2, 24, 18)
    iterator = FractalIterator(max_iter=64)
    grid = plane.create_complex_array()

    if family == 'mandelbrot':
        result = iterator.mandelbrot_iteration(grid)
    else:
        result = iterator.julia_iteration(grid, constant)

    for py in range(plane.height):
        for px in range(plane.width):
            point = plane.pixel_to_complex(px, py)
            expected = escape_time_2d(point, constant, 64, family).iterations
            assert result.iterations[py, px] == expected


def test_newton_grid_matches_scalar():
    plane = ComplexPlane(-1.5, 1.5, -1.5, 1.5, 15, 15)
    iterator = FractalIterator(max_iter=40)
    k = -0.5 + 0.5j
    result = iterator.newton_iteration(plane.create_complex_array(), k)

    for py in range(plane.height):
        for px in range(plane.width):
            scalar = escape_time_2d(plane.pixel_to_complex(px, py), k, 40, 'newton')
            assert result.iterations[py, px] == scalar.iterations
            assert (result.root_indices[py, px] == -1) == (scalar.root_index is None)


def test_root_registry_classify_grid_marks_unconverged():
    registry = RootRegistry(1e-6)
    final = np.array([[1 + 0j, 5 + 5j], [1 + 1e-9j, -1 + 0j]])
    converged = np.array([[True, False], [True, True]])

    indices = registry.classify_grid(final, converged)

    assert indices.tolist() == [[0, -1], [0, 1]]
    assert indices.dtype == np.int32


def test_plane_maps_pixel_corners():
    plane = ComplexPlane(-2.0, 2.0, -1.0, 1.0, 4, 2)
    assert plane.pixel_to_complex(0, 0) == complex(-2.0, -1.0)
    assert plane.pixel_to_complex(2, 1) == complex(0.0, 0.0)
    assert plane.complex_to_pixel(complex(0.0, 0.0)) == (2, 1)


@pytest.mark.parametrize("bounds", [(1.0, -1.0, -1.0, 1.0), (-1.0, 1.0, 1.0, 1.0)])
def test_plane_rejects_invalid_bounds(bounds):
    with pytest.raises(ValueError):
        ComplexPlane(*bounds, 10, 10)


def test_plane_rows_reproduce_full_coordinates():
    plane = ComplexPlane(-2.5, 1.0, -1.25, 1.25, 37, 29)
    full = plane.create_complex_array()

    for start in range(0, plane.height, 6):
        stop = min(start + 6, plane.height)
        chunk = plane.rows(start, stop).create_complex_array()
        assert np.array_equal(chunk, full[start:stop])


def test_plane_region_reproduces_full_coordinates():
    plane = ComplexPlane(-1.0, 1.0, -1.0, 1.0, 20, 20)
    region = plane.region(5, 13, 3, 11)
    assert np.array_equal(region.create_complex_array(), plane.create_complex_array()[3:11, 5:13])
    assert region.pixel_to_complex(0, 0) == plane.pixel_to_complex(5, 3)


def test_plane_region_rejects_out_of_range():
    plane = ComplexPlane(-1.0, 1.0, -1.0, 1.0, 10, 10)
    with pytest.raises(ValueError):
        plane.rows(5, 11)


def test_single_precision_iterator():
    config = PrecisionConfig('single')
    plane = ComplexPlane(-2.0, 1.0, -1.0, 1.0, 8, 8)
    result = FractalIterator(32, dtype=config.dtype).mandelbrot_iteration(
        plane.create_complex_array(config.dtype))
    assert result.final_values.dtype == np.complex64
    assert result.iterations.shape == (8, 8)


def test_unknown_precision_raises():
    with pytest.raises(ValueError):
        PrecisionConfig('quad')


@pytest.mark.parametrize("zoom,expected", [(1.0, 'single'), (1e3, 'single'), (1e10, 'double')])
def test_detect_precision_need(zoom, expected):
    assert detect_precision_need(zoom) == expected


def test_registry_creates_parametrised_fractal():
    fractal = FractalRegistry.create_fractal('julia', c_real=-0.4, c_imag=0.6)
    assert isinstance(fractal, JuliaSet)
    assert fractal.constant == complex(-0.4, 0.6)


def test_registry_lists_families():
    assert set(FractalRegistry.list_fractals()) >= {'mandelbrot', 'julia', 'newton'}


def test_registry_unknown_fractal():
    with pytest.raises(ValueError):
        FractalRegistry.create_fractal('multibrot')

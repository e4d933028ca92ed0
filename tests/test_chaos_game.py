"""Tests for the affine and interpolated chaos games"""

import math

import numpy as np
import pytest

from fractal_engine.ifs.chaos_game import (
    AFFINE_PRESETS, AffineMap, ChaosConstraints, affine_chaos_game, chaos_game, choose_map,
    interpolated_chaos_game, normalize_probabilities, sierpinski_tetrahedron,
)
from fractal_engine.ifs.dendrite import DendriteParameters, dendrite_forest, generate_dendrite
from fractal_engine.ifs.plane_maps import plane_orbit, plane_orbit_grid


SQUARE_3D = np.array([
    [1.0, 0.0, 0.0],
    [0.0, 1.0, 0.0],
    [-1.0, 0.0, 0.0],
    [0.0, -1.0, 0.0],
])


def test_affine_contraction_from_start():
    points = affine_chaos_game(AFFINE_PRESETS['shrinking_square'], 10, start=(1.0, 1.0), seed=0)

    expected = np.array([[0.5 ** (i + 1)] * 2 for i in range(10)])
    assert np.allclose(points, expected)
    norms = np.linalg.norm(points, axis=1)
    assert np.all(np.diff(norms) < 0)


def test_start_point_is_not_emitted():
    points = affine_chaos_game([AffineMap(1, 0, 0, 1, 1.0, 0.0)], 3, start=(0.0, 0.0), seed=0)
    assert points.tolist() == [[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]]


def test_normalize_probabilities():
    maps = [AffineMap(1, 0, 0, 1, probability=p) for p in (1.0, 3.0)]
    assert normalize_probabilities(maps) == [0.25, 0.75]

    zero = [AffineMap(1, 0, 0, 1, probability=0.0) for _ in range(4)]
    assert normalize_probabilities(zero) == [0.25] * 4


@pytest.mark.parametrize("r,expected", [(0.0, 0), (0.25, 0), (0.26, 1), (0.75, 2), (0.99, 3), (1.5, 3)])
def test_choose_map_uses_running_sum(r, expected):
    cumulative = np.array([0.25, 0.5, 0.75, 1.0])
    assert choose_map(cumulative, r) == expected


def test_barnsley_fern_map_frequencies():
    _, indices = affine_chaos_game(AFFINE_PRESETS['barnsley_fern'], 20000, seed=1,
                                   return_indices=True)
    frequencies = np.bincount(indices, minlength=4) / len(indices)
    assert frequencies[1] == pytest.approx(0.85, abs=0.02)
    assert frequencies[0] == pytest.approx(0.01, abs=0.01)


def test_affine_empty_inputs():
    assert affine_chaos_game([], 100).shape == (0, 2)
    assert affine_chaos_game(AFFINE_PRESETS['spiral'], 0).shape == (0, 2)


def test_affine_map_from_dict_accepts_prob():
    m = AffineMap.from_dict({'a11': 0.5, 'a12': 0, 'a21': 0, 'a22': 0.5, 'prob': 0.3})
    assert m.probability == 0.3
    assert m.determinant == pytest.approx(0.25)
    assert AffineMap.from_dict(m.to_dict()) == m


def test_no_repeat_never_repeats_target():
    _, indices = interpolated_chaos_game(SQUARE_3D, 0.5, 2000,
                                         ChaosConstraints(no_repeat=True), seed=4,
                                         return_indices=True)
    assert np.all(indices[1:] != indices[:-1])


def test_retry_cap_accepts_last_draw():
    # With a single target every draw repeats; after the retry limit the
    # draw is accepted anyway instead of stalling
    points, indices = interpolated_chaos_game([[1.0, 0.0]], 0.5, 50,
                                              ChaosConstraints(no_repeat=True), seed=0,
                                              return_indices=True)
    assert np.all(indices == 0)
    assert points[-1] == pytest.approx([1.0, 0.0])


def test_no_opposite_face_rejects_far_target():
    targets = np.array([
        [1.0, 0.0, 0.0],
        [0.9, 0.1, 0.0],
        [0.9, -0.1, 0.0],
        [0.9, 0.0, 0.1],
        [-1.0, 0.0, 0.0],
    ])
    _, indices = interpolated_chaos_game(targets, 0.5, 500,
                                         ChaosConstraints(no_opp_face=True),
                                         start=(1.0, 0.0, 0.0), seed=2,
                                         return_indices=True)
    assert 4 not in set(indices.tolist())


@pytest.mark.parametrize("lam", [0.0, 1.0, -0.5, 1.5])
def test_lambda_must_be_inside_unit_interval(lam):
    with pytest.raises(ValueError):
        interpolated_chaos_game(SQUARE_3D, lam, 10)


def test_interpolated_empty_inputs():
    assert interpolated_chaos_game([], 0.5, 100).shape == (0, 2)
    assert interpolated_chaos_game(SQUARE_3D, 0.5, 0).shape == (0, 3)


def test_midpoint_game_stays_in_hull():
    points = interpolated_chaos_game([[0.0, 0.0], [1.0, 0.0], [0.5, 1.0]], 0.5, 5000, seed=9)
    assert points.shape == (5000, 2)
    assert np.all(points >= 0.0) and np.all(points <= 1.0)


def test_chaos_game_dispatches_on_input():
    affine = chaos_game(AFFINE_PRESETS['sierpinski_triangle'], 100, seed=1)
    targets = chaos_game(SQUARE_3D, 100, lam=0.5, seed=1)
    assert affine.shape == (100, 2)
    assert targets.shape == (100, 3)
    assert chaos_game([], 100).shape == (0, 2)


def test_chaos_game_is_reproducible_with_rng():
    a = chaos_game(SQUARE_3D, 200, rng=np.random.default_rng(5))
    b = chaos_game(SQUARE_3D, 200, rng=np.random.default_rng(5))
    assert np.array_equal(a, b)


def test_sierpinski_tetrahedron_points():
    points = sierpinski_tetrahedron(1000, seed=3)
    assert points.shape == (1000, 3)
    assert np.all(np.abs(points) <= 1.0)


def test_dendrite_without_sticking_is_full_tree():
    params = DendriteParameters(stick_probability=0.0)
    segments = generate_dendrite(0.0, 0.0, 0.0, 100.0, 3, params, seed=0)

    assert segments.shape == (7, 2, 2)
    assert segments[0].tolist() == [[0.0, 0.0], [100.0, 0.0]]
    # Depth-first: the first child starts where the trunk ends
    assert segments[1][0] == pytest.approx([100.0, 0.0])


def test_dendrite_invalid_parameters():
    with pytest.raises(ValueError):
        generate_dendrite(0, 0, 0, 10, 2, DendriteParameters(stick_probability=1.5))


@pytest.mark.parametrize("layout", ['center', 'square_edges', 'bottom'])
def test_dendrite_layouts(layout):
    segments = dendrite_forest(layout, 400, 300, depth=3, seed=1)
    assert segments.ndim == 3 and segments.shape[1:] == (2, 2)


def test_dendrite_unknown_layout():
    with pytest.raises(ValueError):
        dendrite_forest('spiral')


def test_plane_orbit_resets_non_finite_values():
    orbit = plane_orbit(lambda x, y: x / y if y else float('inf'), lambda x, y: y - 1,
                        1.0, 1.0, 2)
    assert orbit.tolist() == [[1.0, 1.0], [1.0, 0.0], [0.0, -1.0]]


def test_plane_orbit_resets_failing_maps():
    orbit = plane_orbit(lambda x, y: 1 / x, lambda x, y: y, 0.0, 1.0, 2)
    assert orbit.tolist() == [[0.0, 1.0], [0.0, 1.0], [0.0, 1.0]]

    orbit = plane_orbit(lambda x, y: math.log(x), lambda x, y: math.sqrt(y), 0.0, -1.0, 1)
    assert orbit.tolist() == [[0.0, -1.0], [0.0, 0.0]]

    orbit = plane_orbit(lambda x, y: math.exp(x), lambda x, y: y, 1000.0, 0.0, 1)
    assert orbit.tolist() == [[1000.0, 0.0], [0.0, 0.0]]


def test_plane_orbit_grid_order():
    paths = plane_orbit_grid(lambda x, y: x, lambda x, y: y, (0.0, 1.0), (0.0, 2.0), 1, 3)
    assert paths.shape == (4, 4, 2)
    starts = paths[:, 0].tolist()
    assert starts == [[0.0, 0.0], [0.0, 2.0], [1.0, 0.0], [1.0, 2.0]]

    with pytest.raises(ValueError):
        plane_orbit_grid(lambda x, y: x, lambda x, y: y, (0, 1), (0, 1), 0, 3)

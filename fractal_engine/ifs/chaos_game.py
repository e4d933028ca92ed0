"""
Chaos-game generators for iterated function systems.

Two policies are supported: the weighted affine chaos game, where each step
applies a randomly drawn contraction ``p -> A p + b``, and the interpolated
target chaos game, where each step moves the running point a fraction
``lam`` of the way toward a randomly drawn target point.
"""

import math
import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass
import logging

from ..core.vectors import ensure_rng, normalise, as_point_array

logger = logging.getLogger(__name__)

MAX_DRAW_ATTEMPTS = 20
OPPOSITE_FACE_THRESHOLD = -0.2

SIERPINSKI_TETRAHEDRON_VERTICES = np.array([
    [1.0, 1.0, 1.0],
    [-1.0, -1.0, 1.0],
    [-1.0, 1.0, -1.0],
    [1.0, -1.0, -1.0],
])


@dataclass(frozen=True)
class AffineMap:
    """Planar affine contraction ``p -> [[a11, a12], [a21, a22]] p + (b1, b2)``."""

    a11: float
    a12: float
    a21: float
    a22: float
    b1: float = 0.0
    b2: float = 0.0
    probability: float = 1.0

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return (self.a11 * x + self.a12 * y + self.b1,
                self.a21 * x + self.a22 * y + self.b2)

    @property
    def determinant(self) -> float:
        return self.a11 * self.a22 - self.a12 * self.a21

    def to_dict(self) -> Dict[str, float]:
        return {'a11': self.a11, 'a12': self.a12, 'a21': self.a21, 'a22': self.a22,
                'b1': self.b1, 'b2': self.b2, 'probability': self.probability}

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> 'AffineMap':
        data = dict(data)
        if 'prob' in data:
            data['probability'] = data.pop('prob')
        return cls(**data)


@dataclass(frozen=True)
class ChaosConstraints:
    """
    Draw constraints for the interpolated chaos game.

    Attributes:
        no_repeat: Reject a target equal to the previously chosen one
        no_opp_face: Reject targets lying nearly opposite the current point
    """

    no_repeat: bool = False
    no_opp_face: bool = False

    @property
    def active(self) -> bool:
        return self.no_repeat or self.no_opp_face


def normalize_probabilities(maps: Sequence[AffineMap]) -> List[float]:
    """
    Normalise map probabilities to sum to one.

    A non-positive total falls back to a uniform distribution.
    """
    total = sum(m.probability for m in maps)
    if total > 0:
        return [m.probability / total for m in maps]
    return [1.0 / len(maps)] * len(maps) if maps else []


def choose_map(cumulative: np.ndarray, r: float) -> int:
    """
    Index of the first map whose running probability sum reaches ``r``.

    The last map is chosen when rounding leaves ``r`` above the final sum.
    """
    index = int(np.searchsorted(cumulative, r, side='left'))
    return min(index, len(cumulative) - 1)


def affine_chaos_game(maps: Sequence[AffineMap], iterations: int,
                      start: Sequence[float] = (0.0, 0.0),
                      rng: Optional[np.random.Generator] = None,
                      seed: Optional[int] = None,
                      return_indices: bool = False) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
    """
    Run the weighted affine chaos game.

    Args:
        maps: Affine maps with (unnormalised) probabilities
        iterations: Number of points to emit
        start: Initial point, not itself emitted
        rng: Random source (takes precedence over ``seed``)
        seed: Seed for a fresh random source
        return_indices: Also return the index of the map applied at each step

    Returns:
        (iterations, 2) point array, plus the chosen map indices when requested
    """
    maps = list(maps)
    if not maps or iterations <= 0:
        points, indices = np.empty((0, 2)), np.empty(0, dtype=np.int64)
        return (points, indices) if return_indices else points

    rng = ensure_rng(rng, seed)
    cumulative = np.cumsum(normalize_probabilities(maps))
    draws = rng.random(iterations)

    points = np.empty((iterations, 2), dtype=np.float64)
    indices = np.empty(iterations, dtype=np.int64)
    x, y = float(start[0]), float(start[1])

    for i in range(iterations):
        idx = choose_map(cumulative, draws[i])
        x, y = maps[idx].apply(x, y)
        points[i] = (x, y)
        indices[i] = idx

    logger.debug(f"Affine chaos game: {iterations} points from {len(maps)} maps")
    return (points, indices) if return_indices else points


def _draw_target(targets: np.ndarray, p: np.ndarray, last_index: int,
                 constraints: ChaosConstraints, rng: np.random.Generator) -> int:
    direction = normalise(p) if constraints.no_opp_face else None

    for _ in range(MAX_DRAW_ATTEMPTS):
        idx = int(rng.integers(len(targets)))
        if constraints.no_repeat and idx == last_index:
            continue
        if constraints.no_opp_face and np.dot(direction, targets[idx]) < OPPOSITE_FACE_THRESHOLD:
            continue
        return idx

    # Retries exhausted: the last draw is accepted even though it violates a constraint
    return idx


def interpolated_chaos_game(targets: Sequence[Sequence[float]], lam: float = 0.5,
                            iterations: int = 50000,
                            constraints: Optional[ChaosConstraints] = None,
                            start: Optional[Sequence[float]] = None,
                            rng: Optional[np.random.Generator] = None,
                            seed: Optional[int] = None,
                            return_indices: bool = False) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
    """
    Run the interpolated target chaos game.

    Each step draws a target uniformly (subject to ``constraints``, with at
    most ``MAX_DRAW_ATTEMPTS`` tries before the last draw is accepted anyway)
    and sets ``p = (1 - lam) p + lam * target``.

    Args:
        targets: (n, d) target points, d in {2, 3}
        lam: Blend factor in the open interval (0, 1)
        iterations: Number of points to emit
        constraints: Draw constraints
        start: Initial point (origin by default)
        rng: Random source
        seed: Seed for a fresh random source
        return_indices: Also return the chosen target index per step

    Returns:
        (iterations, d) point array, plus the chosen indices when requested
    """
    if not 0 < lam < 1:
        raise ValueError(f"lam must lie in the open interval (0, 1), got {lam}")

    targets = as_point_array(targets, dims=(2, 3))
    dims = targets.shape[1]
    if len(targets) == 0 or iterations <= 0:
        points, indices = np.empty((0, dims)), np.empty(0, dtype=np.int64)
        return (points, indices) if return_indices else points

    constraints = constraints or ChaosConstraints()
    rng = ensure_rng(rng, seed)

    p = np.zeros(dims) if start is None else np.asarray(start, dtype=np.float64).copy()
    points = np.empty((iterations, dims), dtype=np.float64)
    indices = np.empty(iterations, dtype=np.int64)
    last_index = -1

    if constraints.active:
        for i in range(iterations):
            idx = _draw_target(targets, p, last_index, constraints, rng)
            p = (1 - lam) * p + lam * targets[idx]
            points[i] = p
            indices[i] = idx
            last_index = idx
    else:
        indices[:] = rng.integers(len(targets), size=iterations)
        for i in range(iterations):
            p = (1 - lam) * p + lam * targets[indices[i]]
            points[i] = p

    logger.debug(f"Interpolated chaos game: {iterations} points, {len(targets)} targets, "
                 f"lam={lam}, constraints={constraints}")
    return (points, indices) if return_indices else points


def chaos_game(targets_or_maps: Sequence, iterations: int, lam: float = 0.5,
               constraints: Optional[ChaosConstraints] = None,
               start: Optional[Sequence[float]] = None,
               rng: Optional[np.random.Generator] = None,
               seed: Optional[int] = None,
               return_indices: bool = False) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
    """
    Run a chaos game over either affine maps or target points.

    A sequence of ``AffineMap`` selects the weighted affine policy (``lam``
    and ``constraints`` are ignored); anything else is treated as target
    points for the interpolated policy.
    """
    items = list(targets_or_maps)
    if items and all(isinstance(item, AffineMap) for item in items):
        return affine_chaos_game(items, iterations,
                                 start=(0.0, 0.0) if start is None else start,
                                 rng=rng, seed=seed, return_indices=return_indices)

    if not items:
        points, indices = np.empty((0, 2)), np.empty(0, dtype=np.int64)
        return (points, indices) if return_indices else points

    return interpolated_chaos_game(items, lam, iterations, constraints, start,
                                   rng=rng, seed=seed, return_indices=return_indices)


def sierpinski_tetrahedron(iterations: int = 50000,
                           rng: Optional[np.random.Generator] = None,
                           seed: Optional[int] = None) -> np.ndarray:
    """Sierpinski tetrahedron by the midpoint chaos game on a regular tetrahedron."""
    return interpolated_chaos_game(SIERPINSKI_TETRAHEDRON_VERTICES, 0.5, iterations,
                                   rng=rng, seed=seed)


def _pentagon_star() -> List[AffineMap]:
    maps = []
    for i in range(5):
        angle = i * 2 * math.pi / 5 - math.pi / 2
        maps.append(AffineMap(0.382, 0.0, 0.0, 0.382,
                              math.cos(angle), math.sin(angle), 1 / 5))
    return maps


AFFINE_PRESETS: Dict[str, List[AffineMap]] = {
    'barnsley_fern': [
        AffineMap(0.0, 0.0, 0.0, 0.16, 0.0, 0.0, 0.01),
        AffineMap(0.85, 0.04, -0.04, 0.85, 0.0, 1.6, 0.85),
        AffineMap(0.2, -0.26, 0.23, 0.22, 0.0, 1.6, 0.07),
        AffineMap(-0.15, 0.28, 0.26, 0.24, 0.0, 0.44, 0.07),
    ],
    'sierpinski_triangle': [
        AffineMap(0.5, 0.0, 0.0, 0.5, 0.0, 0.0, 1 / 3),
        AffineMap(0.5, 0.0, 0.0, 0.5, 1.0, 0.0, 1 / 3),
        AffineMap(0.5, 0.0, 0.0, 0.5, 0.5, math.sqrt(3) / 2, 1 / 3),
    ],
    'sierpinski_square': [
        AffineMap(0.5, 0.0, 0.0, 0.5, 0.0, 0.0, 0.25),
        AffineMap(0.5, 0.0, 0.0, 0.5, 0.5, 0.0, 0.25),
        AffineMap(0.5, 0.0, 0.0, 0.5, 0.0, 0.5, 0.25),
        AffineMap(0.5, 0.0, 0.0, 0.5, 0.5, 0.5, 0.25),
    ],
    'shrinking_square': [
        AffineMap(0.5, 0.0, 0.0, 0.5, 0.0, 0.0, 1.0),
    ],
    'spiral': [
        AffineMap(0.6, -0.8, 0.8, 0.6, 0.0, 0.0, 1.0),
    ],
    'pentagon_star': _pentagon_star(),
}

"""
Platonic solids as chaos-game targets and symmetry-orbit axes.
"""

import math
import numpy as np
from typing import Dict, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging

from ..core.vectors import ensure_rng, normalise, normalise_rows, rotate_axis_angle
from .chaos_game import ChaosConstraints, interpolated_chaos_game

logger = logging.getLogger(__name__)

ORBIT_SEED = (0.17, 0.11, 0.09)
CONTINUOUS_ANGLE_RANGE = (0.05, 0.25)
TARGET_KINDS = ('vertices', 'faces', 'edges')


@dataclass(frozen=True, eq=False)
class Polyhedron:
    """Vertex positions and faces (as vertex-index tuples) of a solid."""

    name: str
    vertices: np.ndarray
    faces: Tuple[Tuple[int, ...], ...]

    def __post_init__(self):
        vertices = np.asarray(self.vertices, dtype=np.float64)
        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise ValueError(f"{self.name}: vertices must have shape (n, 3)")
        for face in self.faces:
            for index in face:
                if not 0 <= index < len(vertices):
                    raise ValueError(f"{self.name}: face index {index} out of range")
        vertices.setflags(write=False)
        object.__setattr__(self, 'vertices', vertices)

    def targets(self, kind: str) -> np.ndarray:
        """Chaos-game targets of the given kind: 'vertices', 'faces' or 'edges'."""
        if kind == 'vertices':
            return self.vertices
        if kind == 'faces':
            return face_centers(self)
        if kind == 'edges':
            return edge_midpoints(self)
        raise ValueError(f"Unknown target kind '{kind}'. Available: {', '.join(TARGET_KINDS)}")


def face_centers(solid: Polyhedron) -> np.ndarray:
    """Normalised centroids of each face, in face order."""
    if not solid.faces:
        return np.empty((0, 3))
    centroids = np.array([solid.vertices[list(face)].mean(axis=0) for face in solid.faces])
    return normalise_rows(centroids)


def edge_midpoints(solid: Polyhedron) -> np.ndarray:
    """Normalised midpoints of each unique edge, in face-traversal order."""
    seen = set()
    mids = []
    for face in solid.faces:
        for i, a in enumerate(face):
            b = face[(i + 1) % len(face)]
            key = (min(a, b), max(a, b))
            if key in seen:
                continue
            seen.add(key)
            mids.append(normalise((solid.vertices[a] + solid.vertices[b]) / 2))
    return np.array(mids).reshape(-1, 3)


def symmetry_axes(solid: Polyhedron) -> np.ndarray:
    """Candidate rotation axes: vertex, face-centre and edge-midpoint directions."""
    return np.vstack([
        normalise_rows(solid.vertices),
        face_centers(solid),
        edge_midpoints(solid),
    ])


def _icosahedron_vertices() -> np.ndarray:
    phi = (1 + math.sqrt(5)) / 2
    vertices = np.array([
        [-1, phi, 0], [1, phi, 0], [-1, -phi, 0], [1, -phi, 0],
        [0, -1, phi], [0, 1, phi], [0, -1, -phi], [0, 1, -phi],
        [phi, 0, -1], [phi, 0, 1], [-phi, 0, -1], [-phi, 0, 1],
    ])
    return normalise_rows(vertices) * 1.1


SOLIDS: Dict[str, Polyhedron] = {
    'tetra': Polyhedron(
        'tetra',
        normalise_rows([[1, 1, 1], [1, -1, -1], [-1, 1, -1], [-1, -1, 1]]),
        ((0, 1, 2), (0, 3, 1), (0, 2, 3), (1, 3, 2)),
    ),
    'cube': Polyhedron(
        'cube',
        normalise_rows([
            [-1, -1, -1], [1, -1, -1], [1, 1, -1], [-1, 1, -1],
            [-1, -1, 1], [1, -1, 1], [1, 1, 1], [-1, 1, 1],
        ]) * math.sqrt(3),
        ((0, 1, 2, 3), (4, 5, 6, 7), (0, 1, 5, 4),
         (2, 3, 7, 6), (1, 2, 6, 5), (0, 3, 7, 4)),
    ),
    'octa': Polyhedron(
        'octa',
        np.array([[1, 0, 0], [-1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1], [0, 0, -1]],
                 dtype=np.float64),
        ((0, 2, 4), (2, 1, 4), (1, 3, 4), (3, 0, 4),
         (2, 0, 5), (1, 2, 5), (3, 1, 5), (0, 3, 5)),
    ),
    'icosa': Polyhedron(
        'icosa',
        _icosahedron_vertices(),
        ((0, 11, 5), (0, 5, 1), (0, 1, 7), (0, 7, 10), (0, 10, 11),
         (1, 5, 9), (5, 11, 4), (11, 10, 2), (10, 7, 6), (7, 1, 8),
         (3, 9, 4), (3, 4, 2), (3, 2, 6), (3, 6, 8), (3, 8, 9),
         (4, 9, 5), (2, 4, 11), (6, 2, 10), (8, 6, 7), (9, 8, 1)),
    ),
}

# Rotation angles of each solid's symmetry group used by discrete orbits
SYMMETRY_ANGLES: Dict[str, Tuple[float, ...]] = {
    'tetra': (math.pi, 2 * math.pi / 3),
    'cube': (math.pi, math.pi / 2, 2 * math.pi / 3),
    'octa': (math.pi, math.pi / 2, 2 * math.pi / 3),
    'icosa': (math.pi, 2 * math.pi / 3, 2 * math.pi / 5),
}


def get_solid(name: str) -> Polyhedron:
    solid = SOLIDS.get(name.lower())
    if solid is None:
        raise ValueError(f"Unknown solid '{name}'. Available: {', '.join(SOLIDS)}")
    return solid


def symmetry_orbit(axes: Sequence[Sequence[float]], angles: Optional[Sequence[float]] = None,
                   steps: int = 30000, start: Sequence[float] = ORBIT_SEED,
                   continuous_range: Tuple[float, float] = CONTINUOUS_ANGLE_RANGE,
                   rng: Optional[np.random.Generator] = None,
                   seed: Optional[int] = None) -> np.ndarray:
    """
    Random walk on the sphere by repeated rotations about symmetry axes.

    Each step picks an axis uniformly, then either an angle from ``angles``
    or, when ``angles`` is None, a continuous angle drawn uniformly from
    ``continuous_range``. The point is rotated (Rodrigues) and re-normalised.
    A zero-length axis leaves the point unchanged for that step.

    Returns:
        (steps, 3) array of visited points
    """
    if angles is not None and len(angles) == 0:
        raise ValueError("angles must be None or a non-empty sequence of rotation angles")

    axes = np.asarray(axes, dtype=np.float64).reshape(-1, 3)
    if len(axes) == 0 or steps <= 0:
        return np.empty((0, 3))

    rng = ensure_rng(rng, seed)
    lengths = np.linalg.norm(axes, axis=1)
    low, high = continuous_range

    p = np.asarray(start, dtype=np.float64)
    points = np.empty((steps, 3), dtype=np.float64)

    for i in range(steps):
        axis_index = int(rng.integers(len(axes)))
        if angles is not None:
            theta = angles[int(rng.integers(len(angles)))]
        else:
            theta = rng.random() * (high - low) + low

        if lengths[axis_index] > 0:
            p = normalise(rotate_axis_angle(p, axes[axis_index] / lengths[axis_index], theta))
        points[i] = p

    return points


def poly_ifs(solid: str = 'tetra', target: str = 'vertices', lam: float = 0.5,
             iterations: int = 50000, constraints: Optional[ChaosConstraints] = None,
             rng: Optional[np.random.Generator] = None,
             seed: Optional[int] = None) -> np.ndarray:
    """
    Interpolated chaos game on the vertices, face centres or edge midpoints of a solid.
    """
    polyhedron = get_solid(solid)
    targets = polyhedron.targets(target)
    logger.info(f"Polyhedral IFS: {solid}/{target}, {len(targets)} targets, {iterations} points")
    return interpolated_chaos_game(targets, lam, iterations, constraints, rng=rng, seed=seed)


def polyhedron_orbit(solid: str = 'tetra', steps: int = 30000, mode: str = 'discrete',
                     rng: Optional[np.random.Generator] = None,
                     seed: Optional[int] = None) -> np.ndarray:
    """
    Symmetry orbit of a solid.

    Args:
        solid: Solid name from ``SOLIDS``
        steps: Number of points to emit
        mode: 'discrete' uses the solid's symmetry angles, 'continuous'
            small random angles
    """
    if mode not in ('discrete', 'continuous'):
        raise ValueError(f"Unknown orbit mode '{mode}'. Available: discrete, continuous")

    polyhedron = get_solid(solid)
    angles = SYMMETRY_ANGLES[polyhedron.name] if mode == 'discrete' else None
    return symmetry_orbit(symmetry_axes(polyhedron), angles, steps, rng=rng, seed=seed)


# Named polyhedral chaos-game setups: (solid, target, constraints)
POLY_IFS_PRESETS: Dict[str, Tuple[str, str, ChaosConstraints]] = {
    'tetra_vertices': ('tetra', 'vertices', ChaosConstraints()),
    'octa_faces': ('octa', 'faces', ChaosConstraints(no_repeat=True)),
    'cube_edges': ('cube', 'edges', ChaosConstraints(no_repeat=True, no_opp_face=True)),
    'icosa_vertices': ('icosa', 'vertices', ChaosConstraints(no_repeat=True)),
}

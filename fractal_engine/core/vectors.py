"""
Vector helpers shared by the 3D and chaos-game generators.

Includes normalisation, axis-angle rotation, random source handling and the
bounds / fit-to-canvas computations used to frame generated point clouds.
"""

import numpy as np
from typing import NamedTuple, Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)


def ensure_rng(rng: Optional[np.random.Generator] = None,
               seed: Optional[int] = None) -> np.random.Generator:
    """
    Resolve the random source for a stochastic generator.

    An explicit generator wins; otherwise a new one is seeded from ``seed``
    (or from OS entropy when both are None).
    """
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def normalise(v: Sequence[float]) -> np.ndarray:
    """Return ``v`` scaled to unit length; the zero vector is returned unchanged."""
    v = np.asarray(v, dtype=np.float64)
    length = np.sqrt(np.dot(v, v))
    return v / (length or 1.0)


def normalise_rows(vectors: np.ndarray) -> np.ndarray:
    """Normalise each row of an (n, d) array; zero rows are left as zero."""
    vectors = np.asarray(vectors, dtype=np.float64)
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    return vectors / np.where(lengths == 0, 1.0, lengths)


def rotate_axis_angle(v: np.ndarray, axis: np.ndarray, theta: float) -> np.ndarray:
    """
    Rotate ``v`` about the unit vector ``axis`` by ``theta`` radians.

    Uses the Rodrigues rotation matrix. ``axis`` is assumed normalised.
    """
    ax, ay, az = axis
    c, s = np.cos(theta), np.sin(theta)
    t = 1.0 - c
    matrix = np.array([
        [t * ax * ax + c,      t * ax * ay - s * az,  t * ax * az + s * ay],
        [t * ax * ay + s * az, t * ay * ay + c,       t * ay * az - s * ax],
        [t * ax * az - s * ay, t * ay * az + s * ax,  t * az * az + c],
    ])
    return matrix @ np.asarray(v, dtype=np.float64)


class Bounds(NamedTuple):
    """Axis-aligned bounding box of a point set (z ignored for 2D input)."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float = 0.0
    max_z: float = 0.0


class CanvasFit(NamedTuple):
    """Uniform scale and offset mapping domain points onto a canvas."""
    scale: float
    offset_x: float
    offset_y: float


def compute_bounds(points: np.ndarray) -> Bounds:
    """Compute the bounding box of an (n, 2) or (n, 3) point array."""
    points = np.asarray(points, dtype=np.float64)
    if points.size == 0:
        raise ValueError("Cannot compute bounds of an empty point set")

    mins = points.min(axis=0)
    maxs = points.max(axis=0)
    if points.shape[1] >= 3:
        return Bounds(mins[0], maxs[0], mins[1], maxs[1], mins[2], maxs[2])
    return Bounds(mins[0], maxs[0], mins[1], maxs[1])


def fit_points(points: np.ndarray, width: float, height: float,
               margin_fraction: float = 0.08) -> Optional[CanvasFit]:
    """
    Fit the x/y extent of a point cloud into a canvas, keeping aspect ratio.

    Args:
        points: (n, 2) or (n, 3) array
        width, height: Canvas size in pixels
        margin_fraction: Margin left on each side, as a fraction of the canvas

    Returns:
        CanvasFit such that ``x * scale + offset_x`` lands on the canvas, or
        None for an empty point set
    """
    if len(points) == 0:
        return None

    bounds = compute_bounds(points)
    range_x = max(1e-6, bounds.max_x - bounds.min_x)
    range_y = max(1e-6, bounds.max_y - bounds.min_y)
    extent = max(range_x, range_y)

    usable_w = width * (1 - 2 * margin_fraction)
    usable_h = height * (1 - 2 * margin_fraction)
    scale = min(usable_w / extent, usable_h / extent)

    cx = (bounds.min_x + bounds.max_x) / 2
    cy = (bounds.min_y + bounds.max_y) / 2
    return CanvasFit(scale, -cx * scale + width / 2, -cy * scale + height / 2)


def as_point_array(points: Sequence[Sequence[float]], dims: Tuple[int, ...] = (2, 3)) -> np.ndarray:
    """Convert a sequence of points to a float array, validating its dimension."""
    array = np.asarray(points, dtype=np.float64)
    if array.size == 0:
        return array.reshape(0, dims[0])
    if array.ndim != 2 or array.shape[1] not in dims:
        raise ValueError(f"Expected points of dimension {dims}, got shape {array.shape}")
    return array

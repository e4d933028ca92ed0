"""
Orbits of user-supplied plane maps ``(x, y) -> (f(x, y), g(x, y))``.
"""

import math
import numpy as np
from typing import Callable, Tuple
import logging

logger = logging.getLogger(__name__)

PlaneFunction = Callable[[float, float], float]


def _evaluate(func: PlaneFunction, x: float, y: float) -> float:
    """Evaluate one coordinate map; a failed or non-finite result becomes 0."""
    try:
        value = float(func(x, y))
    except (ArithmeticError, TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def plane_orbit(f: PlaneFunction, g: PlaneFunction, x0: float, y0: float,
                steps: int) -> np.ndarray:
    """
    Iterate a plane map from ``(x0, y0)``.

    Both coordinates are evaluated from the previous point; a non-finite
    result, or a map that raises an arithmetic or domain error, is reset
    to 0.

    Returns:
        (steps + 1, 2) array starting with the initial point
    """
    points = np.empty((max(steps, 0) + 1, 2), dtype=np.float64)
    x, y = float(x0), float(y0)
    points[0] = (x, y)

    for i in range(1, steps + 1):
        next_x = _evaluate(f, x, y)
        next_y = _evaluate(g, x, y)
        x, y = next_x, next_y
        points[i] = (x, y)

    return points


def plane_orbit_grid(f: PlaneFunction, g: PlaneFunction,
                     x_range: Tuple[float, float], y_range: Tuple[float, float],
                     grid_spacing: int, steps: int) -> np.ndarray:
    """
    Orbits from a ``(grid_spacing + 1)`` x ``(grid_spacing + 1)`` grid of start points.

    Start points are ordered with x as the outer loop.

    Returns:
        (n_paths, steps + 1, 2) array
    """
    if grid_spacing < 1:
        raise ValueError("grid_spacing must be at least 1")

    x_min, x_max = x_range
    y_min, y_max = y_range
    x_step = (x_max - x_min) / grid_spacing
    y_step = (y_max - y_min) / grid_spacing

    paths = [plane_orbit(f, g, x_min + i * x_step, y_min + j * y_step, steps)
             for i in range(grid_spacing + 1)
             for j in range(grid_spacing + 1)]
    logger.debug(f"Computed {len(paths)} plane orbits of {steps} steps")
    return np.stack(paths)

"""Koch snowflake by direct segment subdivision."""

import math
import numpy as np
from typing import Sequence


def _subdivide(p1: np.ndarray, p2: np.ndarray):
    one_third = p1 + (p2 - p1) / 3
    two_thirds = p1 + (p2 - p1) * 2 / 3
    dx, dy = two_thirds - one_third
    # Bump: middle third rotated by 60 degrees about its start
    cos_a, sin_a = math.cos(math.pi / 3), math.sin(math.pi / 3)
    peak = one_third + np.array([dx * cos_a - dy * sin_a, dx * sin_a + dy * cos_a])
    return [(p1, one_third), (one_third, peak), (peak, two_thirds), (two_thirds, p2)]


def koch_segments(p1: Sequence[float], p2: Sequence[float], depth: int) -> np.ndarray:
    """
    Koch curve between two points.

    Returns:
        (4**depth, 2, 2) segment array, ordered from ``p1`` to ``p2``
    """
    segments = []
    stack = [(depth, np.asarray(p1, dtype=np.float64), np.asarray(p2, dtype=np.float64))]

    while stack:
        level, a, b = stack.pop()
        if level <= 0:
            segments.append((a, b))
            continue
        for child in reversed(_subdivide(a, b)):
            stack.append((level - 1,) + child)

    return np.array(segments, dtype=np.float64).reshape(-1, 2, 2)


def koch_snowflake(depth: int, size: float = 400.0,
                   center: Sequence[float] = (0.0, 0.0)) -> np.ndarray:
    """
    Koch snowflake on an equilateral triangle of side ``size`` centred at ``center``.

    The triangle is traversed clockwise in a y-up frame (its base lies at
    the larger y, as on a screen), so every bump points outward.

    Returns:
        (3 * 4**depth, 2, 2) segment array
    """
    cx, cy = center
    h = size * math.sqrt(3) / 2
    p1 = (cx - size / 2, cy + h / 3)
    p2 = (cx + size / 2, cy + h / 3)
    p3 = (cx, cy - 2 * h / 3)
    return np.concatenate([
        koch_segments(p1, p2, depth),
        koch_segments(p2, p3, depth),
        koch_segments(p3, p1, depth),
    ])

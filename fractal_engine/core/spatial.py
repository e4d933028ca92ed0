"""
Three-dimensional fractal generators.

Mandelbulb and 3D Julia sets use the spherical-coordinate power map
``z -> z^power + c``; unlike the 2D families a sampled point is *kept* when
it never escapes. The Menger sponge is generated deterministically from
recursive cube subdivision.
"""

import math
import numpy as np
from typing import NamedTuple, Optional, Sequence, Tuple
import logging

from .vectors import ensure_rng

logger = logging.getLogger(__name__)

BULB_FAMILIES = ('mandelbulb', 'julia3d')
DEFAULT_JULIA3D_CONSTANT = (0.355, 0.355, 0.355)
SAMPLE_HALF_WIDTH = 1.5


class Escape3DResult(NamedTuple):
    """Outcome of iterating one 3D sample."""
    retained: bool
    point: Tuple[float, float, float]
    iterations: int


def _bulb_trajectory(start: Tuple[float, float, float], c: Tuple[float, float, float],
                     power: float, bailout: float, max_iter: int) -> Tuple[bool, Tuple[float, float, float], int]:
    zx, zy, zz = start
    cx, cy, cz = c

    for n in range(max_iter):
        r = math.sqrt(zx * zx + zy * zy + zz * zz)
        if not math.isfinite(r) or r > bailout:
            return True, (zx, zy, zz), n

        # At the origin the power term vanishes, whatever the angles
        theta = math.acos(max(-1.0, min(1.0, zz / r))) * power if r > 0 else 0.0
        phi = math.atan2(zy, zx) * power
        rn = r ** power

        zx = rn * math.sin(theta) * math.cos(phi) + cx
        zy = rn * math.sin(theta) * math.sin(phi) + cy
        zz = rn * math.cos(theta) + cz

    return False, (zx, zy, zz), max_iter


def escape_time_3d(seed: Sequence[float], constant: Optional[Sequence[float]] = None,
                   power: float = 8.0, bailout: float = 2.0, max_iter: int = 15,
                   family: str = 'mandelbulb') -> Escape3DResult:
    """
    Iterate a single 3D sample under the spherical power map.

    Args:
        seed: Starting point
        constant: Added constant for 'julia3d' (ignored for 'mandelbulb',
            where the seed itself is added each step)
        power: Exponent of the spherical power map
        bailout: Escape radius
        max_iter: Maximum iterations
        family: 'mandelbulb' or 'julia3d'

    Returns:
        Escape3DResult. ``point`` is the seed for the Mandelbulb and the
        final iterate for 3D Julia sets, matching what each generator emits.
    """
    seed = tuple(float(v) for v in seed)
    family = family.lower()

    if family == 'mandelbulb':
        escaped, _, n = _bulb_trajectory(seed, seed, power, bailout, max_iter)
        return Escape3DResult(not escaped, seed, n)
    if family == 'julia3d':
        c = tuple(float(v) for v in (constant if constant is not None else DEFAULT_JULIA3D_CONSTANT))
        escaped, final, n = _bulb_trajectory(seed, c, power, bailout, max_iter)
        return Escape3DResult(not escaped, final, n)

    raise ValueError(f"Unknown 3D family '{family}'. Available: {', '.join(BULB_FAMILIES)}")


def bulb_iteration(z0: np.ndarray, c: np.ndarray, power: float = 8.0,
                   bailout: float = 2.0, max_iter: int = 15) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vectorised spherical power iteration over many samples.

    Args:
        z0: (n, 3) starting points
        c: (n, 3) or (3,) added constant
        power: Exponent
        bailout: Escape radius
        max_iter: Maximum iterations

    Returns:
        Tuple of (escaped mask, final points)
    """
    z = np.array(z0, dtype=np.float64, copy=True)
    c = np.broadcast_to(np.asarray(c, dtype=np.float64), z.shape)
    escaped = np.zeros(len(z), dtype=bool)

    with np.errstate(all='ignore'):
        for _ in range(max_iter):
            r = np.sqrt(np.einsum('ij,ij->i', z, z))
            escaped |= ~np.isfinite(r) | (r > bailout)
            active = ~escaped
            if not np.any(active):
                break

            za, ra, ca = z[active], r[active], c[active]
            ratio = np.where(ra > 0, za[:, 2] / np.where(ra > 0, ra, 1.0), 1.0)
            theta = np.arccos(np.clip(ratio, -1.0, 1.0)) * power
            phi = np.arctan2(za[:, 1], za[:, 0]) * power
            rn = ra ** power

            z[active] = np.column_stack((
                rn * np.sin(theta) * np.cos(phi),
                rn * np.sin(theta) * np.sin(phi),
                rn * np.cos(theta),
            )) + ca

    return escaped, z


def sample_cube(density: int, rng: np.random.Generator,
                half_width: float = SAMPLE_HALF_WIDTH) -> np.ndarray:
    """Draw ``density`` points uniformly from the cube [-half_width, half_width]^3."""
    return rng.random((density, 3)) * (2 * half_width) - half_width


def generate_mandelbulb(max_iter: int = 15, power: float = 8.0, bailout: float = 2.0,
                        density: int = 20000, rng: Optional[np.random.Generator] = None,
                        seed: Optional[int] = None) -> np.ndarray:
    """
    Sample the Mandelbulb by rejection.

    Each random seed ``c`` is iterated from ``z0 = c``; seeds that never
    escape are returned.

    Returns:
        (m, 3) array of retained seeds, m <= density
    """
    rng = ensure_rng(rng, seed)
    seeds = sample_cube(density, rng)
    escaped, _ = bulb_iteration(seeds, seeds, power, bailout, max_iter)
    retained = seeds[~escaped]
    logger.info(f"Mandelbulb: retained {len(retained)}/{density} samples")
    return retained


def generate_julia3d(max_iter: int = 15, power: float = 8.0, bailout: float = 2.0,
                     density: int = 20000, constant: Sequence[float] = DEFAULT_JULIA3D_CONSTANT,
                     rng: Optional[np.random.Generator] = None,
                     seed: Optional[int] = None) -> np.ndarray:
    """
    Sample a 3D Julia set by rejection.

    Random starting points are iterated with a fixed added constant; the
    final iterates of the points that never escape are returned.

    Returns:
        (m, 3) array of final iterates, m <= density
    """
    rng = ensure_rng(rng, seed)
    starts = sample_cube(density, rng)
    escaped, final = bulb_iteration(starts, np.asarray(constant, dtype=np.float64),
                                    power, bailout, max_iter)
    retained = final[~escaped]
    logger.info(f"Julia3D: retained {len(retained)}/{density} samples")
    return retained


# Sub-cube offsets kept by one Menger subdivision step: all 27 minus the
# 6 face centres and the body centre
_MENGER_OFFSETS = [
    (dx, dy, dz)
    for dx in (-1, 0, 1)
    for dy in (-1, 0, 1)
    for dz in (-1, 0, 1)
    if (dx, dy, dz).count(0) < 2
]


def generate_menger(level: int, center: Sequence[float] = (0.0, 0.0, 0.0),
                    size: float = 1.0) -> np.ndarray:
    """
    Centres of the sub-cubes of a level-``level`` Menger sponge.

    Args:
        level: Subdivision depth (20**level cubes are produced)
        center: Centre of the outer cube
        size: Edge length of the outer cube

    Returns:
        (20**level, 3) array in depth-first subdivision order
    """
    points = []
    stack = [(level, tuple(float(v) for v in center), float(size))]

    while stack:
        depth, (x, y, z), edge = stack.pop()
        if depth <= 0:
            points.append((x, y, z))
            continue

        step = edge / 3
        for dx, dy, dz in reversed(_MENGER_OFFSETS):
            stack.append((depth - 1, (x + dx * step, y + dy * step, z + dz * step), step))

    return np.array(points, dtype=np.float64).reshape(-1, 3)

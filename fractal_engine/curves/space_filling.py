"""
Space-filling curve enumeration.

Grid families (Peano, Hilbert, Z-order, Gray, Moore) enumerate integer cells
of a ``k**n`` x ``k**n`` grid in traversal order; geometric families
(recursive Hilbert, Sierpinski arrowhead, Gosper) produce canvas points
directly. The emission order is the curve.
"""

import math
import numpy as np
from typing import Callable, Dict
import logging

logger = logging.getLogger(__name__)

# 3x3 snake visiting order for Peano subdivision, as (i, j) offsets
PEANO_ORDER = ((0, 0), (0, 1), (0, 2), (1, 2), (1, 1), (1, 0), (2, 0), (2, 1), (2, 2))

GOSPER_TURNS = (0, -1, -1, 0, 1, 1, 0)


def _check_order(order: int) -> None:
    if order < 0:
        raise ValueError(f"order must be non-negative, got {order}")


# === Grid cell enumerators === #

def peano_cells(order: int) -> np.ndarray:
    """
    Cells of the order-``order`` Peano curve on a ``3**order`` grid.

    Each level visits its 3x3 sub-squares in snake order; a sub-curve is
    mirrored in x when its column offset is odd and in y when its row
    offset is odd, so consecutive cells are always edge-adjacent.

    Returns:
        (9**order, 2) int array of (x, y) cells
    """
    _check_order(order)
    cells = []
    stack = [(order, 0, 0, False, False)]

    while stack:
        level, x0, y0, flip_x, flip_y = stack.pop()
        if level == 0:
            cells.append((x0, y0))
            continue

        size = 3 ** (level - 1)
        children = []
        for i, j in PEANO_ORDER:
            ci = 2 - i if flip_x else i
            cj = 2 - j if flip_y else j
            children.append((level - 1, x0 + ci * size, y0 + cj * size,
                             flip_x ^ bool(j % 2), flip_y ^ bool(i % 2)))
        stack.extend(reversed(children))

    return np.array(cells, dtype=np.int64).reshape(-1, 2)


def hilbert_d2xy(order: int, d: int):
    """Decode the Hilbert index ``d`` to its (x, y) cell on a ``2**order`` grid."""
    n = 1 << order
    x = y = 0
    t = d
    s = 1
    while s < n:
        rx = 1 & (t >> 1)
        ry = 1 & (t ^ rx)
        if ry == 0:
            if rx == 1:
                x, y = s - 1 - x, s - 1 - y
            x, y = y, x
        x += s * rx
        y += s * ry
        t >>= 2
        s <<= 1
    return x, y


def hilbert_cells(order: int) -> np.ndarray:
    """
    Cells of the order-``order`` Hilbert curve, decoded from ascending indices.

    Vectorised form of ``hilbert_d2xy`` over all ``4**order`` indices.
    """
    _check_order(order)
    n = 1 << order
    t = np.arange(n * n, dtype=np.int64)
    x = np.zeros_like(t)
    y = np.zeros_like(t)

    s = 1
    while s < n:
        rx = 1 & (t >> 1)
        ry = 1 & (t ^ rx)

        reflect = (ry == 0) & (rx == 1)
        x = np.where(reflect, s - 1 - x, x)
        y = np.where(reflect, s - 1 - y, y)
        swap = ry == 0
        x, y = np.where(swap, y, x), np.where(swap, x, y)

        x += s * rx
        y += s * ry
        t >>= 2
        s <<= 1

    return np.column_stack((x, y))


def _deinterleave(index: np.ndarray, order: int) -> np.ndarray:
    # Odd bits feed x, even bits feed y
    x = np.zeros_like(index)
    y = np.zeros_like(index)
    for bit in range(order):
        x |= ((index >> (2 * bit + 1)) & 1) << bit
        y |= ((index >> (2 * bit)) & 1) << bit
    return np.column_stack((x, y))


def zorder_cells(order: int) -> np.ndarray:
    """
    Z-order (Lebesgue) cells in index order.

    The traversal jumps between quadrants by construction.
    """
    _check_order(order)
    n = 1 << order
    return _deinterleave(np.arange(n * n, dtype=np.int64), order)


def gray_cells(order: int) -> np.ndarray:
    """Z-order decoding applied to the Gray code ``i ^ (i >> 1)`` of each index."""
    _check_order(order)
    n = 1 << order
    i = np.arange(n * n, dtype=np.int64)
    return _deinterleave(i ^ (i >> 1), order)


def moore_cells(order: int) -> np.ndarray:
    """
    Cells of the Moore curve, the closed-loop variant of Hilbert.

    Four order-``order - 1`` Hilbert curves are rotated into the quadrants
    so that the last cell is adjacent to the first. Order 0 is empty.
    """
    _check_order(order)
    if order == 0:
        return np.empty((0, 2), dtype=np.int64)

    s = 1 << (order - 1)
    x, y = hilbert_cells(order - 1).T
    quadrants = [
        (s - 1 - y, x),
        (s - 1 - y, x + s),
        (s + y, 2 * s - 1 - x),
        (s + y, s - 1 - x),
    ]
    return np.concatenate([np.column_stack(q) for q in quadrants])


# === Geometric generators === #

def hilbert_frame_points(order: int, width: float, height: float) -> np.ndarray:
    """
    Hilbert curve by recursive frame subdivision.

    A frame is an origin plus two basis vectors; each level splits it into
    four reflected/rotated sub-frames and leaves emit the frame centre. The
    base frame is chosen so cells are visited in the same order as
    ``hilbert_cells``.

    Returns:
        (4**order, 2) array of cell centres in canvas coordinates
    """
    _check_order(order)
    points = []
    stack = [(order, 0.0, 0.0, 0.0, float(height), float(width), 0.0)]

    while stack:
        level, x0, y0, xi, xj, yi, yj = stack.pop()
        if level <= 0:
            points.append((x0 + (xi + yi) / 2, y0 + (xj + yj) / 2))
            continue

        children = [
            (level - 1, x0, y0, yi / 2, yj / 2, xi / 2, xj / 2),
            (level - 1, x0 + xi / 2, y0 + xj / 2, xi / 2, xj / 2, yi / 2, yj / 2),
            (level - 1, x0 + xi / 2 + yi / 2, y0 + xj / 2 + yj / 2, xi / 2, xj / 2, yi / 2, yj / 2),
            (level - 1, x0 + xi / 2 + yi, y0 + xj / 2 + yj, -yi / 2, -yj / 2, -xi / 2, -xj / 2),
        ]
        stack.extend(reversed(children))

    return np.array(points, dtype=np.float64).reshape(-1, 2)


def sierpinski_arrowhead(order: int, width: float, height: float) -> np.ndarray:
    """
    Sierpinski arrowhead traversal of a ``width`` x ``height`` region.

    Each level recurses into three half-size triangles; the first and last
    flip the orientation flag, and the middle one is offset along x when
    the flag is 0 and along y otherwise.

    Returns:
        (3**order, 2) array of triangle corners
    """
    _check_order(order)
    points = []
    stack = [(order, 0.0, 0.0, float(width), float(height), 0)]

    while stack:
        level, x, y, dx, dy, orient = stack.pop()
        if level == 0:
            points.append((x, y))
            continue

        hx, hy = dx / 2, dy / 2
        middle = (x + hx, y) if orient == 0 else (x, y + hy)
        children = [
            (level - 1, x, y, hx, hy, 1 - orient),
            (level - 1, middle[0], middle[1], hx, hy, orient),
            (level - 1, x + hx, y + hy, hx, hy, 1 - orient),
        ]
        stack.extend(reversed(children))

    return np.array(points, dtype=np.float64).reshape(-1, 2)


def gosper_points(order: int, width: float, height: float) -> np.ndarray:
    """
    Gosper (flowsnake) curve.

    Every level replaces a step by seven sub-steps turned by
    ``GOSPER_TURNS`` x 60 degrees; the heading is cumulative along the
    curve. Leaves emit their start point and advance one step of length
    ``min(width, height) / sqrt(7)**order``.

    Returns:
        (7**order, 2) array starting at ``(width / 4, height / 2)``
    """
    _check_order(order)
    step = min(width, height) / math.sqrt(7) ** order
    turn = math.pi / 3

    points = []
    x, y, heading = width / 4, height / 2, 0.0
    stack = [(order, 0)]

    while stack:
        level, rotation = stack.pop()
        heading += rotation * turn
        if level == 0:
            points.append((x, y))
            x += step * math.cos(heading)
            y += step * math.sin(heading)
        else:
            stack.extend((level - 1, r) for r in reversed(GOSPER_TURNS))

    return np.array(points, dtype=np.float64).reshape(-1, 2)


# === Dispatch === #

def cells_to_canvas(cells: np.ndarray, grid_size: int, width: float, height: float) -> np.ndarray:
    """Map integer cells to canvas points ``(x / (N - 1)) * width`` (0 for a 1x1 grid)."""
    cells = np.asarray(cells, dtype=np.float64).reshape(-1, 2)
    if grid_size <= 1:
        return np.zeros_like(cells)
    return cells / (grid_size - 1) * np.array([width, height], dtype=np.float64)


def _grid_family(enumerate_cells: Callable[[int], np.ndarray], base: int):
    def generate(order: int, width: float, height: float) -> np.ndarray:
        return cells_to_canvas(enumerate_cells(order), base ** order, width, height)
    generate.__doc__ = enumerate_cells.__doc__
    return generate


CURVE_FAMILIES: Dict[str, Callable[[int, float, float], np.ndarray]] = {
    'peano': _grid_family(peano_cells, 3),
    'hilbert': _grid_family(hilbert_cells, 2),
    'hilbert_recursive': hilbert_frame_points,
    'zorder': _grid_family(zorder_cells, 2),
    'lebesgue': _grid_family(zorder_cells, 2),
    'gray': _grid_family(gray_cells, 2),
    'moore': _grid_family(moore_cells, 2),
    'sierpinski': sierpinski_arrowhead,
    'gosper': gosper_points,
}


def space_filling_curve(family: str, order: int, width: float = 1.0,
                        height: float = 1.0) -> np.ndarray:
    """
    Ordered canvas points of a space-filling curve.

    Args:
        family: Key of ``CURVE_FAMILIES``
        order: Recursion depth
        width, height: Canvas size the points are scaled to

    Returns:
        (n, 2) float array in traversal order
    """
    generator = CURVE_FAMILIES.get(family.lower())
    if generator is None:
        raise ValueError(f"Unknown curve family '{family}'. Available: {', '.join(CURVE_FAMILIES)}")

    points = generator(order, width, height)
    logger.debug(f"Curve '{family}' order {order}: {len(points)} points")
    return points

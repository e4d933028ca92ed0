"""
Turtle interpretation of L-system strings.

Both the drawing pass and the bounds pre-pass go through the same walk so
the bounds are exact for the segments that are drawn.
"""

import math
import numpy as np
from typing import Iterator, List, NamedTuple, Optional, Tuple
import logging

from ..core.vectors import Bounds, CanvasFit

logger = logging.getLogger(__name__)


class TurtlePose(NamedTuple):
    """Turtle position and heading (degrees)."""
    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0


def _walk(symbols: str, angle: float, step: float, start: TurtlePose,
          move_symbols: str) -> Iterator[Tuple[float, float, float, float]]:
    x, y = float(start.x), float(start.y)
    heading = math.radians(start.heading)
    turn = math.radians(angle)
    stack: List[Tuple[float, float, float]] = []

    for position, symbol in enumerate(symbols):
        if symbol in move_symbols:
            nx = x + math.cos(heading) * step
            ny = y + math.sin(heading) * step
            yield x, y, nx, ny
            x, y = nx, ny
        elif symbol == '+':
            heading += turn
        elif symbol == '-':
            heading -= turn
        elif symbol == '[':
            stack.append((x, y, heading))
        elif symbol == ']':
            if not stack:
                raise ValueError(f"Unbalanced ']' at position {position}")
            x, y, heading = stack.pop()


def _as_pose(start: Optional[Tuple[float, float, float]]) -> TurtlePose:
    if start is None:
        return TurtlePose()
    return TurtlePose(*start)


def interpret_turtle(symbols: str, angle: float, step: float,
                     start: Optional[Tuple[float, float, float]] = None,
                     move_symbols: str = 'FG') -> np.ndarray:
    """
    Walk ``symbols`` with a turtle and collect the drawn segments.

    Args:
        symbols: Instruction string
        angle: Turn angle in degrees for '+' (counter-clockwise in a y-up
            frame) and '-'
        step: Distance advanced per move symbol
        start: Start pose ``(x, y, heading_degrees)``
        move_symbols: Symbols that advance and draw

    Returns:
        (n, 2, 2) array of segments ``[[x1, y1], [x2, y2]]`` in drawing order

    Raises:
        ValueError: if a ']' has no matching '['
    """
    segments = list(_walk(symbols, angle, step, _as_pose(start), move_symbols))
    return np.array(segments, dtype=np.float64).reshape(-1, 2, 2)


def turtle_bounds(symbols: str, angle: float, step: float,
                  start: Optional[Tuple[float, float, float]] = None,
                  move_symbols: str = 'FG') -> Bounds:
    """
    Bounding box of everything ``interpret_turtle`` would draw.

    The box always includes the start position, so an instruction string
    with no moves yields a degenerate box at the start.
    """
    pose = _as_pose(start)
    min_x = max_x = float(pose.x)
    min_y = max_y = float(pose.y)

    for _, _, x, y in _walk(symbols, angle, step, pose, move_symbols):
        min_x, max_x = min(min_x, x), max(max_x, x)
        min_y, max_y = min(min_y, y), max(max_y, y)

    return Bounds(min_x, max_x, min_y, max_y)


def fit_to_viewport(bounds: Bounds, width: float, height: float,
                    margin: float = 0.9) -> CanvasFit:
    """
    Scale and offset placing ``bounds`` centred in a ``width`` x ``height`` viewport.

    ``margin`` is the fraction of the viewport the drawing may occupy. A
    degenerate extent is treated as one unit wide.
    """
    dx = (bounds.max_x - bounds.min_x) or 1.0
    dy = (bounds.max_y - bounds.min_y) or 1.0
    scale = min(width / dx, height / dy) * margin
    offset_x = (width - (bounds.min_x + bounds.max_x) * scale) / 2
    offset_y = (height - (bounds.min_y + bounds.max_y) * scale) / 2
    return CanvasFit(scale, offset_x, offset_y)


def segments_to_polylines(segments: np.ndarray, tolerance: float = 1e-9) -> List[np.ndarray]:
    """
    Join consecutive segments into polylines.

    A new polyline starts whenever a segment does not begin where the
    previous one ended, as happens after a ']' restores an earlier pose.
    """
    polylines: List[np.ndarray] = []
    current: List[np.ndarray] = []

    for start, end in np.asarray(segments, dtype=np.float64).reshape(-1, 2, 2):
        if current and np.max(np.abs(current[-1] - start)) > tolerance:
            polylines.append(np.array(current))
            current = []
        if not current:
            current.append(start)
        current.append(end)

    if current:
        polylines.append(np.array(current))
    return polylines

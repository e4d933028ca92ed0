"""
Random branching dendrites.

A branch grows from a start point along a heading; each surviving branch
spawns ``branch_factor`` children with perturbed headings and decayed
lengths until the depth runs out, the length drops below one unit,
or the branch randomly sticks.
"""

import math
import numpy as np
from typing import Dict, Optional
from dataclasses import dataclass
import logging

from ..core.vectors import ensure_rng

logger = logging.getLogger(__name__)

DENDRITE_LAYOUTS = ('center', 'square_edges', 'bottom')


@dataclass
class DendriteParameters:
    """Growth parameters for a dendrite."""

    branch_factor: int = 2
    angle_spread: float = math.pi / 4
    length_decay: float = 0.7
    jitter: float = 0.1
    stick_probability: float = 0.1

    def validate(self) -> None:
        if self.branch_factor < 0:
            raise ValueError("branch_factor must be non-negative")
        if not 0 <= self.stick_probability <= 1:
            raise ValueError("stick_probability must lie in [0, 1]")
        if self.length_decay <= 0:
            raise ValueError("length_decay must be positive")


def generate_dendrite(x: float, y: float, angle: float, length: float, depth: int,
                      parameters: Optional[DendriteParameters] = None,
                      rng: Optional[np.random.Generator] = None,
                      seed: Optional[int] = None) -> np.ndarray:
    """
    Grow a single dendrite.

    Args:
        x, y: Root position
        angle: Initial heading in radians
        length: Initial branch length
        depth: Maximum branching depth
        parameters: Growth parameters
        rng: Random source
        seed: Seed for a fresh random source

    Returns:
        (n, 2, 2) segment array in depth-first growth order
    """
    parameters = parameters or DendriteParameters()
    parameters.validate()
    rng = ensure_rng(rng, seed)

    segments = []
    stack = [(x, y, angle, length, depth)]

    while stack:
        x, y, angle, length, depth = stack.pop()
        if depth <= 0 or length < 1 or rng.random() < parameters.stick_probability:
            continue

        x2 = x + math.cos(angle) * length
        y2 = y + math.sin(angle) * length
        segments.append(((x, y), (x2, y2)))

        children = []
        for _ in range(parameters.branch_factor):
            offset = ((rng.random() - 0.5) * parameters.angle_spread
                      + parameters.jitter * (rng.random() - 0.5))
            new_length = length * (parameters.length_decay + (rng.random() - 0.5) * 0.1)
            children.append((x2, y2, angle + offset, new_length, depth - 1))
        stack.extend(reversed(children))

    return np.array(segments, dtype=np.float64).reshape(-1, 2, 2)


def dendrite_forest(layout: str = 'center', width: float = 800, height: float = 600,
                    depth: int = 6, parameters: Optional[DendriteParameters] = None,
                    rng: Optional[np.random.Generator] = None,
                    seed: Optional[int] = None) -> np.ndarray:
    """
    Grow dendrites from a standard set of roots on a ``width`` x ``height`` canvas.

    Layouts:
        center: one dendrite growing upward from the canvas centre
        square_edges: six pairs growing inward from the sides of a centred square
        bottom: ten dendrites growing upward from the bottom edge
    """
    rng = ensure_rng(rng, seed)
    roots = []

    if layout == 'center':
        roots.append((width / 2, height / 2, -math.pi / 2, min(width, height) / 5))
    elif layout == 'square_edges':
        size = min(width, height) * 0.6
        margin_x = (width - size) / 2
        margin_y = (height - size) / 2
        for i in range(6):
            y = margin_y + (i / 5) * size
            roots.append((margin_x, y, 0.0, size / 5))
            roots.append((margin_x + size, y, math.pi, size / 5))
    elif layout == 'bottom':
        count = 10
        spacing = width / (count + 1)
        for i in range(1, count + 1):
            roots.append((i * spacing, height, -math.pi / 2, height / 5))
    else:
        raise ValueError(f"Unknown dendrite layout '{layout}'. Available: {', '.join(DENDRITE_LAYOUTS)}")

    parts = [generate_dendrite(x, y, angle, length, depth, parameters, rng=rng)
             for x, y, angle, length in roots]
    segments = np.concatenate(parts) if parts else np.empty((0, 2, 2))
    logger.info(f"Dendrite '{layout}': {len(segments)} segments from {len(roots)} roots")
    return segments


def dendrite_layouts() -> Dict[str, str]:
    return {
        'center': "Single dendrite from the canvas centre",
        'square_edges': "Inward-growing dendrites along the sides of a square",
        'bottom': "Row of dendrites growing up from the bottom edge",
    }

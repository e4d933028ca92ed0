"""Space-filling curve enumerators."""

from .space_filling import (
    CURVE_FAMILIES, gosper_points, gray_cells, hilbert_cells, hilbert_d2xy, hilbert_frame_points,
    moore_cells, peano_cells, sierpinski_arrowhead, space_filling_curve, zorder_cells,
)

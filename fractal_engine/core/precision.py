"""
Numeric precision selection for grid computations.

Escape-time grids can be computed in single or double precision; this module
maps precision names onto numpy dtypes and recommends a level for a given
zoom depth.
"""

import numpy as np
from typing import Union
import logging

logger = logging.getLogger(__name__)

PRECISION_LEVELS = ('single', 'double')


class PrecisionConfig:
    """Configuration for precision levels used by the grid iterators."""

    def __init__(self, precision: str = 'double'):
        """
        Initialize precision configuration.

        Args:
            precision: Either 'single' or 'double'
        """
        self.precision = precision
        self._setup_precision()

    def _setup_precision(self):
        """Setup dtypes based on configuration."""
        if self.precision == 'single':
            self.dtype = np.complex64
            self.real_dtype = np.float32
            self.decimal_places = 7
        elif self.precision == 'double':
            self.dtype = np.complex128
            self.real_dtype = np.float64
            self.decimal_places = 15
        else:
            raise ValueError(f"Unknown precision type: {self.precision}. "
                             f"Available: {', '.join(PRECISION_LEVELS)}")

    def format_number(self, value: Union[float, complex]) -> str:
        """Format a number according to the precision configuration."""
        precision = min(8, self.decimal_places)
        if isinstance(value, complex):
            return f"{value.real:.{precision}g} + {value.imag:.{precision}g}i"
        return f"{value:.{precision}g}"


def detect_precision_need(zoom_level: float) -> str:
    """
    Recommend a precision level for a zoom level.

    Args:
        zoom_level: Current zoom level (higher = more zoomed in)

    Returns:
        'single' or 'double'
    """
    digits_needed = max(0.0, np.log10(max(zoom_level, 1e-300)) + 2)

    if digits_needed <= 6:
        return 'single'
    if digits_needed > 14:
        logger.warning(f"Zoom level {zoom_level:g} exceeds double precision; "
                       "expect pixelation")
    return 'double'

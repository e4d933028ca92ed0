"""
Core mathematical functions for escape-time fractal iteration.

This module provides the fundamental iteration algorithms for the 2D complex
families (Mandelbrot, Julia and Newton), both as scalar per-point functions
and as vectorised grid iterators with identical semantics.
"""

import math
import numpy as np
from typing import List, NamedTuple, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

ESCAPE_FAMILIES = ('mandelbrot', 'julia', 'newton')
DEFAULT_TOLERANCE = 1e-6


class ComplexPlane:
    """Represents a complex plane region with coordinate mapping utilities."""

    def __init__(self, xmin: float, xmax: float, ymin: float, ymax: float,
                 width: int, height: int):
        """
        Initialize complex plane bounds and resolution.

        Args:
            xmin, xmax: Real axis bounds
            ymin, ymax: Imaginary axis bounds
            width, height: Grid resolution in pixels
        """
        if xmin >= xmax or ymin >= ymax:
            raise ValueError("Invalid bounds: min values must be less than max values")
        if width <= 0 or height <= 0:
            raise ValueError("Width and height must be positive")

        self.xmin = xmin
        self.xmax = xmax
        self.ymin = ymin
        self.ymax = ymax
        self.width = width
        self.height = height

        # Size of one pixel in domain units
        self.x_scale = (xmax - xmin) / width
        self.y_scale = (ymax - ymin) / height

        # Sub-planes keep the parent's origin and pixel offsets so their
        # coordinates are computed exactly as in the full plane
        self.origin = (xmin, ymin)
        self.row_offset = 0
        self.col_offset = 0

    def create_coordinate_arrays(self, dtype: np.dtype = np.complex128) -> Tuple[np.ndarray, np.ndarray]:
        """
        Create coordinate arrays for the complex plane.

        Pixel (px, py) maps to its corner ``xmin + px * x_scale``, so the
        right and top bounds are exclusive.

        Args:
            dtype: Complex data type of the eventual array

        Returns:
            Tuple of (real_coords, imag_coords) arrays of shape (height, width)
        """
        real_dtype = np.dtype(dtype).type(0).real.dtype
        origin_x, origin_y = self.origin
        cols = np.arange(self.col_offset, self.col_offset + self.width, dtype=np.float64)
        rows = np.arange(self.row_offset, self.row_offset + self.height, dtype=np.float64)
        x = (origin_x + cols * self.x_scale).astype(real_dtype)
        y = (origin_y + rows * self.y_scale).astype(real_dtype)
        return np.meshgrid(x, y)

    def create_complex_array(self, dtype: np.dtype = np.complex128) -> np.ndarray:
        """Create a 2D array of complex coordinates for the entire plane."""
        x, y = self.create_coordinate_arrays(dtype)
        return (x + 1j * y).astype(dtype)

    def pixel_to_complex(self, px: float, py: float) -> complex:
        """Convert pixel coordinates to complex number."""
        origin_x, origin_y = self.origin
        real = origin_x + (self.col_offset + px) * self.x_scale
        imag = origin_y + (self.row_offset + py) * self.y_scale
        return complex(real, imag)

    def complex_to_pixel(self, c: complex) -> Tuple[int, int]:
        """Convert complex number to pixel coordinates."""
        px = int((c.real - self.xmin) / self.x_scale)
        py = int((c.imag - self.ymin) / self.y_scale)
        return px, py

    def region(self, x_start: int, x_end: int, y_start: int, y_end: int) -> 'ComplexPlane':
        """
        Get the sub-plane covering columns [x_start, x_end) and rows [y_start, y_end).

        Pixel coordinates inside the region map to exactly the same domain
        points as in the full plane.
        """
        if not 0 <= x_start < x_end <= self.width:
            raise ValueError(f"Invalid column range [{x_start}, {x_end}) for width {self.width}")
        if not 0 <= y_start < y_end <= self.height:
            raise ValueError(f"Invalid row range [{y_start}, {y_end}) for height {self.height}")

        sub = ComplexPlane(self.xmin + x_start * self.x_scale, self.xmin + x_end * self.x_scale,
                           self.ymin + y_start * self.y_scale, self.ymin + y_end * self.y_scale,
                           x_end - x_start, y_end - y_start)
        sub.x_scale = self.x_scale
        sub.y_scale = self.y_scale
        sub.origin = self.origin
        sub.col_offset = self.col_offset + x_start
        sub.row_offset = self.row_offset + y_start
        return sub

    def rows(self, start: int, stop: int) -> 'ComplexPlane':
        """Get the sub-plane covering rows [start, stop), used for chunked passes."""
        return self.region(0, self.width, start, stop)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.xmin, self.xmax, self.ymin, self.ymax)


class EscapeResult(NamedTuple):
    """Result of iterating a single point."""
    iterations: int
    root_index: Optional[int] = None


class RootRegistry:
    """
    Append-only registry of roots discovered during a Newton pass.

    Classification is a linear scan against previously seen roots, so the
    index a root receives depends on the order in which points are
    classified. Grid passes always classify in row-major order.
    """

    def __init__(self, tolerance: float = DEFAULT_TOLERANCE):
        self.tolerance = tolerance
        self.roots: List[complex] = []

    def classify(self, z: complex) -> int:
        """Return the index of the root matching ``z``, registering it if new."""
        for index, root in enumerate(self.roots):
            if abs(z - root) < self.tolerance:
                return index
        self.roots.append(complex(z))
        logger.debug(f"Registered Newton root #{len(self.roots) - 1}: {z}")
        return len(self.roots) - 1

    def classify_grid(self, final_values: np.ndarray, converged: np.ndarray) -> np.ndarray:
        """
        Classify the converged points of a grid in row-major order.

        Returns:
            int32 array of root indices, -1 where the point did not converge
        """
        indices = np.full(converged.shape, -1, dtype=np.int32)
        rows, cols = np.nonzero(converged)
        for row, col in zip(rows, cols):
            indices[row, col] = self.classify(complex(final_values[row, col]))
        return indices

    def __len__(self) -> int:
        return len(self.roots)


class IterationResult:
    """Container for escape-time grid results."""

    def __init__(self, iterations: np.ndarray, escaped: np.ndarray,
                 final_values: Optional[np.ndarray] = None,
                 root_indices: Optional[np.ndarray] = None):
        """
        Initialize iteration result.

        Args:
            iterations: Array of iteration counts
            escaped: Boolean array indicating which points escaped (or, for
                Newton, failed to converge)
            final_values: Final complex values
            root_indices: Newton classification indices (-1 = no root)
        """
        self.iterations = iterations
        self.escaped = escaped
        self.final_values = final_values
        self.root_indices = root_indices
        self.shape = iterations.shape


# === Scalar iteration === #

def quadratic_escape(z: complex, c: complex, max_iter: int, escape_radius_sq: float = 4.0) -> int:
    """
    Iterate ``z -> z^2 + c`` until ``|z|^2`` exceeds the bailout or max_iter steps are used.

    Shared arithmetic core of the Mandelbrot and Julia families. Non-finite
    values compare false against the bailout and therefore count as escaped.
    """
    x, y = z.real, z.imag
    cx, cy = c.real, c.imag
    n = 0
    while x * x + y * y <= escape_radius_sq and n < max_iter:
        x, y = x * x - y * y + cx, 2.0 * x * y + cy
        n += 1
    return n


def mandelbrot_escape(c: complex, max_iter: int, escape_radius_sq: float = 4.0) -> int:
    """Escape time of ``c`` under the Mandelbrot map, starting from z0 = 0."""
    return quadratic_escape(0j, c, max_iter, escape_radius_sq)


def julia_escape(z: complex, c: complex, max_iter: int, escape_radius_sq: float = 4.0) -> int:
    """Escape time of the start point ``z`` under the Julia map for constant ``c``."""
    return quadratic_escape(z, c, max_iter, escape_radius_sq)


def newton_function(z: complex, k: complex) -> complex:
    """f(z) = z^3 + (k - 1) z - k"""
    return z * z * z + (k - 1) * z - k


def newton_derivative(z: complex, k: complex) -> complex:
    """f'(z) = 3 z^2 + (k - 1)"""
    return 3 * z * z + (k - 1)


def _finite(z: complex) -> bool:
    return math.isfinite(z.real) and math.isfinite(z.imag)


def newton_converge(z0: complex, k: complex, max_iter: int,
                    tolerance: float = DEFAULT_TOLERANCE) -> Tuple[int, Optional[complex]]:
    """
    Run Newton's method on ``f(z) = z^3 + (k-1)z - k`` from ``z0``.

    Returns:
        Tuple of (iteration, root). ``root`` is None when the iteration did
        not converge within ``max_iter`` steps or hit a zero / non-finite
        derivative, in which case the iteration count is ``max_iter``.
    """
    z = complex(z0)
    for n in range(max_iter):
        fz = newton_function(z, k)
        dfz = newton_derivative(z, k)
        dfz_abs = math.hypot(dfz.real, dfz.imag)

        if not math.isfinite(dfz_abs) or dfz_abs == 0:
            break

        z = z - fz / dfz
        if not _finite(z):
            break

        if math.hypot(fz.real, fz.imag) < tolerance:
            return n, z

    return max_iter, None


def escape_time_2d(point: complex, constant: complex, max_iter: int, family: str,
                   registry: Optional[RootRegistry] = None,
                   tolerance: float = DEFAULT_TOLERANCE) -> EscapeResult:
    """
    Escape time of a single domain point for a 2D family.

    Args:
        point: Domain point (pixel mapped through the viewport)
        constant: Julia constant, or ``k`` for Newton; ignored for Mandelbrot
        max_iter: Maximum iterations
        family: 'mandelbrot', 'julia' or 'newton'
        registry: Newton root registry shared across a batch; a fresh one is
            used when omitted
        tolerance: Newton convergence and root-matching tolerance

    Returns:
        EscapeResult with the exit iteration and, for Newton, the root index
        (None when the point did not converge)
    """
    family = family.lower()
    if family == 'mandelbrot':
        return EscapeResult(mandelbrot_escape(complex(point), max_iter))
    if family == 'julia':
        return EscapeResult(julia_escape(complex(point), complex(constant), max_iter))
    if family == 'newton':
        if registry is None:
            registry = RootRegistry(tolerance)
        n, root = newton_converge(complex(point), complex(constant), max_iter, tolerance)
        if root is None:
            return EscapeResult(n, None)
        return EscapeResult(n, registry.classify(root))

    raise ValueError(f"Unknown escape-time family '{family}'. Available: {', '.join(ESCAPE_FAMILIES)}")


# === Vectorised iteration === #

class FractalIterator:
    """Vectorised escape-time iteration over complex grids."""

    def __init__(self, max_iter: int = 1000, escape_radius: float = 2.0,
                 dtype: np.dtype = np.complex128, tolerance: float = DEFAULT_TOLERANCE):
        """
        Initialize fractal iterator.

        Args:
            max_iter: Maximum number of iterations
            escape_radius: Radius for escape condition
            dtype: Data type for calculations
            tolerance: Newton convergence tolerance
        """
        if max_iter < 0:
            raise ValueError("max_iter must be non-negative")
        if escape_radius <= 0:
            raise ValueError("escape_radius must be positive")

        self.max_iter = max_iter
        self.escape_radius = escape_radius
        self.escape_radius_sq = escape_radius ** 2
        self.dtype = dtype
        self.tolerance = tolerance

    def _quadratic_iteration(self, z: np.ndarray, c: np.ndarray) -> IterationResult:
        # Real/imaginary parts are iterated separately with the same
        # expressions as quadratic_escape so both paths agree bit for bit
        z = z.astype(self.dtype)
        c = np.broadcast_to(np.asarray(c, dtype=self.dtype), z.shape)
        x, y = z.real.copy(), z.imag.copy()
        cx, cy = c.real, c.imag
        iterations = np.zeros(z.shape, dtype=np.int32)
        active = np.ones(z.shape, dtype=bool)

        for _ in range(self.max_iter):
            # NaN compares false, so non-finite points drop out as escaped
            active &= (x * x + y * y) <= self.escape_radius_sq
            if not np.any(active):
                break

            xa, ya = x[active], y[active]
            x[active] = xa * xa - ya * ya + cx[active]
            y[active] = 2.0 * xa * ya + cy[active]
            iterations[active] += 1

        escaped = ~((x * x + y * y) <= self.escape_radius_sq)
        return IterationResult(iterations, escaped, (x + 1j * y).astype(self.dtype))

    def mandelbrot_iteration(self, c: np.ndarray) -> IterationResult:
        """
        Compute Mandelbrot iterations (z0 = 0, c = grid point).

        Args:
            c: Complex parameter array

        Returns:
            IterationResult with iteration counts and escape information
        """
        c = c.astype(self.dtype)
        return self._quadratic_iteration(np.zeros_like(c), c)

    def julia_iteration(self, z: np.ndarray, c: complex) -> IterationResult:
        """
        Compute Julia set iterations (z0 = grid point, fixed c).

        Args:
            z: Initial complex values array
            c: Julia set constant
        """
        return self._quadratic_iteration(z, self.dtype(c))

    def newton_iteration(self, z0: np.ndarray, k: complex,
                         registry: Optional[RootRegistry] = None) -> IterationResult:
        """
        Compute Newton iterations for ``f(z) = z^3 + (k-1)z - k``.

        Points that converge record the iteration at which ``|f(z)|`` fell
        below the tolerance; their roots are classified afterwards in
        row-major order through ``registry``.

        Args:
            z0: Initial complex values array
            k: Polynomial parameter
            registry: Root registry for this pass (a fresh one when None)
        """
        if registry is None:
            registry = RootRegistry(self.tolerance)

        z = z0.astype(np.complex128, copy=True)
        k = complex(k)
        iterations = np.full(z.shape, self.max_iter, dtype=np.int32)
        converged = np.zeros(z.shape, dtype=bool)
        active = np.ones(z.shape, dtype=bool)

        with np.errstate(all='ignore'):
            for n in range(self.max_iter):
                if not np.any(active):
                    break

                za = z[active]
                fz = za * za * za + (k - 1) * za - k
                dfz = 3 * za * za + (k - 1)
                dfz_abs = np.abs(dfz)

                # Zero or non-finite derivative stops the point without convergence
                ok = np.isfinite(dfz_abs) & (dfz_abs != 0)
                step = np.where(ok, fz / np.where(ok, dfz, 1), 0)
                za_next = za - step
                ok &= np.isfinite(za_next)
                hit = ok & (np.abs(fz) < self.tolerance)

                idx = np.flatnonzero(active)
                z.flat[idx[ok]] = za_next[ok]
                converged.flat[idx[hit]] = True
                iterations.flat[idx[hit]] = n
                active.flat[idx[~ok | hit]] = False

        root_indices = registry.classify_grid(z, converged)
        return IterationResult(iterations, ~converged, z, root_indices)

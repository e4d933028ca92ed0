"""
Numba JIT compilation backend for escape-time grid computation.

The kernels reproduce the arithmetic of the numpy iterators exactly (same
bailout test, same update expressions) so every backend yields identical
iteration counts. Newton kernels only report converged values; root
classification happens afterwards in row-major order.
"""

import math
import numpy as np
import logging

import numba
from numba import jit, prange

from ..core.math_functions import IterationResult, RootRegistry, DEFAULT_TOLERANCE

logger = logging.getLogger(__name__)


@jit(nopython=True, parallel=True, cache=True)
def quadratic_kernel(z_real, z_imag, c_real, c_imag, max_iter, escape_radius_sq):
    """
    JIT-compiled ``z -> z^2 + c`` kernel shared by Mandelbrot and Julia.

    Args:
        z_real, z_imag: Starting values
        c_real, c_imag: Added constants (same shape as the starting values)
        max_iter: Maximum iterations
        escape_radius_sq: Squared escape radius

    Returns:
        Tuple of (iterations, escaped, final_real, final_imag)
    """
    height, width = z_real.shape
    iterations = np.zeros((height, width), dtype=np.int32)
    escaped = np.zeros((height, width), dtype=np.bool_)
    final_real = np.zeros((height, width), dtype=np.float64)
    final_imag = np.zeros((height, width), dtype=np.float64)

    for i in prange(height):
        for j in range(width):
            x = z_real[i, j]
            y = z_imag[i, j]
            cx = c_real[i, j]
            cy = c_imag[i, j]

            n = 0
            while x * x + y * y <= escape_radius_sq and n < max_iter:
                x, y = x * x - y * y + cx, 2.0 * x * y + cy
                n += 1

            iterations[i, j] = n
            escaped[i, j] = not (x * x + y * y <= escape_radius_sq)
            final_real[i, j] = x
            final_imag[i, j] = y

    return iterations, escaped, final_real, final_imag


@jit(nopython=True, parallel=True, cache=True)
def newton_kernel(z0, k, max_iter, tolerance):
    """
    JIT-compiled Newton kernel for ``f(z) = z^3 + (k-1)z - k``.

    Returns:
        Tuple of (iterations, converged, final values)
    """
    height, width = z0.shape
    iterations = np.full((height, width), max_iter, dtype=np.int32)
    converged = np.zeros((height, width), dtype=np.bool_)
    final = np.zeros((height, width), dtype=np.complex128)

    for i in prange(height):
        for j in range(width):
            z = z0[i, j]
            for n in range(max_iter):
                fz = z * z * z + (k - 1) * z - k
                dfz = 3 * z * z + (k - 1)
                dfz_abs = abs(dfz)
                if not math.isfinite(dfz_abs) or dfz_abs == 0:
                    break

                z_next = z - fz / dfz
                if not (math.isfinite(z_next.real) and math.isfinite(z_next.imag)):
                    break
                z = z_next

                if abs(fz) < tolerance:
                    iterations[i, j] = n
                    converged[i, j] = True
                    break
            final[i, j] = z

    return iterations, converged, final


class NumbaAccelerator:
    """Numba-accelerated escape-time backend."""

    def __init__(self):
        """Initialize Numba accelerator."""
        self.version = numba.__version__
        logger.info(f"Numba accelerator ready (numba {self.version})")

    def mandelbrot_iteration(self, c, max_iter, escape_radius):
        """
        Accelerated Mandelbrot computation.

        Args:
            c: Complex parameter array
            max_iter: Maximum iterations
            escape_radius: Escape radius

        Returns:
            IterationResult
        """
        c_real = np.ascontiguousarray(c.real, dtype=np.float64)
        c_imag = np.ascontiguousarray(c.imag, dtype=np.float64)
        zeros = np.zeros_like(c_real)

        iterations, escaped, final_real, final_imag = quadratic_kernel(
            zeros, zeros, c_real, c_imag, max_iter, escape_radius ** 2
        )
        return IterationResult(iterations, escaped, final_real + 1j * final_imag)

    def julia_iteration(self, z, c, max_iter, escape_radius):
        """
        Accelerated Julia set computation.

        Args:
            z: Initial complex values array
            c: Julia constant
            max_iter: Maximum iterations
            escape_radius: Escape radius
        """
        z_real = np.ascontiguousarray(z.real, dtype=np.float64)
        z_imag = np.ascontiguousarray(z.imag, dtype=np.float64)
        c_real = np.full_like(z_real, complex(c).real)
        c_imag = np.full_like(z_imag, complex(c).imag)

        iterations, escaped, final_real, final_imag = quadratic_kernel(
            z_real, z_imag, c_real, c_imag, max_iter, escape_radius ** 2
        )
        return IterationResult(iterations, escaped, final_real + 1j * final_imag)

    def newton_iteration(self, z0, k, max_iter, tolerance=DEFAULT_TOLERANCE, registry=None):
        """
        Accelerated Newton computation.

        The kernel runs in parallel; converged values are classified serially
        through ``registry`` in row-major order afterwards.
        """
        if registry is None:
            registry = RootRegistry(tolerance)

        z0 = np.ascontiguousarray(z0, dtype=np.complex128)
        iterations, converged, final = newton_kernel(z0, complex(k), max_iter, tolerance)
        root_indices = registry.classify_grid(final, converged)
        return IterationResult(iterations, ~converged, final, root_indices)


# Global accelerator instance
_numba_accelerator = None


def get_numba_accelerator():
    """Get the global Numba accelerator instance."""
    global _numba_accelerator
    if _numba_accelerator is None:
        _numba_accelerator = NumbaAccelerator()
    return _numba_accelerator

"""Escape-time iteration, 3D bailout generators and shared vector helpers."""

from .math_functions import (
    ComplexPlane, EscapeResult, FractalIterator, IterationResult, RootRegistry,
    escape_time_2d,
)
from .fractal_types import FractalRegistry, FractalType, JuliaSet, MandelbrotSet, NewtonFractal
from .spatial import Escape3DResult, escape_time_3d, generate_julia3d, generate_mandelbulb, generate_menger

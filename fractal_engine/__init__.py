"""
Fractal generation engine.

This library turns a few numeric parameters into fractal data: escape-time
grids (Mandelbrot, Julia, Newton), 3D bailout point clouds (Mandelbulb,
Julia-3D, Menger sponge), chaos-game and symmetry-orbit point sets,
L-system turtle segments and space-filling curve traversals. Colouring and
display are left to the caller.

Example usage:
    >>> from fractal_engine import FractalEngine, EngineConfig
    >>> engine = FractalEngine(EngineConfig(width=400, height=300))
    >>> grid = engine.compute_grid('mandelbrot')
    >>> grid.iterations.shape
    (300, 400)
"""

__version__ = "1.0.0"
__author__ = "Fractal Engine Team"

from fractal_engine.core.math_functions import (
    ComplexPlane, EscapeResult, FractalIterator, IterationResult, RootRegistry, escape_time_2d,
)
from fractal_engine.core.fractal_types import FractalRegistry, JuliaSet, MandelbrotSet, NewtonFractal
from fractal_engine.core.spatial import (
    Escape3DResult, escape_time_3d, generate_julia3d, generate_mandelbulb, generate_menger,
)
from fractal_engine.ifs.chaos_game import AffineMap, ChaosConstraints, chaos_game
from fractal_engine.ifs.polyhedra import symmetry_orbit
from fractal_engine.lsystem.grammar import LSystem, rewrite
from fractal_engine.lsystem.turtle import interpret_turtle, turtle_bounds
from fractal_engine.curves.space_filling import space_filling_curve
from fractal_engine.config import ConfigManager, EngineConfig

# Main API classes
from fractal_engine.api import ComputationCancelled, FractalEngine, GridResult

__all__ = [
    "FractalEngine",
    "EngineConfig",
    "ConfigManager",
    "GridResult",
    "ComputationCancelled",
    "ComplexPlane",
    "EscapeResult",
    "FractalIterator",
    "IterationResult",
    "RootRegistry",
    "escape_time_2d",
    "FractalRegistry",
    "MandelbrotSet",
    "JuliaSet",
    "NewtonFractal",
    "Escape3DResult",
    "escape_time_3d",
    "generate_mandelbulb",
    "generate_julia3d",
    "generate_menger",
    "AffineMap",
    "ChaosConstraints",
    "chaos_game",
    "symmetry_orbit",
    "LSystem",
    "rewrite",
    "interpret_turtle",
    "turtle_bounds",
    "space_filling_curve",
]

"""
Escape-time fractal type definitions and parameter management.

This module defines the 2D escape-time families as configurable classes,
providing a plugin-style architecture for the grid computations.
"""

import numpy as np
from typing import Dict, Any, Optional
from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

from .math_functions import FractalIterator, IterationResult, ComplexPlane, RootRegistry

logger = logging.getLogger(__name__)


@dataclass
class FractalParameters:
    """Base class for fractal parameters with validation."""

    def validate(self) -> None:
        """Validate parameter values."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith('_')}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FractalParameters':
        """Create parameters from dictionary."""
        return cls(**data)


class FractalType(ABC):
    """Abstract base class for escape-time fractal types."""

    #: Registry key, also used to select accelerated kernels
    family: str = ''

    def __init__(self, name: str, parameters: FractalParameters):
        """
        Initialize fractal type.

        Args:
            name: Human-readable name for the fractal
            parameters: Fractal-specific parameters
        """
        self.name = name
        self.parameters = parameters
        self.parameters.validate()

    @abstractmethod
    def compute(self, plane: ComplexPlane, iterator: FractalIterator,
                registry: Optional[RootRegistry] = None) -> IterationResult:
        """
        Compute fractal iterations for the given complex plane.

        Args:
            plane: Complex plane definition
            iterator: Fractal iterator instance
            registry: Root registry shared across chunks of one pass
                (only meaningful for root-finding families)

        Returns:
            IterationResult containing iteration data
        """
        pass

    @property
    def constant(self) -> complex:
        """The family constant handed to the scalar/accelerated kernels."""
        return 0j

    def get_description(self) -> str:
        """Get a description of this fractal type."""
        return f"{self.name} fractal"


def _validate_numeric(**values) -> None:
    for name, value in values.items():
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ValueError(f"{name} must be numeric")


@dataclass
class MandelbrotParameters(FractalParameters):
    """Parameters for Mandelbrot set generation (none beyond the grid)."""


class MandelbrotSet(FractalType):
    """Mandelbrot set: z0 = 0, c = grid point."""

    family = 'mandelbrot'

    def __init__(self, parameters: Optional[MandelbrotParameters] = None):
        super().__init__("Mandelbrot", parameters or MandelbrotParameters())

    def compute(self, plane: ComplexPlane, iterator: FractalIterator,
                registry: Optional[RootRegistry] = None) -> IterationResult:
        """Compute Mandelbrot set iterations."""
        c = plane.create_complex_array(iterator.dtype)
        return iterator.mandelbrot_iteration(c)

    def get_description(self) -> str:
        return "Mandelbrot set: z_{n+1} = z_n^2 + c, where c is the grid point and z_0 = 0"


@dataclass
class JuliaParameters(FractalParameters):
    """Parameters for Julia set generation."""

    c_real: float = -0.8
    c_imag: float = 0.156

    def validate(self) -> None:
        """Validate Julia parameters."""
        _validate_numeric(c_real=self.c_real, c_imag=self.c_imag)

    @property
    def c(self) -> complex:
        """Get the Julia constant as a complex number."""
        return complex(self.c_real, self.c_imag)


class JuliaSet(FractalType):
    """Julia set: z0 = grid point, fixed c."""

    family = 'julia'

    def __init__(self, parameters: Optional[JuliaParameters] = None):
        super().__init__("Julia", parameters or JuliaParameters())

    @property
    def constant(self) -> complex:
        return self.parameters.c

    def compute(self, plane: ComplexPlane, iterator: FractalIterator,
                registry: Optional[RootRegistry] = None) -> IterationResult:
        """Compute Julia set iterations."""
        z = plane.create_complex_array(iterator.dtype)
        return iterator.julia_iteration(z, self.parameters.c)

    def get_description(self) -> str:
        return (f"Julia set: z_{{n+1}} = z_n^2 + c, where c = {self.parameters.c} "
                "and z_0 is the grid point")


@dataclass
class NewtonParameters(FractalParameters):
    """Parameters for the Newton fractal of f(z) = z^3 + (k-1)z - k."""

    k_real: float = -0.5
    k_imag: float = 0.5

    def validate(self) -> None:
        """Validate Newton parameters."""
        _validate_numeric(k_real=self.k_real, k_imag=self.k_imag)

    @property
    def k(self) -> complex:
        return complex(self.k_real, self.k_imag)


class NewtonFractal(FractalType):
    """Newton basins of f(z) = z^3 + (k-1)z - k with root classification."""

    family = 'newton'

    def __init__(self, parameters: Optional[NewtonParameters] = None):
        super().__init__("Newton", parameters or NewtonParameters())

    @property
    def constant(self) -> complex:
        return self.parameters.k

    def compute(self, plane: ComplexPlane, iterator: FractalIterator,
                registry: Optional[RootRegistry] = None) -> IterationResult:
        """Compute Newton iterations and classify converged roots."""
        z0 = plane.create_complex_array(np.complex128)
        return iterator.newton_iteration(z0, self.parameters.k, registry)

    def get_description(self) -> str:
        return f"Newton: z -> z - f(z)/f'(z), f(z) = z^3 + (k-1)z - k, k = {self.parameters.k}"


class FractalRegistry:
    """Registry for managing available escape-time fractal types."""

    _fractals: Dict[str, type] = {
        'mandelbrot': MandelbrotSet,
        'julia': JuliaSet,
        'newton': NewtonFractal,
    }

    _parameters: Dict[str, type] = {
        'mandelbrot': MandelbrotParameters,
        'julia': JuliaParameters,
        'newton': NewtonParameters,
    }

    @classmethod
    def get(cls, name: str) -> type:
        """Get a fractal class by name."""
        fractal_class = cls._fractals.get(name.lower())
        if fractal_class is None:
            available = ', '.join(cls._fractals.keys())
            raise ValueError(f"Unknown fractal type '{name}'. Available: {available}")
        return fractal_class

    @classmethod
    def list_fractals(cls) -> Dict[str, str]:
        """Get a dictionary of available fractals and their descriptions."""
        return {name: fractal_class().get_description()
                for name, fractal_class in cls._fractals.items()}

    @classmethod
    def create_fractal(cls, name: str, **kwargs) -> FractalType:
        """
        Create a fractal instance with the given parameters.

        Args:
            name: Fractal type name
            **kwargs: Parameters for the fractal

        Returns:
            Configured fractal instance
        """
        fractal_class = cls.get(name)
        if not kwargs:
            return fractal_class()
        return fractal_class(cls._parameters[name.lower()](**kwargs))


# Interesting Julia constants
JULIA_PRESETS = {
    'dragon': JuliaParameters(c_real=-0.75, c_imag=0.1),
    'spiral': JuliaParameters(c_real=-0.4, c_imag=0.6),
    'dendrite': JuliaParameters(c_real=-0.235125, c_imag=0.827215),
    'lightning': JuliaParameters(c_real=-0.8, c_imag=0.156),
    'rabbit': JuliaParameters(c_real=-0.123, c_imag=0.745),
    'airplane': JuliaParameters(c_real=-1.25, c_imag=0.0),
    'san_marco': JuliaParameters(c_real=-0.75, c_imag=0.0),
    'siegel_disk': JuliaParameters(c_real=-0.391, c_imag=-0.587),
}

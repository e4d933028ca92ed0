"""
Main API classes for fractal generation.

This module provides the high-level interface for the engine, combining the
escape-time backends and the point generators behind one configurable class.
"""

import numpy as np
from typing import Any, Callable, Dict, Optional, Sequence, Union
from dataclasses import dataclass, field
import contextlib
import logging
import time

from .config import EngineConfig
from .core.fractal_types import FractalType, FractalRegistry
from .core.math_functions import ComplexPlane, FractalIterator, IterationResult, RootRegistry
from .core.precision import PrecisionConfig
from .core.spatial import generate_julia3d, generate_mandelbulb, generate_menger
from .core.vectors import ensure_rng
from .acceleration.numba_backend import get_numba_accelerator
from .acceleration.multiprocessing import get_multiprocessing_accelerator, get_optimal_process_count
from .ifs.chaos_game import AFFINE_PRESETS, chaos_game, sierpinski_tetrahedron
from .ifs.dendrite import DendriteParameters, dendrite_forest
from .ifs.polyhedra import POLY_IFS_PRESETS, poly_ifs, polyhedron_orbit
from .lsystem.grammar import LSystem, get_preset
from .lsystem.turtle import interpret_turtle
from .curves.space_filling import space_filling_curve

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]


class ComputationCancelled(RuntimeError):
    """Raised when a grid computation is aborted between chunks."""


@dataclass
class GridResult:
    """Escape-time grid plus the context it was computed in."""

    result: IterationResult
    plane: ComplexPlane
    method: str
    compute_time: float
    registry: Optional[RootRegistry] = None

    @property
    def iterations(self) -> np.ndarray:
        return self.result.iterations

    @property
    def root_indices(self) -> Optional[np.ndarray]:
        return self.result.root_indices

    @property
    def roots(self):
        """Roots discovered in this pass, indexed by ``root_indices``."""
        return list(self.registry.roots) if self.registry is not None else []

    def metadata(self) -> Dict[str, Any]:
        return {
            'bounds': list(self.plane.bounds),
            'resolution': f"{self.plane.width}x{self.plane.height}",
            'method': self.method,
            'compute_time': self.compute_time,
            'roots': [[r.real, r.imag] for r in self.roots],
        }


@dataclass
class _Accelerators:
    numba: Any = None
    multiprocessing: Any = None
    notes: Dict[str, str] = field(default_factory=dict)


class FractalEngine:
    """Main fractal generation engine."""

    #: Smallest grid handed to the process pool
    MULTIPROCESSING_MIN_PIXELS = 250_000

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (uses defaults if None)
        """
        self.config = config or EngineConfig()
        self.config.validate()

        self.precision_config = PrecisionConfig(self.config.resolved_precision())
        self._setup_accelerators()

        logger.info(f"FractalEngine initialized: {self.config.width}x{self.config.height}, "
                    f"precision={self.precision_config.precision}")

    def _setup_accelerators(self):
        """Setup available acceleration backends."""
        self.accelerators = _Accelerators()

        if self.config.use_numba:
            if self.precision_config.precision != 'double':
                self.accelerators.notes['numba'] = 'kernels are double precision only'
                logger.warning("Numba kernels run in double precision; using numpy for "
                               f"precision={self.precision_config.precision}")
            else:
                try:
                    self.accelerators.numba = get_numba_accelerator()
                    logger.info("Numba acceleration enabled")
                except Exception as e:
                    self.accelerators.notes['numba'] = str(e)
                    logger.warning(f"Failed to initialize Numba: {e}")

        if self.config.use_multiprocessing:
            try:
                num_proc = self.config.num_processes or get_optimal_process_count()
                self.accelerators.multiprocessing = get_multiprocessing_accelerator(
                    num_proc, self.config.tile_size
                )
                logger.info(f"Multiprocessing enabled: {num_proc} processes")
            except Exception as e:
                self.accelerators.notes['multiprocessing'] = str(e)
                logger.warning(f"Failed to initialize multiprocessing: {e}")

    def create_plane(self) -> ComplexPlane:
        return ComplexPlane(*self.config.bounds, self.config.width, self.config.height)

    def create_iterator(self) -> FractalIterator:
        return FractalIterator(
            max_iter=self.config.max_iterations,
            escape_radius=self.config.escape_radius,
            dtype=self.precision_config.dtype,
            tolerance=self.config.newton_tolerance,
        )

    def _select_method(self, plane: ComplexPlane) -> str:
        """Choose the backend for a whole pass."""
        if (self.accelerators.multiprocessing is not None
                and plane.width * plane.height >= self.MULTIPROCESSING_MIN_PIXELS):
            return 'multiprocessing'
        if self.accelerators.numba is not None:
            return 'numba'
        return 'numpy'

    def _compute_chunk(self, method: str, fractal: FractalType, plane: ComplexPlane,
                       iterator: FractalIterator, registry: Optional[RootRegistry],
                       executor=None) -> IterationResult:
        if method == 'multiprocessing':
            return self.accelerators.multiprocessing.compute_parallel(fractal, plane, iterator,
                                                                      registry, executor)

        if method == 'numba':
            numba_accel = self.accelerators.numba
            grid = plane.create_complex_array(np.complex128)
            if fractal.family == 'mandelbrot':
                return numba_accel.mandelbrot_iteration(grid, iterator.max_iter, iterator.escape_radius)
            if fractal.family == 'julia':
                return numba_accel.julia_iteration(grid, fractal.constant,
                                                   iterator.max_iter, iterator.escape_radius)
            if fractal.family == 'newton':
                return numba_accel.newton_iteration(grid, fractal.constant, iterator.max_iter,
                                                    iterator.tolerance, registry)

        # Plugins without a kernel fall through to their own compute
        return fractal.compute(plane, iterator, registry)

    def compute_grid(self, fractal: Union[FractalType, str],
                     progress_callback: Optional[ProgressCallback] = None,
                     should_cancel: Optional[CancelCheck] = None,
                     registry: Optional[RootRegistry] = None,
                     method: Optional[str] = None) -> GridResult:
        """
        Compute an escape-time grid in row chunks.

        Between chunks ``should_cancel`` is polled and ``progress_callback``
        receives the completed fraction. Newton roots are classified through
        one registry for the whole pass, so indices follow row-major order of
        discovery whatever the backend.

        Args:
            fractal: Fractal instance or registered family name
            progress_callback: Called with a fraction in (0, 1] after each chunk
            should_cancel: Returns True to abort the pass
            registry: Root registry to extend (a fresh one for Newton when None)
            method: Force 'numpy', 'numba' or 'multiprocessing'

        Returns:
            GridResult

        Raises:
            ComputationCancelled: if ``should_cancel`` returned True
        """
        if isinstance(fractal, str):
            fractal = FractalRegistry.create_fractal(fractal)

        start_time = time.time()
        plane = self.create_plane()
        iterator = self.create_iterator()

        if method is None:
            method = self._select_method(plane)
        elif method not in ('numpy', 'numba', 'multiprocessing'):
            raise ValueError(f"Unknown compute method '{method}'")
        elif method != 'numpy' and getattr(self.accelerators, method) is None:
            raise ValueError(f"Compute method '{method}' is not enabled")

        if fractal.family == 'newton' and registry is None:
            registry = RootRegistry(iterator.tolerance)

        logger.info(f"Computing {fractal.name} grid {plane.width}x{plane.height} "
                    f"(max_iter={iterator.max_iter}, method={method})")

        iterations = np.zeros((plane.height, plane.width), dtype=np.int32)
        escaped = np.zeros((plane.height, plane.width), dtype=bool)
        final_values = np.zeros((plane.height, plane.width), dtype=iterator.dtype)
        root_indices = None
        if fractal.family == 'newton':
            root_indices = np.full((plane.height, plane.width), -1, dtype=np.int32)

        # One worker pool serves every chunk of a multiprocessing pass
        if method == 'multiprocessing':
            pool = self.accelerators.multiprocessing.executor()
        else:
            pool = contextlib.nullcontext()

        with pool as executor:
            for start in range(0, plane.height, self.config.chunk_rows):
                if should_cancel is not None and should_cancel():
                    logger.info(f"Computation cancelled at row {start}/{plane.height}")
                    raise ComputationCancelled(f"Cancelled after {start} of {plane.height} rows")

                stop = min(start + self.config.chunk_rows, plane.height)
                chunk = self._compute_chunk(method, fractal, plane.rows(start, stop), iterator,
                                            registry, executor)

                iterations[start:stop] = chunk.iterations
                escaped[start:stop] = chunk.escaped
                if chunk.final_values is not None:
                    final_values[start:stop] = chunk.final_values
                if root_indices is not None:
                    root_indices[start:stop] = chunk.root_indices

                logger.debug(f"Rows {start}-{stop} done")
                if progress_callback is not None:
                    progress_callback(stop / plane.height)

        compute_time = time.time() - start_time
        logger.info(f"Grid complete: {compute_time:.2f}s")

        result = IterationResult(iterations, escaped, final_values, root_indices)
        return GridResult(result, plane, method, compute_time, registry)

    # === Point generators === #

    def _rng(self, seed: Optional[int] = None) -> np.random.Generator:
        return ensure_rng(seed=self.config.seed if seed is None else seed)

    def generate_bulb(self, family: str = 'mandelbulb', max_iter: int = 15, power: float = 8.0,
                      bailout: float = 2.0, density: int = 20000,
                      constant: Optional[Sequence[float]] = None,
                      seed: Optional[int] = None) -> np.ndarray:
        """Retained points of a Mandelbulb or Julia-3D sample."""
        rng = self._rng(seed)
        if family == 'mandelbulb':
            points = generate_mandelbulb(max_iter, power, bailout, density, rng=rng)
        elif family == 'julia3d':
            kwargs = {} if constant is None else {'constant': constant}
            points = generate_julia3d(max_iter, power, bailout, density, rng=rng, **kwargs)
        else:
            raise ValueError(f"Unknown 3D family '{family}'")
        logger.info(f"{family}: kept {len(points)} of {density} samples")
        return points

    def generate_menger(self, level: int, size: float = 1.0) -> np.ndarray:
        return generate_menger(level, size=size)

    def generate_ifs(self, preset: str, iterations: int = 50000, lam: float = 0.5,
                     target: str = 'vertices', seed: Optional[int] = None) -> np.ndarray:
        """
        Chaos-game points for a named system.

        ``preset`` is an affine preset, a polyhedral preset,
        ``'sierpinski_tetrahedron'`` or a solid name (``tetra``, ``cube``,
        ``octa``, ``icosa``) whose ``target`` points attract the walk.
        """
        rng = self._rng(seed)
        if preset in AFFINE_PRESETS:
            return chaos_game(AFFINE_PRESETS[preset], iterations, rng=rng)
        if preset in POLY_IFS_PRESETS:
            solid, target, constraints = POLY_IFS_PRESETS[preset]
            return poly_ifs(solid, target, lam, iterations, constraints, rng=rng)
        if preset == 'sierpinski_tetrahedron':
            return sierpinski_tetrahedron(iterations, rng=rng)
        return poly_ifs(preset, target, lam, iterations, rng=rng)

    def generate_dendrite(self, layout: str = 'center', depth: int = 6,
                          parameters: Optional[DendriteParameters] = None,
                          seed: Optional[int] = None) -> np.ndarray:
        """Dendrite segments grown on the configured canvas."""
        return dendrite_forest(layout, self.config.width, self.config.height, depth,
                               parameters, rng=self._rng(seed))

    def generate_orbit(self, solid: str = 'tetra', steps: int = 30000, mode: str = 'discrete',
                       seed: Optional[int] = None) -> np.ndarray:
        return polyhedron_orbit(solid, steps, mode, rng=self._rng(seed))

    def generate_lsystem(self, system: Union[LSystem, str], iterations: int) -> np.ndarray:
        """Turtle segments for a grammar or preset name."""
        if isinstance(system, str):
            system = get_preset(system)
        symbols = system.generate(iterations)
        segments = interpret_turtle(symbols, system.angle, system.step,
                                    start=(0.0, 0.0, system.start_angle),
                                    move_symbols=system.move_symbols)
        logger.info(f"L-system: {len(symbols)} symbols, {len(segments)} segments")
        return segments

    def generate_curve(self, family: str, order: int) -> np.ndarray:
        """Space-filling curve points scaled to the configured width and height."""
        return space_filling_curve(family, order, self.config.width, self.config.height)

    # === Utilities === #

    def benchmark_performance(self, fractal: Union[FractalType, str] = 'mandelbrot') -> Dict[str, Any]:
        """
        Time the configured grid with every enabled backend.

        Returns:
            Per-method timings and speedups over numpy
        """
        logger.info("Starting performance benchmark")
        pixels = self.config.width * self.config.height
        results = {
            'config': {
                'resolution': f"{self.config.width}x{self.config.height}",
                'max_iterations': self.config.max_iterations,
                'precision': self.precision_config.precision,
            },
            'benchmarks': {},
        }

        methods = ['numpy']
        if self.accelerators.numba is not None:
            methods.append('numba')
        if self.accelerators.multiprocessing is not None:
            methods.append('multiprocessing')

        baseline = None
        for method in methods:
            elapsed = self.compute_grid(fractal, method=method).compute_time
            entry = {'time': elapsed, 'pixels_per_second': pixels / max(elapsed, 1e-9)}
            if baseline is None:
                baseline = elapsed
            else:
                entry['speedup'] = baseline / max(elapsed, 1e-9)
            results['benchmarks'][method] = entry

        return results

    def update_config(self, **kwargs):
        """Update engine configuration."""
        for key, value in kwargs.items():
            if hasattr(self.config, key):
                setattr(self.config, key, value)
            else:
                raise ValueError(f"Unknown configuration parameter: {key}")

        self.config.validate()
        self.precision_config = PrecisionConfig(self.config.resolved_precision())

        # Reinitialize accelerators if needed
        if any(key in ('use_numba', 'use_multiprocessing', 'num_processes', 'tile_size',
                       'precision', 'bounds') for key in kwargs):
            self._setup_accelerators()

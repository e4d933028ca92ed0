"""
Multiprocessing backend for parallel escape-time computation.

This module provides tile-based parallel computation using a process pool.
Tiles may complete in any order; Newton roots are classified only after
assembly, in row-major order, so root indices do not depend on scheduling.
"""

import numpy as np
from typing import List, Optional
import multiprocessing as mp
import logging
import psutil
import time
from dataclasses import dataclass
from concurrent.futures import Executor, ProcessPoolExecutor, as_completed

from ..core.math_functions import IterationResult, ComplexPlane, FractalIterator, RootRegistry
from ..core.fractal_types import FractalType, FractalRegistry

logger = logging.getLogger(__name__)


@dataclass
class TileSpec:
    """Specification for a single tile in parallel computation."""
    tile_id: int
    x_start: int
    x_end: int
    y_start: int
    y_end: int

    @property
    def width(self) -> int:
        return self.x_end - self.x_start

    @property
    def height(self) -> int:
        return self.y_end - self.y_start

    def get_plane(self, plane: ComplexPlane) -> ComplexPlane:
        """Get the sub-plane covered by this tile."""
        return plane.region(self.x_start, self.x_end, self.y_start, self.y_end)


@dataclass
class TileResult:
    """Result from processing a single tile."""
    tile_id: int
    iterations: np.ndarray
    escaped: np.ndarray
    final_values: Optional[np.ndarray]
    x_start: int
    y_start: int
    processing_time: float


def create_tile_grid(width: int, height: int, tile_size: int = 256) -> List[TileSpec]:
    """
    Create a grid of tiles for parallel processing.

    Args:
        width: Total grid width
        height: Total grid height
        tile_size: Target tile size (pixels)

    Returns:
        List of TileSpec objects in row-major order
    """
    if tile_size <= 0:
        raise ValueError("tile_size must be positive")

    tiles = []
    for y in range(0, height, tile_size):
        for x in range(0, width, tile_size):
            tiles.append(TileSpec(
                tile_id=len(tiles),
                x_start=x,
                x_end=min(x + tile_size, width),
                y_start=y,
                y_end=min(y + tile_size, height),
            ))

    logger.debug(f"Created {len(tiles)} tiles of target size {tile_size}x{tile_size}")
    return tiles


def process_fractal_tile(args) -> TileResult:
    """
    Process a single tile in a worker process.

    Args:
        args: Tuple of (family, fractal_params, tile_spec, iterator_params, plane)

    Returns:
        TileResult object
    """
    family, fractal_params, tile_spec, iterator_params, plane = args
    start_time = time.time()

    fractal = FractalRegistry.create_fractal(family, **fractal_params)
    iterator = FractalIterator(**iterator_params)

    # Worker-local registry; roots are reclassified after assembly
    result = fractal.compute(tile_spec.get_plane(plane), iterator, RootRegistry(iterator.tolerance))

    return TileResult(
        tile_id=tile_spec.tile_id,
        iterations=result.iterations,
        escaped=result.escaped,
        final_values=result.final_values,
        x_start=tile_spec.x_start,
        y_start=tile_spec.y_start,
        processing_time=time.time() - start_time,
    )


def assemble_tiles(tile_results: List[TileResult], total_width: int, total_height: int) -> IterationResult:
    """
    Assemble tile results into a complete grid.

    Args:
        tile_results: List of TileResult objects
        total_width: Total grid width
        total_height: Total grid height

    Returns:
        Complete IterationResult (without root classification)
    """
    iterations = np.zeros((total_height, total_width), dtype=np.int32)
    escaped = np.zeros((total_height, total_width), dtype=bool)
    final_values = None

    if any(tr.final_values is not None for tr in tile_results):
        final_values = np.zeros((total_height, total_width), dtype=np.complex128)

    for tile_result in tile_results:
        y0, x0 = tile_result.y_start, tile_result.x_start
        tile_height, tile_width = tile_result.iterations.shape
        window = (slice(y0, y0 + tile_height), slice(x0, x0 + tile_width))

        iterations[window] = tile_result.iterations
        escaped[window] = tile_result.escaped
        if final_values is not None and tile_result.final_values is not None:
            final_values[window] = tile_result.final_values

    return IterationResult(iterations, escaped, final_values)


def _run_tiles(executor: Executor, tile_args: list) -> List[TileResult]:
    futures = [executor.submit(process_fractal_tile, args) for args in tile_args]
    tile_results = []
    for completed, future in enumerate(as_completed(futures), start=1):
        tile_results.append(future.result())
        if completed % max(1, len(futures) // 10) == 0:
            progress = (completed / len(futures)) * 100
            logger.debug(f"Completed {completed}/{len(futures)} tiles ({progress:.1f}%)")
    return tile_results


class MultiprocessingAccelerator:
    """Multiprocessing-based parallel escape-time computation."""

    def __init__(self, num_processes: Optional[int] = None, tile_size: int = 256):
        """
        Initialize multiprocessing accelerator.

        Args:
            num_processes: Number of worker processes (None for CPU count)
            tile_size: Size of tiles for parallel processing
        """
        if num_processes is None:
            self.num_processes = mp.cpu_count()
        else:
            self.num_processes = max(1, num_processes)

        self.tile_size = tile_size
        logger.info(f"Multiprocessing accelerator: {self.num_processes} processes, "
                    f"{tile_size}x{tile_size} tiles")

    def executor(self) -> ProcessPoolExecutor:
        """Open a worker pool; callers running several passes can share one."""
        return ProcessPoolExecutor(max_workers=self.num_processes)

    def compute_parallel(self, fractal: FractalType, plane: ComplexPlane,
                         iterator: FractalIterator,
                         registry: Optional[RootRegistry] = None,
                         executor: Optional[Executor] = None) -> IterationResult:
        """
        Compute an escape-time grid using parallel tile-based processing.

        Args:
            fractal: Fractal type to compute
            plane: Complex plane specification
            iterator: Fractal iterator (its settings are sent to the workers)
            registry: Root registry for Newton classification
            executor: Pool to submit tiles to (a private pool is opened when None)

        Returns:
            Complete computation result
        """
        start_time = time.time()
        tiles = create_tile_grid(plane.width, plane.height, self.tile_size)

        iterator_params = {
            'max_iter': iterator.max_iter,
            'escape_radius': iterator.escape_radius,
            'dtype': iterator.dtype,
            'tolerance': iterator.tolerance,
        }
        fractal_params = fractal.parameters.to_dict()
        tile_args = [(fractal.family, fractal_params, tile, iterator_params, plane)
                     for tile in tiles]

        logger.info(f"Processing {len(tiles)} tiles with {self.num_processes} processes")

        if executor is None:
            with self.executor() as own_executor:
                tile_results = _run_tiles(own_executor, tile_args)
        else:
            tile_results = _run_tiles(executor, tile_args)

        result = assemble_tiles(tile_results, plane.width, plane.height)

        if fractal.family == 'newton':
            if registry is None:
                registry = RootRegistry(iterator.tolerance)
            result.root_indices = registry.classify_grid(result.final_values, ~result.escaped)

        total_time = time.time() - start_time
        total_processing_time = sum(tr.processing_time for tr in tile_results)
        logger.info(f"Parallel computation complete: {total_time:.2f}s total, "
                    f"{total_processing_time:.2f}s processing time")

        return result


# Global multiprocessing accelerator
_mp_accelerator = None


def get_multiprocessing_accelerator(num_processes=None, tile_size=256):
    """Get the global multiprocessing accelerator instance."""
    global _mp_accelerator
    wanted = num_processes or mp.cpu_count()
    if (_mp_accelerator is None or _mp_accelerator.num_processes != wanted
            or _mp_accelerator.tile_size != tile_size):
        _mp_accelerator = MultiprocessingAccelerator(num_processes, tile_size)
    return _mp_accelerator


def get_optimal_process_count():
    """Get optimal number of processes for grid computation."""
    # Leave one core for the system
    optimal = max(1, mp.cpu_count() - 1)

    # Roughly one process per 2GB of available memory
    available_gb = psutil.virtual_memory().available / (1024 ** 3)
    return min(optimal, max(1, int(available_gb / 2)))

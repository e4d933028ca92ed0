"""
Command-line interface for the fractal engine.

Every generator is exposed as a subcommand; results are summarised on the
terminal and can be written to a ``.npy`` file with ``--output``.
"""

import click
import sys
import multiprocessing as mp
from pathlib import Path
from typing import Optional
import logging
import time

import numba
import numpy as np
import psutil

from .. import __version__
from ..api import FractalEngine
from ..config import ConfigManager, EngineConfig, parse_bounds
from ..core.fractal_types import FractalRegistry, JULIA_PRESETS
from ..core.math_functions import ESCAPE_FAMILIES, escape_time_2d
from ..core.precision import PrecisionConfig
from ..core.vectors import compute_bounds
from ..acceleration.multiprocessing import get_optimal_process_count
from ..curves.space_filling import CURVE_FAMILIES
from ..ifs.chaos_game import AFFINE_PRESETS
from ..ifs.dendrite import DENDRITE_LAYOUTS, dendrite_layouts
from ..ifs.polyhedra import POLY_IFS_PRESETS, SOLIDS, TARGET_KINDS
from ..lsystem.grammar import LSYSTEM_PRESETS, expansion_factors, get_preset
from ..lsystem.koch import koch_snowflake
from ..lsystem.turtle import fit_to_viewport, interpret_turtle, turtle_bounds

logger = logging.getLogger(__name__)

# Symbol count above which an L-system expansion is reported as large
LSYSTEM_WARN_LENGTH = 1_000_000


def _fail(ctx, error: Exception):
    click.echo(f"Error: {error}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


def _parse_complex(value: str) -> complex:
    parts = [p.strip() for p in value.split(',')]
    if len(parts) != 2:
        raise ValueError(f"Invalid complex value '{value}'. Use 'real,imag'")
    return complex(float(parts[0]), float(parts[1]))


def _save_output(array: np.ndarray, output: Optional[str]):
    if not output:
        return
    path = Path(output)
    np.save(path, array)
    # np.save appends .npy when missing
    saved = path if path.suffix == '.npy' else path.with_name(path.name + '.npy')
    click.echo(f"Saved: {saved}")


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path (JSON or YAML)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, verbose, quiet):
    """
    Fractal Engine - escape-time, chaos-game, L-system and space-filling curve generators.
    """
    # Setup logging
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Fractal Engine v{__version__}")
        click.echo(f"Python: {sys.version}")
        click.echo(f"Numba: {numba.__version__}")

        if ctx.invoked_subcommand is None:
            sys.exit(0)

    # Store global options in context
    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose


def _engine_config(ctx, **overrides) -> EngineConfig:
    return ConfigManager().build(ctx.obj.get('config_file'), overrides)


@main.command()
@click.argument('family', type=click.Choice(ESCAPE_FAMILIES))
@click.option('--width', '-w', type=int, help='Grid width')
@click.option('--height', '-h', type=int, help='Grid height')
@click.option('--bounds', type=str, help='Complex plane bounds: "xmin,xmax,ymin,ymax"')
@click.option('--max-iter', type=int, help='Maximum iterations')
@click.option('--escape-radius', type=float, help='Escape radius')
@click.option('--precision', type=click.Choice(['single', 'double', 'auto']), help='Numerical precision')
@click.option('--julia-c', type=str, help='Julia constant (real,imag) or preset name')
@click.option('--newton-k', type=str, help='Newton parameter k (real,imag)')
@click.option('--point', type=str, help='Evaluate a single point (real,imag) instead of a grid')
@click.option('--no-numba', is_flag=True, help='Disable Numba acceleration')
@click.option('--multiprocessing', 'use_mp', is_flag=True, help='Enable multiprocessing tiles')
@click.option('--processes', type=int, help='Number of worker processes')
@click.option('--tile-size', type=int, help='Tile size for parallel computation')
@click.option('--chunk-rows', type=int, help='Rows per progress chunk')
@click.option('--output', '-o', type=click.Path(), help='Save iteration counts as .npy')
@click.pass_context
def escape(ctx, family, width, height, bounds, max_iter, escape_radius, precision,
           julia_c, newton_k, point, no_numba, use_mp, processes, tile_size, chunk_rows, output):
    """
    Compute an escape-time grid (or a single point).

    FAMILY: mandelbrot, julia or newton
    """
    try:
        fractal_params = {}
        if family == 'julia' and julia_c:
            if julia_c in JULIA_PRESETS:
                fractal_params.update(JULIA_PRESETS[julia_c].to_dict())
                click.echo(f"Using Julia preset: {julia_c}")
            else:
                c = _parse_complex(julia_c)
                fractal_params.update(c_real=c.real, c_imag=c.imag)
        if family == 'newton' and newton_k:
            k = _parse_complex(newton_k)
            fractal_params.update(k_real=k.real, k_imag=k.imag)

        fractal = FractalRegistry.create_fractal(family, **fractal_params)

        config = _engine_config(
            ctx,
            width=width,
            height=height,
            bounds=parse_bounds(bounds) if bounds else None,
            max_iterations=max_iter,
            escape_radius=escape_radius,
            precision=precision,
            use_numba=False if no_numba else None,
            use_multiprocessing=True if use_mp else None,
            num_processes=processes,
            tile_size=tile_size,
            chunk_rows=chunk_rows,
        )

        if point:
            z = _parse_complex(point)
            result = escape_time_2d(z, fractal.constant, config.max_iterations, family,
                                    tolerance=config.newton_tolerance)
            click.echo(f"{fractal.name} at {PrecisionConfig().format_number(z)}: "
                       f"{result.iterations} iterations")
            if family == 'newton':
                click.echo(f"Root index: {result.root_index}")
            return

        engine = FractalEngine(config)

        def progress_callback(fraction):
            if ctx.obj.get('verbose'):
                click.echo(f"Progress: {fraction * 100:.1f}%")

        click.echo(f"Computing {family} grid {config.width}x{config.height}...")
        grid = engine.compute_grid(fractal, progress_callback=progress_callback)

        retained = int(np.count_nonzero(~grid.result.escaped))
        label = "Converged points" if family == 'newton' else "Points inside"
        click.echo(f"Complete: {grid.compute_time:.2f}s using {grid.method}")
        click.echo(f"{label}: {retained} of {grid.iterations.size}")
        if family == 'newton':
            click.echo(f"Roots found: {len(grid.roots)}")
            for index, root in enumerate(grid.roots):
                click.echo(f"  [{index}] {engine.precision_config.format_number(root)}")

        _save_output(grid.iterations, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('family', type=click.Choice(['mandelbulb', 'julia3d', 'menger']))
@click.option('--max-iter', type=int, default=15, show_default=True, help='Maximum iterations')
@click.option('--power', type=float, default=8.0, show_default=True, help='Bulb power')
@click.option('--bailout', type=float, default=2.0, show_default=True, help='Bailout radius')
@click.option('--density', type=int, default=20000, show_default=True, help='Number of random samples')
@click.option('--constant', type=str, help='Julia-3D constant "x,y,z"')
@click.option('--level', type=int, default=2, show_default=True, help='Menger sponge level')
@click.option('--seed', type=int, help='Random seed')
@click.option('--output', '-o', type=click.Path(), help='Save points as .npy')
@click.pass_context
def bulb(ctx, family, max_iter, power, bailout, density, constant, level, seed, output):
    """
    Generate a 3D point cloud.

    FAMILY: mandelbulb, julia3d or menger
    """
    try:
        engine = FractalEngine(_engine_config(ctx, seed=seed))

        if family == 'menger':
            points = engine.generate_menger(level)
        else:
            const = None
            if constant:
                const = [float(p) for p in constant.split(',')]
                if len(const) != 3:
                    raise ValueError("Constant must be 'x,y,z'")
            points = engine.generate_bulb(family, max_iter, power, bailout, density, const)

        click.echo(f"{family}: {len(points)} points")
        if len(points):
            b = compute_bounds(points)
            click.echo(f"Bounds: x [{b.min_x:.3f}, {b.max_x:.3f}] "
                       f"y [{b.min_y:.3f}, {b.max_y:.3f}] z [{b.min_z:.3f}, {b.max_z:.3f}]")

        _save_output(points, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('preset')
@click.option('--iterations', '-n', type=int, default=50000, show_default=True, help='Number of points')
@click.option('--lam', type=float, default=0.5, show_default=True, help='Interpolation factor in (0, 1)')
@click.option('--target', type=click.Choice(TARGET_KINDS), default='vertices', show_default=True,
              help='Target points for solid names')
@click.option('--seed', type=int, help='Random seed')
@click.option('--output', '-o', type=click.Path(), help='Save points as .npy')
@click.pass_context
def ifs(ctx, preset, iterations, lam, target, seed, output):
    """
    Run a chaos game.

    PRESET: affine preset, polyhedral preset, sierpinski_tetrahedron or a solid name
    """
    try:
        engine = FractalEngine(_engine_config(ctx, seed=seed))
        points = engine.generate_ifs(preset, iterations, lam, target)
        click.echo(f"{preset}: {len(points)} points")
        _save_output(points, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('solid', type=click.Choice(list(SOLIDS)))
@click.option('--steps', type=int, default=30000, show_default=True, help='Number of points')
@click.option('--mode', type=click.Choice(['discrete', 'continuous']), default='discrete',
              show_default=True, help='Rotation angle policy')
@click.option('--seed', type=int, help='Random seed')
@click.option('--output', '-o', type=click.Path(), help='Save points as .npy')
@click.pass_context
def orbit(ctx, solid, steps, mode, seed, output):
    """Random walk of rotations about the symmetry axes of SOLID."""
    try:
        engine = FractalEngine(_engine_config(ctx, seed=seed))
        points = engine.generate_orbit(solid, steps, mode)
        click.echo(f"{solid} {mode} orbit: {len(points)} points")
        _save_output(points, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('layout', type=click.Choice(DENDRITE_LAYOUTS))
@click.option('--depth', type=int, default=6, show_default=True, help='Branching depth')
@click.option('--width', '-w', type=int, help='Canvas width')
@click.option('--height', '-h', type=int, help='Canvas height')
@click.option('--seed', type=int, help='Random seed')
@click.option('--output', '-o', type=click.Path(), help='Save segments as .npy')
@click.pass_context
def dendrite(ctx, layout, depth, width, height, seed, output):
    """Grow random dendrites in LAYOUT."""
    try:
        engine = FractalEngine(_engine_config(ctx, width=width, height=height, seed=seed))
        segments = engine.generate_dendrite(layout, depth)
        click.echo(f"{layout}: {len(segments)} segments")
        _save_output(segments, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('preset', type=click.Choice(list(LSYSTEM_PRESETS)))
@click.option('--iterations', '-n', type=int, default=4, show_default=True, help='Rewriting iterations')
@click.option('--width', '-w', type=int, help='Viewport width for the fit')
@click.option('--height', '-h', type=int, help='Viewport height for the fit')
@click.option('--output', '-o', type=click.Path(), help='Save segments as .npy')
@click.pass_context
def lsystem(ctx, preset, iterations, width, height, output):
    """Rewrite and draw an L-system PRESET."""
    try:
        config = _engine_config(ctx, width=width, height=height)
        system = get_preset(preset)

        _, factor = expansion_factors(system.rules)
        estimate = len(system.axiom) * factor ** iterations
        if estimate > LSYSTEM_WARN_LENGTH:
            logger.warning(f"Expansion may reach {estimate:,} symbols")

        symbols = system.generate(iterations)
        start = (0.0, 0.0, system.start_angle)
        bounds = turtle_bounds(symbols, system.angle, system.step, start, system.move_symbols)
        segments = interpret_turtle(symbols, system.angle, system.step, start, system.move_symbols)
        fit = fit_to_viewport(bounds, config.width, config.height)

        click.echo(f"{preset}: {len(segments)} segments")
        click.echo(f"Bounds: x [{bounds.min_x:.2f}, {bounds.max_x:.2f}] "
                   f"y [{bounds.min_y:.2f}, {bounds.max_y:.2f}]")
        click.echo(f"Fit to {config.width}x{config.height}: scale {fit.scale:.4f}, "
                   f"offset ({fit.offset_x:.2f}, {fit.offset_y:.2f})")

        _save_output(segments, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('depth', type=int)
@click.option('--size', type=float, default=400.0, show_default=True, help='Triangle side length')
@click.option('--output', '-o', type=click.Path(), help='Save segments as .npy')
@click.pass_context
def koch(ctx, depth, size, output):
    """Koch snowflake segments at DEPTH."""
    try:
        segments = koch_snowflake(depth, size)
        click.echo(f"Koch snowflake depth {depth}: {len(segments)} segments")
        _save_output(segments, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('family', type=click.Choice(list(CURVE_FAMILIES)))
@click.argument('order', type=int)
@click.option('--width', '-w', type=int, help='Canvas width')
@click.option('--height', '-h', type=int, help='Canvas height')
@click.option('--output', '-o', type=click.Path(), help='Save points as .npy')
@click.pass_context
def curve(ctx, family, order, width, height, output):
    """Space-filling curve FAMILY at ORDER."""
    try:
        engine = FractalEngine(_engine_config(ctx, width=width, height=height))
        points = engine.generate_curve(family, order)
        click.echo(f"{family} order {order}: {len(points)} points")
        _save_output(points, output)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.pass_context
def list_presets(ctx):
    """List available fractal types and presets."""
    try:
        click.echo("Escape-time fractals:")
        for name, description in FractalRegistry.list_fractals().items():
            click.echo(f"  {name}")
            if ctx.obj.get('verbose'):
                click.echo(f"    {description}")

        click.echo("\nJulia set presets:")
        for name, params in JULIA_PRESETS.items():
            click.echo(f"  {name}: c = {params.c}")

        click.echo("\nAffine IFS presets:")
        for name, maps in AFFINE_PRESETS.items():
            click.echo(f"  {name} ({len(maps)} maps)")

        click.echo("\nPolyhedral IFS presets:")
        for name, (solid, target, constraints) in POLY_IFS_PRESETS.items():
            click.echo(f"  {name}: {solid}/{target}")

        click.echo(f"\nSolids: {', '.join(SOLIDS)}")

        click.echo("\nDendrite layouts:")
        for name, description in dendrite_layouts().items():
            click.echo(f"  {name}: {description}")

        click.echo("\nL-system presets:")
        for name, system in LSYSTEM_PRESETS.items():
            click.echo(f"  {name}: axiom={system.axiom} angle={system.angle}")

        click.echo(f"\nSpace-filling curves: {', '.join(CURVE_FAMILIES)}")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.option('--size', type=str, default='400x300', show_default=True, help='Grid size (widthxheight)')
@click.option('--iterations', type=int, default=256, show_default=True, help='Maximum iterations')
@click.option('--multiprocessing', 'use_mp', is_flag=True, help='Include multiprocessing tiles')
@click.pass_context
def benchmark(ctx, size, iterations, use_mp):
    """Benchmark the escape-time backends."""
    try:
        try:
            width, height = map(int, size.split('x'))
        except ValueError:
            click.echo("Error: Invalid size format. Use 'widthxheight'", err=True)
            sys.exit(1)

        config = _engine_config(ctx, width=width, height=height, max_iterations=iterations,
                                use_multiprocessing=True if use_mp else None)
        engine = FractalEngine(config)

        click.echo("Fractal Engine Performance Benchmark")
        click.echo(f"Grid size: {width}x{height} ({width * height:,} pixels)")
        click.echo(f"Max iterations: {iterations}")

        start_time = time.time()
        results = engine.benchmark_performance()

        click.echo("\nPerformance Results:")
        for method, result in results['benchmarks'].items():
            click.echo(f"  {method.upper()}: {result['time']:.2f}s "
                       f"({result['pixels_per_second']:,.0f} pixels/sec)")
            if 'speedup' in result:
                click.echo(f"    Speedup: {result['speedup']:.2f}x")
        click.echo(f"\nTotal: {time.time() - start_time:.2f}s")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.option('--output', '-o', type=click.Path(), default='config_template.yaml',
              show_default=True, help='Output file path (.yaml, .yml or .json)')
@click.pass_context
def init_config(ctx, output):
    """Write a configuration file with the default values."""
    try:
        output_path = Path(output)
        if not output_path.suffix:
            output_path = output_path.with_suffix('.yaml')

        ConfigManager().save_file(EngineConfig(), output_path)
        click.echo(f"Configuration template created: {output_path}")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.pass_context
def system_info(ctx):
    """Display system capabilities."""
    try:
        memory = psutil.virtual_memory()

        click.echo("System Information:")
        click.echo(f"  CPU cores: {mp.cpu_count()}")
        click.echo(f"  Memory: {memory.total / (1024 ** 3):.1f} GB "
                   f"({memory.available / (1024 ** 3):.1f} GB available)")
        click.echo(f"  Numba: {numba.__version__}")
        click.echo(f"  NumPy: {np.__version__}")
        click.echo(f"  Recommended processes: {get_optimal_process_count()}")

    except Exception as e:
        _fail(ctx, e)


if __name__ == '__main__':
    main()

"""
Engine configuration.

``EngineConfig`` holds every knob of a grid computation. ``ConfigManager``
builds one from a JSON or YAML file, ``FRACTAL_ENGINE_*`` environment
variables and explicit overrides, applied in that order.
"""

import json
import os
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .core.precision import PRECISION_LEVELS, detect_precision_need

logger = logging.getLogger(__name__)

# Width of the default Mandelbrot view, used to express bounds as a zoom level
REFERENCE_SPAN = 3.5


@dataclass
class EngineConfig:
    """Configuration for escape-time grid computation."""

    # Grid parameters
    width: int = 800
    height: int = 600
    bounds: Tuple[float, float, float, float] = (-2.5, 1.0, -1.25, 1.25)  # xmin, xmax, ymin, ymax

    # Iteration parameters
    max_iterations: int = 256
    escape_radius: float = 2.0
    precision: str = 'double'  # 'single', 'double' or 'auto'
    newton_tolerance: float = 1e-6

    # Performance
    use_numba: bool = True
    use_multiprocessing: bool = False
    num_processes: Optional[int] = None
    tile_size: int = 256
    chunk_rows: int = 64

    # Randomised generators
    seed: Optional[int] = None

    def validate(self):
        """Validate configuration parameters."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Width and height must be positive")

        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")

        if self.escape_radius <= 0:
            raise ValueError("escape_radius must be positive")

        if self.newton_tolerance <= 0:
            raise ValueError("newton_tolerance must be positive")

        if len(self.bounds) != 4:
            raise ValueError("bounds must be (xmin, xmax, ymin, ymax)")

        xmin, xmax, ymin, ymax = self.bounds
        if xmin >= xmax or ymin >= ymax:
            raise ValueError("Invalid bounds: min values must be less than max")

        if self.precision not in PRECISION_LEVELS + ('auto',):
            raise ValueError(f"Unknown precision '{self.precision}'")

        if self.num_processes is not None and self.num_processes <= 0:
            raise ValueError("num_processes must be positive")

        if self.tile_size <= 0:
            raise ValueError("tile_size must be positive")

        if self.chunk_rows <= 0:
            raise ValueError("chunk_rows must be positive")

    @property
    def zoom_level(self) -> float:
        """Magnification of the bounds relative to the default view."""
        xmin, xmax, _, _ = self.bounds
        return REFERENCE_SPAN / (xmax - xmin)

    def resolved_precision(self) -> str:
        """Concrete precision level, resolving 'auto' from the zoom level."""
        if self.precision == 'auto':
            return detect_precision_need(self.zoom_level)
        return self.precision

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['bounds'] = list(self.bounds)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'EngineConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values = dict(data)
        if 'bounds' in values:
            values['bounds'] = tuple(float(v) for v in values['bounds'])
        return cls(**values)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"Cannot interpret '{value}' as a boolean")


def _parse_optional_int(value: str) -> Optional[int]:
    if value.strip().lower() in ('', 'none'):
        return None
    return int(value)


def parse_bounds(value: str) -> Tuple[float, float, float, float]:
    """Parse ``"xmin,xmax,ymin,ymax"``."""
    parts = [p.strip() for p in value.split(',')]
    if len(parts) != 4:
        raise ValueError("Bounds must be 'xmin,xmax,ymin,ymax'")
    return tuple(float(p) for p in parts)


_ENV_PARSERS = {
    'width': int,
    'height': int,
    'bounds': parse_bounds,
    'max_iterations': int,
    'escape_radius': float,
    'precision': str,
    'newton_tolerance': float,
    'use_numba': _parse_bool,
    'use_multiprocessing': _parse_bool,
    'num_processes': _parse_optional_int,
    'tile_size': int,
    'chunk_rows': int,
    'seed': _parse_optional_int,
}


class ConfigManager:
    """Loads and saves engine configuration."""

    ENV_PREFIX = 'FRACTAL_ENGINE_'

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Args:
            environ: Environment mapping (defaults to ``os.environ``)
        """
        self.environ = os.environ if environ is None else environ

    def load_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Read a configuration mapping from a JSON or YAML file.

        The format follows the suffix: ``.json`` is JSON, anything else is
        parsed as YAML.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found at '{path}'")

        with path.open('r', encoding='utf-8') as f:
            if path.suffix.lower() == '.json':
                data = json.load(f)
            else:
                data = yaml.safe_load(f)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file '{path}' must contain a mapping")

        logger.debug(f"Loaded {len(data)} config keys from {path}")
        return data

    def save_file(self, config: EngineConfig, path: Union[str, Path]):
        """Write ``config`` as JSON or YAML depending on the suffix."""
        path = Path(path)
        with path.open('w', encoding='utf-8') as f:
            if path.suffix.lower() == '.json':
                json.dump(config.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(config.to_dict(), f, sort_keys=False)
        logger.info(f"Configuration saved to {path}")

    def environment_overrides(self) -> Dict[str, Any]:
        """Collect ``FRACTAL_ENGINE_<FIELD>`` variables as typed values."""
        overrides = {}
        for name, parser in _ENV_PARSERS.items():
            raw = self.environ.get(self.ENV_PREFIX + name.upper())
            if raw is None:
                continue
            try:
                overrides[name] = parser(raw)
            except ValueError as e:
                raise ValueError(f"Invalid {self.ENV_PREFIX}{name.upper()}: {e}") from e
        if overrides:
            logger.debug(f"Environment overrides: {sorted(overrides)}")
        return overrides

    def build(self, path: Optional[Union[str, Path]] = None,
              overrides: Optional[Mapping[str, Any]] = None) -> EngineConfig:
        """
        Build a validated configuration.

        Args:
            path: Optional config file
            overrides: Explicit values; ``None`` entries are ignored

        Returns:
            Validated EngineConfig
        """
        data: Dict[str, Any] = {}
        if path is not None:
            data.update(self.load_file(path))
        data.update(self.environment_overrides())
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        config = EngineConfig.from_dict(data)
        config.validate()
        return config

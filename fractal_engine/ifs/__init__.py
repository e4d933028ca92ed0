"""Chaos-game and iterated-function-system generators."""

from .chaos_game import (
    AFFINE_PRESETS, AffineMap, ChaosConstraints, affine_chaos_game, chaos_game,
    interpolated_chaos_game, normalize_probabilities, sierpinski_tetrahedron,
)
from .polyhedra import SOLIDS, SYMMETRY_ANGLES, Polyhedron, poly_ifs, polyhedron_orbit, symmetry_orbit
from .dendrite import DendriteParameters, dendrite_forest, generate_dendrite
from .plane_maps import plane_orbit, plane_orbit_grid

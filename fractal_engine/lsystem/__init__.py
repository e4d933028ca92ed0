"""L-system rewriting and turtle interpretation."""

from .grammar import LSYSTEM_PRESETS, LSystem, rewrite
from .turtle import TurtlePose, fit_to_viewport, interpret_turtle, segments_to_polylines, turtle_bounds
from .koch import koch_segments, koch_snowflake

"""
L-system grammars and parallel rewriting.
"""

from typing import Dict, Mapping, Tuple, Any
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


def rewrite(axiom: str, rules: Mapping[str, str], iterations: int) -> str:
    """
    Apply ``rules`` to every symbol of ``axiom`` simultaneously, ``iterations`` times.

    Symbols without a rule are terminal and rewrite to themselves. Output
    length grows multiplicatively with ``iterations``; callers are expected
    to keep it bounded.

    Example:
        >>> rewrite("F", {"F": "F+F"}, 2)
        'F+F+F+F'
    """
    if iterations < 0:
        raise ValueError("iterations must be non-negative")

    result = axiom
    for i in range(iterations):
        result = ''.join(rules.get(symbol, symbol) for symbol in result)
        logger.debug(f"Rewrite pass {i + 1}: {len(result)} symbols")
    return result


@dataclass(frozen=True)
class LSystem:
    """
    Immutable L-system description.

    Attributes:
        axiom: Initial symbol string
        rules: Symbol -> replacement mapping
        angle: Turn angle in degrees for '+' and '-'
        step: Distance advanced by a move symbol
        start_angle: Initial turtle heading in degrees
        move_symbols: Symbols that advance the turtle and draw
    """

    axiom: str
    rules: Dict[str, str] = field(default_factory=dict)
    angle: float = 90.0
    step: float = 5.0
    start_angle: float = 0.0
    move_symbols: str = 'FG'

    def validate(self) -> None:
        if not self.axiom:
            raise ValueError("axiom must not be empty")
        for symbol in self.rules:
            if len(symbol) != 1:
                raise ValueError(f"Rule keys must be single symbols, got '{symbol}'")
        if self.step <= 0:
            raise ValueError("step must be positive")

    def generate(self, iterations: int) -> str:
        """Rewrite the axiom ``iterations`` times."""
        return rewrite(self.axiom, self.rules, iterations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'axiom': self.axiom,
            'rules': dict(self.rules),
            'angle': self.angle,
            'step': self.step,
            'start_angle': self.start_angle,
            'move_symbols': self.move_symbols,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LSystem':
        system = cls(**data)
        system.validate()
        return system


LSYSTEM_PRESETS: Dict[str, LSystem] = {
    'koch': LSystem('F--F--F', {'F': 'F+F--F+F'}, angle=60, step=5),
    'dragon': LSystem('FX', {'X': 'X+YF+', 'Y': '-FX-Y'}, angle=90, step=5),
    'sierpinski': LSystem('F-G-G', {'F': 'F-G+F+G-F', 'G': 'GG'}, angle=120, step=5),
    'plant': LSystem('X', {'X': 'F+[[X]-X]-F[-FX]+X', 'F': 'FF'}, angle=25, step=5,
                     start_angle=-90),
    'triangle': LSystem('F-G-G', {'F': 'F-G+F+G-F', 'G': 'GG'}, angle=120, step=5),
}


def get_preset(name: str) -> LSystem:
    system = LSYSTEM_PRESETS.get(name.lower())
    if system is None:
        raise ValueError(f"Unknown L-system preset '{name}'. Available: {', '.join(LSYSTEM_PRESETS)}")
    return system


def expansion_factors(rules: Mapping[str, str]) -> Tuple[Dict[str, int], int]:
    """
    Per-symbol replacement lengths and the largest of them.

    Useful for bounding output growth before calling ``rewrite``.
    """
    factors = {symbol: len(replacement) for symbol, replacement in rules.items()}
    return factors, max(factors.values(), default=1)

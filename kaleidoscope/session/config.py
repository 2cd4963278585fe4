"""
Session configuration.

Author: xwest
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping

from ..backend.llvm_backend import OptimizationLevel
from ..parser.operators import DEFAULT_PRECEDENCES


@dataclass
class SessionConfig:
    """Configuration parameters for a Kaleidoscope session"""

    # Diagnostics
    filename: str = "<stdin>"

    # Compilation
    optimization_level: OptimizationLevel = OptimizationLevel.O2
    anonymous_prefix: str = "__anon_expr"
    default_precedences: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_PRECEDENCES))

    # Echo what the session reads and evaluates
    echo_ir: bool = False
    echo_results: bool = False

    def __post_init__(self):
        if isinstance(self.optimization_level, int):
            self.optimization_level = OptimizationLevel(self.optimization_level)
        elif isinstance(self.optimization_level, str):
            self.optimization_level = OptimizationLevel[self.optimization_level.upper()]

        for symbol, precedence in self.default_precedences.items():
            if len(symbol) != 1:
                raise ValueError(f"operator symbol must be a single character, got {symbol!r}")
            if not isinstance(precedence, int):
                raise ValueError(f"precedence of {symbol!r} must be an integer")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'SessionConfig':
        """
        Build a config from plain data, e.g. a parsed settings file.

        Unknown keys are rejected. ``optimization_level`` may be given as
        an int (0-3) or a name ("O2").
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown session options: {', '.join(sorted(unknown))}")
        return cls(**dict(values))

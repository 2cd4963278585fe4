"""
Kaleidoscope Session Package

Incremental compile-and-execute driver and its state.

Author: xwest
"""

from .config import SessionConfig, OptimizationLevel
from .state import SessionState
from .driver import Session

__all__ = [
    "Session",
    "SessionConfig",
    "SessionState",
    "OptimizationLevel",
]

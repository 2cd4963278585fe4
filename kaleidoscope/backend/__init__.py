"""
Kaleidoscope Backend Package

LLVM code construction and JIT execution through llvmlite.

Author: xwest
"""

from .llvm_backend import LLVMBackend, CompilationUnit, OptimizationLevel, DOUBLE
from .runtime import RuntimeLibrary
from .errors import BackendError, BACKEND_ERROR_CODES

__all__ = [
    "LLVMBackend",
    "CompilationUnit",
    "OptimizationLevel",
    "DOUBLE",
    "RuntimeLibrary",
    "BackendError",
    "BACKEND_ERROR_CODES",
]

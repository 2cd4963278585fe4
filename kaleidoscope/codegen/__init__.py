"""
Kaleidoscope Code Generation Package

Lowers the AST to LLVM IR through the backend.

Key Features:
- Single dispatch over expression variants
- Shadow/restore scoping for parameters, 'for' and 'var/in'
- Forward declarations materialized from the prototype registry
- User-defined operators compiled as ordinary functions

Author: xwest
"""

from .codegen import CodeGenerator
from .scope import ScopeManager, UndoLog, UNBOUND
from .errors import (
    CodegenError, UnboundVariableError, UnknownFunctionError,
    ArgumentCountError, InvalidAssignmentError, RedefinitionError,
    NestingDepthError, CODEGEN_ERROR_CODES,
)

__all__ = [
    "CodeGenerator",
    "ScopeManager",
    "UndoLog",
    "UNBOUND",
    "CodegenError",
    "UnboundVariableError",
    "UnknownFunctionError",
    "ArgumentCountError",
    "InvalidAssignmentError",
    "RedefinitionError",
    "NestingDepthError",
    "CODEGEN_ERROR_CODES",
]

"""
Kaleidoscope Compiler Package

An incrementally compiled expression language with user-defined operators,
JIT compiled through LLVM (llvmlite).

Architecture:
    kaleidoscope/
    ├── lexer/           # Tokenization
    ├── parser/          # Precedence-climbing parser, AST, operator table
    ├── codegen/         # AST to LLVM IR, scoping
    ├── backend/         # llvmlite IR construction, MCJIT, runtime library
    └── session/         # Compile-and-execute driver

Author: xwest
License: MIT
"""

__version__ = "0.1.0"
__author__ = "xwest"
__license__ = "MIT"

from .lexer import Lexer
from .parser import Parser, OperatorTable
from .codegen import CodeGenerator
from .backend import LLVMBackend
from .session import Session, SessionConfig, SessionState, OptimizationLevel

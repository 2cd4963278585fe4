"""
Kaleidoscope Parser Package

Recursive-descent parser with precedence climbing for binary operators.

Key Features:
- Runtime-extensible binary operators via OperatorTable
- User-defined unary operators
- Tagged AST dataclasses with structural equality
- ParseError diagnostics with source locations

Author: xwest
"""

from .ast_nodes import (
    ASTNodeType, OperatorKind, Expression, NumberLiteral, VariableRef,
    Assignment, UnaryOp, BinaryOp, IfExpr, ForExpr, VarExpr, CallExpr,
    Prototype, FunctionDef, UNARY_PREFIX, BINARY_PREFIX,
    DEFAULT_BINARY_PRECEDENCE,
)
from .operators import OperatorTable, DEFAULT_PRECEDENCES, NOT_AN_OPERATOR
from .parser import Parser, parse_string
from .errors import ParseError, PARSE_ERROR_CODES

__all__ = [
    "Parser",
    "parse_string",
    "ParseError",
    "PARSE_ERROR_CODES",
    "OperatorTable",
    "DEFAULT_PRECEDENCES",
    "NOT_AN_OPERATOR",
    "ASTNodeType",
    "OperatorKind",
    "Expression",
    "NumberLiteral",
    "VariableRef",
    "Assignment",
    "UnaryOp",
    "BinaryOp",
    "IfExpr",
    "ForExpr",
    "VarExpr",
    "CallExpr",
    "Prototype",
    "FunctionDef",
    "UNARY_PREFIX",
    "BINARY_PREFIX",
    "DEFAULT_BINARY_PRECEDENCE",
]

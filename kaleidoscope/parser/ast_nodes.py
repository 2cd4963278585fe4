"""
Abstract Syntax Tree node definitions for Kaleidoscope.

Every expression is one of a closed set of variants, tagged with an
ASTNodeType. The code generator dispatches over the variants in a single
function, so adding a variant means adding a branch there as well.

Nodes compare structurally; source locations are carried along for
diagnostics but ignored by equality.

Author: xwest
"""

from typing import List, Optional, Tuple, ClassVar
from dataclasses import dataclass, field
from enum import Enum

from ..lexer.tokens import SourceLocation


class ASTNodeType(Enum):
    """Enumeration of all AST node types."""

    # Expressions
    NUMBER_LITERAL = "NumberLiteral"
    VARIABLE_REF = "VariableRef"
    ASSIGNMENT = "Assignment"
    UNARY_OP = "UnaryOp"
    BINARY_OP = "BinaryOp"
    IF_EXPR = "IfExpr"
    FOR_EXPR = "ForExpr"
    VAR_EXPR = "VarExpr"
    CALL_EXPR = "CallExpr"

    # Top-level
    PROTOTYPE = "Prototype"
    FUNCTION_DEF = "FunctionDef"


class OperatorKind(Enum):
    """What kind of operator, if any, a prototype declares."""
    NONE = 0
    UNARY = 1
    BINARY = 2


# Name prefixes for functions implementing user-defined operators
UNARY_PREFIX = "unary"
BINARY_PREFIX = "binary"

DEFAULT_BINARY_PRECEDENCE = 30


class Expression:
    """Base class for all expression nodes."""
    node_type: ClassVar[ASTNodeType]

    def children(self) -> List['Expression']:
        """Get all child nodes."""
        return []

    def __str__(self) -> str:
        location = getattr(self, "location", None)
        return f"{self.node_type.value}@{location}" if location else self.node_type.value


@dataclass
class NumberLiteral(Expression):
    """Numeric literal such as 1.0."""
    node_type: ClassVar[ASTNodeType] = ASTNodeType.NUMBER_LITERAL
    value: float
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)


@dataclass
class VariableRef(Expression):
    """Reference to a variable, like 'a'."""
    node_type: ClassVar[ASTNodeType] = ASTNodeType.VARIABLE_REF
    name: str
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)


@dataclass
class Assignment(Expression):
    """
    Assignment 'target = value'.

    The target is kept as parsed; whether it is a plain variable reference
    is checked structurally during code generation.
    """
    node_type: ClassVar[ASTNodeType] = ASTNodeType.ASSIGNMENT
    target: Expression
    value: Expression
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def children(self) -> List[Expression]:
        return [self.target, self.value]


@dataclass
class UnaryOp(Expression):
    """Application of a user-defined unary operator."""
    node_type: ClassVar[ASTNodeType] = ASTNodeType.UNARY_OP
    opcode: str
    operand: Expression
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def children(self) -> List[Expression]:
        return [self.operand]


@dataclass
class BinaryOp(Expression):
    """Binary operator application."""
    node_type: ClassVar[ASTNodeType] = ASTNodeType.BINARY_OP
    op: str
    left: Expression
    right: Expression
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def children(self) -> List[Expression]:
        return [self.left, self.right]


@dataclass
class IfExpr(Expression):
    """if/then/else; both branches are required and produce a value."""
    node_type: ClassVar[ASTNodeType] = ASTNodeType.IF_EXPR
    condition: Expression
    then_branch: Expression
    else_branch: Expression
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def children(self) -> List[Expression]:
        return [self.condition, self.then_branch, self.else_branch]


@dataclass
class ForExpr(Expression):
    """
    for var = start, end [, step] in body

    Always evaluates to 0.0. A missing step means 1.0.
    """
    node_type: ClassVar[ASTNodeType] = ASTNodeType.FOR_EXPR
    var_name: str
    start: Expression
    end: Expression
    step: Optional[Expression]
    body: Expression
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def children(self) -> List[Expression]:
        nodes = [self.start, self.end]
        if self.step is not None:
            nodes.append(self.step)
        nodes.append(self.body)
        return nodes


@dataclass
class VarExpr(Expression):
    """
    var a = 1, b in body

    Each initializer is evaluated before its own name is bound; earlier
    bindings of the group are already visible to it.
    """
    node_type: ClassVar[ASTNodeType] = ASTNodeType.VAR_EXPR
    bindings: List[Tuple[str, Optional[Expression]]]
    body: Expression
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def children(self) -> List[Expression]:
        nodes = [init for _, init in self.bindings if init is not None]
        nodes.append(self.body)
        return nodes


@dataclass
class CallExpr(Expression):
    """Function call."""
    node_type: ClassVar[ASTNodeType] = ASTNodeType.CALL_EXPR
    callee: str
    args: List[Expression]
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def children(self) -> List[Expression]:
        return list(self.args)


# ============================================================================
# Top-level nodes
# ============================================================================

@dataclass
class Prototype:
    """
    A function signature: name, parameter names, and operator information.

    Every parameter and the return value are doubles, so only the names
    need to be recorded.
    """
    node_type: ClassVar[ASTNodeType] = ASTNodeType.PROTOTYPE
    name: str
    params: List[str]
    kind: OperatorKind = OperatorKind.NONE
    precedence: int = DEFAULT_BINARY_PRECEDENCE
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    @property
    def is_unary_op(self) -> bool:
        return self.kind == OperatorKind.UNARY

    @property
    def is_binary_op(self) -> bool:
        return self.kind == OperatorKind.BINARY

    @property
    def operator_name(self) -> str:
        """The operator character for operator prototypes."""
        assert self.kind != OperatorKind.NONE, "not an operator prototype"
        return self.name[-1]

    @property
    def arity(self) -> int:
        return len(self.params)

    def __str__(self) -> str:
        return f"{self.name}({' '.join(self.params)})"


@dataclass
class FunctionDef:
    """A function definition: prototype plus body expression."""
    node_type: ClassVar[ASTNodeType] = ASTNodeType.FUNCTION_DEF
    prototype: Prototype
    body: Expression

    @property
    def name(self) -> str:
        return self.prototype.name

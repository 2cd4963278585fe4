"""
Kaleidoscope Code Generator

Walks the AST and drives the backend to build IR for the open compilation
unit. Expressions are handled by a single dispatch over the node variants;
each handler returns a backend value or raises a CodegenError.

Bindings introduced by function parameters, 'for' and 'var/in' go through
the ScopeManager and are always unwound when the construct is left, so a
failure half-way through a body never leaks bindings into later code.

Author: xwest
"""

from typing import Optional, TYPE_CHECKING

from ..parser.ast_nodes import (
    Expression, NumberLiteral, VariableRef, Assignment, UnaryOp, BinaryOp,
    IfExpr, ForExpr, VarExpr, CallExpr, Prototype, FunctionDef,
    UNARY_PREFIX, BINARY_PREFIX,
)
from ..lexer.tokens import SourceLocation
from .errors import (
    UnknownFunctionError, ArgumentCountError, InvalidAssignmentError,
    RedefinitionError, NestingDepthError,
)

if TYPE_CHECKING:
    from ..backend.llvm_backend import LLVMBackend
    from ..session.state import SessionState


# Operators with a direct backend instruction
ARITHMETIC_OPERATORS = ('+', '-', '*')


class CodeGenerator:
    """
    Generates backend IR from Kaleidoscope AST nodes.

    Uses the session state for the operator table, the prototype registry
    and the scope manager.
    """

    def __init__(self, backend: 'LLVMBackend', state: 'SessionState'):
        self.backend = backend
        self.state = state

    @property
    def scope(self):
        return self.state.scope

    @property
    def operators(self):
        return self.state.operators

    @property
    def prototypes(self):
        return self.state.prototypes

    # ========================================================================
    # Expressions
    # ========================================================================

    def generate_expression(self, node: Expression):
        """Generate code for ``node`` and return its value."""
        if isinstance(node, NumberLiteral):
            return self.backend.emit_constant(node.value)
        if isinstance(node, VariableRef):
            return self._generate_variable(node)
        if isinstance(node, Assignment):
            return self._generate_assignment(node)
        if isinstance(node, UnaryOp):
            return self._generate_unary(node)
        if isinstance(node, BinaryOp):
            return self._generate_binary(node)
        if isinstance(node, IfExpr):
            return self._generate_if(node)
        if isinstance(node, ForExpr):
            return self._generate_for(node)
        if isinstance(node, VarExpr):
            return self._generate_var(node)
        if isinstance(node, CallExpr):
            return self._generate_call(node)
        raise TypeError(f"Unknown expression node: {node!r}")

    def _generate_variable(self, node: VariableRef):
        storage = self.scope.current_handle(node.name, node.location)
        return self.backend.emit_load(storage, node.name)

    def _generate_assignment(self, node: Assignment):
        # The destination must be a plain variable, not an expression
        if not isinstance(node.target, VariableRef):
            raise InvalidAssignmentError(node.location)

        value = self.generate_expression(node.value)
        storage = self.scope.current_handle(node.target.name, node.target.location)
        self.backend.emit_store(value, storage)
        return value

    def _generate_unary(self, node: UnaryOp):
        operand = self.generate_expression(node.operand)

        function = self.resolve_function(UNARY_PREFIX + node.opcode)
        if function is None:
            raise UnknownFunctionError(UNARY_PREFIX + node.opcode, node.location,
                                       what="unary operator")
        self._check_arity(UNARY_PREFIX + node.opcode, function, 1, node.location)
        return self.backend.emit_call(function, [operand])

    def _generate_binary(self, node: BinaryOp):
        left = self.generate_expression(node.left)
        right = self.generate_expression(node.right)

        if node.op in ARITHMETIC_OPERATORS:
            return self.backend.emit_arithmetic(node.op, left, right)
        if node.op == '<':
            result = self.backend.emit_compare_less_than(left, right)
            return self.backend.emit_bool_to_scalar(result)

        # Not built in, so it must be a user-defined binary operator
        function = self.resolve_function(BINARY_PREFIX + node.op)
        if function is None:
            raise UnknownFunctionError(BINARY_PREFIX + node.op, node.location,
                                       what="binary operator")
        self._check_arity(BINARY_PREFIX + node.op, function, 2, node.location)
        return self.backend.emit_call(function, [left, right])

    def _generate_if(self, node: IfExpr):
        condition = self.generate_expression(node.condition)
        condition = self.backend.emit_truth_test(condition, "ifcond")

        then_block = self.backend.new_block("then")
        else_block = self.backend.new_block("else")
        merge_block = self.backend.new_block("ifcont")
        self.backend.emit_conditional_branch(condition, then_block, else_block)

        self.backend.set_insertion_block(then_block)
        then_value = self.generate_expression(node.then_branch)
        self.backend.emit_branch(merge_block)
        # Codegen of 'then' can change the current block
        then_block = self.backend.insertion_block

        self.backend.set_insertion_block(else_block)
        else_value = self.generate_expression(node.else_branch)
        self.backend.emit_branch(merge_block)
        else_block = self.backend.insertion_block

        self.backend.set_insertion_block(merge_block)
        return self.backend.emit_value_join([(then_value, then_block),
                                             (else_value, else_block)])

    def _generate_for(self, node: ForExpr):
        # The start value is computed before the loop variable is in scope
        start = self.generate_expression(node.start)
        storage = self.backend.allocate_local(node.var_name)
        self.backend.emit_store(start, storage)

        loop_block = self.backend.new_block("loop")
        self.backend.emit_branch(loop_block)
        self.backend.set_insertion_block(loop_block)

        with self.scope.frame() as undo:
            self.scope.bind(node.var_name, storage, undo)

            # The body's value is ignored, but it must generate
            self.generate_expression(node.body)

            if node.step is not None:
                step = self.generate_expression(node.step)
            else:
                step = self.backend.emit_constant(1.0)

            end = self.generate_expression(node.end)

            current = self.backend.emit_load(storage, node.var_name)
            next_value = self.backend.emit_arithmetic('+', current, step)
            self.backend.emit_store(next_value, storage)

            end = self.backend.emit_truth_test(end, "loopcond")
            after_block = self.backend.new_block("afterloop")
            self.backend.emit_conditional_branch(end, loop_block, after_block)
            self.backend.set_insertion_block(after_block)

        return self.backend.emit_constant(0.0)

    def _generate_var(self, node: VarExpr):
        with self.scope.frame() as undo:
            for name, init in node.bindings:
                # Evaluated before the name is bound, so 'var a = a' reads the outer a
                if init is not None:
                    value = self.generate_expression(init)
                else:
                    value = self.backend.emit_constant(0.0)

                storage = self.backend.allocate_local(name)
                self.backend.emit_store(value, storage)
                self.scope.bind(name, storage, undo)

            return self.generate_expression(node.body)

    def _generate_call(self, node: CallExpr):
        function = self.resolve_function(node.callee)
        if function is None:
            raise UnknownFunctionError(node.callee, node.location)
        self._check_arity(node.callee, function, len(node.args), node.location)

        args = [self.generate_expression(arg) for arg in node.args]
        return self.backend.emit_call(function, args)

    def _check_arity(self, name: str, function, found: int,
                     location: Optional[SourceLocation]):
        expected = self.backend.param_count(function)
        if expected != found:
            raise ArgumentCountError(name, expected, found, location)

    # ========================================================================
    # Functions
    # ========================================================================

    def resolve_function(self, name: str):
        """
        Find a callable function by name.

        The open unit is searched first; otherwise a declaration is
        materialized from the prototype registry. Returns None if the name
        was never declared.
        """
        function = self.backend.lookup_function(name)
        if function is not None:
            return function

        prototype = self.prototypes.get(name)
        if prototype is not None:
            return self.generate_prototype(prototype)

        return None

    def generate_prototype(self, prototype: Prototype):
        """Declare ``prototype`` in the open unit, reusing a matching declaration."""
        function = self.backend.lookup_function(prototype.name)
        if function is None:
            return self.backend.declare_function(prototype.name, prototype.params)

        expected = self.backend.param_count(function)
        if expected != prototype.arity:
            raise ArgumentCountError(
                prototype.name, expected, prototype.arity, prototype.location,
                message=f"Function '{prototype.name}' redeclared with a different number of parameters"
            )
        return function

    def generate_function(self, definition: FunctionDef):
        """
        Generate a complete function.

        The prototype is registered and, for binary operators, the
        precedence installed before the body is generated, so recursive
        calls resolve and the operator is usable right after this returns.
        On failure the body is dropped and the error re-raised.
        """
        prototype = definition.prototype
        if self.backend.is_defined(prototype.name):
            raise RedefinitionError(prototype.name, prototype.location)

        function = self.generate_prototype(prototype)
        self.prototypes[prototype.name] = prototype

        if prototype.is_binary_op:
            self.operators.install(prototype.operator_name, prototype.precedence)

        self.backend.begin_function_body(function)
        self.scope.reset()
        try:
            with self.scope.frame() as undo:
                # Parameters live in stack slots so they can be assigned
                for name, arg in zip(prototype.params, self.backend.params(function)):
                    storage = self.backend.allocate_local(name)
                    self.backend.emit_store(arg, storage)
                    self.scope.bind(name, storage, undo)

                body = self.generate_expression(definition.body)
                self.backend.emit_return(body)
        except RecursionError as e:
            self.backend.abandon_function(function)
            raise NestingDepthError(prototype.name, prototype.location) from e
        except Exception:
            self.backend.abandon_function(function)
            raise

        return function

    def generate_extern(self, prototype: Prototype):
        """Declare an external function and remember it for later units."""
        function = self.generate_prototype(prototype)
        self.prototypes[prototype.name] = prototype
        return function

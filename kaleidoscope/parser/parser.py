"""
Kaleidoscope Recursive-Descent Parser

Statements are parsed by plain recursive descent; binary expressions use
precedence climbing driven by an OperatorTable, which the code generator
extends as user-defined binary operators are compiled. New operators
therefore need no grammar changes.

The parser keeps exactly one token of lookahead in ``current`` and pulls
further tokens from the lexer on demand.

Author: xwest
"""

from typing import List, Optional, Tuple

from ..lexer.lexer import Lexer
from ..lexer.tokens import Token, TokenType
from .ast_nodes import (
    Expression, NumberLiteral, VariableRef, Assignment, UnaryOp, BinaryOp,
    IfExpr, ForExpr, VarExpr, CallExpr, Prototype, FunctionDef, OperatorKind,
    UNARY_PREFIX, BINARY_PREFIX, DEFAULT_BINARY_PRECEDENCE,
)
from .errors import (
    ParseError, create_unexpected_token_error, create_missing_token_error,
    create_expected_identifier_error, create_prototype_error,
    create_operand_count_error,
)
from .operators import OperatorTable, NOT_AN_OPERATOR


MIN_OPERATOR_PRECEDENCE = 1
MAX_OPERATOR_PRECEDENCE = 100


class Parser:
    """
    Kaleidoscope parser.

    Every parse_* method either returns a node or raises ParseError. On
    error, ``current`` is left at the offending token so that the caller
    can decide how to recover.
    """

    def __init__(self, lexer: Lexer, operators: Optional[OperatorTable] = None):
        """
        Initialize the parser and prime the lookahead token.

        Args:
            lexer: Token source
            operators: Binary operator table, shared with the code generator
        """
        self.lexer = lexer
        self.operators = operators if operators is not None else OperatorTable()
        self.current: Token = self.lexer.next_token()

    def next_token(self) -> Token:
        """Consume the current token and return the new lookahead."""
        self.current = self.lexer.next_token()
        return self.current

    # ========================================================================
    # Top-level constructs
    # ========================================================================

    def parse_definition(self) -> FunctionDef:
        """definition ::= 'def' prototype expression"""
        self.next_token()  # eat def
        prototype = self.parse_prototype()
        body = self.parse_expression()
        return FunctionDef(prototype, body)

    def parse_extern(self) -> Prototype:
        """external ::= 'extern' prototype"""
        self.next_token()  # eat extern
        return self.parse_prototype()

    def parse_top_level_expr(self, name: str) -> FunctionDef:
        """
        toplevelexpr ::= expression

        The expression is wrapped in a zero-argument function called ``name``.
        """
        location = self.current.location
        body = self.parse_expression()
        return FunctionDef(Prototype(name, [], location=location), body)

    def parse_prototype(self) -> Prototype:
        """
        prototype
            ::= id '(' id* ')'
            ::= 'unary' CHAR '(' id ')'
            ::= 'binary' CHAR number? '(' id id ')'
        """
        token = self.current
        precedence = DEFAULT_BINARY_PRECEDENCE

        if token.type == TokenType.IDENTIFIER:
            name = token.value
            kind = OperatorKind.NONE
            self.next_token()
        elif token.type == TokenType.UNARY:
            self.next_token()
            if self.current.type != TokenType.CHAR:
                raise create_prototype_error("Expected unary operator", self.current, "P005")
            name = UNARY_PREFIX + self.current.value
            kind = OperatorKind.UNARY
            self.next_token()
        elif token.type == TokenType.BINARY:
            self.next_token()
            if self.current.type != TokenType.CHAR:
                raise create_prototype_error("Expected binary operator", self.current, "P005")
            name = BINARY_PREFIX + self.current.value
            kind = OperatorKind.BINARY
            self.next_token()

            # Read the precedence if present
            if self.current.type == TokenType.NUMBER:
                value = self.current.value
                if value < MIN_OPERATOR_PRECEDENCE or value > MAX_OPERATOR_PRECEDENCE:
                    raise ParseError(
                        message="invalid precedence: must be 1..100",
                        location=self.current.location,
                        token=self.current,
                        code="P006",
                    )
                precedence = int(value)
                self.next_token()
        else:
            raise create_prototype_error("Expected function name in prototype", token)

        if not self.current.is_char('('):
            raise create_prototype_error("Expected '(' in prototype", self.current)

        params: List[str] = []
        while self.next_token().type == TokenType.IDENTIFIER:
            params.append(self.current.value)
        if not self.current.is_char(')'):
            raise create_prototype_error("Expected ')' in prototype", self.current)
        closing = self.current
        self.next_token()  # eat ')'

        # Verify the right number of names for an operator
        if kind == OperatorKind.UNARY and len(params) != 1:
            raise create_operand_count_error("unary", 1, len(params), closing)
        if kind == OperatorKind.BINARY and len(params) != 2:
            raise create_operand_count_error("binary", 2, len(params), closing)

        return Prototype(name, params, kind, precedence, location=token.location)

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_expression(self) -> Expression:
        """expression ::= unary binoprhs"""
        lhs = self.parse_unary()
        return self._parse_bin_op_rhs(0, lhs)

    def _token_precedence(self) -> int:
        """Precedence of the pending binary operator, or -1."""
        if self.current.type != TokenType.CHAR:
            return NOT_AN_OPERATOR
        return self.operators.precedence(self.current.value)

    def _parse_bin_op_rhs(self, min_precedence: int, lhs: Expression) -> Expression:
        """
        binoprhs ::= (binop unary)*

        Operators binding at least as tightly as ``min_precedence`` are
        folded into ``lhs``, left-associatively. A tighter operator after
        the right operand takes that operand as its own left side first.
        """
        while True:
            precedence = self._token_precedence()
            if precedence < min_precedence:
                return lhs

            op_token = self.current
            self.next_token()  # eat binop

            rhs = self.parse_unary()

            if precedence < self._token_precedence():
                rhs = self._parse_bin_op_rhs(precedence + 1, rhs)

            if op_token.value == '=':
                lhs = Assignment(lhs, rhs, location=op_token.location)
            else:
                lhs = BinaryOp(op_token.value, lhs, rhs, location=op_token.location)

    def parse_unary(self) -> Expression:
        """
        unary
            ::= primary
            ::= CHAR unary
        """
        token = self.current
        # Anything other than a raw character must be a primary expression
        if token.type != TokenType.CHAR or token.value in ('(', ','):
            return self.parse_primary()

        self.next_token()
        operand = self.parse_unary()
        return UnaryOp(token.value, operand, location=token.location)

    def parse_primary(self) -> Expression:
        """
        primary
            ::= identifierexpr
            ::= numberexpr
            ::= parenexpr
            ::= ifexpr
            ::= forexpr
            ::= varexpr
        """
        token = self.current
        if token.type == TokenType.IDENTIFIER:
            return self._parse_identifier_expr()
        if token.type == TokenType.NUMBER:
            return self._parse_number_expr()
        if token.is_char('('):
            return self._parse_paren_expr()
        if token.type == TokenType.IF:
            return self._parse_if_expr()
        if token.type == TokenType.FOR:
            return self._parse_for_expr()
        if token.type == TokenType.VAR:
            return self._parse_var_expr()
        raise create_unexpected_token_error("unknown token when expecting an expression", token)

    def _parse_number_expr(self) -> NumberLiteral:
        """numberexpr ::= number"""
        token = self.current
        self.next_token()  # consume the number
        return NumberLiteral(token.value, location=token.location)

    def _parse_paren_expr(self) -> Expression:
        """parenexpr ::= '(' expression ')'"""
        self.next_token()  # eat (
        expr = self.parse_expression()
        if not self.current.is_char(')'):
            raise ParseError(
                message="expected ')'",
                location=self.current.location,
                token=self.current,
                code="P002",
                help_text=f"Found {self.current.describe()}."
            )
        self.next_token()  # eat )
        return expr

    def _parse_identifier_expr(self) -> Expression:
        """
        identifierexpr
            ::= identifier
            ::= identifier '(' expression* ')'
        """
        token = self.current
        self.next_token()  # eat identifier

        if not self.current.is_char('('):
            return VariableRef(token.value, location=token.location)

        # Call
        self.next_token()  # eat (
        args: List[Expression] = []
        if not self.current.is_char(')'):
            while True:
                args.append(self.parse_expression())
                if self.current.is_char(')'):
                    break
                if not self.current.is_char(','):
                    raise ParseError(
                        message="Expected ')' or ',' in argument list",
                        location=self.current.location,
                        token=self.current,
                        code="P008",
                        help_text=f"Found {self.current.describe()}."
                    )
                self.next_token()

        self.next_token()  # eat )
        return CallExpr(token.value, args, location=token.location)

    def _parse_if_expr(self) -> IfExpr:
        """ifexpr ::= 'if' expression 'then' expression 'else' expression"""
        location = self.current.location
        self.next_token()  # eat if

        condition = self.parse_expression()

        if self.current.type != TokenType.THEN:
            raise create_missing_token_error("then", self.current)
        self.next_token()

        then_branch = self.parse_expression()

        if self.current.type != TokenType.ELSE:
            raise create_missing_token_error("else", self.current)
        self.next_token()

        else_branch = self.parse_expression()
        return IfExpr(condition, then_branch, else_branch, location=location)

    def _parse_for_expr(self) -> ForExpr:
        """forexpr ::= 'for' identifier '=' expr ',' expr (',' expr)? 'in' expression"""
        location = self.current.location
        self.next_token()  # eat for

        if self.current.type != TokenType.IDENTIFIER:
            raise create_expected_identifier_error("after for", self.current)
        var_name = self.current.value
        self.next_token()  # eat identifier

        if not self.current.is_char('='):
            raise create_missing_token_error("'='", self.current, "after for")
        self.next_token()  # eat '='

        start = self.parse_expression()
        if not self.current.is_char(','):
            raise create_missing_token_error("','", self.current, "after for start value")
        self.next_token()

        end = self.parse_expression()

        # The step value is optional
        step = None
        if self.current.is_char(','):
            self.next_token()
            step = self.parse_expression()

        if self.current.type != TokenType.IN:
            raise create_missing_token_error("'in'", self.current, "after for")
        self.next_token()  # eat 'in'

        body = self.parse_expression()
        return ForExpr(var_name, start, end, step, body, location=location)

    def _parse_var_expr(self) -> VarExpr:
        """varexpr ::= 'var' identifier ('=' expression)? (',' identifier ('=' expression)?)* 'in' expression"""
        location = self.current.location
        self.next_token()  # eat var

        bindings: List[Tuple[str, Optional[Expression]]] = []

        # At least one variable name is required
        if self.current.type != TokenType.IDENTIFIER:
            raise create_expected_identifier_error("after var", self.current)

        while True:
            name = self.current.value
            self.next_token()  # eat identifier

            # Read the optional initializer
            init = None
            if self.current.is_char('='):
                self.next_token()  # eat the '='
                init = self.parse_expression()

            bindings.append((name, init))

            # End of var list, exit loop
            if not self.current.is_char(','):
                break
            self.next_token()  # eat the ','

            if self.current.type != TokenType.IDENTIFIER:
                raise create_expected_identifier_error("list after var", self.current)

        if self.current.type != TokenType.IN:
            raise create_missing_token_error("'in'", self.current, "keyword after 'var'")
        self.next_token()  # eat in

        body = self.parse_expression()
        return VarExpr(bindings, body, location=location)


def parse_string(source: str, operators: Optional[OperatorTable] = None,
                 filename: str = "<string>") -> Expression:
    """
    Convenience function to parse a single expression.

    Args:
        source: Expression source text
        operators: Operator table to use (defaults to a fresh one)
        filename: Filename for error reporting

    Returns:
        The parsed expression
    """
    parser = Parser(Lexer(source, filename), operators)
    return parser.parse_expression()

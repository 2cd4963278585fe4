"""
Test suite for the Kaleidoscope parser.

Tests cover:
- Precedence climbing and associativity
- Operator table lookups and runtime-installed operators
- Every primary expression form
- Function, operator and extern prototypes
- Parse errors and where they leave the lookahead

Author: xwest
"""

import itertools
import unittest
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from kaleidoscope.lexer.lexer import Lexer
from kaleidoscope.lexer.tokens import TokenType
from kaleidoscope.parser.parser import Parser, parse_string
from kaleidoscope.parser.operators import OperatorTable, DEFAULT_PRECEDENCES, NOT_AN_OPERATOR
from kaleidoscope.parser.errors import ParseError
from kaleidoscope.parser.ast_nodes import (
    NumberLiteral, VariableRef, Assignment, UnaryOp, BinaryOp, IfExpr,
    ForExpr, VarExpr, CallExpr, Prototype, FunctionDef, OperatorKind,
)


def var(name):
    return VariableRef(name)


def num(value):
    return NumberLiteral(float(value))


class TestOperatorTable(unittest.TestCase):
    """Test cases for the operator precedence table."""

    def test_defaults(self):
        table = OperatorTable()
        self.assertEqual(table.precedence('='), 2)
        self.assertEqual(table.precedence('<'), 10)
        self.assertEqual(table.precedence('+'), 20)
        self.assertEqual(table.precedence('-'), 30)
        self.assertEqual(table.precedence('*'), 40)

    def test_unknown_and_non_positive_are_not_operators(self):
        table = OperatorTable({'+': 20, '~': 0, '^': -4})
        self.assertEqual(table.precedence('&'), NOT_AN_OPERATOR)
        self.assertEqual(table.precedence('~'), NOT_AN_OPERATOR)
        self.assertEqual(table.precedence('^'), NOT_AN_OPERATOR)
        self.assertEqual(table.precedence(None), NOT_AN_OPERATOR)
        self.assertNotIn('~', table)
        self.assertIn('+', table)

    def test_install(self):
        table = OperatorTable()
        table.install('|', 5)
        self.assertEqual(table.precedence('|'), 5)
        table.install('|', 7)
        self.assertEqual(table.precedence('|'), 7)
        with self.assertRaises(ValueError):
            table.install('||', 5)

    def test_tables_are_independent(self):
        first = OperatorTable()
        first.install('&', 6)
        self.assertFalse(OperatorTable().is_binary_operator('&'))
        self.assertNotIn('&', DEFAULT_PRECEDENCES)


class TestPrecedenceClimbing(unittest.TestCase):
    """Test cases for binary expression structure."""

    def test_tighter_operator_on_the_right(self):
        self.assertEqual(parse_string("a+b*c"),
                         BinaryOp('+', var('a'), BinaryOp('*', var('b'), var('c'))))

    def test_tighter_operator_on_the_left(self):
        self.assertEqual(parse_string("a*b+c"),
                         BinaryOp('+', BinaryOp('*', var('a'), var('b')), var('c')))

    def test_left_associative(self):
        self.assertEqual(parse_string("a-b-c"),
                         BinaryOp('-', BinaryOp('-', var('a'), var('b')), var('c')))

    def test_all_default_operator_pairs(self):
        """a OP1 b OP2 c groups left unless OP2 binds strictly tighter."""
        table = OperatorTable()
        for op1, op2 in itertools.product('<+-*', repeat=2):
            tree = parse_string(f"a {op1} b {op2} c", table)
            if table.precedence(op1) >= table.precedence(op2):
                expected = BinaryOp(op2, BinaryOp(op1, var('a'), var('b')), var('c'))
            else:
                expected = BinaryOp(op1, var('a'), BinaryOp(op2, var('b'), var('c')))
            self.assertEqual(tree, expected, f"{op1} then {op2}")

    def test_parentheses_override_precedence(self):
        self.assertEqual(parse_string("(a+b)*c"),
                         BinaryOp('*', BinaryOp('+', var('a'), var('b')), var('c')))

    def test_longer_chain(self):
        self.assertEqual(
            parse_string("a<b+c*d"),
            BinaryOp('<', var('a'), BinaryOp('+', var('b'), BinaryOp('*', var('c'), var('d'))))
        )

    def test_assignment(self):
        self.assertEqual(parse_string("x = y + 1"),
                         Assignment(var('x'), BinaryOp('+', var('y'), num(1))))

    def test_assignment_keeps_arbitrary_target(self):
        """Whether the target is a variable is checked later, not here."""
        self.assertEqual(parse_string("(x+1) = 2"),
                         Assignment(BinaryOp('+', var('x'), num(1)), num(2)))

    def test_undeclared_operator_stops_expression(self):
        parser = Parser(Lexer("a & b"), OperatorTable())
        self.assertEqual(parser.parse_expression(), var('a'))
        self.assertTrue(parser.current.is_char('&'))

    def test_installed_operator_takes_part_immediately(self):
        table = OperatorTable()
        table.install('&', 5)
        self.assertEqual(parse_string("a & b + c", table),
                         BinaryOp('&', var('a'), BinaryOp('+', var('b'), var('c'))))
        table.install('&', 50)
        self.assertEqual(parse_string("a & b + c", table),
                         BinaryOp('+', BinaryOp('&', var('a'), var('b')), var('c')))


class TestPrimaryExpressions(unittest.TestCase):
    """Test cases for primary and unary expressions."""

    def test_number_and_variable(self):
        self.assertEqual(parse_string("4.5"), num(4.5))
        self.assertEqual(parse_string("foo"), var('foo'))

    def test_call(self):
        self.assertEqual(parse_string("foo(1, bar, 2+3)"),
                         CallExpr('foo', [num(1), var('bar'), BinaryOp('+', num(2), num(3))]))
        self.assertEqual(parse_string("foo()"), CallExpr('foo', []))

    def test_if(self):
        self.assertEqual(parse_string("if x < 3 then 1 else 2"),
                         IfExpr(BinaryOp('<', var('x'), num(3)), num(1), num(2)))

    def test_for_with_step(self):
        self.assertEqual(parse_string("for i = 1, i < n, 2 in foo(i)"),
                         ForExpr('i', num(1), BinaryOp('<', var('i'), var('n')), num(2),
                                 CallExpr('foo', [var('i')])))

    def test_for_without_step(self):
        node = parse_string("for i = 0, i < 5 in i")
        self.assertIsInstance(node, ForExpr)
        self.assertIsNone(node.step)

    def test_var(self):
        self.assertEqual(parse_string("var a = 1, b in a + b"),
                         VarExpr([('a', num(1)), ('b', None)], BinaryOp('+', var('a'), var('b'))))

    def test_unary(self):
        self.assertEqual(parse_string("!x"), UnaryOp('!', var('x')))
        self.assertEqual(parse_string("-!x"), UnaryOp('-', UnaryOp('!', var('x'))))

    def test_unary_binds_tighter_than_binary(self):
        self.assertEqual(parse_string("-a + b"),
                         BinaryOp('+', UnaryOp('-', var('a')), var('b')))

    def test_children(self):
        node = parse_string("for i = 1, i < 2 in i")
        self.assertEqual(len(node.children()), 3)
        self.assertEqual(str(num(1)), "NumberLiteral")

    def test_equality_ignores_locations(self):
        located = parse_string("a+b")
        self.assertIsNotNone(located.location)
        self.assertEqual(located, BinaryOp('+', var('a'), var('b')))


class TestPrototypes(unittest.TestCase):
    """Test cases for definitions, externs and prototypes."""

    def _parser(self, source: str) -> Parser:
        return Parser(Lexer(source), OperatorTable())

    def test_definition(self):
        definition = self._parser("def foo(a b) a*b").parse_definition()
        self.assertIsInstance(definition, FunctionDef)
        self.assertEqual(definition.prototype, Prototype('foo', ['a', 'b']))
        self.assertEqual(definition.body, BinaryOp('*', var('a'), var('b')))
        self.assertEqual(definition.name, 'foo')

    def test_extern(self):
        prototype = self._parser("extern sin(x)").parse_extern()
        self.assertEqual(prototype, Prototype('sin', ['x']))
        self.assertEqual(prototype.kind, OperatorKind.NONE)

    def test_no_parameters(self):
        self.assertEqual(self._parser("extern now()").parse_extern().params, [])

    def test_binary_operator_prototype(self):
        prototype = self._parser("def binary| 5 (LHS RHS) 0").parse_definition().prototype
        self.assertEqual(prototype.name, 'binary|')
        self.assertTrue(prototype.is_binary_op)
        self.assertEqual(prototype.operator_name, '|')
        self.assertEqual(prototype.precedence, 5)
        self.assertEqual(prototype.params, ['LHS', 'RHS'])

    def test_binary_operator_default_precedence(self):
        prototype = self._parser("def binary: (x y) y").parse_definition().prototype
        self.assertEqual(prototype.precedence, 30)

    def test_unary_operator_prototype(self):
        prototype = self._parser("def unary!(v) v").parse_definition().prototype
        self.assertEqual(prototype.name, 'unary!')
        self.assertTrue(prototype.is_unary_op)
        self.assertEqual(prototype.arity, 1)

    def test_top_level_expression(self):
        definition = self._parser("1+2").parse_top_level_expr("__anon_expr1")
        self.assertEqual(definition.prototype, Prototype('__anon_expr1', []))
        self.assertEqual(definition.body, BinaryOp('+', num(1), num(2)))

    def test_parsing_does_not_install_operators(self):
        parser = self._parser("def binary& 5 (a b) a")
        parser.parse_definition()
        self.assertFalse(parser.operators.is_binary_operator('&'))


class TestParseErrors(unittest.TestCase):
    """Test cases for parse errors."""

    def _error(self, source: str, method: str = "parse_expression") -> ParseError:
        parser = Parser(Lexer(source), OperatorTable())
        with self.assertRaises(ParseError) as context:
            getattr(parser, method)()
        context.exception.parser = parser
        return context.exception

    def test_unterminated_parameter_list(self):
        error = self._error("def foo(", "parse_definition")
        self.assertEqual(error.message, "Expected ')' in prototype")
        self.assertEqual(error.parser.current.type, TokenType.EOF)

    def test_missing_function_name(self):
        error = self._error("def 1(x) x", "parse_definition")
        self.assertEqual(error.message, "Expected function name in prototype")

    def test_missing_open_paren(self):
        error = self._error("extern foo x", "parse_extern")
        self.assertEqual(error.message, "Expected '(' in prototype")

    def test_invalid_precedence(self):
        for source in ("def binary| 200 (a b) a", "def binary| 0 (a b) a"):
            error = self._error(source, "parse_definition")
            self.assertEqual(error.message, "invalid precedence: must be 1..100")

    def test_operator_arity(self):
        error = self._error("def unary!(a b) a", "parse_definition")
        self.assertEqual(error.message, "Invalid number of operands for operator")
        error = self._error("def binary| (a) a", "parse_definition")
        self.assertEqual(error.message, "Invalid number of operands for operator")

    def test_operator_must_be_a_character(self):
        error = self._error("def binary foo (a b) a", "parse_definition")
        self.assertEqual(error.message, "Expected binary operator")
        error = self._error("def unary 4 (a) a", "parse_definition")
        self.assertEqual(error.message, "Expected unary operator")

    def test_argument_list(self):
        error = self._error("foo(1 2)")
        self.assertEqual(error.message, "Expected ')' or ',' in argument list")
        self.assertEqual(error.token.value, 2.0)

    def test_if_keywords(self):
        self.assertEqual(self._error("if x 1 else 2").message, "expected then")
        self.assertEqual(self._error("if x then 1").message, "expected else")

    def test_for_errors(self):
        self.assertEqual(self._error("for 1").message, "expected identifier after for")
        self.assertEqual(self._error("for i 1").message, "expected '=' after for")
        self.assertEqual(self._error("for i = 1 in i").message,
                         "expected ',' after for start value")
        self.assertEqual(self._error("for i = 1, 2 i").message, "expected 'in' after for")

    def test_var_errors(self):
        self.assertEqual(self._error("var 1").message, "expected identifier after var")
        self.assertEqual(self._error("var a, 1").message, "expected identifier list after var")
        self.assertEqual(self._error("var a = 1 a").message,
                         "expected 'in' keyword after 'var'")

    def test_unclosed_paren(self):
        self.assertEqual(self._error("(1 + 2").message, "expected ')'")

    def test_unknown_token(self):
        error = self._error("then")
        self.assertEqual(error.message, "unknown token when expecting an expression")
        self.assertEqual(error.diagnostic.code, "P001")

    def test_diagnostic_rendering(self):
        error = self._error("def foo(", "parse_definition")
        rendered = str(error)
        self.assertTrue(rendered.startswith("ERROR: [P004] Expected ')' in prototype"))
        self.assertIn("--> <unknown>:1:", rendered)


if __name__ == "__main__":
    unittest.main()

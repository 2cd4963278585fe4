"""
Test suite for Kaleidoscope code generation and the LLVM backend.

Tests cover:
- IR shape for comparisons, conditionals and mutable locals
- Evaluation of every expression form through the JIT
- Scope restoration after 'for' and 'var', including on failure
- Function redefinition, forward declarations and cross-unit calls
- Codegen errors and unresolved externs
- Object file emission

Author: xwest
"""

import io
import os
import sys
import tempfile
import unittest

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from kaleidoscope.lexer.lexer import Lexer
from kaleidoscope.parser.parser import Parser
from kaleidoscope.parser.ast_nodes import (
    Prototype, FunctionDef, NumberLiteral, BinaryOp, UnaryOp,
)
from kaleidoscope.codegen.codegen import CodeGenerator
from kaleidoscope.codegen.errors import (
    UnboundVariableError, UnknownFunctionError, ArgumentCountError,
    InvalidAssignmentError, RedefinitionError, NestingDepthError,
)
from kaleidoscope.backend.llvm_backend import LLVMBackend, OptimizationLevel
from kaleidoscope.backend.runtime import RuntimeLibrary
from kaleidoscope.backend.errors import BackendError
from kaleidoscope.session.state import SessionState


class CodegenTestCase(unittest.TestCase):
    """Shared fixtures: one backend, one session state, one open unit."""

    optimization_level = OptimizationLevel.O0

    def setUp(self):
        self.output = io.StringIO()
        self.backend = LLVMBackend(self.optimization_level, RuntimeLibrary(self.output))
        self.state = SessionState.create()
        self.codegen = CodeGenerator(self.backend, self.state)
        self.unit = self.backend.open_unit()
        self._count = 0

    def _parser(self, source: str) -> Parser:
        return Parser(Lexer(source), self.state.operators)

    def _define(self, source: str):
        """Generate a 'def' into the open unit."""
        return self.codegen.generate_function(self._parser(source).parse_definition())

    def _extern(self, source: str):
        return self.codegen.generate_extern(self._parser(source).parse_extern())

    def _run(self, source: str) -> float:
        """Compile an expression, finalize the unit and run it."""
        self._count += 1
        name = f"__test_expr{self._count}"
        definition = self._parser(source).parse_top_level_expr(name)
        self.codegen.generate_function(definition)
        try:
            return self.backend.finalize_and_execute_anonymous(self.unit, name)
        finally:
            self.unit = self.backend.open_unit()


class TestGeneratedIR(CodegenTestCase):
    """Test cases for the IR produced by the code generator."""

    def test_less_than_is_unordered_and_converted(self):
        ir_text = str(self._define("def lt(a b) a < b"))
        self.assertIn("fcmp ult", ir_text)
        self.assertIn("uitofp", ir_text)

    def test_if_uses_truth_test_and_phi(self):
        ir_text = str(self._define("def pick(c) if c then 1 else 2"))
        self.assertIn("fcmp one", ir_text)
        self.assertRegex(ir_text, r"phi\s+double")

    def test_parameters_are_mutable_locals(self):
        ir_text = str(self._define("def id(x) x"))
        self.assertIn("alloca double", ir_text)
        self.assertIn("store double", ir_text)

    def test_allocas_precede_other_entry_instructions(self):
        """Locals for parameters, var and for all sit at the top of the entry block."""
        function = self._define("def f(x) var y = x in (for i = 1, i < y in x = x + i) + x")
        opnames = [instr.opname for instr in function.entry_basic_block.instructions]
        self.assertEqual(opnames[:3], ["alloca"] * 3)
        self.assertNotIn("alloca", opnames[3:])
        self.assertEqual(opnames[-1], "br")
        for block in function.blocks:
            self.assertTrue(block.is_terminated, block.name)
            self.assertIs(block.instructions[-1], block.terminator)

    def test_parameter_function_is_callable(self):
        self._define("def inc(x) x + 1")
        self.assertEqual(self._run("inc(1)"), 2.0)

    def test_extern_is_a_declaration(self):
        function = self._extern("extern sin(x)")
        self.assertFalse(self.backend.has_body(function))
        self.assertIn("declare double @\"sin\"(double", str(function))

    def test_unit_carries_native_triple(self):
        self.assertEqual(self.unit.module.triple, self.backend.triple)


class TestEvaluation(CodegenTestCase):
    """Test cases that run generated code."""

    def test_expressions_match_direct_evaluation(self):
        cases = [
            ("1+2*3", 7.0),
            ("if 0 then 1 else 2", 2.0),
            ("if 3 then 1 else 2", 1.0),
            ("(4-1)*2", 6.0),
            ("2 < 3", 1.0),
            ("3 < 2", 0.0),
            ("var a = 2, b = 5 in a*b", 10.0),
            ("var x in x", 0.0),
            ("var x = 1 in (x = 4) + x", 8.0),
        ]
        for source, expected in cases:
            self.assertEqual(self._run(source), expected, source)

    def test_for_always_yields_zero(self):
        self.assertEqual(self._run("for i = 1, i < 5, 1 in i"), 0.0)
        self.assertEqual(self._run("for i = 1, i < 5 in i*100"), 0.0)

    def test_var_initializer_sees_outer_binding(self):
        self.assertEqual(self._run("var x = 1 in var x = x in x"), 1.0)

    def test_var_initializers_see_earlier_pairs(self):
        self.assertEqual(self._run("var a = 1 in var a = 5, b = a in b"), 5.0)
        self.assertEqual(self._run("var a = 1, b = a + 1 in b"), 2.0)

    def test_loop_accumulates(self):
        self._define("def sumto(n) var acc = 0 in (for i = 1, i < n in acc = acc + i) + acc")
        self.assertEqual(self._run("sumto(4)"), 10.0)

    def test_recursion(self):
        self._define("def fib(x) if x < 3 then 1 else fib(x-1)+fib(x-2)")
        self.assertEqual(self._run("fib(10)"), 55.0)

    def test_forward_declaration_through_extern(self):
        self._extern("extern odd(n)")
        self._define("def even(n) if n < 1 then 1 else odd(n-1)")
        self._define("def odd(n) if n < 1 then 0 else even(n-1)")
        self.assertEqual(self._run("even(10)"), 1.0)
        self.assertEqual(self._run("odd(7)"), 1.0)

    def test_call_into_finalized_unit(self):
        self._define("def sq(x) x*x")
        self.assertEqual(self._run("sq(3)"), 9.0)
        # The second unit only declares sq and resolves it in the JIT
        self.assertEqual(self._run("sq(4)"), 16.0)

    def test_user_defined_operators(self):
        self._define("def unary!(v) if v then 0 else 1")
        self._define("def binary& 5 (a b) a - b")
        self.assertEqual(self._run("!0"), 1.0)
        self.assertEqual(self._run("10 & 2 + 1"), 7.0)

    def test_runtime_library(self):
        self._extern("extern printd(x)")
        self._extern("extern putchard(c)")
        self.assertEqual(self._run("printd(42)"), 0.0)
        self.assertEqual(self._run("putchard(65)"), 0.0)
        self.assertEqual(self.output.getvalue(), "42.000000\nA")


class TestScopeRestoration(CodegenTestCase):
    """Test cases for binding restoration after constructs."""

    def test_for_restores_shadowed_parameter(self):
        self._define("def f(x) (for x = 1, x < 3 in x) + x")
        self.assertEqual(self._run("f(10)"), 10.0)

    def test_var_restores_shadowed_parameter(self):
        self._define("def g(x) (var x = 5 in x) + x")
        self.assertEqual(self._run("g(1)"), 6.0)

    def test_failure_leaves_no_bindings(self):
        with self.assertRaises(UnboundVariableError):
            self._define("def bad(x) (var y = 1 in (for i = 0, i < 1 in zz)) + x")
        self.assertEqual(self.state.scope.names(), [])

    def test_failed_function_is_dropped(self):
        with self.assertRaises(UnboundVariableError):
            self._define("def bad(x) zz")
        function = self.backend.lookup_function("bad")
        self.assertFalse(self.backend.has_body(function))

        # It can be defined properly afterwards
        self._define("def bad(x) x + 1")
        self.assertEqual(self._run("bad(1)"), 2.0)


class TestCodegenErrors(CodegenTestCase):
    """Test cases for code generation failures."""

    def test_redefinition(self):
        self._define("def foo(x) x")
        with self.assertRaises(RedefinitionError):
            self._define("def foo(x) x + 1")

    def test_redefinition_of_finalized_function(self):
        self._define("def foo(x) x")
        self._run("foo(1)")
        with self.assertRaises(RedefinitionError):
            self._define("def foo(x) 2")

    def test_extern_then_definition(self):
        self._extern("extern foo(x)")
        self._define("def foo(x) x * 2")
        self.assertEqual(self._run("foo(4)"), 8.0)

    def test_declaration_arity_mismatch(self):
        self._extern("extern foo(a)")
        with self.assertRaises(ArgumentCountError):
            self._define("def foo(a b) a")

    def test_call_arity_mismatch(self):
        self._define("def two(a b) a + b")
        with self.assertRaises(ArgumentCountError) as context:
            self._run("two(1)")
        self.assertEqual(context.exception.expected, 2)
        self.assertEqual(context.exception.found, 1)

    def test_unknown_function(self):
        with self.assertRaises(UnknownFunctionError):
            self._run("nope(1)")

    def test_unknown_operator_functions(self):
        binary = FunctionDef(Prototype("b", []),
                             BinaryOp('^', NumberLiteral(1.0), NumberLiteral(2.0)))
        with self.assertRaises(UnknownFunctionError):
            self.codegen.generate_function(binary)

        unary = FunctionDef(Prototype("u", []), UnaryOp('~', NumberLiteral(1.0)))
        with self.assertRaises(UnknownFunctionError):
            self.codegen.generate_function(unary)

    def test_deeply_nested_body(self):
        body = NumberLiteral(1.0)
        for _ in range(sys.getrecursionlimit() * 2):
            body = BinaryOp('+', NumberLiteral(1.0), body)
        with self.assertRaises(NestingDepthError):
            self.codegen.generate_function(FunctionDef(Prototype("deep", ["x"]), body))
        self.assertFalse(self.backend.has_body(self.backend.lookup_function("deep")))
        self.assertEqual(self.state.scope.names(), [])

        # The backend is still usable
        self.assertEqual(self._run("2 + 2"), 4.0)

    def test_invalid_assignment(self):
        with self.assertRaises(InvalidAssignmentError):
            self._define("def h(x) (x+1) = 2")

    def test_unbound_assignment(self):
        with self.assertRaises(UnboundVariableError):
            self._define("def h(x) y = 2")

    def test_operator_precedence_installed_with_signature(self):
        self._define("def binary& 5 (a b) a - b")
        self.assertEqual(self.state.operators.precedence('&'), 5)
        self.assertEqual(self.state.prototypes["binary&"].precedence, 5)

    def test_unresolved_extern(self):
        self._extern("extern nosuchfunction42(x)")
        with self.assertRaises(BackendError) as context:
            self._run("nosuchfunction42(1)")
        self.assertEqual(context.exception.diagnostic.code, "B003")
        # The backend is still usable
        self.assertEqual(self._run("1 + 1"), 2.0)

    def test_unused_unresolved_extern_is_harmless(self):
        self._extern("extern nosuchfunction42(x)")
        self.assertEqual(self._run("3"), 3.0)


class TestOptimizedCode(CodegenTestCase):
    """Same evaluation, with the full pass pipeline."""

    optimization_level = OptimizationLevel.O3

    def test_recursion(self):
        self._define("def fib(x) if x < 3 then 1 else fib(x-1)+fib(x-2)")
        self.assertEqual(self._run("fib(15)"), 610.0)

    def test_loop(self):
        self._define("def sumto(n) var acc = 0 in (for i = 1, i < n in acc = acc + i) + acc")
        self.assertEqual(self._run("sumto(100)"), 5050.0)


class TestObjectEmission(CodegenTestCase):
    """Test cases for writing object files."""

    def test_emit_object(self):
        self._define("def inc(x) x + 1")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "output.o")
            self.backend.emit_object(self.unit, path)
            self.assertGreater(os.path.getsize(path), 0)

    def test_emit_object_to_bad_path(self):
        self._define("def inc(x) x + 1")
        with self.assertRaises(BackendError) as context:
            self.backend.emit_object(self.unit, os.path.join(tempfile.gettempdir(),
                                                             "no", "such", "dir", "x.o"))
        self.assertEqual(context.exception.diagnostic.code, "B004")


if __name__ == "__main__":
    unittest.main()
